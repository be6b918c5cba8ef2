"""
Catalog Module (``stock_modules.catalog``).

Responsibility
--------------
Articles and locations: the reference data every receipt, write-off and
purchase order points at, plus the contact-list authorizer that answers
"may this user act on this location?".
"""

from stock_modules.catalog.authorizer import ContactListAuthorizer
from stock_modules.catalog.models import (
    Article,
    ArticleCategory,
    Location,
    ResponsibleContact,
)
from stock_modules.catalog.selector import CatalogSelector
from stock_modules.catalog.service import CatalogService

__all__ = [
    "Article",
    "ArticleCategory",
    "CatalogSelector",
    "CatalogService",
    "ContactListAuthorizer",
    "Location",
    "ResponsibleContact",
]

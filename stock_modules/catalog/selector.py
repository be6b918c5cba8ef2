"""
Module: stock_modules.catalog.selector
Responsibility: Read-only lookups over articles and locations.
Architecture position: Modules > Catalog > Selector.  Extends BaseSelector.

Invariants enforced:
    - Returns frozen DTOs, never ORM rows.
    - Missing rows raise the typed NotFoundError subclass.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.exceptions import ArticleNotFoundError, LocationNotFoundError
from stock_kernel.selectors.base import BaseSelector
from stock_modules.catalog.models import Article, ArticleCategory, Location
from stock_modules.catalog.orm import ArticleModel, LocationContactModel, LocationModel


class CatalogSelector(BaseSelector):
    """Article and location lookups."""

    def get_article(self, article_id: UUID) -> Article:
        model = self.session.get(ArticleModel, article_id)
        if model is None:
            raise ArticleNotFoundError(str(article_id))
        return model.to_dto()

    def get_location(self, location_id: UUID) -> Location:
        model = self.session.get(LocationModel, location_id)
        if model is None:
            raise LocationNotFoundError(str(location_id))
        return model.to_dto()

    def find_article_by_sku(self, sku: str) -> Article | None:
        model = self.session.scalars(
            select(ArticleModel).where(ArticleModel.sku == sku)
        ).first()
        return model.to_dto() if model is not None else None

    def list_articles(self, category: ArticleCategory | None = None) -> list[Article]:
        """All articles sorted by name, optionally restricted to one category."""
        stmt = select(ArticleModel).order_by(ArticleModel.name, ArticleModel.sku)
        if category is not None:
            stmt = stmt.where(ArticleModel.category == ArticleCategory(category).value)
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def articles_by_id(self, article_ids: Iterable[UUID]) -> dict[UUID, Article]:
        ids = list(set(article_ids))
        if not ids:
            return {}
        rows = self.session.scalars(select(ArticleModel).where(ArticleModel.id.in_(ids)))
        return {m.id: m.to_dto() for m in rows}

    def list_locations(self) -> list[Location]:
        stmt = select(LocationModel).order_by(LocationModel.name)
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def locations_for_contact(self, email: str) -> list[Location]:
        """Locations whose contact list includes ``email`` (case-insensitive)."""
        stmt = (
            select(LocationModel)
            .join(LocationContactModel, LocationContactModel.location_id == LocationModel.id)
            .where(func.lower(LocationContactModel.email) == email.strip().lower())
            .order_by(LocationModel.name)
            .distinct()
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

"""
Catalog Domain Models (``stock_modules.catalog.models``).

Responsibility
--------------
Frozen value objects for the nouns every other module references: articles
(consumables, office supplies, hardware) and locations with their ordered
list of responsible contacts.

Architecture
------------
Layer: **Modules** -- pure domain data structures.  All dataclasses are
``frozen=True``; they carry no database identity beyond ``id`` and no I/O.

Invariants
----------
- An article's ``name``, ``sku`` and ``unit`` are non-empty.
- ``minimum_stock`` is non-negative; hardware intervals are positive.
- A contact always carries an email address; location authorization is a
  case-insensitive match against it.

Failure Modes
-------------
- Construction with invalid fields raises ``ValidationError`` immediately.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from stock_kernel.exceptions import ValidationError


class ArticleCategory(str, Enum):
    """Catalog partition used for display grouping and totals."""
    HARDWARE = "Hardware"
    SOFTWARE = "Software"
    CONSUMABLE = "Consumable"
    OFFICE_SUPPLY = "OfficeSupply"
    OTHER = "Other"


def _require_text(value: str | None, field: str) -> None:
    if value is None or not value.strip():
        raise ValidationError(f"{field} cannot be empty", field=field)


@dataclass(frozen=True)
class ResponsibleContact:
    """A person responsible for a location (or for a hardware article)."""
    name: str
    email: str
    phone: str | None = None

    def __post_init__(self):
        _require_text(self.name, "name")
        _require_text(self.email, "email")

    def matches(self, email: str) -> bool:
        return self.email.strip().casefold() == email.strip().casefold()


@dataclass(frozen=True)
class Article:
    """
    A catalog item.

    Contract: ``id`` is immutable identity; every other field may change
    through ``CatalogService.update_article``.  Hardware articles may carry
    maintenance intervals and a responsible contact.
    """
    id: UUID
    name: str
    sku: str
    category: ArticleCategory
    unit: str
    minimum_stock: int | None = None
    description: str | None = None
    service_interval_months: int | None = None
    replacement_interval_years: int | None = None
    responsible_name: str | None = None
    responsible_email: str | None = None
    responsible_phone: str | None = None

    def __post_init__(self):
        _require_text(self.name, "name")
        _require_text(self.sku, "sku")
        _require_text(self.unit, "unit")
        if self.minimum_stock is not None and self.minimum_stock < 0:
            raise ValidationError("minimum_stock cannot be negative", field="minimum_stock")
        if self.service_interval_months is not None and self.service_interval_months <= 0:
            raise ValidationError(
                "service_interval_months must be positive",
                field="service_interval_months",
            )
        if self.replacement_interval_years is not None and self.replacement_interval_years <= 0:
            raise ValidationError(
                "replacement_interval_years must be positive",
                field="replacement_interval_years",
            )

    @property
    def is_hardware(self) -> bool:
        return self.category == ArticleCategory.HARDWARE


@dataclass(frozen=True)
class Location:
    """A physical site that holds stock and places orders."""
    id: UUID
    name: str
    address: str | None = None
    postal_code: str | None = None
    city: str | None = None
    country: str | None = None
    contacts: tuple[ResponsibleContact, ...] = ()

    def __post_init__(self):
        _require_text(self.name, "name")

    def has_contact(self, email: str) -> bool:
        """True if ``email`` is one of the location's responsible contacts."""
        return any(c.matches(email) for c in self.contacts)

"""
Module: stock_modules.catalog.orm
Responsibility: SQLAlchemy ORM persistence models for the Catalog module.
    Maps the frozen Article / Location / ResponsibleContact DTOs to the
    articles, locations and location_contacts tables.

Architecture position: Modules > Catalog > ORM.  Inherits from TrackedBase
    (stock_kernel.db.base).  Ledger and fulfillment rows reference articles
    and locations by UUID without foreign keys.

Invariants enforced:
    - Article SKUs are unique.
    - Contacts keep their list order through the ``position`` column.
    - Enum fields stored as String(50) for portability and readability.

Failure modes:
    - IntegrityError on duplicate article SKU.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase


class ArticleModel(TrackedBase):
    """
    ORM model for catalog articles.

    Maps to: stock_modules.catalog.models.Article (frozen dataclass).
    """

    __tablename__ = "articles"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_articles_sku"),
        Index("idx_articles_category", "category"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)
    minimum_stock: Mapped[int | None] = mapped_column(nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Hardware maintenance
    service_interval_months: Mapped[int | None] = mapped_column(nullable=True)
    replacement_interval_years: Mapped[int | None] = mapped_column(nullable=True)
    responsible_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    responsible_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    responsible_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen Article DTO."""
        from stock_modules.catalog.models import Article, ArticleCategory

        return Article(
            id=self.id,
            name=self.name,
            sku=self.sku,
            category=ArticleCategory(self.category),
            unit=self.unit,
            minimum_stock=self.minimum_stock,
            description=self.description,
            service_interval_months=self.service_interval_months,
            replacement_interval_years=self.replacement_interval_years,
            responsible_name=self.responsible_name,
            responsible_email=self.responsible_email,
            responsible_phone=self.responsible_phone,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ArticleModel":
        """Create ORM model from frozen Article DTO."""
        return cls(
            id=dto.id,
            name=dto.name,
            sku=dto.sku,
            category=dto.category.value,
            unit=dto.unit,
            minimum_stock=dto.minimum_stock,
            description=dto.description,
            service_interval_months=dto.service_interval_months,
            replacement_interval_years=dto.replacement_interval_years,
            responsible_name=dto.responsible_name,
            responsible_email=dto.responsible_email,
            responsible_phone=dto.responsible_phone,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto, updated_by_id: UUID) -> None:
        """Copy the mutable fields of ``dto`` onto this row."""
        self.name = dto.name
        self.sku = dto.sku
        self.category = dto.category.value
        self.unit = dto.unit
        self.minimum_stock = dto.minimum_stock
        self.description = dto.description
        self.service_interval_months = dto.service_interval_months
        self.replacement_interval_years = dto.replacement_interval_years
        self.responsible_name = dto.responsible_name
        self.responsible_email = dto.responsible_email
        self.responsible_phone = dto.responsible_phone
        self.updated_by_id = updated_by_id

    def __repr__(self) -> str:
        return f"<ArticleModel {self.sku} {self.name!r} category={self.category}>"


class LocationModel(TrackedBase):
    """
    ORM model for locations.

    Maps to: stock_modules.catalog.models.Location (frozen dataclass).
    """

    __tablename__ = "locations"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    contacts: Mapped[list["LocationContactModel"]] = relationship(
        back_populates="location",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LocationContactModel.position",
    )

    def to_dto(self):
        """Convert ORM model to frozen Location DTO."""
        from stock_modules.catalog.models import Location

        return Location(
            id=self.id,
            name=self.name,
            address=self.address,
            postal_code=self.postal_code,
            city=self.city,
            country=self.country,
            contacts=tuple(c.to_dto() for c in self.contacts),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "LocationModel":
        """Create ORM model from frozen Location DTO."""
        model = cls(
            id=dto.id,
            name=dto.name,
            address=dto.address,
            postal_code=dto.postal_code,
            city=dto.city,
            country=dto.country,
            created_by_id=created_by_id,
        )
        model.contacts = LocationContactModel.from_contacts(dto.contacts, created_by_id)
        return model

    def __repr__(self) -> str:
        return f"<LocationModel {self.name!r} contacts={len(self.contacts)}>"


class LocationContactModel(TrackedBase):
    """One entry in a location's ordered responsible-contact list."""

    __tablename__ = "location_contacts"

    __table_args__ = (
        Index("idx_location_contacts_location", "location_id"),
        Index("idx_location_contacts_email", "email"),
    )

    location_id: Mapped[UUID] = mapped_column(
        ForeignKey("locations.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    location: Mapped["LocationModel"] = relationship(back_populates="contacts")

    def to_dto(self):
        from stock_modules.catalog.models import ResponsibleContact

        return ResponsibleContact(name=self.name, email=self.email, phone=self.phone)

    @classmethod
    def from_contacts(cls, contacts, created_by_id: UUID) -> list["LocationContactModel"]:
        """Build rows for ``contacts``, numbering them in list order."""
        return [
            cls(
                position=i,
                name=c.name,
                email=c.email,
                phone=c.phone,
                created_by_id=created_by_id,
            )
            for i, c in enumerate(contacts)
        ]

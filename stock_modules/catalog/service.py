"""
Catalog Module Service (``stock_modules.catalog.service``).

Responsibility
--------------
Administrative maintenance of articles and locations: create, update,
delete (articles only, and only while unreferenced) and replacement of a
location's responsible-contact list.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper over the catalog ORM.
Reads are delegated to ``CatalogSelector``.

Invariants
----------
- Every mutation requires the ``admin`` role.
- Article identity (``id``) never changes; SKUs stay unique.
- An article referenced by any receipt, write-off or order line is never
  deleted (``ArticleReferencedError``).
- Each public method owns its transaction boundary through
  ``BaseService.unit_of_work``.

Usage::

    service = CatalogService(session, clock)
    article = service.create_article(
        auth, name="Toner XL", sku="T-100",
        category=ArticleCategory.CONSUMABLE, unit="piece",
    )
"""

from __future__ import annotations

from dataclasses import fields, replace
from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.auth import AuthContext, Role, require_role
from stock_kernel.domain.clock import Clock
from stock_kernel.exceptions import (
    ArticleNotFoundError,
    ArticleReferencedError,
    LocationNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.services.base import BaseService
from stock_modules.catalog.models import (
    Article,
    ArticleCategory,
    Location,
    ResponsibleContact,
)
from stock_modules.catalog.orm import ArticleModel, LocationContactModel, LocationModel
from stock_modules.catalog.selector import CatalogSelector

logger = get_logger("modules.catalog.service")

_ADMIN_ONLY = (Role.ADMIN,)
_LOCATION_FIELDS = frozenset({"name", "address", "postal_code", "city", "country"})


class CatalogService(BaseService):
    """
    Maintains the article and location catalog.

    Contract
    --------
    Mutations return the persisted DTO.  Lookups raise the typed
    ``NotFoundError`` subclass for unknown ids.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._selector = CatalogSelector(session)

    # -----------------------------------------------------------------
    # Articles
    # -----------------------------------------------------------------

    def create_article(
        self,
        auth: AuthContext,
        *,
        name: str,
        sku: str,
        category: ArticleCategory | str,
        unit: str,
        minimum_stock: int | None = None,
        description: str | None = None,
        service_interval_months: int | None = None,
        replacement_interval_years: int | None = None,
        responsible_name: str | None = None,
        responsible_email: str | None = None,
        responsible_phone: str | None = None,
    ) -> Article:
        require_role(auth, _ADMIN_ONLY, "create_article")
        article = Article(
            id=uuid4(),
            name=name.strip() if name else name,
            sku=sku.strip() if sku else sku,
            category=_category(category),
            unit=unit,
            minimum_stock=minimum_stock,
            description=description,
            service_interval_months=service_interval_months,
            replacement_interval_years=replacement_interval_years,
            responsible_name=responsible_name,
            responsible_email=responsible_email,
            responsible_phone=responsible_phone,
        )

        with self.unit_of_work("create_article", "Article", article.id):
            self._ensure_sku_free(article.sku)
            self.session.add(ArticleModel.from_dto(article, auth.user_id))

        logger.info(
            "article_created",
            extra={
                "article_id": str(article.id),
                "sku": article.sku,
                "category": article.category.value,
                "actor_email": auth.email,
            },
        )
        return article

    def update_article(self, auth: AuthContext, article_id: UUID, **changes: Any) -> Article:
        """Change descriptive fields of an article.  ``id`` cannot change."""
        require_role(auth, _ADMIN_ONLY, "update_article")
        allowed = {f.name for f in fields(Article)} - {"id"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(
                f"Cannot update article fields: {sorted(unknown)}",
                field=sorted(unknown)[0],
            )
        if "category" in changes:
            changes["category"] = _category(changes["category"])

        with self.unit_of_work("update_article", "Article", article_id):
            model = self._article_for_update(article_id)
            updated = replace(model.to_dto(), **changes)
            if updated.sku != model.sku:
                self._ensure_sku_free(updated.sku)
            model.apply_dto(updated, auth.user_id)

        logger.info(
            "article_updated",
            extra={
                "article_id": str(article_id),
                "fields": sorted(changes),
                "actor_email": auth.email,
            },
        )
        return updated

    def delete_article(self, auth: AuthContext, article_id: UUID) -> None:
        """Delete an article that no ledger event or order line references."""
        require_role(auth, _ADMIN_ONLY, "delete_article")

        with self.unit_of_work("delete_article", "Article", article_id):
            model = self._article_for_update(article_id)
            if self._is_referenced(article_id):
                logger.warning(
                    "article_delete_refused",
                    extra={"article_id": str(article_id), "actor_email": auth.email},
                )
                raise ArticleReferencedError(str(article_id))
            self.session.delete(model)

        logger.info(
            "article_deleted",
            extra={"article_id": str(article_id), "actor_email": auth.email},
        )

    # -----------------------------------------------------------------
    # Locations
    # -----------------------------------------------------------------

    def create_location(
        self,
        auth: AuthContext,
        *,
        name: str,
        address: str | None = None,
        postal_code: str | None = None,
        city: str | None = None,
        country: str | None = None,
        contacts: Sequence[ResponsibleContact] = (),
    ) -> Location:
        require_role(auth, _ADMIN_ONLY, "create_location")
        location = Location(
            id=uuid4(),
            name=name,
            address=address,
            postal_code=postal_code,
            city=city,
            country=country,
            contacts=tuple(contacts),
        )

        with self.unit_of_work("create_location", "Location", location.id):
            self.session.add(LocationModel.from_dto(location, auth.user_id))

        logger.info(
            "location_created",
            extra={
                "location_id": str(location.id),
                "contact_count": len(location.contacts),
                "actor_email": auth.email,
            },
        )
        return location

    def update_location(self, auth: AuthContext, location_id: UUID, **changes: Any) -> Location:
        """Change address fields or the name.  Contacts go through ``set_contacts``."""
        require_role(auth, _ADMIN_ONLY, "update_location")
        unknown = set(changes) - _LOCATION_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update location fields: {sorted(unknown)}",
                field=sorted(unknown)[0],
            )

        with self.unit_of_work("update_location", "Location", location_id):
            model = self._location_for_update(location_id)
            updated = replace(model.to_dto(), **changes)
            for key in changes:
                setattr(model, key, getattr(updated, key))
            model.updated_by_id = auth.user_id

        logger.info(
            "location_updated",
            extra={
                "location_id": str(location_id),
                "fields": sorted(changes),
                "actor_email": auth.email,
            },
        )
        return updated

    def set_contacts(
        self,
        auth: AuthContext,
        location_id: UUID,
        contacts: Sequence[ResponsibleContact],
    ) -> Location:
        """Replace the location's responsible-contact list, keeping the given order."""
        require_role(auth, _ADMIN_ONLY, "set_contacts")
        emails = [c.email.strip().casefold() for c in contacts]
        if len(emails) != len(set(emails)):
            raise ValidationError("Duplicate contact email", field="contacts")

        with self.unit_of_work("set_contacts", "Location", location_id):
            model = self._location_for_update(location_id)
            model.contacts.clear()
            self.session.flush()
            model.contacts.extend(LocationContactModel.from_contacts(contacts, auth.user_id))
            model.updated_by_id = auth.user_id
            self.session.flush()
            updated = model.to_dto()

        logger.info(
            "location_contacts_replaced",
            extra={
                "location_id": str(location_id),
                "contact_count": len(contacts),
                "actor_email": auth.email,
            },
        )
        return updated

    # -----------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------

    def get_article(self, article_id: UUID) -> Article:
        return self._selector.get_article(article_id)

    def get_location(self, location_id: UUID) -> Location:
        return self._selector.get_location(location_id)

    def list_articles(self, category: ArticleCategory | str | None = None) -> list[Article]:
        return self._selector.list_articles(_category(category) if category else None)

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _article_for_update(self, article_id: UUID) -> ArticleModel:
        model = self.session.scalars(
            select(ArticleModel).where(ArticleModel.id == article_id).with_for_update()
        ).first()
        if model is None:
            raise ArticleNotFoundError(str(article_id))
        return model

    def _location_for_update(self, location_id: UUID) -> LocationModel:
        model = self.session.scalars(
            select(LocationModel).where(LocationModel.id == location_id).with_for_update()
        ).first()
        if model is None:
            raise LocationNotFoundError(str(location_id))
        return model

    def _ensure_sku_free(self, sku: str) -> None:
        if self._selector.find_article_by_sku(sku) is not None:
            raise ValidationError(f"SKU {sku!r} is already in use", field="sku")

    def _is_referenced(self, article_id: UUID) -> bool:
        from stock_modules.fulfillment.orm import PurchaseOrderLineModel
        from stock_modules.ledger.orm import ReceiptEventModel, WriteOffEventModel

        for model in (ReceiptEventModel, WriteOffEventModel, PurchaseOrderLineModel):
            hit = self.session.scalar(
                select(model.id).where(model.article_id == article_id).limit(1)
            )
            if hit is not None:
                return True
        return False


def _category(value: ArticleCategory | str) -> ArticleCategory:
    try:
        return ArticleCategory(value)
    except ValueError:
        raise ValidationError(f"Unknown article category {value!r}", field="category") from None

"""
Module: stock_modules.fulfillment.orm
Responsibility: SQLAlchemy ORM persistence models for purchase orders and
    their lines.

Architecture position: Modules > Fulfillment > ORM.  Inherits from
    TrackedBase (stock_kernel.db.base).  Location and article references are
    UUID columns with NO foreign key constraints; lines reference their order
    by foreign key.

Invariants enforced:
    - ``purchase_orders.version`` is the optimistic-locking token.  It is the
      mapper's ``version_id_col`` with application-managed values: the
      service sets 1 on insert and increments it on every transition, and
      SQLAlchemy adds ``WHERE version = <loaded value>`` to the UPDATE.  A
      zero-row UPDATE raises ``StaleDataError``.
    - Status stored as String(50) holding an ``OrderStatus`` value.

Failure modes:
    - StaleDataError when a concurrent transition committed first.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase


class PurchaseOrderModel(TrackedBase):
    """
    ORM model for purchase orders.

    Maps to: stock_modules.fulfillment.models.PurchaseOrder (frozen dataclass).
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        Index("idx_purchase_orders_location", "location_id"),
        Index("idx_purchase_orders_status", "status"),
        Index("idx_purchase_orders_ordered_at", "ordered_at"),
    )

    location_id: Mapped[UUID] = mapped_column()
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    ordered_at: Mapped[datetime] = mapped_column(nullable=False)
    ordered_by_id: Mapped[UUID] = mapped_column(nullable=False)
    shipped_at: Mapped[datetime | None] = mapped_column(nullable=True)
    shipped_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    received_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    lines: Mapped[list["PurchaseOrderLineModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderLineModel.line_number",
    )

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    def to_dto(self):
        """Convert ORM model to frozen PurchaseOrder DTO."""
        from stock_modules.fulfillment.models import OrderStatus, PurchaseOrder

        return PurchaseOrder(
            id=self.id,
            location_id=self.location_id,
            status=OrderStatus(self.status),
            lines=tuple(line.to_dto() for line in self.lines),
            ordered_at=self.ordered_at,
            ordered_by_id=self.ordered_by_id,
            version=self.version,
            note=self.note,
            shipped_at=self.shipped_at,
            shipped_by_id=self.shipped_by_id,
            received_at=self.received_at,
            received_by_id=self.received_by_id,
            cancelled_at=self.cancelled_at,
            cancelled_by_id=self.cancelled_by_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PurchaseOrderModel":
        """Create ORM model (with line rows) from frozen PurchaseOrder DTO."""
        model = cls(
            id=dto.id,
            location_id=dto.location_id,
            status=dto.status.value,
            version=dto.version,
            note=dto.note,
            ordered_at=dto.ordered_at,
            ordered_by_id=dto.ordered_by_id,
            created_by_id=created_by_id,
        )
        model.lines = [
            PurchaseOrderLineModel.from_dto(line, created_by_id)
            for line in dto.lines
        ]
        return model

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrderModel {self.id} status={self.status} "
            f"version={self.version} lines={len(self.lines)}>"
        )


class PurchaseOrderLineModel(TrackedBase):
    """
    ORM model for purchase order lines.

    Maps to the ``OrderLine`` frozen dataclass.  Each line belongs to
    exactly one PurchaseOrderModel.
    """

    __tablename__ = "purchase_order_lines"

    __table_args__ = (
        UniqueConstraint("order_id", "line_number", name="uq_purchase_order_lines_number"),
        Index("idx_purchase_order_lines_order", "order_id"),
        Index("idx_purchase_order_lines_article", "article_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    article_id: Mapped[UUID] = mapped_column()
    quantity_ordered: Mapped[int] = mapped_column(nullable=False)
    quantity_shipped: Mapped[int] = mapped_column(nullable=False, default=0)

    order: Mapped["PurchaseOrderModel"] = relationship(back_populates="lines")

    def to_dto(self):
        """Convert ORM model to frozen OrderLine DTO."""
        from stock_modules.fulfillment.models import OrderLine

        return OrderLine(
            id=self.id,
            order_id=self.order_id,
            line_number=self.line_number,
            article_id=self.article_id,
            quantity_ordered=self.quantity_ordered,
            quantity_shipped=self.quantity_shipped,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PurchaseOrderLineModel":
        """Create ORM model from frozen OrderLine DTO."""
        return cls(
            id=dto.id,
            order_id=dto.order_id,
            line_number=dto.line_number,
            article_id=dto.article_id,
            quantity_ordered=dto.quantity_ordered,
            quantity_shipped=dto.quantity_shipped,
            created_by_id=created_by_id,
        )

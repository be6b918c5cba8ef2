"""
Module: stock_modules.ledger.orm
Responsibility: SQLAlchemy ORM persistence models for the Stock Ledger.
    Maps ReceiptEvent (with its bin splits) and WriteOffEvent DTOs to the
    receipt_events, receipt_bin_splits and write_off_events tables.

Architecture position: Modules > Ledger > ORM.  Inherits from TrackedBase
    (stock_kernel.db.base).  References articles, locations and purchase
    orders via UUID columns with NO foreign key constraints.

Invariants enforced:
    - Receipt events and their splits are insert-only.
    - Write-off rows are never deleted; cancellation flips ``cancelled``.
    - TrackedBase provides: id (UUID PK), created_at, updated_at,
      created_by_id (NOT NULL), updated_by_id (nullable).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase


class ReceiptEventModel(TrackedBase):
    """
    ORM model for receipt events.

    Maps to: stock_modules.ledger.models.ReceiptEvent (frozen dataclass).
    """

    __tablename__ = "receipt_events"

    __table_args__ = (
        Index("idx_receipt_location_article", "location_id", "article_id"),
        Index("idx_receipt_article", "article_id"),
        Index("idx_receipt_order", "order_id"),
    )

    location_id: Mapped[UUID] = mapped_column()
    article_id: Mapped[UUID] = mapped_column()
    quantity: Mapped[int] = mapped_column(nullable=False)
    order_id: Mapped[UUID | None] = mapped_column(nullable=True)
    received_at: Mapped[datetime] = mapped_column(nullable=False)

    splits: Mapped[list["ReceiptBinSplitModel"]] = relationship(
        back_populates="receipt",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReceiptBinSplitModel.position",
    )

    def to_dto(self):
        """Convert ORM model to frozen ReceiptEvent DTO."""
        from stock_modules.ledger.models import BinSplit, ReceiptEvent

        return ReceiptEvent(
            id=self.id,
            location_id=self.location_id,
            article_id=self.article_id,
            quantity=self.quantity,
            splits=tuple(BinSplit(s.bin, s.quantity) for s in self.splits),
            order_id=self.order_id,
            received_at=self.received_at,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ReceiptEventModel":
        """Create ORM model (with split rows) from frozen ReceiptEvent DTO."""
        model = cls(
            id=dto.id,
            location_id=dto.location_id,
            article_id=dto.article_id,
            quantity=dto.quantity,
            order_id=dto.order_id,
            received_at=dto.received_at,
            created_by_id=created_by_id,
        )
        model.splits = [
            ReceiptBinSplitModel(
                position=i,
                bin=split.bin,
                quantity=split.quantity,
                created_by_id=created_by_id,
            )
            for i, split in enumerate(dto.splits)
        ]
        return model

    def __repr__(self) -> str:
        return (
            f"<ReceiptEventModel {self.id} article={self.article_id} "
            f"qty={self.quantity} splits={len(self.splits)}>"
        )


class ReceiptBinSplitModel(TrackedBase):
    """One (bin, quantity) split of a receipt event."""

    __tablename__ = "receipt_bin_splits"

    __table_args__ = (
        Index("idx_receipt_split_receipt", "receipt_id"),
    )

    receipt_id: Mapped[UUID] = mapped_column(
        ForeignKey("receipt_events.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(nullable=False)
    bin: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)

    receipt: Mapped["ReceiptEventModel"] = relationship(back_populates="splits")


class WriteOffEventModel(TrackedBase):
    """
    ORM model for write-off events.

    Maps to: stock_modules.ledger.models.WriteOffEvent (frozen dataclass).

    Guarantees:
        - Rows are soft-cancelled, never deleted.
        - ``batch_id`` ties together the rows of one write_off() call.
    """

    __tablename__ = "write_off_events"

    __table_args__ = (
        Index("idx_write_off_location_article", "location_id", "article_id"),
        Index("idx_write_off_reference", "reference"),
        Index("idx_write_off_batch", "batch_id"),
    )

    location_id: Mapped[UUID] = mapped_column()
    article_id: Mapped[UUID] = mapped_column()
    quantity: Mapped[int] = mapped_column(nullable=False)
    bin: Mapped[str] = mapped_column(String(100), nullable=False)
    reference: Mapped[str] = mapped_column(String(200), nullable=False)
    written_off_at: Mapped[datetime] = mapped_column(nullable=False)
    batch_id: Mapped[UUID | None] = mapped_column(nullable=True)

    cancelled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen WriteOffEvent DTO."""
        from stock_modules.ledger.models import WriteOffEvent

        return WriteOffEvent(
            id=self.id,
            location_id=self.location_id,
            article_id=self.article_id,
            quantity=self.quantity,
            bin=self.bin,
            reference=self.reference,
            written_off_at=self.written_off_at,
            cancelled=self.cancelled,
            batch_id=self.batch_id,
            cancelled_at=self.cancelled_at,
            cancelled_by_id=self.cancelled_by_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "WriteOffEventModel":
        """Create ORM model from frozen WriteOffEvent DTO."""
        return cls(
            id=dto.id,
            location_id=dto.location_id,
            article_id=dto.article_id,
            quantity=dto.quantity,
            bin=dto.bin,
            reference=dto.reference,
            written_off_at=dto.written_off_at,
            batch_id=dto.batch_id,
            cancelled=dto.cancelled,
            cancelled_at=dto.cancelled_at,
            cancelled_by_id=dto.cancelled_by_id,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<WriteOffEventModel {self.id} article={self.article_id} "
            f"bin={self.bin!r} qty={self.quantity} cancelled={self.cancelled}>"
        )

"""
Stock Ledger Domain Models (``stock_modules.ledger.models``).

Responsibility
--------------
Frozen value objects for the append-only stock event log (receipt events
with their bin splits, write-off events) and for the positions derived
from it.

Architecture
------------
Layer: **Modules** -- pure domain data structures, no I/O.  A
``StockPosition`` is never stored: ``helpers.compute_stock`` derives it
from the event log on every read.

Invariants
----------
- All quantities are integers; event quantities are strictly positive.
- Bin names are stored stripped of surrounding whitespace.
- A ``ReceiptEvent``'s bin splits sum exactly to its quantity and name each
  bin at most once.  A mismatch is rejected, never truncated.
- A ``StockPosition``'s bins sum to its total.
- A negative bin quantity is reported through ``InconsistencyWarning``,
  never raised.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from stock_kernel.exceptions import ValidationError
from stock_modules.catalog.models import Article


def _require_positive(quantity: int, field: str) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"{field} must be an integer, got {quantity!r}", field=field)
    if quantity <= 0:
        raise ValidationError(f"{field} must be positive, got {quantity}", field=field)


def _clean_bin(bin_name: str) -> str:
    if not isinstance(bin_name, str) or not bin_name.strip():
        raise ValidationError("Storage bin cannot be empty", field="bin")
    return bin_name.strip()


@dataclass(frozen=True)
class BinSplit:
    """Part of a receipt put away at one storage bin."""
    bin: str
    quantity: int

    def __post_init__(self):
        object.__setattr__(self, "bin", _clean_bin(self.bin))
        _require_positive(self.quantity, "quantity")


@dataclass(frozen=True)
class ReceiptEvent:
    """
    Stock that physically arrived at a location and was put away.

    Contract: immutable once created.  ``order_id`` is set when the receipt
    books in a purchase order.
    """
    id: UUID
    location_id: UUID
    article_id: UUID
    quantity: int
    splits: tuple[BinSplit, ...]
    order_id: UUID | None = None
    received_at: datetime | None = None

    def __post_init__(self):
        _require_positive(self.quantity, "quantity")
        if not self.splits:
            raise ValidationError("A receipt needs at least one bin split", field="splits")
        bins = [s.bin for s in self.splits]
        if len(bins) != len(set(bins)):
            raise ValidationError("A receipt names each bin at most once", field="splits")
        split_total = sum(s.quantity for s in self.splits)
        if split_total != self.quantity:
            raise ValidationError(
                f"Bin splits sum to {split_total}, receipt quantity is {self.quantity}",
                field="splits",
            )


@dataclass(frozen=True)
class WriteOffEntry:
    """One requested line of a write-off batch."""
    article_id: UUID
    bin: str
    quantity: int

    def __post_init__(self):
        object.__setattr__(self, "bin", _clean_bin(self.bin))
        _require_positive(self.quantity, "quantity")


@dataclass(frozen=True)
class WriteOffEvent:
    """
    Stock removed from a bin.

    Contract: soft-cancellable.  A cancelled write-off stays in the log but
    no longer reduces stock.
    """
    id: UUID
    location_id: UUID
    article_id: UUID
    quantity: int
    bin: str
    reference: str
    written_off_at: datetime
    cancelled: bool = False
    batch_id: UUID | None = None
    cancelled_at: datetime | None = None
    cancelled_by_id: UUID | None = None

    def __post_init__(self):
        _require_positive(self.quantity, "quantity")
        object.__setattr__(self, "bin", _clean_bin(self.bin))
        if not self.reference or not self.reference.strip():
            raise ValidationError("Write-off reference cannot be empty", field="reference")


@dataclass(frozen=True)
class InconsistencyWarning:
    """A bin whose computed quantity went negative.  Logged, never raised."""
    article_id: UUID
    location_id: UUID
    bin: str
    quantity: int


@dataclass(frozen=True)
class BinQuantity:
    bin: str
    quantity: int


@dataclass(frozen=True)
class StockPosition:
    """
    Derived on-hand quantity of one article at one location.

    ``bins`` is sorted by bin name.  ``warnings`` lists every bin with a
    negative quantity.
    """
    article_id: UUID
    location_id: UUID
    total_quantity: int
    bins: tuple[BinQuantity, ...] = ()
    warnings: tuple[InconsistencyWarning, ...] = ()

    @property
    def is_consistent(self) -> bool:
        return not self.warnings

    def quantity_in(self, bin_name: str) -> int:
        for b in self.bins:
            if b.bin == bin_name:
                return b.quantity
        return 0

    def clamped_bins(self) -> tuple[BinQuantity, ...]:
        """Per-bin view with negative quantities shown as zero."""
        return tuple(BinQuantity(b.bin, max(b.quantity, 0)) for b in self.bins)


@dataclass(frozen=True)
class StockedArticle:
    """An article paired with its position, for category and minimum-stock views."""
    article: Article
    position: StockPosition

    @property
    def is_below_minimum(self) -> bool:
        minimum = self.article.minimum_stock
        return minimum is not None and self.position.total_quantity < minimum


@dataclass(frozen=True)
class WriteOffGroup:
    """All write-offs booked under one reference."""
    reference: str
    latest_at: datetime
    entries: tuple[WriteOffEvent, ...]

    @property
    def total_quantity(self) -> int:
        return sum(e.quantity for e in self.entries if not e.cancelled)


@dataclass(frozen=True)
class WriteOffSummary:
    """Write-off totals, each sorted by quantity descending."""
    by_reference: tuple[tuple[str, int], ...]
    by_article: tuple[tuple[UUID, int], ...]
    by_month: tuple[tuple[str, int], ...]

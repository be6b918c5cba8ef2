"""
Order Fulfillment Domain Models (``stock_modules.fulfillment.models``).

Responsibility
--------------
Frozen value objects for purchase orders placed by a location against the
central warehouse, their lines, and the inputs of the ship transition.

Invariants
----------
- ``OrderStatus`` is a closed enumeration; the legal moves between its
  members live in ``workflows.ORDER_WORKFLOW``.
- An order line's ordered quantity is positive and
  ``0 <= quantity_shipped <= quantity_ordered``.
- Shipped quantities never decrease (enforced by
  ``helpers.apply_partial_shipment``).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from stock_kernel.exceptions import ValidationError


class OrderStatus(str, Enum):
    """Purchase order lifecycle states."""
    OPEN = "open"
    PARTIALLY_SHIPPED = "partially_shipped"
    SHIPPED = "shipped"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class ShipmentType(str, Enum):
    """How the caller declares a shipment."""
    FULL = "full"
    PARTIAL = "partial"


def _require_quantity(value: int, field: str, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {value!r}", field=field)
    if value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}, got {value}", field=field)


@dataclass(frozen=True)
class OrderLineRequest:
    """One requested article/quantity pair for ``create``."""
    article_id: UUID
    quantity: int

    def __post_init__(self):
        _require_quantity(self.quantity, "quantity", 1)


@dataclass(frozen=True)
class LineShipment:
    """Cumulative shipped quantity a partial shipment sets on one line."""
    line_id: UUID
    quantity_shipped: int

    def __post_init__(self):
        _require_quantity(self.quantity_shipped, "quantity_shipped", 0)


@dataclass(frozen=True)
class OrderLine:
    """One article/quantity pair within a purchase order."""
    id: UUID
    order_id: UUID
    line_number: int
    article_id: UUID
    quantity_ordered: int
    quantity_shipped: int = 0

    def __post_init__(self):
        _require_quantity(self.quantity_ordered, "quantity_ordered", 1)
        _require_quantity(self.quantity_shipped, "quantity_shipped", 0)
        if self.quantity_shipped > self.quantity_ordered:
            raise ValidationError(
                f"Line {self.line_number}: shipped {self.quantity_shipped} "
                f"exceeds ordered {self.quantity_ordered}",
                field="quantity_shipped",
            )

    @property
    def quantity_outstanding(self) -> int:
        return self.quantity_ordered - self.quantity_shipped

    @property
    def is_fully_shipped(self) -> bool:
        return self.quantity_shipped == self.quantity_ordered


@dataclass(frozen=True)
class PurchaseOrder:
    """
    A location's request for stock from the central warehouse.

    Contract: changed only through ``OrderFulfillmentService`` transitions,
    each of which increments ``version``.  Never deleted.
    """
    id: UUID
    location_id: UUID
    status: OrderStatus
    lines: tuple[OrderLine, ...]
    ordered_at: datetime
    ordered_by_id: UUID
    version: int = 1
    note: str | None = None
    shipped_at: datetime | None = None
    shipped_by_id: UUID | None = None
    received_at: datetime | None = None
    received_by_id: UUID | None = None
    cancelled_at: datetime | None = None
    cancelled_by_id: UUID | None = None

    def __post_init__(self):
        if not self.lines:
            raise ValidationError("An order needs at least one line", field="lines")

    @property
    def is_fully_shipped(self) -> bool:
        return all(line.is_fully_shipped for line in self.lines)

    @property
    def total_ordered(self) -> int:
        return sum(line.quantity_ordered for line in self.lines)

    @property
    def total_shipped(self) -> int:
        return sum(line.quantity_shipped for line in self.lines)

    def line(self, line_id: UUID) -> OrderLine | None:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None

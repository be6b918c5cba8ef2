"""
Pure order-fulfillment calculations.

Line arithmetic for the ship transitions and the receipt events a
``receive`` produces.  No I/O; the service loads and persists.
"""

from dataclasses import replace
from datetime import datetime
from typing import Mapping, Sequence
from uuid import UUID, uuid4

from stock_kernel.exceptions import InvalidTransitionError, ValidationError
from stock_modules.fulfillment.models import (
    LineShipment,
    OrderLine,
    OrderLineRequest,
    OrderStatus,
    PurchaseOrder,
)
from stock_modules.fulfillment.workflows import ORDER_WORKFLOW
from stock_modules.ledger.helpers import resolve_splits
from stock_modules.ledger.models import BinSplit, ReceiptEvent


def resolve_transition(order: PurchaseOrder, action: str) -> OrderStatus:
    """Target status of ``action`` from the order's current status."""
    transition = ORDER_WORKFLOW.transition_for(order.status.value, action)
    if transition is None:
        raise InvalidTransitionError(str(order.id), order.status.value, action)
    return OrderStatus(transition.to_state)


def build_lines(order_id: UUID, requests: Sequence[OrderLineRequest]) -> tuple[OrderLine, ...]:
    if not requests:
        raise ValidationError("An order needs at least one line", field="lines")
    return tuple(
        OrderLine(
            id=uuid4(),
            order_id=order_id,
            line_number=number,
            article_id=request.article_id,
            quantity_ordered=request.quantity,
        )
        for number, request in enumerate(requests, start=1)
    )


def apply_full_shipment(lines: Sequence[OrderLine]) -> tuple[OrderLine, ...]:
    """Every line shipped up to its ordered quantity."""
    return tuple(replace(line, quantity_shipped=line.quantity_ordered) for line in lines)


def apply_partial_shipment(
    lines: Sequence[OrderLine],
    shipments: Sequence[LineShipment],
) -> tuple[OrderLine, ...]:
    """
    Set the cumulative shipped quantity of each named line.

    Each value must lie between the line's current shipped quantity and its
    ordered quantity.  Lines not named keep their quantity.  After the
    shipment at least one unit must have been shipped on the order.

    Raises:
        ValidationError: Empty or duplicate shipments, unknown line ids,
            decreasing or over-ordered quantities, or nothing shipped.
    """
    if not shipments:
        raise ValidationError("A partial shipment names at least one line", field="lines")

    line_ids = [s.line_id for s in shipments]
    if len(line_ids) != len(set(line_ids)):
        raise ValidationError("A partial shipment names each line at most once", field="lines")

    by_id = {line.id: line for line in lines}
    unknown = [str(i) for i in line_ids if i not in by_id]
    if unknown:
        raise ValidationError(f"Unknown order lines: {', '.join(unknown)}", field="lines")

    updates: dict[UUID, int] = {}
    for shipment in shipments:
        line = by_id[shipment.line_id]
        if shipment.quantity_shipped < line.quantity_shipped:
            raise ValidationError(
                f"Line {line.line_number}: shipped quantity cannot decrease "
                f"from {line.quantity_shipped} to {shipment.quantity_shipped}",
                field="quantity_shipped",
            )
        if shipment.quantity_shipped > line.quantity_ordered:
            raise ValidationError(
                f"Line {line.line_number}: shipped {shipment.quantity_shipped} "
                f"exceeds ordered {line.quantity_ordered}",
                field="quantity_shipped",
            )
        updates[line.id] = shipment.quantity_shipped

    result = tuple(
        replace(line, quantity_shipped=updates[line.id]) if line.id in updates else line
        for line in lines
    )
    if sum(line.quantity_shipped for line in result) == 0:
        raise ValidationError("A shipment must ship at least one unit", field="quantity_shipped")
    return result


def build_order_receipts(
    order: PurchaseOrder,
    default_bin: str,
    received_at: datetime,
    bin_splits: Mapping[UUID, Mapping[str, int] | Sequence[BinSplit]] | None = None,
    max_bin_name_length: int | None = None,
) -> tuple[ReceiptEvent, ...]:
    """
    One receipt event per line with a shipped quantity, for that quantity.

    ``bin_splits`` is keyed by line id; lines without an entry go to
    ``default_bin``.

    Raises:
        ValidationError: Splits for an unknown or unshipped line, or splits
            that do not sum to the line's shipped quantity.
    """
    bin_splits = dict(bin_splits or {})
    line_ids = {line.id for line in order.lines}
    shipped_ids = {line.id for line in order.lines if line.quantity_shipped > 0}

    unknown = [str(i) for i in bin_splits if i not in line_ids]
    if unknown:
        raise ValidationError(f"Bin splits for unknown lines: {', '.join(unknown)}", field="bin_splits")
    unshipped = [str(i) for i in bin_splits if i not in shipped_ids]
    if unshipped:
        raise ValidationError(
            f"Bin splits for lines with nothing shipped: {', '.join(unshipped)}",
            field="bin_splits",
        )

    return tuple(
        ReceiptEvent(
            id=uuid4(),
            location_id=order.location_id,
            article_id=line.article_id,
            quantity=line.quantity_shipped,
            splits=resolve_splits(
                line.quantity_shipped,
                bin_splits.get(line.id),
                default_bin,
                max_bin_name_length,
            ),
            order_id=order.id,
            received_at=received_at,
        )
        for line in order.lines
        if line.quantity_shipped > 0
    )

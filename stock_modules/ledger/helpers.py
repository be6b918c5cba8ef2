"""
Pure stock-ledger calculations.

Every stock view in the system (per-location overview, categorized lists,
minimum-stock checks, totals per category) is built on ``compute_stock``.
No I/O: callers load events and pass them in.
"""

from collections import defaultdict
from typing import Iterable, Mapping, Sequence
from uuid import UUID

from stock_kernel.exceptions import ValidationError
from stock_modules.ledger.models import (
    BinQuantity,
    BinSplit,
    InconsistencyWarning,
    ReceiptEvent,
    StockPosition,
    WriteOffEvent,
    WriteOffGroup,
    WriteOffSummary,
)


def compute_stock(
    location_id: UUID,
    receipts: Iterable[ReceiptEvent],
    write_offs: Iterable[WriteOffEvent],
    article_id: UUID | None = None,
) -> dict[UUID, StockPosition]:
    """
    Fold receipt and write-off events into stock positions for one location.

    Events for other locations (or other articles, when ``article_id`` is
    given) are ignored; cancelled write-offs are skipped.  The result does
    not depend on event order.  Articles appear in ascending id order and
    bins in name order.

    An article that has only write-offs gets a negative position with
    warnings, so the total always equals receipts minus active write-offs.
    """
    totals: dict[UUID, int] = defaultdict(int)
    bins: dict[UUID, dict[str, int]] = defaultdict(lambda: defaultdict(int))

    for receipt in receipts:
        if receipt.location_id != location_id:
            continue
        if article_id is not None and receipt.article_id != article_id:
            continue
        totals[receipt.article_id] += receipt.quantity
        for split in receipt.splits:
            bins[receipt.article_id][split.bin] += split.quantity

    for write_off in write_offs:
        if write_off.cancelled or write_off.location_id != location_id:
            continue
        if article_id is not None and write_off.article_id != article_id:
            continue
        totals[write_off.article_id] -= write_off.quantity
        bins[write_off.article_id][write_off.bin] -= write_off.quantity

    positions: dict[UUID, StockPosition] = {}
    for art_id in sorted(totals, key=str):
        per_bin = tuple(
            BinQuantity(name, qty) for name, qty in sorted(bins[art_id].items())
        )
        warnings = tuple(
            InconsistencyWarning(
                article_id=art_id,
                location_id=location_id,
                bin=b.bin,
                quantity=b.quantity,
            )
            for b in per_bin
            if b.quantity < 0
        )
        positions[art_id] = StockPosition(
            article_id=art_id,
            location_id=location_id,
            total_quantity=totals[art_id],
            bins=per_bin,
            warnings=warnings,
        )
    return positions


def net_quantities(
    receipts: Iterable[ReceiptEvent],
    write_offs: Iterable[WriteOffEvent],
) -> dict[UUID, int]:
    """Receipts minus active write-offs per article, across all locations."""
    totals: dict[UUID, int] = defaultdict(int)
    for receipt in receipts:
        totals[receipt.article_id] += receipt.quantity
    for write_off in write_offs:
        if not write_off.cancelled:
            totals[write_off.article_id] -= write_off.quantity
    return dict(totals)


def resolve_splits(
    quantity: int,
    splits: Mapping[str, int] | Sequence[BinSplit] | None,
    default_bin: str,
    max_bin_name_length: int | None = None,
) -> tuple[BinSplit, ...]:
    """
    Normalize caller-supplied bin placement for a receipt.

    ``None`` or empty places everything in ``default_bin``.  A mapping is
    read as bin name -> quantity.  The sum check itself happens when the
    ``ReceiptEvent`` is constructed.
    """
    if not splits:
        resolved = (BinSplit(default_bin, quantity),)
    elif isinstance(splits, Mapping):
        resolved = tuple(BinSplit(name, qty) for name, qty in splits.items())
    else:
        resolved = tuple(splits)

    if max_bin_name_length is not None:
        for split in resolved:
            if len(split.bin) > max_bin_name_length:
                raise ValidationError(
                    f"Bin name exceeds {max_bin_name_length} characters",
                    field="bin",
                )
    return resolved


def group_write_offs(write_offs: Iterable[WriteOffEvent]) -> tuple[WriteOffGroup, ...]:
    """Group write-offs by reference, newest group first."""
    by_reference: dict[str, list[WriteOffEvent]] = defaultdict(list)
    for write_off in write_offs:
        by_reference[write_off.reference].append(write_off)

    groups = [
        WriteOffGroup(
            reference=reference,
            latest_at=max(e.written_off_at for e in entries),
            entries=tuple(sorted(entries, key=lambda e: (e.written_off_at, str(e.id)))),
        )
        for reference, entries in by_reference.items()
    ]
    groups.sort(key=lambda g: (g.latest_at, g.reference), reverse=True)
    return tuple(groups)


def summarize_write_offs(groups: Iterable[WriteOffGroup]) -> WriteOffSummary:
    """Totals of active write-offs by reference, article and month (``YYYY-MM``)."""
    by_reference: dict[str, int] = defaultdict(int)
    by_article: dict[UUID, int] = defaultdict(int)
    by_month: dict[str, int] = defaultdict(int)

    for group in groups:
        for entry in group.entries:
            if entry.cancelled:
                continue
            by_reference[group.reference] += entry.quantity
            by_article[entry.article_id] += entry.quantity
            by_month[entry.written_off_at.strftime("%Y-%m")] += entry.quantity

    def _ranked(totals):
        return tuple(sorted(totals.items(), key=lambda kv: (-kv[1], str(kv[0]))))

    return WriteOffSummary(
        by_reference=_ranked(by_reference),
        by_article=_ranked(by_article),
        by_month=_ranked(by_month),
    )

"""
Stock aggregation tests for compute_stock.

Covers:
- Receipts minus active write-offs, per article and per bin
- Cancelled write-offs and foreign locations are ignored
- Negative bins surface as InconsistencyWarnings, never clamped
- Property tests: event order does not matter, bins sum to the total,
  total equals receipts minus active write-offs
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from stock_modules.ledger.helpers import compute_stock, net_quantities
from stock_modules.ledger.models import (
    BinQuantity,
    BinSplit,
    ReceiptEvent,
    StockPosition,
    WriteOffEvent,
)

LOCATION = UUID("00000000-0000-0000-0000-0000000000a1")
OTHER_LOCATION = UUID("00000000-0000-0000-0000-0000000000b2")
ARTICLE_A = UUID("00000000-0000-0000-0000-000000000001")
ARTICLE_B = UUID("00000000-0000-0000-0000-000000000002")
T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def receipt(article_id, splits, location_id=LOCATION):
    return ReceiptEvent(
        id=uuid4(),
        location_id=location_id,
        article_id=article_id,
        quantity=sum(q for _, q in splits),
        splits=tuple(BinSplit(b, q) for b, q in splits),
        received_at=T0,
    )


def write_off(article_id, bin_name, quantity, cancelled=False, location_id=LOCATION):
    return WriteOffEvent(
        id=uuid4(),
        location_id=location_id,
        article_id=article_id,
        quantity=quantity,
        bin=bin_name,
        reference="Ticket 4711",
        written_off_at=T0 + timedelta(hours=1),
        cancelled=cancelled,
    )


class TestComputeStock:

    def test_no_events_gives_empty_result(self):
        assert compute_stock(LOCATION, [], []) == {}

    def test_receipt_into_two_bins(self):
        positions = compute_stock(LOCATION, [receipt(ARTICLE_A, [("A-01", 7), ("B-02", 3)])], [])
        position = positions[ARTICLE_A]
        assert position.total_quantity == 10
        assert position.bins == (BinQuantity("A-01", 7), BinQuantity("B-02", 3))
        assert position.is_consistent

    def test_write_off_reduces_bin_and_total(self):
        positions = compute_stock(
            LOCATION,
            [receipt(ARTICLE_A, [("Receiving", 10)])],
            [write_off(ARTICLE_A, "Receiving", 4)],
        )
        assert positions[ARTICLE_A].total_quantity == 6
        assert positions[ARTICLE_A].quantity_in("Receiving") == 6

    def test_cancelled_write_off_is_ignored(self):
        positions = compute_stock(
            LOCATION,
            [receipt(ARTICLE_A, [("Receiving", 10)])],
            [write_off(ARTICLE_A, "Receiving", 4, cancelled=True)],
        )
        assert positions[ARTICLE_A].total_quantity == 10

    def test_other_location_is_ignored(self):
        positions = compute_stock(
            LOCATION,
            [
                receipt(ARTICLE_A, [("Receiving", 10)]),
                receipt(ARTICLE_A, [("Receiving", 99)], location_id=OTHER_LOCATION),
            ],
            [write_off(ARTICLE_A, "Receiving", 5, location_id=OTHER_LOCATION)],
        )
        assert positions[ARTICLE_A].total_quantity == 10

    def test_article_filter(self):
        positions = compute_stock(
            LOCATION,
            [receipt(ARTICLE_A, [("X", 1)]), receipt(ARTICLE_B, [("X", 2)])],
            [],
            article_id=ARTICLE_B,
        )
        assert list(positions) == [ARTICLE_B]

    def test_articles_in_id_order_and_bins_in_name_order(self):
        positions = compute_stock(
            LOCATION,
            [
                receipt(ARTICLE_B, [("Z-9", 1), ("A-1", 1)]),
                receipt(ARTICLE_A, [("M-5", 2)]),
            ],
            [],
        )
        assert list(positions) == [ARTICLE_A, ARTICLE_B]
        assert [b.bin for b in positions[ARTICLE_B].bins] == ["A-1", "Z-9"]

    def test_write_off_from_other_bin_goes_negative_with_warning(self):
        positions = compute_stock(
            LOCATION,
            [receipt(ARTICLE_A, [("A-01", 5)])],
            [write_off(ARTICLE_A, "B-02", 2)],
        )
        position = positions[ARTICLE_A]
        assert position.total_quantity == 3
        assert position.quantity_in("B-02") == -2
        assert [(w.bin, w.quantity) for w in position.warnings] == [("B-02", -2)]
        assert not position.is_consistent

    def test_clamped_view_hides_negative_bins(self):
        position = StockPosition(
            article_id=ARTICLE_A,
            location_id=LOCATION,
            total_quantity=3,
            bins=(BinQuantity("A-01", 5), BinQuantity("B-02", -2)),
        )
        assert position.clamped_bins() == (BinQuantity("A-01", 5), BinQuantity("B-02", 0))

    def test_article_with_only_write_offs_is_reported_negative(self):
        positions = compute_stock(LOCATION, [], [write_off(ARTICLE_A, "A-01", 4)])
        assert positions[ARTICLE_A].total_quantity == -4
        assert len(positions[ARTICLE_A].warnings) == 1

    def test_mixed_order_receipt_and_direct_receipts(self):
        """10 via order into Receiving, 5 direct into A-01, 3 written off from A-01."""
        positions = compute_stock(
            LOCATION,
            [
                receipt(ARTICLE_A, [("Receiving", 10)]),
                receipt(ARTICLE_A, [("A-01", 5)]),
            ],
            [write_off(ARTICLE_A, "A-01", 3)],
        )
        position = positions[ARTICLE_A]
        assert position.total_quantity == 12
        assert position.bins == (BinQuantity("A-01", 2), BinQuantity("Receiving", 10))


class TestNetQuantities:

    def test_across_locations(self):
        totals = net_quantities(
            [
                receipt(ARTICLE_A, [("X", 4)]),
                receipt(ARTICLE_A, [("X", 6)], location_id=OTHER_LOCATION),
            ],
            [
                write_off(ARTICLE_A, "X", 3),
                write_off(ARTICLE_A, "X", 100, cancelled=True),
            ],
        )
        assert totals == {ARTICLE_A: 7}


# =============================================================================
# Property tests
# =============================================================================

BINS = st.sampled_from(["A-01", "A-02", "B-01", "Receiving"])
ARTICLES = st.sampled_from([ARTICLE_A, ARTICLE_B])
LOCATIONS = st.sampled_from([LOCATION, OTHER_LOCATION])


@st.composite
def receipts_strategy(draw):
    article_id = draw(ARTICLES)
    location_id = draw(LOCATIONS)
    bins = draw(st.lists(BINS, min_size=1, max_size=3, unique=True))
    splits = [(b, draw(st.integers(min_value=1, max_value=50))) for b in bins]
    return receipt(article_id, splits, location_id=location_id)


@st.composite
def write_offs_strategy(draw):
    return write_off(
        draw(ARTICLES),
        draw(BINS),
        draw(st.integers(min_value=1, max_value=60)),
        cancelled=draw(st.booleans()),
        location_id=draw(LOCATIONS),
    )


class TestComputeStockProperties:

    @given(
        receipts=st.lists(receipts_strategy(), max_size=12),
        write_offs=st.lists(write_offs_strategy(), max_size=12),
        data=st.data(),
    )
    @settings(max_examples=150, deadline=None)
    def test_event_order_does_not_matter(self, receipts, write_offs, data):
        shuffled_receipts = data.draw(st.permutations(receipts))
        shuffled_write_offs = data.draw(st.permutations(write_offs))
        assert compute_stock(LOCATION, receipts, write_offs) == compute_stock(
            LOCATION, shuffled_receipts, shuffled_write_offs
        )

    @given(
        receipts=st.lists(receipts_strategy(), max_size=12),
        write_offs=st.lists(write_offs_strategy(), max_size=12),
    )
    @settings(max_examples=150, deadline=None)
    def test_total_is_receipts_minus_active_write_offs(self, receipts, write_offs):
        positions = compute_stock(LOCATION, receipts, write_offs)
        for article_id in (ARTICLE_A, ARTICLE_B):
            received = sum(
                r.quantity for r in receipts
                if r.location_id == LOCATION and r.article_id == article_id
            )
            removed = sum(
                w.quantity for w in write_offs
                if w.location_id == LOCATION and w.article_id == article_id and not w.cancelled
            )
            if article_id in positions:
                assert positions[article_id].total_quantity == received - removed
            else:
                assert received == 0 and removed == 0

    @given(
        receipts=st.lists(receipts_strategy(), max_size=12),
        write_offs=st.lists(write_offs_strategy(), max_size=12),
    )
    @settings(max_examples=150, deadline=None)
    def test_bins_sum_to_total_and_warnings_match_negative_bins(self, receipts, write_offs):
        for position in compute_stock(LOCATION, receipts, write_offs).values():
            assert sum(b.quantity for b in position.bins) == position.total_quantity
            assert [w.bin for w in position.warnings] == [
                b.bin for b in position.bins if b.quantity < 0
            ]

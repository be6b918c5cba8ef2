"""
Order transition races.

Two sessions on one file-backed SQLite database act on the same purchase
order.  Session A holds a copy of the order loaded before session B commits
a transition, so A's UPDATE carries a stale version and matches zero rows.

Expected behavior:
- The stale write never lands; A gets ConcurrencyConflictError or, after
  its automatic re-read, the outcome the fresh state dictates.
- A lost receive race books no second set of receipts.
- A pinned expected_version is never retried.
"""

from uuid import uuid4

import pytest

from stock_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.domain.auth import AllowAllAuthorizer, AuthContext, Role
from stock_kernel.exceptions import ConcurrencyConflictError, InvalidTransitionError
from stock_modules.catalog import CatalogService
from stock_modules.fulfillment import (
    FulfillmentConfig,
    LineShipment,
    OrderFulfillmentService,
    OrderLineRequest,
    OrderSelector,
    OrderStatus,
    ShipmentType,
)
from stock_modules.ledger import StockLedger

pytestmark = pytest.mark.concurrency

WAREHOUSE = AuthContext(user_id=uuid4(), email="warehouse@example.org", role=Role.ADMIN)


@pytest.fixture
def session_factory(tmp_path):
    init_engine_from_url(f"sqlite:///{tmp_path / 'race.db'}")
    create_tables()
    yield get_session_factory()
    reset_engine()


@pytest.fixture
def sessions(session_factory):
    session_a = session_factory()
    session_b = session_factory()
    yield session_a, session_b
    session_a.close()
    session_b.close()


def _service(session, max_conflict_retries=1):
    return OrderFulfillmentService(
        session,
        AllowAllAuthorizer(),
        config=FulfillmentConfig(max_conflict_retries=max_conflict_retries),
    )


@pytest.fixture
def placed_order(sessions):
    """A 10-unit order created (and therefore cached) in session A."""
    session_a, _ = sessions
    catalog = CatalogService(session_a)
    location = catalog.create_location(WAREHOUSE, name="Branch Ost")
    article = catalog.create_article(
        WAREHOUSE, name="Toner Cyan", sku="TON-C", category="Consumable", unit="piece"
    )
    order = _service(session_a).create(WAREHOUSE, location.id, [OrderLineRequest(article.id, 10)])
    return order, location, article


class TestStaleOrderWrites:

    def test_cancel_against_concurrent_full_shipment(self, sessions, placed_order, captured_logs):
        session_a, session_b = sessions
        order, _, _ = placed_order

        _service(session_b).ship(WAREHOUSE, order.id, ShipmentType.FULL)

        # A still caches the order as OPEN/v1; the re-read after the
        # conflict finds it SHIPPED, where cancel is illegal.
        with pytest.raises(InvalidTransitionError):
            _service(session_a).cancel(WAREHOUSE, order.id)

        messages = [r["message"] for r in captured_logs()]
        assert "optimistic_lock_conflict" in messages
        assert "retrying_operation" in messages

        session_b.expire_all()
        final = OrderSelector(session_b).get(order.id)
        assert final.status == OrderStatus.SHIPPED
        assert final.version == 2

    def test_conflict_surfaces_without_retries(self, sessions, placed_order):
        session_a, session_b = sessions
        order, _, _ = placed_order

        _service(session_b).ship(WAREHOUSE, order.id, ShipmentType.FULL)

        with pytest.raises(ConcurrencyConflictError):
            _service(session_a, max_conflict_retries=0).cancel(WAREHOUSE, order.id)

        session_b.expire_all()
        assert OrderSelector(session_b).get(order.id).status == OrderStatus.SHIPPED

    def test_partial_shipment_retried_on_fresh_state(self, sessions, placed_order):
        session_a, session_b = sessions
        order, _, _ = placed_order
        line_id = order.lines[0].id

        _service(session_b).ship(WAREHOUSE, order.id, ShipmentType.PARTIAL, [LineShipment(line_id, 4)])
        shipped = _service(session_a).ship(
            WAREHOUSE, order.id, ShipmentType.PARTIAL, [LineShipment(line_id, 6)]
        )

        assert shipped.total_shipped == 6
        assert shipped.version == 3
        assert shipped.status == OrderStatus.PARTIALLY_SHIPPED

    def test_lost_receive_race_books_once(self, sessions, placed_order):
        session_a, session_b = sessions
        order, location, article = placed_order

        _service(session_a).ship(WAREHOUSE, order.id, ShipmentType.FULL)
        _service(session_b).receive(WAREHOUSE, order.id)

        with pytest.raises(InvalidTransitionError):
            _service(session_a).receive(WAREHOUSE, order.id)

        session_b.expire_all()
        ledger = StockLedger(session_b)
        assert ledger.position(location.id, article.id).total_quantity == 10
        assert len(ledger.receipts(location.id)) == 1

    def test_pinned_version_is_not_retried(self, sessions, placed_order, captured_logs):
        session_a, session_b = sessions
        order, _, _ = placed_order

        _service(session_b).ship(WAREHOUSE, order.id, ShipmentType.PARTIAL, [LineShipment(order.lines[0].id, 1)])

        with pytest.raises(ConcurrencyConflictError):
            _service(session_a).cancel(WAREHOUSE, order.id, expected_version=1)
        assert "retrying_operation" not in [r["message"] for r in captured_logs()]

"""
Order fulfillment service tests.

Business narrative: Branch Nord orders toner and paper from the central
warehouse.  The warehouse (admin) ships in full or in parts; the branch's
responsible contact receives the goods, which books them into the stock
ledger.  Covers the lifecycle, illegal transitions, optimistic versions,
authorization and best-effort notifications.
"""

from uuid import uuid4

import pytest

from stock_kernel.exceptions import (
    ArticleNotFoundError,
    AuthorizationError,
    ConcurrencyConflictError,
    InvalidTransitionError,
    OrderNotFoundError,
    ValidationError,
)
from stock_modules.fulfillment import (
    FulfillmentConfig,
    LineShipment,
    OrderFulfillmentService,
    OrderLineRequest,
    OrderStatus,
    ShipmentType,
)


@pytest.fixture
def order(fulfillment, responsible_auth, location, toner):
    return fulfillment.create(responsible_auth, location.id, [OrderLineRequest(toner.id, 10)])


@pytest.fixture
def two_line_order(fulfillment, responsible_auth, location, toner, paper):
    return fulfillment.create(
        responsible_auth,
        location.id,
        [OrderLineRequest(toner.id, 10), OrderLineRequest(paper.id, 4)],
        note="  urgent  ",
    )


class TestCreate:

    def test_new_order_is_open_at_version_one(self, order, orders, toner):
        loaded = orders.get(order.id)
        assert loaded.status == OrderStatus.OPEN
        assert loaded.version == 1
        (line,) = loaded.lines
        assert line.article_id == toner.id
        assert line.quantity_ordered == 10
        assert line.quantity_shipped == 0

    def test_lines_numbered_and_note_trimmed(self, two_line_order, orders):
        loaded = orders.get(two_line_order.id)
        assert [line.line_number for line in loaded.lines] == [1, 2]
        assert loaded.note == "urgent"
        assert loaded.total_ordered == 14

    def test_no_lines_rejected(self, fulfillment, responsible_auth, location):
        with pytest.raises(ValidationError):
            fulfillment.create(responsible_auth, location.id, [])

    def test_unknown_article_rejected(self, fulfillment, responsible_auth, location, orders):
        with pytest.raises(ArticleNotFoundError):
            fulfillment.create(responsible_auth, location.id, [OrderLineRequest(uuid4(), 1)])
        assert orders.list_for_location(location.id) == []

    def test_default_role_may_not_order(self, fulfillment, default_auth, location, toner):
        with pytest.raises(AuthorizationError):
            fulfillment.create(default_auth, location.id, [OrderLineRequest(toner.id, 1)])

    def test_outsider_may_not_order_for_foreign_location(
        self, fulfillment, outsider_auth, location, toner
    ):
        with pytest.raises(AuthorizationError):
            fulfillment.create(outsider_auth, location.id, [OrderLineRequest(toner.id, 1)])

    def test_logged(self, fulfillment, responsible_auth, location, toner, captured_logs):
        order = fulfillment.create(responsible_auth, location.id, [OrderLineRequest(toner.id, 3)])
        (record,) = [r for r in captured_logs() if r["message"] == "order_created"]
        assert record["order_id"] == str(order.id)
        assert record["total_ordered"] == 3


class TestLifecycle:

    def test_full_ship_then_receive_books_stock(
        self, fulfillment, stock_ledger, notifier, admin_auth, responsible_auth, order, location, toner
    ):
        shipped = fulfillment.ship(admin_auth, order.id, ShipmentType.FULL)
        assert shipped.status == OrderStatus.SHIPPED
        assert shipped.version == 2
        assert shipped.lines[0].quantity_shipped == 10
        assert shipped.shipped_by_id == admin_auth.user_id

        received = fulfillment.receive(responsible_auth, order.id)
        assert received.status == OrderStatus.RECEIVED
        assert received.version == 3

        position = stock_ledger.position(location.id, toner.id)
        assert position.total_quantity == 10
        assert position.quantity_in("Receiving") == 10
        (receipt,) = stock_ledger.receipts(location.id)
        assert receipt.order_id == order.id

        assert [o.id for o in notifier.shipped] == [order.id]
        assert [o.id for o in notifier.received] == [order.id]

    def test_partial_shipments_stay_partially_shipped(
        self, fulfillment, stock_ledger, admin_auth, responsible_auth, order, location, toner, captured_logs
    ):
        line_id = order.lines[0].id
        first = fulfillment.ship(admin_auth, order.id, ShipmentType.PARTIAL, [LineShipment(line_id, 4)])
        assert first.status == OrderStatus.PARTIALLY_SHIPPED
        assert first.total_shipped == 4

        second = fulfillment.ship(admin_auth, order.id, "partial", [LineShipment(line_id, 10)])
        assert second.status == OrderStatus.PARTIALLY_SHIPPED
        assert second.is_fully_shipped
        assert any(r["message"] == "partial_shipment_fully_covered" for r in captured_logs())

        fulfillment.receive(responsible_auth, order.id)
        assert stock_ledger.position(location.id, toner.id).total_quantity == 10

    def test_auto_promotion_when_enabled(
        self, session, authorizer, ledger_config, clock, admin_auth, order
    ):
        service = OrderFulfillmentService(
            session,
            authorizer,
            config=FulfillmentConfig(auto_promote_full_partial_shipment=True),
            ledger_config=ledger_config,
            clock=clock,
        )
        shipped = service.ship(
            admin_auth, order.id, ShipmentType.PARTIAL, [LineShipment(order.lines[0].id, 10)]
        )
        assert shipped.status == OrderStatus.SHIPPED

    def test_receive_partial_books_only_shipped_lines(
        self, fulfillment, stock_ledger, admin_auth, responsible_auth, two_line_order, location, toner, paper
    ):
        toner_line, paper_line = two_line_order.lines
        fulfillment.ship(admin_auth, two_line_order.id, ShipmentType.PARTIAL, [LineShipment(toner_line.id, 6)])
        fulfillment.receive(responsible_auth, two_line_order.id)

        assert stock_ledger.position(location.id, toner.id).total_quantity == 6
        assert stock_ledger.position(location.id, paper.id).total_quantity == 0
        assert len(stock_ledger.receipts(location.id)) == 1

    def test_receive_with_bin_splits(
        self, fulfillment, stock_ledger, admin_auth, responsible_auth, order, location, toner
    ):
        fulfillment.ship(admin_auth, order.id, ShipmentType.FULL)
        fulfillment.receive(responsible_auth, order.id, {order.lines[0].id: {"A-01": 7, "B-02": 3}})
        position = stock_ledger.position(location.id, toner.id)
        assert [(b.bin, b.quantity) for b in position.bins] == [("A-01", 7), ("B-02", 3)]

    def test_bad_splits_leave_order_and_ledger_untouched(
        self, fulfillment, orders, stock_ledger, admin_auth, responsible_auth, order, location
    ):
        fulfillment.ship(admin_auth, order.id, ShipmentType.FULL)
        with pytest.raises(ValidationError):
            fulfillment.receive(responsible_auth, order.id, {order.lines[0].id: {"A-01": 7, "B-02": 2}})

        loaded = orders.get(order.id)
        assert loaded.status == OrderStatus.SHIPPED
        assert loaded.version == 2
        assert stock_ledger.receipts(location.id) == []

    def test_cancel_partially_shipped(self, fulfillment, admin_auth, responsible_auth, order):
        fulfillment.ship(admin_auth, order.id, ShipmentType.PARTIAL, [LineShipment(order.lines[0].id, 4)])
        cancelled = fulfillment.cancel(admin_auth, order.id)
        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.total_shipped == 4
        assert cancelled.cancelled_by_id == admin_auth.user_id

        with pytest.raises(InvalidTransitionError) as exc_info:
            fulfillment.ship(admin_auth, order.id, ShipmentType.FULL)
        assert exc_info.value.current_status == "cancelled"
        with pytest.raises(InvalidTransitionError):
            fulfillment.receive(responsible_auth, order.id)

    def test_transition_logged(self, fulfillment, admin_auth, order, captured_logs):
        fulfillment.ship(admin_auth, order.id, ShipmentType.FULL)
        (record,) = [r for r in captured_logs() if r["message"] == "order_transitioned"]
        assert record["from_status"] == "open"
        assert record["to_status"] == "shipped"
        assert record["version"] == 2
        assert record["order_id"] == str(order.id)


class TestIllegalTransitions:

    def test_receive_open_order(self, fulfillment, orders, responsible_auth, order, captured_logs):
        with pytest.raises(InvalidTransitionError):
            fulfillment.receive(responsible_auth, order.id)
        assert orders.get(order.id).version == 1
        assert any(r["message"] == "order_transition_rejected" for r in captured_logs())

    def test_cancel_shipped_order(self, fulfillment, admin_auth, order):
        fulfillment.ship(admin_auth, order.id, ShipmentType.FULL)
        with pytest.raises(InvalidTransitionError):
            fulfillment.cancel(admin_auth, order.id)

    def test_ship_shipped_order(self, fulfillment, admin_auth, order):
        fulfillment.ship(admin_auth, order.id, ShipmentType.FULL)
        with pytest.raises(InvalidTransitionError):
            fulfillment.ship(admin_auth, order.id, ShipmentType.PARTIAL, [LineShipment(order.lines[0].id, 10)])

    def test_receive_twice(self, fulfillment, stock_ledger, admin_auth, responsible_auth, order, location, toner):
        fulfillment.ship(admin_auth, order.id, ShipmentType.FULL)
        fulfillment.receive(responsible_auth, order.id)
        with pytest.raises(InvalidTransitionError):
            fulfillment.receive(responsible_auth, order.id)
        assert stock_ledger.position(location.id, toner.id).total_quantity == 10

    def test_partial_shipment_cannot_decrease(self, fulfillment, orders, admin_auth, order):
        line_id = order.lines[0].id
        fulfillment.ship(admin_auth, order.id, ShipmentType.PARTIAL, [LineShipment(line_id, 6)])
        with pytest.raises(ValidationError):
            fulfillment.ship(admin_auth, order.id, ShipmentType.PARTIAL, [LineShipment(line_id, 5)])
        assert orders.get(order.id).total_shipped == 6

    def test_full_shipment_with_lines_rejected(self, fulfillment, admin_auth, order):
        with pytest.raises(ValidationError):
            fulfillment.ship(admin_auth, order.id, ShipmentType.FULL, [LineShipment(order.lines[0].id, 10)])

    @pytest.mark.parametrize("final_action", ["receive", "cancel"])
    def test_full_shipment_with_lines_on_closed_order_is_illegal_move(
        self, fulfillment, orders, admin_auth, order, final_action
    ):
        if final_action == "receive":
            fulfillment.ship(admin_auth, order.id, ShipmentType.FULL)
            fulfillment.receive(admin_auth, order.id)
        else:
            fulfillment.cancel(admin_auth, order.id)
        version = orders.get(order.id).version

        with pytest.raises(InvalidTransitionError) as exc_info:
            fulfillment.ship(
                admin_auth, order.id, ShipmentType.FULL, [LineShipment(order.lines[0].id, 10)]
            )
        assert exc_info.value.current_status == orders.get(order.id).status.value
        assert orders.get(order.id).version == version

    def test_unknown_shipment_type_rejected(self, fulfillment, admin_auth, order):
        with pytest.raises(ValidationError) as exc_info:
            fulfillment.ship(admin_auth, order.id, "express")
        assert exc_info.value.field == "shipment_type"

    def test_unknown_order(self, fulfillment, admin_auth):
        with pytest.raises(OrderNotFoundError):
            fulfillment.ship(admin_auth, uuid4(), ShipmentType.FULL)


class TestAuthorization:

    def test_responsible_may_not_ship(self, fulfillment, responsible_auth, order):
        with pytest.raises(AuthorizationError):
            fulfillment.ship(responsible_auth, order.id, ShipmentType.FULL)

    def test_responsible_may_not_cancel(self, fulfillment, responsible_auth, order):
        with pytest.raises(AuthorizationError):
            fulfillment.cancel(responsible_auth, order.id)

    def test_outsider_may_not_receive(self, fulfillment, orders, admin_auth, outsider_auth, order):
        fulfillment.ship(admin_auth, order.id, ShipmentType.FULL)
        with pytest.raises(AuthorizationError):
            fulfillment.receive(outsider_auth, order.id)
        assert orders.get(order.id).status == OrderStatus.SHIPPED


class TestVersions:

    def test_matching_expected_version(self, fulfillment, admin_auth, order):
        shipped = fulfillment.ship(admin_auth, order.id, ShipmentType.FULL, expected_version=1)
        assert shipped.version == 2

    def test_stale_expected_version_conflicts(self, fulfillment, orders, admin_auth, order, captured_logs):
        fulfillment.ship(admin_auth, order.id, ShipmentType.PARTIAL, [LineShipment(order.lines[0].id, 2)])
        with pytest.raises(ConcurrencyConflictError) as exc_info:
            fulfillment.cancel(admin_auth, order.id, expected_version=1)
        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert orders.get(order.id).status == OrderStatus.PARTIALLY_SHIPPED

        messages = [r["message"] for r in captured_logs()]
        assert "order_version_mismatch" in messages
        assert "retrying_operation" not in messages


class TestNotifications:

    def test_failing_gateway_does_not_undo_transition(
        self,
        session,
        authorizer,
        ledger_config,
        clock,
        failing_notifier,
        orders,
        admin_auth,
        order,
        captured_logs,
    ):
        service = OrderFulfillmentService(
            session, authorizer, notifier=failing_notifier, ledger_config=ledger_config, clock=clock
        )
        shipped = service.ship(admin_auth, order.id, ShipmentType.FULL)
        assert shipped.status == OrderStatus.SHIPPED
        assert orders.get(order.id).status == OrderStatus.SHIPPED

        failed = [r for r in captured_logs() if r["message"] == "notification_failed"]
        assert failed[0]["notification"] == "order_shipped"
        assert failed[0]["exc_type"] == "ConnectionError"

    def test_cancel_sends_nothing(self, fulfillment, notifier, admin_auth, order):
        fulfillment.cancel(admin_auth, order.id)
        assert notifier.shipped == []
        assert notifier.received == []


class TestOrderSelector:

    def test_awaiting_receipt(self, fulfillment, orders, admin_auth, responsible_auth, location, toner, paper):
        shipped = fulfillment.create(responsible_auth, location.id, [OrderLineRequest(toner.id, 1)])
        partial = fulfillment.create(responsible_auth, location.id, [OrderLineRequest(paper.id, 5)])
        fulfillment.create(responsible_auth, location.id, [OrderLineRequest(toner.id, 2)])
        fulfillment.ship(admin_auth, shipped.id, ShipmentType.FULL)
        fulfillment.ship(admin_auth, partial.id, ShipmentType.PARTIAL, [LineShipment(partial.lines[0].id, 1)])

        assert {o.id for o in orders.awaiting_receipt(location.id)} == {shipped.id, partial.id}
        assert len(orders.list_for_location(location.id)) == 3
        assert [o.id for o in orders.list_for_location(location.id, [OrderStatus.SHIPPED])] == [shipped.id]

    def test_open_orders_newest_first(
        self, fulfillment, orders, clock, admin_auth, responsible_auth, location, toner
    ):
        first = fulfillment.create(responsible_auth, location.id, [OrderLineRequest(toner.id, 1)])
        clock.advance(60)
        second = fulfillment.create(responsible_auth, location.id, [OrderLineRequest(toner.id, 2)])
        clock.advance(60)
        third = fulfillment.create(responsible_auth, location.id, [OrderLineRequest(toner.id, 3)])
        fulfillment.ship(admin_auth, second.id, ShipmentType.FULL)

        assert [o.id for o in orders.open_orders()] == [third.id, first.id]
        assert [o.id for o in orders.open_orders(limit=1)] == [third.id]

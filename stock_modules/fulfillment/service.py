"""
Order Fulfillment Module Service (``stock_modules.fulfillment.service``).

Responsibility
--------------
Drives a purchase order through its lifecycle: ``create`` (OPEN), ``ship``
(full or partial), ``receive`` (books receipt events into the stock ledger)
and ``cancel``.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. Role and location checks (``stock_kernel.domain.auth``).
2. Loads the order ``FOR UPDATE`` and checks the optional ``expected_version``.
3. Resolves the target status through ``ORDER_WORKFLOW``; line arithmetic
   and receipt building are the pure functions in ``helpers``.
4. Writes order, lines and receipt events in one unit of work, bumping the
   order version so a concurrent writer's UPDATE matches zero rows.
5. After commit, fires best-effort notifications.

Invariants
----------
- Shipped quantities never decrease and never exceed ordered quantities.
- A receive emits exactly one receipt event per shipped line, for the
  shipped quantity, in the same transaction as the status change.
- A lost optimistic-locking race is retried after re-reading the order
  (``FulfillmentConfig.max_conflict_retries``).  A caller that pinned
  ``expected_version`` gets the conflict without a retry.

Usage::

    service = OrderFulfillmentService(session, ContactListAuthorizer(session))
    order = service.create(auth, location_id, [OrderLineRequest(article_id, 10)])
    order = service.ship(warehouse_auth, order.id, ShipmentType.FULL)
    order = service.receive(auth, order.id)
"""

from __future__ import annotations

from typing import Callable, Mapping, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.auth import (
    AuthContext,
    LocationAuthorizer,
    require_location_access,
    require_role,
)
from stock_kernel.domain.clock import Clock
from stock_kernel.exceptions import (
    ArticleNotFoundError,
    ConcurrencyConflictError,
    InvalidTransitionError,
    OrderNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.services.base import BaseService
from stock_kernel.services.notifications import (
    NotificationGateway,
    NullNotificationGateway,
    dispatch_notification,
)
from stock_kernel.services.retry import run_with_retry
from stock_modules.catalog.selector import CatalogSelector
from stock_modules.fulfillment.config import FulfillmentConfig
from stock_modules.fulfillment.helpers import (
    apply_full_shipment,
    apply_partial_shipment,
    build_lines,
    build_order_receipts,
    resolve_transition,
)
from stock_modules.fulfillment.models import (
    LineShipment,
    OrderLine,
    OrderLineRequest,
    OrderStatus,
    PurchaseOrder,
    ShipmentType,
)
from stock_modules.fulfillment.orm import PurchaseOrderModel
from stock_modules.fulfillment.workflows import CANCEL, RECEIVE, SHIP_FULL, SHIP_PARTIAL
from stock_modules.ledger.config import LedgerConfig
from stock_modules.ledger.models import BinSplit
from stock_modules.ledger.service import stage_receipt

logger = get_logger("modules.fulfillment.service")

# apply(model, order_before) -> None; mutates the loaded row in place
_Apply = Callable[[PurchaseOrderModel, PurchaseOrder], None]


class OrderFulfillmentService(BaseService):
    """
    Purchase order state machine.

    Contract
    --------
    Every transition returns the committed ``PurchaseOrder`` (with its new
    ``version``).  Illegal moves raise ``InvalidTransitionError`` naming the
    current status; nothing is written.

    Non-goals
    ---------
    - Does NOT compute stock; receipts go to the ledger via ``stage_receipt``.
    - Does NOT deliver notifications; the injected gateway does.
    """

    def __init__(
        self,
        session: Session,
        authorizer: LocationAuthorizer,
        notifier: NotificationGateway | None = None,
        config: FulfillmentConfig | None = None,
        ledger_config: LedgerConfig | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._authorizer = authorizer
        self._notifier = notifier or NullNotificationGateway()
        self._config = config or FulfillmentConfig.with_defaults()
        self._ledger_config = ledger_config or LedgerConfig.with_defaults()
        self._catalog = CatalogSelector(session)

    # -----------------------------------------------------------------
    # create
    # -----------------------------------------------------------------

    def create(
        self,
        auth: AuthContext,
        location_id: UUID,
        lines: Sequence[OrderLineRequest],
        note: str | None = None,
    ) -> PurchaseOrder:
        """
        Place an order in OPEN with every line at shipped=0.

        Raises:
            ValidationError: No lines (non-positive quantities are rejected
                when the ``OrderLineRequest`` is built).
            AuthorizationError: Role not in ``ordering_roles`` or no access
                to the location.
            LocationNotFoundError / ArticleNotFoundError: Unknown ids.
        """
        require_role(auth, self._config.ordering_roles, "create_order")
        require_location_access(auth, location_id, self._authorizer, "create_order")
        if not lines:
            raise ValidationError("An order needs at least one line", field="lines")

        self._catalog.get_location(location_id)
        known = self._catalog.articles_by_id(line.article_id for line in lines)
        for line in lines:
            if line.article_id not in known:
                raise ArticleNotFoundError(str(line.article_id))

        order_id = uuid4()
        order = PurchaseOrder(
            id=order_id,
            location_id=location_id,
            status=OrderStatus.OPEN,
            lines=build_lines(order_id, lines),
            ordered_at=self._clock.now(),
            ordered_by_id=auth.user_id,
            version=1,
            note=note.strip() if note and note.strip() else None,
        )

        with LogContext.bind(
            order_id=str(order_id),
            location_id=str(location_id),
            actor_email=auth.email,
        ):
            with self.unit_of_work("create_order", "PurchaseOrder", order_id):
                self.session.add(PurchaseOrderModel.from_dto(order, auth.user_id))

            logger.info(
                "order_created",
                extra={
                    "line_count": len(order.lines),
                    "total_ordered": order.total_ordered,
                },
            )
        return order

    # -----------------------------------------------------------------
    # ship
    # -----------------------------------------------------------------

    def ship(
        self,
        auth: AuthContext,
        order_id: UUID,
        shipment_type: ShipmentType | str,
        lines: Sequence[LineShipment] | None = None,
        expected_version: int | None = None,
    ) -> PurchaseOrder:
        """
        Record a shipment from the central warehouse.

        FULL sets every line to its ordered quantity and moves to SHIPPED.
        PARTIAL sets the named lines to the given cumulative quantities and
        moves to PARTIALLY_SHIPPED; it stays there even when every line is
        covered unless ``auto_promote_full_partial_shipment`` is enabled.
        """
        require_role(auth, self._config.warehouse_roles, "ship_order")
        try:
            shipment_type = ShipmentType(shipment_type)
        except ValueError:
            raise ValidationError(
                f"Unknown shipment type {shipment_type!r}", field="shipment_type"
            ) from None

        def apply(model: PurchaseOrderModel, order: PurchaseOrder) -> None:
            if shipment_type == ShipmentType.FULL:
                target = resolve_transition(order, SHIP_FULL)
                if lines:
                    raise ValidationError(
                        "A full shipment ships every line; line quantities are not accepted",
                        field="lines",
                    )
                new_lines = apply_full_shipment(order.lines)
            else:
                target = resolve_transition(order, SHIP_PARTIAL)
                new_lines = apply_partial_shipment(order.lines, lines or ())
                if all(line.is_fully_shipped for line in new_lines):
                    if self._config.auto_promote_full_partial_shipment:
                        target = resolve_transition(order, SHIP_FULL)
                    else:
                        logger.info(
                            "partial_shipment_fully_covered",
                            extra={"total_shipped": sum(line.quantity_shipped for line in new_lines)},
                        )
            _write_line_quantities(model, new_lines)
            model.status = target.value
            model.shipped_at = self._clock.now()
            model.shipped_by_id = auth.user_id

        order = self._transition(auth, order_id, "ship", apply, expected_version)
        dispatch_notification(
            lambda: self._notifier.notify_order_shipped(order),
            notification="order_shipped",
            order_id=str(order.id),
            status=order.status.value,
        )
        return order

    # -----------------------------------------------------------------
    # receive
    # -----------------------------------------------------------------

    def receive(
        self,
        auth: AuthContext,
        order_id: UUID,
        bin_splits: Mapping[UUID, Mapping[str, int] | Sequence[BinSplit]] | None = None,
        expected_version: int | None = None,
    ) -> PurchaseOrder:
        """
        Book the shipped quantities into the order's location and close it.

        ``bin_splits`` maps line id to a bin placement; unlisted shipped
        lines go to ``LedgerConfig.default_bin``.
        """

        def apply(model: PurchaseOrderModel, order: PurchaseOrder) -> None:
            target = resolve_transition(order, RECEIVE)
            now = self._clock.now()
            receipts = build_order_receipts(
                order,
                self._ledger_config.default_bin,
                now,
                bin_splits,
                self._ledger_config.max_bin_name_length,
            )
            for receipt in receipts:
                stage_receipt(self.session, receipt, auth.user_id)
            model.status = target.value
            model.received_at = now
            model.received_by_id = auth.user_id
            logger.info(
                "order_receipts_staged",
                extra={
                    "receipt_count": len(receipts),
                    "total_quantity": sum(r.quantity for r in receipts),
                },
            )

        order = self._transition(auth, order_id, "receive", apply, expected_version)
        dispatch_notification(
            lambda: self._notifier.notify_order_received(order),
            notification="order_received",
            order_id=str(order.id),
        )
        return order

    # -----------------------------------------------------------------
    # cancel
    # -----------------------------------------------------------------

    def cancel(
        self,
        auth: AuthContext,
        order_id: UUID,
        expected_version: int | None = None,
    ) -> PurchaseOrder:
        """Cancel an OPEN or PARTIALLY_SHIPPED order.  Shipped quantities stay recorded."""
        require_role(auth, self._config.warehouse_roles, "cancel_order")

        def apply(model: PurchaseOrderModel, order: PurchaseOrder) -> None:
            target = resolve_transition(order, CANCEL)
            model.status = target.value
            model.cancelled_at = self._clock.now()
            model.cancelled_by_id = auth.user_id

        return self._transition(auth, order_id, "cancel", apply, expected_version)

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _transition(
        self,
        auth: AuthContext,
        order_id: UUID,
        operation: str,
        apply: _Apply,
        expected_version: int | None,
    ) -> PurchaseOrder:
        """Load, check, apply and commit one transition, retrying lost races."""

        def attempt() -> tuple[PurchaseOrder, PurchaseOrder]:
            with self.unit_of_work(operation, "PurchaseOrder", order_id):
                model = self._load_for_update(order_id)
                require_location_access(auth, model.location_id, self._authorizer, operation)
                if expected_version is not None and model.version != expected_version:
                    logger.warning(
                        "order_version_mismatch",
                        extra={"expected_version": expected_version, "actual_version": model.version},
                    )
                    raise ConcurrencyConflictError(
                        "PurchaseOrder",
                        str(order_id),
                        expected_version=expected_version,
                        actual_version=model.version,
                    )

                before = model.to_dto()
                try:
                    apply(model, before)
                except InvalidTransitionError:
                    logger.warning(
                        "order_transition_rejected",
                        extra={"action": operation, "current_status": before.status.value},
                    )
                    raise

                model.version = before.version + 1
                model.updated_by_id = auth.user_id
                self.session.flush()
                after = model.to_dto()
            return before, after

        retries = 0 if expected_version is not None else self._config.max_conflict_retries
        with LogContext.bind(order_id=str(order_id), actor_email=auth.email):
            before, after = run_with_retry(attempt, operation_name=operation, max_retries=retries)
            logger.info(
                "order_transitioned",
                extra={
                    "action": operation,
                    "from_status": before.status.value,
                    "to_status": after.status.value,
                    "version": after.version,
                    "total_shipped": after.total_shipped,
                },
            )
        return after

    def _load_for_update(self, order_id: UUID) -> PurchaseOrderModel:
        model = self.session.scalars(
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.id == order_id)
            .with_for_update()
        ).first()
        if model is None:
            raise OrderNotFoundError(str(order_id))
        return model


def _write_line_quantities(model: PurchaseOrderModel, lines: Sequence[OrderLine]) -> None:
    shipped = {line.id: line.quantity_shipped for line in lines}
    for line_model in model.lines:
        line_model.quantity_shipped = shipped[line_model.id]

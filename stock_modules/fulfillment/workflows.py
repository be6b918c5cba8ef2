"""
Order Fulfillment Workflows.

State machine for purchase orders.  ``OrderFulfillmentService`` resolves
every status change through ``ORDER_WORKFLOW.transition_for``; a
(state, action) pair missing from the table is an ``InvalidTransitionError``.
"""

from stock_kernel.domain.workflow import Guard, Transition, Workflow
from stock_kernel.logging_config import get_logger
from stock_modules.fulfillment.models import OrderStatus

logger = get_logger("modules.fulfillment.workflows")


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------

SHIP_FULL = "ship_full"
SHIP_PARTIAL = "ship_partial"
RECEIVE = "receive"
CANCEL = "cancel"


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------
#
# Descriptive only.  The checks run in the pure helpers the service calls
# inside the transition's unit of work.

# Enforced by helpers.apply_partial_shipment.
WITHIN_ORDERED = Guard(
    name="within_ordered",
    description="Each shipped quantity is between the current shipped and the ordered quantity",
)

# Enforced by ledger.models.ReceiptEvent, built in helpers.build_order_receipts.
SPLITS_BALANCE = Guard(
    name="splits_balance",
    description="Bin splits of every received line sum to its shipped quantity",
)


# -----------------------------------------------------------------------------
# Purchase order workflow
# -----------------------------------------------------------------------------

_OPEN = OrderStatus.OPEN.value
_PARTIAL = OrderStatus.PARTIALLY_SHIPPED.value
_SHIPPED = OrderStatus.SHIPPED.value
_RECEIVED = OrderStatus.RECEIVED.value
_CANCELLED = OrderStatus.CANCELLED.value

ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Location order fulfilled by the central warehouse",
    initial_state=_OPEN,
    states=tuple(s.value for s in OrderStatus),
    transitions=(
        Transition(_OPEN, _SHIPPED, action=SHIP_FULL),
        Transition(_OPEN, _PARTIAL, action=SHIP_PARTIAL, guard=WITHIN_ORDERED),
        Transition(_OPEN, _CANCELLED, action=CANCEL),
        Transition(_PARTIAL, _PARTIAL, action=SHIP_PARTIAL, guard=WITHIN_ORDERED),
        Transition(_PARTIAL, _SHIPPED, action=SHIP_FULL),
        Transition(_PARTIAL, _RECEIVED, action=RECEIVE, guard=SPLITS_BALANCE),
        Transition(_PARTIAL, _CANCELLED, action=CANCEL),
        Transition(_SHIPPED, _RECEIVED, action=RECEIVE, guard=SPLITS_BALANCE),
    ),
    terminal_states=(_RECEIVED, _CANCELLED),
)

logger.info(
    "fulfillment_workflow_defined",
    extra={
        "workflow": ORDER_WORKFLOW.name,
        "states": list(ORDER_WORKFLOW.states),
        "transition_count": len(ORDER_WORKFLOW.transitions),
    },
)

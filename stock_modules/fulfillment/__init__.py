"""
Order Fulfillment Module (``stock_modules.fulfillment``).

Responsibility
--------------
Purchase orders placed by locations and fulfilled by the central
warehouse: the closed ``OrderStatus`` state machine, cumulative shipped
quantities per line, and the receipt events a completed order books into
the stock ledger.
"""

from stock_modules.fulfillment.config import FulfillmentConfig
from stock_modules.fulfillment.models import (
    LineShipment,
    OrderLine,
    OrderLineRequest,
    OrderStatus,
    PurchaseOrder,
    ShipmentType,
)
from stock_modules.fulfillment.selector import OrderSelector
from stock_modules.fulfillment.service import OrderFulfillmentService
from stock_modules.fulfillment.workflows import ORDER_WORKFLOW

__all__ = [
    "FulfillmentConfig",
    "LineShipment",
    "ORDER_WORKFLOW",
    "OrderFulfillmentService",
    "OrderLine",
    "OrderLineRequest",
    "OrderSelector",
    "OrderStatus",
    "PurchaseOrder",
    "ShipmentType",
]

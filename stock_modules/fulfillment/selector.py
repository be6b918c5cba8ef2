"""
Module: stock_modules.fulfillment.selector
Responsibility: Read-only purchase order views.
Architecture position: Modules > Fulfillment > Selector.  Extends BaseSelector.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import select

from stock_kernel.exceptions import OrderNotFoundError
from stock_kernel.selectors.base import BaseSelector
from stock_modules.fulfillment.models import OrderStatus, PurchaseOrder
from stock_modules.fulfillment.orm import PurchaseOrderModel

AWAITING_RECEIPT = (OrderStatus.SHIPPED, OrderStatus.PARTIALLY_SHIPPED)


class OrderSelector(BaseSelector):
    """Purchase order lookups, newest first."""

    def get(self, order_id: UUID) -> PurchaseOrder:
        model = self.session.get(PurchaseOrderModel, order_id)
        if model is None:
            raise OrderNotFoundError(str(order_id))
        return model.to_dto()

    def list_for_location(
        self,
        location_id: UUID,
        statuses: Iterable[OrderStatus] | None = None,
    ) -> list[PurchaseOrder]:
        stmt = (
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.location_id == location_id)
            .order_by(PurchaseOrderModel.ordered_at.desc(), PurchaseOrderModel.id)
        )
        if statuses is not None:
            stmt = stmt.where(
                PurchaseOrderModel.status.in_([OrderStatus(s).value for s in statuses])
            )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def awaiting_receipt(self, location_id: UUID) -> list[PurchaseOrder]:
        """Orders on their way to ``location_id`` (shipped or partially shipped)."""
        return self.list_for_location(location_id, AWAITING_RECEIPT)

    def open_orders(self, limit: int = 5) -> list[PurchaseOrder]:
        """Most recently placed orders still in OPEN status, across all locations."""
        stmt = (
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.status == OrderStatus.OPEN.value)
            .order_by(PurchaseOrderModel.ordered_at.desc(), PurchaseOrderModel.id)
            .limit(limit)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

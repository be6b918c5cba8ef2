"""
Notification collaborator (``stock_kernel.services.notifications``).

Responsibility:
    Declares the outbound notification interface the modules call after a
    successful state change (order shipped, order received, stock below
    minimum) and the best-effort dispatch helper that calls it.

Invariants enforced:
    - Notifications fire only after the unit of work committed.
    - A failing notification never rolls back or fails the operation that
      triggered it: the failure is logged with ``exc_info`` and dispatch
      returns False.

Non-goals:
    - Delivery (email, chat, queue) is the gateway implementation's concern.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol
from uuid import UUID

from stock_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class NotificationGateway(Protocol):
    """Pluggable interface for outbound notifications."""

    def notify_order_shipped(self, order: Any) -> None:
        """A purchase order left the central warehouse (fully or partially)."""
        ...

    def notify_order_received(self, order: Any) -> None:
        """A purchase order was booked in at its location."""
        ...

    def notify_stock_below_minimum(
        self,
        article: Any,
        location_id: UUID,
        position: Any,
    ) -> None:
        """An article's on-hand quantity at a location fell below its minimum."""
        ...


class NullNotificationGateway:
    """Gateway that drops every notification."""

    def notify_order_shipped(self, order: Any) -> None:
        logger.debug("notification_dropped", extra={"notification": "order_shipped"})

    def notify_order_received(self, order: Any) -> None:
        logger.debug("notification_dropped", extra={"notification": "order_received"})

    def notify_stock_below_minimum(
        self,
        article: Any,
        location_id: UUID,
        position: Any,
    ) -> None:
        logger.debug(
            "notification_dropped",
            extra={"notification": "stock_below_minimum"},
        )


def dispatch_notification(
    send: Callable[[], None],
    *,
    notification: str,
    **fields: Any,
) -> bool:
    """
    Invoke ``send`` best-effort.

    Returns:
        True if the gateway accepted the notification, False if it raised.
    """
    try:
        send()
    except Exception:
        logger.warning(
            "notification_failed",
            exc_info=True,
            extra={"notification": notification, **fields},
        )
        return False

    logger.info(
        "notification_sent",
        extra={"notification": notification, **fields},
    )
    return True

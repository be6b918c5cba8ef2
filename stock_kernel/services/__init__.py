"""Kernel services - unit of work, retry policy and notification dispatch."""

from stock_kernel.services.base import BaseService
from stock_kernel.services.notifications import (
    NotificationGateway,
    NullNotificationGateway,
    dispatch_notification,
)
from stock_kernel.services.retry import run_with_retry

__all__ = [
    "BaseService",
    "NotificationGateway",
    "NullNotificationGateway",
    "dispatch_notification",
    "run_with_retry",
]

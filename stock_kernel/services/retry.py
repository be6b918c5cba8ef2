"""
Retry policy for optimistic-concurrency conflicts and transient store errors.

Responsibility:
    Re-run a complete unit of work when it lost an optimistic-locking race
    (``ConcurrencyConflictError``) or hit a possibly transient
    ``StorageError``.  The unit of work has already rolled back, so the
    retry re-reads current state and validates the action against it: a
    ``cancel`` that lost to a full shipment comes back as an
    ``InvalidTransitionError`` on the retry, not as a second conflict.

Invariants enforced:
    - Bounded: at most ``max_retries`` additional attempts (default 1).
    - Only the listed error types are retried; validation, authorization
      and transition errors propagate on the first attempt.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from stock_kernel.exceptions import ConcurrencyConflictError, StorageError
from stock_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

# INVARIANT: Safety limit -- a conflict storm must surface to the user
MAX_RETRIES = 5

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    ConcurrencyConflictError,
    StorageError,
)


def run_with_retry(
    operation: Callable[[], T],
    *,
    operation_name: str,
    max_retries: int = 1,
) -> T:
    """
    Call ``operation`` and retry it on a retryable failure.

    Preconditions:
        - ``operation`` is a complete unit of work that rolls back on failure.
        - ``0 <= max_retries <= MAX_RETRIES``.

    Returns:
        Whatever ``operation`` returns on its first successful attempt.

    Raises:
        ConcurrencyConflictError | StorageError: If the final attempt fails.
    """
    if not 0 <= max_retries <= MAX_RETRIES:
        raise ValueError(f"max_retries must be between 0 and {MAX_RETRIES}, got {max_retries}")

    attempt = 0
    while True:
        try:
            return operation()
        except RETRYABLE_ERRORS as exc:
            if attempt >= max_retries:
                logger.warning(
                    "retry_exhausted",
                    extra={
                        "operation": operation_name,
                        "attempts": attempt + 1,
                        "error_code": getattr(exc, "code", None),
                    },
                )
                raise
            attempt += 1
            logger.info(
                "retrying_operation",
                extra={
                    "operation": operation_name,
                    "attempt": attempt,
                    "error_code": getattr(exc, "code", None),
                },
            )

"""
BaseService -- abstract base for all mutating services.

Responsibility:
    Provides the common constructor (session + injected clock) and the
    unit-of-work contract shared by every module service.  A unit of work
    flushes and commits every staged row together or rolls all of them
    back, and translates store failures into the kernel's typed errors.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Every service in ``stock_modules/*/service.py`` extends this class.

Invariants enforced:
    - Atomic multi-row writes: order status, line quantities, receipt
      events with their bin splits, and write-off batches are committed in
      one transaction or not at all.
    - No raw store exceptions escape: ``StaleDataError`` becomes
      ``ConcurrencyConflictError``; any other ``SQLAlchemyError`` becomes
      ``StorageError``.  Kernel errors raised inside the block roll back and
      propagate unchanged.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.exceptions import (
    ConcurrencyConflictError,
    StockKernelError,
    StorageError,
)
from stock_kernel.logging_config import get_logger

logger = get_logger("services.base")


class BaseService(ABC):
    """
    Abstract base class for mutating services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller.  Each public
        mutation runs inside ``unit_of_work()`` and therefore owns its
        transaction boundary: commit on success, rollback on any failure.

    Non-goals:
        - Does NOT provide read projections -- those belong in selectors.
        - Does NOT retry; see ``stock_kernel.services.retry``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    @contextmanager
    def unit_of_work(
        self,
        operation: str,
        entity_type: str,
        entity_id: object,
    ) -> Iterator[Session]:
        """
        Run a block of staged writes as one atomic commit.

        Raises:
            ConcurrencyConflictError: A versioned UPDATE matched zero rows.
            StorageError: Any other database failure.
            StockKernelError: Re-raised unchanged after rollback.
        """
        try:
            yield self.session
            self.session.flush()
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            logger.warning(
                "optimistic_lock_conflict",
                extra={
                    "operation": operation,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                },
            )
            raise ConcurrencyConflictError(entity_type, str(entity_id)) from exc
        except StockKernelError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(
                "storage_failure",
                exc_info=True,
                extra={
                    "operation": operation,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                },
            )
            raise StorageError(operation, type(exc).__name__) from exc

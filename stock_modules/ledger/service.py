"""
Stock Ledger Module Service (``stock_modules.ledger.service``).

Responsibility
--------------
Appends events to the stock ledger: direct receipts, write-off batches and
write-off cancellation.  Receipts produced by the order state machine go
through the same ``stage_receipt`` writer.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. Checks the caller's access to the target location.
2. Builds and validates the frozen event DTOs.
3. Stages the ORM rows inside ``BaseService.unit_of_work``.
4. After commit, fires best-effort notifications.

Invariants
----------
- A receipt and its bin splits, or a whole write-off batch, are committed
  in one transaction or not at all.
- Write-offs are permissive: writing off more than a bin holds is allowed
  and shows up as an ``InconsistencyWarning`` on the next read.
- ``cancel_write_off`` is idempotent.
"""

from __future__ import annotations

from typing import Mapping, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_kernel.domain.auth import AuthContext, LocationAuthorizer, require_location_access
from stock_kernel.domain.clock import Clock
from stock_kernel.exceptions import StockKernelError, ValidationError, WriteOffNotFoundError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.services.base import BaseService
from stock_kernel.services.notifications import (
    NotificationGateway,
    NullNotificationGateway,
    dispatch_notification,
)
from stock_kernel.services.retry import run_with_retry
from stock_modules.catalog.selector import CatalogSelector
from stock_modules.ledger.config import LedgerConfig
from stock_modules.ledger.helpers import resolve_splits
from stock_modules.ledger.models import (
    BinSplit,
    ReceiptEvent,
    WriteOffEntry,
    WriteOffEvent,
)
from stock_modules.ledger.orm import ReceiptEventModel, WriteOffEventModel
from stock_modules.ledger.selector import StockLedger

logger = get_logger("modules.ledger.service")


def stage_receipt(session: Session, receipt: ReceiptEvent, created_by_id: UUID) -> ReceiptEventModel:
    """
    Add a receipt event and its bin splits to ``session`` without committing.

    The caller's unit of work decides when (and whether) it is committed.
    """
    model = ReceiptEventModel.from_dto(receipt, created_by_id)
    session.add(model)
    logger.debug(
        "receipt_staged",
        extra={
            "receipt_id": str(receipt.id),
            "article_id": str(receipt.article_id),
            "quantity": receipt.quantity,
            "order_id": str(receipt.order_id) if receipt.order_id else None,
        },
    )
    return model


class StockLedgerService(BaseService):
    """
    Books stock into a location outside the order workflow.

    Contract
    --------
    ``record_receipt`` returns the persisted ``ReceiptEvent``.  Bin splits
    must sum to the quantity; omitted splits place everything in
    ``LedgerConfig.default_bin``.
    """

    def __init__(
        self,
        session: Session,
        authorizer: LocationAuthorizer,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._authorizer = authorizer
        self._config = config or LedgerConfig.with_defaults()
        self._catalog = CatalogSelector(session)

    def record_receipt(
        self,
        auth: AuthContext,
        location_id: UUID,
        article_id: UUID,
        quantity: int,
        bin_splits: Mapping[str, int] | Sequence[BinSplit] | None = None,
    ) -> ReceiptEvent:
        require_location_access(auth, location_id, self._authorizer, "record_receipt")
        self._catalog.get_location(location_id)
        self._catalog.get_article(article_id)

        receipt = ReceiptEvent(
            id=uuid4(),
            location_id=location_id,
            article_id=article_id,
            quantity=quantity,
            splits=resolve_splits(
                quantity,
                bin_splits,
                self._config.default_bin,
                self._config.max_bin_name_length,
            ),
            received_at=self._clock.now(),
        )

        with LogContext.bind(actor_email=auth.email, location_id=str(location_id)):
            with self.unit_of_work("record_receipt", "ReceiptEvent", receipt.id):
                stage_receipt(self.session, receipt, auth.user_id)

            logger.info(
                "receipt_recorded",
                extra={
                    "receipt_id": str(receipt.id),
                    "article_id": str(article_id),
                    "quantity": quantity,
                    "bins": [s.bin for s in receipt.splits],
                },
            )
        return receipt


class WriteOffService(BaseService):
    """
    Removes stock from bins and cancels such removals.

    Contract
    --------
    ``write_off`` books a batch under one reference and one ``batch_id``;
    ``cancel_write_off`` flips the cancelled flag and is a no-op the second
    time.  Both are retried once on a concurrency conflict or storage error.
    """

    def __init__(
        self,
        session: Session,
        authorizer: LocationAuthorizer,
        notifier: NotificationGateway | None = None,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._authorizer = authorizer
        self._notifier = notifier or NullNotificationGateway()
        self._config = config or LedgerConfig.with_defaults()
        self._catalog = CatalogSelector(session)

    def write_off(
        self,
        auth: AuthContext,
        location_id: UUID,
        entries: Sequence[WriteOffEntry],
        reference: str,
    ) -> tuple[WriteOffEvent, ...]:
        """
        Write off every entry from its bin at ``location_id``.

        Raises:
            ValidationError: Empty batch, blank or overlong reference or bin.
            AuthorizationError: Caller may not act on the location.
            LocationNotFoundError / ArticleNotFoundError: Unknown ids.
        """
        require_location_access(auth, location_id, self._authorizer, "write_off")
        reference = (reference or "").strip()
        if not reference:
            raise ValidationError("A write-off needs a reference", field="reference")
        if len(reference) > self._config.max_reference_length:
            raise ValidationError(
                f"Reference exceeds {self._config.max_reference_length} characters",
                field="reference",
            )
        if not entries:
            raise ValidationError("A write-off needs at least one entry", field="entries")
        for entry in entries:
            if len(entry.bin) > self._config.max_bin_name_length:
                raise ValidationError(
                    f"Bin name exceeds {self._config.max_bin_name_length} characters",
                    field="bin",
                )

        self._catalog.get_location(location_id)
        articles = self._catalog.articles_by_id(e.article_id for e in entries)
        for entry in entries:
            if entry.article_id not in articles:
                # Raises ArticleNotFoundError
                self._catalog.get_article(entry.article_id)

        batch_id = uuid4()

        def attempt() -> tuple[WriteOffEvent, ...]:
            now = self._clock.now()
            events = tuple(
                WriteOffEvent(
                    id=uuid4(),
                    location_id=location_id,
                    article_id=entry.article_id,
                    quantity=entry.quantity,
                    bin=entry.bin,
                    reference=reference,
                    written_off_at=now,
                    batch_id=batch_id,
                )
                for entry in entries
            )
            with self.unit_of_work("write_off", "WriteOffBatch", batch_id):
                for event in events:
                    self.session.add(WriteOffEventModel.from_dto(event, auth.user_id))
            return events

        with LogContext.bind(actor_email=auth.email, location_id=str(location_id)):
            events = run_with_retry(
                attempt,
                operation_name="write_off",
                max_retries=self._config.max_conflict_retries,
            )
            logger.info(
                "stock_written_off",
                extra={
                    "batch_id": str(batch_id),
                    "reference": reference,
                    "entry_count": len(events),
                    "total_quantity": sum(e.quantity for e in events),
                },
            )
            self._notify_below_minimum(location_id, {e.article_id for e in events}, articles)
        return events

    def cancel_write_off(self, auth: AuthContext, write_off_id: UUID) -> WriteOffEvent:
        """Exclude a write-off from stock.  Cancelling twice changes nothing."""

        def attempt() -> WriteOffEvent:
            with self.unit_of_work("cancel_write_off", "WriteOffEvent", write_off_id):
                model = self.session.scalars(
                    select(WriteOffEventModel)
                    .where(WriteOffEventModel.id == write_off_id)
                    .with_for_update()
                ).first()
                if model is None:
                    raise WriteOffNotFoundError(str(write_off_id))
                require_location_access(
                    auth, model.location_id, self._authorizer, "cancel_write_off"
                )
                if model.cancelled:
                    logger.info("write_off_already_cancelled")
                    return model.to_dto()
                model.cancelled = True
                model.cancelled_at = self._clock.now()
                model.cancelled_by_id = auth.user_id
                model.updated_by_id = auth.user_id
                self.session.flush()
                event = model.to_dto()
            logger.info(
                "write_off_cancelled",
                extra={
                    "location_id": str(event.location_id),
                    "article_id": str(event.article_id),
                    "quantity": event.quantity,
                },
            )
            return event

        with LogContext.bind(actor_email=auth.email, write_off_id=str(write_off_id)):
            return run_with_retry(
                attempt,
                operation_name="cancel_write_off",
                max_retries=self._config.max_conflict_retries,
            )

    def _notify_below_minimum(self, location_id: UUID, article_ids, articles) -> None:
        """Runs after commit; a failed stock read is logged and skipped."""
        ledger = StockLedger(self.session)
        for art_id in sorted(article_ids, key=str):
            article = articles[art_id]
            if article.minimum_stock is None:
                continue
            try:
                position = ledger.position(location_id, art_id)
            except (StockKernelError, SQLAlchemyError):
                self.session.rollback()
                logger.warning(
                    "below_minimum_check_failed",
                    exc_info=True,
                    extra={"article_id": str(art_id)},
                )
                continue
            if position.total_quantity >= article.minimum_stock:
                continue
            dispatch_notification(
                lambda: self._notifier.notify_stock_below_minimum(article, location_id, position),
                notification="stock_below_minimum",
                article_id=str(art_id),
                location_id=str(location_id),
                total_quantity=position.total_quantity,
                minimum_stock=article.minimum_stock,
            )

"""
Module: stock_modules.ledger.selector
Responsibility: Read-side of the Stock Ledger.  Loads receipt and write-off
    events and derives stock positions and write-off histories from them
    through the pure functions in ``stock_modules.ledger.helpers``.
Architecture position: Modules > Ledger > Selector.  Extends BaseSelector.

Invariants enforced:
    - Stock is never stored; every view calls ``compute_stock``.
    - Negative bins are logged at WARNING (``stock_inconsistency``) and
      returned, never raised and never clamped unless the caller asks.
    - No locking: a read racing a multi-row insert may see a committed
      snapshot only, since each event is written in one transaction.
"""

from collections import defaultdict
from uuid import UUID

from sqlalchemy import select

from stock_kernel.exceptions import WriteOffNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.selectors.base import BaseSelector
from stock_modules.catalog.models import ArticleCategory
from stock_modules.catalog.selector import CatalogSelector
from stock_modules.ledger.helpers import (
    compute_stock,
    group_write_offs,
    net_quantities,
)
from stock_modules.ledger.models import (
    ReceiptEvent,
    StockedArticle,
    StockPosition,
    WriteOffEvent,
    WriteOffGroup,
)
from stock_modules.ledger.orm import (
    ReceiptBinSplitModel,
    ReceiptEventModel,
    WriteOffEventModel,
)

logger = get_logger("modules.ledger.selector")


class StockLedger(BaseSelector):
    """
    Current on-hand stock, derived from the event log.

    All views share ``compute_stock``; none of them re-implements the fold.
    """

    def receipts(
        self,
        location_id: UUID | None = None,
        article_id: UUID | None = None,
    ) -> list[ReceiptEvent]:
        stmt = select(ReceiptEventModel)
        if location_id is not None:
            stmt = stmt.where(ReceiptEventModel.location_id == location_id)
        if article_id is not None:
            stmt = stmt.where(ReceiptEventModel.article_id == article_id)
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def write_offs(
        self,
        location_id: UUID | None = None,
        article_id: UUID | None = None,
        include_cancelled: bool = False,
    ) -> list[WriteOffEvent]:
        stmt = select(WriteOffEventModel)
        if location_id is not None:
            stmt = stmt.where(WriteOffEventModel.location_id == location_id)
        if article_id is not None:
            stmt = stmt.where(WriteOffEventModel.article_id == article_id)
        if not include_cancelled:
            stmt = stmt.where(WriteOffEventModel.cancelled.is_(False))
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def compute_stock(
        self,
        location_id: UUID,
        article_id: UUID | None = None,
    ) -> dict[UUID, StockPosition]:
        """Stock positions at ``location_id`` keyed by article id."""
        positions = compute_stock(
            location_id,
            self.receipts(location_id, article_id),
            self.write_offs(location_id, article_id),
            article_id=article_id,
        )
        for position in positions.values():
            for warning in position.warnings:
                logger.warning(
                    "stock_inconsistency",
                    extra={
                        "location_id": str(warning.location_id),
                        "article_id": str(warning.article_id),
                        "bin": warning.bin,
                        "quantity": warning.quantity,
                    },
                )
        return positions

    def position(self, location_id: UUID, article_id: UUID) -> StockPosition:
        """Position of one article; zero when nothing was ever booked."""
        positions = self.compute_stock(location_id, article_id)
        return positions.get(
            article_id,
            StockPosition(article_id=article_id, location_id=location_id, total_quantity=0),
        )

    def categorized_stock(
        self,
        location_id: UUID,
    ) -> dict[ArticleCategory, tuple[StockedArticle, ...]]:
        """Positions partitioned by article category, each sorted by article name."""
        stocked = self._stocked_articles(location_id)
        grouped: dict[ArticleCategory, list[StockedArticle]] = defaultdict(list)
        for item in stocked:
            grouped[item.article.category].append(item)
        return {
            category: tuple(sorted(items, key=lambda i: (i.article.name, i.article.sku)))
            for category, items in sorted(grouped.items(), key=lambda kv: kv[0].value)
        }

    def stock_by_location(self, article_id: UUID) -> dict[UUID, int]:
        """Total quantity of one article at every location that booked it."""
        receipts = self.receipts(article_id=article_id)
        write_offs = self.write_offs(article_id=article_id)
        location_ids = {r.location_id for r in receipts} | {w.location_id for w in write_offs}

        totals: dict[UUID, int] = {}
        for location_id in sorted(location_ids, key=str):
            positions = compute_stock(location_id, receipts, write_offs, article_id=article_id)
            totals[location_id] = positions[article_id].total_quantity
        return totals

    def category_totals(self, location_id: UUID | None = None) -> dict[ArticleCategory, int]:
        """Net quantity per category, at one location or across all of them."""
        quantities = net_quantities(
            self.receipts(location_id=location_id),
            self.write_offs(location_id=location_id),
        )
        articles = CatalogSelector(self.session).articles_by_id(quantities)

        totals: dict[ArticleCategory, int] = defaultdict(int)
        for art_id, quantity in quantities.items():
            article = articles.get(art_id)
            if article is None:
                logger.warning("stock_for_unknown_article", extra={"article_id": str(art_id)})
                continue
            totals[article.category] += quantity
        return dict(sorted(totals.items(), key=lambda kv: kv[0].value))

    def known_bins(self, location_id: UUID) -> tuple[str, ...]:
        """Distinct bin names ever used at ``location_id``, sorted."""
        split_bins = self.session.scalars(
            select(ReceiptBinSplitModel.bin)
            .join(ReceiptEventModel, ReceiptBinSplitModel.receipt_id == ReceiptEventModel.id)
            .where(ReceiptEventModel.location_id == location_id)
            .distinct()
        )
        write_off_bins = self.session.scalars(
            select(WriteOffEventModel.bin)
            .where(WriteOffEventModel.location_id == location_id)
            .distinct()
        )
        return tuple(sorted(set(split_bins) | set(write_off_bins)))

    def below_minimum(self, location_id: UUID) -> tuple[StockedArticle, ...]:
        """Stocked articles whose total is under their ``minimum_stock``."""
        return tuple(
            item
            for item in sorted(
                self._stocked_articles(location_id),
                key=lambda i: (i.article.name, i.article.sku),
            )
            if item.is_below_minimum
        )

    def _stocked_articles(self, location_id: UUID) -> list[StockedArticle]:
        positions = self.compute_stock(location_id)
        articles = CatalogSelector(self.session).articles_by_id(positions)
        stocked = []
        for art_id, position in positions.items():
            article = articles.get(art_id)
            if article is None:
                logger.warning(
                    "stock_for_unknown_article",
                    extra={"article_id": str(art_id), "location_id": str(location_id)},
                )
                continue
            stocked.append(StockedArticle(article=article, position=position))
        return stocked


class WriteOffSelector(BaseSelector):
    """Write-off lookups and history."""

    def get(self, write_off_id: UUID) -> WriteOffEvent:
        model = self.session.get(WriteOffEventModel, write_off_id)
        if model is None:
            raise WriteOffNotFoundError(str(write_off_id))
        return model.to_dto()

    def list_for_location(
        self,
        location_id: UUID,
        include_cancelled: bool = True,
    ) -> list[WriteOffEvent]:
        """Write-offs at ``location_id``, newest first."""
        stmt = (
            select(WriteOffEventModel)
            .where(WriteOffEventModel.location_id == location_id)
            .order_by(WriteOffEventModel.written_off_at.desc(), WriteOffEventModel.id)
        )
        if not include_cancelled:
            stmt = stmt.where(WriteOffEventModel.cancelled.is_(False))
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def list_for_batch(self, batch_id: UUID) -> list[WriteOffEvent]:
        stmt = (
            select(WriteOffEventModel)
            .where(WriteOffEventModel.batch_id == batch_id)
            .order_by(WriteOffEventModel.written_off_at, WriteOffEventModel.id)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def groups(
        self,
        location_id: UUID | None = None,
        include_cancelled: bool = False,
    ) -> tuple[WriteOffGroup, ...]:
        """Write-offs grouped by reference, newest group first."""
        stmt = select(WriteOffEventModel)
        if location_id is not None:
            stmt = stmt.where(WriteOffEventModel.location_id == location_id)
        if not include_cancelled:
            stmt = stmt.where(WriteOffEventModel.cancelled.is_(False))
        return group_write_offs(m.to_dto() for m in self.session.scalars(stmt))

    def recent(self, limit: int = 5) -> list[WriteOffEvent]:
        """Most recent active write-offs across all locations."""
        stmt = (
            select(WriteOffEventModel)
            .where(WriteOffEventModel.cancelled.is_(False))
            .order_by(WriteOffEventModel.written_off_at.desc(), WriteOffEventModel.id)
            .limit(limit)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

"""
Stock Ledger Module (``stock_modules.ledger``).

Responsibility
--------------
The append-only log of receipt and write-off events, and the single
aggregation (``compute_stock``) that turns it into on-hand quantities per
article and storage bin.  Positions are derived on every read, never stored.
"""

from stock_modules.ledger.config import LedgerConfig
from stock_modules.ledger.helpers import compute_stock, summarize_write_offs
from stock_modules.ledger.models import (
    BinQuantity,
    BinSplit,
    InconsistencyWarning,
    ReceiptEvent,
    StockedArticle,
    StockPosition,
    WriteOffEntry,
    WriteOffEvent,
    WriteOffGroup,
    WriteOffSummary,
)
from stock_modules.ledger.selector import StockLedger, WriteOffSelector
from stock_modules.ledger.service import StockLedgerService, WriteOffService, stage_receipt

__all__ = [
    "BinQuantity",
    "BinSplit",
    "InconsistencyWarning",
    "LedgerConfig",
    "ReceiptEvent",
    "StockLedger",
    "StockLedgerService",
    "StockPosition",
    "StockedArticle",
    "WriteOffEntry",
    "WriteOffEvent",
    "WriteOffGroup",
    "WriteOffSelector",
    "WriteOffService",
    "WriteOffSummary",
    "compute_stock",
    "stage_receipt",
    "summarize_write_offs",
]

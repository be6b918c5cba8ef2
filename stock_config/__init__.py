"""
stock_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  Services receive the resulting module config
    objects through their constructors; they never read files or
    environment variables themselves.

Architecture position:
    Configuration -- sits above ``stock_kernel`` and beside
    ``stock_modules``.  The kernel MUST NEVER import from ``stock_config``.

Failure modes:
    - ``FileNotFoundError`` -- the named settings file does not exist.
    - ``ValueError`` -- unknown keys or out-of-range values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from stock_config.loader import (
    check_top_level_keys,
    load_yaml_file,
    parse_fulfillment,
    parse_ledger,
)
from stock_kernel.logging_config import get_logger
from stock_modules.fulfillment.config import FulfillmentConfig
from stock_modules.ledger.config import LedgerConfig

logger = get_logger("config")

CONFIG_ENV_VAR = "STOCK_CONFIG"
DEFAULT_DATABASE_URL = "sqlite:///stock.db"


@dataclass(frozen=True)
class StockSettings:
    """Resolved runtime settings."""
    database_url: str = DEFAULT_DATABASE_URL
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    fulfillment: FulfillmentConfig = field(default_factory=FulfillmentConfig)
    source: str | None = None


def get_active_config(path: Path | str | None = None) -> StockSettings:
    """The ONLY public settings entrypoint.

    Resolution order for the settings file:
        1. ``path`` if given.
        2. The file named by the ``STOCK_CONFIG`` environment variable.
        3. No file: every section uses its defaults.

    Raises:
        FileNotFoundError: If an explicitly named file does not exist.
        ValueError: If the file has unknown keys or invalid values.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else None

    if path is None:
        settings = StockSettings()
    else:
        path = Path(path)
        data = load_yaml_file(path)
        check_top_level_keys(data)
        settings = StockSettings(
            database_url=data.get("database_url") or DEFAULT_DATABASE_URL,
            ledger=parse_ledger(data),
            fulfillment=parse_fulfillment(data),
            source=str(path),
        )

    logger.info(
        "stock_config_loaded",
        extra={
            "source": settings.source,
            "default_bin": settings.ledger.default_bin,
            "max_conflict_retries": settings.fulfillment.max_conflict_retries,
        },
    )
    return settings


__all__ = [
    "CONFIG_ENV_VAR",
    "StockSettings",
    "get_active_config",
]

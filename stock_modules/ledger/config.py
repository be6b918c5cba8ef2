"""
Stock Ledger Configuration Schema.

Defines the structure and defaults for receipt and write-off settings.
Actual values are loaded through ``stock_config.get_active_config()``.
"""

from dataclasses import dataclass, fields
from typing import Self

from stock_kernel.logging_config import get_logger

logger = get_logger("modules.ledger.config")


@dataclass
class LedgerConfig:
    """
    Configuration schema for the stock ledger module.

    Override at instantiation with site-specific values:

        config = LedgerConfig(default_bin="Wareneingang", max_conflict_retries=2)
    """

    # Bin used when a receipt supplies no explicit split
    default_bin: str = "Receiving"

    max_bin_name_length: int = 100
    max_reference_length: int = 200

    # Write-off batches and cancellations
    max_conflict_retries: int = 1

    def __post_init__(self):
        if not self.default_bin or not self.default_bin.strip():
            raise ValueError("default_bin cannot be empty")
        if self.max_bin_name_length <= 0:
            raise ValueError("max_bin_name_length must be positive")
        if len(self.default_bin) > self.max_bin_name_length:
            raise ValueError(
                f"default_bin exceeds max_bin_name_length ({self.max_bin_name_length})"
            )
        if self.max_reference_length <= 0:
            raise ValueError("max_reference_length must be positive")
        if not 0 <= self.max_conflict_retries <= 5:
            raise ValueError(
                f"max_conflict_retries must be between 0 and 5, got {self.max_conflict_retries}"
            )

        logger.info(
            "ledger_config_initialized",
            extra={
                "default_bin": self.default_bin,
                "max_bin_name_length": self.max_bin_name_length,
                "max_reference_length": self.max_reference_length,
                "max_conflict_retries": self.max_conflict_retries,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("ledger_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g., a YAML section)."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown ledger settings: {sorted(unknown)}")
        logger.info(
            "ledger_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Reads the YAML settings file and parses each section into the typed module
configuration dataclasses.  The single public entry point for runtime
settings is ``stock_config.get_active_config()``; this module is its
implementation.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown top-level or section keys  -> ``ValueError``.
* Out-of-range values  -> ``ValueError`` from the dataclass ``__post_init__``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from stock_modules.fulfillment.config import FulfillmentConfig
from stock_modules.ledger.config import LedgerConfig

TOP_LEVEL_KEYS = frozenset({"database_url", "ledger", "fulfillment"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (empty if the YAML document is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level, got {type(data).__name__}")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping, got {type(section).__name__}")
    return section


def parse_ledger(data: dict[str, Any]) -> LedgerConfig:
    """Parse the ``ledger`` section; absent keys keep their defaults."""
    section = _section(data, "ledger")
    if not section:
        return LedgerConfig.with_defaults()
    return LedgerConfig.from_dict(section)


def parse_fulfillment(data: dict[str, Any]) -> FulfillmentConfig:
    """Parse the ``fulfillment`` section; absent keys keep their defaults."""
    section = _section(data, "fulfillment")
    if not section:
        return FulfillmentConfig.with_defaults()
    return FulfillmentConfig.from_dict(section)


def check_top_level_keys(data: dict[str, Any]) -> None:
    unknown = set(data) - TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(
            f"Unknown configuration keys: {sorted(unknown)}; "
            f"expected a subset of {sorted(TOP_LEVEL_KEYS)}"
        )

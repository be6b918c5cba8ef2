"""
Order Fulfillment Configuration Schema.

Defines which roles may order, ship and cancel, and how the order state
machine treats races and fully covered partial shipments.
"""

from dataclasses import dataclass, fields
from typing import Self

from stock_kernel.domain.auth import Role
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.fulfillment.config")

MAX_CONFLICT_RETRIES = 5


@dataclass
class FulfillmentConfig:
    """
    Configuration schema for the order fulfillment module.

    Role tuples hold ``Role`` values; plain strings from YAML are
    normalized in ``__post_init__``.
    """

    # Automatic re-runs after an optimistic-locking conflict
    max_conflict_retries: int = 1

    # Central warehouse: ship and cancel
    warehouse_roles: tuple[Role, ...] = (Role.ADMIN,)

    # Who may place purchase orders
    ordering_roles: tuple[Role, ...] = (Role.ADMIN, Role.LOCATION_RESPONSIBLE)

    # A partial shipment that covers every line stays PARTIALLY_SHIPPED unless set
    auto_promote_full_partial_shipment: bool = False

    def __post_init__(self):
        if not 0 <= self.max_conflict_retries <= MAX_CONFLICT_RETRIES:
            raise ValueError(
                f"max_conflict_retries must be between 0 and {MAX_CONFLICT_RETRIES}, "
                f"got {self.max_conflict_retries}"
            )
        self.warehouse_roles = self._normalize_roles("warehouse_roles", self.warehouse_roles)
        self.ordering_roles = self._normalize_roles("ordering_roles", self.ordering_roles)

        logger.info(
            "fulfillment_config_initialized",
            extra={
                "max_conflict_retries": self.max_conflict_retries,
                "warehouse_roles": [r.value for r in self.warehouse_roles],
                "ordering_roles": [r.value for r in self.ordering_roles],
                "auto_promote_full_partial_shipment": self.auto_promote_full_partial_shipment,
            },
        )

    @staticmethod
    def _normalize_roles(name: str, roles) -> tuple[Role, ...]:
        if isinstance(roles, str):
            roles = (roles,)
        try:
            normalized = tuple(Role(r) for r in roles)
        except ValueError as exc:
            raise ValueError(f"{name}: {exc}") from exc
        if not normalized:
            raise ValueError(f"{name} cannot be empty")
        return normalized

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("fulfillment_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g., a YAML section)."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown fulfillment settings: {sorted(unknown)}")
        logger.info(
            "fulfillment_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

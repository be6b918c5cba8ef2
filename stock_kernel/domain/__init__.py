"""
Pure domain layer.

Value objects and guard functions with NO dependencies on the ORM, the
database or wall-clock time (``SystemClock`` is the single exception).
"""

from stock_kernel.domain.auth import (
    AllowAllAuthorizer,
    AuthContext,
    LocationAuthorizer,
    Role,
    require_location_access,
    require_role,
)
from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "AllowAllAuthorizer",
    "AuthContext",
    "LocationAuthorizer",
    "Role",
    "require_location_access",
    "require_role",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Guard",
    "Transition",
    "Workflow",
]

"""
Authorization context (``stock_kernel.domain.auth``).

Responsibility
--------------
Explicit caller identity for every state-mutating operation.  Services never
read "the current user" from ambient state: the caller builds an
``AuthContext`` (typically from its session/token layer) and passes it in.
Location-level permission is answered by an injected ``LocationAuthorizer``.

Architecture position
---------------------
**Kernel domain layer** -- value objects and pure guard functions.  The only
collaborator is the ``LocationAuthorizer`` protocol; the catalog module
supplies the production implementation backed by the location contact list.

Invariants enforced
-------------------
* Administrators are authorized for every location.
* Any other role is authorized for a location only if the authorizer says so.
* Every denial raises ``AuthorizationError``; guards never return False.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol
from uuid import UUID

from stock_kernel.exceptions import AuthorizationError
from stock_kernel.logging_config import get_logger

logger = get_logger("domain.auth")


class Role(str, Enum):
    """Staff roles that gate screens and mutations."""
    ADMIN = "admin"
    LOCATION_RESPONSIBLE = "location_responsible"
    DEFAULT = "default"


@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller of a core operation."""
    user_id: UUID
    email: str
    role: Role = Role.DEFAULT

    def __post_init__(self):
        if not self.email or not self.email.strip():
            raise ValueError("AuthContext requires a non-empty email")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class LocationAuthorizer(Protocol):
    """Pluggable interface answering location-level permission questions."""

    def is_authorized_for_location(self, user_email: str, location_id: UUID) -> bool:
        """Return True if ``user_email`` may act on ``location_id``."""
        ...


class AllowAllAuthorizer:
    """Authorizer that grants every location.  For tooling and tests."""

    def is_authorized_for_location(self, user_email: str, location_id: UUID) -> bool:
        return True


def require_location_access(
    auth: AuthContext,
    location_id: UUID,
    authorizer: LocationAuthorizer,
    action: str,
) -> None:
    """
    Ensure ``auth`` may perform ``action`` on ``location_id``.

    Raises:
        AuthorizationError: If the caller is not an administrator and the
            authorizer denies the location.
    """
    if auth.is_admin:
        return
    if authorizer.is_authorized_for_location(auth.email, location_id):
        return

    logger.warning(
        "location_access_denied",
        extra={
            "actor_email": auth.email,
            "location_id": str(location_id),
            "action": action,
            "role": auth.role.value,
        },
    )
    raise AuthorizationError(
        auth.email,
        f"not a responsible contact (action: {action})",
        location_id=str(location_id),
    )


def require_role(
    auth: AuthContext,
    allowed: Iterable[Role | str],
    action: str,
) -> None:
    """
    Ensure the caller's role is one of ``allowed``.

    Raises:
        AuthorizationError: If the role is not permitted for ``action``.
    """
    allowed_values = {Role(r).value for r in allowed}
    if auth.role.value in allowed_values:
        return

    logger.warning(
        "role_denied",
        extra={
            "actor_email": auth.email,
            "action": action,
            "role": auth.role.value,
            "allowed_roles": sorted(allowed_values),
        },
    )
    raise AuthorizationError(
        auth.email,
        f"role {auth.role.value} may not {action}",
    )

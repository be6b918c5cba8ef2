"""
Contact-list location authorizer (``stock_modules.catalog.authorizer``).

A user may act on a location when their email appears in the location's
responsible-contact list.  Administrators never reach this check; see
``stock_kernel.domain.auth.require_location_access``.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_kernel.logging_config import get_logger
from stock_modules.catalog.orm import LocationContactModel

logger = get_logger("modules.catalog.authorizer")


class ContactListAuthorizer:
    """``LocationAuthorizer`` backed by the location_contacts table."""

    def __init__(self, session: Session):
        self._session = session

    def is_authorized_for_location(self, user_email: str, location_id: UUID) -> bool:
        if not user_email or not user_email.strip():
            return False
        match = self._session.scalar(
            select(LocationContactModel.id)
            .where(LocationContactModel.location_id == location_id)
            .where(func.lower(LocationContactModel.email) == user_email.strip().lower())
            .limit(1)
        )
        authorized = match is not None
        logger.debug(
            "location_authorization_checked",
            extra={
                "location_id": str(location_id),
                "actor_email": user_email,
                "authorized": authorized,
            },
        )
        return authorized

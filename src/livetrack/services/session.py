"""Session validation service.

Sessions are issued by the surrounding platform (login lives there). This
service only turns a presented token into a validated session row:
- SHA-256 token hashing for lookup
- Expiry, revocation and active-flag checks
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from livetrack.db.models.session import Session

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    """Hash a token the way the issuer stores it.

    Args:
        token: The token presented by the client.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionService:
    """Looks up and validates presented session tokens."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def validate_session(self, token: str) -> Session | None:
        """Validate a session token and return the session if valid.

        The lookup is by hash, so the presented token is never compared
        against stored secrets directly.

        Args:
            token: The access token to validate.

        Returns:
            The Session object if valid, None otherwise.
        """
        from livetrack.db.models.session import Session

        result = await self._db.execute(
            select(Session).where(Session.token_hash == hash_token(token))
        )
        session = result.scalar_one_or_none()

        if session is None:
            logger.debug("Session validation failed: token not found")
            return None

        if not session.is_active:
            logger.debug("Session validation failed: session inactive")
            return None

        if session.is_expired:
            logger.debug("Session validation failed: session expired")
            return None

        if session.is_revoked:
            logger.debug("Session validation failed: session revoked")
            return None

        return session

"""Authentication middleware and route dependencies.

Sessions are issued elsewhere; this module only recognises them:
- SessionAuthMiddleware: validates a session token from cookie or header
  and loads the internal user or customer behind it
- optional_authenticated_user: FastAPI dependency reading the result

Requests without a valid session are not rejected here. Anonymous callers
are handled by the access gate, which treats them as tracking-link holders.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession
    from starlette.responses import Response

    from livetrack.db.models.base import UserRole
    from livetrack.db.models.session import Session

logger = logging.getLogger(__name__)

current_user_ctx: ContextVar[AuthenticatedUser | None] = ContextVar("current_user", default=None)

# Bearer token security scheme for OpenAPI docs
bearer_scheme = HTTPBearer(auto_error=False)

SESSION_COOKIE_NAME = "livetrack_session"
SESSION_HEADER_NAME = "X-Session-Token"


@dataclass(frozen=True)
class AuthenticatedUser:
    """The identity behind a validated session.

    Attributes:
        principal_id: user_id for internal users, customer_id for customers
        principal_type: "user" or "customer"
        role: Role of an internal user, None for customers
        session_id: Session the request authenticated with
        is_active: Whether the account is active
        name: Display name
    """

    principal_id: UUID
    principal_type: str
    role: UserRole | None = None
    session_id: UUID | None = None
    is_active: bool = True
    name: str | None = None

    @property
    def is_customer(self) -> bool:
        return self.principal_type == "customer"


def get_current_user() -> AuthenticatedUser | None:
    """Get the current authenticated user from context."""
    return current_user_ctx.get()


def set_current_user(user: AuthenticatedUser | None) -> None:
    """Set the current authenticated user in context."""
    current_user_ctx.set(user)


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates session tokens and sets user context.

    This middleware:
    1. Extracts the session token from cookie or header
    2. Validates it against the sessions table
    3. Loads the user or customer it belongs to
    4. Stores the result on request.state.user and in the context variable
    """

    def __init__(
        self,
        app: Any,
        *,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application.
            session_factory: Returns an async context manager yielding a DB session.
        """
        super().__init__(app)
        self._session_factory = session_factory

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        set_current_user(None)
        request.state.user = None

        token = self._extract_token(request)
        if token:
            # Store failures propagate to the error handler as a 500
            user = await self._authenticate(token)
            if user is not None:
                set_current_user(user)
                request.state.user = user

        return await call_next(request)

    def _extract_token(self, request: Request) -> str | None:
        """Extract the session token.

        Checks in order: cookie, X-Session-Token header, Authorization: Bearer.
        """
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if token:
            return token

        token = request.headers.get(SESSION_HEADER_NAME)
        if token:
            return token

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[7:]

        return None

    async def _authenticate(self, token: str) -> AuthenticatedUser | None:
        from livetrack.services.session import SessionService

        async with self._session_factory() as db_session:
            session = await SessionService(db_session).validate_session(token)
            if session is None:
                return None
            return await self._load_principal(db_session, session)

    async def _load_principal(
        self, db_session: AsyncSession, session: Session
    ) -> AuthenticatedUser | None:
        """Build the AuthenticatedUser for the session's user or customer."""
        from livetrack.db.models.accounts import Customer, User

        if session.user_id is not None:
            result = await db_session.execute(select(User).where(User.user_id == session.user_id))
            user = result.scalar_one_or_none()
            if user is None:
                logger.warning(
                    "Session references missing user",
                    extra={"session_id": str(session.session_id)},
                )
                return None
            return AuthenticatedUser(
                principal_id=user.user_id,
                principal_type="user",
                role=user.role,
                session_id=session.session_id,
                is_active=user.is_active,
                name=user.name,
            )

        if session.customer_id is not None:
            result = await db_session.execute(
                select(Customer).where(Customer.customer_id == session.customer_id)
            )
            customer = result.scalar_one_or_none()
            if customer is None:
                return None
            return AuthenticatedUser(
                principal_id=customer.customer_id,
                principal_type="customer",
                session_id=session.session_id,
                name=customer.name,
            )

        logger.warning(
            "Session has no principal",
            extra={"session_id": str(session.session_id)},
        )
        return None


# ---------------------------------------------------------------------------
# FastAPI Dependencies for route-level auth
# ---------------------------------------------------------------------------


async def optional_authenticated_user(
    request: Request,
    _credentials: Annotated[
        HTTPAuthorizationCredentials | None,
        Depends(bearer_scheme),
    ] = None,
) -> AuthenticatedUser | None:
    """Dependency that optionally returns the authenticated user.

    The _credentials parameter only documents the bearer scheme in OpenAPI;
    the actual authentication is done by the middleware.
    """
    user = get_current_user()
    if user is None:
        user = getattr(request.state, "user", None)
    return user

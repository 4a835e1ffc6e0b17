"""Livetrack API middleware components.

This module provides middleware for:
- Request ID tracking and log correlation
- Consistent error response formatting
- Session authentication
"""

from livetrack.api.middleware.auth import (
    AuthenticatedUser,
    SessionAuthMiddleware,
    get_current_user,
    optional_authenticated_user,
    set_current_user,
)
from livetrack.api.middleware.errors import ErrorHandlerMiddleware
from livetrack.api.middleware.request_id import RequestIDLogFilter, RequestIDMiddleware

__all__ = [
    "AuthenticatedUser",
    "ErrorHandlerMiddleware",
    "RequestIDLogFilter",
    "RequestIDMiddleware",
    "SessionAuthMiddleware",
    "get_current_user",
    "optional_authenticated_user",
    "set_current_user",
]

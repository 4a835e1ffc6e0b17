"""Access decisions for delivery operations.

Every request is mapped to exactly one principal variant before any
delivery data is touched:

- StaffPrincipal: internal user with the admin role, full access
- CourierPrincipal: internal user with the delivery role, limited to
  deliveries assigned to them
- CustomerPrincipal: the customer who owns the order
- PublicLinkPrincipal: anonymous holder of a shared tracking link; the
  delivery id presented in the URL is the capability

The matrix below is the single source of truth for who may do what:

    operation      staff  courier   customer  public-link
    READ           any    assigned  owner     bearer
    READ_ANY       any    -         -         -
    READ_HISTORY   any    -         owner     -
    SUBSCRIBE      any    -         owner     -
    UPDATE         any    assigned  -         -
    ASSIGN         any    -         -         -
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from livetrack.db.models.base import UserRole

if TYPE_CHECKING:
    from uuid import UUID

    from livetrack.api.middleware.auth import AuthenticatedUser
    from livetrack.db.models.deliveries import Delivery

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Operations guarded by the access gate."""

    READ = "read"
    READ_ANY = "read_any"
    READ_HISTORY = "read_history"
    SUBSCRIBE = "subscribe"
    UPDATE = "update"
    ASSIGN = "assign"


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StaffPrincipal:
    """Internal user holding the admin role."""

    user_id: UUID

    kind = "staff"


@dataclass(frozen=True, slots=True)
class CourierPrincipal:
    """Internal user holding the delivery role."""

    user_id: UUID

    kind = "courier"


@dataclass(frozen=True, slots=True)
class CustomerPrincipal:
    """Customer signed in to their own account."""

    customer_id: UUID

    kind = "customer"


@dataclass(frozen=True, slots=True)
class PublicLinkPrincipal:
    """Anonymous caller presenting a delivery id as a tracking link.

    Attributes:
        presented_delivery_id: The id taken from the request path, or None
            when the request does not address a single delivery.
    """

    presented_delivery_id: UUID | None = None

    kind = "public_link"


Principal = StaffPrincipal | CourierPrincipal | CustomerPrincipal | PublicLinkPrincipal


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class AccessDeniedError(Exception):
    """Raised when an identified principal may not perform an operation."""

    def __init__(
        self,
        operation: Operation,
        principal: Principal,
        message: str | None = None,
    ) -> None:
        self.operation = operation
        self.principal = principal
        super().__init__(message or f"Access denied: {principal.kind} may not {operation.value}")


class AuthenticationRequiredError(AccessDeniedError):
    """Raised when an anonymous caller attempts an operation needing an identity."""

    def __init__(self, operation: Operation, principal: Principal) -> None:
        super().__init__(operation, principal, f"Authentication required to {operation.value}")


# ---------------------------------------------------------------------------
# Principal resolution
# ---------------------------------------------------------------------------


def resolve_principal(
    user: AuthenticatedUser | None,
    presented_delivery_id: UUID | None = None,
) -> Principal:
    """Map the request identity (or its absence) to one principal variant.

    Args:
        user: Authenticated user from the session middleware, if any.
        presented_delivery_id: Delivery id from the request path, used as the
            capability for anonymous callers.

    Returns:
        The principal the request acts as.
    """
    if user is None or not user.is_active:
        return PublicLinkPrincipal(presented_delivery_id=presented_delivery_id)

    if user.principal_type == "customer":
        return CustomerPrincipal(customer_id=user.principal_id)

    if user.role == UserRole.ADMIN:
        return StaffPrincipal(user_id=user.principal_id)
    if user.role == UserRole.DELIVERY:
        return CourierPrincipal(user_id=user.principal_id)

    # Signed-in user with no recognised role gets anonymous rights only
    logger.warning(
        "Authenticated user without a delivery role",
        extra={"principal_id": str(user.principal_id), "principal_type": user.principal_type},
    )
    return PublicLinkPrincipal(presented_delivery_id=presented_delivery_id)


def _same_id(left: UUID | None, right: UUID | None) -> bool:
    """Compare two identifiers in constant time."""
    if left is None or right is None:
        return False
    return hmac.compare_digest(left.bytes, right.bytes)


# ---------------------------------------------------------------------------
# Access gate
# ---------------------------------------------------------------------------


class AccessGate:
    """Evaluates the access matrix for a principal, an operation and a delivery.

    The gate never reads the store itself: callers load the delivery first
    (so a missing delivery surfaces as not-found) and pass it in.

    Example:
        gate = AccessGate()
        gate.require(principal, Operation.UPDATE, delivery)
    """

    def is_allowed(
        self,
        principal: Principal,
        operation: Operation,
        delivery: Delivery | None = None,
    ) -> bool:
        """Check whether the principal may perform the operation.

        Args:
            principal: Resolved principal.
            operation: Operation being attempted.
            delivery: Target delivery for per-delivery operations.

        Returns:
            True if access is granted, False otherwise.
        """
        if isinstance(principal, StaffPrincipal):
            return True

        # Every other principal needs a concrete delivery to be scoped to
        if delivery is None:
            return False

        if isinstance(principal, CourierPrincipal):
            if operation not in (Operation.READ, Operation.UPDATE):
                return False
            return _same_id(delivery.courier_id, principal.user_id)

        if isinstance(principal, CustomerPrincipal):
            if operation not in (Operation.READ, Operation.READ_HISTORY, Operation.SUBSCRIBE):
                return False
            return _same_id(delivery.customer_id, principal.customer_id)

        if isinstance(principal, PublicLinkPrincipal):
            if operation != Operation.READ:
                return False
            return _same_id(delivery.delivery_id, principal.presented_delivery_id)

        return False

    def require(
        self,
        principal: Principal,
        operation: Operation,
        delivery: Delivery | None = None,
    ) -> None:
        """Require access or raise.

        Raises:
            AuthenticationRequiredError: If an anonymous caller is denied.
            AccessDeniedError: If an identified principal is denied.
        """
        if self.is_allowed(principal, operation, delivery):
            return

        logger.warning(
            "Access denied",
            extra={
                "principal_kind": principal.kind,
                "operation": operation.value,
                "delivery_id": str(delivery.delivery_id) if delivery is not None else None,
            },
        )
        if isinstance(principal, PublicLinkPrincipal):
            raise AuthenticationRequiredError(operation, principal)
        raise AccessDeniedError(operation, principal)


# Module-level singleton, the gate holds no state
access_gate = AccessGate()

"""Livetrack SQLAlchemy models.

Importing this package registers every table with Base.metadata, which
Alembic autogenerate relies on.
"""

from livetrack.db.models.accounts import Customer, User
from livetrack.db.models.base import Base, DeliveryStatus, UserRole
from livetrack.db.models.deliveries import Delivery
from livetrack.db.models.session import Session
from livetrack.db.models.tracking import TrackingEvent

__all__ = [
    "Base",
    "Customer",
    "Delivery",
    "DeliveryStatus",
    "Session",
    "TrackingEvent",
    "User",
    "UserRole",
]

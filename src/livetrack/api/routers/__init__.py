"""Livetrack API routers.

- deliveries: delivery detail, updates, assignment, history and live feed
- courier: the calling courier's assigned deliveries
"""

from livetrack.api.routers.courier import router as courier_router
from livetrack.api.routers.deliveries import router as deliveries_router

__all__ = [
    "courier_router",
    "deliveries_router",
]

"""Livetrack - live order-delivery tracking service.

Coordinates courier assignment, the delivery status lifecycle, the
append-only tracking ledger and live snapshot feeds for staff, couriers,
customers and shared tracking links.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]

"""Pickups domain API package."""

from pickups.api.errors import register_exception_handlers
from pickups.api.routes import customer_router, notification_router, ward_router

__all__ = ["notification_router", "customer_router", "ward_router", "register_exception_handlers"]

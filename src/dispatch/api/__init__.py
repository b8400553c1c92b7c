"""Dispatch API package."""

from dispatch.api.realtime import realtime_router
from dispatch.api.routes import delivery_router, order_router

__all__ = ["delivery_router", "order_router", "realtime_router"]

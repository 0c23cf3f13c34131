"""HTTP routes."""

from .health import health_routes
from .onebot import onebot_routes
from .presence import presence_routes

__all__ = [
    "health_routes",
    "onebot_routes",
    "presence_routes",
]

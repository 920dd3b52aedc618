"""HTTP and WebSocket surface."""
from .core import SERVICES_KEY
from .registry import API_PREFIX, build_route_table, register_all_routes

__all__ = ["API_PREFIX", "SERVICES_KEY", "build_route_table", "register_all_routes"]

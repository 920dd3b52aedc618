"""Route handler registration functions."""
from .library import register_library_routes
from .listing import register_listing_routes
from .processing import register_processing_routes
from .upload import register_upload_routes
from .ws import register_ws_routes

__all__ = [
    "register_library_routes",
    "register_listing_routes",
    "register_processing_routes",
    "register_upload_routes",
    "register_ws_routes",
]

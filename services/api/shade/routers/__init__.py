"""
API Routers for the Shade Party Mode API.
"""
from .health import router as health_router
from .party import router as party_router
from .admin import router as admin_router

__all__ = ["health_router", "party_router", "admin_router"]

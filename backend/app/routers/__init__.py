"""Routers package."""

from .admin import router as admin_router
from .auth import router as auth_router
from .cycles import router as cycles_router
from .records import products_router, services_router

__all__ = [
    "admin_router",
    "auth_router",
    "cycles_router",
    "products_router",
    "services_router",
]

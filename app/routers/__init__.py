"""API routers."""

from app.routers.auth import router as auth_router
from app.routers.products import router as products_router

__all__ = ["auth_router", "products_router"]

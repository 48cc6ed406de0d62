from __future__ import annotations

from authgate.api.routes.auth import router as auth_router
from authgate.api.routes.health import router as health_router
from authgate.api.routes.users import router as users_router

__all__ = ["auth_router", "health_router", "users_router"]

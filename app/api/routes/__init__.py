from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.verification import router as verification_router

__all__ = ["health_router", "verification_router"]

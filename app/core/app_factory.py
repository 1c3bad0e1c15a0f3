from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import health_router, verification_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the provider HTTP client on shutdown.

    The counter store client lives for the whole process and is left to the
    interpreter to release.
    """
    logger.info(
        "app.startup",
        extra={
            "app_env": settings.app_env,
            "llm_model": settings.llm.model,
            "quota_backend": settings.store.backend,
            "daily_quota_limit": settings.app.daily_quota_limit,
        },
    )
    try:
        yield
    finally:
        llm_client = getattr(app.state, "llm_client", None)
        if llm_client is not None:
            await llm_client.aclose()
        logger.info("app.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Myth Verifier API",
        description=(
            "Verifica afirmaciones (mitos) con un modelo generativo y devuelve un "
            "veredicto estructurado: myth, isTrue, explanation y evidenceLevel. "
            "Cada dirección IP dispone de un número limitado de consultas diarias."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.quota_store = None
    app.state.llm_client = None

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(verification_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app

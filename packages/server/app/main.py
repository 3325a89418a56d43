"""
Teamspace API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.config import get_settings
from app.core.database import get_session_context
from app.core.errors import register_exception_handlers
from app.core.middleware import CSRF_HEADER_NAME, CSRFMiddleware, SecurityHeadersMiddleware
from app.core.policy import get_policy_engine
from app.api.v1 import router as api_v1_router

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Teamspace",
        description="Multi-tenant workspace with organizations, groups and role-based access.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (order matters, outermost first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", CSRF_HEADER_NAME],
    )

    register_exception_handlers(app)

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Liveness check: the process is up and serving."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness: the database answers and the policy compiles."""
        async with get_session_context() as session:
            await session.execute(text("SELECT 1"))
        engine = get_policy_engine()
        await engine.get_enforcer()
        return {"status": "ready", "policy_rules": len(await engine.rules())}

    @app.on_event("startup")
    async def on_startup():
        log.info("Teamspace starting", debug=settings.debug)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Teamspace shutting down")

    return app


app = create_app()

"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ruleengine.core.config import get_settings
from ruleengine.core.database import get_engine
from ruleengine.core.errors import register_exception_handlers
from ruleengine.core.log import configure_logging

from ruleengine.schema_registry.router import router as schemas_router
from ruleengine.rules.router import router as rules_router
from ruleengine.impact.router import router as attributes_router

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting %s...", settings.app_name)

    # Tenant databases are created on first request
    if not settings.multi_tenant_enabled:
        logger.info("Initializing database at %s", settings.database_url)
        get_engine()

    yield

    logger.info("Shutting down...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Business rule authoring and execution over imported data schemas",
        version=VERSION,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(schemas_router)     # /api/schemas
    app.include_router(attributes_router)  # /api/schemas/{id}/attributes
    app.include_router(rules_router)       # /api/rules

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": VERSION,
            "endpoints": {
                "schemas": "/api/schemas - Schema registry and import",
                "attributes": "/api/schemas/{id}/attributes - Attribute edits and impact analysis",
                "rules": "/api/rules - Rule authoring and execution",
            },
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

"""
FastAPI Application Factory.

This module provides a clean, configurable FastAPI application setup.

Usage:
    # Development
    uvicorn api.app:create_app --factory --reload

    # Production
    uvicorn api.app:app --host 0.0.0.0 --port 8080 --workers 2

    # Or use the convenience function
    from api.app import create_app
    app = create_app()
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from core.logging import configure_logging, get_logger
from core.middleware import RequestTracingMiddleware


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Configures logging on startup. The Supabase and LLM clients are created
    lazily on the first request.
    """
    settings = get_settings()

    configure_logging(
        json_logs=settings.is_production,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    logger.info(
        "Starting flavor recommender API",
        environment=settings.environment,
        port=settings.port,
        llm_base_url=settings.llm_base_url,
        llm_model=settings.llm_model,
        filter_extraction=settings.filter_extraction_enabled,
    )

    yield

    logger.info("Shutting down flavor recommender API")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="Protein Flavor Recommender API",
        description="""
        Natural-language protein powder flavor recommendations.

        ## Main Endpoints

        - `POST /api/recommend` - Recommend 1-3 flavors from free text
        - `GET /api/taste-keywords` - Taste keyword catalog

        ## Health Checks

        - `/health` - Basic health check
        - `/health/detailed` - Detailed health with dependency status
        - `/ready` - Kubernetes readiness probe
        - `/live` - Kubernetes liveness probe
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # =========================================================================
    # Middleware (order matters - first added = outermost)
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracing (adds X-Request-ID, logs timing)
    app.add_middleware(RequestTracingMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================

    from api.routes.health import router as health_router
    app.include_router(health_router, tags=["Health"])

    from api.routes.recommend import router as recommend_router
    app.include_router(recommend_router)

    return app


# Create default app instance for uvicorn
# Usage: uvicorn api.app:app
app = create_app()


# Run with: python -m api.app  (from src/)
if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "api.app:app",
        host=_settings.host,
        port=_settings.port,
        workers=_settings.workers,
    )

"""
FastAPI application entry point.
Assembles the app with routers, middleware, lifespan handlers, and exception handlers.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from timesheets_api.api.v1.router import api_router
from timesheets_api.api.v1.endpoints.health import get_health
from timesheets_api.core.config import settings
from timesheets_api.core.exceptions import setup_exception_handlers
from timesheets_api.core.logging import setup_logging, get_logger
from timesheets_api.core.rate_limit import limiter
from timesheets_api.db.session import init_db, close_db
from timesheets_api.deps import di_container
from timesheets_api.core.integrations.observability import setup_observability

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    Initializes logging, telemetry, DB and the DI container.
    """
    # Startup
    setup_logging()
    setup_observability()

    await init_db()

    container = di_container.Container()
    app.state.container = container
    di_container._container = container

    logger.info("Application started", extra={"version": settings.VERSION})

    yield

    # Shutdown
    await container.identity_client().close()
    await close_db()
    logger.info("Application stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Weekly timesheet entry and multi-level approval API",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting middleware
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Root-level health endpoint for load balancers
    app.add_api_route("/health", get_health, methods=["GET"], include_in_schema=False)

    setup_exception_handlers(app)

    return app


app = create_app()

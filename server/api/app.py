"""FastAPI application setup."""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from api.routes import conversations, live
from api.routes.health import router as health_router
from api.schemas.response_schemas import ErrorResponse
from config.logging_config import setup_logging
from config.settings import settings
from core.dependencies import init_dependencies, shutdown_dependencies
from core.exceptions import AuthRequiredError, MessagingError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # STARTUP
    logger.info("Initializing database connection...")
    await init_dependencies()
    logger.info("Application started")
    yield
    # SHUTDOWN
    await shutdown_dependencies()
    logger.info("Application shut down")


# ---------------------------------------------------------------------------
# Error mapping: every backend failure leaves as a typed JSON error
# ---------------------------------------------------------------------------

async def messaging_error_handler(request: Request, exc: MessagingError) -> JSONResponse:
    body = ErrorResponse(
        error=exc.code,
        detail=exc.message,
        retryable=exc.retryable,
        login_url=exc.login_url if isinstance(exc, AuthRequiredError) else None,
    )
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}")

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthRequiredError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Listing Messages API",
        description="Buyer/seller conversations about property listings",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS: never combine allow_credentials=True with allow_origins=["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MessagingError, messaging_error_handler)

    # Include routers
    app.include_router(health_router, tags=["Health"])
    app.include_router(conversations.router, prefix="/conversations", tags=["Conversations"])
    app.include_router(conversations.listings_router, prefix="/listings", tags=["Listings"])
    app.include_router(live.router, tags=["Live"])

    logger.info("FastAPI application created")
    return app

"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (database handle, Redis).
Middleware, CORS, exception handlers and routers are all registered here.

The Database handle is created here (or passed in by tests) and stored on
app.state; nothing below the routers ever builds its own engine.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from taskgate import __version__
from taskgate.api import api_router
from taskgate.config import settings
from taskgate.db.engine import Database
from taskgate.errors import AppError, Internal, Unauthenticated

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. The database handle is owned here unless one was injected.
    """
    logger.info(
        "taskgate.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from taskgate.cache import close_redis, init_redis
    try:
        await init_redis()
        logger.info("taskgate.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("taskgate.redis_unavailable", error=str(e))
        # Redis is optional — rate limiting is skipped without it

    yield

    logger.info("taskgate.shutdown")
    await close_redis()
    await app.state.db.dispose()


def _error_response(exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.reason},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if isinstance(exc, Internal):
            logger.error("request.internal_error", reason=exc.reason)
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:])
        reason = f"{field}: {first.get('msg')}" if field else "Invalid request"
        return JSONResponse(
            status_code=400,
            content={"error": "Validation", "detail": reason},
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_store_error(request: Request, exc: SQLAlchemyError):
        # Store failures are logged in full, never echoed to the client.
        logger.exception("request.store_error", error_type=type(exc).__name__)
        return _error_response(Internal())


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="taskgate",
        description="Role-gated task tracking with unified password + OAuth identities",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.db = database or Database(settings.database_url, echo=settings.debug)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from taskgate.middleware.rate_limit import RateLimitMiddleware
    from taskgate.middleware.request_id import RequestIdMiddleware
    from taskgate.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: taskgate.main:app)
app = create_app()

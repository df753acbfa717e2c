"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Everything process-wide (settings, DB engine, session factory,
token issuer, Redis client) is built here once and kept on app.state;
dependencies read it from there. There is no import-time configuration,
so run it with uvicorn's factory mode:

    uvicorn edtech.main:create_app --factory

or `edtech serve`.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from edtech import __version__
from edtech.api import api_router
from edtech.auth.jwt import TokenIssuer
from edtech.cache import close_redis, connect_redis
from edtech.config import Settings, load_settings
from edtech.db.engine import build_engine, build_session_factory
from edtech.errors import setup_exception_handlers
from edtech.log import configure_logging
from edtech.middleware.rate_limit import RateLimitMiddleware
from edtech.middleware.request_id import RequestIdMiddleware
from edtech.middleware.security import SecurityHeadersMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "edtech.starting",
        version=__version__,
        environment=settings.environment,
        host=settings.host,
        port=settings.port,
    )

    try:
        app.state.redis = await connect_redis(settings.redis_url)
        if app.state.redis is not None:
            logger.info("edtech.redis_connected")
    except (RedisError, OSError) as e:
        # Rate limiting is optional; auth works without it.
        logger.warning("edtech.redis_unavailable", error=str(e))
        app.state.redis = None

    yield

    logger.info("edtech.shutdown")
    await close_redis(app.state.redis)
    await app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or load_settings()
    configure_logging(settings)

    app = FastAPI(
        title="EdTech API",
        description="Accounts and authentication for the educational content platform",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.token_issuer = TokenIssuer.from_settings(settings)
    app.state.redis = None

    setup_exception_handlers(app)

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    return app

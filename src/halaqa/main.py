"""FastAPI application factory.

create_app() returns a configured FastAPI instance. The lifespan
connects the optional Redis pool for rate limiting on startup and
disposes of the database engine on shutdown.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from halaqa import __version__
from halaqa.api import api_router
from halaqa.config import settings
from halaqa.middleware.rate_limit import RateLimitMiddleware
from halaqa.middleware.request_id import RequestIdMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "halaqa.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from halaqa.redis_pool import close_redis, init_redis
    try:
        await init_redis()
        logger.info("halaqa.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("halaqa.redis_unavailable", error=str(e))
        # Redis is optional; login works without rate limiting

    yield

    logger.info("halaqa.shutdown")
    await close_redis()

    from halaqa.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Halaqa Identity",
        description="Sign-in by name and center-scoped roles for Quran memorization centers",
        version=__version__,
        lifespan=lifespan,
    )

    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → RateLimit → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: halaqa.main:app)
app = create_app()

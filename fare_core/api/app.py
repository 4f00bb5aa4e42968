"""
FastAPI application factory.

* Registers routes for fares, promo codes and admin.
* Disposes the DB engine and Redis pool on shutdown via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fare_core.api.middleware import limiter
from fare_core.api.routes import admin, fares, promo_codes
from fare_core.config import settings
from fare_core.infrastructure.database import engine
from fare_core.infrastructure.redis_client import close_redis

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Fare core API starting")
    yield
    await close_redis()
    await engine.dispose()
    logger.info("Fare core API stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="MedRide Fare Core API",
        description=(
            "Fallback fare estimation for non-emergency medical transport "
            "with US service-area validation, plus promo code validation "
            "and redemption with usage-limit guarantees."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(fares.router, prefix="/api/v1")
    app.include_router(promo_codes.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app

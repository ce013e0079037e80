"""
FastAPI application factory.

* Registers the rider, driver, dispatcher and admin routers.
* Opens the database pool and starts / stops the pool monitor via
  lifespan events.
* Maps engine errors to HTTP status codes.
* Applies rate-limiting.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ridehail.api.errors import register_error_handlers
from ridehail.api.middleware import limiter
from ridehail.api.routes import admin, dispatchers, drivers, riders
from ridehail.infrastructure.database import dispose_database, init_database
from ridehail.workers import pool_monitor as _pool_monitor

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the pool and start the monitor on startup; reverse on shutdown."""
    database = init_database()
    await _pool_monitor.start_pool_monitor(database)
    yield
    await _pool_monitor.stop_pool_monitor()
    await dispose_database()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Dispatch API",
        description=(
            "Coordinates ride requests, manual driver dispatch, trip start / "
            "end and duration-based billing.  Every lifecycle change runs "
            "under row locks in a serializable transaction."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_error_handlers(app)

    # Routers
    app.include_router(riders.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(dispatchers.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app

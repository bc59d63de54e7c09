"""FastAPI application entry point.

Run with `trackbridge` (console script) or `uvicorn trackbridge.main:app`.
"""

import uvicorn
from fastapi import FastAPI

from trackbridge import __version__
from trackbridge.api.exception_handlers import register_exception_handlers
from trackbridge.api.routers import api_router, health
from trackbridge.config import Settings, get_settings
from trackbridge.infrastructure.lifecycle import lifespan
from trackbridge.infrastructure.observability import RequestLoggingMiddleware


# Hey future me, create_app() takes an optional Settings object so tests can point the
# app at a temp database without touching env vars. The lifespan reads it back from
# app.state.settings, so EVERYTHING (db, clients, worker) sees the same config.
def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Cross-platform track links that repair themselves",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        RequestLoggingMiddleware,
        log_request_body=settings.observability.log_request_body,
    )
    register_exception_handlers(app)

    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()


def run() -> None:
    """Run the API server (console script entry point)."""
    settings = get_settings()
    uvicorn.run(
        "trackbridge.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )

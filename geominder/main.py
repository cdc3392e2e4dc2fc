from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI

from . import config
from .api.cache_admin import router as cache_admin_router
from .api.health import router as health_router
from .api.lookup import LookupHandler, router as lookup_router
from .api.prometheus import router as prometheus_router
from .config import HandlerConfig
from .db.reader import LookupDB
from .logging_config import setup_logging
from .middleware import TracingMiddleware
from .services.lookup import LocationLookupService
from .services.prometheus_metrics import prometheus_metrics

logger = logging.getLogger("geominder")


def create_app(
    handler: Optional[LookupHandler] = None,
    handler_config: Optional[HandlerConfig] = None,
    db_path: Optional[str] = None,
    admin_api: Optional[bool] = None,
) -> FastAPI:
    """Build the geominder application.

    When ``handler`` is given it is served as-is and the database lifecycle
    belongs to the caller. Otherwise the database at ``db_path`` (default
    GEOMINDER_DB_PATH) is opened on startup; failing to open it aborts
    startup.
    """

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        db = None
        if getattr(application.state, "handler", None) is None:
            path = db_path or config.GEOMINDER_DB_PATH
            # OpenError propagates: the server must not come up without a database
            db = LookupDB.open(path)
            application.state.db = db
            application.state.handler = LookupHandler(
                LocationLookupService(db),
                handler_config or HandlerConfig.from_env(),
            )
            prometheus_metrics.set_geoip_loaded(True)
            prometheus_metrics.set_geoip_build_epoch(db.metadata().build_epoch)

        logger.info("geominder ready", extra={
            "component": "api",
            "cache_enabled": application.state.handler.cache_enabled,
            "origin_policy": application.state.handler.origin_policy,
        })

        try:
            yield
        finally:
            if db is not None:
                application.state.handler.close()
                db.close()
                application.state.handler = None
                application.state.db = None
                prometheus_metrics.set_geoip_loaded(False)
            logger.info("geominder shutting down", extra={"component": "api"})

    app = FastAPI(title="geominder", version=config.APP_VERSION, lifespan=lifespan)
    app.state.handler = handler
    app.state.db = None

    app.add_middleware(TracingMiddleware)

    # Operational routes go before the catch-all lookup route
    app.include_router(health_router)
    app.include_router(prometheus_router)
    if admin_api is None:
        admin_api = config.ADMIN_API_ENABLED
    if admin_api:
        app.include_router(cache_admin_router)
    app.include_router(lookup_router)

    return app


# Configure logging at import time
setup_logging()

app = create_app()


def run():
    import uvicorn

    logger.info(f"Starting geominder on {config.APP_HOST}:{config.APP_PORT}")
    uvicorn.run(
        "geominder.main:app",
        host=config.APP_HOST,
        port=config.APP_PORT,
        reload=False,
        access_log=False,
        log_config=None,
    )


if __name__ == "__main__":
    run()

import os

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .config import settings
from .db import Base, SessionLocal, engine
from .logging import RequestIdMiddleware, setup_logging
from .auth.identity import ensure_bootstrap_admin
from .auth.router import router as auth_router
from .routes.checks import router as checks_router
from .routes.cron import router as cron_router
from .routes.dashboard import router as dashboard_router
from .routes.inventory import router as inventory_router
from .routes.live import router as live_router
from .routes.reports import router as reports_router
from .routes.settings import router as settings_router
from .routes.suggestions import router as suggestions_router
from .routes.users import router as users_router
from .routes.vehicles import router as vehicles_router
from .services.live_feed import InventoryFeed


log = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # One feed per app; routes reach it through request.app.state
    app.state.inventory_feed = InventoryFeed()

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(vehicles_router)
    app.include_router(inventory_router)
    app.include_router(checks_router)
    app.include_router(dashboard_router)
    app.include_router(reports_router)
    app.include_router(settings_router)
    app.include_router(suggestions_router)
    app.include_router(cron_router)
    app.include_router(live_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/healthz", include_in_schema=False)
    def healthz():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            log.info("startup_tables_verified", tables=len(Base.metadata.tables))
        if settings.admin_email and settings.admin_password:
            db = SessionLocal()
            try:
                ensure_bootstrap_admin(db, settings.admin_email, settings.admin_password)
                log.info("startup_admin_ready", email=settings.admin_email)
            finally:
                db.close()

    return app


app = create_app()

from __future__ import annotations

# IMPORTANT:
# Correct command:
#   python -m uvicorn pigfarm.main:create_app --factory --reload

import logging

from fastapi import FastAPI

from .audit import AuditSink
from .config import Settings, get_settings
from .database import Base, build_engine, build_session_factory
from .error_handlers import register_error_handlers
from .routers import audit as audit_router
from .routers import breeding as breeding_router
from .routers import litters as litters_router
from .routers import pigs as pigs_router
from . import models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = build_engine(settings.database_url)
    # Schema migrations are out of scope; create missing tables on startup
    Base.metadata.create_all(bind=engine)

    app = FastAPI(title="Pig Farm Breeding Tracker")

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.audit = AuditSink(app.state.session_factory)

    register_error_handlers(app)

    # -----------------------------
    # API ROUTERS
    # -----------------------------
    app.include_router(pigs_router.router)
    app.include_router(breeding_router.router)
    app.include_router(litters_router.router)
    app.include_router(audit_router.router)

    @app.get("/")
    def root():
        return {"status": "ok"}

    logger.info("Pig farm API ready (database: %s)", engine.url.render_as_string(hide_password=True))
    return app

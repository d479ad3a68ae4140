import os

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import inspect

from .config import settings
from .db import Base, SessionLocal, engine
from .errors import DomainError, domain_error_handler, request_validation_handler
from .logging import RequestIdMiddleware, setup_logging
from .routes.crm import router as crm_router
from .routes.customers import router as customers_router
from .routes.finance import router as finance_router
from .routes.mechanics import router as mechanics_router
from .routes.notifications import router as notifications_router
from .routes.orders import router as orders_router
from .routes.parts import router as parts_router
from .routes.quotes import router as quotes_router
from .routes.reminders import router as reminders_router
from .routes.reports import router as reports_router
from .routes.search import router as search_router
from .routes.service_types import router as service_types_router
from .routes.stock import router as stock_router
from .routes.suppliers import router as suppliers_router
from .routes.surveys import router as surveys_router
from .routes.vehicles import router as vehicles_router
from .services.seed import seed_reference_data

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

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Errors
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Routers
    app.include_router(customers_router)
    app.include_router(vehicles_router)
    app.include_router(parts_router)
    app.include_router(service_types_router)
    app.include_router(mechanics_router)
    app.include_router(suppliers_router)
    app.include_router(orders_router)
    app.include_router(quotes_router)
    app.include_router(stock_router)
    app.include_router(finance_router)
    app.include_router(reports_router)
    app.include_router(crm_router)
    app.include_router(reminders_router)
    app.include_router(surveys_router)
    app.include_router(notifications_router)
    app.include_router(search_router)

    # Checklist photos
    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok", "app": settings.app_name, "environment": settings.environment}

    @app.on_event("startup")
    def _startup():
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            existing_tables = set(inspect(engine).get_table_names())
            missing = set(Base.metadata.tables.keys()) - existing_tables
            if missing:
                log.info("creating_tables", count=len(missing))
                Base.metadata.create_all(bind=engine)
            db = SessionLocal()
            try:
                seed_reference_data(db)
            finally:
                db.close()
        log.info("startup_complete", app=settings.app_name, environment=settings.environment)

    return app


app = create_app()

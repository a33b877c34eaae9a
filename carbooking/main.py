import os

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import inspect

from .config import settings
from .db import Base, engine
from .errors import BookingError, ValidationError
from .logging import setup_logging, RequestIdMiddleware
from .rate_limit import limiter
from .auth.router import router as auth_router
from .routes.bookings import router as bookings_router
from .routes.approvals import router as approvals_router
from .routes.vehicles import router as vehicles_router
from .routes.notifications import router as notifications_router
from .services.container import build_services

logger = structlog.get_logger(__name__)


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

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.state.services = build_services()

    @app.exception_handler(BookingError)
    async def _booking_error_handler(request: Request, exc: BookingError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=exc.kind, detail=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        message = "; ".join(str(e.get("msg", "")) for e in errors) or "Invalid request"
        err = ValidationError(message, details={"errors": errors})
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    # Routers
    app.include_router(auth_router)
    app.include_router(bookings_router)
    app.include_router(approvals_router)
    app.include_router(vehicles_router)
    app.include_router(notifications_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.environment}

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            existing_tables = set(inspect(engine).get_table_names())
            missing = set(Base.metadata.tables.keys()) - existing_tables
            if missing:
                logger.info("creating_tables", tables=sorted(missing))
                Base.metadata.create_all(bind=engine)
        logger.info("startup_complete", app=settings.app_name, environment=settings.environment)

    return app


app = create_app()

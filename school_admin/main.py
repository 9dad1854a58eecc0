import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException

from school_admin.api.v1.activity.router import router as activity_router
from school_admin.api.v1.attendance.router import router as attendance_router
from school_admin.api.v1.auth.router import router as auth_router
from school_admin.api.v1.classes.router import router as classes_router
from school_admin.api.v1.discipline_cases.router import router as discipline_cases_router
from school_admin.api.v1.fees.router import router as fees_router
from school_admin.api.v1.staff_attendance.router import router as staff_attendance_router
from school_admin.api.v1.students.router import router as students_router
from school_admin.core.config import Settings, get_settings
from school_admin.core.logging_config import setup_logging
from school_admin.db.session import create_engine_from_settings, create_sessionmaker

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            return _error(exc.status_code, "Route not found")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        return _error(status.HTTP_400_BAD_REQUEST, "Validation failed", details=details)

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        return _error(status.HTTP_409_CONFLICT, "Conflict with existing data")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(settings: Optional[Settings] = None, engine: Optional[AsyncEngine] = None) -> FastAPI:
    """
    Build the application. The engine is created here (or injected, e.g. by tests)
    and owned by app.state; the lifespan only disposes it.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    owns_engine = engine is None
    engine = engine or create_engine_from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("School admin API starting")
        yield
        if owns_engine:
            await app.state.engine.dispose()
        logger.info("School admin API stopped")

    app = FastAPI(title="School Admin Backend", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = create_sessionmaker(engine)

    # CORS: allow-list from CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(activity_router)
    app.include_router(classes_router)
    app.include_router(students_router)
    app.include_router(fees_router)
    app.include_router(attendance_router)
    app.include_router(staff_attendance_router)
    app.include_router(discipline_cases_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

"""
Student Information System - FastAPI Application Entry Point.

``create_app`` builds the application:
1. Sets up structured JSON logging
2. Builds the database engine and session factory from ``Settings``
3. Implements request ID middleware (X-Request-ID header)
4. Maps service errors to JSON responses
5. Registers all API route handlers and the health check endpoint

The application follows a modular architecture:
- routes/: API endpoint handlers
- models/: SQLAlchemy ORM models
- services/: Business logic (identity, policy, enrollment workflow, catalog)
- logging_config.py: Structured logging configuration
- database.py: Database connection management
"""

import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from sims.config import Settings
from sims.database import build_engine, build_session_factory, create_tables
from sims.errors import SimsError
from sims.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from sims.routes import auth, courses, faculty, students, users
from sims.services.identity import ensure_bootstrap_admin
from sims.services.mailer import Mailer

logger = get_logger("http")
db_logger = get_logger("db")

VERSION = "1.0.0"


def _validation_errors(exc: RequestValidationError) -> list:
    errors = []
    for error in exc.errors():
        # Drop the leading "body"/"query"/"path" segment
        location = [str(part) for part in error.get("loc", ())[1:]]
        errors.append({"field": ".".join(location), "msg": error.get("msg", "Invalid value")})
    return errors


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(SimsError)
    async def sims_error_handler(request: Request, exc: SimsError):
        level = "ERROR" if exc.status_code >= 500 else "INFO"
        log_with_context(logger, level,
            f"{request.method} {request.url.path} rejected: {exc.message}",
            extra_data={"status_code": exc.status_code, "error": type(exc).__name__})
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"errors": _validation_errors(exc)})

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        log_with_context(db_logger, "ERROR",
            f"Database error on {request.method} {request.url.path}: {exc}",
            exc_info=True)
        return JSONResponse(status_code=500, content={"msg": "Server Error"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log_with_context(logger, "ERROR",
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=True)
        return JSONResponse(status_code=500, content={"msg": "Server Error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Runtime configuration; read from the environment when omitted

    Returns:
        The configured application. Engine, session factory, mailer and
        settings are stored on ``app.state``.
    """
    settings = settings or Settings()

    # Initialize structured logging BEFORE anything else
    setup_logging(settings.log_level)

    engine = build_engine(settings)
    session_factory = build_session_factory(engine)

    # Auto-create tables for SQLite local development
    if settings.database_url.startswith("sqlite"):
        logger.info("Using SQLite, creating tables directly")
        create_tables(engine)

    db = session_factory()
    try:
        ensure_bootstrap_admin(db, settings)
    finally:
        db.close()

    app = FastAPI(
        title="Student Information System",
        description=(
            "Student records, faculty records and a course catalog with "
            "enrollment, grading and attendance workflows behind role-based access control."
        ),
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.mailer = Mailer(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"]
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """
        Tag every request with a UUID.

        The id is stored in a context variable so every log entry produced
        while handling the request carries it, and is returned in the
        X-Request-ID response header.
        """
        req_id = generate_request_id()
        request_id_var.set(req_id)
        start_time = time.time()

        log_with_context(logger, "INFO",
            f"Request started: {request.method} {request.url.path}",
            context={"request_id": req_id},
            extra_data={
                "ip": request.client.host if request.client else "unknown",
                "user_agent": request.headers.get("user-agent", ""),
                "query_params": dict(request.query_params)
            })

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = req_id

        log_with_context(logger, "INFO",
            f"Request completed: {request.method} {request.url.path} → {response.status_code}",
            context={"request_id": req_id},
            extra_data={
                "duration_ms": round(duration_ms, 2),
                "status_code": response.status_code
            })

        return response

    register_exception_handlers(app)

    app.include_router(auth.router, tags=["Auth"])
    app.include_router(users.router, tags=["Users"])
    app.include_router(students.router, tags=["Students"])
    app.include_router(faculty.router, tags=["Faculty"])
    app.include_router(courses.router, tags=["Courses"])

    @app.get("/health", tags=["Health"])
    def health_check():
        """Health check endpoint for container health checks and monitoring."""
        return {"status": "healthy", "service": "sims-backend", "version": VERSION}

    @app.get("/", tags=["Root"])
    def root():
        """Root endpoint with API information."""
        return {
            "service": "Student Information System",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "login": "POST /api/auth/login",
                "users": "/api/users",
                "students": "/api/students",
                "faculty": "/api/faculty",
                "courses": "/api/courses",
                "enroll": "POST /api/courses/{id}/enroll",
                "grade": "PUT /api/courses/{id}/grade/{student_id}"
            }
        }

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)

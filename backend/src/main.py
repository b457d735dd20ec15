"""
FastAPI application entry point for the ScaledTest backend.

This module initializes the FastAPI application with:
- Application state (team membership provider, report store, report service)
- CORS middleware for frontend development
- Exception handlers translating service errors into HTTP responses
- First-run bootstrap of the default team
- Logging configuration

Environment Variables:
    SCALEDTEST_AUTH_PROVIDER: Team backend, keycloak or database (default: database)
    SCALEDTEST_ENV: Environment (production/development, default: development)
    SCALEDTEST_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL, default: INFO)
    See backend.src.config.settings.AppSettings for the full list.
"""

from contextlib import asynccontextmanager
from typing import Dict, Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from backend.src.config.settings import get_settings
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    ProtectedResourceError,
    ServiceError,
    UpstreamError,
    ValidationError as ServiceValidationError,
)
from backend.src.services.report_service import ReportService
from backend.src.services.report_store import OpenSearchReportStore, create_opensearch_client
from backend.src.services.team_provider import create_team_provider
from backend.src.utils.logging_config import init_logging, get_logger


APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events:
    - Startup: Build the configured team provider and the report store,
      ensure the reports index and the default team exist
    - Shutdown: Close provider and store clients

    Args:
        app: FastAPI application instance

    Yields:
        Control to the application
    """
    logger = get_logger("api")
    settings = get_settings()
    logger.info(
        "Starting ScaledTest backend application",
        extra={"event": "app.starting", "auth_provider": settings.auth_provider},
    )

    team_provider = create_team_provider(settings)
    opensearch_client = create_opensearch_client(settings)
    report_store = OpenSearchReportStore(opensearch_client, index_name=settings.opensearch_reports_index)

    app.state.settings = settings
    app.state.team_provider = team_provider
    app.state.report_store = report_store
    app.state.report_service = ReportService(team_provider, report_store)

    try:
        await run_in_threadpool(report_store.ensure_index)
    except UpstreamError as e:
        logger.error(
            "Could not ensure reports index; report endpoints may fail",
            extra={"event": "reports.index.unavailable", "error": str(e)},
        )

    try:
        default_team = await team_provider.ensure_default_team_exists()
        logger.info(
            f"Default team ready: {default_team.name}",
            extra={"event": "team.default.ready", "team_id": default_team.id},
        )
    except (ServiceError, SQLAlchemyError) as e:
        logger.error(
            "Failed to ensure default team exists",
            extra={"event": "team.default.failed", "error": str(e)},
        )

    logger.info("ScaledTest backend started successfully")

    yield

    logger.info("Shutting down ScaledTest backend application")
    await team_provider.aclose()
    opensearch_client.close()


# Initialize logging before creating app
init_logging()

# Create FastAPI application
app = FastAPI(
    title="ScaledTest API",
    description="Backend API for storing and querying CTRF test reports "
                "with team-based access control.",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# Configure CORS middleware for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": message},
    )


@app.exception_handler(ServiceValidationError)
async def service_validation_exception_handler(
    request: Request, exc: ServiceValidationError
) -> JSONResponse:
    """Invalid identifiers or field values -> 400."""
    return _error_response(status.HTTP_400_BAD_REQUEST, "Validation Error", exc.message)


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Unknown team, membership or report -> 404."""
    return _error_response(status.HTTP_404_NOT_FOUND, "Not Found", str(exc))


@app.exception_handler(ConflictError)
async def conflict_exception_handler(request: Request, exc: ConflictError) -> JSONResponse:
    """Duplicate team name -> 409."""
    return _error_response(status.HTTP_409_CONFLICT, "Conflict", exc.message)


@app.exception_handler(ProtectedResourceError)
async def protected_resource_exception_handler(
    request: Request, exc: ProtectedResourceError
) -> JSONResponse:
    """Default team deletion or removal -> 400 with the specific message."""
    return _error_response(status.HTTP_400_BAD_REQUEST, "Bad Request", exc.message)


@app.exception_handler(UpstreamError)
async def upstream_exception_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    """
    Handle identity backend or document store failures.

    Args:
        request: HTTP request
        exc: UpstreamError

    Returns:
        502 JSON response
    """
    logger = get_logger("api")
    logger.error(
        "Upstream error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": exc.message,
            "upstream_status": exc.status_code,
        }
    )
    return _error_response(
        status.HTTP_502_BAD_GATEWAY,
        "Bad Gateway",
        "An upstream service failed. Please try again later.",
    )


@app.exception_handler(ValidationError)
async def validation_exception_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Args:
        request: HTTP request
        exc: Pydantic ValidationError

    Returns:
        JSON response with validation error details
    """
    logger = get_logger("api")
    logger.warning(
        "Validation error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "errors": exc.errors(),
        }
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "message": "Request validation failed",
            "details": exc.errors(include_url=False, include_context=False),
        }
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """
    Handle SQLAlchemy database errors.

    Args:
        request: HTTP request
        exc: SQLAlchemy exception

    Returns:
        JSON response with database error message
    """
    logger = get_logger("db")
    logger.error(
        "Database error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Database Error",
            "message": "An error occurred while accessing the database. "
                      "Please try again later.",
        }
    )


# Health check endpoint


@app.get("/health", tags=["Health"])
async def health_check(request: Request) -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        Health status, configured team backend and document store reachability
    """
    settings = getattr(request.app.state, "settings", None)
    report_store = getattr(request.app.state, "report_store", None)
    opensearch_ok = None
    if report_store is not None:
        opensearch_ok = await run_in_threadpool(report_store.health_check)

    return {
        "status": "healthy",
        "service": "scaledtest-backend",
        "version": APP_VERSION,
        "auth_provider": settings.auth_provider if settings else None,
        "opensearch": opensearch_ok,
    }


# API routers
from backend.src.api import reports, user_teams  # noqa: E402
from backend.src.api.admin import teams_router, team_assignments_router  # noqa: E402

app.include_router(user_teams.router, prefix="/api")
app.include_router(reports.router, prefix="/api")
app.include_router(teams_router, prefix="/api/admin")
app.include_router(team_assignments_router, prefix="/api/admin")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.src.main:app", host="127.0.0.1", port=8000, reload=True)

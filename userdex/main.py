import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError

from userdex.api import directory, favorites, users
from userdex.clients.randomuser import RandomUserClient
from userdex.db.connection import create_engine, create_session_factory, init_models
from userdex.schemas.error import ErrorType, ValidationErrorDetail
from userdex.services.directory_service import DirectoryService
from userdex.services.errors import RecordNotFoundError, ToggleError
from userdex.services.favorites import SqlFavoriteStore
from userdex.settings import AppSettings, settings
from userdex.utils.error_responses import (
    build_error_response,
    build_record_not_found_response,
    build_validation_error_response,
)
from userdex.utils.request_context import get_request_id, set_request_id

logging.basicConfig(
    level=settings.log_level_numeric,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _validate_environment(active_settings: AppSettings | None = None) -> None:
    """Log a warning banner for unset optional configuration."""
    warnings = (active_settings or settings).optional_config_warnings()
    if warnings:
        logger.warning("=" * 60)
        logger.warning("Environment Configuration Warnings:")
        for warning in warnings:
            logger.warning(f"  • {warning}")
        logger.warning("=" * 60)


def _sanitize_database_url(url: str) -> str:
    """Sanitize database URL to hide password in logs."""
    if "://" not in url:
        return url

    scheme, rest = url.split("://", 1)
    if "@" in rest:
        auth, host_db = rest.split("@", 1)
        if ":" in auth:
            user, _ = auth.split(":", 1)
            return f"{scheme}://{user}:***@{host_db}"
        return f"{scheme}://{auth}@{host_db}"
    return url


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the directory session on startup and tear it down on shutdown."""
    _validate_environment()

    db_url = settings.resolved_database_url
    logger.info("=" * 60)
    logger.info("Userdex API - Favorites Store Preflight")
    logger.info("=" * 60)
    logger.info(f"Database Type: {settings.database_type.upper()}")
    logger.info(f"Database URL: {_sanitize_database_url(db_url)}")
    logger.info(f"Directory Source: {settings.randomuser_base_url}")
    logger.info(f"Page Size: {settings.page_size}")
    logger.info("=" * 60)

    engine = create_engine(db_url)
    await init_models(engine)

    client = RandomUserClient(
        base_url=settings.randomuser_base_url,
        timeout=settings.http_timeout_seconds,
        user_agent=settings.http_user_agent,
    )
    store = SqlFavoriteStore(create_session_factory(engine))
    service = DirectoryService.create(
        client,
        store,
        page_size=settings.page_size,
        resubscribe_delay=settings.favorites_resubscribe_delay_seconds,
    )
    app.state.directory_service = service

    try:
        yield
    finally:
        logger.info("Shutting down Userdex API")
        app.state.directory_service = None
        await service.aclose()
        await client.aclose()
        await engine.dispose()


app = FastAPI(
    title="Userdex API",
    version="0.1.0",
    description="Paginated random-user directory with locally persisted favorites.",
    lifespan=lifespan,
    redirect_slashes=False,
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID to each request for tracking."""
    request_id = str(uuid.uuid4())
    set_request_id(request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors."""
    errors = [
        ValidationErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=error.get("input"),
        )
        for error in exc.errors()
    ]

    logger.warning(
        "Validation error for request %s to %s: %s errors",
        get_request_id(),
        request.url.path,
        len(errors),
    )

    error_response = build_validation_error_response(
        message="Request validation failed",
        detail=f"{len(errors)} validation error(s)",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        path=str(request.url.path),
        errors=errors,
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(RecordNotFoundError)
async def record_not_found_exception_handler(request: Request, exc: RecordNotFoundError):
    """Handle lookups of records the session does not hold."""
    logger.info(
        "Record %s not found for request %s to %s",
        exc.identifier,
        get_request_id(),
        request.url.path,
    )

    error_response = build_record_not_found_response(
        identifier=exc.identifier,
        detail=str(exc),
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(ToggleError)
async def toggle_exception_handler(request: Request, exc: ToggleError):
    """Favorite membership is unchanged; the client may simply toggle again."""
    logger.error(
        "Favorite toggle failed for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    error_response = build_error_response(
        error_type=ErrorType.DATABASE_ERROR,
        message="Favorite could not be updated",
        detail=str(exc),
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        path=str(request.url.path),
        retry_after=1,
    )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(OperationalError)
@app.exception_handler(DBAPIError)
async def database_connection_exception_handler(request: Request, exc: Exception):
    """Handle database connection errors."""
    logger.error(
        "Database connection error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    error_response = build_error_response(
        error_type=ErrorType.DATABASE_ERROR,
        message="Database connection failed",
        detail="Unable to connect to the favorites store. Please try again later.",
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        path=str(request.url.path),
        retry_after=5,
    )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(SQLAlchemyError)
async def database_generic_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle generic database errors."""
    logger.error(
        "Database error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    error_response = build_error_response(
        error_type=ErrorType.DATABASE_ERROR,
        message="Database operation failed",
        detail="An error occurred while accessing the favorites store.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        path=str(request.url.path),
        retry_after=3,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle all other unhandled exceptions."""
    logger.exception(
        "Unhandled exception for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        type(exc).__name__,
    )

    error_response = build_error_response(
        error_type=ErrorType.INTERNAL_ERROR,
        message="Internal server error",
        detail=f"An unexpected error occurred: {type(exc).__name__}",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(mode="json"),
    )


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    """Simple health endpoint for readiness checks."""
    return {"status": "ok"}


app.include_router(directory.router, prefix="/directory", tags=["directory"])
app.include_router(favorites.router, prefix="/favorites", tags=["favorites"])
app.include_router(users.router, prefix="/users", tags=["users"])

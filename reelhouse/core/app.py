from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from reelhouse.api.main import api_router
from reelhouse.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    MovieServiceError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from reelhouse.core.security import redact_secret
from reelhouse.services.movie_service import get_movie_service, shutdown_movie_service

from .config import settings
from .version import __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events (startup/shutdown).
    """
    settings.require_credentials()
    logger.info(
        f"Starting Reelhouse {__version__} (tmdb key {redact_secret(settings.TMDB_API_KEY)}, "
        f"openai key {redact_secret(settings.OPENAI_API_KEY)})"
    )
    get_movie_service()
    yield
    try:
        await shutdown_movie_service()
        logger.info("Movie service clients closed")
    except Exception as exc:
        logger.warning(f"Failed to close movie service clients: {exc}")


app = FastAPI(
    title="Reelhouse",
    description="Household movie search, recommendations and watch tracking",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.APP_ENV != "development" else "/docs",
    redoc_url=None if settings.APP_ENV != "development" else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(exc: MovieServiceError) -> int:
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, UpstreamError):
        return 502
    if isinstance(exc, ConfigurationError):
        return 503
    return 500


@app.exception_handler(MovieServiceError)
async def movie_service_error_handler(request: Request, exc: MovieServiceError) -> JSONResponse:
    status = _status_for(exc)
    if isinstance(exc, (ValidationError, NotFoundError)):
        return JSONResponse(status_code=status, content=exc.to_dict())

    logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")
    if isinstance(exc, DatabaseError):
        message = "A storage error occurred. Please try again."
    elif isinstance(exc, UpstreamError):
        message = "The movie service could not complete the request. Please try again later."
    elif isinstance(exc, ConfigurationError):
        message = "The movie service is not configured."
    else:
        message = "The operation failed."
    return JSONResponse(status_code=status, content={"error": message, "code": exc.code})


app.include_router(api_router)

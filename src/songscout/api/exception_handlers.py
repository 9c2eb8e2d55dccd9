"""Map domain exceptions onto HTTP responses.

Services raise the domain taxonomy; the routers never catch it. Everything lands here and
leaves as a small ``{"detail": ...}`` body instead of a 500 with a stack trace. Source
failures also carry ``source`` so the operator sees which upstream broke.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from songscout.domain.exceptions import (
    ConfigurationMissingError,
    EntityNotFoundException,
    InvalidStateException,
    SourceError,
)

logger = logging.getLogger(__name__)


def _source_failure(exc: SourceError, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "source": exc.source},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain exception handlers on ``app``.

    Mapping:
        EntityNotFoundException -> 404
        InvalidStateException -> 400
        ConfigurationMissingError -> 503 (credentials not set up yet)
        any other SourceError -> 502
    """

    @app.exception_handler(EntityNotFoundException)
    async def handle_not_found(request: Request, exc: EntityNotFoundException) -> JSONResponse:
        logger.info(f"{request.url.path}: no {exc.entity_type} with id {exc.entity_id}")
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": exc.message},
        )

    @app.exception_handler(InvalidStateException)
    async def handle_invalid_state(request: Request, exc: InvalidStateException) -> JSONResponse:
        logger.warning(f"{request.url.path}: rejected transition ({exc.message})")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message},
        )

    # Subclass of SourceError. Starlette resolves handlers along the MRO, so this one wins.
    @app.exception_handler(ConfigurationMissingError)
    async def handle_missing_configuration(
        request: Request, exc: ConfigurationMissingError
    ) -> JSONResponse:
        logger.warning(f"{request.url.path}: {exc.source} is not configured ({exc.message})")
        return _source_failure(exc, status.HTTP_503_SERVICE_UNAVAILABLE)

    @app.exception_handler(SourceError)
    async def handle_source_failure(request: Request, exc: SourceError) -> JSONResponse:
        logger.error(f"{request.url.path}: upstream {exc.source} failed ({exc.message})")
        return _source_failure(exc, status.HTTP_502_BAD_GATEWAY)

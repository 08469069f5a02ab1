"""Response rendering and error classification for the HTTP layer."""

import logging
import time

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.api.schemas import ErrorBody, ErrorMetadata, ErrorResponse
from src.config import settings
from src.errors import DataError, InputError, PropertyTaxError

logger = logging.getLogger(__name__)


def latency_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def render(model: BaseModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=model.model_dump(mode="json", by_alias=True, exclude_unset=True),
    )


def error_response(exc: Exception, request_id: str | None, started: float | None = None) -> JSONResponse:
    """Map any exception onto the error envelope.

    Expected failures carry their own status and code; everything else is an
    INTERNAL_ERROR. ``details`` is withheld in production.
    """
    error = exc if isinstance(exc, PropertyTaxError) else PropertyTaxError(str(exc))
    elapsed = latency_ms(started) if started is not None else None

    if isinstance(exc, InputError):
        logger.info("[%s] Rejected input: %s", request_id, exc)
    elif isinstance(exc, DataError):
        logger.warning("[%s] %s: %s", request_id, error.code, exc)
    elif isinstance(exc, PropertyTaxError):
        logger.error("[%s] %s: %s (%sms)", request_id, error.code, exc, elapsed)
    else:
        logger.exception("[%s] Request failed (%sms)", request_id, elapsed)

    body = ErrorBody(code=error.code, message=error.message)
    if not settings.is_production:
        body.details = error.details

    metadata = ErrorMetadata(request_id=request_id)
    if elapsed is not None:
        metadata.latency_ms = elapsed

    return render(ErrorResponse(success=False, error=body, metadata=metadata), error.status_code)

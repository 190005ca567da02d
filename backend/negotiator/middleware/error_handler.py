"""
Exception to HTTP response mapping.

WHAT: JSON error bodies for business rule violations, provider failures, and bad requests
WHY: The marketplace app branches on the error code, not on message text
HOW: FastAPI exception handlers; business errors carry their own status code,
     provider errors are looked up by class
"""

from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..llm.types import (
    ProviderDisabledError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from ..utils.exceptions import BusinessException
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Most specific first; ProviderError catches anything new
PROVIDER_ERROR_MAP = (
    (ProviderDisabledError, status.HTTP_400_BAD_REQUEST, "LLM_PROVIDER_DISABLED"),
    (ProviderTimeoutError, status.HTTP_503_SERVICE_UNAVAILABLE, "LLM_TIMEOUT"),
    (ProviderUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE, "LLM_UNAVAILABLE"),
    (ProviderResponseError, status.HTTP_502_BAD_GATEWAY, "LLM_BAD_GATEWAY"),
    (ProviderError, status.HTTP_502_BAD_GATEWAY, "LLM_ERROR"),
)


def error_response(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


async def business_exception_handler(request: Request, exc: BusinessException):
    logger.warning(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def provider_error_handler(request: Request, exc: ProviderError):
    for error_type, status_code, code in PROVIDER_ERROR_MAP:
        if isinstance(exc, error_type):
            break
    logger.error(f"Completion provider failure on {request.url.path}: {code} {exc}")
    return error_response(status_code, code, str(exc))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Request body or path failed validation.

    pydantic puts exception objects into ctx for custom validators; those are
    stringified so the body stays JSON serializable.
    """
    errors = []
    for error in exc.errors():
        entry = {"type": error.get("type"), "loc": list(error.get("loc", ())), "msg": error.get("msg")}
        if "ctx" in error:
            entry["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(entry)

    logger.warning(f"Rejected {request.method} {request.url.path}: {len(errors)} validation error(s)")
    return error_response(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Request validation failed", errors)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BusinessException, business_exception_handler)
    app.add_exception_handler(ProviderError, provider_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

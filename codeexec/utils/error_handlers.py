"""Exception handlers for the execute API.

Execution outcomes (timeouts, unsupported languages, runtime failures) are
returned as ``ExecutionResult`` bodies by the service. These handlers cover
what escapes it: request validation, HTTP errors and engine defects. Server
side failures never echo their message to the caller.
"""

# Standard library imports
import traceback
from typing import Any, Dict, Union

# Third-party imports
import structlog
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

# Local application imports
from ..models.errors import (
    ErrorDetail,
    ErrorResponse,
    ErrorType,
    ExecutionEngineException,
)
from .id_generator import generate_request_id

logger = structlog.get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error during code execution."

STATUS_ERROR_TYPES = {
    400: ErrorType.VALIDATION,
    408: ErrorType.TIMEOUT,
    422: ErrorType.VALIDATION,
    502: ErrorType.RUNTIME_OPERATION_FAILED,
    503: ErrorType.RUNTIME_OPERATION_FAILED,
}


def _request_context(request: Request, request_id: str) -> Dict[str, Any]:
    return {
        "request_id": request_id,
        "path": request.url.path,
        "method": request.method,
        "client_ip": request.client.host if request.client else "unknown",
    }


def _respond(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def execution_exception_handler(
    request: Request, exc: ExecutionEngineException
) -> JSONResponse:
    """Engine exceptions: 4xx keep their message, 5xx are reported generically."""
    exc.request_id = exc.request_id or generate_request_id()
    context = _request_context(request, exc.request_id)

    if exc.status_code < 500:
        logger.warning(
            "Execution request rejected",
            error_type=exc.error_type.value,
            message=exc.message,
            **context,
        )
        return _respond(exc.status_code, exc.to_response())

    logger.error(
        "Execution engine failure",
        error_type=exc.error_type.value,
        status_code=exc.status_code,
        message=exc.message,
        cause=repr(exc.__cause__) if exc.__cause__ else None,
        **context,
    )
    return _respond(
        exc.status_code,
        ErrorResponse(
            error=INTERNAL_ERROR_MESSAGE,
            error_type=exc.error_type,
            request_id=exc.request_id,
        ),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    request_id = generate_request_id()
    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        **_request_context(request, request_id),
    )
    return _respond(
        exc.status_code,
        ErrorResponse(
            error=str(exc.detail),
            error_type=STATUS_ERROR_TYPES.get(exc.status_code, ErrorType.INTERNAL_SERVER),
            request_id=request_id,
        ),
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Malformed execute requests: one detail per offending field."""
    request_id = generate_request_id()
    details = [
        ErrorDetail(
            field=" -> ".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]

    logger.warning(
        "Execution request failed validation",
        fields=[detail.field for detail in details],
        **_request_context(request, request_id),
    )
    return _respond(
        422,
        ErrorResponse(
            error="Request validation failed",
            error_type=ErrorType.VALIDATION,
            details=details,
            request_id=request_id,
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = generate_request_id()
    logger.error(
        "Unhandled exception",
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback=traceback.format_exc(),
        **_request_context(request, request_id),
    )
    return _respond(
        500,
        ErrorResponse(
            error=INTERNAL_ERROR_MESSAGE,
            error_type=ErrorType.INTERNAL_SERVER,
            request_id=request_id,
        ),
    )

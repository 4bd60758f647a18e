"""Error models and the engine's exception hierarchy.

Most of these exceptions never reach a caller: the runner converts them to
``ExecutionResult`` outcomes. They surface over HTTP only when raised outside
an execution, and then ``ErrorResponse`` is the body.
"""

import time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    """Category reported in ``ErrorResponse.error_type``."""

    VALIDATION = "validation"
    UNSUPPORTED_LANGUAGE = "unsupported_language"
    IMAGE_UNAVAILABLE = "image_unavailable"
    RUNTIME_OPERATION_FAILED = "runtime_operation_failed"
    TIMEOUT = "timeout"
    INTERNAL_SERVER = "internal_server"


class ErrorDetail(BaseModel):
    """One offending request field."""

    field: Optional[str] = Field(None, description="Dotted location of the field")
    message: str = Field(..., description="What is wrong with it")
    code: Optional[str] = Field(None, description="Validator error code")


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    model_config = ConfigDict(use_enum_values=True)

    error: str
    error_type: ErrorType
    details: Optional[List[ErrorDetail]] = None
    request_id: Optional[str] = Field(None, description="Correlates the response with server logs")
    timestamp: float = Field(default_factory=time.time)


class ExecutionEngineException(Exception):
    """Base class; subclasses fix the error type and HTTP status."""

    error_type: ErrorType = ErrorType.INTERNAL_SERVER
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[List[ErrorDetail]] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])
        self.request_id = request_id

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.message,
            error_type=self.error_type,
            details=self.details or None,
            request_id=self.request_id,
        )


class UnsupportedLanguageError(ExecutionEngineException):
    """Language is not in the profile registry."""

    error_type = ErrorType.UNSUPPORTED_LANGUAGE
    status_code = 400

    def __init__(self, language: str, **kwargs):
        self.language = language
        super().__init__(f"Unsupported language: {language}", **kwargs)


class ImageUnavailableError(ExecutionEngineException):
    """Container image is missing locally and could not be pulled."""

    error_type = ErrorType.IMAGE_UNAVAILABLE
    status_code = 503

    def __init__(self, image: str, reason: Optional[str] = None, **kwargs):
        self.image = image
        self.reason = reason
        message = f"Container image unavailable: {image}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, **kwargs)


class RuntimeOperationFailedError(ExecutionEngineException):
    """A connect/create/start/wait/kill/logs call to the container runtime failed."""

    error_type = ErrorType.RUNTIME_OPERATION_FAILED
    status_code = 502

    def __init__(self, operation: str, reason: Optional[str] = None, **kwargs):
        self.operation = operation
        self.reason = reason
        message = f"Container {operation} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, **kwargs)


class ExecutionTimedOutError(ExecutionEngineException):
    """The submission outlived its deadline. An expected outcome, not a defect."""

    error_type = ErrorType.TIMEOUT
    status_code = 408

    def __init__(self, timeout_ms: int, **kwargs):
        self.timeout_ms = timeout_ms
        super().__init__(f"Execution timed out after {timeout_ms} ms", **kwargs)


class ExecutionEngineError(ExecutionEngineException):
    """Unexpected failure inside the engine; callers report it generically."""

    def __init__(self, message: str = "Internal error during code execution", **kwargs):
        super().__init__(message, **kwargs)

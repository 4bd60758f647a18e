"""Data models for the code execution engine."""

from .execution import (
    ExecutionOutcome,
    ExecutionRequest,
    ExecutionResult,
    ExecutionState,
)
from .errors import (
    ErrorType,
    ErrorDetail,
    ErrorResponse,
    ExecutionEngineException,
    UnsupportedLanguageError,
    ImageUnavailableError,
    RuntimeOperationFailedError,
    ExecutionTimedOutError,
    ExecutionEngineError,
)

__all__ = [
    # Execution models
    "ExecutionOutcome",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionState",
    # Error models
    "ErrorType",
    "ErrorDetail",
    "ErrorResponse",
    "ExecutionEngineException",
    "UnsupportedLanguageError",
    "ImageUnavailableError",
    "RuntimeOperationFailedError",
    "ExecutionTimedOutError",
    "ExecutionEngineError",
]

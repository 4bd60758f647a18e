"""Services module for the code execution engine."""

from .execution import CodeExecutionService
from .interfaces import ExecutionServiceInterface

__all__ = [
    "CodeExecutionService",
    "ExecutionServiceInterface",
]

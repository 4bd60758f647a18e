"""Dependency injection for the code execution API."""

from .services import ExecutionServiceDep, get_execution_service

__all__ = ["ExecutionServiceDep", "get_execution_service"]

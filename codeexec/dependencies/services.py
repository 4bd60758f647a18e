"""Service dependency injection for the code execution API."""

# Standard library imports
from functools import lru_cache
from typing import Annotated

# Third-party imports
from fastapi import Depends

# Local application imports
from ..services import CodeExecutionService
from ..services.interfaces import ExecutionServiceInterface


@lru_cache()
def get_execution_service() -> ExecutionServiceInterface:
    """Get the process-wide execution service (one shared Docker client)."""
    return CodeExecutionService()


ExecutionServiceDep = Annotated[ExecutionServiceInterface, Depends(get_execution_service)]

"""Service interfaces for the code execution engine."""

# Standard library imports
from abc import ABC, abstractmethod

# Local application imports
from ..models import ExecutionRequest, ExecutionResult


class ExecutionServiceInterface(ABC):
    """Interface for code execution service."""

    @abstractmethod
    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Run one submission to completion in a sandbox."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the container runtime can be reached."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the connection to the container runtime."""
        pass

"""Code execution services.

This package provides code execution functionality split into:
- runner.py: Execution supervision (the wait-versus-deadline race)
- workspace.py: Per-execution host directories
- output.py: Output sanitization and result assembly
"""

from ..interfaces import ExecutionServiceInterface
from .output import OutputProcessor, ResultAssembler
from .runner import CodeExecutionRunner
from .workspace import Workspace, WorkspaceManager


class CodeExecutionService(CodeExecutionRunner, ExecutionServiceInterface):
    """Service for executing code in Docker containers."""

    def is_available(self) -> bool:
        """Whether the Docker engine answers."""
        return self.container_manager.client_factory.ping()


__all__ = [
    "CodeExecutionService",
    "CodeExecutionRunner",
    "OutputProcessor",
    "ResultAssembler",
    "Workspace",
    "WorkspaceManager",
]

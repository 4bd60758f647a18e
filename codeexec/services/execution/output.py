"""Output processing and result assembly for code execution."""

import re
from typing import Optional

import structlog

from ...config import settings
from ...models import ExecutionOutcome, ExecutionResult
from ..container.streams import DemuxedLogs

logger = structlog.get_logger(__name__)

TIMEOUT_MESSAGE = "Execution timed out."

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


class OutputProcessor:
    """Handles output sanitization for display."""

    TRUNCATION_MARKER = "\n[Output truncated - size limit exceeded]"

    @classmethod
    def sanitize_output(cls, output: str, max_size: Optional[int] = None) -> str:
        """Sanitize execution output for display.

        Args:
            output: Decoded output text
            max_size: Maximum kept characters (default ``settings.max_output_bytes``)

        Returns:
            Output with control characters removed (newlines and tabs kept),
            truncated with a marker when over the limit
        """
        if not output:
            return ""
        if max_size is None:
            max_size = settings.max_output_bytes

        output = _CONTROL_CHARS.sub("", output)
        if len(output) > max_size:
            output = output[:max_size] + cls.TRUNCATION_MARKER
        return output


class ResultAssembler:
    """Maps the terminal state of an execution to its ExecutionResult."""

    @staticmethod
    def completed(exit_code: int, logs: DemuxedLogs, elapsed_ms: int) -> ExecutionResult:
        """Program exited on its own; a nonzero exit code is not an engine error."""
        return ExecutionResult(
            success=exit_code == 0,
            outcome=ExecutionOutcome.COMPLETED,
            output=OutputProcessor.sanitize_output(logs.stdout),
            error=OutputProcessor.sanitize_output(logs.stderr),
            exit_code=exit_code,
            execution_time_ms=max(elapsed_ms, 0),
            memory_used_bytes=0,
        )

    @staticmethod
    def timed_out(timeout_ms: int, logs: Optional[DemuxedLogs] = None) -> ExecutionResult:
        """Deadline won the race. Partial stdout is kept when it was drained."""
        return ExecutionResult(
            success=False,
            outcome=ExecutionOutcome.TIMED_OUT,
            output=OutputProcessor.sanitize_output(logs.stdout) if logs else "",
            error=TIMEOUT_MESSAGE,
            exit_code=None,
            execution_time_ms=timeout_ms,
        )

    @staticmethod
    def failed(outcome: ExecutionOutcome, message: str, elapsed_ms: int = 0) -> ExecutionResult:
        """Execution never produced a program outcome."""
        return ExecutionResult(
            success=False,
            outcome=outcome,
            error=message,
            exit_code=None,
            execution_time_ms=max(elapsed_ms, 0),
        )

"""Execution data models for the code execution engine."""

# Standard library imports
from enum import Enum
from typing import Optional

# Third-party imports
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Local application imports
from ..config import settings


class ExecutionOutcome(str, Enum):
    """How an execution ended."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    UNSUPPORTED_LANGUAGE = "unsupported_language"
    IMAGE_UNAVAILABLE = "image_unavailable"
    RUNTIME_FAILURE = "runtime_failure"


class ExecutionState(str, Enum):
    """Lifecycle of a single supervised execution."""

    CREATED = "created"
    STARTED = "started"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FINALIZED = "finalized"


class ExecutionRequest(BaseModel):
    """Request model for code execution.

    Accepts both the camelCase wire names (``timeoutMs``, ``cpuQuota``,
    ``memoryLimitBytes``, ``input``) and the snake_case field names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: str = Field(..., description="Source code to execute")
    language: str = Field(..., description="Language name, matched case-insensitively")
    stdin: str = Field(default="", alias="input", description="Text fed to the program's stdin")
    timeout_ms: int = Field(
        default_factory=lambda: settings.default_timeout_ms,
        gt=0,
        description="Wall-clock limit in milliseconds",
    )
    cpu_quota: float = Field(
        default_factory=lambda: settings.default_cpu_quota,
        ge=0.01,
        description="CPU share as a fraction of one core",
    )
    memory_limit_bytes: int = Field(
        default_factory=lambda: settings.default_memory_limit_bytes,
        ge=6 * 1024 * 1024,
        description="Memory limit in bytes (Docker minimum is 6 MiB)",
    )

    @model_validator(mode="after")
    def validate_limits(self):
        """Keep requested limits under the configured ceilings."""
        if self.timeout_ms > settings.max_timeout_ms:
            raise ValueError(f"timeoutMs cannot exceed {settings.max_timeout_ms}")
        if self.cpu_quota > settings.max_cpus:
            raise ValueError(f"cpuQuota cannot exceed {settings.max_cpus}")
        if self.memory_limit_bytes > settings.max_memory_limit_bytes:
            raise ValueError(
                f"memoryLimitBytes cannot exceed {settings.max_memory_limit_bytes}"
            )
        return self


class ExecutionResult(BaseModel):
    """Result of one execution. Produced once, never mutated."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, use_enum_values=True
    )

    success: bool
    outcome: ExecutionOutcome
    output: str = Field(default="", description="Captured stdout")
    error: str = Field(default="", description="Captured stderr or the failure reason")
    exit_code: Optional[int] = Field(default=None, description="Omitted unless the program exited")
    execution_time_ms: int = Field(default=0, ge=0)
    memory_used_bytes: int = Field(default=0, ge=0, description="Best-effort, 0 when unmeasured")

"""Resource limits configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class ResourcesConfig(BaseSettings):
    """Per-execution resource defaults and ceilings."""

    # Execution Limits
    default_timeout_ms: int = Field(default=5000, ge=100)
    max_timeout_ms: int = Field(default=60000, ge=1000, le=600000)
    default_cpu_quota: float = Field(
        default=0.5,
        gt=0.0,
        le=16.0,
        description="Fraction of one CPU core granted when the request omits it",
    )
    max_cpus: float = Field(default=4.0, ge=0.5, le=16.0)
    default_memory_limit_bytes: int = Field(default=256 * 1024 * 1024, ge=6 * 1024 * 1024)
    max_memory_limit_bytes: int = Field(default=2048 * 1024 * 1024, ge=64 * 1024 * 1024)
    max_pids: int = Field(default=128, ge=16, le=4096)
    max_output_bytes: int = Field(default=64 * 1024, ge=1024)

    # Concurrency
    max_concurrent_executions: int = Field(default=10, ge=1, le=200)
    kill_grace_seconds: float = Field(default=2.0, ge=0.1, le=30.0)

    class Config:
        env_prefix = ""
        extra = "ignore"

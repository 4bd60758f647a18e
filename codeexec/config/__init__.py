"""Configuration management for the code execution engine.

This module provides a unified Settings class with flat, environment-driven
fields and grouped read-only views over them.

Usage:
    from codeexec.config import settings

    # Access grouped settings
    settings.docker.timeout
    settings.resources.default_timeout_ms

    # Or the flat fields
    settings.docker_timeout
    settings.default_timeout_ms

Language profiles live in ``codeexec.config.languages`` and are imported from
there directly.
"""

import os
import tempfile
from typing import Any, Dict, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Import grouped configurations
from .api import APIConfig
from .docker import DockerConfig
from .logging import LoggingConfig
from .resources import ResourcesConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    # API Configuration
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_debug: bool = Field(default=False)

    # Docker Configuration
    docker_base_url: str | None = Field(
        default=None,
        description="Container runtime endpoint (unset = DOCKER_HOST or the default socket)",
    )
    docker_timeout: int = Field(
        default=60,
        ge=10,
        description="Request timeout in seconds for calls to the container runtime",
    )
    docker_reconnect_interval: float = Field(
        default=5.0,
        ge=0.0,
        description="Seconds before a failed Docker connect is attempted again",
    )
    docker_security_opt: List[str] = Field(default_factory=lambda: ["no-new-privileges:true"])
    docker_cap_drop: List[str] = Field(default_factory=lambda: ["ALL"])
    tmpfs_size_mb: int = Field(default=256, ge=16, le=4096)
    container_label_prefix: str = Field(default="com.code-execution")
    container_code_dir: str = Field(default="/app/code")
    container_user: str | None = Field(
        default="65534:65534",
        description="uid:gid the submission runs as (unset = image default)",
    )

    # Workspace Configuration
    workspace_root: str = Field(
        default_factory=tempfile.gettempdir,
        description="Host directory under which per-execution workspaces are created",
    )

    # Resource Limits - Execution
    default_timeout_ms: int = Field(default=5000, ge=100)
    max_timeout_ms: int = Field(default=60000, ge=1000, le=600000)
    default_cpu_quota: float = Field(default=0.5, gt=0.0, le=16.0)
    max_cpus: float = Field(
        default=4.0,
        ge=0.5,
        le=16.0,
        description="Maximum CPU cores a single execution may request",
    )
    default_memory_limit_bytes: int = Field(default=256 * 1024 * 1024, ge=6 * 1024 * 1024)
    max_memory_limit_bytes: int = Field(default=2048 * 1024 * 1024, ge=64 * 1024 * 1024)
    max_pids: int = Field(
        default=128,
        ge=16,
        le=4096,
        description="Per-container process limit (cgroup pids_limit). Prevents fork bombs.",
    )
    max_output_bytes: int = Field(default=64 * 1024, ge=1024)

    # Concurrency
    max_concurrent_executions: int = Field(default=10, ge=1, le=200)
    kill_grace_seconds: float = Field(
        default=2.0,
        ge=0.1,
        le=30.0,
        description="How long to wait for output to drain after a container is killed",
    )

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: str | None = Field(default=None)
    log_max_size_mb: int = Field(default=100, ge=1)
    log_backup_count: int = Field(default=5, ge=1)
    log_library_level: str = Field(
        default="WARNING", description="Level for docker, urllib3 and uvicorn.access loggers"
    )

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is one the logging module understands."""
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Only json and console renderers exist."""
        if v.lower() not in {"json", "console"}:
            raise ValueError("log_format must be 'json' or 'console'")
        return v.lower()

    @field_validator("container_code_dir")
    @classmethod
    def validate_code_dir(cls, v):
        """The in-container code directory must be absolute."""
        if not v.startswith("/"):
            raise ValueError("container_code_dir must be an absolute path")
        return v.rstrip("/") or "/"

    @model_validator(mode="after")
    def validate_limits(self):
        """Defaults must fit under their ceilings."""
        if self.default_timeout_ms > self.max_timeout_ms:
            raise ValueError("default_timeout_ms cannot exceed max_timeout_ms")
        if self.default_cpu_quota > self.max_cpus:
            raise ValueError("default_cpu_quota cannot exceed max_cpus")
        if self.default_memory_limit_bytes > self.max_memory_limit_bytes:
            raise ValueError("default_memory_limit_bytes cannot exceed max_memory_limit_bytes")
        return self

    # ========================================================================
    # GROUPED CONFIG ACCESS
    # ========================================================================

    @property
    def api(self) -> APIConfig:
        """Access API configuration group."""
        return APIConfig(
            api_host=self.api_host,
            api_port=self.api_port,
            api_debug=self.api_debug,
        )

    @property
    def docker(self) -> DockerConfig:
        """Access Docker configuration group."""
        return DockerConfig(
            docker_base_url=self.docker_base_url,
            docker_timeout=self.docker_timeout,
            docker_reconnect_interval=self.docker_reconnect_interval,
            docker_security_opt=self.docker_security_opt,
            docker_cap_drop=self.docker_cap_drop,
            tmpfs_size_mb=self.tmpfs_size_mb,
            container_label_prefix=self.container_label_prefix,
            container_code_dir=self.container_code_dir,
            container_user=self.container_user,
        )

    @property
    def resources(self) -> ResourcesConfig:
        """Access resources configuration group."""
        return ResourcesConfig(
            default_timeout_ms=self.default_timeout_ms,
            max_timeout_ms=self.max_timeout_ms,
            default_cpu_quota=self.default_cpu_quota,
            max_cpus=self.max_cpus,
            default_memory_limit_bytes=self.default_memory_limit_bytes,
            max_memory_limit_bytes=self.max_memory_limit_bytes,
            max_pids=self.max_pids,
            max_output_bytes=self.max_output_bytes,
            max_concurrent_executions=self.max_concurrent_executions,
            kill_grace_seconds=self.kill_grace_seconds,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            log_max_size_mb=self.log_max_size_mb,
            log_backup_count=self.log_backup_count,
            log_library_level=self.log_library_level,
        )

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def get_image_for_language(self, language: str, default: str) -> str:
        """Get container image for a language.

        A ``LANG_IMAGE_<LANGUAGE>`` environment variable (e.g.
        ``LANG_IMAGE_PYTHON=python:3.12-slim``) overrides the registry image.
        """
        return os.getenv(f"LANG_IMAGE_{language.upper()}") or default

    def get_configuration_summary(self) -> Dict[str, Any]:
        """Non-secret view of the active configuration for startup logs."""
        return {
            "docker_base_url": self.docker_base_url or "environment default",
            "docker_timeout": self.docker_timeout,
            "workspace_root": self.workspace_root,
            "default_timeout_ms": self.default_timeout_ms,
            "max_timeout_ms": self.max_timeout_ms,
            "default_cpu_quota": self.default_cpu_quota,
            "default_memory_limit_bytes": self.default_memory_limit_bytes,
            "max_concurrent_executions": self.max_concurrent_executions,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    # Grouped configs
    "APIConfig",
    "DockerConfig",
    "ResourcesConfig",
    "LoggingConfig",
]

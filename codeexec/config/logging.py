"""Logging configuration."""

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class LoggingConfig(BaseSettings):
    """Where engine logs go and how they are rendered."""

    level: str = Field(default="INFO", alias="log_level")
    format: str = Field(default="json", alias="log_format")
    file: str | None = Field(default=None, alias="log_file")
    max_size_mb: int = Field(default=100, ge=1, alias="log_max_size_mb")
    backup_count: int = Field(default=5, ge=1, alias="log_backup_count")
    library_level: str = Field(default="WARNING", alias="log_library_level")

    @field_validator("level", "library_level")
    @classmethod
    def normalize_level(cls, v):
        return v.upper()

    @property
    def level_number(self) -> int:
        return getattr(logging, self.level, logging.INFO)

    @property
    def library_level_number(self) -> int:
        return getattr(logging, self.library_level, logging.WARNING)

    @property
    def max_bytes(self) -> int:
        return self.max_size_mb * 1024 * 1024

    @property
    def use_json(self) -> bool:
        return self.format.lower() == "json"

    class Config:
        env_prefix = ""
        extra = "ignore"

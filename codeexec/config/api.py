"""HTTP surface configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """Settings for serving the execute endpoint with uvicorn."""

    host: str = Field(default="0.0.0.0", alias="api_host")
    port: int = Field(default=8000, ge=1, le=65535, alias="api_port")
    debug: bool = Field(default=False, alias="api_debug")
    app: str = "codeexec.main:app"

    @property
    def uvicorn_options(self) -> dict:
        """Keyword arguments for ``uvicorn.run``; logging stays with structlog."""
        return {
            "host": self.host,
            "port": self.port,
            "reload": self.debug,
            "log_config": None,
        }

    class Config:
        env_prefix = ""
        extra = "ignore"

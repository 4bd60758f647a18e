"""Docker engine and sandbox hardening configuration."""

from typing import Any, Dict, List
from pydantic import Field
from pydantic_settings import BaseSettings


class DockerConfig(BaseSettings):
    """Connection to the engine plus the options every sandbox is created with."""

    base_url: str | None = Field(default=None, alias="docker_base_url")
    timeout: int = Field(default=60, ge=10, alias="docker_timeout")
    reconnect_interval: float = Field(default=5.0, ge=0.0, alias="docker_reconnect_interval")
    security_opt: List[str] = Field(
        default_factory=lambda: ["no-new-privileges:true"], alias="docker_security_opt"
    )
    cap_drop: List[str] = Field(default_factory=lambda: ["ALL"], alias="docker_cap_drop")
    tmpfs_size_mb: int = Field(default=256, ge=16, le=4096)
    label_prefix: str = Field(default="com.code-execution", alias="container_label_prefix")
    code_dir: str = Field(default="/app/code", alias="container_code_dir")
    user: str | None = Field(default="65534:65534", alias="container_user")

    @property
    def tmpfs(self) -> Dict[str, str]:
        # exec: compiled binaries run from /tmp
        return {"/tmp": f"rw,exec,nosuid,size={self.tmpfs_size_mb}m"}

    def hardening_options(self) -> Dict[str, Any]:
        """``containers.create`` options that do not depend on the request."""
        options: Dict[str, Any] = {
            "network_mode": "none",
            "security_opt": list(self.security_opt),
            "cap_drop": list(self.cap_drop),
            "tmpfs": self.tmpfs,
            "stdin_open": False,
            "tty": False,
        }
        if self.user:
            options["user"] = self.user
        return options

    class Config:
        env_prefix = ""
        extra = "ignore"

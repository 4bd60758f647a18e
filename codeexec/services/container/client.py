"""Docker client factory and initialization."""

import threading
import time
from typing import Optional

import docker
import structlog
from docker.errors import DockerException
from requests.exceptions import RequestException

from ...config import settings

logger = structlog.get_logger(__name__)


class DockerClientFactory:
    """Creates the single Docker client shared by all in-flight executions.

    docker-py clients keep a pooled HTTP session and may be used from several
    worker threads at once, so one instance serves the whole process.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        reconnect_interval: Optional[float] = None,
    ):
        """Initialize without touching the engine; the client is created on first use.

        After a failed connect, later calls try again once
        ``reconnect_interval`` seconds have passed.
        """
        self.base_url = base_url if base_url is not None else settings.docker_base_url
        self.timeout = timeout or settings.docker_timeout
        self.client: Optional[docker.DockerClient] = None
        self._initialization_error: Optional[str] = None
        self._initialization_attempted: bool = False
        self.reconnect_interval = (
            reconnect_interval
            if reconnect_interval is not None
            else settings.docker_reconnect_interval
        )
        self._last_attempt: float = 0.0
        self._lock = threading.Lock()

    def _ensure_client(self) -> bool:
        """Ensure Docker client is initialized. Returns True if successful."""
        if self.client is not None:
            return True

        with self._lock:
            if self.client is not None:
                return True
            if self._initialization_attempted and self._initialization_error:
                if time.monotonic() - self._last_attempt < self.reconnect_interval:
                    return False
                logger.info("Retrying Docker connection", previous_error=self._initialization_error)

            self._initialization_attempted = True
            self._last_attempt = time.monotonic()
            try:
                if self.base_url:
                    logger.info("Connecting to Docker", base_url=self.base_url)
                    client = docker.DockerClient(base_url=self.base_url, timeout=self.timeout)
                else:
                    logger.info("Connecting to Docker from environment")
                    client = docker.from_env(timeout=self.timeout)

                version_info = client.version()
                logger.info(
                    "Docker connection successful",
                    server_version=version_info.get("Version", "unknown"),
                    api_version=version_info.get("ApiVersion", "unknown"),
                )
                self.client = client
                self._initialization_error = None
                return True

            except (DockerException, RequestException) as e:
                logger.error("Failed to create Docker client", error=str(e))
                self._initialization_error = str(e)
                self.client = None
                return False

    def is_available(self) -> bool:
        """Check if Docker is available."""
        return self._ensure_client()

    def ping(self) -> bool:
        """Round-trip to the engine; False on any connection problem."""
        if not self._ensure_client():
            return False
        try:
            return bool(self.client.ping())
        except (DockerException, RequestException) as e:
            logger.warning("Docker ping failed", error=str(e))
            return False

    def get_initialization_error(self) -> Optional[str]:
        """Get Docker initialization error if any."""
        return self._initialization_error

    def reset_initialization(self) -> None:
        """Reset initialization state to allow retry."""
        with self._lock:
            self._initialization_attempted = False
            self._initialization_error = None
            if self.client:
                try:
                    self.client.close()
                except DockerException as e:
                    logger.warning("Error closing Docker client during reset", error=str(e))
                self.client = None
        logger.info("Docker client initialization state reset")

    def get_client(self) -> Optional[docker.DockerClient]:
        """Get the Docker client, ensuring it's initialized."""
        if self._ensure_client():
            return self.client
        return None

    def close(self):
        """Close Docker client connection."""
        try:
            if self.client is not None:
                self.client.close()
        except DockerException as e:
            logger.error("Error closing Docker client", error=str(e))
        finally:
            self.client = None

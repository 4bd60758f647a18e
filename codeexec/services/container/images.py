"""Image provisioning: make sure a language image exists locally."""

import asyncio
from typing import Optional

import structlog
from docker.errors import DockerException
from requests.exceptions import RequestException

from ...models.errors import ImageUnavailableError
from .client import DockerClientFactory

logger = structlog.get_logger(__name__)


class ImageProvisioner:
    """Pulls container images on demand.

    The first execution per language per host pays the pull latency; later
    ones find the image locally and never touch the network.
    """

    def __init__(self, client_factory: Optional[DockerClientFactory] = None):
        self._client_factory = client_factory or DockerClientFactory()

    @property
    def client(self):
        """Get the Docker client."""
        return self._client_factory.get_client()

    def is_present(self, image: str) -> bool:
        """Check the local image store for an exact reference match."""
        try:
            return bool(self.client.images.list(filters={"reference": image}))
        except (DockerException, RequestException) as e:
            raise ImageUnavailableError(image, reason=f"image lookup failed: {e}") from e

    async def ensure(self, image: str) -> None:
        """Return once ``image`` is available locally, pulling it if needed.

        Raises:
            ImageUnavailableError: Docker is unreachable or the pull failed.
                Pulls are not retried.
        """
        loop = asyncio.get_event_loop()
        if await loop.run_in_executor(None, self._client_factory.get_client) is None:
            raise ImageUnavailableError(
                image, reason=self._client_factory.get_initialization_error() or "Docker not available"
            )

        if await loop.run_in_executor(None, self.is_present, image):
            logger.debug("Image already present locally", image=image)
            return

        logger.info("Image not found locally, pulling", image=image)
        await loop.run_in_executor(None, self._pull, image)
        logger.info("Successfully pulled image", image=image)

    def _pull(self, image: str) -> None:
        """Blocking pull that follows the progress stream to completion."""
        try:
            for message in self.client.api.pull(image, stream=True, decode=True):
                if "error" in message:
                    reason = message.get("errorDetail", {}).get("message") or message["error"]
                    logger.error("Image pull reported an error", image=image, error=reason)
                    raise ImageUnavailableError(image, reason=reason)
                logger.debug(
                    "Pulling image",
                    image=image,
                    status=message.get("status"),
                    progress=message.get("progress"),
                )
        except (DockerException, RequestException) as e:
            logger.error("Failed to pull image", image=image, error=str(e))
            raise ImageUnavailableError(image, reason=str(e)) from e

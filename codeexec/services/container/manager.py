"""Container lifecycle management."""

import asyncio
import shlex
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from docker.errors import APIError, DockerException, NotFound
from requests.exceptions import RequestException

from ...config import settings
from ...config.languages import LanguageProfile
from ...models.errors import RuntimeOperationFailedError
from .client import DockerClientFactory

logger = structlog.get_logger(__name__)

RUNTIME_ERRORS = (DockerException, RequestException, OSError)

STDIN_FILENAME = ".stdin"

# Spare control workers for kill/remove of executions already past their slot
CONTROL_HEADROOM = 4


class ContainerState(str, Enum):
    """Where a sandbox container is in its lifecycle."""

    CREATED = "created"
    RUNNING = "running"
    EXITED = "exited"
    KILLED = "killed"
    REMOVED = "removed"


@dataclass
class ContainerHandle:
    """One execution's container plus the streams opened against it."""

    id: str
    name: str
    state: ContainerState = ContainerState.CREATED
    exit_code: Optional[int] = None
    output_socket: Any = field(default=None, repr=False)
    wait_response: Any = field(default=None, repr=False)

    @property
    def short_id(self) -> str:
        return self.id[:12]


class ContainerManager:
    """Thin async interface over the Docker engine's container lifecycle.

    Blocking docker-py calls run on two thread pools owned by the manager.
    The stream pool holds the calls that last as long as a container does
    (the exit wait and the output read, one of each per execution). The
    control pool serves short calls such as create, start and kill, so a
    kill never queues behind a blocked wait.
    """

    def __init__(
        self,
        client_factory: Optional[DockerClientFactory] = None,
        max_concurrent_executions: Optional[int] = None,
    ):
        """Initialize the container manager.

        Args:
            client_factory: Shared Docker client factory
            max_concurrent_executions: Executions this manager must serve at
                once; sizes both thread pools
        """
        self._client_factory = client_factory or DockerClientFactory()
        limit = max_concurrent_executions or settings.max_concurrent_executions
        self._stream_executor = ThreadPoolExecutor(
            max_workers=2 * limit, thread_name_prefix="codeexec-stream"
        )
        self._control_executor = ThreadPoolExecutor(
            max_workers=limit + CONTROL_HEADROOM, thread_name_prefix="codeexec-control"
        )

    @property
    def client(self):
        """Get the Docker client."""
        return self._client_factory.get_client()

    @property
    def client_factory(self) -> DockerClientFactory:
        return self._client_factory

    def get_initialization_error(self) -> Optional[str]:
        """Get Docker initialization error if any."""
        return self._client_factory.get_initialization_error()

    async def connect(self):
        """Return the Docker client, connecting off the event loop if needed.

        Raises:
            RuntimeOperationFailedError: the engine cannot be reached. A later
                call retries once the factory's reconnect interval has passed.
        """
        loop = asyncio.get_event_loop()
        client = await loop.run_in_executor(
            self._control_executor, self._client_factory.get_client
        )
        if client is None:
            raise RuntimeOperationFailedError(
                "connect", self.get_initialization_error() or "Docker not available"
            )
        return client

    async def _run(
        self,
        operation: str,
        handle: Optional[ContainerHandle],
        func,
        *args,
        streaming: bool = False,
    ):
        """Run a blocking runtime call on a manager pool, normalizing failures.

        ``streaming`` calls block until the container exits and go to the
        stream pool; everything else goes to the control pool.
        """
        await self.connect()
        executor = self._stream_executor if streaming else self._control_executor
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(executor, func, *args)
        except RUNTIME_ERRORS as e:
            logger.error(
                "Container operation failed",
                operation=operation,
                container_id=handle.short_id if handle else None,
                error=str(e),
            )
            raise RuntimeOperationFailedError(operation, str(e)) from e

    def build_command(self, profile: LanguageProfile) -> list:
        """Shell command that runs the submission with the workspace stdin file."""
        stdin_path = f"{settings.container_code_dir}/{STDIN_FILENAME}"
        return ["sh", "-c", f"{profile.run_command} < {shlex.quote(stdin_path)}"]

    def build_container_config(
        self,
        profile: LanguageProfile,
        image: str,
        workspace_path: Path,
        cpu_quota: float,
        memory_limit_bytes: int,
        execution_id: str,
    ) -> Dict[str, Any]:
        """Keyword arguments for ``containers.create``.

        Limits are mandatory: CPU as nano-CPUs, memory (and swap) in bytes,
        a pids ceiling, and no network.
        """
        docker = settings.docker
        prefix = docker.label_prefix
        labels = {
            f"{prefix}.managed": "true",
            f"{prefix}.language": profile.language.value,
            f"{prefix}.execution-id": execution_id,
            f"{prefix}.created-at": datetime.now(timezone.utc).isoformat(),
        }

        config: Dict[str, Any] = {
            "image": image,
            "command": self.build_command(profile),
            "name": f"codeexec-{execution_id[:12]}-{uuid.uuid4().hex[:8]}",
            "working_dir": docker.code_dir,
            "volumes": {str(workspace_path): {"bind": docker.code_dir, "mode": "ro"}},
            "environment": dict(profile.environment),
            "labels": labels,
            "nano_cpus": int(cpu_quota * 1e9),
            "mem_limit": memory_limit_bytes,
            "memswap_limit": memory_limit_bytes,
            "pids_limit": settings.max_pids,
            "auto_remove": True,
            **docker.hardening_options(),
        }
        return config

    async def create(
        self,
        profile: LanguageProfile,
        image: str,
        workspace_path: Path,
        cpu_quota: float,
        memory_limit_bytes: int,
        execution_id: str,
    ) -> ContainerHandle:
        """Create (but do not start) a sandbox container."""
        config = self.build_container_config(
            profile, image, workspace_path, cpu_quota, memory_limit_bytes, execution_id
        )
        container = await self._run(
            "create", None, lambda: self.client.containers.create(**config)
        )
        handle = ContainerHandle(id=container.id, name=config["name"])
        logger.info(
            "Created container",
            container_id=handle.short_id,
            execution_id=execution_id,
            image=image,
            nano_cpus=config["nano_cpus"],
            mem_limit=memory_limit_bytes,
        )
        return handle

    async def attach(self, handle: ContainerHandle) -> None:
        """Open the raw output stream before start so no output is missed."""

        def _attach():
            return self.client.api.attach_socket(
                handle.id, params={"stdout": 1, "stderr": 1, "stream": 1, "logs": 1}
            )

        handle.output_socket = await self._run("attach", handle, _attach)

    async def start(self, handle: ContainerHandle, wait_timeout: Optional[float] = None) -> None:
        """Register an exit watch, then start the container.

        The wait is registered first because an auto-removed container that
        exits quickly may be gone before a later wait request arrives.
        """

        def _register_wait():
            # APIClient.wait has no way to return before the wait completes.
            # A streamed POST registers the wait and leaves the body to be
            # read later, so the private request helpers are used here.
            api = self.client.api
            response = api._post(
                api._url("/containers/{0}/wait", handle.id),
                params={"condition": "next-exit"},
                timeout=wait_timeout,
                stream=True,
            )
            api._raise_for_status(response)
            return response

        handle.wait_response = await self._run("wait", handle, _register_wait)
        await self._run("start", handle, lambda: self.client.api.start(handle.id))
        handle.state = ContainerState.RUNNING
        logger.debug("Started container", container_id=handle.short_id)

    async def wait(self, handle: ContainerHandle, timeout: Optional[float] = None) -> int:
        """Suspend until the container's main process exits; return its exit code."""

        def _wait() -> Dict[str, Any]:
            if handle.wait_response is not None:
                return handle.wait_response.json()
            return self.client.api.wait(handle.id, timeout=timeout)

        result = await self._run("wait", handle, _wait, streaming=True)
        error = (result.get("Error") or {}).get("Message")
        if error:
            logger.warning("Container wait reported an error", container_id=handle.short_id, error=error)
        handle.exit_code = int(result.get("StatusCode", -1))
        handle.state = ContainerState.EXITED
        return handle.exit_code

    async def kill(self, handle: ContainerHandle) -> None:
        """Kill the container; a container that already exited is not an error."""

        def _kill():
            try:
                self.client.api.kill(handle.id)
            except NotFound:
                logger.debug("Container already gone before kill", container_id=handle.short_id)
            except APIError as e:
                if e.status_code != 409:
                    raise
                logger.debug("Container not running at kill time", container_id=handle.short_id)

        await self._run("kill", handle, _kill)
        handle.state = ContainerState.KILLED
        logger.info("Killed container", container_id=handle.short_id)

    async def remove(self, handle: ContainerHandle) -> None:
        """Force-remove the container unless auto-removal got there first."""

        def _remove():
            try:
                self.client.api.remove_container(handle.id, force=True)
            except NotFound:
                pass
            except APIError as e:
                # 409: removal already in progress
                if e.status_code != 409:
                    raise

        await self._run("remove", handle, _remove)
        handle.state = ContainerState.REMOVED

    async def logs(
        self, handle: ContainerHandle, limit: Optional[int] = None, timeout: Optional[float] = None
    ) -> bytes:
        """Raw multiplexed stdout/stderr bytes, capped at ``limit`` bytes.

        Reads the stream opened by ``attach`` to EOF; the container exiting
        closes it.
        """
        if handle.output_socket is None:
            raise RuntimeOperationFailedError("logs", "output stream not attached")
        if limit is None:
            limit = settings.max_output_bytes * 4

        return await self._run(
            "logs",
            handle,
            self._read_socket,
            handle.output_socket,
            limit,
            timeout,
            streaming=True,
        )

    def _read_socket(self, sock, limit: int, timeout: Optional[float]) -> bytes:
        """Drain a raw attach socket; bytes past ``limit`` are discarded."""
        raw_sock = getattr(sock, "_sock", sock)
        raw_sock.settimeout(timeout)

        chunks = []
        size = 0
        while True:
            try:
                chunk = raw_sock.recv(4096)
            except (TimeoutError, OSError) as e:
                logger.warning("Output stream read stopped early", error=str(e))
                break
            if not chunk:
                break
            if size < limit:
                kept = chunk[: limit - size]
                chunks.append(kept)
                size += len(kept)
        return b"".join(chunks)

    def release(self, handle: ContainerHandle) -> None:
        """Close the streams opened for this container."""
        for resource in (handle.output_socket, handle.wait_response):
            if resource is None:
                continue
            try:
                resource.close()
            except OSError as e:
                logger.debug("Error closing container stream", container_id=handle.short_id, error=str(e))
        handle.output_socket = None
        handle.wait_response = None

    def close(self):
        """Stop the worker pools and close the Docker client connection."""
        self._stream_executor.shutdown(wait=False, cancel_futures=True)
        self._control_executor.shutdown(wait=False, cancel_futures=True)
        self._client_factory.close()

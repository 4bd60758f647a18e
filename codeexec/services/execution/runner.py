"""Code execution runner - drives one submission through a sandbox."""

import asyncio
import time
from typing import Optional

import structlog

from ...config import settings
from ...config.languages import LanguageProfile, get_profile
from ...models import (
    ExecutionOutcome,
    ExecutionRequest,
    ExecutionResult,
    ExecutionState,
)
from ...models.errors import (
    ExecutionEngineError,
    ExecutionEngineException,
    ExecutionTimedOutError,
    ImageUnavailableError,
    RuntimeOperationFailedError,
    UnsupportedLanguageError,
)
from ...utils.id_generator import generate_execution_id
from ..container import ContainerHandle, ContainerManager, ImageProvisioner, demultiplex
from ..container.streams import DemuxedLogs
from .output import ResultAssembler
from .workspace import WorkspaceManager

logger = structlog.get_logger(__name__)


class CodeExecutionRunner:
    """Runs untrusted code to completion in an ephemeral container.

    ``execute`` is the only entry point. Each call owns its workspace and
    container; the Docker client is the only thing shared between calls.
    """

    def __init__(
        self,
        container_manager: Optional[ContainerManager] = None,
        image_provisioner: Optional[ImageProvisioner] = None,
        workspace_manager: Optional[WorkspaceManager] = None,
        max_concurrent_executions: Optional[int] = None,
    ):
        """Initialize the execution runner.

        Args:
            container_manager: Container runtime client (created if omitted)
            image_provisioner: Image provisioner sharing the manager's client
            workspace_manager: Host workspace manager
            max_concurrent_executions: In-flight ceiling for this runner
        """
        limit = max_concurrent_executions or settings.max_concurrent_executions
        self.container_manager = container_manager or ContainerManager(
            max_concurrent_executions=limit
        )
        self.image_provisioner = image_provisioner or ImageProvisioner(
            self.container_manager.client_factory
        )
        self.workspace_manager = workspace_manager or WorkspaceManager()
        self._slots = asyncio.Semaphore(limit)

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Execute a submission and report how it ended.

        Unsupported languages, missing images, runtime failures and timeouts
        come back as results. Anything unexpected is logged and raised as
        ``ExecutionEngineError``.
        """
        execution_id = generate_execution_id()
        log = logger.bind(execution_id=execution_id[:8], language=request.language)

        try:
            profile = get_profile(request.language)
        except UnsupportedLanguageError as e:
            log.warning("Rejected execution request", reason=e.message)
            return ResultAssembler.failed(ExecutionOutcome.UNSUPPORTED_LANGUAGE, e.message)

        log.info(
            "Starting code execution",
            code_length=len(request.code),
            stdin_length=len(request.stdin),
            timeout_ms=request.timeout_ms,
            cpu_quota=request.cpu_quota,
            memory_limit_bytes=request.memory_limit_bytes,
        )

        async with self._slots:
            try:
                result = await self._execute(execution_id, profile, request, log)
            except ImageUnavailableError as e:
                log.error("Execution failed: image unavailable", image=e.image, error=e.message)
                return ResultAssembler.failed(
                    ExecutionOutcome.IMAGE_UNAVAILABLE,
                    f"Container image for {profile.language.value} is unavailable.",
                )
            except RuntimeOperationFailedError as e:
                log.error(
                    "Execution failed: container runtime error",
                    operation=e.operation,
                    error=e.message,
                    code_length=len(request.code),
                    timeout_ms=request.timeout_ms,
                )
                return ResultAssembler.failed(
                    ExecutionOutcome.RUNTIME_FAILURE,
                    f"Execution failed: container {e.operation} error.",
                )
            except ExecutionEngineException:
                raise
            except Exception as e:
                log.exception("Unexpected error during code execution")
                raise ExecutionEngineError() from e

        log.info(
            "Code execution finished",
            outcome=result.outcome,
            exit_code=result.exit_code,
            execution_time_ms=result.execution_time_ms,
        )
        return result

    async def _execute(
        self, execution_id: str, profile: LanguageProfile, request: ExecutionRequest, log
    ) -> ExecutionResult:
        """Provision, supervise and finalize; the workspace outlives the container."""
        await self.container_manager.connect()

        image = settings.get_image_for_language(profile.language.value, profile.image)

        with self.workspace_manager.acquire(profile, request.code, request.stdin) as workspace:
            await self.image_provisioner.ensure(image)
            handle = await self.container_manager.create(
                profile,
                image,
                workspace.path,
                request.cpu_quota,
                request.memory_limit_bytes,
                execution_id,
            )
            log = log.bind(container_id=handle.short_id)
            log.debug("Execution state changed", state=ExecutionState.CREATED.value)
            try:
                return await self._supervise(handle, request, log)
            except BaseException:
                await self._terminate(handle, log)
                raise
            finally:
                self.container_manager.release(handle)
                log.debug("Execution state changed", state=ExecutionState.FINALIZED.value)

    async def _supervise(
        self, handle: ContainerHandle, request: ExecutionRequest, log
    ) -> ExecutionResult:
        """Start the container and race its exit against the deadline."""
        timeout_s = request.timeout_ms / 1000
        stream_timeout = timeout_s + settings.kill_grace_seconds + settings.docker_timeout

        await self.container_manager.attach(handle)
        await self.container_manager.start(handle, wait_timeout=stream_timeout)
        started = time.monotonic()
        log.debug("Execution state changed", state=ExecutionState.STARTED.value)

        output_task = asyncio.ensure_future(
            self.container_manager.logs(handle, timeout=stream_timeout)
        )
        try:
            try:
                exit_code = await self._race(handle, request.timeout_ms)
            except ExecutionTimedOutError as e:
                log.info("Execution timed out", timeout_ms=e.timeout_ms)
                log.debug("Execution state changed", state=ExecutionState.TIMED_OUT.value)
                await self._terminate(handle, log)
                partial = await self._drain(output_task, settings.kill_grace_seconds)
                return ResultAssembler.timed_out(e.timeout_ms, partial)

            elapsed_ms = int((time.monotonic() - started) * 1000)
            log.debug(
                "Execution state changed",
                state=ExecutionState.COMPLETED.value,
                exit_code=exit_code,
            )
            try:
                raw = await asyncio.wait_for(output_task, timeout=settings.docker_timeout)
            except asyncio.TimeoutError:
                raise RuntimeOperationFailedError("logs", "output stream did not close") from None

            logs = demultiplex(raw)
            if logs.truncated:
                log.debug("Output stream ended mid-frame", raw_bytes=len(raw))
            return ResultAssembler.completed(exit_code, logs, elapsed_ms)
        finally:
            if not output_task.done():
                output_task.cancel()

    async def _race(self, handle: ContainerHandle, timeout_ms: int) -> int:
        """Exit code if the container exits first; ExecutionTimedOutError otherwise.

        The losing wait is abandoned, not awaited further.
        """
        try:
            return await asyncio.wait_for(
                self.container_manager.wait(handle), timeout=timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            raise ExecutionTimedOutError(timeout_ms) from None

    async def _terminate(self, handle: ContainerHandle, log) -> None:
        """Kill and remove a container, logging rather than raising failures."""
        try:
            await self.container_manager.kill(handle)
        except RuntimeOperationFailedError as e:
            log.error("Failed to kill container", error=e.message)
        try:
            await self.container_manager.remove(handle)
        except RuntimeOperationFailedError as e:
            log.error("Failed to remove container", error=e.message)

    async def _drain(self, output_task: asyncio.Future, grace: float) -> Optional[DemuxedLogs]:
        """Collect whatever output a killed container left, within ``grace`` seconds."""
        try:
            raw = await asyncio.wait_for(output_task, timeout=grace)
        except (asyncio.TimeoutError, RuntimeOperationFailedError):
            return None
        return demultiplex(raw)

    def close(self) -> None:
        """Close the underlying Docker client."""
        self.container_manager.close()

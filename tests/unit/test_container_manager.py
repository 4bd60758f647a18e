"""Unit tests for the container manager."""

import socket
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from docker.errors import APIError, NotFound

from codeexec.config import settings
from codeexec.models.errors import RuntimeOperationFailedError
from codeexec.services.container.manager import (
    ContainerHandle,
    ContainerManager,
    ContainerState,
)


class FakeSocket:
    """Attach socket returning canned chunks."""

    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.timeout = None
        self.closed = False

    def settimeout(self, timeout):
        self.timeout = timeout

    def recv(self, size):
        if not self.chunks:
            return b""
        chunk = self.chunks.pop(0)
        if isinstance(chunk, Exception):
            raise chunk
        return chunk

    def close(self):
        self.closed = True


def conflict(message="conflict"):
    return APIError(message, response=MagicMock(status_code=409))


@pytest.fixture
def manager(mock_client_factory):
    manager = ContainerManager(mock_client_factory)
    yield manager
    manager.close()


@pytest.fixture
def handle():
    return ContainerHandle(id="0123456789abcdef0123", name="codeexec-test")


class TestBuildContainerConfig:
    """Tests for ContainerManager.build_container_config."""

    @pytest.fixture
    def config(self, manager, python_profile):
        return manager.build_container_config(
            python_profile,
            "python:3.11-slim",
            Path("/tmp/codeexec-abc"),
            0.5,
            128 * 1024 * 1024,
            "abcdefghijklmnopqrstu",
        )

    def test_workspace_is_mounted_read_only(self, config):
        assert config["volumes"] == {
            "/tmp/codeexec-abc": {"bind": settings.container_code_dir, "mode": "ro"}
        }
        assert config["working_dir"] == settings.container_code_dir

    def test_resource_limits(self, config):
        assert config["nano_cpus"] == 500_000_000
        assert config["mem_limit"] == 128 * 1024 * 1024
        assert config["memswap_limit"] == 128 * 1024 * 1024
        assert config["pids_limit"] == settings.max_pids

    def test_isolation(self, config):
        assert config["network_mode"] == "none"
        assert config["auto_remove"] is True
        assert config["cap_drop"] == ["ALL"]
        assert "no-new-privileges:true" in config["security_opt"]
        assert config["tty"] is False
        assert "/tmp" in config["tmpfs"]

    def test_command_redirects_stdin_file(self, config):
        assert config["command"][:2] == ["sh", "-c"]
        assert config["command"][2].startswith("python solution.py < ")
        assert config["command"][2].endswith(f"{settings.container_code_dir}/.stdin")

    def test_labels_and_name(self, config):
        prefix = settings.container_label_prefix
        assert config["labels"][f"{prefix}.managed"] == "true"
        assert config["labels"][f"{prefix}.language"] == "python"
        assert config["labels"][f"{prefix}.execution-id"] == "abcdefghijklmnopqrstu"
        assert config["name"].startswith("codeexec-abcdefghijkl-")

    def test_profile_environment(self, config):
        assert config["environment"]["PYTHONUNBUFFERED"] == "1"

    def test_fractional_cpu(self, manager, python_profile):
        config = manager.build_container_config(
            python_profile, "img", Path("/w"), 1.25, 64 * 1024 * 1024, "id"
        )
        assert config["nano_cpus"] == 1_250_000_000


class TestLifecycle:
    """Tests for create, attach, start and wait."""

    @pytest.mark.asyncio
    async def test_create(self, manager, mock_docker, python_profile):
        handle = await manager.create(
            python_profile, "python:3.11-slim", Path("/w"), 0.5, 64 * 1024 * 1024, "execid"
        )

        assert handle.id == "0123456789abcdef0123456789abcdef"
        assert handle.state == ContainerState.CREATED
        kwargs = mock_docker.containers.create.call_args.kwargs
        assert kwargs["image"] == "python:3.11-slim"
        assert kwargs["network_mode"] == "none"

    @pytest.mark.asyncio
    async def test_create_failure_is_wrapped(self, manager, mock_docker, python_profile):
        mock_docker.containers.create.side_effect = APIError("no space left")

        with pytest.raises(RuntimeOperationFailedError) as exc_info:
            await manager.create(python_profile, "img", Path("/w"), 0.5, 64 * 1024 * 1024, "id")

        assert exc_info.value.operation == "create"

    @pytest.mark.asyncio
    async def test_attach(self, manager, mock_docker, handle):
        await manager.attach(handle)

        assert handle.output_socket is mock_docker.api.attach_socket.return_value
        params = mock_docker.api.attach_socket.call_args.kwargs["params"]
        assert params["stream"] == 1 and params["logs"] == 1

    @pytest.mark.asyncio
    async def test_start_registers_wait_first(self, manager, mock_docker, handle):
        calls = []
        mock_docker.api._post.side_effect = lambda *a, **kw: calls.append("wait") or MagicMock()
        mock_docker.api.start.side_effect = lambda *a, **kw: calls.append("start")

        await manager.start(handle, wait_timeout=10)

        assert calls == ["wait", "start"]
        assert mock_docker.api._post.call_args.kwargs["params"] == {"condition": "next-exit"}
        assert mock_docker.api._post.call_args.kwargs["timeout"] == 10
        assert handle.state == ContainerState.RUNNING

    @pytest.mark.asyncio
    async def test_start_failure_is_wrapped(self, manager, mock_docker, handle):
        mock_docker.api.start.side_effect = APIError("OCI runtime error")

        with pytest.raises(RuntimeOperationFailedError) as exc_info:
            await manager.start(handle)

        assert exc_info.value.operation == "start"

    @pytest.mark.asyncio
    async def test_wait_reads_registered_response(self, manager, mock_docker, handle):
        handle.wait_response = MagicMock()
        handle.wait_response.json.return_value = {"StatusCode": 3}

        assert await manager.wait(handle) == 3
        assert handle.exit_code == 3
        assert handle.state == ContainerState.EXITED
        mock_docker.api.wait.assert_not_called()

    @pytest.mark.asyncio
    async def test_wait_without_registration(self, manager, mock_docker, handle):
        mock_docker.api.wait.return_value = {"StatusCode": 0, "Error": None}

        assert await manager.wait(handle, timeout=5) == 0
        mock_docker.api.wait.assert_called_once_with(handle.id, timeout=5)

    @pytest.mark.asyncio
    async def test_docker_unavailable(self, mock_client_factory, handle):
        mock_client_factory.get_client.return_value = None
        mock_client_factory.get_initialization_error.return_value = "connection refused"

        with pytest.raises(RuntimeOperationFailedError) as exc_info:
            await ContainerManager(mock_client_factory).kill(handle)

        assert "connection refused" in exc_info.value.message
        assert exc_info.value.operation == "connect"
        mock_client_factory.get_client.assert_called()

    @pytest.mark.asyncio
    async def test_connect_recovers_after_failure(self, mock_client_factory, mock_docker):
        mock_client_factory.get_client.side_effect = [None, mock_docker]
        mock_client_factory.get_initialization_error.return_value = "connection refused"
        manager = ContainerManager(mock_client_factory)

        with pytest.raises(RuntimeOperationFailedError):
            await manager.connect()

        assert await manager.connect() is mock_docker


class TestTermination:
    """Tests for kill and remove."""

    @pytest.mark.asyncio
    async def test_kill(self, manager, mock_docker, handle):
        await manager.kill(handle)

        mock_docker.api.kill.assert_called_once_with(handle.id)
        assert handle.state == ContainerState.KILLED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [NotFound("gone"), conflict("not running")])
    async def test_kill_tolerates_finished_container(self, manager, mock_docker, handle, error):
        mock_docker.api.kill.side_effect = error

        await manager.kill(handle)

    @pytest.mark.asyncio
    async def test_kill_other_errors_propagate(self, manager, mock_docker, handle):
        mock_docker.api.kill.side_effect = APIError("boom", response=MagicMock(status_code=500))

        with pytest.raises(RuntimeOperationFailedError) as exc_info:
            await manager.kill(handle)

        assert exc_info.value.operation == "kill"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [None, NotFound("gone"), conflict("removal in progress")])
    async def test_remove(self, manager, mock_docker, handle, error):
        mock_docker.api.remove_container.side_effect = error

        await manager.remove(handle)

        mock_docker.api.remove_container.assert_called_once_with(handle.id, force=True)
        assert handle.state == ContainerState.REMOVED


class TestOutput:
    """Tests for logs, _read_socket and release."""

    def test_read_socket_until_eof(self, manager):
        sock = FakeSocket([b"abc", b"def"])

        assert manager._read_socket(sock, limit=100, timeout=5) == b"abcdef"
        assert sock.timeout == 5

    def test_read_socket_caps_at_limit(self, manager):
        sock = FakeSocket([b"abcd", b"efgh", b"ijkl"])

        assert manager._read_socket(sock, limit=6, timeout=None) == b"abcdef"
        assert sock.chunks == []

    def test_read_socket_unwraps_socket_io(self, manager):
        inner = FakeSocket([b"xyz"])
        wrapper = MagicMock()
        wrapper._sock = inner

        assert manager._read_socket(wrapper, limit=100, timeout=None) == b"xyz"

    def test_read_socket_stops_on_timeout(self, manager):
        sock = FakeSocket([b"partial", socket.timeout("timed out"), b"never"])

        assert manager._read_socket(sock, limit=100, timeout=1) == b"partial"

    @pytest.mark.asyncio
    async def test_logs_from_attached_socket(self, manager, handle):
        handle.output_socket = FakeSocket([b"\x01\x00\x00\x00\x00\x00\x00\x01a"])

        assert await manager.logs(handle) == b"\x01\x00\x00\x00\x00\x00\x00\x01a"

    @pytest.mark.asyncio
    async def test_logs_require_attached_stream(self, manager, mock_docker, handle):
        with pytest.raises(RuntimeOperationFailedError) as exc_info:
            await manager.logs(handle)

        assert exc_info.value.operation == "logs"
        mock_docker.api.logs.assert_not_called()

    def test_release_closes_streams(self, manager, handle):
        sock = FakeSocket([])
        response = MagicMock()
        handle.output_socket = sock
        handle.wait_response = response

        manager.release(handle)

        assert sock.closed is True
        response.close.assert_called_once()
        assert handle.output_socket is None
        assert handle.wait_response is None

    def test_release_is_idempotent(self, manager, handle):
        manager.release(handle)
        manager.release(handle)


class TestWorkerPools:
    """Blocking calls run on the manager's own pools, not the loop default."""

    @pytest.mark.asyncio
    async def test_stream_and_control_calls_use_separate_pools(self, manager, mock_docker, handle):
        threads = {}

        def record(name, value=None):
            def _call(*args, **kwargs):
                threads[name] = threading.current_thread().name
                return value

            return _call

        handle.wait_response = MagicMock()
        handle.wait_response.json.side_effect = record("wait", {"StatusCode": 0})
        handle.output_socket = MagicMock()
        handle.output_socket._sock.recv.side_effect = record("logs", b"")
        mock_docker.api.kill.side_effect = record("kill")
        mock_docker.api.remove_container.side_effect = record("remove")

        await manager.wait(handle)
        await manager.logs(handle)
        await manager.kill(handle)
        await manager.remove(handle)

        assert threads["wait"].startswith("codeexec-stream")
        assert threads["logs"].startswith("codeexec-stream")
        assert threads["kill"].startswith("codeexec-control")
        assert threads["remove"].startswith("codeexec-control")

    def test_pools_sized_from_concurrency(self, mock_client_factory):
        manager = ContainerManager(mock_client_factory, max_concurrent_executions=3)
        try:
            assert manager._stream_executor._max_workers == 6
            assert manager._control_executor._max_workers == 7
        finally:
            manager.close()

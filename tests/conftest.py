"""Pytest configuration and shared fixtures."""

import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from docker import DockerClient

# Set test environment before importing config
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from codeexec.config.languages import get_profile
from codeexec.models import ExecutionRequest
from codeexec.services.container import ContainerHandle
from codeexec.services.container.streams import HEADER
from codeexec.services.execution import CodeExecutionRunner, WorkspaceManager


def frame(stream_type: int, payload: bytes) -> bytes:
    """Build one multiplexed log frame."""
    return HEADER.pack(stream_type, len(payload)) + payload


@pytest.fixture
def mock_docker():
    """Mock Docker client for testing."""
    mock_client = MagicMock(spec=DockerClient)
    mock_client.api = MagicMock()
    mock_client.containers = MagicMock()
    mock_client.images = MagicMock()

    mock_container = MagicMock()
    mock_container.id = "0123456789abcdef0123456789abcdef"
    mock_client.containers.create.return_value = mock_container
    mock_client.images.list.return_value = [MagicMock()]
    mock_client.api.pull.return_value = iter([{"status": "Pull complete"}])

    return mock_client


@pytest.fixture
def mock_client_factory(mock_docker):
    """Client factory that hands out the mock Docker client."""
    factory = MagicMock()
    factory.get_client.return_value = mock_docker
    factory.is_available.return_value = True
    factory.ping.return_value = True
    factory.get_initialization_error.return_value = None
    return factory


@pytest.fixture
def workspace_root(tmp_path) -> Path:
    """Isolated directory for workspaces created during a test."""
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture
def workspace_manager(workspace_root):
    return WorkspaceManager(root=str(workspace_root))


@pytest.fixture
def python_profile():
    return get_profile("python")


@pytest.fixture
def mock_container_manager(mock_client_factory):
    """Container manager whose lifecycle calls succeed with exit code 0."""
    manager = MagicMock()
    manager.client_factory = mock_client_factory
    manager.get_initialization_error.return_value = None
    manager.connect = AsyncMock()
    manager.create = AsyncMock(
        return_value=ContainerHandle(id="0123456789abcdef", name="codeexec-test")
    )
    manager.attach = AsyncMock()
    manager.start = AsyncMock()
    manager.wait = AsyncMock(return_value=0)
    manager.kill = AsyncMock()
    manager.remove = AsyncMock()
    manager.logs = AsyncMock(return_value=frame(1, b"hello\n"))
    manager.release = MagicMock()
    return manager


@pytest.fixture
def mock_image_provisioner():
    provisioner = MagicMock()
    provisioner.ensure = AsyncMock()
    return provisioner


@pytest.fixture
def runner(mock_container_manager, mock_image_provisioner, workspace_manager):
    """Runner wired to mocked runtime collaborators and a real workspace manager."""
    return CodeExecutionRunner(
        container_manager=mock_container_manager,
        image_provisioner=mock_image_provisioner,
        workspace_manager=workspace_manager,
    )


@pytest.fixture
def python_request():
    return ExecutionRequest(code="print('hello')", language="python", timeout_ms=5000)

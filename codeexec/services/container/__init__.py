"""Container runtime services.

This package wraps the Docker engine:
- client.py: Docker client factory and initialization
- images.py: On-demand image provisioning
- manager.py: Container lifecycle (create, attach, start, wait, kill, remove, logs)
- streams.py: Multiplexed stdout/stderr stream decoding
"""

from .client import DockerClientFactory
from .images import ImageProvisioner
from .manager import ContainerHandle, ContainerManager, ContainerState
from .streams import DemuxedLogs, StreamType, demultiplex

__all__ = [
    "DockerClientFactory",
    "ImageProvisioner",
    "ContainerHandle",
    "ContainerManager",
    "ContainerState",
    "DemuxedLogs",
    "StreamType",
    "demultiplex",
]

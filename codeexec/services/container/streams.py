"""Decoding of the Docker multiplexed stdout/stderr stream.

When a container runs without a TTY, the engine interleaves both output
channels in one byte stream made of frames::

    [stream type: 1 byte][reserved: 3 bytes][payload length: uint32 BE][payload]

Stream type 1 is stdout and 2 is stderr.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, List, NamedTuple

import structlog

logger = structlog.get_logger(__name__)

HEADER = struct.Struct(">BxxxL")


class StreamType(IntEnum):
    """Frame channel tag."""

    STDIN = 0
    STDOUT = 1
    STDERR = 2


class Frame(NamedTuple):
    stream_type: int
    payload: bytes
    declared_length: int

    @property
    def complete(self) -> bool:
        return len(self.payload) == self.declared_length


@dataclass(frozen=True)
class DemuxedLogs:
    """Decoded output channels."""

    stdout: str = ""
    stderr: str = ""
    truncated: bool = False  # Stream ended inside a frame payload


def iter_frames(data: bytes) -> Iterator[Frame]:
    """Yield the frames of a multiplexed buffer.

    Fewer than a full header's worth of trailing bytes ends iteration
    normally. Zero-length frames are skipped. A payload cut short by the end
    of the buffer is yielded with whatever bytes are present.
    """
    view = memoryview(data)
    offset = 0
    while len(view) - offset >= HEADER.size:
        stream_type, length = HEADER.unpack_from(view, offset)
        offset += HEADER.size
        if length <= 0:
            continue
        payload = bytes(view[offset : offset + length])
        offset += len(payload)
        yield Frame(stream_type, payload, length)


def demultiplex(data: bytes) -> DemuxedLogs:
    """Split a multiplexed log buffer into stdout and stderr text.

    Bytes of each channel are joined before decoding so a UTF-8 sequence
    split across two frames still decodes correctly.
    """
    if not data:
        return DemuxedLogs()

    stdout_chunks: List[bytes] = []
    stderr_chunks: List[bytes] = []
    truncated = False

    for frame in iter_frames(data):
        if not frame.complete:
            truncated = True

        if frame.stream_type == StreamType.STDOUT:
            stdout_chunks.append(frame.payload)
        elif frame.stream_type == StreamType.STDERR:
            stderr_chunks.append(frame.payload)
        else:
            logger.debug("Ignoring frame with unknown stream type", stream_type=frame.stream_type)

    if truncated:
        logger.debug("Log stream ended mid-frame", total_bytes=len(data))

    return DemuxedLogs(
        stdout=b"".join(stdout_chunks).decode("utf-8", errors="replace"),
        stderr=b"".join(stderr_chunks).decode("utf-8", errors="replace"),
        truncated=truncated,
    )

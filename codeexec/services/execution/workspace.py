"""Per-execution workspace directories on the host."""

import os
import shutil
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import structlog

from ...config import settings
from ...config.languages import LanguageProfile
from ..container.manager import STDIN_FILENAME

logger = structlog.get_logger(__name__)

WORKSPACE_PREFIX = "codeexec-"


@dataclass(frozen=True)
class Workspace:
    """Directory bind-mounted read-only into exactly one sandbox."""

    path: Path
    source_path: Path
    stdin_path: Path


class WorkspaceManager:
    """Creates workspaces and guarantees they are deleted."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.workspace_root)

    @contextmanager
    def acquire(self, profile: LanguageProfile, code: str, stdin: str = "") -> Iterator[Workspace]:
        """Create a workspace holding the source and stdin files.

        The directory tree is removed when the block exits, however it exits.
        """
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.root / f"{WORKSPACE_PREFIX}{uuid.uuid4().hex}"
        path.mkdir(mode=0o755, parents=False, exist_ok=False)
        try:
            # Readable by the sandbox user regardless of umask
            os.chmod(path, 0o755)
            workspace = Workspace(
                path=path,
                source_path=path / profile.filename,
                stdin_path=path / STDIN_FILENAME,
            )
            self._write(workspace.source_path, code)
            self._write(workspace.stdin_path, stdin or "")
            logger.debug("Workspace created", path=str(path), filename=profile.filename)
            yield workspace
        finally:
            self.release(path)

    def _write(self, target: Path, content: str) -> None:
        target.write_text(content, encoding="utf-8")
        os.chmod(target, 0o644)

    def release(self, path: Path) -> None:
        """Delete a workspace tree. Failures are logged, not raised."""
        try:
            shutil.rmtree(path)
            logger.debug("Workspace removed", path=str(path))
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Failed to remove workspace", path=str(path), error=str(e))

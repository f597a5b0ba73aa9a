"""Scoped temporary files.

Any operation that creates intermediate files (segments, concat lists,
partial renders, extracted audio) allocates them through a TempFileScope.
Everything still tracked when the scope exits is deleted, whatever the exit
path. Cleanup failures are logged and never replace the primary outcome.
"""

import logging
import shutil
import uuid
from pathlib import Path
from types import TracebackType
from typing import Optional

from hyperedit.exceptions import TransientIOError

logger = logging.getLogger(__name__)


class TempFileScope:
    """Tracks temp paths under ``directory`` and removes them on exit."""

    def __init__(self, directory: str | Path, prefix: str = "tmp"):
        self.directory = Path(directory)
        self.prefix = prefix
        self._paths: list[Path] = []

    def __enter__(self) -> "TempFileScope":
        self.directory.mkdir(parents=True, exist_ok=True)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.cleanup()

    @property
    def tracked(self) -> list[Path]:
        return list(self._paths)

    def path(self, name: str = "", suffix: str = "") -> Path:
        """Reserve a unique path in the scope directory (file not created)."""
        stem = f"{self.prefix}-{name}-" if name else f"{self.prefix}-"
        p = self.directory / f"{stem}{uuid.uuid4().hex[:12]}{suffix}"
        self._paths.append(p)
        return p

    def mkdir(self, name: str = "") -> Path:
        p = self.path(name)
        p.mkdir(parents=True)
        return p

    def track(self, path: str | Path) -> Path:
        p = Path(path)
        self._paths.append(p)
        return p

    def release(self, path: str | Path) -> Path:
        """Stop tracking ``path`` so it survives the scope."""
        p = Path(path)
        self._paths = [tracked for tracked in self._paths if tracked != p]
        return p

    def cleanup(self) -> None:
        while self._paths:
            p = self._paths.pop()
            try:
                _remove(p)
            except TransientIOError as e:
                logger.warning(f"[TEMP] {e}")


def _remove(path: Path) -> None:
    try:
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
    except OSError as e:
        raise TransientIOError(f"Could not remove {path}: {e}") from e


def remove_quietly(*paths: str | Path | None) -> None:
    """Best-effort removal of files that are not part of a scope."""
    for p in paths:
        if p is None:
            continue
        try:
            _remove(Path(p))
        except TransientIOError as e:
            logger.warning(f"[TEMP] {e}")

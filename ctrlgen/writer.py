# File: ctrlgen/writer.py
"""
ctrlgen - File Writer
=======================
Idempotent, directory-creating, overwrite-guarded persistence of rendered
artifacts.

Write strategy:
    1. ``skip-if-exists`` and the target exists → ``SKIPPED``; the file is
       not opened, so its bytes and mtime are untouched.
    2. Otherwise the parent directories are created, the content is written
       to a temporary file in the target's directory, flushed with
       ``os.fsync`` and moved into place with ``os.replace`` (atomic on
       POSIX and Windows when source and destination share a filesystem).
    3. Any ``OSError`` becomes a ``WriteError`` and the temporary file is
       removed.  A target is never left half-written.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ctrlgen.errors import WriteError
from ctrlgen.models import OverwritePolicy, Stage, WriteStatus
from ctrlgen.utils import count_lines, sha256_hex

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.writer")


# ---------------------------------------------------------------------------
# Result record
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WriteResult:
    """Immutable record of one write attempt."""

    path: Path
    status: WriteStatus
    size_bytes: int = 0
    line_count: int = 0
    sha256: str = ""

    @property
    def written(self) -> bool:
        return self.status is WriteStatus.WRITTEN

    @property
    def skipped(self) -> bool:
        return self.status is WriteStatus.SKIPPED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "status": self.status.value,
            "size_bytes": self.size_bytes,
            "line_count": self.line_count,
            "sha256": self.sha256,
        }


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class FileWriter:
    """
    Persist rendered text under an overwrite policy.

    Stateless, so one instance may be shared by the
    worker threads of a batch as long as each path has a single writer.
    """

    def write(
        self,
        path: Union[str, Path],
        content: str,
        policy: OverwritePolicy = OverwritePolicy.SKIP_IF_EXISTS,
    ) -> WriteResult:
        """
        Write *content* to *path* according to *policy*.

        Raises:
            WriteError: Permission, capacity or any other filesystem failure.
        """
        target: Path = Path(path)

        if policy is OverwritePolicy.SKIP_IF_EXISTS and target.exists():
            logger.info("Skipped %s (already exists).", target)
            return WriteResult(path=target, status=WriteStatus.SKIPPED)

        encoded: bytes = content.encode("utf-8")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write(target, encoded)
        except OSError as exc:
            logger.error("Failed to write %s: %s", target, exc)
            raise WriteError(
                target, f"{type(exc).__name__}: {exc}", stage=Stage.WRITING
            ) from exc

        result: WriteResult = WriteResult(
            path=target,
            status=WriteStatus.WRITTEN,
            size_bytes=len(encoded),
            line_count=count_lines(content),
            sha256=sha256_hex(content),
        )
        logger.debug(
            "Wrote %s (%d bytes, %d lines).", target, result.size_bytes, result.line_count
        )
        return result

    @staticmethod
    def _atomic_write(target_path: Path, data: bytes) -> None:
        """
        Write *data* to *target_path* through a temporary sibling file.

        The temporary file lives in the same directory so ``os.replace``
        never crosses a filesystem boundary.
        """
        fd: int = -1
        tmp_path: Optional[str] = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(target_path.parent),
                prefix=f".{target_path.name}.",
                suffix=".tmp",
            )
            os.write(fd, data)
            os.fsync(fd)
            os.close(fd)
            fd = -1
            os.replace(tmp_path, str(target_path))
            tmp_path = None
        finally:
            if fd >= 0:
                os.close(fd)
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FileWriter",
    "WriteResult",
]

logger.debug("ctrlgen.writer loaded — %d public symbols.", len(__all__))

"""
tests/test_writer.py
Unit tests for ctrlgen.writer.

Tests cover:
- Fresh writes (directory creation, metrics)
- skip-if-exists leaves existing files untouched
- overwrite replaces content
- Filesystem failures surface as WriteError without leftovers
"""

from __future__ import annotations

import os
import pathlib

import pytest

from ctrlgen.errors import WriteError
from ctrlgen.models import OverwritePolicy, Stage, WriteStatus
from ctrlgen.utils import sha256_hex
from ctrlgen.writer import FileWriter, WriteResult


def _leftover_temp_files(directory: pathlib.Path) -> list:
    return [p for p in directory.rglob("*.tmp")]


# ===========================================================================
# Fresh writes
# ===========================================================================


class TestFreshWrites:
    def test_creates_parent_directories(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "app" / "Http" / "Controllers" / "PostController.php"
        result = FileWriter().write(target, "<?php\n\nclass PostController {}\n")
        assert result.status is WriteStatus.WRITTEN
        assert result.written
        assert target.read_text(encoding="utf-8") == "<?php\n\nclass PostController {}\n"

    def test_result_metrics(self, tmp_path: pathlib.Path) -> None:
        content = "line one\nline two – ünïcode\n"
        result = FileWriter().write(tmp_path / "a.php", content)
        assert result.size_bytes == len(content.encode("utf-8"))
        assert result.line_count == 2
        assert result.sha256 == sha256_hex(content)

    def test_no_temporary_files_left(self, tmp_path: pathlib.Path) -> None:
        FileWriter().write(tmp_path / "x" / "a.php", "a")
        assert _leftover_temp_files(tmp_path) == []

    def test_to_dict(self, tmp_path: pathlib.Path) -> None:
        result = FileWriter().write(tmp_path / "a.php", "a")
        data = result.to_dict()
        assert data["status"] == "written"
        assert data["path"] == str(tmp_path / "a.php")


# ===========================================================================
# Overwrite policy
# ===========================================================================


class TestOverwritePolicy:
    def test_skip_leaves_bytes_and_mtime(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "PostController.php"
        target.write_text("hand edited", encoding="utf-8")
        os.utime(target, (1_000_000_000, 1_000_000_000))
        before = target.stat().st_mtime_ns

        result = FileWriter().write(target, "generated", OverwritePolicy.SKIP_IF_EXISTS)

        assert result.status is WriteStatus.SKIPPED
        assert result.skipped
        assert result.size_bytes == 0
        assert target.read_text(encoding="utf-8") == "hand edited"
        assert target.stat().st_mtime_ns == before

    def test_skip_is_the_default(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "a.php"
        target.write_text("keep", encoding="utf-8")
        assert FileWriter().write(target, "new").status is WriteStatus.SKIPPED

    def test_overwrite_replaces(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "a.php"
        target.write_text("old", encoding="utf-8")
        result = FileWriter().write(target, "new", OverwritePolicy.OVERWRITE)
        assert result.status is WriteStatus.WRITTEN
        assert target.read_text(encoding="utf-8") == "new"

    def test_repeated_writes_are_idempotent(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "a.php"
        writer = FileWriter()
        first = writer.write(target, "same", OverwritePolicy.OVERWRITE)
        second = writer.write(target, "same", OverwritePolicy.OVERWRITE)
        assert first.sha256 == second.sha256
        assert target.read_text(encoding="utf-8") == "same"


# ===========================================================================
# Failures
# ===========================================================================


class TestFailures:
    def test_parent_is_a_file(self, tmp_path: pathlib.Path) -> None:
        blocker = tmp_path / "app"
        blocker.write_text("not a directory", encoding="utf-8")
        with pytest.raises(WriteError) as exc_info:
            FileWriter().write(blocker / "Http" / "PostController.php", "x")
        assert exc_info.value.stage is Stage.WRITING
        assert exc_info.value.path == blocker / "Http" / "PostController.php"
        assert blocker.read_text(encoding="utf-8") == "not a directory"

    def test_target_is_a_directory(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "PostController.php"
        target.mkdir()
        with pytest.raises(WriteError):
            FileWriter().write(target, "x", OverwritePolicy.OVERWRITE)
        assert target.is_dir()
        assert _leftover_temp_files(tmp_path) == []

    def test_write_result_is_frozen(self, tmp_path: pathlib.Path) -> None:
        result = WriteResult(path=tmp_path / "a.php", status=WriteStatus.WRITTEN)
        with pytest.raises(AttributeError):
            result.status = WriteStatus.FAILED  # type: ignore[misc]

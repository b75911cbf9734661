"""
tests/test_cli.py
Tests for the ctrlgen command-line interface.

Tests cover:
- Exit codes 0 / 1 / 3 / 4 from real invocations
- Text and JSON reports, dry runs and artifact subsets
- Flag → configuration mapping (namespace, toggles)
- Entity discovery with and without confirmation
- Report → exit code mapping for generation failures
"""

from __future__ import annotations

import json
import pathlib
from typing import List

import pytest

from ctrlgen.cli import (
    EXIT_GENERATION_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_SUCCESS,
    EXIT_VALIDATION_ERROR,
    EXIT_WRITE_ERROR,
    batch_exit_code_for,
    cli_main,
    exit_code_for,
)
from ctrlgen.errors import (
    ConfigurationError,
    PathConflictError,
    StageTimeout,
    ValidationError,
)
from ctrlgen.generator import ArtifactOutcome, BatchReport, GenerationReport
from ctrlgen.models import ArtifactType, Stage, WriteStatus


def _run(argv: List[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        cli_main(argv)
    return exc_info.value.code


def _files(root: pathlib.Path) -> List[pathlib.Path]:
    return sorted(p for p in root.rglob("*") if p.is_file())


@pytest.fixture()
def base_args(schema_yaml_path: pathlib.Path, output_dir: pathlib.Path) -> List[str]:
    return ["-s", str(schema_yaml_path), "-o", str(output_dir)]


# ===========================================================================
# Successful runs
# ===========================================================================


class TestSuccess:
    def test_generates_api_artifacts(
        self, base_args: List[str], output_dir: pathlib.Path, capsys: pytest.CaptureFixture
    ) -> None:
        assert _run(["Post", *base_args]) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "SUCCESS" in out
        assert "Route::apiResource('posts', PostController::class);" in out
        assert len(_files(output_dir)) == 4

    def test_json_dry_run(
        self, base_args: List[str], output_dir: pathlib.Path, capsys: pytest.CaptureFixture
    ) -> None:
        assert _run(["Post", *base_args, "--json", "--dry-run"]) == EXIT_SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert data["dry_run"] is True
        assert {a["status"] for a in data["artifacts"]} == {"planned"}
        assert _files(output_dir) == []

    def test_only_subset(self, base_args: List[str], output_dir: pathlib.Path) -> None:
        argv = ["Post", *base_args, "--only", "store_request", "--only", "update_request"]
        assert _run(argv) == EXIT_SUCCESS
        assert [p.name for p in _files(output_dir)] == ["StorePostRequest.php", "UpdatePostRequest.php"]

    def test_namespace_applies_to_selected_kind(self, base_args: List[str], output_dir: pathlib.Path) -> None:
        argv = ["Post", *base_args, "--namespace", "App\\Http\\Controllers\\V1", "--only", "controller"]
        assert _run(argv) == EXIT_SUCCESS
        target = output_dir / "app" / "Http" / "Controllers" / "V1" / "PostController.php"
        assert "namespace App\\Http\\Controllers\\V1;" in target.read_text(encoding="utf-8")

    def test_no_requests_flag(self, base_args: List[str], output_dir: pathlib.Path) -> None:
        assert _run(["Post", *base_args, "--type", "web", "--no-requests"]) == EXIT_SUCCESS
        assert [p.name for p in _files(output_dir)] == ["PostController.php"]

    def test_existing_files_still_succeed(self, base_args: List[str], output_dir: pathlib.Path) -> None:
        assert _run(["Post", *base_args]) == EXIT_SUCCESS
        snapshot = {p: p.read_bytes() for p in _files(output_dir)}
        assert _run(["Post", *base_args]) == EXIT_SUCCESS
        assert {p: p.read_bytes() for p in _files(output_dir)} == snapshot

    def test_config_file(
        self, base_args: List[str], output_dir: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        config_path = tmp_path / "ctrlgen.yaml"
        config_path.write_text("ctrlgen:\n  use_transformer: false\n", encoding="utf-8")
        assert _run(["Post", *base_args, "-c", str(config_path)]) == EXIT_SUCCESS
        assert "PostResource.php" not in [p.name for p in _files(output_dir)]

    def test_version(self, capsys: pytest.CaptureFixture) -> None:
        assert _run(["--version"]) == 0
        assert "ctrlgen v" in capsys.readouterr().out


# ===========================================================================
# Failing runs
# ===========================================================================


class TestFailures:
    def test_invalid_identifier(
        self, base_args: List[str], output_dir: pathlib.Path, capsys: pytest.CaptureFixture
    ) -> None:
        assert _run(["123bad", *base_args]) == EXIT_VALIDATION_ERROR
        assert "INVALID_ENTITY_IDENTIFIER" in capsys.readouterr().err
        assert _files(output_dir) == []

    def test_configuration_contradiction(self, base_args: List[str]) -> None:
        assert _run(["Post", *base_args, "--type", "hybrid", "--no-resources"]) == EXIT_VALIDATION_ERROR

    def test_invalid_config_value(
        self, base_args: List[str], tmp_path: pathlib.Path, capsys: pytest.CaptureFixture
    ) -> None:
        config_path = tmp_path / "ctrlgen.yaml"
        config_path.write_text("pagination_limit: 0\n", encoding="utf-8")
        assert _run(["Post", *base_args, "-c", str(config_path)]) == EXIT_VALIDATION_ERROR
        assert "INVALID_CONFIG_VALUE" in capsys.readouterr().err

    def test_missing_schema(self, output_dir: pathlib.Path, tmp_path: pathlib.Path) -> None:
        argv = ["Post", "-s", str(tmp_path / "missing.yaml"), "-o", str(output_dir)]
        assert _run(argv) == EXIT_INPUT_ERROR

    def test_missing_config(self, base_args: List[str], tmp_path: pathlib.Path) -> None:
        assert _run(["Post", *base_args, "-c", str(tmp_path / "nope.yaml")]) == EXIT_INPUT_ERROR

    def test_unimportable_models_module(self, output_dir: pathlib.Path) -> None:
        argv = ["Post", "--models", "ctrlgen_no_such_models_module", "-o", str(output_dir)]
        assert _run(argv) == EXIT_INPUT_ERROR

    def test_unparsable_database_url(self, output_dir: pathlib.Path) -> None:
        argv = ["Post", "--database-url", "not a database url", "-o", str(output_dir)]
        assert _run(argv) == EXIT_INPUT_ERROR

    def test_unwritable_output(self, base_args: List[str], output_dir: pathlib.Path) -> None:
        (output_dir / "app").write_text("blocking file", encoding="utf-8")
        assert _run(["Post", *base_args]) == EXIT_WRITE_ERROR

    def test_batch_path_conflict(self, base_args: List[str], output_dir: pathlib.Path) -> None:
        assert _run(["Post", "post", *base_args]) == EXIT_WRITE_ERROR
        assert _files(output_dir) == []

    def test_mutually_exclusive_sources(self, schema_yaml_path: pathlib.Path) -> None:
        argv = ["Post", "-s", str(schema_yaml_path), "--database-url", "sqlite://"]
        assert _run(argv) == 2  # argparse usage error


# ===========================================================================
# Entity discovery
# ===========================================================================


class TestDiscovery:
    def test_no_entity_and_no_source(self, output_dir: pathlib.Path) -> None:
        assert _run(["-o", str(output_dir)]) == EXIT_INPUT_ERROR

    def test_assume_yes_generates_everything(
        self, base_args: List[str], output_dir: pathlib.Path, capsys: pytest.CaptureFixture
    ) -> None:
        assert _run([*base_args, "--yes"]) == EXIT_SUCCESS
        assert "Discovered 3 entities" in capsys.readouterr().err
        controllers = output_dir / "app" / "Http" / "Controllers" / "Api"
        assert sorted(p.name for p in controllers.iterdir()) == [
            "CommentController.php",
            "PostController.php",
            "UserController.php",
        ]

    def test_declined_prompt_writes_nothing(
        self, base_args: List[str], output_dir: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("builtins.input", lambda prompt="": "n")
        assert _run(base_args) == EXIT_SUCCESS
        assert _files(output_dir) == []

    def test_confirmed_prompt(
        self, base_args: List[str], output_dir: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("builtins.input", lambda prompt="": "yes")
        assert _run([*base_args, "--type", "web"]) == EXIT_SUCCESS
        assert len(_files(output_dir)) == 9

    def test_closed_stdin_counts_as_no(
        self, base_args: List[str], output_dir: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _eof(prompt: str = "") -> str:
            raise EOFError

        monkeypatch.setattr("builtins.input", _eof)
        assert _run(base_args) == EXIT_SUCCESS
        assert _files(output_dir) == []

    def test_empty_source(self, output_dir: pathlib.Path, tmp_path: pathlib.Path) -> None:
        schema = tmp_path / "empty.yaml"
        schema.write_text("entities: []\n", encoding="utf-8")
        assert _run(["-s", str(schema), "-o", str(output_dir), "--yes"]) == EXIT_INPUT_ERROR


# ===========================================================================
# Report → exit code mapping
# ===========================================================================


def _outcome(status: WriteStatus, failed_stage=None) -> ArtifactOutcome:
    return ArtifactOutcome(
        label="Post:controller",
        artifact_type=ArtifactType.CONTROLLER,
        path=pathlib.Path("PostController.php"),
        status=status,
        failed_stage=failed_stage,
    )


class TestExitCodeMapping:
    def test_success(self) -> None:
        report = GenerationReport(stage=Stage.REPORTED, outcomes=[_outcome(WriteStatus.SKIPPED)])
        assert exit_code_for(report) == EXIT_SUCCESS

    def test_template_failure(self) -> None:
        report = GenerationReport(
            stage=Stage.REPORTED,
            outcomes=[_outcome(WriteStatus.WRITTEN), _outcome(WriteStatus.FAILED, Stage.RENDERING)],
        )
        assert exit_code_for(report) == EXIT_GENERATION_ERROR

    def test_write_failure(self) -> None:
        report = GenerationReport(
            stage=Stage.REPORTED,
            outcomes=[_outcome(WriteStatus.FAILED, Stage.RENDERING), _outcome(WriteStatus.FAILED, Stage.WRITING)],
        )
        assert exit_code_for(report) == EXIT_WRITE_ERROR

    @pytest.mark.parametrize(
        "exc, code",
        [
            (ValidationError("bad"), EXIT_VALIDATION_ERROR),
            (ConfigurationError("contradiction"), EXIT_VALIDATION_ERROR),
            (StageTimeout("Describing 'Post'", 1.0), EXIT_GENERATION_ERROR),
            (PathConflictError(pathlib.Path("a.php"), ["x", "y"]), EXIT_WRITE_ERROR),
        ],
    )
    def test_fatal_errors(self, exc, code: int) -> None:
        report = GenerationReport(stage=Stage.FAILED, exception=exc)
        assert exit_code_for(report) == code

    def test_batch_takes_most_severe(self) -> None:
        ok = GenerationReport(stage=Stage.REPORTED)
        bad = GenerationReport(stage=Stage.FAILED, exception=ValidationError("bad"))
        partial = GenerationReport(
            stage=Stage.REPORTED, outcomes=[_outcome(WriteStatus.FAILED, Stage.WRITING)]
        )
        assert batch_exit_code_for(BatchReport(reports=[ok, bad])) == EXIT_VALIDATION_ERROR
        assert batch_exit_code_for(BatchReport(reports=[ok, bad, partial])) == EXIT_WRITE_ERROR
        assert batch_exit_code_for(BatchReport()) == EXIT_SUCCESS

# File: ctrlgen/cli.py
"""
ctrlgen - Command-Line Interface
==================================

Built on the standard-library ``argparse`` module.

Usage examples::

    # API controller, form requests and resource for one entity
    python -m ctrlgen Post --schema schema.yaml -o ./my-app

    # Web controller from SQLAlchemy declarative models
    python -m ctrlgen Admin/User --type web --models myapp.models -o ./my-app

    # Hybrid controllers for every table of a live database, no prompt
    python -m ctrlgen --type hybrid --database-url sqlite:///app.db --yes

    # Only the store request, printed as JSON, nothing written
    python -m ctrlgen Post -s schema.yaml --only store_request --dry-run --json

Exit codes:
    0 — success (including runs where every artifact already existed)
    1 — validation or configuration error
    2 — generation error (missing template, timeout, cancellation)
    3 — write error or target path conflict
    4 — input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ctrlgen.errors import (
    ConfigurationError,
    GenerationError,
    PathConflictError,
    ValidationError,
)
from ctrlgen.generator import (
    BatchReport,
    GenerationOrchestrator,
    GenerationReport,
    build_config,
    load_config_file,
)
from ctrlgen.models import ArtifactKind, ArtifactType, GenerationConfig, Stage
from ctrlgen.sources import (
    DatabaseSource,
    DeclarativeModelSource,
    SchemaFileSource,
    StructuralMetadataSource,
)

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_WRITE_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4


class _InputError(Exception):
    """Bad command-line input; reported and mapped to ``EXIT_INPUT_ERROR``."""


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``ctrlgen`` logger based on verbosity level.

    Args:
        verbosity: -1 = silent, 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    elif verbosity == 0:
        level = logging.WARNING
    else:
        level = logging.CRITICAL + 1

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("ctrlgen")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from ctrlgen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="ctrlgen",
        description=(
            "ctrlgen — resource controller generator.\n\n"
            "Reads the structure of a data entity and emits a controller, "
            "form-request validators and a response transformer for it."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s Post -s schema.yaml -o ./my-app\n"
            "  %(prog)s Admin/User --type web --models myapp.models\n"
            "  %(prog)s --type hybrid --database-url sqlite:///app.db --yes\n"
            "  %(prog)s Post -s schema.yaml --only store_request --dry-run\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"ctrlgen v{__version__}",
    )

    parser.add_argument(
        "entities",
        nargs="*",
        metavar="ENTITY",
        help=(
            "Entity identifiers (e.g. Post, Admin/User).  When omitted, every "
            "entity the metadata source knows about is offered for generation."
        ),
    )
    parser.add_argument(
        "-t", "--type",
        dest="kind",
        default=ArtifactKind.API.value,
        choices=[k.value for k in ArtifactKind],
        help="Controller flavour (default: api).",
    )

    # --- Structural metadata ---
    source_group = parser.add_argument_group("structural metadata source")
    sources = source_group.add_mutually_exclusive_group()
    sources.add_argument(
        "-s", "--schema",
        type=str,
        default=None,
        metavar="PATH",
        help="Schema document (JSON or YAML) with an 'entities' list.",
    )
    sources.add_argument(
        "--models",
        type=str,
        default=None,
        metavar="MODULE",
        help="Importable module holding SQLAlchemy declarative models.",
    )
    sources.add_argument(
        "--database-url",
        type=str,
        default=None,
        metavar="URL",
        help="SQLAlchemy database URL to reflect tables from.",
    )

    # --- Configuration ---
    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="Configuration file (JSON or YAML); CLI flags win key by key.",
    )
    config_group.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="DIR",
        help="Application base path that namespaces resolve against.",
    )
    config_group.add_argument(
        "--templates",
        type=str,
        default=None,
        metavar="DIR",
        help="Directory with template overrides, searched before the bundled stubs.",
    )
    config_group.add_argument(
        "--namespace",
        type=str,
        default=None,
        metavar="NS",
        help="Controller namespace for the selected --type.",
    )
    config_group.add_argument(
        "--middleware",
        type=_csv,
        default=None,
        metavar="A,B",
        help="Comma-separated middleware for the selected --type.",
    )
    config_group.add_argument(
        "--with-requests",
        dest="use_validators",
        action="store_true",
        default=None,
        help="Emit form-request validator classes.",
    )
    config_group.add_argument(
        "--no-requests",
        dest="use_validators",
        action="store_false",
        help="Validate inline in the controller instead.",
    )
    config_group.add_argument(
        "--with-resources",
        dest="use_transformer",
        action="store_true",
        default=None,
        help="Emit API resource transformers.",
    )
    config_group.add_argument(
        "--no-resources",
        dest="use_transformer",
        action="store_false",
        help="Do not emit API resource transformers.",
    )
    config_group.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Time limit for reading metadata from a live database.",
    )

    # --- Behaviour flags ---
    behaviour_group = parser.add_argument_group("behaviour flags")
    behaviour_group.add_argument(
        "--only",
        action="append",
        default=None,
        choices=[a.value for a in ArtifactType],
        help="Restrict output to this artifact (repeatable).",
    )
    behaviour_group.add_argument(
        "-f", "--force",
        action="store_true",
        default=False,
        help="Overwrite files that already exist.",
    )
    behaviour_group.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Render everything but write nothing.",
    )
    behaviour_group.add_argument(
        "-y", "--yes",
        action="store_true",
        default=False,
        help="Do not ask for confirmation when generating discovered entities.",
    )
    behaviour_group.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the report as JSON instead of text.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all log output; only the report is printed.",
    )

    return parser


# ---------------------------------------------------------------------------
# Config and source builders
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Build a config override dictionary from CLI arguments."""
    overrides: Dict[str, Any] = {}
    is_api: bool = args.kind == ArtifactKind.API.value

    if args.output is not None:
        overrides["output_dir"] = Path(args.output)

    if args.templates is not None:
        overrides["template_dir"] = Path(args.templates)

    if args.namespace is not None:
        overrides["api_namespace" if is_api else "namespace"] = args.namespace

    if args.middleware is not None:
        overrides["api_middleware" if is_api else "middleware"] = args.middleware

    if args.use_validators is not None:
        overrides["use_validators"] = args.use_validators

    if args.use_transformer is not None:
        overrides["use_transformer"] = args.use_transformer

    if args.timeout is not None:
        overrides["introspection_timeout"] = args.timeout

    if args.force:
        overrides["force"] = True

    if args.dry_run:
        overrides["dry_run"] = True

    return overrides


def _load_config(args: argparse.Namespace) -> GenerationConfig:
    """
    Raises:
        _InputError: The config file is missing or unparsable.
        ValidationError: A key is unknown or a value is out of range.
    """
    overrides: Dict[str, Any] = _build_config_overrides(args)
    if args.config is None:
        return build_config(overrides)

    config_path: Path = Path(args.config).resolve()
    try:
        return load_config_file(config_path, overrides)
    except (FileNotFoundError, ValueError) as exc:
        raise _InputError(f"Failed to load config {config_path}: {exc}") from exc


def _build_source(args: argparse.Namespace) -> Optional[StructuralMetadataSource]:
    """
    Raises:
        _InputError: The requested source cannot be opened.
    """
    if args.schema is not None:
        schema_path: Path = Path(args.schema).resolve()
        if not schema_path.is_file():
            raise _InputError(f"Schema file not found: {schema_path}")
        return SchemaFileSource(schema_path)

    if args.models is not None:
        try:
            return DeclarativeModelSource.from_module(args.models)
        except ImportError as exc:
            raise _InputError(f"Cannot import models module '{args.models}': {exc}") from exc

    if args.database_url is not None:
        try:
            return DatabaseSource(args.database_url)
        except SQLAlchemyError as exc:
            raise _InputError(f"Invalid database URL: {exc}") from exc

    return None


# ---------------------------------------------------------------------------
# Entity discovery
# ---------------------------------------------------------------------------


def _confirm(prompt: str) -> bool:
    try:
        answer: str = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _discover_entities(
    source: Optional[StructuralMetadataSource],
    assume_yes: bool,
) -> List[str]:
    """
    List every entity *source* knows about and ask before generating them.

    Returns an empty list when the user declines.

    Raises:
        _InputError: No source, an unreadable source or nothing to generate.
    """
    if source is None:
        raise _InputError(
            "No entity given.  Name one or more entities, or point at a "
            "metadata source with --schema, --models or --database-url."
        )
    try:
        found: List[str] = source.list_entities()
    except GenerationError as exc:
        raise _InputError(f"Cannot list entities: {exc.message}") from exc
    if not found:
        raise _InputError(f"{source!r} does not describe any entity.")

    print(f"Discovered {len(found)} entities:", file=sys.stderr)
    for name in found:
        print(f"  • {name}", file=sys.stderr)

    if assume_yes or _confirm(f"Generate artifacts for all {len(found)}? [y/N] "):
        return found
    return []


# ---------------------------------------------------------------------------
# Exit-code mapping
# ---------------------------------------------------------------------------


def _exit_code_for_error(exc: Optional[GenerationError]) -> int:
    if isinstance(exc, (ValidationError, ConfigurationError)):
        return EXIT_VALIDATION_ERROR
    if isinstance(exc, PathConflictError):
        return EXIT_WRITE_ERROR
    return EXIT_GENERATION_ERROR


def exit_code_for(report: GenerationReport) -> int:
    """Map one report to a process exit code."""
    if report.success:
        return EXIT_SUCCESS
    if report.failed:
        return _exit_code_for_error(report.exception)
    if any(o.failed_stage is Stage.WRITING for o in report.failures):
        return EXIT_WRITE_ERROR
    return EXIT_GENERATION_ERROR


def batch_exit_code_for(batch: BatchReport) -> int:
    """Map a batch report to a process exit code; the most severe one wins."""
    if batch.exception is not None:
        return _exit_code_for_error(batch.exception)
    return max((exit_code_for(r) for r in batch.reports), default=EXIT_SUCCESS)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _run_generation(
    orchestrator: GenerationOrchestrator,
    entities: Sequence[str],
    args: argparse.Namespace,
) -> int:
    """
    Run the pipeline for *entities* and print the report.

    Returns the appropriate exit code.
    """
    if orchestrator.config.dry_run:
        logger.info("Dry-run mode: files will not be written to disk.")

    if len(entities) == 1:
        report: GenerationReport = orchestrator.generate(
            entities[0], kind=args.kind, artifacts=args.only
        )
        print(report.to_json() if args.json else report.summary())
        if report.validation is not None and report.validation.has_errors:
            print(report.validation.format_report(), file=sys.stderr)
        return exit_code_for(report)

    batch: BatchReport = orchestrator.generate_batch(
        entities, kind=args.kind, artifacts=args.only
    )
    print(batch.to_json() if args.json else batch.summary())
    return batch_exit_code_for(batch)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    verbosity: int = -1 if args.quiet else args.verbose
    _setup_logging(verbosity)

    # --- Configuration ---
    try:
        config: GenerationConfig = _load_config(args)
        source: Optional[StructuralMetadataSource] = _build_source(args)
    except _InputError as exc:
        logger.error("%s", exc)
        sys.exit(EXIT_INPUT_ERROR)
    except ValidationError as exc:
        logger.error("%s", exc.message)
        if exc.result is not None:
            print(exc.result.format_report(), file=sys.stderr)
        sys.exit(EXIT_VALIDATION_ERROR)

    # --- Entities ---
    entities: List[str] = list(args.entities)
    if not entities:
        try:
            entities = _discover_entities(source, args.yes)
        except _InputError as exc:
            logger.error("%s", exc)
            parser.print_usage(sys.stderr)
            sys.exit(EXIT_INPUT_ERROR)
        if not entities:
            logger.warning("Nothing generated: confirmation declined.")
            sys.exit(EXIT_SUCCESS)

    logger.info("Entities: %s", ", ".join(entities))
    logger.info("Kind:     %s", args.kind)
    logger.info("Source:   %r", source)
    logger.info("Output:   %s", config.output_dir.resolve())

    # --- Run generation ---
    orchestrator: GenerationOrchestrator = GenerationOrchestrator(config, source)
    exit_code: int = _run_generation(orchestrator, entities, args)

    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)

    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "exit_code_for",
    "batch_exit_code_for",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_WRITE_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("ctrlgen.cli loaded.")

# File: ctrlgen/errors.py
"""
ctrlgen - Error Taxonomy
==========================
Every failure the pipeline can report is a subclass of ``GenerationError``.

Two propagation classes exist:

* **Invocation-fatal** — ``ValidationError``, ``ConfigurationError``,
  ``PathConflictError``, ``StageTimeout`` and ``GenerationCancelled`` abort
  the whole invocation before any file is written.
* **Artifact-local** — ``TemplateNotFound`` and ``WriteError`` are collected
  per artifact by the orchestrator; sibling artifacts carry on.

``EntityNotFound`` and ``IntrospectionError`` are recoverable: the
orchestrator substitutes a degraded descriptor and records a warning.

Each error optionally carries the pipeline ``Stage`` it was raised in so the
final report can say *where* an invocation failed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from ctrlgen.models import Stage
    from ctrlgen.validators import ValidationResult

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.errors")


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------


class GenerationError(Exception):
    """Base class for all ctrlgen failures."""

    def __init__(self, message: str, *, stage: Optional["Stage"] = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.stage: Optional["Stage"] = stage

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Invocation-fatal errors
# ---------------------------------------------------------------------------


class ValidationError(GenerationError):
    """Bad input shape: entity identifier, artifact kind, flags or config keys."""

    def __init__(
        self,
        message: str,
        *,
        result: Optional["ValidationResult"] = None,
        stage: Optional["Stage"] = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.result: Optional["ValidationResult"] = result


class ConfigurationError(GenerationError):
    """Contradictory feature toggles, detected before any file I/O."""


class PathConflictError(GenerationError):
    """Two planned artifacts resolve to the same target path."""

    def __init__(
        self,
        path: Path,
        claimants: Sequence[str],
        *,
        stage: Optional["Stage"] = None,
    ) -> None:
        self.path: Path = Path(path)
        self.claimants: List[str] = list(claimants)
        super().__init__(
            f"Target path {self.path} is claimed by {len(self.claimants)} "
            f"artifacts: {', '.join(self.claimants)}.",
            stage=stage,
        )


class StageTimeout(GenerationError):
    """A remote metadata read exceeded the caller-supplied timeout."""

    def __init__(
        self,
        operation: str,
        timeout: float,
        *,
        stage: Optional["Stage"] = None,
    ) -> None:
        self.operation: str = operation
        self.timeout: float = timeout
        super().__init__(
            f"{operation} did not finish within {timeout:g}s.", stage=stage
        )


class GenerationCancelled(GenerationError):
    """Cooperative cancellation observed between stages."""


# ---------------------------------------------------------------------------
# Recoverable introspection errors
# ---------------------------------------------------------------------------


class EntityNotFound(GenerationError):
    """The identifier does not resolve to a concrete structural source."""

    def __init__(self, identifier: str, *, stage: Optional["Stage"] = None) -> None:
        self.identifier: str = identifier
        super().__init__(f"Entity '{identifier}' could not be found.", stage=stage)


class IntrospectionError(GenerationError):
    """Structural metadata exists but could not be read."""


# ---------------------------------------------------------------------------
# Artifact-local errors
# ---------------------------------------------------------------------------


class TemplateNotFound(GenerationError):
    """No override or bundled template exists under the requested name."""

    def __init__(
        self,
        template_id: str,
        searched: Sequence[Path] = (),
        *,
        stage: Optional["Stage"] = None,
    ) -> None:
        self.template_id: str = template_id
        self.searched: List[Path] = [Path(p) for p in searched]
        locations: str = ", ".join(str(p) for p in self.searched) or "no locations"
        super().__init__(
            f"Template '{template_id}' not found (searched {locations}).",
            stage=stage,
        )


class WriteError(GenerationError):
    """Filesystem failure while persisting an artifact."""

    def __init__(
        self,
        path: Path,
        reason: str,
        *,
        stage: Optional["Stage"] = None,
    ) -> None:
        self.path: Path = Path(path)
        self.reason: str = reason
        super().__init__(f"Failed to write {self.path}: {reason}", stage=stage)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "GenerationError",
    "ValidationError",
    "ConfigurationError",
    "PathConflictError",
    "StageTimeout",
    "GenerationCancelled",
    "EntityNotFound",
    "IntrospectionError",
    "TemplateNotFound",
    "WriteError",
]

logger.debug("ctrlgen.errors loaded — %d public symbols.", len(__all__))

# File: ctrlgen/validators.py
"""
ctrlgen - Input & Configuration Validators
============================================
Pure-function checks run in the orchestrator's ``Validating`` stage, before
any metadata source is touched.

Pydantic's built-in validators handle per-field structural correctness of
``GenerationConfig``.  This module adds the checks pydantic cannot express:
the conservative entity-identifier grammar, artifact kind / subset names,
namespace shape and a few configuration sanity warnings.

Usage by downstream modules:
    from ctrlgen.validators import validate_request
    result = validate_request("Post", "api", None, config)
    if not result:
        raise ValidationError(result.summary(), result=result)
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Union

from ctrlgen.models import ArtifactKind, ArtifactType, GenerationConfig
from ctrlgen.utils import split_identifier, to_pascal_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationIssue:
    """Lightweight issue descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``ValidationIssue`` instances produced by the checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationIssue] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("warning", code, message, context))

    def add_info(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        """Merge another result into this one."""
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_warning]

    @property
    def all_items(self) -> List[ValidationIssue]:
        return list(self._items)

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            prefix: str = {
                "error": "✗",
                "warning": "⚠",
                "info": "ℹ",
            }.get(item.level, "•")
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            for k, v in item.context.items():
                lines.append(f"       {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Regex patterns (compiled once at module load)
# ---------------------------------------------------------------------------

# Letter or underscore first, then letters, digits, underscores, path separators.
_ENTITY_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_\\/]*$")
_PASCAL_CASE_RE: re.Pattern[str] = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
_NAMESPACE_RE: re.Pattern[str] = re.compile(
    r"^[A-Za-z_][A-Za-z0-9_]*(\\[A-Za-z_][A-Za-z0-9_]*)*$"
)

# PHP reserved words that cannot name a class.
_PHP_RESERVED_WORDS: FrozenSet[str] = frozenset(
    {
        "abstract", "and", "array", "as", "break", "callable", "case",
        "catch", "class", "clone", "const", "continue", "declare",
        "default", "do", "echo", "else", "elseif", "empty", "enum",
        "extends", "final", "finally", "fn", "for", "foreach", "function",
        "global", "goto", "if", "implements", "include", "instanceof",
        "insteadof", "interface", "isset", "list", "match", "namespace",
        "new", "or", "print", "private", "protected", "public",
        "readonly", "require", "return", "static", "switch", "throw",
        "trait", "try", "unset", "use", "var", "while", "xor", "yield",
    }
)

_KIND_VALUES: FrozenSet[str] = frozenset(k.value for k in ArtifactKind)
_ARTIFACT_VALUES: FrozenSet[str] = frozenset(a.value for a in ArtifactType)


# ---------------------------------------------------------------------------
# Individual validation functions
# ---------------------------------------------------------------------------


def validate_entity_identifier(identifier: Optional[str]) -> ValidationResult:
    """
    Check an entity identifier against the conservative grammar.

    Accepted: ``Post``, ``user_profile``, ``Admin/Post``, ``App\\Models\\Post``.
    Rejected: empty strings, ``123bad``, ``Post-Model``, ``Admin//Post``.
    """
    result: ValidationResult = ValidationResult()
    ctx: Dict[str, Any] = {"entity": identifier}

    if identifier is None or not identifier.strip():
        result.add_error(
            "EMPTY_ENTITY_IDENTIFIER",
            "Entity identifier cannot be empty.",
            ctx,
        )
        return result

    if not _ENTITY_IDENTIFIER_RE.fullmatch(identifier):
        result.add_error(
            "INVALID_ENTITY_IDENTIFIER",
            f"Entity identifier '{identifier}' must start with a letter or "
            f"underscore and contain only letters, digits, underscores and "
            f"path separators.",
            ctx,
        )
        return result

    segments: List[str] = identifier.replace("\\", "/").split("/")
    if any(not s for s in segments):
        result.add_error(
            "EMPTY_IDENTIFIER_SEGMENT",
            f"Entity identifier '{identifier}' contains an empty path segment.",
            ctx,
        )
        return result

    for segment in segments:
        if segment[0].isdigit():
            result.add_error(
                "INVALID_IDENTIFIER_SEGMENT",
                f"Segment '{segment}' of '{identifier}' starts with a digit.",
                ctx,
            )
        elif not to_pascal_case(segment):
            # "_" or "__" would normalise to an empty class name.
            result.add_error(
                "INVALID_IDENTIFIER_SEGMENT",
                f"Segment '{segment}' of '{identifier}' has no letter or digit.",
                ctx,
            )
    if result.has_errors:
        return result

    name: str = split_identifier(identifier)[-1]
    if name.lower() in _PHP_RESERVED_WORDS:
        result.add_error(
            "ENTITY_NAME_RESERVED",
            f"Entity name '{name}' is a reserved word and cannot name a class.",
            ctx,
        )
    elif not _PASCAL_CASE_RE.match(name):
        result.add_info(
            "ENTITY_NAME_NOT_PASCAL_CASE",
            f"Entity name '{name}' is not PascalCase; it will be normalised.",
            ctx,
        )

    return result


def validate_artifact_kind(kind: Union[str, ArtifactKind, None]) -> ValidationResult:
    """Ensure the artifact-type selector is one of ``api | web | hybrid``."""
    result: ValidationResult = ValidationResult()
    value: Optional[str] = kind.value if isinstance(kind, ArtifactKind) else kind
    if value not in _KIND_VALUES:
        result.add_error(
            "UNSUPPORTED_ARTIFACT_KIND",
            f"Artifact kind '{kind}' is not supported. "
            f"Expected one of: {', '.join(sorted(_KIND_VALUES))}.",
            {"kind": kind},
        )
    return result


def validate_artifact_selection(
    artifacts: Optional[Iterable[Union[str, ArtifactType]]],
) -> ValidationResult:
    """Ensure every name in an artifact subset is a known artifact type."""
    result: ValidationResult = ValidationResult()
    if artifacts is None:
        return result

    names: List[str] = [
        a.value if isinstance(a, ArtifactType) else str(a) for a in artifacts
    ]
    if not names:
        result.add_error(
            "EMPTY_ARTIFACT_SELECTION",
            "Artifact selection is empty; nothing would be generated.",
        )
    for name in names:
        if name not in _ARTIFACT_VALUES:
            result.add_error(
                "UNKNOWN_ARTIFACT_TYPE",
                f"Unknown artifact type '{name}'. "
                f"Expected one of: {', '.join(sorted(_ARTIFACT_VALUES))}.",
                {"artifact": name},
            )
    return result


def validate_generation_config(config: GenerationConfig) -> ValidationResult:
    """
    Configuration sanity checks that pydantic field constraints cannot express.

    Toggle contradictions are not checked here: they depend on the requested
    artifact kind and are raised as ``ConfigurationError`` by the planner.
    """
    result: ValidationResult = ValidationResult()

    for key in (
        "namespace",
        "api_namespace",
        "requests_namespace",
        "resources_namespace",
        "models_namespace",
        "base_controller",
    ):
        value: str = getattr(config, key)
        if not _NAMESPACE_RE.match(value):
            result.add_error(
                "INVALID_NAMESPACE",
                f"Config '{key}' value '{value}' is not a valid namespace.",
                {"key": key, "value": value},
            )

    for key in ("middleware", "api_middleware"):
        entries: List[str] = getattr(config, key)
        if any(not m for m in entries):
            result.add_error(
                "EMPTY_MIDDLEWARE_ENTRY",
                f"Config '{key}' contains an empty middleware name.",
                {"key": key},
            )
        seen: Set[str] = set()
        for m in entries:
            if m in seen:
                result.add_warning(
                    "DUPLICATE_MIDDLEWARE",
                    f"Middleware '{m}' is listed twice in '{key}'.",
                    {"key": key, "middleware": m},
                )
            seen.add(m)

    if config.template_dir is not None and not config.template_dir.is_dir():
        result.add_warning(
            "TEMPLATE_DIR_MISSING",
            f"Template override directory {config.template_dir} does not exist; "
            f"bundled templates will be used.",
            {"template_dir": str(config.template_dir)},
        )

    if config.include_custom_messages and not config.use_validators:
        result.add_info(
            "MESSAGES_WITHOUT_VALIDATORS",
            "Custom validation messages are only emitted into form-request "
            "classes, which are disabled.",
        )

    return result


def validate_request(
    identifier: Optional[str],
    kind: Union[str, ArtifactKind, None],
    artifacts: Optional[Iterable[Union[str, ArtifactType]]],
    config: GenerationConfig,
) -> ValidationResult:
    """
    **Master validation entry point** for one generation request.

    Runs the identifier, kind, artifact subset and configuration checks and
    merges their results.
    """
    result: ValidationResult = ValidationResult()
    result.merge(validate_entity_identifier(identifier))
    result.merge(validate_artifact_kind(kind))
    result.merge(validate_artifact_selection(artifacts))
    result.merge(validate_generation_config(config))

    if result.has_errors:
        logger.debug(
            "Request for '%s' rejected: %s", identifier, result.summary()
        )
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "validate_entity_identifier",
    "validate_artifact_kind",
    "validate_artifact_selection",
    "validate_generation_config",
    "validate_request",
]

logger.debug("ctrlgen.validators loaded — %d public symbols.", len(__all__))

# File: ctrlgen/utils.py
"""
ctrlgen - Utility Functions & Helpers
=======================================
Naming transforms, entity identifier parsing, document loading and the
small metrics helpers shared by the pipeline stages.

Naming strategy:
- Every casing transform is derived from one word splitter, so ``BlogPost``,
  ``blog_post`` and ``blog-post`` all yield the same words.
- Transforms are memoised with ``@lru_cache(maxsize=None)``; the planner asks
  for the same handful of names once per artifact.
- Pluralisation is regular only: ``to_plural`` appends ``"s"``.  Irregular
  nouns (``person`` → ``people``) are a known limitation; declare the table
  name explicitly when it matters.
- Acronym runs are folded by ``to_pascal_case``: ``HTTPLog`` becomes
  ``HttpLog`` in class names and paths.  Name the entity ``HttpLog`` up front
  to keep the two consistent.
"""

from __future__ import annotations

import functools
import hashlib
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import yaml

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.utils")

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# Acronym runs stay together: "HTTPResponse" -> HTTP, Response.
_WORD_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)
_SEPARATOR_RE: re.Pattern[str] = re.compile(r"[^A-Za-z0-9]+")
_SNAKE_BOUNDARY_RE: re.Pattern[str] = re.compile(
    r"(?<=[A-Z])(?=[A-Z][a-z])|(?<=[a-z0-9])(?=[A-Z])"
)
_PATH_SEPARATOR_RE: re.Pattern[str] = re.compile(r"[\\/]+")

_MODELS_PREFIX: Tuple[str, str] = ("App", "Models")


# ---------------------------------------------------------------------------
# Casing
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def _words(name: str) -> Tuple[str, ...]:
    """Lower-cased words of *name*, whatever casing style it uses."""
    return tuple(w.lower() for w in _WORD_RE.findall(_SEPARATOR_RE.sub(" ", name)))


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Examples:
        >>> to_snake_case("UserProfile")
        'user_profile'
        >>> to_snake_case("getHTTPResponse")
        'get_http_response'

    Digits stay attached to the preceding word (``Post2`` → ``post2``).
    """
    marked: str = _SNAKE_BOUNDARY_RE.sub("_", name)
    return _SEPARATOR_RE.sub("_", marked).strip("_").lower()


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """``user_profile`` → ``UserProfile``; already-Pascal input is unchanged."""
    return "".join(w.capitalize() for w in _words(name))


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    pascal: str = to_pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """Route names and view directories: ``BlogPosts`` → ``blog-posts``."""
    return "-".join(_words(name))


@functools.lru_cache(maxsize=None)
def to_title_human(name: str) -> str:
    """``orderItem`` → ``Order Item`` (flash messages, docblocks)."""
    return " ".join(w.capitalize() for w in _words(name))


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """
    Regular pluralisation: ``name + "s"``.

    ``category`` becomes ``categorys`` and ``person`` becomes ``persons``.
    """
    return f"{name}s" if name else ""


@functools.lru_cache(maxsize=None)
def to_singular(name: str) -> str:
    """Strip one trailing ``s``; ``address`` and other ``-ss`` words are kept."""
    if len(name) > 1 and name[-1] in "sS" and name[-2] not in "sS":
        return name[:-1]
    return name


# ---------------------------------------------------------------------------
# Entity identifiers
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def split_identifier(identifier: str) -> Tuple[str, ...]:
    """
    Split an entity identifier on ``/`` and ``\\``.

    Examples:
        >>> split_identifier("Admin/Post")
        ('Admin', 'Post')
        >>> split_identifier("App\\\\Models\\\\Post")
        ('App', 'Models', 'Post')
    """
    return tuple(p for p in _PATH_SEPARATOR_RE.split(identifier) if p)


def entity_basename(identifier: str) -> str:
    """Canonical PascalCase entity name: the last identifier segment."""
    parts: Tuple[str, ...] = split_identifier(identifier)
    return to_pascal_case(parts[-1]) if parts else ""


def entity_subpath(identifier: str) -> Tuple[str, ...]:
    """
    Sub-namespace segments in front of the entity name.

    ``App\\Models\\Admin\\Post`` and ``Admin/Post`` both give ``("Admin",)``.
    """
    parents: Tuple[str, ...] = split_identifier(identifier)[:-1]
    if parents[:2] == _MODELS_PREFIX:
        parents = parents[2:]
    return tuple(to_pascal_case(p) for p in parents)


def default_storage_key(entity_name: str) -> str:
    """Table name of an entity that declares none: ``snake(plural(name))``."""
    return to_snake_case(to_plural(entity_name))


# ---------------------------------------------------------------------------
# Document loading (JSON / YAML)
# ---------------------------------------------------------------------------

_PARSERS: Dict[str, Callable[[str], Any]] = {
    ".json": json.loads,
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
}


def _parse_mapping(text: str, parser: Callable[[str], Any], path: Path) -> Dict[str, Any]:
    try:
        data: Any = parser(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"Cannot parse {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"{path} must hold a mapping at top level, not {type(data).__name__}."
        )
    return data


def load_document(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a JSON or YAML document into a dictionary.

    The parser is picked by extension; anything else is tried as JSON and
    then as YAML.  An empty document is an empty mapping.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed or is not a mapping.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    text: str = path.read_text(encoding="utf-8")
    parser: Optional[Callable[[str], Any]] = _PARSERS.get(path.suffix.lower())
    if parser is not None:
        return _parse_mapping(text, parser, path)

    logger.info("Unknown extension on %s; trying JSON, then YAML.", path.name)
    try:
        return _parse_mapping(text, json.loads, path)
    except ValueError:
        return _parse_mapping(text, yaml.safe_load, path)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Lines in *content*; a trailing newline does not open a new line."""
    return len(content.splitlines())


class Timer:
    """
    Wall-clock timer for pipeline stages.

    Usage:
        with Timer("introspecting") as t:
            ...
        metric.elapsed_seconds = t.elapsed
    """

    __slots__ = ("label", "start_time", "end_time")

    def __init__(self, label: str = "stage") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0

    @property
    def elapsed(self) -> float:
        return self.end_time - self.start_time

    def __enter__(self) -> "Timer":
        self.start_time = self.end_time = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.end_time = time.perf_counter()
        logger.debug("%s took %.4fs", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label} {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "to_snake_case",
    "to_pascal_case",
    "to_camel_case",
    "to_kebab_case",
    "to_title_human",
    "to_plural",
    "to_singular",
    "split_identifier",
    "entity_basename",
    "entity_subpath",
    "default_storage_key",
    "load_document",
    "sha256_hex",
    "count_lines",
    "Timer",
]

logger.debug("ctrlgen.utils loaded — %d public symbols.", len(__all__))

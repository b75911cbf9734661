# File: ctrlgen/templates.py
"""
ctrlgen - Template Loader & Renderer
======================================
Plain-text templates with ``{{ name }}`` placeholders.  There is no control
flow: every conditional decision is made by the planner, which hands the
renderer finished strings, booleans, lists or maps.

**Substitution contract:**
    - Single pass, left to right.  Substituted text is never re-scanned, so a
      value containing ``{{ x }}`` is emitted literally.
    - A placeholder matches a variable by its *whole* name between the
      delimiters; ``{{ model }}`` can never consume part of
      ``{{ modelVariable }}``.
    - Placeholders with no variable of that name are left verbatim so callers
      can detect them with :func:`find_unresolved_placeholders`.  Rendering
      itself never fails.

**Value formatting** (see :func:`format_value`):

    ===================  ===================================
    value                rendered as
    ===================  ===================================
    ``True`` / ``False``  ``true`` / ``false``
    ``None``              empty string
    list / tuple          ``'a', 'b', 3`` (text items quoted)
    mapping               ``'k' => 'v', 'k2' => 'v2'``
    ===================  ===================================

Template lookup goes override directory first, then the bundled ``stubs/``
directory shipped inside the package.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ctrlgen.errors import TemplateNotFound

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

OPEN_DELIMITER: str = "{{"
CLOSE_DELIMITER: str = "}}"
BUNDLED_TEMPLATE_DIR: Path = Path(__file__).resolve().parent / "stubs"

_PLACEHOLDER_NAME_RE: re.Pattern[str] = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
# Detection only; substitution never uses regular expressions.
_RESIDUAL_PLACEHOLDER_RE: re.Pattern[str] = re.compile(r"\{\{\s*([^{}]*?)\s*\}\}")


# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------


def _quote(value: Any) -> str:
    return f"'{value}'"


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def format_value(value: Any) -> str:
    """
    Render one variable value as template text.

    Examples:
        >>> format_value(True)
        'true'
        >>> format_value(["web", "auth"])
        "'web', 'auth'"
        >>> format_value({"title": "required"})
        "'title' => 'required'"
    """
    if isinstance(value, bool) or value is None:
        return _format_scalar(value)
    if isinstance(value, Mapping):
        return ", ".join(
            f"{_quote(k)} => {_quote(_format_scalar(v))}" for k, v in value.items()
        )
    if isinstance(value, (list, tuple)):
        return ", ".join(
            _quote(item) if isinstance(item, str) else _format_scalar(item)
            for item in value
        )
    return str(value)


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


def find_unresolved_placeholders(text: str) -> List[str]:
    """Names of every ``{{ ... }}`` token still present in *text*, in order."""
    return [match.group(1) for match in _RESIDUAL_PLACEHOLDER_RE.finditer(text)]


class TemplateRenderer:
    """
    Stateless single-pass placeholder substitution.

    Thread-safe: no instance state is mutated while rendering.
    """

    def render(self, template_text: str, variables: Mapping[str, Any]) -> str:
        out: List[str] = []
        pos: int = 0
        length: int = len(template_text)
        substituted: int = 0

        while pos < length:
            start: int = template_text.find(OPEN_DELIMITER, pos)
            if start == -1:
                out.append(template_text[pos:])
                break
            end: int = template_text.find(CLOSE_DELIMITER, start + len(OPEN_DELIMITER))
            if end == -1:
                out.append(template_text[pos:])
                break

            name: str = template_text[start + len(OPEN_DELIMITER):end].strip()
            if _PLACEHOLDER_NAME_RE.fullmatch(name) and name in variables:
                out.append(template_text[pos:start])
                out.append(format_value(variables[name]))
                pos = end + len(CLOSE_DELIMITER)
                substituted += 1
            else:
                # Emit the opening brace pair untouched and keep scanning.
                out.append(template_text[pos:start + len(OPEN_DELIMITER)])
                pos = start + len(OPEN_DELIMITER)

        logger.debug("Rendered template: %d placeholders substituted.", substituted)
        return "".join(out)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class TemplateLoader:
    """
    Resolve template names to text.

    Args:
        override_dir: Optional directory searched before the bundled stubs.
        bundled_dir: Location of the default templates (tests may swap it).
    """

    def __init__(
        self,
        override_dir: Optional[Path] = None,
        bundled_dir: Path = BUNDLED_TEMPLATE_DIR,
    ) -> None:
        self._override_dir: Optional[Path] = Path(override_dir) if override_dir else None
        self._bundled_dir: Path = Path(bundled_dir)

    @property
    def search_path(self) -> List[Path]:
        dirs: List[Path] = []
        if self._override_dir is not None:
            dirs.append(self._override_dir)
        dirs.append(self._bundled_dir)
        return dirs

    def resolve(self, template_id: str) -> Path:
        """
        Return the path that :meth:`load` would read.

        Raises:
            TemplateNotFound: Neither the override nor the bundled copy exists.
        """
        searched: List[Path] = []
        for directory in self.search_path:
            candidate: Path = directory / template_id
            searched.append(candidate)
            if candidate.is_file():
                return candidate
        raise TemplateNotFound(template_id, searched)

    def load(self, template_id: str) -> str:
        path: Path = self.resolve(template_id)
        logger.debug("Loading template '%s' from %s.", template_id, path)
        return path.read_text(encoding="utf-8")

    def available(self) -> List[str]:
        """Every template name visible through the search path, sorted."""
        names: set[str] = set()
        for directory in self.search_path:
            if directory.is_dir():
                names.update(p.name for p in directory.glob("*.stub") if p.is_file())
        return sorted(names)

    def __repr__(self) -> str:
        return f"<TemplateLoader {[str(p) for p in self.search_path]}>"


def render_named(
    loader: TemplateLoader,
    renderer: TemplateRenderer,
    template_id: str,
    variables: Mapping[str, Any],
) -> str:
    """Load *template_id* and render it; ``TemplateNotFound`` propagates."""
    return renderer.render(loader.load(template_id), variables)


def placeholder_names(template_text: str) -> Sequence[str]:
    """Distinct placeholder names declared by a template, in first-use order."""
    seen: Dict[str, None] = {}
    for name in find_unresolved_placeholders(template_text):
        seen.setdefault(name, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "TemplateRenderer",
    "TemplateLoader",
    "format_value",
    "find_unresolved_placeholders",
    "placeholder_names",
    "render_named",
    "BUNDLED_TEMPLATE_DIR",
]

logger.debug("ctrlgen.templates loaded — %d public symbols.", len(__all__))

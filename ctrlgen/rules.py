# File: ctrlgen/rules.py
"""
ctrlgen - Rule Inference Engine
=================================
Deterministic, I/O-free derivation of validation rule sets and field
classifications from an ``EntityDescriptor``.

Pipeline per field (reserved and non-mutable fields are skipped):

    1. presence token    — ``nullable`` or ``required``
    2. type token(s)     — from ``_TYPE_TOKENS`` (strings also get ``max:<n>``)
    3. name overlays     — email / password / url / ``*_id`` existence check

The mutation variant is derived from the creation variant by replacing each
``required`` with ``sometimes, required``.  Nothing else changes.

Every function here is pure: calling it twice on the same descriptor yields
identical tuples.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from ctrlgen.models import (
    SOFT_DELETE_FIELD_NAME,
    TIMESTAMP_FIELD_NAMES,
    EntityDescriptor,
    FieldDescriptor,
    FieldType,
)
from ctrlgen.utils import to_plural, to_title_human

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.rules")

# An ordered sequence of rule tokens for one field.
RuleSet = Tuple[str, ...]

# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------

DEFAULT_STRING_MAX_LENGTH: int = 255
DATETIME_TOKEN: str = "date_format:Y-m-d H:i:s"
PASSWORD_MIN_TOKEN: str = "min:8"

_TYPE_TOKENS: Dict[FieldType, Tuple[str, ...]] = {
    FieldType.STRING: ("string",),
    FieldType.TEXT: ("string",),
    FieldType.INTEGER: ("integer",),
    FieldType.DECIMAL: ("numeric",),
    FieldType.BOOLEAN: ("boolean",),
    FieldType.DATE: ("date",),
    FieldType.DATETIME: (DATETIME_TOKEN,),
    FieldType.JSON: ("json",),
    FieldType.UUID: ("uuid",),
}

_URL_MARKERS: Tuple[str, ...] = ("url", "website", "link")

# Default search field candidates; list order wins over declaration order.
PREFERRED_SEARCH_NAMES: Tuple[str, ...] = (
    "name",
    "title",
    "subject",
    "description",
    "email",
)

_MESSAGE_TEMPLATES: Dict[str, str] = {
    "required": "The {field} field is required.",
    "email": "The {field} must be a valid email address.",
    "url": "The {field} must be a valid URL.",
    "numeric": "The {field} must be a number.",
    "integer": "The {field} must be an integer.",
    "boolean": "The {field} field must be true or false.",
    "date": "The {field} is not a valid date.",
    "json": "The {field} must be a valid JSON string.",
    "uuid": "The {field} must be a valid UUID.",
}
_FALLBACK_MESSAGE: str = "The {field} field is invalid."

# Tokens that never get a custom message.
_SILENT_TOKENS: Tuple[str, ...] = ("nullable", "sometimes")


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FieldClassification:
    """Field names the planner uses for index search / filter / sort."""

    searchable: Tuple[str, ...] = ()
    filterable: Tuple[str, ...] = ()
    sortable: Tuple[str, ...] = ()
    default_search_field: str = "id"


@dataclass(frozen=True, slots=True)
class InferredRules:
    """Everything the rule engine derives for one entity."""

    creation: Dict[str, RuleSet] = field(default_factory=dict)
    mutation: Dict[str, RuleSet] = field(default_factory=dict)
    classification: FieldClassification = field(default_factory=FieldClassification)
    messages: Dict[str, str] = field(default_factory=dict)

    @property
    def field_names(self) -> List[str]:
        return list(self.creation.keys())


# ---------------------------------------------------------------------------
# Per-field inference
# ---------------------------------------------------------------------------


def _append_unique(tokens: List[str], token: str) -> None:
    if token not in tokens:
        tokens.append(token)


def _type_tokens(fd: FieldDescriptor) -> List[str]:
    tokens: List[str] = list(_TYPE_TOKENS.get(fd.type, ("string",)))
    if fd.type is FieldType.STRING:
        tokens.append(f"max:{fd.max_length or DEFAULT_STRING_MAX_LENGTH}")
    return tokens


def _overlay_tokens(name: str) -> List[str]:
    lowered: str = name.lower()
    tokens: List[str] = []
    if "email" in lowered:
        tokens.append("email")
    if "password" in lowered:
        tokens.append(PASSWORD_MIN_TOKEN)
    if any(marker in lowered for marker in _URL_MARKERS):
        tokens.append("url")
    if lowered.endswith("_id") and len(lowered) > 3:
        tokens.append(f"exists:{to_plural(name[:-3])},id")
    return tokens


def field_rules(fd: FieldDescriptor) -> RuleSet:
    """
    Creation rule set for one field (no reserved / mutability checks).

    Examples:
        >>> field_rules(FieldDescriptor(name="title", type="string"))
        ('required', 'string', 'max:255')
        >>> field_rules(FieldDescriptor(name="user_id", type="integer"))
        ('required', 'integer', 'exists:users,id')
    """
    tokens: List[str] = ["nullable" if fd.nullable else "required"]
    for token in _type_tokens(fd) + _overlay_tokens(fd.name):
        _append_unique(tokens, token)
    return tuple(tokens)


def _rule_candidates(entity: EntityDescriptor) -> List[FieldDescriptor]:
    reserved = entity.reserved_names
    return [f for f in entity.fields if f.name not in reserved and f.mutable]


def infer_rules(entity: EntityDescriptor) -> Dict[str, RuleSet]:
    """Creation rule sets keyed by field name, in declaration order."""
    return {fd.name: field_rules(fd) for fd in _rule_candidates(entity)}


def derive_mutation_rules(rule_set: RuleSet) -> RuleSet:
    """
    Mutation variant: each ``required`` becomes ``sometimes, required``.

    Examples:
        >>> derive_mutation_rules(("required", "string", "max:255"))
        ('sometimes', 'required', 'string', 'max:255')
        >>> derive_mutation_rules(("nullable", "date"))
        ('nullable', 'date')
    """
    out: List[str] = []
    for token in rule_set:
        if token == "required":
            out.extend(("sometimes", "required"))
        else:
            out.append(token)
    return tuple(out)


# ---------------------------------------------------------------------------
# Field classification
# ---------------------------------------------------------------------------


def classify_fields(entity: EntityDescriptor) -> FieldClassification:
    """
    Derive searchable / filterable / sortable field lists.

    - searchable: textual fields whose name is in ``PREFERRED_SEARCH_NAMES``
      (in list order), else the first mutable non-reserved field;
    - filterable: boolean / integer / ``*_id`` fields, minus the key and
      bookkeeping columns;
    - sortable: key first, then timestamps, then numeric and date fields.
    """
    reserved = entity.reserved_names
    textual: Dict[str, FieldDescriptor] = {
        f.name: f for f in entity.fields if f.is_textual
    }

    searchable: List[str] = [n for n in PREFERRED_SEARCH_NAMES if n in textual]
    if not searchable:
        fallback: Optional[FieldDescriptor] = next(
            (f for f in entity.fields if f.mutable and f.name not in reserved), None
        )
        if fallback is not None:
            searchable = [fallback.name]

    bookkeeping: Tuple[str, ...] = TIMESTAMP_FIELD_NAMES + (SOFT_DELETE_FIELD_NAME,)
    filterable: List[str] = [
        f.name
        for f in entity.fields
        if f.name != entity.primary_key_field
        and f.name not in bookkeeping
        and (
            f.type in (FieldType.BOOLEAN, FieldType.INTEGER)
            or f.name.endswith("_id")
        )
    ]

    sortable: List[str] = [entity.primary_key_field]
    for ts in TIMESTAMP_FIELD_NAMES:
        if (entity.field(ts) is not None or entity.timestamped) and ts not in sortable:
            sortable.append(ts)
    for f in entity.fields:
        if f.name in sortable or f.name in bookkeeping:
            continue
        if f.is_numeric or f.is_temporal:
            sortable.append(f.name)

    return FieldClassification(
        searchable=tuple(searchable),
        filterable=tuple(filterable),
        sortable=tuple(sortable),
        default_search_field=searchable[0] if searchable else entity.primary_key_field,
    )


# ---------------------------------------------------------------------------
# Custom messages
# ---------------------------------------------------------------------------


def validation_messages(rules: Mapping[str, RuleSet]) -> Dict[str, str]:
    """
    One human message per ``field.rule`` key.

    The rule key is the token up to its first ``:`` (``max:255`` → ``max``).
    ``nullable`` and ``sometimes`` carry no message.
    """
    messages: Dict[str, str] = {}
    for field_name, rule_set in rules.items():
        human: str = to_title_human(field_name)
        for token in rule_set:
            rule_key: str = token.split(":", 1)[0]
            if rule_key in _SILENT_TOKENS:
                continue
            template: str = _MESSAGE_TEMPLATES.get(rule_key, _FALLBACK_MESSAGE)
            messages[f"{field_name}.{rule_key}"] = template.format(field=human)
    return messages


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class RuleInferenceEngine:
    """
    Bundle the rule functions behind one call.

    Usage:
        rules = RuleInferenceEngine().infer(descriptor)
        rules.creation["title"]   # ('required', 'string', 'max:255')
        rules.mutation["title"]   # ('sometimes', 'required', 'string', 'max:255')
    """

    def infer_rules(self, entity: EntityDescriptor) -> Dict[str, RuleSet]:
        return infer_rules(entity)

    def infer(self, entity: EntityDescriptor) -> InferredRules:
        creation: Dict[str, RuleSet] = infer_rules(entity)
        mutation: Dict[str, RuleSet] = {
            name: derive_mutation_rules(rule_set) for name, rule_set in creation.items()
        }
        result: InferredRules = InferredRules(
            creation=creation,
            mutation=mutation,
            classification=classify_fields(entity),
            messages=validation_messages(creation),
        )
        logger.debug(
            "Inferred rules for %s: %d fields, search on '%s'.",
            entity.name,
            len(creation),
            result.classification.default_search_field,
        )
        return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "RuleSet",
    "FieldClassification",
    "InferredRules",
    "RuleInferenceEngine",
    "PREFERRED_SEARCH_NAMES",
    "field_rules",
    "infer_rules",
    "derive_mutation_rules",
    "classify_fields",
    "validation_messages",
]

logger.debug("ctrlgen.rules loaded — %d public symbols.", len(__all__))

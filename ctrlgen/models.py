# File: ctrlgen/models.py
"""
ctrlgen - Core Data Models
============================
Pydantic V2 models describing the structure of a data entity and the
configuration of one generation invocation.  These models are the single
source of truth for the whole pipeline:

    Introspection → Rule Inference → Planning → Rendering → Writing

Descriptors (``FieldDescriptor``, ``RelationshipDescriptor``,
``EntityDescriptor``, ``ArtifactPlan``) are frozen: they are built once per
invocation and only read afterwards.  ``GenerationConfig`` is an explicit
value handed to the orchestrator at call time; there is no module-level
configuration state.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Literal, Optional, Set, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from ctrlgen.utils import default_storage_key

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class FieldType(str, Enum):
    """Abstract persisted attribute types."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    JSON = "json"
    UUID = "uuid"


class PrimaryKeyType(str, Enum):
    """Primary key flavours."""

    INTEGER = "integer"
    UUID = "uuid"
    STRING = "string"


class Cardinality(str, Enum):
    """How many related records sit on the far side of a relationship."""

    ONE = "one"
    MANY = "many"


class Direction(str, Enum):
    """Which side holds the foreign key: ``owning`` holds it, ``owned`` is referenced."""

    OWNING = "owning"
    OWNED = "owned"


class Behavior(str, Enum):
    """Capability markers declared explicitly by the structural source."""

    SOFT_DELETABLE = "soft-deletable"
    TIMESTAMPED = "timestamped"


class ArtifactKind(str, Enum):
    """Controller flavour requested by the caller."""

    API = "api"
    WEB = "web"
    HYBRID = "hybrid"


class ArtifactType(str, Enum):
    """Individual documents a plan may contain."""

    CONTROLLER = "controller"
    STORE_REQUEST = "store_request"
    UPDATE_REQUEST = "update_request"
    RESOURCE = "resource"


class OverwritePolicy(str, Enum):
    """Per-write rule governing whether an existing target is preserved."""

    SKIP_IF_EXISTS = "skip-if-exists"
    OVERWRITE = "overwrite"


class WriteStatus(str, Enum):
    """Outcome of one planned artifact."""

    WRITTEN = "written"
    SKIPPED = "skipped-exists"
    FAILED = "failed"
    PLANNED = "planned"  # dry run: rendered, not written


class Stage(str, Enum):
    """Orchestrator states, in pipeline order, plus the two terminal states."""

    VALIDATING = "validating"
    INTROSPECTING = "introspecting"
    INFERRING = "inferring"
    PLANNING = "planning"
    RENDERING = "rendering"
    WRITING = "writing"
    REPORTED = "reported"
    FAILED = "failed"


# Attribute names that never receive generated input rules.
RESERVED_FIELD_NAMES: FrozenSet[str] = frozenset(
    {"id", "created_at", "updated_at", "deleted_at"}
)
TIMESTAMP_FIELD_NAMES: Tuple[str, ...] = ("created_at", "updated_at")
SOFT_DELETE_FIELD_NAME: str = "deleted_at"


# ---------------------------------------------------------------------------
# Mixin: shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=False,
    frozen=False,
    extra="forbid",
)

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=False,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Structural descriptors
# ---------------------------------------------------------------------------


class FieldDescriptor(BaseModel):
    """
    One persisted attribute of an entity.

    ``mutable`` says whether the attribute may be set through mass input;
    non-mutable fields never receive generated validation rules.
    """

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Attribute name.")
    type: FieldType = Field(default=FieldType.STRING, description="Abstract type.")
    nullable: bool = Field(default=False, description="Whether NULL is accepted.")
    mutable: bool = Field(default=True, description="Settable via mass input?")
    max_length: Optional[int] = Field(
        default=None, ge=1, description="Max length for string attributes."
    )

    @property
    def is_numeric(self) -> bool:
        return self.type in {FieldType.INTEGER, FieldType.DECIMAL}

    @property
    def is_textual(self) -> bool:
        return self.type in {FieldType.STRING, FieldType.TEXT}

    @property
    def is_temporal(self) -> bool:
        return self.type in {FieldType.DATE, FieldType.DATETIME}

    def __repr__(self) -> str:
        null_flag: str = " NULL" if self.nullable else " NOT NULL"
        return f"<Field {self.name} {self.type.value}{null_flag}>"


class RelationshipDescriptor(BaseModel):
    """
    A relationship declared on an entity.

    Used only to decide eager-load lists and nested-resource embedding; the
    related entity is never mutated.
    """

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Relationship accessor name.")
    cardinality: Cardinality = Field(..., description="one | many")
    direction: Direction = Field(..., description="owning | owned")
    related_entity: str = Field(..., min_length=1, description="Target entity name.")

    @property
    def is_to_one(self) -> bool:
        return self.cardinality is Cardinality.ONE

    def __repr__(self) -> str:
        return (
            f"<Relationship {self.name} ({self.cardinality.value}, "
            f"{self.direction.value}) → {self.related_entity}>"
        )


class EntityDescriptor(BaseModel):
    """
    Structural fact sheet for one data entity.

    Invariants (checked on construction):
        - field names are unique, declaration order is preserved;
        - relationship names are unique;
        - ``primary_key_field`` appears in ``fields`` unless it is the
          synthetic default ``"id"``.

    A *degraded* descriptor carries no fields or relationships; it stands in
    for an entity whose structure could not be read.
    """

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Singular canonical name.")
    storage_key: str = Field(default="", description="Table / collection name.")
    primary_key_field: str = Field(default="id", min_length=1)
    primary_key_type: PrimaryKeyType = Field(default=PrimaryKeyType.INTEGER)
    fields: Tuple[FieldDescriptor, ...] = Field(default_factory=tuple)
    relationships: Tuple[RelationshipDescriptor, ...] = Field(default_factory=tuple)
    behaviors: FrozenSet[Behavior] = Field(default_factory=frozenset)
    degraded: bool = Field(
        default=False, description="True when structure could not be introspected."
    )

    @model_validator(mode="before")
    @classmethod
    def _default_storage_key(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("storage_key") and data.get("name"):
            data = dict(data)
            data["storage_key"] = default_storage_key(data["name"])
        return data

    @model_validator(mode="after")
    def _validate_unique_names(self) -> "EntityDescriptor":
        names: List[str] = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            dupes: List[str] = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Entity '{self.name}' has duplicate fields: {dupes}")
        rel_names: List[str] = [r.name for r in self.relationships]
        if len(rel_names) != len(set(rel_names)):
            dupes = sorted({n for n in rel_names if rel_names.count(n) > 1})
            raise ValueError(
                f"Entity '{self.name}' has duplicate relationships: {dupes}"
            )
        return self

    @model_validator(mode="after")
    def _validate_primary_key_present(self) -> "EntityDescriptor":
        if self.primary_key_field != "id" and self.field(self.primary_key_field) is None:
            raise ValueError(
                f"Primary key '{self.primary_key_field}' of entity '{self.name}' "
                f"is not one of its fields."
            )
        return self

    # -- Lookups ------------------------------------------------------------

    def field(self, name: str) -> Optional[FieldDescriptor]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def soft_deletable(self) -> bool:
        return Behavior.SOFT_DELETABLE in self.behaviors

    @property
    def timestamped(self) -> bool:
        return Behavior.TIMESTAMPED in self.behaviors

    @property
    def reserved_names(self) -> Set[str]:
        """Names excluded from input rules: the key plus timestamp columns."""
        return set(RESERVED_FIELD_NAMES) | {self.primary_key_field}

    def __repr__(self) -> str:
        flag: str = " DEGRADED" if self.degraded else ""
        return (
            f"<Entity {self.name} ({self.storage_key}) "
            f"{len(self.fields)} fields, {len(self.relationships)} rels{flag}>"
        )


# ---------------------------------------------------------------------------
# Artifact plan
# ---------------------------------------------------------------------------


class ArtifactPlan(BaseModel):
    """
    One planned output document.

    Created fresh per invocation; ``variables`` maps placeholder names to
    strings, booleans, ordered lists or associative maps.
    """

    model_config = _FROZEN_CONFIG

    artifact_type: ArtifactType
    entity: str = Field(..., min_length=1)
    class_name: str = Field(..., min_length=1)
    target_path: Path
    template_id: str = Field(..., min_length=1)
    variables: Dict[str, Any] = Field(default_factory=dict)
    overwrite_policy: OverwritePolicy = OverwritePolicy.SKIP_IF_EXISTS

    @property
    def label(self) -> str:
        return f"{self.entity}:{self.artifact_type.value}"

    def __repr__(self) -> str:
        return f"<ArtifactPlan {self.label} → {self.target_path}>"


# ---------------------------------------------------------------------------
# Generation configuration
# ---------------------------------------------------------------------------


class GenerationConfig(BaseModel):
    """
    Every knob of one generation invocation.

    Defaults reproduce a conventional Laravel application layout.
    """

    model_config = _SHARED_CONFIG

    # -- Namespaces ---------------------------------------------------------
    namespace: str = Field(
        default="App\\Http\\Controllers", description="Web / hybrid controllers."
    )
    api_namespace: str = Field(
        default="App\\Http\\Controllers\\Api", description="API controllers."
    )
    requests_namespace: str = Field(
        default="App\\Http\\Requests", description="Form-request validators."
    )
    resources_namespace: str = Field(
        default="App\\Http\\Resources", description="Response transformers."
    )
    models_namespace: str = Field(default="App\\Models", description="Model classes.")
    base_controller: str = Field(
        default="App\\Http\\Controllers\\Controller",
        description="Fully-qualified base controller class.",
    )

    # -- Middleware ---------------------------------------------------------
    middleware: List[str] = Field(default_factory=lambda: ["web"])
    api_middleware: List[str] = Field(
        default_factory=lambda: ["api", "throttle:60,1"]
    )

    # -- Feature toggles ----------------------------------------------------
    use_validators: bool = Field(default=True, description="Emit form-request classes.")
    use_transformer: bool = Field(default=True, description="Emit API resource classes.")
    include_authorization: bool = Field(default=True)
    include_format_negotiation: bool = Field(default=True)
    raw_output_fallback: bool = Field(
        default=False,
        description="Hybrid controllers may return raw JSON when transformers are off.",
    )
    include_custom_messages: bool = Field(default=False)
    include_search_filtering: bool = Field(default=True)
    soft_delete_support: bool = Field(default=True)
    include_flash_messages: bool = Field(default=True)
    eager_load_to_many: bool = Field(
        default=False, description="Eager-load to-many relationships as well."
    )

    # -- Response behaviour -------------------------------------------------
    pagination_limit: int = Field(default=15, ge=1, le=1000)
    api_path_prefix: str = Field(default="api", min_length=1)
    view_path: Optional[str] = Field(default=None)
    redirect_after_store: Literal["index", "show", "edit"] = "show"
    redirect_after_update: Literal["index", "show", "edit"] = "show"
    redirect_after_destroy: Literal["index"] = "index"

    # -- I/O ----------------------------------------------------------------
    output_dir: Path = Field(default=Path("."), description="Application base path.")
    template_dir: Optional[Path] = Field(default=None, description="Override stubs.")
    force: bool = Field(default=False, description="Overwrite existing artifacts.")
    dry_run: bool = Field(default=False, description="Render without writing.")
    introspection_timeout: Optional[float] = Field(default=None, gt=0)
    max_workers: int = Field(default=4, ge=1, le=64)

    @field_validator("middleware", "api_middleware")
    @classmethod
    def _strip_middleware(cls, v: List[str]) -> List[str]:
        return [m.strip() for m in v]

    @field_validator("api_path_prefix")
    @classmethod
    def _normalise_prefix(cls, v: str) -> str:
        return v.strip("/") or v

    # -- Helpers ------------------------------------------------------------

    @property
    def overwrite_policy(self) -> OverwritePolicy:
        return OverwritePolicy.OVERWRITE if self.force else OverwritePolicy.SKIP_IF_EXISTS

    def with_overrides(self, overrides: Dict[str, Any]) -> "GenerationConfig":
        """Return a new config with *overrides* applied key by key."""
        merged: Dict[str, Any] = self.model_dump()
        merged.update(overrides)
        return GenerationConfig.model_validate(merged)


class GenerationRequest(BaseModel):
    """What to generate: one entity, one controller flavour, optional subset."""

    model_config = _FROZEN_CONFIG

    entity: str
    kind: ArtifactKind = ArtifactKind.API
    artifacts: Optional[FrozenSet[ArtifactType]] = None

    def wants(self, artifact_type: ArtifactType) -> bool:
        return self.artifacts is None or artifact_type in self.artifacts


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FieldType",
    "PrimaryKeyType",
    "Cardinality",
    "Direction",
    "Behavior",
    "ArtifactKind",
    "ArtifactType",
    "OverwritePolicy",
    "WriteStatus",
    "Stage",
    "RESERVED_FIELD_NAMES",
    "TIMESTAMP_FIELD_NAMES",
    "SOFT_DELETE_FIELD_NAME",
    "FieldDescriptor",
    "RelationshipDescriptor",
    "EntityDescriptor",
    "ArtifactPlan",
    "GenerationConfig",
    "GenerationRequest",
]

logger.debug("ctrlgen.models loaded — %d public symbols.", len(__all__))

# File: ctrlgen/sources.py
"""
ctrlgen - Structural Metadata Sources
=======================================
Adapters that turn an entity identifier into an ``EntityDescriptor``.

The pipeline core never touches a reflection API directly: it talks to the
``StructuralMetadataSource`` interface, and one adapter exists per backend:

    ``SchemaFileSource``        — a YAML / JSON schema document
    ``DeclarativeModelSource``  — SQLAlchemy declarative model classes
    ``DatabaseSource``          — a live database reflected through SQLAlchemy

Every adapter re-reads its backing metadata on each ``describe`` call; no
descriptor is cached across invocations.

Failure contract:
    - ``EntityNotFound``     — the identifier names nothing in this source;
    - ``IntrospectionError`` — the source exists but could not be read.
"""

from __future__ import annotations

import abc
import importlib
import inspect
import logging
from pathlib import Path
from types import ModuleType
from typing import (
    Any,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
    Union,
)

import sqlalchemy
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import create_engine
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoInspectionAvailable, SQLAlchemyError
from sqlalchemy.orm import RelationshipProperty
from sqlalchemy.orm.attributes import QueryableAttribute

from ctrlgen.errors import EntityNotFound, IntrospectionError
from ctrlgen.models import (
    Behavior,
    Cardinality,
    Direction,
    EntityDescriptor,
    FieldDescriptor,
    FieldType,
    PrimaryKeyType,
    RelationshipDescriptor,
)
from ctrlgen.utils import (
    default_storage_key,
    entity_basename,
    load_document,
    to_pascal_case,
    to_singular,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.sources")


# ---------------------------------------------------------------------------
# Capability markers
# ---------------------------------------------------------------------------


class SoftDeletes:
    """
    Marker mixin: the model is soft-deletable.

    Mix into a declarative class that also maps a ``deleted_at`` column.
    """

    __ctrlgen_behavior__: Behavior = Behavior.SOFT_DELETABLE


class Timestamps:
    """Marker mixin: the model maintains ``created_at`` / ``updated_at``."""

    __ctrlgen_behavior__: Behavior = Behavior.TIMESTAMPED


_BEHAVIOR_MARKERS: Tuple[Tuple[type, Behavior], ...] = (
    (SoftDeletes, Behavior.SOFT_DELETABLE),
    (Timestamps, Behavior.TIMESTAMPED),
)

# Member-name prefixes that denote accessors, mutators and query scopes.
_NON_RELATIONSHIP_PREFIXES: Tuple[str, ...] = ("get_", "set_", "scope_")


# ---------------------------------------------------------------------------
# SQLAlchemy type mapping (shared by the two SQLAlchemy adapters)
# ---------------------------------------------------------------------------

# Order matters: Text is a String subclass, Float is a Numeric subclass.
_SQLALCHEMY_TYPE_MAP: Tuple[Tuple[type, FieldType], ...] = (
    (sqlalchemy.Text, FieldType.TEXT),
    (sqlalchemy.String, FieldType.STRING),
    (sqlalchemy.Boolean, FieldType.BOOLEAN),
    (sqlalchemy.Integer, FieldType.INTEGER),
    (sqlalchemy.Numeric, FieldType.DECIMAL),
    (sqlalchemy.DateTime, FieldType.DATETIME),
    (sqlalchemy.Date, FieldType.DATE),
    (sqlalchemy.JSON, FieldType.JSON),
    (sqlalchemy.Uuid, FieldType.UUID),
)


def map_sqlalchemy_type(column_type: Any) -> FieldType:
    """Map a SQLAlchemy column type instance to a ``FieldType`` (fallback: string)."""
    for sa_type, field_type in _SQLALCHEMY_TYPE_MAP:
        if isinstance(column_type, sa_type):
            return field_type
    return FieldType.STRING


def _string_length(column_type: Any) -> Optional[int]:
    if isinstance(column_type, sqlalchemy.String) and not isinstance(
        column_type, sqlalchemy.Text
    ):
        length: Optional[int] = getattr(column_type, "length", None)
        return length if length else None
    return None


def _primary_key_type(field_type: FieldType) -> PrimaryKeyType:
    if field_type is FieldType.UUID:
        return PrimaryKeyType.UUID
    if field_type in (FieldType.STRING, FieldType.TEXT):
        return PrimaryKeyType.STRING
    return PrimaryKeyType.INTEGER


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class StructuralMetadataSource(abc.ABC):
    """
    Read-only provider of structural facts about entities.

    Implementations must never mutate the underlying metadata.
    """

    #: Remote sources (live databases) are wrapped in a caller-supplied timeout.
    is_remote: bool = False

    @abc.abstractmethod
    def describe(self, identifier: str) -> EntityDescriptor:
        """Return the descriptor for *identifier* or raise ``EntityNotFound``."""

    @abc.abstractmethod
    def list_entities(self) -> List[str]:
        """Names of every entity this source can describe, in a stable order."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


# ---------------------------------------------------------------------------
# Schema document source
# ---------------------------------------------------------------------------


def load_schema_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a schema document and check its top-level shape.

    Expected layout::

        entities:
          - name: Post
            table: posts
            primary_key: id
            key_type: integer
            behaviors: [timestamped]
            fields:
              - {name: title, type: string, max_length: 200}
            relationships:
              - {name: user, cardinality: one, direction: owning, related: User}

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed or has no ``entities`` list.
    """
    data: Dict[str, Any] = load_document(Path(path))
    entities: Any = data.get("entities")
    if not isinstance(entities, list):
        raise ValueError(
            f"Schema document {path} must contain an 'entities' list."
        )
    return data


def entity_from_mapping(raw: Mapping[str, Any]) -> EntityDescriptor:
    """
    Build an ``EntityDescriptor`` from one ``entities`` entry.

    Accepts the short keys used in schema documents (``table``,
    ``primary_key``, ``key_type``, ``related``) as well as the descriptor's
    own field names.
    """
    if not isinstance(raw, Mapping):
        raise ValueError(f"Entity entry must be a mapping, got {type(raw).__name__}.")

    relationships: List[Dict[str, Any]] = []
    for rel in raw.get("relationships") or []:
        rel_data: Dict[str, Any] = dict(rel)
        if "related" in rel_data:
            rel_data["related_entity"] = rel_data.pop("related")
        relationships.append(rel_data)

    payload: Dict[str, Any] = {
        "name": raw.get("name"),
        "storage_key": raw.get("table") or raw.get("storage_key") or "",
        "primary_key_field": raw.get("primary_key") or raw.get("primary_key_field") or "id",
        "primary_key_type": raw.get("key_type") or raw.get("primary_key_type") or "integer",
        "fields": list(raw.get("fields") or []),
        "relationships": relationships,
        "behaviors": list(raw.get("behaviors") or []),
    }
    return EntityDescriptor.model_validate(payload)


class SchemaFileSource(StructuralMetadataSource):
    """
    Entities declared in a YAML / JSON schema document.

    The document is re-read on every call so edits are picked up between
    invocations without restarting.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path: Path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _entries(self) -> List[Mapping[str, Any]]:
        try:
            data: Dict[str, Any] = load_schema_file(self._path)
        except (FileNotFoundError, ValueError, OSError) as exc:
            raise IntrospectionError(
                f"Cannot read schema document {self._path}: {exc}"
            ) from exc
        return list(data["entities"])

    def describe(self, identifier: str) -> EntityDescriptor:
        wanted: str = entity_basename(identifier)
        for entry in self._entries():
            name: Any = entry.get("name") if isinstance(entry, Mapping) else None
            if not isinstance(name, str) or to_pascal_case(name) != wanted:
                continue
            try:
                descriptor: EntityDescriptor = entity_from_mapping(entry)
            except (PydanticValidationError, ValueError, TypeError) as exc:
                raise IntrospectionError(
                    f"Entity '{name}' in {self._path} is malformed: {exc}"
                ) from exc
            logger.debug("Schema document described %r.", descriptor)
            return descriptor
        raise EntityNotFound(identifier)

    def list_entities(self) -> List[str]:
        names: List[str] = []
        for entry in self._entries():
            if isinstance(entry, Mapping) and isinstance(entry.get("name"), str):
                names.append(entry["name"])
        return names

    def __repr__(self) -> str:
        return f"<SchemaFileSource {self._path}>"


# ---------------------------------------------------------------------------
# SQLAlchemy declarative model source
# ---------------------------------------------------------------------------


def _is_mapped_class(candidate: Any) -> bool:
    if not inspect.isclass(candidate):
        return False
    try:
        sa_inspect(candidate)
    except NoInspectionAvailable:
        return False
    return hasattr(candidate, "__table__")


def _takes_parameters(member: Any) -> bool:
    """True for plain functions / methods that declare parameters beyond ``self``."""
    func: Any = member.fget if isinstance(member, property) else member
    if not (inspect.isfunction(func) or inspect.ismethod(func)):
        return False
    try:
        params: List[inspect.Parameter] = list(inspect.signature(func).parameters.values())
    except (TypeError, ValueError):
        return True
    if params and params[0].name in ("self", "cls"):
        params = params[1:]
    return len(params) > 0


class DeclarativeModelSource(StructuralMetadataSource):
    """
    Entities defined as SQLAlchemy declarative classes.

    Columns come from the mapped table.  Relationship discovery is
    conservative; a class member is accepted only when:

        1. it takes no parameters;
        2. its name does not follow the ``get_`` / ``set_`` / ``scope_``
           accessor conventions;
        3. it is an instrumented attribute whose mapped property is a
           ``RelationshipProperty`` with a resolvable target.

    Anything ambiguous is skipped.  Mass-assignable fields follow an explicit
    ``__fillable__`` or ``__guarded__`` declaration when present.
    """

    def __init__(self, models: Iterable[type]) -> None:
        self._models: List[type] = [m for m in models if _is_mapped_class(m)]

    # -- Alternate constructors ---------------------------------------------

    @classmethod
    def from_base(cls, base: Any) -> "DeclarativeModelSource":
        """Collect every class mapped in a declarative base's registry."""
        mappers: Iterable[Any] = base.registry.mappers
        models: List[type] = sorted(
            (m.class_ for m in mappers), key=lambda c: c.__name__
        )
        return cls(models)

    @classmethod
    def from_module(cls, module: Union[str, ModuleType]) -> "DeclarativeModelSource":
        """Collect every mapped class defined in *module* (imported by name)."""
        mod: ModuleType = importlib.import_module(module) if isinstance(module, str) else module
        models: List[type] = [
            obj
            for _, obj in inspect.getmembers(mod, inspect.isclass)
            if obj.__module__ == mod.__name__ and _is_mapped_class(obj)
        ]
        logger.debug("Module %s exposes %d mapped classes.", mod.__name__, len(models))
        return cls(models)

    # -- Interface ------------------------------------------------------------

    def list_entities(self) -> List[str]:
        return [m.__name__ for m in self._models]

    def describe(self, identifier: str) -> EntityDescriptor:
        model: type = self._resolve(identifier)
        try:
            table: Any = model.__table__
            fields, pk_name, pk_type = self._describe_columns(model, table)
        except SQLAlchemyError as exc:
            raise IntrospectionError(
                f"Cannot read columns of {model.__name__}: {exc}"
            ) from exc

        descriptor: EntityDescriptor = EntityDescriptor(
            name=model.__name__,
            storage_key=str(table.name),
            primary_key_field=pk_name,
            primary_key_type=pk_type,
            fields=tuple(fields),
            relationships=tuple(self._discover_relationships(model)),
            behaviors=self._behaviors(model),
        )
        logger.debug("Declarative model described %r.", descriptor)
        return descriptor

    # -- Internals ------------------------------------------------------------

    def _resolve(self, identifier: str) -> type:
        wanted: str = entity_basename(identifier)
        for model in self._models:
            if model.__name__ == wanted:
                return model
        for model in self._models:
            if model.__name__.lower() == wanted.lower():
                return model
        raise EntityNotFound(identifier)

    @staticmethod
    def _mutable_names(model: type, columns: Sequence[Any]) -> Set[str]:
        fillable: Optional[Sequence[str]] = getattr(model, "__fillable__", None)
        if fillable is not None:
            return set(fillable)
        guarded: Optional[Sequence[str]] = getattr(model, "__guarded__", None)
        if guarded is not None:
            return {c.name for c in columns if c.name not in set(guarded)}
        return {c.name for c in columns if not c.primary_key}

    def _describe_columns(
        self, model: type, table: Any
    ) -> Tuple[List[FieldDescriptor], str, PrimaryKeyType]:
        columns: List[Any] = list(table.columns)
        mutable: Set[str] = self._mutable_names(model, columns)

        fields: List[FieldDescriptor] = []
        for column in columns:
            fields.append(
                FieldDescriptor(
                    name=column.name,
                    type=map_sqlalchemy_type(column.type),
                    nullable=bool(column.nullable) and not column.primary_key,
                    mutable=column.name in mutable and not column.primary_key,
                    max_length=_string_length(column.type),
                )
            )

        pk_columns: List[Any] = list(table.primary_key.columns)
        if not pk_columns:
            return fields, "id", PrimaryKeyType.INTEGER
        pk: Any = pk_columns[0]
        return fields, pk.name, _primary_key_type(map_sqlalchemy_type(pk.type))

    def _discover_relationships(self, model: type) -> List[RelationshipDescriptor]:
        relationships: List[RelationshipDescriptor] = []
        seen: Set[str] = set()

        # Relationship direction is only known once the registry is configured.
        try:
            sa_inspect(model).attrs
        except SQLAlchemyError as exc:
            logger.warning(
                "Skipping relationships of %s: mappers cannot be configured (%s).",
                model.__name__,
                exc,
            )
            return relationships

        for name in self._candidate_names(model):
            if name.startswith(_NON_RELATIONSHIP_PREFIXES):
                continue
            raw: Any = inspect.getattr_static(model, name, None)
            if _takes_parameters(raw):
                continue
            if not isinstance(raw, QueryableAttribute):
                continue
            try:
                prop: Any = raw.property
                if not isinstance(prop, RelationshipProperty):
                    continue
                target: type = prop.mapper.class_
                direction_name: str = prop.direction.name
                uselist: bool = bool(prop.uselist)
            except SQLAlchemyError as exc:
                logger.warning(
                    "Skipping relationship %s.%s: target cannot be resolved (%s).",
                    model.__name__,
                    name,
                    exc,
                )
                continue

            if name in seen:
                continue
            seen.add(name)
            relationships.append(
                RelationshipDescriptor(
                    name=name,
                    cardinality=Cardinality.MANY if uselist else Cardinality.ONE,
                    direction=(
                        Direction.OWNING if direction_name == "MANYTOONE" else Direction.OWNED
                    ),
                    related_entity=target.__name__,
                )
            )
        return relationships

    @staticmethod
    def _candidate_names(model: type) -> List[str]:
        """Class member names in declaration order, base classes first."""
        names: List[str] = []
        for klass in reversed(model.__mro__):
            if klass is object:
                continue
            for name in vars(klass):
                if name.startswith("_") or name in names:
                    continue
                names.append(name)
        return names

    @staticmethod
    def _behaviors(model: type) -> FrozenSet[Behavior]:
        return frozenset(
            behavior for marker, behavior in _BEHAVIOR_MARKERS if issubclass(model, marker)
        )

    def __repr__(self) -> str:
        return f"<DeclarativeModelSource {len(self._models)} models>"


# ---------------------------------------------------------------------------
# Live database source
# ---------------------------------------------------------------------------


class DatabaseSource(StructuralMetadataSource):
    """
    Entities reflected from a live database with ``sqlalchemy.inspect``.

    Tables map to entities by ``snake(plural(name))``.  Outgoing foreign keys
    become to-one owning relationships named after the key column (``user_id``
    → ``user``); incoming foreign keys become to-many owned relationships
    named after the referencing table.  Behaviours cannot be reflected and
    must be supplied per entity.
    """

    is_remote: bool = True

    def __init__(
        self,
        engine: Union[str, Engine],
        *,
        behaviors: Optional[Mapping[str, Iterable[Union[str, Behavior]]]] = None,
        fillable: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        self._engine: Engine = create_engine(engine) if isinstance(engine, str) else engine
        self._behaviors: Dict[str, FrozenSet[Behavior]] = {
            name: frozenset(Behavior(b) for b in values)
            for name, values in (behaviors or {}).items()
        }
        self._fillable: Dict[str, Set[str]] = {
            name: set(values) for name, values in (fillable or {}).items()
        }

    def _inspector(self) -> Any:
        try:
            return sa_inspect(self._engine)
        except SQLAlchemyError as exc:
            raise IntrospectionError(
                f"Cannot connect to {self._engine.url.render_as_string(hide_password=True)}: {exc}"
            ) from exc

    def _table_for(self, identifier: str, table_names: Sequence[str]) -> Optional[str]:
        basename: str = entity_basename(identifier)
        for candidate in (default_storage_key(basename), identifier, identifier.lower()):
            if candidate in table_names:
                return candidate
        return None

    def list_entities(self) -> List[str]:
        try:
            tables: List[str] = sorted(self._inspector().get_table_names())
        except SQLAlchemyError as exc:
            raise IntrospectionError(f"Cannot list tables: {exc}") from exc
        return [to_pascal_case(to_singular(t)) for t in tables]

    def describe(self, identifier: str) -> EntityDescriptor:
        inspector: Any = self._inspector()
        try:
            table_names: List[str] = list(inspector.get_table_names())
            table: Optional[str] = self._table_for(identifier, table_names)
            if table is None:
                raise EntityNotFound(identifier)
            columns: List[Dict[str, Any]] = list(inspector.get_columns(table))
            pk_columns: List[str] = list(
                inspector.get_pk_constraint(table).get("constrained_columns") or []
            )
            outgoing: List[Dict[str, Any]] = list(inspector.get_foreign_keys(table))
            incoming: List[Tuple[str, Dict[str, Any]]] = [
                (other, fk)
                for other in table_names
                if other != table
                for fk in inspector.get_foreign_keys(other)
                if fk.get("referred_table") == table
            ]
        except SQLAlchemyError as exc:
            raise IntrospectionError(
                f"Cannot reflect table for '{identifier}': {exc}"
            ) from exc

        name: str = to_pascal_case(to_singular(table))
        mutable: Optional[Set[str]] = self._fillable.get(name)

        fields: List[FieldDescriptor] = []
        pk_type: PrimaryKeyType = PrimaryKeyType.INTEGER
        for column in columns:
            col_name: str = column["name"]
            field_type: FieldType = map_sqlalchemy_type(column["type"])
            is_pk: bool = col_name in pk_columns
            if is_pk and col_name == (pk_columns[0] if pk_columns else None):
                pk_type = _primary_key_type(field_type)
            fields.append(
                FieldDescriptor(
                    name=col_name,
                    type=field_type,
                    nullable=bool(column.get("nullable", True)) and not is_pk,
                    mutable=(not is_pk) and (mutable is None or col_name in mutable),
                    max_length=_string_length(column["type"]),
                )
            )

        relationships: List[RelationshipDescriptor] = []
        used: Set[str] = set()
        for fk in outgoing:
            constrained: List[str] = fk.get("constrained_columns") or []
            referred: str = fk.get("referred_table") or ""
            if not referred:
                continue
            rel_name: str = (
                constrained[0][:-3]
                if len(constrained) == 1 and constrained[0].endswith("_id")
                else to_singular(referred)
            )
            if rel_name in used:
                continue
            used.add(rel_name)
            relationships.append(
                RelationshipDescriptor(
                    name=rel_name,
                    cardinality=Cardinality.ONE,
                    direction=Direction.OWNING,
                    related_entity=to_pascal_case(to_singular(referred)),
                )
            )
        for other, _fk in incoming:
            if other in used:
                continue
            used.add(other)
            relationships.append(
                RelationshipDescriptor(
                    name=other,
                    cardinality=Cardinality.MANY,
                    direction=Direction.OWNED,
                    related_entity=to_pascal_case(to_singular(other)),
                )
            )

        descriptor: EntityDescriptor = EntityDescriptor(
            name=name,
            storage_key=table,
            primary_key_field=pk_columns[0] if pk_columns else "id",
            primary_key_type=pk_type,
            fields=tuple(fields),
            relationships=tuple(relationships),
            behaviors=self._behaviors.get(name, frozenset()),
        )
        logger.debug("Database reflected %r.", descriptor)
        return descriptor

    def __repr__(self) -> str:
        return f"<DatabaseSource {self._engine.url.render_as_string(hide_password=True)}>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "StructuralMetadataSource",
    "SchemaFileSource",
    "DeclarativeModelSource",
    "DatabaseSource",
    "SoftDeletes",
    "Timestamps",
    "load_schema_file",
    "entity_from_mapping",
    "map_sqlalchemy_type",
]

logger.debug("ctrlgen.sources loaded — %d public symbols.", len(__all__))

"""
tests/test_introspection.py
Unit tests for ctrlgen.sources and ctrlgen.introspection.

Tests cover:
- Schema document source (lookup, listing, malformed / missing entities)
- SQLAlchemy declarative source (columns, mass-assignment, markers,
  conservative relationship discovery)
- Live database source reflected from SQLite
- Degraded descriptors and remote-source timeouts
"""

from __future__ import annotations

import pathlib
import sys
import threading
from typing import Any, Dict, List

import pytest
import yaml
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from ctrlgen.errors import EntityNotFound, IntrospectionError, StageTimeout
from ctrlgen.introspection import SchemaIntrospector, degraded_descriptor
from ctrlgen.models import (
    Behavior,
    Cardinality,
    Direction,
    EntityDescriptor,
    FieldType,
    PrimaryKeyType,
    Stage,
)
from ctrlgen.sources import (
    DatabaseSource,
    DeclarativeModelSource,
    SchemaFileSource,
    SoftDeletes,
    StructuralMetadataSource,
    Timestamps,
    map_sqlalchemy_type,
)


# ===========================================================================
# Declarative models used by the SQLAlchemy adapter tests
# ===========================================================================


class Base(DeclarativeBase):
    pass


class Author(Timestamps, Base):
    __tablename__ = "authors"
    __fillable__ = ["name"]

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    articles = relationship("Article", back_populates="author")

    def get_display_name(self) -> str:
        return f"{self.name} <{self.email}>"

    @property
    def initials(self) -> str:
        return "".join(part[0] for part in (self.name or "").split())


class Article(SoftDeletes, Base):
    __tablename__ = "articles"
    __guarded__ = ["id", "deleted_at"]

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    body = Column(Text)
    author_id = Column(Integer, ForeignKey("authors.id"), nullable=False)
    deleted_at = Column(DateTime)

    author = relationship("Author", back_populates="articles")

    def scope_published(self, query: Any) -> Any:
        return query

    def related_articles(self, limit: int = 5) -> List["Article"]:
        return []


# ===========================================================================
# Helpers
# ===========================================================================


class _SlowRemoteSource(StructuralMetadataSource):
    """Remote source that blocks until released or the delay runs out."""

    is_remote = True

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.release = threading.Event()
        self.calls = 0

    def describe(self, identifier: str) -> EntityDescriptor:
        self.calls += 1
        self.release.wait(self.delay)
        return EntityDescriptor(name=identifier)

    def list_entities(self) -> List[str]:
        return []


@pytest.fixture()
def sqlite_url(tmp_path: pathlib.Path) -> str:
    """A file-backed SQLite database with users and posts tables."""
    url = f"sqlite:///{tmp_path / 'app.db'}"
    metadata = MetaData()
    Table(
        "users",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(100), nullable=False),
        Column("email", String(255)),
    )
    Table(
        "posts",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("title", String(200), nullable=False),
        Column("body", Text),
        Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
        Column("created_at", DateTime),
    )
    engine = create_engine(url)
    metadata.create_all(engine)
    engine.dispose()
    return url


# ===========================================================================
# Schema document source
# ===========================================================================


class TestSchemaFileSource:
    def test_describe_entity(self, schema_source: SchemaFileSource) -> None:
        post = schema_source.describe("Post")
        assert post.name == "Post"
        assert post.storage_key == "posts"
        assert post.field_names[:3] == ["id", "title", "body"]
        assert post.field("title").max_length == 200
        assert post.soft_deletable and post.timestamped
        user_rel = next(r for r in post.relationships if r.name == "user")
        assert user_rel.cardinality is Cardinality.ONE
        assert user_rel.direction is Direction.OWNING
        assert user_rel.related_entity == "User"

    def test_lookup_normalises_identifier(self, schema_source: SchemaFileSource) -> None:
        assert schema_source.describe("post").name == "Post"
        assert schema_source.describe("Admin/Post").name == "Post"

    def test_list_entities(self, schema_source: SchemaFileSource) -> None:
        assert schema_source.list_entities() == ["User", "Post", "Comment"]

    def test_unknown_entity(self, schema_source: SchemaFileSource) -> None:
        with pytest.raises(EntityNotFound):
            schema_source.describe("Invoice")

    def test_missing_file_is_introspection_error(self, tmp_path: pathlib.Path) -> None:
        source = SchemaFileSource(tmp_path / "missing.yaml")
        with pytest.raises(IntrospectionError):
            source.describe("Post")

    def test_document_without_entities_list(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "schema.yaml"
        path.write_text("tables: []\n", encoding="utf-8")
        with pytest.raises(IntrospectionError):
            SchemaFileSource(path).describe("Post")

    def test_malformed_entity(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "schema.yaml"
        doc: Dict[str, Any] = {
            "entities": [
                {
                    "name": "Post",
                    "fields": [
                        {"name": "title", "type": "string"},
                        {"name": "title", "type": "text"},
                    ],
                }
            ]
        }
        path.write_text(yaml.dump(doc), encoding="utf-8")
        with pytest.raises(IntrospectionError, match="malformed"):
            SchemaFileSource(path).describe("Post")

    def test_edits_are_picked_up(self, schema_yaml_path: pathlib.Path, schema_dict: Dict[str, Any]) -> None:
        source = SchemaFileSource(schema_yaml_path)
        assert "summary" not in source.describe("Comment").field_names
        comment = next(e for e in schema_dict["entities"] if e["name"] == "Comment")
        comment["fields"].append({"name": "summary", "type": "string"})
        schema_yaml_path.write_text(yaml.dump(schema_dict), encoding="utf-8")
        assert "summary" in source.describe("Comment").field_names


# ===========================================================================
# SQLAlchemy declarative source
# ===========================================================================


class TestDeclarativeModelSource:
    def setup_method(self) -> None:
        self.source = DeclarativeModelSource([Author, Article])

    def test_columns(self) -> None:
        article = self.source.describe("Article")
        assert article.storage_key == "articles"
        assert article.primary_key_field == "id"
        assert article.primary_key_type is PrimaryKeyType.INTEGER
        assert article.field_names == ["id", "title", "body", "author_id", "deleted_at"]
        assert article.field("title").type is FieldType.STRING
        assert article.field("title").max_length == 200
        assert article.field("body").type is FieldType.TEXT
        assert article.field("body").nullable
        assert not article.field("title").nullable

    def test_guarded_fields_are_not_mutable(self) -> None:
        article = self.source.describe("Article")
        assert article.field("deleted_at").mutable is False
        assert article.field("id").mutable is False
        assert article.field("author_id").mutable is True

    def test_fillable_fields(self) -> None:
        author = self.source.describe("Author")
        assert author.field("name").mutable is True
        assert author.field("email").mutable is False

    def test_behaviour_markers(self) -> None:
        assert self.source.describe("Article").behaviors == frozenset({Behavior.SOFT_DELETABLE})
        assert self.source.describe("Author").behaviors == frozenset({Behavior.TIMESTAMPED})

    def test_relationships_discovered_conservatively(self) -> None:
        author = self.source.describe("Author")
        article = self.source.describe("Article")

        assert [r.name for r in author.relationships] == ["articles"]
        articles = author.relationships[0]
        assert articles.cardinality is Cardinality.MANY
        assert articles.direction is Direction.OWNED
        assert articles.related_entity == "Article"

        assert [r.name for r in article.relationships] == ["author"]
        assert article.relationships[0].cardinality is Cardinality.ONE
        assert article.relationships[0].direction is Direction.OWNING

    def test_unknown_model(self) -> None:
        with pytest.raises(EntityNotFound):
            self.source.describe("Invoice")

    def test_from_base_collects_registry(self) -> None:
        assert DeclarativeModelSource.from_base(Base).list_entities() == ["Article", "Author"]

    def test_from_module(self) -> None:
        source = DeclarativeModelSource.from_module(sys.modules[__name__])
        assert sorted(source.list_entities()) == ["Article", "Author"]

    def test_non_mapped_classes_are_ignored(self) -> None:
        source = DeclarativeModelSource([Author, Timestamps, dict])
        assert source.list_entities() == ["Author"]

    def test_type_mapping(self) -> None:
        assert map_sqlalchemy_type(Text()) is FieldType.TEXT
        assert map_sqlalchemy_type(String(10)) is FieldType.STRING
        assert map_sqlalchemy_type(Integer()) is FieldType.INTEGER
        assert map_sqlalchemy_type(DateTime()) is FieldType.DATETIME
        assert map_sqlalchemy_type(object()) is FieldType.STRING


# ===========================================================================
# Live database source
# ===========================================================================


class TestDatabaseSource:
    def test_list_entities(self, sqlite_url: str) -> None:
        assert DatabaseSource(sqlite_url).list_entities() == ["Post", "User"]

    def test_describe_reflects_columns(self, sqlite_url: str) -> None:
        post = DatabaseSource(sqlite_url).describe("Post")
        assert post.name == "Post"
        assert post.storage_key == "posts"
        assert post.field_names == ["id", "title", "body", "user_id", "created_at"]
        assert post.field("title").max_length == 200
        assert post.field("title").nullable is False
        assert post.field("body").type is FieldType.TEXT
        assert post.field("id").mutable is False

    def test_outgoing_foreign_key(self, sqlite_url: str) -> None:
        post = DatabaseSource(sqlite_url).describe("Post")
        assert len(post.relationships) == 1
        rel = post.relationships[0]
        assert (rel.name, rel.cardinality, rel.direction, rel.related_entity) == (
            "user",
            Cardinality.ONE,
            Direction.OWNING,
            "User",
        )

    def test_incoming_foreign_key(self, sqlite_url: str) -> None:
        user = DatabaseSource(sqlite_url).describe("User")
        rel = user.relationships[0]
        assert (rel.name, rel.cardinality, rel.direction, rel.related_entity) == (
            "posts",
            Cardinality.MANY,
            Direction.OWNED,
            "Post",
        )

    def test_behaviours_and_fillable_are_explicit(self, sqlite_url: str) -> None:
        source = DatabaseSource(
            sqlite_url,
            behaviors={"Post": ["timestamped"]},
            fillable={"Post": ["title", "body"]},
        )
        post = source.describe("Post")
        assert post.timestamped
        assert not post.soft_deletable
        assert post.field("user_id").mutable is False
        assert post.field("title").mutable is True

    def test_unknown_table(self, sqlite_url: str) -> None:
        with pytest.raises(EntityNotFound):
            DatabaseSource(sqlite_url).describe("Invoice")

    def test_is_remote(self, sqlite_url: str) -> None:
        assert DatabaseSource(sqlite_url).is_remote is True


# ===========================================================================
# SchemaIntrospector
# ===========================================================================


class TestSchemaIntrospector:
    def test_no_source_means_not_found(self) -> None:
        with pytest.raises(EntityNotFound):
            SchemaIntrospector().describe("Post")

    def test_degrades_when_missing(self) -> None:
        descriptor, warning = SchemaIntrospector().describe_or_degrade("Admin/BlogPost")
        assert descriptor.degraded
        assert descriptor.name == "BlogPost"
        assert descriptor.fields == ()
        assert descriptor.relationships == ()
        assert warning is not None and "degraded" in warning

    def test_degrades_when_unreadable(self, tmp_path: pathlib.Path) -> None:
        introspector = SchemaIntrospector(SchemaFileSource(tmp_path / "missing.yaml"))
        descriptor, warning = introspector.describe_or_degrade("Post")
        assert descriptor.degraded
        assert warning

    def test_found_entity_has_no_warning(self, schema_source: SchemaFileSource) -> None:
        descriptor, warning = SchemaIntrospector(schema_source).describe_or_degrade("Post")
        assert not descriptor.degraded
        assert warning is None

    def test_remote_source_timeout(self) -> None:
        source = _SlowRemoteSource(delay=5.0)
        try:
            with pytest.raises(StageTimeout) as exc_info:
                SchemaIntrospector(source).describe("Post", timeout=0.05)
            assert exc_info.value.stage is Stage.INTROSPECTING
            assert exc_info.value.timeout == pytest.approx(0.05)
        finally:
            source.release.set()

    def test_timeout_is_not_degraded(self) -> None:
        source = _SlowRemoteSource(delay=5.0)
        try:
            with pytest.raises(StageTimeout):
                SchemaIntrospector(source).describe_or_degrade("Post", timeout=0.05)
        finally:
            source.release.set()

    def test_fast_remote_source_within_timeout(self) -> None:
        source = _SlowRemoteSource(delay=0.0)
        source.release.set()
        assert SchemaIntrospector(source).describe("Post", timeout=5.0).name == "Post"

    def test_degraded_descriptor_helper(self) -> None:
        ghost = degraded_descriptor("App\\Models\\Ghost")
        assert ghost.name == "Ghost"
        assert ghost.storage_key == "ghosts"
        assert ghost.degraded

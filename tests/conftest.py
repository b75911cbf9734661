"""
tests/conftest.py
Shared fixtures for the ctrlgen test suite.

No external mocking libraries are used; real file I/O is performed
inside temporary directories managed by pytest's tmp_path fixtures.
"""

from __future__ import annotations

import copy
import logging
import pathlib
from typing import Any, Dict, Iterator

import pytest
import yaml

from ctrlgen.models import EntityDescriptor, GenerationConfig
from ctrlgen.sources import SchemaFileSource, entity_from_mapping


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
SCHEMA_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "schema_example.yaml"


# ---------------------------------------------------------------------------
# Logging isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_ctrlgen_logger() -> Iterator[None]:
    """The CLI installs its own handler; undo that between tests."""
    yield
    root_logger: logging.Logger = logging.getLogger("ctrlgen")
    root_logger.handlers.clear()
    root_logger.setLevel(logging.NOTSET)
    root_logger.propagate = True


# ---------------------------------------------------------------------------
# Raw schema data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_schema_dict() -> Dict[str, Any]:
    """Load the reference schema_example.yaml once per session and return as dict."""
    assert SCHEMA_EXAMPLE_PATH.exists(), (
        f"Reference schema not found at {SCHEMA_EXAMPLE_PATH}. "
        "Make sure schema_example.yaml is in the project root."
    )
    with open(SCHEMA_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def schema_dict(raw_schema_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_schema_dict)


@pytest.fixture()
def schema_yaml_path(schema_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the schema dict to a temporary YAML file and return its path."""
    path = tmp_path / "schema.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(schema_dict, fh, default_flow_style=False, allow_unicode=True)
    return path


@pytest.fixture()
def schema_source(schema_yaml_path: pathlib.Path) -> SchemaFileSource:
    return SchemaFileSource(schema_yaml_path)


# ---------------------------------------------------------------------------
# Descriptor fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def post_entity() -> EntityDescriptor:
    """The three-field Post entity: title, body, user_id."""
    return entity_from_mapping(
        {
            "name": "Post",
            "table": "posts",
            "fields": [
                {"name": "id", "type": "integer", "mutable": False},
                {"name": "title", "type": "string"},
                {"name": "body", "type": "text", "nullable": True},
                {"name": "user_id", "type": "integer"},
                {"name": "created_at", "type": "datetime", "mutable": False},
                {"name": "updated_at", "type": "datetime", "mutable": False},
            ],
            "relationships": [
                {"name": "user", "cardinality": "one", "direction": "owning", "related": "User"},
                {"name": "comments", "cardinality": "many", "direction": "owned", "related": "Comment"},
            ],
            "behaviors": ["timestamped"],
        }
    )


@pytest.fixture()
def example_post(schema_dict: Dict[str, Any]) -> EntityDescriptor:
    """The soft-deletable Post from schema_example.yaml."""
    entry = next(e for e in schema_dict["entities"] if e["name"] == "Post")
    return entity_from_mapping(entry)


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def output_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "app-root"
    path.mkdir()
    return path


@pytest.fixture()
def config(output_dir: pathlib.Path) -> GenerationConfig:
    return GenerationConfig(output_dir=output_dir)

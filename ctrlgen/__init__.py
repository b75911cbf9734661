# File: ctrlgen/__init__.py
"""
ctrlgen — Resource Controller Generator
=========================================

Reads the structure of a persisted data entity (a schema document,
SQLAlchemy declarative models or a live database), infers input validation
rules from it and emits a resource controller with its form-request
validators and response transformer from plain-text templates.

Architecture overview::

    ┌──────────────┐     ┌────────────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ GenerationOrchestrator │────▶│  TemplateRenderer │
    │   (cli.py)   │     │     (generator.py)     │     │  (templates.py)   │
    └──────────────┘     └───────────┬────────────┘     └──────────────────┘
                                     │
              ┌──────────────┬───────┼────────┬──────────────┐
              ▼              ▼       ▼        ▼              ▼
       ┌─────────────┐ ┌─────────┐ ┌────────┐ ┌──────────┐ ┌──────────┐
       │introspection│ │  rules  │ │planner │ │fragments │ │  writer  │
       │ + sources   │ │  (.py)  │ │ (.py)  │ │  (.py)   │ │  (.py)   │
       └─────────────┘ └─────────┘ └────────┘ └──────────┘ └──────────┘

Usage::

    # As a library
    from ctrlgen import GenerationConfig, GenerationOrchestrator, SchemaFileSource
    orchestrator = GenerationOrchestrator(
        GenerationConfig(output_dir="./my-app"),
        source=SchemaFileSource("schema.yaml"),
    )
    report = orchestrator.generate("Post", kind="api")

    # From the command line
    python -m ctrlgen Post --schema schema.yaml -o ./my-app --verbose

Public API:
    - GenerationOrchestrator  — Master orchestrator
    - GenerationConfig        — Generation settings model
    - SchemaFileSource, DeclarativeModelSource, DatabaseSource
                              — Structural metadata sources
    - RuleInferenceEngine     — Validation rule inference
    - TemplateRenderer        — Placeholder substitution
    - FileWriter              — Overwrite-guarded persistence
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from ctrlgen.errors import (
    ConfigurationError,
    EntityNotFound,
    GenerationCancelled,
    GenerationError,
    IntrospectionError,
    PathConflictError,
    StageTimeout,
    TemplateNotFound,
    ValidationError,
    WriteError,
)
from ctrlgen.models import (
    ArtifactKind,
    ArtifactPlan,
    ArtifactType,
    Behavior,
    Cardinality,
    Direction,
    EntityDescriptor,
    FieldDescriptor,
    FieldType,
    GenerationConfig,
    GenerationRequest,
    OverwritePolicy,
    PrimaryKeyType,
    RelationshipDescriptor,
    Stage,
    WriteStatus,
)
from ctrlgen.validators import ValidationResult, validate_request
from ctrlgen.sources import (
    DatabaseSource,
    DeclarativeModelSource,
    SchemaFileSource,
    SoftDeletes,
    StructuralMetadataSource,
    Timestamps,
)
from ctrlgen.introspection import SchemaIntrospector
from ctrlgen.rules import InferredRules, RuleInferenceEngine
from ctrlgen.templates import TemplateLoader, TemplateRenderer
from ctrlgen.planner import ArtifactPlanner
from ctrlgen.writer import FileWriter, WriteResult
from ctrlgen.generator import (
    BatchReport,
    CancellationToken,
    GenerationOrchestrator,
    GenerationReport,
    load_config_file,
)

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__license__",
    # Core orchestrator
    "GenerationOrchestrator",
    "GenerationReport",
    "BatchReport",
    "CancellationToken",
    "load_config_file",
    # Models
    "ArtifactKind",
    "ArtifactPlan",
    "ArtifactType",
    "Behavior",
    "Cardinality",
    "Direction",
    "EntityDescriptor",
    "FieldDescriptor",
    "FieldType",
    "GenerationConfig",
    "GenerationRequest",
    "OverwritePolicy",
    "PrimaryKeyType",
    "RelationshipDescriptor",
    "Stage",
    "WriteStatus",
    # Errors
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
    # Validation
    "validate_request",
    "ValidationResult",
    # Sources & introspection
    "StructuralMetadataSource",
    "SchemaFileSource",
    "DeclarativeModelSource",
    "DatabaseSource",
    "SoftDeletes",
    "Timestamps",
    "SchemaIntrospector",
    # Pipeline components
    "RuleInferenceEngine",
    "InferredRules",
    "ArtifactPlanner",
    "TemplateLoader",
    "TemplateRenderer",
    "FileWriter",
    "WriteResult",
]

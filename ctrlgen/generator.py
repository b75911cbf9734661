# File: ctrlgen/generator.py
"""
ctrlgen - Generation Orchestrator
===================================
Connects every phase of the pipeline:

    Validating → Introspecting → Inferring → Planning → Rendering → Writing
                                                                  → Reported
    (any stage) ────────────────────────────────────────────────→ Failed

The ``GenerationOrchestrator`` class is both the programmatic API and the
backend for the CLI.

Error handling strategy:
    - Invocation-fatal errors (validation, configuration, path conflict,
      timeout, cancellation) move the report to ``Failed`` and record the
      stage they happened in.  Nothing has been written at that point.
    - ``EntityNotFound`` / ``IntrospectionError`` are absorbed by the
      introspector: generation proceeds from a degraded descriptor and the
      report carries a warning.
    - ``TemplateNotFound`` and ``WriteError`` are artifact-local: the artifact
      is reported as failed, its siblings carry on.
    - Any other exception while preparing an entity is wrapped in a
      ``GenerationError`` and fails that entity only; batch siblings keep
      their reports.
    - No automatic retries.  Library code never exits the process; the CLI
      maps reports to exit codes.

Concurrency:
    - One entity runs strictly sequentially.
    - ``generate_batch`` prepares entities in parallel (validation through
      rendering, no I/O), checks the *union* of target paths for conflicts,
      and only then writes.  A conflict fails the whole batch before any
      file is created.
    - Cancellation is cooperative and checked between stages.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    Any,
    Callable,
    Collection,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from pydantic import ValidationError as PydanticValidationError

from ctrlgen.errors import (
    GenerationCancelled,
    GenerationError,
    PathConflictError,
    TemplateNotFound,
    ValidationError,
    WriteError,
)
from ctrlgen.introspection import SchemaIntrospector
from ctrlgen.models import (
    ArtifactKind,
    ArtifactPlan,
    ArtifactType,
    EntityDescriptor,
    GenerationConfig,
    GenerationRequest,
    Stage,
    WriteStatus,
)
from ctrlgen.planner import ArtifactPlanner
from ctrlgen.rules import InferredRules, RuleInferenceEngine
from ctrlgen.sources import StructuralMetadataSource
from ctrlgen.templates import (
    TemplateLoader,
    TemplateRenderer,
    find_unresolved_placeholders,
)
from ctrlgen.utils import Timer, entity_basename, load_document, sha256_hex
from ctrlgen.validators import ValidationResult, validate_request
from ctrlgen.writer import FileWriter, WriteResult

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.generator")

_T = TypeVar("_T")


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class CancellationToken:
    """Thread-safe flag observed by the orchestrator between stages."""

    __slots__ = ("_event", "reason")

    def __init__(self) -> None:
        self._event: threading.Event = threading.Event()
        self.reason: str = ""

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: Stage) -> None:
        if self._event.is_set():
            raise GenerationCancelled(
                f"Generation cancelled before {stage.value}: {self.reason}.",
                stage=stage,
            )


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline stage."""

    stage: Stage
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class ArtifactOutcome:
    """What happened to one planned artifact."""

    label: str
    artifact_type: ArtifactType
    path: Path
    status: WriteStatus
    error: Optional[str] = None
    failed_stage: Optional[Stage] = None
    content: Optional[str] = None
    sha256: str = ""

    @property
    def failed(self) -> bool:
        return self.status is WriteStatus.FAILED

    def describe(self) -> str:
        if self.failed:
            return f"Failed: {self.error}"
        if self.status is WriteStatus.SKIPPED:
            return "Skipped-exists"
        if self.status is WriteStatus.PLANNED:
            return "Planned (dry run)"
        return "Written"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "artifact": self.artifact_type.value,
            "path": str(self.path),
            "status": self.status.value,
            "error": self.error,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "sha256": self.sha256,
        }


_OUTCOME_ICONS: Dict[WriteStatus, str] = {
    WriteStatus.WRITTEN: "✓",
    WriteStatus.SKIPPED: "⊘",
    WriteStatus.FAILED: "✗",
    WriteStatus.PLANNED: "•",
}


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Structured result of one entity's pipeline run.

    ``stage`` is the terminal state: ``REPORTED`` or ``FAILED``.  When it is
    ``FAILED``, ``failed_stage`` says where and ``error`` says why.
    """

    entity: str = ""
    kind: str = ""
    stage: Stage = Stage.VALIDATING
    failed_stage: Optional[Stage] = None
    error: Optional[str] = None
    exception: Optional[GenerationError] = None
    degraded: bool = False
    dry_run: bool = False
    outcomes: List[ArtifactOutcome] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    routes: List[str] = field(default_factory=list)
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    validation: Optional[ValidationResult] = None
    total_elapsed_seconds: float = 0.0

    # -- Verdict ------------------------------------------------------------

    @property
    def failed(self) -> bool:
        return self.stage is Stage.FAILED

    @property
    def success(self) -> bool:
        return not self.failed and not any(o.failed for o in self.outcomes)

    def with_status(self, status: WriteStatus) -> List[ArtifactOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def written(self) -> List[ArtifactOutcome]:
        return self.with_status(WriteStatus.WRITTEN)

    @property
    def skipped(self) -> List[ArtifactOutcome]:
        return self.with_status(WriteStatus.SKIPPED)

    @property
    def failures(self) -> List[ArtifactOutcome]:
        return self.with_status(WriteStatus.FAILED)

    # -- Rendering ----------------------------------------------------------

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        lines.append(f"{'='*60}")
        lines.append("  ctrlgen — Generation Report")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:           {status}")
        lines.append(f"  Entity:           {self.entity}")
        lines.append(f"  Kind:             {self.kind}")
        if self.dry_run:
            lines.append("  Mode:             dry run (nothing written)")
        if self.failed_stage is not None:
            lines.append(f"  Failed in:        {self.failed_stage.value}")
            lines.append(f"  Reason:           {self.error}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")

        if self.step_metrics:
            lines.append(f"{'─'*60}")
            lines.append("  Pipeline Stages:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.stage.value:<16s} "
                    f"{step.elapsed_seconds:>7.3f}s  {step.detail}"
                )

        if self.outcomes:
            lines.append(f"{'─'*60}")
            lines.append(f"  Artifacts ({len(self.outcomes)}):")
            for outcome in self.outcomes:
                lines.append(
                    f"    {_OUTCOME_ICONS[outcome.status]} {outcome.path}  "
                    f"[{outcome.describe()}]"
                )

        if self.warnings:
            lines.append(f"{'─'*60}")
            lines.append(f"  Warnings ({len(self.warnings)}):")
            for warn in self.warnings:
                lines.append(f"    ⚠ {warn}")

        if self.routes:
            lines.append(f"{'─'*60}")
            lines.append("  Suggested routes:")
            for route in self.routes:
                lines.append(f"    {route}")

        lines.append(f"{'='*60}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity": self.entity,
            "kind": self.kind,
            "success": self.success,
            "stage": self.stage.value,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "error": self.error,
            "degraded": self.degraded,
            "dry_run": self.dry_run,
            "artifacts": [o.to_dict() for o in self.outcomes],
            "warnings": list(self.warnings),
            "routes": list(self.routes),
            "elapsed_seconds": round(self.total_elapsed_seconds, 6),
        }

    def to_json(self, indent_size: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent_size, ensure_ascii=False)


@dataclass(frozen=False, slots=True)
class BatchReport:
    """Reports of a bulk run plus batch-level failures (path conflicts)."""

    reports: List[GenerationReport] = field(default_factory=list)
    failed_stage: Optional[Stage] = None
    error: Optional[str] = None
    exception: Optional[GenerationError] = None
    total_elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.exception is None and all(r.success for r in self.reports)

    @property
    def outcomes(self) -> List[ArtifactOutcome]:
        return [o for r in self.reports for o in r.outcomes]

    def summary(self) -> str:
        lines: List[str] = [r.summary() for r in self.reports]
        if self.exception is not None:
            lines.append(f"{'='*60}")
            lines.append("  ❌ BATCH FAILED")
            if self.failed_stage is not None:
                lines.append(f"  Failed in:        {self.failed_stage.value}")
            lines.append(f"  Reason:           {self.error}")
            lines.append(f"{'='*60}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "error": self.error,
            "reports": [r.to_dict() for r in self.reports],
            "elapsed_seconds": round(self.total_elapsed_seconds, 6),
        }

    def to_json(self, indent_size: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent_size, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Configuration loading
# ---------------------------------------------------------------------------


def load_config_file(
    path: Union[str, Path],
    overrides: Optional[Dict[str, Any]] = None,
) -> GenerationConfig:
    """
    Load a ``GenerationConfig`` from a YAML / JSON file.

    The document may hold the settings at top level or under a ``ctrlgen``
    key.  *overrides* win key by key.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
        ValidationError: If a key is unknown or a value is out of range.
    """
    data: Dict[str, Any] = load_document(Path(path))
    if isinstance(data.get("ctrlgen"), dict):
        data = dict(data["ctrlgen"])
    if overrides:
        data.update(overrides)
    return build_config(data)


def build_config(data: Dict[str, Any]) -> GenerationConfig:
    """Validate a raw settings mapping, translating pydantic errors."""
    try:
        return GenerationConfig.model_validate(data)
    except PydanticValidationError as exc:
        result: ValidationResult = ValidationResult()
        for err in exc.errors():
            location: str = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
            result.add_error(
                "INVALID_CONFIG_VALUE",
                f"{location}: {err.get('msg', 'invalid value')}",
                {"key": location},
            )
        raise ValidationError(
            f"Configuration is invalid: {result.summary()}",
            result=result,
            stage=Stage.VALIDATING,
        ) from exc


# ---------------------------------------------------------------------------
# Path conflicts
# ---------------------------------------------------------------------------


def _path_key(path: Path) -> str:
    # Case-folded so targets differing only by case collide on any filesystem.
    return str(Path(path).resolve()).casefold()


def find_path_conflicts(plans: Iterable[ArtifactPlan]) -> Dict[Path, List[str]]:
    """Target paths claimed by more than one plan → the claimants' labels."""
    claims: Dict[str, List[ArtifactPlan]] = {}
    for plan in plans:
        claims.setdefault(_path_key(plan.target_path), []).append(plan)
    return {
        group[0].target_path: [p.label for p in group]
        for group in claims.values()
        if len(group) > 1
    }


def ensure_no_path_conflicts(plans: Iterable[ArtifactPlan]) -> None:
    """
    Raises:
        PathConflictError: For the first path claimed more than once.
    """
    conflicts: Dict[Path, List[str]] = find_path_conflicts(plans)
    for path, claimants in conflicts.items():
        raise PathConflictError(path, claimants, stage=Stage.PLANNING)


# ---------------------------------------------------------------------------
# Internal: prepared (rendered, unwritten) work
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class _Rendered:
    plan: ArtifactPlan
    content: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=False, slots=True)
class _Prepared:
    report: GenerationReport
    rendered: List[_Rendered] = field(default_factory=list)

    @property
    def plans(self) -> List[ArtifactPlan]:
        return [r.plan for r in self.rendered]


# ---------------------------------------------------------------------------
# GenerationOrchestrator
# ---------------------------------------------------------------------------


class GenerationOrchestrator:
    """
    Drive introspection, inference, planning, rendering and writing.

    Usage::

        orchestrator = GenerationOrchestrator(
            GenerationConfig(output_dir=Path("./my-app")),
            source=SchemaFileSource("schema.yaml"),
        )
        report = orchestrator.generate("Post", kind="api")
        print(report.summary())

    The orchestrator keeps no per-run state; it is reusable and every call
    re-reads structural metadata.
    """

    def __init__(
        self,
        config: Optional[GenerationConfig] = None,
        source: Optional[StructuralMetadataSource] = None,
        *,
        loader: Optional[TemplateLoader] = None,
        renderer: Optional[TemplateRenderer] = None,
        writer: Optional[FileWriter] = None,
    ) -> None:
        self._config: GenerationConfig = config or GenerationConfig()
        self._introspector: SchemaIntrospector = SchemaIntrospector(source)
        self._engine: RuleInferenceEngine = RuleInferenceEngine()
        self._planner: ArtifactPlanner = ArtifactPlanner(self._config)
        self._loader: TemplateLoader = loader or TemplateLoader(self._config.template_dir)
        self._renderer: TemplateRenderer = renderer or TemplateRenderer()
        self._writer: FileWriter = writer or FileWriter()
        logger.debug(
            "GenerationOrchestrator initialised (source=%r, output=%s, dry_run=%s).",
            source,
            self._config.output_dir,
            self._config.dry_run,
        )

    @property
    def config(self) -> GenerationConfig:
        return self._config

    # -----------------------------------------------------------------
    # Public: single entity
    # -----------------------------------------------------------------

    def generate(
        self,
        entity: str,
        kind: Union[str, ArtifactKind] = ArtifactKind.API,
        artifacts: Optional[Iterable[Union[str, ArtifactType]]] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GenerationReport:
        """
        Run the full pipeline for one entity.

        Never raises ``GenerationError``; failures are recorded on the
        returned report.
        """
        token: CancellationToken = cancel_token or CancellationToken()
        artifact_list: Optional[List[Union[str, ArtifactType]]] = (
            list(artifacts) if artifacts is not None else None
        )

        with Timer(f"generate {entity}") as total:
            prepared: _Prepared = self._prepare(entity, kind, artifact_list, token, None)
            report: GenerationReport = prepared.report
            if not report.failed:
                try:
                    self._write(prepared, token)
                    report.stage = Stage.REPORTED
                except GenerationError as exc:
                    self._fail(report, exc, exc.stage or Stage.WRITING)

        report.total_elapsed_seconds = total.elapsed
        self._log_verdict(report)
        return report

    # -----------------------------------------------------------------
    # Public: batch
    # -----------------------------------------------------------------

    def generate_batch(
        self,
        entities: Sequence[str],
        kind: Union[str, ArtifactKind] = ArtifactKind.API,
        artifacts: Optional[Iterable[Union[str, ArtifactType]]] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchReport:
        """
        Generate several entities; preparation runs on a thread pool.

        Every entity's pipeline is independent.  Target paths of all
        entities are checked together before the first write; a conflict
        fails the batch with ``PathConflictError`` and nothing is written.
        """
        token: CancellationToken = cancel_token or CancellationToken()
        artifact_list: Optional[List[Union[str, ArtifactType]]] = (
            list(artifacts) if artifacts is not None else None
        )
        known: frozenset[str] = frozenset(entity_basename(e) for e in entities if e)
        batch: BatchReport = BatchReport()

        with Timer("batch") as total:
            prepared: List[Optional[_Prepared]] = [None] * len(entities)
            workers: int = max(1, min(self._config.max_workers, len(entities)))
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="ctrlgen-batch"
            ) as executor:
                futures: Dict[Future[_Prepared], int] = {
                    executor.submit(
                        self._prepare, entity, kind, artifact_list, token, known
                    ): index
                    for index, entity in enumerate(entities)
                }
                for future in as_completed(futures):
                    prepared[futures[future]] = future.result()

            ready: List[_Prepared] = [p for p in prepared if p is not None]
            batch.reports = [p.report for p in ready]
            live: List[_Prepared] = [p for p in ready if not p.report.failed]

            try:
                ensure_no_path_conflicts(plan for p in live for plan in p.plans)
            except PathConflictError as exc:
                logger.error("Batch aborted before writing: %s", exc)
                batch.failed_stage = Stage.PLANNING
                batch.error = exc.message
                batch.exception = exc
                for p in live:
                    self._fail(p.report, exc, Stage.PLANNING)
            else:
                for p in live:
                    try:
                        self._write(p, token)
                        p.report.stage = Stage.REPORTED
                    except GenerationError as exc:
                        self._fail(p.report, exc, exc.stage or Stage.WRITING)

        batch.total_elapsed_seconds = total.elapsed
        for report in batch.reports:
            self._log_verdict(report)
        return batch

    # -----------------------------------------------------------------
    # Internal: stages
    # -----------------------------------------------------------------

    def _run_stage(
        self,
        report: GenerationReport,
        stage: Stage,
        token: CancellationToken,
        action: Callable[[], _T],
        detail: Callable[[_T], str] = lambda _: "",
    ) -> _T:
        token.raise_if_cancelled(stage)
        report.stage = stage
        logger.debug("[%s] → %s", report.entity, stage.value)
        metric: GenerationStepMetric = GenerationStepMetric(stage=stage)
        report.step_metrics.append(metric)
        timer: Timer = Timer(stage.value)
        try:
            with timer:
                value: _T = action()
        except Exception:
            metric.success = False
            raise
        finally:
            metric.elapsed_seconds = timer.elapsed
        metric.detail = detail(value)
        return value

    def _prepare(
        self,
        entity: str,
        kind: Union[str, ArtifactKind],
        artifacts: Optional[List[Union[str, ArtifactType]]],
        token: CancellationToken,
        known_entities: Optional[Collection[str]],
    ) -> _Prepared:
        """Validating through Rendering; no filesystem writes."""
        kind_label: str = kind.value if isinstance(kind, ArtifactKind) else str(kind)
        report: GenerationReport = GenerationReport(
            entity=str(entity), kind=kind_label, dry_run=self._config.dry_run
        )
        prepared: _Prepared = _Prepared(report=report)

        try:
            request: GenerationRequest = self._run_stage(
                report,
                Stage.VALIDATING,
                token,
                lambda: self._validate(entity, kind, artifacts, report),
            )

            def _introspect() -> EntityDescriptor:
                descriptor, warning = self._introspector.describe_or_degrade(
                    request.entity, timeout=self._config.introspection_timeout
                )
                if warning:
                    report.warnings.append(warning)
                    report.degraded = True
                return descriptor

            descriptor: EntityDescriptor = self._run_stage(
                report,
                Stage.INTROSPECTING,
                token,
                _introspect,
                lambda d: f"{len(d.fields)} fields, {len(d.relationships)} relationships",
            )
            rules: InferredRules = self._run_stage(
                report,
                Stage.INFERRING,
                token,
                lambda: self._engine.infer(descriptor),
                lambda r: f"{len(r.creation)} rule sets",
            )

            def _plan() -> List[ArtifactPlan]:
                plans: List[ArtifactPlan] = self._planner.plan(
                    descriptor, rules, request, known_entities
                )
                ensure_no_path_conflicts(plans)
                report.routes = self._planner.route_suggestions(descriptor, request)
                return plans

            plans: List[ArtifactPlan] = self._run_stage(
                report,
                Stage.PLANNING,
                token,
                _plan,
                lambda ps: f"{len(ps)} artifacts",
            )
            prepared.rendered = self._run_stage(
                report,
                Stage.RENDERING,
                token,
                lambda: self._render_all(plans, report),
                lambda rs: f"{sum(1 for r in rs if r.content is not None)} rendered",
            )
        except GenerationError as exc:
            self._fail(report, exc, exc.stage or report.stage)
        except Exception as exc:
            # Anything a source adapter or pydantic raises fails this entity only.
            logger.error(
                "[%s] unexpected error in %s",
                report.entity,
                report.stage.value,
                exc_info=True,
            )
            wrapped: GenerationError = GenerationError(
                f"Fatal generation error: {type(exc).__name__}: {exc}",
                stage=report.stage,
            )
            self._fail(report, wrapped, report.stage)
        return prepared

    def _validate(
        self,
        entity: str,
        kind: Union[str, ArtifactKind],
        artifacts: Optional[List[Union[str, ArtifactType]]],
        report: GenerationReport,
    ) -> GenerationRequest:
        result: ValidationResult = validate_request(entity, kind, artifacts, self._config)
        report.validation = result
        report.warnings.extend(w.message for w in result.warnings)
        if result.has_errors:
            raise ValidationError(
                "; ".join(e.message for e in result.errors),
                result=result,
                stage=Stage.VALIDATING,
            )
        return GenerationRequest(
            entity=entity,
            kind=ArtifactKind(kind),
            artifacts=(
                frozenset(ArtifactType(a) for a in artifacts)
                if artifacts is not None
                else None
            ),
        )

    def _render_all(
        self, plans: List[ArtifactPlan], report: GenerationReport
    ) -> List[_Rendered]:
        rendered: List[_Rendered] = []
        for plan in plans:
            try:
                template: str = self._loader.load(plan.template_id)
            except TemplateNotFound as exc:
                logger.error("[%s] %s", plan.label, exc.message)
                rendered.append(_Rendered(plan=plan, error=exc.message))
                continue
            content: str = self._renderer.render(template, plan.variables)
            leftovers: List[str] = find_unresolved_placeholders(content)
            if leftovers:
                warning: str = (
                    f"{plan.label}: unresolved placeholders in "
                    f"'{plan.template_id}': {', '.join(sorted(set(leftovers)))}"
                )
                logger.warning(warning)
                report.warnings.append(warning)
            rendered.append(_Rendered(plan=plan, content=content))
        return rendered

    def _write(self, prepared: _Prepared, token: CancellationToken) -> None:
        """Writing stage: one outcome per rendered artifact."""
        report: GenerationReport = prepared.report

        def _persist() -> List[ArtifactOutcome]:
            outcomes: List[ArtifactOutcome] = []
            for item in prepared.rendered:
                outcomes.append(self._persist_one(item))
            report.outcomes = outcomes
            return outcomes

        self._run_stage(
            report,
            Stage.WRITING,
            token,
            _persist,
            lambda outs: ", ".join(
                f"{sum(1 for o in outs if o.status is s)} {s.value}"
                for s in WriteStatus
                if any(o.status is s for o in outs)
            ),
        )

    def _persist_one(self, item: _Rendered) -> ArtifactOutcome:
        plan: ArtifactPlan = item.plan
        outcome: ArtifactOutcome = ArtifactOutcome(
            label=plan.label,
            artifact_type=plan.artifact_type,
            path=plan.target_path,
            status=WriteStatus.FAILED,
        )
        if item.content is None:
            outcome.error = item.error
            outcome.failed_stage = Stage.RENDERING
            return outcome
        if self._config.dry_run:
            outcome.status = WriteStatus.PLANNED
            outcome.content = item.content
            outcome.sha256 = sha256_hex(item.content)
            return outcome
        try:
            result: WriteResult = self._writer.write(
                plan.target_path, item.content, plan.overwrite_policy
            )
        except WriteError as exc:
            outcome.error = exc.reason
            outcome.failed_stage = Stage.WRITING
            return outcome
        outcome.status = result.status
        outcome.sha256 = result.sha256
        return outcome

    # -----------------------------------------------------------------
    # Internal: bookkeeping
    # -----------------------------------------------------------------

    @staticmethod
    def _fail(report: GenerationReport, exc: GenerationError, stage: Stage) -> None:
        report.failed_stage = stage
        report.stage = Stage.FAILED
        report.error = exc.message
        report.exception = exc
        logger.error("[%s] failed in %s: %s", report.entity, stage.value, exc.message)

    @staticmethod
    def _log_verdict(report: GenerationReport) -> None:
        if report.success:
            logger.info(
                "[%s] done: %d written, %d skipped.",
                report.entity,
                len(report.written),
                len(report.skipped),
            )
        elif not report.failed:
            logger.warning(
                "[%s] finished with %d failed artifact(s).",
                report.entity,
                len(report.failures),
            )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "GenerationOrchestrator",
    "GenerationReport",
    "GenerationStepMetric",
    "BatchReport",
    "ArtifactOutcome",
    "CancellationToken",
    "Stage",
    "load_config_file",
    "build_config",
    "find_path_conflicts",
    "ensure_no_path_conflicts",
]

logger.debug("ctrlgen.generator loaded — %d public symbols.", len(__all__))

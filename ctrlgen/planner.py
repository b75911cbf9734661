# File: ctrlgen/planner.py
"""
ctrlgen - Artifact Planner
============================
Decides *what* to emit for one entity and assembles the variable set of each
artifact.  The planner never touches the filesystem; it only computes target
paths, so every configuration contradiction surfaces before any I/O.

Controller flavours are expressed as ``KindProfile`` records instead of a
class per flavour:

    ======  =========================  ===================  ==========
    kind    controller template        namespace            transformer
    ======  =========================  ===================  ==========
    api     ``api-controller.stub``    ``api_namespace``    yes
    web     ``web-controller.stub``    ``namespace``        no
    hybrid  ``resource-controller``    ``namespace``        yes
    ======  =========================  ===================  ==========

**Naming rules** (all pure, see :func:`naming_variables`):
    - plural = name + ``"s"``; irregular nouns are not handled.
    - route name and default view path = kebab-case plural (``blog-posts``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Collection, Dict, List, Optional, Tuple

from ctrlgen.errors import ConfigurationError
from ctrlgen.fragments import (
    ControllerContext,
    ControllerFragments,
    format_rule_lines,
    messages_method,
    resource_attribute_lines,
)
from ctrlgen.models import (
    ArtifactKind,
    ArtifactPlan,
    ArtifactType,
    EntityDescriptor,
    GenerationConfig,
    GenerationRequest,
    Stage,
)
from ctrlgen.rules import InferredRules, RuleSet, validation_messages
from ctrlgen.utils import (
    entity_subpath,
    to_camel_case,
    to_kebab_case,
    to_plural,
    to_snake_case,
    to_title_human,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.planner")

# ---------------------------------------------------------------------------
# Kind profiles
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class KindProfile:
    """Kind-specific knobs of the controller artifact."""

    kind: ArtifactKind
    controller_template: str
    namespace_field: str
    middleware_field: str
    emits_resource: bool
    route_method: str

    def namespace(self, config: GenerationConfig) -> str:
        return getattr(config, self.namespace_field)

    def middleware(self, config: GenerationConfig) -> List[str]:
        return list(getattr(config, self.middleware_field))


KIND_PROFILES: Dict[ArtifactKind, KindProfile] = {
    ArtifactKind.API: KindProfile(
        kind=ArtifactKind.API,
        controller_template="api-controller.stub",
        namespace_field="api_namespace",
        middleware_field="api_middleware",
        emits_resource=True,
        route_method="apiResource",
    ),
    ArtifactKind.WEB: KindProfile(
        kind=ArtifactKind.WEB,
        controller_template="web-controller.stub",
        namespace_field="namespace",
        middleware_field="middleware",
        emits_resource=False,
        route_method="resource",
    ),
    ArtifactKind.HYBRID: KindProfile(
        kind=ArtifactKind.HYBRID,
        controller_template="resource-controller.stub",
        namespace_field="namespace",
        middleware_field="middleware",
        emits_resource=True,
        route_method="resource",
    ),
}

FORM_REQUEST_TEMPLATE: str = "form-request.stub"
RESOURCE_TEMPLATE: str = "api-resource.stub"

_EMPTY_ARRAY_BODY: str = "            //"


# ---------------------------------------------------------------------------
# Naming & path helpers
# ---------------------------------------------------------------------------


def naming_variables(entity_name: str) -> Dict[str, str]:
    """
    Naming derivatives of a PascalCase entity name.

    Examples:
        >>> naming_variables("BlogPost")["routeName"]
        'blog-posts'
        >>> naming_variables("BlogPost")["pluralVariable"]
        'blogPosts'
    """
    plural: str = to_plural(entity_name)
    return {
        "model": entity_name,
        "modelName": entity_name,
        "modelVariable": to_camel_case(entity_name),
        "modelPlural": plural,
        "pluralVariable": to_camel_case(plural),
        "singularName": to_snake_case(entity_name),
        "snakeCase": to_snake_case(entity_name),
        "kebabCase": to_kebab_case(entity_name),
        "camelCase": to_camel_case(entity_name),
        "titleCase": to_title_human(entity_name),
        "titlePlural": to_title_human(plural),
        "routeName": to_kebab_case(plural),
    }


def qualify(namespace: str, subpath: Tuple[str, ...], class_name: str = "") -> str:
    """Join a namespace, sub-namespace segments and a class name with ``\\``."""
    parts: List[str] = [p for p in namespace.split("\\") if p]
    parts.extend(subpath)
    if class_name:
        parts.append(class_name)
    return "\\".join(parts)


def namespace_to_path(
    output_dir: Path, namespace: str, subpath: Tuple[str, ...], class_name: str
) -> Path:
    """
    Target file for a class: namespace segments become directories.

    The leading ``App`` segment maps to the ``app`` directory (PSR-4 root).
    """
    segments: List[str] = [p for p in namespace.split("\\") if p]
    if segments and segments[0] == "App":
        segments[0] = "app"
    return Path(output_dir).joinpath(*segments, *subpath, f"{class_name}.php")


def _use_block(classes: Collection[str], current_namespace: str) -> str:
    lines: List[str] = []
    for fqcn in sorted(set(classes)):
        owner: str = fqcn.rsplit("\\", 1)[0] if "\\" in fqcn else ""
        if owner == current_namespace:
            continue
        lines.append(f"use {fqcn};")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------


class ArtifactPlanner:
    """
    Compose the ``ArtifactPlan`` list for one generation request.

    Usage:
        planner = ArtifactPlanner(config)
        planner.check_request(request)          # ConfigurationError, no I/O
        plans = planner.plan(descriptor, rules, request)
    """

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    @property
    def config(self) -> GenerationConfig:
        return self._config

    # -- Selection --------------------------------------------------------

    def check_request(self, request: GenerationRequest) -> None:
        """
        Reject toggle combinations that cannot produce a coherent artifact set.

        Raises:
            ConfigurationError: On the first contradiction found.
        """
        cfg: GenerationConfig = self._config
        kind: ArtifactKind = request.kind
        explicit = request.artifacts or frozenset()

        if kind is ArtifactKind.HYBRID:
            if not cfg.use_transformer and not cfg.raw_output_fallback:
                raise ConfigurationError(
                    "Hybrid controllers need response transformers; enable "
                    "use_transformer or raw_output_fallback.",
                    stage=Stage.PLANNING,
                )
            if not cfg.include_format_negotiation:
                raise ConfigurationError(
                    "Hybrid controllers serve two audiences and require "
                    "include_format_negotiation.",
                    stage=Stage.PLANNING,
                )

        wanted_requests = explicit & {ArtifactType.STORE_REQUEST, ArtifactType.UPDATE_REQUEST}
        if wanted_requests and not cfg.use_validators:
            names: str = ", ".join(sorted(a.value for a in wanted_requests))
            raise ConfigurationError(
                f"Requested {names} but use_validators is disabled.",
                stage=Stage.PLANNING,
            )

        if ArtifactType.RESOURCE in explicit:
            if not KIND_PROFILES[kind].emits_resource:
                raise ConfigurationError(
                    f"'{kind.value}' controllers do not use response transformers; "
                    f"the resource artifact cannot be requested.",
                    stage=Stage.PLANNING,
                )
            if not cfg.use_transformer:
                raise ConfigurationError(
                    "Requested resource but use_transformer is disabled.",
                    stage=Stage.PLANNING,
                )

    def selected_artifacts(self, request: GenerationRequest) -> List[ArtifactType]:
        """Artifact types emitted for *request*, in a fixed order."""
        cfg: GenerationConfig = self._config
        profile: KindProfile = KIND_PROFILES[request.kind]
        enabled: Dict[ArtifactType, bool] = {
            ArtifactType.CONTROLLER: True,
            ArtifactType.STORE_REQUEST: cfg.use_validators,
            ArtifactType.UPDATE_REQUEST: cfg.use_validators,
            ArtifactType.RESOURCE: cfg.use_transformer and profile.emits_resource,
        }
        return [t for t in ArtifactType if enabled[t] and request.wants(t)]

    # -- Class names ------------------------------------------------------

    @staticmethod
    def class_name(artifact_type: ArtifactType, entity_name: str) -> str:
        if artifact_type is ArtifactType.CONTROLLER:
            return f"{entity_name}Controller"
        if artifact_type is ArtifactType.STORE_REQUEST:
            return f"Store{entity_name}Request"
        if artifact_type is ArtifactType.UPDATE_REQUEST:
            return f"Update{entity_name}Request"
        return f"{entity_name}Resource"

    def _namespace_for(self, artifact_type: ArtifactType, kind: ArtifactKind) -> str:
        if artifact_type is ArtifactType.CONTROLLER:
            return KIND_PROFILES[kind].namespace(self._config)
        if artifact_type is ArtifactType.RESOURCE:
            return self._config.resources_namespace
        return self._config.requests_namespace

    # -- Planning ---------------------------------------------------------

    def plan(
        self,
        entity: EntityDescriptor,
        rules: InferredRules,
        request: GenerationRequest,
        known_entities: Optional[Collection[str]] = None,
    ) -> List[ArtifactPlan]:
        """
        Build one ``ArtifactPlan`` per selected artifact.

        Args:
            entity: Structural descriptor (possibly degraded).
            rules: Output of the rule engine for *entity*.
            request: Kind and optional artifact subset.
            known_entities: Entities generated alongside this one; their
                resource classes are embedded for loaded relationships.

        Raises:
            ConfigurationError: See :meth:`check_request`.
        """
        self.check_request(request)
        selected: List[ArtifactType] = self.selected_artifacts(request)
        subpath: Tuple[str, ...] = entity_subpath(request.entity)
        naming: Dict[str, str] = naming_variables(entity.name)
        naming["tableName"] = entity.storage_key

        names: Dict[ArtifactType, str] = {
            t: self.class_name(t, entity.name) for t in ArtifactType
        }
        fqcn: Dict[ArtifactType, str] = {
            t: qualify(self._namespace_for(t, request.kind), subpath, names[t])
            for t in ArtifactType
        }

        plans: List[ArtifactPlan] = []
        for artifact_type in selected:
            namespace: str = qualify(self._namespace_for(artifact_type, request.kind), subpath)
            variables: Dict[str, Any] = dict(naming)
            variables["namespace"] = namespace
            variables["class"] = names[artifact_type]
            variables["className"] = names[artifact_type]

            if artifact_type is ArtifactType.CONTROLLER:
                variables.update(
                    self._controller_variables(entity, rules, request, names, fqcn, namespace, subpath)
                )
                template_id: str = KIND_PROFILES[request.kind].controller_template
            elif artifact_type is ArtifactType.RESOURCE:
                variables.update(self._resource_variables(entity, subpath, known_entities))
                template_id = RESOURCE_TEMPLATE
            else:
                rule_map: Dict[str, RuleSet] = (
                    rules.creation
                    if artifact_type is ArtifactType.STORE_REQUEST
                    else rules.mutation
                )
                variables.update(self._request_variables(rule_map))
                template_id = FORM_REQUEST_TEMPLATE

            plans.append(
                ArtifactPlan(
                    artifact_type=artifact_type,
                    entity=entity.name,
                    class_name=names[artifact_type],
                    target_path=namespace_to_path(
                        self._config.output_dir,
                        self._namespace_for(artifact_type, request.kind),
                        subpath,
                        names[artifact_type],
                    ),
                    template_id=template_id,
                    variables=variables,
                    overwrite_policy=self._config.overwrite_policy,
                )
            )

        logger.info(
            "Planned %d artifacts for %s (%s): %s",
            len(plans),
            entity.name,
            request.kind.value,
            ", ".join(p.artifact_type.value for p in plans),
        )
        return plans

    # -- Variable sets ----------------------------------------------------

    def eager_loads(self, entity: EntityDescriptor) -> Tuple[str, ...]:
        """Relationship names to eager-load: to-one only unless configured."""
        return tuple(
            rel.name
            for rel in entity.relationships
            if rel.is_to_one or self._config.eager_load_to_many
        )

    def _controller_variables(
        self,
        entity: EntityDescriptor,
        rules: InferredRules,
        request: GenerationRequest,
        names: Dict[ArtifactType, str],
        fqcn: Dict[ArtifactType, str],
        namespace: str,
        subpath: Tuple[str, ...],
    ) -> Dict[str, Any]:
        cfg: GenerationConfig = self._config
        kind: ArtifactKind = request.kind
        profile: KindProfile = KIND_PROFILES[kind]
        naming: Dict[str, str] = naming_variables(entity.name)

        use_requests: bool = cfg.use_validators
        use_resource: bool = cfg.use_transformer and profile.emits_resource
        route_name: str = naming["routeName"]
        view_path: str = cfg.view_path or route_name
        classification = rules.classification

        ctx: ControllerContext = ControllerContext(
            kind=kind,
            model=entity.name,
            model_variable=naming["modelVariable"],
            plural_variable=naming["pluralVariable"],
            title=naming["titleCase"],
            route_name=route_name,
            view_path=view_path,
            resource_class=names[ArtifactType.RESOURCE] if use_resource else None,
            store_request=names[ArtifactType.STORE_REQUEST] if use_requests else None,
            update_request=names[ArtifactType.UPDATE_REQUEST] if use_requests else None,
            creation_rules=rules.creation,
            mutation_rules=rules.mutation,
            authorization=cfg.include_authorization,
            flash_messages=cfg.include_flash_messages,
            search_field=(
                classification.default_search_field
                if cfg.include_search_filtering and classification.searchable
                else None
            ),
            filterable=classification.filterable if cfg.include_search_filtering else (),
            sortable=classification.sortable if cfg.include_search_filtering else (),
            eager_loads=self.eager_loads(entity),
            pagination_limit=cfg.pagination_limit,
            redirect_after_store=cfg.redirect_after_store,
            redirect_after_update=cfg.redirect_after_update,
            redirect_after_destroy=cfg.redirect_after_destroy,
            api_path_prefix=cfg.api_path_prefix,
            soft_delete=cfg.soft_delete_support and entity.soft_deletable,
            web_middleware=tuple(cfg.middleware),
            api_middleware=tuple(cfg.api_middleware),
        )

        imports: List[str] = [
            qualify(cfg.models_namespace, subpath, entity.name),
            "Illuminate\\Http\\Request",
            cfg.base_controller,
        ]
        if use_resource:
            imports.append(fqcn[ArtifactType.RESOURCE])
        if use_requests:
            imports.append(fqcn[ArtifactType.STORE_REQUEST])
            imports.append(fqcn[ArtifactType.UPDATE_REQUEST])
        if kind is not ArtifactKind.API:
            imports.append("Illuminate\\View\\View")

        variables: Dict[str, Any] = {
            "baseController": cfg.base_controller.rsplit("\\", 1)[-1],
            "imports": _use_block(imports, namespace),
            "middleware": profile.middleware(cfg),
            "viewPath": view_path,
            "resourceClass": names[ArtifactType.RESOURCE] if use_resource else None,
            "eagerLoad": list(ctx.eager_loads),
        }
        variables.update(ControllerFragments(ctx).variables())
        return variables

    def _request_variables(self, rule_map: Dict[str, RuleSet]) -> Dict[str, Any]:
        rule_lines: List[str] = format_rule_lines(rule_map)
        messages: Dict[str, str] = (
            validation_messages(rule_map) if self._config.include_custom_messages else {}
        )
        return {
            "authorize": True,
            "rules": "\n".join(rule_lines) if rule_lines else _EMPTY_ARRAY_BODY,
            "messagesMethod": messages_method(messages),
        }

    def _resource_variables(
        self,
        entity: EntityDescriptor,
        subpath: Tuple[str, ...],
        known_entities: Optional[Collection[str]],
    ) -> Dict[str, Any]:
        related: Dict[str, str] = {}
        for rel in entity.relationships:
            if known_entities is not None and rel.related_entity in known_entities:
                related[rel.related_entity] = self.class_name(ArtifactType.RESOURCE, rel.related_entity)
        lines: List[str] = resource_attribute_lines(entity, related)
        return {
            "modelClass": qualify(self._config.models_namespace, subpath, entity.name),
            "attributes": "\n".join(lines) if lines else _EMPTY_ARRAY_BODY,
        }

    # -- Routes -----------------------------------------------------------

    def route_suggestions(
        self, entity: EntityDescriptor, request: GenerationRequest
    ) -> List[str]:
        """Route registration lines for the generated controller."""
        profile: KindProfile = KIND_PROFILES[request.kind]
        naming: Dict[str, str] = naming_variables(entity.name)
        route: str = naming["routeName"]
        controller: str = self.class_name(ArtifactType.CONTROLLER, entity.name)

        lines: List[str] = [
            f"Route::{profile.route_method}('{route}', {controller}::class);"
        ]
        if self._config.soft_delete_support and entity.soft_deletable:
            lines.append(
                f"Route::post('{route}/{{id}}/restore', [{controller}::class, 'restore'])"
                f"->name('{route}.restore');"
            )
            lines.append(
                f"Route::delete('{route}/{{id}}/force', [{controller}::class, 'forceDelete'])"
                f"->name('{route}.force-delete');"
            )
        return lines


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "KindProfile",
    "KIND_PROFILES",
    "ArtifactPlanner",
    "naming_variables",
    "namespace_to_path",
    "qualify",
]

logger.debug("ctrlgen.planner loaded — %d public symbols.", len(__all__))

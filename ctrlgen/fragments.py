# File: ctrlgen/fragments.py
"""
ctrlgen - Controller Fragment Builders
========================================
Builds the method-level PHP text that the planner hands to the renderer as
template variables (``indexMethod``, ``constructor``, ``rules`` ...).

The bundled stubs hold the class skeletons; everything that depends on the
artifact kind or a feature toggle is decided here, so templates stay free of
control flow.

**Assembly contract:**
    - All text is assembled with ``List[str]`` + ``"\\n".join()``.
    - Optional pieces (constructor, soft-delete actions, negotiation helpers,
      ``messages()``) are either ``""`` or carry their own blank-line
      separator, so an absent piece leaves no gap in the output.
    - No fragment ever contains a ``{{`` delimiter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ctrlgen.models import ArtifactKind, EntityDescriptor
from ctrlgen.rules import RuleSet
from ctrlgen.templates import format_value

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.fragments")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_INDENT: str = "    "
_DOUBLE_INDENT: str = "        "
_TRIPLE_INDENT: str = "            "
_QUAD_INDENT: str = "                "


def _php_string(value: str) -> str:
    """Single-quoted PHP string literal."""
    escaped: str = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _php_list(values: Sequence[str]) -> str:
    return f"[{format_value(list(values))}]"


# ---------------------------------------------------------------------------
# Controller context
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ControllerContext:
    """Everything the controller fragments need, resolved by the planner."""

    kind: ArtifactKind
    model: str
    model_variable: str
    plural_variable: str
    title: str
    route_name: str
    view_path: str
    resource_class: Optional[str] = None
    store_request: Optional[str] = None
    update_request: Optional[str] = None
    creation_rules: Mapping[str, RuleSet] = field(default_factory=dict)
    mutation_rules: Mapping[str, RuleSet] = field(default_factory=dict)
    authorization: bool = True
    flash_messages: bool = True
    search_field: Optional[str] = None
    filterable: Tuple[str, ...] = ()
    sortable: Tuple[str, ...] = ()
    eager_loads: Tuple[str, ...] = ()
    pagination_limit: int = 15
    redirect_after_store: str = "show"
    redirect_after_update: str = "show"
    redirect_after_destroy: str = "index"
    api_path_prefix: str = "api"
    soft_delete: bool = False
    web_middleware: Tuple[str, ...] = ()
    api_middleware: Tuple[str, ...] = ()

    @property
    def is_api(self) -> bool:
        return self.kind is ArtifactKind.API

    @property
    def is_web(self) -> bool:
        return self.kind is ArtifactKind.WEB

    @property
    def is_hybrid(self) -> bool:
        return self.kind is ArtifactKind.HYBRID


# ---------------------------------------------------------------------------
# Shared line builders
# ---------------------------------------------------------------------------


def format_rule_lines(
    rules: Mapping[str, RuleSet], indent: str = _TRIPLE_INDENT
) -> List[str]:
    """``'title' => ['required', 'string', 'max:255'],`` per field."""
    return [f"{indent}{_php_string(name)} => {_php_list(tokens)}," for name, tokens in rules.items()]


def format_message_lines(
    messages: Mapping[str, str], indent: str = _TRIPLE_INDENT
) -> List[str]:
    return [f"{indent}{_php_string(key)} => {_php_string(text)}," for key, text in messages.items()]


def messages_method(messages: Mapping[str, str]) -> str:
    """The optional ``messages()`` method of a form request, or ``""``."""
    if not messages:
        return ""
    lines: List[str] = [
        "",
        "",
        f"{_INDENT}/**",
        f"{_INDENT} * Get custom messages for validator errors.",
        f"{_INDENT} *",
        f"{_INDENT} * @return array<string, string>",
        f"{_INDENT} */",
        f"{_INDENT}public function messages(): array",
        f"{_INDENT}{{",
        f"{_DOUBLE_INDENT}return [",
    ]
    lines.extend(format_message_lines(messages))
    lines.append(f"{_DOUBLE_INDENT}];")
    lines.append(f"{_INDENT}}}")
    return "\n".join(lines)


def resource_attribute_lines(
    entity: EntityDescriptor,
    resource_classes: Mapping[str, str],
) -> List[str]:
    """
    ``toArray`` body lines for an API resource.

    Every field is exposed except ``deleted_at``; relationships are embedded
    only when loaded, through the related entity's resource class.
    """
    lines: List[str] = []
    names: List[str] = [f.name for f in entity.fields if f.name != "deleted_at"]
    if entity.primary_key_field not in names:
        names.insert(0, entity.primary_key_field)
    if entity.timestamped:
        for ts in ("created_at", "updated_at"):
            if ts not in names:
                names.append(ts)
    for name in names:
        lines.append(f"{_TRIPLE_INDENT}{_php_string(name)} => $this->{name},")
    for rel in entity.relationships:
        related_resource: Optional[str] = resource_classes.get(rel.related_entity)
        loaded: str = f"$this->whenLoaded({_php_string(rel.name)})"
        if related_resource is None:
            value: str = loaded
        elif rel.is_to_one:
            value = f"new {related_resource}({loaded})"
        else:
            value = f"{related_resource}::collection({loaded})"
        lines.append(f"{_TRIPLE_INDENT}{_php_string(rel.name)} => {value},")
    return lines


# ---------------------------------------------------------------------------
# Controller fragments
# ---------------------------------------------------------------------------


class ControllerFragments:
    """
    Method bodies for one controller.

    Thread-safe: holds only the frozen ``ControllerContext``.
    """

    def __init__(self, ctx: ControllerContext) -> None:
        self._ctx: ControllerContext = ctx

    # -- Helpers ----------------------------------------------------------

    @staticmethod
    def _method(doc: str, signature: str, body: List[str]) -> str:
        lines: List[str] = [
            f"{_INDENT}/**",
            f"{_INDENT} * {doc}",
            f"{_INDENT} */",
            f"{_INDENT}{signature}",
            f"{_INDENT}{{",
        ]
        lines.extend(body)
        lines.append(f"{_INDENT}}}")
        return "\n".join(lines)

    def _authorize(self, ability: str, subject: str) -> List[str]:
        if not self._ctx.authorization:
            return []
        return [f"{_DOUBLE_INDENT}$this->authorize('{ability}', {subject});", ""]

    @property
    def _model_ref(self) -> str:
        return f"${self._ctx.model_variable}"

    def _redirect(self, target: str, verb: str, with_model: bool) -> List[str]:
        c: ControllerContext = self._ctx
        args: str = f"'{c.route_name}.{target}'"
        if with_model and target != "index":
            args += f", {self._model_ref}"
        if not c.flash_messages:
            return [f"{_DOUBLE_INDENT}return redirect()->route({args});"]
        return [
            f"{_DOUBLE_INDENT}return redirect()->route({args})",
            f"{_TRIPLE_INDENT}->with('success', {_php_string(f'{c.title} {verb} successfully.')});",
        ]

    def _view(self, page: str, variable: str) -> str:
        return f"{_DOUBLE_INDENT}return view('{self._ctx.view_path}.{page}', compact('{variable}'));"

    def _api_single(self, expr: str, status: Optional[int] = None, indent: str = _DOUBLE_INDENT) -> List[str]:
        c: ControllerContext = self._ctx
        if c.resource_class is None:
            suffix: str = f", {status}" if status else ""
            return [f"{indent}return response()->json({expr}{suffix});"]
        if status is None:
            return [f"{indent}return new {c.resource_class}({expr});"]
        return [
            f"{indent}return (new {c.resource_class}({expr}))",
            f"{indent}    ->response()",
            f"{indent}    ->setStatusCode({status});",
        ]

    def _negotiated(self, api_lines: List[str], web_lines: List[str]) -> List[str]:
        """Hybrid branch: machine-facing response first, human-facing fallback."""
        return (
            [f"{_DOUBLE_INDENT}if ($this->expectsJson($request)) {{"]
            + api_lines
            + [f"{_DOUBLE_INDENT}}}", ""]
            + web_lines
        )

    def _payload(self, request_class: Optional[str], rules: Mapping[str, RuleSet]) -> Tuple[str, List[str], str]:
        """Return ``(request type, validation lines, payload expression)``."""
        if request_class is not None:
            return request_class, [], "$request->validated()"
        if not rules:
            return "Request", [], "$request->all()"
        lines: List[str] = [f"{_DOUBLE_INDENT}$validated = $request->validate(["]
        lines.extend(format_rule_lines(rules))
        lines.append(f"{_DOUBLE_INDENT}]);")
        lines.append("")
        return "Request", lines, "$validated"

    # -- Constructor ------------------------------------------------------

    def constructor(self) -> str:
        c: ControllerContext = self._ctx
        body: List[str] = []
        if c.is_api and c.api_middleware:
            body.append(f"{_DOUBLE_INDENT}$this->middleware({_php_list(c.api_middleware)});")
        elif c.is_web and c.web_middleware:
            body.append(f"{_DOUBLE_INDENT}$this->middleware({_php_list(c.web_middleware)});")
        elif c.is_hybrid:
            if c.web_middleware:
                body.append(
                    f"{_DOUBLE_INDENT}$this->middleware({_php_list(c.web_middleware)})"
                    "->except(['index', 'show']);"
                )
            if c.api_middleware:
                body.append(
                    f"{_DOUBLE_INDENT}$this->middleware({_php_list(c.api_middleware)})"
                    "->only(['index', 'show']);"
                )
        if not body:
            return ""
        return self._method("Create a new controller instance.", "public function __construct()", body) + "\n\n"

    # -- Actions ----------------------------------------------------------

    def index(self) -> str:
        c: ControllerContext = self._ctx
        body: List[str] = self._authorize("viewAny", f"{c.model}::class")
        chain: List[str] = [f"{_DOUBLE_INDENT}${c.plural_variable} = {c.model}::query()"]
        if c.search_field:
            chain.append(
                f"{_TRIPLE_INDENT}->when($request->search, fn ($query) => "
                f"$query->where('{c.search_field}', 'like', "
                + '"%{$request->search}%"))'
            )
        for name in c.filterable:
            chain.append(
                f"{_TRIPLE_INDENT}->when($request->filled('{name}'), fn ($query) => "
                f"$query->where('{name}', $request->input('{name}')))"
            )
        if c.sortable:
            chain.append(
                f"{_TRIPLE_INDENT}->when(in_array($request->sort, {_php_list(c.sortable)}, true), "
                "fn ($query) => $query->orderBy($request->sort, "
                "$request->direction === 'desc' ? 'desc' : 'asc'))"
            )
        if c.eager_loads:
            chain.append(f"{_TRIPLE_INDENT}->with({_php_list(c.eager_loads)})")
        chain.append(f"{_TRIPLE_INDENT}->paginate($request->per_page ?? {c.pagination_limit});")
        body.extend(chain)
        body.append("")

        if c.is_api:
            if c.resource_class is not None:
                body.append(f"{_DOUBLE_INDENT}return {c.resource_class}::collection(${c.plural_variable});")
            else:
                body.append(f"{_DOUBLE_INDENT}return response()->json(${c.plural_variable});")
        elif c.is_web:
            body.append(self._view("index", c.plural_variable))
        else:
            body.append(
                f"{_DOUBLE_INDENT}return $this->createResourceResponse($request, "
                f"${c.plural_variable}, '{c.view_path}.index', '{c.plural_variable}');"
            )
        return self._method(
            f"Display a listing of {c.title} resources.",
            "public function index(Request $request)",
            body,
        )

    def create(self) -> str:
        c: ControllerContext = self._ctx
        if c.is_api:
            return ""
        body: List[str] = self._authorize("create", f"{c.model}::class")
        body.append(f"{_DOUBLE_INDENT}return view('{c.view_path}.create');")
        return self._method(
            f"Show the form for creating a new {c.title} resource.",
            "public function create(): View",
            body,
        )

    def store(self) -> str:
        c: ControllerContext = self._ctx
        request_type, validation, payload = self._payload(c.store_request, c.creation_rules)
        body: List[str] = self._authorize("create", f"{c.model}::class")
        body.extend(validation)
        body.append(f"{_DOUBLE_INDENT}{self._model_ref} = {c.model}::create({payload});")
        body.append("")
        redirect: List[str] = self._redirect(c.redirect_after_store, "created", with_model=True)
        if c.is_api:
            body.extend(self._api_single(self._model_ref, 201))
        elif c.is_web:
            body.extend(redirect)
        else:
            body.extend(self._negotiated(self._api_single(self._model_ref, 201, _TRIPLE_INDENT), redirect))
        return self._method(
            f"Store a newly created {c.title} resource.",
            f"public function store({request_type} $request)",
            body,
        )

    def show(self) -> str:
        c: ControllerContext = self._ctx
        body: List[str] = self._authorize("view", self._model_ref)
        if c.eager_loads:
            body.append(f"{_DOUBLE_INDENT}{self._model_ref}->load({_php_list(c.eager_loads)});")
            body.append("")
        if c.is_api:
            body.extend(self._api_single(self._model_ref))
            signature: str = f"public function show({c.model} {self._model_ref})"
        elif c.is_web:
            body.append(self._view("show", c.model_variable))
            signature = f"public function show({c.model} {self._model_ref}): View"
        else:
            body.append(
                f"{_DOUBLE_INDENT}return $this->createResourceResponse($request, "
                f"{self._model_ref}, '{c.view_path}.show', '{c.model_variable}');"
            )
            signature = f"public function show(Request $request, {c.model} {self._model_ref})"
        return self._method(f"Display the specified {c.title} resource.", signature, body)

    def edit(self) -> str:
        c: ControllerContext = self._ctx
        if c.is_api:
            return ""
        body: List[str] = self._authorize("update", self._model_ref)
        body.append(self._view("edit", c.model_variable))
        return self._method(
            f"Show the form for editing the specified {c.title} resource.",
            f"public function edit({c.model} {self._model_ref}): View",
            body,
        )

    def update(self) -> str:
        c: ControllerContext = self._ctx
        request_type, validation, payload = self._payload(c.update_request, c.mutation_rules)
        body: List[str] = self._authorize("update", self._model_ref)
        body.extend(validation)
        body.append(f"{_DOUBLE_INDENT}{self._model_ref}->update({payload});")
        body.append("")
        fresh: str = f"{self._model_ref}->fresh()"
        redirect: List[str] = self._redirect(c.redirect_after_update, "updated", with_model=True)
        if c.is_api:
            body.extend(self._api_single(fresh))
        elif c.is_web:
            body.extend(redirect)
        else:
            body.extend(self._negotiated(self._api_single(fresh, None, _TRIPLE_INDENT), redirect))
        return self._method(
            f"Update the specified {c.title} resource.",
            f"public function update({request_type} $request, {c.model} {self._model_ref})",
            body,
        )

    def destroy(self) -> str:
        c: ControllerContext = self._ctx
        body: List[str] = self._authorize("delete", self._model_ref)
        body.append(f"{_DOUBLE_INDENT}{self._model_ref}->delete();")
        body.append("")
        no_content: str = "return response()->noContent();"
        redirect: List[str] = self._redirect(c.redirect_after_destroy, "deleted", with_model=False)
        if c.is_api:
            body.append(f"{_DOUBLE_INDENT}{no_content}")
            signature: str = f"public function destroy({c.model} {self._model_ref})"
        elif c.is_web:
            body.extend(redirect)
            signature = f"public function destroy({c.model} {self._model_ref})"
        else:
            body.extend(self._negotiated([f"{_TRIPLE_INDENT}{no_content}"], redirect))
            signature = f"public function destroy(Request $request, {c.model} {self._model_ref})"
        return self._method(f"Remove the specified {c.title} resource.", signature, body)

    def soft_delete_methods(self) -> str:
        """``restore`` and ``forceDelete`` actions, or ``""``."""
        c: ControllerContext = self._ctx
        if not c.soft_delete:
            return ""
        lookup: str = f"{_DOUBLE_INDENT}{self._model_ref} = {c.model}::withTrashed()->findOrFail($id);"

        restore: List[str] = [lookup, ""]
        restore.extend(self._authorize("restore", self._model_ref))
        restore.append(f"{_DOUBLE_INDENT}{self._model_ref}->restore();")
        restore.append("")
        restore_redirect: List[str] = self._redirect("show", "restored", with_model=True)
        if c.is_api:
            restore.extend(self._api_single(self._model_ref))
        elif c.is_web:
            restore.extend(restore_redirect)
        else:
            restore.extend(self._negotiated(self._api_single(self._model_ref, None, _TRIPLE_INDENT), restore_redirect))

        purge: List[str] = [lookup, ""]
        purge.extend(self._authorize("forceDelete", self._model_ref))
        purge.append(f"{_DOUBLE_INDENT}{self._model_ref}->forceDelete();")
        purge.append("")
        purge_redirect: List[str] = self._redirect("index", "permanently deleted", with_model=False)
        if c.is_api:
            purge.append(f"{_DOUBLE_INDENT}return response()->noContent();")
        elif c.is_web:
            purge.extend(purge_redirect)
        else:
            purge.extend(self._negotiated([f"{_TRIPLE_INDENT}return response()->noContent();"], purge_redirect))

        parts: List[str] = [
            self._method(
                f"Restore the specified soft-deleted {c.title} resource.",
                "public function restore(Request $request, $id)",
                restore,
            ),
            self._method(
                f"Permanently delete the specified {c.title} resource.",
                "public function forceDelete(Request $request, $id)",
                purge,
            ),
        ]
        return "\n\n" + "\n\n".join(parts)

    def negotiation_helpers(self) -> str:
        """
        ``expectsJson`` and ``createResourceResponse`` for hybrid controllers.

        A request is machine-facing when it carries an explicit JSON accept
        preference or its path starts with the API prefix.
        """
        c: ControllerContext = self._ctx
        if not c.is_hybrid:
            return ""
        expects: str = self._method(
            "Determine if the request expects a machine-readable response.",
            "protected function expectsJson(Request $request): bool",
            [f"{_DOUBLE_INDENT}return $request->expectsJson() || $request->is('{c.api_path_prefix}/*');"],
        )

        body: List[str] = [f"{_DOUBLE_INDENT}if ($this->expectsJson($request)) {{"]
        if c.resource_class is not None:
            body.extend([
                f"{_TRIPLE_INDENT}if (is_iterable($resource)) {{",
                f"{_QUAD_INDENT}return {c.resource_class}::collection($resource)",
                f"{_QUAD_INDENT}    ->response()",
                f"{_QUAD_INDENT}    ->setStatusCode($status);",
                f"{_TRIPLE_INDENT}}}",
                "",
                f"{_TRIPLE_INDENT}return (new {c.resource_class}($resource))",
                f"{_TRIPLE_INDENT}    ->response()",
                f"{_TRIPLE_INDENT}    ->setStatusCode($status);",
            ])
        else:
            body.append(f"{_TRIPLE_INDENT}return response()->json($resource, $status);")
        body.extend([
            f"{_DOUBLE_INDENT}}}",
            "",
            f"{_DOUBLE_INDENT}if ($view) {{",
            f"{_TRIPLE_INDENT}return view($view, [$key => $resource]);",
            f"{_DOUBLE_INDENT}}}",
            "",
            f"{_DOUBLE_INDENT}return response($resource, $status);",
        ])
        respond: str = self._method(
            "Create a resource response with content negotiation.",
            "protected function createResourceResponse(Request $request, $resource, "
            "?string $view = null, string $key = 'resource', int $status = 200)",
            body,
        )
        return "\n\n" + expects + "\n\n" + respond

    # -- Aggregate --------------------------------------------------------

    def variables(self) -> Dict[str, str]:
        """Every controller-level template variable built from fragments."""
        c: ControllerContext = self._ctx
        create: str = self.create()
        edit: str = self.edit()
        return {
            "constructor": self.constructor(),
            "indexMethod": self.index(),
            "createMethod": create,
            "storeMethod": self.store(),
            "showMethod": self.show(),
            "editMethod": edit,
            "updateMethod": self.update(),
            "destroyMethod": self.destroy(),
            "softDeleteMethods": self.soft_delete_methods(),
            "helperMethods": self.negotiation_helpers(),
            "searchField": c.search_field or "",
        }


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ControllerContext",
    "ControllerFragments",
    "format_rule_lines",
    "format_message_lines",
    "messages_method",
    "resource_attribute_lines",
]

logger.debug("ctrlgen.fragments loaded — %d public symbols.", len(__all__))

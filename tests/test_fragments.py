"""
tests/test_fragments.py
Unit tests for the controller method bodies built by ctrlgen.fragments.

Tests cover:
- index: search, filters, sort whitelist, eager loading, pagination
- show: eager loading of to-one relationships
- Authorization hooks on and off
- Soft-delete restore / forceDelete actions
- Hybrid content negotiation (expectsJson rule, configured API prefix)
- Constructor middleware per kind, web redirects and flash messages
"""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from ctrlgen.fragments import ControllerContext, ControllerFragments
from ctrlgen.models import (
    ArtifactKind,
    ArtifactPlan,
    ArtifactType,
    EntityDescriptor,
    GenerationConfig,
    GenerationRequest,
)
from ctrlgen.planner import ArtifactPlanner
from ctrlgen.rules import RuleInferenceEngine


def _controller_vars(
    entity: EntityDescriptor, config: GenerationConfig, kind: str = "api"
) -> Dict[str, Any]:
    rules = RuleInferenceEngine().infer(entity)
    request = GenerationRequest(entity=entity.name, kind=kind)
    plans: List[ArtifactPlan] = ArtifactPlanner(config).plan(entity, rules, request)
    return next(p for p in plans if p.artifact_type is ArtifactType.CONTROLLER).variables


def _context(**overrides: Any) -> ControllerContext:
    values: Dict[str, Any] = dict(
        kind=ArtifactKind.API,
        model="Post",
        model_variable="post",
        plural_variable="posts",
        title="Post",
        route_name="posts",
        view_path="posts",
        resource_class="PostResource",
    )
    values.update(overrides)
    return ControllerContext(**values)


# ===========================================================================
# index
# ===========================================================================


class TestIndex:
    def test_search_filter_sort_and_eager_load(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        index = _controller_vars(example_post, config)["indexMethod"]
        lines = index.splitlines()

        assert "        $posts = Post::query()" in lines
        assert (
            "            ->when($request->search, fn ($query) => "
            "$query->where('title', 'like', \"%{$request->search}%\"))"
        ) in lines
        assert (
            "            ->when($request->filled('is_published'), fn ($query) => "
            "$query->where('is_published', $request->input('is_published')))"
        ) in lines
        assert (
            "            ->when($request->filled('user_id'), fn ($query) => "
            "$query->where('user_id', $request->input('user_id')))"
        ) in lines
        assert "            ->with(['user'])" in lines
        assert "            ->paginate($request->per_page ?? 15);" in lines
        assert "        return PostResource::collection($posts);" in lines

    def test_sort_is_restricted_to_sortable_fields(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        index = _controller_vars(example_post, config)["indexMethod"]
        assert (
            "->when(in_array($request->sort, ['id', 'created_at', 'updated_at', "
            "'published_at', 'user_id'], true), fn ($query) => $query->orderBy("
            "$request->sort, $request->direction === 'desc' ? 'desc' : 'asc'))"
        ) in index
        assert "'body'" not in index

    def test_search_filtering_disabled(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        cfg = config.with_overrides({"include_search_filtering": False})
        index = _controller_vars(example_post, cfg)["indexMethod"]
        assert "->when(" not in index
        assert "orderBy" not in index
        assert "            ->with(['user'])" in index

    def test_pagination_limit(self, example_post: EntityDescriptor, config: GenerationConfig) -> None:
        cfg = config.with_overrides({"pagination_limit": 50})
        index = _controller_vars(example_post, cfg)["indexMethod"]
        assert "->paginate($request->per_page ?? 50);" in index

    def test_raw_json_without_resource(self) -> None:
        index = ControllerFragments(_context(resource_class=None)).index()
        assert "        return response()->json($posts);" in index.splitlines()

    def test_web_index_returns_view(self) -> None:
        index = ControllerFragments(_context(kind=ArtifactKind.WEB, view_path="blog-posts")).index()
        assert "return view('blog-posts.index', compact('posts'));" in index


# ===========================================================================
# show
# ===========================================================================


class TestShow:
    def test_loads_to_one_relationships(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        show = _controller_vars(example_post, config)["showMethod"]
        assert "        $post->load(['user']);" in show.splitlines()
        assert "        return new PostResource($post);" in show.splitlines()

    def test_loads_to_many_when_configured(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        cfg = config.with_overrides({"eager_load_to_many": True})
        show = _controller_vars(example_post, cfg)["showMethod"]
        assert "$post->load(['user', 'comments']);" in show

    def test_no_load_without_relationships(self) -> None:
        show = ControllerFragments(_context()).show()
        assert "->load(" not in show


# ===========================================================================
# Authorization hooks
# ===========================================================================


class TestAuthorization:
    def test_hooks_per_action(self, example_post: EntityDescriptor, config: GenerationConfig) -> None:
        variables = _controller_vars(example_post, config)
        assert "$this->authorize('viewAny', Post::class);" in variables["indexMethod"]
        assert "$this->authorize('create', Post::class);" in variables["storeMethod"]
        assert "$this->authorize('view', $post);" in variables["showMethod"]
        assert "$this->authorize('update', $post);" in variables["updateMethod"]
        assert "$this->authorize('delete', $post);" in variables["destroyMethod"]
        assert "$this->authorize('restore', $post);" in variables["softDeleteMethods"]
        assert "$this->authorize('forceDelete', $post);" in variables["softDeleteMethods"]

    def test_hooks_disabled(self, example_post: EntityDescriptor, config: GenerationConfig) -> None:
        cfg = config.with_overrides({"include_authorization": False})
        variables = _controller_vars(example_post, cfg, kind="web")
        methods = [v for k, v in variables.items() if k.endswith("Method") or k == "softDeleteMethods"]
        assert methods
        assert not any("authorize(" in m for m in methods)


# ===========================================================================
# Soft deletes
# ===========================================================================


class TestSoftDeletes:
    def test_restore_and_force_delete(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        methods = _controller_vars(example_post, config)["softDeleteMethods"]
        lines = methods.splitlines()

        assert "    public function restore(Request $request, $id)" in lines
        assert "    public function forceDelete(Request $request, $id)" in lines
        assert lines.count("        $post = Post::withTrashed()->findOrFail($id);") == 2
        assert "        $post->restore();" in lines
        assert "        $post->forceDelete();" in lines
        assert "        return response()->noContent();" in lines

    def test_web_restore_redirects_with_flash(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        methods = _controller_vars(example_post, config, kind="web")["softDeleteMethods"]
        assert "return redirect()->route('posts.show', $post)" in methods
        assert "->with('success', 'Post restored successfully.');" in methods
        assert "return redirect()->route('posts.index')" in methods

    def test_absent_for_entity_without_soft_deletes(
        self, post_entity: EntityDescriptor, config: GenerationConfig
    ) -> None:
        assert _controller_vars(post_entity, config)["softDeleteMethods"] == ""

    def test_absent_when_support_disabled(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        cfg = config.with_overrides({"soft_delete_support": False})
        assert _controller_vars(example_post, cfg)["softDeleteMethods"] == ""


# ===========================================================================
# Hybrid negotiation
# ===========================================================================


class TestHybridNegotiation:
    def test_decision_rule_uses_configured_prefix(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        cfg = config.with_overrides({"api_path_prefix": "/v2/"})
        helpers = _controller_vars(example_post, cfg, kind="hybrid")["helperMethods"]
        assert "    protected function expectsJson(Request $request): bool" in helpers
        assert "return $request->expectsJson() || $request->is('v2/*');" in helpers

    def test_mutating_actions_branch_on_negotiation(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        variables = _controller_vars(example_post, config, kind="hybrid")
        for key in ("storeMethod", "updateMethod", "destroyMethod"):
            assert "        if ($this->expectsJson($request)) {" in variables[key].splitlines()
        assert "            return (new PostResource($post))" in variables["storeMethod"].splitlines()
        assert "return redirect()->route('posts.show', $post)" in variables["storeMethod"]

    def test_read_actions_use_resource_response(
        self, example_post: EntityDescriptor, config: GenerationConfig
    ) -> None:
        variables = _controller_vars(example_post, config, kind="hybrid")
        assert (
            "return $this->createResourceResponse($request, $posts, 'posts.index', 'posts');"
            in variables["indexMethod"]
        )
        assert (
            "return $this->createResourceResponse($request, $post, 'posts.show', 'post');"
            in variables["showMethod"]
        )
        assert "return PostResource::collection($resource)" in variables["helperMethods"]

    def test_raw_fallback_helper(self, example_post: EntityDescriptor, config: GenerationConfig) -> None:
        cfg = config.with_overrides({"use_transformer": False, "raw_output_fallback": True})
        helpers = _controller_vars(example_post, cfg, kind="hybrid")["helperMethods"]
        assert "return response()->json($resource, $status);" in helpers
        assert "PostResource" not in helpers

    @pytest.mark.parametrize("kind", ["api", "web"])
    def test_no_helpers_outside_hybrid(
        self, example_post: EntityDescriptor, config: GenerationConfig, kind: str
    ) -> None:
        assert _controller_vars(example_post, config, kind=kind)["helperMethods"] == ""


# ===========================================================================
# Constructor and web responses
# ===========================================================================


class TestConstructorAndRedirects:
    def test_api_middleware(self, example_post: EntityDescriptor, config: GenerationConfig) -> None:
        ctor = _controller_vars(example_post, config)["constructor"]
        assert "        $this->middleware(['api', 'throttle:60,1']);" in ctor.splitlines()

    def test_hybrid_middleware_split(self, example_post: EntityDescriptor, config: GenerationConfig) -> None:
        ctor = _controller_vars(example_post, config, kind="hybrid")["constructor"]
        assert "$this->middleware(['web'])->except(['index', 'show']);" in ctor
        assert "$this->middleware(['api', 'throttle:60,1'])->only(['index', 'show']);" in ctor

    def test_no_middleware_no_constructor(self) -> None:
        assert ControllerFragments(_context(api_middleware=())).constructor() == ""

    def test_web_store_redirect_without_flash(self) -> None:
        ctx = _context(kind=ArtifactKind.WEB, resource_class=None, flash_messages=False)
        store = ControllerFragments(ctx).store()
        assert "        return redirect()->route('posts.show', $post);" in store.splitlines()
        assert "->with('success'" not in store

    def test_web_store_redirect_with_flash(self, example_post: EntityDescriptor, config: GenerationConfig) -> None:
        store = _controller_vars(example_post, config, kind="web")["storeMethod"]
        assert "public function store(StorePostRequest $request)" in store
        assert "        $post = Post::create($request->validated());" in store.splitlines()
        assert "            ->with('success', 'Post created successfully.');" in store.splitlines()

    def test_inline_validation_without_requests(self) -> None:
        ctx = _context(creation_rules={"title": ("required", "string", "max:255")})
        store = ControllerFragments(ctx).store()
        assert "public function store(Request $request)" in store
        assert "        $validated = $request->validate([" in store.splitlines()
        assert "            'title' => ['required', 'string', 'max:255']," in store.splitlines()
        assert "        $post = Post::create($validated);" in store.splitlines()

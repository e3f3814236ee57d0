"""Unit tests for ai_builder.orchestrator.

Tests cover:
- parse_plan / parse_files
- Quick-modify flow
- Plan/execute flow: ordering, skipped tasks, empty results
- Provider selection and per-request overrides
- Error propagation
"""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import files_reply, plan_reply

from ai_builder.analyzer import AnalysisCache
from ai_builder.errors import (
    EmptyResultError,
    InvalidRequestError,
    MalformedResponseError,
    NotFoundError,
    ProviderError,
    UnknownProviderError,
    UnsafePathError,
)
from ai_builder.models import GenerationRequest, TaskAction
from ai_builder.orchestrator import GenerationOrchestrator, parse_files, parse_plan


@pytest.fixture
def orchestrator(config, registry) -> GenerationOrchestrator:
    return GenerationOrchestrator(config, registry, AnalysisCache(config.source_root))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParsePlan:
    @pytest.mark.unit
    def test_valid(self):
        plan = parse_plan(
            plan_reply(
                ("components/Cart.jsx", "create", "cart"),
                ("App.jsx", "MODIFY", "route"),
                description="Cart feature",
            )
        )
        assert [t.path for t in plan.tasks] == ["components/Cart.jsx", "App.jsx"]
        assert plan.tasks[1].action is TaskAction.MODIFY
        assert plan.description == "Cart feature"

    @pytest.mark.unit
    def test_invalid_entries_dropped(self):
        raw = '{"plan": ["oops", {"path": ""}, {"path": "A.jsx", "action": "delete"}, {"path": "B.jsx"}]}'
        plan = parse_plan(raw)
        assert [t.path for t in plan.tasks] == ["B.jsx"]
        assert plan.tasks[0].action is TaskAction.CREATE

    @pytest.mark.unit
    def test_empty_plan(self):
        with pytest.raises(EmptyResultError):
            parse_plan('```json\n{"plan": []}\n```')

    @pytest.mark.unit
    def test_missing_plan_array(self):
        with pytest.raises(MalformedResponseError, match="plan array"):
            parse_plan('{"tasks": []}')


class TestParseFiles:
    @pytest.mark.unit
    def test_valid(self, source_root: Path):
        files, description = parse_files(
            files_reply(("components/A.jsx", "a"), description="Adds A"), source_root
        )
        assert [(f.path, f.content) for f in files] == [("components/A.jsx", "a")]
        assert description == "Adds A"

    @pytest.mark.unit
    def test_unsafe_and_invalid_dropped(self, source_root: Path):
        raw = (
            '{"files": [{"path": "../../etc/passwd", "content": "x"},'
            ' {"path": "B.jsx"}, {"path": "", "content": "y"}, 3,'
            ' {"path": "C.jsx", "content": ""}]}'
        )
        files, description = parse_files(raw, source_root)
        assert [f.path for f in files] == ["C.jsx"]
        assert description == ""

    @pytest.mark.unit
    def test_missing_files_array(self, source_root: Path):
        with pytest.raises(MalformedResponseError, match="files array"):
            parse_files('{"description": "nothing"}', source_root)


# ---------------------------------------------------------------------------
# Quick modify
# ---------------------------------------------------------------------------


class TestQuickModify:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_single_call(self, orchestrator, script, source_root: Path):
        script.queue(files_reply(("components/Header.jsx", "NEW HEADER"), description="Renamed"))
        response = await orchestrator.generate(
            GenerationRequest(prompt="Rename the header", fileToModify="components/Header.jsx")
        )
        assert len(script.calls) == 1
        assert "export default function Header()" in script.calls[0]["prompt"]
        assert [f.content for f in response.files] == ["NEW HEADER"]
        assert response.description == "Renamed"
        assert response.provider == "fake"
        assert response.usage == [{"call": 1}]
        # nothing is written until apply
        assert "NEW HEADER" not in (source_root / "components" / "Header.jsx").read_text()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_button_color_scenario(self, orchestrator, script, source_root: Path):
        button = source_root / "components" / "Button.tsx"
        button.write_text("export const Button = () => <button className=\"bg-red-500\" />\n")
        script.queue(
            files_reply(
                ("components/Button.tsx", "export const Button = () => <button className=\"bg-blue-500\" />\n"),
                description="Updated button color",
            )
        )
        response = await orchestrator.generate(
            GenerationRequest(prompt="make the background blue", fileToModify="components/Button.tsx")
        )
        assert len(response.files) == 1
        assert response.files[0].path == "components/Button.tsx"
        assert "bg-blue-500" in response.files[0].content
        assert response.description == "Updated button color"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unsafe_file_to_modify(self, orchestrator, script):
        with pytest.raises(UnsafePathError):
            await orchestrator.generate(
                GenerationRequest(prompt="x", fileToModify="../../etc/passwd")
            )
        assert script.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_file(self, orchestrator, script):
        with pytest.raises(NotFoundError):
            await orchestrator.generate(
                GenerationRequest(prompt="x", fileToModify="components/Nope.jsx")
            )
        assert script.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_files_returned(self, orchestrator, script):
        script.queue('```json\n{"files": []}\n```')
        with pytest.raises(EmptyResultError):
            await orchestrator.generate(
                GenerationRequest(prompt="x", fileToModify="App.jsx")
            )


# ---------------------------------------------------------------------------
# Plan / execute
# ---------------------------------------------------------------------------


class TestPlanAndExecute:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_two_tasks_in_order(self, orchestrator, script):
        script.queue(
            plan_reply(
                ("components/Cart.jsx", "create", "Build the cart"),
                ("App.jsx", "modify", "Mount the cart"),
                description="Cart feature",
            ),
            files_reply(("components/Cart.jsx", "CART")),
            files_reply(("App.jsx", "APP")),
        )
        response = await orchestrator.generate(GenerationRequest(prompt="Add a cart"))

        assert [f.path for f in response.files] == ["components/Cart.jsx", "App.jsx"]
        assert response.description == "Cart feature"
        assert response.usage == [{"call": 1}, {"call": 2}, {"call": 3}]
        assert len(script.calls) == 3
        assert "Build the cart" in script.calls[1]["prompt"]
        assert "<<<FILE\nimport React from 'react'" in script.calls[2]["prompt"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_login_form_scenario(self, orchestrator, script):
        script.queue(
            plan_reply(
                ("components/LoginForm.tsx", "create", "Email and password form"),
                ("services/authService.ts", "create", "login() calling /api/login"),
            ),
            files_reply(("components/LoginForm.tsx", "export const LoginForm = () => null")),
            files_reply(("services/authService.ts", "export async function login() {}")),
        )
        response = await orchestrator.generate(GenerationRequest(prompt="create a login form"))
        assert [f.path for f in response.files] == [
            "components/LoginForm.tsx",
            "services/authService.ts",
        ]
        assert len(script.calls) == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_plan_stops(self, orchestrator, script):
        script.queue('{"plan": []}')
        with pytest.raises(EmptyResultError):
            await orchestrator.generate(GenerationRequest(prompt="Nothing"))
        assert len(script.calls) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_plan(self, orchestrator, script):
        script.queue("I refuse to answer in JSON.")
        with pytest.raises(MalformedResponseError):
            await orchestrator.generate(GenerationRequest(prompt="x"))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_task_with_zero_files_keeps_order(self, orchestrator, script):
        script.queue(
            plan_reply(("A.jsx", "create", "a"), ("B.jsx", "create", "b"), ("C.jsx", "create", "c")),
            files_reply(("A.jsx", "A"), description="first"),
            '{"files": []}',
            files_reply(("C.jsx", "C"), description="third"),
        )
        response = await orchestrator.generate(GenerationRequest(prompt="abc"))
        assert [f.path for f in response.files] == ["A.jsx", "C.jsx"]
        assert response.description == "first third"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_task_reply_is_skipped(self, orchestrator, script):
        script.queue(
            plan_reply(("A.jsx", "create", "a"), ("B.jsx", "create", "b")),
            "not json at all",
            files_reply(("B.jsx", "B")),
        )
        response = await orchestrator.generate(GenerationRequest(prompt="ab"))
        assert [f.path for f in response.files] == ["B.jsx"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_modify_target_is_skipped(self, orchestrator, script):
        script.queue(
            plan_reply(("Gone.jsx", "modify", "edit"), ("New.jsx", "create", "new")),
            files_reply(("New.jsx", "NEW")),
        )
        response = await orchestrator.generate(GenerationRequest(prompt="x"))
        assert [f.path for f in response.files] == ["New.jsx"]
        # planning call + one execution call
        assert len(script.calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unsafe_create_task_is_skipped(self, orchestrator, script):
        script.queue(
            plan_reply(("../outside.js", "create", "escape"), ("In.jsx", "create", "ok")),
            files_reply(("In.jsx", "IN")),
        )
        response = await orchestrator.generate(GenerationRequest(prompt="x"))
        assert [f.path for f in response.files] == ["In.jsx"]
        assert len(script.calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_all_tasks_empty(self, orchestrator, script):
        script.queue(plan_reply(("A.jsx", "create", "a")), '{"files": []}')
        with pytest.raises(EmptyResultError):
            await orchestrator.generate(GenerationRequest(prompt="x"))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_error_aborts(self, orchestrator, script):
        script.queue(
            plan_reply(("A.jsx", "create", "a"), ("B.jsx", "create", "b")),
            ProviderError("fake returned HTTP 500", provider="fake", upstream_status=500),
        )
        with pytest.raises(ProviderError):
            await orchestrator.generate(GenerationRequest(prompt="x"))
        assert len(script.calls) == 2


# ---------------------------------------------------------------------------
# Request handling
# ---------------------------------------------------------------------------


class TestRequestHandling:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_prompt(self, orchestrator, script):
        with pytest.raises(InvalidRequestError):
            await orchestrator.generate(GenerationRequest(prompt="   "))
        assert script.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_provider(self, orchestrator):
        with pytest.raises(UnknownProviderError):
            await orchestrator.generate(GenerationRequest(prompt="x", provider="nope"))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_alias_and_overrides(self, orchestrator, script):
        script.queue(files_reply(("App.jsx", "APP")))
        response = await orchestrator.generate(
            GenerationRequest(
                prompt="x",
                provider="STUB",
                model="tiny",
                temperature=0.0,
                maxTokens=256,
                fileToModify="App.jsx",
            )
        )
        used = script.calls[0]["config"]
        assert (used.identifier, used.model, used.temperature, used.max_tokens) == (
            "fake", "tiny", 0.0, 256,
        )
        assert response.model == "tiny"
        assert orchestrator.config.temperature == 0.7

"""Generation orchestrator.

Drives one ``/generate`` request from start to finish:

QUICK_MODIFY -- ``fileToModify`` given: load that file, issue one developer
                call, return its files.
PLAN         -- one architect call returns an ordered, non-empty plan.
EXECUTE      -- one developer call per task, strictly in plan order; a task
                whose target vanished, whose path is unsafe, or whose reply
                cannot be parsed is skipped with a warning.

Provider failures abort the request at any stage; so does an empty plan or an
empty aggregate file list. Nothing is written to disk here -- the caller
reviews the files and applies them through the materializer.
"""

from __future__ import annotations

import time
from pathlib import Path

import structlog

from ai_builder.analyzer import AnalysisCache, ProjectAnalysis
from ai_builder.config import Config
from ai_builder.errors import (
    EmptyResultError,
    InvalidRequestError,
    MalformedResponseError,
    NotFoundError,
    UnsafePathError,
)
from ai_builder.extractor import extract_object
from ai_builder.models import (
    GeneratedFile,
    GenerationRequest,
    GenerationResponse,
    Plan,
    Task,
    TaskAction,
)
from ai_builder.prompts import (
    ARCHITECT_SYSTEM_CONTEXT,
    build_developer_system_context,
    build_execution_prompt,
    build_planning_prompt,
)
from ai_builder.providers import GenerationResult, ProviderAdapter, ProviderRegistry
from ai_builder.workspace import SourceTree, resolve_safe_path

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def parse_plan(raw: str) -> Plan:
    """Turn an architect reply into a ``Plan``.

    Entries that fail validation are dropped with a warning.

    Raises:
        MalformedResponseError: If no JSON object or no ``plan`` array is found.
        EmptyResultError: If no valid task remains.
    """
    data = extract_object(raw)
    entries = data.get("plan")
    if not isinstance(entries, list):
        raise MalformedResponseError("Planner response does not contain a plan array", raw=raw)

    tasks: list[Task] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning("plan_entry_invalid", index=index, entry=str(entry)[:200])
            continue
        try:
            tasks.append(
                Task(
                    path=str(entry.get("path", "")).strip(),
                    action=str(entry.get("action", "create")).strip().lower(),
                    instruction=str(entry.get("instruction", "")),
                )
            )
        except ValueError as exc:
            logger.warning("plan_entry_invalid", index=index, error=str(exc))

    if not tasks:
        raise EmptyResultError(
            "The planner returned an empty plan. Try rephrasing the request."
        )
    return Plan(tasks=tasks, description=str(data.get("description") or ""))


def parse_files(raw: str, source_root: str | Path) -> tuple[list[GeneratedFile], str]:
    """Turn a developer reply into ``(files, description)``.

    Entries without a path or content, and entries whose path escapes the
    source root, are dropped with a warning.

    Raises:
        MalformedResponseError: If no JSON object or no ``files`` array is found.
    """
    data = extract_object(raw)
    entries = data.get("files")
    if not isinstance(entries, list):
        raise MalformedResponseError("Response does not contain a valid files array", raw=raw)

    files: list[GeneratedFile] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not isinstance(entry.get("content"), str):
            logger.warning("generated_file_invalid", index=index)
            continue
        path = str(entry.get("path") or "").strip()
        try:
            resolve_safe_path(source_root, path)
        except UnsafePathError:
            logger.warning("generated_file_unsafe", path=path)
            continue
        files.append(GeneratedFile(path=path, content=entry["content"]))
    return files, str(data.get("description") or "")


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class GenerationOrchestrator:
    """Plan/execute driver for one generation request at a time.

    The instance itself holds no per-request state, so one orchestrator is
    shared by all concurrent requests. Provider selection is an explicit
    per-request value; the process configuration is never mutated.
    """

    def __init__(
        self,
        config: Config,
        registry: ProviderRegistry,
        cache: AnalysisCache,
        tree: SourceTree | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.cache = cache
        self.tree = tree or SourceTree(config.source_root)

    # ------------------------------------------------------------------
    # Provider helpers
    # ------------------------------------------------------------------

    def _adapter_for(self, request: GenerationRequest) -> tuple[str, ProviderAdapter]:
        identifier = self.registry.canonical(request.provider or self.config.default_provider)
        provider_config = self.config.provider_config(
            identifier,
            model=request.model,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
        )
        return identifier, self.registry.create(identifier, provider_config)

    async def _call(
        self, adapter: ProviderAdapter, prompt: str, system_context: str, stage: str
    ) -> GenerationResult:
        start = time.monotonic()
        result = await adapter.generate(prompt, system_context)
        logger.info(
            "provider_call",
            stage=stage,
            provider=adapter.config.identifier,
            model=result.model,
            elapsed_s=round(time.monotonic() - start, 2),
        )
        return result

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Run the quick-modify or the plan/execute flow for ``request``."""
        if not request.prompt or not request.prompt.strip():
            raise InvalidRequestError("prompt is required")

        provider, adapter = self._adapter_for(request)
        analysis = await self.cache.get()
        logger.info(
            "generation_started",
            provider=provider,
            model=adapter.config.model,
            quick_modify=bool(request.file_to_modify),
        )

        if request.file_to_modify:
            return await self.quick_modify(request, provider, adapter, analysis)
        return await self.plan_and_execute(request, provider, adapter, analysis)

    async def quick_modify(
        self,
        request: GenerationRequest,
        provider: str,
        adapter: ProviderAdapter,
        analysis: ProjectAnalysis,
    ) -> GenerationResponse:
        """Single-file flow: one modify task, one developer call."""
        path = request.file_to_modify or ""
        original = await self.tree.read(path)
        task = Task(
            path=path,
            action=TaskAction.MODIFY,
            instruction=request.prompt,
            original_content=original,
        )
        result = await self._call(
            adapter,
            build_execution_prompt(task, analysis, request.context),
            build_developer_system_context(analysis),
            stage="quick_modify",
        )
        files, description = parse_files(result.content, self.tree.root)
        if not files:
            raise EmptyResultError(f"The model returned no files for {path}.")
        return GenerationResponse(
            files=files,
            description=description,
            provider=provider,
            model=result.model,
            usage=[result.usage],
        )

    async def plan(
        self,
        request: GenerationRequest,
        adapter: ProviderAdapter,
        analysis: ProjectAnalysis,
    ) -> tuple[Plan, GenerationResult]:
        """One architect call; the returned plan is never empty."""
        result = await self._call(
            adapter,
            build_planning_prompt(request.prompt, analysis, request.context),
            ARCHITECT_SYSTEM_CONTEXT,
            stage="plan",
        )
        plan = parse_plan(result.content)
        logger.info(
            "plan_received",
            tasks=len(plan.tasks),
            paths=[task.path for task in plan.tasks],
        )
        return plan, result

    async def plan_and_execute(
        self,
        request: GenerationRequest,
        provider: str,
        adapter: ProviderAdapter,
        analysis: ProjectAnalysis,
    ) -> GenerationResponse:
        """Plan, then execute each task strictly in plan order."""
        plan, plan_result = await self.plan(request, adapter, analysis)
        system_context = build_developer_system_context(analysis)

        files: list[GeneratedFile] = []
        descriptions: list[str] = []
        usage = [plan_result.usage]
        model = plan_result.model

        for index, task in enumerate(plan.tasks):
            if task.action is TaskAction.MODIFY:
                try:
                    # Re-read right before prompting so earlier analysis is never stale.
                    original = await self.tree.read(task.path)
                except (NotFoundError, UnsafePathError) as exc:
                    logger.warning("task_skipped", index=index, path=task.path, reason=str(exc))
                    continue
                task = task.model_copy(update={"original_content": original})
            else:
                try:
                    resolve_safe_path(self.tree.root, task.path)
                except UnsafePathError as exc:
                    logger.warning("task_skipped", index=index, path=task.path, reason=str(exc))
                    continue

            result = await self._call(
                adapter,
                build_execution_prompt(task, analysis, request.context),
                system_context,
                stage=f"execute[{index}]",
            )
            usage.append(result.usage)
            model = result.model or model

            try:
                task_files, task_description = parse_files(result.content, self.tree.root)
            except MalformedResponseError as exc:
                logger.warning(
                    "task_skipped",
                    index=index,
                    path=task.path,
                    reason=exc.message,
                    excerpt=exc.excerpt[:200],
                )
                continue

            files.extend(task_files)
            if task_description:
                descriptions.append(task_description)

        if not files:
            raise EmptyResultError(
                "No files were generated for this request. Try rephrasing the prompt."
            )

        return GenerationResponse(
            files=files,
            description=plan.description or " ".join(descriptions),
            provider=provider,
            model=model,
            usage=usage,
        )

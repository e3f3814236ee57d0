"""AI Builder HTTP service.

FastAPI application exposing the generation pipeline to the editor UI:

    POST   /generate   run quick-modify or plan/execute generation
    POST   /apply      materialize accepted files
    POST   /rollback   restore a checkpoint returned by /apply
    GET    /analyze    current project analysis
    GET    /providers  provider catalog and current default
    GET    /status     files under the project source root
    GET    /file/*     read one file
    DELETE /file/*     delete one file

Every error leaves as ``{error, message, details?}`` with a 4xx status for
client-caused conditions and 5xx for upstream or internal failures.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ai_builder import __version__
from ai_builder.analyzer import AnalysisCache
from ai_builder.checkpoints import Checkpointer, make_checkpointer
from ai_builder.config import Config
from ai_builder.dependencies import install_missing_dependencies
from ai_builder.errors import AIBuilderError, CheckpointError, InvalidRequestError, UnknownProviderError
from ai_builder.materializer import FileMaterializer
from ai_builder.models import ApplyRequest, GenerationRequest, RollbackRequest
from ai_builder.orchestrator import GenerationOrchestrator
from ai_builder.providers import ProviderRegistry, default_registry
from ai_builder.workspace import SourceTree

logger = structlog.get_logger(__name__)


def create_app(
    config: Config,
    registry: ProviderRegistry | None = None,
    checkpointer: Checkpointer | None = None,
) -> FastAPI:
    """Build the application and wire its collaborators.

    One analysis cache instance is shared by the orchestrator and the
    materializer, so every write or delete invalidates what the next
    generation request sees.
    """
    registry = registry or default_registry()
    tree = SourceTree(config.source_root)
    cache = AnalysisCache(config.source_root, ttl=config.analysis_ttl)
    orchestrator = GenerationOrchestrator(config, registry, cache, tree)
    materializer = FileMaterializer(
        tree,
        cache,
        checkpointer or make_checkpointer(config.checkpoint_strategy, config.template_path),
    )

    def current_provider() -> dict[str, Any]:
        try:
            identifier = registry.canonical(config.default_provider)
        except UnknownProviderError:
            return {"provider": config.default_provider, "model": "", "configured": False}
        return {
            "provider": identifier,
            "model": config.provider_config(identifier).model,
            "configured": config.is_configured(identifier),
        }

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        current = current_provider()
        logger.info(
            "server_ready",
            template=str(config.template_path),
            provider=current["provider"],
            model=current["model"],
        )
        if not current["configured"]:
            logger.warning("provider_not_configured", provider=current["provider"])
        yield

    app = FastAPI(
        title="AI Builder",
        description="Multi-provider LLM code generation for a local project template",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry
    app.state.cache = cache
    app.state.orchestrator = orchestrator
    app.state.materializer = materializer

    # ------------------------------------------------------------------
    # Error handlers
    # ------------------------------------------------------------------

    @app.exception_handler(AIBuilderError)
    async def handle_domain_error(request: Request, exc: AIBuilderError) -> JSONResponse:
        logger.error(
            "request_failed",
            path=request.url.path,
            status=exc.status_code,
            error=type(exc).__name__,
            message=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in errors]
        error = InvalidRequestError(
            f"Invalid request body: {', '.join(f for f in fields if f) or 'body'}",
            details=jsonable_encoder(errors),
        )
        return await handle_domain_error(request, error)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal error", "message": str(exc)},
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    @app.post("/generate")
    async def generate(body: GenerationRequest) -> dict[str, Any]:
        logger.info("generate_requested", prompt=body.prompt[:200], provider=body.provider)
        response = await orchestrator.generate(body)
        analysis = await cache.get()
        return {
            "success": True,
            **response.model_dump(mode="json"),
            "projectContext": {
                "componentsCount": len(analysis.components),
                "pagesCount": len(analysis.pages),
                "technologies": analysis.technologies,
            },
        }

    @app.post("/apply")
    async def apply(body: ApplyRequest) -> dict[str, Any]:
        report = await materializer.apply(body.files)
        result: dict[str, Any] = {
            "success": True,
            "message": f"{report.written} of {len(body.files)} file(s) applied",
            "results": [r.model_dump(mode="json", exclude_none=True) for r in report.results],
        }
        if report.checkpoint_before or report.checkpoint_after:
            result["checkpoint"] = {
                "before": report.checkpoint_before,
                "after": report.checkpoint_after,
            }
        if config.auto_install_deps and report.written:
            analysis = await cache.get()
            deps = await install_missing_dependencies(config.template_path, analysis.imports)
            result["dependencies"] = deps.as_dict()
        return result

    @app.post("/rollback")
    async def rollback(body: RollbackRequest) -> dict[str, Any]:
        try:
            await materializer.rollback(body.token)
        except CheckpointError as exc:
            raise InvalidRequestError(exc.message) from exc
        return {"success": True, "message": f"Restored checkpoint {body.token}"}

    # ------------------------------------------------------------------
    # Project inspection
    # ------------------------------------------------------------------

    @app.get("/analyze")
    async def analyze() -> dict[str, Any]:
        analysis = await cache.get()
        return {"success": True, **analysis.model_dump(mode="json")}

    @app.get("/providers")
    async def providers() -> dict[str, Any]:
        return {"success": True, "providers": registry.catalog(), "current": current_provider()}

    @app.get("/status")
    async def status() -> dict[str, Any]:
        files = await tree.list_files_async()
        current = current_provider()
        return {
            "success": True,
            "templatePath": str(config.template_path),
            "fileCount": len(files),
            "files": files,
            "aiProvider": {
                "name": current["provider"],
                "model": current["model"],
                "configured": current["configured"],
            },
        }

    @app.get("/file/{file_path:path}")
    async def read_file(file_path: str) -> dict[str, Any]:
        content = await tree.read(file_path)
        return {"success": True, "path": file_path, "content": content}

    @app.delete("/file/{file_path:path}")
    async def delete_file(file_path: str) -> dict[str, Any]:
        await materializer.delete(file_path)
        return {"success": True, "message": f"Deleted {file_path}"}

    return app

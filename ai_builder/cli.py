"""Command-line entry point.

    ai-builder serve             start the HTTP service
    ai-builder check-providers   send a one-line prompt to each configured provider
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time

from dotenv import load_dotenv
from rich.table import Table

from ai_builder import __version__
from ai_builder.config import Config
from ai_builder.errors import AIBuilderError
from ai_builder.providers import ProviderRegistry, default_registry
from ai_builder.utils import (
    configure_logging,
    console,
    print_banner,
    print_error,
    print_success,
    print_warning,
)

SMOKE_PROMPT = "Reply with the single word: ok"

WORKING = "working"
NOT_CONFIGURED = "not configured"
FAILED = "error"

_STATUS_STYLE = {WORKING: "green", NOT_CONFIGURED: "yellow", FAILED: "red"}


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


def serve(config: Config) -> None:
    """Run the FastAPI app under uvicorn."""
    import uvicorn

    from ai_builder.server import create_app

    registry = default_registry()
    try:
        provider = registry.canonical(config.default_provider)
        configured = config.is_configured(provider)
        model = config.provider_config(provider).model
    except AIBuilderError:
        provider, configured, model = config.default_provider, False, "-"

    print_banner(
        f"AI Builder v{__version__}",
        {
            "Listening": f"http://{config.host}:{config.port}",
            "Template": str(config.template_path.resolve()),
            "Provider": provider,
            "Model": model,
            "Credentials": "configured" if configured else "[yellow]missing[/yellow]",
            "Checkpoints": config.checkpoint_strategy,
        },
    )
    if not config.source_root.is_dir():
        print_warning(f"Source root {config.source_root} does not exist yet; analysis will be empty.")

    app = create_app(config, registry=registry)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)


# ---------------------------------------------------------------------------
# check-providers
# ---------------------------------------------------------------------------


async def check_providers(
    config: Config, registry: ProviderRegistry
) -> list[tuple[str, str, str, str]]:
    """Send ``SMOKE_PROMPT`` to every configured provider.

    Returns ``(provider, model, status, detail)`` rows in catalog order, where
    status is one of ``working``, ``not configured`` or ``error``.
    Unconfigured providers are reported without a network call.
    """
    rows: list[tuple[str, str, str, str]] = []
    for entry in registry.catalog():
        identifier = entry["id"]
        provider_config = config.provider_config(identifier)
        if not config.is_configured(identifier):
            rows.append((identifier, provider_config.model, NOT_CONFIGURED, ""))
            continue
        adapter = registry.create(identifier, provider_config)
        start = time.monotonic()
        try:
            result = await adapter.generate(SMOKE_PROMPT, "You are a connectivity check.")
        except AIBuilderError as exc:
            rows.append((identifier, provider_config.model, FAILED, exc.message[:80]))
            continue
        elapsed = (time.monotonic() - start) * 1000
        reply = result.content.strip().splitlines()[0][:40] if result.content.strip() else ""
        rows.append(
            (identifier, result.model or provider_config.model, WORKING, f"{elapsed:.0f}ms {reply!r}")
        )
    return rows


def _print_provider_table(rows: list[tuple[str, str, str, str]]) -> None:
    table = Table(title="Provider check")
    table.add_column("Provider", style="bold")
    table.add_column("Model")
    table.add_column("Status")
    table.add_column("Detail", style="dim")
    for provider, model, status, detail in rows:
        style = _STATUS_STYLE[status]
        table.add_row(provider, model, f"[{style}]{status}[/{style}]", detail)
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ai-builder",
        description="AI Builder -- LLM code generation for a local project template",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  ai-builder serve\n"
            "  ai-builder serve --port 4000 --template ./my-app\n"
            "  ai-builder check-providers\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_parser = sub.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: HOST or 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: PORT or 3001)")
    serve_parser.add_argument(
        "--template", default=None, help="Template directory (default: TEMPLATE_PATH or ./template)"
    )

    sub.add_parser("check-providers", help="Smoke-test every configured provider")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for ``ai-builder``."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        config = Config.from_env()
    except ValueError as exc:
        print_error(f"Invalid configuration: {exc}")
        return 2

    overrides = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    if getattr(args, "template", None):
        overrides["template_path"] = args.template
    if overrides:
        config = Config.model_validate({**config.model_dump(), **overrides})

    configure_logging(config.log_level, config.log_json)

    if args.command == "serve":
        serve(config)
        return 0

    rows = asyncio.run(check_providers(config, default_registry()))
    _print_provider_table(rows)
    working = sum(1 for _, _, status, _ in rows if status == WORKING)
    if not working:
        print_error("No provider answered. Check your API keys in .env.")
        return 1
    print_success(f"{working} provider(s) working.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

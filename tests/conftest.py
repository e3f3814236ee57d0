"""Shared pytest fixtures for the AI Builder test suite.

Provides reusable fixtures for:
- A temporary React template with a populated ``src/`` tree
- A scripted fake provider registered in a ``ProviderRegistry``
- A ``Config`` pointing at the temporary template
- Mock subprocess helpers
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from ai_builder.config import Config
from ai_builder.providers import GenerationResult, ProviderConfig, ProviderInfo, ProviderRegistry


# ---------------------------------------------------------------------------
# Template directory
# ---------------------------------------------------------------------------

TEMPLATE_FILES: dict[str, str] = {
    "App.jsx": (
        "import React from 'react'\n"
        "import Header from './components/Header'\n"
        "import Home from './pages/Home'\n\n"
        "export default function App() {\n"
        "  return <div className=\"min-h-screen\"><Header /><Home /></div>\n"
        "}\n"
    ),
    "components/Header.jsx": (
        "import React from 'react'\n\n"
        "export default function Header() {\n"
        "  return <header className=\"p-4\">Header</header>\n"
        "}\n"
    ),
    "pages/Home.jsx": (
        "import React, { useState } from 'react'\n\n"
        "export default function Home() {\n"
        "  const [count, setCount] = useState(0)\n"
        "  return <button onClick={() => setCount(count + 1)}>{count}</button>\n"
        "}\n"
    ),
    "services/api.js": (
        "import axios from 'axios'\n\n"
        "export const api = axios.create({ baseURL: '/api' })\n"
    ),
}


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    """Temporary template with ``package.json`` and a small ``src/`` tree."""
    template = tmp_path / "template"
    src = template / "src"
    for relative, content in TEMPLATE_FILES.items():
        path = src / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    (template / "package.json").write_text(
        json.dumps({"name": "template", "dependencies": {"react": "^18.2.0"}}),
        encoding="utf-8",
    )
    yield template


@pytest.fixture
def source_root(template_dir: Path) -> Path:
    return template_dir / "src"


@pytest.fixture
def config(template_dir: Path) -> Config:
    """Config whose default provider is the scripted fake."""
    return Config(template_path=template_dir, default_provider="fake")


# ---------------------------------------------------------------------------
# Scripted provider
# ---------------------------------------------------------------------------

def files_reply(*files: tuple[str, str], description: str = "") -> str:
    """A well-formed developer reply wrapped in a ```json fence."""
    body = {
        "files": [{"path": path, "content": content} for path, content in files],
        "description": description,
    }
    return f"Here you go:\n```json\n{json.dumps(body, indent=2)}\n```\n"


def plan_reply(*tasks: tuple[str, str, str], description: str = "") -> str:
    """A well-formed architect reply; each task is ``(path, action, instruction)``."""
    body = {
        "plan": [
            {"path": path, "action": action, "instruction": instruction}
            for path, action, instruction in tasks
        ],
        "description": description,
    }
    return f"```json\n{json.dumps(body)}\n```"


class ScriptedAdapter:
    """Fake adapter that replays queued replies and records every call.

    A queued ``Exception`` instance is raised instead of returned.
    """

    def __init__(self, config: ProviderConfig, script: "Script") -> None:
        self.config = config
        self.script = script

    async def generate(self, prompt: str, system_context: str) -> GenerationResult:
        self.script.calls.append(
            {"prompt": prompt, "system_context": system_context, "config": self.config}
        )
        if not self.script.replies:
            raise AssertionError("ScriptedAdapter ran out of replies")
        reply = self.script.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return GenerationResult(
            content=reply,
            model=self.config.model or "fake-model",
            usage={"call": len(self.script.calls)},
        )


class Script:
    """Queued replies shared by every adapter the registry creates."""

    def __init__(self) -> None:
        self.replies: list[Any] = []
        self.calls: list[dict[str, Any]] = []

    def queue(self, *replies: Any) -> "Script":
        self.replies.extend(replies)
        return self


@pytest.fixture
def script() -> Script:
    return Script()


@pytest.fixture
def registry(script: Script) -> ProviderRegistry:
    """Registry holding only the scripted ``fake`` provider (alias ``stub``)."""
    registry = ProviderRegistry()
    registry.register(
        ProviderInfo(
            "fake",
            "Fake Provider",
            lambda cfg, transport: ScriptedAdapter(cfg, script),
            ["fake-model"],
            free=True,
            aliases=("stub",),
        )
    )
    return registry


# ---------------------------------------------------------------------------
# Mock Subprocess (generic)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess factory with configurable output and exit code.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory

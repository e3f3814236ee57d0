"""Structural analysis of the template's source tree.

Walks ``<template>/src`` and produces a ``ProjectAnalysis``: which components,
pages and services exist, which technologies the code uses, and a short
deterministic summary that is inlined into prompts. Uses pure regex and
substring checks -- no AI calls.

The analysis is memoized by ``AnalysisCache`` for a bounded time-to-live and
invalidated explicitly whenever the materializer writes or deletes a file.
"""

from __future__ import annotations

import asyncio
import os
import re
import time
from pathlib import Path
from typing import Callable

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SOURCE_EXTENSIONS: frozenset[str] = frozenset({".js", ".jsx", ".ts", ".tsx"})

# Top-level directory under src/ -> analysis bucket.
_BUCKETS: dict[str, str] = {
    "components": "components",
    "pages": "pages",
    "services": "services",
}

BASE_TECHNOLOGIES: tuple[str, ...] = ("React", "Tailwind CSS")

# Substring found in a file -> technology it implies.
_TECHNOLOGY_MARKERS: tuple[tuple[str, str], ...] = (
    ("react-router", "React Router"),
    ("axios", "Axios"),
    ("useState", "React Hooks"),
    ("useEffect", "React Hooks"),
    ("recharts", "Recharts"),
    ("lucide-react", "Lucide Icons"),
    ("zustand", "Zustand"),
    ("framer-motion", "Framer Motion"),
)

_IMPORT_PATTERN = re.compile(r"""import\s+(?:[^'"]+?\s+from\s+)?['"]([^'"]+)['"]""")
_REQUIRE_PATTERN = re.compile(r"""(?:require|import)\(\s*['"]([^'"]+)['"]\s*\)""")
_TYPESCRIPT_PATTERN = re.compile(r"\b(?:interface|type)\s+[A-Z]\w*")

SUMMARY_COMPONENT_LIMIT = 5


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

class ProjectAnalysis(BaseModel):
    """Derived summary of the current source tree. Never mutated once built."""

    model_config = ConfigDict(frozen=True)

    components: list[str] = Field(default_factory=list, description="Paths under components/")
    pages: list[str] = Field(default_factory=list, description="Paths under pages/")
    services: list[str] = Field(default_factory=list, description="Paths under services/")
    technologies: list[str] = Field(
        default_factory=lambda: sorted(BASE_TECHNOLOGIES),
        description="Detected technologies, sorted and unique",
    )
    imports: list[str] = Field(default_factory=list, description="Sorted import specifiers")
    patterns: list[str] = Field(default_factory=list, description="Detected code patterns")
    summary: str = Field(default="", description="Human-readable one-paragraph summary")

    @property
    def is_empty(self) -> bool:
        return not (self.components or self.pages or self.services)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

def _iter_source_files(root: Path) -> list[Path]:
    """Recognized source files under ``root``; symlinked dirs are not followed."""
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames[:] = sorted(d for d in dirnames if d != "node_modules" and not d.startswith("."))
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.suffix.lower() in SOURCE_EXTENSIONS and not path.is_symlink():
                found.append(path)
    return found


def build_summary(
    components: list[str],
    pages: list[str],
    services: list[str],
    technologies: list[str],
) -> str:
    """Render the deterministic project summary used in prompts."""
    parts = [
        f"The current project has {len(components)} components, "
        f"{len(pages)} pages and {len(services)} services."
    ]
    if technologies:
        parts.append(f"Technologies in use: {', '.join(technologies)}.")
    if components:
        shown = ", ".join(components[:SUMMARY_COMPONENT_LIMIT])
        more = "..." if len(components) > SUMMARY_COMPONENT_LIMIT else ""
        parts.append(f"Existing components: {shown}{more}.")
    return " ".join(parts)


def analyze_project(source_root: str | Path) -> ProjectAnalysis:
    """Walk ``source_root`` and build a ``ProjectAnalysis``.

    A missing source root yields an empty analysis instead of raising.
    Unreadable files are skipped with a warning.
    """
    root = Path(source_root)
    buckets: dict[str, list[str]] = {name: [] for name in _BUCKETS.values()}
    technologies: set[str] = set(BASE_TECHNOLOGIES)
    imports: set[str] = set()
    patterns: set[str] = set()

    if not root.is_dir():
        logger.warning("source_root_missing", path=str(root))
        files: list[Path] = []
    else:
        files = _iter_source_files(root)

    for path in files:
        relative = path.relative_to(root).as_posix()
        top = relative.split("/", 1)[0] if "/" in relative else ""
        if top in _BUCKETS:
            buckets[_BUCKETS[top]].append(relative)

        try:
            content = path.read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            logger.warning("source_file_unreadable", path=relative, error=str(exc))
            continue

        imports.update(_IMPORT_PATTERN.findall(content))
        imports.update(_REQUIRE_PATTERN.findall(content))
        for marker, technology in _TECHNOLOGY_MARKERS:
            if marker in content:
                technologies.add(technology)
        if path.suffix in (".ts", ".tsx") or _TYPESCRIPT_PATTERN.search(content):
            patterns.add("TypeScript")
        if "className=" in content:
            patterns.add("Tailwind CSS")

    sorted_technologies = sorted(technologies)
    return ProjectAnalysis(
        components=buckets["components"],
        pages=buckets["pages"],
        services=buckets["services"],
        technologies=sorted_technologies,
        imports=sorted(imports),
        patterns=sorted(patterns),
        summary=build_summary(
            buckets["components"], buckets["pages"], buckets["services"], sorted_technologies
        ),
    )


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

def is_stale(cached_at: float | None, now: float, ttl: float) -> bool:
    """Pure staleness predicate: missing or older than ``ttl`` seconds."""
    return cached_at is None or (now - cached_at) >= ttl


class AnalysisCache:
    """Memoized ``ProjectAnalysis`` for one source root.

    One instance is shared by the orchestrator and the materializer. A value
    is replaced wholesale on a miss and dropped by :meth:`invalidate`.
    """

    def __init__(
        self,
        source_root: str | Path,
        ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source_root = Path(source_root)
        self.ttl = ttl
        self._clock = clock
        self._value: ProjectAnalysis | None = None
        self._cached_at: float | None = None
        self._generation = 0

    def peek(self) -> ProjectAnalysis | None:
        """The cached value if still fresh, else ``None``. Never recomputes."""
        if self._value is None or is_stale(self._cached_at, self._clock(), self.ttl):
            return None
        return self._value

    async def get(self) -> ProjectAnalysis:
        """Return the cached analysis, recomputing it on a miss."""
        cached = self.peek()
        if cached is not None:
            return cached

        generation = self._generation
        loop = asyncio.get_running_loop()
        analysis = await loop.run_in_executor(None, analyze_project, self.source_root)
        # An invalidate during the walk means this result may predate a write.
        if generation != self._generation:
            return analysis
        self._value = analysis
        self._cached_at = self._clock()
        logger.debug(
            "analysis_refreshed",
            components=len(analysis.components),
            pages=len(analysis.pages),
            services=len(analysis.services),
        )
        return analysis

    def invalidate(self) -> None:
        """Drop the memo so the next :meth:`get` recomputes."""
        self._generation += 1
        self._value = None
        self._cached_at = None

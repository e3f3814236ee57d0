"""Detect and install npm packages imported by the template but not declared.

Bare import specifiers from the project analysis are normalised to package
names and compared against ``package.json``; the missing ones are installed
with the package manager whose lock file is present (pnpm, yarn, else npm).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

import structlog

from ai_builder.utils import run_command

logger = structlog.get_logger(__name__)

_DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")

# Specifiers that are bundler aliases or Node built-ins, never npm packages.
_IGNORED_PREFIXES = (".", "/", "~", "@/", "node:", "http:", "https:", "data:")


@dataclass
class DependencyReport:
    """What the auto-installer found and did."""

    missing: list[str] = field(default_factory=list)
    installed: bool = False
    command: list[str] = field(default_factory=list)
    error: str | None = None

    def as_dict(self) -> dict:
        body: dict = {"missing": self.missing, "installed": self.installed}
        if self.command:
            body["command"] = " ".join(self.command)
        if self.error:
            body["error"] = self.error
        return body


def normalize_package(specifier: str) -> str:
    """Map an import specifier to its package name.

    Examples::

        normalize_package("lodash/get")          -> "lodash"
        normalize_package("@scope/pkg/sub/path") -> "@scope/pkg"
    """
    parts = specifier.split("/")
    if specifier.startswith("@"):
        return "/".join(parts[:2]) if len(parts) >= 2 else specifier
    return parts[0]


def read_declared_packages(package_json: Path) -> set[str]:
    """Every package named in the dependency sections of ``package.json``.

    A missing or unreadable file declares nothing.
    """
    if not package_json.is_file():
        return set()
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("package_json_unreadable", path=str(package_json), error=str(exc))
        return set()
    declared: set[str] = set()
    for section in _DEPENDENCY_SECTIONS:
        declared.update((data.get(section) or {}).keys())
    return declared


def find_missing_packages(imports: Iterable[str], declared: set[str]) -> list[str]:
    """Sorted package names imported but not declared."""
    needed: set[str] = set()
    for specifier in imports:
        if not specifier or specifier.startswith(_IGNORED_PREFIXES):
            continue
        package = normalize_package(specifier)
        if package and package not in declared:
            needed.add(package)
    return sorted(needed)


def install_command(template_path: Path, packages: list[str]) -> list[str]:
    """Choose the package manager by lock file."""
    if (template_path / "pnpm-lock.yaml").exists():
        return ["pnpm", "add", *packages]
    if (template_path / "yarn.lock").exists():
        return ["yarn", "add", *packages]
    return ["npm", "install", *packages]


async def install_missing_dependencies(
    template_path: str | Path,
    imports: Iterable[str],
    timeout: int = 600,
) -> DependencyReport:
    """Install imported-but-undeclared packages into the template.

    Failures are reported in the returned ``DependencyReport`` and logged;
    they never raise.
    """
    template = Path(template_path)
    declared = read_declared_packages(template / "package.json")
    report = DependencyReport(missing=find_missing_packages(imports, declared))
    if not report.missing:
        return report

    report.command = install_command(template, report.missing)
    logger.info("installing_dependencies", command=" ".join(report.command))
    returncode, _, stderr = await run_command(report.command, cwd=template, timeout=timeout)
    if returncode != 0:
        report.error = stderr[:500] or f"exit code {returncode}"
        logger.warning("dependency_install_failed", error=report.error)
        return report

    report.installed = True
    return report

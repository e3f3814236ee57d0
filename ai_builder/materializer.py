"""Apply accepted generated files to the template's source tree.

Each file is resolved under the source root; unsafe paths are reported as
``skipped (unsafe)`` and never abort the batch. Writes are last-writer-wins;
a partially applied batch is visible through the per-file statuses.
Checkpoints are taken immediately before and after the batch when a
checkpointer is configured; checkpoint failures are logged and ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import structlog

from ai_builder.analyzer import AnalysisCache
from ai_builder.checkpoints import Checkpointer, NullCheckpointer
from ai_builder.errors import CheckpointError, UnsafePathError
from ai_builder.models import ApplyResult, ApplyStatus, GeneratedFile
from ai_builder.workspace import SourceTree

logger = structlog.get_logger(__name__)


@dataclass
class ApplyReport:
    """Outcome of one apply batch."""

    results: list[ApplyResult] = field(default_factory=list)
    checkpoint_before: str | None = None
    checkpoint_after: str | None = None

    @property
    def written(self) -> int:
        return sum(1 for r in self.results if r.status is ApplyStatus.WRITTEN)


class FileMaterializer:
    """Writes generated files and keeps the analysis cache honest."""

    def __init__(
        self,
        tree: SourceTree,
        cache: AnalysisCache,
        checkpointer: Checkpointer | None = None,
    ) -> None:
        self.tree = tree
        self.cache = cache
        self.checkpointer = checkpointer or NullCheckpointer()

    async def _checkpoint(self, label: str, paths: Sequence[Path]) -> str | None:
        try:
            return await self.checkpointer.checkpoint(label, paths)
        except CheckpointError as exc:
            logger.warning("checkpoint_failed", label=label, error=exc.message)
            return None

    async def apply(self, files: Sequence[GeneratedFile]) -> ApplyReport:
        """Write ``files`` in order; duplicate paths resolve last-writer-wins."""
        report = ApplyReport()
        targets: list[tuple[GeneratedFile, Path | None]] = []
        for generated in files:
            try:
                targets.append((generated, self.tree.resolve(generated.path)))
            except UnsafePathError:
                targets.append((generated, None))

        safe_paths = [path for _, path in targets if path is not None]
        if safe_paths:
            report.checkpoint_before = await self._checkpoint("before", safe_paths)

        for generated, path in targets:
            if path is None:
                logger.warning("apply_skipped_unsafe", path=generated.path)
                report.results.append(
                    ApplyResult(path=generated.path, status=ApplyStatus.SKIPPED_UNSAFE)
                )
                continue
            try:
                await self.tree.write(generated.path, generated.content)
            except OSError as exc:
                logger.error("apply_write_failed", path=generated.path, error=str(exc))
                report.results.append(
                    ApplyResult(path=generated.path, status=ApplyStatus.FAILED, error=str(exc))
                )
                continue
            logger.info("file_written", path=generated.path, size=len(generated.content))
            report.results.append(
                ApplyResult(
                    path=generated.path,
                    status=ApplyStatus.WRITTEN,
                    size=len(generated.content),
                )
            )

        if report.written:
            self.cache.invalidate()
            report.checkpoint_after = await self._checkpoint("after", safe_paths)
        return report

    async def delete(self, relative: str) -> None:
        """Delete one file and invalidate the analysis cache.

        Raises:
            UnsafePathError: If the path escapes the source root.
            NotFoundError: If the file does not exist.
        """
        await self.tree.delete(relative)
        self.cache.invalidate()
        logger.info("file_deleted", path=relative)

    async def rollback(self, token: str) -> None:
        """Restore a checkpoint token and invalidate the analysis cache."""
        await self.checkpointer.restore(token)
        self.cache.invalidate()
        logger.info("checkpoint_restored", token=token)

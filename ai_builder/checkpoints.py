"""Pre/post-write safety checkpoints for the materializer.

Two interchangeable strategies sit behind the ``Checkpointer`` protocol:

* ``GitCheckpointer`` commits the whole template tree; the token is the
  commit hash and restoring resets the tree to that commit.
* ``BackupCheckpointer`` copies each existing target to ``<file>.backup``
  and remembers targets that do not exist yet; the token names the batch
  and restoring copies the backups back and removes the created files.

``NullCheckpointer`` disables checkpointing.
"""

from __future__ import annotations

import asyncio
import shutil
import uuid
from pathlib import Path
from typing import Protocol, Sequence

import structlog

from ai_builder.errors import CheckpointError

logger = structlog.get_logger(__name__)

BACKUP_SUFFIX = ".backup"


class Checkpointer(Protocol):
    """Capability interface for checkpoint strategies."""

    async def checkpoint(self, label: str, paths: Sequence[Path]) -> str | None:
        """Snapshot state; ``paths`` are the absolute targets of the batch."""
        ...

    async def restore(self, token: str) -> None:
        ...


class NullCheckpointer:
    """Checkpointing disabled."""

    async def checkpoint(self, label: str, paths: Sequence[Path]) -> str | None:
        return None

    async def restore(self, token: str) -> None:
        raise CheckpointError("Checkpointing is disabled; nothing to restore.")


# ---------------------------------------------------------------------------
# Git
# ---------------------------------------------------------------------------

async def _run_git(
    *args: str,
    cwd: str | Path | None = None,
    timeout: float = 60.0,
) -> tuple[str, str]:
    """Run a git command asynchronously and return (stdout, stderr).

    Raises CheckpointError if the command exits with a non-zero code.
    """
    cmd = ["git"] + list(args)
    cmd_str = " ".join(cmd)

    if cwd is not None and not Path(cwd).is_dir():
        raise CheckpointError(f"Git working directory does not exist: {cwd}", command=cmd_str)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError as exc:
        raise CheckpointError(f"git executable not found: {exc}", command=cmd_str) from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        raise CheckpointError(
            f"Git command timed out after {timeout}s: {cmd_str}",
            command=cmd_str,
        )

    stdout = stdout_bytes.decode("utf-8", errors="replace").strip()
    stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

    if process.returncode != 0:
        raise CheckpointError(
            f"Git command failed (exit {process.returncode}): {cmd_str}\n{stderr}",
            command=cmd_str,
            stderr=stderr,
        )

    return stdout, stderr


class GitCheckpointer:
    """Whole-tree commits in the template directory.

    The repository is initialised on first use. Commits use a fixed local
    identity so they work on machines without a global git config.
    """

    def __init__(self, repo_path: str | Path) -> None:
        self.repo_path = Path(repo_path)

    async def _ensure_repo(self) -> None:
        if (self.repo_path / ".git").exists():
            return
        await _run_git("init", cwd=self.repo_path)
        logger.info("git_repo_initialised", path=str(self.repo_path))

    async def checkpoint(self, label: str, paths: Sequence[Path]) -> str | None:
        await self._ensure_repo()
        await _run_git("add", "-A", cwd=self.repo_path)
        await _run_git(
            "-c", "user.name=AI Builder",
            "-c", "user.email=ai-builder@localhost",
            "-c", "commit.gpgsign=false",
            "commit", "--allow-empty", "-m", f"ai-builder: {label}",
            cwd=self.repo_path,
        )
        token, _ = await _run_git("rev-parse", "HEAD", cwd=self.repo_path)
        return token

    async def restore(self, token: str) -> None:
        if not (self.repo_path / ".git").exists():
            raise CheckpointError(f"Not a git repository: {self.repo_path}")
        await _run_git("cat-file", "-e", f"{token}^{{commit}}", cwd=self.repo_path)
        await _run_git("reset", "--hard", token, cwd=self.repo_path)
        # Files created after the checkpoint are untracked at this point.
        await _run_git("clean", "-fd", cwd=self.repo_path)


# ---------------------------------------------------------------------------
# Backup copies
# ---------------------------------------------------------------------------

class BackupCheckpointer:
    """File-level ``.backup`` copies of every existing target.

    Batches are remembered in memory for the lifetime of the process; a
    post-write checkpoint is a no-op because the written files are the
    current state.
    """

    def __init__(self) -> None:
        self._batches: dict[str, list[tuple[Path, Path | None]]] = {}

    async def checkpoint(self, label: str, paths: Sequence[Path]) -> str | None:
        if label != "before":
            return None

        def _copy() -> list[tuple[Path, Path | None]]:
            copied: list[tuple[Path, Path | None]] = []
            for path in paths:
                if path.is_file():
                    backup = path.with_name(path.name + BACKUP_SUFFIX)
                    shutil.copy2(path, backup)
                    copied.append((path, backup))
                elif not path.exists():
                    copied.append((path, None))
            return copied

        loop = asyncio.get_running_loop()
        try:
            copied = await loop.run_in_executor(None, _copy)
        except OSError as exc:
            raise CheckpointError(f"Could not create backup copies: {exc}") from exc

        token = uuid.uuid4().hex
        self._batches[token] = copied
        logger.info(
            "backups_created",
            token=token,
            count=sum(1 for _, backup in copied if backup is not None),
            created=sum(1 for _, backup in copied if backup is None),
        )
        return token

    async def restore(self, token: str) -> None:
        batch = self._batches.get(token)
        if batch is None:
            raise CheckpointError(f"Unknown backup token: {token}")

        def _restore() -> None:
            for original, backup in batch:
                if backup is None:
                    original.unlink(missing_ok=True)
                else:
                    shutil.copy2(backup, original)

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _restore)
        except OSError as exc:
            raise CheckpointError(f"Could not restore backups: {exc}") from exc


def make_checkpointer(strategy: str, template_path: str | Path) -> Checkpointer:
    """Build the checkpointer named by ``CHECKPOINT_STRATEGY``."""
    if strategy == "git":
        return GitCheckpointer(template_path)
    if strategy == "backup":
        return BackupCheckpointer()
    return NullCheckpointer()

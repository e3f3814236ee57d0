"""Source-root file access with path-traversal protection.

Every read, write and delete of a project file goes through
:func:`resolve_safe_path`, which rejects any relative path that resolves
(symlinks included) outside the template's ``src/`` directory. Blocking
filesystem calls run in the default thread-pool executor so they never stall
the event loop.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from ai_builder.errors import NotFoundError, UnsafePathError


def resolve_safe_path(root: str | Path, relative: str) -> Path:
    """Resolve ``relative`` under ``root`` or raise ``UnsafePathError``.

    Absolute paths, empty paths, ``..`` escapes and symlinks pointing outside
    the root are all rejected. The target itself does not need to exist.
    """
    if not relative or not relative.strip() or "\x00" in relative:
        raise UnsafePathError(relative)

    root_resolved = Path(root).resolve()
    candidate = Path(relative.strip())
    if candidate.is_absolute():
        raise UnsafePathError(relative)

    resolved = (root_resolved / candidate).resolve()
    if resolved == root_resolved or not resolved.is_relative_to(root_resolved):
        raise UnsafePathError(relative)
    return resolved


class SourceTree:
    """Async file operations confined to one source root."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def resolve(self, relative: str) -> Path:
        return resolve_safe_path(self.root, relative)

    async def read(self, relative: str) -> str:
        """Return the text of a file.

        Raises:
            UnsafePathError: If the path escapes the root.
            NotFoundError: If the file does not exist.
        """
        path = self.resolve(relative)
        if not path.is_file():
            raise NotFoundError(relative)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, path.read_text, "utf-8")

    async def write(self, relative: str, content: str) -> Path:
        """Write ``content``, creating parent directories. Overwrites."""
        path = self.resolve(relative)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _write)
        return path

    async def delete(self, relative: str) -> None:
        """Delete one file.

        Raises:
            UnsafePathError: If the path escapes the root.
            NotFoundError: If the file does not exist.
        """
        path = self.resolve(relative)
        if not path.is_file():
            raise NotFoundError(relative)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, path.unlink)

    def list_files(self) -> list[str]:
        """Every file under the root as sorted POSIX-style relative paths.

        A missing root yields an empty list. Symlinked directories are not
        followed.
        """
        if not self.root.is_dir():
            return []
        files: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root, followlinks=False):
            dirnames.sort()
            base = Path(dirpath)
            for name in filenames:
                files.append((base / name).relative_to(self.root).as_posix())
        return sorted(files)

    async def list_files_async(self) -> list[str]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.list_files)

"""Filesystem port used by the scaffolding engine.

Everything the engine does to storage goes through the narrow async
``FileSystemPort`` interface, so tests can substitute a double and the
engine stays storage-agnostic.  ``LocalFileSystem`` is the disk-backed
implementation: each call runs in a worker thread via ``asyncio.to_thread``
and a semaphore bounds how many calls are in flight at once, which keeps
wide template trees from exhausting file descriptors.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@dataclass(frozen=True)
class PathStat:
    """The subset of ``os.stat`` the engine cares about."""

    is_dir: bool
    is_file: bool
    size: int = 0


@runtime_checkable
class FileSystemPort(Protocol):
    """Async storage interface consumed by the engine."""

    async def exists(self, path: Path) -> bool: ...

    async def stat(self, path: Path) -> PathStat: ...

    async def read_file(self, path: Path) -> str: ...

    async def read_bytes(self, path: Path) -> bytes: ...

    async def write_file(self, path: Path, content: str) -> None: ...

    async def copy(self, source: Path, target: Path) -> None: ...

    async def readdir(self, path: Path) -> list[str]: ...

    async def ensure_dir(self, path: Path) -> None: ...


class LocalFileSystem:
    """``FileSystemPort`` backed by the local disk."""

    def __init__(self, max_concurrency: int = 64) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def _run(self, func: Callable[..., T], *args: object) -> T:
        async with self._semaphore:
            return await asyncio.to_thread(func, *args)

    async def exists(self, path: Path) -> bool:
        return await self._run(os.path.lexists, Path(path))

    async def stat(self, path: Path) -> PathStat:
        return await self._run(_stat, Path(path))

    async def read_file(self, path: Path) -> str:
        """Read *path* as UTF-8 text.

        Raises:
            UnicodeDecodeError: If the file is not UTF-8 text.
        """
        return await self._run(_read_text, Path(path))

    async def read_bytes(self, path: Path) -> bytes:
        return await self._run(Path(path).read_bytes)

    async def write_file(self, path: Path, content: str) -> None:
        await self._run(_write_file, Path(path), content)

    async def copy(self, source: Path, target: Path) -> None:
        """Copy a file or a whole directory tree verbatim."""
        await self._run(_copy, Path(source), Path(target))

    async def readdir(self, path: Path) -> list[str]:
        return await self._run(os.listdir, Path(path))

    async def ensure_dir(self, path: Path) -> None:
        await self._run(_mkdir, Path(path))


# ---------------------------------------------------------------------------
# Internal helpers (run in worker threads)
# ---------------------------------------------------------------------------

def _stat(path: Path) -> PathStat:
    st = path.stat()
    return PathStat(is_dir=path.is_dir(), is_file=path.is_file(), size=st.st_size)


def _read_text(path: Path) -> str:
    # newline="" keeps CRLF line endings intact on rewrite
    with path.open("r", encoding="utf-8", newline="") as fh:
        return fh.read()


def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as fh:
        fh.write(content)


def _copy(source: Path, target: Path) -> None:
    if source.is_dir():
        shutil.copytree(source, target, symlinks=True)
    else:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)


def _mkdir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


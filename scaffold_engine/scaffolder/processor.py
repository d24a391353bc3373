"""Conflict-safe copy + substitution for a single (source, target) pair.

The processor never overwrites: if the target path already exists, every
file under it is reported as existing and nothing is copied or rendered.
Existence is the only conflict signal; contents are never compared.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from scaffold_engine.errors import SourceNotFound

from .filesystem import FileSystemPort, PathStat
from .models import FileOutcome
from .substitution import VariableSubstitutionWalker
from .templates import TemplateRenderer

logger = logging.getLogger(__name__)

LIQUID_SUFFIX = ".liquid"


class ScaffoldProcessor:
    """Copies template sources into a target tree and tracks file outcomes."""

    def __init__(
        self,
        fs: FileSystemPort,
        renderer: TemplateRenderer,
        walker: VariableSubstitutionWalker | None = None,
    ) -> None:
        self.fs = fs
        self.walker = walker or VariableSubstitutionWalker(fs, renderer)

    # -- Public API --------------------------------------------------------

    async def copy_and_process(
        self,
        source_path: Path,
        target_path: Path,
        variables: dict[str, Any],
    ) -> list[FileOutcome]:
        """Materialize *source_path* at *target_path*.

        Returns:
            Created / existing / warning outcomes for every file involved.

        Raises:
            SourceNotFound: If neither the source nor its ``.liquid``
                sibling exists.
        """
        source_path = Path(source_path)
        target_path = Path(target_path)

        await self.fs.ensure_dir(target_path.parent)

        if await self.fs.exists(target_path):
            logger.debug("Target %s exists, leaving it untouched", target_path)
            return await self.track_files(target_path, FileOutcome.existing)

        actual_source = await self.resolve_source(source_path)
        await self.fs.copy(actual_source, target_path)

        outcomes = await self.walker.apply(target_path, variables)
        outcomes.extend(await self.track_files(target_path, FileOutcome.created))
        return outcomes

    async def resolve_source(self, source_path: Path) -> Path:
        """Return *source_path*, or its ``.liquid`` sibling if only that exists."""
        if await self.fs.exists(source_path):
            return source_path
        liquid_path = source_path.with_name(source_path.name + LIQUID_SUFFIX)
        if await self.fs.exists(liquid_path):
            return liquid_path
        raise SourceNotFound(
            f"Source file not found: {source_path} (also tried {liquid_path})",
            source=str(source_path),
        )

    async def track_files(
        self,
        target_path: Path,
        make: Callable[[Path], FileOutcome],
    ) -> list[FileOutcome]:
        """Record every file under *target_path* using *make*."""
        try:
            stat = await self.fs.stat(target_path)
        except OSError as exc:
            return [_warn(target_path, f"cannot stat: {exc}")]
        if stat.is_dir:
            return await self._track_recursive(target_path, make)
        return [make(target_path)]

    # -- Internal helpers --------------------------------------------------

    async def _track_recursive(
        self,
        dir_path: Path,
        make: Callable[[Path], FileOutcome],
    ) -> list[FileOutcome]:
        try:
            names = await self.fs.readdir(dir_path)
        except OSError as exc:
            return [_warn(dir_path, f"cannot read directory: {exc}")]

        item_paths = [dir_path / name for name in names if name]
        stats = await asyncio.gather(*(self._safe_stat(p) for p in item_paths))

        outcomes: list[FileOutcome] = []
        directories: list[Path] = []
        for item_path, stat in zip(item_paths, stats):
            if isinstance(stat, FileOutcome):
                outcomes.append(stat)
            elif stat.is_dir:
                directories.append(item_path)
            elif stat.is_file:
                outcomes.append(make(item_path))

        nested = await asyncio.gather(*(self._track_recursive(d, make) for d in directories))
        for sub in nested:
            outcomes.extend(sub)
        return outcomes

    async def _safe_stat(self, path: Path) -> PathStat | FileOutcome:
        try:
            return await self.fs.stat(path)
        except OSError as exc:
            return _warn(path, f"cannot stat: {exc}")


def _warn(path: Path, reason: str) -> FileOutcome:
    logger.warning("Cannot track %s: %s", path, reason)
    return FileOutcome.warning(path, reason)

"""In-place variable substitution over a materialized target tree."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from jinja2 import TemplateError

from .filesystem import FileSystemPort, PathStat
from .models import FileOutcome
from .templates import TemplateRenderer

logger = logging.getLogger(__name__)

BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".png",
        ".jpg",
        ".jpeg",
        ".gif",
        ".ico",
        ".woff",
        ".woff2",
        ".ttf",
        ".eot",
        ".pdf",
        ".zip",
        ".tar",
        ".gz",
        ".exe",
        ".dll",
        ".so",
        ".dylib",
    }
)


def is_binary_file(path: str | Path) -> bool:
    """Classify by extension only; file contents are never sniffed."""
    return Path(path).suffix.lower() in BINARY_EXTENSIONS


class VariableSubstitutionWalker:
    """Renders every text file under a path in place.

    Siblings are processed concurrently and the walk fans back in before
    returning.  Anything that cannot be listed, stat'ed, decoded or rendered
    is returned as a warning outcome and left untouched.
    """

    def __init__(self, fs: FileSystemPort, renderer: TemplateRenderer) -> None:
        self.fs = fs
        self.renderer = renderer

    async def apply(self, target_path: Path, variables: dict[str, Any]) -> list[FileOutcome]:
        target_path = Path(target_path)
        try:
            stat = await self.fs.stat(target_path)
        except OSError as exc:
            return [self._warn(target_path, f"cannot stat: {exc}")]
        if stat.is_dir:
            return await self._walk_directory(target_path, variables)
        return await self.render_file(target_path, variables)

    async def render_file(self, file_path: Path, variables: dict[str, Any]) -> list[FileOutcome]:
        if is_binary_file(file_path):
            return []
        try:
            content = await self.fs.read_file(file_path)
        except (OSError, UnicodeDecodeError) as exc:
            return [self._warn(file_path, f"not readable as text: {exc}")]

        if not self.renderer.contains_template_syntax(content):
            return []

        try:
            rendered = self.renderer.render_string(content, variables)
        except TemplateError as exc:
            return [self._warn(file_path, f"template render failed: {exc}")]

        if rendered != content:
            try:
                await self.fs.write_file(file_path, rendered)
            except OSError as exc:
                return [self._warn(file_path, f"cannot write rendered file: {exc}")]
        return []

    async def _walk_directory(self, dir_path: Path, variables: dict[str, Any]) -> list[FileOutcome]:
        try:
            names = await self.fs.readdir(dir_path)
        except OSError as exc:
            return [self._warn(dir_path, f"cannot read directory: {exc}")]

        item_paths = [dir_path / name for name in names if name]
        stats = await asyncio.gather(*(self._safe_stat(p) for p in item_paths))

        warnings: list[FileOutcome] = []
        jobs = []
        for item_path, (stat, warning) in zip(item_paths, stats):
            if warning is not None:
                warnings.append(warning)
            elif stat.is_dir:
                jobs.append(self._walk_directory(item_path, variables))
            elif stat.is_file:
                jobs.append(self.render_file(item_path, variables))

        for outcomes in await asyncio.gather(*jobs):
            warnings.extend(outcomes)
        return warnings

    async def _safe_stat(self, path: Path) -> tuple[PathStat | None, FileOutcome | None]:
        try:
            return await self.fs.stat(path), None
        except OSError as exc:
            return None, self._warn(path, f"cannot stat: {exc}")

    @staticmethod
    def _warn(path: Path, reason: str) -> FileOutcome:
        logger.warning("Skipping %s: %s", path, reason)
        return FileOutcome.warning(path, reason)

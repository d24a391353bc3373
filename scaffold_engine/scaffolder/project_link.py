"""Project linkage metadata.

A generated project remembers which template created it so later feature
scaffolds can find that template again:

* monorepo projects carry ``project.json`` with ``name`` and ``sourceTemplate``;
* monolith workspaces carry a root ``toolkit.yaml`` with ``sourceTemplate``
  and ``type: monolith``.

Existing keys in either file are preserved when the link is written.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

from .filesystem import FileSystemPort

logger = logging.getLogger(__name__)

PROJECT_JSON = "project.json"
TOOLKIT_YAML = "toolkit.yaml"
WORKSPACE_MARKERS = (TOOLKIT_YAML, ".git")


class ProjectType(str, Enum):
    MONOREPO = "monorepo"
    MONOLITH = "monolith"


class ProjectLink(BaseModel):
    """Resolved link from a project back to its source template."""

    source_template: str
    project_type: ProjectType
    config_path: Path
    name: Optional[str] = Field(default=None)


class ProjectLinkStore:
    """Reads and writes ``project.json`` / ``toolkit.yaml`` through a filesystem port."""

    def __init__(self, fs: FileSystemPort) -> None:
        self.fs = fs

    # -- Reading -----------------------------------------------------------

    async def find_workspace_root(self, start: Path, ceiling: Path | None = None) -> Path:
        """Walk up from *start* to the nearest directory holding ``toolkit.yaml`` or ``.git``.

        The search never climbs above *ceiling* when *start* lies inside it.
        Falls back to *start* itself when no marker is found.
        """
        start = Path(start).resolve()
        stop = Path(ceiling).resolve() if ceiling is not None else None
        if stop is not None and stop != start and stop not in start.parents:
            stop = None
        for candidate in (start, *start.parents):
            for marker in WORKSPACE_MARKERS:
                if await self.fs.exists(candidate / marker):
                    return candidate
            if candidate == stop:
                break
        return start

    async def read_toolkit(self, workspace_root: Path) -> dict[str, Any] | None:
        """Return the parsed workspace ``toolkit.yaml``, or ``None`` if absent/unreadable."""
        path = Path(workspace_root) / TOOLKIT_YAML
        if not await self.fs.exists(path):
            return None
        try:
            data = yaml.safe_load(await self.fs.read_file(path))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            return None
        return data if isinstance(data, dict) else None

    async def is_monolith(self, workspace_root: Path) -> bool:
        toolkit = await self.read_toolkit(workspace_root)
        if not toolkit:
            return False
        project_type = toolkit.get("type", toolkit.get("projectType"))
        return project_type == ProjectType.MONOLITH.value

    async def resolve(self, project_path: Path, workspace_root: Path) -> ProjectLink | None:
        """Find the link for *project_path*.

        ``project.json`` in the project directory wins; otherwise a monolith
        ``toolkit.yaml`` at the workspace root is used.
        """
        project_json = Path(project_path) / PROJECT_JSON
        if await self.fs.exists(project_json):
            data = await self._read_json(project_json) or {}
            if data.get("sourceTemplate"):
                return ProjectLink(
                    source_template=str(data["sourceTemplate"]),
                    project_type=ProjectType.MONOREPO,
                    config_path=project_json,
                    name=data.get("name"),
                )

        toolkit = await self.read_toolkit(workspace_root)
        if toolkit and toolkit.get("sourceTemplate"):
            return ProjectLink(
                source_template=str(toolkit["sourceTemplate"]),
                project_type=ProjectType.MONOLITH,
                config_path=Path(workspace_root) / TOOLKIT_YAML,
            )
        return None

    # -- Writing -----------------------------------------------------------

    async def write_project_json(self, project_path: Path, name: str, source_template: str) -> Path:
        """Create or update ``project.json`` with ``name`` and ``sourceTemplate``."""
        path = Path(project_path) / PROJECT_JSON
        data: dict[str, Any] = {}
        if await self.fs.exists(path):
            existing = await self._read_json(path)
            if existing is None:
                logger.warning("Not updating unreadable %s", path)
                return path
            data = existing
        data.setdefault("name", name)
        data["sourceTemplate"] = source_template
        await self.fs.write_file(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")
        logger.info("Linked %s to template %s", path, source_template)
        return path

    async def write_toolkit_yaml(self, workspace_root: Path, source_template: str) -> Path:
        """Create or update the workspace ``toolkit.yaml`` for a monolith."""
        path = Path(workspace_root) / TOOLKIT_YAML
        data = await self.read_toolkit(workspace_root) or {}
        data["sourceTemplate"] = source_template
        data["type"] = ProjectType.MONOLITH.value
        await self.fs.write_file(path, yaml.safe_dump(data, sort_keys=False))
        logger.info("Linked %s to template %s", path, source_template)
        return path

    async def _read_json(self, path: Path) -> dict[str, Any] | None:
        try:
            data = json.loads(await self.fs.read_file(path))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            return None
        return data if isinstance(data, dict) else None

"""Tests for project.json / toolkit.yaml linkage."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from scaffold_engine.scaffolder.filesystem import LocalFileSystem
from scaffold_engine.scaffolder.project_link import ProjectLinkStore, ProjectType


pytestmark = pytest.mark.unit


@pytest.fixture
def store() -> ProjectLinkStore:
    return ProjectLinkStore(LocalFileSystem())


class TestResolve:
    @pytest.mark.asyncio
    async def test_no_link(self, store: ProjectLinkStore, tmp_path: Path) -> None:
        assert await store.resolve(tmp_path / "apps" / "web", tmp_path) is None

    @pytest.mark.asyncio
    async def test_project_json(self, store: ProjectLinkStore, tmp_path: Path) -> None:
        project = tmp_path / "apps" / "web"
        project.mkdir(parents=True)
        (project / "project.json").write_text(
            json.dumps({"name": "web", "sourceTemplate": "nextjs-15"}), encoding="utf-8"
        )
        link = await store.resolve(project, tmp_path)
        assert link is not None
        assert link.source_template == "nextjs-15"
        assert link.project_type is ProjectType.MONOREPO
        assert link.name == "web"

    @pytest.mark.asyncio
    async def test_project_json_wins_over_toolkit(
        self, store: ProjectLinkStore, tmp_path: Path
    ) -> None:
        (tmp_path / "toolkit.yaml").write_text(
            "sourceTemplate: from-toolkit\ntype: monolith\n", encoding="utf-8"
        )
        (tmp_path / "project.json").write_text('{"sourceTemplate": "from-project"}', encoding="utf-8")
        link = await store.resolve(tmp_path, tmp_path)
        assert link.source_template == "from-project"

    @pytest.mark.asyncio
    async def test_toolkit_fallback(self, store: ProjectLinkStore, tmp_path: Path) -> None:
        (tmp_path / "toolkit.yaml").write_text(
            "sourceTemplate: vite-react\ntype: monolith\n", encoding="utf-8"
        )
        (tmp_path / "project.json").write_text('{"name": "no-template"}', encoding="utf-8")
        link = await store.resolve(tmp_path, tmp_path)
        assert link.source_template == "vite-react"
        assert link.project_type is ProjectType.MONOLITH
        assert link.config_path == tmp_path / "toolkit.yaml"

    @pytest.mark.asyncio
    async def test_unreadable_project_json_is_ignored(
        self, store: ProjectLinkStore, tmp_path: Path
    ) -> None:
        (tmp_path / "project.json").write_text("{not json", encoding="utf-8")
        assert await store.resolve(tmp_path, tmp_path) is None


class TestMonolithDetection:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            ("type: monolith\n", True),
            ("projectType: monolith\n", True),
            ("type: monorepo\n", False),
            ("- not a mapping\n", False),
            ("key: [unclosed\n", False),
        ],
    )
    async def test_is_monolith(
        self, store: ProjectLinkStore, tmp_path: Path, content: str, expected: bool
    ) -> None:
        (tmp_path / "toolkit.yaml").write_text(content, encoding="utf-8")
        assert await store.is_monolith(tmp_path) is expected

    @pytest.mark.asyncio
    async def test_no_toolkit(self, store: ProjectLinkStore, tmp_path: Path) -> None:
        assert await store.is_monolith(tmp_path) is False
        assert await store.read_toolkit(tmp_path) is None


class TestWrite:
    @pytest.mark.asyncio
    async def test_write_project_json_preserves_keys(
        self, store: ProjectLinkStore, tmp_path: Path
    ) -> None:
        (tmp_path / "project.json").write_text(
            json.dumps({"name": "custom", "targets": {"build": {}}}), encoding="utf-8"
        )
        await store.write_project_json(tmp_path, "web", "nextjs-15")

        data = json.loads((tmp_path / "project.json").read_text(encoding="utf-8"))
        assert data == {"name": "custom", "targets": {"build": {}}, "sourceTemplate": "nextjs-15"}

    @pytest.mark.asyncio
    async def test_write_project_json_creates(self, store: ProjectLinkStore, tmp_path: Path) -> None:
        project = tmp_path / "apps" / "web"
        await store.write_project_json(project, "web", "nextjs-15")
        data = json.loads((project / "project.json").read_text(encoding="utf-8"))
        assert data == {"name": "web", "sourceTemplate": "nextjs-15"}

    @pytest.mark.asyncio
    async def test_unreadable_project_json_not_overwritten(
        self, store: ProjectLinkStore, tmp_path: Path
    ) -> None:
        (tmp_path / "project.json").write_text("{broken", encoding="utf-8")
        await store.write_project_json(tmp_path, "web", "nextjs-15")
        assert (tmp_path / "project.json").read_text(encoding="utf-8") == "{broken"

    @pytest.mark.asyncio
    async def test_write_toolkit_yaml(self, store: ProjectLinkStore, tmp_path: Path) -> None:
        (tmp_path / "toolkit.yaml").write_text("version: 1\n", encoding="utf-8")
        await store.write_toolkit_yaml(tmp_path, "vite-react")

        data = yaml.safe_load((tmp_path / "toolkit.yaml").read_text(encoding="utf-8"))
        assert data == {"version": 1, "sourceTemplate": "vite-react", "type": "monolith"}
        assert await store.is_monolith(tmp_path) is True


class TestWorkspaceRoot:
    @pytest.mark.asyncio
    async def test_walks_up_to_toolkit(self, store: ProjectLinkStore, tmp_path: Path) -> None:
        (tmp_path / "toolkit.yaml").write_text("type: monolith\n", encoding="utf-8")
        nested = tmp_path / "src" / "routes"
        nested.mkdir(parents=True)
        assert await store.find_workspace_root(nested) == tmp_path.resolve()

    @pytest.mark.asyncio
    async def test_git_directory_marks_root(self, store: ProjectLinkStore, tmp_path: Path) -> None:
        (tmp_path / "repo" / ".git").mkdir(parents=True)
        project = tmp_path / "repo" / "apps" / "web"
        assert await store.find_workspace_root(project) == (tmp_path / "repo").resolve()

    @pytest.mark.asyncio
    async def test_ceiling_stops_search(self, store: ProjectLinkStore, tmp_path: Path) -> None:
        (tmp_path / "toolkit.yaml").write_text("type: monolith\n", encoding="utf-8")
        ceiling = tmp_path / "ws"
        project = ceiling / "apps" / "web"
        assert await store.find_workspace_root(project, ceiling=ceiling) == project.resolve()

    @pytest.mark.asyncio
    async def test_unrelated_ceiling_ignored(self, store: ProjectLinkStore, tmp_path: Path) -> None:
        (tmp_path / "ws" / "toolkit.yaml").parent.mkdir()
        (tmp_path / "ws" / "toolkit.yaml").write_text("type: monolith\n", encoding="utf-8")
        project = tmp_path / "ws" / "src"
        found = await store.find_workspace_root(project, ceiling=tmp_path / "elsewhere")
        assert found == (tmp_path / "ws").resolve()

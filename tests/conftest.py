"""Shared pytest fixtures for the scaffold engine test suite.

Provides reusable fixtures for:
- Writing template / workspace trees to temporary directories
- A ``demo-app`` template with one boilerplate and two features
- Engine configuration with lock files kept inside ``tmp_path``
- A wired ``ScaffoldContext`` and ``ScaffoldOrchestrator``
- An ``AsyncMock``-backed filesystem double
"""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock

import pytest

from scaffold_engine.config import EngineConfig
from scaffold_engine.scaffolder.context import ScaffoldContext
from scaffold_engine.scaffolder.filesystem import FileSystemPort, PathStat
from scaffold_engine.scaffolder.orchestrator import ScaffoldOrchestrator


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------

TreeWriter = Callable[[Path, dict[str, "str | bytes"]], Path]


def _write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def write_tree() -> TreeWriter:
    """Write ``{relative_path: content}`` under a root; bytes are written raw."""
    return _write_tree


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

DEMO_MANIFEST = textwrap.dedent("""\
    boilerplate:
      - name: demo-app
        description: Minimal TypeScript application
        targetFolder: apps
        instruction: |
          Run `pnpm install` inside apps/{{ appName }}.
        variables_schema:
          type: object
          properties:
            packageName:
              type: string
            description:
              type: string
              default: A demo application
          required:
            - packageName
          additionalProperties: false
        includes:
          - package.json.liquid
          - src/index.ts

    features:
      - name: add-route
        description: Add a route module
        instruction: Register {{ routeName | pascalCase }}Route in src/index.ts.
        variables_schema:
          type: object
          properties:
            routeName:
              type: string
            withTests:
              type: boolean
              default: false
          required:
            - routeName
        includes:
          - src/routes/route.ts.liquid -> src/routes/{{ routeName | kebabCase }}.ts
          - src/routes/route.test.ts -> src/routes/{{ routeName | kebabCase }}.test.ts?withTests=true
      - name: add-assets
        description: Copy static assets
        includes:
          - public
""")

DEMO_FILES: dict[str, str | bytes] = {
    "demo-app/scaffold.yaml": DEMO_MANIFEST,
    "demo-app/package.json.liquid": '{\n  "name": "{{ packageName }}",\n  "description": "{{ description }}"\n}\n',
    "demo-app/src/index.ts": "export const greeting = 'hello';\n",
    "demo-app/src/routes/route.ts.liquid": (
        "export function {{ routeName | camelCase }}Route() {\n  return '{{ routeName }}';\n}\n"
    ),
    "demo-app/src/routes/route.test.ts": (
        "import { {{ routeName | camelCase }}Route } from './{{ routeName | kebabCase }}';\n"
    ),
    "demo-app/public/logo.png": b"\x89PNG\r\n\x1a\n{{ not a template }}\x00\xff",
    "demo-app/public/robots.txt": "User-agent: *\n",
}


@pytest.fixture
def templates_root(tmp_path: Path) -> Path:
    """A templates root containing the ``demo-app`` template."""
    return _write_tree(tmp_path / "templates", DEMO_FILES)


# ---------------------------------------------------------------------------
# Engine wiring
# ---------------------------------------------------------------------------

@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def engine_config(tmp_path: Path, templates_root: Path, workspace: Path) -> EngineConfig:
    return EngineConfig(
        templates_root=templates_root,
        workspace_root=workspace,
        lock_dir=tmp_path / "locks",
        lock_timeout=2.0,
        max_concurrency=8,
    )


@pytest.fixture
def scaffold_context(engine_config: EngineConfig) -> ScaffoldContext:
    return ScaffoldContext.from_config(engine_config)


@pytest.fixture
def orchestrator(scaffold_context: ScaffoldContext) -> ScaffoldOrchestrator:
    return ScaffoldOrchestrator(scaffold_context)


# ---------------------------------------------------------------------------
# Filesystem double
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_fs() -> AsyncMock:
    """A ``FileSystemPort`` double where every call succeeds and nothing exists."""
    fs = AsyncMock(spec=FileSystemPort)
    fs.exists.return_value = False
    fs.stat.return_value = PathStat(is_dir=False, is_file=True, size=0)
    fs.read_file.return_value = ""
    fs.readdir.return_value = []
    return fs

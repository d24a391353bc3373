"""Scaffold engine configuration.

Centralised, typed configuration for the engine. Settings use Pydantic v2
models so they are validated at construction time and can be serialised
to/from JSON or built from environment variables.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

DEFAULT_MARKER = "@scaffold-generated"


class EngineConfig(BaseModel):
    """Global scaffold engine configuration.

    Instances are created once by the caller (CLI, protocol server, tests)
    and handed to a ``ScaffoldContext``; nothing in the engine reads
    configuration from module-level state.
    """

    templates_root: Path = Field(default=Path("./templates"))
    workspace_root: Path = Field(
        default=Path("."),
        description="Outermost directory searched when locating a project's workspace",
    )
    max_concurrency: int = Field(
        default=64, ge=1, description="Maximum filesystem calls in flight at once"
    )
    lock_timeout: float = Field(
        default=30.0, ge=0, description="Seconds to wait for a busy target root"
    )
    lock_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "scaffold-engine-locks",
        description="Directory holding advisory lock files (kept outside target trees)",
    )
    operation_timeout: Optional[float] = Field(
        default=None, gt=0, description="Deadline in seconds for one orchestration call"
    )
    default_marker: str = Field(default=DEFAULT_MARKER)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "EngineConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build an ``EngineConfig`` from environment variables.

        Recognised variables (all optional):
            SCAFFOLD_TEMPLATES_PATH, SCAFFOLD_WORKSPACE_ROOT,
            SCAFFOLD_MAX_CONCURRENCY, SCAFFOLD_LOCK_TIMEOUT, SCAFFOLD_LOCK_DIR,
            SCAFFOLD_OPERATION_TIMEOUT, SCAFFOLD_MARKER.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("SCAFFOLD_TEMPLATES_PATH"):
            kwargs["templates_root"] = Path(os.environ["SCAFFOLD_TEMPLATES_PATH"])
        if os.environ.get("SCAFFOLD_WORKSPACE_ROOT"):
            kwargs["workspace_root"] = Path(os.environ["SCAFFOLD_WORKSPACE_ROOT"])
        if os.environ.get("SCAFFOLD_MAX_CONCURRENCY"):
            kwargs["max_concurrency"] = int(os.environ["SCAFFOLD_MAX_CONCURRENCY"])
        if os.environ.get("SCAFFOLD_LOCK_TIMEOUT"):
            kwargs["lock_timeout"] = float(os.environ["SCAFFOLD_LOCK_TIMEOUT"])
        if os.environ.get("SCAFFOLD_LOCK_DIR"):
            kwargs["lock_dir"] = Path(os.environ["SCAFFOLD_LOCK_DIR"])
        if os.environ.get("SCAFFOLD_OPERATION_TIMEOUT"):
            kwargs["operation_timeout"] = float(os.environ["SCAFFOLD_OPERATION_TIMEOUT"])
        if os.environ.get("SCAFFOLD_MARKER"):
            kwargs["default_marker"] = os.environ["SCAFFOLD_MARKER"]
        return cls(**kwargs)

"""Pydantic v2 models for the scaffolding engine.

Defines template descriptors parsed from ``scaffold.yaml``, the request a
caller hands to the orchestrator, per-file outcomes, and the aggregated
result payload returned to the outer CLI / protocol layers.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class DescriptorKind(str, Enum):
    """Whether a descriptor creates a new project or extends an existing one."""
    BOILERPLATE = "boilerplate"
    FEATURE = "feature"


class OutcomeKind(str, Enum):
    """Classification of a single target path after processing."""
    CREATED = "created"
    EXISTING = "existing"
    WARNING = "warning"


class ScaffoldState(str, Enum):
    """Orchestration lifecycle."""
    IDLE = "idle"
    RESOLVING = "resolving"
    VALIDATING = "validating"
    GENERATING = "generating"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------

def _empty_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {},
        "required": [],
        "additionalProperties": False,
    }


class TemplateDescriptor(BaseModel):
    """A boilerplate or feature entry from a template's ``scaffold.yaml``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Unique descriptor name")
    kind: DescriptorKind = Field(default=DescriptorKind.FEATURE)
    description: str = Field(default="")
    instruction: str = Field(default="", description="Post-scaffold instruction template")
    variables_schema: dict[str, Any] = Field(default_factory=_empty_schema)
    target_folder: Optional[str] = Field(
        default=None,
        alias="targetFolder",
        description="Folder (relative to the workspace) new boilerplate projects go into",
    )
    includes: list[str] = Field(default_factory=list)
    template_path: str = Field(
        default="", description="Template directory relative to the templates root"
    )
    generator: Optional[str] = Field(
        default=None, description="Name of a registered custom generator strategy"
    )


class IncludeEntry(BaseModel):
    """A parsed ``includes`` entry: ``source[->target][?key=value&...]``."""

    model_config = ConfigDict(frozen=True)

    source_path: str
    target_path: str
    conditions: dict[str, str] = Field(default_factory=dict)


class TemplateValidation(BaseModel):
    """Result of checking a template directory against its manifest."""

    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    missing_files: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class ScaffoldRequest(BaseModel):
    """One orchestration call.

    ``target_root_path`` is the workspace root for boilerplates and the
    project directory for features.  ``monolith_mode=None`` auto-detects
    from the workspace ``toolkit.yaml``.
    """

    model_config = ConfigDict(frozen=True)

    descriptor_name: Optional[str] = Field(default=None)
    variables: dict[str, Any] = Field(default_factory=dict)
    target_root_path: Path = Field(default=Path("."))
    monolith_mode: Optional[bool] = Field(default=None)
    marker: Optional[str] = Field(default=None)
    target_folder_override: Optional[str] = Field(default=None)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

class FileOutcome(BaseModel):
    """What happened to one target path."""

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    path: str
    reason: str = ""

    @classmethod
    def created(cls, path: str | Path) -> "FileOutcome":
        return cls(kind=OutcomeKind.CREATED, path=str(path))

    @classmethod
    def existing(cls, path: str | Path) -> "FileOutcome":
        return cls(kind=OutcomeKind.EXISTING, path=str(path))

    @classmethod
    def warning(cls, path: str | Path, reason: str) -> "FileOutcome":
        return cls(kind=OutcomeKind.WARNING, path=str(path), reason=reason)

    def describe(self) -> str:
        if self.kind is OutcomeKind.WARNING:
            return f"{self.path}: {self.reason}"
        return self.path


class ScaffoldResult(BaseModel):
    """Aggregated result of one orchestration call."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str = ""
    created_files: list[str] = Field(default_factory=list)
    existing_files: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(
        default_factory=list, description="Variable validation errors (not part of the payload)"
    )

    @classmethod
    def from_outcomes(
        cls,
        success: bool,
        message: str,
        outcomes: Iterable[FileOutcome],
        warnings: Iterable[str] = (),
    ) -> "ScaffoldResult":
        """Build a result, enforcing that a path is either created or existing.

        A path first seen as created stays created even if a later include
        finds it on disk; duplicates are dropped.
        """
        created: dict[str, None] = {}
        existing: dict[str, None] = {}
        warning_list = list(warnings)
        for outcome in outcomes:
            if outcome.kind is OutcomeKind.CREATED:
                created[outcome.path] = None
                existing.pop(outcome.path, None)
            elif outcome.kind is OutcomeKind.EXISTING:
                if outcome.path not in created:
                    existing[outcome.path] = None
            else:
                warning_list.append(outcome.describe())
        return cls(
            success=success,
            message=message,
            created_files=list(created),
            existing_files=list(existing),
            warnings=warning_list,
        )

    @classmethod
    def failure(cls, message: str, warnings: Iterable[str] = ()) -> "ScaffoldResult":
        return cls(success=False, message=message, warnings=list(warnings))

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the ``{success, message, createdFiles, ...}`` contract."""
        return {
            "success": self.success,
            "message": self.message,
            "createdFiles": list(self.created_files),
            "existingFiles": list(self.existing_files),
            "warnings": list(self.warnings),
        }

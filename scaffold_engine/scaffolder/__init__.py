"""Template scaffolding -- boilerplates and features from ``scaffold.yaml``.

A template directory holds a ``scaffold.yaml`` manifest whose boilerplate
entries create new projects and whose feature entries add files to an
existing one.  Each entry lists ``includes`` (``source->target?flag=true``)
that are copied into the target tree and rendered with the caller's
variables; files already present are never overwritten.

Quick usage::

    from scaffold_engine.config import EngineConfig
    from scaffold_engine.scaffolder import (
        ScaffoldContext, ScaffoldOrchestrator, ScaffoldRequest,
    )

    async with ScaffoldContext.from_config(EngineConfig(templates_root="templates")) as ctx:
        result = await ScaffoldOrchestrator(ctx).use_boilerplate(
            ScaffoldRequest(
                descriptor_name="demo-app",
                variables={"packageName": "@acme/demo"},
                target_root_path="/tmp/workspace",
            )
        )
"""

from scaffold_engine.scaffolder.context import ScaffoldContext
from scaffold_engine.scaffolder.descriptors import Manifest, TemplateDescriptorLoader
from scaffold_engine.scaffolder.filesystem import FileSystemPort, LocalFileSystem, PathStat
from scaffold_engine.scaffolder.generators import (
    GeneratorContext,
    GeneratorRegistry,
    IncludesGenerator,
    ScaffoldGenerator,
)
from scaffold_engine.scaffolder.leases import TargetLeaseRegistry
from scaffold_engine.scaffolder.models import (
    DescriptorKind,
    FileOutcome,
    IncludeEntry,
    OutcomeKind,
    ScaffoldRequest,
    ScaffoldResult,
    ScaffoldState,
    TemplateDescriptor,
    TemplateValidation,
)
from scaffold_engine.scaffolder.orchestrator import ScaffoldOrchestrator
from scaffold_engine.scaffolder.processor import ScaffoldProcessor
from scaffold_engine.scaffolder.project_link import ProjectLink, ProjectLinkStore, ProjectType
from scaffold_engine.scaffolder.schema import validate_variables
from scaffold_engine.scaffolder.substitution import VariableSubstitutionWalker
from scaffold_engine.scaffolder.templates import TemplateRenderer

__all__ = [
    "DescriptorKind",
    "FileOutcome",
    "FileSystemPort",
    "GeneratorContext",
    "GeneratorRegistry",
    "IncludeEntry",
    "IncludesGenerator",
    "LocalFileSystem",
    "Manifest",
    "OutcomeKind",
    "PathStat",
    "ProjectLink",
    "ProjectLinkStore",
    "ProjectType",
    "ScaffoldContext",
    "ScaffoldGenerator",
    "ScaffoldOrchestrator",
    "ScaffoldProcessor",
    "ScaffoldRequest",
    "ScaffoldResult",
    "ScaffoldState",
    "TargetLeaseRegistry",
    "TemplateDescriptor",
    "TemplateDescriptorLoader",
    "TemplateRenderer",
    "TemplateValidation",
    "VariableSubstitutionWalker",
    "validate_variables",
]

"""Explicit, caller-owned wiring for one scaffolding session.

The context bundles configuration and every collaborator the orchestrator
needs.  Callers build one (usually via :meth:`ScaffoldContext.from_config`),
optionally swap collaborators for tests, and pass it in; nothing is cached
at module level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from scaffold_engine.config import EngineConfig

from .descriptors import TemplateDescriptorLoader
from .filesystem import FileSystemPort, LocalFileSystem
from .generators import GeneratorRegistry
from .leases import TargetLeaseRegistry
from .processor import ScaffoldProcessor
from .project_link import ProjectLinkStore
from .templates import TemplateRenderer

logger = logging.getLogger(__name__)


@dataclass
class ScaffoldContext:
    config: EngineConfig
    fs: FileSystemPort
    renderer: TemplateRenderer
    loader: TemplateDescriptorLoader
    processor: ScaffoldProcessor
    links: ProjectLinkStore
    leases: TargetLeaseRegistry
    generators: GeneratorRegistry = field(default_factory=GeneratorRegistry)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        fs: FileSystemPort | None = None,
        generators: GeneratorRegistry | None = None,
    ) -> "ScaffoldContext":
        fs = fs or LocalFileSystem(max_concurrency=config.max_concurrency)
        renderer = TemplateRenderer()
        return cls(
            config=config,
            fs=fs,
            renderer=renderer,
            loader=TemplateDescriptorLoader(fs, renderer),
            processor=ScaffoldProcessor(fs, renderer),
            links=ProjectLinkStore(fs),
            leases=TargetLeaseRegistry(config.lock_dir, timeout=config.lock_timeout),
            generators=generators or GeneratorRegistry(),
        )

    async def __aenter__(self) -> "ScaffoldContext":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Tear down the session; leases still held indicate a leaked operation."""
        if self.leases.active_targets:
            logger.warning(
                "Closing scaffold context with active leases: %s",
                ", ".join(self.leases.active_targets),
            )

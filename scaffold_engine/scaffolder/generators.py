"""Custom generator strategies.

A feature descriptor may name a ``generator`` in ``scaffold.yaml`` instead
of relying on the default include-copying behaviour.  Generators are plain
objects implementing :class:`ScaffoldGenerator` and must be registered by
name up front; the orchestrator never imports code from template folders.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Protocol

from scaffold_engine.errors import GeneratorNotFound

from .models import FileOutcome, TemplateDescriptor

if TYPE_CHECKING:
    from .descriptors import TemplateDescriptorLoader
    from .filesystem import FileSystemPort
    from .processor import ScaffoldProcessor


@dataclass
class GeneratorContext:
    """Everything a generator may use to produce files."""

    descriptor: TemplateDescriptor
    variables: dict[str, Any]
    target_path: Path
    template_path: Path
    fs: "FileSystemPort"
    loader: "TemplateDescriptorLoader"
    processor: "ScaffoldProcessor"
    outcomes: list[FileOutcome] = field(default_factory=list)


class ScaffoldGenerator(Protocol):
    async def generate(self, context: GeneratorContext) -> str | None:
        """Produce files, appending outcomes to ``context.outcomes`` as they happen.

        Returns an optional message appended to the scaffold result.
        """
        ...


GeneratorFactory = Callable[[], ScaffoldGenerator]


class GeneratorRegistry:
    """Explicit name -> factory map for :class:`ScaffoldGenerator` strategies."""

    def __init__(self) -> None:
        self._factories: dict[str, GeneratorFactory] = {}

    def register(self, name: str, factory: GeneratorFactory) -> None:
        if name in self._factories:
            raise ValueError(f"Generator '{name}' is already registered")
        self._factories[name] = factory

    def names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def create(self, name: str) -> ScaffoldGenerator:
        try:
            factory = self._factories[name]
        except KeyError:
            available = ", ".join(self.names()) or "none"
            raise GeneratorNotFound(
                f"Generator '{name}' is not registered. Available generators: {available}",
                generator=name,
            ) from None
        return factory()


class IncludesGenerator:
    """The default strategy: copy and render every applicable include."""

    async def generate(self, context: GeneratorContext) -> str | None:
        root = Path(context.target_path).resolve()
        seen: dict[str, str] = {}
        for raw in context.descriptor.includes:
            include = context.loader.parse_include(raw, context.variables)
            if not context.loader.should_include(include.conditions, context.variables):
                continue
            target = (root / include.target_path).resolve()
            if root not in target.parents:
                context.outcomes.append(
                    FileOutcome.warning(target, f"include '{raw}' resolves outside {root}; skipped")
                )
                continue
            key = str(target)
            if key in seen:
                context.outcomes.append(
                    FileOutcome.warning(
                        target,
                        f"include '{raw}' targets the same path as '{seen[key]}'; skipped",
                    )
                )
                continue
            seen[key] = raw
            context.outcomes.extend(
                await context.processor.copy_and_process(
                    context.template_path / include.source_path,
                    target,
                    context.variables,
                )
            )
        return None

"""Top-level scaffolding entry point.

``ScaffoldOrchestrator`` turns a :class:`ScaffoldRequest` into a
:class:`ScaffoldResult`:

1. **Resolving** -- find the named boilerplate/feature among the discovered
   templates (features look first at the template their project is linked to).
2. **Validating** -- default and validate variables against the descriptor's
   ``variables_schema``.  Violations are reported, not raised.
3. **Generating** -- lease the target root, then copy and render every
   applicable include (or run the descriptor's registered generator).  The
   first missing source aborts generation; files written before it stay.
4. **Finalizing** -- render the instruction into the message and, for a
   successful boilerplate, link the new project back to its template.

Quick usage::

    context = ScaffoldContext.from_config(EngineConfig(templates_root=...))
    orchestrator = ScaffoldOrchestrator(context)
    result = await orchestrator.use_boilerplate(
        ScaffoldRequest(descriptor_name="demo-app",
                        variables={"packageName": "@x/demo"},
                        target_root_path=workspace)
    )
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from jinja2 import TemplateError

from scaffold_engine.errors import GeneratorNotFound, LeaseTimeout, SourceNotFound

from .context import ScaffoldContext
from .descriptors import Manifest
from .generators import GeneratorContext, IncludesGenerator, ScaffoldGenerator
from .models import (
    DescriptorKind,
    FileOutcome,
    ScaffoldRequest,
    ScaffoldResult,
    ScaffoldState,
    TemplateDescriptor,
)
from .schema import validate_variables

logger = logging.getLogger(__name__)

_TERMINAL_STATES = {ScaffoldState.DONE, ScaffoldState.FAILED}


# ---------------------------------------------------------------------------
# Per-call state tracking
# ---------------------------------------------------------------------------

@dataclass
class ScaffoldRun:
    """Lifecycle of one orchestration call."""

    kind: DescriptorKind
    name: str = ""
    state: ScaffoldState = ScaffoldState.IDLE
    history: list[ScaffoldState] = field(default_factory=list)
    outcomes: list[FileOutcome] = field(default_factory=list)

    def advance(self, state: ScaffoldState) -> None:
        if self.state in _TERMINAL_STATES:
            raise RuntimeError(f"Run already finished in state {self.state.value}")
        logger.debug("%s '%s': %s -> %s", self.kind.value, self.name, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def fail(self, result: ScaffoldResult) -> ScaffoldResult:
        self.advance(ScaffoldState.FAILED)
        logger.info("%s '%s' failed: %s", self.kind.value, self.name, result.message)
        return result


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class ScaffoldOrchestrator:
    """Resolves descriptors and drives generation for boilerplates and features."""

    def __init__(self, context: ScaffoldContext) -> None:
        self.context = context
        self.last_run: ScaffoldRun | None = None

    @property
    def templates_root(self) -> Path:
        return Path(self.context.config.templates_root)

    @property
    def state(self) -> ScaffoldState:
        """State of the most recent call (``IDLE`` before the first one)."""
        return self.last_run.state if self.last_run else ScaffoldState.IDLE

    # -- Listing -----------------------------------------------------------

    async def list_boilerplates(self) -> list[TemplateDescriptor]:
        catalog = await self.context.loader.collect(self.templates_root)
        return catalog.boilerplates()

    async def list_features(self, project_path: Path | None = None) -> list[TemplateDescriptor]:
        """Features of the template *project_path* is linked to, or of every template."""
        if project_path is not None:
            project_path = Path(project_path).resolve()
            workspace = await self._workspace_for(project_path)
            manifest = await self._linked_manifest(project_path, workspace)
            if manifest is not None:
                return manifest.features()
        catalog = await self.context.loader.collect(self.templates_root)
        return catalog.features()

    async def get_boilerplate(
        self, name: str, variables: dict[str, Any] | None = None
    ) -> TemplateDescriptor | None:
        """Look up a boilerplate; render its instruction when *variables* are given."""
        catalog = await self.context.loader.collect(self.templates_root)
        descriptor = _find_boilerplate(catalog, name)
        if descriptor is None or variables is None:
            return descriptor
        return descriptor.model_copy(
            update={"instruction": self.render_instruction(descriptor.instruction, variables)}
        )

    def render_instruction(self, instruction: str, variables: dict[str, Any]) -> str:
        try:
            return self.context.renderer.render_if_needed(instruction, variables)
        except TemplateError as exc:
            logger.warning("Cannot render instruction: %s", exc)
            return instruction

    # -- Public API --------------------------------------------------------

    async def use_boilerplate(self, request: ScaffoldRequest) -> ScaffoldResult:
        """Create a new project from a boilerplate descriptor."""
        run = ScaffoldRun(kind=DescriptorKind.BOILERPLATE, name=request.descriptor_name or "")
        self.last_run = run
        return await self._with_deadline(run, self._use_boilerplate(run, request))

    async def use_feature(self, request: ScaffoldRequest) -> ScaffoldResult:
        """Add a feature's files to the project at ``request.target_root_path``.

        Raises:
            ManifestError: The manifest of the project's linked template is
                missing or malformed.
        """
        run = ScaffoldRun(kind=DescriptorKind.FEATURE, name=request.descriptor_name or "")
        self.last_run = run
        return await self._with_deadline(run, self._use_feature(run, request))

    # -- Boilerplate -------------------------------------------------------

    async def _use_boilerplate(self, run: ScaffoldRun, request: ScaffoldRequest) -> ScaffoldResult:
        run.advance(ScaffoldState.RESOLVING)
        workspace = Path(request.target_root_path).resolve()
        links = self.context.links

        monolith = request.monolith_mode
        if monolith is None:
            monolith = await links.is_monolith(workspace)
            logger.info("Detected %s workspace at %s", "monolith" if monolith else "monorepo", workspace)

        name = request.descriptor_name
        if monolith and not name:
            toolkit = await links.read_toolkit(workspace)
            name = (toolkit or {}).get("sourceTemplate")
            if not name:
                return run.fail(ScaffoldResult.failure(
                    "Failed to read boilerplate name from toolkit.yaml: no project configuration found"
                ))
            logger.info("Using boilerplate from toolkit.yaml: %s", name)
        if not name:
            return run.fail(ScaffoldResult.failure("Missing required parameter: descriptor_name"))
        run.name = name

        catalog = await self.context.loader.collect(self.templates_root)
        descriptor = _find_boilerplate(catalog, name)
        if descriptor is None:
            available = ", ".join(d.name for d in catalog.boilerplates()) or "none"
            return run.fail(ScaffoldResult.failure(
                f"Boilerplate '{name}' not found. Available boilerplates: {available}",
                warnings=catalog.warnings,
            ))

        run.advance(ScaffoldState.VALIDATING)
        validation = validate_variables(descriptor.variables_schema, request.variables)
        if not validation.success:
            return run.fail(_validation_failure(validation.errors))
        variables = validation.data

        package_name = variables.get("packageName") or variables.get("appName")
        if not isinstance(package_name, str) or not package_name:
            return run.fail(ScaffoldResult.failure(
                "Missing required parameter: packageName or appName"
            ))
        folder_name = package_name.rsplit("/", 1)[-1]

        target_folder = request.target_folder_override or ("." if monolith else descriptor.target_folder)
        project_root = workspace / (target_folder or ".")
        if not monolith:
            project_root = project_root / folder_name
        project_root = project_root.resolve()

        variables = {
            **variables,
            "packageName": package_name,
            "appName": folder_name,
            "sourceTemplate": descriptor.template_path,
            "scaffoldMarker": request.marker or self.context.config.default_marker,
        }

        async def finalize() -> None:
            if monolith:
                await links.write_toolkit_yaml(workspace, descriptor.template_path)
            else:
                await links.write_project_json(project_root, folder_name, descriptor.template_path)

        return await self._generate(
            run,
            descriptor,
            project_root,
            variables,
            success_message=f"Successfully scaffolded boilerplate '{descriptor.name}' at {project_root}.",
            finalize=finalize,
            warnings=catalog.warnings,
        )

    # -- Feature -----------------------------------------------------------

    async def _use_feature(self, run: ScaffoldRun, request: ScaffoldRequest) -> ScaffoldResult:
        run.advance(ScaffoldState.RESOLVING)
        requested = Path(request.target_root_path).resolve()
        workspace = await self._workspace_for(requested)

        monolith = request.monolith_mode
        if monolith is None:
            monolith = await self.context.links.is_monolith(workspace)
        project_path = workspace if monolith else requested

        name = request.descriptor_name
        if not name:
            return run.fail(ScaffoldResult.failure("Missing required parameter: descriptor_name"))
        if not await self.context.fs.exists(project_path):
            return run.fail(ScaffoldResult.failure(f"Project path does not exist: {project_path}"))

        warnings: list[str] = []
        manifest = await self._linked_manifest(project_path, workspace)
        descriptor = manifest.find(name, DescriptorKind.FEATURE) if manifest else None
        if descriptor is None:
            catalog = await self.context.loader.collect(self.templates_root)
            warnings.extend(catalog.warnings)
            descriptor = catalog.find(name, DescriptorKind.FEATURE)
            if descriptor is None:
                candidates = manifest.features() if manifest else catalog.features()
                available = ", ".join(d.name for d in candidates) or "none"
                return run.fail(ScaffoldResult.failure(
                    f"Scaffold method '{name}' not found. Available methods: {available}",
                    warnings=warnings,
                ))

        run.advance(ScaffoldState.VALIDATING)
        validation = validate_variables(descriptor.variables_schema, request.variables)
        if not validation.success:
            return run.fail(_validation_failure(validation.errors))

        variables = {
            **validation.data,
            "appPath": str(project_path),
            "appName": project_path.name,
            "scaffoldMarker": request.marker or self.context.config.default_marker,
        }
        return await self._generate(
            run,
            descriptor,
            project_path,
            variables,
            success_message=f"Successfully scaffolded {descriptor.name} in {project_path}.",
            warnings=warnings,
        )

    async def _workspace_for(self, project_path: Path) -> Path:
        return await self.context.links.find_workspace_root(
            project_path, ceiling=self.context.config.workspace_root
        )

    async def _linked_manifest(self, project_path: Path, workspace: Path) -> Manifest | None:
        """Manifest of the template *project_path* is linked to, if any."""
        link = await self.context.links.resolve(project_path, workspace)
        if link is None:
            return None

        template_path = link.source_template
        template_dir = self.templates_root / template_path
        if not await self.context.fs.exists(template_dir):
            catalog = await self.context.loader.collect(self.templates_root)
            descriptor = _find_boilerplate(catalog, template_path)
            if descriptor is None:
                logger.warning("Template not found for sourceTemplate: %s", template_path)
                return None
            template_path = descriptor.template_path
            template_dir = self.templates_root / template_path
        return await self.context.loader.load_manifest(template_dir, template_path)

    # -- Generation --------------------------------------------------------

    async def _generate(
        self,
        run: ScaffoldRun,
        descriptor: TemplateDescriptor,
        target_root: Path,
        variables: dict[str, Any],
        success_message: str,
        finalize: Callable[[], Awaitable[None]] | None = None,
        warnings: list[str] | None = None,
    ) -> ScaffoldResult:
        run.advance(ScaffoldState.GENERATING)
        warnings = list(warnings or [])

        try:
            generator = self._generator_for(descriptor)
        except GeneratorNotFound as exc:
            return run.fail(ScaffoldResult.failure(exc.message, warnings=warnings))

        gen_ctx = GeneratorContext(
            descriptor=descriptor,
            variables=variables,
            target_path=target_root,
            template_path=self.templates_root / descriptor.template_path,
            fs=self.context.fs,
            loader=self.context.loader,
            processor=self.context.processor,
            outcomes=run.outcomes,
        )

        try:
            async with self.context.leases.lease(target_root):
                extra = await generator.generate(gen_ctx)
                run.advance(ScaffoldState.FINALIZING)
                if finalize is not None:
                    await finalize()
        except LeaseTimeout as exc:
            return run.fail(ScaffoldResult.failure(exc.message, warnings=warnings))
        except SourceNotFound as exc:
            return run.fail(ScaffoldResult.from_outcomes(
                False,
                f"Failed to scaffold {descriptor.kind.value} '{descriptor.name}': {exc.message}. "
                "Files created before the failure were left in place.",
                gen_ctx.outcomes,
                warnings,
            ))
        except TemplateError as exc:
            return run.fail(ScaffoldResult.from_outcomes(
                False,
                f"Failed to scaffold {descriptor.kind.value} '{descriptor.name}': "
                f"cannot render include path: {exc}",
                gen_ctx.outcomes,
                warnings,
            ))
        except OSError as exc:
            logger.error("Filesystem error while scaffolding %s: %s", descriptor.name, exc)
            return run.fail(ScaffoldResult.from_outcomes(
                False,
                f"Failed to scaffold {descriptor.kind.value} '{descriptor.name}': {exc}. "
                "Files created before the failure were left in place.",
                gen_ctx.outcomes,
                warnings,
            ))

        message = success_message
        if extra:
            message += f"\n{extra}"
        instruction = self.render_instruction(descriptor.instruction, variables)
        if instruction:
            message += f"\n\nPlease follow this **instruction**:\n{instruction}"

        result = ScaffoldResult.from_outcomes(True, message, gen_ctx.outcomes, warnings)
        run.advance(ScaffoldState.DONE)
        logger.info(
            "%s '%s': %d created, %d existing, %d warnings",
            descriptor.kind.value,
            descriptor.name,
            len(result.created_files),
            len(result.existing_files),
            len(result.warnings),
        )
        return result

    def _generator_for(self, descriptor: TemplateDescriptor) -> ScaffoldGenerator:
        if descriptor.generator:
            return self.context.generators.create(descriptor.generator)
        return IncludesGenerator()

    async def _with_deadline(self, run: ScaffoldRun, call: Awaitable[ScaffoldResult]) -> ScaffoldResult:
        timeout = self.context.config.operation_timeout
        if timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            # Worker threads already copying are not interrupted and may finish later.
            return run.fail(ScaffoldResult.from_outcomes(
                False,
                f"Scaffold operation timed out after {timeout}s; output may be partially applied",
                run.outcomes,
            ))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _find_boilerplate(catalog: Manifest, name: str) -> TemplateDescriptor | None:
    """Match by boilerplate name, falling back to the template directory path."""
    descriptor = catalog.find(name, DescriptorKind.BOILERPLATE)
    if descriptor is not None:
        return descriptor
    for candidate in catalog.boilerplates():
        if candidate.template_path == name:
            return candidate
    return None


def _validation_failure(errors: list[str]) -> ScaffoldResult:
    return ScaffoldResult(
        success=False,
        message=f"Validation failed: {', '.join(errors)}",
        errors=errors,
    )

"""Template discovery and ``scaffold.yaml`` parsing.

A template directory holds a package manifest (``package.json`` or
``package.json.liquid``), a ``scaffold.yaml`` describing its boilerplates
and features, and the source files those entries include.  Templates live
under a templates root either flat (``templates/nextjs-15``) or grouped by
one category level (``templates/apps/nextjs-15``).

Include entries use a small path syntax::

    src/Component.tsx -> src/{{ name | pascalCase }}.tsx ?withTests=true

``->`` maps a source path to a different target path and ``?k=v&...``
makes the include conditional on variable values.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl

import yaml
from pydantic import BaseModel, Field, ValidationError

from scaffold_engine.errors import ManifestMalformed, ManifestMissing

from .filesystem import FileSystemPort
from .models import DescriptorKind, IncludeEntry, TemplateDescriptor, TemplateValidation
from .processor import LIQUID_SUFFIX
from .templates import TemplateRenderer

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "scaffold.yaml"
PACKAGE_MANIFESTS = ("package.json", "package.json.liquid")
MAX_DISCOVERY_DEPTH = 2
_PRUNED_DIRS = {"node_modules"}


class Manifest(BaseModel):
    """Descriptors loaded from one or more manifests, plus skip warnings."""

    descriptors: list[TemplateDescriptor] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def boilerplates(self) -> list[TemplateDescriptor]:
        return [d for d in self.descriptors if d.kind is DescriptorKind.BOILERPLATE]

    def features(self) -> list[TemplateDescriptor]:
        return [d for d in self.descriptors if d.kind is DescriptorKind.FEATURE]

    def find(self, name: str, kind: DescriptorKind) -> TemplateDescriptor | None:
        for descriptor in self.descriptors:
            if descriptor.kind is kind and descriptor.name == name:
                return descriptor
        return None


class TemplateDescriptorLoader:
    """Parses manifests and discovers template directories."""

    def __init__(self, fs: FileSystemPort, renderer: TemplateRenderer) -> None:
        self.fs = fs
        self.renderer = renderer

    # -- Manifest loading --------------------------------------------------

    async def load(self, template_dir: Path, template_path: str = "") -> list[TemplateDescriptor]:
        """Return every valid descriptor declared in ``template_dir/scaffold.yaml``.

        Raises:
            ManifestMissing: No ``scaffold.yaml`` in *template_dir*.
            ManifestMalformed: The file is not a YAML mapping.
        """
        manifest = await self.load_manifest(template_dir, template_path)
        return manifest.descriptors

    async def load_manifest(self, template_dir: Path, template_path: str = "") -> Manifest:
        """Like :meth:`load`, but also returns warnings for skipped entries."""
        manifest_path = Path(template_dir) / MANIFEST_FILENAME
        if not await self.fs.exists(manifest_path):
            raise ManifestMissing(
                f"{MANIFEST_FILENAME} not found at {manifest_path}",
                path=str(manifest_path),
            )

        try:
            raw = yaml.safe_load(await self.fs.read_file(manifest_path))
        except (yaml.YAMLError, UnicodeDecodeError) as exc:
            raise ManifestMalformed(
                f"Cannot parse {manifest_path}: {exc}", path=str(manifest_path)
            ) from exc
        if not isinstance(raw, dict):
            raise ManifestMalformed(
                f"{manifest_path} must contain a mapping", path=str(manifest_path)
            )

        manifest = Manifest()
        sections = (
            (DescriptorKind.BOILERPLATE, raw.get("boilerplate")),
            (DescriptorKind.FEATURE, raw.get("features", raw.get("feature"))),
        )
        for kind, entries in sections:
            if entries is None:
                continue
            if isinstance(entries, dict):
                entries = [entries]
            if not isinstance(entries, list):
                raise ManifestMalformed(
                    f"'{kind.value}' section in {manifest_path} must be a list",
                    path=str(manifest_path),
                )
            for entry in entries:
                descriptor = self._parse_entry(entry, kind, template_path, manifest)
                if descriptor is not None:
                    manifest.descriptors.append(descriptor)
        return manifest

    def _parse_entry(
        self,
        entry: Any,
        kind: DescriptorKind,
        template_path: str,
        manifest: Manifest,
    ) -> TemplateDescriptor | None:
        where = template_path or "template"
        if not isinstance(entry, dict) or not entry.get("name"):
            return self._skip(manifest, f"Skipping unnamed {kind.value} entry in {where}")

        name = entry["name"]
        if kind is DescriptorKind.BOILERPLATE and not entry.get("targetFolder"):
            return self._skip(
                manifest,
                f"Skipping boilerplate '{name}' in {where}: "
                f"targetFolder is required in {MANIFEST_FILENAME}",
            )

        try:
            return TemplateDescriptor(
                name=str(name),
                kind=kind,
                description=entry.get("description") or "",
                instruction=entry.get("instruction") or "",
                variables_schema=entry.get("variables_schema") or {},
                target_folder=entry.get("targetFolder"),
                includes=[str(i) for i in entry.get("includes") or []],
                template_path=template_path,
                generator=entry.get("generator"),
            )
        except ValidationError as exc:
            return self._skip(manifest, f"Skipping {kind.value} '{name}' in {where}: {exc}")

    @staticmethod
    def _skip(manifest: Manifest, message: str) -> None:
        logger.warning(message)
        manifest.warnings.append(message)
        return None

    # -- Discovery ---------------------------------------------------------

    async def discover(self, templates_root: Path) -> list[str]:
        """Find template directories under *templates_root*.

        Returns paths relative to the root, sorted.  A directory qualifies
        when it contains both a package manifest and ``scaffold.yaml``.
        """
        templates_root = Path(templates_root)
        found: list[str] = []
        if not await self.fs.exists(templates_root):
            logger.warning("Templates root %s does not exist", templates_root)
            return found
        await self._discover(templates_root, "", 0, found)
        return sorted(found)

    async def _discover(self, directory: Path, rel: str, depth: int, found: list[str]) -> None:
        try:
            names = await self.fs.readdir(directory)
        except OSError as exc:
            logger.warning("Cannot read templates directory %s: %s", directory, exc)
            return

        if rel and MANIFEST_FILENAME in names and any(m in names for m in PACKAGE_MANIFESTS):
            found.append(rel)

        if depth >= MAX_DISCOVERY_DEPTH:
            return
        for name in sorted(names):
            if name.startswith(".") or name in _PRUNED_DIRS:
                continue
            child = directory / name
            try:
                stat = await self.fs.stat(child)
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", child, exc)
                continue
            if stat.is_dir:
                child_rel = f"{rel}/{name}" if rel else name
                await self._discover(child, child_rel, depth + 1, found)

    async def collect(self, templates_root: Path) -> Manifest:
        """Load descriptors from every discovered template.

        A template whose manifest is missing or malformed is skipped and
        reported in ``warnings``; it does not hide the other templates.
        """
        templates_root = Path(templates_root)
        catalog = Manifest()
        for template_path in await self.discover(templates_root):
            try:
                manifest = await self.load_manifest(templates_root / template_path, template_path)
            except (ManifestMissing, ManifestMalformed) as exc:
                self._skip(catalog, f"Failed to load {MANIFEST_FILENAME} for {template_path}: {exc}")
                continue
            catalog.descriptors.extend(manifest.descriptors)
            catalog.warnings.extend(manifest.warnings)
        return catalog

    # -- Include entries ---------------------------------------------------

    def parse_include(self, entry: str, variables: dict[str, Any]) -> IncludeEntry:
        """Parse ``source[->target][?k=v&...]`` and render the target path."""
        path_part, _, query = entry.partition("?")
        conditions = dict(parse_qsl(query.strip(), keep_blank_values=True)) if query else {}

        if "->" in path_part:
            source, _, target = path_part.partition("->")
            source, target = source.strip(), target.strip()
        else:
            source = target = path_part.strip()

        target = self.renderer.render_if_needed(target, variables)
        if target.endswith(LIQUID_SUFFIX):
            target = target[: -len(LIQUID_SUFFIX)]
        return IncludeEntry(source_path=source, target_path=target, conditions=conditions)

    @staticmethod
    def should_include(conditions: dict[str, str] | None, variables: dict[str, Any]) -> bool:
        """Return ``True`` when every condition matches its variable.

        Booleans compare as ``true`` / ``false`` and an absent variable
        counts as ``false``.
        """
        if not conditions:
            return True
        for key, expected in conditions.items():
            value = variables.get(key)
            if value is None:
                actual = "false"
            elif isinstance(value, bool):
                actual = "true" if value else "false"
            else:
                actual = str(value)
            if actual != expected:
                return False
        return True

    # -- Template validation -----------------------------------------------

    async def validate_template(
        self,
        template_dir: Path,
        kind: DescriptorKind = DescriptorKind.BOILERPLATE,
    ) -> TemplateValidation:
        """Check that every include of every *kind* descriptor has a source."""
        template_dir = Path(template_dir)
        result = TemplateValidation()
        if not await self.fs.exists(template_dir):
            result.is_valid = False
            result.errors.append(f"Template directory not found: {template_dir}")
            return result

        try:
            descriptors = await self.load(template_dir)
        except (ManifestMissing, ManifestMalformed) as exc:
            result.is_valid = False
            result.errors.append(str(exc))
            return result

        for descriptor in descriptors:
            if descriptor.kind is not kind:
                continue
            for include in descriptor.includes:
                source = self.parse_include(include, {}).source_path
                source_path = template_dir / source
                liquid_path = template_dir / f"{source}{LIQUID_SUFFIX}"
                if await self.fs.exists(source_path) or await self.fs.exists(liquid_path):
                    continue
                result.missing_files.append(source)
                result.errors.append(
                    f"{descriptor.name}: template file not found: {source}"
                )
        result.is_valid = not result.errors
        return result

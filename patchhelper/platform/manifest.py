import logging
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from patchhelper.exceptions import ManifestError
from patchhelper.platform.config_graph import StaticConfigurationGraph
from patchhelper.platform.locator import FilesystemClassLocator
from patchhelper.platform.models import (
    ModuleDescriptor,
    OverrideMechanism,
    OverrideRoot,
    PluginRef,
)
from patchhelper.platform.registry import StaticModuleRegistry

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_NAME = "patchhelper.yaml"


class ModuleSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    vendor_root: str
    namespace: str
    override_roots: dict[OverrideMechanism, list[OverrideRoot]] = Field(default_factory=dict)


class ThemeSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    area: str


class PluginSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    type: str
    declared_on: str
    methods: dict[str, list[str]] = Field(default_factory=dict)
    sort_order: int = 0
    disabled: bool = False


class ProjectManifest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    modules: list[ModuleSpec] = Field(default_factory=list)
    themes: list[ThemeSpec] = Field(default_factory=list)
    class_roots: list[str] = Field(default_factory=lambda: ["app/code"])
    preferences: dict[str, str] = Field(default_factory=dict)
    plugins: list[PluginSpec] = Field(default_factory=list)
    virtual_types: dict[str, str] = Field(default_factory=dict)
    classes: list[str] = Field(default_factory=list)
    boot_errors: list[str] = Field(default_factory=list)


@dataclass
class PlatformProject:
    root: Path
    registry: StaticModuleRegistry
    graph: StaticConfigurationGraph


def build_module(spec: ModuleSpec, themes: list[ThemeSpec], class_roots: list[str]) -> ModuleDescriptor:
    roots: dict[OverrideMechanism, list[OverrideRoot]] = {
        mechanism: list(entries) for mechanism, entries in spec.override_roots.items()
    }
    if OverrideMechanism.FILE_OVERRIDE not in roots and themes:
        roots[OverrideMechanism.FILE_OVERRIDE] = [
            OverrideRoot(path=f"{theme.path.rstrip('/')}/{spec.name}", area=theme.area)
            for theme in themes
        ]
    for mechanism in (OverrideMechanism.CLASS_PREFERENCE, OverrideMechanism.PLUGIN):
        if mechanism not in roots and class_roots:
            roots[mechanism] = [OverrideRoot(path=root.rstrip("/")) for root in class_roots]

    return ModuleDescriptor(
        name=spec.name,
        vendor_root=spec.vendor_root.rstrip("/"),
        namespace=spec.namespace.strip("\\"),
        override_roots=roots,
    )


def load_manifest(manifest_path: Path) -> ProjectManifest:
    try:
        with open(manifest_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return ProjectManifest.model_validate(data)
    except (OSError, yaml.YAMLError, ValidationError) as e:
        raise ManifestError(manifest_path, e) from e


def load_project(project_root: Path, manifest_path: Path | None = None) -> PlatformProject:
    """
    Build the module registry and configuration graph for a project from its
    YAML manifest (`patchhelper.yaml` in the project root by default).
    """
    project_root = Path(project_root)
    manifest_path = manifest_path or project_root / DEFAULT_MANIFEST_NAME
    manifest = load_manifest(manifest_path)

    modules = [build_module(spec, manifest.themes, manifest.class_roots) for spec in manifest.modules]
    registry = StaticModuleRegistry(modules, boot_errors=manifest.boot_errors)

    plugins = [
        PluginRef(
            name=spec.name,
            plugin_type=spec.type.lstrip("\\"),
            declared_on=spec.declared_on.lstrip("\\"),
            methods=spec.methods,
            sort_order=spec.sort_order,
            disabled=spec.disabled,
        )
        for spec in manifest.plugins
    ]
    graph = StaticConfigurationGraph(
        preferences=manifest.preferences,
        plugins=plugins,
        virtual_types=manifest.virtual_types,
        class_exists=FilesystemClassLocator(
            project_root, registry, set(manifest.classes), class_roots=manifest.class_roots
        ),
    )
    logger.info(
        "Loaded manifest %s: %d modules, %d preferences, %d plugins, %d virtual types",
        manifest_path,
        len(modules),
        len(manifest.preferences),
        len(plugins),
        len(manifest.virtual_types),
    )
    return PlatformProject(root=project_root, registry=registry, graph=graph)

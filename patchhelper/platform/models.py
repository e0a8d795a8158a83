from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class OverrideMechanism(StrEnum):
    FILE_OVERRIDE = "file-override"
    LAYOUT_OVERRIDE = "layout-override"
    CLASS_PREFERENCE = "preference"
    PLUGIN = "plugin"


class OverrideRoot(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    area: str | None = None


class ModuleDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    vendor_root: str
    namespace: str
    override_roots: dict[OverrideMechanism, list[OverrideRoot]] = Field(default_factory=dict)

    def roots_for(self, mechanism: OverrideMechanism) -> list[OverrideRoot]:
        return list(self.override_roots.get(mechanism, []))


class PluginRef(BaseModel):
    """A plugin declaration: `plugin_type` wraps `methods` of `declared_on`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    plugin_type: str
    declared_on: str
    methods: dict[str, list[str]] = Field(default_factory=dict)
    sort_order: int = 0
    disabled: bool = False

    def targets(self, method: str) -> bool:
        wanted = method.lower()
        return any(name.lower() == wanted for name in self.methods)

    def describe(self, method: str) -> str:
        for name, kinds in self.methods.items():
            if name.lower() == method.lower():
                prefixed = [f"{kind}{name[:1].upper()}{name[1:]}" for kind in kinds] or [name]
                return ", ".join(f"{self.plugin_type}::{entry}" for entry in prefixed)
        return self.plugin_type


class ConcreteClass(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str


class AliasRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    target: str


class ClassDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    preference: str | None = None
    preference_via: list[str] = Field(default_factory=list)
    plugins: list[PluginRef] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)

    @property
    def has_plugins(self) -> bool:
        return bool(self.plugins)

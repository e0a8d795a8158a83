import logging
from collections.abc import Callable
from typing import Protocol

from patchhelper.platform.models import AliasRef, ConcreteClass, PluginRef

logger = logging.getLogger(__name__)


class ConfigurationGraph(Protocol):
    def get_preference(self, type_name: str) -> str | None:
        ...

    def get_plugins(self, type_name: str) -> list[PluginRef]:
        ...

    def resolve_alias(self, name: str) -> ConcreteClass | AliasRef | None:
        ...

    def list_aliases(self) -> dict[str, str]:
        ...


def normalize_type(name: str) -> str:
    return name.strip().lstrip("\\")


class StaticConfigurationGraph:
    """
    Dependency-injection configuration held in memory.

    `class_exists` decides whether a name is a real class; names that are not
    classes are looked up among the declared virtual types.
    """

    def __init__(
        self,
        preferences: dict[str, str] | None = None,
        plugins: list[PluginRef] | None = None,
        virtual_types: dict[str, str] | None = None,
        class_exists: Callable[[str], bool] | None = None,
    ):
        self._preferences = {
            normalize_type(k): normalize_type(v) for k, v in (preferences or {}).items()
        }
        self._virtual_types = {
            normalize_type(k): normalize_type(v) for k, v in (virtual_types or {}).items()
        }
        self._plugins: dict[str, list[PluginRef]] = {}
        for plugin in plugins or []:
            self._plugins.setdefault(normalize_type(plugin.declared_on), []).append(plugin)
        self._class_exists = class_exists or (lambda name: False)

    def get_preference(self, type_name: str) -> str | None:
        return self._preferences.get(normalize_type(type_name))

    def get_plugins(self, type_name: str) -> list[PluginRef]:
        plugins = self._plugins.get(normalize_type(type_name), [])
        return sorted(plugins, key=lambda p: (p.sort_order, p.name))

    def resolve_alias(self, name: str) -> ConcreteClass | AliasRef | None:
        name = normalize_type(name)
        if self._class_exists(name):
            return ConcreteClass(name=name)
        if name in self._virtual_types:
            return AliasRef(name=name, target=self._virtual_types[name])
        logger.debug("%s is neither a class nor a virtual type", name)
        return None

    def list_aliases(self) -> dict[str, str]:
        return dict(self._virtual_types)

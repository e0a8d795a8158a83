import logging
from typing import Protocol

from patchhelper.platform.models import ModuleDescriptor

logger = logging.getLogger(__name__)


class ModuleRegistry(Protocol):
    boot_errors: list[str]

    def resolve_owning_module(self, path: str) -> ModuleDescriptor | None:
        ...

    def list_modules(self) -> list[ModuleDescriptor]:
        ...


def _under(path: str, root: str) -> bool:
    root = root.rstrip("/")
    return path == root or path.startswith(root + "/")


class StaticModuleRegistry:
    """Module registry backed by a fixed list of descriptors."""

    def __init__(self, modules: list[ModuleDescriptor], boot_errors: list[str] | None = None):
        self._modules = list(modules)
        self.boot_errors = list(boot_errors or [])
        self._by_path: dict[str, ModuleDescriptor | None] = {}

    def list_modules(self) -> list[ModuleDescriptor]:
        return list(self._modules)

    def resolve_owning_module(self, path: str) -> ModuleDescriptor | None:
        if path in self._by_path:
            return self._by_path[path]

        best: ModuleDescriptor | None = None
        for module in self._modules:
            if not _under(path, module.vendor_root):
                continue
            if best is None or len(module.vendor_root.rstrip("/")) > len(best.vendor_root.rstrip("/")):
                best = module

        if best is None:
            logger.debug("No module owns %s", path)
        self._by_path[path] = best
        return best


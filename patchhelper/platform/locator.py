from pathlib import Path

from patchhelper.platform.models import ModuleDescriptor
from patchhelper.platform.registry import ModuleRegistry


def module_for_class(registry: ModuleRegistry, class_name: str) -> ModuleDescriptor | None:
    class_name = class_name.lstrip("\\")
    best: ModuleDescriptor | None = None
    for module in registry.list_modules():
        namespace = module.namespace.strip("\\")
        if class_name != namespace and not class_name.startswith(namespace + "\\"):
            continue
        if best is None or len(namespace) > len(best.namespace.strip("\\")):
            best = module
    return best


def class_source_path(registry: ModuleRegistry, class_name: str) -> str | None:
    """Project-relative source file of a class, following its module's PSR-4 root."""
    class_name = class_name.lstrip("\\")
    module = module_for_class(registry, class_name)
    if module is None:
        return None
    remainder = class_name[len(module.namespace.strip("\\")):].lstrip("\\")
    if not remainder:
        return None
    relative = remainder.replace("\\", "/")
    return f"{module.vendor_root.rstrip('/')}/{relative}.php"


class FilesystemClassLocator:
    """
    `class_exists` for a project checked out on disk.

    A class exists when it is listed in `known_classes`, when its module's
    PSR-4 file is present, or when `<class root>/<Vendor/Module/...>.php`
    is present under one of `class_roots` (`app/code` style local code).
    """

    def __init__(
        self,
        project_root: Path,
        registry: ModuleRegistry,
        known_classes: set[str] | None = None,
        class_roots: list[str] | None = None,
    ):
        self.project_root = Path(project_root)
        self.registry = registry
        self.known_classes = {name.lstrip("\\") for name in known_classes or set()}
        self.class_roots = [root.strip("/") for root in class_roots or [] if root.strip("/")]

    def candidate_paths(self, class_name: str) -> list[str]:
        class_name = class_name.lstrip("\\")
        paths: list[str] = []
        relative = class_source_path(self.registry, class_name)
        if relative is not None:
            paths.append(relative)
        if class_name:
            as_path = class_name.replace("\\", "/")
            paths.extend(f"{root}/{as_path}.php" for root in self.class_roots)
        return paths

    def __call__(self, class_name: str) -> bool:
        if class_name.lstrip("\\") in self.known_classes:
            return True
        return any((self.project_root / path).is_file() for path in self.candidate_paths(class_name))

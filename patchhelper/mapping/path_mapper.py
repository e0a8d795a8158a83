import logging
from dataclasses import dataclass

from patchhelper.platform.locator import class_source_path
from patchhelper.platform.models import ModuleDescriptor, OverrideMechanism, OverrideRoot
from patchhelper.platform.registry import ModuleRegistry

logger = logging.getLogger(__name__)

VIEW_EXTENSIONS = {".phtml", ".html", ".js", ".less", ".css", ".xml", ".json"}
LAYOUT_DIRS = ("layout/", "page_layout/")
CLASS_MECHANISMS = (OverrideMechanism.CLASS_PREFERENCE, OverrideMechanism.PLUGIN)


@dataclass(frozen=True)
class CandidatePath:
    mechanism: OverrideMechanism
    path: str
    root: str


def _extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return "." + name.rsplit(".", 1)[-1].lower()


def _area_matches(root: OverrideRoot, area: str) -> bool:
    return root.area is None or area == "base" or root.area == area


class PathMapper:
    """Maps a vendor-tree path onto the local paths that could override it."""

    def __init__(self, registry: ModuleRegistry):
        self.registry = registry

    def _split(self, vendor_path: str) -> tuple[ModuleDescriptor, str] | None:
        module = self.registry.resolve_owning_module(vendor_path)
        if module is None:
            return None
        remainder = vendor_path[len(module.vendor_root.rstrip("/")):].lstrip("/")
        if not remainder:
            return None
        return module, remainder

    def candidates(self, vendor_path: str) -> list[CandidatePath]:
        split = self._split(vendor_path)
        if split is None:
            logger.debug("Cannot map %s: no owning module", vendor_path)
            return []
        module, remainder = split

        if remainder.startswith("view/"):
            return self._view_candidates(module, remainder)
        if _extension(remainder) == ".php":
            return self._class_candidates(module, remainder)

        logger.debug("Cannot map %s: unsupported file type", vendor_path)
        return []

    def _view_candidates(self, module: ModuleDescriptor, remainder: str) -> list[CandidatePath]:
        parts = remainder.split("/", 2)
        if len(parts) < 3 or _extension(remainder) not in VIEW_EXTENSIONS:
            return []
        area, rest = parts[1], parts[2]

        if rest.startswith(LAYOUT_DIRS) and _extension(rest) == ".xml":
            mechanism = OverrideMechanism.LAYOUT_OVERRIDE
            roots = module.roots_for(mechanism) or module.roots_for(OverrideMechanism.FILE_OVERRIDE)
            layout_file = rest.split("/", 1)[1]
            relatives = [rest, f"{rest.split('/', 1)[0]}/override/base/{layout_file}"]
        else:
            mechanism = OverrideMechanism.FILE_OVERRIDE
            roots = module.roots_for(mechanism)
            relatives = [rest]

        found: list[CandidatePath] = []
        for root in roots:
            if not _area_matches(root, area):
                continue
            for relative in relatives:
                found.append(
                    CandidatePath(
                        mechanism=mechanism,
                        path=f"{root.path.rstrip('/')}/{relative}",
                        root=root.path,
                    )
                )
        return found

    def _class_candidates(self, module: ModuleDescriptor, remainder: str) -> list[CandidatePath]:
        namespace_dirs = module.namespace.strip("\\").replace("\\", "/")
        found: list[CandidatePath] = []
        for mechanism in CLASS_MECHANISMS:
            for root in module.roots_for(mechanism):
                found.append(
                    CandidatePath(
                        mechanism=mechanism,
                        path=f"{root.path.rstrip('/')}/{namespace_dirs}/{remainder}",
                        root=root.path,
                    )
                )
        return found

    def class_name(self, vendor_path: str) -> str | None:
        split = self._split(vendor_path)
        if split is None:
            return None
        module, remainder = split
        if remainder.startswith("view/") or _extension(remainder) != ".php":
            return None
        relative = remainder[: -len(".php")].replace("/", "\\")
        return module.namespace.strip("\\") + "\\" + relative

    def class_path(self, class_name: str) -> str | None:
        return class_source_path(self.registry, class_name)

import logging
from dataclasses import dataclass, field
from pathlib import Path

from patchhelper.checks.file_override import classify_file_override
from patchhelper.checks.models import (
    CheckType,
    FileOverridePolicy,
    Level,
    OverrideFinding,
    ThreeWayDiffHint,
)
from patchhelper.checks.php_source import (
    MethodSpan,
    SourceScanError,
    declaration_visibility,
    declared_method,
    scan_methods,
)
from patchhelper.diff.models import DEV_NULL, LineKind, PatchFile
from patchhelper.exceptions import (
    ConfigurationGraphError,
    PluginDetectionException,
    VirtualTypeException,
)
from patchhelper.mapping.path_mapper import CLASS_MECHANISMS, CandidatePath, PathMapper
from patchhelper.platform.config_graph import ConfigurationGraph, normalize_type
from patchhelper.platform.models import (
    ClassDescriptor,
    ConcreteClass,
    OverrideMechanism,
    PluginRef,
)

logger = logging.getLogger(__name__)

FILE_CHECK_TYPES = {
    OverrideMechanism.FILE_OVERRIDE: CheckType.FILE_OVERRIDE,
    OverrideMechanism.LAYOUT_OVERRIDE: CheckType.LAYOUT_OVERRIDE,
}


class ClassDescriptorCache:
    """
    Memoized ClassDescriptor lookups for one run.

    Descriptors are built on first request and never invalidated; a lookup
    that fails is not cached, so it fails the same way for every file that
    asks.
    """

    def __init__(self, graph: ConfigurationGraph):
        self.graph = graph
        self._descriptors: dict[str, ClassDescriptor] = {}
        self._aliases: dict[str, str] | None = None

    def __len__(self) -> int:
        return len(self._descriptors)

    def get(self, class_name: str) -> ClassDescriptor:
        class_name = normalize_type(class_name)
        if class_name not in self._descriptors:
            self._descriptors[class_name] = self._build(class_name)
        return self._descriptors[class_name]

    def resolve_chain(self, name: str) -> tuple[str, list[str]]:
        """Follow aliases from `name` to a concrete class.

        Returns the class and the chain of names visited, `name` first.

        Raises:
            VirtualTypeException: the chain dangles or loops.
        """
        name = normalize_type(name)
        chain: list[str] = []
        current = name
        while True:
            if current in chain:
                raise VirtualTypeException(name, chain + [current], "alias cycle")
            chain.append(current)
            resolved = self.graph.resolve_alias(current)
            if resolved is None:
                reason = "dangling alias" if len(chain) > 1 else "no such class or virtual type"
                raise VirtualTypeException(name, chain, reason)
            if isinstance(resolved, ConcreteClass):
                return resolved.name, chain
            current = normalize_type(resolved.target)

    def aliases_of(self, class_name: str) -> list[str]:
        if self._aliases is None:
            self._aliases = {
                normalize_type(k): normalize_type(v) for k, v in self.graph.list_aliases().items()
            }
        class_name = normalize_type(class_name)
        found: list[str] = []
        frontier = [class_name]
        while frontier:
            target = frontier.pop(0)
            for alias, alias_target in sorted(self._aliases.items()):
                if alias_target == target and alias not in found and alias != class_name:
                    found.append(alias)
                    frontier.append(alias)
        return found

    def _build(self, class_name: str) -> ClassDescriptor:
        aliases = self.aliases_of(class_name)

        preference = None
        preference_via: list[str] = []
        declared = self.graph.get_preference(class_name)
        if declared and normalize_type(declared) != class_name:
            preference, chain = self.resolve_chain(declared)
            if len(chain) > 1:
                preference_via = chain
            if preference == class_name:
                preference = None

        plugins: list[PluginRef] = []
        for type_name in [class_name] + aliases:
            for plugin in self.graph.get_plugins(type_name):
                if plugin.disabled:
                    continue
                plugin_class, _ = self.resolve_chain(plugin.plugin_type)
                plugins.append(plugin.model_copy(update={"plugin_type": plugin_class}))
        plugins.sort(key=lambda p: (p.sort_order, p.name))

        logger.debug(
            "Built descriptor for %s: preference=%s plugins=%d aliases=%d",
            class_name,
            preference,
            len(plugins),
            len(aliases),
        )
        return ClassDescriptor(
            name=class_name,
            preference=preference,
            preference_via=preference_via,
            plugins=plugins,
            aliases=aliases,
        )


@dataclass
class ResolverResult:
    findings: list[OverrideFinding] = field(default_factory=list)
    hints: list[ThreeWayDiffHint] = field(default_factory=list)

    def add(self, finding: OverrideFinding) -> None:
        # one finding per (mechanism, detail) for a file
        for index, existing in enumerate(self.findings):
            if existing.check_type == finding.check_type and existing.detail == finding.detail:
                if finding.level.rank > existing.level.rank:
                    self.findings[index] = finding
                return
        self.findings.append(finding)


class OverrideResolver:
    def __init__(
        self,
        project_root: Path,
        path_mapper: PathMapper,
        descriptors: ClassDescriptorCache,
        policy: FileOverridePolicy | None = None,
        vendor_namespaces: list[str] | None = None,
        base_vendor_dir: str = "vendor_orig",
        threeway: bool = False,
    ):
        self.project_root = Path(project_root)
        self.path_mapper = path_mapper
        self.descriptors = descriptors
        self.policy = policy or FileOverridePolicy()
        self.vendor_namespaces = [ns.strip("\\") for ns in vendor_namespaces or [] if ns.strip("\\")]
        self.base_vendor_dir = base_vendor_dir.rstrip("/")
        self.threeway = threeway

    def resolve(self, patch_file: PatchFile, candidates: list[CandidatePath]) -> ResolverResult:
        """
        Run every applicable override check for one changed vendor file.

        Raises:
            VirtualTypeException: an alias reachable from the file's class
                does not resolve to a concrete class.
            PluginDetectionException: changed lines cannot be attributed to
                methods, or the configuration graph query failed.
        """
        result = ResolverResult()

        for candidate in candidates:
            if candidate.mechanism in FILE_CHECK_TYPES:
                self._check_file_override(patch_file, candidate, result)

        if any(candidate.mechanism in CLASS_MECHANISMS for candidate in candidates):
            class_name = self.path_mapper.class_name(patch_file.path)
            if class_name is not None:
                self._check_class(patch_file, class_name, result)

        return result

    def base_vendor_path(self, patch_file: PatchFile) -> str:
        if patch_file.old_path and patch_file.old_path not in (DEV_NULL, patch_file.path):
            return patch_file.old_path
        path = patch_file.path
        if path.startswith("vendor/"):
            path = path[len("vendor/"):]
        return f"{self.base_vendor_dir}/{path}"

    def _check_file_override(
        self,
        patch_file: PatchFile,
        candidate: CandidatePath,
        result: ResolverResult,
    ) -> None:
        level = classify_file_override(patch_file, self.project_root / candidate.path, self.policy)
        if level is None:
            return
        result.add(
            OverrideFinding(
                level=level,
                check_type=FILE_CHECK_TYPES[candidate.mechanism],
                vendor_file=patch_file.path,
                detail=candidate.path,
            )
        )
        if self.threeway and level != Level.IGNORE:
            result.hints.append(
                ThreeWayDiffHint(
                    vendor_file=patch_file.path,
                    local_override_file=candidate.path,
                    base_vendor_file=self.base_vendor_path(patch_file),
                )
            )

    def _in_namespaces(self, class_name: str) -> bool:
        if not self.vendor_namespaces:
            return True
        class_name = class_name.lstrip("\\")
        return any(
            class_name == ns or class_name.startswith(ns + "\\") for ns in self.vendor_namespaces
        )

    def _check_class(self, patch_file: PatchFile, class_name: str, result: ResolverResult) -> None:
        try:
            descriptor = self.descriptors.get(class_name)
        except ConfigurationGraphError as e:
            raise PluginDetectionException(patch_file.path, f"configuration query failed: {e}") from e

        if descriptor.preference and self._in_namespaces(descriptor.preference):
            self._check_preference(patch_file, descriptor, result)

        plugins = [p for p in descriptor.plugins if self._in_namespaces(p.plugin_type)]
        if plugins:
            self._check_plugins(patch_file, descriptor, plugins, result)

    def _vendor_lines(self, patch_file: PatchFile) -> list[str] | None:
        path = self.project_root / patch_file.path
        try:
            return path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Cannot read vendor file %s: %s", path, e)
            return None

    def _touches_public_surface(self, patch_file: PatchFile) -> bool:
        if patch_file.is_deleted_file:
            return True

        for hunk in patch_file.hunks:
            for op in hunk.changed_ops():
                visibility = declaration_visibility(op.text)
                if visibility is not None and visibility != "private":
                    return True

        lines = self._vendor_lines(patch_file)
        if lines is None:
            return False
        try:
            spans = scan_methods(lines)
        except SourceScanError as e:
            logger.debug("Falling back to changed-line scan for %s: %s", patch_file.path, e)
            return False
        for hunk in patch_file.hunks:
            for first, last in hunk.touched_new_ranges():
                if any(span.contains(first) and span.contains(last) and span.is_public_surface for span in spans):
                    return True
        return False

    def _check_preference(
        self,
        patch_file: PatchFile,
        descriptor: ClassDescriptor,
        result: ResolverResult,
    ) -> None:
        level = Level.WARN if self._touches_public_surface(patch_file) else Level.INFO
        result.add(
            OverrideFinding(
                level=level,
                check_type=CheckType.PREFERENCE,
                vendor_file=patch_file.path,
                detail=descriptor.preference,
            )
        )
        if descriptor.preference_via:
            result.add(
                OverrideFinding(
                    level=Level.INFO,
                    check_type=CheckType.VIRTUAL_TYPE,
                    vendor_file=patch_file.path,
                    detail=" -> ".join(descriptor.preference_via),
                )
            )
        if self.threeway:
            local = self.path_mapper.class_path(descriptor.preference)
            if local is not None:
                result.hints.append(
                    ThreeWayDiffHint(
                        vendor_file=patch_file.path,
                        local_override_file=local,
                        base_vendor_file=self.base_vendor_path(patch_file),
                    )
                )

    def changed_methods(self, patch_file: PatchFile) -> list[str]:
        """
        Names of the methods whose bodies or signatures a diff touches, found
        by locating each changed line inside the method spans of the full
        (post-upgrade) vendor file.

        Raises:
            PluginDetectionException: the vendor file is unreadable, a
                changed line falls outside it, or a line sits in more than
                one method span.
        """
        changed: list[str] = []

        def add(name: str) -> None:
            if name.lower() not in (existing.lower() for existing in changed):
                changed.append(name)

        for hunk in patch_file.hunks:
            for op in hunk.ops:
                if op.kind != LineKind.REMOVE:
                    continue
                name = declared_method(op.text)
                if name:
                    add(name)

        if patch_file.is_deleted_file:
            return changed

        lines = self._vendor_lines(patch_file)
        if lines is None:
            raise PluginDetectionException(patch_file.path, "vendor file cannot be read for method detection")
        try:
            spans = scan_methods(lines)
        except SourceScanError as e:
            raise PluginDetectionException(patch_file.path, str(e)) from e

        for hunk in patch_file.hunks:
            for first, last in hunk.touched_new_ranges():
                if last > len(lines) + 1:
                    raise PluginDetectionException(
                        patch_file.path,
                        f"hunk @@ -{hunk.old_start},{hunk.old_lines} +{hunk.new_start},{hunk.new_lines} @@ "
                        f"touches line {last} beyond the end of the vendor file",
                    )
                enclosing: list[MethodSpan] = [
                    span for span in spans if span.contains(first) and span.contains(last)
                ]
                if len(enclosing) > 1:
                    names = ", ".join(span.name for span in enclosing)
                    raise PluginDetectionException(
                        patch_file.path,
                        f"line {last} is ambiguous between methods {names}",
                    )
                if enclosing:
                    add(enclosing[0].name)
        return changed

    def _check_plugins(
        self,
        patch_file: PatchFile,
        descriptor: ClassDescriptor,
        plugins: list[PluginRef],
        result: ResolverResult,
    ) -> None:
        if patch_file.is_deleted_file:
            methods = [name for plugin in plugins for name in plugin.methods]
        else:
            methods = self.changed_methods(patch_file)

        for plugin in plugins:
            targeted = [method for method in methods if plugin.targets(method)]
            if targeted:
                for method in targeted:
                    result.add(
                        OverrideFinding(
                            level=Level.WARN,
                            check_type=CheckType.PLUGIN,
                            vendor_file=patch_file.path,
                            detail=plugin.describe(method),
                        )
                    )
            else:
                result.add(
                    OverrideFinding(
                        level=Level.IGNORE,
                        check_type=CheckType.PLUGIN,
                        vendor_file=patch_file.path,
                        detail=plugin.plugin_type,
                    )
                )

            declared_on = normalize_type(plugin.declared_on)
            if declared_on in descriptor.aliases:
                result.add(
                    OverrideFinding(
                        level=Level.INFO,
                        check_type=CheckType.VIRTUAL_TYPE,
                        vendor_file=patch_file.path,
                        detail=f"{declared_on} -> {descriptor.name}",
                    )
                )

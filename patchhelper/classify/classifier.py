import logging
from pathlib import Path

from patchhelper.checks.models import AutoApplied, CheckType, Level, OverrideFinding, worst_level
from patchhelper.checks.resolver import ClassDescriptorCache, OverrideResolver
from patchhelper.classify.models import (
    Analysed,
    FileOutcome,
    RunReport,
    Skipped,
    Undiagnosable,
    UndiagnosableKind,
)
from patchhelper.config import AuditSettings
from patchhelper.diff.fuzzy import FuzzyPatchApplier
from patchhelper.diff.models import PatchFile
from patchhelper.diff.parser import filter_patch_files, parse_unified_diff
from patchhelper.exceptions import ParseError, PluginDetectionException, VirtualTypeException
from patchhelper.mapping.path_mapper import PathMapper
from patchhelper.platform.config_graph import ConfigurationGraph
from patchhelper.platform.registry import ModuleRegistry

logger = logging.getLogger(__name__)

AUTO_APPLY_CHECKS = {CheckType.FILE_OVERRIDE, CheckType.LAYOUT_OVERRIDE}


class Classifier:
    """
    Runs the override checks for each changed vendor file, one file at a
    time. A file that cannot be diagnosed becomes an `Undiagnosable` outcome
    and the run carries on with the next file.
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        graph: ConfigurationGraph,
        project_root: Path,
        settings: AuditSettings | None = None,
    ):
        self.registry = registry
        self.project_root = Path(project_root)
        self.settings = settings or AuditSettings()
        self.path_mapper = PathMapper(registry)
        self.descriptors = ClassDescriptorCache(graph)
        self.resolver = OverrideResolver(
            project_root=self.project_root,
            path_mapper=self.path_mapper,
            descriptors=self.descriptors,
            policy=self.settings.file_override_policy(),
            vendor_namespaces=self.settings.vendor_namespaces,
            base_vendor_dir=self.settings.base_vendor_dir,
            threeway=self.settings.threeway,
        )
        self.auto_applier = (
            FuzzyPatchApplier(self.settings.auto_apply_fuzz) if self.settings.auto_apply else None
        )

    def run(self, patch_files: list[PatchFile]) -> RunReport:
        report = RunReport(
            boot_errors=list(self.registry.boot_errors),
            auto_apply=self.settings.auto_apply,
        )
        for patch_file in patch_files:
            report.outcomes.append(self.classify_file(patch_file))

        counts = report.counts()
        logger.info(
            "Classified %d files: WARN=%d INFO=%d IGNORE=%d undiagnosable=%d skipped=%d",
            len(patch_files),
            counts[Level.WARN],
            counts[Level.INFO],
            counts[Level.IGNORE],
            len(report.undiagnosable),
            len(report.skipped),
        )
        return report

    def classify_file(self, patch_file: PatchFile) -> FileOutcome:
        candidates = self.path_mapper.candidates(patch_file.path)
        if not candidates:
            logger.debug("Skipping %s", patch_file.path)
            return Skipped(vendor_file=patch_file.path, reason="no local override location")

        logger.info("Validating %s", patch_file.path)
        try:
            result = self.resolver.resolve(patch_file, candidates)
        except VirtualTypeException as e:
            if self.settings.strict:
                raise
            logger.warning("Could not understand %s: %s", patch_file.path, e)
            return Undiagnosable(patch_file, UndiagnosableKind.VIRTUAL_TYPE, str(e))
        except PluginDetectionException as e:
            if self.settings.strict:
                raise
            logger.warning("Could not detect plugins for %s: %s", patch_file.path, e)
            return Undiagnosable(patch_file, UndiagnosableKind.PLUGIN_DETECTION, str(e))

        findings = result.findings
        if self.auto_applier is not None:
            findings = [self._auto_apply(patch_file, finding) for finding in findings]
        logger.debug("%s: %d findings, worst %s", patch_file.path, len(findings), worst_level(findings))
        return Analysed(patch_file=patch_file, findings=findings, hints=result.hints)

    def _auto_apply(self, patch_file: PatchFile, finding: OverrideFinding) -> OverrideFinding:
        if finding.level != Level.WARN or finding.check_type not in AUTO_APPLY_CHECKS:
            return finding.model_copy(update={"auto_applied": AutoApplied.NOT_APPLICABLE})

        applied = self.auto_applier.apply_to_file(patch_file, self.project_root / finding.detail, write=True)
        outcome = AutoApplied.APPLIED if applied else AutoApplied.NOT_APPLIED
        return finding.model_copy(update={"auto_applied": outcome})


def analyse_diff(
    patch_txt: str,
    registry: ModuleRegistry,
    graph: ConfigurationGraph,
    project_root: Path,
    settings: AuditSettings | None = None,
) -> RunReport:
    """
    Parse a vendor diff and classify every file in it.

    Raises:
        ParseError: the diff is malformed, or non-empty but holds no files.
    """
    settings = settings or AuditSettings()
    patch_files = parse_unified_diff(patch_txt)
    if not patch_files and patch_txt.strip():
        raise ParseError("The patch file could not be parsed, check it's generated with diff -urN")

    patch_files = filter_patch_files(patch_files, settings.path_filter)
    classifier = Classifier(registry, graph, project_root, settings)
    return classifier.run(patch_files)

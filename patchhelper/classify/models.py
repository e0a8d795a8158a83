from dataclasses import dataclass, field
from enum import IntEnum, StrEnum

from patchhelper.checks.models import Level, OverrideFinding, ThreeWayDiffHint
from patchhelper.diff.models import PatchFile


class RunStatus(IntEnum):
    CLEAN = 0
    PARSE_FAILURE = 1
    BOOT_ERRORS = 2
    UNDIAGNOSABLE = 3
    FINDINGS = 4


class UndiagnosableKind(StrEnum):
    VIRTUAL_TYPE = "virtual_type"
    PLUGIN_DETECTION = "plugin_detection"


@dataclass(frozen=True)
class Analysed:
    patch_file: PatchFile
    findings: list[OverrideFinding] = field(default_factory=list)
    hints: list[ThreeWayDiffHint] = field(default_factory=list)

    @property
    def vendor_file(self) -> str:
        return self.patch_file.path


@dataclass(frozen=True)
class Skipped:
    vendor_file: str
    reason: str


@dataclass(frozen=True)
class Undiagnosable:
    patch_file: PatchFile
    kind: UndiagnosableKind
    message: str

    @property
    def vendor_file(self) -> str:
        return self.patch_file.path


FileOutcome = Analysed | Skipped | Undiagnosable


@dataclass
class RunReport:
    outcomes: list[FileOutcome] = field(default_factory=list)
    boot_errors: list[str] = field(default_factory=list)
    auto_apply: bool = False

    @property
    def findings(self) -> list[OverrideFinding]:
        return [f for outcome in self.outcomes if isinstance(outcome, Analysed) for f in outcome.findings]

    @property
    def hints(self) -> list[ThreeWayDiffHint]:
        return [h for outcome in self.outcomes if isinstance(outcome, Analysed) for h in outcome.hints]

    @property
    def undiagnosable(self) -> list[Undiagnosable]:
        return [outcome for outcome in self.outcomes if isinstance(outcome, Undiagnosable)]

    @property
    def skipped(self) -> list[Skipped]:
        return [outcome for outcome in self.outcomes if isinstance(outcome, Skipped)]

    @property
    def analysed(self) -> list[Analysed]:
        return [outcome for outcome in self.outcomes if isinstance(outcome, Analysed)]

    def counts(self) -> dict[Level, int]:
        counts = {level: 0 for level in Level}
        for finding in self.findings:
            counts[finding.level] += 1
        return counts

    def status(self, fail_on: Level | None = Level.WARN) -> RunStatus:
        if self.undiagnosable:
            return RunStatus.UNDIAGNOSABLE
        if fail_on is not None and any(f.level.rank >= fail_on.rank for f in self.findings):
            return RunStatus.FINDINGS
        if self.boot_errors:
            return RunStatus.BOOT_ERRORS
        return RunStatus.CLEAN

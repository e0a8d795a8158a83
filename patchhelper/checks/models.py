from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Level(StrEnum):
    WARN = "WARN"
    INFO = "INFO"
    IGNORE = "IGNORE"

    @property
    def rank(self) -> int:
        return {Level.IGNORE: 0, Level.INFO: 1, Level.WARN: 2}[self]


class CheckType(StrEnum):
    FILE_OVERRIDE = "file-override"
    LAYOUT_OVERRIDE = "layout-override"
    PREFERENCE = "preference"
    PLUGIN = "plugin"
    VIRTUAL_TYPE = "virtual-type"


class AutoApplied(StrEnum):
    NOT_APPLICABLE = "N/A"
    APPLIED = "Yes"
    NOT_APPLIED = "No"


class OverrideFinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: Level
    check_type: CheckType
    vendor_file: str
    detail: str
    auto_applied: AutoApplied | None = None

    def as_row(self, with_auto_applied: bool = False) -> tuple[str, ...]:
        row = (self.level.value, self.check_type.value, self.vendor_file, self.detail)
        if with_auto_applied:
            outcome = self.auto_applied or AutoApplied.NOT_APPLICABLE
            row = row + (outcome.value,)
        return row


class ThreeWayDiffHint(BaseModel):
    model_config = ConfigDict(frozen=True)

    vendor_file: str
    local_override_file: str
    base_vendor_file: str


class FileOverridePolicy(BaseModel):
    """
    Decides the level of an existing local copy of a changed vendor file.

    - every hunk maps cleanly (region untouched locally, or change already
      present) -> INFO
    - no hunk maps and no significant changed line occurs in the local
      copy -> IGNORE (when `ignore_when_disjoint`)
    - anything else -> WARN
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    match_fuzz: int = Field(default=0, ge=0)
    min_significant_chars: int = Field(default=3, ge=0)
    ignore_when_disjoint: bool = True


def worst_level(findings: list[OverrideFinding]) -> Level | None:
    if not findings:
        return None
    return max((f.level for f in findings), key=lambda level: level.rank)

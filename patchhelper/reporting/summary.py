from patchhelper.checks.models import Level, OverrideFinding
from patchhelper.classify.models import RunReport
from patchhelper.diff.models import PatchFile


def count_levels(findings: list[OverrideFinding]) -> dict[Level, int]:
    counts = {level: 0 for level in Level}
    for finding in findings:
        counts[finding.level] += 1
    return counts


def visible_findings(
    findings: list[OverrideFinding],
    show_info: bool = False,
    show_ignore: bool = False,
) -> list[OverrideFinding]:
    visible = []
    for finding in findings:
        if finding.level == Level.INFO and not show_info:
            continue
        if finding.level == Level.IGNORE and not show_ignore:
            continue
        visible.append(finding)
    return visible


def sort_findings(findings: list[OverrideFinding], by_type: bool = False) -> list[OverrideFinding]:
    if by_type:
        return sorted(
            findings,
            key=lambda f: (-f.level.rank, f.check_type.value, f.vendor_file, f.detail),
        )
    return sorted(findings, key=lambda f: -f.level.rank)


def finding_rows(
    findings: list[OverrideFinding],
    with_auto_applied: bool = False,
    pad: int | None = None,
) -> list[tuple[str, ...]]:
    rows = []
    for finding in findings:
        row = list(finding.as_row(with_auto_applied))
        if pad:
            row[2] = row[2].ljust(pad)
            row[3] = row[3].ljust(pad)
        rows.append(tuple(row))
    return rows


def files_to_check(
    report: RunReport,
    show_info: bool = False,
    show_ignore: bool = False,
) -> list[PatchFile]:
    wanted = {Level.WARN}
    if show_info:
        wanted.add(Level.INFO)
    if show_ignore:
        wanted.add(Level.IGNORE)

    files: list[PatchFile] = []
    for outcome in report.analysed:
        if any(f.level in wanted for f in outcome.findings):
            files.append(outcome.patch_file)
    return files

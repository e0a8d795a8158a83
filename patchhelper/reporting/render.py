from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

from patchhelper.checks.models import Level, OverrideFinding, ThreeWayDiffHint
from patchhelper.classify.models import RunReport, Undiagnosable

DOCS_URL = "https://github.com/AmpersandHQ/ampersand-magento2-upgrade-patch-helper/blob/master/docs/CHECKS_AVAILABLE.md"
TABLE_HEADERS = ["Level", "Type", "File", "To Check"]
AUTO_APPLIED_HEADER = "Auto applied"
JUNIT_SUITE_NAME = "Magento 2 Upgrade Patch Helper"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


def table_headers(auto_apply: bool) -> list[str]:
    headers = list(TABLE_HEADERS)
    if auto_apply:
        headers.append(AUTO_APPLIED_HEADER)
    return headers


def render_markdown_table(headers: list[str], rows: list[tuple[str, ...]]) -> str:
    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join("------" for _ in headers) + " |",
    ]
    for row in rows:
        lines.append("| " + " | ".join(row) + " |")
    return "\n".join(lines)


def render_threeway_commands(hints: list[ThreeWayDiffHint]) -> list[str]:
    return [
        f"phpstorm diff {hint.vendor_file} {hint.local_override_file} {hint.base_vendor_file}"
        for hint in hints
    ]


def render_counts(counts: dict[Level, int], show_info: bool, show_ignore: bool) -> list[str]:
    lines = [f"WARN count: {counts[Level.WARN]}", ""]

    info = f"INFO count: {counts[Level.INFO]}"
    if not show_info and counts[Level.INFO] > 0:
        info += " (to view re-run this tool with --show-info)"
    lines.append(info)

    if counts[Level.IGNORE] > 0:
        ignore = f"IGNORE count: {counts[Level.IGNORE]}"
        if not show_ignore:
            ignore += " (to view re-run this tool with --show-ignore)"
        lines.extend(["", ignore])
    return lines


def render_undiagnosable(entries: list[Undiagnosable], error_patch_path: Path | None = None) -> list[str]:
    if not entries:
        return []
    lines = ["Could not detect plugins or virtual types for the following files"]
    for entry in entries:
        lines.append(f"- {entry.vendor_file} [{entry.kind}]: {entry.message}")
    if error_patch_path is not None:
        lines.append(
            "Please raise a github issue with the above error information "
            f"and the contents of {error_patch_path}"
        )
    return lines


def render_console_report(
    report: RunReport,
    rows: list[tuple[str, ...]],
    show_info: bool = False,
    show_ignore: bool = False,
    threeway: bool = False,
    files_to_check_path: Path | None = None,
) -> str:
    lines = [render_markdown_table(table_headers(report.auto_apply), rows), ""]

    hints = report.hints if threeway else []
    if hints:
        lines.append("Outputting diff commands below")
        lines.extend(render_threeway_commands(hints))
        lines.append("")

    lines.extend(render_counts(report.counts(), show_info, show_ignore))
    lines.append("")
    lines.append(f"For docs on each check see {DOCS_URL}")
    lines.append("")
    review = f"You should review the above {len(rows)} items"
    if files_to_check_path is not None:
        review += f" alongside {files_to_check_path}"
    lines.append(review)
    return "\n".join(lines) + "\n"


def _relative(project_dir: str, file_path: str) -> str:
    if project_dir and file_path.startswith(project_dir):
        return file_path[len(project_dir):].lstrip("/")
    return file_path


def render_junit_xml(
    findings: list[OverrideFinding],
    counts: dict[Level, int],
    project_dir: str = "",
) -> str:
    """
    JUnit XML with one testsuite per check type. WARN findings are
    failures, IGNORE findings are skipped, INFO findings carry system-out.
    """
    root = ET.Element(
        "testsuites",
        {
            "name": JUNIT_SUITE_NAME,
            "tests": str(len(findings)),
            "failures": str(counts[Level.WARN]),
            "skipped": str(counts[Level.IGNORE]),
            "time": "0",
        },
    )

    grouped: dict[str, list[OverrideFinding]] = {}
    for finding in findings:
        grouped.setdefault(finding.check_type.value, []).append(finding)

    for check_type, group in grouped.items():
        suite = ET.SubElement(
            root,
            "testsuite",
            {
                "name": check_type,
                "tests": str(len(group)),
                "failures": str(sum(1 for f in group if f.level == Level.WARN)),
                "skipped": str(sum(1 for f in group if f.level == Level.IGNORE)),
                "time": "0",
            },
        )
        for finding in group:
            case = ET.SubElement(
                suite,
                "testcase",
                {
                    "classname": check_type,
                    "name": _relative(project_dir, finding.vendor_file),
                    "time": "0",
                },
            )
            details = (
                f"File: {finding.vendor_file}\nCheck: {finding.detail}\n"
                f"Level: {finding.level.value}\nType: {check_type}"
            )
            if finding.level == Level.WARN:
                failure = ET.SubElement(case, "failure", {"message": "Requires Review", "type": "Warning"})
                failure.text = details
            elif finding.level == Level.IGNORE:
                skipped = ET.SubElement(case, "skipped", {"message": "Ignored - No Action Required"})
                skipped.text = f"File: {finding.vendor_file}\nCheck: {finding.detail}"
            else:
                system_out = ET.SubElement(case, "system-out")
                system_out.text = details

    ET.indent(root)
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"

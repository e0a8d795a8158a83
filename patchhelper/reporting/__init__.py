from patchhelper.reporting.outputs import (
    FILES_ERROR_NAME,
    FILES_TO_CHECK_NAME,
    default_output_paths,
    resolve_junit_path,
    write_error_patch,
    write_files_to_check,
    write_output,
)
from patchhelper.reporting.render import (
    render_console_report,
    render_junit_xml,
    render_markdown_table,
    render_threeway_commands,
    render_undiagnosable,
    table_headers,
)
from patchhelper.reporting.summary import (
    count_levels,
    files_to_check,
    finding_rows,
    sort_findings,
    visible_findings,
)

__all__ = [
    "FILES_ERROR_NAME",
    "FILES_TO_CHECK_NAME",
    "default_output_paths",
    "resolve_junit_path",
    "write_error_patch",
    "write_files_to_check",
    "write_output",
    "render_console_report",
    "render_junit_xml",
    "render_markdown_table",
    "render_threeway_commands",
    "render_undiagnosable",
    "table_headers",
    "count_levels",
    "files_to_check",
    "finding_rows",
    "sort_findings",
    "visible_findings",
]

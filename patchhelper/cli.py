import logging
from pathlib import Path

import typer

from patchhelper.checks.models import Level
from patchhelper.classify.classifier import analyse_diff
from patchhelper.classify.models import RunStatus
from patchhelper.config import AuditSettings
from patchhelper.exceptions import ManifestError, ParseError
from patchhelper.logging import setup_logging
from patchhelper.platform.manifest import load_project
from patchhelper.reporting.outputs import (
    default_output_paths,
    resolve_junit_path,
    write_error_patch,
    write_files_to_check,
    write_output,
)
from patchhelper.reporting.render import (
    render_console_report,
    render_junit_xml,
    render_undiagnosable,
)
from patchhelper.reporting.summary import (
    count_levels,
    files_to_check,
    finding_rows,
    sort_findings,
    visible_findings,
)

app = typer.Typer(no_args_is_help=True)

PATCH_FILE_NAME = "vendor.patch"
FAIL_ON_CHOICES = {"warn": Level.WARN, "info": Level.INFO, "ignore": Level.IGNORE, "never": None}


@app.command("analyse")
def analyse_cmd(
    project: Path = typer.Argument(..., help="Path to the project containing vendor.patch"),
    manifest: Path | None = typer.Option(
        None, "--manifest", help="Project manifest (default: PROJECT/patchhelper.yaml)"
    ),
    auto_theme_update: int | None = typer.Option(
        None, "--auto-theme-update", "-a", help="Fuzz factor for automatically applying changes to local theme"
    ),
    sort_by_type: bool = typer.Option(False, "--sort-by-type", help="Sort the output by override type"),
    threeway: bool = typer.Option(
        False, "--phpstorm-threeway-diff-commands", help="Output phpstorm threeway diff commands"
    ),
    vendor_namespaces: str | None = typer.Option(
        None, "--vendor-namespaces", help="Only show custom modules with these namespaces (comma separated list)"
    ),
    path_filter: str | None = typer.Option(
        None, "--filter", help="Filter the patchfile for entries containing this phrase"
    ),
    pad_table_columns: int | None = typer.Option(None, "--pad-table-columns", help="Pad the table column width"),
    strict: bool = typer.Option(False, "--strict", help="Undiagnosable files abort the run"),
    show_info: bool = typer.Option(False, "--show-info", help="Show all INFO level reports"),
    show_ignore: bool = typer.Option(False, "--show-ignore", help="Show all IGNORE level reports"),
    junit_xml: str | None = typer.Option(
        None, "--junit-xml", help="Output JUnit compatible XML report to specified file"
    ),
    fail_on: str = typer.Option("warn", "--fail-on", help="Lowest level that fails the run: warn,info,ignore,never"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each file as it is analysed"),
):
    """
    Analyse a project which has had a ./vendor.patch file created with diff -urN.
    """
    setup_logging(logging.DEBUG if verbose else logging.WARNING)

    if not project.is_dir():
        raise typer.BadParameter(f"Invalid project directory specified: {project}")
    patch_path = project / PATCH_FILE_NAME
    if not patch_path.is_file():
        raise typer.BadParameter(f"{PATCH_FILE_NAME} does not exist in {project}, see README.md")
    if fail_on.lower() not in FAIL_ON_CHOICES:
        raise typer.BadParameter(f"--fail-on must be one of {', '.join(FAIL_ON_CHOICES)}")

    namespaces = [ns for ns in (vendor_namespaces or "").replace(" ", "").split(",") if ns]
    settings = AuditSettings.from_env(
        auto_apply_fuzz=auto_theme_update,
        strict=strict or None,
        vendor_namespaces=namespaces,
        path_filter=path_filter,
        show_info=show_info,
        show_ignore=show_ignore,
        sort_by_type=sort_by_type,
        threeway=threeway,
        pad_table_columns=pad_table_columns,
    )
    settings = settings.model_copy(update={"fail_on": FAIL_ON_CHOICES[fail_on.lower()]})

    try:
        platform = load_project(project, manifest)
    except ManifestError as e:
        raise typer.BadParameter(str(e))

    for boot_error in platform.registry.boot_errors:
        typer.echo(f"Platform boot error, could not work out db schema files: {boot_error}", err=True)

    try:
        report = analyse_diff(
            patch_path.read_text(encoding="utf-8"),
            platform.registry,
            platform.graph,
            project,
            settings,
        )
    except ParseError as e:
        typer.echo(f"The patch file could not be parsed: {e}", err=True)
        raise typer.Exit(code=int(RunStatus.PARSE_FAILURE))

    outputs = default_output_paths(project)
    findings = sort_findings(
        visible_findings(report.findings, settings.show_info, settings.show_ignore),
        by_type=settings.sort_by_type,
    )
    rows = finding_rows(findings, with_auto_applied=report.auto_apply, pad=settings.pad_table_columns)

    if report.undiagnosable:
        write_error_patch(outputs["files_error"], report.undiagnosable)
        for line in render_undiagnosable(report.undiagnosable, outputs["files_error"]):
            typer.echo(line, err=True)

    if junit_xml is not None:
        xml_path = resolve_junit_path(project, junit_xml)
        write_output(xml_path, render_junit_xml(findings, count_levels(findings), str(project)))
        typer.echo(f"JUnit XML report written to: {xml_path}")

    typer.echo(
        render_console_report(
            report,
            rows,
            show_info=settings.show_info,
            show_ignore=settings.show_ignore,
            threeway=settings.threeway,
            files_to_check_path=outputs["files_to_check"],
        ),
        nl=False,
    )
    write_files_to_check(
        outputs["files_to_check"],
        files_to_check(report, settings.show_info, settings.show_ignore),
    )

    raise typer.Exit(code=int(report.status(settings.fail_on)))


@app.callback()
def main():
    """
    Upgrade patch helper CLI
    """
    pass

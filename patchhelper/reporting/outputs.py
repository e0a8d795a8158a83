import logging
from pathlib import Path

from patchhelper.classify.models import Undiagnosable
from patchhelper.diff.models import PatchFile
from patchhelper.diff.parser import render_patch_file

logger = logging.getLogger(__name__)

FILES_TO_CHECK_NAME = "vendor_files_to_check.patch"
FILES_ERROR_NAME = "vendor_files_error.patch"
DEFAULT_JUNIT_NAME = "junit.xml"


def default_output_paths(project_dir: Path) -> dict[str, Path]:
    return {
        "files_to_check": Path(project_dir) / FILES_TO_CHECK_NAME,
        "files_error": Path(project_dir) / FILES_ERROR_NAME,
    }


def resolve_junit_path(project_dir: Path, junit_xml: str) -> Path:
    """Bare file names land in the project directory; anything with a slash is used as given."""
    name = junit_xml or DEFAULT_JUNIT_NAME
    if "/" not in name:
        return Path(project_dir) / name
    return Path(name)


def write_output(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.debug("Wrote %s (%d bytes)", path, len(content))
    return path


def write_files_to_check(path: Path, patch_files: list[PatchFile]) -> Path:
    return write_output(path, "".join(render_patch_file(patch_file) for patch_file in patch_files))


def write_error_patch(path: Path, entries: list[Undiagnosable]) -> Path:
    return write_output(path, "".join(render_patch_file(entry.patch_file) for entry in entries))

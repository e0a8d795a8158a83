import logging
from pathlib import Path

from patchhelper.checks.models import FileOverridePolicy, Level
from patchhelper.diff.fuzzy import FuzzyPatchApplier, hunk_maps_cleanly
from patchhelper.diff.models import PatchFile

logger = logging.getLogger(__name__)


def _significant(text: str, min_chars: int) -> bool:
    return sum(1 for char in text if char.isalnum()) >= min_chars


def changed_lines_intersect(patch_file: PatchFile, local_lines: list[str], min_chars: int) -> bool:
    local = {line.strip() for line in local_lines if line.strip()}
    for hunk in patch_file.hunks:
        for op in hunk.changed_ops():
            text = op.text.strip()
            if text and _significant(text, min_chars) and text in local:
                return True
    return False


def classify_file_override(
    patch_file: PatchFile,
    local_path: Path,
    policy: FileOverridePolicy,
) -> Level | None:
    """Level for a local copy of `patch_file`, or None when there is no copy."""
    if not local_path.is_file():
        return None

    if patch_file.is_deleted_file:
        return Level.WARN

    try:
        local_lines = local_path.read_text(encoding="utf-8").splitlines()
    except UnicodeDecodeError:
        logger.warning("%s is not valid UTF-8, cannot compare with the vendor diff", local_path)
        return Level.WARN

    if not patch_file.hunks:
        return Level.INFO

    applier = FuzzyPatchApplier(policy.match_fuzz)
    mapped = [hunk_maps_cleanly(applier, hunk, local_lines) for hunk in patch_file.hunks]
    if all(mapped):
        return Level.INFO

    intersects = any(mapped) or changed_lines_intersect(
        patch_file, local_lines, policy.min_significant_chars
    )
    if not intersects and policy.ignore_when_disjoint:
        return Level.IGNORE
    return Level.WARN

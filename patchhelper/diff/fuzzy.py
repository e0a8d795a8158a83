import logging
from dataclasses import dataclass
from pathlib import Path

from patchhelper.diff.models import Hunk, PatchFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HunkMatch:
    position: int
    length: int
    offset: int
    fuzz: int
    top: int
    bottom: int


def _expected_index(hunk: Hunk) -> int:
    # a zero-length old side inserts after line old_start
    if hunk.old_lines == 0:
        return hunk.old_start
    return hunk.old_start - 1


class FuzzyPatchApplier:
    """
    Re-apply hunks onto a drifted copy of a file, in the manner of
    `patch --fuzz`.

    Each fuzz level trims up to that many context lines from the top and the
    bottom of the hunk's old side, then searches outwards from the declared
    position. Level 0 is always tried first, so raising `fuzz` can only add
    matches.
    """

    def __init__(self, fuzz: int = 0, max_offset: int | None = None):
        if fuzz < 0:
            raise ValueError("fuzz must be >= 0")
        self.fuzz = fuzz
        self.max_offset = max_offset

    def locate(
        self,
        hunk: Hunk,
        lines: list[str],
        offset: int = 0,
        min_position: int = 0,
    ) -> HunkMatch | None:
        old_side = hunk.old_side()
        leading = hunk.leading_context()
        trailing = hunk.trailing_context()
        tried: set[tuple[int, int]] = set()

        for level in range(self.fuzz + 1):
            top = min(level, leading)
            bottom = min(level, trailing)
            if (top, bottom) in tried:
                continue
            tried.add((top, bottom))

            pattern = old_side[top:len(old_side) - bottom]
            if old_side and not pattern:
                continue

            expected = _expected_index(hunk) + top + offset
            position = self._search(pattern, lines, expected, min_position)
            if position is not None:
                return HunkMatch(
                    position=position,
                    length=len(pattern),
                    offset=position - (_expected_index(hunk) + top),
                    fuzz=level,
                    top=top,
                    bottom=bottom,
                )
        return None

    def _search(
        self,
        pattern: list[str],
        lines: list[str],
        expected: int,
        min_position: int,
    ) -> int | None:
        last_start = len(lines) - len(pattern)
        if last_start < min_position:
            return None
        window = self.max_offset if self.max_offset is not None else len(lines) + abs(expected)

        for distance in range(window + 1):
            candidates = (expected,) if distance == 0 else (expected + distance, expected - distance)
            for position in candidates:
                if position < min_position or position > last_start:
                    continue
                if lines[position:position + len(pattern)] == pattern:
                    return position
            if expected - distance < min_position and expected + distance > last_start:
                break
        return None

    def locate_all(self, patch_file: PatchFile, lines: list[str]) -> list[HunkMatch] | None:
        matches: list[HunkMatch] = []
        offset = 0
        min_position = 0
        for hunk in patch_file.hunks:
            match = self.locate(hunk, lines, offset=offset, min_position=min_position)
            if match is None:
                logger.debug(
                    "Hunk -%d,%d of %s does not match within fuzz %d",
                    hunk.old_start,
                    hunk.old_lines,
                    patch_file.path,
                    self.fuzz,
                )
                return None
            matches.append(match)
            offset = match.offset
            min_position = match.position + match.length
        return matches

    def apply_lines(self, patch_file: PatchFile, lines: list[str]) -> list[str] | None:
        matches = self.locate_all(patch_file, lines)
        if matches is None:
            return None

        result: list[str] = []
        cursor = 0
        for hunk, match in zip(patch_file.hunks, matches):
            new_side = hunk.new_side()
            result.extend(lines[cursor:match.position])
            result.extend(new_side[match.top:len(new_side) - match.bottom])
            cursor = match.position + match.length
        result.extend(lines[cursor:])
        return result

    def apply_to_file(self, patch_file: PatchFile, target: Path, write: bool = False) -> bool:
        """
        Check (and with `write=True`, apply) every hunk of `patch_file`
        against `target`. Nothing is written unless all hunks match.
        """
        try:
            with open(target, encoding="utf-8", newline="") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read %s for patching: %s", target, e)
            return False

        newline = detect_newline(content)
        trailing = newline if content.endswith(newline) else ""
        body = content[:len(content) - len(trailing)]
        patched = self.apply_lines(patch_file, body.split(newline) if body else [])
        if patched is None:
            return False

        if write:
            with open(target, "w", encoding="utf-8", newline="") as f:
                f.write(newline.join(patched) + trailing)
            logger.info("Applied %d hunk(s) to %s (fuzz %d)", len(patch_file.hunks), target, self.fuzz)
        return True


def detect_newline(content: str) -> str:
    """`\\r\\n` when every line of `content` ends that way, else `\\n`."""
    crlf = content.count("\r\n")
    if crlf and crlf == content.count("\n"):
        return "\r\n"
    return "\n"


def hunk_maps_cleanly(applier: FuzzyPatchApplier, hunk: Hunk, lines: list[str]) -> bool:
    """True when the hunk's region is untouched locally or the change is already there."""
    if applier.locate(hunk, lines) is not None:
        return True
    return applier.locate(hunk.reversed(), lines) is not None

import logging
import re

from patchhelper.diff.models import DEV_NULL, Hunk, LineKind, LineOp, PatchFile
from patchhelper.exceptions import ParseError

logger = logging.getLogger(__name__)

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(?: ?(.*))?$")
NO_NEWLINE_MARKER = "\\ No newline at end of file"


def _normalize_path(raw: str) -> str:
    path = raw.split("\t", 1)[0].strip()
    if path == DEV_NULL:
        return path
    if path.startswith("a/") or path.startswith("b/"):
        path = path[2:]
    return path


def _parse_hunk_header(line: str, line_number: int) -> Hunk:
    match = HUNK_HEADER_RE.match(line)
    if match is None:
        raise ParseError(f"Malformed hunk header: {line!r}", line_number)
    old_start, old_lines, new_start, new_lines, section = match.groups()
    return Hunk(
        old_start=int(old_start),
        old_lines=int(old_lines) if old_lines is not None else 1,
        new_start=int(new_start),
        new_lines=int(new_lines) if new_lines is not None else 1,
        section=(section or "").strip(),
    )


def _hunk_end(hunk: Hunk) -> int:
    return hunk.old_start + max(hunk.old_lines, 1)


class _HunkBuilder:
    def __init__(self, patch_file: PatchFile, hunk: Hunk, line_number: int):
        self.patch_file = patch_file
        self.hunk = hunk
        self.header_line = line_number
        self.old_remaining = hunk.old_lines
        self.new_remaining = hunk.new_lines

    @property
    def complete(self) -> bool:
        return self.old_remaining == 0 and self.new_remaining == 0

    def accepts(self, line: str) -> bool:
        if self.complete:
            return False
        if line == "" or line.startswith(" "):
            return self.old_remaining > 0 and self.new_remaining > 0
        if line.startswith("-"):
            return self.old_remaining > 0
        if line.startswith("+"):
            return self.new_remaining > 0
        return False

    def add(self, line: str, line_number: int) -> None:
        if line == "" or line.startswith(" "):
            kind = LineKind.CONTEXT
            self.old_remaining -= 1
            self.new_remaining -= 1
        elif line.startswith("-"):
            kind = LineKind.REMOVE
            self.old_remaining -= 1
        else:
            kind = LineKind.ADD
            self.new_remaining -= 1
        self.hunk.ops.append(LineOp(kind, line[1:]))

    def mark_no_newline(self) -> None:
        if self.hunk.ops:
            last = self.hunk.ops[-1]
            self.hunk.ops[-1] = LineOp(last.kind, last.text, no_newline=True)

    def verify(self, line_number: int) -> None:
        if not self.complete:
            raise ParseError(
                "Hunk line counts disagree with header "
                f"-{self.hunk.old_start},{self.hunk.old_lines} "
                f"+{self.hunk.new_start},{self.hunk.new_lines} "
                f"({self.old_remaining} old and {self.new_remaining} new lines missing)",
                line_number,
            )


def parse_unified_diff(patch_txt: str) -> list[PatchFile]:
    """
    Parse `diff -urN` style output into one PatchFile per changed file.

    A unified diff looks like:
    ```diff
    --- a/vendor/acme/module-foo/Model/Bar.php
    +++ b/vendor/acme/module-foo/Model/Bar.php
    @@ -10,6 +10,7 @@ class Bar
         public function execute()
         {
    +        $this->log();
             return true;
         }
    ```

    Hunk bodies are read by their declared counts, so a removed line that
    happens to start with `---` is still part of the hunk. Lines outside a
    hunk that are not file or hunk headers (`diff -urN ...`, `Only in ...`)
    are skipped.

    Raises:
        ParseError: malformed hunk header, incomplete `---`/`+++` pair,
            hunk before any file header, line counts disagreeing with the
            header, or overlapping/out-of-order hunks.
    """

    lines = patch_txt.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    files: list[PatchFile] = []
    current: PatchFile | None = None
    builder: _HunkBuilder | None = None
    index = 0

    def close_hunk(line_number: int) -> None:
        nonlocal builder
        if builder is None:
            return
        builder.verify(line_number)
        patch_file = builder.patch_file
        if patch_file.hunks:
            previous = patch_file.hunks[-1]
            if builder.hunk.old_start < _hunk_end(previous):
                raise ParseError(
                    f"Hunk at line {builder.hunk.old_start} overlaps or precedes the previous hunk "
                    f"in {patch_file.path}",
                    builder.header_line,
                )
        patch_file.hunks.append(builder.hunk)
        builder = None

    while index < len(lines):
        line = lines[index].rstrip("\r")
        line_number = index + 1

        if builder is not None and builder.accepts(line):
            builder.add(line, line_number)
            index += 1
            continue

        if line.startswith("\\"):
            if builder is None:
                raise ParseError("Unexpected no-newline marker outside a hunk", line_number)
            builder.mark_no_newline()
            index += 1
            continue

        close_hunk(line_number)

        if line.startswith("--- "):
            if index + 1 >= len(lines) or not lines[index + 1].startswith("+++ "):
                raise ParseError(f"File header {line!r} has no matching '+++' line", line_number)
            old_path = _normalize_path(line[4:])
            new_path = _normalize_path(lines[index + 1].rstrip("\r")[4:])
            current = PatchFile(
                path=old_path if new_path == DEV_NULL else new_path,
                old_path=old_path,
                new_path=new_path,
            )
            files.append(current)
            index += 2
            continue

        if line.startswith("+++ "):
            raise ParseError(f"File header {line!r} has no preceding '---' line", line_number)

        if line.startswith("@@"):
            if current is None:
                raise ParseError("Hunk header before any file header", line_number)
            builder = _HunkBuilder(current, _parse_hunk_header(line, line_number), line_number)
            index += 1
            continue

        if builder is None and current is not None and current.hunks and line[:1] in {" ", "+", "-"}:
            raise ParseError(
                f"Line outside any hunk in {current.path} (hunk longer than declared?)",
                line_number,
            )

        index += 1

    close_hunk(len(lines))

    logger.debug("Parsed %d file patches from unified diff", len(files))
    return files


def filter_patch_files(files: list[PatchFile], phrase: str | None) -> list[PatchFile]:
    if not phrase:
        return list(files)
    phrase = phrase.strip("'\"")
    if not phrase:
        return list(files)
    return [patch_file for patch_file in files if phrase in patch_file.path]


def _render_header_path(path: str | None, fallback: str, prefix: str) -> str:
    if path == DEV_NULL:
        return DEV_NULL
    return prefix + (path or fallback)


def render_hunk(hunk: Hunk) -> list[str]:
    header = f"@@ -{hunk.old_start},{hunk.old_lines} +{hunk.new_start},{hunk.new_lines} @@"
    if hunk.section:
        header += f" {hunk.section}"
    out = [header]
    for op in hunk.ops:
        out.append(f"{op.kind.value}{op.text}")
        if op.no_newline:
            out.append(NO_NEWLINE_MARKER)
    return out


def render_patch_file(patch_file: PatchFile) -> str:
    out = [
        "--- " + _render_header_path(patch_file.old_path, patch_file.path, "a/"),
        "+++ " + _render_header_path(patch_file.new_path, patch_file.path, "b/"),
    ]
    for hunk in patch_file.hunks:
        out.extend(render_hunk(hunk))
    return "\n".join(out) + "\n"


def render_unified_diff(files: list[PatchFile]) -> str:
    return "".join(render_patch_file(patch_file) for patch_file in files)

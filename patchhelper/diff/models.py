from dataclasses import dataclass, field
from enum import StrEnum

DEV_NULL = "/dev/null"


class LineKind(StrEnum):
    CONTEXT = " "
    ADD = "+"
    REMOVE = "-"


@dataclass(frozen=True)
class LineOp:
    kind: LineKind
    text: str
    no_newline: bool = False


@dataclass
class Hunk:
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    ops: list[LineOp] = field(default_factory=list)
    section: str = ""

    def old_side(self) -> list[str]:
        return [op.text for op in self.ops if op.kind != LineKind.ADD]

    def new_side(self) -> list[str]:
        return [op.text for op in self.ops if op.kind != LineKind.REMOVE]

    def changed_ops(self) -> list[LineOp]:
        return [op for op in self.ops if op.kind != LineKind.CONTEXT]

    def leading_context(self) -> int:
        count = 0
        for op in self.ops:
            if op.kind != LineKind.CONTEXT:
                break
            count += 1
        return count

    def trailing_context(self) -> int:
        count = 0
        for op in reversed(self.ops):
            if op.kind != LineKind.CONTEXT:
                break
            count += 1
        return count

    def touched_new_ranges(self) -> list[tuple[int, int]]:
        """1-based new-file line ranges that the hunk's changes land on.

        An added line is the range `(L, L)`. A removed line leaves a gap
        between new lines `L - 1` and `L` and is reported as `(L - 1, L)`, so
        it only belongs to a method whose span holds both lines.
        """
        touched: set[tuple[int, int]] = set()
        # a +N,0 header names the line before the gap
        new_line = self.new_start + 1 if self.new_lines == 0 else self.new_start
        for op in self.ops:
            if op.kind == LineKind.CONTEXT:
                new_line += 1
            elif op.kind == LineKind.ADD:
                touched.add((new_line, new_line))
                new_line += 1
            else:
                touched.add((new_line - 1, new_line))
        return sorted(touched)

    def reversed(self) -> "Hunk":
        swapped = {
            LineKind.ADD: LineKind.REMOVE,
            LineKind.REMOVE: LineKind.ADD,
            LineKind.CONTEXT: LineKind.CONTEXT,
        }
        return Hunk(
            old_start=self.new_start,
            old_lines=self.new_lines,
            new_start=self.old_start,
            new_lines=self.old_lines,
            ops=[LineOp(swapped[op.kind], op.text, op.no_newline) for op in self.ops],
            section=self.section,
        )


@dataclass
class PatchFile:
    path: str
    hunks: list[Hunk] = field(default_factory=list)
    old_path: str | None = None
    new_path: str | None = None

    # `diff -N` keeps both paths and emits a single -0,0 or +0,0 hunk instead of /dev/null
    @property
    def is_new_file(self) -> bool:
        if self.old_path == DEV_NULL:
            return True
        return bool(self.hunks) and all(h.old_start == 0 and h.old_lines == 0 for h in self.hunks)

    @property
    def is_deleted_file(self) -> bool:
        if self.new_path == DEV_NULL:
            return True
        return bool(self.hunks) and all(h.new_start == 0 and h.new_lines == 0 for h in self.hunks)

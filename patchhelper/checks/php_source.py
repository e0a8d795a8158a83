import re
from dataclasses import dataclass

METHOD_RE = re.compile(
    r"^\s*((?:(?:abstract|final|static|public|protected|private)\s+)*)function\s+&?\s*(\w+)\s*\(",
    re.IGNORECASE,
)
PROPERTY_RE = re.compile(
    r"^\s*((?:(?:public|protected|private|static|readonly|var)\s+)+)(?:\??[\w\\|]+\s+)?\$\w+",
    re.IGNORECASE,
)
CONST_RE = re.compile(
    r"^\s*((?:(?:final|public|protected|private)\s+)*)const\s+\w+",
    re.IGNORECASE,
)
CLASS_RE = re.compile(
    r"^\s*(?:(?:abstract|final|readonly)\s+)*(?:class|interface|trait|enum)\s+\w+",
    re.IGNORECASE,
)
_STRING_RE = re.compile(r"'(?:\\.|[^'\\])*'|\"(?:\\.|[^\"\\])*\"")
_COMMENT_RE = re.compile(r"/\*.*?\*/|//.*$")

CONSTRUCTOR = "__construct"


class SourceScanError(Exception):
    pass


@dataclass(frozen=True)
class MethodSpan:
    name: str
    visibility: str
    start: int
    end: int

    def contains(self, line_number: int) -> bool:
        return self.start <= line_number <= self.end

    @property
    def is_public_surface(self) -> bool:
        return self.visibility != "private" or self.name.lower() == CONSTRUCTOR


def _visibility(modifiers: str) -> str:
    words = modifiers.lower().split()
    for visibility in ("private", "protected", "public"):
        if visibility in words:
            return visibility
    return "public"


def _code_only(line: str) -> str:
    return _COMMENT_RE.sub("", _STRING_RE.sub("''", line))


def scan_methods(lines: list[str]) -> list[MethodSpan]:
    """
    Find named method declarations and the 1-based line span of each, from
    the declaration line to its closing brace (or `;` for abstract methods).

    Raises:
        SourceScanError: a method body never closes.
    """
    spans: list[MethodSpan] = []
    for index, line in enumerate(lines):
        match = METHOD_RE.match(line)
        if match is None:
            continue
        modifiers, name = match.groups()

        depth = 0
        opened = False
        end: int | None = None
        for cursor in range(index, len(lines)):
            code = _code_only(lines[cursor])
            if cursor == index:
                code = code[match.end() - 1:]
            for char in code:
                if char == "{":
                    depth += 1
                    opened = True
                elif char == "}":
                    depth -= 1
                elif char == ";" and not opened and depth == 0:
                    end = cursor + 1
                    break
                if opened and depth == 0:
                    end = cursor + 1
                    break
            if end is not None:
                break

        if end is None:
            raise SourceScanError(f"Method {name} declared on line {index + 1} has unbalanced braces")
        spans.append(MethodSpan(name=name, visibility=_visibility(modifiers), start=index + 1, end=end))
    return spans


def declaration_visibility(text: str) -> str | None:
    """Visibility of a member or class declared on this line, else None."""
    match = METHOD_RE.match(text)
    if match:
        if match.group(2).lower() == CONSTRUCTOR:
            return "public"
        return _visibility(match.group(1))
    match = PROPERTY_RE.match(text)
    if match:
        return _visibility(match.group(1))
    match = CONST_RE.match(text)
    if match:
        return _visibility(match.group(1))
    if CLASS_RE.match(text):
        return "public"
    return None


def declared_method(text: str) -> str | None:
    match = METHOD_RE.match(text)
    return match.group(2) if match else None

"""
Line classifier for Kotlin-shaped fragments.

A deliberately shallow, line-based classifier with a closed set of
categories. It never parses Kotlin; a declaration is a recognizable
``fun``/``class``/``object``/``interface``/``typealias``/property line that
starts at column 0.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class LineKind(str, Enum):
    """Closed set of line categories."""

    PACKAGE = "package"
    IMPORT = "import"
    DECLARATION = "declaration"
    STATEMENT = "statement"
    BLANK = "blank"  # empty or comment-only


class FragmentKind(str, Enum):
    """Classification of a whole fragment."""

    EMPTY = "empty"
    IMPORTS = "imports"
    TOPLEVEL = "toplevel"
    STATEMENTS = "statements"


_PACKAGE = re.compile(r"^\s*package\s+[\w.`]+\s*;?\s*$")
_IMPORT = re.compile(r"^\s*import\s+[\w.`]+(?:\.\*)?(?:\s+as\s+\w+)?\s*;?\s*$")
_COMMENT = re.compile(r"^\s*(?://|/\*|\*|\*/)")
_MODIFIERS = (
    "public|private|internal|protected|inline|suspend|data|sealed|enum|abstract|open|final|"
    "override|tailrec|operator|infix|const|lateinit|annotation|value|inner|external|expect|actual"
)
_DECLARATION = re.compile(
    r"^(?:@[\w.]+(?:\([^)]*\))?\s+)*"
    rf"(?:(?:{_MODIFIERS})\s+)*"
    r"(?:fun\b|class\b|object\b|interface\b|typealias\b|(?:val|var)\s+[\w`]+(?:\s*[:=]|\s+by\b|\s*$))"
)
_ANNOTATION_ONLY = re.compile(r"^@[\w.]+(?:\([^)]*\))?\s*$")


@dataclass(frozen=True)
class ClassifiedLine:
    """A source line tagged with its category."""

    number: int
    text: str
    kind: LineKind


def split_lines(value: str | Iterable[str] | None) -> list[str]:
    """Split a string or list of strings into individual lines."""
    if value is None:
        return []
    if isinstance(value, str):
        return value.splitlines()
    out: list[str] = []
    for item in value:
        out.extend(str(item).splitlines() or [""])
    return out


def classify_line(line: str) -> LineKind:
    stripped = line.strip()
    if not stripped or _COMMENT.match(line):
        return LineKind.BLANK
    if _PACKAGE.match(line):
        return LineKind.PACKAGE
    if _IMPORT.match(line):
        return LineKind.IMPORT
    # Column 0 only: indented declarations are local to a body
    if not line[:1].isspace() and (_DECLARATION.match(line) or _ANNOTATION_ONLY.match(line)):
        return LineKind.DECLARATION
    return LineKind.STATEMENT


def classify_lines(value: str | Iterable[str] | None) -> list[ClassifiedLine]:
    return [
        ClassifiedLine(number=i, text=line, kind=classify_line(line))
        for i, line in enumerate(split_lines(value), start=1)
    ]


def kinds(lines: Iterable[ClassifiedLine]) -> set[LineKind]:
    return {line.kind for line in lines}


def classify_fragment(value: str | Iterable[str] | None) -> FragmentKind:
    """Classify a whole fragment.

    IMPORTS: every non-blank line is an import.
    TOPLEVEL: contains at least one column-0 declaration. Package and import
    lines next to it are relocated by the caller.
    STATEMENTS: anything else.
    """
    found = kinds(classify_lines(value)) - {LineKind.BLANK}
    if not found:
        return FragmentKind.EMPTY
    if found == {LineKind.IMPORT}:
        return FragmentKind.IMPORTS
    if LineKind.DECLARATION in found:
        return FragmentKind.TOPLEVEL
    return FragmentKind.STATEMENTS


def first_lines(value: str | Iterable[str] | None, n: int = 6) -> str:
    """First ``n`` lines joined, for issue samples."""
    return "\n".join(split_lines(value)[:n])

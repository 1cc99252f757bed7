"""
Marker replacement primitives.

Text markers are bare ``NDJC:<NAME>`` tokens. Block markers are
``<!-- NDJC:BLOCK:<NAME> -->`` comments, optionally behind a ``//`` line
comment in source files and optionally closed by ``<!-- /NDJC:BLOCK:<NAME> -->``.
Each replacement yields an :class:`AnchorChange` for the audit trail.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from pathlib import PurePath

from ...models.apply import AnchorChange

SAMPLE_RADIUS = 40

Escaper = Callable[[str], str]


def sample_around(text: str, start: int, end: int | None = None) -> str:
    end = start if end is None else end
    return text[max(0, start - SAMPLE_RADIUS) : end + SAMPLE_RADIUS]


def xml_escape(value: str) -> str:
    return (
        value.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def android_string_escape(value: str) -> str:
    """Escape a value for the body of a ``<string>`` resource."""
    escaped = value.replace("\\", "\\\\").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    escaped = escaped.replace("'", "\\'").replace('"', '\\"').replace("\n", "\\n")
    if escaped[:1] in ("@", "?"):
        escaped = "\\" + escaped
    return escaped


def code_string_escape(value: str) -> str:
    """Escape a value placed inside a double-quoted Kotlin or Groovy string."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$").replace("\n", "\\n")


def escaper_for(path: str | PurePath) -> Escaper:
    p = PurePath(path)
    if p.suffix == ".xml":
        return android_string_escape if p.parent.name.startswith("values") else xml_escape
    if p.suffix in (".kt", ".kts", ".gradle", ".java"):
        return code_string_escape
    return lambda value: value


def text_marker_pattern(name: str) -> re.Pattern[str]:
    return re.compile(rf"NDJC:{re.escape(name)}(?![A-Za-z0-9_:])")


def block_marker_pattern(name: str) -> re.Pattern[str]:
    n = re.escape(name)
    return re.compile(
        rf"(?P<indent>[ \t]*)(?://[ \t]*)?<!--\s*NDJC:BLOCK:{n}\s*-->"
        rf"(?:(?P<inner>.*?)(?://[ \t]*)?<!--\s*/NDJC:BLOCK:{n}\s*-->)?",
        re.DOTALL,
    )


def replace_text_marker(content: str, file: str, name: str, value: str, escape: Escaper) -> tuple[str, AnchorChange]:
    """Replace every ``NDJC:<name>`` occurrence with the escaped value."""
    marker = f"NDJC:{name}"
    pattern = text_marker_pattern(name)
    first = pattern.search(content)
    change = AnchorChange(file=file, marker=marker, found=first is not None)
    if first is None or not value:
        return content, change

    replacement = escape(value)
    updated, count = pattern.subn(lambda _: replacement, content)
    change.replaced_count = count
    change.before_sample = sample_around(content, first.start(), first.end())
    change.after_sample = sample_around(updated, first.start(), first.start() + len(replacement))
    return updated, change


def indent_block(value: str, indent: str) -> str:
    return "\n".join(indent + line if line.strip() else "" for line in value.splitlines())


def replace_block_marker(content: str, file: str, name: str, value: str) -> tuple[str, AnchorChange]:
    """Replace a block marker (and its optional closing marker) with ``value``."""
    marker = f"NDJC:BLOCK:{name}"
    pattern = block_marker_pattern(name)
    first = pattern.search(content)
    change = AnchorChange(file=file, marker=marker, found=first is not None)
    if first is None or not value.strip():
        return content, change

    pieces: list[str] = []
    count = 0
    last = 0
    for match in pattern.finditer(content):
        pieces.append(content[last : match.start()])
        pieces.append(indent_block(value, match.group("indent")))
        last = match.end()
        count += 1
    pieces.append(content[last:])
    updated = "".join(pieces)

    change.replaced_count = count
    change.before_sample = sample_around(content, first.start(), first.end())
    change.after_sample = sample_around(updated, first.start(), first.start() + len(value))
    return updated, change

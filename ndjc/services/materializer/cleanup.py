"""Removal of leftover markers from a materialized tree."""

from __future__ import annotations

import re
from pathlib import Path

from ...core.logging import get_logger

logger = get_logger(__name__)

TEXT_SUFFIXES = frozenset({".xml", ".kt", ".kts", ".java", ".gradle", ".pro", ".properties", ".txt", ".json"})

_TOKEN = r"(?:NDJC:|\bBLOCK:[A-Z0-9_])"
_MARKER_LINE = re.compile(
    rf"^[ \t]*(?://[^\n]*{_TOKEN}[^\n]*|<!--[^\n]*?{_TOKEN}[^\n]*?-->|/\*[^\n]*?{_TOKEN}[^\n]*?\*/|#[^\n]*{_TOKEN}[^\n]*)[ \t]*\n?",
    re.MULTILINE,
)
_INLINE_HTML = re.compile(rf"<!--(?:(?!-->).)*?{_TOKEN}.*?-->", re.DOTALL)
_INLINE_BLOCK = re.compile(rf"/\*(?:(?!\*/).)*?{_TOKEN}.*?\*/", re.DOTALL)
_TRAILING_LINE = re.compile(rf"[ \t]*//[^\n]*{_TOKEN}[^\n]*$", re.MULTILINE)
_BARE = re.compile(r"NDJC:(?:BLOCK:)?[A-Za-z0-9_]+|\bBLOCK:[A-Z0-9_]+")


def strip_markers(text: str) -> str:
    """Strip marker comments and bare marker tokens from ``text``."""
    text = _MARKER_LINE.sub("", text)
    text = _INLINE_HTML.sub("", text)
    text = _INLINE_BLOCK.sub("", text)
    text = _TRAILING_LINE.sub("", text)
    return _BARE.sub("", text)


def cleanup_tree(root: Path) -> list[str]:
    """Strip markers from every text-like file under ``root``.

    Returns the relative paths of files that changed.
    """
    changed: list[str] = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix not in TEXT_SUFFIXES:
            continue
        try:
            original = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            continue
        cleaned = strip_markers(original)
        if cleaned != original:
            path.write_text(cleaned, encoding="utf-8")
            changed.append(path.relative_to(root).as_posix())
    logger.debug("Marker cleanup", files=len(changed))
    return changed

"""
Anchor key model and canonicalization.

Raw anchor keys arrive in many shapes (``PACKAGE_NAME``, ``NDJC:APP_LABEL``,
``res.drawable/icon.png``, ``hook.before build``). They are canonicalized once,
at the compiler boundary, into ``GROUP:NAME`` strings and :class:`AnchorKey`
values so later stages never parse prefixes again.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class AnchorGroup(str, Enum):
    """Closed set of anchor categories."""

    TEXT = "TEXT"
    BLOCK = "BLOCK"
    LIST = "LIST"
    IF = "IF"
    RES = "RES"
    HOOK = "HOOK"


MARKER_PREFIX = "NDJC:"

_RES_ALIAS = re.compile(r"^(?:res[.:]|resources:)", re.IGNORECASE)
_HOOK_ALIAS = re.compile(r"^hook[.:]", re.IGNORECASE)
_NDJC_BLOCK = re.compile(r"^NDJC:BLOCK:", re.IGNORECASE)
_NDJC_TEXT = re.compile(r"^NDJC:", re.IGNORECASE)
_EXPLICIT = re.compile(r"^(TEXT|BLOCK|LIST|IF|RES|HOOK):", re.IGNORECASE)
_RES_DIRS = re.compile(r"^(drawable|raw|font|mipmap|values|xml)[\w-]*/", re.IGNORECASE)
_WS = re.compile(r"\s+")


def _norm_name(name: str) -> str:
    return _WS.sub("_", name.strip()).upper()


def _norm_path(path: str) -> str:
    return path.strip().replace("\\", "/")


def canon_key(raw: str, group: AnchorGroup | str | None = None) -> str:
    """Canonicalize a raw anchor key into ``GROUP:NAME``.

    Resource paths keep their case, every other name is upper-cased with
    whitespace collapsed to ``_``. An explicit prefix on the key wins over
    ``group``; bare keys without a group are treated as text anchors.
    The function is idempotent.
    """
    key = str(raw or "").strip()
    if not key:
        return ""
    default = AnchorGroup(group.upper() if isinstance(group, str) else group) if group else AnchorGroup.TEXT

    if _RES_ALIAS.match(key):
        return f"RES:{_norm_path(_RES_ALIAS.sub('', key, count=1))}"
    if _HOOK_ALIAS.match(key):
        return f"HOOK:{_norm_name(_HOOK_ALIAS.sub('', key, count=1))}"
    if _NDJC_BLOCK.match(key):
        return f"BLOCK:{_norm_name(_NDJC_BLOCK.sub('', key, count=1))}"
    if _NDJC_TEXT.match(key):
        return f"TEXT:{_norm_name(_NDJC_TEXT.sub('', key, count=1))}"

    explicit = _EXPLICIT.match(key)
    if explicit:
        prefix = explicit.group(1).upper()
        return f"{prefix}:{_norm_name(key[explicit.end():])}"

    if default is AnchorGroup.RES:
        return f"RES:{_norm_path(key)}"
    return f"{default.value}:{_norm_name(key)}"


def looks_like_resource(raw: str) -> bool:
    """True for bare resource paths such as ``drawable/icon.png``."""
    return bool(_RES_DIRS.match(str(raw or "").strip()))


@dataclass(frozen=True)
class AnchorKey:
    """Discriminated anchor key: a group plus a name."""

    group: AnchorGroup
    name: str

    @classmethod
    def parse(cls, raw: str, group: AnchorGroup | str | None = None) -> AnchorKey:
        canonical = canon_key(raw, group)
        if not canonical:
            raise ValueError("empty anchor key")
        prefix, _, name = canonical.partition(":")
        return cls(AnchorGroup(prefix), name)

    @property
    def canonical(self) -> str:
        return f"{self.group.value}:{self.name}"

    @property
    def marker(self) -> str | None:
        """Template marker for text/block anchors, None for programmatic groups."""
        if self.group is AnchorGroup.TEXT:
            return f"{MARKER_PREFIX}{self.name}"
        if self.group is AnchorGroup.BLOCK:
            return f"{MARKER_PREFIX}BLOCK:{self.name}"
        return None

    def __str__(self) -> str:
        return self.canonical

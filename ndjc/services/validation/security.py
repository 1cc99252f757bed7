"""Security rules: forbidden permissions and dangerous code patterns."""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import Any

from ...models.contract import Contract, Encoding
from ...models.issues import Issue, excerpt

FORBIDDEN_PERMISSIONS = frozenset(
    {
        "android.permission.SEND_SMS",
        "android.permission.RECEIVE_SMS",
        "android.permission.READ_SMS",
        "android.permission.RECEIVE_MMS",
        "android.permission.RECEIVE_WAP_PUSH",
        "android.permission.CAMERA",
        "android.permission.SYSTEM_ALERT_WINDOW",
        "android.permission.READ_CALL_LOG",
        "android.permission.WRITE_CALL_LOG",
        "android.permission.PROCESS_OUTGOING_CALLS",
        "android.permission.REQUEST_INSTALL_PACKAGES",
    }
)

# XML namespace hosts appear in every layout/manifest
ALLOWED_HOSTS = frozenset({"schemas.android.com", "www.w3.org", "ns.adobe.com"})

_URL = re.compile(r"\b(?:https?|wss?|ftp)://([^\s/\"'<>:)]+)", re.IGNORECASE)
_IPV4 = re.compile(r"(?<![\w.])((?:\d{1,3}\.){3}\d{1,3})(?![\w.])")

CODE_PATTERNS: dict[str, re.Pattern[str]] = {
    "E_SECURITY_REFLECTION": re.compile(
        r"\bClass\.forName\s*\(|\.getDeclared(?:Method|Field|Constructor)s?\s*\("
        r"|\.setAccessible\s*\(\s*true|\bjava\.lang\.reflect\b|\bkotlin\.reflect\.full\b"
    ),
    "E_SECURITY_DYNAMIC_LOAD": re.compile(
        r"\b(?:Dex|PathDex|InMemoryDex|Path)ClassLoader\b|\bSystem\.load(?:Library)?\s*\(|\.loadClass\s*\("
    ),
    "E_SECURITY_EXEC": re.compile(
        r"\bRuntime\.getRuntime\s*\(\s*\)\s*\.exec\b|\bProcessBuilder\s*\(|\bRuntime\.exec\b"
    ),
}


def normalize_permission(name: str) -> str:
    name = name.strip()
    return name if "." in name else f"android.permission.{name}"


def _as_text(value: Any) -> str:
    if isinstance(value, list):
        return "\n".join(map(str, value))
    return "" if value is None else str(value)


def _scan_targets(contract: Contract) -> Iterator[tuple[str, str]]:
    for index, file in enumerate(contract.files):
        if file.encoding is Encoding.UTF8:
            yield f"files.{index}", file.content
    for group, anchors in (
        ("block", contract.anchors.block),
        ("hook", contract.anchors.hook),
        ("res", contract.anchors.res),
    ):
        for key, value in anchors.items():
            yield f"anchors.{group}.{key}", _as_text(value)
    for index, fragment in enumerate(contract.fragments):
        yield f"fragments.{index}", fragment


def _hardcoded_network(text: str) -> str | None:
    for match in _URL.finditer(text):
        if match.group(1).lower() not in ALLOWED_HOSTS:
            return match.group(0)
    for match in _IPV4.finditer(text):
        if all(int(octet) <= 255 for octet in match.group(1).split(".")):
            return match.group(1)
    return None


def check_security(contract: Contract) -> list[Issue]:
    """Flag forbidden permissions and dangerous patterns in code-bearing content."""
    issues: list[Issue] = []

    requested = list(contract.patches.manifest.permissions)
    if contract.anchors.gradle and contract.anchors.gradle.permissions:
        requested.extend(contract.anchors.gradle.permissions)
    for permission in dict.fromkeys(normalize_permission(p) for p in requested):
        if permission in FORBIDDEN_PERMISSIONS:
            issues.append(
                Issue.critical(
                    "E_SECURITY_PERMISSION",
                    f"forbidden permission: {permission}",
                    where="patches.manifest.permissions",
                )
            )

    allow_network = contract.metadata.constraints.allow_network
    for where, text in _scan_targets(contract):
        if not allow_network:
            hit = _hardcoded_network(text)
            if hit:
                issues.append(
                    Issue.critical(
                        "E_SECURITY_NETWORK",
                        "hard-coded network target",
                        where=where,
                        sample=excerpt(hit),
                    )
                )
        for code, pattern in CODE_PATTERNS.items():
            match = pattern.search(text)
            if match:
                issues.append(
                    Issue.critical(code, f"forbidden API usage: {match.group(0).strip()}", where=where, sample=excerpt(match.group(0)))
                )
    return issues

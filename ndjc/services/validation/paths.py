"""Package namespace and file path grammar rules."""

from __future__ import annotations

import re

from ...core.config import ValidationConfig
from ...models.anchors import AnchorGroup, canon_key
from ...models.contract import Contract, FileKind
from ...models.issues import Issue

PACKAGE_FORMAT = re.compile(r"^[a-z][a-z0-9_]*(?:\.[a-z][a-z0-9_]*)+$")

_ROOT = r"^(?:app/)?src/main/"
PATH_GRAMMAR: dict[FileKind, re.Pattern[str]] = {
    FileKind.SOURCE: re.compile(_ROOT + r"java/(?:[A-Za-z_]\w*/)*[A-Za-z_]\w*\.(?:kt|java)$"),
    FileKind.VALUES: re.compile(_ROOT + r"res/values(?:-[\w+-]+)?/[\w.-]+\.xml$"),
    FileKind.DRAWABLE: re.compile(
        _ROOT + r"res/(?:drawable|mipmap)(?:-[\w+-]+)?/[a-z0-9_]+\.(?:xml|png|webp|jpe?g)$"
    ),
    FileKind.RAW: re.compile(_ROOT + r"res/raw/[a-z0-9_]+\.\w+$"),
    FileKind.MANIFEST_PATCH: re.compile(_ROOT + r"AndroidManifest[\w.-]*\.xml$"),
}

_LAYOUT = re.compile(r"(?:^|/)res/layout[\w-]*(?:/|$)")
_DRIVE = re.compile(r"^[A-Za-z]:")

# Files the materializer fills from anchors or generates itself
RESERVED_RESOURCES = frozenset(
    {"values/strings.xml", "values/themes.xml", "values/ndjc_lists.xml", "xml/locales_config.xml"}
)


def is_unsafe_path(path: str) -> bool:
    """Traversal, absolute or drive-qualified paths."""
    normalized = path.replace("\\", "/")
    return (
        normalized.startswith("/")
        or bool(_DRIVE.match(normalized))
        or ".." in normalized.split("/")
    )


def is_layout_path(path: str) -> bool:
    """Paths under any ``res/layout*`` directory."""
    return bool(_LAYOUT.search(path.replace("\\", "/")))


def check_paths(contract: Contract, rules: ValidationConfig) -> list[Issue]:
    """Namespace, path grammar and package id agreement checks."""
    issues: list[Issue] = []
    package_id = contract.metadata.package_id

    if not PACKAGE_FORMAT.match(package_id):
        issues.append(
            Issue.critical("E_PACKAGE_FORMAT", f"malformed package id: {package_id}", where="metadata.packageId")
        )
    if not package_id.startswith(rules.package_prefix):
        issues.append(
            Issue.critical(
                "E_PACKAGE_PREFIX",
                f"packageId must start with {rules.package_prefix}",
                where="metadata.packageId",
            )
        )

    for index, file in enumerate(contract.files):
        where = f"files.{index}"
        path = file.path.replace("\\", "/")
        if is_unsafe_path(path):
            issues.append(Issue.critical("E_PATH_TRAVERSAL", f"unsafe path: {file.path}", where=where))
            continue
        if rules.forbid_layout_dir and is_layout_path(path):
            issues.append(
                Issue.critical("E_PATH_LAYOUT_FORBIDDEN", f"writing into res/layout is forbidden: {path}", where=where)
            )
            continue
        if not PATH_GRAMMAR[file.kind].match(path):
            issues.append(
                Issue.critical("E_PATH_KIND", f"path does not fit kind '{file.kind.value}': {path}", where=where)
            )

    for raw_key in contract.anchors.res:
        key = canon_key(raw_key, AnchorGroup.RES)
        if not key.startswith("RES:"):
            continue
        rel = key.partition(":")[2]
        where = f"anchors.res.{raw_key}"
        if is_unsafe_path(rel):
            issues.append(Issue.critical("E_PATH_TRAVERSAL", f"unsafe resource path: {rel}", anchor=key, where=where))
        elif rules.forbid_layout_dir and is_layout_path(f"res/{rel}"):
            issues.append(
                Issue.critical(
                    "E_PATH_LAYOUT_FORBIDDEN", f"writing into res/layout is forbidden: {rel}", anchor=key, where=where
                )
            )
        elif rel in RESERVED_RESOURCES:
            issues.append(
                Issue.critical(
                    "E_PATH_RES_RESERVED",
                    f"resource would replace a materialized file: {rel}",
                    anchor=key,
                    where=where,
                )
            )

    gradle = contract.anchors.gradle
    if gradle and gradle.application_id and gradle.application_id != package_id:
        issues.append(
            Issue.critical(
                "E_PATH_APPID_MISMATCH",
                f"gradle.applicationId {gradle.application_id} != packageId {package_id}",
                where="anchors.gradle.applicationId",
            )
        )

    for key, value in contract.anchors.text.items():
        if canon_key(key, "TEXT") == "TEXT:PACKAGE_NAME" and value not in (None, "") and value != package_id:
            issues.append(
                Issue.critical(
                    "E_PATH_PACKAGE_NAME_MISMATCH",
                    f"PACKAGE_NAME {value} != packageId {package_id}",
                    anchor="TEXT:PACKAGE_NAME",
                    where=f"anchors.text.{key}",
                )
            )
    return issues

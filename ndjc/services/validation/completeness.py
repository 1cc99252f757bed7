"""Contract completeness rules: mode/file agreement and required anchors."""

from __future__ import annotations

from typing import Any

from ...models.anchors import AnchorGroup, canon_key
from ...models.contract import Contract, Mode
from ...models.issues import Issue
from ...registry import AnchorRegistry


def _canonical_map(raw: dict[str, Any], group: AnchorGroup, registry: AnchorRegistry) -> dict[str, Any]:
    return {registry.resolve_alias(canon_key(k, group)): v for k, v in raw.items()}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def lint_contract(contract: Contract, registry: AnchorRegistry) -> list[Issue]:
    """Check mode/file agreement and presence of the registry's required anchors.

    Missing required lists are reported as warnings only; the compiler fills
    them with ``[]`` and the contract itself is never modified.
    """
    issues: list[Issue] = []

    if contract.mode is Mode.A and contract.files:
        issues.append(Issue.critical("E_MODE_A_FILES", "mode A requires files=[]", where="files"))
    if contract.mode is Mode.B and not contract.files:
        issues.append(Issue.warning("W_MODE_B_EMPTY", "mode B should provide at least one file", where="files"))

    text = _canonical_map(contract.anchors.text, AnchorGroup.TEXT, registry)
    for name in registry.required.text:
        key = canon_key(name, AnchorGroup.TEXT)
        if _is_blank(text.get(key)):
            issues.append(
                Issue.critical(
                    f"E_TEXT_{key.partition(':')[2]}",
                    f"missing text anchor: {key}",
                    anchor=key,
                    where=f"anchors.text.{name}",
                )
            )

    block = _canonical_map(contract.anchors.block, AnchorGroup.BLOCK, registry)
    for name in registry.required.block:
        key = canon_key(name, AnchorGroup.BLOCK)
        bare = key.partition(":")[2]
        if _is_blank(block.get(key)):
            code = "E_SCREEN_CONTENT" if bare == "SCREEN_CONTENT" else f"E_BLOCK_{bare}"
            issues.append(
                Issue.critical(code, f"missing block anchor: {key}", anchor=key, where=f"anchors.block.{name}")
            )

    lists = _canonical_map(contract.anchors.list_, AnchorGroup.LIST, registry)
    for name in registry.required.list_:
        key = canon_key(name, AnchorGroup.LIST)
        if key not in lists:
            issues.append(
                Issue.warning(
                    "W_LIST_MISSING_FILLED",
                    f"list anchor missing, will be filled with []: {key}",
                    anchor=key,
                    where=f"anchors.list.{name}",
                )
            )
    return issues

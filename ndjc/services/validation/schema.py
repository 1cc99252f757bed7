"""Structural schema check for Contract v1."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ...models.contract import Contract
from ...models.issues import Issue, excerpt


def _where(loc: tuple[int | str, ...]) -> str:
    return ".".join(str(part) for part in loc) or "$"


def check_schema(data: Any) -> tuple[Contract | None, list[Issue]]:
    """Validate raw JSON data against the Contract model.

    Returns the parsed contract, or None together with one ``E_SCHEMA``
    issue per structural error.
    """
    if not isinstance(data, dict):
        return None, [
            Issue.critical("E_SCHEMA", f"contract must be a JSON object, got {type(data).__name__}", where="$")
        ]
    try:
        return Contract.model_validate(data), []
    except PydanticValidationError as e:
        issues = [
            Issue.critical(
                "E_SCHEMA",
                err["msg"],
                where=_where(err["loc"]),
                sample=excerpt(repr(err.get("input")), 60) if "input" in err else None,
            )
            for err in e.errors(include_url=False)
        ]
        return None, issues

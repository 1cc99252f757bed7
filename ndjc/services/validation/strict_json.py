"""Extraction of a JSON object from LLM-shaped text."""

from __future__ import annotations

import json
import re
from typing import Any

from ...core.exceptions import ValidationError

_FENCE = re.compile(r"^\s*```[\w-]*\s*\n?|\n?\s*```\s*$")
_LEADING_LABEL = re.compile(r"^\s*(?:json|JSON)\s*:?\s*")


def extract_json(raw: str) -> Any:
    """Parse ``raw`` as JSON, tolerating code fences and surrounding prose.

    Raises:
        ValidationError: if no JSON object can be recovered.
    """
    text = _FENCE.sub("", raw.strip()).strip()
    text = _LEADING_LABEL.sub("", text, count=1) if not text.startswith(("{", "[")) else text
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise ValidationError(message="no JSON object found", field_name="$", actual_value=raw[:120])
    try:
        return json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise ValidationError(
            message="invalid JSON object", field_name="$", actual_value=raw[:120], cause=e
        ) from e

"""Size and count limits for contracts."""

from __future__ import annotations

import base64
import binascii
import json
import math

from ...core.config import LimitsConfig
from ...models.contract import Contract, ContractFile, Encoding
from ...models.issues import Issue


def decode_base64(content: str) -> bytes:
    """Strictly decode base64 content, ignoring embedded whitespace.

    Raises:
        binascii.Error: on characters outside the alphabet or bad padding.
    """
    return base64.b64decode("".join(content.split()), validate=True)


def estimated_size_bytes(file: ContractFile) -> int:
    """Decoded size of a file; base64 is approximated at 3/4 of its length."""
    if file.encoding is Encoding.BASE64:
        payload = "".join(file.content.split())
        return math.ceil(len(payload) * 3 / 4)
    return len(file.content.encode("utf-8"))


def anchors_payload_bytes(contract: Contract) -> int:
    payload = contract.anchors.model_dump(mode="json", by_alias=True, exclude_none=True)
    return len(json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8"))


def check_limits(contract: Contract, limits: LimitsConfig) -> list[Issue]:
    """Check file count, base64 payloads, per-file size and anchors payload size."""
    issues: list[Issue] = []
    constraints = contract.metadata.constraints
    max_files = constraints.max_files if constraints.max_files is not None else limits.max_files
    max_kb = constraints.max_file_kb if constraints.max_file_kb is not None else limits.max_file_kb

    if len(contract.files) > max_files:
        issues.append(
            Issue.critical(
                "E_LIMITS_FILES",
                f"{len(contract.files)} files exceed the limit of {max_files}",
                where="files",
            )
        )

    for index, file in enumerate(contract.files):
        if file.encoding is Encoding.BASE64:
            try:
                decode_base64(file.content)
            except binascii.Error as e:
                issues.append(
                    Issue.critical(
                        "E_FILE_ENCODING",
                        f"{file.path} is not valid base64: {e}",
                        where=f"files.{index}",
                    )
                )
                continue
        size_kb = math.ceil(estimated_size_bytes(file) / 1024)
        if size_kb > max_kb:
            issues.append(
                Issue.critical(
                    "E_LIMITS_FILE_SIZE",
                    f"{file.path} is ~{size_kb}KB, limit is {max_kb}KB",
                    where=f"files.{index}",
                )
            )

    anchors_bytes = anchors_payload_bytes(contract)
    if anchors_bytes > limits.max_anchors_bytes:
        issues.append(
            Issue.critical(
                "E_LIMITS_ANCHORS",
                f"anchors payload is {anchors_bytes} bytes, limit is {limits.max_anchors_bytes}",
                where="anchors",
            )
        )
    return issues

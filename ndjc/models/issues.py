"""
Issue and violation models shared by the validators and the plan linter.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from ..core.types import utcnow
from .contract import CamelModel


class Severity(str, Enum):
    """Issue severity."""

    CRITICAL = "critical"
    WARNING = "warning"


class Issue(CamelModel):
    """A single finding with a stable code."""

    code: str = Field(description="Stable machine-readable code, e.g. E_SCHEMA or V-BLOCK-IMPORT")
    severity: Severity = Field(default=Severity.CRITICAL)
    reason: str = Field(description="Human readable explanation")
    anchor: str | None = Field(default=None, description="Anchor key involved, if any")
    where: str | None = Field(default=None, description="Dotted location in the document")
    sample: str | None = Field(default=None, description="Offending content excerpt")

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    @classmethod
    def critical(cls, code: str, reason: str, **kwargs: str | None) -> Issue:
        return cls(code=code, severity=Severity.CRITICAL, reason=reason, **kwargs)

    @classmethod
    def warning(cls, code: str, reason: str, **kwargs: str | None) -> Issue:
        return cls(code=code, severity=Severity.WARNING, reason=reason, **kwargs)


# Linter findings share the issue shape
Violation = Issue


def excerpt(text: str, limit: int = 80) -> str:
    """Single-line excerpt for issue samples."""
    flat = " ".join(str(text).split())
    return flat if len(flat) <= limit else flat[: limit - 3] + "..."


class ValidationResult(CamelModel):
    """Outcome of contract validation."""

    ok: bool
    issues: list[Issue] = Field(default_factory=list)

    @property
    def errors(self) -> list[Issue]:
        return [i for i in self.issues if i.is_critical]

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if not i.is_critical]

    def codes(self) -> set[str]:
        return {i.code for i in self.issues}


class LintReport(CamelModel):
    """Plan linter report, persisted as ``plan-violations.json``."""

    run_id: str | None = None
    total: int = 0
    critical: int = 0
    warnings: int = 0
    violations: list[Violation] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)
    fail_close: bool = True

    @classmethod
    def build(cls, run_id: str | None, violations: list[Violation], fail_close: bool) -> LintReport:
        critical = sum(1 for v in violations if v.is_critical)
        return cls(
            run_id=run_id,
            total=len(violations),
            critical=critical,
            warnings=len(violations) - critical,
            violations=violations,
            fail_close=fail_close,
        )

    @property
    def blocked(self) -> bool:
        return self.critical > 0 and self.fail_close

    @property
    def exit_code(self) -> int:
        return 2 if self.blocked else 0

    def codes(self) -> set[str]:
        return {v.code for v in self.violations}

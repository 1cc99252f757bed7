"""Data models for contracts, plans, findings and materialization audits."""

from .anchors import AnchorGroup, AnchorKey, canon_key
from .apply import AnchorChange, FileApplyResult, MaterializeResult
from .contract import (
    Contract,
    ContractAnchors,
    ContractFile,
    ContractMetadata,
    Encoding,
    FileKind,
    GradleDependency,
    Mode,
)
from .issues import Issue, LintReport, Severity, ValidationResult, Violation
from .plan import KOTLIN_IMPORTS, KOTLIN_TOPLEVEL, Companion, GradleSummary, Plan, PlanMeta

__all__ = [
    "AnchorGroup",
    "AnchorKey",
    "canon_key",
    "AnchorChange",
    "FileApplyResult",
    "MaterializeResult",
    "Contract",
    "ContractAnchors",
    "ContractFile",
    "ContractMetadata",
    "Encoding",
    "FileKind",
    "GradleDependency",
    "Mode",
    "Issue",
    "LintReport",
    "Severity",
    "ValidationResult",
    "Violation",
    "KOTLIN_IMPORTS",
    "KOTLIN_TOPLEVEL",
    "Companion",
    "GradleSummary",
    "Plan",
    "PlanMeta",
]

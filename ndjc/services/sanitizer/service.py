"""
Plan Sanitizer.

Guarantees that block values contain only executable statements by
relocating package, import and top-level declaration lines into the Kotlin
hooks. The plan is mutated in place.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ...core.logging import get_logger
from ...models.issues import Issue, Violation
from ...models.plan import KOTLIN_IMPORTS, KOTLIN_TOPLEVEL, Plan
from .lines import LineKind, classify_lines, first_lines, split_lines

logger = get_logger(__name__)


class CleanedFragment(BaseModel):
    """Result of the package-strip / import-extract pass."""

    body: list[str] = Field(default_factory=list)
    imports: list[str] = Field(default_factory=list)
    packages_removed: int = 0
    has_declaration: bool = False


class SanitizeReport(BaseModel):
    """What the sanitizer moved and removed."""

    imports_extracted: int = 0
    packages_removed: int = 0
    moved_to_toplevel: list[str] = Field(default_factory=list)
    emptied: list[str] = Field(default_factory=list)
    violations: list[Violation] = Field(default_factory=list)


def clean_fragment(value: str | list[str] | None) -> CleanedFragment:
    """Drop package lines and pull import lines out of a fragment."""
    result = CleanedFragment()
    for line in classify_lines(value):
        if line.kind is LineKind.PACKAGE:
            result.packages_removed += 1
        elif line.kind is LineKind.IMPORT:
            result.imports.append(line.text.strip().rstrip(";").strip())
        else:
            if line.kind is LineKind.DECLARATION:
                result.has_declaration = True
            result.body.append(line.text)
    return result


def _trim_blank_edges(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


class PlanSanitizer:
    """Relocates misplaced Kotlin lines so blocks hold statements only."""

    def __init__(self, fail_on_emptied: bool = False) -> None:
        """Initialize the sanitizer.

        Args:
            fail_on_emptied: Report blocks emptied by relocation as critical
                violations instead of warnings.
        """
        self.fail_on_emptied = fail_on_emptied

    def sanitize(self, plan: Plan) -> SanitizeReport:
        """Sanitize ``plan`` in place and report what changed."""
        report = SanitizeReport()
        imports = [line.strip() for line in split_lines(plan.hooks.get(KOTLIN_IMPORTS)) if line.strip()]
        toplevel = list(split_lines(plan.hooks.get(KOTLIN_TOPLEVEL)))

        for key in list(plan.block):
            original = plan.block[key]
            if not original.strip():
                continue
            cleaned = clean_fragment(original)
            imports.extend(cleaned.imports)
            report.imports_extracted += len(cleaned.imports)
            report.packages_removed += cleaned.packages_removed
            body = _trim_blank_edges(cleaned.body)

            if cleaned.has_declaration:
                if toplevel and toplevel[-1].strip():
                    toplevel.append("")
                toplevel.extend(body)
                plan.block[key] = ""
                report.moved_to_toplevel.append(key)
            else:
                plan.block[key] = "\n".join(body)

            if not plan.block[key].strip():
                report.emptied.append(key)
                reason = "block emptied after relocating imports/declarations"
                sample = first_lines(original)
                if self.fail_on_emptied:
                    report.violations.append(Issue.critical("V-BLOCK-EMPTIED", reason, anchor=key, sample=sample))
                else:
                    report.violations.append(Issue.warning("V-BLOCK-EMPTIED", reason, anchor=key, sample=sample))

        if toplevel:
            cleaned = clean_fragment(toplevel)
            imports.extend(cleaned.imports)
            report.imports_extracted += len(cleaned.imports)
            report.packages_removed += cleaned.packages_removed
            plan.hooks[KOTLIN_TOPLEVEL] = _trim_blank_edges(cleaned.body)

        plan.hooks[KOTLIN_IMPORTS] = sorted(set(imports))

        logger.info(
            "Plan sanitized",
            imports=len(plan.hooks[KOTLIN_IMPORTS]),
            imports_extracted=report.imports_extracted,
            packages_removed=report.packages_removed,
            moved=report.moved_to_toplevel,
            emptied=report.emptied,
        )
        return report

"""
Plan Linter.

The last, authoritative gate before template files are touched. Fails
closed by default: any critical violation blocks the pipeline unless
fail-close is disabled.
"""

from __future__ import annotations

import re

from ...core.config import Config, LinterConfig, get_config
from ...core.logging import get_logger
from ...models.issues import Issue, LintReport, Violation
from ...models.plan import KOTLIN_IMPORTS, KOTLIN_TOPLEVEL, Plan
from ..sanitizer.lines import LineKind, classify_lines, first_lines

logger = get_logger(__name__)

# Prefix tests, looser than the sanitizer's line classifier
_LOOSE_KINDS = {
    LineKind.PACKAGE: re.compile(r"^\s*package\s+[\w.`]", re.MULTILINE),
    LineKind.IMPORT: re.compile(r"^\s*import\s+[\w.`]", re.MULTILINE),
}


def lint_meta(plan: Plan) -> list[Violation]:
    found: list[Violation] = []
    if not plan.meta.template.strip():
        found.append(Issue.critical("V-META-TEMPLATE-MISSING", "meta.template is missing", where="meta.template"))
    if not plan.meta.package_id.strip():
        found.append(Issue.critical("V-META-PACKAGEID-MISSING", "meta.packageId is missing", where="meta.packageId"))
    if not plan.gradle.application_id.strip():
        found.append(
            Issue.critical("V-GRADLE-APPID-MISSING", "gradle.applicationId is missing", where="gradle.applicationId")
        )
    package_name = plan.get_text("PACKAGE_NAME")
    ids = {plan.meta.package_id, plan.gradle.application_id, package_name}
    if plan.meta.package_id and len(ids) > 1:
        found.append(
            Issue.critical(
                "V-META-PACKAGE-MISMATCH",
                "meta.packageId, gradle.applicationId and TEXT:PACKAGE_NAME disagree",
                where="meta.packageId",
                sample=", ".join(sorted(i or "<empty>" for i in ids)),
            )
        )
    return found


def lint_companions(plan: Plan, allow_code: bool) -> list[Violation]:
    if allow_code:
        return []
    return [
        Issue.critical(
            "V-COMPANION-SOURCE-FORBIDDEN",
            "companion files must not be .kt/.java sources",
            where=f"companions.{index}.path",
            sample=first_lines(companion.content, 4),
        )
        for index, companion in enumerate(plan.companions)
        if companion.is_source
    ]


def lint_blocks(plan: Plan) -> list[Violation]:
    found: list[Violation] = []
    checks = (
        (LineKind.PACKAGE, "V-BLOCK-PACKAGE", "block contains a package declaration"),
        (LineKind.IMPORT, "V-BLOCK-IMPORT", "block contains imports, use HOOK:KOTLIN_IMPORTS"),
        (LineKind.DECLARATION, "V-BLOCK-TOPLEVEL", "block contains top-level declarations, use HOOK:KOTLIN_TOPLEVEL"),
    )
    for key, value in plan.block.items():
        present = {line.kind for line in classify_lines(value)}
        present.update(kind for kind, pattern in _LOOSE_KINDS.items() if pattern.search(value))
        for kind, code, reason in checks:
            if kind in present:
                found.append(Issue.critical(code, reason, anchor=key, sample=first_lines(value)))
    return found


def lint_hooks(plan: Plan) -> list[Violation]:
    found: list[Violation] = []

    imports = classify_lines(plan.hooks.get(KOTLIN_IMPORTS))
    if any(line.kind not in (LineKind.IMPORT, LineKind.BLANK) for line in imports):
        found.append(
            Issue.critical(
                "V-HOOK-IMPORTS-CONTENT",
                "HOOK:KOTLIN_IMPORTS may only contain import lines",
                anchor=KOTLIN_IMPORTS,
                sample=first_lines(plan.hooks.get(KOTLIN_IMPORTS), 8),
            )
        )

    toplevel = classify_lines(plan.hooks.get(KOTLIN_TOPLEVEL))
    present = {line.kind for line in toplevel} - {LineKind.BLANK}
    if present and (
        LineKind.PACKAGE in present or LineKind.IMPORT in present or LineKind.DECLARATION not in present
    ):
        found.append(
            Issue.critical(
                "V-HOOK-TOPLEVEL-CONTENT",
                "HOOK:KOTLIN_TOPLEVEL must hold top-level declarations only",
                anchor=KOTLIN_TOPLEVEL,
                sample=first_lines(plan.hooks.get(KOTLIN_TOPLEVEL), 10),
            )
        )
    return found


def lint_unplaced(plan: Plan) -> list[Violation]:
    return [
        Issue.warning(
            "V-FRAGMENT-UNPLACED",
            "code fragment is neither imports nor top-level declarations and was not placed",
            where=f"unplaced.{index}",
            sample=first_lines(fragment, 4),
        )
        for index, fragment in enumerate(plan.unplaced)
    ]


class PlanLinter:
    """Structural gate over a sanitized Plan."""

    def __init__(self, settings: LinterConfig | None = None, config: Config | None = None) -> None:
        self.settings = settings or (config or get_config()).linter

    def lint(self, plan: Plan) -> LintReport:
        """Run every check and build the violation report."""
        violations: list[Violation] = []
        violations.extend(lint_meta(plan))
        violations.extend(lint_companions(plan, self.settings.allow_companion_code))
        violations.extend(lint_blocks(plan))
        violations.extend(lint_hooks(plan))
        violations.extend(lint_unplaced(plan))

        report = LintReport.build(plan.meta.run_id, violations, self.settings.fail_close)
        log = logger.warning if report.critical else logger.info
        log(
            "Plan linted",
            total=report.total,
            critical=report.critical,
            warnings=report.warnings,
            blocked=report.blocked,
            codes=sorted(report.codes()),
        )
        return report

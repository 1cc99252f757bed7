"""
Contract -> Plan -> Materialization pipeline.

Runs the stages in order for a single contract, records a ``StageResult`` per
stage and persists the audit trail under ``requests/<runId>/``. Contract
rejection, linter blocking and the critical-anchor fuse all end the run with a
structured, failed ``PipelineResult`` rather than an exception.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from ..core.config import Config, get_config
from ..core.exceptions import CriticalAnchorFuseError, NDJCError, PlanBlockedError, ValidationError
from ..core.logging import get_logger, run_context
from ..core.types import PipelineRun, StageResult, StageStatus, content_hash, utcnow
from ..models.apply import MaterializeResult
from ..models.contract import Contract
from ..models.issues import Issue, LintReport, ValidationResult
from ..models.plan import Plan
from ..services.compiler import PlanCompiler
from ..services.linter import PlanLinter
from ..services.materializer import AnchorMaterializer
from ..services.materializer.service import new_run_id
from ..services.sanitizer import PlanSanitizer, SanitizeReport
from ..services.validation import ContractValidationService, extract_json
from ..storage import ArtifactStore, LocalArtifactStore, run_key

logger = get_logger(__name__)

E_CRITICAL_ANCHORS_UNCHANGED = "E_CRITICAL_ANCHORS_UNCHANGED"

CONTRACT_CHECK = "00_contract_check.json"
CONTRACT = "01_contract.json"
PLAN = "02_plan.json"
PLAN_SANITIZED = "02_plan.sanitized.json"
PLAN_VIOLATIONS = "plan-violations.json"
APPLY_RESULT = "03_apply_result.json"
SUMMARY = "05_summary.md"

_SAFE_RUN_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,79}$")


class PipelineResult(BaseModel):
    """Outcome of one pipeline run."""

    run_id: str
    success: bool
    started_at: datetime
    completed_at: datetime
    run: PipelineRun

    issues: list[Issue] = Field(default_factory=list, description="Contract validation issues")
    violations: list[Issue] = Field(default_factory=list, description="Plan linter violations")
    critical_counts: dict[str, int] = Field(default_factory=dict)
    output_dir: str | None = None
    artifacts: list[str] = Field(default_factory=list)

    error: str | None = None
    error_code: str | None = None
    failed_stage: str | None = None


def _run_id_hint(data: Any) -> str | None:
    if isinstance(data, str):
        try:
            data = extract_json(data)
        except ValidationError:
            return None
    if isinstance(data, Contract):
        return data.metadata.run_id
    if isinstance(data, dict):
        meta = data.get("metadata")
        if isinstance(meta, dict) and isinstance(meta.get("runId"), str) and meta["runId"].strip():
            return meta["runId"].strip()
    return None


def render_summary(result: PipelineResult, plan: Plan | None) -> str:
    """Markdown summary written as the last artifact of a run."""
    lines = [f"# NDJC run {result.run_id}", ""]
    lines.append(f"- Status: **{'success' if result.success else 'failed'}**")
    if plan is not None:
        lines.append(f"- Template: `{plan.meta.template}`")
        lines.append(f"- App: {plan.meta.app_name} (`{plan.meta.package_id}`)")
        lines.append(f"- Mode: {plan.meta.mode.value}")
    if result.failed_stage:
        lines.append(f"- Failed stage: `{result.failed_stage}`")
    if result.error_code:
        lines.append(f"- Error code: `{result.error_code}`")
    if result.output_dir:
        lines.append(f"- Output: `{result.output_dir}`")
    lines += ["", "## Stages", "", "| Stage | Status | Seconds |", "|---|---|---|"]
    for stage in result.run.stages:
        lines.append(f"| {stage.stage_name} | {stage.status.value} | {stage.duration_seconds:.3f} |")
    if result.critical_counts:
        lines += ["", "## Critical anchors", ""]
        lines += [f"- `{marker}`: {count}" for marker, count in result.critical_counts.items()]
    problems = [i for i in result.issues + result.violations if i.is_critical]
    if problems:
        lines += ["", "## Blocking issues", ""]
        for issue in problems:
            location = issue.where or issue.anchor
            lines.append(f"- `{issue.code}` {issue.reason}" + (f" ({location})" if location else ""))
    return "\n".join(lines) + "\n"


class NDJCPipeline:
    """Programmatic entry point wiring the services together."""

    def __init__(
        self,
        config: Config | None = None,
        store: ArtifactStore | None = None,
        validator: ContractValidationService | None = None,
        compiler: PlanCompiler | None = None,
        sanitizer: PlanSanitizer | None = None,
        linter: PlanLinter | None = None,
        materializer: AnchorMaterializer | None = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store or LocalArtifactStore(self.config.storage.base_path)
        self.validator = validator or ContractValidationService(config=self.config)
        self.compiler = compiler or PlanCompiler(config=self.config)
        self.sanitizer = sanitizer or PlanSanitizer(fail_on_emptied=self.config.linter.fail_on_emptied_block)
        self.linter = linter or PlanLinter(config=self.config)
        self.materializer = materializer or AnchorMaterializer(config=self.config)

    async def _artifact(self, stage: StageResult, run_id: str, name: str, payload: Any) -> str:
        key = run_key(run_id, name)
        if isinstance(payload, BaseModel):
            await self.store.store_model(key, payload, {"stage": stage.stage_name})
        else:
            await self.store.store_json(key, payload, {"stage": stage.stage_name})
        stage.artifacts.append(key)
        return key

    async def run(self, data: dict[str, Any] | str | Contract, run_id: str | None = None) -> PipelineResult:
        """Run every stage for ``data`` (a contract object, raw JSON text or parsed dict)."""
        run_id = run_id or _run_id_hint(data) or new_run_id()
        if not _SAFE_RUN_ID.match(run_id) or ".." in run_id:
            logger.warning("Unsafe run id replaced", run_id=run_id)
            run_id = new_run_id()
        with run_context(run_id):
            return await self._run(data, run_id)

    async def _run(self, data: dict[str, Any] | str | Contract, run_id: str) -> PipelineResult:
        started_at = utcnow()
        if isinstance(data, Contract):
            raw = data.to_json()
        elif isinstance(data, str):
            raw = data
        else:
            raw = json.dumps(data, sort_keys=True, default=str)
        run = PipelineRun(run_id=run_id, contract_hash=content_hash(raw))
        result = PipelineResult(run_id=run_id, success=False, started_at=started_at, completed_at=started_at, run=run)
        plan: Plan | None = None
        logger.info("Pipeline started", contract_hash=run.contract_hash[:12])

        try:
            # Stage 1: contract validation
            stage = run.start_stage("validate")
            if isinstance(data, str):
                contract, check = self.validator.validate_text(data)
            else:
                contract, check = self.validator.validate(data)
            result.issues = check.issues
            await self._artifact(stage, run_id, CONTRACT_CHECK, check)
            if contract is not None:
                await self._artifact(stage, run_id, CONTRACT, json.loads(contract.to_json()))
            if not check.ok or contract is None:
                stage.mark_failed(", ".join(sorted({i.code for i in check.errors})))
                return await self._fail(result, plan, "validate", "contract rejected", _first_code(check))
            stage.mark_completed(run.contract_hash, stage.artifacts)
            stage.warnings = [i.code for i in check.warnings]

            # Stage 2: compile
            stage = run.start_stage("compile")
            plan = self.compiler.compile(contract)
            plan.meta.run_id = run_id
            await self._artifact(stage, run_id, PLAN, plan)
            stage.mark_completed(content_hash(plan.to_json()), stage.artifacts)

            # Stage 3: sanitize
            stage = run.start_stage("sanitize")
            sanitized: SanitizeReport = self.sanitizer.sanitize(plan)
            await self._artifact(stage, run_id, PLAN_SANITIZED, plan)
            stage.mark_completed(content_hash(plan.to_json()), stage.artifacts)
            stage.warnings = [v.code for v in sanitized.violations]

            # Stage 4: lint
            stage = run.start_stage("lint")
            linted: LintReport = self.linter.lint(plan)
            report = LintReport.build(run_id, sanitized.violations + linted.violations, linted.fail_close)
            result.violations = report.violations
            await self._artifact(stage, run_id, PLAN_VIOLATIONS, report)
            if report.blocked:
                error = PlanBlockedError(message="critical plan violations", report=report)
                stage.mark_failed(str(error))
                codes = sorted(report.codes())
                return await self._fail(result, plan, "lint", str(error), codes[0] if codes else None)
            stage.mark_completed(artifacts=stage.artifacts)
            stage.warnings = [v.code for v in report.violations if not v.is_critical]

            # Stage 5: materialize
            stage = run.start_stage("materialize")
            try:
                applied: MaterializeResult = self.materializer.materialize(plan, run_id)
            except CriticalAnchorFuseError as exc:
                if isinstance(exc.audit, MaterializeResult):
                    await self._artifact(stage, run_id, APPLY_RESULT, exc.audit)
                result.critical_counts = exc.counts
                stage.mark_failed(str(exc))
                return await self._fail(result, plan, "materialize", str(exc), E_CRITICAL_ANCHORS_UNCHANGED)
            await self._artifact(stage, run_id, APPLY_RESULT, applied)
            stage.mark_completed(artifacts=stage.artifacts)
            result.critical_counts = applied.critical_counts
            result.output_dir = applied.output_dir
        except NDJCError as exc:
            current = run.stages[-1] if run.stages else None
            if current is not None and current.status == StageStatus.RUNNING:
                current.mark_failed(str(exc))
            logger.error("Pipeline stage raised", error=str(exc))
            stage_name = current.stage_name if current else None
            return await self._fail(result, plan, stage_name, str(exc), type(exc).__name__)

        result.success = True
        run.finish(StageStatus.COMPLETED)
        return await self._finalize(result, plan)

    async def _fail(
        self,
        result: PipelineResult,
        plan: Plan | None,
        stage: str | None,
        error: str,
        code: str | None,
    ) -> PipelineResult:
        result.failed_stage = stage
        result.error = error
        result.error_code = code
        result.run.finish(StageStatus.FAILED)
        logger.warning("Pipeline failed", stage=stage, error_code=code)
        return await self._finalize(result, plan)

    async def _finalize(self, result: PipelineResult, plan: Plan | None) -> PipelineResult:
        result.completed_at = utcnow()
        summary_key = run_key(result.run_id, SUMMARY)
        result.artifacts = [key for stage in result.run.stages for key in stage.artifacts] + [summary_key]
        await self.store.store_text(summary_key, render_summary(result, plan), {"stage": "summary"})
        logger.info(
            "Pipeline finished",
            success=result.success,
            duration_seconds=round((result.completed_at - result.started_at).total_seconds(), 3),
            output=result.output_dir,
        )
        return result


def _first_code(check: ValidationResult) -> str | None:
    errors = check.errors
    return errors[0].code if errors else None


async def run_pipeline(
    data: dict[str, Any] | str | Contract | Path,
    run_id: str | None = None,
    config: Config | None = None,
) -> PipelineResult:
    """Convenience function to run the pipeline on a contract.

    Args:
        data: Contract as a parsed dict, raw JSON text, model, or a path to a JSON file.
        run_id: Overrides ``metadata.runId``.
        config: Configuration; defaults to the environment-derived one.
    """
    if isinstance(data, Path):
        data = data.read_text(encoding="utf-8")
    return await NDJCPipeline(config=config).run(data, run_id=run_id)

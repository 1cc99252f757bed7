"""
NDJC CLI.

Command-line interface for validating contracts, inspecting plans and running
the Contract -> Plan -> Materialization pipeline.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .core.config import Config, get_config
from .core.exceptions import DispatchError
from .core.logging import setup_logging
from .models.issues import Issue, LintReport
from .models.plan import Plan

app = typer.Typer(
    name="ndjc",
    help="Contract -> Plan -> Materialization pipeline for NDJC Android templates",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__

        console.print(f"ndjc v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """NDJC: contract validation, plan compilation and template materialization."""


def _setup(verbose: bool = False) -> Config:
    config = get_config()
    if verbose:
        config.log_level = "DEBUG"
    setup_logging(config)
    return config


def issues_table(title: str, issues: list[Issue]) -> Table:
    """Render issues or violations as a rich table."""
    table = Table(title=title)
    table.add_column("Severity")
    table.add_column("Code", style="cyan")
    table.add_column("Where")
    table.add_column("Reason")
    for issue in issues:
        severity = "[red]critical[/red]" if issue.is_critical else "[yellow]warning[/yellow]"
        table.add_row(severity, issue.code, issue.where or issue.anchor or "", issue.reason)
    return table


ContractArg = typer.Argument(
    ...,
    help="Path to a contract JSON file",
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
)


@app.command()
def validate(
    contract_file: Path = ContractArg,
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Validate a contract file. Exits 1 when it is rejected."""
    config = _setup(verbose)
    from .services.validation import ContractValidationService

    _, result = ContractValidationService(config=config).validate_text(contract_file.read_text(encoding="utf-8"))

    if as_json:
        console.print_json(result.model_dump_json(by_alias=True))
    else:
        if result.issues:
            console.print(issues_table("Contract issues", result.issues))
        status = "[bold green]✓ Contract accepted[/bold green]" if result.ok else "[bold red]✗ Contract rejected[/bold red]"
        console.print(status)
    if not result.ok:
        raise typer.Exit(1)


@app.command("compile")
def compile_contract(
    contract_file: Path = ContractArg,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the plan JSON here"),
    sanitize: bool = typer.Option(True, "--sanitize/--raw", help="Run the plan sanitizer"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Compile a contract into a Plan (validating it first)."""
    config = _setup(verbose)
    from .services.compiler import PlanCompiler
    from .services.sanitizer import PlanSanitizer
    from .services.validation import ContractValidationService

    contract, result = ContractValidationService(config=config).validate_text(
        contract_file.read_text(encoding="utf-8")
    )
    if contract is None or not result.ok:
        console.print(issues_table("Contract issues", result.errors))
        console.print("[bold red]✗ Contract rejected[/bold red]")
        raise typer.Exit(1)

    plan = PlanCompiler(config=config).compile(contract)
    if sanitize:
        report = PlanSanitizer(fail_on_emptied=config.linter.fail_on_emptied_block).sanitize(plan)
        if report.violations:
            console.print(issues_table("Sanitizer", report.violations))

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(plan.to_json(), encoding="utf-8")
        console.print(f"[bold]Plan written:[/bold] {output}")
    else:
        console.print_json(plan.to_json())


@app.command()
def lint(
    plan_file: Path = typer.Argument(
        ...,
        help="Path to a plan JSON file (e.g. 02_plan.json)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    fail_open: bool = typer.Option(False, "--fail-open", help="Report critical violations without blocking"),
    allow_companion_code: Optional[bool] = typer.Option(
        None, "--allow-companion-code/--no-companion-code", help="Override NDJC_ALLOW_COMPANION_CODE"
    ),
    report_file: Optional[Path] = typer.Option(None, "--report", "-r", help="Write plan-violations.json here"),
) -> None:
    """Lint a plan. Exits 2 when it is blocked."""
    config = _setup()
    from .services.linter import PlanLinter

    settings = config.linter.model_copy()
    if fail_open:
        settings.fail_close = False
    if allow_companion_code is not None:
        settings.allow_companion_code = allow_companion_code

    plan = Plan.model_validate_json(plan_file.read_text(encoding="utf-8"))
    report: LintReport = PlanLinter(settings=settings).lint(plan)

    if report.violations:
        console.print(issues_table("Plan violations", report.violations))
    console.print(f"total={report.total} critical={report.critical} warnings={report.warnings}")
    if report_file:
        report_file.parent.mkdir(parents=True, exist_ok=True)
        report_file.write_text(report.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    if report.blocked:
        console.print("[bold red]✗ Plan blocked[/bold red]")
    raise typer.Exit(report.exit_code)


@app.command()
def run(
    contract_file: Path = ContractArg,
    run_id: Optional[str] = typer.Option(None, "--run-id", help="Override metadata.runId"),
    dispatch: bool = typer.Option(False, "--dispatch", help="Trigger the build workflow on success"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Run the complete pipeline on a contract file."""
    config = _setup(verbose)

    console.print(Panel.fit(
        "[bold blue]NDJC[/bold blue]\n"
        "Contract → Plan → Materialized Android project",
        border_style="blue",
    ))
    console.print(f"\n[bold]Contract:[/bold] {contract_file}")
    console.print(f"[bold]Output:[/bold] {config.storage.workspace_path}\n")

    async def run_async() -> None:
        from .orchestration import run_pipeline

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Running pipeline...", total=None)
            result = await run_pipeline(contract_file.read_text(encoding="utf-8"), run_id=run_id, config=config)
            progress.update(task, completed=True)

        table = Table(title=f"Run {result.run_id}")
        table.add_column("Stage", style="cyan")
        table.add_column("Status")
        table.add_column("Seconds", justify="right")
        for stage in result.run.stages:
            color = "green" if stage.status.value == "completed" else "red"
            table.add_row(stage.stage_name, f"[{color}]{stage.status.value}[/{color}]", f"{stage.duration_seconds:.3f}")
        console.print(table)

        if not result.success:
            blocking = [i for i in result.issues + result.violations if i.is_critical]
            if blocking:
                console.print(issues_table("Blocking issues", blocking))
            console.print("\n[bold red]✗ Pipeline failed![/bold red]")
            console.print(f"Error: {result.error}")
            if result.error_code:
                console.print(f"Code: {result.error_code}")
            raise typer.Exit(1)

        console.print("\n[bold green]✓ Pipeline completed successfully![/bold green]")
        console.print(f"[bold]Materialized app:[/bold] {result.output_dir}")
        for marker, count in result.critical_counts.items():
            console.print(f"  {marker}: {count}")

        if dispatch:
            from .integrations import WorkflowDispatcher

            try:
                dispatched = await WorkflowDispatcher(config=config).dispatch(result.run_id)
            except DispatchError as e:
                console.print(f"[red]Dispatch failed: {e}[/red]")
                raise typer.Exit(1)
            note = " (degraded inputs)" if dispatched.degraded else ""
            console.print(f"[bold]Build dispatched{note}:[/bold] {dispatched.url}")

    asyncio.run(run_async())


@app.command("dispatch")
def dispatch_build(
    run_id: str = typer.Argument(..., help="Run id to build"),
    inputs: List[str] = typer.Option([], "--input", "-i", help="Extra workflow input as key=value"),
) -> None:
    """Trigger the build workflow for an existing run."""
    config = _setup()
    from .integrations import WorkflowDispatcher

    extra: dict[str, str] = {}
    for item in inputs:
        key, sep, value = item.partition("=")
        if not sep or not key:
            console.print(f"[red]Invalid input '{item}', expected key=value[/red]")
            raise typer.Exit(1)
        extra[key] = value

    try:
        result = asyncio.run(WorkflowDispatcher(config=config).dispatch(run_id, extra))
    except DispatchError as e:
        console.print(f"[red]Dispatch failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(json.dumps(result.model_dump(), indent=2))


@app.command()
def config() -> None:
    """Show the effective configuration."""
    cfg = get_config()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Max Files", str(cfg.limits.max_files))
    table.add_row("Max File KB", str(cfg.limits.max_file_kb))
    table.add_row("Max Anchors Bytes", str(cfg.limits.max_anchors_bytes))
    table.add_row("Package Prefix", cfg.validation.package_prefix)
    table.add_row("Fail Close", str(cfg.linter.fail_close))
    table.add_row("Allow Companion Code", str(cfg.linter.allow_companion_code))
    table.add_row("Templates Dir", str(cfg.templates.templates_dir))
    table.add_row("Registry File", str(cfg.templates.registry_file or "builtin"))
    table.add_row("Default Template", cfg.templates.default_template)
    table.add_row("Artifacts Path", str(cfg.storage.base_path))
    table.add_row("Workspace Path", str(cfg.storage.workspace_path))
    table.add_row("GitHub Repo", f"{cfg.github.owner}/{cfg.github.repo}" if cfg.github.owner else "-")
    table.add_row("Workflow", cfg.github.workflow_id)
    table.add_row("GitHub Token", "set" if cfg.github_token else "missing")

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  NDJC_LOG_LEVEL, NDJC_FAIL_CLOSE, NDJC_ALLOW_COMPANION_CODE, NDJC_REGISTRY_FILE")
    console.print("  NDJC_TEMPLATES_DIR, NDJC_DEFAULT_TEMPLATE, NDJC_OUTPUT_PATH, NDJC_WORKSPACE_PATH")
    console.print("  GH_OWNER, GH_REPO, GH_BRANCH, WORKFLOW_ID, GH_PAT")


if __name__ == "__main__":
    app()

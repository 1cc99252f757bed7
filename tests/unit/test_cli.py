"""Unit tests for the command-line interface."""

import json

import pytest
from typer.testing import CliRunner

from ndjc import __version__
from ndjc.cli import app
from ndjc.core.config import get_config
from ndjc.models.contract import Mode
from ndjc.models.plan import Companion, GradleSummary, Plan, PlanMeta

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(monkeypatch, temp_dir):
    """Point the environment-derived configuration at ``temp_dir``."""
    monkeypatch.setenv("NDJC_OUTPUT_PATH", str(temp_dir / "output"))
    monkeypatch.setenv("NDJC_WORKSPACE_PATH", str(temp_dir / "workspaces"))
    # Keep structlog off the runner's temporary streams
    monkeypatch.setattr("ndjc.cli.setup_logging", lambda config: None)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def contract_file(temp_dir, demo_contract):
    path = temp_dir / "contract.json"
    path.write_text(json.dumps(demo_contract), encoding="utf-8")
    return path


@pytest.fixture
def blocked_plan_file(temp_dir):
    package_id = "app.ndjc.demo.x"
    plan = Plan(
        meta=PlanMeta(template="circle-basic", app_name="Demo", package_id=package_id, mode=Mode.B),
        text={"TEXT:PACKAGE_NAME": package_id},
        gradle=GradleSummary(application_id=package_id),
        companions=[Companion(path="app/src/main/java/X.kt", content="class X")],
    )
    path = temp_dir / "02_plan.json"
    path.write_text(plan.to_json(), encoding="utf-8")
    return path


class TestCLI:
    """Tests for the ndjc commands."""

    def test_version(self):
        """Test the version flag."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"ndjc v{__version__}" in result.output

    def test_validate_accepts(self, contract_file):
        """Test a valid contract exits 0."""
        result = runner.invoke(app, ["validate", str(contract_file)])
        assert result.exit_code == 0
        assert "Contract accepted" in result.output

    def test_validate_rejects(self, temp_dir, demo_contract):
        """Test a rejected contract exits 1 and reports codes as JSON."""
        demo_contract["metadata"]["packageId"] = "com.other.app"
        path = temp_dir / "bad.json"
        path.write_text(json.dumps(demo_contract), encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path), "--json"])
        assert result.exit_code == 1
        assert '"ok": false' in result.output

    def test_compile_writes_plan(self, contract_file, temp_dir):
        """Test compile writes the plan file."""
        output = temp_dir / "out" / "plan.json"
        result = runner.invoke(app, ["compile", str(contract_file), "-o", str(output)])
        assert result.exit_code == 0
        plan = json.loads(output.read_text(encoding="utf-8"))
        assert plan["gradle"]["applicationId"] == "app.ndjc.demo.x"

    def test_lint_blocked(self, blocked_plan_file, temp_dir):
        """Test a blocked plan exits 2 and writes the report."""
        report = temp_dir / "plan-violations.json"
        result = runner.invoke(app, ["lint", str(blocked_plan_file), "-r", str(report)])
        assert result.exit_code == 2
        assert "V-COMPANION-SOURCE-FORBIDDEN" in report.read_text(encoding="utf-8")

    def test_lint_overrides(self, blocked_plan_file):
        """Test fail-open and the companion switch unblock the plan."""
        assert runner.invoke(app, ["lint", str(blocked_plan_file), "--fail-open"]).exit_code == 0
        assert runner.invoke(app, ["lint", str(blocked_plan_file), "--allow-companion-code"]).exit_code == 0

    def test_run(self, contract_file, temp_dir):
        """Test the full pipeline command."""
        result = runner.invoke(app, ["run", str(contract_file), "--run-id", "cli-run"])
        assert result.exit_code == 0, result.output
        assert "Pipeline completed successfully" in result.output
        assert (temp_dir / "workspaces" / "cli-run" / "app" / "build.gradle").is_file()
        assert (temp_dir / "output" / "requests" / "cli-run" / "05_summary.md").is_file()

    def test_run_failure(self, temp_dir):
        """Test a failing run exits 1 with the error code."""
        path = temp_dir / "garbage.json"
        path.write_text("not json", encoding="utf-8")
        result = runner.invoke(app, ["run", str(path), "--run-id", "cli-bad"])
        assert result.exit_code == 1
        assert "E_NOT_JSON" in result.output

    def test_dispatch_rejects_bad_input(self):
        """Test malformed --input values are refused before any request."""
        result = runner.invoke(app, ["dispatch", "run-1", "-i", "novalue"])
        assert result.exit_code == 1
        assert "expected key=value" in result.output

    def test_config(self):
        """Test the configuration table."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Current Configuration" in result.output

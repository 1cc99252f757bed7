"""
Configuration management for NDJC.

Provides centralized, type-safe configuration with environment variable overrides
and sensible defaults for all pipeline components.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()

PACKAGE_ROOT = Path(__file__).resolve().parent.parent


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class LimitsConfig(BaseModel):
    """Contract size limits. Contract constraints override these per run."""

    max_files: int = Field(default=20, ge=0, description="Maximum number of contract files")
    max_file_kb: int = Field(default=256, ge=1, description="Per-file decoded size cap in KB")
    max_anchors_bytes: int = Field(
        default=64 * 1024, ge=1024, description="Serialized anchors payload cap in bytes"
    )


class ValidationConfig(BaseModel):
    """Contract validation rules."""

    package_prefix: str = Field(default="app.ndjc.", description="Required package id namespace")
    forbid_layout_dir: bool = Field(default=True, description="Reject files under res/layout/")


class LinterConfig(BaseModel):
    """Plan linter configuration."""

    fail_close: bool = Field(default=True, description="Critical violations block the pipeline")
    allow_companion_code: bool = Field(
        default=False, description="Permit .kt/.java companion files"
    )
    fail_on_emptied_block: bool = Field(
        default=False, description="Sanitizer reports emptied blocks as critical"
    )


class TemplatesConfig(BaseModel):
    """Template tree and anchor registry locations."""

    templates_dir: Path = Field(
        default=PACKAGE_ROOT / "templates", description="Root directory holding templates"
    )
    registry_file: Path | None = Field(
        default=None, description="Override registry JSON (defaults to the builtin one)"
    )
    default_template: str = Field(default="circle-basic", description="Fallback template key")


class StorageConfig(BaseModel):
    """Storage configuration for run artifacts and workspaces."""

    base_path: Path = Field(default=Path("./output"), description="Base path for run artifacts")
    workspace_path: Path = Field(
        default=Path("./output/workspaces"), description="Root of run-scoped materialized trees"
    )


class GitHubConfig(BaseModel):
    """Build workflow dispatch configuration."""

    owner: str = Field(default="", description="Repository owner")
    repo: str = Field(default="", description="Repository name")
    branch: str = Field(default="main", description="Ref to dispatch the workflow on")
    workflow_id: str = Field(default="android-build-matrix.yml", description="Workflow file or id")
    api_url: str = Field(default="https://api.github.com", description="GitHub API base URL")
    timeout_seconds: int = Field(default=30, ge=5, description="Request timeout")
    max_retries: int = Field(default=3, ge=1, description="Retry attempts on transient failure")


class Config(BaseModel):
    """Root configuration for NDJC."""

    project_name: str = Field(default="NDJC", description="Project identifier")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    linter: LinterConfig = Field(default_factory=LinterConfig)
    templates: TemplatesConfig = Field(default_factory=TemplatesConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)

    # GitHub token (loaded from environment)
    github_token: SecretStr | None = Field(
        default_factory=lambda: SecretStr(os.environ.get("GH_PAT", "")) or None
    )

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        registry_file = os.environ.get("NDJC_REGISTRY_FILE")
        templates_dir = os.environ.get("NDJC_TEMPLATES_DIR")
        output_path = Path(os.environ.get("NDJC_OUTPUT_PATH", "./output"))
        return cls(
            log_level=os.environ.get("NDJC_LOG_LEVEL", "INFO"),  # type: ignore
            limits=LimitsConfig(
                max_files=int(os.environ.get("NDJC_MAX_FILES", "20")),
                max_file_kb=int(os.environ.get("NDJC_MAX_FILE_KB", "256")),
                max_anchors_bytes=int(os.environ.get("NDJC_MAX_ANCHORS_BYTES", str(64 * 1024))),
            ),
            validation=ValidationConfig(
                package_prefix=os.environ.get("NDJC_PACKAGE_PREFIX", "app.ndjc."),
            ),
            linter=LinterConfig(
                fail_close=_env_flag("NDJC_FAIL_CLOSE", True),
                allow_companion_code=_env_flag("NDJC_ALLOW_COMPANION_CODE", False),
                fail_on_emptied_block=_env_flag("NDJC_FAIL_ON_EMPTIED_BLOCK", False),
            ),
            templates=TemplatesConfig(
                templates_dir=Path(templates_dir) if templates_dir else PACKAGE_ROOT / "templates",
                registry_file=Path(registry_file) if registry_file else None,
                default_template=os.environ.get("NDJC_DEFAULT_TEMPLATE", "circle-basic"),
            ),
            storage=StorageConfig(
                base_path=output_path,
                workspace_path=Path(
                    os.environ.get("NDJC_WORKSPACE_PATH", str(output_path / "workspaces"))
                ),
            ),
            github=GitHubConfig(
                owner=os.environ.get("GH_OWNER", ""),
                repo=os.environ.get("GH_REPO", ""),
                branch=os.environ.get("GH_BRANCH", "main"),
                workflow_id=os.environ.get("WORKFLOW_ID", "android-build-matrix.yml"),
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()

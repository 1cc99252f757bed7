"""
Plan data models.

The Plan is the canonical, whitelisted, template-ready form of a Contract.
All anchor maps are keyed by canonical ``GROUP:NAME`` strings.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from .contract import CamelModel, Encoding, FileKind, GradleDependency, Mode

KOTLIN_IMPORTS = "HOOK:KOTLIN_IMPORTS"
KOTLIN_TOPLEVEL = "HOOK:KOTLIN_TOPLEVEL"


class PlanMeta(CamelModel):
    """Run identity and template selection."""

    run_id: str | None = None
    template: str
    app_name: str
    package_id: str
    mode: Mode
    locales: list[str] = Field(default_factory=lambda: ["en"])
    template_key: str = ""
    registry_version: str | None = None


class GradleSummary(CamelModel):
    """Gradle settings resolved from anchors and patches."""

    application_id: str = ""
    res_configs: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    compile_sdk: int | None = None
    min_sdk: int | None = None
    target_sdk: int | None = None
    dependencies: list[GradleDependency] = Field(default_factory=list)
    proguard_extra: list[str] = Field(default_factory=list)


class Companion(CamelModel):
    """An extra file written outside the anchor system (mode B only)."""

    path: str
    content: str
    encoding: Encoding = Encoding.UTF8
    kind: FileKind | None = None
    overwrite: bool = False

    @property
    def is_source(self) -> bool:
        return self.path.lower().endswith((".kt", ".java"))


class Plan(CamelModel):
    """Generator-facing plan document."""

    meta: PlanMeta
    text: dict[str, str] = Field(default_factory=dict)
    block: dict[str, str] = Field(default_factory=dict)
    lists: dict[str, list[str]] = Field(default_factory=dict)
    if_: dict[str, bool] = Field(default_factory=dict, alias="if")
    resources: dict[str, str] = Field(default_factory=dict)
    hooks: dict[str, list[str]] = Field(default_factory=dict)
    gradle: GradleSummary = Field(default_factory=GradleSummary)
    companions: list[Companion] = Field(default_factory=list)
    unplaced: list[str] = Field(default_factory=list)

    def get_text(self, name: str, default: str = "") -> str:
        return self.text.get(f"TEXT:{name}", default)

    def get_list(self, name: str) -> list[str]:
        return self.lists.get(f"LIST:{name}", [])

    def hook_lines(self, key: str) -> list[str]:
        return self.hooks.setdefault(key, [])

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

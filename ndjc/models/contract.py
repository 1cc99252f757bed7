"""
Contract v1 data models.

The contract is the structured, LLM-produced description of the app to
generate. It is validated once and treated as immutable afterwards; all
normalization happens when it is compiled into a Plan.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Mode(str, Enum):
    """Generation mode.

    A: anchors only, no extra files. B: anchors plus companion files.
    """

    A = "A"
    B = "B"


class FileKind(str, Enum):
    """Kinds of files a contract may carry."""

    SOURCE = "source"
    VALUES = "values"
    DRAWABLE = "drawable"
    RAW = "raw"
    MANIFEST_PATCH = "manifest_patch"


class Encoding(str, Enum):
    """Content encoding of a contract file."""

    UTF8 = "utf8"
    BASE64 = "base64"


class Constraints(CamelModel):
    """Per-run constraints. Unset limits fall back to configuration."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    max_files: int | None = Field(default=None, ge=0)
    max_file_kb: int | None = Field(default=None, ge=1, alias="maxFileKB")
    allow_network: bool = Field(default=False, description="Permit hard-coded hosts/URLs")


class ContractMetadata(CamelModel):
    """Run-level metadata."""

    run_id: str | None = Field(default=None)
    mode: Mode = Field(description="Generation mode")
    template: str = Field(default="circle-basic", description="Template key")
    app_name: str = Field(description="Human readable app name")
    package_id: str = Field(description="Android package / application id")
    locales: list[str] = Field(default_factory=lambda: ["en"])
    summary: str | None = Field(default=None)
    constraints: Constraints = Field(default_factory=Constraints)


class GradleDependency(CamelModel):
    """A dependency requested by the contract."""

    group: str
    name: str
    version: str | None = None
    scope: str = Field(default="implementation")

    @property
    def declaration(self) -> str:
        """Gradle declaration line, e.g. ``implementation "g:n:1.0"``."""
        notation = f"{self.group}:{self.name}"
        if self.version:
            notation = f"{notation}:{self.version}"
        return f'{self.scope} "{notation}"'


class GradlePatch(CamelModel):
    """Gradle deltas requested by the contract."""

    compile_sdk: int | None = None
    min_sdk: int | None = None
    target_sdk: int | None = None
    res_configs: list[str] | None = None
    proguard_extra: list[str] | None = None
    dependencies: list[GradleDependency] | None = None


class ManifestPatch(CamelModel):
    """Manifest deltas requested by the contract."""

    permissions: list[str] = Field(default_factory=list)


class Patches(CamelModel):
    """Gradle and manifest patches."""

    gradle: GradlePatch = Field(default_factory=GradlePatch)
    manifest: ManifestPatch = Field(default_factory=ManifestPatch)


class ContractFile(CamelModel):
    """A file shipped with the contract (mode B)."""

    path: str = Field(min_length=1)
    kind: FileKind
    encoding: Encoding = Field(default=Encoding.UTF8)
    content: str
    overwrite: bool = Field(default=False)


class GradleAnchors(CamelModel):
    """The gradle sub-object of ``anchors``."""

    application_id: str | None = None
    res_configs: list[str] | None = None
    permissions: list[str] | None = None


class ContractAnchors(CamelModel):
    """Anchor payload. The four core maps are required, values are loosely typed."""

    text: dict[str, Any]
    block: dict[str, Any]
    list_: dict[str, Any] = Field(alias="list")
    if_: dict[str, Any] = Field(alias="if")
    gradle: GradleAnchors | None = None
    res: dict[str, Any] = Field(default_factory=dict)
    hook: dict[str, Any] = Field(default_factory=dict)


class Contract(CamelModel):
    """Contract v1 document."""

    metadata: ContractMetadata
    patches: Patches = Field(default_factory=Patches)
    files: list[ContractFile] = Field(default_factory=list)
    anchors: ContractAnchors
    routes: list[str] | str | None = Field(default=None, description="Route names, list or CSV")
    modules: list[str] | str | None = Field(default=None, description="Feature recipe names")
    fragments: list[str] = Field(
        default_factory=list, description="Free code fragments without a target slot"
    )

    @property
    def mode(self) -> Mode:
        return self.metadata.mode

    def to_json(self) -> str:
        """Serialize with the original camelCase keys."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)

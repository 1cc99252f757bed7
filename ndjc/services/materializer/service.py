"""
Anchor Materializer.

Copies the chosen template into a fresh, run-scoped workspace, applies the
Plan and publishes the result only if at least one critical anchor was
actually replaced.

State machine: fresh workspace -> build-file-plan -> apply-replacements ->
auxiliary-files -> cleanup -> stabilize -> critical-anchor fuse ->
(abort | finalize).
"""

from __future__ import annotations

import binascii
import re
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit

from ...core.config import Config, get_config
from ...core.exceptions import CriticalAnchorFuseError, ServiceError, TemplateNotFoundError
from ...core.logging import get_logger
from ...core.types import utcnow
from ...models.anchors import AnchorKey
from ...models.apply import AnchorChange, FileApplyResult, MaterializeResult
from ...models.contract import Encoding
from ...models.plan import KOTLIN_IMPORTS, KOTLIN_TOPLEVEL, Companion, Plan
from ...registry import AnchorRegistry, load_registry
from ..validation.limits import decode_base64
from ..validation.paths import is_layout_path, is_unsafe_path
from .cleanup import cleanup_tree
from .gradle import GradleEditor, groovy_string, stabilize
from .markers import android_string_escape, escaper_for, replace_block_marker, replace_text_marker

logger = get_logger(__name__)

CRITICAL_MARKERS = (
    "NDJC:PACKAGE_NAME",
    "NDJC:APP_LABEL",
    "NDJC:HOME_TITLE",
    "NDJC:MAIN_BUTTON",
    "NDJC:BLOCK:PERMISSIONS",
    "NDJC:BLOCK:INTENT_FILTERS",
)

STRINGS_XML = "src/main/res/values/strings.xml"
MANIFEST_XML = "src/main/AndroidManifest.xml"
BUILD_GRADLE = "build.gradle"
THEMES_XML = "src/main/res/values/themes.xml"
MAIN_ACTIVITY = "src/main/java/com/ndjc/app/MainActivity.kt"
TARGET_FILES = (STRINGS_XML, MANIFEST_XML, BUILD_GRADLE, THEMES_XML, MAIN_ACTIVITY)

LOCALES_CONFIG = "src/main/res/xml/locales_config.xml"
LISTS_XML = "src/main/res/values/ndjc_lists.xml"
PROGUARD_FILE = "proguard-ndjc.pro"
BINARY_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".webp", ".gif", ".ttf", ".otf", ".mp3", ".ogg", ".wav"})

# Lists consumed elsewhere; the rest become string-array resources
_PROGRAMMATIC_LISTS = frozenset(
    {"LIST:PROGUARD_EXTRA", "LIST:PACKAGING_RULES", "LIST:DEEPLINK_PATTERNS", "LIST:ROUTES"}
)

_IMPORT_LINE = re.compile(r"^import\s+\S+")
_SUPER_ON_CREATE = re.compile(r"^(\s*)super\.onCreate\(.*\)\s*$")


@dataclass
class MarkerEdit:
    """One ``{marker, value}`` pair for a target file."""

    key: AnchorKey
    marker_name: str
    value: str


@dataclass
class FilePlan:
    """Edits for one target file, blocks before text."""

    path: str
    blocks: list[MarkerEdit] = field(default_factory=list)
    texts: list[MarkerEdit] = field(default_factory=list)


def permissions_block(permissions: list[str]) -> str:
    return "\n".join(f'<uses-permission android:name="{p}" />' for p in permissions)


def intent_filters_block(patterns: list[str]) -> str:
    """Deep-link intent filters for ``scheme://host/path`` patterns."""
    filters: list[str] = []
    for pattern in patterns:
        parts = urlsplit(pattern.strip())
        if not parts.scheme:
            continue
        data = f'android:scheme="{parts.scheme}"'
        if parts.hostname:
            data += f' android:host="{parts.hostname}"'
        path = parts.path.rstrip("*")
        if path and path != "/":
            data += f' android:pathPrefix="{path}"'
        verify = ' android:autoVerify="true"' if parts.scheme in ("http", "https") else ""
        filters.append(
            "\n".join(
                [
                    f"<intent-filter{verify}>",
                    '    <action android:name="android.intent.action.VIEW" />',
                    '    <category android:name="android.intent.category.DEFAULT" />',
                    '    <category android:name="android.intent.category.BROWSABLE" />',
                    f"    <data {data} />",
                    "</intent-filter>",
                ]
            )
        )
    return "\n".join(filters)


def locales_config_xml(locales: list[str]) -> str:
    entries = "\n".join(f'    <locale android:name="{loc}" />' for loc in dict.fromkeys(locales or ["en"]))
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<locale-config xmlns:android="http://schemas.android.com/apk/res/android">\n'
        f"{entries}\n"
        "</locale-config>\n"
    )


def string_arrays_xml(lists: dict[str, list[str]]) -> str:
    body: list[str] = []
    for key, items in sorted(lists.items()):
        body.append(f'    <string-array name="ndjc_{key.partition(":")[2].lower()}">')
        body.extend(f"        <item>{android_string_escape(item)}</item>" for item in items)
        body.append("    </string-array>")
    return '<?xml version="1.0" encoding="utf-8"?>\n<resources>\n' + "\n".join(body) + "\n</resources>\n"


def new_run_id() -> str:
    return f"ndjc-{utcnow():%Y%m%d%H%M%S}-{uuid.uuid4().hex[:6]}"


class AnchorMaterializer:
    """Applies a Plan to a fresh copy of its template."""

    def __init__(
        self,
        templates_dir: Path | None = None,
        workspace_root: Path | None = None,
        allow_companion_code: bool | None = None,
        registry: AnchorRegistry | None = None,
        config: Config | None = None,
    ) -> None:
        """Initialize the materializer.

        Args:
            templates_dir: Directory holding ``<template>/app`` trees.
            workspace_root: Root of run-scoped output directories.
            allow_companion_code: Write .kt/.java companions. Defaults to the
                linter setting.
            registry: Fixed registry; resolved from the plan when omitted.
            config: Configuration providing the defaults above.
        """
        self.config = config or get_config()
        self.templates_dir = templates_dir or self.config.templates.templates_dir
        self.workspace_root = workspace_root or self.config.storage.workspace_path
        self.allow_companion_code = (
            self.config.linter.allow_companion_code if allow_companion_code is None else allow_companion_code
        )
        self._registry = registry

    # -- workspace ---------------------------------------------------------

    def template_app_dir(self, plan: Plan) -> Path:
        for name in dict.fromkeys(n for n in (plan.meta.template_key, plan.meta.template) if n):
            candidate = self.templates_dir / name / "app"
            if candidate.is_dir():
                return candidate
        raise TemplateNotFoundError(
            message="template app/ directory missing",
            template=plan.meta.template,
            expected_path=str(self.templates_dir / plan.meta.template / "app"),
        )

    def prepare_workspace(self, plan: Plan, run_id: str) -> Path:
        """Wipe the run's staging area and copy the template ``app/`` tree into it."""
        source = self.template_app_dir(plan)
        staging = self.workspace_root / run_id / ".staging"
        if staging.exists():
            shutil.rmtree(staging)
        app_dir = staging / "app"
        shutil.copytree(source, app_dir, ignore=shutil.ignore_patterns("build", ".gradle"))
        logger.debug("Workspace prepared", source=str(source), staging=str(staging))
        return app_dir

    # -- file plan ---------------------------------------------------------

    def build_file_plan(self, plan: Plan, registry: AnchorRegistry) -> list[FilePlan]:
        blocks = dict(plan.block)
        if not blocks.get("BLOCK:PERMISSIONS", "").strip() and plan.gradle.permissions:
            blocks["BLOCK:PERMISSIONS"] = permissions_block(plan.gradle.permissions)
        deeplinks = plan.get_list("DEEPLINK_PATTERNS")
        if not blocks.get("BLOCK:INTENT_FILTERS", "").strip() and deeplinks:
            blocks["BLOCK:INTENT_FILTERS"] = intent_filters_block(deeplinks)

        block_edits = [
            MarkerEdit(key=AnchorKey.parse(k), marker_name=k.partition(":")[2], value=v) for k, v in blocks.items()
        ]
        text_edits = [
            MarkerEdit(key=AnchorKey.parse(k), marker_name=marker, value=v)
            for k, v in plan.text.items()
            for marker in registry.text_markers(k)
        ]
        return [FilePlan(path=p, blocks=list(block_edits), texts=list(text_edits)) for p in TARGET_FILES]

    def apply_file(self, app_dir: Path, file_plan: FilePlan) -> FileApplyResult | None:
        path = app_dir / file_plan.path
        if not path.is_file():
            logger.debug("Target file not in template", file=file_plan.path)
            return None
        content = path.read_text(encoding="utf-8")
        result = FileApplyResult(file=file_plan.path)
        for edit in file_plan.blocks:
            content, change = replace_block_marker(content, file_plan.path, edit.marker_name, edit.value)
            result.changes.append(change)
        escape = escaper_for(file_plan.path)
        for edit in file_plan.texts:
            content, change = replace_text_marker(content, file_plan.path, edit.marker_name, edit.value, escape)
            result.changes.append(change)
        path.write_text(content, encoding="utf-8")
        return result

    # -- programmatic anchors ----------------------------------------------

    def inject_hooks(self, app_dir: Path, plan: Plan) -> FileApplyResult | None:
        """Insert Kotlin import/top-level/onCreate hooks into the main activity."""
        path = app_dir / MAIN_ACTIVITY
        if not path.is_file():
            return None
        lines = path.read_text(encoding="utf-8").split("\n")
        result = FileApplyResult(file=MAIN_ACTIVITY)

        imports = [i for i in plan.hooks.get(KOTLIN_IMPORTS, []) if i.strip()]
        if imports:
            present = {line.strip() for line in lines}
            new = [i for i in imports if i.strip() not in present]
            last_import = max((i for i, line in enumerate(lines) if _IMPORT_LINE.match(line)), default=None)
            at = last_import + 1 if last_import is not None else 1
            lines[at:at] = new
            result.changes.append(
                AnchorChange(
                    file=MAIN_ACTIVITY,
                    marker=KOTLIN_IMPORTS,
                    found=True,
                    replaced_count=len(new),
                    after_sample="\n".join(new)[:80],
                )
            )

        on_create = [line for line in plan.hooks.get("HOOK:ON_CREATE", []) if line.strip()]
        if on_create:
            row = next((i for i, line in enumerate(lines) if _SUPER_ON_CREATE.match(line)), None)
            if row is not None:
                indent = _SUPER_ON_CREATE.match(lines[row]).group(1)  # type: ignore[union-attr]
                lines[row + 1 : row + 1] = [indent + line.strip() for line in on_create]
            result.changes.append(
                AnchorChange(
                    file=MAIN_ACTIVITY,
                    marker="HOOK:ON_CREATE",
                    found=row is not None,
                    replaced_count=int(row is not None),
                )
            )

        toplevel = plan.hooks.get(KOTLIN_TOPLEVEL, [])
        if any(line.strip() for line in toplevel):
            while lines and not lines[-1].strip():
                lines.pop()
            lines.extend([""] + list(toplevel) + [""])
            result.changes.append(
                AnchorChange(
                    file=MAIN_ACTIVITY,
                    marker=KOTLIN_TOPLEVEL,
                    found=True,
                    replaced_count=1,
                    after_sample="\n".join(toplevel)[:80],
                )
            )

        path.write_text("\n".join(lines), encoding="utf-8")
        return result if result.changes else None

    def apply_gradle(self, app_dir: Path, plan: Plan, proguard_lines: list[str]) -> FileApplyResult | None:
        """Structured edits to the Gradle build file."""
        path = app_dir / BUILD_GRADLE
        if not path.is_file():
            return None
        original = path.read_text(encoding="utf-8")
        editor = GradleEditor(original)
        result = FileApplyResult(file=BUILD_GRADLE)

        def record(what: str, changed: bool | int) -> None:
            result.changes.append(
                AnchorChange(
                    file=BUILD_GRADLE,
                    marker=f"GRADLE:{what}",
                    found=True,
                    replaced_count=int(bool(changed)),
                )
            )

        gradle = plan.gradle
        if gradle.compile_sdk:
            record("compileSdk", editor.set_property("android", "compileSdk", str(gradle.compile_sdk)))
        if gradle.min_sdk:
            record("minSdk", editor.set_property("android.defaultConfig", "minSdk", str(gradle.min_sdk)))
        if gradle.target_sdk:
            record("targetSdk", editor.set_property("android.defaultConfig", "targetSdk", str(gradle.target_sdk)))

        res_configs = gradle.res_configs or plan.meta.locales
        if res_configs:
            value = ", ".join(groovy_string(r) for r in res_configs)
            record("resConfigs", editor.set_property("android.defaultConfig", "resConfigs", value))

        fields = [
            f'buildConfigField "boolean", "NDJC_{key.partition(":")[2]}", "{str(flag).lower()}"'
            for key, flag in sorted(plan.if_.items())
        ]
        if fields:
            record("buildConfigField", editor.append_lines("android.defaultConfig", fields))

        if gradle.dependencies:
            record("dependencies", editor.append_lines("dependencies", [d.declaration for d in gradle.dependencies]))

        if proguard_lines:
            record(
                "proguardFiles",
                editor.append_lines("android.buildTypes.release", [f"proguardFiles '{PROGUARD_FILE}'"]),
            )

        excludes = plan.get_list("PACKAGING_RULES")
        if excludes:
            record(
                "packaging",
                editor.append_lines(
                    "android.packagingOptions.resources", [f"excludes += {groovy_string(e)}" for e in excludes]
                ),
            )

        updated = editor.text()
        if updated != original:
            path.write_text(updated, encoding="utf-8")
        return result if result.changes else None

    # -- auxiliary files ---------------------------------------------------

    def write_auxiliary(self, app_dir: Path, plan: Plan, proguard_lines: list[str], result: MaterializeResult) -> None:
        (app_dir / LOCALES_CONFIG).parent.mkdir(parents=True, exist_ok=True)
        (app_dir / LOCALES_CONFIG).write_text(locales_config_xml(plan.meta.locales), encoding="utf-8")
        result.written.append(LOCALES_CONFIG)

        if proguard_lines:
            (app_dir / PROGUARD_FILE).write_text("\n".join(proguard_lines) + "\n", encoding="utf-8")
            result.written.append(PROGUARD_FILE)

        arrays = {k: v for k, v in plan.lists.items() if k not in _PROGRAMMATIC_LISTS and v}
        if arrays:
            (app_dir / LISTS_XML).write_text(string_arrays_xml(arrays), encoding="utf-8")
            result.written.append(LISTS_XML)

        for key, content in plan.resources.items():
            self._write_resource(app_dir, key, content, result)

        for companion in plan.companions:
            self._write_companion(app_dir, companion, result)

    def _protected(self, app_dir: Path, target: Path, result: MaterializeResult) -> bool:
        """Files carrying replaced anchors or written earlier in this run."""
        rel = target.relative_to(app_dir.resolve()).as_posix()
        return rel in TARGET_FILES or rel in result.written

    def _write_resource(self, app_dir: Path, key: str, content: str, result: MaterializeResult) -> None:
        rel = key.partition(":")[2]
        res_root = (app_dir / "src" / "main" / "res").resolve()
        if is_unsafe_path(rel) or is_layout_path(f"res/{rel}"):
            result.skipped.append(key)
            logger.warning("Unsafe resource path skipped", key=key)
            return
        target = (res_root / rel).resolve()
        try:
            target.relative_to(res_root)
        except ValueError:
            result.skipped.append(key)
            logger.warning("Unsafe resource path skipped", key=key)
            return
        if target.exists() or self._protected(app_dir, target, result):
            result.skipped.append(key)
            logger.warning("Resource would replace an existing file, skipped", key=key)
            return
        if target.suffix.lower() in BINARY_SUFFIXES:
            try:
                data = decode_base64(content)
            except binascii.Error:
                result.skipped.append(key)
                logger.warning("Binary resource is not base64", key=key)
                return
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        result.written.append(target.relative_to(app_dir.resolve()).as_posix())

    def _write_companion(self, app_dir: Path, companion: Companion, result: MaterializeResult) -> None:
        rel = companion.path.replace("\\", "/")
        if rel.startswith("app/"):
            rel = rel[len("app/") :]
        if is_unsafe_path(rel):
            result.skipped.append(companion.path)
            logger.warning("Companion outside app/ skipped", path=companion.path)
            return
        target = (app_dir / rel).resolve()
        try:
            target.relative_to(app_dir.resolve())
        except ValueError:
            result.skipped.append(companion.path)
            logger.warning("Companion outside app/ skipped", path=companion.path)
            return
        if companion.is_source and not self.allow_companion_code:
            result.skipped.append(companion.path)
            logger.warning("Source companion skipped", path=companion.path)
            return
        if self._protected(app_dir, target, result):
            result.skipped.append(companion.path)
            logger.warning("Companion would replace a materialized file, skipped", path=companion.path)
            return
        if target.exists() and not companion.overwrite:
            result.skipped.append(companion.path)
            logger.info("Companion exists, not overwritten", path=companion.path)
            return
        if companion.encoding is Encoding.BASE64:
            try:
                data = decode_base64(companion.content)
            except binascii.Error:
                result.skipped.append(companion.path)
                logger.warning("Companion is not valid base64, skipped", path=companion.path)
                return
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(companion.content, encoding="utf-8")
        result.written.append(target.relative_to(app_dir.resolve()).as_posix())

    # -- entry point -------------------------------------------------------

    def materialize(self, plan: Plan, run_id: str | None = None) -> MaterializeResult:
        """Materialize ``plan`` into ``<workspace_root>/<run_id>/app``.

        Raises:
            TemplateNotFoundError: if the template tree is missing.
            CriticalAnchorFuseError: if no critical anchor was replaced. The
                staging tree is deleted and nothing is published.
            ServiceError: if the workspace could not be written.
        """
        run_id = run_id or plan.meta.run_id or new_run_id()
        templates = self.config.templates
        registry = self._registry or load_registry(
            plan.meta.template_key or plan.meta.template, templates.registry_file, templates.default_template
        )
        result = MaterializeResult(run_id=run_id, template=plan.meta.template)

        staging = self.workspace_root / run_id / ".staging"
        try:
            app_dir = self.prepare_workspace(plan, run_id)
            cleaned = self._apply(app_dir, plan, registry, result)
            result.critical_counts = {marker: result.count_for(marker) for marker in CRITICAL_MARKERS}
            if result.critical_total == 0:
                logger.error("Critical anchor fuse tripped", run_id=run_id, counts=result.critical_counts)
                raise CriticalAnchorFuseError(
                    message="no critical anchor was replaced; refusing to publish an unmodified template",
                    run_id=run_id,
                    counts=result.critical_counts,
                    audit=result,
                )

            final = self.workspace_root / run_id / "app"
            if final.exists():
                shutil.rmtree(final)
            app_dir.rename(final)
        except OSError as e:
            raise ServiceError(
                message=f"materialization failed: {e}",
                service_name="materializer",
                operation="materialize",
                context={"run_id": run_id},
                cause=e,
            ) from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        result.output_dir = str(final)

        logger.info(
            "Template materialized",
            run_id=run_id,
            output=str(final),
            replaced=sum(f.replaced_total for f in result.files),
            critical=result.critical_counts,
            written=len(result.written),
            skipped=len(result.skipped),
            cleaned=len(cleaned),
        )
        return result

    def _apply(self, app_dir: Path, plan: Plan, registry: AnchorRegistry, result: MaterializeResult) -> list[str]:
        for file_plan in self.build_file_plan(plan, registry):
            applied = self.apply_file(app_dir, file_plan)
            if applied is not None:
                result.files.append(applied)

        proguard_lines = list(dict.fromkeys(plan.get_list("PROGUARD_EXTRA") + plan.gradle.proguard_extra))
        for applied in (self.inject_hooks(app_dir, plan), self.apply_gradle(app_dir, plan, proguard_lines)):
            if applied is not None:
                result.files.append(applied)

        self.write_auxiliary(app_dir, plan, proguard_lines, result)

        cleaned = cleanup_tree(app_dir)
        gradle_path = app_dir / BUILD_GRADLE
        if gradle_path.is_file():
            gradle_path.write_text(stabilize(gradle_path.read_text(encoding="utf-8")), encoding="utf-8")
        return cleaned

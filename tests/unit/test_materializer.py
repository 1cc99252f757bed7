"""Unit tests for the anchor materializer and the critical-anchor fuse."""

import base64
import shutil

import pytest

from ndjc.core.config import PACKAGE_ROOT
from ndjc.core.exceptions import CriticalAnchorFuseError, ServiceError, TemplateNotFoundError
from ndjc.models.contract import Contract, Encoding
from ndjc.models.plan import Companion
from ndjc.services.compiler import PlanCompiler
from ndjc.services.materializer import CRITICAL_MARKERS, AnchorMaterializer
from ndjc.services.materializer.service import intent_filters_block, locales_config_xml, new_run_id
from ndjc.services.sanitizer import PlanSanitizer


@pytest.fixture
def workspace(temp_dir):
    return temp_dir / "workspaces"


@pytest.fixture
def materializer(config, registry, workspace):
    return AnchorMaterializer(workspace_root=workspace, registry=registry, config=config)


def build_plan(config, registry, data):
    plan = PlanCompiler(registry=registry, config=config).compile(Contract.model_validate(data))
    PlanSanitizer().sanitize(plan)
    return plan


def read(app_dir, rel):
    return (app_dir / rel).read_text(encoding="utf-8")


def all_text(app_dir):
    return "\n".join(
        p.read_text(encoding="utf-8") for p in sorted(app_dir.rglob("*")) if p.is_file()
    )


class TestMaterializeDemo:
    """End-to-end materialization of the minimal contract."""

    def test_publishes_run_scoped_tree(self, config, registry, materializer, workspace, demo_contract):
        """Test the demo contract produces a marker-free app tree."""
        plan = build_plan(config, registry, demo_contract)
        result = materializer.materialize(plan, "run-demo")

        app_dir = workspace / "run-demo" / "app"
        assert result.output_dir == str(app_dir)
        assert app_dir.is_dir()
        assert not (workspace / "run-demo" / ".staging").exists()
        assert result.count_for("NDJC:APP_LABEL") >= 1
        assert result.critical_counts["NDJC:PACKAGE_NAME"] == 1
        assert set(result.critical_counts) == set(CRITICAL_MARKERS)
        assert "NDJC:" not in all_text(app_dir)

    def test_values_injected(self, config, registry, materializer, workspace, demo_contract):
        """Test text anchors reach their files with the right escaping."""
        demo_contract["anchors"]["text"]["APP_LABEL"] = "Tom & Jerry's"
        plan = build_plan(config, registry, demo_contract)
        materializer.materialize(plan, "run-values")
        app_dir = workspace / "run-values" / "app"

        strings = read(app_dir, "src/main/res/values/strings.xml")
        assert "<string name=\"app_name\">Tom &amp; Jerry\\'s</string>" in strings
        assert "<string name=\"ndjc_action_primary_text\">Start</string>" in strings
        gradle = read(app_dir, "build.gradle")
        assert 'applicationId "app.ndjc.demo.x"' in gradle
        assert 'resConfigs "en"' in gradle
        assert "// resConfigs" not in gradle

    def test_template_untouched(self, config, registry, materializer, demo_contract):
        """Test the source template keeps its markers."""
        plan = build_plan(config, registry, demo_contract)
        materializer.materialize(plan, "run-src")
        source = PACKAGE_ROOT / "templates" / "circle-basic" / "app" / "src" / "main" / "res" / "values"
        assert "NDJC:APP_LABEL" in (source / "strings.xml").read_text(encoding="utf-8")

    def test_rerun_replaces_output(self, config, registry, materializer, workspace, demo_contract):
        """Test materializing the same run id twice starts from a fresh copy."""
        plan = build_plan(config, registry, demo_contract)
        materializer.materialize(plan, "run-twice")
        (workspace / "run-twice" / "app" / "stale.txt").write_text("x", encoding="utf-8")
        materializer.materialize(plan, "run-twice")
        assert not (workspace / "run-twice" / "app" / "stale.txt").exists()


class TestMaterializeRich:
    """Blocks, hooks, gradle edits and auxiliary files."""

    def test_blocks_hooks_and_gradle(self, config, registry, materializer, workspace, rich_contract):
        """Test the rich contract lands in every target file."""
        rich_contract["anchors"]["list"]["DEEPLINKS"] = ["https://circle.example.com/post/*"]
        rich_contract["anchors"]["list"]["PACKAGING_RULES"] = ["META-INF/LICENSE*"]
        plan = build_plan(config, registry, rich_contract)
        result = materializer.materialize(plan, "run-rich")
        app_dir = workspace / "run-rich" / "app"

        activity = read(app_dir, "src/main/java/com/ndjc/app/MainActivity.kt")
        assert '            Text("Hello")' in activity
        assert 'Text("Body")' in activity
        assert activity.count("import androidx.compose.material3.Text") == 1
        assert 'super.onCreate(savedInstanceState)\n        println("created")' in activity

        manifest = read(app_dir, "src/main/AndroidManifest.xml")
        assert '<uses-permission android:name="android.permission.INTERNET" />' in manifest
        assert 'android:host="circle.example.com"' in manifest
        assert result.critical_counts["NDJC:BLOCK:PERMISSIONS"] == 1
        assert result.critical_counts["NDJC:BLOCK:INTENT_FILTERS"] == 1

        gradle = read(app_dir, "build.gradle")
        assert "minSdk 26" in gradle
        assert 'resConfigs "en", "zh-rCN"' in gradle
        assert 'buildConfigField "boolean", "NDJC_DARK_MODE", "true"' in gradle
        assert 'implementation "io.coil-kt:coil-compose:2.5.0"' in gradle
        assert "proguardFiles 'proguard-ndjc.pro'" in gradle
        assert 'excludes += "META-INF/LICENSE*"' in gradle
        assert gradle.count("{") == gradle.count("}")

        assert read(app_dir, "proguard-ndjc.pro") == "-keep class app.ndjc.** { *; }\n"
        assert 'name="zh-rCN"' in read(app_dir, "src/main/res/xml/locales_config.xml")
        arrays = read(app_dir, "src/main/res/values/ndjc_lists.xml")
        assert '<string-array name="ndjc_comment_fields">' in arrays
        assert "ndjc_routes" not in arrays

    def test_resources_written(self, config, registry, materializer, workspace, demo_contract):
        """Test resource anchors are written below res/."""
        demo_contract["anchors"]["res"] = {"drawable/bg.xml": "<shape/>", "raw/logo.png": "not base64!!"}
        plan = build_plan(config, registry, demo_contract)
        result = materializer.materialize(plan, "run-res")
        app_dir = workspace / "run-res" / "app"
        assert read(app_dir, "src/main/res/drawable/bg.xml") == "<shape/>"
        assert "src/main/res/drawable/bg.xml" in result.written


class TestCompanions:
    """Mode B companion files."""

    def test_source_companion_skipped(self, config, registry, materializer, workspace, demo_contract):
        """Test .kt companions are not written unless allowed."""
        plan = build_plan(config, registry, demo_contract)
        plan.companions = [
            Companion(path="app/src/main/java/com/ndjc/app/Extra.kt", content="class Extra"),
            Companion(path="app/src/main/res/values/extra.xml", content="<resources/>"),
        ]
        result = materializer.materialize(plan, "run-comp")
        app_dir = workspace / "run-comp" / "app"
        assert not (app_dir / "src/main/java/com/ndjc/app/Extra.kt").exists()
        assert (app_dir / "src/main/res/values/extra.xml").is_file()
        assert "app/src/main/java/com/ndjc/app/Extra.kt" in result.skipped

    def test_source_companion_allowed(self, config, registry, workspace, demo_contract):
        """Test the companion-code switch."""
        plan = build_plan(config, registry, demo_contract)
        plan.companions = [Companion(path="app/src/main/java/com/ndjc/app/Extra.kt", content="class Extra")]
        materializer = AnchorMaterializer(
            workspace_root=workspace, registry=registry, config=config, allow_companion_code=True
        )
        materializer.materialize(plan, "run-comp-ok")
        assert (workspace / "run-comp-ok" / "app/src/main/java/com/ndjc/app/Extra.kt").is_file()

    def test_escaping_companion_skipped(self, config, registry, materializer, demo_contract):
        """Test companions cannot escape the app tree."""
        plan = build_plan(config, registry, demo_contract)
        plan.companions = [Companion(path="../evil.xml", content="<x/>")]
        result = materializer.materialize(plan, "run-evil")
        assert result.skipped == ["../evil.xml"]


class TestCriticalAnchorFuse:
    """The publish gate."""

    @pytest.fixture
    def bare_templates(self, temp_dir):
        """A template tree whose files carry no markers."""
        root = temp_dir / "bare"
        shutil.copytree(PACKAGE_ROOT / "templates" / "circle-basic", root / "circle-basic")
        app = root / "circle-basic" / "app"
        (app / "src/main/res/values/strings.xml").write_text(
            '<resources><string name="app_name">Fixed</string></resources>\n', encoding="utf-8"
        )
        (app / "src/main/AndroidManifest.xml").write_text("<manifest />\n", encoding="utf-8")
        gradle = app / "build.gradle"
        gradle.write_text(
            gradle.read_text(encoding="utf-8").replace('"NDJC:PACKAGE_NAME"', '"com.fixed"'), encoding="utf-8"
        )
        return root

    def test_fuse_aborts_publish(self, config, registry, workspace, bare_templates, demo_contract):
        """Test nothing is published when no critical marker was replaced."""
        plan = build_plan(config, registry, demo_contract)
        materializer = AnchorMaterializer(
            templates_dir=bare_templates, workspace_root=workspace, registry=registry, config=config
        )
        with pytest.raises(CriticalAnchorFuseError) as exc_info:
            materializer.materialize(plan, "run-fuse")

        assert exc_info.value.counts == {marker: 0 for marker in CRITICAL_MARKERS}
        assert exc_info.value.audit.output_dir is None
        assert not (workspace / "run-fuse" / "app").exists()
        assert not (workspace / "run-fuse" / ".staging").exists()

    def test_missing_template(self, config, registry, workspace, temp_dir, demo_contract):
        """Test an unknown template directory raises."""
        plan = build_plan(config, registry, demo_contract)
        materializer = AnchorMaterializer(
            templates_dir=temp_dir / "nothing", workspace_root=workspace, registry=registry, config=config
        )
        with pytest.raises(TemplateNotFoundError):
            materializer.materialize(plan, "run-missing")


class TestUnsafePlanContent:
    """Resources and companions that must not corrupt the published tree."""

    def test_bad_base64_companion_skipped(self, config, registry, materializer, workspace, demo_contract):
        """Test an undecodable base64 companion is skipped and the run still publishes."""
        plan = build_plan(config, registry, demo_contract)
        plan.companions = [
            Companion(path="app/src/main/res/raw/data.bin", content="abc", encoding=Encoding.BASE64),
            Companion(
                path="app/src/main/res/raw/ok.bin",
                content=base64.b64encode(b"\x00\xff").decode(),
                encoding=Encoding.BASE64,
            ),
        ]
        result = materializer.materialize(plan, "run-b64")
        app_dir = workspace / "run-b64" / "app"

        assert "app/src/main/res/raw/data.bin" in result.skipped
        assert not (app_dir / "src/main/res/raw/data.bin").exists()
        assert (app_dir / "src/main/res/raw/ok.bin").read_bytes() == b"\x00\xff"
        assert not (workspace / "run-b64" / ".staging").exists()

    @pytest.mark.parametrize("key", ["RES:values/strings.xml", "RES:values/themes.xml", "RES:xml/locales_config.xml"])
    def test_resource_cannot_replace_materialized_file(
        self, config, registry, materializer, workspace, demo_contract, key
    ):
        """Test resources never overwrite files that carry replaced anchors."""
        plan = build_plan(config, registry, demo_contract)
        plan.resources = {key: '<resources><string name="x">injected</string></resources>'}
        result = materializer.materialize(plan, "run-res-clash")
        app_dir = workspace / "run-res-clash" / "app"

        assert key in result.skipped
        assert "injected" not in all_text(app_dir)
        assert '<string name="app_name">Demo</string>' in read(app_dir, "src/main/res/values/strings.xml")
        assert result.count_for("NDJC:APP_LABEL") >= 1

    @pytest.mark.parametrize("key", ["RES:layout/main.xml", "RES:drawable/../../../build.gradle"])
    def test_unsafe_resource_paths_skipped(self, config, registry, materializer, workspace, demo_contract, key):
        """Test layout and traversal resource keys are never written."""
        plan = build_plan(config, registry, demo_contract)
        plan.resources = {key: "<x/>"}
        result = materializer.materialize(plan, "run-res-unsafe")
        assert result.skipped == [key]
        assert not (workspace / "run-res-unsafe" / "app" / "src/main/res/layout").exists()

    def test_companion_cannot_replace_target_file(self, config, registry, materializer, workspace, demo_contract):
        """Test overwrite=True does not apply to files carrying replaced anchors."""
        plan = build_plan(config, registry, demo_contract)
        plan.companions = [
            Companion(path="app/src/main/res/values/strings.xml", content="<resources/>", overwrite=True)
        ]
        result = materializer.materialize(plan, "run-comp-clash")
        app_dir = workspace / "run-comp-clash" / "app"
        assert "app/src/main/res/values/strings.xml" in result.skipped
        assert "app_name" in read(app_dir, "src/main/res/values/strings.xml")

    def test_write_failure_cleans_staging(self, config, registry, materializer, workspace, demo_contract, monkeypatch):
        """Test filesystem errors surface as ServiceError and staging is removed."""
        plan = build_plan(config, registry, demo_contract)

        def fail(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(materializer, "write_auxiliary", fail)
        with pytest.raises(ServiceError, match="disk full"):
            materializer.materialize(plan, "run-oserror")
        assert not (workspace / "run-oserror" / ".staging").exists()
        assert not (workspace / "run-oserror" / "app").exists()


class TestHelpers:
    """Tests for generated snippets."""

    def test_intent_filters(self):
        """Test deep-link patterns become intent filters."""
        block = intent_filters_block(["myapp://open", "https://x.example.com/a/*", "no-scheme"])
        assert block.count("<intent-filter") == 2
        assert 'android:scheme="myapp" android:host="open"' in block
        assert 'android:autoVerify="true"' in block
        assert 'android:pathPrefix="/a/"' in block

    def test_locales_config_dedupes(self):
        """Test locales are listed once."""
        assert locales_config_xml(["en", "en", "fr"]).count("<locale ") == 2

    def test_new_run_id(self):
        """Test generated run ids are unique and prefixed."""
        assert new_run_id().startswith("ndjc-")
        assert new_run_id() != new_run_id()

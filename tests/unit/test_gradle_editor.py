"""Unit tests for the Gradle editor, marker primitives and marker cleanup."""

import pytest

from ndjc.services.materializer import (
    GradleEditor,
    replace_block_marker,
    replace_text_marker,
    stabilize,
    strip_markers,
)
from ndjc.services.materializer.markers import android_string_escape, escaper_for, xml_escape

BUILD = """android {
    compileSdk 34
    defaultConfig {
        minSdk 24
        // resConfigs "en"
        buildConfigField "String", "URL", "\\"{x}\\""
    }
}

dependencies {
    implementation 'a:b:1'
}
"""


class TestGradleEditor:
    """Tests for brace-aware Gradle edits."""

    def test_find_block_ignores_braces_in_strings(self):
        """Test braces inside string literals are not structural."""
        editor = GradleEditor(BUILD)
        block = editor.find_block("android.defaultConfig")
        assert block is not None
        assert block.open_line == 2
        assert block.close_line == 6

    def test_set_property_replaces_existing(self):
        """Test an existing property is updated in place."""
        editor = GradleEditor(BUILD)
        assert editor.set_property("android.defaultConfig", "minSdk", "26")
        assert "        minSdk 26" in editor.lines
        assert not editor.set_property("android.defaultConfig", "minSdk", "26")

    def test_set_property_uncomments(self):
        """Test a commented-out property is re-enabled."""
        editor = GradleEditor(BUILD)
        editor.set_property("android.defaultConfig", "resConfigs", '"en", "fr"')
        assert '        resConfigs "en", "fr"' in editor.lines
        assert not any(line.strip().startswith("//") for line in editor.lines)

    def test_set_property_scoped_to_block(self):
        """Test a nested property is not confused with the outer one."""
        editor = GradleEditor(BUILD)
        editor.set_property("android", "compileSdk", "35")
        assert "    compileSdk 35" in editor.lines

    def test_append_lines_skips_duplicates(self):
        """Test appending keeps existing lines unique."""
        editor = GradleEditor(BUILD)
        added = editor.append_lines("dependencies", ["implementation 'a:b:1'", "implementation 'c:d:2'"])
        assert added == 1
        assert editor.text().count("implementation 'c:d:2'") == 1

    def test_ensure_block_creates_nested(self):
        """Test missing block levels are created."""
        editor = GradleEditor(BUILD)
        editor.append_lines("android.packagingOptions.resources", ['excludes += "META-INF/*"'])
        block = editor.find_block("android.packagingOptions.resources")
        assert block is not None
        assert editor.lines[block.open_line].strip() == "resources {"
        assert 'excludes += "META-INF/*"' in editor.text()

    def test_ensure_block_at_root(self):
        """Test a missing root block is appended."""
        editor = GradleEditor("plugins {\n}\n")
        editor.append_lines("dependencies", ["implementation 'x:y:1'"])
        assert editor.text().endswith("dependencies {\n    implementation 'x:y:1'\n}\n")

    def test_uncomment(self):
        """Test uncomment only acts when no active line exists."""
        editor = GradleEditor(BUILD)
        assert editor.uncomment("resConfigs")
        assert not editor.uncomment("resConfigs")

    def test_balance(self):
        """Test stray closers are dropped and open blocks closed."""
        editor = GradleEditor("}\nandroid {\n    defaultConfig {\n")
        assert editor.balance() == 3
        assert editor.lines == ["android {", "    defaultConfig {", "}", "}"]

    def test_stabilize(self):
        """Test the post-edit repairs."""
        text = stabilize("android {\r\n\r\n\r\n    // resConfigs \"en\"\r\n")
        assert text == 'android {\n\n    resConfigs "en"\n}\n'


class TestMarkers:
    """Tests for marker replacement."""

    def test_replace_text_marker(self):
        """Test every occurrence is replaced and sampled."""
        content = "<string>NDJC:APP_LABEL</string><x>NDJC:APP_LABEL</x>"
        updated, change = replace_text_marker(content, "strings.xml", "APP_LABEL", "A&B", xml_escape)
        assert updated == "<string>A&amp;B</string><x>A&amp;B</x>"
        assert change.found
        assert change.replaced_count == 2
        assert "NDJC:APP_LABEL" in change.before_sample

    def test_text_marker_is_exact(self):
        """Test a marker does not match a longer marker name."""
        updated, change = replace_text_marker("NDJC:APP_LABEL_X", "f", "APP_LABEL", "v", xml_escape)
        assert updated == "NDJC:APP_LABEL_X"
        assert not change.found

    def test_empty_value_leaves_marker(self):
        """Test an empty value records the marker but does not replace it."""
        updated, change = replace_text_marker("NDJC:HOME_TITLE", "f", "HOME_TITLE", "", xml_escape)
        assert updated == "NDJC:HOME_TITLE"
        assert change.found
        assert change.replaced_count == 0

    def test_replace_block_marker_keeps_indent(self):
        """Test block values are indented to the marker column."""
        content = "fun f() {\n    // <!-- NDJC:BLOCK:HOME_BODY -->\n}\n"
        updated, change = replace_block_marker(content, "Main.kt", "HOME_BODY", 'Text("a")\nText("b")')
        assert updated == 'fun f() {\n    Text("a")\n    Text("b")\n}\n'
        assert change.replaced_count == 1

    def test_replace_paired_block_marker(self):
        """Test an opening and closing marker pair is replaced with its contents."""
        content = "<!-- NDJC:BLOCK:PERMISSIONS -->old<!-- /NDJC:BLOCK:PERMISSIONS -->"
        updated, _ = replace_block_marker(content, "AndroidManifest.xml", "PERMISSIONS", "<new/>")
        assert updated == "<new/>"

    @pytest.mark.parametrize(
        "path,value,expected",
        [
            ("src/main/res/values/strings.xml", "It's \"ok\"", "It\\'s \\\"ok\\\""),
            ("src/main/res/values/strings.xml", "@home", "\\@home"),
            ("src/main/AndroidManifest.xml", "a<b", "a&lt;b"),
            ("build.gradle", "pay $5", "pay \\$5"),
            ("proguard-rules.pro", "-keep", "-keep"),
        ],
    )
    def test_escaper_for(self, path, value, expected):
        """Test the escaper follows the target file type."""
        assert escaper_for(path)(value) == expected

    def test_android_string_escape_newline(self):
        """Test newlines are escaped in string resources."""
        assert android_string_escape("a\nb") == "a\\nb"


class TestStripMarkers:
    """Tests for leftover marker removal."""

    def test_strip_comment_lines(self):
        """Test whole marker comment lines disappear."""
        text = "a\n    // <!-- NDJC:BLOCK:HOME_BODY -->\n    <!-- NDJC:BLOCK:PERMISSIONS -->\nb\n"
        assert strip_markers(text) == "a\nb\n"

    def test_strip_bare_tokens(self):
        """Test bare text markers are removed from values."""
        assert strip_markers("<string>NDJC:EMPTY_STATE_TEXT</string>") == "<string></string>"

    def test_strip_trailing_comment(self):
        """Test trailing marker comments are removed."""
        assert strip_markers("val x = 1 // NDJC:HOME_TITLE\n") == "val x = 1\n"

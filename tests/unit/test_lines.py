"""Unit tests for the Kotlin line classifier."""

import pytest

from ndjc.services.sanitizer.lines import (
    FragmentKind,
    LineKind,
    classify_fragment,
    classify_line,
    classify_lines,
    split_lines,
)


class TestClassifyLine:
    """Tests for single-line classification."""

    @pytest.mark.parametrize(
        "line,kind",
        [
            ("package app.ndjc.demo", LineKind.PACKAGE),
            ("import androidx.compose.material3.Text", LineKind.IMPORT),
            ("import kotlinx.coroutines.*", LineKind.IMPORT),
            ("import a.b.C as D", LineKind.IMPORT),
            ("fun f() {}", LineKind.DECLARATION),
            ("private fun helper(): Int = 1", LineKind.DECLARATION),
            ("data class Post(val id: Int)", LineKind.DECLARATION),
            ("object Cache", LineKind.DECLARATION),
            ("val TAG = \"x\"", LineKind.DECLARATION),
            ("@Composable", LineKind.DECLARATION),
            ("@Composable fun Card() {}", LineKind.DECLARATION),
            ("Text(\"Hello\")", LineKind.STATEMENT),
            ("    val local = 1", LineKind.STATEMENT),
            ("    fun nested() {}", LineKind.STATEMENT),
            ("", LineKind.BLANK),
            ("// comment", LineKind.BLANK),
            (" * doc", LineKind.BLANK),
        ],
    )
    def test_kinds(self, line, kind):
        """Test the closed set of line categories."""
        assert classify_line(line) is kind

    def test_line_numbers(self):
        """Test classified lines carry 1-based numbers."""
        lines = classify_lines("import a.B\n\nfun f() {}")
        assert [l.number for l in lines] == [1, 2, 3]
        assert [l.kind for l in lines] == [LineKind.IMPORT, LineKind.BLANK, LineKind.DECLARATION]

    def test_split_lines_accepts_lists(self):
        """Test list input is flattened into lines."""
        assert split_lines(["a\nb", "c"]) == ["a", "b", "c"]
        assert split_lines(None) == []


class TestClassifyFragment:
    """Tests for whole-fragment classification."""

    def test_imports_only(self):
        """Test imports-only fragments."""
        assert classify_fragment("import a.B\n\nimport c.D") is FragmentKind.IMPORTS

    def test_toplevel(self):
        """Test fragments with a declaration are top-level."""
        assert classify_fragment("import a.B\nfun f() {}") is FragmentKind.TOPLEVEL

    def test_statements(self):
        """Test plain statements are neither imports nor top-level."""
        assert classify_fragment("Text(\"x\")\nSpacer()") is FragmentKind.STATEMENTS

    def test_empty(self):
        """Test blank and comment-only fragments."""
        assert classify_fragment("\n// nothing\n") is FragmentKind.EMPTY

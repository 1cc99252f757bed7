"""Test configuration for NDJC."""

import copy
import tempfile
from pathlib import Path

import pytest

from ndjc.core.config import Config, LinterConfig, StorageConfig
from ndjc.registry import load_registry

DEMO_CONTRACT = {
    "metadata": {"mode": "A", "packageId": "app.ndjc.demo.x", "appName": "Demo"},
    "anchors": {
        "text": {"PACKAGE_NAME": "app.ndjc.demo.x", "APP_LABEL": "Demo"},
        "block": {},
        "list": {},
        "if": {},
    },
    "files": [],
}


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_dir):
    """Configuration writing artifacts and workspaces below ``temp_dir``."""
    return Config(
        storage=StorageConfig(
            base_path=temp_dir / "output",
            workspace_path=temp_dir / "workspaces",
        ),
        linter=LinterConfig(),
    )


@pytest.fixture
def registry():
    """Builtin circle-basic anchor registry."""
    return load_registry("circle-basic")


@pytest.fixture
def demo_contract():
    """Minimal mode A contract accepted by the builtin registry."""
    return copy.deepcopy(DEMO_CONTRACT)


@pytest.fixture
def rich_contract():
    """Mode A contract exercising aliases, blocks, lists, flags and hooks."""
    return {
        "metadata": {
            "runId": "run-rich-1",
            "mode": "A",
            "template": "circle-basic",
            "appName": "Circle & Friends",
            "packageId": "app.ndjc.circle.friends",
            "locales": ["en", "zh-rCN"],
            "constraints": {"maxFiles": 5, "maxFileKB": 64},
        },
        "patches": {
            "gradle": {
                "minSdk": 26,
                "dependencies": [{"group": "io.coil-kt", "name": "coil-compose", "version": "2.5.0"}],
            },
            "manifest": {"permissions": ["INTERNET"]},
        },
        "files": [],
        "anchors": {
            "text": {
                "NDJC:PACKAGE_NAME": "app.ndjc.circle.friends",
                "APP_NAME": "Circle & Friends",
                "TITLE": "Welcome",
                "UNKNOWN_TEXT": "dropped",
            },
            "block": {
                "NDJC:BLOCK:HOME_HEADER": 'Text("Hello")',
                "HOME": "import androidx.compose.material3.Text\nText(\"Body\")",
            },
            "list": {"ROUTE": ["home", "detail"], "PROGUARD_EXTRA": "-keep class app.ndjc.** { *; }"},
            "if": {"DARK_THEME": "true", "SHOW_FAB": 0},
            "hook": {"hook.on create": "println(\"created\")"},
        },
        "modules": ["comments"],
    }

"""Anchor materializer: template copy, marker injection and the critical-anchor fuse."""

from .cleanup import cleanup_tree, strip_markers
from .gradle import GradleEditor, stabilize
from .markers import replace_block_marker, replace_text_marker
from .service import CRITICAL_MARKERS, AnchorMaterializer

__all__ = [
    "AnchorMaterializer",
    "CRITICAL_MARKERS",
    "GradleEditor",
    "cleanup_tree",
    "replace_block_marker",
    "replace_text_marker",
    "stabilize",
    "strip_markers",
]

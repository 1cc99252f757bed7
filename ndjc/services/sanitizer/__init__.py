"""Plan sanitizer and the Kotlin line classifier it is built on."""

from .lines import ClassifiedLine, FragmentKind, LineKind, classify_fragment, classify_line, classify_lines
from .service import PlanSanitizer, SanitizeReport, clean_fragment

__all__ = [
    "ClassifiedLine",
    "FragmentKind",
    "LineKind",
    "PlanSanitizer",
    "SanitizeReport",
    "classify_fragment",
    "classify_line",
    "classify_lines",
    "clean_fragment",
]

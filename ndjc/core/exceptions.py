"""
Custom exception hierarchy for NDJC.

All exceptions inherit from NDJCError to enable consistent error handling
across the pipeline. Each exception type includes context for debugging and logging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class NDJCError(Exception):
    """Base exception for all NDJC errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ValidationError(NDJCError):
    """Raised when input or output validation fails."""

    field_name: str | None = None
    expected_type: str | None = None
    actual_value: Any = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Validation failed for '{self.field_name}': {base}"
        return f"Validation failed: {base}"


@dataclass
class ServiceError(NDJCError):
    """Raised when a service operation fails."""

    service_name: str = ""
    operation: str = ""
    retryable: bool = False

    def __str__(self) -> str:
        base = super().__str__()
        retry_hint = " (retryable)" if self.retryable else " (non-retryable)"
        return f"[{self.service_name}.{self.operation}]{retry_hint}: {base}"


@dataclass
class RegistryError(NDJCError):
    """Raised when an anchor registry cannot be loaded or is malformed."""

    registry_path: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"Registry error ({self.registry_path or 'builtin'}): {base}"


@dataclass
class TemplateNotFoundError(NDJCError):
    """Raised when the requested template tree does not exist."""

    template: str = ""
    expected_path: str = ""

    def __str__(self) -> str:
        return f"Template '{self.template}' not found at '{self.expected_path}'"


@dataclass
class PlanBlockedError(NDJCError):
    """Raised when the plan linter blocks a plan in fail-closed mode."""

    report: Any = None

    def __str__(self) -> str:
        critical = getattr(self.report, "critical", 0)
        return f"Plan blocked by linter ({critical} critical): {self.message}"


@dataclass
class CriticalAnchorFuseError(NDJCError):
    """Raised when no critical anchor was replaced during materialization.

    This is an unconditional abort: the template would otherwise ship
    without any real customization.
    """

    run_id: str = ""
    counts: dict[str, int] = field(default_factory=dict)
    audit: Any = None

    def __str__(self) -> str:
        return f"CRITICAL ANCHOR FUSE [{self.run_id}]: {self.message} | counts: {self.counts}"


@dataclass
class DispatchError(ServiceError):
    """Raised when a build workflow dispatch fails."""

    status_code: int = 0

    def __post_init__(self) -> None:
        self.service_name = "dispatch"

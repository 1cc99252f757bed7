"""Core infrastructure components for NDJC."""

from .config import Config, get_config
from .exceptions import (
    CriticalAnchorFuseError,
    DispatchError,
    NDJCError,
    PlanBlockedError,
    RegistryError,
    ServiceError,
    TemplateNotFoundError,
    ValidationError,
)
from .logging import get_logger, run_context, setup_logging
from .types import Hash, PipelineRun, StageResult, StageStatus

__all__ = [
    "Config",
    "get_config",
    "NDJCError",
    "CriticalAnchorFuseError",
    "DispatchError",
    "PlanBlockedError",
    "RegistryError",
    "ServiceError",
    "TemplateNotFoundError",
    "ValidationError",
    "get_logger",
    "run_context",
    "setup_logging",
    "Hash",
    "PipelineRun",
    "StageResult",
    "StageStatus",
]

"""External integrations."""

from .github import DispatchResult, WorkflowDispatcher, normalize_workflow_id

__all__ = ["DispatchResult", "WorkflowDispatcher", "normalize_workflow_id"]

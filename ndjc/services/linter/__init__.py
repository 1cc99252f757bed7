"""Plan linter."""

from .service import PlanLinter

__all__ = ["PlanLinter"]

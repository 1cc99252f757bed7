"""Contract-to-Plan compiler."""

from .service import PlanCompiler, route_fragment, to_bool, to_string_list

__all__ = [
    "PlanCompiler",
    "route_fragment",
    "to_bool",
    "to_string_list",
]

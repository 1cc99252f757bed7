"""Anchor registries: per-template whitelists, aliases and defaults."""

from .loader import AnchorRegistry, builtin_templates, load_registry, load_registry_file

__all__ = ["AnchorRegistry", "builtin_templates", "load_registry", "load_registry_file"]

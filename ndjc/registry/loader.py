"""
Per-template anchor registry.

A registry is the closed whitelist of anchors a template understands, plus
alias folding, required anchors, metadata-derived defaults and the route and
module recipes that seed block placeholders. It is loaded once per run and
treated as immutable.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, PrivateAttr
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import RegistryError
from ..core.logging import get_logger
from ..models.anchors import AnchorGroup, canon_key
from ..models.contract import CamelModel

logger = get_logger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_TEMPLATE = "circle-basic"


class TextAnchorSpec(CamelModel):
    """A text anchor and the template markers it fills."""

    key: str
    markers: list[str] = Field(default_factory=list)


class RequiredAnchors(CamelModel):
    """Anchors a contract must provide (bare names)."""

    text: list[str] = Field(default_factory=list)
    block: list[str] = Field(default_factory=list)
    list_: list[str] = Field(default_factory=list, alias="list")


class RegistryDefaults(CamelModel):
    """Default values; text templates may use ``{appName}`` and ``{packageId}``."""

    text: dict[str, str] = Field(default_factory=dict)


class ModuleRecipe(CamelModel):
    """Blocks and list items a feature module implies."""

    blocks: list[str] = Field(default_factory=list)
    lists: dict[str, list[str]] = Field(default_factory=dict)


class AnchorRegistry(CamelModel):
    """Anchor whitelist and recipes for one template."""

    template_key: str
    version: str | None = None
    text_anchors: list[TextAnchorSpec] = Field(default_factory=list)
    block_anchors: list[str] = Field(default_factory=list)
    list_anchors: list[str] = Field(default_factory=list)
    if_anchors: list[str] = Field(default_factory=list)
    hook_anchors: list[str] = Field(default_factory=list)
    resource_dirs: list[str] = Field(default_factory=list)
    aliases: dict[str, str] = Field(default_factory=dict)
    required: RequiredAnchors = Field(default_factory=RequiredAnchors)
    defaults: RegistryDefaults = Field(default_factory=RegistryDefaults)
    route_blocks: dict[str, list[str]] = Field(default_factory=dict)
    modules: dict[str, ModuleRecipe] = Field(default_factory=dict)

    _allowed: dict[AnchorGroup, set[str]] = PrivateAttr(default_factory=dict)
    _aliases: dict[str, str] = PrivateAttr(default_factory=dict)
    _markers: dict[str, list[str]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._allowed = {
            AnchorGroup.TEXT: {canon_key(t.key, AnchorGroup.TEXT) for t in self.text_anchors},
            AnchorGroup.BLOCK: {canon_key(k, AnchorGroup.BLOCK) for k in self.block_anchors},
            AnchorGroup.LIST: {canon_key(k, AnchorGroup.LIST) for k in self.list_anchors},
            AnchorGroup.IF: {canon_key(k, AnchorGroup.IF) for k in self.if_anchors},
            AnchorGroup.HOOK: {canon_key(k, AnchorGroup.HOOK) for k in self.hook_anchors},
        }
        self._aliases = {canon_key(k): canon_key(v) for k, v in self.aliases.items()}
        for spec in self.text_anchors:
            markers = spec.markers or [spec.key]
            self._markers[canon_key(spec.key, AnchorGroup.TEXT)] = [
                canon_key(m, AnchorGroup.TEXT).partition(":")[2] for m in markers
            ]

    def allowed(self, group: AnchorGroup) -> set[str]:
        return set(self._allowed.get(group, set()))

    def is_allowed(self, key: str) -> bool:
        """Whitelist check for a canonical key. An empty group whitelist admits everything."""
        group = AnchorGroup(key.partition(":")[0])
        if group is AnchorGroup.RES:
            if not self.resource_dirs:
                return True
            path = key.partition(":")[2]
            return path.split("/", 1)[0].split("-", 1)[0].lower() in {
                d.lower() for d in self.resource_dirs
            }
        allowed = self._allowed.get(group, set())
        return not allowed or key in allowed

    def resolve_alias(self, key: str) -> str:
        """Fold a canonical key through the alias table."""
        return self._aliases.get(key, key)

    def text_markers(self, key: str) -> list[str]:
        """Marker names (without ``NDJC:``) a canonical text key fills."""
        return list(self._markers.get(key, [key.partition(":")[2]]))

    def default_text(self, app_name: str, package_id: str) -> dict[str, str]:
        """Registry text defaults rendered against metadata, keyed canonically."""
        values = {"appName": app_name or "", "packageId": package_id or ""}
        rendered: dict[str, str] = {}
        for name, template in self.defaults.text.items():
            try:
                rendered[canon_key(name, AnchorGroup.TEXT)] = template.format(**values)
            except (KeyError, IndexError, ValueError) as e:
                raise RegistryError(
                    message=f"Bad default template for {name}: {template!r}",
                    context={"template_key": self.template_key},
                    cause=e,
                ) from e
        return rendered

    def blocks_for_route(self, route: str) -> list[str]:
        return [canon_key(b, AnchorGroup.BLOCK) for b in self.route_blocks.get(route.strip().lower(), [])]


def _parse(data: dict[str, Any], source: str) -> AnchorRegistry:
    try:
        return AnchorRegistry.model_validate(data)
    except PydanticValidationError as e:
        raise RegistryError(message="Invalid registry document", registry_path=source, cause=e) from e


def load_registry_file(path: Path) -> AnchorRegistry:
    """Load a registry JSON document from disk."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise RegistryError(message="Cannot read registry", registry_path=str(path), cause=e) from e
    registry = _parse(data, str(path))
    logger.debug("Registry loaded", path=str(path), template=registry.template_key, version=registry.version)
    return registry


@lru_cache(maxsize=16)
def _builtin(template: str) -> AnchorRegistry:
    return load_registry_file(DATA_DIR / f"{template}.json")


def builtin_templates() -> list[str]:
    return sorted(p.stem for p in DATA_DIR.glob("*.json"))


def load_registry(
    template: str | None = None,
    path: Path | None = None,
    default: str = DEFAULT_TEMPLATE,
) -> AnchorRegistry:
    """Resolve the registry for a template.

    An explicit ``path`` wins. Unknown templates fall back to the ``default``
    template's registry.

    Raises:
        RegistryError: if neither ``template`` nor ``default`` has a builtin registry.
    """
    if path is not None:
        return load_registry_file(path)
    available = builtin_templates()
    key = (template or default).strip().lower()
    if key not in available:
        fallback = default.strip().lower()
        if fallback not in available:
            raise RegistryError(
                message=f"No builtin registry for default template '{default}'",
                registry_path=str(DATA_DIR),
            )
        logger.warning("Unknown template, using default registry", template=key, fallback=fallback)
        key = fallback
    return _builtin(key)

"""
Contract-to-Plan Compiler.

Turns an arbitrarily shaped, possibly aliased anchor payload into the
canonical Plan. The plan is built from a registry-derived skeleton and only
present, whitelisted values are overlaid on it.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, TypeVar

from ...core.config import Config, get_config
from ...core.logging import get_logger
from ...models.anchors import AnchorGroup, canon_key
from ...models.contract import Contract, FileKind, Mode
from ...models.plan import KOTLIN_IMPORTS, KOTLIN_TOPLEVEL, Companion, GradleSummary, Plan, PlanMeta
from ...registry import AnchorRegistry, load_registry
from ..sanitizer.lines import FragmentKind, classify_fragment, split_lines
from ..validation.security import normalize_permission

logger = get_logger(__name__)

V = TypeVar("V")


def to_string_list(value: Any) -> list[str]:
    """Coerce a JSON array, a JSON-array string or a comma/newline string to strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return to_string_list(parsed)
        return [part.strip() for part in text.replace("\r", "").replace(",", "\n").split("\n") if part.strip()]
    return [str(value)]


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return False


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def route_fragment(fragment: str, plan: Plan) -> FragmentKind:
    """Place a free code fragment into the hook it belongs to.

    Imports-only fragments go to ``HOOK:KOTLIN_IMPORTS``, fragments with a
    top-level declaration go to ``HOOK:KOTLIN_TOPLEVEL``. Anything else is
    kept in ``plan.unplaced`` for the caller to place into a block or list.
    """
    kind = classify_fragment(fragment)
    if kind is FragmentKind.IMPORTS:
        plan.hook_lines(KOTLIN_IMPORTS).extend(line.strip() for line in split_lines(fragment) if line.strip())
    elif kind is FragmentKind.TOPLEVEL:
        plan.hook_lines(KOTLIN_TOPLEVEL).extend(split_lines(fragment))
    elif kind is FragmentKind.STATEMENTS:
        plan.unplaced.append(fragment)
    return kind


class PlanCompiler:
    """Compiles a validated Contract into a Plan.

    Every raw key is canonicalized, folded through the registry aliases and
    intersected with the registry whitelist. Unknown keys are dropped and
    logged, never kept.
    """

    def __init__(self, registry: AnchorRegistry | None = None, config: Config | None = None) -> None:
        self.config = config or get_config()
        self._registry = registry

    def registry_for(self, contract: Contract) -> AnchorRegistry:
        if self._registry is not None:
            return self._registry
        templates = self.config.templates
        return load_registry(contract.metadata.template, templates.registry_file, templates.default_template)

    def _overlay(
        self,
        registry: AnchorRegistry,
        group: AnchorGroup,
        raw: dict[str, Any],
        coerce: Callable[[Any], V],
        dropped: list[str],
    ) -> dict[str, V]:
        out: dict[str, V] = {}
        for raw_key, value in raw.items():
            key = registry.resolve_alias(canon_key(raw_key, group))
            if not key:
                continue
            if not key.startswith(f"{group.value}:") or not registry.is_allowed(key):
                dropped.append(key)
                continue
            out[key] = coerce(value)
        return out

    def compile(self, contract: Contract) -> Plan:
        """Compile ``contract`` into a fresh Plan."""
        registry = self.registry_for(contract)
        meta = contract.metadata
        dropped: list[str] = []

        # Text: registry defaults first, then present contract values
        text = registry.default_text(meta.app_name, meta.package_id)
        text = {k: v for k, v in text.items() if registry.is_allowed(k) or k == "TEXT:PACKAGE_NAME"}
        supplied = self._overlay(
            registry, AnchorGroup.TEXT, contract.anchors.text, lambda v: "" if v is None else str(v), dropped
        )
        text.update({k: v for k, v in supplied.items() if v.strip()})
        previous = text.get("TEXT:PACKAGE_NAME")
        if previous != meta.package_id:
            if previous:
                logger.warning("PACKAGE_NAME repaired", supplied=previous, package_id=meta.package_id)
            text["TEXT:PACKAGE_NAME"] = meta.package_id

        # Lists: required skeleton, contract values, routes and module recipes
        lists: dict[str, list[str]] = {
            canon_key(name, AnchorGroup.LIST): [] for name in registry.required.list_
        }
        lists.update(self._overlay(registry, AnchorGroup.LIST, contract.anchors.list_, to_string_list, dropped))
        routes = to_string_list(contract.routes)
        if routes:
            lists["LIST:ROUTES"] = _unique(lists.get("LIST:ROUTES", []) + routes)

        block = self._overlay(
            registry, AnchorGroup.BLOCK, contract.anchors.block, lambda v: "" if v is None else str(v), dropped
        )

        for module in to_string_list(contract.modules):
            recipe = registry.modules.get(module.strip().lower())
            if recipe is None:
                logger.debug("Unknown module recipe", module=module)
                continue
            for name in recipe.blocks:
                key = canon_key(name, AnchorGroup.BLOCK)
                if registry.is_allowed(key):
                    block.setdefault(key, "")
            for name, items in recipe.lists.items():
                key = canon_key(name, AnchorGroup.LIST)
                if registry.is_allowed(key):
                    lists[key] = _unique(lists.get(key, []) + items)

        for route in lists.get("LIST:ROUTES", []):
            for key in registry.blocks_for_route(route):
                if registry.is_allowed(key):
                    block.setdefault(key, "")

        if_ = self._overlay(registry, AnchorGroup.IF, contract.anchors.if_, to_bool, dropped)
        resources = self._overlay(
            registry, AnchorGroup.RES, contract.anchors.res, lambda v: "" if v is None else str(v), dropped
        )
        hooks = self._overlay(registry, AnchorGroup.HOOK, contract.anchors.hook, split_lines, dropped)

        plan = Plan(
            meta=PlanMeta(
                run_id=meta.run_id,
                template=meta.template,
                app_name=meta.app_name,
                package_id=meta.package_id,
                mode=meta.mode,
                locales=list(meta.locales),
                template_key=registry.template_key,
                registry_version=registry.version,
            ),
            text=text,
            block=block,
            lists=lists,
            if_=if_,
            resources=resources,
            hooks=hooks,
            gradle=self._gradle_summary(contract),
            companions=self._companions(contract),
        )

        for fragment in contract.fragments:
            route_fragment(fragment, plan)

        if dropped:
            logger.info("Dropped non-whitelisted anchors", keys=sorted(set(dropped)), template=registry.template_key)
        logger.info(
            "Plan compiled",
            template=registry.template_key,
            text=len(plan.text),
            block=len(plan.block),
            lists=len(plan.lists),
            hooks=len(plan.hooks),
            companions=len(plan.companions),
            unplaced=len(plan.unplaced),
        )
        return plan

    def _gradle_summary(self, contract: Contract) -> GradleSummary:
        meta = contract.metadata
        anchors = contract.anchors.gradle
        patch = contract.patches.gradle
        if anchors and anchors.application_id and anchors.application_id != meta.package_id:
            logger.warning(
                "applicationId repaired", supplied=anchors.application_id, package_id=meta.package_id
            )

        permissions = list(contract.patches.manifest.permissions)
        if anchors and anchors.permissions:
            permissions.extend(anchors.permissions)
        res_configs = (anchors.res_configs if anchors and anchors.res_configs else None) or patch.res_configs

        return GradleSummary(
            application_id=meta.package_id,
            res_configs=_unique(list(res_configs or [])),
            permissions=_unique([normalize_permission(p) for p in permissions if p.strip()]),
            compile_sdk=patch.compile_sdk,
            min_sdk=patch.min_sdk,
            target_sdk=patch.target_sdk,
            dependencies=list(patch.dependencies or []),
            proguard_extra=list(patch.proguard_extra or []),
        )

    @staticmethod
    def _companions(contract: Contract) -> list[Companion]:
        if contract.mode is not Mode.B:
            return []
        return [
            Companion(
                path=f.path.replace("\\", "/"),
                content=f.content,
                encoding=f.encoding,
                kind=f.kind,
                overwrite=f.overwrite,
            )
            for f in contract.files
            if f.kind is not FileKind.MANIFEST_PATCH
        ]

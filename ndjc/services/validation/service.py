"""
Contract Validation Service.

Decides whether a contract may proceed and, if not, explains exactly why.
Schema failure short-circuits; every other rule set runs and all issues are
returned together.
"""

from __future__ import annotations

import time
from typing import Any

from ...core.config import Config, get_config
from ...core.exceptions import ValidationError
from ...core.logging import get_logger
from ...models.contract import Contract
from ...models.issues import Issue, ValidationResult
from ...registry import AnchorRegistry, load_registry
from .completeness import lint_contract
from .limits import check_limits
from .paths import check_paths
from .schema import check_schema
from .security import check_security
from .strict_json import extract_json

logger = get_logger(__name__)


class ContractValidationService:
    """Service for validating Contract v1 documents."""

    def __init__(self, config: Config | None = None, registry: AnchorRegistry | None = None) -> None:
        """Initialize the validation service.

        Args:
            config: Limits and rule configuration. Defaults to the global config.
            registry: Fixed registry to check required anchors against. When
                omitted the registry is resolved from the contract's template.
        """
        self.config = config or get_config()
        self._registry = registry

    def registry_for(self, contract: Contract) -> AnchorRegistry:
        if self._registry is not None:
            return self._registry
        templates = self.config.templates
        return load_registry(contract.metadata.template, templates.registry_file, templates.default_template)

    def validate_text(self, raw: str) -> tuple[Contract | None, ValidationResult]:
        """Validate raw LLM output: JSON extraction first, then :meth:`validate`."""
        try:
            data = extract_json(raw)
        except ValidationError as e:
            logger.warning("Contract is not JSON", error=e.message)
            return None, ValidationResult(
                ok=False, issues=[Issue.critical("E_NOT_JSON", e.message, where="$")]
            )
        return self.validate(data)

    def validate(self, data: dict[str, Any] | Contract) -> tuple[Contract | None, ValidationResult]:
        """Validate a contract.

        Args:
            data: Raw JSON object or an already parsed contract.

        Returns:
            The parsed contract (None on schema failure) and the result.
            ``ok`` is True when no critical issue was found; warnings never
            block.
        """
        start = time.perf_counter()

        if isinstance(data, Contract):
            contract = data
        else:
            contract, schema_issues = check_schema(data)
            if contract is None:
                logger.warning("Contract failed schema check", issues=len(schema_issues))
                return None, ValidationResult(ok=False, issues=schema_issues)

        registry = self.registry_for(contract)
        issues: list[Issue] = []
        issues.extend(check_limits(contract, self.config.limits))
        issues.extend(check_security(contract))
        issues.extend(check_paths(contract, self.config.validation))
        issues.extend(lint_contract(contract, registry))

        result = ValidationResult(ok=not any(i.is_critical for i in issues), issues=issues)
        logger.info(
            "Contract validated",
            ok=result.ok,
            errors=len(result.errors),
            warnings=len(result.warnings),
            template=registry.template_key,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return contract, result

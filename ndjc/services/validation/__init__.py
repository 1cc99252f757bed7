"""Contract schema and rule validators."""

from .completeness import lint_contract
from .limits import check_limits, decode_base64
from .paths import check_paths
from .schema import check_schema
from .security import FORBIDDEN_PERMISSIONS, check_security
from .service import ContractValidationService
from .strict_json import extract_json

__all__ = [
    "ContractValidationService",
    "FORBIDDEN_PERMISSIONS",
    "check_limits",
    "check_paths",
    "check_schema",
    "check_security",
    "decode_base64",
    "extract_json",
    "lint_contract",
]

"""
NDJC: contract-driven Android app generation.

Turns a structured app-generation contract into concrete edits inside an
Android project template. The contract is validated, compiled into a
canonical plan, sanitized, linted and finally materialized into a
run-scoped copy of the template, guarded by a critical-anchor fuse.
"""

__version__ = "1.0.0"
__author__ = "NDJC Team"

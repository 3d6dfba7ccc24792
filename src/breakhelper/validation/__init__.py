"""Rule engine for verifying break schedules."""

from breakhelper.validation.validator import (
    RuleContext,
    RuleEngine,
    ValidationResult,
    find_order_violations,
)

__all__ = [
    "RuleContext",
    "RuleEngine",
    "ValidationResult",
    "find_order_violations",
]

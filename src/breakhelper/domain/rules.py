"""Break schedule rule configuration.

Rules are stored as a generic parameter bag per rule. The bag is decoded
once, when the rule is built, into a typed parameter object for its
``rule_type`` so evaluators never read untyped keys.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from breakhelper.domain.models import BREAK_SEQUENCE, BreakType

BREAK_TYPE_NAMES = tuple(bt.value for bt in BREAK_SEQUENCE)


class RuleType(Enum):
    """Families of break schedule rules."""

    DISTRIBUTION = "distribution"
    ORDERING = "ordering"
    TIMING = "timing"
    COVERAGE = "coverage"


class InvalidRuleParametersError(ValueError):
    """Raised when a stored parameter bag does not decode for its rule type."""

    def __init__(self, rule_name: str, errors: list[str]):
        self.rule_name = rule_name
        self.errors = errors
        super().__init__(f"Invalid parameters for rule {rule_name!r}: {'; '.join(errors)}")


@dataclass(frozen=True)
class OrderingRuleParams:
    """Configured order of break starts.

    The sequence must follow HB1, B, HB2. Ordering rules always enforce the
    full HB1 < B < HB2 order, whatever subset is configured.
    """

    sequence: tuple[BreakType, ...] = BREAK_SEQUENCE


@dataclass(frozen=True)
class TimingRuleParams:
    """Gap limits between consecutive breaks and distance from shift edges."""

    min_gap_minutes: Optional[int] = None
    max_gap_minutes: Optional[int] = None
    within_shift: bool = False
    min_minutes_after_start: Optional[int] = None
    min_minutes_before_end: Optional[int] = None


@dataclass(frozen=True)
class CoverageRuleParams:
    """Staffing floor and same-type break spacing across agents."""

    min_agents: Optional[int] = None
    alert_threshold: Optional[int] = None
    min_intervals: Optional[int] = None
    applies_to: tuple[BreakType, ...] = BREAK_SEQUENCE


@dataclass(frozen=True)
class DistributionRuleParams:
    """Limits on how breaks may pile up at one start time."""

    max_same_start: Optional[int] = None
    tolerance_percentage: Optional[float] = None
    applies_to: tuple[BreakType, ...] = BREAK_SEQUENCE


RuleParams = Union[
    OrderingRuleParams,
    TimingRuleParams,
    CoverageRuleParams,
    DistributionRuleParams,
]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _decode_break_types(value, errors: list[str], key: str) -> tuple[BreakType, ...]:
    if value is None or value == "all":
        return BREAK_SEQUENCE
    if not isinstance(value, (list, tuple)):
        errors.append(f"{key} must be a list of break types")
        return BREAK_SEQUENCE
    invalid = [v for v in value if v not in BREAK_TYPE_NAMES]
    if invalid:
        errors.append(f"{key} contains invalid break types: {', '.join(map(str, invalid))}")
        return BREAK_SEQUENCE
    return tuple(BreakType(v) for v in value)


def _optional_minutes(bag: dict, keys: tuple[str, ...], errors: list[str]) -> Optional[int]:
    for key in keys:
        if key in bag and bag[key] is not None:
            value = bag[key]
            if not _is_number(value) or value < 0:
                errors.append(f"{key} must be a non-negative number")
                return None
            return int(value)
    return None


def _optional_count(bag: dict, key: str, errors: list[str]) -> Optional[int]:
    value = bag.get(key)
    if value is None:
        return None
    if not _is_int(value) or value < 0:
        errors.append(f"{key} must be a non-negative integer")
        return None
    return value


def _decode_ordering(bag: dict, errors: list[str]) -> OrderingRuleParams:
    sequence = bag.get("sequence", list(BREAK_TYPE_NAMES))
    if not isinstance(sequence, (list, tuple)) or not sequence:
        errors.append("sequence must be a non-empty list")
        decoded = BREAK_SEQUENCE
    else:
        decoded = _decode_break_types(sequence, errors, "sequence")
        positions = [BREAK_SEQUENCE.index(t) for t in decoded]
        if positions != sorted(set(positions)):
            errors.append("sequence must follow the order HB1, B, HB2")
            decoded = BREAK_SEQUENCE
    return OrderingRuleParams(sequence=decoded)


def _decode_timing(bag: dict, errors: list[str]) -> TimingRuleParams:
    min_gap = _optional_minutes(bag, ("min_gap_minutes", "min_minutes"), errors)
    max_gap = _optional_minutes(bag, ("max_gap_minutes", "max_minutes"), errors)
    if min_gap is not None and max_gap is not None and min_gap > max_gap:
        errors.append("min_minutes must be less than or equal to max_minutes")
    return TimingRuleParams(
        min_gap_minutes=min_gap,
        max_gap_minutes=max_gap,
        within_shift=bool(bag.get("within_shift", bag.get("enforce_strict", False))),
        min_minutes_after_start=_optional_minutes(bag, ("min_minutes_after_start",), errors),
        min_minutes_before_end=_optional_minutes(bag, ("min_minutes_before_end",), errors),
    )


def _decode_coverage(bag: dict, errors: list[str]) -> CoverageRuleParams:
    return CoverageRuleParams(
        min_agents=_optional_count(bag, "min_agents", errors),
        alert_threshold=_optional_count(bag, "alert_threshold", errors),
        min_intervals=_optional_count(bag, "min_intervals", errors),
        applies_to=_decode_break_types(bag.get("applies_to"), errors, "applies_to"),
    )


def _decode_distribution(bag: dict, errors: list[str]) -> DistributionRuleParams:
    tolerance = bag.get("tolerance_percentage")
    if tolerance is not None and (not _is_number(tolerance) or not 0 <= tolerance <= 100):
        errors.append("tolerance_percentage must be a number between 0 and 100")
        tolerance = None
    max_same_start = _optional_count(bag, "max_same_start", errors)
    if max_same_start == 0:
        errors.append("max_same_start must be at least 1")
        max_same_start = None
    return DistributionRuleParams(
        max_same_start=max_same_start,
        tolerance_percentage=float(tolerance) if tolerance is not None else None,
        applies_to=_decode_break_types(bag.get("applies_to"), errors, "applies_to"),
    )


_DECODERS = {
    RuleType.ORDERING: _decode_ordering,
    RuleType.TIMING: _decode_timing,
    RuleType.COVERAGE: _decode_coverage,
    RuleType.DISTRIBUTION: _decode_distribution,
}


def validate_rule_parameters(rule_type: RuleType, parameters: dict) -> list[str]:
    """Return the problems found in a parameter bag, empty if it decodes."""
    errors: list[str] = []
    if not isinstance(parameters, dict):
        return ["parameters must be an object"]
    _DECODERS[RuleType(rule_type)](parameters, errors)
    return errors


def decode_parameters(rule_name: str, rule_type: RuleType, parameters: dict) -> RuleParams:
    """Decode a stored parameter bag into the typed params of ``rule_type``.

    Raises:
        InvalidRuleParametersError: If any parameter fails validation.
    """
    if not isinstance(parameters, dict):
        raise InvalidRuleParametersError(rule_name, ["parameters must be an object"])
    errors: list[str] = []
    params = _DECODERS[RuleType(rule_type)](parameters, errors)
    if errors:
        raise InvalidRuleParametersError(rule_name, errors)
    return params


@dataclass
class BreakScheduleRule:
    """A configured break schedule rule.

    Attributes:
        rule_name: Unique rule identity, reported on every violation.
        rule_type: Which evaluator handles the rule.
        params: Typed parameters for ``rule_type``.
        is_active: Inactive rules are never evaluated.
        is_blocking: Violations of blocking rules are errors, otherwise warnings.
        priority: Lower values are evaluated and reported first.
        description: Free text shown in rule administration.
        parameters: The stored parameter bag the params were decoded from.
    """

    rule_name: str
    rule_type: RuleType
    params: RuleParams
    is_active: bool = True
    is_blocking: bool = False
    priority: int = 100
    description: str = ""
    parameters: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: dict) -> "BreakScheduleRule":
        """Build a rule from its stored representation."""
        rule_name = payload["rule_name"]
        rule_type = RuleType(payload["rule_type"])
        parameters = payload.get("parameters") or {}
        return cls(
            rule_name=rule_name,
            rule_type=rule_type,
            params=decode_parameters(rule_name, rule_type, parameters),
            is_active=bool(payload.get("is_active", True)),
            is_blocking=bool(payload.get("is_blocking", False)),
            priority=int(payload.get("priority", 100)),
            description=payload.get("description", ""),
            parameters=dict(parameters),
        )

    def to_dict(self) -> dict:
        return {
            "rule_name": self.rule_name,
            "rule_type": self.rule_type.value,
            "parameters": dict(self.parameters),
            "is_active": self.is_active,
            "is_blocking": self.is_blocking,
            "priority": self.priority,
            "description": self.description,
        }


def sort_rules(rules: list[BreakScheduleRule]) -> list[BreakScheduleRule]:
    """Active rules in evaluation order (priority ascending, stable)."""
    return sorted((r for r in rules if r.is_active), key=lambda r: r.priority)


DEFAULT_RULE_ROWS = [
    {
        "rule_name": "break_ordering",
        "rule_type": "ordering",
        "parameters": {"sequence": ["HB1", "B", "HB2"]},
        "is_blocking": True,
        "priority": 1,
        "description": "Breaks must be taken in order: HB1, then B, then HB2",
    },
    {
        "rule_name": "minimum_gap",
        "rule_type": "timing",
        "parameters": {"min_minutes": 90},
        "is_blocking": True,
        "priority": 2,
        "description": "Minimum 90 minutes between consecutive breaks",
    },
    {
        "rule_name": "maximum_gap",
        "rule_type": "timing",
        "parameters": {"max_minutes": 270},
        "is_blocking": True,
        "priority": 3,
        "description": "Maximum 270 minutes between consecutive breaks",
    },
    {
        "rule_name": "shift_boundary",
        "rule_type": "timing",
        "parameters": {"enforce_strict": True},
        "is_blocking": True,
        "priority": 4,
        "description": "Breaks must fall within shift hours",
    },
    {
        "rule_name": "minimum_coverage",
        "rule_type": "coverage",
        "parameters": {"min_agents": 3, "alert_threshold": 5},
        "is_blocking": False,
        "priority": 5,
        "description": "Warn when fewer than 3 agents are in during an interval",
    },
    {
        "rule_name": "minimum_break_spacing",
        "rule_type": "coverage",
        "parameters": {"min_intervals": 10, "applies_to": ["HB1", "B", "HB2"]},
        "is_blocking": False,
        "priority": 60,
        "description": "Same-type breaks of different agents should be 10 intervals apart",
    },
]


def default_rules() -> list[BreakScheduleRule]:
    """The seed rule set of a fresh installation."""
    return [BreakScheduleRule.from_dict(row) for row in DEFAULT_RULE_ROWS]

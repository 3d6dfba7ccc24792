"""Rule engine for break schedules.

This module is the single place where break schedule rules are evaluated.
Auto-distribution, manual edits and CSV imports all check schedules here,
so every path reports the same violations with the same messages.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from breakhelper.domain.intervals import (
    INTERVAL_MINUTES,
    normalize_time,
    short_time,
    time_to_minutes,
)
from breakhelper.domain.models import (
    BREAK_SEQUENCE,
    AgentBreakSchedule,
    BreakTimes,
    BreakType,
    Severity,
    ShiftWindow,
    ValidationViolation,
)
from breakhelper.domain.rules import (
    BreakScheduleRule,
    CoverageRuleParams,
    DistributionRuleParams,
    RuleType,
    TimingRuleParams,
    sort_rules,
)

logger = logging.getLogger(__name__)


def find_order_violations(breaks: BreakTimes) -> list[tuple[BreakType, BreakType]]:
    """Find every pair of present breaks that is out of HB1 < B < HB2 order.

    Each pair ``(earlier, later)`` whose start times are both set is checked.
    Equal start times are out of order too.
    """
    broken = []
    for i, earlier in enumerate(BREAK_SEQUENCE):
        for later in BREAK_SEQUENCE[i + 1:]:
            first, second = breaks.get(earlier), breaks.get(later)
            if first is None or second is None:
                continue
            first_minutes, second_minutes = time_to_minutes(first), time_to_minutes(second)
            if first_minutes >= second_minutes:
                broken.append((earlier, later))
    return broken


def order_message(earlier: BreakType, later: BreakType) -> str:
    return f"{earlier.value} must come before {later.value}"


@dataclass
class RuleContext:
    """What the engine knows about the rest of the day.

    Attributes:
        shift: Shift window of the agent under validation, falls back to
            the schedule's own window.
        other_schedules: Schedules of the other agents on the same day.
        coverage: Per-interval count of *other* agents ``IN``. Computed from
            ``other_schedules`` when not given.
    """

    shift: Optional[ShiftWindow] = None
    other_schedules: list[AgentBreakSchedule] = field(default_factory=list)
    coverage: Optional[dict[str, int]] = None

    def __post_init__(self):
        if self.coverage is None:
            coverage: dict[str, int] = {}
            for schedule in self.other_schedules:
                for interval_start, break_type in schedule.intervals.items():
                    if break_type is BreakType.IN:
                        coverage[interval_start] = coverage.get(interval_start, 0) + 1
            self.coverage = coverage

    def others_in(self, interval_start: str) -> int:
        return self.coverage.get(interval_start, 0)

    @property
    def mean_coverage(self) -> float:
        if not self.coverage:
            return 0.0
        return sum(self.coverage.values()) / len(self.coverage)


@dataclass
class ValidationResult:
    """Result of validating one agent's schedule."""

    is_valid: bool = True
    errors: list[ValidationViolation] = field(default_factory=list)
    warnings: list[ValidationViolation] = field(default_factory=list)

    def add_violation(self, violation: ValidationViolation) -> None:
        """Add a violation; errors mark the result invalid."""
        if violation.is_blocking:
            self.errors.append(violation)
            self.is_valid = False
        else:
            self.warnings.append(violation)

    @property
    def has_blocking(self) -> bool:
        return not self.is_valid

    @property
    def violations(self) -> list[ValidationViolation]:
        return self.errors + self.warnings

    @property
    def blocked_by(self) -> list[str]:
        """Distinct names of the rules behind blocking violations, in report order."""
        names: list[str] = []
        for violation in self.errors:
            if violation.rule_name not in names:
                names.append(violation.rule_name)
        return names

    @property
    def failure_reason(self) -> str:
        return "; ".join(v.message for v in self.errors) or "Validation failed"


class RuleEngine:
    """Validates agent break schedules against configured rules.

    Only active rules are evaluated, in ascending priority. Every active
    rule runs; nothing short-circuits, so violation counts always reflect
    the full rule set. Violations of blocking rules have severity ``error``,
    all others ``warning``.

    Example:
        >>> engine = RuleEngine()
        >>> violations = engine.validate(schedule, default_rules())
        >>> if any(v.is_blocking for v in violations):
        ...     print("rejected")
    """

    def __init__(self):
        self._evaluators = {
            RuleType.ORDERING: self._check_ordering,
            RuleType.TIMING: self._check_timing,
            RuleType.COVERAGE: self._check_coverage,
            RuleType.DISTRIBUTION: self._check_distribution,
        }

    def validate(
        self,
        schedule: AgentBreakSchedule,
        rules: list[BreakScheduleRule],
        context: Optional[RuleContext] = None,
    ) -> list[ValidationViolation]:
        """Evaluate all active rules against one schedule.

        Args:
            schedule: The candidate schedule.
            rules: Configured rules, in any order.
            context: Shift and other agents' schedules for cross-agent rules.

        Returns:
            Violations in rule priority order, identical (rule, message)
            pairs reported once.
        """
        context = context or RuleContext()
        violations: list[ValidationViolation] = []
        seen: set[tuple[str, str]] = set()

        for rule in sort_rules(rules):
            severity = Severity.ERROR if rule.is_blocking else Severity.WARNING
            for message, affected in self._evaluators[rule.rule_type](schedule, rule, context):
                key = (rule.rule_name, message)
                if key in seen:
                    continue
                seen.add(key)
                violations.append(
                    ValidationViolation(
                        rule_name=rule.rule_name,
                        message=message,
                        severity=severity,
                        affected_intervals=affected,
                    )
                )

        if violations:
            logger.debug(
                "Agent %s: %d violation(s) %s",
                schedule.user_id,
                len(violations),
                [v.rule_name for v in violations],
            )
        return violations

    def evaluate(
        self,
        schedule: AgentBreakSchedule,
        rules: list[BreakScheduleRule],
        context: Optional[RuleContext] = None,
    ) -> ValidationResult:
        """Validate and collect the violations into a ValidationResult."""
        result = ValidationResult()
        for violation in self.validate(schedule, rules, context):
            result.add_violation(violation)
        return result

    def has_blocking(
        self,
        schedule: AgentBreakSchedule,
        rules: list[BreakScheduleRule],
        context: Optional[RuleContext] = None,
    ) -> bool:
        """Check a tentative placement against the blocking rules only."""
        blocking = [r for r in rules if r.is_blocking]
        return bool(blocking) and bool(self.validate(schedule, blocking, context))

    def _check_ordering(
        self,
        schedule: AgentBreakSchedule,
        rule: BreakScheduleRule,
        context: RuleContext,
    ) -> list[tuple[str, list[str]]]:
        breaks = schedule.breaks
        return [
            (
                order_message(earlier, later),
                [normalize_time(breaks.get(earlier)), normalize_time(breaks.get(later))],
            )
            for earlier, later in find_order_violations(breaks)
        ]

    def _check_timing(
        self,
        schedule: AgentBreakSchedule,
        rule: BreakScheduleRule,
        context: RuleContext,
    ) -> list[tuple[str, list[str]]]:
        params: TimingRuleParams = rule.params
        found = []
        breaks = schedule.breaks

        # Gaps between consecutive breaks
        for earlier, later in zip(BREAK_SEQUENCE, BREAK_SEQUENCE[1:]):
            first, second = breaks.get(earlier), breaks.get(later)
            if first is None or second is None:
                continue
            gap = time_to_minutes(second) - time_to_minutes(first)
            affected = [normalize_time(first), normalize_time(second)]
            label = f"Gap between {earlier.value} and {later.value} is {gap} minutes"
            if params.min_gap_minutes is not None and gap < params.min_gap_minutes:
                found.append((f"{label} (minimum {params.min_gap_minutes} required)", affected))
            if params.max_gap_minutes is not None and gap > params.max_gap_minutes:
                found.append((f"{label} (maximum {params.max_gap_minutes} allowed)", affected))

        shift = context.shift or schedule.shift
        if shift is None:
            return found

        shift_label = f"{short_time(shift.start)}-{short_time(shift.end)}"
        if params.within_shift:
            for interval_start, _ in schedule.break_intervals():
                if not shift.contains(interval_start):
                    found.append(
                        (
                            f"Break at {short_time(interval_start)} is outside shift hours ({shift_label})",
                            [normalize_time(interval_start)],
                        )
                    )

        placed = schedule.break_intervals()
        if placed and params.min_minutes_after_start is not None:
            first_start, first_type = placed[0]
            after_start = time_to_minutes(first_start) - shift.start_minutes
            if after_start < params.min_minutes_after_start:
                found.append(
                    (
                        f"{first_type.value} starts {after_start} minutes after shift start "
                        f"(minimum {params.min_minutes_after_start} required)",
                        [normalize_time(first_start)],
                    )
                )
        if placed and params.min_minutes_before_end is not None:
            last_start, last_type = placed[-1]
            before_end = shift.end_minutes - (time_to_minutes(last_start) + INTERVAL_MINUTES)
            if before_end < params.min_minutes_before_end:
                found.append(
                    (
                        f"{last_type.value} ends {before_end} minutes before shift end "
                        f"(minimum {params.min_minutes_before_end} required)",
                        [normalize_time(last_start)],
                    )
                )
        return found

    def _check_coverage(
        self,
        schedule: AgentBreakSchedule,
        rule: BreakScheduleRule,
        context: RuleContext,
    ) -> list[tuple[str, list[str]]]:
        params: CoverageRuleParams = rule.params
        found = []

        if params.min_agents is not None:
            for interval_start, break_type in schedule.break_intervals():
                if break_type not in params.applies_to:
                    continue
                remaining = context.others_in(interval_start)
                if remaining < params.min_agents:
                    found.append(
                        (
                            f"Coverage at {short_time(interval_start)} drops to {remaining} agents "
                            f"(minimum {params.min_agents} required)",
                            [normalize_time(interval_start)],
                        )
                    )

        if params.min_intervals is not None:
            found.extend(self._check_spacing(schedule, params, context))
        return found

    def _check_spacing(
        self,
        schedule: AgentBreakSchedule,
        params: CoverageRuleParams,
        context: RuleContext,
    ) -> list[tuple[str, list[str]]]:
        """Same-type breaks of other agents closer than ``min_intervals``."""
        found = []
        for break_type in params.applies_to:
            start = schedule.breaks.get(break_type)
            if start is None:
                continue
            start_minutes = time_to_minutes(start)
            for other in context.other_schedules:
                if other.user_id == schedule.user_id:
                    continue
                distances = [
                    abs(start_minutes - time_to_minutes(t)) // INTERVAL_MINUTES
                    for t, bt in other.intervals.items()
                    if bt is break_type
                ]
                close = [d for d in distances if 0 < d < params.min_intervals]
                if close:
                    found.append(
                        (
                            f"{break_type.value} break is only {min(close)} intervals away from "
                            f"another agent (minimum {params.min_intervals} required)",
                            [normalize_time(start)],
                        )
                    )
                    break
        return found

    def _check_distribution(
        self,
        schedule: AgentBreakSchedule,
        rule: BreakScheduleRule,
        context: RuleContext,
    ) -> list[tuple[str, list[str]]]:
        params: DistributionRuleParams = rule.params
        found = []

        if params.max_same_start is not None:
            for break_type in params.applies_to:
                start = schedule.breaks.get(break_type)
                if start is None:
                    continue
                same = sum(
                    1
                    for other in context.other_schedules
                    if other.user_id != schedule.user_id and other.breaks.get(break_type) == start
                )
                if same >= params.max_same_start:
                    found.append(
                        (
                            f"{break_type.value} start {short_time(start)} is already used by "
                            f"{same} agents (maximum {params.max_same_start})",
                            [normalize_time(start)],
                        )
                    )

        if params.tolerance_percentage is not None and context.coverage:
            floor = context.mean_coverage * (1 - params.tolerance_percentage / 100)
            for interval_start, break_type in schedule.break_intervals():
                if break_type not in params.applies_to:
                    continue
                remaining = context.others_in(interval_start)
                if remaining < floor:
                    found.append(
                        (
                            f"Coverage at {short_time(interval_start)} falls to {remaining} agents, "
                            f"more than {params.tolerance_percentage:g}% below the "
                            f"day average of {context.mean_coverage:.1f}",
                            [normalize_time(interval_start)],
                        )
                    )
        return found

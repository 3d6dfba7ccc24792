"""Domain models for break scheduling.

This module contains the core data structures shared by the rule engine,
the distribution strategies and the preview/edit services: agents and their
shift windows, per-interval break assignments, validation violations,
coverage statistics and the auto-distribution request/preview shapes.

Field names of the ``to_dict`` payloads are the wire contract of the
persistence layer and must not be renamed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from breakhelper.domain.intervals import (
    INTERVAL_MINUTES,
    MalformedTimeError,
    add_intervals,
    generate_intervals,
    is_valid_15_minute_interval,
    normalize_time,
    parse_date,
    short_time,
    time_to_minutes,
)


class BreakType(Enum):
    """What an agent is doing during one interval."""

    IN = "IN"  # On duty
    HB1 = "HB1"  # First half-break
    B = "B"  # Full break
    HB2 = "HB2"  # Second half-break

    @property
    def interval_count(self) -> int:
        """Number of consecutive intervals one break of this type occupies."""
        return 2 if self is BreakType.B else 1

    @property
    def is_break(self) -> bool:
        return self is not BreakType.IN


# Break slots in the order they must occur during a shift
BREAK_SEQUENCE = (BreakType.HB1, BreakType.B, BreakType.HB2)


class Severity(Enum):
    """Severity of a rule violation."""

    ERROR = "error"  # Blocking
    WARNING = "warning"  # Advisory


class ApplyMode(Enum):
    """Which agents an auto-distribution run touches."""

    ONLY_UNSCHEDULED = "only_unscheduled"
    ALL_AGENTS = "all_agents"


class StrategyType(Enum):
    """Available break distribution strategies."""

    LADDER = "ladder"
    BALANCED_COVERAGE = "balanced_coverage"
    STAGGERED_TIMING = "staggered_timing"


@dataclass(frozen=True)
class ShiftWindow:
    """Start and end of a shift as ``HH:MM:SS`` strings (end exclusive)."""

    start: str
    end: str

    def __post_init__(self):
        object.__setattr__(self, "start", normalize_time(self.start))
        object.__setattr__(self, "end", normalize_time(self.end))

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)

    @property
    def duration_minutes(self) -> int:
        return max(0, self.end_minutes - self.start_minutes)

    def intervals(self) -> list[str]:
        """All interval starts covered by the shift."""
        return generate_intervals(self.start, self.end)

    def contains(self, interval_start: str) -> bool:
        """Check if an interval lies entirely inside the shift."""
        minutes = time_to_minutes(interval_start)
        return self.start_minutes <= minutes and minutes + INTERVAL_MINUTES <= self.end_minutes

    def __repr__(self) -> str:
        return f"ShiftWindow({short_time(self.start)}-{short_time(self.end)})"


@dataclass
class AgentShiftInfo:
    """An agent on the roster for one day, as delivered by the roster provider.

    Attributes:
        user_id: Unique identifier of the agent.
        name: Display name.
        department: Department used for the optional preview filter.
        shift_type: Configured shift code (``AM``, ``PM``, ...), None when unassigned.
        shift: Resolved shift window, None when the shift code has no hours.
    """

    user_id: str
    name: str
    department: str = ""
    shift_type: Optional[str] = None
    shift: Optional[ShiftWindow] = None

    @property
    def is_off(self) -> bool:
        """True when the agent has no working shift this day."""
        return self.shift_type is None or self.shift_type == "OFF"


@dataclass
class BreakTimes:
    """Start time of each break slot, None when unassigned."""

    hb1: Optional[str] = None
    b: Optional[str] = None
    hb2: Optional[str] = None

    def get(self, break_type: BreakType) -> Optional[str]:
        if break_type is BreakType.HB1:
            return self.hb1
        if break_type is BreakType.B:
            return self.b
        if break_type is BreakType.HB2:
            return self.hb2
        return None

    def set(self, break_type: BreakType, value: Optional[str]) -> None:
        if break_type is BreakType.HB1:
            self.hb1 = value
        elif break_type is BreakType.B:
            self.b = value
        elif break_type is BreakType.HB2:
            self.hb2 = value
        else:
            raise ValueError("IN is not a break slot")

    def items(self) -> list[tuple[BreakType, Optional[str]]]:
        return [(bt, self.get(bt)) for bt in BREAK_SEQUENCE]

    @property
    def is_empty(self) -> bool:
        return self.hb1 is None and self.b is None and self.hb2 is None

    @property
    def is_complete(self) -> bool:
        return self.hb1 is not None and self.b is not None and self.hb2 is not None

    def to_dict(self) -> dict:
        return {
            "HB1": normalize_time(self.hb1) if self.hb1 else None,
            "B": normalize_time(self.b) if self.b else None,
            "HB2": normalize_time(self.hb2) if self.hb2 else None,
        }


@dataclass
class ValidationViolation:
    """A single rule violation reported by the rule engine.

    Attributes:
        rule_name: Name of the rule that produced the violation.
        message: Human-readable description.
        severity: ERROR for blocking rules, WARNING otherwise.
        affected_intervals: Interval starts involved, if any.
    """

    rule_name: str
    message: str
    severity: Severity
    affected_intervals: list[str] = field(default_factory=list)

    @property
    def is_blocking(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict:
        payload = {
            "rule_name": self.rule_name,
            "message": self.message,
            "severity": self.severity.value,
        }
        if self.affected_intervals:
            payload["affected_intervals"] = list(self.affected_intervals)
        return payload

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.rule_name}: {self.message}"


@dataclass
class AgentBreakSchedule:
    """One agent's break assignment for a day.

    ``intervals`` maps every interval start of the shift to a BreakType;
    ``breaks`` is the projection holding the start of each break slot.
    Use ``assign_breaks``/``set_interval`` to mutate so the two stay in sync.

    Attributes:
        user_id: Agent identifier.
        name: Agent display name.
        shift_type: Shift code, None for agents without a shift.
        department: Agent department.
        shift: Shift window the intervals were generated from.
        breaks: Start time of HB1/B/HB2.
        intervals: Interval start -> BreakType.
        has_warning: Set when the stored schedule carries an unresolved warning.
        auto_distribution_failure: Why auto-distribution could not place breaks.
        violations: Violations attached during validation, kept for display.
    """

    user_id: str
    name: str
    shift_type: Optional[str] = None
    department: str = ""
    shift: Optional[ShiftWindow] = None
    breaks: BreakTimes = field(default_factory=BreakTimes)
    intervals: dict[str, BreakType] = field(default_factory=dict)
    has_warning: bool = False
    auto_distribution_failure: Optional[str] = None
    violations: list[ValidationViolation] = field(default_factory=list)

    @classmethod
    def from_shift(cls, agent: AgentShiftInfo) -> "AgentBreakSchedule":
        """Create an all-``IN`` schedule covering the agent's shift."""
        schedule = cls(
            user_id=agent.user_id,
            name=agent.name,
            shift_type=agent.shift_type,
            department=agent.department,
            shift=agent.shift,
        )
        if agent.shift is not None:
            schedule.intervals = {t: BreakType.IN for t in agent.shift.intervals()}
        return schedule

    @classmethod
    def hydrate(
        cls,
        agent: AgentShiftInfo,
        stored: dict[str, BreakType],
        has_warning: bool = False,
    ) -> "AgentBreakSchedule":
        """Build a schedule from stored break rows laid over the shift."""
        schedule = cls.from_shift(agent)
        schedule.has_warning = has_warning
        for interval_start, break_type in stored.items():
            schedule.intervals[normalize_time(interval_start)] = BreakType(break_type)
        schedule.refresh_breaks()
        return schedule

    def copy(self) -> "AgentBreakSchedule":
        return AgentBreakSchedule(
            user_id=self.user_id,
            name=self.name,
            shift_type=self.shift_type,
            department=self.department,
            shift=self.shift,
            breaks=BreakTimes(self.breaks.hb1, self.breaks.b, self.breaks.hb2),
            intervals=dict(self.intervals),
            has_warning=self.has_warning,
            auto_distribution_failure=self.auto_distribution_failure,
            violations=list(self.violations),
        )

    def break_type_at(self, interval_start: str) -> BreakType:
        return self.intervals.get(normalize_time(interval_start), BreakType.IN)

    def set_interval(self, interval_start: str, break_type: BreakType) -> None:
        """Set a single interval and refresh the break projection."""
        self.intervals[normalize_time(interval_start)] = break_type
        self.refresh_breaks()

    def clear_breaks(self) -> None:
        """Reset every interval to ``IN``."""
        for interval_start in self.intervals:
            self.intervals[interval_start] = BreakType.IN
        self.breaks = BreakTimes()

    def assign_breaks(
        self,
        hb1: Optional[str],
        b: Optional[str],
        hb2: Optional[str],
    ) -> None:
        """Replace all breaks with the given start times.

        A full break covers its start interval and the one after it.
        """
        self.clear_breaks()
        for break_type, start in zip(BREAK_SEQUENCE, (hb1, b, hb2)):
            if start is None:
                continue
            for step in range(break_type.interval_count):
                self.intervals[add_intervals(start, step)] = break_type
        self.refresh_breaks()

    def refresh_breaks(self) -> None:
        """Recompute ``breaks`` from the earliest interval of each break type."""
        breaks = BreakTimes()
        for interval_start in sorted(self.intervals, key=time_to_minutes):
            break_type = self.intervals[interval_start]
            if break_type.is_break and breaks.get(break_type) is None:
                breaks.set(break_type, interval_start)
        self.breaks = breaks

    def break_intervals(self) -> list[tuple[str, BreakType]]:
        """All non-``IN`` intervals in time order."""
        return [
            (t, bt)
            for t, bt in sorted(self.intervals.items(), key=lambda item: time_to_minutes(item[0]))
            if bt.is_break
        ]

    @property
    def has_any_break(self) -> bool:
        return not self.breaks.is_empty

    @property
    def has_blocking_violations(self) -> bool:
        return any(v.is_blocking for v in self.violations)

    def to_dict(self) -> dict:
        payload = {
            "user_id": self.user_id,
            "name": self.name,
            "shift_type": self.shift_type,
            "department": self.department,
            "has_warning": self.has_warning,
            "breaks": self.breaks.to_dict(),
            "intervals": {
                normalize_time(t): bt.value
                for t, bt in sorted(self.intervals.items(), key=lambda item: time_to_minutes(item[0]))
            },
        }
        if self.auto_distribution_failure:
            payload["auto_distribution_failure"] = self.auto_distribution_failure
        return payload


@dataclass
class CoverageStats:
    """Summary of per-interval ``IN`` counts across a day."""

    min_coverage: int = 0
    max_coverage: int = 0
    avg_coverage: float = 0.0
    variance: float = 0.0

    @classmethod
    def calculate(cls, counts: list[int]) -> "CoverageStats":
        """Calculate stats from a series of per-interval counts."""
        if not counts:
            return cls()

        avg = sum(counts) / len(counts)
        variance = sum((c - avg) ** 2 for c in counts) / len(counts)

        return cls(
            min_coverage=min(counts),
            max_coverage=max(counts),
            avg_coverage=avg,
            variance=variance,
        )

    def to_dict(self) -> dict:
        return {
            "min_coverage": self.min_coverage,
            "max_coverage": self.max_coverage,
            "avg_coverage": self.avg_coverage,
            "variance": self.variance,
        }


@dataclass
class RuleCompliance:
    """Violation counts over every candidate of a preview, rejected ones included.

    Carried schedules are not re-validated and do not count.
    """

    total_violations: int = 0
    blocking_violations: int = 0
    warning_violations: int = 0

    def add(self, violations: list[ValidationViolation]) -> None:
        self.total_violations += len(violations)
        self.blocking_violations += sum(1 for v in violations if v.is_blocking)
        self.warning_violations += sum(1 for v in violations if not v.is_blocking)

    def to_dict(self) -> dict:
        return {
            "total_violations": self.total_violations,
            "blocking_violations": self.blocking_violations,
            "warning_violations": self.warning_violations,
        }


@dataclass
class FailedAgent:
    """An agent auto-distribution could not schedule."""

    user_id: str
    name: str
    reason: str
    blocked_by: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        payload = {"user_id": self.user_id, "name": self.name, "reason": self.reason}
        if self.blocked_by:
            payload["blockedBy"] = list(self.blocked_by)
        return payload


@dataclass
class AutoDistributeRequest:
    """Parameters of one auto-distribution preview."""

    schedule_date: str
    strategy: StrategyType = StrategyType.BALANCED_COVERAGE
    apply_mode: ApplyMode = ApplyMode.ONLY_UNSCHEDULED
    department: Optional[str] = None

    def __post_init__(self):
        parse_date(self.schedule_date)
        self.strategy = StrategyType(self.strategy)
        self.apply_mode = ApplyMode(self.apply_mode)
        if self.department in ("", "All"):
            self.department = None

    @classmethod
    def from_dict(cls, payload: dict) -> "AutoDistributeRequest":
        return cls(
            schedule_date=payload["schedule_date"],
            strategy=payload.get("strategy", StrategyType.BALANCED_COVERAGE.value),
            apply_mode=payload.get("apply_mode", ApplyMode.ONLY_UNSCHEDULED.value),
            department=payload.get("department"),
        )

    def to_dict(self) -> dict:
        payload = {
            "schedule_date": self.schedule_date,
            "strategy": self.strategy.value,
            "apply_mode": self.apply_mode.value,
        }
        if self.department:
            payload["department"] = self.department
        return payload


@dataclass
class AutoDistributePreview:
    """Result of an auto-distribution run.

    Every agent in scope appears in exactly one of ``proposed_schedules``
    or ``failed_agents``.
    """

    proposed_schedules: list[AgentBreakSchedule] = field(default_factory=list)
    coverage_stats: CoverageStats = field(default_factory=CoverageStats)
    rule_compliance: RuleCompliance = field(default_factory=RuleCompliance)
    failed_agents: list[FailedAgent] = field(default_factory=list)
    # user_ids whose existing schedule was carried through untouched
    carried_user_ids: set[str] = field(default_factory=set)

    @property
    def newly_proposed(self) -> list[AgentBreakSchedule]:
        """Proposed schedules produced by this run (excludes carried ones)."""
        return [s for s in self.proposed_schedules if s.user_id not in self.carried_user_ids]

    def to_dict(self) -> dict:
        return {
            "proposed_schedules": [s.to_dict() for s in self.proposed_schedules],
            "coverage_stats": self.coverage_stats.to_dict(),
            "rule_compliance": self.rule_compliance.to_dict(),
            "failed_agents": [f.to_dict() for f in self.failed_agents],
        }


@dataclass(frozen=True)
class IntervalUpdate:
    """One cell of a manual edit."""

    interval_start: str
    break_type: BreakType

    def __post_init__(self):
        normalized = normalize_time(self.interval_start)
        if not is_valid_15_minute_interval(normalized):
            raise MalformedTimeError(
                f"Interval {self.interval_start!r} is not on a 15-minute boundary"
            )
        object.__setattr__(self, "interval_start", normalized)
        object.__setattr__(self, "break_type", BreakType(self.break_type))

    def to_dict(self) -> dict:
        return {"interval_start": self.interval_start, "break_type": self.break_type.value}


@dataclass
class BreakScheduleUpdateRequest:
    """A batch of interval edits for one agent on one date."""

    user_id: str
    schedule_date: str
    intervals: list[IntervalUpdate]

    def __post_init__(self):
        if not self.user_id:
            raise ValueError("user_id is required")
        parse_date(self.schedule_date)
        if not self.intervals:
            raise ValueError("intervals must be a non-empty list")

    @classmethod
    def from_dict(cls, payload: dict) -> "BreakScheduleUpdateRequest":
        return cls(
            user_id=payload["user_id"],
            schedule_date=payload["schedule_date"],
            intervals=[
                IntervalUpdate(item["interval_start"], item["break_type"])
                for item in payload.get("intervals", [])
            ],
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "schedule_date": self.schedule_date,
            "intervals": [i.to_dict() for i in self.intervals],
        }


@dataclass
class BreakScheduleUpdateResponse:
    """Outcome of saving one or more update requests."""

    success: bool
    violations: list[ValidationViolation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "violations": [v.to_dict() for v in self.violations],
        }

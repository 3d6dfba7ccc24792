"""Per-interval coverage of agents on duty.

Coverage at an interval is the number of agents marked ``IN`` there.
``compute_coverage`` recomputes it from scratch; ``CoverageTracker`` keeps
running counts so the balanced strategy can score tentative placements
without rescanning every schedule.
"""

from dataclasses import dataclass, field
from typing import Optional

from breakhelper.domain.intervals import short_time, time_to_minutes
from breakhelper.domain.models import AgentBreakSchedule, BreakType, CoverageStats


@dataclass
class IntervalCoverage:
    """Counts of each break type at one interval."""

    in_count: int = 0
    hb1: int = 0
    b: int = 0
    hb2: int = 0

    def add(self, break_type: BreakType) -> None:
        if break_type is BreakType.IN:
            self.in_count += 1
        elif break_type is BreakType.HB1:
            self.hb1 += 1
        elif break_type is BreakType.B:
            self.b += 1
        else:
            self.hb2 += 1

    @property
    def on_break(self) -> int:
        return self.hb1 + self.b + self.hb2

    def to_dict(self) -> dict:
        return {"in": self.in_count, "hb1": self.hb1, "b": self.b, "hb2": self.hb2}


@dataclass
class CoverageResult:
    """Per-interval ``IN`` counts and their statistics."""

    per_interval: dict[str, int] = field(default_factory=dict)
    stats: CoverageStats = field(default_factory=CoverageStats)

    @property
    def lowest_intervals(self) -> list[str]:
        """Intervals at the minimum coverage, in time order."""
        return [t for t, c in self.per_interval.items() if c == self.stats.min_coverage]


def day_intervals(schedules: list[AgentBreakSchedule]) -> list[str]:
    """Union of all schedules' intervals in time order."""
    seen: set[str] = set()
    for schedule in schedules:
        seen.update(schedule.intervals)
    return sorted(seen, key=time_to_minutes)


def compute_coverage(
    schedules: list[AgentBreakSchedule],
    intervals: Optional[list[str]] = None,
) -> CoverageResult:
    """Count agents ``IN`` at every interval and summarise the series.

    Args:
        schedules: Schedules to count.
        intervals: Intervals to report, defaults to the union of the
            schedules' own intervals. Intervals nobody covers count as 0.

    Returns:
        CoverageResult with counts keyed by interval in the given order.
    """
    if intervals is None:
        intervals = day_intervals(schedules)

    per_interval = {t: 0 for t in intervals}
    for schedule in schedules:
        for interval_start, break_type in schedule.intervals.items():
            if break_type is BreakType.IN and interval_start in per_interval:
                per_interval[interval_start] += 1

    return CoverageResult(
        per_interval=per_interval,
        stats=CoverageStats.calculate(list(per_interval.values())),
    )


def summarize(
    schedules: list[AgentBreakSchedule],
    intervals: Optional[list[str]] = None,
) -> dict[str, IntervalCoverage]:
    """Per-type counts at every interval, keyed by ``HH:MM``."""
    if intervals is None:
        intervals = day_intervals(schedules)

    summary = {t: IntervalCoverage() for t in intervals}
    for schedule in schedules:
        for interval_start, break_type in schedule.intervals.items():
            if interval_start in summary:
                summary[interval_start].add(break_type)
    return {short_time(t): counts for t, counts in summary.items()}


class CoverageTracker:
    """Running ``IN`` counts over a fixed set of intervals.

    Keeps the sum and sum of squares of the counts so that the variance
    after a tentative change is O(changed intervals) instead of a full
    recount.
    """

    def __init__(self, intervals: list[str]):
        self.intervals = list(intervals)
        self.counts: dict[str, int] = {t: 0 for t in self.intervals}
        self._sum = 0
        self._sum_sq = 0

    def _shift(self, interval_start: str, delta: int) -> None:
        if interval_start not in self.counts:
            return
        old = self.counts[interval_start]
        new = old + delta
        self.counts[interval_start] = new
        self._sum += delta
        self._sum_sq += new * new - old * old

    def add_schedule(self, schedule: AgentBreakSchedule) -> None:
        """Count a schedule's ``IN`` intervals."""
        for interval_start, break_type in schedule.intervals.items():
            if break_type is BreakType.IN:
                self._shift(interval_start, 1)

    def remove_schedule(self, schedule: AgentBreakSchedule) -> None:
        for interval_start, break_type in schedule.intervals.items():
            if break_type is BreakType.IN:
                self._shift(interval_start, -1)

    def take_break(self, interval_starts: list[str]) -> None:
        """Move one agent from ``IN`` to a break at each interval."""
        for interval_start in interval_starts:
            self._shift(interval_start, -1)

    def count(self, interval_start: str) -> int:
        return self.counts.get(interval_start, 0)

    @property
    def variance(self) -> float:
        n = len(self.intervals)
        if n == 0:
            return 0.0
        mean = self._sum / n
        return self._sum_sq / n - mean * mean

    def _totals_after(self, interval_starts: list[str]) -> tuple[int, int]:
        total, total_sq = self._sum, self._sum_sq
        for interval_start in set(interval_starts):
            if interval_start not in self.counts:
                continue
            old = self.counts[interval_start]
            total -= 1
            total_sq += (old - 1) * (old - 1) - old * old
        return total, total_sq

    def variance_after(self, interval_starts: list[str]) -> float:
        """Variance if one agent went on break at ``interval_starts``."""
        n = len(self.intervals)
        if n == 0:
            return 0.0
        total, total_sq = self._totals_after(interval_starts)
        mean = total / n
        return total_sq / n - mean * mean

    def score_after(self, interval_starts: list[str]) -> int:
        """``variance_after`` scaled by n squared, exact for tie comparison."""
        total, total_sq = self._totals_after(interval_starts)
        return len(self.intervals) * total_sq - total * total

    def snapshot(self) -> CoverageResult:
        return CoverageResult(
            per_interval=dict(self.counts),
            stats=CoverageStats.calculate(list(self.counts.values())),
        )

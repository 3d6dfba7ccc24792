"""Break distribution strategies.

Each strategy turns a roster of agents on shift into candidate break
schedules. Strategies guarantee that every break they place is aligned to
the 15-minute grid, inside the agent's shift and in HB1, B, HB2 order;
whether a candidate is accepted is decided afterwards by the rule engine.

Strategies:
- ladder: fixed per-shift start column, stepping forward one increment per agent
- balanced_coverage: greedy placement minimising coverage variance
- staggered_timing: even spread of start times across each third of the shift
"""

import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from breakhelper.domain.intervals import (
    INTERVAL_MINUTES,
    MalformedTimeError,
    add_intervals,
    short_time,
    time_to_minutes,
)
from breakhelper.domain.models import (
    BREAK_SEQUENCE,
    AgentBreakSchedule,
    AgentShiftInfo,
    ApplyMode,
    BreakType,
    FailedAgent,
    ShiftWindow,
    StrategyType,
)
from breakhelper.domain.policies import (
    DEFAULT_DISTRIBUTION_SETTINGS,
    DistributionSettings,
    resolve_shift_window,
    shift_thirds,
)
from breakhelper.domain.rules import BreakScheduleRule
from breakhelper.scheduling.coverage import CoverageTracker, day_intervals
from breakhelper.validation.validator import RuleContext, RuleEngine

logger = logging.getLogger(__name__)

INVALID_SHIFT_REASON = "Invalid shift type"

# HB1, two intervals of B and HB2
MIN_SHIFT_INTERVALS = 4


def break_span(start: str, break_type: BreakType) -> list[str]:
    """Intervals occupied by a break starting at ``start``."""
    return [add_intervals(start, step) for step in range(break_type.interval_count)]


def too_short_reason(agent: AgentShiftInfo) -> str:
    shift = agent.shift
    return (
        f"Shift {agent.shift_type} ({short_time(shift.start)}-{short_time(shift.end)}) "
        f"is too short for HB1, B and HB2"
    )


@dataclass
class Proposal:
    """Output of a strategy run.

    Attributes:
        schedules: New candidate schedules, not yet validated.
        failed: Agents the strategy could not place at all.
        carried: Existing schedules left untouched by ``only_unscheduled``.
    """

    schedules: list[AgentBreakSchedule] = field(default_factory=list)
    failed: list[FailedAgent] = field(default_factory=list)
    carried: list[AgentBreakSchedule] = field(default_factory=list)


class DistributionStrategy(ABC):
    """Base class for break distribution strategies."""

    strategy_type: StrategyType

    def __init__(
        self,
        rules: Optional[list[BreakScheduleRule]] = None,
        shift_windows: Optional[dict[str, Optional[ShiftWindow]]] = None,
        engine: Optional[RuleEngine] = None,
    ):
        self.rules = list(rules or [])
        self.shift_windows = shift_windows
        self.engine = engine or RuleEngine()

    def propose(
        self,
        agents: list[AgentShiftInfo],
        apply_mode: ApplyMode = ApplyMode.ONLY_UNSCHEDULED,
        existing: Optional[list[AgentBreakSchedule]] = None,
    ) -> Proposal:
        """Propose break schedules for the agents in scope.

        Agents without a working shift are skipped. With
        ``only_unscheduled`` an agent whose existing schedule already has a
        break is carried through unchanged; with ``all_agents`` everyone is
        cleared and re-proposed.

        Args:
            agents: Agents in scope, in processing order.
            apply_mode: Which agents to (re)schedule.
            existing: Schedules already stored for the day.

        Returns:
            Proposal with candidates, strategy failures and carried schedules.
        """
        existing_map = {s.user_id: s for s in existing or []}
        proposal = Proposal()
        to_place: list[AgentShiftInfo] = []

        for agent in agents:
            if agent.is_off:
                continue

            current = existing_map.get(agent.user_id)
            if (
                apply_mode is ApplyMode.ONLY_UNSCHEDULED
                and current is not None
                and current.has_any_break
            ):
                proposal.carried.append(current)
                continue

            shift = agent.shift or resolve_shift_window(agent.shift_type, self.shift_windows)
            if shift is None:
                proposal.failed.append(
                    FailedAgent(agent.user_id, agent.name, INVALID_SHIFT_REASON)
                )
                continue

            agent = dataclasses.replace(agent, shift=shift)
            if len(shift.intervals()) < MIN_SHIFT_INTERVALS:
                proposal.failed.append(
                    FailedAgent(agent.user_id, agent.name, too_short_reason(agent))
                )
                continue
            to_place.append(agent)

        schedules, failed = self._place(to_place, proposal.carried)
        proposal.schedules.extend(schedules)
        proposal.failed.extend(failed)

        logger.info(
            "%s proposed %d schedule(s), %d failed, %d carried",
            self.strategy_type.value,
            len(proposal.schedules),
            len(proposal.failed),
            len(proposal.carried),
        )
        return proposal

    @abstractmethod
    def _place(
        self,
        agents: list[AgentShiftInfo],
        carried: list[AgentBreakSchedule],
    ) -> tuple[list[AgentBreakSchedule], list[FailedAgent]]:
        """Place breaks for agents whose shift window is resolved."""
        pass

    @staticmethod
    def _build(agent: AgentShiftInfo, hb1: str, b: str, hb2: str) -> AgentBreakSchedule:
        schedule = AgentBreakSchedule.from_shift(agent)
        schedule.assign_breaks(hb1, b, hb2)
        logger.debug(
            "Agent %s: HB1 %s, B %s, HB2 %s",
            agent.user_id,
            short_time(hb1),
            short_time(b),
            short_time(hb2),
        )
        return schedule


class LadderStrategy(DistributionStrategy):
    """Step break starts forward one increment per agent of the same shift.

    Break times come from the shift's DistributionSettings; shift codes
    without settings derive them from the shift window.
    """

    strategy_type = StrategyType.LADDER

    def __init__(
        self,
        rules: Optional[list[BreakScheduleRule]] = None,
        shift_windows: Optional[dict[str, Optional[ShiftWindow]]] = None,
        engine: Optional[RuleEngine] = None,
        settings: Optional[dict[str, DistributionSettings]] = None,
    ):
        super().__init__(rules, shift_windows, engine)
        self.settings = DEFAULT_DISTRIBUTION_SETTINGS if settings is None else settings

    def _settings_for(self, agent: AgentShiftInfo) -> DistributionSettings:
        settings = self.settings.get(agent.shift_type)
        if settings is None:
            settings = DistributionSettings.for_shift(agent.shift_type, agent.shift)
        return settings

    def _place(self, agents, carried):
        schedules: list[AgentBreakSchedule] = []
        failed: list[FailedAgent] = []
        positions: dict[str, int] = {}

        for agent in agents:
            position = positions.get(agent.shift_type, 0)
            positions[agent.shift_type] = position + 1

            try:
                hb1, b, hb2 = self._settings_for(agent).break_starts(position)
            except MalformedTimeError:
                hb1 = b = hb2 = None

            occupied = []
            if hb1 is not None:
                for break_type, start in zip(BREAK_SEQUENCE, (hb1, b, hb2)):
                    occupied.extend(break_span(start, break_type))

            if hb1 is None or not all(agent.shift.contains(t) for t in occupied):
                failed.append(
                    FailedAgent(
                        agent.user_id,
                        agent.name,
                        f"Ladder position {position + 1} does not fit in shift "
                        f"{agent.shift_type} ({short_time(agent.shift.start)}-"
                        f"{short_time(agent.shift.end)})",
                    )
                )
                continue

            schedules.append(self._build(agent, hb1, b, hb2))

        return schedules, failed


class BalancedCoverageStrategy(DistributionStrategy):
    """Greedy placement that keeps per-interval coverage as flat as possible.

    Agents are processed in input order. For each break slot the strategy
    scans the slot's third of the shift, after the previous break, and picks
    the interval whose use raises coverage variance the least, ties going
    to the earliest interval. A placement is feasible when the blocking
    rules accept the partial schedule given everyone placed so far. If no
    interval is feasible the least-variance one is kept and the rule engine
    rejects the agent later.
    """

    strategy_type = StrategyType.BALANCED_COVERAGE

    def _place(self, agents, carried):
        working = {agent.user_id: AgentBreakSchedule.from_shift(agent) for agent in agents}
        intervals = day_intervals(list(carried) + list(working.values()))

        tracker = CoverageTracker(intervals)
        for schedule in carried:
            tracker.add_schedule(schedule)
        for schedule in working.values():
            tracker.add_schedule(schedule)

        schedules: list[AgentBreakSchedule] = []
        failed: list[FailedAgent] = []

        for agent in agents:
            schedule = working[agent.user_id]
            others = list(carried) + [w for uid, w in working.items() if uid != agent.user_id]
            coverage = {
                t: tracker.count(t) - (1 if schedule.intervals.get(t) is BreakType.IN else 0)
                for t in intervals
            }
            context = RuleContext(shift=agent.shift, other_schedules=others, coverage=coverage)

            starts = self._place_agent(schedule, tracker, context)
            if starts is None:
                failed.append(FailedAgent(agent.user_id, agent.name, too_short_reason(agent)))
                continue

            schedule.assign_breaks(*starts)
            logger.debug(
                "Agent %s: HB1 %s, B %s, HB2 %s (variance %.3f)",
                agent.user_id,
                *(short_time(s) for s in starts),
                tracker.variance,
            )
            schedules.append(schedule)

        return schedules, failed

    def _place_agent(
        self,
        schedule: AgentBreakSchedule,
        tracker: CoverageTracker,
        context: RuleContext,
    ) -> Optional[tuple[str, str, str]]:
        shift = schedule.shift
        windows = dict(zip(BREAK_SEQUENCE, shift_thirds(shift.intervals())))
        chosen: dict[BreakType, str] = {}
        earliest = shift.start_minutes

        for break_type in BREAK_SEQUENCE:
            best = None
            fallback = None
            for start in windows[break_type]:
                if time_to_minutes(start) < earliest:
                    continue
                span = break_span(start, break_type)
                if not all(shift.contains(t) for t in span):
                    continue

                score = tracker.score_after(span)
                if fallback is None or score < fallback[0]:
                    fallback = (score, start, span)
                if best is not None and score >= best[0]:
                    continue

                tentative = schedule.copy()
                tentative.assign_breaks(
                    *(chosen.get(bt, start if bt is break_type else None) for bt in BREAK_SEQUENCE)
                )
                if not self.engine.has_blocking(tentative, self.rules, context):
                    best = (score, start, span)

            pick = best or fallback
            if pick is None:
                return None
            if best is None:
                logger.debug(
                    "Agent %s: no feasible %s interval, keeping %s",
                    schedule.user_id,
                    break_type.value,
                    short_time(pick[1]),
                )

            _, start, span = pick
            chosen[break_type] = start
            tracker.take_break(span)
            earliest = time_to_minutes(span[-1]) + INTERVAL_MINUTES

        return chosen[BreakType.HB1], chosen[BreakType.B], chosen[BreakType.HB2]


class StaggeredTimingStrategy(DistributionStrategy):
    """Spread break starts evenly across each third of the shift.

    Agent ``i`` of ``n`` sharing a shift code takes the interval at offset
    ``(2i + 1) * len(third) // (2n)`` of each third, so start times fan out
    from the middle of every third rather than stacking on one interval.
    """

    strategy_type = StrategyType.STAGGERED_TIMING

    def _place(self, agents, carried):
        group_sizes: dict[str, int] = {}
        for agent in agents:
            group_sizes[agent.shift_type] = group_sizes.get(agent.shift_type, 0) + 1

        positions: dict[str, int] = {}
        schedules: list[AgentBreakSchedule] = []
        failed: list[FailedAgent] = []

        for agent in agents:
            position = positions.get(agent.shift_type, 0)
            positions[agent.shift_type] = position + 1
            starts = self._starts_for(agent, position, group_sizes[agent.shift_type])
            if starts is None:
                failed.append(FailedAgent(agent.user_id, agent.name, too_short_reason(agent)))
                continue
            schedules.append(self._build(agent, *starts))

        return schedules, failed

    @staticmethod
    def _starts_for(
        agent: AgentShiftInfo, position: int, group_size: int
    ) -> Optional[tuple[str, str, str]]:
        shift = agent.shift
        early, middle, late = shift_thirds(shift.intervals())
        if not early or not middle or not late:
            return None

        def pick(third: list[str]) -> str:
            return third[((2 * position + 1) * len(third)) // (2 * group_size)]

        hb1 = pick(early)
        b = pick(middle)
        if not shift.contains(add_intervals(b, 1)):
            return None

        b_end = time_to_minutes(b) + BreakType.B.interval_count * INTERVAL_MINUTES
        hb2 = pick(late)
        if time_to_minutes(hb2) < b_end:
            later = [t for t in late if time_to_minutes(t) >= b_end]
            if not later:
                return None
            hb2 = later[0]
        return hb1, b, hb2


STRATEGIES: dict[StrategyType, type[DistributionStrategy]] = {
    StrategyType.LADDER: LadderStrategy,
    StrategyType.BALANCED_COVERAGE: BalancedCoverageStrategy,
    StrategyType.STAGGERED_TIMING: StaggeredTimingStrategy,
}


def create_strategy(
    strategy_type: StrategyType,
    rules: Optional[list[BreakScheduleRule]] = None,
    shift_windows: Optional[dict[str, Optional[ShiftWindow]]] = None,
    engine: Optional[RuleEngine] = None,
) -> DistributionStrategy:
    """Instantiate the strategy registered for ``strategy_type``."""
    return STRATEGIES[StrategyType(strategy_type)](
        rules=rules,
        shift_windows=shift_windows,
        engine=engine,
    )

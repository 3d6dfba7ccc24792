"""Tests for domain models and rule configuration."""

import pytest

from breakhelper.domain.intervals import MalformedDateError, MalformedTimeError
from breakhelper.domain.models import (
    AgentBreakSchedule,
    AgentShiftInfo,
    ApplyMode,
    AutoDistributeRequest,
    BreakScheduleUpdateRequest,
    BreakType,
    CoverageStats,
    FailedAgent,
    IntervalUpdate,
    ShiftWindow,
    StrategyType,
)
from breakhelper.domain.rules import (
    BreakScheduleRule,
    InvalidRuleParametersError,
    RuleType,
    default_rules,
    sort_rules,
    validate_rule_parameters,
)


@pytest.fixture
def am_agent():
    """An agent on the 09:00-17:00 shift."""
    return AgentShiftInfo(
        user_id="U001",
        name="Alice",
        department="Support",
        shift_type="AM",
        shift=ShiftWindow("09:00:00", "17:00:00"),
    )


class TestAgentBreakSchedule:
    """Tests for per-agent schedules."""

    def test_full_break_spans_two_intervals(self):
        """B occupies two intervals, half-breaks one."""
        assert BreakType.B.interval_count == 2
        assert BreakType.HB1.interval_count == 1
        assert BreakType.HB2.interval_count == 1

    def test_from_shift_is_all_in(self, am_agent):
        """A fresh schedule covers the shift with IN."""
        schedule = AgentBreakSchedule.from_shift(am_agent)
        assert len(schedule.intervals) == 32
        assert set(schedule.intervals.values()) == {BreakType.IN}
        assert schedule.breaks.is_empty
        assert not schedule.has_any_break

    def test_assign_breaks_updates_intervals_and_projection(self, am_agent):
        """Assigned breaks show up in both views."""
        schedule = AgentBreakSchedule.from_shift(am_agent)
        schedule.assign_breaks("10:00:00", "12:30:00", "15:00:00")

        assert schedule.breaks.hb1 == "10:00:00"
        assert schedule.breaks.b == "12:30:00"
        assert schedule.breaks.hb2 == "15:00:00"
        assert schedule.intervals["12:30:00"] is BreakType.B
        assert schedule.intervals["12:45:00"] is BreakType.B
        assert schedule.intervals["13:00:00"] is BreakType.IN
        assert [t for t, _ in schedule.break_intervals()] == [
            "10:00:00",
            "12:30:00",
            "12:45:00",
            "15:00:00",
        ]

    def test_reassigning_clears_previous_breaks(self, am_agent):
        """assign_breaks replaces rather than adds."""
        schedule = AgentBreakSchedule.from_shift(am_agent)
        schedule.assign_breaks("10:00:00", "12:30:00", "15:00:00")
        schedule.assign_breaks("10:15:00", None, None)

        assert schedule.breaks.hb1 == "10:15:00"
        assert schedule.breaks.b is None
        assert schedule.intervals["10:00:00"] is BreakType.IN
        assert len(schedule.break_intervals()) == 1

    def test_hydrate_overlays_stored_rows(self, am_agent):
        """Stored rows override IN and rebuild the projection."""
        schedule = AgentBreakSchedule.hydrate(
            am_agent,
            {"10:00": BreakType.HB1, "13:00:00": "B", "13:15:00": "B"},
            has_warning=True,
        )
        assert schedule.breaks.hb1 == "10:00:00"
        assert schedule.breaks.b == "13:00:00"
        assert schedule.breaks.hb2 is None
        assert schedule.has_warning
        assert len(schedule.intervals) == 32

    def test_to_dict_uses_full_times(self, am_agent):
        """Serialised breaks and interval keys keep their seconds."""
        schedule = AgentBreakSchedule.from_shift(am_agent)
        schedule.assign_breaks("10:00:00", "12:30:00", "15:00:00")
        payload = schedule.to_dict()
        assert payload["breaks"] == {"HB1": "10:00:00", "B": "12:30:00", "HB2": "15:00:00"}
        assert payload["intervals"]["12:45:00"] == "B"
        assert list(payload["intervals"])[:2] == ["09:00:00", "09:15:00"]


class TestRequests:
    """Tests for request and response shapes."""

    def test_interval_update_normalizes(self):
        """Interval starts are normalised to HH:MM:SS."""
        update = IntervalUpdate("10:15", "HB1")
        assert update.interval_start == "10:15:00"
        assert update.break_type is BreakType.HB1

    def test_interval_update_rejects_misaligned(self):
        """Intervals off the quarter-hour grid are rejected."""
        with pytest.raises(MalformedTimeError):
            IntervalUpdate("10:05:00", BreakType.HB1)

    def test_interval_update_rejects_unknown_type(self):
        """Unknown break types are rejected."""
        with pytest.raises(ValueError):
            IntervalUpdate("10:00:00", "LUNCH")

    def test_update_request_requires_intervals(self):
        """An empty edit batch is a caller error."""
        with pytest.raises(ValueError):
            BreakScheduleUpdateRequest(user_id="U001", schedule_date="2026-01-05", intervals=[])

    def test_update_request_requires_valid_date(self):
        """Dates must be YYYY-MM-DD."""
        with pytest.raises(MalformedDateError):
            BreakScheduleUpdateRequest(
                user_id="U001",
                schedule_date="05-01-2026",
                intervals=[IntervalUpdate("10:00:00", BreakType.HB1)],
            )

    def test_update_request_from_dict(self):
        """Wire payloads decode into typed updates."""
        request = BreakScheduleUpdateRequest.from_dict(
            {
                "user_id": "U001",
                "schedule_date": "2026-01-05",
                "intervals": [{"interval_start": "10:00:00", "break_type": "HB1"}],
            }
        )
        assert request.intervals[0].break_type is BreakType.HB1
        assert request.to_dict()["intervals"] == [
            {"interval_start": "10:00:00", "break_type": "HB1"}
        ]

    def test_auto_distribute_request_from_dict(self):
        """Strategy and apply mode decode from their wire values."""
        request = AutoDistributeRequest.from_dict(
            {
                "schedule_date": "2026-01-05",
                "strategy": "ladder",
                "apply_mode": "all_agents",
                "department": "All",
            }
        )
        assert request.strategy is StrategyType.LADDER
        assert request.apply_mode is ApplyMode.ALL_AGENTS
        assert request.department is None

    def test_auto_distribute_request_rejects_unknown_strategy(self):
        """Unknown strategies fail loudly."""
        with pytest.raises(ValueError):
            AutoDistributeRequest(schedule_date="2026-01-05", strategy="random")

    def test_failed_agent_serialises_blocked_by(self):
        """blockedBy is only present when rules blocked the agent."""
        blocked = FailedAgent("U001", "Alice", "HB1 must come before B", ["break_ordering"])
        assert blocked.to_dict()["blockedBy"] == ["break_ordering"]
        assert "blockedBy" not in FailedAgent("U002", "Bob", "Invalid shift type").to_dict()


class TestCoverageStats:
    """Tests for coverage statistics."""

    def test_population_variance(self):
        """Variance is the population variance of the counts."""
        stats = CoverageStats.calculate([3, 4, 3, 4])
        assert stats.min_coverage == 3
        assert stats.max_coverage == 4
        assert stats.avg_coverage == pytest.approx(3.5)
        assert stats.variance == pytest.approx(0.25)

    def test_empty_series_is_zero(self):
        """No intervals means zero-valued stats."""
        stats = CoverageStats.calculate([])
        assert stats.min_coverage == 0
        assert stats.variance == 0.0


class TestRules:
    """Tests for rule decoding."""

    def test_seed_rules(self):
        """The seed rule set decodes with typed parameters."""
        rules = {r.rule_name: r for r in default_rules()}
        assert list(rules) == [
            "break_ordering",
            "minimum_gap",
            "maximum_gap",
            "shift_boundary",
            "minimum_coverage",
            "minimum_break_spacing",
        ]
        assert rules["minimum_gap"].params.min_gap_minutes == 90
        assert rules["minimum_gap"].params.max_gap_minutes is None
        assert rules["maximum_gap"].params.max_gap_minutes == 270
        assert rules["shift_boundary"].params.within_shift
        assert rules["minimum_coverage"].params.min_agents == 3
        assert not rules["minimum_coverage"].is_blocking
        assert rules["minimum_break_spacing"].params.min_intervals == 10
        assert rules["break_ordering"].params.sequence == (
            BreakType.HB1,
            BreakType.B,
            BreakType.HB2,
        )

    def test_timing_min_above_max_rejected(self):
        """A timing rule with min > max does not decode."""
        with pytest.raises(InvalidRuleParametersError) as excinfo:
            BreakScheduleRule.from_dict(
                {
                    "rule_name": "gaps",
                    "rule_type": "timing",
                    "parameters": {"min_minutes": 200, "max_minutes": 100},
                }
            )
        assert excinfo.value.rule_name == "gaps"

    def test_ordering_with_unknown_break_type_rejected(self):
        """Ordering sequences may only name HB1, B and HB2."""
        errors = validate_rule_parameters(RuleType.ORDERING, {"sequence": ["HB1", "LUNCH"]})
        assert errors == ["sequence contains invalid break types: LUNCH"]

    @pytest.mark.parametrize("value", [-1, 2.5, "3"])
    def test_coverage_counts_must_be_non_negative_integers(self, value):
        """min_agents must be a non-negative integer."""
        errors = validate_rule_parameters(RuleType.COVERAGE, {"min_agents": value})
        assert errors == ["min_agents must be a non-negative integer"]

    def test_distribution_tolerance_range(self):
        """tolerance_percentage must lie in 0-100."""
        assert validate_rule_parameters(RuleType.DISTRIBUTION, {"tolerance_percentage": 20}) == []
        assert validate_rule_parameters(RuleType.DISTRIBUTION, {"tolerance_percentage": 150})

    def test_sort_rules_filters_inactive(self):
        """Only active rules are returned, in priority order."""
        rules = default_rules()
        rules[0].is_active = False
        rules[1].priority = 99
        names = [r.rule_name for r in sort_rules(rules)]
        assert "break_ordering" not in names
        assert names[-1] == "minimum_gap"

    def test_rule_round_trip_keeps_stored_bag(self):
        """to_dict returns the stored parameter bag."""
        rule = default_rules()[1]
        assert rule.to_dict()["parameters"] == {"min_minutes": 90}

"""Domain models and business rules for break scheduling."""

from breakhelper.domain.intervals import (
    INTERVAL_MINUTES,
    MalformedDateError,
    MalformedTimeError,
    generate_intervals,
    is_valid_15_minute_interval,
    minutes_to_time,
    time_to_minutes,
)
from breakhelper.domain.models import (
    AgentBreakSchedule,
    AgentShiftInfo,
    ApplyMode,
    AutoDistributePreview,
    AutoDistributeRequest,
    BreakScheduleUpdateRequest,
    BreakScheduleUpdateResponse,
    BreakTimes,
    BreakType,
    CoverageStats,
    FailedAgent,
    IntervalUpdate,
    RuleCompliance,
    Severity,
    ShiftWindow,
    StrategyType,
    ValidationViolation,
)
from breakhelper.domain.policies import (
    DEFAULT_DISTRIBUTION_SETTINGS,
    DEFAULT_SHIFT_WINDOWS,
    DistributionSettings,
    resolve_shift_window,
)
from breakhelper.domain.rules import (
    BreakScheduleRule,
    CoverageRuleParams,
    DistributionRuleParams,
    InvalidRuleParametersError,
    OrderingRuleParams,
    RuleType,
    TimingRuleParams,
    default_rules,
)

__all__ = [
    # Intervals
    "INTERVAL_MINUTES",
    "MalformedDateError",
    "MalformedTimeError",
    "generate_intervals",
    "is_valid_15_minute_interval",
    "minutes_to_time",
    "time_to_minutes",
    # Models
    "AgentBreakSchedule",
    "AgentShiftInfo",
    "ApplyMode",
    "AutoDistributePreview",
    "AutoDistributeRequest",
    "BreakScheduleUpdateRequest",
    "BreakScheduleUpdateResponse",
    "BreakTimes",
    "BreakType",
    "CoverageStats",
    "FailedAgent",
    "IntervalUpdate",
    "RuleCompliance",
    "Severity",
    "ShiftWindow",
    "StrategyType",
    "ValidationViolation",
    # Policies
    "DEFAULT_DISTRIBUTION_SETTINGS",
    "DEFAULT_SHIFT_WINDOWS",
    "DistributionSettings",
    "resolve_shift_window",
    # Rules
    "BreakScheduleRule",
    "CoverageRuleParams",
    "DistributionRuleParams",
    "InvalidRuleParametersError",
    "OrderingRuleParams",
    "RuleType",
    "TimingRuleParams",
    "default_rules",
]

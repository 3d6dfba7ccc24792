"""Break distribution, coverage, preview and edit reconciliation."""

from breakhelper.scheduling.collaborators import (
    InMemoryRoster,
    InMemoryRuleStore,
    InMemorySink,
    PersistenceSink,
    RosterProvider,
    RuleStore,
)
from breakhelper.scheduling.coverage import (
    CoverageResult,
    CoverageTracker,
    compute_coverage,
    summarize,
)
from breakhelper.scheduling.debounce import DebouncedTask
from breakhelper.scheduling.edits import EditReconciler, FlushResult, ReconcilerConfig
from breakhelper.scheduling.preview import (
    PreviewConfig,
    PreviewDependencyError,
    PreviewService,
    PreviewState,
    build_preview,
)
from breakhelper.scheduling.strategies import (
    BalancedCoverageStrategy,
    DistributionStrategy,
    LadderStrategy,
    StaggeredTimingStrategy,
    create_strategy,
)

__all__ = [
    # Collaborators
    "InMemoryRoster",
    "InMemoryRuleStore",
    "InMemorySink",
    "PersistenceSink",
    "RosterProvider",
    "RuleStore",
    # Coverage
    "CoverageResult",
    "CoverageTracker",
    "compute_coverage",
    "summarize",
    # Strategies
    "BalancedCoverageStrategy",
    "DistributionStrategy",
    "LadderStrategy",
    "StaggeredTimingStrategy",
    "create_strategy",
    # Preview and edits
    "DebouncedTask",
    "EditReconciler",
    "FlushResult",
    "PreviewConfig",
    "PreviewDependencyError",
    "PreviewService",
    "PreviewState",
    "ReconcilerConfig",
    "build_preview",
]

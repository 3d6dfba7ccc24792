"""Auto-distribution preview and apply.

PreviewService runs one preview cycle per request:

1. Resolve the agents in scope from the roster (department filter, off shifts excluded)
2. Propose schedules with the requested strategy and apply mode
3. Validate every new candidate with the rule engine
4. Reject candidates with blocking violations into ``failed_agents``
5. Compute coverage statistics over the accepted schedules

Requests are debounced, and a result that resolves after a newer request
was issued is dropped, so only the latest preview is ever live.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from breakhelper.domain.models import (
    AgentBreakSchedule,
    AgentShiftInfo,
    AutoDistributePreview,
    AutoDistributeRequest,
    BreakScheduleUpdateRequest,
    BreakScheduleUpdateResponse,
    FailedAgent,
    IntervalUpdate,
    RuleCompliance,
    ShiftWindow,
)
from breakhelper.domain.rules import BreakScheduleRule
from breakhelper.scheduling.collaborators import PersistenceSink, RosterProvider, RuleStore
from breakhelper.scheduling.coverage import compute_coverage
from breakhelper.scheduling.debounce import DebouncedTask
from breakhelper.scheduling.strategies import create_strategy
from breakhelper.validation.validator import RuleContext, RuleEngine

logger = logging.getLogger(__name__)


class PreviewState(Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    READY = "ready"
    FAILED = "failed"


class PreviewDependencyError(RuntimeError):
    """The roster or the rule store could not be read."""


@dataclass
class PreviewConfig:
    """Preview settings.

    Attributes:
        debounce_seconds: Quiet period before a requested preview runs.
        shift_windows: Shift code to window map, defaults to the built-in shifts.
    """

    debounce_seconds: float = 0.5
    shift_windows: Optional[dict[str, Optional[ShiftWindow]]] = None


def build_preview(
    request: AutoDistributeRequest,
    agents: list[AgentShiftInfo],
    existing: list[AgentBreakSchedule],
    rules: list[BreakScheduleRule],
    engine: Optional[RuleEngine] = None,
    shift_windows: Optional[dict[str, Optional[ShiftWindow]]] = None,
) -> AutoDistributePreview:
    """Compute a preview from already fetched inputs.

    Every agent in scope ends up in exactly one of ``proposed_schedules``
    (new or carried schedules) and ``failed_agents``.
    """
    engine = engine or RuleEngine()

    in_scope = sorted(
        (
            a
            for a in agents
            if not a.is_off and (request.department is None or a.department == request.department)
        ),
        key=lambda a: a.user_id,
    )
    if not in_scope:
        return AutoDistributePreview()

    scope_ids = {a.user_id for a in in_scope}
    existing = [s for s in existing if s.user_id in scope_ids]

    strategy = create_strategy(request.strategy, rules, shift_windows, engine)
    proposal = strategy.propose(in_scope, request.apply_mode, existing)

    preview = partition_candidates(
        proposal.schedules, rules, engine=engine, carried=proposal.carried
    )
    order = {a.user_id: i for i, a in enumerate(in_scope)}
    preview.failed_agents.extend(proposal.failed)
    preview.proposed_schedules.sort(key=lambda s: order[s.user_id])
    preview.failed_agents.sort(key=lambda f: order[f.user_id])
    return preview


def partition_candidates(
    candidates: list[AgentBreakSchedule],
    rules: list[BreakScheduleRule],
    engine: Optional[RuleEngine] = None,
    carried: Optional[list[AgentBreakSchedule]] = None,
) -> AutoDistributePreview:
    """Validate candidates and split them into accepted and failed.

    Each candidate is checked against everyone else in the proposal. A
    candidate with a blocking violation becomes a FailedAgent listing the
    blocking rules; the rest are accepted and keep their warnings.
    Compliance counts cover every candidate; carried schedules are
    accepted as they are.
    """
    engine = engine or RuleEngine()
    carried = list(carried or [])
    everyone = carried + list(candidates)
    accepted: list[AgentBreakSchedule] = list(carried)
    failed: list[FailedAgent] = []
    compliance = RuleCompliance()

    for candidate in candidates:
        others = [s for s in everyone if s.user_id != candidate.user_id]
        result = engine.evaluate(
            candidate,
            rules,
            RuleContext(shift=candidate.shift, other_schedules=others),
        )
        candidate.violations = result.violations
        compliance.add(result.violations)

        if result.has_blocking:
            logger.debug("Agent %s rejected by %s", candidate.user_id, result.blocked_by)
            failed.append(
                FailedAgent(
                    user_id=candidate.user_id,
                    name=candidate.name,
                    reason=result.failure_reason,
                    blocked_by=result.blocked_by,
                )
            )
            continue

        candidate.has_warning = bool(result.warnings)
        accepted.append(candidate)

    return AutoDistributePreview(
        proposed_schedules=accepted,
        coverage_stats=compute_coverage(accepted).stats,
        rule_compliance=compliance,
        failed_agents=failed,
        carried_user_ids={s.user_id for s in carried},
    )


def preview_to_updates(
    preview: AutoDistributePreview,
    schedule_date: str,
) -> list[BreakScheduleUpdateRequest]:
    """One update request per newly proposed schedule.

    Every interval of the shift is sent, ``IN`` included, so breaks from an
    earlier assignment are overwritten.
    """
    updates = []
    for schedule in preview.newly_proposed:
        if not schedule.intervals:
            continue
        updates.append(
            BreakScheduleUpdateRequest(
                user_id=schedule.user_id,
                schedule_date=schedule_date,
                intervals=[
                    IntervalUpdate(interval_start, break_type)
                    for interval_start, break_type in schedule.intervals.items()
                ],
            )
        )
    return updates


class PreviewService:
    """Debounced, last-request-wins auto-distribution previews.

    Example:
        >>> service = PreviewService(roster, rule_store)
        >>> service.init()
        >>> preview = await service.refresh(AutoDistributeRequest("2026-01-05"))
        >>> await service.apply_preview(preview, "2026-01-05", sink)
        >>> service.dispose()
    """

    def __init__(
        self,
        roster: RosterProvider,
        rule_store: RuleStore,
        config: Optional[PreviewConfig] = None,
        engine: Optional[RuleEngine] = None,
    ):
        self.roster = roster
        self.rule_store = rule_store
        self.config = config or PreviewConfig()
        self.engine = engine or RuleEngine()

        self.state = PreviewState.IDLE
        self.preview: Optional[AutoDistributePreview] = None
        self.last_error: Optional[PreviewDependencyError] = None
        self._generation = 0
        self._pending_request: Optional[AutoDistributeRequest] = None
        self._debouncer: Optional[DebouncedTask] = None

    def init(self) -> None:
        """Set up the debounce timer; call before ``request_preview``."""
        if self._debouncer is None:
            self._debouncer = DebouncedTask(self.config.debounce_seconds, self._run_pending)

    def dispose(self) -> None:
        """Cancel any pending preview and invalidate any in-flight one."""
        if self._debouncer is not None:
            self._debouncer.cancel()
            self._debouncer = None
        self._generation += 1
        self._pending_request = None
        self.state = PreviewState.IDLE

    async def refresh(self, request: AutoDistributeRequest) -> Optional[AutoDistributePreview]:
        """Compute a preview now.

        Returns:
            The new live preview, or None when a newer request was issued
            while this one was waiting on its dependencies.

        Raises:
            PreviewDependencyError: If the roster or rules could not be read.
                The service is left in ``FAILED`` with no live preview.
            Exception: Any error while computing the preview is re-raised
                after moving the service to ``FAILED``.
        """
        self._generation += 1
        generation = self._generation
        self.state = PreviewState.COMPUTING

        try:
            agents = await self.roster.get_agents_for_date(
                request.schedule_date, request.department
            )
            existing = await self.roster.get_existing_schedules(request.schedule_date)
            rules = await self.rule_store.get_active_rules()
        except Exception as exc:
            if generation != self._generation:
                logger.info("Dropping failure of superseded preview for %s", request.schedule_date)
                return None
            logger.warning("Preview dependencies failed for %s: %s", request.schedule_date, exc)
            self.state = PreviewState.FAILED
            self.preview = None
            self.last_error = PreviewDependencyError(
                f"Could not load preview inputs for {request.schedule_date}: {exc}"
            )
            raise self.last_error from exc

        if generation != self._generation:
            logger.info("Dropping superseded preview for %s", request.schedule_date)
            return None

        try:
            preview = build_preview(
                request,
                agents,
                existing,
                rules,
                engine=self.engine,
                shift_windows=self.config.shift_windows,
            )
        except Exception:
            logger.exception("Preview computation failed for %s", request.schedule_date)
            self.state = PreviewState.FAILED
            self.preview = None
            raise
        self.preview = preview
        self.last_error = None
        self.state = PreviewState.READY
        logger.info(
            "Preview ready for %s (%s): %d proposed, %d failed, variance %.3f",
            request.schedule_date,
            request.strategy.value,
            len(preview.proposed_schedules),
            len(preview.failed_agents),
            preview.coverage_stats.variance,
        )
        return preview

    def request_preview(self, request: AutoDistributeRequest) -> None:
        """Queue a preview after the quiet period, superseding earlier requests.

        Must be called from a running event loop.
        """
        if self._debouncer is None:
            raise RuntimeError("PreviewService.init() must be called before request_preview()")
        self._pending_request = request
        self._generation += 1
        if self.state is PreviewState.COMPUTING:
            self.state = PreviewState.IDLE
        self._debouncer.schedule()

    async def _run_pending(self) -> None:
        request = self._pending_request
        if request is None:
            return
        self._pending_request = None
        try:
            await self.refresh(request)
        except PreviewDependencyError as exc:
            logger.warning("Debounced preview failed: %s", exc)
        except Exception:
            # Already logged by refresh; the service is left FAILED.
            logger.debug("Debounced preview aborted", exc_info=True)

    async def wait(self) -> Optional[AutoDistributePreview]:
        """Wait for any queued preview and return the live one."""
        if self._debouncer is not None:
            await self._debouncer.wait()
        return self.preview

    async def apply_preview(
        self,
        preview: AutoDistributePreview,
        schedule_date: str,
        sink: PersistenceSink,
    ) -> BreakScheduleUpdateResponse:
        """Save the newly proposed schedules of a preview as one batch.

        Carried schedules are not resent. Persistence errors propagate.
        """
        updates = preview_to_updates(preview, schedule_date)
        if not updates:
            return BreakScheduleUpdateResponse(success=True)
        response = await sink.save_interval_updates(updates)
        logger.info(
            "Applied %d schedule(s) for %s (success=%s)",
            len(updates),
            schedule_date,
            response.success,
        )
        return response

"""Interfaces to the services around the engine.

The engine only talks to the roster, the rule configuration and the break
schedule store through these narrow async interfaces. The in-memory
implementations back the CLI demo and the tests.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from breakhelper.domain.models import (
    AgentBreakSchedule,
    AgentShiftInfo,
    BreakScheduleUpdateRequest,
    BreakScheduleUpdateResponse,
    BreakType,
)
from breakhelper.domain.rules import BreakScheduleRule, default_rules

logger = logging.getLogger(__name__)


class RosterProvider(ABC):
    """Source of agents on shift and their stored break schedules."""

    @abstractmethod
    async def get_agents_for_date(
        self,
        schedule_date: str,
        department: Optional[str] = None,
    ) -> list[AgentShiftInfo]:
        """Agents rostered on ``schedule_date``, optionally for one department."""
        pass

    @abstractmethod
    async def get_existing_schedules(self, schedule_date: str) -> list[AgentBreakSchedule]:
        """Break schedules already stored for ``schedule_date``."""
        pass


class RuleStore(ABC):
    """Source of break schedule rule configuration."""

    @abstractmethod
    async def get_active_rules(self) -> list[BreakScheduleRule]:
        pass


class PersistenceSink(ABC):
    """Destination of break schedule edits."""

    @abstractmethod
    async def save_interval_updates(
        self,
        updates: list[BreakScheduleUpdateRequest],
    ) -> BreakScheduleUpdateResponse:
        """Persist a batch of edits.

        Failures are raised; retry and backoff policy belong to the
        implementation.
        """
        pass


class InMemoryRoster(RosterProvider):
    """Roster and stored break rows held in dictionaries."""

    def __init__(
        self,
        agents: Optional[dict[str, list[AgentShiftInfo]]] = None,
        stored: Optional[dict[str, dict[str, dict[str, BreakType]]]] = None,
    ):
        # date -> agents
        self.agents = agents or {}
        # date -> user_id -> interval_start -> break type
        self.stored = stored or {}

    async def get_agents_for_date(self, schedule_date, department=None):
        agents = self.agents.get(schedule_date, [])
        if department:
            agents = [a for a in agents if a.department == department]
        return list(agents)

    async def get_existing_schedules(self, schedule_date):
        rows = self.stored.get(schedule_date, {})
        return [
            AgentBreakSchedule.hydrate(agent, rows[agent.user_id])
            for agent in self.agents.get(schedule_date, [])
            if agent.user_id in rows
        ]

    def apply(self, updates: list[BreakScheduleUpdateRequest]) -> None:
        for update in updates:
            rows = self.stored.setdefault(update.schedule_date, {}).setdefault(update.user_id, {})
            for interval in update.intervals:
                rows[interval.interval_start] = interval.break_type


class InMemoryRuleStore(RuleStore):
    def __init__(self, rules: Optional[list[BreakScheduleRule]] = None):
        self.rules = default_rules() if rules is None else list(rules)

    async def get_active_rules(self):
        return [r for r in self.rules if r.is_active]


class InMemorySink(PersistenceSink):
    """Records every saved batch; optionally writes through to a roster."""

    def __init__(self, roster: Optional[InMemoryRoster] = None):
        self.roster = roster
        self.batches: list[list[BreakScheduleUpdateRequest]] = []

    async def save_interval_updates(self, updates):
        self.batches.append(list(updates))
        if self.roster is not None:
            self.roster.apply(updates)
        logger.debug("Stored batch of %d update request(s)", len(updates))
        return BreakScheduleUpdateResponse(success=True)

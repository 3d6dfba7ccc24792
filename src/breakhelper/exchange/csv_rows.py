"""CSV import and export of break schedules.

One row per agent and day::

    Agent Name,Date,Shift,HB1 Start,B Start,HB2 Start
    Alice,2026-01-05,AM,10:00,12:30,15:00

Times are ``HH:MM`` and empty when the break is unassigned; agents without
a shift are exported as ``OFF``.
"""

import csv
import io
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, TextIO, Union

from breakhelper.domain.intervals import (
    add_intervals,
    is_valid_15_minute_interval,
    is_valid_date,
    normalize_time,
    short_time,
)
from breakhelper.domain.models import (
    AgentBreakSchedule,
    AgentShiftInfo,
    BreakScheduleUpdateRequest,
    BreakTimes,
    BreakType,
    IntervalUpdate,
)
from breakhelper.domain.policies import DEFAULT_SHIFT_WINDOWS
from breakhelper.validation.validator import find_order_violations, order_message

HEADERS = ["Agent Name", "Date", "Shift", "HB1 Start", "B Start", "HB2 Start"]

_TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")

# First data row is line 2 of the file
_FIRST_ROW_NUMBER = 2


@dataclass
class BreakScheduleCSVRow:
    agent_name: str
    date: str
    shift: str
    hb1_start: Optional[str] = None
    b_start: Optional[str] = None
    hb2_start: Optional[str] = None

    def times(self) -> list[tuple[BreakType, str, Optional[str]]]:
        return [
            (BreakType.HB1, "HB1 Start", self.hb1_start),
            (BreakType.B, "B Start", self.b_start),
            (BreakType.HB2, "HB2 Start", self.hb2_start),
        ]

    def to_list(self) -> list[str]:
        return [
            self.agent_name,
            self.date,
            self.shift,
            self.hb1_start or "",
            self.b_start or "",
            self.hb2_start or "",
        ]


@dataclass
class CSVRowError:
    row: int
    agent: str
    error: str

    def __str__(self) -> str:
        return f"Row {self.row}: {self.error}"


@dataclass
class ImportResult:
    """Update requests built from CSV rows and the rows that were refused."""

    updates: list[BreakScheduleUpdateRequest] = field(default_factory=list)
    errors: list[CSVRowError] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return len(self.updates)


def schedule_to_row(schedule: AgentBreakSchedule, schedule_date: str) -> BreakScheduleCSVRow:
    breaks = schedule.breaks
    return BreakScheduleCSVRow(
        agent_name=schedule.name,
        date=schedule_date,
        shift=schedule.shift_type or "OFF",
        hb1_start=short_time(breaks.hb1) if breaks.hb1 else None,
        b_start=short_time(breaks.b) if breaks.b else None,
        hb2_start=short_time(breaks.hb2) if breaks.hb2 else None,
    )


def write_csv(
    schedules: Iterable[AgentBreakSchedule],
    schedule_date: str,
    target: Union[str, Path, TextIO],
) -> None:
    """Write schedules as CSV to a path or an open text stream."""
    if isinstance(target, (str, Path)):
        with Path(target).open("w", encoding="utf-8", newline="") as handle:
            write_csv(schedules, schedule_date, handle)
        return

    writer = csv.writer(target, quoting=csv.QUOTE_ALL)
    writer.writerow(HEADERS)
    for schedule in schedules:
        writer.writerow(schedule_to_row(schedule, schedule_date).to_list())


def export_csv(schedules: Iterable[AgentBreakSchedule], schedule_date: str) -> str:
    """Render schedules as CSV text."""
    buffer = io.StringIO()
    write_csv(schedules, schedule_date, buffer)
    return buffer.getvalue()


def parse_csv(source: Union[str, TextIO]) -> list[BreakScheduleCSVRow]:
    """Parse CSV content, skipping the header and blank lines.

    Rows with fewer than three fields are skipped.

    Raises:
        ValueError: If the content has no data rows.
    """
    text = source if isinstance(source, str) else source.read()
    lines = [line for line in csv.reader(io.StringIO(text.strip()))]
    data = lines[1:]
    if not data:
        raise ValueError("CSV file is empty or has no data rows")

    rows = []
    for fields in data:
        cleaned = [f.strip() for f in fields]
        if not any(cleaned) or len(cleaned) < 3:
            continue
        cleaned += [""] * (6 - len(cleaned))
        agent_name, date, shift, hb1, b, hb2 = cleaned[:6]
        rows.append(
            BreakScheduleCSVRow(
                agent_name=agent_name,
                date=date,
                shift=shift,
                hb1_start=hb1 or None,
                b_start=b or None,
                hb2_start=hb2 or None,
            )
        )
    return rows


def validate_rows(
    rows: list[BreakScheduleCSVRow],
    shift_codes: Optional[Iterable[str]] = None,
) -> list[CSVRowError]:
    """Check rows before import.

    Required fields, date format, known shift code, ``HH:MM`` times on the
    15-minute grid, and break order using the same check the rule engine
    applies to manual edits.
    """
    if not rows:
        return [CSVRowError(0, "", "No data rows found in CSV")]

    valid_shifts = list(shift_codes) if shift_codes is not None else list(DEFAULT_SHIFT_WINDOWS)
    errors: list[CSVRowError] = []

    for i, row in enumerate(rows):
        row_number = i + _FIRST_ROW_NUMBER

        def fail(message: str) -> None:
            errors.append(CSVRowError(row_number, row.agent_name, message))

        if not row.agent_name:
            fail("Agent name is required")

        if not row.date:
            fail("Date is required")
        elif not is_valid_date(row.date):
            fail("Date must be in YYYY-MM-DD format")

        if not row.shift:
            fail("Shift is required")
        elif row.shift not in valid_shifts:
            fail(f"Shift must be one of: {', '.join(valid_shifts)}")

        well_formed = True
        for _, label, value in row.times():
            if value is None:
                continue
            if not _TIME_PATTERN.match(value):
                fail(f"{label} must be in HH:MM format")
                well_formed = False
                continue
            try:
                aligned = is_valid_15_minute_interval(value)
            except ValueError:
                fail(f"{label} must be in HH:MM format")
                well_formed = False
                continue
            if not aligned:
                fail(f"{label} must be on a 15-minute boundary")
                well_formed = False

        if well_formed:
            breaks = BreakTimes(
                hb1=normalize_time(row.hb1_start) if row.hb1_start else None,
                b=normalize_time(row.b_start) if row.b_start else None,
                hb2=normalize_time(row.hb2_start) if row.hb2_start else None,
            )
            for earlier, later in find_order_violations(breaks):
                fail(order_message(earlier, later))

    return errors


def row_to_update_request(row: BreakScheduleCSVRow, user_id: str) -> Optional[BreakScheduleUpdateRequest]:
    """Build the update request for a validated row, None if it has no breaks.

    A full break expands to its two intervals.
    """
    intervals = []
    for break_type, _, value in row.times():
        if value is None:
            continue
        start = normalize_time(value)
        for step in range(break_type.interval_count):
            intervals.append(IntervalUpdate(add_intervals(start, step), break_type))
    if not intervals:
        return None
    return BreakScheduleUpdateRequest(user_id=user_id, schedule_date=row.date, intervals=intervals)


def build_import(
    rows: list[BreakScheduleCSVRow],
    agents: list[AgentShiftInfo],
    shift_codes: Optional[Iterable[str]] = None,
) -> ImportResult:
    """Turn rows into update requests, matching agents by name.

    Nothing is imported when any row fails validation. Rows for unknown
    agents or agents without a shift are reported and skipped.
    """
    errors = validate_rows(rows, shift_codes)
    if errors:
        return ImportResult(errors=errors)

    by_name = {agent.name: agent for agent in agents}
    result = ImportResult()
    for i, row in enumerate(rows):
        row_number = i + _FIRST_ROW_NUMBER
        agent = by_name.get(row.agent_name)
        if agent is None:
            result.errors.append(CSVRowError(row_number, row.agent_name, "Agent not found"))
            continue
        if agent.is_off:
            result.errors.append(
                CSVRowError(row_number, row.agent_name, "No shift found for this date")
            )
            continue
        update = row_to_update_request(row, agent.user_id)
        if update is not None:
            result.updates.append(update)
    return result

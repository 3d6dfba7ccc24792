"""Shift windows and distribution settings.

Shift codes are configuration, not a closed set: the defaults below mirror a
fresh installation and callers may pass their own maps wherever a shift
window lookup is needed.
"""

from dataclasses import dataclass
from typing import Optional

from breakhelper.domain.intervals import INTERVAL_MINUTES, minutes_to_time, time_to_minutes
from breakhelper.domain.models import ShiftWindow

# Column 0 of the ladder grid
GRID_START = "09:00:00"
GRID_COLUMNS = 48

DEFAULT_SHIFT_WINDOWS: dict[str, Optional[ShiftWindow]] = {
    "AM": ShiftWindow("09:00:00", "17:00:00"),
    "PM": ShiftWindow("13:00:00", "21:00:00"),
    "BET": ShiftWindow("11:00:00", "19:00:00"),
    "OFF": None,
}


def resolve_shift_window(
    shift_type: Optional[str],
    shift_windows: Optional[dict[str, Optional[ShiftWindow]]] = None,
) -> Optional[ShiftWindow]:
    """Look up the window of a shift code, None for unknown or off shifts."""
    if shift_type is None:
        return None
    windows = DEFAULT_SHIFT_WINDOWS if shift_windows is None else shift_windows
    return windows.get(shift_type)


@dataclass
class DistributionSettings:
    """Ladder parameters for one shift code.

    Break times are laid out on the grid that starts at ``GRID_START``:
    agent ``k`` of a cycle takes HB1 at column
    ``hb1_start_column + k * ladder_increment``, B follows HB1 by
    ``b_offset_minutes`` and HB2 follows B by ``hb2_offset_minutes``.
    After ``max_agents_per_cycle`` agents the ladder restarts at the
    start column.
    """

    shift_type: str
    hb1_start_column: int
    b_offset_minutes: int = 150
    hb2_offset_minutes: int = 150
    ladder_increment: int = 1
    max_agents_per_cycle: int = 5

    def validate(self) -> list[str]:
        """Return a list of problems, empty when the settings are usable."""
        errors = []
        if not 0 <= self.hb1_start_column < GRID_COLUMNS:
            errors.append(f"hb1_start_column must be between 0 and {GRID_COLUMNS - 1}")
        if self.b_offset_minutes < 90:
            errors.append("b_offset_minutes must be at least 90")
        if self.hb2_offset_minutes < 90:
            errors.append("hb2_offset_minutes must be at least 90")
        if not 1 <= self.ladder_increment <= 20:
            errors.append("ladder_increment must be between 1 and 20")
        if self.max_agents_per_cycle < 1:
            errors.append("max_agents_per_cycle must be at least 1")
        return errors

    def hb1_minutes(self, position: int) -> int:
        """HB1 start, in minutes since midnight, for the agent at ``position``."""
        step = position % self.max_agents_per_cycle
        column = self.hb1_start_column + step * self.ladder_increment
        return time_to_minutes(GRID_START) + column * INTERVAL_MINUTES

    def break_starts(self, position: int) -> tuple[str, str, str]:
        """HB1, B and HB2 start times for the agent at ``position``.

        Raises:
            MalformedTimeError: If the ladder runs past midnight.
        """
        hb1 = self.hb1_minutes(position)
        b = hb1 + self.b_offset_minutes
        hb2 = b + self.hb2_offset_minutes
        return minutes_to_time(hb1), minutes_to_time(b), minutes_to_time(hb2)

    @classmethod
    def for_shift(cls, shift_type: str, shift: ShiftWindow) -> "DistributionSettings":
        """Derive settings for a shift code without configured settings.

        HB1 starts one hour into the shift, snapped onto the grid.
        """
        offset = shift.start_minutes + 60 - time_to_minutes(GRID_START)
        column = max(0, offset // INTERVAL_MINUTES)
        return cls(shift_type=shift_type, hb1_start_column=min(column, GRID_COLUMNS - 1))


DEFAULT_DISTRIBUTION_SETTINGS: dict[str, DistributionSettings] = {
    "AM": DistributionSettings(shift_type="AM", hb1_start_column=4),
    "PM": DistributionSettings(shift_type="PM", hb1_start_column=16),
    "BET": DistributionSettings(shift_type="BET", hb1_start_column=8),
}


def shift_thirds(intervals: list[str]) -> tuple[list[str], list[str], list[str]]:
    """Split a shift's intervals into early, middle and late thirds.

    The first two thirds have ``len // 3`` intervals each; the late third
    takes the remainder.
    """
    third = len(intervals) // 3
    return intervals[:third], intervals[third:2 * third], intervals[2 * third:]

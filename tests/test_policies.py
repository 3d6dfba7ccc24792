"""Tests for shift windows and ladder settings."""

from breakhelper.domain.models import ShiftWindow
from breakhelper.domain.policies import (
    DEFAULT_DISTRIBUTION_SETTINGS,
    DistributionSettings,
    resolve_shift_window,
    shift_thirds,
)


class TestPolicies:
    """Tests for shift windows and ladder settings."""

    def test_resolve_shift_window(self):
        """Built-in shifts resolve, OFF and unknown codes do not."""
        assert resolve_shift_window("PM") == ShiftWindow("13:00:00", "21:00:00")
        assert resolve_shift_window("OFF") is None
        assert resolve_shift_window("NIGHT") is None
        assert resolve_shift_window(None) is None

    def test_ladder_settings_step_and_cycle(self):
        """Each agent steps one column; the ladder restarts after a cycle."""
        am = DEFAULT_DISTRIBUTION_SETTINGS["AM"]
        assert am.break_starts(0) == ("10:00:00", "12:30:00", "15:00:00")
        assert am.break_starts(1) == ("10:15:00", "12:45:00", "15:15:00")
        assert am.break_starts(5) == am.break_starts(0)

    def test_settings_validation(self):
        """Out-of-range settings are reported."""
        settings = DistributionSettings(
            shift_type="AM",
            hb1_start_column=48,
            b_offset_minutes=60,
            ladder_increment=0,
        )
        assert len(settings.validate()) == 3
        assert DEFAULT_DISTRIBUTION_SETTINGS["PM"].validate() == []

    def test_shift_thirds(self):
        """The late third takes the remainder."""
        early, middle, late = shift_thirds(ShiftWindow("09:00:00", "17:00:00").intervals())
        assert len(early) == 10
        assert len(middle) == 10
        assert len(late) == 12
        assert middle[0] == "11:30:00"
        assert late[0] == "14:00:00"

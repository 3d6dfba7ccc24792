"""Smoke tests for the end-to-end break scheduling flow."""

import asyncio
from datetime import date

import pytest

from breakhelper.cli import create_sample_agents, main
from breakhelper.domain.models import ApplyMode, AutoDistributeRequest, StrategyType
from breakhelper.exchange.csv_rows import build_import, export_csv, parse_csv
from breakhelper.scheduling.collaborators import InMemoryRoster, InMemoryRuleStore, InMemorySink
from breakhelper.scheduling.edits import EditReconciler
from breakhelper.scheduling.preview import PreviewService

DATE = "2026-01-05"


class TestSmoke:
    """End-to-end smoke tests for the break scheduling system."""

    @pytest.fixture
    def roster(self):
        """An in-memory roster of 20 sample agents."""
        return InMemoryRoster(agents={DATE: create_sample_agents(20)})

    def test_sample_roster(self):
        """Sample agents cycle through the shifts, some off."""
        agents = create_sample_agents(14)
        assert agents[0].user_id == "U001"
        assert {a.shift_type for a in agents} == {"AM", "PM", "BET", "OFF"}
        assert sum(1 for a in agents if a.is_off) == 2

    @pytest.mark.parametrize("strategy", list(StrategyType))
    def test_preview_apply_and_reload(self, roster, strategy):
        """A preview applied to the store comes back as existing schedules."""
        service = PreviewService(roster, InMemoryRuleStore())
        sink = InMemorySink(roster)

        async def scenario():
            request = AutoDistributeRequest(DATE, strategy, ApplyMode.ALL_AGENTS)
            preview = await service.refresh(request)
            await service.apply_preview(preview, DATE, sink)
            return preview, await roster.get_existing_schedules(DATE)

        preview, stored = asyncio.run(scenario())

        working = [a for a in roster.agents[DATE] if not a.is_off]
        assert len(preview.proposed_schedules) + len(preview.failed_agents) == len(working)
        stored_breaks = {s.user_id: s.breaks for s in stored}
        for schedule in preview.proposed_schedules:
            assert stored_breaks[schedule.user_id] == schedule.breaks

    def test_second_run_keeps_applied_breaks(self, roster):
        """only_unscheduled leaves applied schedules alone."""
        service = PreviewService(roster, InMemoryRuleStore())
        sink = InMemorySink(roster)

        async def scenario():
            first = await service.refresh(AutoDistributeRequest(DATE, apply_mode=ApplyMode.ALL_AGENTS))
            await service.apply_preview(first, DATE, sink)
            second = await service.refresh(AutoDistributeRequest(DATE))
            return first, second

        first, second = asyncio.run(scenario())

        kept = {s.user_id for s in first.proposed_schedules}
        assert kept <= second.carried_user_ids
        assert {s.user_id for s in second.newly_proposed} <= {
            f.user_id for f in first.failed_agents
        }

    def test_manual_edit_round_trip(self, roster):
        """A manual edit flushed to the store changes the stored schedule."""
        sink = InMemorySink(roster)
        reconciler = EditReconciler(sink, DATE)
        reconciler.record_edit("U001", "10:00:00", "HB1")

        result = asyncio.run(reconciler.flush())
        stored = asyncio.run(roster.get_existing_schedules(DATE))

        assert result.success
        assert stored[0].breaks.hb1 == "10:00:00"

    def test_csv_export_reimports(self, roster):
        """An exported preview imports cleanly."""
        service = PreviewService(roster, InMemoryRuleStore())
        preview = asyncio.run(
            service.refresh(AutoDistributeRequest(DATE, apply_mode=ApplyMode.ALL_AGENTS))
        )

        rows = parse_csv(export_csv(preview.proposed_schedules, DATE))
        result = build_import(rows, roster.agents[DATE])

        assert result.errors == []
        assert result.imported == len(preview.proposed_schedules)


class TestCLI:
    """Tests for the command-line entry point."""

    def test_compare(self, capsys):
        """compare prints one line per strategy."""
        assert main(["compare", "--count", "8"]) == 0
        out = capsys.readouterr().out
        for strategy in StrategyType:
            assert strategy.value in out

    def test_demo_writes_outputs(self, tmp_path, capsys):
        """demo writes the requested files."""
        debug = tmp_path / "debug.txt"
        csv_path = tmp_path / "breaks.csv"
        pdf = tmp_path / "breaks.pdf"

        code = main(
            [
                "demo",
                "--count", "6",
                "--strategy", "staggered_timing",
                "--debug", str(debug),
                "--csv", str(csv_path),
                "--pdf", str(pdf),
                "--apply",
            ]
        )

        assert code == 0
        assert debug.exists()
        assert csv_path.read_text(encoding="utf-8").startswith('"Agent Name"')
        assert pdf.read_bytes().startswith(b"%PDF-")
        assert "Applied: ok" in capsys.readouterr().out

    def test_validate_csv(self, tmp_path, capsys):
        """validate-csv reports problems with row numbers."""
        good = tmp_path / "good.csv"
        good.write_text(
            "Agent Name,Date,Shift,HB1 Start,B Start,HB2 Start\n"
            f"Alice,{date.today().isoformat()},AM,10:00,12:30,15:00\n",
            encoding="utf-8",
        )
        bad = tmp_path / "bad.csv"
        bad.write_text(
            "Agent Name,Date,Shift,HB1 Start,B Start,HB2 Start\n"
            "Alice,2026-01-05,AM,13:00,12:30,15:00\n",
            encoding="utf-8",
        )

        assert main(["validate-csv", str(good)]) == 0
        assert main(["validate-csv", str(bad)]) == 1
        assert "Row 2: HB1 must come before B" in capsys.readouterr().out

    def test_missing_file(self, tmp_path):
        """An unreadable file is an error exit."""
        assert main(["validate-csv", str(tmp_path / "missing.csv")]) == 1

    def test_no_command_prints_help(self, capsys):
        """Without a command the help is shown."""
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

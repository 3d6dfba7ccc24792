"""Debug text output for break distribution analysis.

This module creates text-based debug output to analyze:
- Per-agent break times and violations
- Break start distribution per break type
- Coverage over the day, flagging thin intervals
"""

from collections import defaultdict
from pathlib import Path
from typing import Optional, Union

from breakhelper.domain.intervals import INTERVAL_MINUTES, short_time, time_to_minutes
from breakhelper.domain.models import BREAK_SEQUENCE, AutoDistributePreview
from breakhelper.domain.rules import BreakScheduleRule, CoverageRuleParams, RuleType
from breakhelper.scheduling.coverage import day_intervals, summarize


def coverage_thresholds(rules: list[BreakScheduleRule]) -> tuple[Optional[int], Optional[int]]:
    """``(min_agents, alert_threshold)`` of the first active coverage floor rule."""
    for rule in sorted(rules, key=lambda r: r.priority):
        if not rule.is_active or rule.rule_type is not RuleType.COVERAGE:
            continue
        params: CoverageRuleParams = rule.params
        if params.min_agents is not None:
            return params.min_agents, params.alert_threshold
    return None, None


class DebugGenerator:
    """Generates debug text output for a break distribution preview.

    Example:
        >>> generator = DebugGenerator()
        >>> print(generator.generate_to_string(preview, "2026-01-05", rules))
    """

    def generate(
        self,
        preview: AutoDistributePreview,
        schedule_date: str,
        output_path: Union[str, Path],
        rules: Optional[list[BreakScheduleRule]] = None,
    ) -> str:
        """Generate debug text output and save to file.

        Returns:
            The generated text content.
        """
        content = self._generate_content(preview, schedule_date, rules or [])
        Path(output_path).write_text(content, encoding="utf-8")
        return content

    def generate_to_string(
        self,
        preview: AutoDistributePreview,
        schedule_date: str,
        rules: Optional[list[BreakScheduleRule]] = None,
    ) -> str:
        return self._generate_content(preview, schedule_date, rules or [])

    def _generate_content(
        self,
        preview: AutoDistributePreview,
        schedule_date: str,
        rules: list[BreakScheduleRule],
    ) -> str:
        lines = []
        schedules = preview.proposed_schedules
        stats = preview.coverage_stats
        compliance = preview.rule_compliance

        # Header
        lines.append("=" * 80)
        lines.append(f"BREAK SCHEDULE DEBUG OUTPUT - {schedule_date}")
        lines.append("=" * 80)
        lines.append("")

        lines.append(f"Proposed Schedules: {len(schedules)}")
        lines.append(f"Failed Agents: {len(preview.failed_agents)}")
        lines.append(
            f"Coverage: min {stats.min_coverage}, max {stats.max_coverage}, "
            f"avg {stats.avg_coverage:.2f}, variance {stats.variance:.3f}"
        )
        lines.append(
            f"Violations: {compliance.total_violations} "
            f"(blocking {compliance.blocking_violations}, warning {compliance.warning_violations})"
        )
        lines.append("")

        # Per-agent view, sorted by HB1 start
        lines.append("-" * 80)
        lines.append("AGENT BREAKS (sorted by HB1 start)")
        lines.append("-" * 80)
        lines.append(f"{'#':>3} {'Name':<20} {'Shift':<6} {'HB1':^7} {'B':^7} {'HB2':^7} {'Flags'}")
        lines.append("-" * 80)

        def hb1_key(schedule):
            return time_to_minutes(schedule.breaks.hb1) if schedule.breaks.hb1 else 24 * 60

        for i, schedule in enumerate(sorted(schedules, key=hb1_key), 1):
            times = [
                short_time(start) if start else "-"
                for _, start in schedule.breaks.items()
            ]
            flags = []
            if schedule.user_id in preview.carried_user_ids:
                flags.append("kept")
            if schedule.has_warning:
                flags.append(f"{len(schedule.violations)} warning(s)")
            lines.append(
                f"{i:>3} {schedule.name[:20]:<20} {(schedule.shift_type or 'OFF'):<6} "
                f"{times[0]:^7} {times[1]:^7} {times[2]:^7} {', '.join(flags)}"
            )
        lines.append("")

        if preview.failed_agents:
            lines.append("-" * 80)
            lines.append("FAILED AGENTS")
            lines.append("-" * 80)
            for failed in preview.failed_agents:
                blocked = f" [{', '.join(failed.blocked_by)}]" if failed.blocked_by else ""
                lines.append(f"  {failed.name}: {failed.reason}{blocked}")
            lines.append("")

        # Break start histograms and stagger gaps
        for break_type in BREAK_SEQUENCE:
            starts = sorted(
                time_to_minutes(s.breaks.get(break_type))
                for s in schedules
                if s.breaks.get(break_type)
            )
            lines.append("-" * 80)
            lines.append(f"{break_type.value} START TIME HISTOGRAM")
            lines.append("-" * 80)
            if not starts:
                lines.append("  (none)")
                lines.append("")
                continue

            counts = defaultdict(int)
            for start in starts:
                counts[start] += 1
            for minute in range(starts[0], starts[-1] + 1, INTERVAL_MINUTES):
                count = counts.get(minute, 0)
                label = f"{minute // 60:02d}:{minute % 60:02d}"
                lines.append(f"{label}: {'#' * count} ({count})" if count else f"{label}: .")

            unique = sorted(counts)
            if len(unique) > 1:
                gaps = [b - a for a, b in zip(unique, unique[1:])]
                lines.append(f"  Unique start times: {len(unique)}")
                lines.append(f"  Gaps between unique start times (minutes): {gaps}")
            same_time = sum(c - 1 for c in counts.values() if c > 1)
            lines.append(f"  Agents sharing a start time: {same_time}")
            lines.append("")

        # Coverage timeline
        min_agents, alert_threshold = coverage_thresholds(rules)
        lines.append("-" * 80)
        lines.append("COVERAGE TIMELINE")
        if min_agents is not None:
            lines.append(f"(minimum {min_agents}, alert below {alert_threshold})")
        lines.append("-" * 80)

        for label, counts in summarize(schedules, day_intervals(schedules)).items():
            bar = "█" * counts.in_count + "░" * counts.on_break
            marker = ""
            if min_agents is not None and counts.in_count < min_agents:
                marker = "  << BELOW MINIMUM"
            elif alert_threshold is not None and counts.in_count < alert_threshold:
                marker = "  < alert"
            lines.append(
                f"{label}: {bar} (in:{counts.in_count}, hb1:{counts.hb1}, "
                f"b:{counts.b}, hb2:{counts.hb2}){marker}"
            )

        lines.append("")
        lines.append("=" * 80)
        lines.append("END OF DEBUG OUTPUT")
        lines.append("=" * 80)

        return "\n".join(lines)

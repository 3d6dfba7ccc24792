"""Command-line interface for the break scheduling engine."""

import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from breakhelper.domain.models import (
    AgentShiftInfo,
    ApplyMode,
    AutoDistributePreview,
    AutoDistributeRequest,
    StrategyType,
)
from breakhelper.domain.policies import DEFAULT_SHIFT_WINDOWS
from breakhelper.domain.rules import default_rules
from breakhelper.exchange.csv_rows import parse_csv, validate_rows, write_csv
from breakhelper.output.debug_generator import DebugGenerator
from breakhelper.output.pdf_generator import PDFGenerator
from breakhelper.scheduling.collaborators import InMemoryRoster, InMemoryRuleStore, InMemorySink
from breakhelper.scheduling.preview import PreviewService, build_preview

SHIFT_ROTATION = ["AM", "AM", "PM", "BET", "AM", "PM", "OFF"]


def create_sample_agents(count: int = 12) -> list[AgentShiftInfo]:
    """Create a sample roster cycling through the built-in shifts.

    Args:
        count: Number of agents to create.
    """
    names = [
        "Alice", "Bob", "Carol", "David", "Eve", "Frank", "Grace", "Henry",
        "Ivy", "Jack", "Kate", "Leo", "Mia", "Noah", "Olivia", "Paul",
        "Quinn", "Rose", "Sam", "Tina", "Uma", "Victor", "Wendy", "Xavier",
    ]
    departments = ["Support", "Sales"]

    agents = []
    for i in range(count):
        name = names[i % len(names)]
        if i >= len(names):
            name = f"{name}{i // len(names) + 1}"

        shift_type = SHIFT_ROTATION[i % len(SHIFT_ROTATION)]
        agents.append(
            AgentShiftInfo(
                user_id=f"U{i + 1:03d}",
                name=name,
                department=departments[i % len(departments)],
                shift_type=shift_type,
                shift=DEFAULT_SHIFT_WINDOWS.get(shift_type),
            )
        )
    return agents


def print_preview(preview: AutoDistributePreview) -> None:
    stats = preview.coverage_stats
    compliance = preview.rule_compliance
    print(f"  Proposed: {len(preview.proposed_schedules)}, failed: {len(preview.failed_agents)}")
    print(
        f"  Coverage: min={stats.min_coverage}, max={stats.max_coverage}, "
        f"avg={stats.avg_coverage:.2f}, variance={stats.variance:.3f}"
    )
    print(
        f"  Violations: {compliance.total_violations} "
        f"({compliance.blocking_violations} blocking, {compliance.warning_violations} warnings)"
    )
    for failed in preview.failed_agents[:5]:
        blocked = f" [{', '.join(failed.blocked_by)}]" if failed.blocked_by else ""
        print(f"    - {failed.name}: {failed.reason}{blocked}")
    if len(preview.failed_agents) > 5:
        print(f"    ... and {len(preview.failed_agents) - 5} more")


async def _demo(
    count: int,
    strategy: str,
    apply_mode: str,
    department: Optional[str],
    apply: bool,
) -> tuple[AutoDistributePreview, str]:
    schedule_date = date.today().isoformat()
    roster = InMemoryRoster(agents={schedule_date: create_sample_agents(count)})
    service = PreviewService(roster, InMemoryRuleStore())
    service.init()
    try:
        request = AutoDistributeRequest(
            schedule_date=schedule_date,
            strategy=strategy,
            apply_mode=apply_mode,
            department=department,
        )
        preview = await service.refresh(request)
        if apply:
            sink = InMemorySink(roster)
            response = await service.apply_preview(preview, schedule_date, sink)
            print(f"  Applied: {'ok' if response.success else 'failed'}")
    finally:
        service.dispose()
    return preview, schedule_date


def run_demo(
    count: int = 12,
    strategy: str = StrategyType.BALANCED_COVERAGE.value,
    apply_mode: str = ApplyMode.ALL_AGENTS.value,
    department: Optional[str] = None,
    pdf_path: Optional[str] = None,
    debug_path: Optional[str] = None,
    csv_path: Optional[str] = None,
    apply: bool = False,
) -> None:
    """Run a preview on a sample roster and write the requested outputs."""
    print(f"Distributing breaks for {count} sample agents ({strategy})...")
    preview, schedule_date = asyncio.run(_demo(count, strategy, apply_mode, department, apply))
    print_preview(preview)

    rules = default_rules()
    if debug_path:
        DebugGenerator().generate(preview, schedule_date, debug_path, rules)
        print(f"  Debug report written to {debug_path}")
    if csv_path:
        write_csv(preview.proposed_schedules, schedule_date, csv_path)
        print(f"  CSV written to {csv_path}")
    if pdf_path:
        print(f"\nGenerating PDF: {pdf_path}")
        PDFGenerator().generate(preview, schedule_date, pdf_path)
        print("  PDF created successfully!")


def run_compare(count: int = 12) -> None:
    """Compare coverage variance of every strategy on one roster."""
    schedule_date = date.today().isoformat()
    agents = create_sample_agents(count)
    rules = default_rules()

    print(f"Comparing strategies for {count} sample agents on {schedule_date}\n")
    print(f"{'Strategy':<20} {'Proposed':>8} {'Failed':>7} {'Min':>5} {'Max':>5} {'Variance':>9}")
    print("-" * 60)
    for strategy in StrategyType:
        request = AutoDistributeRequest(
            schedule_date=schedule_date,
            strategy=strategy,
            apply_mode=ApplyMode.ALL_AGENTS,
        )
        preview = build_preview(request, agents, [], rules)
        stats = preview.coverage_stats
        print(
            f"{strategy.value:<20} {len(preview.proposed_schedules):>8} "
            f"{len(preview.failed_agents):>7} {stats.min_coverage:>5} "
            f"{stats.max_coverage:>5} {stats.variance:>9.3f}"
        )


def run_validate_csv(path: str) -> int:
    """Validate a break schedule CSV file; returns a process exit code."""
    try:
        rows = parse_csv(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        print(f"Could not read {path}: {exc}")
        return 1

    errors = validate_rows(rows)
    if not errors:
        print(f"{path}: {len(rows)} row(s) OK")
        return 0

    print(f"{path}: {len(errors)} problem(s)")
    for error in errors:
        print(f"  - {error}")
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Break Helper - break schedule auto-distribution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo                          Balanced preview for 12 sample agents
  %(prog)s demo --strategy ladder        Use the ladder strategy
  %(prog)s demo --pdf breaks.pdf         Write a printable roster
  %(prog)s demo --debug debug.txt        Write a text coverage report

  %(prog)s compare --count 30            Compare all strategies

  %(prog)s validate-csv breaks.csv       Check a CSV before import
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    demo_parser = subparsers.add_parser("demo", help="Run a preview on a sample roster")
    demo_parser.add_argument(
        "--count", "-c",
        type=int,
        default=12,
        help="Number of sample agents (default: 12)",
    )
    demo_parser.add_argument(
        "--strategy", "-s",
        choices=[s.value for s in StrategyType],
        default=StrategyType.BALANCED_COVERAGE.value,
        help="Distribution strategy (default: balanced_coverage)",
    )
    demo_parser.add_argument(
        "--apply-mode", "-m",
        choices=[m.value for m in ApplyMode],
        default=ApplyMode.ALL_AGENTS.value,
        help="Which agents to schedule (default: all_agents)",
    )
    demo_parser.add_argument("--department", "-d", default=None, help="Only this department")
    demo_parser.add_argument("--pdf", default=None, help="Write a PDF roster to this path")
    demo_parser.add_argument("--debug", default=None, help="Write a text report to this path")
    demo_parser.add_argument("--csv", default=None, help="Write the proposal as CSV")
    demo_parser.add_argument("--apply", action="store_true", help="Apply the preview to the sample store")

    compare_parser = subparsers.add_parser("compare", help="Compare strategies on one roster")
    compare_parser.add_argument(
        "--count", "-c",
        type=int,
        default=12,
        help="Number of sample agents (default: 12)",
    )

    csv_parser = subparsers.add_parser("validate-csv", help="Validate a break schedule CSV")
    csv_parser.add_argument("path", help="CSV file to check")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "demo":
        run_demo(
            args.count,
            args.strategy,
            args.apply_mode,
            args.department,
            args.pdf,
            args.debug,
            args.csv,
            args.apply,
        )
        return 0
    elif args.command == "compare":
        run_compare(args.count)
        return 0
    elif args.command == "validate-csv":
        return run_validate_csv(args.path)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())

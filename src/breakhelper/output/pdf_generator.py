"""PDF generation for break rosters.

This module creates printable break rosters showing:
- Per-agent interval grids coloured by break type
- Per-interval coverage under the grid
- A summary page with coverage statistics and failed agents
"""

from io import BytesIO
from pathlib import Path
from typing import Union

from breakhelper.domain.intervals import INTERVAL_MINUTES, short_time, time_to_minutes
from breakhelper.domain.models import AgentBreakSchedule, AutoDistributePreview, BreakType
from breakhelper.scheduling.coverage import compute_coverage, day_intervals

# Color definitions (RGB tuples, 0-1 scale)
COLORS = {
    BreakType.IN: (0.4, 0.7, 0.4),  # Green
    BreakType.HB1: (0.55, 0.75, 0.95),  # Light blue
    BreakType.B: (1.0, 0.85, 0.4),  # Yellow
    BreakType.HB2: (0.85, 0.65, 0.9),  # Lilac
    "off_shift": (0.95, 0.95, 0.95),  # Light gray
}


def _load_canvas():
    try:
        from reportlab.lib.pagesizes import landscape, letter
        from reportlab.pdfgen import canvas
    except ImportError:
        raise ImportError(
            "reportlab is required for PDF generation. "
            "Install with: pip install reportlab"
        )
    return canvas, landscape(letter)


class PDFGenerator:
    """Generates printable PDF break rosters.

    Example:
        >>> generator = PDFGenerator()
        >>> generator.generate(preview, "2026-01-05", "breaks.pdf")
    """

    def __init__(
        self,
        page_width: float = 792,  # Letter landscape width (11")
        page_height: float = 612,  # Letter landscape height (8.5")
        margin: float = 36,  # 0.5 inch margins
    ):
        self.page_width = page_width
        self.page_height = page_height
        self.margin = margin

    def generate(
        self,
        preview: AutoDistributePreview,
        schedule_date: str,
        output_path: Union[str, Path],
        include_summary: bool = True,
    ) -> None:
        """Render the preview's schedules and save the PDF."""
        canvas, pagesize = _load_canvas()
        c = canvas.Canvas(str(output_path), pagesize=pagesize)
        self._draw(c, preview, schedule_date, include_summary)
        c.save()

    def generate_to_buffer(
        self,
        preview: AutoDistributePreview,
        schedule_date: str,
        include_summary: bool = True,
    ) -> BytesIO:
        """Render the PDF into a bytes buffer."""
        canvas, pagesize = _load_canvas()
        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=pagesize)
        self._draw(c, preview, schedule_date, include_summary)
        c.save()
        buffer.seek(0)
        return buffer

    def _draw(self, c, preview: AutoDistributePreview, schedule_date: str, include_summary: bool) -> None:
        intervals = day_intervals(preview.proposed_schedules)
        self._draw_roster_pages(c, preview.proposed_schedules, intervals, schedule_date)
        if include_summary:
            self._draw_summary_page(c, preview, intervals, schedule_date)

    def _draw_roster_pages(
        self,
        c,
        schedules: list[AgentBreakSchedule],
        intervals: list[str],
        schedule_date: str,
    ) -> None:
        """Draw agent rows with one cell per interval."""
        ordered = sorted(
            schedules,
            key=lambda s: (s.shift.start_minutes if s.shift else 0, s.name),
        )

        row_height = 18
        header_height = 60
        footer_height = 60
        usable_height = self.page_height - 2 * self.margin - header_height - footer_height
        rows_per_page = max(1, int(usable_height / row_height))

        grid_left = self.margin + 120  # Space for names
        grid_width = self.page_width - self.margin - 20 - grid_left
        coverage = compute_coverage(schedules, intervals).per_interval
        total_pages = max(1, (len(ordered) + rows_per_page - 1) // rows_per_page)

        for page_index in range(total_pages):
            page_rows = ordered[page_index * rows_per_page:(page_index + 1) * rows_per_page]

            c.setFont("Helvetica-Bold", 16)
            c.drawString(self.margin, self.page_height - self.margin - 20, f"Break Schedule - {schedule_date}")
            c.setFont("Helvetica", 10)
            c.drawString(
                self.margin,
                self.page_height - self.margin - 35,
                f"Agents: {len(schedules)}",
            )

            axis_y = self.page_height - self.margin - header_height - 10
            self._draw_time_axis(c, intervals, grid_left, axis_y, grid_width)

            y = axis_y - 10
            for schedule in page_rows:
                y -= row_height
                self._draw_agent_row(c, schedule, intervals, grid_left, grid_width, y, row_height - 4)

            y -= row_height
            self._draw_coverage_row(c, coverage, intervals, grid_left, grid_width, y, row_height - 4)

            self._draw_legend(c, self.margin, self.margin + 10)
            c.setFont("Helvetica", 9)
            c.drawCentredString(
                self.page_width / 2,
                self.margin - 10,
                f"Page {page_index + 1} of {total_pages}",
            )
            c.showPage()

    def _draw_time_axis(self, c, intervals: list[str], x: float, y: float, width: float) -> None:
        """Draw hour markers over the grid."""
        if not intervals:
            return
        cell_width = width / len(intervals)
        c.setFont("Helvetica", 8)
        c.setStrokeColorRGB(0.7, 0.7, 0.7)
        for i, interval_start in enumerate(intervals):
            if time_to_minutes(interval_start) % 60 != 0:
                continue
            cell_x = x + i * cell_width
            c.line(cell_x, y, cell_x, y - 5)
            c.drawCentredString(cell_x, y + 5, short_time(interval_start))

    def _draw_agent_row(
        self,
        c,
        schedule: AgentBreakSchedule,
        intervals: list[str],
        x: float,
        width: float,
        y: float,
        height: float,
    ) -> None:
        cell_width = width / len(intervals) if intervals else width

        c.setFillColorRGB(0, 0, 0)
        c.setFont("Helvetica", 9)
        c.drawString(self.margin, y + height / 2 - 3, schedule.name[:18])
        c.setFont("Helvetica", 7)
        c.drawString(self.margin + 90, y + height / 2 - 3, schedule.shift_type or "OFF")

        c.setFillColorRGB(*COLORS["off_shift"])
        c.rect(x, y, width, height, fill=1, stroke=0)

        for i, interval_start in enumerate(intervals):
            break_type = schedule.intervals.get(interval_start)
            if break_type is None:
                continue
            cell_x = x + i * cell_width
            c.setFillColorRGB(*COLORS[break_type])
            c.rect(cell_x, y, cell_width, height, fill=1, stroke=0)
            if break_type.is_break:
                c.setFillColorRGB(0, 0, 0)
                c.setFont("Helvetica-Bold", 5)
                c.drawCentredString(cell_x + cell_width / 2, y + height / 2 - 2, break_type.value)

        if schedule.shift is not None and intervals:
            first = time_to_minutes(intervals[0])
            shift_x = x + (schedule.shift.start_minutes - first) / INTERVAL_MINUTES * cell_width
            shift_w = schedule.shift.duration_minutes / INTERVAL_MINUTES * cell_width
            c.setStrokeColorRGB(0.3, 0.3, 0.3)
            c.setLineWidth(0.5)
            c.rect(shift_x, y, shift_w, height, fill=0, stroke=1)

    def _draw_coverage_row(
        self,
        c,
        coverage: dict[str, int],
        intervals: list[str],
        x: float,
        width: float,
        y: float,
        height: float,
    ) -> None:
        """Draw the number of agents in per interval."""
        cell_width = width / len(intervals) if intervals else width
        c.setFillColorRGB(0, 0, 0)
        c.setFont("Helvetica-Bold", 9)
        c.drawString(self.margin, y + height / 2 - 3, "Coverage")
        c.setFont("Helvetica", 6)
        for i, interval_start in enumerate(intervals):
            c.drawCentredString(
                x + i * cell_width + cell_width / 2,
                y + height / 2 - 2,
                str(coverage.get(interval_start, 0)),
            )

    def _draw_legend(self, c, x: float, y: float) -> None:
        c.setFillColorRGB(0, 0, 0)
        c.setFont("Helvetica-Bold", 8)
        c.drawString(x, y, "Legend:")

        items = [
            (BreakType.IN, "In"),
            (BreakType.HB1, "HB1"),
            (BreakType.B, "B"),
            (BreakType.HB2, "HB2"),
            ("off_shift", "Off shift"),
        ]

        c.setFont("Helvetica", 7)
        current_x = x + 45
        for key, label in items:
            c.setFillColorRGB(*COLORS[key])
            c.rect(current_x, y - 2, 12, 10, fill=1, stroke=1)
            c.setFillColorRGB(0, 0, 0)
            c.drawString(current_x + 15, y, label)
            current_x += 70

    def _draw_summary_page(
        self,
        c,
        preview: AutoDistributePreview,
        intervals: list[str],
        schedule_date: str,
    ) -> None:
        """Draw coverage statistics, a coverage chart and failed agents."""
        c.setFillColorRGB(0, 0, 0)
        c.setFont("Helvetica-Bold", 16)
        c.drawString(self.margin, self.page_height - self.margin - 20, f"Break Summary - {schedule_date}")

        y = self.page_height - self.margin - 60
        c.setFont("Helvetica-Bold", 12)
        c.drawString(self.margin, y, "Overview")
        y -= 20

        stats = preview.coverage_stats
        compliance = preview.rule_compliance
        c.setFont("Helvetica", 10)
        for line in [
            f"Proposed schedules: {len(preview.proposed_schedules)}",
            f"Failed agents: {len(preview.failed_agents)}",
            f"Coverage min/avg/max: {stats.min_coverage} / {stats.avg_coverage:.1f} / {stats.max_coverage}",
            f"Coverage variance: {stats.variance:.3f}",
            f"Violations: {compliance.total_violations} "
            f"({compliance.blocking_violations} blocking, {compliance.warning_violations} warnings)",
        ]:
            c.drawString(self.margin + 20, y, line)
            y -= 15

        y -= 20
        c.setFont("Helvetica-Bold", 12)
        c.drawString(self.margin, y, "Coverage by Interval")
        counts = list(compute_coverage(preview.proposed_schedules, intervals).per_interval.values())
        self._draw_coverage_chart(c, counts, intervals, self.margin, y - 150, 500, 140)

        y -= 190
        if preview.failed_agents:
            c.setFont("Helvetica-Bold", 12)
            c.drawString(self.margin, y, "Failed Agents")
            y -= 15
            c.setFont("Helvetica", 9)
            for failed in preview.failed_agents:
                if y < self.margin:
                    break
                c.drawString(self.margin + 20, y, f"{failed.name}: {failed.reason}"[:120])
                y -= 12

        c.showPage()

    def _draw_coverage_chart(
        self,
        c,
        coverage: list[int],
        intervals: list[str],
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> None:
        """Draw a simple bar chart of coverage per interval."""
        if not coverage:
            return

        max_coverage = max(coverage) or 1
        bar_width = width / len(coverage)

        c.setStrokeColorRGB(0, 0, 0)
        c.setLineWidth(1)
        c.line(x, y, x, y + height)  # Y axis
        c.line(x, y, x + width, y)  # X axis

        c.setFillColorRGB(0.4, 0.6, 0.8)
        for i, count in enumerate(coverage):
            bar_height = (count / max_coverage) * height
            c.rect(x + i * bar_width, y, max(bar_width - 1, 0.5), bar_height, fill=1, stroke=0)

        c.setFillColorRGB(0, 0, 0)
        c.setFont("Helvetica", 7)
        c.drawRightString(x - 5, y, "0")
        c.drawRightString(x - 5, y + height - 5, str(max_coverage))
        for i, interval_start in enumerate(intervals):
            if time_to_minutes(interval_start) % 60 == 0:
                c.drawCentredString(x + i * bar_width, y - 12, short_time(interval_start)[:2])

"""Report rendering for heapscope.

Renders a :class:`~src.analysis.report_compiler.MemoryReport` as a rich
terminal report, a self-contained HTML document, or a structured JSON export.

Terminal output uses the Rich library (panels, tables, colour-coded grade).
HTML reports are fully self-contained (inline CSS and JS, no external
dependencies) so they can be downloaded and opened anywhere.  JSON exports
carry the whole document for downstream tooling.
"""

from __future__ import annotations

import datetime
import html
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from src import __version__
from src.analysis.formatting import (
    format_bytes,
    format_duration,
    format_time,
    format_timestamp,
)
from src.analysis.health import CRITICAL_USAGE_PCT, WARNING_USAGE_PCT, HealthGrade
from src.analysis.report_compiler import MemoryReport
from src.analysis.statistics import StatsSummary

logger = logging.getLogger(__name__)

REPORT_FORMATS = ("terminal", "html", "json")


# ============================================================================
# Helpers
# ============================================================================

_GRADE_RICH_COLORS: Dict[HealthGrade, str] = {
    HealthGrade.A: "green",
    HealthGrade.B: "bright_green",
    HealthGrade.C: "yellow",
    HealthGrade.D: "dark_orange",
    HealthGrade.F: "red",
}


def _grade_color(grade: HealthGrade) -> str:
    """Return a Rich color name for a health grade."""
    return _GRADE_RICH_COLORS[grade]


def _stability_hex(value: float) -> str:
    """Return a CSS hex color for a 0-100 stability score."""
    if value >= 70.0:
        return "#22c55e"
    if value >= 40.0:
        return "#f59e0b"
    return "#ef4444"


def default_report_filename(
    extension: str = "html",
    today: Optional[datetime.date] = None,
) -> str:
    """Date-stamped default file name, e.g. ``memory-report-2024-05-01.html``."""
    day = today if today is not None else datetime.date.today()
    return f"memory-report-{day.isoformat()}.{extension.lstrip('.')}"


# ============================================================================
# Report Generator
# ============================================================================


class ReportGenerator:
    """Render a compiled memory report in multiple formats.

    Usage::

        report = generate_memory_report(store.snapshots)
        generator = ReportGenerator(report)
        generator.generate_report(format="terminal")
        generator.generate_report(format="html", output_path="report.html")
        generator.generate_report(format="json")
    """

    def __init__(self, report: MemoryReport, console: Optional[Console] = None) -> None:
        self._report = report
        self._console = console if console is not None else Console()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate_report(
        self,
        format: str = "terminal",
        output_path: Optional[str] = None,
    ) -> Optional[str]:
        """Dispatch to the appropriate rendering method.

        Parameters
        ----------
        format:
            One of ``"terminal"``, ``"html"``, or ``"json"``.
        output_path:
            File path for HTML and JSON output.  Defaults to a date-stamped
            name in the current directory.  Ignored for terminal format.

        Returns
        -------
        str | None
            The output file path for HTML/JSON, or ``None`` for terminal.

        Raises
        ------
        ValueError
            If *format* is not recognised.
        """
        fmt = format.lower().strip()
        if fmt == "terminal":
            self.generate_terminal_report()
            return None
        elif fmt == "html":
            if output_path is None:
                output_path = default_report_filename("html")
            self.generate_html_report(output_path)
            return output_path
        elif fmt == "json":
            if output_path is None:
                output_path = default_report_filename("json")
            self.generate_json_report(output_path)
            return output_path
        else:
            raise ValueError(
                f"Unknown report format {fmt!r}. "
                f"Expected one of: 'terminal', 'html', 'json'."
            )

    # ==================================================================
    # Terminal report
    # ==================================================================

    def generate_terminal_report(self) -> None:
        """Print the report to the terminal using Rich."""
        console = self._console
        report = self._report
        health = report.health

        # -- Header --------------------------------------------------------
        header_text = Text()
        header_text.append("Memory Diagnostic Report", style="bold magenta")
        if report.config.app_name:
            header_text.append(f" - {report.config.app_name}", style="bold white")
        console.print()
        console.print(Panel(header_text, border_style="magenta", padding=(1, 2)))

        # -- Session info --------------------------------------------------
        info_table = Table(show_header=False, box=None, padding=(0, 2), expand=False)
        info_table.add_column("Key", style="dim")
        info_table.add_column("Value", style="bold")
        info_table.add_row("Snapshots analyzed", str(report.snapshot_count))
        info_table.add_row("Time range", (
            f"{format_timestamp(report.time_range.start)} - "
            f"{format_timestamp(report.time_range.end)}"
        ))
        info_table.add_row("Duration", format_duration(report.time_range.duration_ms))
        info_table.add_row("Report generated", report.generated_at.strftime("%Y-%m-%d %H:%M:%S"))
        console.print(info_table)
        console.print()

        # -- Health score --------------------------------------------------
        color = _grade_color(health.grade)
        bar_width = 40
        filled = int(round(health.score / 100.0 * bar_width))
        bar = Text()
        bar.append(f"Grade {health.grade.value}  ", style=f"bold {color}")
        bar.append("[", style="dim")
        bar.append("█" * filled, style=color)
        bar.append("░" * (bar_width - filled), style="dim")
        bar.append("]", style="dim")
        bar.append(f" {health.score:.0f}/100", style=f"bold {color}")
        bar.append(f"\n\n{health.summary}")
        console.print(
            Panel(bar, title="[bold]Memory Health[/bold]", border_style=color, padding=(0, 1))
        )
        console.print()

        self._print_statistics_table(console)
        console.print()

        if report.config.include_leak_analysis:
            self._print_leak_panel(console)
            console.print()

        self._print_recommendations(console)
        console.print()

        self._print_snapshot_table(console)
        console.print()

    def _print_statistics_table(self, console: Console) -> None:
        stats = self._report.statistics
        table = Table(
            title="Statistics",
            box=box.ROUNDED,
            show_lines=False,
            title_style="bold white",
        )
        table.add_column("Metric", style="bold", min_width=16)
        table.add_column("Min", justify="right")
        table.add_column("Max", justify="right")
        table.add_column("Mean", justify="right")
        table.add_column("Median", justify="right")
        table.add_column("Std Dev", justify="right")
        table.add_column("Outliers", justify="right")

        def _row(name: str, summary: StatsSummary, fmt: Any) -> None:
            table.add_row(
                name,
                fmt(summary.min),
                fmt(summary.max),
                fmt(summary.mean),
                fmt(summary.median),
                fmt(summary.std_dev),
                str(len(summary.outliers)),
            )

        _row("Heap Used", stats.heap_used, format_bytes)
        _row("Heap Total", stats.heap_total, format_bytes)
        _row("Usage", stats.usage_percentage, lambda v: f"{v:.1f}%")
        if self._report.config.include_dom_analysis:
            if stats.dom_nodes is not None:
                _row("DOM Nodes", stats.dom_nodes, lambda v: f"{v:,.0f}")
            if stats.event_listeners is not None:
                _row("Event Listeners", stats.event_listeners, lambda v: f"{v:,.0f}")

        console.print(table)
        console.print(
            f"  Stability score: [bold]{self._report.stability_score:.0f}[/bold]  "
            f"(coefficient of variation {self._report.cv_percent:.1f}%)"
        )

    def _print_leak_panel(self, console: Console) -> None:
        leak = self._report.leak_report
        text = Text()
        if leak.detected:
            text.append("Leak pattern detected: ", style="red bold")
        else:
            text.append("Leak pattern: ", style="bold")
        text.append(f"{leak.pattern.description}\n")
        text.append(f"Confidence:  {leak.confidence:.0f}%\n")
        text.append(f"Growth rate: {format_bytes(leak.growth_rate)}/s")

        if leak.suspected_causes:
            text.append("\n\nSuspected causes:\n", style="bold")
            for cause in leak.suspected_causes:
                text.append(f"  - {cause}\n")
        if leak.detected and leak.investigation_guidance:
            text.append("\nInvestigation guidance:\n", style="bold")
            for step in leak.investigation_guidance:
                text.append(f"  - {step}\n")

        console.print(
            Panel(
                text,
                title="[bold]Leak Analysis[/bold]",
                border_style="red" if leak.detected else "blue",
                padding=(0, 1),
            )
        )

    def _print_recommendations(self, console: Console) -> None:
        table = Table(
            title="Recommendations",
            box=box.ROUNDED,
            show_header=False,
            show_lines=True,
            title_style="bold white",
        )
        table.add_column("#", style="dim", width=3)
        table.add_column("Recommendation", min_width=40)
        for i, rec in enumerate(self._report.health.recommendations, start=1):
            table.add_row(str(i), rec)
        console.print(table)

    def _print_snapshot_table(self, console: Console) -> None:
        table = Table(
            title="Snapshots",
            box=box.SIMPLE,
            title_style="bold white",
        )
        table.add_column("Label", style="bold")
        table.add_column("Time")
        table.add_column("Heap Used", justify="right")
        table.add_column("Heap Total", justify="right")
        table.add_column("Usage", justify="right")
        table.add_column("Trend")
        table.add_column("Severity")

        for snap in self._report.snapshots:
            ctx = snap.analysis_context
            trend = ctx.trend.value if ctx is not None and ctx.trend is not None else "-"
            severity = ctx.severity.value if ctx is not None and ctx.severity is not None else "-"
            table.add_row(
                snap.label,
                format_time(snap.timestamp),
                format_bytes(snap.heap_used),
                format_bytes(snap.heap_total),
                f"{snap.usage_percentage:.1f}%",
                trend,
                severity,
            )
        console.print(table)

    # ==================================================================
    # HTML report
    # ==================================================================

    def render_html(self) -> str:
        """Return the self-contained HTML document as a string."""
        report = self._report
        health = report.health
        title = "Memory Diagnostic Report"
        if report.config.app_name:
            title += f" - {report.config.app_name}"

        sections = [
            self._build_health_section_html(),
            self._build_charts_section_html(),
            self._build_statistics_section_html(),
            self._build_leak_section_html(),
            self._build_distribution_section_html(),
            self._build_recommendations_section_html(),
            self._build_snapshot_section_html(),
        ]
        body = "\n".join(s for s in sections if s)

        generated = report.generated_at.strftime("%Y-%m-%d %H:%M:%S")
        span = (
            f"{format_timestamp(report.time_range.start)} to "
            f"{format_timestamp(report.time_range.end)}"
        )

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{html.escape(title)}</title>
<style>{self._get_css()}</style>
</head>
<body>
<main class="page">
<div class="masthead">
    <div>
        <h1>Memory Diagnostic Report</h1>
        <div class="app-name">{html.escape(report.config.app_name or "heapscope")}</div>
    </div>
    <div class="grade grade-{health.grade.value.lower()}" title="Health score {health.score:.0f}">{health.grade.value}</div>
</div>
<ul class="facts">
    <li><b>Generated</b> {html.escape(generated)}</li>
    <li><b>Snapshots</b> {report.snapshot_count}</li>
    <li><b>Duration</b> {html.escape(format_duration(report.time_range.duration_ms))}</li>
    <li><b>Range</b> {html.escape(span)}</li>
</ul>
{body}
</main>
<script>{self._get_js(self._build_timeline_data())}</script>
</body>
</html>
"""

    def generate_html_report(self, output_path: str) -> None:
        """Write the self-contained HTML report to *output_path*."""
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(self.render_html(), encoding="utf-8")
        logger.info("HTML report written to %s", output_path)

    def _build_timeline_data(self) -> Dict[str, Any]:
        chart = self._report.chart
        start = chart.timestamps[0] if chart.timestamps else 0.0
        include_counts = self._report.config.include_dom_analysis
        return {
            "seconds": [(ts - start) / 1000.0 for ts in chart.timestamps],
            "heapUsed": chart.heap_used_mb,
            "heapTotal": chart.heap_total_mb,
            "usage": chart.usage_percentage,
            "domNodes": chart.dom_nodes if include_counts and chart.has_dom_data else None,
            "listeners": (
                chart.event_listeners if include_counts and chart.has_listener_data else None
            ),
            "warningPct": WARNING_USAGE_PCT,
            "criticalPct": CRITICAL_USAGE_PCT,
        }

    @staticmethod
    def _kpi(value: str, caption: str, color: Optional[str] = None) -> str:
        style = f' style="color:{color}"' if color else ""
        return (
            f'<div class="kpi"><span class="kpi-value"{style}>{html.escape(value)}</span>'
            f'<span class="kpi-caption">{html.escape(caption)}</span></div>'
        )

    def _build_health_section_html(self) -> str:
        report = self._report
        health = report.health
        kpis = "".join([
            self._kpi(f"{health.score:.0f}/100", "Health Score", health.grade.color),
            self._kpi(format_bytes(report.statistics.heap_used.mean), "Mean Heap Used"),
            self._kpi(f"{report.statistics.usage_percentage.max:.1f}%", "Peak Usage"),
            self._kpi(
                f"{report.stability_score:.0f}", "Stability Score",
                _stability_hex(report.stability_score),
            ),
        ])
        return f"""<section class="panel">
    <h2>Memory Health</h2>
    <div class="meter"><span style="width:{health.score:.1f}%;background:{health.grade.color}"></span></div>
    <p class="lead">{html.escape(health.summary)}</p>
    <div class="kpis">{kpis}</div>
</section>"""

    def _build_charts_section_html(self) -> str:
        chart = self._report.chart
        counts_canvas = ""
        if self._report.config.include_dom_analysis and (
            chart.has_dom_data or chart.has_listener_data
        ):
            counts_canvas = (
                "\n    <h3>DOM Nodes &amp; Event Listeners</h3>"
                '\n    <canvas id="domChart" height="200"></canvas>'
            )
        return f"""<section class="panel">
    <h2>Memory Over Time</h2>
    <h3>Heap (MB)</h3>
    <canvas id="heapChart" height="240"></canvas>
    <h3>Usage of Limit (%)</h3>
    <canvas id="usageChart" height="180"></canvas>{counts_canvas}
</section>"""

    def _build_statistics_section_html(self) -> str:
        stats = self._report.statistics
        rows = [
            ("Heap Used", stats.heap_used, format_bytes),
            ("Heap Total", stats.heap_total, format_bytes),
            ("Usage", stats.usage_percentage, lambda v: f"{v:.1f}%"),
        ]
        if self._report.config.include_dom_analysis:
            if stats.dom_nodes is not None:
                rows.append(("DOM Nodes", stats.dom_nodes, lambda v: f"{v:,.0f}"))
            if stats.event_listeners is not None:
                rows.append(("Event Listeners", stats.event_listeners, lambda v: f"{v:,.0f}"))

        body = "".join(
            "<tr>"
            + f"<th scope=\"row\">{html.escape(name)}</th>"
            + "".join(
                f"<td>{html.escape(fmt(value))}</td>"
                for value in (s.min, s.max, s.mean, s.median, s.std_dev)
            )
            + f"<td>{len(s.outliers)}</td></tr>"
            for name, s, fmt in rows
        )

        notice = ""
        if stats.heap_used.outliers:
            entries = "".join(
                f"<li>{html.escape(o.snapshot_label)} ({html.escape(format_time(o.timestamp))}): "
                f"{html.escape(format_bytes(o.value))}, {o.deviation:.1f} std devs from the mean</li>"
                for o in stats.heap_used.outliers
            )
            notice = f'\n    <div class="notice notice-warn"><b>Heap outliers</b><ul>{entries}</ul></div>'

        return f"""<section class="panel">
    <h2>Statistics</h2>{notice}
    <table class="grid">
        <thead><tr><th></th><th>Min</th><th>Max</th><th>Mean</th><th>Median</th><th>Std Dev</th><th>Outliers</th></tr></thead>
        <tbody>{body}</tbody>
    </table>
    <p class="muted">Coefficient of variation {self._report.cv_percent:.1f}%.</p>
</section>"""

    def _build_leak_section_html(self) -> str:
        if not self._report.config.include_leak_analysis:
            return ""
        leak = self._report.leak_report

        notice = ""
        if leak.detected:
            notice = (
                f'\n    <div class="notice notice-bad">{html.escape(leak.pattern.description)} '
                f"detected with {leak.confidence:.0f}% confidence.</div>"
            )

        def _list(tag: str, heading: str, items: List[str]) -> str:
            if not items:
                return ""
            entries = "".join(f"<li>{html.escape(item)}</li>" for item in items)
            return f"<h3>{heading}</h3><{tag}>{entries}</{tag}>"

        kpis = "".join([
            self._kpi(leak.pattern.description, "Pattern"),
            self._kpi(f"{leak.confidence:.0f}%", "Confidence"),
            self._kpi(f"{format_bytes(leak.growth_rate)}/s", "Growth Rate"),
        ])
        advice = _list("ul", "Suspected Causes", leak.suspected_causes)
        if leak.detected:
            advice += _list("ol", "Investigation Guidance", leak.investigation_guidance)

        return f"""<section class="panel">
    <h2>Leak Analysis</h2>{notice}
    <div class="kpis">{kpis}</div>
    <div class="advice">{advice}</div>
</section>"""

    def _build_distribution_section_html(self) -> str:
        palette = {
            "stable": "#64748b", "increasing": "#dc2626", "decreasing": "#16a34a",
            "normal": "#16a34a", "warning": "#d97706", "critical": "#dc2626",
        }

        def _column(heading: str, counts: Dict[str, int]) -> str:
            total = sum(counts.values())
            rows = ""
            for name, count in counts.items():
                if name == "unknown" and count == 0:
                    continue
                share = count / total * 100.0 if total else 0.0
                rows += (
                    f'<div class="dist-row"><span>{html.escape(name.capitalize())}</span>'
                    f'<span class="dist-track"><span style="width:{share:.1f}%;'
                    f'background:{palette.get(name, "#94a3b8")}"></span></span>'
                    f"<span>{count}</span></div>"
                )
            return f'<div class="dist"><h3>{heading}</h3>{rows}</div>'

        return f"""<section class="panel">
    <h2>Live Monitor State at Capture</h2>
    <div class="dist-cols">{_column("Trend", self._report.trend_counts)}{_column("Severity", self._report.severity_counts)}</div>
</section>"""

    def _build_recommendations_section_html(self) -> str:
        entries = "".join(
            f"<li>{html.escape(rec)}</li>" for rec in self._report.health.recommendations
        )
        return f"""<section class="panel">
    <h2>Recommendations</h2>
    <ol class="recs">{entries}</ol>
</section>"""

    def _build_snapshot_section_html(self) -> str:
        body = ""
        for snap in self._report.snapshots:
            ctx = snap.analysis_context
            trend = ctx.trend.value if ctx is not None and ctx.trend is not None else "-"
            severity = ctx.severity.value if ctx is not None and ctx.severity is not None else "-"
            cells = [
                snap.label,
                format_timestamp(snap.timestamp),
                format_bytes(snap.heap_used),
                format_bytes(snap.heap_total),
                f"{snap.usage_percentage:.1f}%",
                trend,
                severity,
            ]
            body += "<tr>" + "".join(f"<td>{html.escape(c)}</td>" for c in cells) + "</tr>"
        return f"""<section class="panel">
    <h2>Snapshots</h2>
    <table class="grid">
        <thead><tr><th>Label</th><th>Time</th><th>Heap Used</th><th>Heap Total</th><th>Usage</th><th>Trend</th><th>Severity</th></tr></thead>
        <tbody>{body}</tbody>
    </table>
</section>"""

    @staticmethod
    def _get_css() -> str:
        """Return the inline stylesheet for the HTML report."""
        return """
:root {
  --ink: #1f2937; --muted: #6b7280; --line: #e5e7eb;
  --paper: #ffffff; --wash: #f3f4f6; --accent: #4f46e5;
}
html { background: var(--wash); }
body { margin: 0; font: 15px/1.55 system-ui, -apple-system, "Segoe UI", sans-serif; color: var(--ink); }
.page { max-width: 1080px; margin: 0 auto; padding: 32px 20px 48px; }
.masthead { display: flex; justify-content: space-between; align-items: center; gap: 16px; }
.masthead h1 { margin: 0; font-size: 1.9rem; color: var(--accent); }
.app-name { color: var(--muted); }
.grade {
  min-width: 72px; height: 72px; border-radius: 18px;
  display: grid; place-items: center;
  font-size: 2.4rem; font-weight: 800; color: #fff;
}
.grade-a { background: #22c55e; } .grade-b { background: #84cc16; }
.grade-c { background: #f59e0b; } .grade-d { background: #f97316; }
.grade-f { background: #ef4444; }
.facts { list-style: none; padding: 0; margin: 14px 0 24px; display: flex; flex-wrap: wrap; gap: 8px 22px; color: var(--muted); }
.facts b { color: var(--ink); font-weight: 600; margin-right: 4px; }
.panel { background: var(--paper); border: 1px solid var(--line); border-radius: 10px; padding: 20px 24px; margin-bottom: 18px; }
.panel h2 { margin: 0 0 14px; font-size: 1.2rem; }
.panel h3 { margin: 14px 0 6px; font-size: 0.95rem; color: var(--muted); font-weight: 600; }
.meter { height: 12px; background: var(--wash); border-radius: 6px; overflow: hidden; }
.meter span { display: block; height: 100%; }
.lead { font-size: 1.05rem; }
.muted { color: var(--muted); font-size: 0.85rem; margin: 8px 0 0; }
.kpis { display: grid; grid-template-columns: repeat(auto-fit, minmax(150px, 1fr)); gap: 12px; margin-top: 12px; }
.kpi { border: 1px solid var(--line); border-radius: 8px; padding: 10px 12px; display: flex; flex-direction: column; }
.kpi-value { font-size: 1.3rem; font-weight: 700; }
.kpi-caption { color: var(--muted); font-size: 0.8rem; }
.grid { width: 100%; border-collapse: collapse; font-size: 0.88rem; }
.grid th, .grid td { padding: 7px 10px; border-bottom: 1px solid var(--line); text-align: right; }
.grid th:first-child, .grid td:first-child { text-align: left; }
.grid thead th { color: var(--muted); font-weight: 600; }
.notice { border-radius: 8px; padding: 10px 14px; margin-bottom: 12px; }
.notice ul { margin: 6px 0 0 18px; padding: 0; }
.notice-warn { background: #fffbeb; border: 1px solid #fcd34d; }
.notice-bad { background: #fef2f2; border: 1px solid #fca5a5; font-weight: 600; }
.advice ul, .advice ol, .recs { margin: 4px 0 0 20px; padding: 0; }
.recs li { margin-bottom: 6px; }
.dist-cols { display: grid; grid-template-columns: repeat(auto-fit, minmax(260px, 1fr)); gap: 24px; }
.dist-row { display: grid; grid-template-columns: 90px 1fr 36px; align-items: center; gap: 8px; font-size: 0.88rem; }
.dist-track { height: 10px; background: var(--wash); border-radius: 5px; overflow: hidden; }
.dist-track span { display: block; height: 100%; }
canvas { width: 100%; display: block; }
"""

    @staticmethod
    def _get_js(timeline: Dict[str, Any]) -> str:
        """Return the inline script that plots the memory series."""
        data_json = json.dumps(timeline)

        return f"""
(function () {{
  "use strict";
  var data = {data_json};
  var COLORS = {{ used: "#4f46e5", total: "#a5b4fc", usage: "#0891b2",
                  dom: "#db2777", listeners: "#65a30d", guide: "#9ca3af" }};

  function prepare(canvas) {{
    var ratio = window.devicePixelRatio || 1;
    var cssWidth = canvas.clientWidth;
    var cssHeight = Number(canvas.getAttribute("height"));
    canvas.width = cssWidth * ratio;
    canvas.height = cssHeight * ratio;
    canvas.style.height = cssHeight + "px";
    var g = canvas.getContext("2d");
    g.setTransform(ratio, 0, 0, ratio, 0, 0);
    return {{ g: g, width: cssWidth, height: cssHeight }};
  }}

  function plot(id, lines, opts) {{
    var canvas = document.getElementById(id);
    if (!canvas || data.seconds.length === 0) return;
    var surface = prepare(canvas);
    var g = surface.g;
    var left = 56, right = 16, top = 12, bottom = 30;
    var plotW = surface.width - left - right;
    var plotH = surface.height - top - bottom;
    var xs = data.seconds;
    var xMax = Math.max(xs[xs.length - 1], 1);

    var yMax = opts.yMax || 0;
    lines.forEach(function (line) {{
      line.values.forEach(function (v) {{ yMax = Math.max(yMax, v); }});
    }});
    yMax = yMax > 0 ? yMax * 1.08 : 1;

    function toX(sec) {{ return left + (sec / xMax) * plotW; }}
    function toY(val) {{ return top + plotH - (val / yMax) * plotH; }}

    g.clearRect(0, 0, surface.width, surface.height);
    g.font = "11px system-ui, sans-serif";
    g.fillStyle = "#6b7280";
    g.strokeStyle = "#e5e7eb";
    g.lineWidth = 1;
    for (var step = 0; step <= 5; step++) {{
      var value = (yMax / 5) * step;
      var y = toY(value);
      g.beginPath(); g.moveTo(left, y); g.lineTo(left + plotW, y); g.stroke();
      g.textAlign = "right";
      g.fillText(value.toFixed(yMax < 10 ? 1 : 0), left - 8, y + 4);
    }}
    g.textAlign = "center";
    for (var tick = 0; tick <= 4; tick++) {{
      var sec = (xMax / 4) * tick;
      g.fillText(sec.toFixed(0) + "s", toX(sec), top + plotH + 18);
    }}

    (opts.guides || []).forEach(function (guide) {{
      if (guide > yMax) return;
      g.save();
      g.setLineDash([4, 4]);
      g.strokeStyle = COLORS.guide;
      g.beginPath(); g.moveTo(left, toY(guide)); g.lineTo(left + plotW, toY(guide)); g.stroke();
      g.restore();
    }});

    lines.forEach(function (line, index) {{
      g.strokeStyle = line.color;
      g.lineWidth = 2;
      g.beginPath();
      line.values.forEach(function (v, i) {{
        if (i === 0) g.moveTo(toX(xs[i]), toY(v)); else g.lineTo(toX(xs[i]), toY(v));
      }});
      g.stroke();
      g.fillStyle = line.color;
      g.fillRect(left + 8 + index * 150, top, 10, 10);
      g.fillStyle = "#374151";
      g.textAlign = "left";
      g.fillText(line.name, left + 22 + index * 150, top + 9);
    }});
  }}

  function render() {{
    plot("heapChart", [
      {{ name: "Heap used", values: data.heapUsed, color: COLORS.used }},
      {{ name: "Heap total", values: data.heapTotal, color: COLORS.total }}
    ], {{}});
    plot("usageChart", [
      {{ name: "Usage %", values: data.usage, color: COLORS.usage }}
    ], {{ yMax: 100, guides: [data.warningPct, data.criticalPct] }});
    var counts = [];
    if (data.domNodes) counts.push({{ name: "DOM nodes", values: data.domNodes, color: COLORS.dom }});
    if (data.listeners) counts.push({{ name: "Listeners", values: data.listeners, color: COLORS.listeners }});
    if (counts.length) plot("domChart", counts, {{}});
  }}

  window.addEventListener("load", render);
  var pending = null;
  window.addEventListener("resize", function () {{
    clearTimeout(pending);
    pending = setTimeout(render, 150);
  }});
}})();
"""

    # ==================================================================
    # JSON report
    # ==================================================================

    def render_json(self) -> Dict[str, Any]:
        return {
            "metadata": {
                "tool": "heapscope",
                "version": __version__,
                "report_generated": datetime.datetime.now().isoformat(),
                "format_version": "1.0",
            },
            "report": self._report.to_dict(),
        }

    def generate_json_report(self, output_path: str) -> None:
        """Export the report document as structured JSON."""
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(
            json.dumps(self.render_json(), indent=2, default=str),
            encoding="utf-8",
        )
        logger.info("JSON report written to %s", output_path)

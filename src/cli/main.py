"""CLI interface for heapscope.

Provides commands for monitoring process memory with scheduled snapshots,
listing and comparing saved snapshots, analysing a session, and generating
diagnostic reports.

Uses Click for command parsing and Rich for terminal output.
"""

from __future__ import annotations

import datetime
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import psutil
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich import box

from src import __version__
from src.analysis.formatting import format_bytes, format_duration, format_time
from src.analysis.report_compiler import (
    MIN_SNAPSHOTS_FOR_REPORT,
    RECOMMENDED_SNAPSHOTS,
    InsufficientDataError,
    MemoryReport,
    ReportConfig,
    can_generate_report,
    generate_memory_report,
)
from src.analysis.report_generator import ReportGenerator, default_report_filename
from src.monitor.live_monitor import LiveMonitor, ProcessMemoryReader
from src.monitor.settings import (
    DEFAULT_MAX_SNAPSHOTS,
    MAX_MAX_SNAPSHOTS,
    MIN_MAX_SNAPSHOTS,
    ScheduleInterval,
    SnapshotSettings,
)
from src.monitor.scheduler import SnapshotScheduler
from src.monitor.snapshot import Snapshot
from src.monitor.snapshot_store import SnapshotStore
from src.monitor.trend import LeakSensitivity

logger = logging.getLogger(__name__)

console = Console()

# ---------------------------------------------------------------------------
# Environment variable names
# ---------------------------------------------------------------------------
_ENV_APP_NAME = "HEAPSCOPE_APP_NAME"
_ENV_SCHEDULE = "HEAPSCOPE_SCHEDULE"

SESSION_FORMAT_VERSION = "1.0"


# ============================================================================
# Helpers
# ============================================================================


def _error(message: str) -> None:
    """Print an error message and exit with code 1."""
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise SystemExit(1)


def _warn(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}", style="yellow")


def _info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[dim]{message}[/dim]")


def _load_session(path: str) -> Tuple[SnapshotSettings, List[Snapshot]]:
    """Load a saved session JSON from disk.

    Parameters
    ----------
    path:
        Path to the session JSON file written by ``heapscope monitor``.

    Returns
    -------
    tuple
        The session's snapshot settings and its snapshots in file order.

    Raises
    ------
    SystemExit
        If the file cannot be read or parsed.
    """
    filepath = Path(path)
    if not filepath.is_file():
        _error(f"Not a file: {path}")

    try:
        data: Dict[str, Any] = json.loads(filepath.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        _error(f"Invalid JSON in session file {path}: {exc}")
    except OSError as exc:
        _error(f"Cannot read session file {path}: {exc}")

    if not isinstance(data, dict) or not isinstance(data.get("snapshots"), list):
        _error(f"Session file {path} has no snapshot list.")

    try:
        settings = SnapshotSettings.from_dict(data.get("settings") or {})
        snapshots = [Snapshot.from_dict(raw) for raw in data["snapshots"]]
    except (AttributeError, TypeError, ValueError) as exc:
        _error(f"Malformed session file {path}: {exc}")

    logger.debug("Loaded %d snapshots from %s.", len(snapshots), path)
    return settings, snapshots


def _save_session(store: SnapshotStore, output_path: str) -> None:
    """Write the store's settings and snapshots to a session JSON file."""
    data = {
        "metadata": {
            "tool": "heapscope",
            "version": __version__,
            "created": datetime.datetime.now().isoformat(),
            "format_version": SESSION_FORMAT_VERSION,
        },
        "settings": store.settings.to_dict(),
        "snapshots": [s.to_dict() for s in store.snapshots],
    }
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    logger.info("Session written to %s", output_path)


def _compile_report(snapshots: List[Snapshot], config: ReportConfig) -> MemoryReport:
    """Build a report, converting insufficient data into a CLI error."""
    if config.min_snapshots <= len(snapshots) < RECOMMENDED_SNAPSHOTS:
        _info(
            f"Analysing {len(snapshots)} snapshots; {RECOMMENDED_SNAPSHOTS} or more "
            "give more reliable trends."
        )
    try:
        return generate_memory_report(snapshots, config)
    except InsufficientDataError as exc:
        _error(
            f"{exc}. Capture at least {exc.required} snapshots before "
            "generating a report."
        )
    raise AssertionError("unreachable")  # pragma: no cover


def _find_snapshot(snapshots: List[Snapshot], key: str) -> Optional[Snapshot]:
    """Match a snapshot by id first, then by label (case-insensitive)."""
    for snap in snapshots:
        if snap.id == key:
            return snap
    lowered = key.strip().lower()
    for snap in snapshots:
        if snap.label.lower() == lowered:
            return snap
    return None


# ============================================================================
# CLI group
# ============================================================================


@click.group(name="heapscope")
@click.version_option(version=__version__, prog_name="heapscope")
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable verbose debug logging.",
)
def cli(verbose: bool) -> None:
    """heapscope - memory snapshots, leak patterns and health reports."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )


# ============================================================================
# monitor
# ============================================================================


@cli.command()
@click.option(
    "--duration", "-d",
    type=float,
    default=60.0,
    show_default=True,
    help="How long to monitor, in seconds.",
)
@click.option(
    "--schedule", "-s",
    type=click.Choice([i.value for i in ScheduleInterval]),
    default=ScheduleInterval.s10.value,
    show_default=True,
    envvar=_ENV_SCHEDULE,
    help="Automatic snapshot interval.",
)
@click.option(
    "--max-snapshots",
    type=click.IntRange(MIN_MAX_SNAPSHOTS, MAX_MAX_SNAPSHOTS),
    default=DEFAULT_MAX_SNAPSHOTS,
    show_default=True,
    help="Maximum number of snapshots kept.",
)
@click.option(
    "--no-auto-delete",
    is_flag=True,
    default=False,
    help="Stop capturing at capacity instead of evicting the oldest snapshot.",
)
@click.option(
    "--sample-interval",
    type=int,
    default=1000,
    show_default=True,
    help="Live monitor sampling interval in milliseconds.",
)
@click.option(
    "--sensitivity",
    type=click.Choice([s.value for s in LeakSensitivity]),
    default=LeakSensitivity.medium.value,
    show_default=True,
    help="Live leak detection sensitivity.",
)
@click.option(
    "--pid",
    type=int,
    default=None,
    help="Process to monitor (defaults to this process).",
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    default="heapscope-session.json",
    show_default=True,
    help="Session file to write.",
)
@click.option(
    "--report",
    "report_path",
    type=click.Path(),
    default=None,
    help="Also write an HTML report here when enough snapshots were captured.",
)
def monitor(
    duration: float,
    schedule: str,
    max_snapshots: int,
    no_auto_delete: bool,
    sample_interval: int,
    sensitivity: str,
    pid: Optional[int],
    output: str,
    report_path: Optional[str],
) -> None:
    """Monitor a process and capture scheduled snapshots.

    Usage: heapscope monitor --duration 120 --schedule 10s

    Press Ctrl+C to stop early; the session captured so far is saved.
    """
    try:
        reader = ProcessMemoryReader(pid=pid)
    except psutil.Error as exc:
        _error(f"Cannot monitor process {pid}: {exc}")

    live_monitor = LiveMonitor(
        reader=reader,
        interval_ms=sample_interval,
        sensitivity=LeakSensitivity(sensitivity),
    )
    settings = SnapshotSettings(
        max_snapshots=max_snapshots,
        auto_delete_oldest=not no_auto_delete,
        schedule_interval=ScheduleInterval.from_value(schedule),
    )
    store = SnapshotStore(live_monitor, settings)

    interval = ScheduleInterval.from_value(schedule)
    if interval is ScheduleInterval.off:
        _warn("Scheduling is off; no snapshots will be captured automatically.")

    console.print(
        Panel(
            f"[bold]Monitoring memory[/bold] for {duration:.0f}s "
            f"(snapshots every {interval.value})\n"
            "[dim]Press Ctrl+C to stop[/dim]",
            border_style="magenta",
            padding=(0, 1),
        )
    )

    live_monitor.start()
    scheduler = SnapshotScheduler(store, interval)
    scheduler.set_active(True)

    deadline = time.monotonic() + max(duration, 0.0)
    try:
        with Live(
            _build_monitor_table(live_monitor, store),
            console=console,
            refresh_per_second=2,
            transient=False,
        ) as live_display:
            while time.monotonic() < deadline:
                time.sleep(min(0.5, max(deadline - time.monotonic(), 0.0)))
                live_display.update(_build_monitor_table(live_monitor, store))
    except KeyboardInterrupt:
        _info("Interrupted; saving captured snapshots.")
    finally:
        scheduler.stop()
        live_monitor.stop()

    _save_session(store, output)
    console.print(
        f"[bold green]Saved[/bold green] {len(store)} snapshot(s) to {output}"
    )

    if report_path is not None:
        if not can_generate_report(store.snapshots):
            _warn(
                f"Only {len(store)} snapshot(s) captured; at least "
                f"{MIN_SNAPSHOTS_FOR_REPORT} are needed for a report."
            )
            return
        report_doc = generate_memory_report(store.snapshots)
        ReportGenerator(report_doc, console=console).generate_report(
            format="html", output_path=report_path,
        )
        console.print(f"[bold green]Report written to[/bold green] {report_path}")


def _build_monitor_table(live_monitor: LiveMonitor, store: SnapshotStore) -> Table:
    """Build the live status table shown during ``monitor``."""
    table = Table(
        title="Memory (Live)",
        box=box.ROUNDED,
        title_style="bold magenta",
        expand=True,
    )
    table.add_column("Heap Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Usage", min_width=20)
    table.add_column("Trend", justify="center")
    table.add_column("Leak Probability", justify="right")
    table.add_column("Snapshots", justify="right")

    context = live_monitor.analysis_context()
    reading = live_monitor.latest()
    if reading is None or context is None:
        table.add_row("[dim]Waiting for data...[/dim]", "", "", "", "", str(len(store)))
        return table

    table.add_row(
        format_bytes(reading.heap_used),
        format_bytes(reading.heap_limit),
        _make_bar(context.usage_percentage),
        context.trend.value if context.trend is not None else "-",
        f"{context.leak_probability:.0f}%",
        f"{len(store)}/{store.settings.max_snapshots}",
    )
    return table


def _make_bar(pct: float, width: int = 15) -> Text:
    """Create a usage bar coloured by memory pressure."""
    pct = max(0.0, min(100.0, pct))
    filled = int(round(pct / 100.0 * width))

    if pct >= 90.0:
        color = "red"
    elif pct >= 70.0:
        color = "yellow"
    else:
        color = "green"

    bar = Text()
    bar.append("█" * filled, style=color)
    bar.append("░" * (width - filled), style="dim")
    bar.append(f" {pct:.1f}%", style=f"bold {color}")
    return bar


# ============================================================================
# snapshots
# ============================================================================


@cli.command()
@click.argument("session_path", type=click.Path(exists=True))
def snapshots(session_path: str) -> None:
    """List the snapshots in a saved session."""
    settings, snaps = _load_session(session_path)

    table = Table(
        title=f"Snapshots ({len(snaps)}/{settings.max_snapshots})",
        box=box.ROUNDED,
        title_style="bold white",
    )
    table.add_column("Label", style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Time")
    table.add_column("Heap Used", justify="right")
    table.add_column("Heap Total", justify="right")
    table.add_column("Usage", justify="right")
    table.add_column("Leak Prob.", justify="right")

    for snap in snaps:
        ctx = snap.analysis_context
        table.add_row(
            snap.label,
            snap.id,
            format_time(snap.timestamp),
            format_bytes(snap.heap_used),
            format_bytes(snap.heap_total),
            f"{snap.usage_percentage:.1f}%",
            f"{ctx.leak_probability:.0f}%" if ctx is not None else "-",
        )

    console.print(table)


# ============================================================================
# compare
# ============================================================================


@cli.command()
@click.argument("session_path", type=click.Path(exists=True))
@click.argument("baseline")
@click.argument("current")
def compare(session_path: str, baseline: str, current: str) -> None:
    """Compare two snapshots of a session side by side.

    Snapshots are matched by id or label, e.g.:

        heapscope compare session.json "Snapshot 1" "Auto 4"
    """
    _, snaps = _load_session(session_path)

    first = _find_snapshot(snaps, baseline)
    second = _find_snapshot(snaps, current)
    if first is None:
        _error(f"No snapshot matching {baseline!r}.")
    if second is None:
        _error(f"No snapshot matching {current!r}.")

    table = Table(
        title=f"{first.label} vs {second.label}",
        box=box.ROUNDED,
        title_style="bold white",
    )
    table.add_column("Metric", style="bold")
    table.add_column(first.label, justify="right")
    table.add_column(second.label, justify="right")
    table.add_column("Delta", justify="right")

    _add_comparison_row(table, "Heap Used", first.heap_used, second.heap_used, format_bytes)
    _add_comparison_row(table, "Heap Total", first.heap_total, second.heap_total, format_bytes)
    _add_comparison_row(
        table, "Usage", first.usage_percentage, second.usage_percentage,
        lambda v: f"{v:.1f}%",
    )
    if first.dom_nodes is not None or second.dom_nodes is not None:
        _add_comparison_row(
            table, "DOM Nodes", first.dom_nodes, second.dom_nodes,
            lambda v: f"{v:,.0f}",
        )
    if first.event_listeners is not None or second.event_listeners is not None:
        _add_comparison_row(
            table, "Event Listeners", first.event_listeners, second.event_listeners,
            lambda v: f"{v:,.0f}",
        )

    console.print(table)
    elapsed = abs(second.timestamp - first.timestamp)
    _info(f"Time between snapshots: {format_duration(elapsed)}")


def _add_comparison_row(
    table: Table,
    name: str,
    before: Optional[float],
    after: Optional[float],
    fmt: Any,
) -> None:
    """Add a row showing both values and the change between them.

    Growth is shown in red and shrinkage in green, since for every metric
    compared here less is better.
    """
    if before is None or after is None:
        table.add_row(
            name,
            fmt(before) if before is not None else "N/A",
            fmt(after) if after is not None else "N/A",
            "[dim]-[/dim]",
        )
        return

    delta = after - before
    if delta > 0:
        delta_text = f"[red]+{fmt(delta)}[/red]"
    elif delta < 0:
        delta_text = f"[green]-{fmt(abs(delta))}[/green]"
    else:
        delta_text = "[dim]0[/dim]"

    if before:
        delta_text += f" ({delta / before * 100.0:+.1f}%)"

    table.add_row(name, fmt(before), fmt(after), delta_text)


# ============================================================================
# analyze
# ============================================================================


@cli.command()
@click.argument("session_path", type=click.Path(exists=True))
@click.option(
    "--min-snapshots",
    type=click.IntRange(min=1),
    default=MIN_SNAPSHOTS_FOR_REPORT,
    show_default=True,
    help="Minimum snapshots required for analysis.",
)
def analyze(session_path: str, min_snapshots: int) -> None:
    """Analyse a saved session and print the diagnostic report."""
    _, snaps = _load_session(session_path)
    report_doc = _compile_report(snaps, ReportConfig(min_snapshots=min_snapshots))
    ReportGenerator(report_doc, console=console).generate_report(format="terminal")


# ============================================================================
# report
# ============================================================================


@cli.command()
@click.argument("session_path", type=click.Path(exists=True))
@click.option(
    "--format", "-f",
    "report_format",
    type=click.Choice(["terminal", "html", "json"], case_sensitive=False),
    default="html",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    default=None,
    help="Output file (default: memory-report-<date>.<ext>).",
)
@click.option(
    "--min-snapshots",
    type=click.IntRange(min=1),
    default=MIN_SNAPSHOTS_FOR_REPORT,
    show_default=True,
    help="Minimum snapshots required for a report.",
)
@click.option(
    "--app-name",
    type=str,
    default=None,
    envvar=_ENV_APP_NAME,
    help="Application name shown in the report header.",
)
@click.option(
    "--no-leak-analysis",
    is_flag=True,
    default=False,
    help="Omit the leak analysis section.",
)
@click.option(
    "--no-dom-analysis",
    is_flag=True,
    default=False,
    help="Omit DOM node and event listener sections.",
)
def report(
    session_path: str,
    report_format: str,
    output: Optional[str],
    min_snapshots: int,
    app_name: Optional[str],
    no_leak_analysis: bool,
    no_dom_analysis: bool,
) -> None:
    """Generate a memory diagnostic report from a saved session."""
    _, snaps = _load_session(session_path)
    config = ReportConfig(
        min_snapshots=min_snapshots,
        app_name=app_name,
        include_leak_analysis=not no_leak_analysis,
        include_dom_analysis=not no_dom_analysis,
    )
    report_doc = _compile_report(snaps, config)

    fmt = report_format.lower()
    if fmt != "terminal" and output is None:
        output = default_report_filename(fmt)

    written = ReportGenerator(report_doc, console=console).generate_report(
        format=fmt, output_path=output,
    )
    if written is not None:
        console.print(f"[bold green]Report written to[/bold green] {written}")


# ============================================================================
# Entry point
# ============================================================================


def main() -> None:
    """Entry point for the CLI.

    This function exists so the CLI can also be invoked via
    ``python -m src.cli.main``.
    """
    cli()


if __name__ == "__main__":
    main()

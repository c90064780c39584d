from __future__ import annotations

import math
from io import StringIO
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from benchkeep.model.records import ComparisonSummary, format_timestamp
from benchkeep.model.types import ComparisonStatus, TrendDirection

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from benchkeep.engine.stats import BenchmarkStats, TrendAnalysis
    from benchkeep.model.records import Baseline, BenchmarkRun, Comparison
    from benchkeep.model.thresholds import Threshold, ThresholdsResult

_NO_COMPARISONS = "No matching benchmarks between the two runs."
_NO_RUNS = "No benchmark runs found."
_NO_BASELINES = "No baselines found."
_NO_STATS = "No benchmark data."

_STATUS_STYLE: dict[ComparisonStatus, tuple[str, str]] = {
    ComparisonStatus.IMPROVED: ("✓", "green"),
    ComparisonStatus.DEGRADED: ("✗", "red"),
    ComparisonStatus.SAME: ("~", "dim"),
}

_TREND_STYLE: dict[TrendDirection, str] = {
    TrendDirection.IMPROVING: "green",
    TrendDirection.DEGRADING: "red",
    TrendDirection.STABLE: "dim",
}


def _render_rich_table(table: Table, *, color: bool) -> str:
    buf = StringIO()
    console = Console(
        file=buf,
        force_terminal=color,
        color_system="standard" if color else None,
        no_color=not color,
        width=10_000,
    )
    console.print(table)
    return buf.getvalue().rstrip()


def _ns(value: float) -> str:
    return f"{value:,.2f}"


def format_percent(value: float) -> str:
    if math.isinf(value):
        return "+inf%" if value > 0 else "-inf%"
    return f"{value:+.2f}%"


def _when(run: BenchmarkRun) -> str:
    return format_timestamp(run.timestamp.replace(microsecond=0))


def format_summary(comparisons: Iterable[Comparison]) -> str:
    s = ComparisonSummary.of(comparisons)
    return f"Summary: {s.improved} improved, {s.degraded} degraded, {s.same} unchanged"


def render_comparisons(
    comparisons: Sequence[Comparison],
    *,
    old_label: str,
    new_label: str,
    color: bool = False,
) -> str:
    """Render a comparison table followed by the status summary."""
    if not comparisons:
        return _NO_COMPARISONS

    t = Table(title=f"{escape(old_label)} → {escape(new_label)}", show_header=True, header_style="bold")
    t.add_column("", justify="center")
    t.add_column("Benchmark", overflow="fold")
    t.add_column("Old ns/op", justify="right")
    t.add_column("New ns/op", justify="right")
    t.add_column("Delta", justify="right")
    t.add_column("Change", justify="right")

    for comp in comparisons:
        symbol, style = _STATUS_STYLE[comp.status]
        t.add_row(
            f"[{style}]{symbol}[/{style}]",
            escape(comp.name),
            _ns(comp.old_ns_per_op),
            _ns(comp.new_ns_per_op),
            f"{comp.delta:+,.2f}",
            f"[{style}]{format_percent(comp.delta_percent)}[/{style}]",
        )
    return _render_rich_table(t, color=color) + "\n\n" + format_summary(comparisons)


def render_runs(runs: Sequence[BenchmarkRun], *, color: bool = False) -> str:
    if not runs:
        return _NO_RUNS
    t = Table(show_header=True, header_style="bold")
    t.add_column("ID")
    t.add_column("Timestamp")
    t.add_column("Package", overflow="fold")
    t.add_column("Benchmarks", justify="right")
    for run in runs:
        t.add_row(escape(run.id), _when(run), escape(run.package) or "-", str(len(run.results)))
    return _render_rich_table(t, color=color)


def render_run(run: BenchmarkRun, *, color: bool = False) -> str:
    header = [f"Run:       {run.id}", f"Timestamp: {_when(run)}"]
    if run.package:
        header.append(f"Package:   {run.package}")
    if run.go_version:
        header.append(f"Go:        {run.go_version}")
    if run.command:
        header.append(f"Command:   {run.command}")

    t = Table(show_header=True, header_style="bold")
    t.add_column("Benchmark", overflow="fold")
    t.add_column("Iterations", justify="right")
    t.add_column("ns/op", justify="right")
    t.add_column("B/op", justify="right")
    t.add_column("allocs/op", justify="right")
    t.add_column("MB/s", justify="right")
    for r in run.results:
        t.add_row(
            escape(r.name),
            str(r.iterations),
            _ns(r.ns_per_op),
            str(r.bytes_per_op) if r.bytes_per_op else "-",
            str(r.allocs_per_op) if r.allocs_per_op else "-",
            f"{r.mb_per_sec:.2f}" if r.mb_per_sec else "-",
        )
    return "\n".join(header) + "\n\n" + _render_rich_table(t, color=color)


def render_baselines(baselines: Sequence[Baseline], *, color: bool = False) -> str:
    if not baselines:
        return _NO_BASELINES
    t = Table(show_header=True, header_style="bold")
    t.add_column("Name")
    t.add_column("Run ID")
    t.add_column("Created")
    t.add_column("Benchmarks", justify="right")
    t.add_column("Description", overflow="fold")
    for b in baselines:
        t.add_row(
            escape(b.name),
            escape(b.run_id),
            format_timestamp(b.created_at.replace(microsecond=0)),
            str(len(b.run.results)),
            escape(b.description) or "-",
        )
    return _render_rich_table(t, color=color)


def render_baseline(baseline: Baseline, *, color: bool = False) -> str:
    lines = [
        f"Baseline:    {baseline.name}",
        f"Run ID:      {baseline.run_id}",
        f"Created:     {format_timestamp(baseline.created_at.replace(microsecond=0))}",
    ]
    if baseline.description:
        lines.append(f"Description: {baseline.description}")
    lines.extend(f"Tag:         {key}={value}" for key, value in sorted(baseline.tags.items()))
    return "\n".join(lines) + "\n\n" + render_run(baseline.run, color=color)


def render_stats(stats: Iterable[BenchmarkStats], *, max_cv: float, color: bool = False) -> str:
    rows = list(stats)
    if not rows:
        return _NO_STATS
    t = Table(show_header=True, header_style="bold")
    t.add_column("Benchmark", overflow="fold")
    t.add_column("Count", justify="right")
    t.add_column("Mean", justify="right")
    t.add_column("Median", justify="right")
    t.add_column("StdDev", justify="right")
    t.add_column("CV", justify="right")
    t.add_column("Range", justify="right")
    t.add_column("Stable", justify="center")
    for s in rows:
        stable = "[green]yes[/green]" if s.is_stable(max_cv) else "[yellow]no[/yellow]"
        t.add_row(
            escape(s.name),
            str(s.count),
            _ns(s.mean),
            _ns(s.median),
            _ns(s.stddev),
            f"{s.cv_percent:.1f}%",
            f"{_ns(s.min)} - {_ns(s.max)}",
            stable,
        )
    return _render_rich_table(t, color=color)


def render_trends(trends: Iterable[TrendAnalysis], *, color: bool = False) -> str:
    rows = list(trends)
    if not rows:
        return _NO_STATS
    t = Table(show_header=True, header_style="bold")
    t.add_column("Benchmark", overflow="fold")
    t.add_column("Direction")
    t.add_column("Slope (ns/op per run)", justify="right")
    t.add_column("R²", justify="right")
    t.add_column("Points", justify="right")
    for tr in rows:
        style = _TREND_STYLE[tr.direction]
        t.add_row(
            escape(tr.name),
            f"[{style}]{tr.direction}[/{style}]",
            f"{tr.slope:+.2f}",
            f"{tr.r_squared:.2f}",
            str(tr.points),
        )
    return _render_rich_table(t, color=color)


def render_threshold_result(result: ThresholdsResult, threshold: Threshold) -> str:
    head = f"Threshold check (max degradation: {threshold.max_degradation:.1f}%)"
    if result.passed:
        return f"{head}\n✓ All {result.total_checked} benchmarks passed the threshold check"
    lines = [
        head,
        f"✗ {len(result.failures)}/{result.total_checked} benchmarks failed the threshold check:",
        "",
    ]
    lines.extend(f"  • {f.name}: {f.message}" for f in result.failures)
    return "\n".join(lines)


__all__ = [
    "format_percent",
    "format_summary",
    "render_baseline",
    "render_baselines",
    "render_comparisons",
    "render_run",
    "render_runs",
    "render_stats",
    "render_threshold_result",
    "render_trends",
]

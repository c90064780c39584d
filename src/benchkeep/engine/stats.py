"""Descriptive statistics and trends for benchmarks across many runs."""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import TYPE_CHECKING

from benchkeep.model.types import TrendDirection

if TYPE_CHECKING:
    from collections.abc import Sequence

    from benchkeep.model.records import BenchmarkRun

# Slope (ns/op per run) beyond which a trend is reported as moving.
TREND_SLOPE_THRESHOLD = 1.0

_FULL_PERCENT = 100.0


@dataclass(frozen=True, slots=True)
class BenchmarkStats:
    """Summary of one benchmark's ns/op across runs.

    `variance` and `stddev` are population figures. `cv_percent` is the
    coefficient of variation (stddev / mean, in percent), 0 when the mean is 0.
    """

    name: str
    count: int
    mean: float
    median: float
    min: float
    max: float
    stddev: float
    variance: float
    cv_percent: float

    def is_stable(self, max_cv_percent: float) -> bool:
        return self.cv_percent <= max_cv_percent


@dataclass(frozen=True, slots=True)
class TrendAnalysis:
    name: str
    direction: TrendDirection
    slope: float
    r_squared: float  # goodness of fit, 0..1
    points: int


def _calculate_stats(name: str, values: Sequence[float]) -> BenchmarkStats:
    mean = statistics.fmean(values)
    variance = statistics.pvariance(values, mu=mean)
    stddev = variance**0.5
    return BenchmarkStats(
        name=name,
        count=len(values),
        mean=mean,
        median=statistics.median(values),
        min=min(values),
        max=max(values),
        stddev=stddev,
        variance=variance,
        cv_percent=(stddev / mean) * _FULL_PERCENT if mean != 0 else 0.0,
    )


def analyze_runs(runs: Sequence[BenchmarkRun]) -> dict[str, BenchmarkStats]:
    """Group results by benchmark name and summarise each group.

    Keys follow the order in which names are first seen across *runs*.
    """
    grouped: dict[str, list[float]] = {}
    for run in runs:
        for result in run.results:
            grouped.setdefault(result.name, []).append(result.ns_per_op)
    return {name: _calculate_stats(name, values) for name, values in grouped.items()}


def _linear_regression(xs: Sequence[float], ys: Sequence[float]) -> tuple[float, float, float]:
    """Return ``(slope, intercept, r_squared)`` of the least-squares line."""
    mean_x = statistics.fmean(xs)
    mean_y = statistics.fmean(ys)
    sxx = sum((x - mean_x) ** 2 for x in xs)
    sxy = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys, strict=True))
    slope = sxy / sxx if sxx else 0.0
    intercept = mean_y - slope * mean_x

    ss_tot = sum((y - mean_y) ** 2 for y in ys)
    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in zip(xs, ys, strict=True))
    r_squared = 1.0 - ss_res / ss_tot if ss_tot else 1.0
    return slope, intercept, r_squared


def analyze_trend(
    runs: Sequence[BenchmarkRun],
    name: str,
    *,
    slope_threshold: float = TREND_SLOPE_THRESHOLD,
) -> TrendAnalysis | None:
    """Fit a line through benchmark *name* over *runs* (oldest first).

    The x axis is the index of the run in *runs*. Runs that do not contain the
    benchmark are skipped. Returns ``None`` with fewer than two data points.
    """
    xs: list[float] = []
    ys: list[float] = []
    for index, run in enumerate(runs):
        result = run.result(name)
        if result is not None:
            xs.append(float(index))
            ys.append(result.ns_per_op)

    if len(ys) < 2:  # noqa: PLR2004
        return None

    slope, _intercept, r_squared = _linear_regression(xs, ys)
    direction = TrendDirection.STABLE
    if abs(slope) > slope_threshold:
        direction = TrendDirection.IMPROVING if slope < 0 else TrendDirection.DEGRADING

    return TrendAnalysis(name=name, direction=direction, slope=slope, r_squared=r_squared, points=len(ys))


__all__ = [
    "TREND_SLOPE_THRESHOLD",
    "BenchmarkStats",
    "TrendAnalysis",
    "analyze_runs",
    "analyze_trend",
]

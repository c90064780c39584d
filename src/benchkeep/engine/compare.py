"""Pairwise comparison of benchmark runs."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from benchkeep.config import DEFAULT_THRESHOLD, validate_threshold
from benchkeep.model.records import Comparison, ComparisonSummary
from benchkeep.model.types import ComparisonStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from benchkeep.model.records import BenchmarkResult, BenchmarkRun

_FULL_PERCENT = 100.0


def delta_percent(old: float, new: float) -> float:
    """Return the change from *old* to *new* as a percentage of *old*.

    A zero old cost gives ``0.0`` when the new cost is also zero and ``+inf``
    otherwise (costs are never negative).
    """
    if old == 0:
        return 0.0 if new == 0 else math.inf
    # Multiply first so exact inputs like 100 -> 105 give exactly 5.0.
    return (new - old) * _FULL_PERCENT / old


class Comparer:
    """Classify per-benchmark changes between two runs.

    Costs are "lower is better": a decrease beyond the threshold is an
    improvement, an increase beyond it a degradation, and anything within
    ``threshold`` percent (inclusive) is reported as unchanged.
    """

    __slots__ = ("_threshold",)

    def __init__(self, threshold: float = DEFAULT_THRESHOLD) -> None:
        self._threshold = validate_threshold(threshold)

    @property
    def threshold(self) -> float:
        return self._threshold

    def classify(self, old: float, new: float) -> ComparisonStatus:
        """Return the status of a change from *old* to *new* ns/op."""
        pct = delta_percent(old, new)
        if abs(pct) <= self._threshold:
            return ComparisonStatus.SAME
        if pct < 0:
            return ComparisonStatus.IMPROVED
        return ComparisonStatus.DEGRADED

    def compare_results(self, old: BenchmarkResult, new: BenchmarkResult) -> Comparison:
        return Comparison(
            name=new.name,
            old_ns_per_op=old.ns_per_op,
            new_ns_per_op=new.ns_per_op,
            delta=new.ns_per_op - old.ns_per_op,
            delta_percent=delta_percent(old.ns_per_op, new.ns_per_op),
            status=self.classify(old.ns_per_op, new.ns_per_op),
        )

    def compare(self, old_run: BenchmarkRun, new_run: BenchmarkRun) -> list[Comparison]:
        """Compare every benchmark of *new_run* with the same-named one in *old_run*.

        Benchmarks present in only one of the runs are skipped. If *old_run*
        repeats a name, its last occurrence is used. The output follows the
        order of *new_run*, including any repeated names there.
        """
        old_results: dict[str, BenchmarkResult] = {}
        for result in old_run.results:
            old_results[result.name] = result

        comparisons: list[Comparison] = []
        for new_result in new_run.results:
            old_result = old_results.get(new_result.name)
            if old_result is None:
                continue
            comparisons.append(self.compare_results(old_result, new_result))
        return comparisons


def summarize(comparisons: Iterable[Comparison]) -> ComparisonSummary:
    """Count comparisons per status."""
    return ComparisonSummary.of(comparisons)


__all__ = ["Comparer", "delta_percent", "summarize"]

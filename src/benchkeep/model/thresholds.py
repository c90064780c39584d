"""Regression gate: fail when any benchmark degrades beyond a limit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from benchkeep.config import validate_threshold
from benchkeep.errors import InvalidArgumentError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from benchkeep.model.records import Comparison


@dataclass(frozen=True, slots=True)
class Threshold:
    """Maximum allowed degradation, in percent of the old cost."""

    max_degradation: float

    def __post_init__(self) -> None:
        """Validate the limit."""
        validate_threshold(self.max_degradation)


@dataclass(frozen=True, slots=True)
class ThresholdFailure:
    """A benchmark whose degradation exceeded the limit."""

    name: str
    delta_percent: float
    max_degradation: float

    @property
    def message(self) -> str:
        return (
            f"performance degraded by {self.delta_percent:.2f}% "
            f"(threshold: {self.max_degradation:.2f}%)"
        )


@dataclass(frozen=True, slots=True)
class ThresholdsResult:
    """Outcome of checking a comparison list against a threshold."""

    passed: bool
    failures: list[ThresholdFailure]
    total_checked: int

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 2  # matches the CLI threshold exit status


def parse_threshold(expression: str) -> Threshold:
    """Parse a percentage such as ``"10"`` or ``"7.5%"``."""
    if not expression or not expression.strip():
        msg = "threshold expression must be non-empty"
        raise InvalidArgumentError(msg)
    value = expression.strip().rstrip("%").strip()
    try:
        percent = float(value)
    except ValueError as exc:
        msg = f"invalid percentage value: {expression!r}"
        raise InvalidArgumentError(msg) from exc
    return Threshold(max_degradation=percent)


def evaluate(comparisons: Sequence[Comparison], threshold: Threshold) -> ThresholdsResult:
    """Check every comparison against *threshold*.

    Only degradations count; improvements of any size pass. A benchmark that
    went from zero to a non-zero cost has an infinite delta and always fails.
    """
    failures = [
        ThresholdFailure(
            name=comp.name,
            delta_percent=comp.delta_percent,
            max_degradation=threshold.max_degradation,
        )
        for comp in comparisons
        if comp.delta_percent > threshold.max_degradation
    ]
    return ThresholdsResult(passed=not failures, failures=failures, total_checked=len(comparisons))


__all__ = [
    "Threshold",
    "ThresholdFailure",
    "ThresholdsResult",
    "evaluate",
    "parse_threshold",
]

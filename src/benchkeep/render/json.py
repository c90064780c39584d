from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from jsonschema import validate

from benchkeep import __version__
from benchkeep.config import get_schema
from benchkeep.model.records import ComparisonSummary, format_timestamp

if TYPE_CHECKING:
    from collections.abc import Sequence

    from benchkeep.model.records import BenchmarkRun, Comparison

SCHEMA_VERSION = 1


def _run_ref(run: BenchmarkRun, baseline: str | None) -> dict[str, Any]:
    ref: dict[str, Any] = {"id": run.id, "timestamp": format_timestamp(run.timestamp)}
    if baseline is not None:
        ref["baseline"] = baseline
    return ref


def comparison_payload(
    old_run: BenchmarkRun,
    new_run: BenchmarkRun,
    comparisons: Sequence[Comparison],
    *,
    threshold: float,
    old_baseline: str | None = None,
) -> dict[str, Any]:
    """Build the JSON document describing a comparison.

    Non-finite delta percentages (a zero old cost) are emitted as ``null``.
    """
    payload: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "tool": {"name": "benchkeep", "version": __version__},
        "old": _run_ref(old_run, old_baseline),
        "new": _run_ref(new_run, None),
        "threshold": threshold,
        "summary": ComparisonSummary.of(comparisons).to_dict(),
        "comparisons": [c.to_dict() for c in comparisons],
    }
    validate(payload, get_schema("comparison_report"))
    return payload


def format_comparisons_json(
    old_run: BenchmarkRun,
    new_run: BenchmarkRun,
    comparisons: Sequence[Comparison],
    *,
    threshold: float,
    old_baseline: str | None = None,
) -> str:
    payload = comparison_payload(
        old_run,
        new_run,
        comparisons,
        threshold=threshold,
        old_baseline=old_baseline,
    )
    return json.dumps(payload, indent=2, sort_keys=True)


__all__ = ["SCHEMA_VERSION", "comparison_payload", "format_comparisons_json"]

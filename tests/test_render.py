from __future__ import annotations

import json
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import jsonschema
import pytest

from benchkeep.config import get_schema
from benchkeep.engine.compare import Comparer
from benchkeep.engine.stats import analyze_runs, analyze_trend
from benchkeep.model.records import Baseline, Comparison
from benchkeep.model.thresholds import Threshold, evaluate
from benchkeep.model.types import ComparisonStatus
from benchkeep.render.human import (
    format_percent,
    format_summary,
    render_baseline,
    render_baselines,
    render_comparisons,
    render_run,
    render_runs,
    render_stats,
    render_threshold_result,
    render_trends,
)
from benchkeep.render.json import SCHEMA_VERSION, comparison_payload, format_comparisons_json

if TYPE_CHECKING:
    from collections.abc import Callable

    from benchkeep.model.records import BenchmarkRun


@pytest.fixture
def pair(make_run: Callable[..., BenchmarkRun]) -> tuple[BenchmarkRun, BenchmarkRun]:
    old = make_run("old", {"Fast": 200.0, "Slow": 100.0, "Flat": 50.0, "Zero": 0.0})
    new = make_run("new", {"Fast": 100.0, "Slow": 150.0, "Flat": 51.0, "Zero": 10.0})
    return old, new


def test_format_percent() -> None:
    assert format_percent(5.0) == "+5.00%"
    assert format_percent(-12.345) == "-12.35%"
    assert format_percent(math.inf) == "+inf%"


def test_render_comparisons_table_and_summary(pair: tuple[BenchmarkRun, BenchmarkRun]) -> None:
    old, new = pair
    comparisons = Comparer().compare(old, new)

    text = render_comparisons(comparisons, old_label=old.id, new_label=new.id)

    assert "old → new" in text
    for name in ("Fast", "Slow", "Flat", "Zero"):
        assert name in text
    assert "-50.00%" in text
    assert "+inf%" in text
    assert "\x1b[" not in text
    assert text.endswith("Summary: 1 improved, 2 degraded, 1 unchanged")


def test_render_comparisons_empty() -> None:
    assert render_comparisons([], old_label="a", new_label="b") == "No matching benchmarks between the two runs."


def test_render_comparisons_escapes_markup() -> None:
    comp = Comparison("Bench[red]x", 1.0, 1.0, 0.0, 0.0, ComparisonStatus.SAME)
    assert "Bench[red]x" in render_comparisons([comp], old_label="a", new_label="b")


def test_render_comparisons_with_color(pair: tuple[BenchmarkRun, BenchmarkRun]) -> None:
    comparisons = Comparer().compare(*pair)
    assert "\x1b[" in render_comparisons(comparisons, old_label="a", new_label="b", color=True)


def test_format_summary(pair: tuple[BenchmarkRun, BenchmarkRun]) -> None:
    assert format_summary([]) == "Summary: 0 improved, 0 degraded, 0 unchanged"


def test_render_runs_and_run(make_run: Callable[..., BenchmarkRun]) -> None:
    assert render_runs([]) == "No benchmark runs found."
    run = make_run("r1", {"Encode-8": 1200.0}, package="example.com/p", go_version="go1.22")

    listing = render_runs([run])
    assert "r1" in listing
    assert "example.com/p" in listing

    detail = render_run(run)
    assert detail.startswith("Run:       r1")
    assert "Go:        go1.22" in detail
    assert "Encode-8" in detail
    assert "1,200.00" in detail


def test_render_baselines(make_run: Callable[..., BenchmarkRun]) -> None:
    assert render_baselines([]) == "No baselines found."
    run = make_run("r1", {"A": 1.0})
    baseline = Baseline(
        name="release",
        run_id="r1",
        created_at=datetime(2024, 2, 1, tzinfo=UTC),
        run=run,
        description="v1",
        tags={"branch": "main"},
    )

    assert "release" in render_baselines([baseline])
    detail = render_baseline(baseline)
    assert "Baseline:    release" in detail
    assert "Tag:         branch=main" in detail
    assert "Run:       r1" in detail


def test_render_stats_and_trends(make_run: Callable[..., BenchmarkRun]) -> None:
    runs = [make_run(f"r{i}", {"A": 100.0 + 10 * i}) for i in range(3)]

    stats_text = render_stats(analyze_runs(runs).values(), max_cv=1.0)
    assert "A" in stats_text
    assert "no" in stats_text

    trend = analyze_trend(runs, "A")
    assert trend is not None
    trend_text = render_trends([trend])
    assert "degrading" in trend_text
    assert "+10.00" in trend_text

    assert render_stats([], max_cv=10.0) == "No benchmark data."
    assert render_trends([]) == "No benchmark data."


def test_render_threshold_result(pair: tuple[BenchmarkRun, BenchmarkRun]) -> None:
    comparisons = Comparer().compare(*pair)
    limit = Threshold(10.0)

    failed = render_threshold_result(evaluate(comparisons, limit), limit)
    assert failed.startswith("Threshold check (max degradation: 10.0%)")
    assert "✗ 2/4 benchmarks failed the threshold check:" in failed
    assert "  • Slow: performance degraded by 50.00% (threshold: 10.00%)" in failed

    passed = render_threshold_result(evaluate(comparisons[:1], limit), limit)
    assert passed.endswith("✓ All 1 benchmarks passed the threshold check")


def test_comparison_payload_is_valid(pair: tuple[BenchmarkRun, BenchmarkRun]) -> None:
    old, new = pair
    comparisons = Comparer().compare(old, new)

    payload = comparison_payload(old, new, comparisons, threshold=5.0, old_baseline="release")

    jsonschema.validate(payload, get_schema("comparison_report"))
    assert payload["schema_version"] == SCHEMA_VERSION
    assert payload["old"]["baseline"] == "release"
    assert "baseline" not in payload["new"]
    assert payload["summary"] == {"improved": 1, "degraded": 2, "same": 1}
    zero = next(c for c in payload["comparisons"] if c["name"] == "Zero")
    assert zero["delta_percent"] is None


def test_format_comparisons_json_is_parseable(pair: tuple[BenchmarkRun, BenchmarkRun]) -> None:
    old, new = pair
    text = format_comparisons_json(old, new, Comparer().compare(old, new), threshold=5.0)
    data = json.loads(text)
    assert [c["name"] for c in data["comparisons"]] == ["Fast", "Slow", "Flat", "Zero"]
    assert data["tool"]["name"] == "benchkeep"

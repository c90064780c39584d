from __future__ import annotations

from enum import StrEnum
from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING, Annotated, NamedTuple

import typer

from benchkeep import logger
from benchkeep.cli._shared import fail, get_state, handle_errors, write_output
from benchkeep.cli.exit_codes import EXIT_DATAERR, EXIT_USAGE
from benchkeep.engine.compare import Comparer
from benchkeep.model.thresholds import Threshold, evaluate, parse_threshold
from benchkeep.render.human import render_comparisons, render_threshold_result
from benchkeep.render.json import format_comparisons_json

if TYPE_CHECKING:
    from benchkeep.model.records import BenchmarkRun
    from benchkeep.store import Store


class CompareFormat(StrEnum):
    HUMAN = "human"
    JSON = "json"


class RunPair(NamedTuple):
    old: BenchmarkRun
    new: BenchmarkRun
    old_label: str
    new_label: str
    baseline: str | None


def _resolve_pair(
    store: Store,
    run_ids: list[str] | None,
    *,
    latest: bool,
    baseline: str | None,
) -> RunPair:
    """Pick the old and new runs named on the command line.

    With ``--baseline`` the old side is the baseline's snapshot and the new
    side is the single given run, or the latest one. Without ids (or with
    ``--latest``) the two most recent runs are compared.
    """
    ids = list(run_ids or [])
    if baseline is not None:
        if len(ids) > 1:
            raise fail("--baseline takes at most one run id", EXIT_USAGE)
        snapshot = store.load_baseline(baseline)
        new = store.load(ids[0]) if ids else store.latest()
        return RunPair(snapshot.run, new, f"baseline {baseline}", new.id, baseline)

    if latest or not ids:
        if ids:
            raise fail("--latest does not take run ids", EXIT_USAGE)
        runs = store.list_runs()
        if len(runs) < 2:  # noqa: PLR2004
            raise fail("need at least 2 runs to compare", EXIT_USAGE)
        new, old = runs[0], runs[1]
        return RunPair(old, new, old.id, new.id, None)

    if len(ids) != 2:  # noqa: PLR2004
        raise fail("expected exactly two run ids (OLD NEW)", EXIT_USAGE)
    old, new = store.load(ids[0]), store.load(ids[1])
    return RunPair(old, new, old.id, new.id, None)


def register(app: typer.Typer) -> None:
    @app.command("compare")
    def compare_cmd(
        ctx: typer.Context,
        run_ids: Annotated[list[str] | None, typer.Argument(help="OLD and NEW run ids.")] = None,
        baseline: Annotated[
            str | None,
            typer.Option("--baseline", help="Compare against a saved baseline instead of an old run."),
        ] = None,
        output_format: Annotated[
            CompareFormat,
            typer.Option("--format", help="Output format: human, json."),
        ] = CompareFormat.HUMAN,
        threshold: Annotated[
            float | None,
            typer.Option("--threshold", min=0.0, help="Percent change still reported as unchanged."),
        ] = None,
        output: Annotated[
            Path | None,
            typer.Option("--output", help="Write output to PATH (use '-' for stdout)."),
        ] = None,
        *,
        latest: Annotated[bool, typer.Option("--latest", help="Compare the two most recent runs.")] = False,
    ) -> None:
        """Compare two runs benchmark by benchmark."""
        state = get_state(ctx)
        with handle_errors():
            pair = _resolve_pair(state.store, run_ids, latest=latest, baseline=baseline)
            comparer = Comparer(threshold if threshold is not None else state.config.threshold)
            comparisons = comparer.compare(pair.old, pair.new)

        logger.info("compared %s with %s: %d matching benchmarks", pair.old_label, pair.new_label, len(comparisons))
        if output_format is CompareFormat.JSON:
            text = format_comparisons_json(
                pair.old,
                pair.new,
                comparisons,
                threshold=comparer.threshold,
                old_baseline=pair.baseline,
            )
        else:
            text = render_comparisons(
                comparisons,
                old_label=pair.old_label,
                new_label=pair.new_label,
                color=state.color and output is None,
            )
        write_output(text, output)

    @app.command("check")
    def check_cmd(
        ctx: typer.Context,
        run_ids: Annotated[list[str] | None, typer.Argument(help="OLD and NEW run ids.")] = None,
        baseline: Annotated[
            str | None,
            typer.Option("--baseline", help="Check against a saved baseline instead of an old run."),
        ] = None,
        threshold: Annotated[
            str | None,
            typer.Option("--threshold", help="Maximum allowed degradation in percent (e.g. 10 or 7.5%)."),
        ] = None,
        *,
        latest: Annotated[bool, typer.Option("--latest", help="Check the two most recent runs.")] = False,
    ) -> None:
        """Fail (exit 2) when any benchmark degraded beyond the threshold."""
        state = get_state(ctx)
        with handle_errors():
            limit = parse_threshold(threshold) if threshold is not None else Threshold(state.config.threshold)
            pair = _resolve_pair(state.store, run_ids, latest=latest, baseline=baseline)
            comparisons = Comparer(limit.max_degradation).compare(pair.old, pair.new)

        if not comparisons:
            raise fail(f"no matching benchmarks between {pair.old_label} and {pair.new_label}", EXIT_DATAERR)

        result = evaluate(comparisons, limit)
        typer.echo(render_threshold_result(result, limit))
        if not result.passed:
            raise typer.Exit(code=result.exit_code)


__all__ = ["CompareFormat", "register"]

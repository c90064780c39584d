from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

import typer

from benchkeep.cli._shared import get_state, handle_errors
from benchkeep.engine.stats import analyze_runs, analyze_trend
from benchkeep.render.human import render_stats, render_trends

if TYPE_CHECKING:
    from benchkeep.model.records import BenchmarkRun
    from benchkeep.store import Store


def _recent_runs(store: Store, last: int) -> list[BenchmarkRun]:
    """Return the *last* most recent runs (all when 0), oldest first."""
    runs = store.list_runs()
    if last > 0:
        runs = runs[:last]
    runs.reverse()
    return runs


def register(app: typer.Typer) -> None:
    @app.command("stats")
    def stats_cmd(
        ctx: typer.Context,
        last: Annotated[int, typer.Option("--last", min=0, help="Use the N most recent runs (0 = all).")] = 0,
        cv: Annotated[
            float,
            typer.Option("--cv", min=0.0, help="Coefficient of variation (%) at or below which a benchmark is stable."),
        ] = 10.0,
    ) -> None:
        """Per-benchmark statistics across runs."""
        state = get_state(ctx)
        with handle_errors():
            runs = _recent_runs(state.store, last)
        typer.echo(render_stats(analyze_runs(runs).values(), max_cv=cv, color=state.color))

    @app.command("trend")
    def trend_cmd(
        ctx: typer.Context,
        last: Annotated[int, typer.Option("--last", min=0, help="Use the N most recent runs (0 = all).")] = 10,
    ) -> None:
        """Per-benchmark performance trend across runs."""
        state = get_state(ctx)
        with handle_errors():
            runs = _recent_runs(state.store, last)
        trends = (analyze_trend(runs, name) for name in analyze_runs(runs))
        typer.echo(render_trends((t for t in trends if t is not None), color=state.color))


__all__ = ["register"]

from __future__ import annotations

import sys
from dataclasses import replace
from datetime import timedelta
from pathlib import Path
from typing import Annotated

import typer

from benchkeep import logger
from benchkeep.cli._shared import fail, get_state, handle_errors
from benchkeep.cli.exit_codes import EXIT_DATAERR, EXIT_IOERR, EXIT_NOINPUT
from benchkeep.errors import InvalidArgumentError
from benchkeep.inputs.gobench import run_from_output
from benchkeep.model.records import validate_key
from benchkeep.model.types import ProfileKind
from benchkeep.render.human import render_run, render_runs


def _read_bytes(path: Path, what: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise fail(f"cannot read {what} {path}: {exc}", EXIT_IOERR) from exc


def _read_input(source: Path) -> str:
    if source == Path("-"):
        raw = sys.stdin.buffer.read()
    elif not source.is_file():
        raise fail(f"benchmark output not found: {source}", EXIT_NOINPUT)
    else:
        raw = _read_bytes(source, "benchmark output")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise fail(f"benchmark output is not valid UTF-8: {source}: {exc}", EXIT_DATAERR) from exc


def register(app: typer.Typer) -> None:
    @app.command("record")
    def record_cmd(
        ctx: typer.Context,
        source: Annotated[Path, typer.Argument(..., help="File holding `go test -bench` output ('-' for stdin).")],
        run_id: Annotated[str | None, typer.Option("--id", help="Run id (default: run-<unix time>).")] = None,
        package: Annotated[
            str | None,
            typer.Option("--package", help="Package under test (default: the `pkg:` line of the output)."),
        ] = None,
        go_version: Annotated[str, typer.Option("--go-version", help="Go toolchain version.")] = "",
        command: Annotated[str, typer.Option("--command", help="Command that produced the output.")] = "",
        cpu_profile: Annotated[
            Path | None,
            typer.Option("--cpu-profile", exists=True, dir_okay=False, help="CPU profile to attach."),
        ] = None,
        mem_profile: Annotated[
            Path | None,
            typer.Option("--mem-profile", exists=True, dir_okay=False, help="Memory profile to attach."),
        ] = None,
        duration: Annotated[
            float,
            typer.Option("--duration", min=0.0, help="Wall-clock seconds the benchmark invocation took."),
        ] = 0.0,
    ) -> None:
        """Parse benchmark output and save it as a new run."""
        state = get_state(ctx)
        if run_id is not None:
            with handle_errors():
                validate_key(run_id, kind="run id")
        text = _read_input(source)

        try:
            run = run_from_output(
                text,
                run_id=run_id,
                package=package,
                go_version=go_version,
                command=command,
                duration=timedelta(seconds=duration),
            )
        except InvalidArgumentError as exc:
            raise fail(str(exc), EXIT_DATAERR) from exc

        with handle_errors():
            if state.store.has_run(run.id):
                logger.warning("replacing existing run %s", run.id)
            if cpu_profile is not None:
                data = _read_bytes(cpu_profile, "CPU profile")
                stored = state.store.save_profile(run.id, ProfileKind.CPU, data)
                run = replace(run, cpu_profile=str(stored))
            if mem_profile is not None:
                data = _read_bytes(mem_profile, "memory profile")
                stored = state.store.save_profile(run.id, ProfileKind.MEMORY, data)
                run = replace(run, memory_profile=str(stored))
            path = state.store.save(run)

        logger.info("saved run to %s", path)
        typer.echo(f"Saved run {run.id} ({len(run.results)} benchmarks)")

    @app.command("list")
    def list_cmd(ctx: typer.Context) -> None:
        """List stored runs, newest first."""
        state = get_state(ctx)
        with handle_errors():
            typer.echo(render_runs(state.store.list_runs(), color=state.color))

    @app.command("show")
    def show_cmd(
        ctx: typer.Context,
        run_id: Annotated[str, typer.Argument(..., help="Run to show.")],
    ) -> None:
        """Show the results of one run."""
        state = get_state(ctx)
        with handle_errors():
            typer.echo(render_run(state.store.load(run_id), color=state.color))

    @app.command("delete")
    def delete_cmd(
        ctx: typer.Context,
        run_ids: Annotated[list[str], typer.Argument(..., help="Runs to delete.")],
    ) -> None:
        """Delete runs together with their profiles."""
        state = get_state(ctx)
        with handle_errors():
            for run_id in run_ids:
                state.store.delete(run_id)
                typer.echo(f"Deleted run {run_id}")


__all__ = ["register"]

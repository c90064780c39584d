from __future__ import annotations

from pathlib import Path  # noqa: TC003
from typing import Annotated

import typer
from typer.main import get_command

from benchkeep import __version__
from benchkeep.cli import baseline, compare, runs, stats
from benchkeep.cli._shared import (
    CliState,
    configure_logging,
    handle_errors,
    resolve_use_color,
    stdout_allows_color,
)
from benchkeep.config import load_config
from benchkeep.store import Store


def _version_callback(value: bool) -> None:  # noqa: FBT001
    if value:
        typer.echo(f"benchkeep {__version__}")
        raise typer.Exit


def create_app() -> typer.Typer:
    app = typer.Typer(help="Store, compare and track Go benchmark runs.", no_args_is_help=True)

    @app.callback()
    def _root(
        ctx: typer.Context,
        storage: Annotated[
            Path | None,
            typer.Option("--storage", help="Storage directory (default: .benchkeep or [tool.benchkeep])."),
        ] = None,
        *,
        verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log progress details.")] = False,
        quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only log errors.")] = False,
        color: Annotated[bool, typer.Option("--color", help="Force ANSI color output.")] = False,
        no_color: Annotated[bool, typer.Option("--no-color", help="Disable ANSI color output.")] = False,
        version: Annotated[
            bool,
            typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
        ] = False,
    ) -> None:
        del version
        configure_logging(verbose=verbose, quiet=quiet)
        with handle_errors():
            config = load_config(storage_dir=storage)
        ctx.obj = CliState(
            config=config,
            store=Store.from_config(config),
            color=resolve_use_color(color=color, no_color=no_color, color_allowed=stdout_allows_color()),
        )

    runs.register(app)
    compare.register(app)
    baseline.register(app)
    stats.register(app)

    return app


def main() -> None:
    app = create_app()
    get_command(app)()


# Click-compatible object for tooling that imports it
cli = get_command(create_app())

__all__ = ["cli", "create_app", "main"]

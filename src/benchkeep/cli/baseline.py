from __future__ import annotations

from typing import Annotated

import typer

from benchkeep.cli._shared import get_state, handle_errors
from benchkeep.render.human import render_baseline, render_baselines


def _parse_tags(values: list[str] | None) -> dict[str, str]:
    tags: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            msg = f"expected KEY=VALUE, got {item!r}"
            raise typer.BadParameter(msg, param_hint="--tag")
        tags[key.strip()] = value.strip()
    return tags


def register(app: typer.Typer) -> None:
    group = typer.Typer(help="Save, list, show and delete named baselines.", no_args_is_help=True)

    @group.command("save")
    def save_cmd(
        ctx: typer.Context,
        name: Annotated[str, typer.Argument(..., help="Baseline name.")],
        run_id: Annotated[str | None, typer.Option("--run", help="Run to snapshot (default: latest).")] = None,
        description: Annotated[str, typer.Option("--desc", help="Free-form description.")] = "",
        tag: Annotated[list[str] | None, typer.Option("--tag", help="KEY=VALUE metadata (repeatable).")] = None,
    ) -> None:
        """Snapshot a run under NAME."""
        state = get_state(ctx)
        tags = _parse_tags(tag)
        with handle_errors():
            source = run_id if run_id is not None else state.store.latest().id
            saved = state.store.save_baseline(name, source, description=description, tags=tags)
        typer.echo(f"Saved baseline {saved.name} from run {saved.run_id}")

    @group.command("list")
    def list_cmd(ctx: typer.Context) -> None:
        """List baselines, most recently created first."""
        state = get_state(ctx)
        with handle_errors():
            typer.echo(render_baselines(state.store.list_baselines(), color=state.color))

    @group.command("show")
    def show_cmd(
        ctx: typer.Context,
        name: Annotated[str, typer.Argument(..., help="Baseline name.")],
    ) -> None:
        """Show a baseline and its snapshot run."""
        state = get_state(ctx)
        with handle_errors():
            typer.echo(render_baseline(state.store.load_baseline(name), color=state.color))

    @group.command("delete")
    def delete_cmd(
        ctx: typer.Context,
        names: Annotated[list[str], typer.Argument(..., help="Baselines to delete.")],
    ) -> None:
        """Delete baselines. Their source runs are left untouched."""
        state = get_state(ctx)
        with handle_errors():
            for name in names:
                state.store.delete_baseline(name)
                typer.echo(f"Deleted baseline {name}")

    app.add_typer(group, name="baseline")


__all__ = ["register"]

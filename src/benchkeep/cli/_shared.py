from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import click.utils as click_utils
import typer

from benchkeep import logger
from benchkeep.cli.exit_codes import EXIT_DATAERR, EXIT_IOERR, EXIT_NOINPUT, EXIT_USAGE
from benchkeep.config import LOG_FORMAT
from benchkeep.errors import (
    CorruptRecordError,
    InvalidArgumentError,
    RecordNotFoundError,
    StoreIOError,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from benchkeep.config import BenchkeepConfig
    from benchkeep.store import Store


@dataclass(slots=True)
class CliState:
    """Objects shared by every sub-command, stored on the Typer context."""

    config: BenchkeepConfig
    store: Store
    color: bool = False


def get_state(ctx: typer.Context) -> CliState:
    state = ctx.find_root().obj
    if not isinstance(state, CliState):  # pragma: no cover - callback always sets it
        msg = "CLI state not initialised"
        raise RuntimeError(msg)
    return state


def configure_logging(*, verbose: bool, quiet: bool) -> None:
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.setLevel(level)


def resolve_use_color(*, color: bool, no_color: bool, color_allowed: bool) -> bool:
    # CLI flags take precedence over terminal detection.
    if no_color:
        return False
    if color:
        return True
    return color_allowed


def stdout_allows_color() -> bool:
    stdout = sys.stdout
    try:
        is_tty = bool(getattr(stdout, "isatty", lambda: False)())
    except OSError:
        return False
    return is_tty and not click_utils.should_strip_ansi(stdout)


def write_output(text: str, destination: Path | None) -> None:
    """Write output to stdout or a file (PATH or '-' for stdout)."""
    if destination is None or destination == Path("-"):
        typer.echo(text)
        return
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(text + "\n", encoding="utf-8")


def fail(message: str, code: int) -> typer.Exit:
    typer.echo(f"ERROR: {message}", err=True)
    return typer.Exit(code=code)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Translate library errors into an error message and a sysexits code."""
    try:
        yield
    except RecordNotFoundError as exc:
        raise fail(str(exc), EXIT_NOINPUT) from exc
    except CorruptRecordError as exc:
        raise fail(str(exc), EXIT_DATAERR) from exc
    except StoreIOError as exc:
        raise fail(str(exc), EXIT_IOERR) from exc
    except InvalidArgumentError as exc:
        raise fail(str(exc), EXIT_USAGE) from exc


__all__ = [
    "CliState",
    "configure_logging",
    "fail",
    "get_state",
    "handle_errors",
    "resolve_use_color",
    "stdout_allows_color",
    "write_output",
]

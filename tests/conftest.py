from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

from benchkeep.model.records import BenchmarkResult, BenchmarkRun
from benchkeep.store import Store

EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

GO_BENCH_OUTPUT = """\
goos: linux
goarch: amd64
pkg: example.com/mypkg
cpu: Intel(R) Core(TM) i7
BenchmarkEncode-8   	 1000000	      1200 ns/op	     512 B/op	      10 allocs/op
BenchmarkDecode-8   	  500000	      2400 ns/op
BenchmarkCopy-8     	  200000	      5000 ns/op	 250.50 MB/s
PASS
ok  	example.com/mypkg	3.456s
"""


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a Typer CLI runner for invoking the command-line interface."""
    return CliRunner()


@pytest.fixture
def store(tmp_path: Path) -> Store:
    return Store(tmp_path / "store")


@pytest.fixture
def make_run() -> Callable[..., BenchmarkRun]:
    """Build runs from ``{name: ns_per_op}``; each call defaults to one minute after the last."""
    counter = iter(range(1_000))

    def build(
        run_id: str,
        results: Mapping[str, float],
        *,
        timestamp: datetime | None = None,
        **kwargs: object,
    ) -> BenchmarkRun:
        when = timestamp if timestamp is not None else EPOCH + timedelta(minutes=next(counter))
        return BenchmarkRun(
            id=run_id,
            timestamp=when,
            results=tuple(BenchmarkResult(name=n, ns_per_op=ns, iterations=1000) for n, ns in results.items()),
            **kwargs,
        )

    return build


@pytest.fixture
def go_bench_file(tmp_path: Path) -> Path:
    path = tmp_path / "bench.txt"
    path.write_text(GO_BENCH_OUTPUT, encoding="utf-8")
    return path


@pytest.fixture
def go_bench_output() -> str:
    return GO_BENCH_OUTPUT

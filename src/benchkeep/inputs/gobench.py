"""Read ``go test -bench`` text output into benchmark records."""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from benchkeep.errors import InvalidArgumentError
from benchkeep.model.records import BenchmarkResult, BenchmarkRun

if TYPE_CHECKING:
    from collections.abc import Iterable

# BenchmarkFoo-8   1000000   1234 ns/op   [12.5 MB/s]   [512 B/op]   [10 allocs/op]
_BENCH_RE = re.compile(
    r"^Benchmark(?P<name>\S+)\s+(?P<iterations>\d+)\s+(?P<ns>[\d.]+)\s+ns/op"
    r"(?:\s+(?P<mbs>[\d.]+)\s+MB/s)?"
    r"(?:\s+(?P<bytes>\d+)\s+B/op)?"
    r"(?:\s+(?P<allocs>\d+)\s+allocs/op)?"
)
_PKG_RE = re.compile(r"^pkg:\s*(?P<pkg>\S+)")


def parse_result_line(line: str) -> BenchmarkResult | None:
    """Return the result on *line*, or ``None`` if it is not a benchmark line."""
    m = _BENCH_RE.match(line)
    if not m:
        return None
    return BenchmarkResult(
        name=m.group("name"),
        iterations=int(m.group("iterations")),
        ns_per_op=float(m.group("ns")),
        mb_per_sec=float(m.group("mbs")) if m.group("mbs") else 0.0,
        bytes_per_op=int(m.group("bytes")) if m.group("bytes") else 0,
        allocs_per_op=int(m.group("allocs")) if m.group("allocs") else 0,
    )


def parse_gobench(lines: str | Iterable[str]) -> list[BenchmarkResult]:
    """Extract every benchmark result from go test output."""
    if isinstance(lines, str):
        lines = lines.splitlines()
    results = [r for r in (parse_result_line(line.strip()) for line in lines) if r is not None]
    if not results:
        msg = "no benchmark results found in output"
        raise InvalidArgumentError(msg)
    return results


def detect_package(text: str) -> str:
    """Return the ``pkg:`` header of go test output, or an empty string."""
    for line in text.splitlines():
        m = _PKG_RE.match(line.strip())
        if m:
            return m.group("pkg")
    return ""


def new_run_id(now: datetime | None = None) -> str:
    """Return an id of the form ``run-<unix seconds>``."""
    moment = now if now is not None else datetime.now(UTC)
    return f"run-{int(moment.timestamp())}"


def run_from_output(
    text: str,
    *,
    run_id: str | None = None,
    timestamp: datetime | None = None,
    package: str | None = None,
    go_version: str = "",
    command: str = "",
    duration: timedelta = timedelta(0),
) -> BenchmarkRun:
    """Build a :class:`BenchmarkRun` from the text of a go benchmark invocation."""
    moment = timestamp if timestamp is not None else datetime.now(UTC)
    return BenchmarkRun(
        id=run_id or new_run_id(moment),
        timestamp=moment,
        results=tuple(parse_gobench(text)),
        package=package if package is not None else detect_package(text),
        go_version=go_version,
        command=command,
        duration=duration,
    )


__all__ = ["detect_package", "new_run_id", "parse_gobench", "parse_result_line", "run_from_output"]

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from benchkeep.errors import InvalidArgumentError
from benchkeep.model.types import ComparisonStatus, RunID, Tags

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

# Python keeps microseconds; other tools may write nanosecond fractions.
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")
_NS_PER_US = 1000


# -----------------------------------------------------------------------------
# Helpers shared by the record types
# -----------------------------------------------------------------------------


def validate_key(value: str, *, kind: str = "identifier") -> str:
    """Return *value* if it can be used as a filename stem for a record.

    Keys must be non-blank, must not contain path separators, and must not be
    ``.`` or ``..``.
    """
    if not isinstance(value, str) or not value.strip():
        msg = f"{kind} must be a non-empty string, got {value!r}"
        raise InvalidArgumentError(msg)
    if "/" in value or "\\" in value or value in {".", ".."}:
        msg = f"{kind} must not contain path separators: {value!r}"
        raise InvalidArgumentError(msg)
    return value


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, truncating sub-microsecond digits."""
    try:
        return datetime.fromisoformat(_EXCESS_FRACTION.sub(r"\1", value))
    except (TypeError, ValueError) as exc:
        msg = f"invalid timestamp: {value!r}"
        raise InvalidArgumentError(msg) from exc


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def _non_negative(value: float, *, field_name: str) -> None:
    if math.isnan(value) or value < 0:
        msg = f"{field_name} must be >= 0, got {value!r}"
        raise InvalidArgumentError(msg)


def _items(data: Mapping[str, Any], key: str) -> list[Any]:
    # Missing keys and explicit nulls both mean "no entries".
    return list(data.get(key) or [])


# -----------------------------------------------------------------------------
# Measurements
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    """One measured benchmark within a run."""

    name: str
    ns_per_op: float
    iterations: int = 0
    bytes_per_op: int = 0
    allocs_per_op: int = 0
    mb_per_sec: float = 0.0

    def __post_init__(self) -> None:
        """Validate the name and that all measurements are non-negative."""
        if not self.name:
            msg = "BenchmarkResult.name must be non-empty"
            raise InvalidArgumentError(msg)
        _non_negative(self.ns_per_op, field_name="ns_per_op")
        _non_negative(self.iterations, field_name="iterations")
        _non_negative(self.bytes_per_op, field_name="bytes_per_op")
        _non_negative(self.allocs_per_op, field_name="allocs_per_op")
        _non_negative(self.mb_per_sec, field_name="mb_per_sec")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "iterations": self.iterations,
            "ns_per_op": self.ns_per_op,
        }
        if self.bytes_per_op:
            out["bytes_per_op"] = self.bytes_per_op
        if self.allocs_per_op:
            out["allocs_per_op"] = self.allocs_per_op
        if self.mb_per_sec:
            out["mb_per_sec"] = self.mb_per_sec
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BenchmarkResult:
        return cls(
            name=str(data["name"]),
            ns_per_op=float(data["ns_per_op"]),
            iterations=int(data.get("iterations", 0)),
            bytes_per_op=int(data.get("bytes_per_op", 0)),
            allocs_per_op=int(data.get("allocs_per_op", 0)),
            mb_per_sec=float(data.get("mb_per_sec", 0.0)),
        )


# -----------------------------------------------------------------------------
# Profile summary (carried verbatim; produced by the profiling collaborator)
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FunctionProfile:
    name: str
    flat_percent: float = 0.0  # time in the function itself
    cum_percent: float = 0.0  # time in the function and its callees
    flat_value: int = 0
    cum_value: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "flat_percent": self.flat_percent,
            "cum_percent": self.cum_percent,
            "flat_value": self.flat_value,
            "cum_value": self.cum_value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FunctionProfile:
        return cls(
            name=str(data["name"]),
            flat_percent=float(data.get("flat_percent", 0.0)),
            cum_percent=float(data.get("cum_percent", 0.0)),
            flat_value=int(data.get("flat_value", 0)),
            cum_value=int(data.get("cum_value", 0)),
        )


@dataclass(frozen=True, slots=True)
class MemoryLeak:
    function: str
    allocations: int = 0
    bytes: int = 0
    severity: str = ""
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "function": self.function,
            "allocations": self.allocations,
            "bytes": self.bytes,
            "severity": self.severity,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MemoryLeak:
        return cls(
            function=str(data["function"]),
            allocations=int(data.get("allocations", 0)),
            bytes=int(data.get("bytes", 0)),
            severity=str(data.get("severity", "")),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True, slots=True)
class HotPath:
    path: tuple[str, ...] = ()
    percentage: float = 0.0
    occurrences: int = 0
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": list(self.path),
            "percentage": self.percentage,
            "occurrences": self.occurrences,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HotPath:
        return cls(
            path=tuple(str(p) for p in _items(data, "path")),
            percentage=float(data.get("percentage", 0.0)),
            occurrences=int(data.get("occurrences", 0)),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True, slots=True)
class Suggestion:
    type: str = ""
    severity: str = ""
    function: str = ""
    issue: str = ""
    suggestion: str = ""
    impact: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity,
            "function": self.function,
            "issue": self.issue,
            "suggestion": self.suggestion,
            "impact": self.impact,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Suggestion:
        return cls(**{key: str(data.get(key, "")) for key in cls.__dataclass_fields__})


@dataclass(frozen=True, slots=True)
class ProfileSummary:
    """Analysed profile data attached to a run by the profiling collaborator."""

    cpu_top_functions: tuple[FunctionProfile, ...] = ()
    memory_top_functions: tuple[FunctionProfile, ...] = ()
    memory_leaks: tuple[MemoryLeak, ...] = ()
    hot_paths: tuple[HotPath, ...] = ()
    suggestions: tuple[Suggestion, ...] = ()
    total_cpu_samples: int = 0
    total_memory_bytes: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key in ("cpu_top_functions", "memory_top_functions", "memory_leaks", "hot_paths", "suggestions"):
            entries = getattr(self, key)
            if entries:
                out[key] = [entry.to_dict() for entry in entries]
        if self.total_cpu_samples:
            out["total_cpu_samples"] = self.total_cpu_samples
        if self.total_memory_bytes:
            out["total_memory_bytes"] = self.total_memory_bytes
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProfileSummary:
        return cls(
            cpu_top_functions=tuple(FunctionProfile.from_dict(d) for d in _items(data, "cpu_top_functions")),
            memory_top_functions=tuple(
                FunctionProfile.from_dict(d) for d in _items(data, "memory_top_functions")
            ),
            memory_leaks=tuple(MemoryLeak.from_dict(d) for d in _items(data, "memory_leaks")),
            hot_paths=tuple(HotPath.from_dict(d) for d in _items(data, "hot_paths")),
            suggestions=tuple(Suggestion.from_dict(d) for d in _items(data, "suggestions")),
            total_cpu_samples=int(data.get("total_cpu_samples", 0)),
            total_memory_bytes=int(data.get("total_memory_bytes", 0)),
        )


# -----------------------------------------------------------------------------
# Runs and baselines
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BenchmarkRun:
    """A complete benchmark run with metadata.

    Notes
    -----
    - `id` is the storage key and the record's filename stem.
    - `results` keeps capture order. Comparison is by name, so the order only
      decides the order of the comparison output.
    - `duration` is persisted as integer nanoseconds.
    """

    id: RunID
    timestamp: datetime
    results: tuple[BenchmarkResult, ...] = ()
    package: str = ""
    go_version: str = ""
    command: str = ""
    duration: timedelta = timedelta(0)
    cpu_profile: str = ""
    memory_profile: str = ""
    profile_summary: ProfileSummary | None = None

    def __post_init__(self) -> None:
        """Validate the run id and freeze the result sequence."""
        validate_key(self.id, kind="run id")
        if not isinstance(self.results, tuple):
            object.__setattr__(self, "results", tuple(self.results))

    def result(self, name: str) -> BenchmarkResult | None:
        """Return the first result called *name*, if any."""
        return next((r for r in self.results if r.name == name), None)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "timestamp": format_timestamp(self.timestamp),
            "package": self.package,
            "go_version": self.go_version,
            "results": [r.to_dict() for r in self.results],
            "command": self.command,
            "duration": (self.duration // timedelta(microseconds=1)) * _NS_PER_US,
        }
        if self.cpu_profile:
            out["cpu_profile"] = self.cpu_profile
        if self.memory_profile:
            out["memory_profile"] = self.memory_profile
        if self.profile_summary is not None:
            out["profile_summary"] = self.profile_summary.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BenchmarkRun:
        summary = data.get("profile_summary")
        return cls(
            id=str(data["id"]),
            timestamp=parse_timestamp(data["timestamp"]),
            results=tuple(BenchmarkResult.from_dict(r) for r in _items(data, "results")),
            package=str(data.get("package", "")),
            go_version=str(data.get("go_version", "")),
            command=str(data.get("command", "")),
            duration=timedelta(microseconds=int(data.get("duration", 0)) // _NS_PER_US),
            cpu_profile=str(data.get("cpu_profile", "")),
            memory_profile=str(data.get("memory_profile", "")),
            profile_summary=ProfileSummary.from_dict(summary) if summary is not None else None,
        )


@dataclass(frozen=True, slots=True)
class Baseline:
    """A named snapshot of a run.

    The run is embedded as a copy; `run_id` only records where it came from,
    so a baseline outlives the deletion of its source run.
    """

    name: str
    run_id: RunID
    created_at: datetime
    run: BenchmarkRun
    description: str = ""
    tags: Tags = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate the baseline name."""
        validate_key(self.name, kind="baseline name")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "run_id": self.run_id,
            "created_at": format_timestamp(self.created_at),
            "description": self.description,
            "run": self.run.to_dict(),
        }
        if self.tags:
            out["tags"] = dict(self.tags)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Baseline:
        return cls(
            name=str(data["name"]),
            run_id=str(data["run_id"]),
            created_at=parse_timestamp(data["created_at"]),
            run=BenchmarkRun.from_dict(data["run"]),
            description=str(data.get("description", "")),
            tags={str(k): str(v) for k, v in (data.get("tags") or {}).items()},
        )


# -----------------------------------------------------------------------------
# Comparison (derived, never persisted)
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Comparison:
    """How one benchmark's cost changed between two runs."""

    name: str
    old_ns_per_op: float
    new_ns_per_op: float
    delta: float
    delta_percent: float  # +inf when the old cost was zero and the new one is not
    status: ComparisonStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "old_ns_per_op": self.old_ns_per_op,
            "new_ns_per_op": self.new_ns_per_op,
            "delta": self.delta,
            "delta_percent": self.delta_percent if math.isfinite(self.delta_percent) else None,
            "status": str(self.status),
        }


@dataclass(frozen=True, slots=True)
class ComparisonSummary:
    improved: int = 0
    degraded: int = 0
    same: int = 0

    @property
    def total(self) -> int:
        return self.improved + self.degraded + self.same

    @classmethod
    def of(cls, comparisons: Iterable[Comparison]) -> ComparisonSummary:
        statuses = [c.status for c in comparisons]
        return cls(
            improved=statuses.count(ComparisonStatus.IMPROVED),
            degraded=statuses.count(ComparisonStatus.DEGRADED),
            same=statuses.count(ComparisonStatus.SAME),
        )

    def to_dict(self) -> dict[str, int]:
        return {"improved": self.improved, "degraded": self.degraded, "same": self.same}


__all__ = [
    "Baseline",
    "BenchmarkResult",
    "BenchmarkRun",
    "Comparison",
    "ComparisonSummary",
    "FunctionProfile",
    "HotPath",
    "MemoryLeak",
    "ProfileSummary",
    "Suggestion",
    "format_timestamp",
    "parse_timestamp",
    "validate_key",
]

"""File-backed storage for benchmark runs, baselines and profile artifacts.

Layout under the storage root::

    <root>/<run-id>.json
    <root>/profiles/<run-id>/cpu.prof
    <root>/profiles/<run-id>/mem.prof
    <root>/baselines/<name>.json

Each entity lives in its own file, so one corrupt record never prevents the
rest of the store from being listed. Saving under an existing run id or
baseline name replaces the previous record (last write wins). The store
assumes a single writer; it does no locking.
"""

from __future__ import annotations

import json
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, TypeVar

from jsonschema import ValidationError, validate

from benchkeep import logger
from benchkeep.config import get_schema
from benchkeep.errors import (
    CorruptRecordError,
    InvalidArgumentError,
    RecordNotFoundError,
    StoreError,
    StoreIOError,
)
from benchkeep.model.records import Baseline, BenchmarkRun, validate_key
from benchkeep.model.types import ProfileKind

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from benchkeep.config import BenchkeepConfig

_RECORD_SUFFIX = ".json"
_PROFILES_DIR = "profiles"
_BASELINES_DIR = "baselines"
_PROFILE_FILES: dict[ProfileKind, str] = {
    ProfileKind.CPU: "cpu.prof",
    ProfileKind.MEMORY: "mem.prof",
}

_RecordT = TypeVar("_RecordT")


def _profile_kind(kind: str | ProfileKind) -> ProfileKind:
    try:
        return ProfileKind.parse(str(kind))
    except ValueError as exc:
        msg = f"unknown profile type: {kind!r}"
        raise InvalidArgumentError(msg) from exc


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps sort as if they were UTC.
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def _write_atomic(path: Path, data: bytes) -> None:
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        tmp.write_bytes(data)
        tmp.replace(path)
    finally:
        tmp.unlink(missing_ok=True)


def _encode(payload: Mapping[str, Any]) -> bytes:
    return (json.dumps(payload, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def _decode(
    path: Path,
    *,
    schema: str,
    factory: Callable[[dict[str, Any]], _RecordT],
    operation: str,
    key: str,
) -> _RecordT:
    """Read *path* and turn it into a record, mapping failures onto store errors."""
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        msg = f"failed to {operation} {key!r}: not found"
        raise RecordNotFoundError(msg, operation=operation, key=key) from exc
    except OSError as exc:
        msg = f"failed to {operation} {key!r}: {exc}"
        raise StoreIOError(msg, operation=operation, key=key) from exc

    try:
        payload = json.loads(raw.decode("utf-8"))
        validate(payload, get_schema(schema))
        return factory(payload)
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError, KeyError, TypeError, ValueError) as exc:
        reason = exc.message if isinstance(exc, ValidationError) else str(exc)
        msg = f"failed to {operation} {key!r}: invalid record in {path}: {reason}"
        raise CorruptRecordError(msg, operation=operation, key=key) from exc


def _check_stored_key(stored: str, *, path: Path, operation: str, key: str) -> None:
    # The filename stem is the storage key; a record claiming another key was copied or renamed by hand.
    if stored != key:
        msg = f"failed to {operation} {key!r}: {path} holds a record for {stored!r}"
        raise CorruptRecordError(msg, operation=operation, key=key)


class Store:
    """Repository of runs, baselines and profiles rooted at one directory."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @classmethod
    def from_config(cls, config: BenchkeepConfig) -> Store:
        return cls(config.storage_dir)

    def __repr__(self) -> str:
        return f"Store({str(self._root)!r})"

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def run_path(self, run_id: str) -> Path:
        return self._root / f"{validate_key(run_id, kind='run id')}{_RECORD_SUFFIX}"

    def profile_dir(self, run_id: str) -> Path:
        return self._root / _PROFILES_DIR / validate_key(run_id, kind="run id")

    def profile_path(self, run_id: str, kind: str | ProfileKind) -> Path:
        return self.profile_dir(run_id) / _PROFILE_FILES[_profile_kind(kind)]

    def cpu_profile_path(self, run_id: str) -> Path:
        return self.profile_path(run_id, ProfileKind.CPU)

    def memory_profile_path(self, run_id: str) -> Path:
        return self.profile_path(run_id, ProfileKind.MEMORY)

    @property
    def baseline_dir(self) -> Path:
        return self._root / _BASELINES_DIR

    def baseline_path(self, name: str) -> Path:
        return self.baseline_dir / f"{validate_key(name, kind='baseline name')}{_RECORD_SUFFIX}"

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def save(self, run: BenchmarkRun) -> Path:
        """Persist *run* under its id, replacing any run with the same id."""
        path = self.run_path(run.id)
        self._ensure_dir(self._root, operation="save run", key=run.id)
        try:
            _write_atomic(path, _encode(run.to_dict()))
        except OSError as exc:
            msg = f"failed to save run {run.id!r}: {exc}"
            raise StoreIOError(msg, operation="save run", key=run.id) from exc
        logger.debug("saved run %s to %s", run.id, path)
        return path

    def load(self, run_id: str) -> BenchmarkRun:
        path = self.run_path(run_id)
        run = _decode(path, schema="run", factory=BenchmarkRun.from_dict, operation="load run", key=run_id)
        _check_stored_key(run.id, path=path, operation="load run", key=run_id)
        return run

    def has_run(self, run_id: str) -> bool:
        """Report whether *run_id* is stored; a malformed id is never stored, so it reports False."""
        try:
            return self.run_path(run_id).is_file()
        except InvalidArgumentError:
            return False

    def list_runs(self) -> list[BenchmarkRun]:
        """Return every readable run, most recent first.

        A missing storage root yields an empty list. Records that cannot be
        read or decoded are skipped with a warning.
        """
        runs = self._load_all(self._root, self.load, what="run")
        return sorted(runs, key=lambda r: _as_utc(r.timestamp), reverse=True)

    def latest(self) -> BenchmarkRun:
        runs = self.list_runs()
        if not runs:
            msg = "no benchmark runs found"
            raise RecordNotFoundError(msg, operation="get latest run")
        return runs[0]

    def delete(self, run_id: str) -> None:
        """Delete a run record and, best effort, its profile directory."""
        path = self.run_path(run_id)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            msg = f"failed to delete run {run_id!r}: not found"
            raise RecordNotFoundError(msg, operation="delete run", key=run_id) from exc
        except OSError as exc:
            msg = f"failed to delete run {run_id!r}: {exc}"
            raise StoreIOError(msg, operation="delete run", key=run_id) from exc
        logger.debug("deleted run %s", run_id)

        profile_dir = self.profile_dir(run_id)
        if profile_dir.exists():
            try:
                shutil.rmtree(profile_dir)
            except OSError as exc:
                logger.warning("failed to delete profile directory %s: %s", profile_dir, exc)

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def save_profile(self, run_id: str, kind: str | ProfileKind, data: bytes | IO[bytes]) -> Path:
        """Store raw profile bytes for *run_id*; *data* may be bytes or a binary stream."""
        path = self.profile_path(run_id, kind)
        self._ensure_dir(path.parent, operation="save profile", key=run_id)
        payload = data if isinstance(data, bytes | bytearray | memoryview) else data.read()
        try:
            path.write_bytes(payload)
        except OSError as exc:
            msg = f"failed to save {_profile_kind(kind)} profile for run {run_id!r}: {exc}"
            raise StoreIOError(msg, operation="save profile", key=run_id) from exc
        return path

    def load_profile(self, run_id: str, kind: str | ProfileKind) -> bytes:
        path = self.profile_path(run_id, kind)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            msg = f"failed to load {_profile_kind(kind)} profile for run {run_id!r}: not found"
            raise RecordNotFoundError(msg, operation="load profile", key=run_id) from exc
        except OSError as exc:
            msg = f"failed to load {_profile_kind(kind)} profile for run {run_id!r}: {exc}"
            raise StoreIOError(msg, operation="load profile", key=run_id) from exc

    def has_profile(self, run_id: str, kind: str | ProfileKind) -> bool:
        """Report whether a profile is stored; malformed ids and unknown kinds report False."""
        try:
            return self.profile_path(run_id, kind).is_file()
        except InvalidArgumentError:
            return False

    # ------------------------------------------------------------------
    # Baselines
    # ------------------------------------------------------------------

    def save_baseline(
        self,
        name: str,
        run_id: str,
        description: str = "",
        tags: Mapping[str, str] | None = None,
    ) -> Baseline:
        """Snapshot run *run_id* as baseline *name*, replacing any baseline of that name."""
        path = self.baseline_path(name)
        try:
            run = self.load(run_id)
        except RecordNotFoundError as exc:
            msg = f"failed to save baseline {name!r}: run {run_id!r} not found"
            raise RecordNotFoundError(msg, operation="save baseline", key=name) from exc

        baseline = Baseline(
            name=name,
            run_id=run_id,
            created_at=datetime.now(UTC),
            run=run,
            description=description,
            tags=dict(tags or {}),
        )
        self._ensure_dir(self.baseline_dir, operation="save baseline", key=name)
        try:
            _write_atomic(path, _encode(baseline.to_dict()))
        except OSError as exc:
            msg = f"failed to save baseline {name!r}: {exc}"
            raise StoreIOError(msg, operation="save baseline", key=name) from exc
        logger.debug("saved baseline %s from run %s", name, run_id)
        return baseline

    def load_baseline(self, name: str) -> Baseline:
        path = self.baseline_path(name)
        baseline = _decode(path, schema="baseline", factory=Baseline.from_dict, operation="load baseline", key=name)
        _check_stored_key(baseline.name, path=path, operation="load baseline", key=name)
        return baseline

    def list_baselines(self) -> list[Baseline]:
        """Return every readable baseline, most recently created first."""
        baselines = self._load_all(self.baseline_dir, self.load_baseline, what="baseline")
        return sorted(baselines, key=lambda b: _as_utc(b.created_at), reverse=True)

    def delete_baseline(self, name: str) -> None:
        path = self.baseline_path(name)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            msg = f"failed to delete baseline {name!r}: not found"
            raise RecordNotFoundError(msg, operation="delete baseline", key=name) from exc
        except OSError as exc:
            msg = f"failed to delete baseline {name!r}: {exc}"
            raise StoreIOError(msg, operation="delete baseline", key=name) from exc
        logger.debug("deleted baseline %s", name)

    def has_baseline(self, name: str) -> bool:
        """Report whether baseline *name* is stored; malformed names report False."""
        try:
            return self.baseline_path(name).is_file()
        except InvalidArgumentError:
            return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_dir(path: Path, *, operation: str, key: str) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"failed to {operation} {key!r}: cannot create directory {path}: {exc}"
            raise StoreIOError(msg, operation=operation, key=key) from exc

    @staticmethod
    def _load_all(
        directory: Path,
        loader: Callable[[str], _RecordT],
        *,
        what: str,
    ) -> list[_RecordT]:
        if not directory.is_dir():
            return []
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            msg = f"failed to read {what} directory {directory}: {exc}"
            raise StoreIOError(msg, operation=f"list {what}s") from exc

        records: list[_RecordT] = []
        for entry in entries:
            if entry.suffix != _RECORD_SUFFIX or not entry.is_file():
                continue
            try:
                records.append(loader(entry.stem))
            except (StoreError, InvalidArgumentError) as exc:
                logger.warning("skipping unreadable %s %s: %s", what, entry.name, exc)
        return records


__all__ = ["Store"]

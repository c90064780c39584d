from __future__ import annotations

import io
import json
import logging
import shutil
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from benchkeep.config import BenchkeepConfig
from benchkeep.errors import (
    CorruptRecordError,
    InvalidArgumentError,
    RecordNotFoundError,
    StoreIOError,
)
from benchkeep.model.records import Baseline, BenchmarkResult, BenchmarkRun, FunctionProfile, ProfileSummary
from benchkeep.model.types import ProfileKind
from benchkeep.store import Store

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


# --------------------------------------------------------------------------- #
# runs                                                                        #
# --------------------------------------------------------------------------- #


def test_save_then_load_round_trips(store: Store) -> None:
    run = BenchmarkRun(
        id="run-1700000000",
        timestamp=datetime(2024, 3, 1, 9, 30, 15, 250000, tzinfo=UTC),
        results=(
            BenchmarkResult(name="Encode-8", ns_per_op=1200.5, iterations=1000, bytes_per_op=512, allocs_per_op=10),
            BenchmarkResult(name="Copy-8", ns_per_op=5000.0, iterations=200, mb_per_sec=250.5),
        ),
        package="example.com/mypkg",
        go_version="go1.22.1",
        command="go test -bench=. ./...",
        duration=timedelta(seconds=3, microseconds=456),
        cpu_profile="profiles/run-1700000000/cpu.prof",
        profile_summary=ProfileSummary(cpu_top_functions=(FunctionProfile(name="main.f", flat_percent=12.0),)),
    )
    path = store.save(run)

    assert path == store.root / "run-1700000000.json"
    assert store.load(run.id) == run


def test_save_writes_indented_json_with_snake_case_keys(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    path = store.save(make_run("r1", {"A": 10.0}))
    text = path.read_text(encoding="utf-8")
    data = json.loads(text)

    assert text.endswith("\n")
    assert '\n  "id": "r1"' in text
    assert data["results"][0] == {"name": "A", "iterations": 1000, "ns_per_op": 10.0}
    assert not list(store.root.glob(".*.tmp"))


def test_save_replaces_existing_run(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    store.save(make_run("r1", {"A": 10.0}))
    store.save(make_run("r1", {"A": 20.0}))

    loaded = store.load("r1")
    assert loaded.results[0].ns_per_op == 20.0
    assert len(store.list_runs()) == 1


def test_load_missing_run_raises_not_found(store: Store) -> None:
    with pytest.raises(RecordNotFoundError) as excinfo:
        store.load("nope")
    assert excinfo.value.operation == "load run"
    assert excinfo.value.key == "nope"


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        '{"id": "bad"}',
        '{"id": "bad", "timestamp": "2024-01-01T00:00:00Z", "results": [{"name": "A", "ns_per_op": -1}]}',
        '{"id": "bad", "timestamp": "not a time", "results": []}',
    ],
)
def test_load_corrupt_run_raises_corrupt(store: Store, content: str) -> None:
    store.root.mkdir(parents=True)
    (store.root / "bad.json").write_text(content, encoding="utf-8")

    with pytest.raises(CorruptRecordError, match="bad"):
        store.load("bad")


@pytest.mark.parametrize("run_id", ["", "../x", "a/b", ".."])
def test_invalid_run_id_is_rejected(store: Store, run_id: str) -> None:
    with pytest.raises(InvalidArgumentError):
        store.load(run_id)


def test_list_runs_missing_root_is_empty(tmp_path: Path) -> None:
    assert Store(tmp_path / "does-not-exist").list_runs() == []


def test_list_runs_sorted_newest_first(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    base = datetime(2024, 1, 1, tzinfo=UTC)
    store.save(make_run("middle", {"A": 1.0}, timestamp=base + timedelta(hours=1)))
    store.save(make_run("oldest", {"A": 1.0}, timestamp=base))
    store.save(make_run("newest", {"A": 1.0}, timestamp=base + timedelta(hours=2)))

    assert [r.id for r in store.list_runs()] == ["newest", "middle", "oldest"]
    assert store.latest().id == "newest"


def test_list_runs_orders_naive_timestamps_as_utc(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    store.save(make_run("naive", {"A": 1.0}, timestamp=datetime(2024, 1, 1, 10, 0)))
    store.save(make_run("aware", {"A": 1.0}, timestamp=datetime(2024, 1, 1, 11, 0, tzinfo=UTC)))

    assert [r.id for r in store.list_runs()] == ["aware", "naive"]


def test_list_runs_skips_corrupt_records(
    store: Store,
    make_run: Callable[..., BenchmarkRun],
    caplog: pytest.LogCaptureFixture,
) -> None:
    store.save(make_run("good-1", {"A": 1.0}))
    store.save(make_run("good-2", {"A": 1.0}))
    (store.root / "broken.json").write_text("{oops", encoding="utf-8")
    (store.root / "notes.txt").write_text("ignored", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="benchkeep"):
        runs = store.list_runs()

    assert sorted(r.id for r in runs) == ["good-1", "good-2"]
    assert "broken.json" in caplog.text


def test_list_runs_ignores_subdirectories(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    run = make_run("r1", {"A": 1.0})
    store.save(run)
    store.save_profile("r1", "cpu", b"profile")
    store.save_baseline("main", "r1")

    assert [r.id for r in store.list_runs()] == ["r1"]


def test_load_rejects_record_stored_under_another_id(
    store: Store,
    make_run: Callable[..., BenchmarkRun],
    caplog: pytest.LogCaptureFixture,
) -> None:
    path = store.save(make_run("r1", {"A": 1.0}))
    shutil.copyfile(path, store.root / "copied.json")

    with pytest.raises(CorruptRecordError, match="holds a record for 'r1'") as excinfo:
        store.load("copied")
    assert excinfo.value.key == "copied"

    with caplog.at_level(logging.WARNING, logger="benchkeep"):
        assert [r.id for r in store.list_runs()] == ["r1"]
    assert "copied.json" in caplog.text


def test_save_into_uncreatable_root_raises_io_error(tmp_path: Path, make_run: Callable[..., BenchmarkRun]) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = Store(blocker / "store")

    with pytest.raises(StoreIOError, match="cannot create directory") as excinfo:
        store.save(make_run("r1", {"A": 1.0}))
    assert excinfo.value.operation == "save run"


def test_list_runs_unreadable_root_raises_io_error(
    store: Store,
    make_run: Callable[..., BenchmarkRun],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    store.save(make_run("r1", {"A": 1.0}))

    def deny(self: Path) -> None:
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(type(store.root), "iterdir", deny)

    with pytest.raises(StoreIOError, match="failed to read run directory") as excinfo:
        store.list_runs()
    assert excinfo.value.operation == "list runs"


def test_latest_on_empty_store_raises_not_found(store: Store) -> None:
    with pytest.raises(RecordNotFoundError, match="no benchmark runs found"):
        store.latest()


def test_has_run(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    assert not store.has_run("r1")
    store.save(make_run("r1", {"A": 1.0}))
    assert store.has_run("r1")


@pytest.mark.parametrize("run_id", ["", "../x", "a/b"])
def test_has_predicates_report_false_for_malformed_keys(store: Store, run_id: str) -> None:
    assert store.has_run(run_id) is False
    assert store.has_baseline(run_id) is False
    assert store.has_profile(run_id, "cpu") is False


# --------------------------------------------------------------------------- #
# deletion and profiles                                                       #
# --------------------------------------------------------------------------- #


def test_delete_removes_run_and_profiles(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    store.save(make_run("r1", {"A": 1.0}))
    store.save_profile("r1", ProfileKind.CPU, b"cpu")
    store.save_profile("r1", ProfileKind.MEMORY, b"mem")

    store.delete("r1")

    assert not store.has_run("r1")
    assert not store.profile_dir("r1").exists()
    assert not store.has_profile("r1", "cpu")


def test_delete_logs_when_profile_cleanup_fails(
    store: Store,
    make_run: Callable[..., BenchmarkRun],
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    store.save(make_run("r1", {"A": 1.0}))
    store.save_profile("r1", ProfileKind.CPU, b"cpu")

    def refuse(path: Path, *args: object, **kwargs: object) -> None:
        raise OSError(16, "Device or resource busy", str(path))

    monkeypatch.setattr(shutil, "rmtree", refuse)

    with caplog.at_level(logging.WARNING, logger="benchkeep"):
        store.delete("r1")

    assert not store.has_run("r1")
    assert store.profile_dir("r1").exists()
    assert "failed to delete profile directory" in caplog.text


def test_delete_without_profile_directory(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    store.save(make_run("r1", {"A": 1.0}))
    store.delete("r1")
    assert not store.has_run("r1")


def test_delete_missing_run_raises_not_found(store: Store) -> None:
    with pytest.raises(RecordNotFoundError):
        store.delete("ghost")


def test_profile_paths_follow_layout(store: Store) -> None:
    assert store.cpu_profile_path("r1") == store.root / "profiles" / "r1" / "cpu.prof"
    assert store.memory_profile_path("r1") == store.root / "profiles" / "r1" / "mem.prof"
    assert store.profile_path("r1", "mem") == store.memory_profile_path("r1")


def test_save_and_load_profile(store: Store) -> None:
    store.save_profile("r1", "cpu", b"\x00\x01binary")
    store.save_profile("r1", "memory", io.BytesIO(b"heap"))

    assert store.load_profile("r1", "cpu") == b"\x00\x01binary"
    assert store.load_profile("r1", ProfileKind.MEMORY) == b"heap"
    assert store.has_profile("r1", "cpu")
    assert store.has_profile("r1", "memory")


def test_load_missing_profile_raises_not_found(store: Store) -> None:
    with pytest.raises(RecordNotFoundError):
        store.load_profile("r1", "cpu")


def test_unknown_profile_kind(store: Store) -> None:
    with pytest.raises(InvalidArgumentError, match="unknown profile type"):
        store.save_profile("r1", "heap", b"x")
    with pytest.raises(InvalidArgumentError, match="unknown profile type"):
        store.load_profile("r1", "heap")
    assert store.has_profile("r1", "heap") is False


# --------------------------------------------------------------------------- #
# baselines                                                                   #
# --------------------------------------------------------------------------- #


def test_save_baseline_snapshots_run(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    run = make_run("r1", {"A": 1.0, "B": 2.0})
    store.save(run)

    saved = store.save_baseline("release", "r1", description="v1.0", tags={"branch": "main"})

    assert saved.run == run
    assert saved.created_at.tzinfo is not None
    loaded = store.load_baseline("release")
    assert loaded == saved
    assert store.baseline_path("release") == store.root / "baselines" / "release.json"


def test_baseline_survives_deleting_source_run(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    run = make_run("r1", {"A": 1.0})
    store.save(run)
    store.save_baseline("keep", "r1")

    store.delete("r1")

    baseline = store.load_baseline("keep")
    assert baseline.run_id == "r1"
    assert baseline.run == run


def test_save_baseline_for_missing_run(store: Store) -> None:
    with pytest.raises(RecordNotFoundError, match="ghost"):
        store.save_baseline("b", "ghost")
    assert not store.has_baseline("b")


def test_list_and_delete_baselines(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    assert store.list_baselines() == []
    store.save(make_run("r1", {"A": 1.0}))
    store.save_baseline("one", "r1")
    store.save_baseline("two", "r1")
    store.baseline_dir.joinpath("junk.json").write_text("[]", encoding="utf-8")

    assert sorted(b.name for b in store.list_baselines()) == ["one", "two"]

    store.delete_baseline("one")
    assert not store.has_baseline("one")
    assert store.has_run("r1")
    with pytest.raises(RecordNotFoundError):
        store.delete_baseline("one")


def test_list_baselines_newest_created_first(store: Store, make_run: Callable[..., BenchmarkRun]) -> None:
    run = make_run("r1", {"A": 1.0})
    store.baseline_dir.mkdir(parents=True)
    created = datetime(2024, 5, 1, tzinfo=UTC)
    for name, offset in [("middle", 1), ("oldest", 0), ("newest", 2)]:
        baseline = Baseline(name=name, run_id=run.id, created_at=created + timedelta(days=offset), run=run)
        store.baseline_path(name).write_text(json.dumps(baseline.to_dict()), encoding="utf-8")

    assert [b.name for b in store.list_baselines()] == ["newest", "middle", "oldest"]


def test_load_baseline_rejects_record_stored_under_another_name(
    store: Store,
    make_run: Callable[..., BenchmarkRun],
) -> None:
    store.save(make_run("r1", {"A": 1.0}))
    store.save_baseline("release", "r1")
    shutil.copyfile(store.baseline_path("release"), store.baseline_dir / "renamed.json")

    with pytest.raises(CorruptRecordError, match="holds a record for 'release'"):
        store.load_baseline("renamed")
    assert [b.name for b in store.list_baselines()] == ["release"]


def test_from_config_uses_storage_dir(tmp_path: Path) -> None:
    store = Store.from_config(BenchkeepConfig(storage_dir=tmp_path / "bench"))
    assert store.root == tmp_path / "bench"

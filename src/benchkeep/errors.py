"""Centralised exception hierarchy for benchkeep."""

from __future__ import annotations


class BenchkeepError(Exception):
    """Base class for all custom benchkeep exceptions."""


class InvalidArgumentError(BenchkeepError, ValueError):
    """An argument is malformed: unknown profile kind, bad identifier, bad threshold."""


class StoreError(BenchkeepError):
    """Base class for failures of a single store operation.

    ``operation`` names what was attempted (``"load run"``, ``"delete baseline"``)
    and ``key`` is the run id or baseline name involved, when there is one.
    """

    def __init__(self, message: str, *, operation: str, key: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.key = key


class RecordNotFoundError(StoreError):
    """No run, baseline or profile exists under the requested key."""


class CorruptRecordError(StoreError):
    """A record file exists but could not be decoded."""


class StoreIOError(StoreError):
    """A directory or file could not be created, read, written or removed."""


__all__ = [
    "BenchkeepError",
    "CorruptRecordError",
    "InvalidArgumentError",
    "RecordNotFoundError",
    "StoreError",
    "StoreIOError",
]

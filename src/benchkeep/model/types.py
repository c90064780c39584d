"""Shared type aliases and enumerations used across benchkeep."""

from __future__ import annotations

from enum import StrEnum
from typing import TypeAlias

# ---------------------------------------------------------------------------
# Common type aliases
# ---------------------------------------------------------------------------

RunID: TypeAlias = str
"""Storage key of a run; also the record's filename stem."""

Tags: TypeAlias = dict[str, str]
"""Free-form metadata attached to a baseline."""


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ComparisonStatus(StrEnum):
    """Classification of one benchmark's change between two runs."""

    IMPROVED = "improved"
    DEGRADED = "degraded"
    SAME = "same"


class ProfileKind(StrEnum):
    """Profile artifacts that can be attached to a run."""

    CPU = "cpu"
    MEMORY = "memory"

    @classmethod
    def parse(cls, value: str) -> ProfileKind:
        """Return the kind for *value*, accepting ``mem`` as an alias for ``memory``."""
        key = value.strip().lower()
        if key == "mem":
            return cls.MEMORY
        return cls(key)


class TrendDirection(StrEnum):
    """Direction of a benchmark's cost over a series of runs (lower is better)."""

    IMPROVING = "improving"
    DEGRADING = "degrading"
    STABLE = "stable"


__all__ = [
    "ComparisonStatus",
    "ProfileKind",
    "RunID",
    "Tags",
    "TrendDirection",
]

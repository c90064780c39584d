from benchkeep.model.records import (
    Baseline,
    BenchmarkResult,
    BenchmarkRun,
    Comparison,
    ComparisonSummary,
    FunctionProfile,
    HotPath,
    MemoryLeak,
    ProfileSummary,
    Suggestion,
)
from benchkeep.model.types import ComparisonStatus, ProfileKind, TrendDirection

__all__ = [
    "Baseline",
    "BenchmarkResult",
    "BenchmarkRun",
    "Comparison",
    "ComparisonStatus",
    "ComparisonSummary",
    "FunctionProfile",
    "HotPath",
    "MemoryLeak",
    "ProfileKind",
    "ProfileSummary",
    "Suggestion",
    "TrendDirection",
]

"""Central configuration and constants for ``benchkeep``."""

from __future__ import annotations

import json
import logging
import math
import tomllib
from dataclasses import dataclass
from functools import cache
from importlib import resources
from pathlib import Path
from typing import Any

from benchkeep.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

# Storage root used when neither the caller nor pyproject.toml names one.
DEFAULT_STORAGE_DIR = Path(".benchkeep")

# Percentage change at or below which a comparison is reported as "same".
DEFAULT_THRESHOLD = 5.0

# Default logging format used by the CLI entry point.
LOG_FORMAT = "%(levelname)s: %(message)s"

_SCHEMA_FILE = "records.schema.json"


@dataclass(frozen=True, slots=True)
class BenchkeepConfig:
    """Resolved settings handed to the store and the comparer."""

    storage_dir: Path = DEFAULT_STORAGE_DIR
    threshold: float = DEFAULT_THRESHOLD

    def __post_init__(self) -> None:
        """Validate the comparison threshold."""
        validate_threshold(self.threshold)


def validate_threshold(value: float) -> float:
    """Return *value* as a float if it is a usable percentage threshold."""
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        msg = f"threshold must be a number, got {value!r}"
        raise InvalidArgumentError(msg) from exc
    if not math.isfinite(number) or number < 0:
        msg = f"threshold must be a finite, non-negative percentage, got {value!r}"
        raise InvalidArgumentError(msg)
    return number


def _get_settings_from_pyproject(pyproject: Path) -> dict[str, Any]:
    """Extract the ``[tool.benchkeep]`` table from *pyproject*."""
    try:
        with pyproject.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Failed to parse %s: %s", pyproject, e)
        return {}

    settings = data.get("tool", {}).get("benchkeep", {})
    if not isinstance(settings, dict):
        logger.warning("Ignoring non-table [tool.benchkeep] in %s", pyproject)
        return {}
    return settings


def load_config(
    start: Path | None = None,
    *,
    storage_dir: Path | None = None,
    threshold: float | None = None,
) -> BenchkeepConfig:
    """Resolve the configuration for a project rooted at *start*.

    Explicit arguments win over ``[tool.benchkeep]`` in ``pyproject.toml``,
    which wins over the built-in defaults. A relative ``storage_dir`` read
    from ``pyproject.toml`` is resolved against the directory holding it.
    """
    root = start if start is not None else Path.cwd()
    settings: dict[str, Any] = {}
    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        settings = _get_settings_from_pyproject(pyproject)

    resolved_dir = DEFAULT_STORAGE_DIR
    if storage_dir is not None:
        resolved_dir = storage_dir
    elif "storage_dir" in settings:
        resolved_dir = root / str(settings["storage_dir"])
        logger.info("Using storage directory from config: %s", resolved_dir)

    resolved_threshold = DEFAULT_THRESHOLD
    if threshold is not None:
        resolved_threshold = threshold
    elif "threshold" in settings:
        resolved_threshold = settings["threshold"]

    return BenchkeepConfig(
        storage_dir=Path(resolved_dir),
        threshold=validate_threshold(resolved_threshold),
    )


@cache
def _schema_document() -> dict[str, Any]:
    text = resources.files("benchkeep.data").joinpath(_SCHEMA_FILE).read_text(encoding="utf-8")
    return json.loads(text)


@cache
def get_schema(name: str = "run") -> dict[str, object]:
    """Load and cache the JSON schema for the record type *name*."""
    document = _schema_document()
    definitions = document["$defs"]
    if name not in definitions:
        choices = ", ".join(sorted(definitions))
        msg = f"Unsupported schema: {name!r}. Available schemas: {choices}"
        raise ValueError(msg)
    return {
        "$schema": document["$schema"],
        "$defs": definitions,
        "$ref": f"#/$defs/{name}",
    }


__all__ = [
    "DEFAULT_STORAGE_DIR",
    "DEFAULT_THRESHOLD",
    "LOG_FORMAT",
    "BenchkeepConfig",
    "get_schema",
    "load_config",
    "validate_threshold",
]

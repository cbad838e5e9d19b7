from __future__ import annotations

import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .dialect import DEFAULT_DIALECT, Dialect, row_range

logger = logging.getLogger(__name__)

DIALECT_ENV = "CSV_PIPELINE_DIALECT"

# `row_filter` is a function, config describes it as `rows: {first: .., last: ..}` instead
_DIALECT_KEYS = {f.name for f in fields(Dialect)} - {"row_filter"}


def get_dialect_path() -> Optional[Path]:
    """Dialect file named by the environment, if any."""
    value = os.getenv(DIALECT_ENV)
    return Path(value) if value else None


def dialect_from_mapping(data: Mapping[str, Any]) -> Dialect:
    """
    Build a `Dialect` from plain config values.

    Keys are `Dialect` field names, enums are given by value. Unknown keys are
    rejected so typos do not silently fall back to defaults.

    example:
      `{"delimiter": ";", "header_mode": "derive", "skip_header_record": True, "rows": {"first": 2}}`
    """
    unknown = sorted(set(data) - _DIALECT_KEYS - {"rows"})
    if unknown:
        raise ValueError(f"unknown dialect options: {unknown}")

    options = {k: v for k, v in data.items() if k != "rows"}
    if "header_names" in options:
        options["header_names"] = tuple(options["header_names"] or ())

    rows = data.get("rows")
    if rows is not None:
        if not isinstance(rows, Mapping) or "first" not in rows:
            raise ValueError(f"rows must be a mapping with 'first' (and optionally 'last'), got {rows!r}")
        options["row_filter"] = row_range(int(rows["first"]), None if rows.get("last") is None else int(rows["last"]))

    return Dialect(**options)


def load_dialect(path: Optional[Path] = None) -> Dialect:
    """
    Load a dialect from a YAML file.

    - Uses `path`, else `$CSV_PIPELINE_DIALECT`.
    - Neither set: the default dialect.
    """
    path = path or get_dialect_path()
    if path is None:
        return DEFAULT_DIALECT

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dialect file not found: {path}")

    logger.info("Loading dialect: %s", path)
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, Mapping):
        raise ValueError(f"{path}: expected a mapping of dialect options, got {type(data).__name__}")
    return dialect_from_mapping(data)

"""Loading and validation of the simulated binding/sequencing table."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd

from .errors import DataUnavailable, MalformedRow

logger = logging.getLogger(__name__)

CONCENTRATION_KEYS = ("ddG_range", "total_species", "dummy")
COUNT_KEYS = CONCENTRATION_KEYS + ("depth",)
FIT_KEYS = ("total_species", "ddG_range", "depth", "rep")

CONCENTRATION_COLUMNS = ("input_conc", "bound_conc", "unbound_conc")
COUNT_COLUMNS = ("input_count", "bound_count", "unbound_count")

FLOAT_COLUMNS = ("ddG_range", "k_d") + CONCENTRATION_COLUMNS
INT_COLUMNS = ("total_species", "dummy", "depth", "rep") + COUNT_COLUMNS
BOOL_COLUMNS = ("dummy_bool",)
REQUIRED_COLUMNS = FLOAT_COLUMNS + INT_COLUMNS + BOOL_COLUMNS

TRUE_VALUES = {"true", "t", "1", "yes"}
FALSE_VALUES = {"false", "f", "0", "no"}
TAB_SUFFIXES = {".tsv", ".tab"}


def _guess_separator(path: Path) -> str:
    return "\t" if path.suffix.lower() in TAB_SUFFIXES else ","


def _row_labels(table: pd.DataFrame, bad: pd.Series, limit: int = 5) -> List[str]:
    return [str(label) for label in table.index[bad.to_numpy()][:limit]]


def _coerce_numeric(table: pd.DataFrame, column: str) -> pd.Series:
    values = pd.to_numeric(table[column], errors="coerce").astype(np.float64)
    bad = ~np.isfinite(values)
    if bad.any():
        raise MalformedRow(
            f"Column '{column}' has missing, non-numeric or infinite values "
            f"(rows {', '.join(_row_labels(table, bad))})."
        )
    return values


def _coerce_bool(table: pd.DataFrame, column: str) -> pd.Series:
    raw = table[column]
    if raw.dtype == bool:
        return raw
    lookup: Dict[str, bool] = {value: True for value in TRUE_VALUES}
    lookup.update({value: False for value in FALSE_VALUES})
    mapped = raw.astype(str).str.strip().str.lower().map(lookup)
    bad = mapped.isna()
    if bad.any():
        raise MalformedRow(
            f"Column '{column}' must hold boolean values "
            f"(rows {', '.join(_row_labels(table, bad))})."
        )
    return mapped.astype(bool)


def validate_observations(table: pd.DataFrame) -> pd.DataFrame:
    """Check the required columns and return a copy with normalised dtypes.

    Raises ``MalformedRow`` naming the column and the first offending rows
    when a column is missing, a value is missing or non-numeric, a count is
    fractional or negative, a concentration is negative, ``k_d`` is not
    positive, or ``dummy_bool`` is not a boolean.
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in table.columns]
    if missing:
        raise MalformedRow(f"Missing required columns: {', '.join(missing)}.")

    out = table.copy()
    for column in FLOAT_COLUMNS:
        out[column] = _coerce_numeric(out, column).astype(np.float64)

    for column in INT_COLUMNS:
        values = _coerce_numeric(out, column)
        fractional = values != np.round(values)
        if fractional.any():
            raise MalformedRow(
                f"Column '{column}' must hold integers "
                f"(rows {', '.join(_row_labels(out, fractional))})."
            )
        out[column] = values.astype(np.int64)

    for column in BOOL_COLUMNS:
        out[column] = _coerce_bool(out, column)

    for column in CONCENTRATION_COLUMNS + COUNT_COLUMNS:
        negative = out[column] < 0
        if negative.any():
            raise MalformedRow(
                f"Column '{column}' must be non-negative "
                f"(rows {', '.join(_row_labels(out, negative))})."
            )

    not_positive = ~(out["k_d"] > 0)
    if not_positive.any():
        raise MalformedRow(
            f"Column 'k_d' must be positive "
            f"(rows {', '.join(_row_labels(out, not_positive))})."
        )
    return out


def load_observations(path: Path | str, sep: str | None = None) -> pd.DataFrame:
    """Read the observation table from ``path`` and validate it."""
    path = Path(path).expanduser()
    if not path.exists():
        raise DataUnavailable(f"Input table '{path}' does not exist.")
    if not path.is_file():
        raise DataUnavailable(f"Input table '{path}' is not a regular file.")

    try:
        table = pd.read_csv(path, sep=sep or _guess_separator(path))
    except pd.errors.EmptyDataError as exc:
        raise DataUnavailable(f"Input table '{path}' is empty.") from exc
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as exc:
        raise DataUnavailable(f"Input table '{path}' could not be read: {exc}") from exc

    # R's write.csv leaves its row names behind as an unnamed first column.
    unnamed = [col for col in table.columns if str(col).startswith("Unnamed:")]
    if unnamed:
        table = table.drop(columns=unnamed)

    table = validate_observations(table)
    logger.info("Loaded %d rows from %s", len(table), path)
    return table

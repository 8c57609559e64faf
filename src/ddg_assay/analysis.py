"""Free-energy derivations and per-group regression summaries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd
import scipy.stats as ss

from .data import CONCENTRATION_KEYS, COUNT_COLUMNS, COUNT_KEYS, FIT_KEYS
from .errors import InsufficientDataForFit

logger = logging.getLogger(__name__)

# RT at room temperature, kcal/mol.
RT = 0.593
# Marker position shown in the sequencing-count charts.
DUMMY_FACET = 50

PROBABILITY_COLUMNS = {
    "bound_count": "bound_p",
    "unbound_count": "unbound_p",
    "input_count": "input_p",
}
COUNT_DDG_COLUMNS = ("unbound_count_ddG", "input_count_ddG")
DERIVED_COLUMNS = (
    "true_ddG",
    "input_conc_ddG",
    "bound_p",
    "unbound_p",
    "input_p",
) + COUNT_DDG_COLUMNS


def _neg_log_ratio(numerator: pd.Series, denominator: pd.Series, rt: float) -> pd.Series:
    with np.errstate(divide="ignore", invalid="ignore"):
        return -np.log(numerator / denominator) * rt


def _centre(values: pd.Series, keys: List[pd.Series]) -> pd.Series:
    """Subtract the group mean of the finite values; non-finite entries stay non-finite."""
    finite = values.where(np.isfinite(values))
    means = finite.groupby(keys, dropna=False, sort=False).transform("mean")
    return values - means


def add_concentration_ddg(table: pd.DataFrame, rt: float = RT) -> pd.DataFrame:
    """Append mean-centred ``true_ddG`` and ``input_conc_ddG`` columns."""
    out = table.copy()
    keys = [out[key] for key in CONCENTRATION_KEYS]
    true_raw = _neg_log_ratio(out["bound_conc"], out["unbound_conc"], rt)
    input_raw = _neg_log_ratio(out["bound_conc"], out["input_conc"], rt)
    out["true_ddG"] = _centre(true_raw, keys)
    out["input_conc_ddG"] = _centre(input_raw, keys)
    return out


def add_count_ddg(table: pd.DataFrame, rt: float = RT) -> pd.DataFrame:
    """Append observation probabilities and the (uncentred) count-based ddG."""
    out = table.copy()
    grouped = out.groupby(list(COUNT_KEYS), dropna=False, sort=False)
    for count_col in COUNT_COLUMNS:
        totals = grouped[count_col].transform("sum")
        with np.errstate(divide="ignore", invalid="ignore"):
            out[PROBABILITY_COLUMNS[count_col]] = out[count_col] / totals
    out["unbound_count_ddG"] = _neg_log_ratio(out["bound_p"], out["unbound_p"], rt)
    out["input_count_ddG"] = _neg_log_ratio(out["bound_p"], out["input_p"], rt)
    return out


def derive_metrics(table: pd.DataFrame, rt: float = RT) -> pd.DataFrame:
    """Return ``table`` with every derived column appended.

    Columns produced by an earlier call are recomputed from scratch, so
    applying this to its own output gives the same values. Row count and
    index are never changed; division and log singularities are left as
    ``inf``/``nan`` for the caller to filter.
    """
    base = table.drop(columns=[col for col in DERIVED_COLUMNS if col in table.columns])
    out = add_count_ddg(add_concentration_ddg(base, rt), rt)
    if len(out) != len(table):
        raise RuntimeError("Derived-metric computation changed the row count.")
    return out


def concentration_view(table: pd.DataFrame) -> pd.DataFrame:
    """Rows used for concentration charts: the marker substrate is excluded."""
    return table.loc[~table["dummy_bool"]].copy()


def count_view(table: pd.DataFrame, dummy: int = DUMMY_FACET) -> pd.DataFrame:
    """Rows used for sequencing-count charts: a single marker position."""
    view = table.loc[table["dummy"] == dummy].copy()
    if view.empty:
        logger.warning("No rows with dummy == %s; count charts will be empty.", dummy)
    return view


def finite_rows(table: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Keep the rows where every listed column is finite."""
    mask = np.isfinite(table[list(columns)].to_numpy(dtype=float)).all(axis=1)
    return table.loc[mask]


def r_squared(x: np.ndarray, y: np.ndarray) -> float:
    """Coefficient of determination for the OLS fit of ``y`` on ``x``."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.size < 2:
        raise InsufficientDataForFit(f"Need at least 2 paired points, got {x.size}.")
    if np.all(x == x[0]):
        raise InsufficientDataForFit("All predictor values are identical; slope is undefined.")
    if np.all(y == y[0]):
        # a flat line passes through every point
        return 1.0
    fit = ss.linregress(x, y)
    rsq = float(fit.rvalue ** 2)
    if not np.isfinite(rsq):
        raise InsufficientDataForFit("Regression produced a non-finite r².")
    return rsq


GROUP_COLUMNS = list(FIT_KEYS) + ["n_rows", "n_paired", "frac_obs"]
FIT_COLUMNS = GROUP_COLUMNS + ["r_squared", "accuracy"]
SKIPPED_COLUMNS = GROUP_COLUMNS + ["reason"]


@dataclass
class FitSummary:
    fits: pd.DataFrame
    skipped: pd.DataFrame

    @property
    def groups(self) -> pd.DataFrame:
        """Coverage of every replicate group, fitted or skipped."""
        parts = [frame[GROUP_COLUMNS] for frame in (self.fits, self.skipped) if not frame.empty]
        if not parts:
            return pd.DataFrame(columns=GROUP_COLUMNS)
        groups = pd.concat(parts, ignore_index=True)
        return groups.sort_values(list(FIT_KEYS), ignore_index=True)


def summarise_fits(table: pd.DataFrame) -> FitSummary:
    """Fit ``unbound_count_ddG`` on ``input_count_ddG`` per replicate group.

    ``frac_obs`` is the share of rows with at least one finite count ddG;
    the regression only sees rows where both are finite. ``accuracy`` is
    ``r_squared * frac_obs``, which penalises a good fit bought by
    discarding most substrates. Groups without a defined fit are logged and
    returned in ``skipped`` instead of ``fits``.
    """
    fits: List[Dict[str, object]] = []
    skipped: List[Dict[str, object]] = []

    for keys, group in table.groupby(list(FIT_KEYS), sort=True):
        labels = dict(zip(FIT_KEYS, keys))
        finite = np.isfinite(group[list(COUNT_DDG_COLUMNS)].to_numpy(dtype=float))
        n_rows = int(len(group))
        frac_obs = float(finite.any(axis=1).mean())
        paired = group.loc[finite.all(axis=1)]
        n_paired = int(len(paired))

        try:
            rsq = r_squared(paired["input_count_ddG"], paired["unbound_count_ddG"])
        except InsufficientDataForFit as exc:
            logger.warning("Skipping fit for %s: %s", labels, exc)
            skipped.append(
                {
                    **labels,
                    "n_rows": n_rows,
                    "n_paired": n_paired,
                    "frac_obs": frac_obs,
                    "reason": str(exc),
                }
            )
            continue

        fits.append(
            {
                **labels,
                "n_rows": n_rows,
                "n_paired": n_paired,
                "frac_obs": frac_obs,
                "r_squared": rsq,
                "accuracy": rsq * frac_obs,
            }
        )

    return FitSummary(
        fits=pd.DataFrame(fits, columns=FIT_COLUMNS),
        skipped=pd.DataFrame(skipped, columns=SKIPPED_COLUMNS),
    )


def coverage_by_depth(groups: pd.DataFrame) -> pd.DataFrame:
    """Mean ``frac_obs`` across replicates per depth, with a monotonicity flag.

    ``groups`` should hold every replicate group, including those whose fit
    was skipped (``FitSummary.groups``); shallow groups are often the ones
    without a fit.

    ``monotone`` says whether mean coverage never drops as depth grows for a
    given (``total_species``, ``ddG_range``) condition. More reads should
    observe more substrates in expectation, so a ``False`` here is worth a
    look but is not an error for a single simulated run.
    """
    condition = ["total_species", "ddG_range"]
    columns = condition + ["depth", "n_reps", "mean_frac_obs", "monotone"]
    if groups.empty:
        return pd.DataFrame(columns=columns)

    coverage = (
        groups.astype({"frac_obs": float})
        .groupby(condition + ["depth"], sort=True)
        .agg(n_reps=("rep", "nunique"), mean_frac_obs=("frac_obs", "mean"))
        .reset_index()
    )
    monotone = (
        coverage.groupby(condition, sort=False)["mean_frac_obs"]
        .transform(lambda s: bool(s.is_monotonic_increasing))
        .astype(bool)
    )
    coverage["monotone"] = monotone
    return coverage[columns]

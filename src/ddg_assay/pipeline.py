"""High-level orchestration of the assay-design analysis."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from .analysis import (
    DUMMY_FACET,
    RT,
    FitSummary,
    concentration_view,
    count_view,
    coverage_by_depth,
    derive_metrics,
    summarise_fits,
)
from .data import load_observations
from .plots import RenderConfig, RenderReport, render_all

logger = logging.getLogger(__name__)


@dataclass
class AnalysisSettings:
    rt: float = RT
    dummy_facet: int = DUMMY_FACET
    sep: str | None = None


@dataclass
class AnalysisResult:
    table: pd.DataFrame
    fits: FitSummary
    coverage: pd.DataFrame
    report: RenderReport | None


def run_analysis(
    input_path: Path | str,
    render: RenderConfig | None = None,
    settings: AnalysisSettings | None = None,
) -> AnalysisResult:
    """Load, derive, fit and (when ``render`` is given) draw every chart."""
    cfg = settings or AnalysisSettings()
    table = derive_metrics(load_observations(input_path, sep=cfg.sep), rt=cfg.rt)

    conc = concentration_view(table)
    counts = count_view(table, dummy=cfg.dummy_facet)
    fits = summarise_fits(counts)
    logger.info(
        "Fitted %d replicate groups (%d skipped)", len(fits.fits), len(fits.skipped)
    )
    coverage = coverage_by_depth(fits.groups)
    non_monotone = coverage.loc[~coverage["monotone"].astype(bool)]
    if not non_monotone.empty:
        logger.info(
            "Coverage drops with depth for %d condition(s)",
            len(non_monotone[["total_species", "ddG_range"]].drop_duplicates()),
        )

    report = render_all(conc, counts, fits.fits, render) if render is not None else None
    return AnalysisResult(table=table, fits=fits, coverage=coverage, report=report)

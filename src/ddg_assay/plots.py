"""Faceted charts of the concentration, count and fit tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .analysis import finite_rows
from .errors import OutputWriteFailure

logger = logging.getLogger(__name__)

Size = Tuple[float, float]

CHART_NAMES = (
    "input_conc_hist",
    "bound_conc_hist",
    "unbound_conc_hist",
    "true_ddG_hist",
    "input_conc_ddG_hist",
    "conc_vs_kd",
    "true_vs_input_ddG",
    "input_count_hist",
    "bound_count_hist",
    "unbound_count_hist",
    "unbound_count_ddG_hist",
    "input_count_ddG_hist",
    "count_ddG_fit",
    "accuracy_box",
)


@dataclass
class RenderConfig:
    """Where and how charts are written.

    ``sizes`` maps a chart name from ``CHART_NAMES`` to a (width, height)
    in inches; charts without an entry use ``default_size``.
    """

    output_dir: Path
    fmt: str = "png"
    dpi: int = 150
    default_size: Size = (10.0, 8.0)
    sizes: Dict[str, Size] = field(default_factory=dict)
    style: str = "whitegrid"

    def size_for(self, name: str) -> Size:
        return self.sizes.get(name, self.default_size)

    def path_for(self, name: str) -> Path:
        return Path(self.output_dir).expanduser() / f"{name}.{self.fmt}"


@dataclass
class RenderReport:
    written: Dict[str, Path] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def save_figure(fig: plt.Figure, path: Path, size: Size, dpi: int) -> Path:
    """Resize ``fig``, write it to ``path`` and close it."""
    try:
        fig.set_size_inches(*size)
        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path, dpi=dpi, bbox_inches="tight")
    except OSError as exc:
        raise OutputWriteFailure(f"Could not write chart to {path}: {exc}") from exc
    finally:
        plt.close(fig)
    return path


def _facet_hist(
    data: pd.DataFrame,
    column: str,
    *,
    hue: str | None,
    log_x: bool = False,
    stacked: bool = False,
) -> plt.Figure:
    grid = sns.displot(
        data=data,
        x=column,
        row="total_species",
        col="ddG_range",
        hue=hue,
        multiple="stack" if stacked else "layer",
        log_scale=(True, False) if log_x else False,
        palette="viridis" if hue else None,
        facet_kws={"margin_titles": True},
    )
    grid.set_axis_labels(column, "count")
    return grid.figure


def concentration_hist(conc: pd.DataFrame, column: str) -> plt.Figure | None:
    # Zero concentrations (depleted substrates) have no place on a log axis.
    data = conc.loc[conc[column] > 0]
    if data.empty:
        return None
    return _facet_hist(data, column, hue="dummy", log_x=True)


def ddg_hist(table: pd.DataFrame, column: str, hue: str | None = None) -> plt.Figure | None:
    data = finite_rows(table, [column])
    if data.empty:
        return None
    fig = _facet_hist(data, column, hue=hue)
    for ax in fig.axes:
        ax.axvline(0.0, color="black", lw=0.8, ls="--")
    return fig


def concentration_vs_kd(conc: pd.DataFrame) -> plt.Figure | None:
    long = conc.melt(
        id_vars=["total_species", "ddG_range", "dummy", "k_d"],
        value_vars=["bound_conc", "unbound_conc"],
        var_name="fraction",
        value_name="concentration",
    )
    long = long.loc[long["concentration"] > 0]
    if long.empty:
        return None
    long["fraction"] = long["fraction"].str.replace("_conc", "", regex=False)
    grid = sns.relplot(
        data=long,
        x="k_d",
        y="concentration",
        hue="fraction",
        row="total_species",
        col="ddG_range",
        s=12,
        alpha=0.6,
        facet_kws={"margin_titles": True},
    )
    grid.set(xscale="log", yscale="log")
    grid.set_axis_labels("K_d", "equilibrium concentration")
    return grid.figure


def true_vs_input_ddg(conc: pd.DataFrame) -> plt.Figure | None:
    data = finite_rows(conc, ["true_ddG", "input_conc_ddG"])
    if data.empty:
        return None
    grid = sns.relplot(
        data=data,
        x="true_ddG",
        y="input_conc_ddG",
        row="total_species",
        col="ddG_range",
        s=12,
        alpha=0.6,
        facet_kws={"margin_titles": True},
    )
    for (_, ddg_range), ax in grid.axes_dict.items():
        half = 0.5 * float(ddg_range)
        for ref in (-half, half):
            ax.axvline(ref, color="grey", lw=0.8, ls="--")
            ax.axhline(ref, color="grey", lw=0.8, ls="--")
    grid.set_axis_labels("true ΔΔG (kcal/mol)", "input-referenced ΔΔG (kcal/mol)")
    return grid.figure


def count_hist(counts: pd.DataFrame, column: str) -> plt.Figure | None:
    if counts.empty:
        return None
    return _facet_hist(counts, column, hue="depth", stacked=True)


def count_ddg_fit(counts: pd.DataFrame) -> plt.Figure | None:
    data = finite_rows(counts, ["input_count_ddG", "unbound_count_ddG"]).copy()
    if data.empty:
        return None
    data["condition"] = [
        f"N={int(n)}, range={r:g}" for n, r in zip(data["total_species"], data["ddG_range"])
    ]
    grid = sns.lmplot(
        data=data,
        x="input_count_ddG",
        y="unbound_count_ddG",
        hue="depth",
        row="condition",
        col="rep",
        ci=None,
        palette="viridis",
        scatter_kws={"s": 10, "alpha": 0.6},
        facet_kws={"margin_titles": True},
    )
    grid.set_axis_labels("input-referenced ΔΔG", "unbound-referenced ΔΔG")
    return grid.figure


def accuracy_boxplot(fits: pd.DataFrame) -> plt.Figure | None:
    data = fits.loc[np.isfinite(fits["accuracy"].to_numpy(dtype=float))]
    if data.empty:
        return None
    grid = sns.catplot(
        data=data,
        kind="box",
        x="ddG_range",
        y="accuracy",
        row="total_species",
        col="depth",
        color="#1f77b4",
        margin_titles=True,
    )
    grid.set_axis_labels("ΔΔG range", "r² × fraction observed")
    return grid.figure


def chart_builders(
    conc: pd.DataFrame,
    counts: pd.DataFrame,
    fits: pd.DataFrame,
) -> Dict[str, Callable[[], plt.Figure | None]]:
    """Map each chart name to a zero-argument function building its figure."""
    return {
        "input_conc_hist": lambda: concentration_hist(conc, "input_conc"),
        "bound_conc_hist": lambda: concentration_hist(conc, "bound_conc"),
        "unbound_conc_hist": lambda: concentration_hist(conc, "unbound_conc"),
        "true_ddG_hist": lambda: ddg_hist(conc, "true_ddG"),
        "input_conc_ddG_hist": lambda: ddg_hist(conc, "input_conc_ddG"),
        "conc_vs_kd": lambda: concentration_vs_kd(conc),
        "true_vs_input_ddG": lambda: true_vs_input_ddg(conc),
        "input_count_hist": lambda: count_hist(counts, "input_count"),
        "bound_count_hist": lambda: count_hist(counts, "bound_count"),
        "unbound_count_hist": lambda: count_hist(counts, "unbound_count"),
        "unbound_count_ddG_hist": lambda: ddg_hist(counts, "unbound_count_ddG", hue="depth"),
        "input_count_ddG_hist": lambda: ddg_hist(counts, "input_count_ddG", hue="depth"),
        "count_ddG_fit": lambda: count_ddg_fit(counts),
        "accuracy_box": lambda: accuracy_boxplot(fits),
    }


def render_all(
    conc: pd.DataFrame,
    counts: pd.DataFrame,
    fits: pd.DataFrame,
    config: RenderConfig,
) -> RenderReport:
    """Build and save every chart; one failed write does not stop the rest."""
    report = RenderReport()
    builders = chart_builders(conc, counts, fits)
    with sns.axes_style(config.style):
        for name in CHART_NAMES:
            open_before = set(plt.get_fignums())
            try:
                fig = builders[name]()
            except Exception as exc:  # noqa: BLE001
                logger.exception("Could not build chart '%s'", name)
                report.failed[name] = f"{type(exc).__name__}: {exc}"
                for num in set(plt.get_fignums()) - open_before:
                    plt.close(num)
                continue
            if fig is None:
                logger.warning("No plottable rows for chart '%s'; skipped.", name)
                report.skipped.append(name)
                continue
            path = config.path_for(name)
            try:
                report.written[name] = save_figure(fig, path, config.size_for(name), config.dpi)
            except OutputWriteFailure as exc:
                logger.error("%s", exc)
                report.failed[name] = str(exc)
                continue
            logger.info("Chart '%s' written to %s", name, path)
    return report

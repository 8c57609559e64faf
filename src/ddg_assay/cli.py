"""Command-line helpers for ddg_assay."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Tuple

from .analysis import DUMMY_FACET, RT
from .errors import DataUnavailable, MalformedRow
from .pipeline import AnalysisSettings, run_analysis
from .plots import CHART_NAMES, RenderConfig


def parse_size(text: str) -> Tuple[str, Tuple[float, float]]:
    """Parse ``NAME=WxH`` (inches) into a chart name and size."""
    try:
        name, dims = text.split("=", 1)
        width, height = (float(part) for part in dims.lower().split("x", 1))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Expected NAME=WIDTHxHEIGHT, got '{text}'."
        ) from exc
    if name not in CHART_NAMES:
        raise argparse.ArgumentTypeError(
            f"Unknown chart '{name}'. Choose from: {', '.join(CHART_NAMES)}."
        )
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError("Chart dimensions must be positive.")
    return name, (width, height)


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Analyse simulated equilibrium-binding and sequencing data."
    )
    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="Delimited table of simulated concentrations and read counts.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        required=True,
        help="Directory where chart files are written.",
    )
    parser.add_argument(
        "--sep",
        help="Column separator (default: tab for .tsv/.tab, comma otherwise).",
    )
    parser.add_argument(
        "--rt",
        type=float,
        default=RT,
        help=f"RT in kcal/mol used for ΔΔG (default: {RT}).",
    )
    parser.add_argument(
        "--dummy-facet",
        type=int,
        default=DUMMY_FACET,
        help=f"Marker position shown in the count charts (default: {DUMMY_FACET}).",
    )
    parser.add_argument("--format", choices=["png", "pdf", "svg"], default="png")
    parser.add_argument("--dpi", type=int, default=150)
    parser.add_argument(
        "--size",
        type=parse_size,
        action="append",
        default=[],
        metavar="NAME=WxH",
        help="Per-chart figure size in inches; may be repeated.",
    )
    parser.add_argument(
        "--summary-csv",
        type=Path,
        help="Optional path to store the per-replicate fit summary as CSV.",
    )
    parser.add_argument(
        "--skipped-csv",
        type=Path,
        help="Optional path to store the groups whose fit was skipped.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log progress at INFO level.")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    sizes: Dict[str, Tuple[float, float]] = dict(args.size)
    render = RenderConfig(
        output_dir=args.output_dir.expanduser().resolve(),
        fmt=args.format,
        dpi=args.dpi,
        sizes=sizes,
    )
    settings = AnalysisSettings(rt=args.rt, dummy_facet=args.dummy_facet, sep=args.sep)

    try:
        result = run_analysis(args.input, render=render, settings=settings)
    except (DataUnavailable, MalformedRow) as exc:
        raise SystemExit(f"error: {exc}") from exc

    fits = result.fits.fits
    if fits.empty:
        print("No replicate group had enough finite observations to fit.")
    else:
        print(fits.to_string(index=False, float_format=lambda x: f"{x:.3f}"))

    report = result.report
    print(f"{len(report.written)} chart(s) written to {render.output_dir}")

    if args.summary_csv:
        args.summary_csv.parent.mkdir(parents=True, exist_ok=True)
        fits.to_csv(args.summary_csv, index=False)
        print(f"CSV summary written to {args.summary_csv.resolve()}")

    if args.skipped_csv:
        args.skipped_csv.parent.mkdir(parents=True, exist_ok=True)
        result.fits.skipped.to_csv(args.skipped_csv, index=False)
        print(f"Skipped groups written to {args.skipped_csv.resolve()}")

    if not report.ok:
        print(f"{len(report.failed)} chart(s) could not be written.", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

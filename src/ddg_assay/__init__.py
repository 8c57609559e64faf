"""Analysis of simulated equilibrium-binding and sequencing assays."""

from .pipeline import run_analysis  # noqa: F401

__all__ = ["run_analysis"]

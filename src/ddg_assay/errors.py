"""Exceptions raised by the assay analysis."""

from __future__ import annotations


class DataUnavailable(OSError):
    """The input table is missing or cannot be read."""


class MalformedRow(ValueError):
    """A required column is absent or holds values of the wrong type."""


class InsufficientDataForFit(ValueError):
    """Too few usable paired observations to fit a regression."""


class OutputWriteFailure(OSError):
    """A chart could not be written to disk."""

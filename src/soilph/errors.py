"""
Error types for SoilPH.

All of them subclass `ValueError` so callers that already catch bad-input
errors keep working; the subclasses let the CLI and tests tell apart
*what* was wrong with an invocation.
"""

from __future__ import annotations


class SoilPHError(ValueError):
    pass


class InputShapeError(SoilPHError):
    """Mismatched parallel sequences, array shapes, or missing table columns."""


class EmptyDomainError(SoilPHError):
    """Nothing to compute over: no profiles, no land cells in range, no usable rows."""


class InvalidParameterError(SoilPHError):
    """Non-positive sample size, or non-positive / NaN length scale or resolution."""

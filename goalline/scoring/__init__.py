"""Scoring package - per-market probability, confidence and pick."""

from .scorer import (
    MarketScorer,
    weighted_probability,
    compute_confidence,
    determine_pick,
    build_metadata,
)

__all__ = [
    "MarketScorer",
    "weighted_probability",
    "compute_confidence",
    "determine_pick",
    "build_metadata",
]

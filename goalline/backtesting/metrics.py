"""
Backtesting Metrics Calculator
==============================

Aggregates settled picks into:
- Hit rate and flat-stake ROI at an assumed price
- A ten-bucket calibration curve and count-weighted calibration error
- A one-sided binomial p-value for the hit rate (informational)
- Validation against a market's acceptance thresholds
"""

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from scipy import stats

from goalline.config.registry import ValidationThresholds

N_BUCKETS = 10


@dataclass
class CalibrationBucket:
    """Predicted vs. realized win rate for one probability band."""
    bucket: str
    lower: float
    upper: float
    count: int
    avg_predicted: float
    actual_rate: float
    error: float

    def to_dict(self) -> dict:
        return {
            "bucket": self.bucket,
            "lower": round(self.lower, 2),
            "upper": round(self.upper, 2),
            "count": self.count,
            "avg_predicted": round(self.avg_predicted, 4),
            "actual_rate": round(self.actual_rate, 4),
            "error": round(self.error, 4),
        }


@dataclass
class PerformanceSummary:
    won: int
    lost: int
    void: int
    hit_rate: float
    roi: float

    @property
    def settled(self) -> int:
        return self.won + self.lost


class MetricsCalculator:
    """
    Metrics over settled YES picks.

    ``assumed_odds`` is a flat decimal price used for ROI; it is a
    documented constant, not a market price.
    """

    def __init__(self, assumed_odds: float = 2.0):
        if assumed_odds <= 1.0:
            raise ValueError(f"assumed_odds must exceed 1.0, got {assumed_odds}")
        self.assumed_odds = assumed_odds

    def performance(self, won: int, lost: int, void: int = 0) -> PerformanceSummary:
        settled = won + lost
        if settled == 0:
            return PerformanceSummary(won=won, lost=lost, void=void, hit_rate=0.0, roi=0.0)

        hit_rate = won / settled
        roi = (won * self.assumed_odds - settled) / settled
        return PerformanceSummary(won=won, lost=lost, void=void, hit_rate=hit_rate, roi=roi)

    def hit_rate_pvalue(self, won: int, lost: int) -> float:
        """P(hit rate this high | true rate = break-even rate 1/odds)."""
        settled = won + lost
        if settled == 0:
            return 1.0
        return float(stats.binomtest(won, settled, 1.0 / self.assumed_odds, alternative="greater").pvalue)

    @staticmethod
    def calibration_curve(
        probabilities: Sequence[float],
        outcomes: Sequence[bool],
    ) -> List[CalibrationBucket]:
        """
        Ten equal-width buckets [0, 0.1) ... [0.9, 1.0].

        Every bucket is returned; empty ones have count 0 and zero stats.
        """
        probs = np.asarray(probabilities, dtype=float)
        hits = np.asarray(outcomes, dtype=float)
        if probs.shape != hits.shape:
            raise ValueError("probabilities and outcomes must have the same length")

        # Exact tenths; linspace lands just above 0.3, 0.6 and 0.7
        edges = np.arange(N_BUCKETS + 1) / N_BUCKETS
        # np.digitize puts 1.0 past the last edge; fold it into the top bucket
        idx = np.clip(np.digitize(probs, edges) - 1, 0, N_BUCKETS - 1)

        buckets = []
        for i in range(N_BUCKETS):
            lower, upper = float(edges[i]), float(edges[i + 1])
            mask = idx == i
            count = int(mask.sum())
            if count:
                avg_predicted = float(probs[mask].mean())
                actual_rate = float(hits[mask].mean())
                error = abs(avg_predicted - actual_rate)
            else:
                avg_predicted = actual_rate = error = 0.0

            buckets.append(CalibrationBucket(
                bucket=f"{round(lower * 100)}-{round(upper * 100)}%",
                lower=lower,
                upper=upper,
                count=count,
                avg_predicted=avg_predicted,
                actual_rate=actual_rate,
                error=error,
            ))
        return buckets

    @staticmethod
    def calibration_error(curve: Sequence[CalibrationBucket]) -> float:
        """Count-weighted mean error over non-empty buckets; 0 when all are empty."""
        counts = np.array([b.count for b in curve], dtype=float)
        total = counts.sum()
        if total == 0:
            return 0.0
        errors = np.array([b.error for b in curve], dtype=float)
        return float((errors * counts).sum() / total)

    @staticmethod
    def validate(
        hit_rate: float,
        roi: float,
        calibration_error: float,
        thresholds: ValidationThresholds,
    ) -> List[str]:
        """Notes for every failing metric; empty when all thresholds are met."""
        notes = []
        if hit_rate < thresholds.min_hit_rate:
            notes.append(
                f"Hit rate {hit_rate * 100:.2f}% below threshold {thresholds.min_hit_rate * 100:.0f}%"
            )
        if roi < thresholds.min_roi:
            notes.append(
                f"ROI {roi * 100:.2f}% below threshold {thresholds.min_roi * 100:.0f}%"
            )
        if calibration_error > thresholds.max_calibration_error:
            notes.append(
                f"Calibration error {calibration_error * 100:.2f}% above threshold "
                f"{thresholds.max_calibration_error * 100:.0f}%"
            )
        return notes

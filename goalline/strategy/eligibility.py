"""
Publish Eligibility Gate
========================

Hard checks a ScoringResult must pass before it may be surfaced:
1. Pick is YES
2. Confidence >= market minimum
3. Probability >= market minimum
4. Positive edge (a missing edge fails only when the market requires odds)
5. No blocking risk flags
6. Market-specific floors on result metadata, and forbidden flags

Every check runs; failures accumulate so callers see the full diagnostic.
The gate is stateless: the same inputs always give the same verdict.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List

from goalline.config.registry import MarketDefinition, MarketRegistry
from goalline.data.schemas import Pick, RiskFlag, ScoringResult, blocking_flags

logger = logging.getLogger(__name__)

_METADATA_LABELS = {
    "lambda_total": "Lambda total",
    "lambda_home": "Lambda home",
    "lambda_away": "Lambda away",
    "home_scoring_prob": "Home scoring prob",
    "away_scoring_prob": "Away scoring prob",
    "implied_prob": "Implied prob",
    "corners_avg_total": "Corners avg total",
    "cards_avg_total": "Cards avg total",
}


@dataclass(frozen=True)
class PublishEligibilityResult:
    """Verdict of the gate."""
    can_publish: bool
    reason: str
    failed_checks: List[str] = field(default_factory=list)
    passed_checks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "can_publish": self.can_publish,
            "reason": self.reason,
            "failed_checks": list(self.failed_checks),
            "passed_checks": list(self.passed_checks),
        }


@dataclass
class PublishStats:
    total: int = 0
    publishable: int = 0
    rejected: int = 0
    rejection_reasons: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "publishable": self.publishable,
            "rejected": self.rejected,
            "rejection_reasons": dict(self.rejection_reasons),
        }


class PublishEligibilityGate:
    """
    Applies a market's list policy to scoring results.

    Usage:
        gate = PublishEligibilityGate(registry)
        verdict = gate.evaluate("O25", result)
    """

    def __init__(self, registry: MarketRegistry):
        self.registry = registry

    def evaluate(self, market_id: str, result: ScoringResult) -> PublishEligibilityResult:
        market = self.registry.get(market_id)
        policy = market.list_policy
        failed: List[str] = []
        passed: List[str] = []

        # 1. Pick polarity
        if result.pick != Pick.YES:
            failed.append(f"Pick is {result.pick.value} (must be YES)")
        else:
            passed.append("Pick is YES")

        # 2. Confidence floor
        if result.confidence < policy.min_confidence:
            failed.append(f"Confidence {result.confidence} < {policy.min_confidence} (threshold)")
        else:
            passed.append(f"Confidence {result.confidence} >= {policy.min_confidence}")

        # 3. Probability floor
        if result.probability < policy.min_probability:
            failed.append(f"Probability {result.probability:.4f} < {policy.min_probability:.2f} (threshold)")
        else:
            passed.append(f"Probability {result.probability:.2f} >= {policy.min_probability:.2f}")

        # 4. Edge
        if result.edge is not None:
            if result.edge <= 0:
                failed.append(f"Edge {result.edge:.4f} <= 0 (no value)")
            else:
                passed.append(f"Edge {result.edge:.2f} > 0")
        elif policy.requires_odds:
            failed.append("Edge is NULL (odds missing, required for publish)")
        else:
            passed.append("Edge is NULL (optional)")

        # 5. Blocking flags
        blocking = blocking_flags(result.risk_flags)
        if blocking:
            failed.append(f"Blocking flags present: {', '.join(RiskFlag(f).value for f in blocking)}")
        else:
            passed.append("No blocking risk flags")

        # 6. Market-specific
        self._check_market_specific(market, result, failed, passed)

        can_publish = not failed
        if can_publish:
            reason = "All checks passed - eligible for publish"
        else:
            reason = f"Failed {len(failed)} check(s): {failed[0]}"

        logger.debug(
            f"{market_id} - {result.match_id}: can_publish={can_publish}, "
            f"confidence={result.confidence}, probability={result.probability:.4f}, failed={failed}"
        )
        return PublishEligibilityResult(
            can_publish=can_publish,
            reason=reason,
            failed_checks=failed,
            passed_checks=passed,
        )

    @staticmethod
    def _check_market_specific(
        market: MarketDefinition,
        result: ScoringResult,
        failed: List[str],
        passed: List[str],
    ) -> None:
        for floor in market.list_policy.floors:
            label = _METADATA_LABELS.get(floor.field, floor.field)
            value = result.metadata.value(floor.field)
            if value is None:
                failed.append(f"{label} missing (required for {market.id})")
            elif value < floor.minimum:
                failed.append(f"{label} {value:.2f} < {floor.minimum} (threshold)")
            else:
                passed.append(f"{label} {value:.2f} >= {floor.minimum}")

        for flag in market.list_policy.forbidden_flags:
            if flag in result.risk_flags:
                failed.append(f"{flag.value} present (not allowed for {market.id})")
            else:
                passed.append(f"{flag.value} absent")

    # ------------------------------------------------------------------
    # Batch helpers
    # ------------------------------------------------------------------

    def filter_publishable(self, market_id: str, results: List[ScoringResult]) -> List[ScoringResult]:
        return [r for r in results if self.evaluate(market_id, r).can_publish]

    def publish_stats(self, market_id: str, results: List[ScoringResult]) -> PublishStats:
        """Counts plus a histogram of failed checks (text before any parenthesis)."""
        stats = PublishStats(total=len(results))
        reasons: Counter = Counter()

        for result in results:
            verdict = self.evaluate(market_id, result)
            if verdict.can_publish:
                stats.publishable += 1
                continue
            for check in verdict.failed_checks:
                reasons[check.split("(")[0].strip()] += 1

        stats.rejected = stats.total - stats.publishable
        stats.rejection_reasons = dict(reasons)
        return stats

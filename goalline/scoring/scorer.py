"""
Market Scorer
=============

Turns one FeatureContract into one ScoringResult per market:

1. Evaluate every configured component (failures -> unavailable)
2. Blend available components, renormalized by available weight
3. Apply conditional additive adjustments, clamp to [0, 1]
4. Confidence: completeness + consensus + edge + penalty subtotal
5. Edge vs. home-win odds (or the proxy price)
6. Pick against the market's list policy
7. Metadata for the publish gate, taken straight from the contract

The scorer holds no mutable state after construction; one instance can
score many matches and markets concurrently.
"""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple, Union

from goalline.config.registry import ConfidenceRules, MarketDefinition, MarketRegistry
from goalline.data.schemas import (
    ComponentResult,
    FeatureContract,
    Pick,
    RiskFlag,
    ScoringMetadata,
    ScoringResult,
    merge_flags,
    seed_flags,
)
from goalline.exceptions import InvalidFeatureContract
from goalline.models.components import COMPONENTS
from goalline.models.poisson import evaluators as ev

logger = logging.getLogger(__name__)


class MarketScorer:
    """
    Scores markets defined in an injected MarketRegistry.

    Usage:
        scorer = MarketScorer(registry)
        result = scorer.score("O25", contract)
        results = scorer.score_all(contract)
    """

    def __init__(self, registry: MarketRegistry, max_workers: int = 1):
        self.registry = registry
        self.max_workers = max(1, max_workers)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def score(self, market_id: str, contract: Union[FeatureContract, Dict[str, Any]]) -> ScoringResult:
        start = time.perf_counter()
        market = self.registry.get(market_id)
        contract = _as_contract(contract)

        components = [self._evaluate(spec, contract) for spec in market.components]

        probability = self._apply_adjustments(weighted_probability(components), contract, market)

        confidence, data_score, confidence_flags = compute_confidence(
            components, contract, market.confidence_rules, probability
        )

        edge = ev.edge(probability, contract.odds.home_win) if contract.odds else None
        pick = determine_pick(probability, confidence, edge, market)

        flags = merge_flags(
            seed_flags(contract.completeness.missing),
            confidence_flags,
            self._market_flags(market, contract, components, data_score),
        )

        result = ScoringResult(
            match_id=contract.match_id,
            market_id=market.id,
            market_name=market.display_name,
            probability=probability,
            confidence=confidence,
            pick=pick,
            edge=edge,
            components=components,
            risk_flags=flags,
            data_score=data_score,
            metadata=build_metadata(contract),
        )

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            f"{market.id} scored for {contract.match_id} in {elapsed_ms:.1f}ms: "
            f"prob={probability:.4f}, conf={confidence}, pick={pick.value}"
        )
        return result

    def score_all(self, contract: Union[FeatureContract, Dict[str, Any]]) -> List[ScoringResult]:
        """Score every registry market, in registry order."""
        contract = _as_contract(contract)
        market_ids = self.registry.ids()

        if self.max_workers == 1:
            return [self.score(m, contract) for m in market_ids]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(lambda m: self.score(m, contract), market_ids))

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _evaluate(self, spec, contract: FeatureContract) -> ComponentResult:
        component = COMPONENTS[spec.name]
        try:
            raw = component.evaluate(contract, spec.params)
            if raw is not None and not math.isfinite(raw):
                logger.warning(f"Component {spec.name} produced non-finite value for {contract.match_id}")
                raw = None
        except Exception as e:
            logger.warning(f"Component {spec.name} failed for {contract.match_id}: {e}")
            raw = None

        return ComponentResult.evaluated(
            name=spec.name,
            weight=spec.weight,
            raw_value=raw,
            data_source=spec.source_label,
        )

    @staticmethod
    def _apply_adjustments(probability: float, contract: FeatureContract, market: MarketDefinition) -> float:
        adjusted = probability
        for adj in market.adjustments:
            if adj.condition.holds(contract):
                adjusted += adj.modifier
                logger.debug(f"{market.id}: applied adjustment {adj.name} ({adj.modifier:+.2f}) [{adj.condition}]")
        return ev.clamp(adjusted)

    @staticmethod
    def _market_flags(
        market: MarketDefinition,
        contract: FeatureContract,
        components: List[ComponentResult],
        data_score: int,
    ) -> List[RiskFlag]:
        rules = market.confidence_rules
        flags: List[RiskFlag] = []

        if market.required_potential and (
            contract.potentials is None
            or contract.potentials.get(market.required_potential) is None
        ):
            flags.append(RiskFlag.MISSING_MARKET_POTENTIAL)

        if ev.value_spread([c.raw_value for c in components]) >= rules.conflict_spread:
            flags.append(RiskFlag.CONFLICTING_SIGNALS)

        if data_score < rules.low_quality_below:
            flags.append(RiskFlag.LOW_DATA_QUALITY)

        if market.early_goal_proxies:
            proxies = [c for c in components if c.name in market.early_goal_proxies]
            if not any(c.is_available for c in proxies):
                flags.append(RiskFlag.NO_EARLY_GOAL_PROXY)

        return flags


def _as_contract(contract: Union[FeatureContract, Dict[str, Any]]) -> FeatureContract:
    if isinstance(contract, FeatureContract):
        return contract
    if isinstance(contract, dict):
        return FeatureContract.parse(contract)
    raise InvalidFeatureContract(f"Expected FeatureContract, got {type(contract).__name__}")


def weighted_probability(components: List[ComponentResult]) -> float:
    """Sum of contributions over the weight of available components; 0 if none."""
    available_weight = sum(c.weight for c in components if c.is_available)
    if available_weight == 0:
        return 0.0
    return sum(c.weighted_contribution for c in components) / available_weight


def compute_confidence(
    components: List[ComponentResult],
    contract: FeatureContract,
    rules: ConfidenceRules,
    probability: float,
) -> Tuple[int, int, List[RiskFlag]]:
    """
    Confidence score (0-100), data score (0-100) and the flags raised
    while scoring.

    Factors:
        completeness  share of available components
        consensus     component variance in three tiers
        edge          positive edge bonus (MISSING_ODDS without odds)
        penalty       ceiling minus missing xG / potentials / extreme odds
    """
    flags: List[RiskFlag] = []
    score = 0.0

    completeness = sum(c.is_available for c in components) / len(components) if components else 0.0
    score += completeness * rules.completeness_points
    data_score = int(round(completeness * 100))

    variance = ev.component_variance([c.raw_value for c in components])
    low_tier, mid_tier = rules.variance_tiers
    if variance < low_tier:
        score += rules.consensus_points[0]
    elif variance < mid_tier:
        score += rules.consensus_points[1]
    else:
        score += rules.consensus_points[2]
        flags.append(RiskFlag.HIGH_VARIANCE)

    if contract.odds is not None:
        edge = ev.edge(probability, contract.odds.home_win)
        if edge > rules.strong_edge:
            score += rules.edge_points[0]
        elif edge > 0:
            score += rules.edge_points[1]
    else:
        flags.append(RiskFlag.MISSING_ODDS)

    penalty = rules.penalty_ceiling
    if contract.xg is None:
        penalty -= rules.missing_xg_penalty
        flags.append(RiskFlag.MISSING_XG)
    if contract.potentials is None:
        penalty -= rules.missing_potentials_penalty
        flags.append(RiskFlag.MISSING_POTENTIALS)
    if contract.odds is not None and contract.odds.minimum < rules.extreme_odds_below:
        penalty -= rules.extreme_odds_penalty
        flags.append(RiskFlag.EXTREME_ODDS)
    score += max(0.0, penalty)

    confidence = int(max(0, min(100, round(score))))
    return confidence, data_score, flags


def determine_pick(probability: float, confidence: int, edge: Optional[float], market: MarketDefinition) -> Pick:
    policy = market.list_policy
    meets_confidence = confidence >= policy.min_confidence
    meets_probability = probability >= policy.min_probability
    meets_edge = edge is None or edge >= policy.min_edge
    return Pick.YES if meets_confidence and meets_probability and meets_edge else Pick.NO


def build_metadata(contract: FeatureContract) -> ScoringMetadata:
    """Gate facts computed directly from the contract, not from components."""
    values: Dict[str, float] = {}

    if contract.xg is not None:
        values["lambda_home"] = contract.xg.home
        values["lambda_away"] = contract.xg.away
        values["lambda_total"] = contract.xg.total
        values["home_scoring_prob"] = ev.scoring_probability(contract.xg.home)
        values["away_scoring_prob"] = ev.scoring_probability(contract.xg.away)

    if contract.odds is not None:
        values["implied_prob"] = 1.0 / contract.odds.home_win

    if contract.form is not None:
        values["corners_avg_total"] = contract.form.home.avg_corners + contract.form.away.avg_corners
        values["cards_avg_total"] = contract.form.home.avg_cards + contract.form.away.avg_cards

    return ScoringMetadata(**values)

"""
Component Evaluators
====================

Pure numeric functions used as market model components:
1. Poisson tail probability
2. Independent both-teams-score probability
3. Edge vs. (proxy) odds
4. Component variance (consensus measure)
5. Historical form rate
6. Bounded [0, 1] proxy indicators

No function here has side effects or reads global state. Functions that
depend on optional inputs return None when an input is missing; they
never substitute zero for unknown data.
"""

import math
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np
from scipy.stats import poisson

# Edge falls back to these odds when the home-win price is unavailable.
# Approximation kept for parity with historical results.
DEFAULT_PROXY_ODDS = 2.0


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def poisson_tail(lam: float, threshold: float) -> float:
    """
    P(X >= floor(threshold) + 1) for X ~ Poisson(lam).

    Over 2.5 goals -> P(X >= 3); over 0.5 -> P(X >= 1).
    Returns 0 when lam <= 0.

    >>> round(poisson_tail(2.85, 2.5), 3)
    0.542
    """
    if lam <= 0:
        return 0.0

    return clamp(float(poisson.sf(math.floor(threshold), lam)))


def scoring_probability(lam: float) -> float:
    """P(team scores at least once) = 1 - e^-lam."""
    if lam <= 0:
        return 0.0
    return 1.0 - math.exp(-lam)


def btts_probability(lambda_home: float, lambda_away: float) -> float:
    """
    Both teams to score, treating the sides as independent.

    (1 - e^-lh) * (1 - e^-la); 0 if either lambda <= 0.
    """
    if lambda_home <= 0 or lambda_away <= 0:
        return 0.0
    return scoring_probability(lambda_home) * scoring_probability(lambda_away)


def edge(probability: float, odds: Optional[float]) -> float:
    """Expected value of a unit stake: probability * odds - 1."""
    price = odds if odds else DEFAULT_PROXY_ODDS
    return probability * price - 1.0


def component_variance(values: Sequence[Optional[float]]) -> float:
    """
    Population variance of the available component values.

    Unavailable (None) values are ignored. Returns 1.0 (maximal
    disagreement) when nothing is available.
    """
    available = [v for v in values if v is not None]
    if not available:
        return 1.0
    return float(np.var(np.asarray(available, dtype=float)))


def value_spread(values: Sequence[Optional[float]]) -> float:
    """Max minus min of the available values; 0 when fewer than two."""
    available = [v for v in values if v is not None]
    if len(available) < 2:
        return 0.0
    return max(available) - min(available)


def form_outcomes(
    matches: Iterable[object],
    condition: Callable[[object], Optional[bool]],
    window: int = 5,
) -> List[bool]:
    """
    Condition outcomes for the trailing window, most recent first.

    ``condition`` returns None for a match that lacks the statistic it
    needs; such matches are skipped, not counted as failures. The window
    is applied after skipping.
    """
    outcomes = []
    for match in matches:
        if match is None:
            continue
        result = condition(match)
        if result is None:
            continue
        outcomes.append(bool(result))
        if len(outcomes) == window:
            break
    return outcomes


def form_rate(
    matches: Iterable[object],
    condition: Callable[[object], Optional[bool]],
    window: int = 5,
) -> Optional[float]:
    """Share of the trailing window satisfying a market condition; None if empty."""
    outcomes = form_outcomes(matches, condition, window)
    if not outcomes:
        return None
    return sum(outcomes) / len(outcomes)


# ----------------------------------------------------------------------
# Proxy indicators
# ----------------------------------------------------------------------

def tempo_indicator(avg_potential: Optional[float], xg_total: Optional[float]) -> Optional[float]:
    """Attacking tempo: 60% potential (0-100), 40% xG total capped at 4."""
    if avg_potential is None or xg_total is None:
        return None
    score = (avg_potential / 100) * 0.6 + min(xg_total / 4, 1.0) * 0.4
    return clamp(score)


def h2h_goals_proxy(h2h_avg_goals: Optional[float], threshold: float) -> Optional[float]:
    """Step mapping of head-to-head average goals around a line."""
    if h2h_avg_goals is None:
        return None
    if h2h_avg_goals >= threshold + 0.5:
        return 0.70
    if h2h_avg_goals >= threshold:
        return 0.55
    if h2h_avg_goals >= threshold - 0.5:
        return 0.45
    return 0.30


def home_scoring_rate(home_goals_avg: Optional[float], threshold: float) -> Optional[float]:
    """Poisson tail using the home side's scoring average as lambda."""
    if home_goals_avg is None:
        return None
    return poisson_tail(home_goals_avg, threshold)


def odds_correlation(home_win_odds: Optional[float]) -> Optional[float]:
    """Implied home-win probability boosted by 20%, capped at 1."""
    if home_win_odds is None or home_win_odds < 1.01:
        return None
    return min(1.0, (1.0 / home_win_odds) * 1.2)


def attacking_correlation(avg_potential: Optional[float]) -> Optional[float]:
    """Attacking potential (0-100) rescaled to [0, 1]."""
    if avg_potential is None:
        return None
    return clamp(avg_potential / 100)


def intensity_proxy(xg_home: Optional[float], xg_away: Optional[float]) -> Optional[float]:
    """Close, high-xG matches score high: (total/4) * (1 - |diff|/total)."""
    if xg_home is None or xg_away is None:
        return None
    total = xg_home + xg_away
    if total <= 0:
        return None
    differential = abs(xg_home - xg_away)
    return clamp((total / 4) * (1 - differential / total))

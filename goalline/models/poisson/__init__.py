"""Poisson subpackage - pure component evaluator functions."""

from .evaluators import (
    DEFAULT_PROXY_ODDS,
    clamp,
    poisson_tail,
    scoring_probability,
    btts_probability,
    edge,
    component_variance,
    value_spread,
    form_outcomes,
    form_rate,
    tempo_indicator,
    h2h_goals_proxy,
    home_scoring_rate,
    odds_correlation,
    attacking_correlation,
    intensity_proxy,
)

__all__ = [
    "DEFAULT_PROXY_ODDS",
    "clamp",
    "poisson_tail",
    "scoring_probability",
    "btts_probability",
    "edge",
    "component_variance",
    "value_spread",
    "form_outcomes",
    "form_rate",
    "tempo_indicator",
    "h2h_goals_proxy",
    "home_scoring_rate",
    "odds_correlation",
    "attacking_correlation",
    "intensity_proxy",
]

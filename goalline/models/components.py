"""
Component strategy table.

Maps each registry component name to the evaluator that computes its raw
value from a FeatureContract. The registry loader validates component
names and required parameters against this table, so an unknown name
fails when the registry is loaded rather than at scoring time.

Every evaluator has the signature ``(contract, params) -> Optional[float]``
and returns None when an input block it needs is absent.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from goalline.data.schemas import FeatureContract, RecentMatch
from goalline.models.poisson import evaluators as ev

Evaluator = Callable[[FeatureContract, Mapping[str, Any]], Optional[float]]

FORM_STATS = (
    "total_goals",
    "home_goals",
    "away_goals",
    "ht_total_goals",
    "total_corners",
    "total_cards",
    "both_scored",
)


@dataclass(frozen=True)
class Component:
    """A registered component evaluator."""
    name: str
    evaluate: Evaluator
    data_source: str
    required_params: Tuple[str, ...] = ()
    description: str = ""


# ----------------------------------------------------------------------
# Evaluators
# ----------------------------------------------------------------------

def _prior_probability(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.potentials is None:
        return None
    value = contract.potentials.get(params["potential"])
    if value is None:
        return None
    return ev.clamp((value + params.get("offset", 0.0)) / 100)


def _poisson_distribution(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.xg is None:
        return None
    return ev.poisson_tail(contract.xg.total, params["threshold"])


def _poisson_halftime(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.xg is None:
        return None
    share = params.get("ht_share", 0.45)
    lam = contract.xg.home * share + contract.xg.away * share
    return ev.poisson_tail(lam, params["threshold"])


def _poisson_home_goals(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.xg is None:
        return None
    return ev.poisson_tail(contract.xg.home, params["threshold"])


def _poisson_corners(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.form is None:
        return None
    lam = contract.form.home.avg_corners + contract.form.away.avg_corners
    if lam <= 0:
        return None
    return ev.poisson_tail(lam, params["threshold"])


def _poisson_cards(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.form is None:
        return None
    lam = contract.form.home.avg_cards + contract.form.away.avg_cards
    if lam <= 0:
        return None
    return ev.poisson_tail(lam, params["threshold"])


def _independent_poisson(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.xg is None:
        return None
    return ev.btts_probability(contract.xg.home, contract.xg.away)


def form_condition(stat: str, threshold: float) -> Callable[[RecentMatch], Optional[bool]]:
    """Market condition over one trailing match: ``stat >= threshold``."""
    def _condition(match: RecentMatch) -> Optional[bool]:
        value = match.stat(stat)
        if value is None:
            return None
        return value >= threshold
    return _condition


def _form_rate(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.form is None:
        return None
    condition = form_condition(params["stat"], params["threshold"])
    window = int(params.get("window", 5))

    # Pool both sides' trailing windows
    outcomes = (
        ev.form_outcomes(contract.form.home.recent_matches, condition, window)
        + ev.form_outcomes(contract.form.away.recent_matches, condition, window)
    )
    if not outcomes:
        return None
    return sum(outcomes) / len(outcomes)


def _h2h_rate(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.h2h is None:
        return None
    return getattr(contract.h2h, params["field"]) / 100


def _h2h_goals_proxy(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.h2h is None:
        return None
    return ev.h2h_goals_proxy(contract.h2h.avg_goals, params["threshold"])


def _tempo_proxy(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.potentials is None or contract.xg is None:
        return None
    potential = contract.potentials.get(params.get("potential", "over25"))
    return ev.tempo_indicator(potential, contract.xg.total)


def _odds_correlation(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.odds is None:
        return None
    return ev.odds_correlation(contract.odds.home_win)


def _attacking_correlation(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.potentials is None:
        return None
    return ev.attacking_correlation(contract.potentials.get(params.get("potential", "over25")))


def _intensity_proxy(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.xg is None:
        return None
    return ev.intensity_proxy(contract.xg.home, contract.xg.away)


def _home_scoring_rate(contract: FeatureContract, params: Mapping[str, Any]) -> Optional[float]:
    if contract.form is None:
        return None
    return ev.home_scoring_rate(contract.form.home.avg_goals_scored, params["threshold"])


# ----------------------------------------------------------------------
# Registry of components
# ----------------------------------------------------------------------

COMPONENTS: Dict[str, Component] = {
    c.name: c for c in (
        Component("prior_probability", _prior_probability, "potentials", ("potential",),
                  "Provider potential as a probability, optionally offset"),
        Component("poisson_distribution", _poisson_distribution, "xg", ("threshold",),
                  "Poisson tail on total xG"),
        Component("poisson_halftime", _poisson_halftime, "xg", ("threshold",),
                  "Poisson tail on the half-time share of xG"),
        Component("poisson_home_goals", _poisson_home_goals, "xg", ("threshold",),
                  "Poisson tail on home xG"),
        Component("poisson_corners", _poisson_corners, "form", ("threshold",),
                  "Poisson tail on summed corner averages"),
        Component("poisson_cards", _poisson_cards, "form", ("threshold",),
                  "Poisson tail on summed card averages"),
        Component("independent_poisson", _independent_poisson, "xg", (),
                  "Both sides score, independent Poisson"),
        Component("form_rate", _form_rate, "form", ("stat", "threshold"),
                  "Pooled trailing-window hit rate of a market condition"),
        Component("h2h_rate", _h2h_rate, "h2h", ("field",),
                  "Head-to-head market percentage"),
        Component("h2h_goals_proxy", _h2h_goals_proxy, "h2h", ("threshold",),
                  "Head-to-head average goals step proxy"),
        Component("tempo_proxy", _tempo_proxy, "potentials+xg", (),
                  "Attacking tempo from potential and xG"),
        Component("odds_correlation", _odds_correlation, "odds", (),
                  "Implied home-win probability proxy"),
        Component("attacking_correlation", _attacking_correlation, "potentials", (),
                  "Attacking potential proxy"),
        Component("intensity_proxy", _intensity_proxy, "xg", (),
                  "Match intensity from xG balance"),
        Component("home_scoring_rate", _home_scoring_rate, "form", ("threshold",),
                  "Poisson tail on the home scoring average"),
    )
}

H2H_FIELDS = ("btts_percentage", "over25_percentage")


def get_component(name: str) -> Component:
    try:
        return COMPONENTS[name]
    except KeyError:
        raise KeyError(f"Unknown component: {name}") from None


def validate_params(name: str, params: Mapping[str, Any]) -> None:
    """Raise ValueError if ``params`` cannot drive component ``name``."""
    component = get_component(name)
    missing = [p for p in component.required_params if p not in params]
    if missing:
        raise ValueError(f"component '{name}' missing params: {missing}")
    if name == "form_rate" and params["stat"] not in FORM_STATS:
        raise ValueError(f"form_rate stat must be one of {FORM_STATS}")
    if name == "h2h_rate" and params["field"] not in H2H_FIELDS:
        raise ValueError(f"h2h_rate field must be one of {H2H_FIELDS}")

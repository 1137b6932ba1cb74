"""
Tests for config.registry — market registry loading and validation
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import copy
import json

import pytest

from goalline.config.registry import (
    Comparator,
    Condition,
    MarketRegistry,
    default_registry,
    load_registry,
)
from goalline.data.schemas import FeatureContract, LeagueStatsBlock, RiskFlag, TeamRef, LeagueRef, DataSource
from goalline.exceptions import RegistryError, UnknownMarket


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _market(**overrides) -> dict:
    market = {
        "display_name": "Over 2.5 Goals",
        "components": [
            {"name": "poisson_distribution", "weight": 0.6, "params": {"threshold": 2.5}},
            {"name": "prior_probability", "weight": 0.4, "params": {"potential": "over25"}},
        ],
        "list_policy": {"min_confidence": 60, "min_probability": 0.6},
        "settlement": {"stat": "total_goals", "threshold": 3},
        "validation": {"min_hit_rate": 0.58, "min_roi": 0.05, "max_calibration_error": 0.08},
    }
    market.update(overrides)
    return market


def _doc(**markets) -> dict:
    return {"version": "test", "markets": markets or {"O25": _market()}}


def _contract(league_avg=None) -> FeatureContract:
    league_stats = None
    if league_avg is not None:
        league_stats = LeagueStatsBlock(avg_goals_per_match=league_avg, over25_rate=0.5, btts_rate=0.5)
    return FeatureContract.assemble(
        source=DataSource.SETTLEMENT,
        match_id="m1",
        kickoff_ts=1_700_000_000,
        home_team=TeamRef(name="Home"),
        away_team=TeamRef(name="Away"),
        league=LeagueRef(),
        league_stats=league_stats,
    )


# ---------------------------------------------------------------------------
# Packaged registry
# ---------------------------------------------------------------------------

class TestPackagedRegistry:
    """The shipped market_registry.json."""

    def test_loads_seven_markets(self):
        registry = load_registry()
        assert registry.ids() == ["O25", "BTTS", "HT_O05", "O35", "HOME_O15", "CORNERS_O85", "CARDS_O25"]

    def test_ids_injected_from_keys(self):
        registry = load_registry()
        for market_id in registry.ids():
            assert registry.get(market_id).id == market_id

    def test_default_registry_is_cached(self):
        assert default_registry() is default_registry()

    def test_validation_thresholds(self):
        registry = load_registry()
        ht = registry.get("HT_O05").validation
        assert ht.min_hit_rate == pytest.approx(0.62)
        cards = registry.get("CARDS_O25").validation
        assert cards.max_calibration_error == pytest.approx(0.15)

    def test_ht_market_forbids_missing_early_goal_proxy(self):
        policy = load_registry().get("HT_O05").list_policy
        assert RiskFlag.NO_EARLY_GOAL_PROXY in policy.forbidden_flags

    def test_unknown_market_raises(self):
        registry = load_registry()
        with pytest.raises(UnknownMarket) as exc_info:
            registry.get("NOPE")
        assert exc_info.value.market_id == "NOPE"
        assert "NOPE" not in registry

    def test_registry_is_frozen(self):
        registry = load_registry()
        with pytest.raises(Exception):
            registry.version = "2.0"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestRegistryValidation:
    """Bad documents fail at load time."""

    def test_unknown_component_rejected(self):
        market = _market(components=[{"name": "crystal_ball", "weight": 1.0}])
        with pytest.raises(RegistryError, match="crystal_ball"):
            MarketRegistry.from_dict(_doc(O25=market))

    def test_missing_component_params_rejected(self):
        market = _market(components=[{"name": "poisson_distribution", "weight": 1.0}])
        with pytest.raises(RegistryError, match="threshold"):
            MarketRegistry.from_dict(_doc(O25=market))

    def test_non_positive_weight_rejected(self):
        market = _market(components=[
            {"name": "poisson_distribution", "weight": 0.0, "params": {"threshold": 2.5}},
        ])
        with pytest.raises(RegistryError):
            MarketRegistry.from_dict(_doc(O25=market))

    def test_empty_components_rejected(self):
        with pytest.raises(RegistryError):
            MarketRegistry.from_dict(_doc(O25=_market(components=[])))

    def test_unknown_condition_field_rejected(self):
        market = _market(adjustments=[{
            "name": "weather",
            "condition": {"field": "weather.rain", "op": "gt", "value": 1},
            "modifier": -0.05,
        }])
        with pytest.raises(RegistryError, match="weather.rain"):
            MarketRegistry.from_dict(_doc(O25=market))

    def test_unknown_floor_field_rejected(self):
        policy = {"min_confidence": 60, "min_probability": 0.6, "floors": [{"field": "vibes", "minimum": 1}]}
        with pytest.raises(RegistryError):
            MarketRegistry.from_dict(_doc(O25=_market(list_policy=policy)))

    def test_early_goal_proxy_must_be_component(self):
        with pytest.raises(RegistryError, match="early_goal_proxies"):
            MarketRegistry.from_dict(_doc(O25=_market(early_goal_proxies=["form_rate"])))

    def test_unknown_settlement_stat_rejected(self):
        with pytest.raises(RegistryError):
            MarketRegistry.from_dict(_doc(O25=_market(settlement={"stat": "offsides", "threshold": 1})))

    def test_extra_keys_rejected(self):
        with pytest.raises(RegistryError):
            MarketRegistry.from_dict(_doc(O25=_market(colour="red")))

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "registry.json"
        path.write_text(json.dumps(_doc()))
        registry = load_registry(path)
        assert registry.version == "test"
        assert registry.get("O25").components[0].weight == pytest.approx(0.6)

    def test_unreadable_file_raises_registry_error(self, tmp_path):
        with pytest.raises(RegistryError):
            load_registry(tmp_path / "missing.json")

    def test_invalid_json_raises_registry_error(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(RegistryError):
            load_registry(path)

    def test_source_document_not_mutated(self):
        doc = _doc()
        snapshot = copy.deepcopy(doc)
        MarketRegistry.from_dict(doc)
        assert doc == snapshot


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------

class TestCondition:
    """Typed adjustment conditions."""

    def test_comparators(self):
        assert Comparator.LT.compare(2.0, 2.3)
        assert not Comparator.GT.compare(2.0, 2.3)
        assert Comparator.LE.compare(2.3, 2.3)
        assert Comparator.GE.compare(2.3, 2.3)

    def test_holds_on_present_block(self):
        cond = Condition(field="league.avg_goals", op="lt", value=2.3)
        assert cond.holds(_contract(league_avg=2.1))
        assert not cond.holds(_contract(league_avg=2.8))

    def test_absent_block_never_holds(self):
        cond = Condition(field="league.avg_goals", op="lt", value=2.3)
        assert not cond.holds(_contract())

    def test_str(self):
        cond = Condition(field="xg.total", op="ge", value=3.5)
        assert str(cond) == "xg.total >= 3.5"

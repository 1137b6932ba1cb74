"""
Market Definition Registry
==========================

Static, versioned configuration per market:
1. Components to blend, with weights and parameters
2. Conditional additive adjustments (typed conditions, no string parsing)
3. Confidence rule weights
4. Publish policy: thresholds, metadata floors, forbidden flags
5. Settlement rule and backtest validation thresholds

The registry is loaded once into frozen pydantic models and injected into
the scorer, gate and backtest engine. Component names and parameters are
checked against the component table at load time.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from goalline.data.schemas import FeatureContract, RiskFlag, ScoringMetadata
from goalline.exceptions import RegistryError, UnknownMarket
from goalline.models.components import COMPONENTS, FORM_STATS, validate_params

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = Path(__file__).parent / "market_registry.json"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Comparator(str, Enum):
    LT = "lt"
    LE = "le"
    GT = "gt"
    GE = "ge"

    def compare(self, left: float, right: float) -> bool:
        if self == Comparator.LT:
            return left < right
        if self == Comparator.LE:
            return left <= right
        if self == Comparator.GT:
            return left > right
        return left >= right


def _league_avg_goals(c: FeatureContract) -> Optional[float]:
    return c.league_stats.avg_goals_per_match if c.league_stats else None


def _xg_total(c: FeatureContract) -> Optional[float]:
    return c.xg.total if c.xg else None


def _xg_home(c: FeatureContract) -> Optional[float]:
    return c.xg.home if c.xg else None


def _h2h_avg_goals(c: FeatureContract) -> Optional[float]:
    return c.h2h.avg_goals if c.h2h else None


def _odds_home_win(c: FeatureContract) -> Optional[float]:
    return c.odds.home_win if c.odds else None


def _potential_btts(c: FeatureContract) -> Optional[float]:
    return c.potentials.btts if c.potentials else None


# Closed set of values an adjustment condition may test
CONDITION_FIELDS = {
    "league.avg_goals": _league_avg_goals,
    "xg.total": _xg_total,
    "xg.home": _xg_home,
    "h2h.avg_goals": _h2h_avg_goals,
    "odds.home_win": _odds_home_win,
    "potentials.btts": _potential_btts,
}


class Condition(_Frozen):
    """``field <op> value`` over a feature-contract value."""
    field: str
    op: Comparator
    value: float

    @field_validator("field")
    @classmethod
    def _known_field(cls, v: str) -> str:
        if v not in CONDITION_FIELDS:
            raise ValueError(f"unknown condition field '{v}'; expected one of {sorted(CONDITION_FIELDS)}")
        return v

    def holds(self, contract: FeatureContract) -> bool:
        """False when the field's block is absent."""
        actual = CONDITION_FIELDS[self.field](contract)
        if actual is None:
            return False
        return self.op.compare(actual, self.value)

    def __str__(self) -> str:
        symbols = {"lt": "<", "le": "<=", "gt": ">", "ge": ">="}
        return f"{self.field} {symbols[self.op.value]} {self.value}"


class ComponentSpec(_Frozen):
    name: str
    weight: float = Field(..., gt=0)
    params: Dict[str, Union[float, str]] = Field(default_factory=dict)
    data_source: Optional[str] = None

    @model_validator(mode="after")
    def _registered(self) -> "ComponentSpec":
        if self.name not in COMPONENTS:
            raise ValueError(f"unknown component '{self.name}'")
        validate_params(self.name, self.params)
        return self

    @property
    def source_label(self) -> str:
        return self.data_source or COMPONENTS[self.name].data_source


class AdjustmentSpec(_Frozen):
    name: str
    condition: Condition
    modifier: float


class ConfidenceRules(_Frozen):
    """Point allocation of the 0-100 confidence score."""
    completeness_points: float = 30
    consensus_points: Tuple[float, float, float] = (30, 20, 10)
    variance_tiers: Tuple[float, float] = (0.15, 0.25)
    edge_points: Tuple[float, float] = (25, 15)
    strong_edge: float = 0.05
    penalty_ceiling: float = 15
    missing_xg_penalty: float = 20
    missing_potentials_penalty: float = 15
    extreme_odds_penalty: float = 10
    extreme_odds_below: float = 1.10
    conflict_spread: float = 0.5
    low_quality_below: int = 50


class MetadataFloor(_Frozen):
    field: str
    minimum: float

    @field_validator("field")
    @classmethod
    def _metadata_field(cls, v: str) -> str:
        if v not in ScoringMetadata.model_fields:
            raise ValueError(f"unknown metadata field '{v}'")
        return v


class ListPolicy(_Frozen):
    min_confidence: int = Field(..., ge=0, le=100)
    min_probability: float = Field(..., ge=0, le=1)
    min_edge: float = 0.0
    requires_odds: bool = False
    floors: Tuple[MetadataFloor, ...] = ()
    forbidden_flags: Tuple[RiskFlag, ...] = ()


class SettlementRule(_Frozen):
    """WIN iff ``stat >= threshold`` on the realized match."""
    stat: str
    threshold: float

    @field_validator("stat")
    @classmethod
    def _known_stat(cls, v: str) -> str:
        if v not in FORM_STATS:
            raise ValueError(f"unknown settlement stat '{v}'")
        return v


class ValidationThresholds(_Frozen):
    min_hit_rate: float
    min_roi: float
    max_calibration_error: float


class MarketDefinition(_Frozen):
    id: str
    display_name: str
    components: Tuple[ComponentSpec, ...] = Field(..., min_length=1)
    adjustments: Tuple[AdjustmentSpec, ...] = ()
    required_potential: Optional[str] = None
    early_goal_proxies: Tuple[str, ...] = ()
    confidence_rules: ConfidenceRules = Field(default_factory=ConfidenceRules)
    list_policy: ListPolicy
    settlement: SettlementRule
    validation: ValidationThresholds

    @model_validator(mode="after")
    def _proxies_are_components(self) -> "MarketDefinition":
        names = {c.name for c in self.components}
        unknown = [p for p in self.early_goal_proxies if p not in names]
        if unknown:
            raise ValueError(f"early_goal_proxies not configured as components: {unknown}")
        return self


class MarketRegistry(_Frozen):
    version: str
    markets: Dict[str, MarketDefinition]

    @model_validator(mode="before")
    @classmethod
    def _inject_ids(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("markets"), dict):
            markets = {}
            for market_id, definition in data["markets"].items():
                if isinstance(definition, dict):
                    definition = {"id": market_id, **definition}
                markets[market_id] = definition
            data = {**data, "markets": markets}
        return data

    @model_validator(mode="after")
    def _ids_match_keys(self) -> "MarketRegistry":
        for key, market in self.markets.items():
            if market.id != key:
                raise ValueError(f"market key '{key}' does not match id '{market.id}'")
        if not self.markets:
            raise ValueError("registry defines no markets")
        return self

    def get(self, market_id: str) -> MarketDefinition:
        try:
            return self.markets[market_id]
        except KeyError:
            raise UnknownMarket(market_id) from None

    def ids(self) -> List[str]:
        return list(self.markets)

    def __contains__(self, market_id: object) -> bool:
        return market_id in self.markets

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketRegistry":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise RegistryError(f"Invalid market registry: {e}") from e


def load_registry(path: Optional[Path] = None) -> MarketRegistry:
    """Load and validate a registry document (defaults to the packaged one)."""
    path = Path(path) if path else DEFAULT_REGISTRY_PATH
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise RegistryError(f"Cannot read market registry {path}: {e}") from e

    registry = MarketRegistry.from_dict(data)
    logger.info(f"Loaded market registry v{registry.version} ({len(registry.markets)} markets) from {path}")
    return registry


@lru_cache(maxsize=1)
def default_registry() -> MarketRegistry:
    """Packaged registry, loaded once."""
    return load_registry(DEFAULT_REGISTRY_PATH)

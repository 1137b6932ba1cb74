"""
Feature Contract schemas.

The FeatureContract is the single input of every market model. Each
optional block is modelled as a whole: it is either fully populated or
absent (None). A block whose sub-fields are all required cannot exist in
a half-filled state, so "present but partially null" is unrepresentable.

The ``completeness`` record must partition OPTIONAL_BLOCKS into present
and missing names and agree with the blocks actually set. The model
validator enforces this; ``FeatureContract.parse`` turns validation
failures into InvalidFeatureContract.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, model_validator

from goalline.exceptions import InvalidFeatureContract


CONTRACT_VERSION = "1.0"

OPTIONAL_BLOCKS: Tuple[str, ...] = (
    "xg",
    "odds",
    "potentials",
    "ft_scores",
    "ht_scores",
    "corners",
    "cards",
    "form",
    "h2h",
    "league_stats",
)

CORE_POTENTIALS: Tuple[str, ...] = ("over25", "btts", "over15")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class DataSource(str, Enum):
    """Which providers contributed to a contract."""
    SETTLEMENT = "settlement"
    PREDICTIVE = "predictive"
    HYBRID = "hybrid"


class TeamRef(_Frozen):
    id: Optional[str] = None
    name: str


class LeagueRef(_Frozen):
    id: Optional[str] = None
    name: Optional[str] = None


class Completeness(_Frozen):
    """Present/missing partition of the optional block names."""
    present: Tuple[str, ...] = ()
    missing: Tuple[str, ...] = ()

    @property
    def ratio(self) -> float:
        return len(self.present) / len(OPTIONAL_BLOCKS)


class XGBlock(_Frozen):
    """Pre-match expected goals."""
    home: float = Field(..., ge=0)
    away: float = Field(..., ge=0)

    @computed_field
    @property
    def total(self) -> float:
        return self.home + self.away


class OddsBlock(_Frozen):
    """1X2 decimal odds."""
    home_win: float = Field(..., gt=0)
    draw: float = Field(..., gt=0)
    away_win: float = Field(..., gt=0)

    @property
    def minimum(self) -> float:
        return min(self.home_win, self.draw, self.away_win)


class PotentialsBlock(_Frozen):
    """
    Provider-computed market likelihoods (percent, 0-100).

    The core trio is always present. Market-specific potentials live in
    ``extras`` and only carry keys with real values.
    """
    over25: float = Field(..., ge=0, le=100)
    btts: float = Field(..., ge=0, le=100)
    over15: float = Field(..., ge=0, le=100)
    extras: Dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _no_null_extras(self) -> "PotentialsBlock":
        for key, value in self.extras.items():
            if value is None:
                raise ValueError(f"potential '{key}' is null; omit it instead")
            if key in CORE_POTENTIALS:
                raise ValueError(f"core potential '{key}' must not be duplicated in extras")
        return self

    def get(self, name: str) -> Optional[float]:
        """Potential by name, core or extra; None when not supplied."""
        if name in CORE_POTENTIALS:
            return getattr(self, name)
        return self.extras.get(name)


class ScoreBlock(_Frozen):
    """Home/away count pair: goals, corners or cards."""
    home: int = Field(..., ge=0)
    away: int = Field(..., ge=0)

    @computed_field
    @property
    def total(self) -> int:
        return self.home + self.away


class RecentMatch(_Frozen):
    """A trailing match; goals required, other stats optional."""
    home_goals: int = Field(..., ge=0)
    away_goals: int = Field(..., ge=0)
    ht_home_goals: Optional[int] = None
    ht_away_goals: Optional[int] = None
    home_corners: Optional[int] = None
    away_corners: Optional[int] = None
    home_cards: Optional[int] = None
    away_cards: Optional[int] = None

    def stat(self, name: str) -> Optional[float]:
        """Value of a settlement statistic for this match, None if unknown."""
        return stat_value(name, {
            "home_goals": self.home_goals,
            "away_goals": self.away_goals,
            "ht_home_goals": self.ht_home_goals,
            "ht_away_goals": self.ht_away_goals,
            "home_corners": self.home_corners,
            "away_corners": self.away_corners,
            "home_cards": self.home_cards,
            "away_cards": self.away_cards,
        })


class TeamForm(_Frozen):
    recent_matches: Tuple[RecentMatch, ...] = ()
    avg_goals_scored: float = Field(..., ge=0)
    avg_goals_conceded: float = Field(..., ge=0)
    avg_corners: float = Field(..., ge=0)
    avg_cards: float = Field(..., ge=0)


class FormBlock(_Frozen):
    home: TeamForm
    away: TeamForm


class H2HBlock(_Frozen):
    avg_goals: float = Field(..., ge=0)
    over25_percentage: float = Field(..., ge=0, le=100)
    btts_percentage: float = Field(..., ge=0, le=100)


class LeagueStatsBlock(_Frozen):
    avg_goals_per_match: float = Field(..., ge=0)
    over25_rate: float = Field(..., ge=0, le=1)
    btts_rate: float = Field(..., ge=0, le=1)


def stat_value(name: str, raw: Dict[str, Optional[int]]) -> Optional[float]:
    """
    Derive a settlement statistic from raw per-side counts.

    Supported names: total_goals, home_goals, away_goals, ht_total_goals,
    total_corners, total_cards, both_scored (1.0/0.0). Returns None when
    any count the statistic needs is unknown.
    """
    def _pair(home_key: str, away_key: str) -> Optional[Tuple[int, int]]:
        home, away = raw.get(home_key), raw.get(away_key)
        if home is None or away is None:
            return None
        return home, away

    if name == "home_goals":
        value = raw.get("home_goals")
        return None if value is None else float(value)
    if name == "away_goals":
        value = raw.get("away_goals")
        return None if value is None else float(value)

    pairs = {
        "total_goals": ("home_goals", "away_goals"),
        "both_scored": ("home_goals", "away_goals"),
        "ht_total_goals": ("ht_home_goals", "ht_away_goals"),
        "total_corners": ("home_corners", "away_corners"),
        "total_cards": ("home_cards", "away_cards"),
    }
    if name not in pairs:
        raise ValueError(f"Unknown statistic: {name}")

    pair = _pair(*pairs[name])
    if pair is None:
        return None
    if name == "both_scored":
        return 1.0 if pair[0] > 0 and pair[1] > 0 else 0.0
    return float(pair[0] + pair[1])


class FeatureContract(_Frozen):
    """
    Canonical per-match feature record.

    Immutable once built. Downstream code checks ``has(block)`` (or the
    block for None) before reading any optional field.
    """

    version: str = CONTRACT_VERSION
    source: DataSource
    match_id: str = Field(..., min_length=1)
    kickoff_ts: int
    home_team: TeamRef
    away_team: TeamRef
    league: LeagueRef
    completeness: Completeness

    xg: Optional[XGBlock] = None
    odds: Optional[OddsBlock] = None
    potentials: Optional[PotentialsBlock] = None
    ft_scores: Optional[ScoreBlock] = None
    ht_scores: Optional[ScoreBlock] = None
    corners: Optional[ScoreBlock] = None
    cards: Optional[ScoreBlock] = None
    form: Optional[FormBlock] = None
    h2h: Optional[H2HBlock] = None
    league_stats: Optional[LeagueStatsBlock] = None

    @model_validator(mode="after")
    def _check_completeness(self) -> "FeatureContract":
        present = set(self.completeness.present)
        missing = set(self.completeness.missing)
        if present & missing:
            raise ValueError(f"completeness overlap: {sorted(present & missing)}")
        if present | missing != set(OPTIONAL_BLOCKS):
            raise ValueError("completeness must cover exactly the optional block names")
        for block in OPTIONAL_BLOCKS:
            is_set = getattr(self, block) is not None
            if is_set != (block in present):
                raise ValueError(f"completeness disagrees with block '{block}'")
        return self

    def has(self, block: str) -> bool:
        return block in self.completeness.present

    @classmethod
    def assemble(cls, **fields: Any) -> "FeatureContract":
        """Build a contract, deriving ``completeness`` from the blocks given."""
        present = tuple(b for b in OPTIONAL_BLOCKS if fields.get(b) is not None)
        missing = tuple(b for b in OPTIONAL_BLOCKS if fields.get(b) is None)
        fields["completeness"] = Completeness(present=present, missing=missing)
        return cls.parse(fields)

    @classmethod
    def parse(cls, data: Any) -> "FeatureContract":
        """Validate a mapping (e.g. decoded JSON) into a contract."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidFeatureContract(str(e)) from e

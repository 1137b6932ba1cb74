"""
Raw source records consumed by the Feature Composer.

Two providers feed the engine:
- Settlement source: authoritative match identity, status and
  realized stats (scores, corners, cards).
- Predictive source: pre-match expected goals, 1X2 odds, market
  potentials, team form, head-to-head and league norms.

Records are deliberately permissive (most fields optional). Whether a
record is usable is decided by the composer, which raises
InvalidSourceData for missing identity instead of fabricating it.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, List, Optional, Sequence
from pydantic import BaseModel, Field

from goalline.exceptions import InvalidSourceData


class MatchStatus(IntEnum):
    """Provider match status codes."""
    NOT_STARTED = 1
    FIRST_HALF = 2
    HALF_TIME = 3
    SECOND_HALF = 4
    OVERTIME = 5
    OVERTIME_DEPRECATED = 6
    PENALTIES = 7
    ENDED = 8

    @property
    def is_finished(self) -> bool:
        return self == MatchStatus.ENDED

    @property
    def reached_half_time(self) -> bool:
        """First half is complete, so the half-time score is final."""
        return self >= MatchStatus.HALF_TIME


def _stat_at(scores: Optional[Sequence[Any]], index: int) -> Optional[int]:
    if not scores or index >= len(scores):
        return None
    value = scores[index]
    if value is None:
        return None
    return int(value)


class SettlementRecord(BaseModel):
    """Match row from the settlement-oriented provider."""

    external_id: Optional[str] = None
    internal_id: Optional[str] = None

    home_team_id: Optional[str] = None
    away_team_id: Optional[str] = None
    home_team_name: Optional[str] = None
    away_team_name: Optional[str] = None

    competition_id: Optional[str] = None
    competition_name: Optional[str] = None

    match_time: Optional[int] = Field(None, description="Kickoff, unix seconds")
    status_id: Optional[MatchStatus] = None

    # Full time
    home_goals: Optional[int] = None
    away_goals: Optional[int] = None

    # Half time
    ht_home_goals: Optional[int] = None
    ht_away_goals: Optional[int] = None

    home_corners: Optional[int] = None
    away_corners: Optional[int] = None
    home_yellow_cards: Optional[int] = None
    away_yellow_cards: Optional[int] = None

    @classmethod
    def from_score_arrays(cls, row: Dict[str, Any]) -> "SettlementRecord":
        """
        Build a record from the provider's score-array layout.

        Both ``home_scores`` and ``away_scores`` are indexed as:
        [0] regular-time goals, [1] half-time goals, [2] red cards,
        [3] yellow cards, [4] corners. Short or absent arrays leave
        the corresponding stats unset.
        """
        home = row.get("home_scores")
        away = row.get("away_scores")

        def _str(key: str) -> Optional[str]:
            value = row.get(key)
            return None if value is None else str(value)

        external_id = _str("id") or _str("external_id")

        status = row.get("status_id")
        if status is not None:
            try:
                status = MatchStatus(int(status))
            except ValueError as e:
                raise InvalidSourceData(f"Unknown match status {status!r} for {external_id}") from e

        return cls(
            external_id=external_id,
            internal_id=_str("internal_id"),
            home_team_id=_str("home_team_id"),
            away_team_id=_str("away_team_id"),
            home_team_name=row.get("home_team_name"),
            away_team_name=row.get("away_team_name"),
            competition_id=_str("competition_id"),
            competition_name=row.get("competition_name"),
            match_time=row.get("match_time"),
            status_id=status,
            home_goals=_stat_at(home, 0),
            away_goals=_stat_at(away, 0),
            ht_home_goals=_stat_at(home, 1),
            ht_away_goals=_stat_at(away, 1),
            home_yellow_cards=_stat_at(home, 3),
            away_yellow_cards=_stat_at(away, 3),
            home_corners=_stat_at(home, 4),
            away_corners=_stat_at(away, 4),
        )


class RecentMatchRecord(BaseModel):
    """One trailing match in a predictive team-form trend."""

    home_goals: Optional[int] = None
    away_goals: Optional[int] = None
    ht_home_goals: Optional[int] = None
    ht_away_goals: Optional[int] = None
    home_corners: Optional[int] = None
    away_corners: Optional[int] = None
    home_cards: Optional[int] = None
    away_cards: Optional[int] = None


class TeamFormRecord(BaseModel):
    """Per-team form as delivered by the predictive provider."""

    recent_matches: List[RecentMatchRecord] = Field(default_factory=list)
    avg_goals_scored: Optional[float] = None
    avg_goals_conceded: Optional[float] = None
    avg_corners: Optional[float] = None
    avg_cards: Optional[float] = None


class PredictiveRecord(BaseModel):
    """Match row from the predictive-oriented provider."""

    fs_match_id: str
    linked_settlement_id: Optional[str] = Field(
        None, description="Stored cross-reference to a settlement external_id"
    )

    # Identity used for deterministic linking
    home_team_name: Optional[str] = None
    away_team_name: Optional[str] = None
    match_time: Optional[int] = None

    # Expected goals
    xg_home: Optional[float] = None
    xg_away: Optional[float] = None

    # 1X2 odds
    odds_home: Optional[float] = None
    odds_draw: Optional[float] = None
    odds_away: Optional[float] = None

    # Potentials (percentages 0-100)
    over25_potential: Optional[float] = None
    btts_potential: Optional[float] = None
    over15_potential: Optional[float] = None
    over05_ht_potential: Optional[float] = None
    over35_potential: Optional[float] = None
    corners_potential: Optional[float] = None
    cards_potential: Optional[float] = None

    # Team form
    home_form: Optional[TeamFormRecord] = None
    away_form: Optional[TeamFormRecord] = None

    # Head to head
    h2h_avg_goals: Optional[float] = None
    h2h_over25_percentage: Optional[float] = None
    h2h_btts_percentage: Optional[float] = None

    # League norms
    league_avg_goals: Optional[float] = None
    league_over25_rate: Optional[float] = None
    league_btts_rate: Optional[float] = None

    data_quality_score: Optional[float] = None

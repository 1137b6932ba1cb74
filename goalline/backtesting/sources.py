"""
Historical data sources for backtesting.

The engine never talks to a database. Callers hand it a HistoricalSource
that returns already-fetched rows for a date window:

- InMemoryHistoricalSource: rows held in a list (tests, notebooks)
- CsvHistoricalSource: a flat CSV export, one match per line (pandas)
"""

import json
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, Union

import pandas as pd

from goalline.data.schemas import (
    MatchStatus,
    PredictiveRecord,
    RecentMatchRecord,
    SettlementRecord,
    TeamFormRecord,
)
from goalline.exceptions import InvalidSourceData

logger = logging.getLogger(__name__)

DateLike = Union[str, date, datetime]


@dataclass(frozen=True)
class HistoricalRow:
    """A finished match with the predictive data available before kickoff."""
    settlement: SettlementRecord
    predictive: Optional[PredictiveRecord] = None

    @property
    def match_time(self) -> Optional[int]:
        return self.settlement.match_time


class HistoricalSource(Protocol):
    def fetch(self, start_date: DateLike, end_date: DateLike) -> List[HistoricalRow]:
        ...


def parse_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from e


def window_bounds(start_date: DateLike, end_date: DateLike) -> Tuple[int, int]:
    """Unix-second bounds covering both dates entirely (UTC)."""
    start = parse_date(start_date)
    end = parse_date(end_date)
    if end < start:
        raise ValueError(f"End date {end} is before start date {start}")
    start_ts = int(datetime.combine(start, time.min, tzinfo=timezone.utc).timestamp())
    end_ts = int(datetime.combine(end, time.max, tzinfo=timezone.utc).timestamp())
    return start_ts, end_ts


class InMemoryHistoricalSource:
    """Serves finished rows whose kickoff falls inside the window."""

    def __init__(self, rows: Iterable[HistoricalRow]):
        self.rows = list(rows)

    def fetch(self, start_date: DateLike, end_date: DateLike) -> List[HistoricalRow]:
        start_ts, end_ts = window_bounds(start_date, end_date)
        selected = [
            r for r in self.rows
            if r.match_time is not None
            and start_ts <= r.match_time <= end_ts
            and r.settlement.status_id == MatchStatus.ENDED
        ]
        selected.sort(key=lambda r: r.match_time)
        return selected


# ----------------------------------------------------------------------
# CSV
# ----------------------------------------------------------------------

SETTLEMENT_COLUMNS = [
    "external_id", "home_team_id", "away_team_id", "home_team_name", "away_team_name",
    "competition_id", "competition_name", "match_time", "status_id",
    "home_goals", "away_goals", "ht_home_goals", "ht_away_goals",
    "home_corners", "away_corners", "home_yellow_cards", "away_yellow_cards",
]

PREDICTIVE_COLUMNS = [
    "xg_home", "xg_away", "odds_home", "odds_draw", "odds_away",
    "over25_potential", "btts_potential", "over15_potential", "over05_ht_potential",
    "over35_potential", "corners_potential", "cards_potential",
    "h2h_avg_goals", "h2h_over25_percentage", "h2h_btts_percentage",
    "league_avg_goals", "league_over25_rate", "league_btts_rate",
    "data_quality_score",
]

FORM_COLUMNS = ["avg_goals_scored", "avg_goals_conceded", "avg_corners", "avg_cards"]

_INT_COLUMNS = {
    "match_time", "status_id", "home_goals", "away_goals", "ht_home_goals", "ht_away_goals",
    "home_corners", "away_corners", "home_yellow_cards", "away_yellow_cards",
}
_STR_COLUMNS = {
    "external_id", "home_team_id", "away_team_id", "home_team_name", "away_team_name",
    "competition_id", "competition_name", "fs_match_id",
}


def _clean(column: str, value: Any) -> Any:
    """NaN -> None, and coerce to the column's Python type."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    if column in _INT_COLUMNS:
        return int(value)
    if column in _STR_COLUMNS:
        return str(value)
    return float(value)


def _recent_matches(value: Any, match_id: Optional[str]) -> List[RecentMatchRecord]:
    """Decode a JSON ``*_form_recent`` cell; empty cells give no matches."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return []
    try:
        return [RecentMatchRecord(**item) for item in json.loads(value)]
    except (TypeError, ValueError) as e:
        raise InvalidSourceData(f"Invalid recent matches for {match_id}: {e}") from e


class CsvHistoricalSource:
    """
    Historical rows from a flat CSV export.

    Settlement columns use SettlementRecord field names, predictive
    columns PredictiveRecord field names (plus ``fs_match_id``), and team
    form averages are prefixed ``home_form_`` / ``away_form_``. Trailing
    matches go in ``home_form_recent`` / ``away_form_recent`` as a JSON list
    of RecentMatchRecord objects; without them the form-rate component is
    unavailable and the remaining weights are renormalized. Rows are
    kept when the match ended inside the window and its data quality
    score reaches ``min_quality``.
    """

    def __init__(self, path: Union[str, Path], min_quality: float = 0.0):
        self.path = Path(path)
        self.min_quality = min_quality

    def load(self) -> pd.DataFrame:
        if not self.path.exists():
            raise InvalidSourceData(f"Historical data file not found: {self.path}")
        df = pd.read_csv(self.path)
        missing = [c for c in ("external_id", "match_time", "status_id") if c not in df.columns]
        if missing:
            raise InvalidSourceData(f"{self.path} lacks required columns: {missing}")
        return df

    def fetch(self, start_date: DateLike, end_date: DateLike) -> List[HistoricalRow]:
        start_ts, end_ts = window_bounds(start_date, end_date)
        df = self.load()

        mask = (
            (df["status_id"] == int(MatchStatus.ENDED))
            & (df["match_time"] >= start_ts)
            & (df["match_time"] <= end_ts)
        )
        if self.min_quality > 0 and "data_quality_score" in df.columns:
            mask &= df["data_quality_score"] >= self.min_quality

        window = df[mask].sort_values("match_time")
        logger.info(f"Loaded {len(window)}/{len(df)} historical rows from {self.path.name}")

        return [self._row(record) for record in window.to_dict(orient="records")]

    @staticmethod
    def _row(record: Dict[str, Any]) -> HistoricalRow:
        settlement = SettlementRecord(**{
            c: _clean(c, record.get(c)) for c in SETTLEMENT_COLUMNS if c in record
        })

        fs_match_id = _clean("fs_match_id", record.get("fs_match_id"))
        if fs_match_id is None:
            return HistoricalRow(settlement=settlement)

        fields: Dict[str, Any] = {
            c: _clean(c, record.get(c)) for c in PREDICTIVE_COLUMNS if c in record
        }
        for side in ("home", "away"):
            form: Dict[str, Any] = {c: _clean(c, record.get(f"{side}_form_{c}")) for c in FORM_COLUMNS}
            recent = _recent_matches(record.get(f"{side}_form_recent"), settlement.external_id)
            if recent or any(v is not None for v in form.values()):
                fields[f"{side}_form"] = TeamFormRecord(recent_matches=recent, **form)

        predictive = PredictiveRecord(
            fs_match_id=fs_match_id,
            linked_settlement_id=settlement.external_id,
            home_team_name=settlement.home_team_name,
            away_team_name=settlement.away_team_name,
            match_time=settlement.match_time,
            **fields,
        )
        return HistoricalRow(settlement=settlement, predictive=predictive)

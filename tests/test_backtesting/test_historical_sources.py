"""
Tests for backtesting.sources — date windows, in-memory and CSV sources
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import json
from datetime import date, datetime

import pandas as pd
import pytest

from goalline.backtesting import (
    CsvHistoricalSource,
    HistoricalRow,
    InMemoryHistoricalSource,
    parse_date,
    window_bounds,
)
from goalline.data.schemas import MatchStatus, SettlementRecord
from goalline.exceptions import InvalidSourceData

JAN_15 = 1_736_942_400  # 2025-01-15 12:00 UTC
DAY = 86_400


def _csv_row(i, status=MatchStatus.ENDED, quality=80.0, predictive=True) -> dict:
    row = {
        "external_id": f"ts-{i}",
        "home_team_name": f"Home {i}",
        "away_team_name": f"Away {i}",
        "competition_name": "Premier League",
        "match_time": JAN_15 + i * DAY,
        "status_id": int(status),
        "home_goals": 2,
        "away_goals": 1,
        "home_corners": 6,
        "away_corners": 3,
    }
    if predictive:
        row.update({
            "fs_match_id": f"fs-{i}",
            "xg_home": 1.5,
            "xg_away": 1.1,
            "over25_potential": 64,
            "data_quality_score": quality,
            "home_form_avg_goals_scored": 1.7,
            "home_form_avg_corners": 5.1,
        })
    return row


def _write_csv(tmp_path, rows) -> Path:
    path = tmp_path / "history.csv"
    pd.DataFrame(rows).to_csv(path, index=False)
    return path


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

class TestDates:

    def test_parse_date_inputs(self):
        assert parse_date("2025-01-15") == date(2025, 1, 15)
        assert parse_date(date(2025, 1, 15)) == date(2025, 1, 15)
        assert parse_date(datetime(2025, 1, 15, 18, 30)) == date(2025, 1, 15)

    def test_parse_date_rejects_other_formats(self):
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            parse_date("15/01/2025")

    def test_window_covers_end_day(self):
        start, end = window_bounds("2025-01-14", "2025-01-15")
        assert start == JAN_15 - 12 * 3600 - DAY
        assert end == JAN_15 + 12 * 3600 - 1

    def test_window_rejects_reversed_range(self):
        with pytest.raises(ValueError):
            window_bounds("2025-01-16", "2025-01-15")


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class TestInMemorySource:

    def _row(self, i, status=MatchStatus.ENDED, match_time=None) -> HistoricalRow:
        return HistoricalRow(settlement=SettlementRecord(
            external_id=f"ts-{i}",
            match_time=JAN_15 + i * DAY if match_time is None else match_time,
            status_id=status,
        ))

    def test_sorted_by_kickoff(self):
        source = InMemoryHistoricalSource([self._row(3), self._row(1), self._row(2)])
        rows = source.fetch("2025-01-01", "2025-01-31")
        assert [r.settlement.external_id for r in rows] == ["ts-1", "ts-2", "ts-3"]

    def test_only_finished_matches(self):
        source = InMemoryHistoricalSource([
            self._row(1), self._row(2, MatchStatus.NOT_STARTED), self._row(3, MatchStatus.HALF_TIME),
        ])
        assert len(source.fetch("2025-01-01", "2025-01-31")) == 1

    def test_window(self):
        source = InMemoryHistoricalSource([self._row(i) for i in range(-3, 4)])
        rows = source.fetch("2025-01-15", "2025-01-16")
        assert [r.settlement.external_id for r in rows] == ["ts-0", "ts-1"]


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

class TestCsvSource:

    def test_loads_finished_rows_in_window(self, tmp_path):
        path = _write_csv(tmp_path, [
            _csv_row(0), _csv_row(1), _csv_row(2, status=MatchStatus.NOT_STARTED), _csv_row(40),
        ])
        rows = CsvHistoricalSource(path).fetch("2025-01-01", "2025-01-31")
        assert [r.settlement.external_id for r in rows] == ["ts-0", "ts-1"]

    def test_settlement_fields(self, tmp_path):
        path = _write_csv(tmp_path, [_csv_row(0)])
        settlement = CsvHistoricalSource(path).fetch("2025-01-15", "2025-01-15")[0].settlement
        assert settlement.status_id == MatchStatus.ENDED
        assert settlement.match_time == JAN_15
        assert settlement.home_goals == 2
        assert settlement.home_corners == 6
        assert settlement.ht_home_goals is None

    def test_predictive_record(self, tmp_path):
        path = _write_csv(tmp_path, [_csv_row(0)])
        predictive = CsvHistoricalSource(path).fetch("2025-01-15", "2025-01-15")[0].predictive
        assert predictive.fs_match_id == "fs-0"
        assert predictive.linked_settlement_id == "ts-0"
        assert predictive.home_team_name == "Home 0"
        assert predictive.xg_home == pytest.approx(1.5)
        assert predictive.over25_potential == pytest.approx(64)
        assert predictive.odds_home is None

    def test_form_columns(self, tmp_path):
        path = _write_csv(tmp_path, [_csv_row(0)])
        predictive = CsvHistoricalSource(path).fetch("2025-01-15", "2025-01-15")[0].predictive
        assert predictive.home_form.avg_goals_scored == pytest.approx(1.7)
        assert predictive.home_form.avg_corners == pytest.approx(5.1)
        assert predictive.home_form.avg_cards is None
        assert predictive.away_form is None

    def test_recent_match_columns(self, tmp_path):
        row = _csv_row(0)
        row["home_form_recent"] = json.dumps([
            {"home_goals": 2, "away_goals": 1},
            {"home_goals": 0, "away_goals": 0, "home_corners": 4, "away_corners": 6},
        ])
        path = _write_csv(tmp_path, [row, _csv_row(1)])
        rows = CsvHistoricalSource(path).fetch("2025-01-01", "2025-01-31")

        recent = rows[0].predictive.home_form.recent_matches
        assert [(m.home_goals, m.away_goals) for m in recent] == [(2, 1), (0, 0)]
        assert recent[1].away_corners == 6
        assert rows[1].predictive.home_form.recent_matches == []

    def test_recent_matches_alone_build_form(self, tmp_path):
        row = _csv_row(0)
        row["away_form_recent"] = json.dumps([{"home_goals": 1, "away_goals": 3}])
        path = _write_csv(tmp_path, [row])
        predictive = CsvHistoricalSource(path).fetch("2025-01-15", "2025-01-15")[0].predictive
        assert len(predictive.away_form.recent_matches) == 1
        assert predictive.away_form.avg_goals_scored is None

    def test_invalid_recent_matches(self, tmp_path):
        row = _csv_row(0)
        row["home_form_recent"] = "[{not json"
        path = _write_csv(tmp_path, [row])
        with pytest.raises(InvalidSourceData, match="Invalid recent matches for ts-0"):
            CsvHistoricalSource(path).fetch("2025-01-01", "2025-01-31")

    def test_rows_without_predictive_data(self, tmp_path):
        path = _write_csv(tmp_path, [_csv_row(0), _csv_row(1, predictive=False)])
        rows = CsvHistoricalSource(path).fetch("2025-01-01", "2025-01-31")
        assert rows[0].predictive is not None
        assert rows[1].predictive is None

    def test_quality_filter(self, tmp_path):
        path = _write_csv(tmp_path, [_csv_row(0, quality=90), _csv_row(1, quality=40)])
        assert len(CsvHistoricalSource(path).fetch("2025-01-01", "2025-01-31")) == 2
        rows = CsvHistoricalSource(path, min_quality=50).fetch("2025-01-01", "2025-01-31")
        assert [r.settlement.external_id for r in rows] == ["ts-0"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidSourceData, match="not found"):
            CsvHistoricalSource(tmp_path / "nope.csv").fetch("2025-01-01", "2025-01-31")

    def test_missing_required_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame([{"external_id": "ts-1", "match_time": JAN_15}]).to_csv(path, index=False)
        with pytest.raises(InvalidSourceData, match="status_id"):
            CsvHistoricalSource(path).fetch("2025-01-01", "2025-01-31")

"""
Tests for backtesting.engine — replay, settle, aggregate, validate
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import logging

import pytest

from goalline.backtesting import (
    BacktestConfig,
    BacktestEngine,
    HistoricalRow,
    InMemoryHistoricalSource,
    window_bounds,
)
from goalline.config import load_registry
from goalline.data.schemas import (
    MatchStatus,
    PredictiveRecord,
    RecentMatchRecord,
    SettlementRecord,
    TeamFormRecord,
)
from goalline.exceptions import InsufficientData, UnknownMarket

JAN_15 = 1_736_942_400  # 2025-01-15 12:00 UTC
DAY = 86_400

# Pooled trailing totals give an O25 form rate of 0.6
HOME_TOTALS = [(2, 1), (3, 1), (1, 0), (2, 2), (0, 0)]
AWAY_TOTALS = [(1, 1), (2, 2), (3, 0), (1, 0), (2, 1)]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _form(totals, scored) -> TeamFormRecord:
    return TeamFormRecord(
        recent_matches=[RecentMatchRecord(home_goals=h, away_goals=a) for h, a in totals],
        avg_goals_scored=scored,
        avg_goals_conceded=1.2,
        avg_corners=5.0,
        avg_cards=2.0,
    )


def _row(i, goals=(2, 1), predictive=True, status=MatchStatus.ENDED, **settlement) -> HistoricalRow:
    home_goals, away_goals = goals
    record = SettlementRecord(**{
        "external_id": f"ts-{i}",
        "home_team_name": f"Home {i}",
        "away_team_name": f"Away {i}",
        "match_time": JAN_15 + i * DAY,
        "status_id": status,
        "home_goals": home_goals,
        "away_goals": away_goals,
        **settlement,
    })
    if not predictive:
        return HistoricalRow(settlement=record)

    return HistoricalRow(settlement=record, predictive=PredictiveRecord(
        fs_match_id=f"fs-{i}",
        xg_home=1.6,
        xg_away=1.3,
        odds_home=2.1,
        odds_draw=3.4,
        odds_away=3.5,
        over25_potential=68,
        btts_potential=62,
        over15_potential=82,
        home_form=_form(HOME_TOTALS, 1.8),
        away_form=_form(AWAY_TOTALS, 1.4),
        h2h_avg_goals=3.0,
        h2h_over25_percentage=60,
        h2h_btts_percentage=55,
        league_avg_goals=2.8,
        league_over25_rate=0.55,
        league_btts_rate=0.52,
    ))


def _engine(rows, **config) -> BacktestEngine:
    config.setdefault("min_matches", 1)
    return BacktestEngine(load_registry(), InMemoryHistoricalSource(rows), BacktestConfig(**config))


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------

class TestBacktestRun:

    def test_aggregates(self):
        rows = [_row(i, goals=(2, 1)) for i in range(6)] + [_row(i, goals=(1, 0)) for i in range(6, 10)]
        result = _engine(rows).run("O25", "2025-01-01", "2025-01-31")

        assert result.total_rows == 10
        assert result.total_predictions == 10
        assert (result.won, result.lost, result.void) == (6, 4, 0)
        assert result.total_settled == 10
        assert result.hit_rate == pytest.approx(0.6)
        assert result.roi == pytest.approx(0.2)
        assert result.avg_confidence == pytest.approx(100)
        assert result.avg_probability == pytest.approx(0.6203, abs=1e-3)
        assert result.calibration_error == pytest.approx(abs(result.avg_probability - 0.6))
        assert result.validation_passed is True
        assert result.validation_notes == "All thresholds met"
        assert result.backtest_period == "2025-01-01 to 2025-01-31"

    def test_calibration_curve(self):
        rows = [_row(i) for i in range(4)]
        result = _engine(rows).run("O25", "2025-01-01", "2025-01-31")
        assert len(result.calibration_curve) == 10
        populated = [b for b in result.calibration_curve if b.count]
        assert [b.bucket for b in populated] == ["60-70%"]
        assert populated[0].actual_rate == 1.0

    def test_all_void(self):
        rows = [_row(i, goals=(None, None)) for i in range(5)]
        result = _engine(rows).run("O25", "2025-01-01", "2025-01-31")
        assert result.total_predictions == 5
        assert result.void == 5
        assert result.total_settled == 0
        assert result.hit_rate == 0.0
        assert result.roi == 0.0
        assert result.calibration_error == 0.0
        assert result.hit_rate_pvalue == 1.0
        assert result.validation_passed is False
        assert "Hit rate 0.00% below threshold 58%" in result.validation_notes

    def test_only_yes_picks_counted(self):
        rows = [_row(i) for i in range(3)] + [_row(i, predictive=False) for i in range(3, 8)]
        result = _engine(rows).run("O25", "2025-01-01", "2025-01-31")
        assert result.total_rows == 8
        assert result.total_predictions == 3

    def test_min_confidence_filter(self):
        rows = [_row(i) for i in range(3)]
        engine = _engine(rows)
        assert engine.run("O25", "2025-01-01", "2025-01-31", min_confidence=100).total_predictions == 3
        assert engine.run("O25", "2025-01-01", "2025-01-31", min_confidence=101).total_predictions == 0

    def test_window_filters_rows(self):
        rows = [_row(i) for i in range(10)]  # Jan 15 .. Jan 24
        result = _engine(rows).run("O25", "2025-01-15", "2025-01-17")
        assert result.total_rows == 3

    def test_unfinished_rows_ignored(self):
        rows = [_row(0), _row(1, status=MatchStatus.SECOND_HALF)]
        result = _engine(rows).run("O25", "2025-01-01", "2025-01-31")
        assert result.total_rows == 1

    def test_invalid_row_skipped(self, caplog):
        rows = [_row(0), _row(1, home_team_name=None)]
        with caplog.at_level(logging.WARNING):
            result = _engine(rows).run("O25", "2025-01-01", "2025-01-31")
        assert result.total_predictions == 1
        assert "Skipping historical row ts-1" in caplog.text

    def test_thread_pool_matches_sequential(self):
        rows = [_row(i, goals=(i % 3, 1)) for i in range(12)]
        sequential = _engine(rows).run("O25", "2025-01-01", "2025-01-31")
        parallel = _engine(rows, max_workers=4).run("O25", "2025-01-01", "2025-01-31")
        assert parallel.to_dict() == sequential.to_dict()

    def test_run_all(self):
        rows = [_row(i) for i in range(3)]
        results = _engine(rows).run_all("2025-01-01", "2025-01-31")
        assert list(results) == load_registry().ids()

    def test_to_dict(self):
        result = _engine([_row(0)]).run("O25", "2025-01-01", "2025-01-31", min_confidence=55)
        data = result.to_dict()
        assert data["market_id"] == "O25"
        assert data["min_confidence"] == 55
        assert len(data["calibration_curve"]) == 10
        assert data["total_settled"] == 1


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TestBacktestErrors:

    def test_insufficient_data(self):
        rows = [_row(i) for i in range(10)]
        with pytest.raises(InsufficientData) as exc_info:
            _engine(rows, min_matches=100).run("O25", "2025-01-01", "2025-01-31")
        assert exc_info.value.found == 10
        assert exc_info.value.required == 100

    def test_min_matches_argument_overrides_config(self):
        rows = [_row(i) for i in range(10)]
        result = _engine(rows, min_matches=100).run("O25", "2025-01-01", "2025-01-31", min_matches=5)
        assert result.total_rows == 10

    def test_unknown_market(self):
        with pytest.raises(UnknownMarket):
            _engine([_row(0)]).run("NOPE", "2025-01-01", "2025-01-31")

    def test_bad_dates(self):
        with pytest.raises(ValueError):
            _engine([_row(0)]).run("O25", "2025-02-01", "2025-01-01")
        with pytest.raises(ValueError):
            _engine([_row(0)]).run("O25", "01/01/2025", "2025-01-31")

    def test_window_bounds_inclusive(self):
        start, end = window_bounds("2025-01-15", "2025-01-15")
        assert start <= JAN_15 <= end
        assert end - start == DAY - 1

"""
Tests for backtesting.settlement and backtesting.metrics
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest

from goalline.backtesting import MetricsCalculator, Outcome, settle
from goalline.config.registry import SettlementRule, ValidationThresholds
from goalline.data.schemas import MatchStatus, SettlementRecord


def _record(**stats) -> SettlementRecord:
    return SettlementRecord(external_id="m1", status_id=MatchStatus.ENDED, **stats)


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------

class TestSettle:

    def test_total_goals(self):
        rule = SettlementRule(stat="total_goals", threshold=3)
        assert settle(rule, _record(home_goals=2, away_goals=1)) == Outcome.WIN
        assert settle(rule, _record(home_goals=1, away_goals=1)) == Outcome.LOSS

    def test_both_scored(self):
        rule = SettlementRule(stat="both_scored", threshold=1)
        assert settle(rule, _record(home_goals=1, away_goals=1)) == Outcome.WIN
        assert settle(rule, _record(home_goals=3, away_goals=0)) == Outcome.LOSS

    def test_half_time(self):
        rule = SettlementRule(stat="ht_total_goals", threshold=1)
        assert settle(rule, _record(ht_home_goals=0, ht_away_goals=1)) == Outcome.WIN
        assert settle(rule, _record(ht_home_goals=0, ht_away_goals=0)) == Outcome.LOSS

    def test_home_goals(self):
        rule = SettlementRule(stat="home_goals", threshold=2)
        assert settle(rule, _record(home_goals=2, away_goals=0)) == Outcome.WIN

    def test_cards_count_yellows(self):
        rule = SettlementRule(stat="total_cards", threshold=3)
        assert settle(rule, _record(home_yellow_cards=2, away_yellow_cards=1)) == Outcome.WIN

    def test_missing_stat_is_void(self):
        rule = SettlementRule(stat="total_corners", threshold=9)
        assert settle(rule, _record(home_goals=2, away_goals=1)) == Outcome.VOID
        assert settle(rule, _record(home_corners=5)) == Outcome.VOID


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

class TestPerformance:

    def test_hit_rate_and_roi(self):
        perf = MetricsCalculator(assumed_odds=2.0).performance(won=6, lost=4, void=2)
        assert perf.hit_rate == pytest.approx(0.6)
        assert perf.roi == pytest.approx(0.2)
        assert perf.settled == 10

    def test_nothing_settled(self):
        perf = MetricsCalculator().performance(won=0, lost=0, void=7)
        assert perf.hit_rate == 0.0
        assert perf.roi == 0.0

    def test_assumed_odds_must_exceed_one(self):
        with pytest.raises(ValueError):
            MetricsCalculator(assumed_odds=1.0)

    def test_pvalue(self):
        calc = MetricsCalculator(assumed_odds=2.0)
        assert calc.hit_rate_pvalue(6, 4) == pytest.approx(386 / 1024)
        assert calc.hit_rate_pvalue(0, 0) == 1.0


class TestCalibration:

    def test_ten_buckets(self):
        curve = MetricsCalculator.calibration_curve([], [])
        assert len(curve) == 10
        assert curve[0].bucket == "0-10%"
        assert curve[-1].bucket == "90-100%"
        assert all(b.count == 0 for b in curve)
        assert MetricsCalculator.calibration_error(curve) == 0.0

    def test_bucket_assignment(self):
        curve = MetricsCalculator.calibration_curve([0.0, 0.05, 0.65, 0.62, 1.0], [False, False, True, False, True])
        assert curve[0].count == 2
        assert curve[6].count == 2
        assert curve[9].count == 1
        assert curve[6].avg_predicted == pytest.approx(0.635)
        assert curve[6].actual_rate == pytest.approx(0.5)
        assert curve[6].error == pytest.approx(0.135)

    def test_bucket_lower_edges_inclusive(self):
        curve = MetricsCalculator.calibration_curve([0.3, 0.6, 0.7, 0.1], [True] * 4)
        counts = {b.bucket: b.count for b in curve if b.count}
        assert counts == {"10-20%": 1, "30-40%": 1, "60-70%": 1, "70-80%": 1}

    def test_error_is_count_weighted(self):
        probs = [0.62] * 3 + [0.85]
        outcomes = [True, True, False, True]
        curve = MetricsCalculator.calibration_curve(probs, outcomes)
        # bucket 60-70%: |0.62 - 2/3|, bucket 80-90%: |0.85 - 1|
        expected = (3 * abs(0.62 - 2 / 3) + 1 * 0.15) / 4
        assert MetricsCalculator.calibration_error(curve) == pytest.approx(expected)

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            MetricsCalculator.calibration_curve([0.5], [])

    def test_bucket_to_dict(self):
        curve = MetricsCalculator.calibration_curve([0.61], [True])
        assert curve[6].to_dict() == {
            "bucket": "60-70%", "lower": 0.6, "upper": 0.7, "count": 1,
            "avg_predicted": 0.61, "actual_rate": 1.0, "error": 0.39,
        }


class TestValidate:

    THRESHOLDS = ValidationThresholds(min_hit_rate=0.58, min_roi=0.05, max_calibration_error=0.08)

    def test_all_pass(self):
        assert MetricsCalculator.validate(0.6, 0.2, 0.02, self.THRESHOLDS) == []

    def test_every_failure_listed(self):
        notes = MetricsCalculator.validate(0.5, -0.1, 0.12, self.THRESHOLDS)
        assert notes == [
            "Hit rate 50.00% below threshold 58%",
            "ROI -10.00% below threshold 5%",
            "Calibration error 12.00% above threshold 8%",
        ]

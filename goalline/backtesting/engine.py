"""
Backtesting Engine
==================

Replays the Market Scorer over a historical window:
1. Fetch finished matches from a HistoricalSource
2. Compose a FeatureContract per row and score the market
3. Settle every YES pick against the realized match (WIN/LOSS/VOID)
4. Reduce to hit rate, ROI, calibration and a validation verdict

Rows are independent; the map step can fan out on a thread pool and the
only shared state is the final reduction.

Usage:
    engine = BacktestEngine(registry, CsvHistoricalSource("history.csv"))
    result = engine.run("O25", "2025-01-01", "2025-03-31")
    print(f"Hit rate: {result.hit_rate:.2%}")
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

import numpy as np
from tqdm import tqdm

from goalline.config.registry import MarketDefinition, MarketRegistry
from goalline.exceptions import InsufficientData, InvalidFeatureContract, InvalidSourceData
from goalline.features import DEFAULT_LINK_WINDOW_SECONDS, FeatureComposer, InMemoryPredictiveLookup
from goalline.scoring import MarketScorer

from .metrics import CalibrationBucket, MetricsCalculator
from .settlement import Outcome, settle
from .sources import DateLike, HistoricalRow, HistoricalSource, parse_date

logger = logging.getLogger(__name__)


@dataclass
class BacktestConfig:
    """Configuration for backtesting."""
    min_matches: int = 100
    min_confidence: Optional[int] = None
    assumed_odds: float = 2.0  # flat decimal price for ROI
    max_workers: int = 1
    show_progress: bool = False
    link_window_seconds: int = DEFAULT_LINK_WINDOW_SECONDS


@dataclass
class BacktestResult:
    """Results for one market over one date range."""
    market_id: str
    start_date: str
    end_date: str
    total_predictions: int
    won: int
    lost: int
    void: int
    hit_rate: float
    roi: float
    avg_confidence: float
    avg_probability: float
    calibration_error: float
    calibration_curve: List[CalibrationBucket]
    validation_passed: bool
    validation_notes: str

    # Extended
    total_rows: int = 0
    hit_rate_pvalue: float = 1.0
    min_confidence: Optional[int] = None
    assumed_odds: float = 2.0

    @property
    def backtest_period(self) -> str:
        return f"{self.start_date} to {self.end_date}"

    @property
    def total_settled(self) -> int:
        return self.won + self.lost

    def to_dict(self) -> dict:
        return {
            "market_id": self.market_id,
            "backtest_period": self.backtest_period,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "total_rows": self.total_rows,
            "total_predictions": self.total_predictions,
            "total_settled": self.total_settled,
            "won": self.won,
            "lost": self.lost,
            "void": self.void,
            "hit_rate": round(self.hit_rate, 4),
            "roi": round(self.roi, 4),
            "avg_confidence": round(self.avg_confidence, 2),
            "avg_probability": round(self.avg_probability, 4),
            "calibration_error": round(self.calibration_error, 4),
            "calibration_curve": [b.to_dict() for b in self.calibration_curve],
            "validation_passed": self.validation_passed,
            "validation_notes": self.validation_notes,
            "hit_rate_pvalue": round(self.hit_rate_pvalue, 4),
            "min_confidence": self.min_confidence,
            "assumed_odds": self.assumed_odds,
        }


@dataclass(frozen=True)
class _Prediction:
    match_id: str
    probability: float
    confidence: int
    outcome: Outcome


class BacktestEngine:
    """
    Validates a market's model against realized outcomes.

    The scorer and composer are injectable; by default they are built
    from the registry and config.
    """

    def __init__(
        self,
        registry: MarketRegistry,
        source: HistoricalSource,
        config: Optional[BacktestConfig] = None,
        scorer: Optional[MarketScorer] = None,
        composer: Optional[FeatureComposer] = None,
    ):
        self.registry = registry
        self.source = source
        self.config = config or BacktestConfig()
        self.scorer = scorer or MarketScorer(registry)
        self.composer = composer or FeatureComposer(self.config.link_window_seconds)
        self.metrics = MetricsCalculator(self.config.assumed_odds)

    def run(
        self,
        market_id: str,
        start_date: DateLike,
        end_date: DateLike,
        min_matches: Optional[int] = None,
        min_confidence: Optional[int] = None,
    ) -> BacktestResult:
        market = self.registry.get(market_id)
        min_matches = self.config.min_matches if min_matches is None else min_matches
        min_confidence = self.config.min_confidence if min_confidence is None else min_confidence
        start, end = parse_date(start_date), parse_date(end_date)

        rows = self.source.fetch(start, end)
        logger.info(f"Backtest {market.id} {start} to {end}: {len(rows)} historical matches")
        if len(rows) < min_matches:
            raise InsufficientData(len(rows), min_matches)

        predictions = [
            p for p in self._map(market, rows, min_confidence) if p is not None
        ]
        result = self._reduce(market, predictions, start, end, len(rows), min_confidence)

        logger.info(
            f"Backtest {market.id}: {result.total_predictions} picks, "
            f"{result.won}W/{result.lost}L/{result.void}V, hit={result.hit_rate:.2%}, "
            f"roi={result.roi:.2%}, cal_err={result.calibration_error:.2%}, "
            f"passed={result.validation_passed}"
        )
        return result

    # ------------------------------------------------------------------
    # Map
    # ------------------------------------------------------------------

    def _map(
        self,
        market: MarketDefinition,
        rows: List[HistoricalRow],
        min_confidence: Optional[int],
    ) -> List[Optional[_Prediction]]:
        def task(row: HistoricalRow) -> Optional[_Prediction]:
            return self._predict(market, row, min_confidence)

        progress = dict(total=len(rows), desc=f"Backtest {market.id}", disable=not self.config.show_progress)

        if self.config.max_workers <= 1:
            return [task(row) for row in tqdm(rows, **progress)]

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            return list(tqdm(executor.map(task, rows), **progress))

    def _predict(
        self,
        market: MarketDefinition,
        row: HistoricalRow,
        min_confidence: Optional[int],
    ) -> Optional[_Prediction]:
        settlement = row.settlement
        lookup = None
        if row.predictive is not None:
            lookup = InMemoryPredictiveLookup(
                [row.predictive],
                mapping={settlement.external_id: row.predictive.fs_match_id},
            )

        try:
            contract = self.composer.compose(settlement, lookup).contract
        except (InvalidSourceData, InvalidFeatureContract) as e:
            logger.warning(f"Skipping historical row {settlement.external_id}: {e}")
            return None

        result = self.scorer.score(market.id, contract)
        if not result.is_yes:
            return None
        if min_confidence is not None and result.confidence < min_confidence:
            return None

        return _Prediction(
            match_id=result.match_id,
            probability=result.probability,
            confidence=result.confidence,
            outcome=settle(market.settlement, settlement),
        )

    # ------------------------------------------------------------------
    # Reduce
    # ------------------------------------------------------------------

    def _reduce(
        self,
        market: MarketDefinition,
        predictions: List[_Prediction],
        start: date,
        end: date,
        total_rows: int,
        min_confidence: Optional[int],
    ) -> BacktestResult:
        won = sum(1 for p in predictions if p.outcome == Outcome.WIN)
        lost = sum(1 for p in predictions if p.outcome == Outcome.LOSS)
        void = sum(1 for p in predictions if p.outcome == Outcome.VOID)
        perf = self.metrics.performance(won, lost, void)

        settled = [p for p in predictions if p.outcome != Outcome.VOID]
        curve = self.metrics.calibration_curve(
            [p.probability for p in settled],
            [p.outcome == Outcome.WIN for p in settled],
        )
        calibration_error = self.metrics.calibration_error(curve)

        avg_confidence = float(np.mean([p.confidence for p in predictions])) if predictions else 0.0
        avg_probability = float(np.mean([p.probability for p in predictions])) if predictions else 0.0

        notes = self.metrics.validate(perf.hit_rate, perf.roi, calibration_error, market.validation)

        return BacktestResult(
            market_id=market.id,
            start_date=start.isoformat(),
            end_date=end.isoformat(),
            total_predictions=len(predictions),
            won=won,
            lost=lost,
            void=void,
            hit_rate=perf.hit_rate,
            roi=perf.roi,
            avg_confidence=avg_confidence,
            avg_probability=avg_probability,
            calibration_error=calibration_error,
            calibration_curve=curve,
            validation_passed=not notes,
            validation_notes="; ".join(notes) if notes else "All thresholds met",
            total_rows=total_rows,
            hit_rate_pvalue=self.metrics.hit_rate_pvalue(won, lost),
            min_confidence=min_confidence,
            assumed_odds=self.config.assumed_odds,
        )

    def run_all(
        self,
        start_date: DateLike,
        end_date: DateLike,
        min_matches: Optional[int] = None,
        min_confidence: Optional[int] = None,
    ) -> Dict[str, BacktestResult]:
        """Backtest every registry market over the same window."""
        return {
            market_id: self.run(market_id, start_date, end_date, min_matches, min_confidence)
            for market_id in self.registry.ids()
        }

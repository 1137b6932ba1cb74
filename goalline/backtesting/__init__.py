"""
Backtesting package - replay scoring over finished matches and validate.

Usage:
    from goalline.backtesting import BacktestEngine, CsvHistoricalSource

    engine = BacktestEngine(registry, CsvHistoricalSource("history.csv"))
    result = engine.run("BTTS", "2025-01-01", "2025-03-31")
"""

from .settlement import Outcome, settle
from .metrics import CalibrationBucket, PerformanceSummary, MetricsCalculator
from .sources import (
    HistoricalRow,
    HistoricalSource,
    InMemoryHistoricalSource,
    CsvHistoricalSource,
    parse_date,
    window_bounds,
)
from .engine import BacktestConfig, BacktestResult, BacktestEngine
from .report import render_markdown, write_markdown_report, write_json_report

__all__ = [
    "Outcome",
    "settle",
    "CalibrationBucket",
    "PerformanceSummary",
    "MetricsCalculator",
    "HistoricalRow",
    "HistoricalSource",
    "InMemoryHistoricalSource",
    "CsvHistoricalSource",
    "parse_date",
    "window_bounds",
    "BacktestConfig",
    "BacktestResult",
    "BacktestEngine",
    "render_markdown",
    "write_markdown_report",
    "write_json_report",
]

"""Markdown and JSON reports for backtest runs."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from .engine import BacktestResult

logger = logging.getLogger(__name__)


def _pct(value: float, digits: int = 2) -> str:
    return f"{value * 100:.{digits}f}%"


def render_markdown(
    results: List[BacktestResult],
    start_date: str,
    end_date: str,
    generated_at: Optional[datetime] = None,
) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    lines = [
        "# Backtest Results",
        "",
        f"**Date**: {generated_at.isoformat()}",
        f"**Period**: {start_date} to {end_date}",
        "",
        "---",
        "",
        "## Summary",
        "",
        "| Market | Predictions | Hit Rate | ROI | Calibration Error | Validation |",
        "|--------|-------------|----------|-----|-------------------|------------|",
    ]
    for r in results:
        status = "✅ PASS" if r.validation_passed else "❌ FAIL"
        lines.append(
            f"| **{r.market_id}** | {r.total_predictions} | {_pct(r.hit_rate)} | "
            f"{_pct(r.roi)} | {_pct(r.calibration_error)} | {status} |"
        )
    lines += ["", "---", ""]

    for r in results:
        lines += [
            f"## {r.market_id} - Detailed Results",
            "",
            "### Performance Metrics",
            "",
            f"- **Total Predictions**: {r.total_predictions}",
            f"- **Settled**: {r.total_settled} (Won: {r.won}, Lost: {r.lost}, Void: {r.void})",
            f"- **Hit Rate**: {_pct(r.hit_rate)} (p={r.hit_rate_pvalue:.4f} vs. break-even)",
            f"- **ROI**: {_pct(r.roi)} (flat stake @ {r.assumed_odds:.2f})",
            f"- **Avg Confidence**: {r.avg_confidence:.1f}",
            f"- **Avg Probability**: {_pct(r.avg_probability, 1)}",
            "",
            "### Calibration Analysis",
            "",
            f"- **Overall Calibration Error**: {_pct(r.calibration_error)}",
            "",
            "| Bucket | Predicted | Actual | Error | Count |",
            "|--------|-----------|--------|-------|-------|",
        ]
        for b in r.calibration_curve:
            lines.append(
                f"| {b.bucket} | {_pct(b.avg_predicted, 1)} | {_pct(b.actual_rate, 1)} | "
                f"{_pct(b.error, 1)} | {b.count} |"
            )
        lines += [
            "",
            "### Validation",
            "",
            "✅ **PASSED**" if r.validation_passed else "❌ **FAILED**",
            "",
            r.validation_notes,
            "",
            "---",
            "",
        ]

    lines += [
        "## Next Steps",
        "",
        "1. Review failed markets and analyze root causes",
        "2. Adjust thresholds in market_registry.json if needed",
        "3. Investigate calibration errors > 10%",
        "4. Consider expanding historical data if sample size < 300",
        "",
    ]
    return "\n".join(lines)


def write_markdown_report(
    results: List[BacktestResult],
    start_date: str,
    end_date: str,
    out_dir: Union[str, Path],
) -> Path:
    """Write BACKTEST_RESULTS_<start>_<end>_<today>.md under ``out_dir``."""
    now = datetime.now(timezone.utc)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    path = out_dir / f"BACKTEST_RESULTS_{start_date}_{end_date}_{now.date().isoformat()}.md"
    path.write_text(render_markdown(results, start_date, end_date, now), encoding="utf-8")
    logger.info(f"Backtest report saved to {path}")
    return path


def write_json_report(results: List[BacktestResult], path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps([r.to_dict() for r in results], indent=2))
    logger.info(f"Backtest results saved to {path}")
    return path

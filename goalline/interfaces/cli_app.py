"""
GOALLINE Command Line Interface
===============================

Usage:
    goalline markets
    goalline score --features contract.json --market O25
    goalline backtest --market all --from 2025-01-01 --to 2025-03-31 --data history.csv --save
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

import click

from goalline.backtesting import (
    BacktestConfig,
    BacktestEngine,
    BacktestResult,
    CsvHistoricalSource,
    write_json_report,
    write_markdown_report,
)
from goalline.config import Config, MarketRegistry, load_registry
from goalline.exceptions import GoallineError
from goalline.scoring import MarketScorer
from goalline.strategy import PublishEligibilityGate

logger = logging.getLogger(__name__)


def _registry(ctx) -> MarketRegistry:
    return ctx.obj["registry"]


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--registry", "-r", "registry_path", type=click.Path(exists=True, dir_okay=False),
              help="Market registry JSON (defaults to the packaged one)")
@click.pass_context
def cli(ctx, verbose: bool, registry_path: Optional[str]):
    """GOALLINE - Football market scoring and publish gating"""
    ctx.ensure_object(dict)
    config = Config()
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        registry = load_registry(registry_path) if registry_path else config.load_registry()
    except GoallineError as e:
        click.echo(f"❌ Registry error: {e}", err=True)
        ctx.exit(2)

    ctx.obj.update(config=config, registry=registry, verbose=verbose)


@cli.command()
@click.pass_context
def markets(ctx):
    """List the markets in the registry."""
    registry = _registry(ctx)
    click.echo(f"\n📋 Market registry v{registry.version} ({len(registry.markets)} markets)\n")
    for market in registry.markets.values():
        policy = market.list_policy
        components = ", ".join(f"{c.name}({c.weight:.2f})" for c in market.components)
        click.echo(f"{market.id:<12} {market.display_name}")
        click.echo(f"   Components: {components}")
        click.echo(
            f"   Publish: conf >= {policy.min_confidence}, prob >= {policy.min_probability:.2f}, "
            f"edge >= {policy.min_edge:.2f}"
        )
    click.echo()


@cli.command()
@click.option("--features", "-f", "features_path", type=click.Path(exists=True, dir_okay=False),
              required=True, help="FeatureContract JSON file")
@click.option("--market", "-m", "market_ids", multiple=True, help="Market id(s); all when omitted")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.pass_context
def score(ctx, features_path: str, market_ids: tuple, as_json: bool):
    """Score a feature contract and run the publish gate."""
    registry = _registry(ctx)
    scorer = MarketScorer(registry)
    gate = PublishEligibilityGate(registry)

    try:
        contract = json.loads(Path(features_path).read_text())
        ids = list(market_ids) or registry.ids()
        results = [scorer.score(m, contract) for m in ids]
    except (GoallineError, json.JSONDecodeError) as e:
        click.echo(f"❌ Error: {e}", err=True)
        ctx.exit(1)

    verdicts = [gate.evaluate(r.market_id, r) for r in results]

    if as_json:
        payload = [
            {**r.to_dict(), "publish": v.to_dict()} for r, v in zip(results, verdicts)
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(f"\n{'='*50}")
    click.echo(f"🎯 Scoring {results[0].match_id if results else ''}")
    click.echo(f"{'='*50}\n")
    for r, v in zip(results, verdicts):
        edge = f"{r.edge:+.2%}" if r.edge is not None else "n/a"
        click.echo(f"{r.market_id:<12} {r.pick.value:<3}  prob={r.probability:.1%}  conf={r.confidence}  edge={edge}")
        if r.risk_flags:
            click.echo(f"   Flags: {', '.join(f.value for f in r.risk_flags)}")
        mark = "✅" if v.can_publish else "❌"
        click.echo(f"   {mark} {v.reason}")
    click.echo()


def _display_result(result: BacktestResult) -> None:
    click.echo("📊 PERFORMANCE METRICS:")
    click.echo(f"  Total Predictions: {result.total_predictions}")
    click.echo(
        f"  Settled: {result.total_settled} | Won: {result.won} | "
        f"Lost: {result.lost} | Void: {result.void}"
    )
    click.echo(f"  Hit Rate: {result.hit_rate:.2%} (p={result.hit_rate_pvalue:.4f})")
    click.echo(f"  ROI: {result.roi:.2%}")
    click.echo(f"  Avg Confidence: {result.avg_confidence:.1f}")
    click.echo(f"  Avg Probability: {result.avg_probability:.1%}\n")

    click.echo("📈 CALIBRATION:")
    click.echo(f"  Calibration Error: {result.calibration_error:.2%}")
    for b in result.calibration_curve:
        if b.count == 0:
            continue
        sign = "+" if b.avg_predicted <= b.actual_rate else "-"
        click.echo(
            f"    {b.bucket}: Predicted {b.avg_predicted:.1%} | Actual {b.actual_rate:.1%} | "
            f"Error: {sign}{b.error:.1%} (n={b.count})"
        )
    click.echo()

    click.echo("✅ VALIDATION:")
    click.echo("  ✅ ALL CHECKS PASSED" if result.validation_passed else "  ❌ VALIDATION FAILED")
    click.echo(f"  {result.validation_notes}\n")


@cli.command()
@click.option("--market", "-m", default="all", help="Market id or 'all'")
@click.option("--from", "start_date", required=True, help="Start date (YYYY-MM-DD)")
@click.option("--to", "end_date", required=True, help="End date (YYYY-MM-DD)")
@click.option("--data", "-d", type=click.Path(exists=True, dir_okay=False), required=True,
              help="Historical data CSV")
@click.option("--min-confidence", type=int, default=55, help="Minimum confidence for a pick")
@click.option("--min-matches", type=int, default=None, help="Minimum historical matches")
@click.option("--min-quality", type=float, default=None, help="Minimum data quality score")
@click.option("--workers", type=int, default=None, help="Scoring threads")
@click.option("--save", is_flag=True, help="Write markdown + JSON reports")
@click.pass_context
def backtest(ctx, market: str, start_date: str, end_date: str, data: str,
             min_confidence: int, min_matches: Optional[int], min_quality: Optional[float],
             workers: Optional[int], save: bool):
    """Backtest market(s) over a historical window."""
    config: Config = ctx.obj["config"]
    registry = _registry(ctx)

    click.echo(f"\n{'='*50}")
    click.echo("📊 GOALLINE Backtest Engine")
    click.echo(f"{'='*50}\n")
    click.echo(f"   Market(s): {market}")
    click.echo(f"   Period: {start_date} to {end_date}")
    click.echo(f"   Min confidence: {min_confidence}\n")

    source = CsvHistoricalSource(
        data, min_quality=config.backtest_min_quality if min_quality is None else min_quality
    )
    engine = BacktestEngine(
        registry,
        source,
        BacktestConfig(
            min_matches=config.backtest_min_matches if min_matches is None else min_matches,
            assumed_odds=config.backtest_assumed_odds,
            max_workers=config.backtest_workers if workers is None else workers,
            show_progress=not ctx.obj.get("verbose"),
            link_window_seconds=config.link_window_seconds,
        ),
    )

    market_ids = registry.ids() if market.lower() == "all" else [market]
    results: List[BacktestResult] = []
    errors = 0

    for market_id in market_ids:
        click.echo(f"{'-'*50}")
        click.echo(f"🔄 {market_id}")
        click.echo(f"{'-'*50}\n")
        try:
            result = engine.run(market_id, start_date, end_date, min_confidence=min_confidence)
        except (GoallineError, ValueError) as e:
            errors += 1
            click.echo(f"❌ {market_id}: {e}\n", err=True)
            continue
        results.append(result)
        _display_result(result)

    passed = [r for r in results if r.validation_passed]
    click.echo(f"{'='*50}")
    click.echo("BACKTEST SUMMARY")
    click.echo(f"{'='*50}")
    click.echo(f"Passed: {len(passed)}/{len(market_ids)}")
    if errors:
        click.echo(f"Errors: {errors}")

    if save and results:
        md_path = write_markdown_report(results, start_date, end_date, config.reports_dir)
        json_path = write_json_report(results, Path(md_path).with_suffix(".json"))
        click.echo(f"\n📄 Markdown report saved to {md_path}")
        click.echo(f"💾 Results saved to {json_path}")

    all_passed = not errors and len(passed) == len(market_ids)
    click.echo()
    ctx.exit(0 if all_passed else 1)


def main():
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()

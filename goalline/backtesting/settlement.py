"""Settle a market against a finished match."""

from enum import Enum

from goalline.config.registry import SettlementRule
from goalline.data.schemas import SettlementRecord, stat_value


class Outcome(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    VOID = "VOID"


def settle(rule: SettlementRule, record: SettlementRecord) -> Outcome:
    """
    WIN when the realized statistic reaches the rule's threshold.

    A statistic the provider never reported (e.g. corners) settles VOID.
    Card totals count yellow cards only.
    """
    raw = {
        "home_goals": record.home_goals,
        "away_goals": record.away_goals,
        "ht_home_goals": record.ht_home_goals,
        "ht_away_goals": record.ht_away_goals,
        "home_corners": record.home_corners,
        "away_corners": record.away_corners,
        "home_cards": record.home_yellow_cards,
        "away_cards": record.away_yellow_cards,
    }
    value = stat_value(rule.stat, raw)
    if value is None:
        return Outcome.VOID
    return Outcome.WIN if value >= rule.threshold else Outcome.LOSS

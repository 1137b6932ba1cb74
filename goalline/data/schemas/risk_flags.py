"""
Risk Flag taxonomy.

Closed set of data/quality/prediction risk conditions. Every flag has a
fixed severity and a fixed confidence penalty. Penalties are for display
and analytics only; confidence is computed once by the scorer and is never
re-derived from the flags.

Severities:
- BLOCKING: the result must not be published
- WARNING: surfaced to reviewers, does not block
- INFO: descriptive only
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Sequence


class Severity(str, Enum):
    BLOCKING = "blocking"
    WARNING = "warning"
    INFO = "info"


class RiskFlag(str, Enum):
    """Risk conditions attached to a ScoringResult."""

    # Blocking
    MISSING_XG = "MISSING_XG"
    MISSING_MARKET_POTENTIAL = "MISSING_MARKET_POTENTIAL"
    CONFLICTING_SIGNALS = "CONFLICTING_SIGNALS"

    # Warning
    MISSING_ODDS = "MISSING_ODDS"
    MISSING_POTENTIALS = "MISSING_POTENTIALS"
    HIGH_VARIANCE = "HIGH_VARIANCE"
    EXTREME_ODDS = "EXTREME_ODDS"
    LOW_DATA_QUALITY = "LOW_DATA_QUALITY"
    MISSING_FORM_DATA = "MISSING_FORM_DATA"
    INCOMPLETE_TEAM_DATA = "INCOMPLETE_TEAM_DATA"
    NO_EARLY_GOAL_PROXY = "NO_EARLY_GOAL_PROXY"

    # Info
    MISSING_HT_SCORES = "MISSING_HT_SCORES"
    MISSING_CORNERS = "MISSING_CORNERS"
    MISSING_CARDS = "MISSING_CARDS"
    MISSING_H2H_DATA = "MISSING_H2H_DATA"
    MISSING_LEAGUE_STATS = "MISSING_LEAGUE_STATS"
    INCOMPLETE_LEAGUE_DATA = "INCOMPLETE_LEAGUE_DATA"

    @property
    def severity(self) -> Severity:
        return _SEVERITY[self]

    @property
    def penalty(self) -> int:
        """Confidence points this condition is worth (display only)."""
        return _PENALTY[self]

    @property
    def is_blocking(self) -> bool:
        return self.severity == Severity.BLOCKING


_SEVERITY: Dict[RiskFlag, Severity] = {
    RiskFlag.MISSING_XG: Severity.BLOCKING,
    RiskFlag.MISSING_MARKET_POTENTIAL: Severity.BLOCKING,
    RiskFlag.CONFLICTING_SIGNALS: Severity.BLOCKING,
    RiskFlag.MISSING_ODDS: Severity.WARNING,
    RiskFlag.MISSING_POTENTIALS: Severity.WARNING,
    RiskFlag.HIGH_VARIANCE: Severity.WARNING,
    RiskFlag.EXTREME_ODDS: Severity.WARNING,
    RiskFlag.LOW_DATA_QUALITY: Severity.WARNING,
    RiskFlag.MISSING_FORM_DATA: Severity.WARNING,
    RiskFlag.INCOMPLETE_TEAM_DATA: Severity.WARNING,
    RiskFlag.NO_EARLY_GOAL_PROXY: Severity.WARNING,
    RiskFlag.MISSING_HT_SCORES: Severity.INFO,
    RiskFlag.MISSING_CORNERS: Severity.INFO,
    RiskFlag.MISSING_CARDS: Severity.INFO,
    RiskFlag.MISSING_H2H_DATA: Severity.INFO,
    RiskFlag.MISSING_LEAGUE_STATS: Severity.INFO,
    RiskFlag.INCOMPLETE_LEAGUE_DATA: Severity.INFO,
}

_PENALTY: Dict[RiskFlag, int] = {
    RiskFlag.MISSING_XG: 20,
    RiskFlag.MISSING_MARKET_POTENTIAL: 15,
    RiskFlag.CONFLICTING_SIGNALS: 15,
    RiskFlag.MISSING_ODDS: 10,
    RiskFlag.MISSING_POTENTIALS: 15,
    RiskFlag.HIGH_VARIANCE: 10,
    RiskFlag.EXTREME_ODDS: 10,
    RiskFlag.LOW_DATA_QUALITY: 10,
    RiskFlag.MISSING_FORM_DATA: 5,
    RiskFlag.INCOMPLETE_TEAM_DATA: 5,
    RiskFlag.NO_EARLY_GOAL_PROXY: 5,
    RiskFlag.MISSING_HT_SCORES: 0,
    RiskFlag.MISSING_CORNERS: 0,
    RiskFlag.MISSING_CARDS: 0,
    RiskFlag.MISSING_H2H_DATA: 2,
    RiskFlag.MISSING_LEAGUE_STATS: 2,
    RiskFlag.INCOMPLETE_LEAGUE_DATA: 0,
}

# Missing optional block -> seed flag. Blocks absent here (ft_scores)
# are routinely missing before kickoff and carry no flag.
MISSING_BLOCK_FLAGS: Dict[str, RiskFlag] = {
    "xg": RiskFlag.MISSING_XG,
    "odds": RiskFlag.MISSING_ODDS,
    "potentials": RiskFlag.MISSING_POTENTIALS,
    "ht_scores": RiskFlag.MISSING_HT_SCORES,
    "corners": RiskFlag.MISSING_CORNERS,
    "cards": RiskFlag.MISSING_CARDS,
    "form": RiskFlag.MISSING_FORM_DATA,
    "h2h": RiskFlag.MISSING_H2H_DATA,
    "league_stats": RiskFlag.MISSING_LEAGUE_STATS,
}


def seed_flags(missing: Iterable[str]) -> List[RiskFlag]:
    """One flag per missing block, via the fixed lookup table."""
    return [MISSING_BLOCK_FLAGS[name] for name in missing if name in MISSING_BLOCK_FLAGS]


def blocking_flags(flags: Sequence[RiskFlag]) -> List[RiskFlag]:
    return [f for f in flags if RiskFlag(f).is_blocking]


def has_blocking_flags(flags: Sequence[RiskFlag]) -> bool:
    return any(RiskFlag(f).is_blocking for f in flags)


def merge_flags(*groups: Iterable[RiskFlag]) -> List[RiskFlag]:
    """Concatenate flag groups, dropping duplicates, keeping first-seen order."""
    seen: List[RiskFlag] = []
    for group in groups:
        for flag in group:
            if flag not in seen:
                seen.append(flag)
    return seen

"""
Data schemas package.

Re-exports all schema classes for convenient importing:
    from goalline.data.schemas import FeatureContract, ScoringResult, RiskFlag
"""

from .sources import (
    MatchStatus,
    SettlementRecord,
    RecentMatchRecord,
    TeamFormRecord,
    PredictiveRecord,
)

from .features import (
    CONTRACT_VERSION,
    OPTIONAL_BLOCKS,
    CORE_POTENTIALS,
    DataSource,
    TeamRef,
    LeagueRef,
    Completeness,
    XGBlock,
    OddsBlock,
    PotentialsBlock,
    ScoreBlock,
    RecentMatch,
    TeamForm,
    FormBlock,
    H2HBlock,
    LeagueStatsBlock,
    FeatureContract,
    stat_value,
)

from .risk_flags import (
    Severity,
    RiskFlag,
    MISSING_BLOCK_FLAGS,
    seed_flags,
    blocking_flags,
    has_blocking_flags,
    merge_flags,
)

from .scoring import (
    Pick,
    ComponentResult,
    ScoringMetadata,
    ScoringResult,
)


__all__ = [
    # Source records
    "MatchStatus",
    "SettlementRecord",
    "RecentMatchRecord",
    "TeamFormRecord",
    "PredictiveRecord",
    # Feature contract
    "CONTRACT_VERSION",
    "OPTIONAL_BLOCKS",
    "CORE_POTENTIALS",
    "DataSource",
    "TeamRef",
    "LeagueRef",
    "Completeness",
    "XGBlock",
    "OddsBlock",
    "PotentialsBlock",
    "ScoreBlock",
    "RecentMatch",
    "TeamForm",
    "FormBlock",
    "H2HBlock",
    "LeagueStatsBlock",
    "FeatureContract",
    "stat_value",
    # Risk flags
    "Severity",
    "RiskFlag",
    "MISSING_BLOCK_FLAGS",
    "seed_flags",
    "blocking_flags",
    "has_blocking_flags",
    "merge_flags",
    # Scoring
    "Pick",
    "ComponentResult",
    "ScoringMetadata",
    "ScoringResult",
]

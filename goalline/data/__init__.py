"""
Data package - source records and the canonical feature contract.
"""

from .schemas import (
    MatchStatus, SettlementRecord, PredictiveRecord,
    FeatureContract, ScoringResult, ComponentResult, RiskFlag,
)


__all__ = [
    "MatchStatus",
    "SettlementRecord",
    "PredictiveRecord",
    "FeatureContract",
    "ScoringResult",
    "ComponentResult",
    "RiskFlag",
]

"""
Scoring output schemas.

One ScoringResult per (match, market). Results are frozen and
JSON-serialisable via ``to_dict()`` / ``model_dump(mode="json")``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .risk_flags import RiskFlag


class Pick(str, Enum):
    YES = "YES"
    NO = "NO"


class ComponentResult(BaseModel):
    """Outcome of one configured model component."""

    model_config = ConfigDict(frozen=True)

    name: str
    weight: float
    raw_value: Optional[float] = None
    weighted_contribution: float = 0.0
    is_available: bool = False
    data_source: str = ""

    @model_validator(mode="after")
    def _availability_matches_value(self) -> "ComponentResult":
        if self.is_available != (self.raw_value is not None):
            raise ValueError("is_available must equal (raw_value is not None)")
        return self

    @classmethod
    def evaluated(cls, name: str, weight: float, raw_value: Optional[float], data_source: str) -> "ComponentResult":
        return cls(
            name=name,
            weight=weight,
            raw_value=raw_value,
            weighted_contribution=raw_value * weight if raw_value is not None else 0.0,
            is_available=raw_value is not None,
            data_source=data_source,
        )


class ScoringMetadata(BaseModel):
    """Raw numeric facts used by the publish gate's market floors."""

    model_config = ConfigDict(frozen=True)

    lambda_total: Optional[float] = None
    lambda_home: Optional[float] = None
    lambda_away: Optional[float] = None
    home_scoring_prob: Optional[float] = None
    away_scoring_prob: Optional[float] = None
    implied_prob: Optional[float] = None
    corners_avg_total: Optional[float] = None
    cards_avg_total: Optional[float] = None

    def value(self, name: str) -> Optional[float]:
        if name not in type(self).model_fields:
            raise KeyError(name)
        return getattr(self, name)


class ScoringResult(BaseModel):
    """Probability, confidence and pick for one market of one match."""

    model_config = ConfigDict(frozen=True)

    match_id: str
    market_id: str
    market_name: str = ""

    probability: float = Field(..., ge=0, le=1)
    confidence: int = Field(..., ge=0, le=100)
    pick: Pick
    edge: Optional[float] = None

    components: List[ComponentResult] = Field(default_factory=list)
    risk_flags: List[RiskFlag] = Field(default_factory=list)
    data_score: int = Field(0, ge=0, le=100)
    metadata: ScoringMetadata = Field(default_factory=ScoringMetadata)

    scored_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_yes(self) -> bool:
        return self.pick == Pick.YES

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["probability"] = round(self.probability, 4)
        if self.edge is not None:
            data["edge"] = round(self.edge, 4)
        return data

"""
Feature Composer
================

Fuses a settlement record and a predictive record into one FeatureContract.

1. Identity comes from the settlement record only (never synthesized)
2. Settlement blocks are built when their raw fields exist AND the match
   has reached the status the block needs
3. The predictive record is located deterministically:
   stored cross-reference -> exact team names within a time window -> none
4. A predictive block is merged only when every sub-field is present
5. Completeness and the seed risk flags are derived from what is missing

Name matching is exact after trimming and case folding. Ambiguous matches
resolve to "not found"; there is no similarity scoring here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol, Tuple
from pydantic import ValidationError

from goalline.data.schemas import (
    DataSource,
    FeatureContract,
    FormBlock,
    H2HBlock,
    LeagueRef,
    LeagueStatsBlock,
    OddsBlock,
    PotentialsBlock,
    PredictiveRecord,
    RecentMatch,
    RiskFlag,
    ScoreBlock,
    SettlementRecord,
    TeamForm,
    TeamFormRecord,
    TeamRef,
    XGBlock,
    merge_flags,
    seed_flags,
)
from goalline.exceptions import InvalidSourceData

logger = logging.getLogger(__name__)

DEFAULT_LINK_WINDOW_SECONDS = 2 * 60 * 60


class LinkMethod(str, Enum):
    STORED_MAPPING = "stored_mapping"
    DETERMINISTIC_MATCH = "deterministic_match"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class SourceReferences:
    """Which source rows produced a contract, and how they were linked."""
    settlement_id: str
    predictive_id: Optional[str] = None
    link_method: LinkMethod = LinkMethod.NOT_FOUND

    @property
    def linked(self) -> bool:
        return self.predictive_id is not None

    def to_dict(self) -> dict:
        return {
            "settlement_id": self.settlement_id,
            "predictive_id": self.predictive_id,
            "linked": self.linked,
            "link_method": self.link_method.value,
        }


@dataclass(frozen=True)
class ComposedFeatures:
    contract: FeatureContract
    references: SourceReferences
    risk_flags: List[RiskFlag] = field(default_factory=list)


def normalize_name(name: str) -> str:
    """Trim and case-fold. No alias tables, no fuzzy matching."""
    return name.strip().casefold()


class PredictiveLookup(Protocol):
    """Read access to predictive records, supplied by the caller."""

    def by_reference(self, settlement_id: str) -> Optional[PredictiveRecord]:
        ...

    def by_identity(
        self, home_team: str, away_team: str, kickoff_ts: int, window_seconds: int
    ) -> List[PredictiveRecord]:
        ...


class InMemoryPredictiveLookup:
    """
    PredictiveLookup over a list of records.

    Stored cross-references come from each record's
    ``linked_settlement_id`` plus an optional explicit mapping
    (settlement id -> predictive id).
    """

    def __init__(
        self,
        records: Iterable[PredictiveRecord],
        mapping: Optional[Dict[str, str]] = None,
    ):
        self._records: Dict[str, PredictiveRecord] = {r.fs_match_id: r for r in records}
        self._mapping: Dict[str, str] = {
            r.linked_settlement_id: r.fs_match_id
            for r in self._records.values()
            if r.linked_settlement_id
        }
        self._mapping.update(mapping or {})

    def __len__(self) -> int:
        return len(self._records)

    def by_reference(self, settlement_id: str) -> Optional[PredictiveRecord]:
        predictive_id = self._mapping.get(settlement_id)
        if predictive_id is None:
            return None
        return self._records.get(predictive_id)

    def by_identity(
        self, home_team: str, away_team: str, kickoff_ts: int, window_seconds: int
    ) -> List[PredictiveRecord]:
        home, away = normalize_name(home_team), normalize_name(away_team)
        candidates = []
        for record in self._records.values():
            if not record.home_team_name or not record.away_team_name or record.match_time is None:
                continue
            if normalize_name(record.home_team_name) != home:
                continue
            if normalize_name(record.away_team_name) != away:
                continue
            if abs(record.match_time - kickoff_ts) <= window_seconds:
                candidates.append(record)
        return candidates


# ----------------------------------------------------------------------
# Block builders
# ----------------------------------------------------------------------

def _pair_block(home: Optional[int], away: Optional[int]) -> Optional[ScoreBlock]:
    if home is None or away is None:
        return None
    return ScoreBlock(home=home, away=away)


def _settlement_blocks(record: SettlementRecord) -> Dict[str, Optional[ScoreBlock]]:
    status = record.status_id
    finished = status.is_finished
    # Half-time score is final from the interval on, except before kickoff
    ht_final = status.reached_half_time

    return {
        "ft_scores": _pair_block(record.home_goals, record.away_goals) if finished else None,
        "ht_scores": _pair_block(record.ht_home_goals, record.ht_away_goals) if ht_final else None,
        "corners": _pair_block(record.home_corners, record.away_corners) if finished else None,
        "cards": _pair_block(record.home_yellow_cards, record.away_yellow_cards) if finished else None,
    }


def _potentials_block(record: PredictiveRecord) -> Optional[PotentialsBlock]:
    core = (record.over25_potential, record.btts_potential, record.over15_potential)
    if any(v is None for v in core):
        return None
    extras = {
        "over05_ht": record.over05_ht_potential,
        "over35": record.over35_potential,
        "corners": record.corners_potential,
        "cards": record.cards_potential,
    }
    return PotentialsBlock(
        over25=record.over25_potential,
        btts=record.btts_potential,
        over15=record.over15_potential,
        extras={k: v for k, v in extras.items() if v is not None},
    )


def _team_form(record: Optional[TeamFormRecord]) -> Tuple[Optional[TeamForm], bool]:
    """(form, partial) where partial means some but not all averages were set."""
    if record is None:
        return None, False
    averages = (
        record.avg_goals_scored,
        record.avg_goals_conceded,
        record.avg_corners,
        record.avg_cards,
    )
    if any(v is None for v in averages):
        return None, any(v is not None for v in averages) or bool(record.recent_matches)

    recent = tuple(
        RecentMatch(**m.model_dump())
        for m in record.recent_matches
        if m.home_goals is not None and m.away_goals is not None
    )
    return TeamForm(
        recent_matches=recent,
        avg_goals_scored=record.avg_goals_scored,
        avg_goals_conceded=record.avg_goals_conceded,
        avg_corners=record.avg_corners,
        avg_cards=record.avg_cards,
    ), False


def _all_or_none(*values: Optional[float]) -> Tuple[bool, bool]:
    """(complete, partial)"""
    present = [v is not None for v in values]
    return all(present), any(present) and not all(present)


class FeatureComposer:
    """
    Builds FeatureContracts from the two providers.

    Usage:
        composer = FeatureComposer(link_window_seconds=7200)
        composed = composer.compose(settlement_record, lookup)
    """

    def __init__(self, link_window_seconds: int = DEFAULT_LINK_WINDOW_SECONDS):
        self.link_window_seconds = link_window_seconds

    def compose(
        self,
        settlement: SettlementRecord,
        lookup: Optional[PredictiveLookup] = None,
    ) -> ComposedFeatures:
        self._check_identity(settlement)

        predictive, method = self.link(settlement, lookup)

        fields = {
            "source": DataSource.HYBRID if predictive is not None else DataSource.SETTLEMENT,
            "match_id": settlement.external_id,
            "kickoff_ts": settlement.match_time,
            "home_team": TeamRef(id=settlement.home_team_id, name=settlement.home_team_name),
            "away_team": TeamRef(id=settlement.away_team_id, name=settlement.away_team_name),
            "league": LeagueRef(id=settlement.competition_id, name=settlement.competition_name),
        }
        extra_flags: List[RiskFlag] = []
        try:
            fields.update(_settlement_blocks(settlement))
            if predictive is not None:
                blocks, extra_flags = self._predictive_blocks(predictive)
                fields.update(blocks)
        except ValidationError as e:
            raise InvalidSourceData(f"Out-of-range source values for {settlement.external_id}: {e}") from e

        contract = FeatureContract.assemble(**fields)
        flags = merge_flags(seed_flags(contract.completeness.missing), extra_flags)

        references = SourceReferences(
            settlement_id=settlement.external_id,
            predictive_id=predictive.fs_match_id if predictive is not None else None,
            link_method=method,
        )

        logger.info(
            f"Composed {contract.match_id} ({contract.home_team.name} vs {contract.away_team.name}): "
            f"source={contract.source.value}, link={method.value}, "
            f"present={len(contract.completeness.present)}/{len(contract.completeness.present) + len(contract.completeness.missing)}"
        )
        return ComposedFeatures(contract=contract, references=references, risk_flags=flags)

    def link(
        self,
        settlement: SettlementRecord,
        lookup: Optional[PredictiveLookup],
    ) -> Tuple[Optional[PredictiveRecord], LinkMethod]:
        """Locate the predictive record for a settlement record."""
        if lookup is None:
            return None, LinkMethod.NOT_FOUND

        record = lookup.by_reference(settlement.external_id)
        if record is not None:
            return record, LinkMethod.STORED_MAPPING

        candidates = lookup.by_identity(
            settlement.home_team_name,
            settlement.away_team_name,
            settlement.match_time,
            self.link_window_seconds,
        )
        if len(candidates) == 1:
            return candidates[0], LinkMethod.DETERMINISTIC_MATCH

        if len(candidates) > 1:
            logger.warning(
                f"Ambiguous predictive link for {settlement.external_id}: "
                f"{len(candidates)} candidates, treating as not found"
            )
        else:
            logger.warning(f"No predictive record for {settlement.external_id}")
        return None, LinkMethod.NOT_FOUND

    @staticmethod
    def _check_identity(settlement: SettlementRecord) -> None:
        required = {
            "external_id": settlement.external_id,
            "home_team_name": settlement.home_team_name,
            "away_team_name": settlement.away_team_name,
            "match_time": settlement.match_time,
            "status_id": settlement.status_id,
        }
        missing = [name for name, value in required.items() if value is None or value == ""]
        if missing:
            raise InvalidSourceData(
                f"Settlement record {settlement.external_id or '<no id>'} missing identity fields: {missing}"
            )

    @staticmethod
    def _predictive_blocks(record: PredictiveRecord) -> Tuple[Dict[str, object], List[RiskFlag]]:
        blocks: Dict[str, object] = {}
        flags: List[RiskFlag] = []

        if record.xg_home is not None and record.xg_away is not None:
            blocks["xg"] = XGBlock(home=record.xg_home, away=record.xg_away)

        complete, _ = _all_or_none(record.odds_home, record.odds_draw, record.odds_away)
        if complete:
            blocks["odds"] = OddsBlock(
                home_win=record.odds_home, draw=record.odds_draw, away_win=record.odds_away
            )

        blocks["potentials"] = _potentials_block(record)

        home_form, home_partial = _team_form(record.home_form)
        away_form, away_partial = _team_form(record.away_form)
        if home_form is not None and away_form is not None:
            blocks["form"] = FormBlock(home=home_form, away=away_form)
        elif home_partial or away_partial or (home_form is None) != (away_form is None):
            flags.append(RiskFlag.INCOMPLETE_TEAM_DATA)

        complete, _ = _all_or_none(
            record.h2h_avg_goals, record.h2h_over25_percentage, record.h2h_btts_percentage
        )
        if complete:
            blocks["h2h"] = H2HBlock(
                avg_goals=record.h2h_avg_goals,
                over25_percentage=record.h2h_over25_percentage,
                btts_percentage=record.h2h_btts_percentage,
            )

        complete, partial = _all_or_none(
            record.league_avg_goals, record.league_over25_rate, record.league_btts_rate
        )
        if complete:
            blocks["league_stats"] = LeagueStatsBlock(
                avg_goals_per_match=record.league_avg_goals,
                over25_rate=record.league_over25_rate,
                btts_rate=record.league_btts_rate,
            )
        elif partial:
            flags.append(RiskFlag.INCOMPLETE_LEAGUE_DATA)

        return blocks, flags


def compose(
    settlement: SettlementRecord,
    lookup: Optional[PredictiveLookup] = None,
    link_window_seconds: int = DEFAULT_LINK_WINDOW_SECONDS,
) -> ComposedFeatures:
    """Compose with a one-off composer."""
    return FeatureComposer(link_window_seconds).compose(settlement, lookup)

"""
Domain types for head-to-head custom matches.

Everything downstream of the Pulse payload boundary works with these frozen
dataclasses:

    MatchCandidate  - a validated H2H match with its outcome, not yet scored
    ProcessedMatch  - a scored candidate; the unit of storage

Both enforce the H2H shape on construction: exactly two participants, both
community members. A match that does not fit cannot be represented, so it can
never reach scoring or storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

SCHEMA_VERSION = "1.0.0"

CUSTOM_MATCH_TYPE = "CUSTOM"


class Decision(str, Enum):
    """Per-participant result reported by Pulse."""

    WIN = "WIN"
    LOSS = "LOSS"
    TIE = "TIE"
    OBSERVER = "OBSERVER"

    @property
    def is_decisive(self) -> bool:
        return self in (Decision.WIN, Decision.LOSS)


class ConfidenceTier(str, Enum):
    """Qualitative trust rating, ordered low < medium < high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ConfidenceTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ConfidenceTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, ConfidenceTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, ConfidenceTier):
            return NotImplemented
        return self.rank >= other.rank


_TIER_RANK = {
    ConfidenceTier.LOW: 1,
    ConfidenceTier.MEDIUM: 2,
    ConfidenceTier.HIGH: 3,
}


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def date_key_for(match_date: datetime) -> str:
    """Partition key (YYYY-MM-DD) for a match timestamp, by UTC calendar date."""
    return to_utc(match_date).date().isoformat()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Participants and outcomes
# =============================================================================


@dataclass(frozen=True)
class ValidatedParticipant:
    """A participant that passed roster validation."""

    character_id: int
    battle_tag: str
    display_name: str
    rating: int | None = None
    is_community_member: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "character_id": self.character_id,
            "battle_tag": self.battle_tag,
            "display_name": self.display_name,
            "rating": self.rating,
            "is_community_member": self.is_community_member,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidatedParticipant:
        return cls(
            character_id=int(data["character_id"]),
            battle_tag=data["battle_tag"],
            display_name=data["display_name"],
            rating=data.get("rating"),
            is_community_member=bool(data.get("is_community_member", True)),
        )


@dataclass(frozen=True)
class WinLoss:
    winner: ValidatedParticipant
    loser: ValidatedParticipant

    kind = "WIN_LOSS"

    @property
    def participants(self) -> tuple[ValidatedParticipant, ...]:
        return (self.winner, self.loser)

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.kind,
            "winner": self.winner.to_dict(),
            "loser": self.loser.to_dict(),
        }


@dataclass(frozen=True)
class Tie:
    participants: tuple[ValidatedParticipant, ...]

    kind = "TIE"

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.kind,
            "participants": [p.to_dict() for p in self.participants],
        }


@dataclass(frozen=True)
class Unknown:
    participants: tuple[ValidatedParticipant, ...]

    kind = "UNKNOWN"

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.kind,
            "participants": [p.to_dict() for p in self.participants],
        }


MatchOutcome = Union[WinLoss, Tie, Unknown]


def outcome_from_dict(data: dict[str, Any]) -> MatchOutcome:
    kind = data.get("outcome")
    if kind == WinLoss.kind:
        return WinLoss(
            winner=ValidatedParticipant.from_dict(data["winner"]),
            loser=ValidatedParticipant.from_dict(data["loser"]),
        )
    participants = tuple(ValidatedParticipant.from_dict(p) for p in data.get("participants", []))
    if kind == Tie.kind:
        return Tie(participants=participants)
    return Unknown(participants=participants)


# =============================================================================
# Confidence factors
# =============================================================================

FACTOR_NAMES: tuple[str, ...] = (
    "has_valid_character_ids",
    "both_community_members",
    "both_active_recently",
    "has_reasonable_duration",
    "recognized_map",
    "similar_skill_level",
)


@dataclass(frozen=True)
class ConfidenceFactors:
    """Six independent boolean quality signals for a match."""

    has_valid_character_ids: bool = False
    both_community_members: bool = False
    both_active_recently: bool = False
    has_reasonable_duration: bool = False
    recognized_map: bool = False
    similar_skill_level: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in FACTOR_NAMES}

    def true_factors(self) -> list[str]:
        return [name for name in FACTOR_NAMES if getattr(self, name)]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfidenceFactors:
        return cls(**{name: bool(data.get(name, False)) for name in FACTOR_NAMES})


# =============================================================================
# Candidates and processed matches
# =============================================================================


def _check_h2h(match_id: int, participants: tuple[ValidatedParticipant, ...]) -> None:
    if len(participants) != 2:
        raise ValueError(
            f"Match {match_id} has {len(participants)} validated participants, expected 2"
        )
    if not all(p.is_community_member for p in participants):
        raise ValueError(f"Match {match_id} has a non-community participant")
    if participants[0].character_id == participants[1].character_id:
        raise ValueError(f"Match {match_id} lists the same player twice")


@dataclass(frozen=True)
class MatchCandidate:
    """A validated H2H match with its outcome, waiting to be scored."""

    match_id: int
    match_date: datetime
    map: str
    participants: tuple[ValidatedParticipant, ...]
    outcome: MatchOutcome
    duration_seconds: int | None = None
    processed_at: datetime = field(default_factory=utc_now)
    schema_version: str = SCHEMA_VERSION

    def __post_init__(self) -> None:
        _check_h2h(self.match_id, self.participants)

    @property
    def date_key(self) -> str:
        return date_key_for(self.match_date)


@dataclass(frozen=True)
class ProcessedMatch:
    """A scored H2H match. Immutable once built; the unit of storage."""

    match_id: int
    match_date: datetime
    map: str
    participants: tuple[ValidatedParticipant, ...]
    outcome: MatchOutcome
    confidence: ConfidenceTier
    confidence_factors: ConfidenceFactors
    duration_seconds: int | None = None
    processed_at: datetime = field(default_factory=utc_now)
    schema_version: str = SCHEMA_VERSION

    def __post_init__(self) -> None:
        _check_h2h(self.match_id, self.participants)

    @property
    def date_key(self) -> str:
        return date_key_for(self.match_date)

    @classmethod
    def from_candidate(
        cls,
        candidate: MatchCandidate,
        confidence: ConfidenceTier,
        factors: ConfidenceFactors,
    ) -> ProcessedMatch:
        return cls(
            match_id=candidate.match_id,
            match_date=candidate.match_date,
            map=candidate.map,
            participants=candidate.participants,
            outcome=candidate.outcome,
            confidence=confidence,
            confidence_factors=factors,
            duration_seconds=candidate.duration_seconds,
            processed_at=candidate.processed_at,
            schema_version=candidate.schema_version,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "match_date": to_utc(self.match_date).isoformat(),
            "date_key": self.date_key,
            "map": self.map,
            "duration_seconds": self.duration_seconds,
            "participants": [p.to_dict() for p in self.participants],
            "outcome": self.outcome.to_dict(),
            "confidence": self.confidence.value,
            "confidence_factors": self.confidence_factors.to_dict(),
            "processed_at": to_utc(self.processed_at).isoformat(),
            "schema_version": self.schema_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessedMatch:
        return cls(
            match_id=int(data["match_id"]),
            match_date=datetime.fromisoformat(data["match_date"]),
            map=data["map"],
            participants=tuple(ValidatedParticipant.from_dict(p) for p in data["participants"]),
            outcome=outcome_from_dict(data["outcome"]),
            confidence=ConfidenceTier(data["confidence"]),
            confidence_factors=ConfidenceFactors.from_dict(data.get("confidence_factors", {})),
            duration_seconds=data.get("duration_seconds"),
            processed_at=datetime.fromisoformat(data["processed_at"]),
            schema_version=data.get("schema_version", SCHEMA_VERSION),
        )

"""
Match confidence scoring.

Table-driven: every ConfidenceFactors flag that is true adds its configured
points, the outcome adds a small adjustment, and two thresholds cut the total
into low / medium / high.

    score = sum(points[f] for f in true factors) + outcome_adjustment
    score >= high   -> high
    score >= medium -> medium
    otherwise       -> low

Unknown outcomes are capped at low regardless of score.

Two factors - both_active_recently and similar_skill_level - have no agreed
formula. They are answered by FactorProvider objects; the defaults always say
False. RecentActivityProvider and RatingProximityProvider are available for
callers who want to switch them on.

The scorer has no I/O and no mutable state once built, so it is safe to share.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol, Sequence

from pulseh2h.matches import (
    FACTOR_NAMES,
    ConfidenceFactors,
    ConfidenceTier,
    MatchCandidate,
    MatchOutcome,
    ProcessedMatch,
    Tie,
    Unknown,
    ValidatedParticipant,
    WinLoss,
    utc_now,
)
from pulseh2h.roster import CommunityRoster

logger = logging.getLogger(__name__)


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_FACTOR_POINTS: dict[str, int] = {
    "has_valid_character_ids": 2,  # Essential for tracking
    "both_community_members": 3,  # Core requirement
    "both_active_recently": 1,
    "has_reasonable_duration": 1,
    "similar_skill_level": 1,
    "recognized_map": 1,
}

DEFAULT_THRESHOLDS: dict[str, float] = {
    "medium": 6,  # Character ids + community members + one more factor
    "high": 8,  # Most factors present
}

# Current 1v1 map pool
DEFAULT_RECOGNIZED_MAPS = frozenset({
    "Altitude LE",
    "Ancient Cistern LE",
    "Babylon LE",
    "Dragon Scales LE",
    "Gresvan LE",
    "Neohumanity LE",
    "Royal Blood LE",
})

OUTCOME_ADJUSTMENT = 0.1


@dataclass(frozen=True)
class ScoringConfig:
    """Points, thresholds and rule parameters for confidence scoring."""

    factor_points: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_FACTOR_POINTS))
    threshold_medium: float = DEFAULT_THRESHOLDS["medium"]
    threshold_high: float = DEFAULT_THRESHOLDS["high"]
    outcome_adjustment: float = OUTCOME_ADJUSTMENT
    min_duration_seconds: int = 60
    max_duration_seconds: int = 3600
    recognized_maps: frozenset[str] = DEFAULT_RECOGNIZED_MAPS

    def __post_init__(self) -> None:
        unknown = set(self.factor_points) - set(FACTOR_NAMES)
        if unknown:
            raise ValueError(f"Unknown confidence factors: {sorted(unknown)}")
        if any(points < 0 for points in self.factor_points.values()):
            raise ValueError("Factor points must be non-negative")
        if self.threshold_high < self.threshold_medium:
            raise ValueError("High threshold must not be below the medium threshold")

    @classmethod
    def with_overrides(
        cls,
        factor_points: Optional[dict[str, int]] = None,
        threshold_medium: Optional[float] = None,
        threshold_high: Optional[float] = None,
    ) -> ScoringConfig:
        """Defaults with the given values replaced (None means keep default)."""
        base = cls()
        points = dict(base.factor_points)
        points.update(factor_points or {})
        return replace(
            base,
            factor_points=points,
            threshold_medium=base.threshold_medium if threshold_medium is None else threshold_medium,
            threshold_high=base.threshold_high if threshold_high is None else threshold_high,
        )

    def points_for(self, factor: str) -> int:
        return self.factor_points.get(factor, 0)


# =============================================================================
# Factor providers
# =============================================================================


class FactorProvider(Protocol):
    """Answers one yes/no confidence question about a pair of participants."""

    def __call__(self, participants: Sequence[ValidatedParticipant]) -> bool: ...


def never(_participants: Sequence[ValidatedParticipant]) -> bool:
    return False


class RecentActivityProvider:
    """True when both players were last seen on the ladder within `days`."""

    def __init__(self, roster: CommunityRoster, days: int = 7, now=utc_now):
        self.roster = roster
        self.window = timedelta(days=days)
        self._now = now

    def __call__(self, participants: Sequence[ValidatedParticipant]) -> bool:
        if len(participants) != 2:
            return False
        horizon: datetime = self._now() - self.window
        for participant in participants:
            player = self.roster.get(participant.character_id)
            if player is None or player.last_played is None or player.last_played < horizon:
                return False
        return True


class RatingProximityProvider:
    """True when both players have a rating and they are within `max_gap` MMR."""

    def __init__(self, max_gap: int = 300):
        self.max_gap = max_gap

    def __call__(self, participants: Sequence[ValidatedParticipant]) -> bool:
        if len(participants) != 2:
            return False
        first, second = participants
        if first.rating is None or second.rating is None:
            return False
        return abs(first.rating - second.rating) <= self.max_gap


# =============================================================================
# Scorer
# =============================================================================


class MatchConfidenceScorer:
    """
    Confidence scoring service with table-driven rules.

    Usage:
        scorer = MatchConfidenceScorer()
        processed = scorer.score_match(candidate)
        processed.confidence  # ConfidenceTier.MEDIUM
    """

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        active_recently: FactorProvider = never,
        similar_skill: FactorProvider = never,
    ):
        self.config = config or ScoringConfig()
        self.active_recently = active_recently
        self.similar_skill = similar_skill

    # -------------------------------------------------------------------------
    # Factors
    # -------------------------------------------------------------------------

    def compute_factors(self, candidate: MatchCandidate) -> ConfidenceFactors:
        participants = candidate.participants
        return ConfidenceFactors(
            has_valid_character_ids=all(p.character_id > 0 for p in participants),
            both_community_members=(
                len(participants) == 2 and all(p.is_community_member for p in participants)
            ),
            both_active_recently=bool(self.active_recently(participants)),
            has_reasonable_duration=self._has_reasonable_duration(candidate.duration_seconds),
            recognized_map=candidate.map in self.config.recognized_maps,
            similar_skill_level=bool(self.similar_skill(participants)),
        )

    def _has_reasonable_duration(self, duration: Optional[int]) -> bool:
        if not duration:
            return False
        return self.config.min_duration_seconds <= duration <= self.config.max_duration_seconds

    # -------------------------------------------------------------------------
    # Score and tier
    # -------------------------------------------------------------------------

    def outcome_adjustment(self, outcome: MatchOutcome) -> float:
        if isinstance(outcome, WinLoss):
            return self.config.outcome_adjustment
        if isinstance(outcome, Tie):
            return 0.0
        return -self.config.outcome_adjustment

    def score_value(self, factors: ConfidenceFactors, outcome: MatchOutcome) -> float:
        score = float(sum(self.config.points_for(name) for name in factors.true_factors()))
        return score + self.outcome_adjustment(outcome)

    def tier_for(self, score: float, outcome: MatchOutcome) -> ConfidenceTier:
        if isinstance(outcome, Unknown):
            return ConfidenceTier.LOW
        if score >= self.config.threshold_high:
            return ConfidenceTier.HIGH
        if score >= self.config.threshold_medium:
            return ConfidenceTier.MEDIUM
        return ConfidenceTier.LOW

    def score(self, candidate: MatchCandidate) -> ConfidenceTier:
        factors = self.compute_factors(candidate)
        return self.tier_for(self.score_value(factors, candidate.outcome), candidate.outcome)

    def score_match(self, candidate: MatchCandidate) -> ProcessedMatch:
        factors = self.compute_factors(candidate)
        value = self.score_value(factors, candidate.outcome)
        confidence = self.tier_for(value, candidate.outcome)

        logger.debug(
            "Match %s scored %.2f -> %s (%s)",
            candidate.match_id, value, confidence.value, ",".join(factors.true_factors()),
        )
        return ProcessedMatch.from_candidate(candidate, confidence, factors)

    def score_matches(self, candidates: list[MatchCandidate]) -> list[ProcessedMatch]:
        return [self.score_match(candidate) for candidate in candidates]

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def describe(self) -> dict[str, Any]:
        return {
            "factor_points": dict(self.config.factor_points),
            "thresholds": {
                "medium": self.config.threshold_medium,
                "high": self.config.threshold_high,
            },
            "outcome_adjustment": self.config.outcome_adjustment,
            "duration_seconds": {
                "min": self.config.min_duration_seconds,
                "max": self.config.max_duration_seconds,
            },
            "recognized_maps": sorted(self.config.recognized_maps),
        }

    def scoring_stats(self, matches: list[ProcessedMatch]) -> dict[str, Any]:
        """Tier counts, average score and factor frequency for scored matches."""
        tier_counts = {tier.value: 0 for tier in ConfidenceTier}
        factor_counts = {name: 0 for name in FACTOR_NAMES}
        total_score = 0.0

        for match in matches:
            tier_counts[match.confidence.value] += 1
            total_score += self.score_value(match.confidence_factors, match.outcome)
            for name in match.confidence_factors.true_factors():
                factor_counts[name] += 1

        avg_score = round(total_score / len(matches), 2) if matches else 0.0
        return {
            "total_matches": len(matches),
            "confidence_counts": tier_counts,
            "avg_score": avg_score,
            "factor_frequency": factor_counts,
        }

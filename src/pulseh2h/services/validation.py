"""
Participant validation and outcome extraction.

Turns discovered RawMatch objects into MatchCandidate objects:

1. ParticipantValidator keeps participants that have a decisive decision,
   a character id and a roster entry. The match moves on only with exactly
   two of them.
2. extract_outcome derives WinLoss / Tie / Unknown from those two players'
   decisions.

Unknown outcomes still produce a candidate so they show up for audit; the
scorer keeps them at low confidence.

A match that raises while being validated is logged and dropped; the rest of
the batch carries on.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pulseh2h.matches import (
    Decision,
    MatchCandidate,
    MatchOutcome,
    Tie,
    Unknown,
    ValidatedParticipant,
    WinLoss,
)
from pulseh2h.pulse.models import RawMatch, RawParticipant
from pulseh2h.roster import CommunityRoster

logger = logging.getLogger(__name__)


@dataclass
class ValidationStats:
    total_matches: int = 0
    accepted: int = 0
    rejected_participant_count: int = 0
    errors: int = 0


class ParticipantValidator:
    """Checks match participants against the community roster."""

    def __init__(self, roster: CommunityRoster):
        self.roster = roster

    def validate_participant(self, participant: RawParticipant) -> Optional[ValidatedParticipant]:
        if not participant.is_decisive:
            return None
        if not participant.player_character_id:
            return None

        player = self.roster.get(participant.player_character_id)
        if player is None:
            return None

        return ValidatedParticipant(
            character_id=participant.player_character_id,
            battle_tag=player.battle_tag,
            display_name=player.name,
            rating=player.rating,
            is_community_member=True,
        )

    def validate(self, raw: RawMatch) -> list[ValidatedParticipant]:
        """Return the validated subset of a match's participants, in payload order."""
        validated = []
        for participant in raw.participants:
            result = self.validate_participant(participant)
            if result is not None:
                validated.append(result)
        return validated


def extract_outcome(raw: RawMatch, validated: list[ValidatedParticipant]) -> MatchOutcome:
    """
    Derive the match outcome from the validated participants' decisions.

    - exactly one WIN and one LOSS -> WinLoss
    - every decision is TIE -> Tie
    - anything else (mixed, fewer than two) -> Unknown
    """
    by_character = {p.character_id: p for p in validated}
    decisions: list[tuple[Decision, ValidatedParticipant]] = [
        (raw_p.decision, by_character[raw_p.player_character_id])
        for raw_p in raw.participants
        if raw_p.decision != Decision.OBSERVER and raw_p.player_character_id in by_character
    ]
    participants = tuple(validated)

    if len(decisions) < 2:
        logger.warning(
            "Match %s: only %d community decisions, outcome unknown",
            raw.match_id, len(decisions),
        )
        return Unknown(participants=participants)

    if all(decision == Decision.TIE for decision, _ in decisions):
        return Tie(participants=participants)

    winners = [p for decision, p in decisions if decision == Decision.WIN]
    losers = [p for decision, p in decisions if decision == Decision.LOSS]
    if len(winners) == 1 and len(losers) == 1 and len(decisions) == 2:
        return WinLoss(winner=winners[0], loser=losers[0])

    logger.warning(
        "Match %s: unable to determine a clear winner from %s",
        raw.match_id, [d.value for d, _ in decisions],
    )
    return Unknown(participants=participants)


def build_candidate(raw: RawMatch, validator: ParticipantValidator) -> Optional[MatchCandidate]:
    """Validate one match; None unless exactly two distinct community participants remain."""
    validated = validator.validate(raw)
    if len(validated) != 2:
        return None
    if validated[0].character_id == validated[1].character_id:
        return None

    return MatchCandidate(
        match_id=raw.match_id,
        match_date=raw.date,
        map=raw.map_name,
        participants=tuple(validated),
        outcome=extract_outcome(raw, validated),
        duration_seconds=raw.duration_seconds,
    )


def build_candidates(
    raw_matches: list[RawMatch],
    validator: ParticipantValidator,
) -> tuple[list[MatchCandidate], ValidationStats]:
    """
    Validate a batch of discovered matches.

    Returns:
        (candidates, stats) - candidates keep discovery order
    """
    stats = ValidationStats(total_matches=len(raw_matches))
    candidates: list[MatchCandidate] = []

    for raw in raw_matches:
        try:
            candidate = build_candidate(raw, validator)
        except Exception as exc:
            stats.errors += 1
            logger.warning("Failed to validate participants for match %s: %s", raw.match_id, exc)
            continue

        if candidate is None:
            stats.rejected_participant_count += 1
            continue
        candidates.append(candidate)

    stats.accepted = len(candidates)
    logger.debug(
        "Participant validation: %d/%d accepted, %d rejected, %d errors",
        stats.accepted, stats.total_matches, stats.rejected_participant_count, stats.errors,
    )
    return candidates, stats

"""SC2 Pulse upstream access: HTTP client and payload models."""

from pulseh2h.pulse.client import MatchClient, PulseClient
from pulseh2h.pulse.models import (
    RawMatch,
    RawParticipant,
    parse_character_matches,
    parse_raw_match,
)

__all__ = [
    "MatchClient",
    "PulseClient",
    "RawMatch",
    "RawParticipant",
    "parse_character_matches",
    "parse_raw_match",
]

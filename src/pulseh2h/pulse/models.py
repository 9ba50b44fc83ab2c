"""
Boundary models for SC2 Pulse match payloads.

The character-matches endpoint returns entries shaped like:

    {
        "match": {"id": 123, "date": "2025-10-09T18:21:04Z", "type": "CUSTOM",
                  "mapId": 7, "region": "EU", "duration": 612},
        "map": {"id": 7, "name": "Altitude LE"},
        "participants": [
            {"participant": {"playerCharacterId": 1, "decision": "WIN", ...}},
            ...
        ]
    }

Each entry is validated into a frozen RawMatch here, once. Anything that does
not fit (unknown decision, missing id, unparsable date) is a PayloadError for
that entry only; the rest of the response is still usable.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from pulseh2h.exceptions import PayloadError
from pulseh2h.matches import CUSTOM_MATCH_TYPE, Decision, to_utc

logger = logging.getLogger(__name__)


class RawParticipant(BaseModel):
    """One participant row of a Pulse match."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    player_character_id: Optional[int] = Field(default=None, alias="playerCharacterId")
    decision: Decision
    rating_change: Optional[int] = Field(default=None, alias="ratingChange")

    @property
    def is_decisive(self) -> bool:
        return self.decision.is_decisive


class RawMatch(BaseModel):
    """A single Pulse match, flattened out of the response envelope."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    match_id: int
    date: datetime
    type: str
    map_id: Optional[int] = None
    map_name: str = "Unknown"
    duration_seconds: Optional[int] = None
    region: Optional[str] = None
    participants: tuple[RawParticipant, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def flatten_envelope(cls, data: Any) -> Any:
        """Accept the nested {match, map, participants} shape Pulse returns."""
        if not isinstance(data, dict) or "match" not in data:
            return data

        match = data.get("match") or {}
        map_info = data.get("map") or {}
        participants = [
            entry.get("participant", entry) if isinstance(entry, dict) else entry
            for entry in data.get("participants") or []
        ]
        return {
            "match_id": match.get("id"),
            "date": match.get("date"),
            "type": match.get("type"),
            "map_id": match.get("mapId", map_info.get("id")),
            "map_name": map_info.get("name") or "Unknown",
            "duration_seconds": match.get("duration"),
            "region": match.get("region"),
            "participants": participants,
        }

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_utc(v)

    @property
    def is_custom(self) -> bool:
        return self.type == CUSTOM_MATCH_TYPE

    @property
    def decisive_participants(self) -> list[RawParticipant]:
        return [p for p in self.participants if p.is_decisive]


def parse_raw_match(payload: Any) -> RawMatch:
    """
    Validate one upstream entry.

    Raises:
        PayloadError: if the entry does not have the expected shape
    """
    try:
        return RawMatch.model_validate(payload)
    except ValidationError as exc:
        raise PayloadError(f"Invalid Pulse match entry: {exc.error_count()} error(s)") from exc


def parse_character_matches(payload: Any) -> list[RawMatch]:
    """
    Parse a character-matches response into RawMatch objects.

    Accepts either a bare list of entries or the paged {"result": [...]}
    wrapper. Malformed entries are logged and dropped.

    Raises:
        PayloadError: if the response itself is not a list or a paged wrapper
    """
    if isinstance(payload, dict):
        entries = payload.get("result")
    else:
        entries = payload

    if entries is None:
        return []
    if not isinstance(entries, list):
        raise PayloadError(f"Unexpected character-matches payload type: {type(entries).__name__}")

    matches: list[RawMatch] = []
    for entry in entries:
        try:
            matches.append(parse_raw_match(entry))
        except PayloadError as exc:
            logger.warning("Dropping malformed Pulse match entry: %s", exc)
    return matches

"""
Community roster - the set of players whose custom games we care about.

The roster is a snapshot: refresh() swaps in a whole new id -> player mapping
from a RosterSource, and nothing mutates it in between. A failed refresh
keeps the previous snapshot.

The usual source is the community CSV export:

    id,name,btag,rating,lastPlayed
    315071,Serral,Serral#1234,6800,2025-10-09T18:21:04Z

Usage:
    roster = CommunityRoster(CsvRosterSource("data/ladderCR.csv"))
    roster.refresh()
    roster.is_member(315071)
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Protocol

from pulseh2h.exceptions import RosterUnavailableError
from pulseh2h.matches import to_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommunityPlayer:
    id: str
    name: str
    battle_tag: str
    rating: Optional[int] = None
    last_played: Optional[datetime] = None


class RosterSource(Protocol):
    def load(self) -> list[CommunityPlayer]: ...


def _parse_rating(value: Optional[str]) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def _parse_last_played(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return to_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    except ValueError:
        return None


class CsvRosterSource:
    """Reads community players from a CSV file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> list[CommunityPlayer]:
        if not self.path.exists():
            raise RosterUnavailableError(f"Roster CSV not found: {self.path}")

        players: list[CommunityPlayer] = []
        with self.path.open(newline="", encoding="utf-8") as f:
            for row in csv.DictReader(f):
                player_id = (row.get("id") or "").strip()
                if not player_id:
                    continue
                players.append(
                    CommunityPlayer(
                        id=player_id,
                        name=(row.get("name") or "").strip() or "Unknown",
                        battle_tag=(row.get("btag") or "").strip() or "Unknown",
                        rating=_parse_rating(row.get("rating")),
                        last_played=_parse_last_played(row.get("lastPlayed")),
                    )
                )
        return players


class StaticRosterSource:
    """Serves a fixed list of players (handy for scripts and tests)."""

    def __init__(self, players: Iterable[CommunityPlayer]):
        self._players = list(players)

    def load(self) -> list[CommunityPlayer]:
        return list(self._players)


class CommunityRoster:
    """In-memory id -> CommunityPlayer snapshot, kept in source order."""

    def __init__(self, source: RosterSource):
        self.source = source
        self._players: dict[str, CommunityPlayer] = {}
        self._loaded_at: Optional[datetime] = None

    def refresh(self) -> int:
        """
        Reload the snapshot from the source.

        Returns:
            Number of players loaded

        Raises:
            RosterUnavailableError: if the source fails (old snapshot is kept)
        """
        logger.info("Loading community player data")
        try:
            loaded = self.source.load()
        except RosterUnavailableError:
            raise
        except Exception as exc:
            raise RosterUnavailableError(f"Failed to load community roster: {exc}") from exc

        players: dict[str, CommunityPlayer] = {}
        for player in loaded:
            # First occurrence wins so roster order stays stable
            players.setdefault(player.id, player)

        self._players = players
        self._loaded_at = utc_now()
        logger.info("Community player data loaded: %d players", len(players))
        return len(players)

    @property
    def is_loaded(self) -> bool:
        return self._loaded_at is not None

    def __len__(self) -> int:
        return len(self._players)

    def require_loaded(self) -> None:
        if not self.is_loaded:
            raise RosterUnavailableError("Community roster has not been loaded")

    def player_ids(self) -> list[str]:
        return list(self._players)

    def get(self, character_id: int | str | None) -> Optional[CommunityPlayer]:
        if character_id is None:
            return None
        return self._players.get(str(character_id))

    def is_member(self, character_id: int | str | None) -> bool:
        return self.get(character_id) is not None

    def stats(self) -> dict:
        return {
            "total_players": len(self._players),
            "players_with_rating": sum(1 for p in self._players.values() if p.rating is not None),
            "last_updated": self._loaded_at.isoformat() if self._loaded_at else None,
        }

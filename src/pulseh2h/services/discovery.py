"""
Custom match discovery - finds H2H custom games between community players.

For a bounded sample of roster players this service asks SC2 Pulse for their
recent CUSTOM matches and keeps only genuine head-to-head candidates:

- match type is CUSTOM
- played on or after the cutoff date (midnight UTC)
- exactly two participants with a decisive (WIN/LOSS) decision
- the two decisive participants are different characters
- both decisive participants are community members

A match played between two community players shows up in both players'
histories; it is kept once per run, keyed by match id.

Players are queried one at a time with a fixed pause in between. Retries and
backoff belong to the HTTP client; the pause here is just to stay polite.

Usage:
    discovery = CustomMatchDiscovery(client, roster)
    raw_matches = await discovery.discover(config)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone

from pulseh2h.config import IngestionConfig
from pulseh2h.matches import CUSTOM_MATCH_TYPE
from pulseh2h.pulse.client import MatchClient
from pulseh2h.pulse.models import RawMatch, parse_character_matches
from pulseh2h.roster import CommunityRoster

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryStats:
    """Statistics from one discovery pass."""
    players_queried: int = 0
    players_failed: int = 0
    entries_seen: int = 0
    matches_accepted: int = 0
    duplicates_in_run: int = 0
    failed_player_ids: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"Custom match discovery complete: {self.matches_accepted} accepted "
            f"from {self.entries_seen} entries, {self.players_queried} players queried "
            f"({self.players_failed} failed), {self.duplicates_in_run} in-run duplicates"
        )


def cutoff_datetime(cutoff: date) -> datetime:
    return datetime.combine(cutoff, time.min, tzinfo=timezone.utc)


class CustomMatchDiscovery:
    """Queries Pulse for a sample of community players and filters H2H candidates."""

    def __init__(self, client: MatchClient, roster: CommunityRoster):
        self.client = client
        self.roster = roster
        self.last_stats = DiscoveryStats()

    def sample_players(self, batch_size: int) -> list[str]:
        """First batch_size player ids in roster order."""
        return self.roster.player_ids()[: max(batch_size, 0)]

    async def discover(self, config: IngestionConfig) -> list[RawMatch]:
        """
        Run one discovery pass.

        Args:
            config: Uses cutoff_date, batch_size, match_limit and request_delay_seconds

        Returns:
            H2H candidate matches, unique by match id, in discovery order

        Raises:
            RosterUnavailableError: if the roster has not been loaded
        """
        self.roster.require_loaded()

        cutoff = cutoff_datetime(config.cutoff_date)
        stats = DiscoveryStats()
        discovered: list[RawMatch] = []
        seen_match_ids: set[int] = set()

        player_ids = self.sample_players(config.batch_size)
        logger.info(
            "Starting custom match discovery: cutoff=%s, community players=%d, sampled=%d",
            config.cutoff_date.isoformat(), len(self.roster), len(player_ids),
        )

        for player_id in player_ids:
            stats.players_queried += 1
            try:
                player_matches = await self.fetch_player_matches(player_id, config.match_limit)
            except Exception as exc:
                stats.players_failed += 1
                stats.failed_player_ids.append(player_id)
                logger.warning("Failed to fetch matches for player %s: %s", player_id, exc)
            else:
                stats.entries_seen += len(player_matches)
                for match in player_matches:
                    if not self.is_h2h_candidate(match, cutoff):
                        continue
                    if match.match_id in seen_match_ids:
                        stats.duplicates_in_run += 1
                        continue
                    seen_match_ids.add(match.match_id)
                    discovered.append(match)

            if config.request_delay_seconds > 0:
                await asyncio.sleep(config.request_delay_seconds)

        stats.matches_accepted = len(discovered)
        self.last_stats = stats
        logger.info(stats.summary())
        return discovered

    async def fetch_player_matches(self, player_id: str, limit: int) -> list[RawMatch]:
        payload = await self.client.fetch_character_matches(
            player_id,
            match_type=CUSTOM_MATCH_TYPE,
            limit=limit,
        )
        return parse_character_matches(payload)

    def is_h2h_candidate(self, match: RawMatch, cutoff: datetime) -> bool:
        """Check type, date and the two-known-decisive-players rule."""
        if not match.is_custom:
            return False

        if match.date < cutoff:
            return False

        decisive = match.decisive_participants
        if len(decisive) != 2:
            return False

        if decisive[0].player_character_id == decisive[1].player_character_id:
            return False

        return all(self.roster.is_member(p.player_character_id) for p in decisive)

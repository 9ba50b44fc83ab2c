"""
Match storage - append-only persistence of processed H2H matches.

Matches are grouped by date_key and each date is written in its own
transaction. Rows are only ever inserted; a match id already present for its
date is left alone. A failure on one date is recorded and the remaining dates
are still written, so the orchestrator can record exactly the dates that made
it to disk.

Usage:
    writer = MatchStorageWriter(session_factory)
    result = await writer.store_matches(unique_matches)
    result.stored_date_keys  # {"2025-10-10", ...}
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from pulseh2h.db.models import CustomMatch
from pulseh2h.db.session import session_scope
from pulseh2h.matches import ProcessedMatch, to_utc
from pulseh2h.services.deduplication import group_by_date

logger = logging.getLogger(__name__)

DEFAULT_PARTITION_NAME = "custom_matches"

# Number of most recent dates sampled by get_storage_stats()
STATS_SAMPLE_DATES = 5


@dataclass
class StorageResult:
    """Outcome of one store_matches() call."""
    files_written: int = 0
    matches_stored: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)
    stored_date_keys: set[str] = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_written": self.files_written,
            "matches_stored": self.matches_stored,
            "errors": list(self.errors),
        }


def to_row(match: ProcessedMatch) -> CustomMatch:
    return CustomMatch(
        date_key=match.date_key,
        match_id=match.match_id,
        match_date=to_utc(match.match_date),
        map_name=match.map,
        confidence=match.confidence.value,
        outcome=match.outcome.kind,
        schema_version=match.schema_version,
        payload=match.to_dict(),
    )


class MatchStorageWriter:
    """Writes processed matches into per-date partitions of custom_matches."""

    def __init__(self, session_factory: sessionmaker, partition_name: str = DEFAULT_PARTITION_NAME):
        self.session_factory = session_factory
        self.partition_name = partition_name

    # =========================================================================
    # Writes
    # =========================================================================

    async def store_matches(self, matches: list[ProcessedMatch]) -> StorageResult:
        """
        Store matches grouped by date.

        Args:
            matches: Unique, scored matches

        Returns:
            StorageResult; stored_date_keys lists every date whose transaction
            committed (including dates where all ids were already present)
        """
        result = StorageResult()
        if not matches:
            return result

        for date_key, date_matches in sorted(group_by_date(matches).items()):
            try:
                written = self._append_date(date_key, date_matches)
            except Exception as exc:
                result.errors.append({"date": date_key, "error": str(exc)})
                logger.error("Failed to store matches for %s: %s", date_key, exc)
                continue

            result.stored_date_keys.add(date_key)
            if written:
                result.files_written += 1
                result.matches_stored += written
            logger.info("Stored %d matches for %s", written, date_key)

        logger.info(
            "Storage completed: %d matches across %d dates, %d errors",
            result.matches_stored, result.files_written, len(result.errors),
        )
        return result

    def _append_date(self, date_key: str, matches: list[ProcessedMatch]) -> int:
        with session_scope(self.session_factory) as session:
            existing = set(
                session.scalars(
                    select(CustomMatch.match_id).where(CustomMatch.date_key == date_key)
                )
            )

            written = 0
            for match in matches:
                if match.match_id in existing:
                    logger.debug("Match %s already stored for %s", match.match_id, date_key)
                    continue
                session.add(to_row(match))
                existing.add(match.match_id)
                written += 1
        return written

    # =========================================================================
    # Reads
    # =========================================================================

    def get_matches(self, date_key: str) -> list[ProcessedMatch]:
        """All stored matches for one date, in insertion order."""
        with session_scope(self.session_factory) as session:
            payloads = list(
                session.scalars(
                    select(CustomMatch.payload)
                    .where(CustomMatch.date_key == date_key)
                    .order_by(CustomMatch.id)
                )
            )
        return [ProcessedMatch.from_dict(payload) for payload in payloads]

    def list_available_dates(self) -> list[str]:
        """Stored date keys, oldest first."""
        with session_scope(self.session_factory) as session:
            return list(
                session.scalars(
                    select(CustomMatch.date_key).distinct().order_by(CustomMatch.date_key)
                )
            )

    def get_storage_stats(self) -> dict[str, Any]:
        try:
            with session_scope(self.session_factory) as session:
                counts = session.execute(
                    select(CustomMatch.date_key, func.count(CustomMatch.id))
                    .group_by(CustomMatch.date_key)
                    .order_by(CustomMatch.date_key)
                ).all()
        except Exception as exc:
            logger.error("Failed to get storage stats: %s", exc)
            return self._empty_stats()

        recent = counts[-STATS_SAMPLE_DATES:]
        date_range: Optional[dict[str, str]] = None
        if counts:
            date_range = {"earliest": counts[0][0], "latest": counts[-1][0]}

        return {
            "total_files": len(counts),
            "sampled_matches": sum(count for _, count in recent),
            "date_range": date_range,
            "recent_date_stats": [
                {"date": date_key, "match_count": count} for date_key, count in reversed(recent)
            ],
            "partition_name": self.partition_name,
        }

    def _empty_stats(self) -> dict[str, Any]:
        return {
            "total_files": 0,
            "sampled_matches": 0,
            "date_range": None,
            "recent_date_stats": [],
            "partition_name": self.partition_name,
        }

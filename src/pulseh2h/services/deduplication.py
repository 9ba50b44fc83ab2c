"""
Match deduplication - keeps a match from being stored twice.

The index lives in the processed_match_ids table, partitioned by date_key.
Per-date id sets are loaded lazily into a bounded in-memory cache.

Ordering contract with storage:

    filter_duplicates()  - read-only; never touches the index
    store_matches()      - durable write (StorageWriter)
    record_processed()   - only for what storage actually wrote

A crash between scoring and storage means the match is simply found again
next cycle. The index never runs ahead of storage.

Usage:
    dedup = MatchDeduplicator(session_factory)
    result = await dedup.filter_duplicates(matches)
    ...store result.unique_matches...
    await dedup.record_processed(stored)
"""

import logging
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from pulseh2h.db.models import ProcessedMatchId
from pulseh2h.db.session import describe_engine, session_scope
from pulseh2h.matches import ProcessedMatch

logger = logging.getLogger(__name__)

DEFAULT_CACHE_LIMIT = 10000


@dataclass
class DeduplicationResult:
    unique_matches: list[ProcessedMatch] = field(default_factory=list)
    duplicate_count: int = 0
    duplicate_match_ids: list[int] = field(default_factory=list)


def group_by_date(matches: Iterable[ProcessedMatch]) -> dict[str, list[ProcessedMatch]]:
    """Group matches by date_key, keeping input order inside each group."""
    grouped: dict[str, list[ProcessedMatch]] = defaultdict(list)
    for match in matches:
        grouped[match.date_key].append(match)
    return dict(grouped)


class MatchDeduplicator:
    """Persisted (date_key, match_id) index with an in-memory cache."""

    def __init__(self, session_factory: sessionmaker, cache_limit: int = DEFAULT_CACHE_LIMIT):
        self.session_factory = session_factory
        self.cache_limit = cache_limit
        # date_key -> ids; insertion order doubles as age for eviction
        self._cache: OrderedDict[str, set[int]] = OrderedDict()
        self._cache_size = 0

    # =========================================================================
    # Public API
    # =========================================================================

    async def filter_duplicates(self, matches: list[ProcessedMatch]) -> DeduplicationResult:
        """
        Split a batch into new matches and ones already recorded.

        A match id repeated inside the batch counts as a duplicate after its
        first occurrence. Neither the index nor the cached id sets are changed.
        """
        result = DeduplicationResult()

        for date_key, date_matches in group_by_date(matches).items():
            existing = self._load_existing_ids(date_key)
            seen_in_batch: set[int] = set()

            for match in date_matches:
                if match.match_id in existing or match.match_id in seen_in_batch:
                    result.duplicate_match_ids.append(match.match_id)
                    logger.debug("Duplicate match %s on %s", match.match_id, date_key)
                    continue
                seen_in_batch.add(match.match_id)
                result.unique_matches.append(match)

        result.duplicate_count = len(result.duplicate_match_ids)
        logger.info(
            "De-duplication completed: %d total, %d unique, %d duplicates",
            len(matches), len(result.unique_matches), result.duplicate_count,
        )
        return result

    async def record_processed(self, matches: list[ProcessedMatch]) -> int:
        """
        Record stored matches in the index.

        Call only with matches that were durably written. Ids already in the
        index are skipped.

        Returns:
            Number of new index rows
        """
        recorded = 0
        for date_key, date_matches in group_by_date(matches).items():
            match_ids = {m.match_id for m in date_matches}
            recorded += self._append_ids(date_key, match_ids)

        logger.debug("Recorded %d match ids for de-duplication", recorded)
        return recorded

    async def is_duplicate(self, match_id: int, date_key: str) -> bool:
        return match_id in self._load_existing_ids(date_key)

    async def get_stats(self) -> dict[str, Any]:
        with session_scope(self.session_factory) as session:
            tracked_dates = session.scalar(
                select(func.count(func.distinct(ProcessedMatchId.date_key)))
            ) or 0
            tracked_matches = session.scalar(select(func.count(ProcessedMatchId.id))) or 0

        return {
            "tracking_store_location": self._store_location(),
            "cache_size": self._cache_size,
            "cache_keys": len(self._cache),
            "tracked_dates": tracked_dates,
            "tracked_matches": tracked_matches,
        }

    async def cleanup(self) -> None:
        """Drop the in-memory cache. Persisted index rows are kept."""
        dropped = len(self._cache)
        self._cache.clear()
        self._cache_size = 0
        logger.info("De-duplication cache cleared (%d dates dropped)", dropped)

    # =========================================================================
    # Internals
    # =========================================================================

    def _store_location(self) -> str:
        bind = self.session_factory.kw.get("bind")
        return describe_engine(bind if isinstance(bind, Engine) else None) + "#processed_match_ids"

    def _load_existing_ids(self, date_key: str) -> frozenset[int]:
        cached = self._cache.get(date_key)
        if cached is not None:
            return frozenset(cached)

        with session_scope(self.session_factory) as session:
            ids = set(
                session.scalars(
                    select(ProcessedMatchId.match_id).where(ProcessedMatchId.date_key == date_key)
                )
            )

        self._cache_put(date_key, ids)
        logger.debug("Loaded %d processed match ids for %s", len(ids), date_key)
        return frozenset(ids)

    def _append_ids(self, date_key: str, match_ids: set[int]) -> int:
        if not match_ids:
            return 0

        with session_scope(self.session_factory) as session:
            already = set(
                session.scalars(
                    select(ProcessedMatchId.match_id).where(
                        ProcessedMatchId.date_key == date_key,
                        ProcessedMatchId.match_id.in_(match_ids),
                    )
                )
            )
            new_ids = sorted(match_ids - already)
            session.add_all(
                ProcessedMatchId(date_key=date_key, match_id=match_id) for match_id in new_ids
            )

        cached: Optional[set[int]] = self._cache.get(date_key)
        if cached is not None:
            self._cache_put(date_key, cached | match_ids)
        return len(new_ids)

    def _cache_put(self, date_key: str, ids: set[int]) -> None:
        old = self._cache.pop(date_key, None)
        if old is not None:
            self._cache_size -= len(old)

        if self._cache_size + len(ids) > self.cache_limit:
            self._evict_oldest()

        self._cache[date_key] = set(ids)
        self._cache_size += len(ids)

    def _evict_oldest(self) -> None:
        """Drop the oldest half of the cached dates."""
        to_remove = max(len(self._cache) // 2, 1) if self._cache else 0
        for _ in range(to_remove):
            _, ids = self._cache.popitem(last=False)
            self._cache_size -= len(ids)
        logger.debug("Evicted %d cached dates, cache size now %d", to_remove, self._cache_size)

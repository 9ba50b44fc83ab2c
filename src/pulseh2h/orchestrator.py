"""
Ingestion orchestrator - composes one cycle and owns the pipeline lifecycle.

One cycle runs these stages strictly in order:

    discovery -> validation -> scoring -> filter -> dedup -> storage -> record

Every stage is guarded. A stage that raises is recorded on the run result as
a StageError and the later stages continue with whatever data is left
(usually nothing). run_manual_ingestion() therefore never raises.

The dedup index is only written for matches whose date partition was stored
successfully, so new_matches_stored and duplicates_skipped only ever reflect
durable work and a failed write is simply retried on the next cycle.

Lifecycle:
    stopped --start()--> running --stop()--> stopped

start() loads the roster and hands _run_cycle to an IntervalScheduler that
runs a cycle immediately and then every poll_interval_seconds. Manual runs
work in either state.

Usage:
    orchestrator = build_orchestrator()
    result = await orchestrator.run_manual_ingestion()
    print(result.to_dict())
"""

import logging
import time
from typing import Any, Optional

from pulseh2h import __version__
from pulseh2h.config import IngestionConfig, Settings, get_settings
from pulseh2h.db.session import create_db_engine, create_session_factory, create_tables
from pulseh2h.matches import MatchCandidate, ProcessedMatch, utc_now
from pulseh2h.pulse.client import MatchClient, PulseClient
from pulseh2h.pulse.models import RawMatch
from pulseh2h.roster import CommunityRoster, CsvRosterSource
from pulseh2h.services.deduplication import DeduplicationResult, MatchDeduplicator
from pulseh2h.services.discovery import CustomMatchDiscovery
from pulseh2h.services.scoring import MatchConfidenceScorer, ScoringConfig
from pulseh2h.services.storage import MatchStorageWriter, StorageResult
from pulseh2h.services.validation import ParticipantValidator, build_candidates
from pulseh2h.tasks.runtime import IngestionRunResult, StageError
from pulseh2h.tasks.scheduler import IntervalScheduler

logger = logging.getLogger(__name__)


def scoring_config_from_settings(source: Settings) -> ScoringConfig:
    return ScoringConfig.with_overrides(
        factor_points=source.h2h_factor_points,
        threshold_medium=source.h2h_score_threshold_medium,
        threshold_high=source.h2h_score_threshold_high,
    )


class IngestionOrchestrator:
    """
    Runs ingestion cycles, on a schedule or on demand.

    All collaborators are passed in; build_orchestrator() wires the real ones.
    """

    def __init__(
        self,
        config: IngestionConfig,
        roster: CommunityRoster,
        client: MatchClient,
        scorer: MatchConfidenceScorer,
        deduplicator: MatchDeduplicator,
        storage: MatchStorageWriter,
        settings_loader=get_settings,
    ):
        self.config = config
        self.roster = roster
        self.client = client
        self.discovery = CustomMatchDiscovery(client, roster)
        self.validator = ParticipantValidator(roster)
        self.scorer = scorer
        self.deduplicator = deduplicator
        self.storage = storage
        self._settings_loader = settings_loader

        self.is_running = False
        self.last_run: Optional[IngestionRunResult] = None
        self.total_runs = 0
        self._started_monotonic: Optional[float] = None
        self._scheduler: Optional[IntervalScheduler] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize_community_data(self) -> int:
        """
        Load (or reload) the community roster.

        Raises:
            RosterUnavailableError: if the roster source fails
        """
        count = self.roster.refresh()
        logger.info("Community data initialized: %d players", count)
        return count

    async def start(self) -> None:
        """
        Load the roster and start scheduled ingestion.

        Raises:
            RosterUnavailableError: if the roster cannot be loaded
        """
        if self.is_running:
            logger.warning("Custom match ingestion already running")
            return

        logger.info(
            "Starting custom match ingestion: cutoff=%s, min_confidence=%s, every %ds",
            self.config.cutoff_date.isoformat(),
            self.config.min_confidence.value,
            self.config.poll_interval_seconds,
        )
        await self.initialize_community_data()

        self._scheduler = IntervalScheduler(
            self._run_cycle,
            interval=self.config.poll_interval_seconds,
            run_immediately=True,
            name="custom-match-ingestion",
        )
        self._scheduler.start()
        self.is_running = True
        self._started_monotonic = time.monotonic()
        logger.info("Custom match ingestion started")

    async def stop(self) -> None:
        """Stop scheduled ingestion; an in-flight cycle is allowed to finish."""
        if not self.is_running:
            logger.warning("Custom match ingestion not running")
            return

        logger.info("Stopping custom match ingestion")
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None:
            await scheduler.stop()

        self.is_running = False
        self._started_monotonic = None
        logger.info("Custom match ingestion stopped")

    async def run_manual_ingestion(self) -> IngestionRunResult:
        """
        Refresh the roster and run one cycle now. Never raises.

        A roster failure is recorded as a "roster" stage error and the cycle
        runs against the previous snapshot (discovery then fails cleanly if
        there never was one).
        """
        logger.info("Manual custom match ingestion triggered")

        roster_error: Optional[Exception] = None
        try:
            await self.initialize_community_data()
        except Exception as exc:
            logger.error("Roster refresh failed before manual ingestion: %s", exc)
            roster_error = exc

        result = await self._run_cycle()
        if roster_error is not None:
            result.errors.insert(0, StageError(stage="roster", error=str(roster_error)))
        return result

    def reload(self) -> IngestionConfig:
        """
        Re-resolve configuration from settings.

        Takes effect for the next cycle. A running schedule keeps its
        interval until it is restarted.
        """
        loader = self._settings_loader
        cache_clear = getattr(loader, "cache_clear", None)
        if cache_clear is not None:
            cache_clear()
        source = loader()

        self.config = IngestionConfig.from_settings(source)
        self.scorer = MatchConfidenceScorer(
            scoring_config_from_settings(source),
            active_recently=self.scorer.active_recently,
            similar_skill=self.scorer.similar_skill,
        )
        logger.info("Configuration reloaded: %s", self.config.to_dict())
        return self.config

    async def aclose(self) -> None:
        """Stop scheduling and release the upstream client."""
        if self.is_running:
            await self.stop()
        close = getattr(self.client, "aclose", None)
        if close is not None:
            await close()

    # =========================================================================
    # Cycle
    # =========================================================================

    async def _run_cycle(self) -> IngestionRunResult:
        config = self.config
        result = IngestionRunResult()
        logger.info("Starting custom match ingestion cycle")

        # Stage 1: discovery
        raw_matches: list[RawMatch] = []
        try:
            raw_matches = await self.discovery.discover(config)
        except Exception as exc:
            logger.error("Discovery stage failed: %s", exc)
            result.add_error("discovery", exc)
        result.matches_discovered = len(raw_matches)

        # Stage 2: participant validation and outcome extraction
        candidates: list[MatchCandidate] = []
        try:
            candidates, _ = build_candidates(raw_matches, self.validator)
        except Exception as exc:
            logger.error("Validation stage failed: %s", exc)
            result.add_error("validation", exc)
        result.matches_with_valid_participants = len(candidates)

        # Stage 3: confidence scoring
        scored: list[ProcessedMatch] = []
        try:
            scored = self.scorer.score_matches(candidates)
        except Exception as exc:
            logger.error("Scoring stage failed: %s", exc)
            result.add_error("scoring", exc)

        # Stage 4: confidence threshold
        qualifying = [m for m in scored if m.confidence >= config.min_confidence]
        result.matches_meeting_threshold = len(qualifying)
        if len(qualifying) < len(scored):
            logger.info(
                "%d matches below %s confidence dropped",
                len(scored) - len(qualifying), config.min_confidence.value,
            )

        # Stage 5: deduplication
        dedup = DeduplicationResult()
        try:
            dedup = await self.deduplicator.filter_duplicates(qualifying)
        except Exception as exc:
            logger.error("De-duplication stage failed: %s", exc)
            result.add_error("dedup", exc)

        # Stage 6: storage
        stored = StorageResult()
        if dedup.unique_matches:
            try:
                stored = await self.storage.store_matches(dedup.unique_matches)
            except Exception as exc:
                logger.error("Storage stage failed: %s", exc)
                result.add_error("storage", exc)
            for failure in stored.errors:
                result.add_error("storage", f"{failure['date']}: {failure['error']}")

        # Stage 7: record only what reached storage
        durable = [m for m in dedup.unique_matches if m.date_key in stored.stored_date_keys]
        if durable:
            try:
                await self.deduplicator.record_processed(durable)
            except Exception as exc:
                logger.error("Recording processed matches failed: %s", exc)
                result.add_error("record", exc)

        result.new_matches_stored = stored.matches_stored
        result.duplicates_skipped = dedup.duplicate_count

        result.finish()
        self.last_run = result
        self.total_runs += 1
        logger.info(
            "Ingestion cycle finished in %dms: discovered=%d valid=%d qualifying=%d "
            "stored=%d duplicates=%d errors=%d",
            result.duration_ms,
            result.matches_discovered,
            result.matches_with_valid_participants,
            result.matches_meeting_threshold,
            result.new_matches_stored,
            result.duplicates_skipped,
            len(result.errors),
        )
        return result

    # =========================================================================
    # Monitoring
    # =========================================================================

    def get_status(self) -> dict[str, Any]:
        uptime_ms = 0
        if self.is_running and self._started_monotonic is not None:
            uptime_ms = int((time.monotonic() - self._started_monotonic) * 1000)

        next_run_at = None
        if self._scheduler is not None and self._scheduler.next_run_at is not None:
            next_run_at = self._scheduler.next_run_at.isoformat()

        return {
            "is_running": self.is_running,
            "uptime_ms": uptime_ms,
            "config": {
                "cutoff_date": self.config.cutoff_date.isoformat(),
                "min_confidence": self.config.min_confidence.value,
                "poll_interval_seconds": self.config.poll_interval_seconds,
            },
            "last_run": self.last_run.to_dict() if self.last_run else None,
            "next_run_at": next_run_at,
        }

    async def get_stats(self) -> dict[str, Any]:
        scheduler = self._scheduler
        return {
            "system": {
                "version": __version__,
                "is_running": self.is_running,
                "total_runs": self.total_runs,
                "skipped_ticks": scheduler.skipped_ticks if scheduler else 0,
                "config": self.config.to_dict(),
                "generated_at": utc_now().isoformat(),
            },
            "community": self.roster.stats(),
            "discovery": {
                "players_queried": self.discovery.last_stats.players_queried,
                "players_failed": self.discovery.last_stats.players_failed,
                "matches_accepted": self.discovery.last_stats.matches_accepted,
            },
            "deduplication": await self.deduplicator.get_stats(),
            "storage": self.storage.get_storage_stats(),
            "scoring": self.scorer.describe(),
        }

    async def cleanup(self) -> None:
        """Release caches. Persisted data is untouched."""
        await self.deduplicator.cleanup()
        logger.info("Custom match ingestion cleanup completed")


# =============================================================================
# Composition root
# =============================================================================


def build_orchestrator(
    source: Optional[Settings] = None,
    client: Optional[MatchClient] = None,
    roster: Optional[CommunityRoster] = None,
    create_schema: bool = True,
) -> IngestionOrchestrator:
    """
    Wire an orchestrator from settings.

    Args:
        source: Settings to use (defaults to get_settings())
        client: Upstream client; a PulseClient is opened when omitted
        roster: Community roster; a CSV-backed one when omitted
        create_schema: Create missing tables (alembic still owns migrations)
    """
    source = source or get_settings()

    engine = create_db_engine(source.database_url, echo=source.db_echo)
    if create_schema:
        create_tables(engine)
    session_factory = create_session_factory(engine)

    if client is None:
        client = PulseClient(
            base_url=source.pulse_base_url,
            timeout=source.pulse_timeout_seconds,
            max_attempts=source.pulse_max_retries,
        ).open()

    return IngestionOrchestrator(
        config=IngestionConfig.from_settings(source),
        roster=roster if roster is not None else CommunityRoster(CsvRosterSource(source.roster_csv_path)),
        client=client,
        scorer=MatchConfidenceScorer(scoring_config_from_settings(source)),
        deduplicator=MatchDeduplicator(session_factory, cache_limit=source.h2h_dedupe_cache_limit),
        storage=MatchStorageWriter(session_factory, partition_name=source.h2h_storage_partition_name),
    )


__all__ = [
    "IngestionOrchestrator",
    "build_orchestrator",
    "scoring_config_from_settings",
]

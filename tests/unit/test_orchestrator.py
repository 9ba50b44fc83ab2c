"""Unit tests for the ingestion orchestrator."""

import asyncio
from dataclasses import replace
from datetime import date

import pytest

from pulseh2h.config import Settings
from pulseh2h.matches import ConfidenceTier
from pulseh2h.orchestrator import IngestionOrchestrator, build_orchestrator
from pulseh2h.roster import CommunityRoster, StaticRosterSource
from pulseh2h.services.deduplication import MatchDeduplicator
from pulseh2h.services.scoring import MatchConfidenceScorer
from pulseh2h.services.storage import MatchStorageWriter


@pytest.fixture
def make_orchestrator(session_factory, roster, ingestion_config):
    def _make(client, config=None, roster_override=None, storage=None):
        return IngestionOrchestrator(
            config=config if config is not None else ingestion_config,
            roster=roster_override if roster_override is not None else roster,
            client=client,
            scorer=MatchConfidenceScorer(),
            deduplicator=MatchDeduplicator(session_factory),
            storage=storage if storage is not None else MatchStorageWriter(session_factory),
        )
    return _make


@pytest.fixture
def h2h_client(fake_client_factory, entry_factory):
    entry = entry_factory(500, [(101, "WIN"), (102, "LOSS")], map_name="Custom Arena", duration=300)
    return fake_client_factory({"101": [entry], "102": [entry]})


@pytest.mark.asyncio
async def test_win_loss_scenario_stored_once_then_duplicate(make_orchestrator, h2h_client):
    orchestrator = make_orchestrator(h2h_client)

    first = await orchestrator.run_manual_ingestion()

    assert first.errors == []
    assert first.matches_discovered == 1
    assert first.matches_with_valid_participants == 1
    assert first.matches_meeting_threshold == 1
    assert first.new_matches_stored == 1
    assert first.duplicates_skipped == 0

    (stored,) = orchestrator.storage.get_matches("2025-10-10")
    assert stored.confidence is ConfidenceTier.MEDIUM

    second = await orchestrator.run_manual_ingestion()

    assert second.new_matches_stored == 0
    assert second.duplicates_skipped == 1
    assert len(orchestrator.storage.get_matches("2025-10-10")) == 1


@pytest.mark.asyncio
async def test_observer_scenario_stores_nothing(make_orchestrator, fake_client_factory, entry_factory):
    client = fake_client_factory({
        "101": [entry_factory(600, [(101, "WIN"), (103, "OBSERVER")])],
    })
    orchestrator = make_orchestrator(client)

    result = await orchestrator.run_manual_ingestion()

    assert result.matches_discovered == 0
    assert result.matches_with_valid_participants == 0
    assert result.new_matches_stored == 0
    assert orchestrator.storage.list_available_dates() == []


@pytest.mark.asyncio
async def test_high_threshold_filters_medium_batch(make_orchestrator, h2h_client, ingestion_config):
    config = replace(ingestion_config, min_confidence=ConfidenceTier.HIGH)
    orchestrator = make_orchestrator(h2h_client, config=config)

    result = await orchestrator.run_manual_ingestion()

    assert result.matches_with_valid_participants == 1
    assert result.matches_meeting_threshold == 0
    assert result.new_matches_stored == 0
    assert orchestrator.storage.list_available_dates() == []


@pytest.mark.asyncio
async def test_unloaded_roster_becomes_stage_errors(make_orchestrator, h2h_client):
    class BrokenSource:
        def load(self):
            raise OSError("csv missing")

    orchestrator = make_orchestrator(h2h_client, roster_override=CommunityRoster(BrokenSource()))

    result = await orchestrator.run_manual_ingestion()

    assert [error.stage for error in result.errors] == ["roster", "discovery"]
    assert result.matches_discovered == 0
    assert orchestrator.last_run is result


@pytest.mark.asyncio
async def test_roster_failure_keeps_previous_snapshot(make_orchestrator, h2h_client, roster):
    orchestrator = make_orchestrator(h2h_client)

    class BrokenSource:
        def load(self):
            raise OSError("csv missing")

    roster.source = BrokenSource()
    result = await orchestrator.run_manual_ingestion()

    assert [error.stage for error in result.errors] == ["roster"]
    assert result.new_matches_stored == 1


@pytest.mark.asyncio
async def test_failed_storage_is_not_recorded(make_orchestrator, h2h_client, session_factory):
    class FailingStorage(MatchStorageWriter):
        def _append_date(self, date_key, matches):
            raise RuntimeError("disk full")

    orchestrator = make_orchestrator(h2h_client, storage=FailingStorage(session_factory))

    result = await orchestrator.run_manual_ingestion()

    assert result.new_matches_stored == 0
    assert [error.stage for error in result.errors] == ["storage"]
    assert not await orchestrator.deduplicator.is_duplicate(500, "2025-10-10")


@pytest.mark.asyncio
async def test_start_runs_immediately_and_stop_waits(make_orchestrator, h2h_client):
    orchestrator = make_orchestrator(h2h_client)

    await orchestrator.start()
    await orchestrator.start()  # second start is a no-op
    for _ in range(100):
        if orchestrator.last_run is not None:
            break
        await asyncio.sleep(0.01)

    status = orchestrator.get_status()
    assert status["is_running"] is True
    assert status["config"]["min_confidence"] == "low"
    assert status["next_run_at"] is not None

    await orchestrator.stop()

    assert orchestrator.is_running is False
    assert orchestrator.total_runs == 1
    assert orchestrator.last_run.new_matches_stored == 1
    assert orchestrator.get_status()["uptime_ms"] == 0


@pytest.mark.asyncio
async def test_get_stats_sections(make_orchestrator, h2h_client):
    orchestrator = make_orchestrator(h2h_client)
    await orchestrator.run_manual_ingestion()

    stats = await orchestrator.get_stats()

    assert set(stats) >= {"system", "community", "deduplication", "storage", "scoring"}
    assert stats["community"]["total_players"] == 4
    assert stats["deduplication"]["tracked_dates"] == 1
    assert stats["storage"]["total_files"] == 1
    assert stats["system"]["total_runs"] == 1


@pytest.mark.asyncio
async def test_cleanup_keeps_persisted_index(make_orchestrator, h2h_client):
    orchestrator = make_orchestrator(h2h_client)
    await orchestrator.run_manual_ingestion()

    await orchestrator.cleanup()
    result = await orchestrator.run_manual_ingestion()

    assert result.duplicates_skipped == 1


def test_reload_picks_up_new_settings(make_orchestrator, h2h_client):
    orchestrator = make_orchestrator(h2h_client)
    orchestrator._settings_loader = lambda: Settings(
        h2h_min_confidence="high",
        h2h_batch_size=5,
        h2h_cutoff_date=date(2025, 11, 1),
        h2h_score_threshold_medium=7,
    )

    config = orchestrator.reload()

    assert config.min_confidence is ConfidenceTier.HIGH
    assert config.batch_size == 5
    assert orchestrator.config.cutoff_date == date(2025, 11, 1)
    assert orchestrator.scorer.config.threshold_medium == 7


@pytest.mark.asyncio
async def test_build_orchestrator_wires_components(tmp_path, fake_client_factory):
    roster_csv = tmp_path / "roster.csv"
    roster_csv.write_text("id,name,btag,rating,lastPlayed\n101,Alpha,Alpha#101,4200,\n", encoding="utf-8")
    source = Settings(
        database_url=f"sqlite:///{tmp_path / 'h2h.db'}",
        roster_csv_path=str(roster_csv),
        h2h_dedupe_cache_limit=500,
        h2h_storage_partition_name="h2h",
    )
    client = fake_client_factory()

    orchestrator = build_orchestrator(source, client=client)
    assert await orchestrator.initialize_community_data() == 1
    assert orchestrator.deduplicator.cache_limit == 500
    assert orchestrator.storage.partition_name == "h2h"

    await orchestrator.aclose()
    assert client.closed


@pytest.mark.asyncio
async def test_build_orchestrator_keeps_unloaded_injected_roster(tmp_path, fake_client_factory):
    source = Settings(
        database_url=f"sqlite:///{tmp_path / 'h2h.db'}",
        roster_csv_path=str(tmp_path / "missing.csv"),
    )
    mine = CommunityRoster(StaticRosterSource([]))
    assert len(mine) == 0

    orchestrator = build_orchestrator(source, client=fake_client_factory(), roster=mine)

    assert orchestrator.roster is mine
    assert orchestrator.discovery.roster is mine
    assert orchestrator.validator.roster is mine
    await orchestrator.aclose()


@pytest.mark.asyncio
async def test_self_match_is_not_stored(make_orchestrator, fake_client_factory, entry_factory):
    client = fake_client_factory({
        "101": [entry_factory(700, [(101, "WIN"), (101, "LOSS")])],
    })
    orchestrator = make_orchestrator(client)

    result = await orchestrator.run_manual_ingestion()

    assert result.errors == []
    assert result.matches_discovered == 0
    assert result.new_matches_stored == 0
    assert orchestrator.storage.list_available_dates() == []

"""Unit tests for append-only match storage."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from pulseh2h.matches import (
    ConfidenceFactors,
    ConfidenceTier,
    ProcessedMatch,
    ValidatedParticipant,
    WinLoss,
)
from pulseh2h.services.storage import MatchStorageWriter

ALPHA = ValidatedParticipant(character_id=101, battle_tag="Alpha#101", display_name="Alpha")
BRAVO = ValidatedParticipant(character_id=102, battle_tag="Bravo#102", display_name="Bravo")


def _match(match_id, day=10, confidence=ConfidenceTier.MEDIUM):
    return ProcessedMatch(
        match_id=match_id,
        match_date=datetime(2025, 10, day, 12, tzinfo=timezone.utc),
        map="Altitude LE",
        participants=(ALPHA, BRAVO),
        outcome=WinLoss(winner=ALPHA, loser=BRAVO),
        confidence=confidence,
        confidence_factors=ConfidenceFactors(has_valid_character_ids=True),
        duration_seconds=300,
    )


@pytest.mark.asyncio
async def test_store_groups_by_date(session_factory):
    writer = MatchStorageWriter(session_factory)

    result = await writer.store_matches([_match(1), _match(2), _match(3, day=11)])

    assert result.files_written == 2
    assert result.matches_stored == 3
    assert result.errors == []
    assert result.stored_date_keys == {"2025-10-10", "2025-10-11"}
    assert writer.list_available_dates() == ["2025-10-10", "2025-10-11"]


@pytest.mark.asyncio
async def test_store_is_append_only(session_factory):
    writer = MatchStorageWriter(session_factory)
    await writer.store_matches([_match(1, confidence=ConfidenceTier.MEDIUM)])

    result = await writer.store_matches([_match(1, confidence=ConfidenceTier.HIGH), _match(2)])

    assert result.matches_stored == 1
    stored = {m.match_id: m for m in writer.get_matches("2025-10-10")}
    assert set(stored) == {1, 2}
    assert stored[1].confidence is ConfidenceTier.MEDIUM


@pytest.mark.asyncio
async def test_round_trips_processed_match(session_factory):
    writer = MatchStorageWriter(session_factory)
    original = _match(1)
    await writer.store_matches([original])

    (restored,) = writer.get_matches("2025-10-10")

    assert restored.match_id == 1
    assert restored.outcome == original.outcome
    assert restored.confidence_factors == original.confidence_factors
    assert restored.date_key == original.date_key


@pytest.mark.asyncio
async def test_failure_on_one_date_does_not_stop_others(session_factory):
    writer = MatchStorageWriter(session_factory)
    original = writer._append_date

    def flaky(date_key, matches):
        if date_key == "2025-10-10":
            raise RuntimeError("disk full")
        return original(date_key, matches)

    with patch.object(writer, "_append_date", side_effect=flaky):
        result = await writer.store_matches([_match(1), _match(2, day=11)])

    assert result.stored_date_keys == {"2025-10-11"}
    assert result.matches_stored == 1
    assert result.errors == [{"date": "2025-10-10", "error": "disk full"}]


@pytest.mark.asyncio
async def test_empty_batch(session_factory):
    result = await MatchStorageWriter(session_factory).store_matches([])
    assert result.files_written == 0
    assert result.stored_date_keys == set()


@pytest.mark.asyncio
async def test_storage_stats_sample_recent_dates(session_factory):
    writer = MatchStorageWriter(session_factory, partition_name="custom_matches")
    matches = [_match(day * 10, day=day) for day in range(10, 17)]
    matches.append(_match(999, day=16))
    await writer.store_matches(matches)

    stats = writer.get_storage_stats()

    assert stats["total_files"] == 7
    assert stats["date_range"] == {"earliest": "2025-10-10", "latest": "2025-10-16"}
    assert [d["date"] for d in stats["recent_date_stats"]] == [
        "2025-10-16", "2025-10-15", "2025-10-14", "2025-10-13", "2025-10-12",
    ]
    assert stats["sampled_matches"] == 6
    assert stats["partition_name"] == "custom_matches"


def test_storage_stats_empty(session_factory):
    stats = MatchStorageWriter(session_factory).get_storage_stats()
    assert stats["total_files"] == 0
    assert stats["date_range"] is None
    assert stats["recent_date_stats"] == []

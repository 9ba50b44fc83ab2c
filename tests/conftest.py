"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from pulseh2h.config import IngestionConfig
from pulseh2h.db.models import Base
from pulseh2h.db.session import create_session_factory
from pulseh2h.matches import ConfidenceTier
from pulseh2h.roster import CommunityPlayer, CommunityRoster, StaticRosterSource

COMMUNITY_PLAYERS = [
    CommunityPlayer(id="101", name="Alpha", battle_tag="Alpha#101", rating=4200,
                    last_played=datetime(2025, 10, 9, tzinfo=timezone.utc)),
    CommunityPlayer(id="102", name="Bravo", battle_tag="Bravo#102", rating=4350,
                    last_played=datetime(2025, 10, 9, tzinfo=timezone.utc)),
    CommunityPlayer(id="103", name="Charlie", battle_tag="Charlie#103", rating=5100),
    CommunityPlayer(id="104", name="Delta", battle_tag="Delta#104"),
]


class FakeMatchClient:
    """
    Stands in for PulseClient.

    responses maps a character id to either a payload or an exception to raise.
    Unknown ids get an empty list.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.closed = False

    async def fetch_character_matches(self, character_id, *, match_type="CUSTOM", limit=50):
        self.calls.append((character_id, match_type, limit))
        response = self.responses.get(character_id, [])
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self):
        self.closed = True


def make_entry(
    match_id,
    participants,
    when="2025-10-10T12:00:00Z",
    match_type="CUSTOM",
    map_name="Altitude LE",
    duration=300,
):
    """Build one character-matches entry; participants is [(character_id, decision), ...]."""
    return {
        "match": {
            "id": match_id,
            "date": when,
            "type": match_type,
            "mapId": 7,
            "region": "EU",
            "duration": duration,
        },
        "map": {"id": 7, "name": map_name},
        "participants": [
            {"participant": {"playerCharacterId": character_id, "decision": decision}}
            for character_id, decision in participants
        ],
    }


@pytest.fixture
def test_engine():
    """
    In-memory SQLite engine shared across connections.

    StaticPool keeps a single connection so every session sees the same
    database for the lifetime of the test.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest.fixture
def roster():
    """Loaded roster with four community players."""
    community = CommunityRoster(StaticRosterSource(COMMUNITY_PLAYERS))
    community.refresh()
    return community


@pytest.fixture
def entry_factory():
    return make_entry


@pytest.fixture
def fake_client_factory():
    return FakeMatchClient


@pytest.fixture
def ingestion_config():
    return IngestionConfig(
        cutoff_date=date(2025, 10, 8),
        min_confidence=ConfidenceTier.LOW,
        poll_interval_seconds=900,
        batch_size=50,
        request_delay_seconds=0,
        match_limit=50,
    )

"""
Pipeline services: discovery, validation, scoring, deduplication, storage.

Each service is constructed by the orchestrator's composition root and takes
its collaborators as arguments; none of them is a module-level singleton.
"""

from pulseh2h.services.deduplication import DeduplicationResult, MatchDeduplicator
from pulseh2h.services.discovery import CustomMatchDiscovery, DiscoveryStats
from pulseh2h.services.scoring import (
    MatchConfidenceScorer,
    RatingProximityProvider,
    RecentActivityProvider,
    ScoringConfig,
)
from pulseh2h.services.storage import MatchStorageWriter, StorageResult
from pulseh2h.services.validation import (
    ParticipantValidator,
    ValidationStats,
    build_candidates,
    extract_outcome,
)

__all__ = [
    "CustomMatchDiscovery",
    "DeduplicationResult",
    "DiscoveryStats",
    "MatchConfidenceScorer",
    "MatchDeduplicator",
    "MatchStorageWriter",
    "ParticipantValidator",
    "RatingProximityProvider",
    "RecentActivityProvider",
    "ScoringConfig",
    "StorageResult",
    "ValidationStats",
    "build_candidates",
    "extract_outcome",
]

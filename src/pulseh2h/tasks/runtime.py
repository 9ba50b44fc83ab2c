"""Shared runtime dataclasses for ingestion cycles."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pulseh2h.matches import utc_now

Stage = Literal["roster", "discovery", "validation", "scoring", "filter", "dedup", "storage", "record"]


@dataclass(frozen=True)
class StageError:
    """A failure captured at a stage boundary; the cycle carries on without it."""

    stage: Stage
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"stage": self.stage, "error": self.error}


@dataclass
class IngestionRunResult:
    """Counters and errors for one ingestion cycle. Not persisted."""

    matches_discovered: int = 0
    matches_with_valid_participants: int = 0
    matches_meeting_threshold: int = 0
    new_matches_stored: int = 0
    duplicates_skipped: int = 0
    errors: list[StageError] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utc_now)
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def add_error(self, stage: Stage, exc: BaseException | str) -> None:
        self.errors.append(StageError(stage=stage, error=str(exc)))

    def finish(self) -> None:
        self.duration_ms = int((utc_now() - self.timestamp).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "matches_discovered": self.matches_discovered,
            "matches_with_valid_participants": self.matches_with_valid_participants,
            "matches_meeting_threshold": self.matches_meeting_threshold,
            "new_matches_stored": self.new_matches_stored,
            "duplicates_skipped": self.duplicates_skipped,
            "errors": [error.to_dict() for error in self.errors],
            "timestamp": self.timestamp.isoformat(),
            "duration_ms": self.duration_ms,
        }

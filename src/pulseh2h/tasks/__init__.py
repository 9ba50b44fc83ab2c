"""Cycle runtime types and the interval scheduler."""

from pulseh2h.tasks.runtime import IngestionRunResult, StageError
from pulseh2h.tasks.scheduler import IntervalScheduler

__all__ = [
    "IngestionRunResult",
    "IntervalScheduler",
    "StageError",
]

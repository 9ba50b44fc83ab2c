"""
Configuration management for pulseh2h.

Uses Pydantic Settings to load configuration from environment variables
with sensible defaults for development. Secrets (database URLs) should be
set via environment variables or a .env file.

Settings are read once. The ingestion pipeline never looks at them directly:
the orchestrator freezes the values it needs into an IngestionConfig when it
is built, and only re-reads them on an explicit reload().

Usage:
    from pulseh2h.config import settings
    print(settings.h2h_cutoff_date)
"""

from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pulseh2h.matches import ConfidenceTier


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can be set directly or via a .env file
    in the project root directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================

    database_url: str = Field(
        default="sqlite:///data/pulseh2h.db",
        description="SQLAlchemy URL for the match store and dedup index",
    )
    db_echo: bool = Field(
        default=False,
        description="Log every SQL statement (very noisy)",
    )

    # ==========================================================================
    # SC2 Pulse Configuration
    # ==========================================================================

    pulse_base_url: str = Field(
        default="https://sc2pulse.nephest.com/sc2/api/",
        description="Base URL of the SC2 Pulse REST API",
    )
    pulse_timeout_seconds: float = Field(
        default=15.0,
        description="Per-request timeout for Pulse calls",
    )
    pulse_max_retries: int = Field(
        default=3,
        description="Attempts per Pulse request before giving up (429/5xx/network)",
    )
    pulse_match_limit: int = Field(
        default=50,
        description="Maximum matches requested per player",
    )

    # ==========================================================================
    # H2H Ingestion Configuration
    # ==========================================================================

    h2h_cutoff_date: date = Field(
        default=date(2025, 10, 8),
        description="Ignore matches played before this date (YYYY-MM-DD)",
    )
    h2h_min_confidence: str = Field(
        default="low",
        description="Lowest confidence tier that gets stored: low, medium or high",
    )
    h2h_poll_interval_seconds: int = Field(
        default=900,
        description="Seconds between scheduled ingestion cycles",
    )
    h2h_batch_size: int = Field(
        default=50,
        description="Community players sampled per discovery pass",
    )
    h2h_request_delay_seconds: float = Field(
        default=0.1,
        description="Pause after each player's Pulse request",
    )
    h2h_dedupe_cache_limit: int = Field(
        default=10000,
        description="Match ids kept in the in-memory dedup cache",
    )

    # Scoring knobs (see services/scoring.py for the defaults they override)
    h2h_score_threshold_medium: Optional[float] = Field(
        default=None,
        description="Score needed for medium confidence",
    )
    h2h_score_threshold_high: Optional[float] = Field(
        default=None,
        description="Score needed for high confidence",
    )
    h2h_factor_points: dict[str, int] = Field(
        default_factory=dict,
        description='Per-factor point overrides as JSON, e.g. {"recognized_map": 2}',
    )

    h2h_storage_partition_name: str = Field(
        default="custom_matches",
        description="Name reported for the match store in storage stats",
    )

    # ==========================================================================
    # Roster Configuration
    # ==========================================================================

    roster_csv_path: str = Field(
        default="data/ladderCR.csv",
        description="CSV file with the community roster (id,name,btag,rating,lastPlayed)",
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================

    api_host: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to",
    )
    api_port: int = Field(
        default=8000,
        description="Port for the API server",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("h2h_min_confidence")
    @classmethod
    def validate_min_confidence(cls, v: str) -> str:
        lower_v = v.lower()
        if lower_v not in {tier.value for tier in ConfidenceTier}:
            raise ValueError("h2h_min_confidence must be one of low, medium, high")
        return lower_v

    @field_validator("h2h_poll_interval_seconds")
    @classmethod
    def validate_poll_interval(cls, v: int) -> int:
        if v < 60:
            raise ValueError("h2h_poll_interval_seconds must be at least 60")
        return v

    @field_validator("h2h_batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1 or v > 1000:
            raise ValueError("h2h_batch_size must be between 1 and 1000")
        return v


@dataclass(frozen=True)
class IngestionConfig:
    """Cycle-level options, resolved once and passed by value."""

    cutoff_date: date
    min_confidence: ConfidenceTier
    poll_interval_seconds: int
    batch_size: int
    request_delay_seconds: float = 0.1
    match_limit: int = 50

    @classmethod
    def from_settings(cls, source: Settings) -> "IngestionConfig":
        return cls(
            cutoff_date=source.h2h_cutoff_date,
            min_confidence=ConfidenceTier(source.h2h_min_confidence),
            poll_interval_seconds=source.h2h_poll_interval_seconds,
            batch_size=source.h2h_batch_size,
            request_delay_seconds=source.h2h_request_delay_seconds,
            match_limit=source.pulse_match_limit,
        )

    def to_dict(self) -> dict:
        return {
            "cutoff_date": self.cutoff_date.isoformat(),
            "min_confidence": self.min_confidence.value,
            "poll_interval_seconds": self.poll_interval_seconds,
            "batch_size": self.batch_size,
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    which is important because loading from .env can be slow.
    """
    return Settings()


# Convenience alias for importing
settings = get_settings()

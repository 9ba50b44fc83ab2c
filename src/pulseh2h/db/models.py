"""
SQLAlchemy ORM models for pulseh2h.

Both tables are partitioned by date_key, the UTC calendar date (YYYY-MM-DD)
of the match, so lookups, appends and existence checks are always scoped to
one day.

Tables:
- processed_match_ids: Deduplication index (date_key, match_id)
- custom_matches: Stored H2H matches, one row per match, append-only

Rows are only ever inserted by the pipeline. Retention pruning, if any,
belongs to an outside job.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class ProcessedMatchId(Base):
    """
    One entry of the deduplication index.

    A row means the match was durably stored in an earlier cycle and must not
    be stored again.
    """

    __tablename__ = "processed_match_ids"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    match_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("date_key", "match_id", name="uq_processed_match_ids_date_match"),
        Index("idx_processed_match_ids_date_key", "date_key"),
    )

    def __repr__(self) -> str:
        return f"<ProcessedMatchId(date_key='{self.date_key}', match_id={self.match_id})>"


class CustomMatch(Base):
    """
    A stored H2H custom match.

    The payload column holds the full ProcessedMatch record (participants,
    outcome, confidence factors) as produced by ProcessedMatch.to_dict().
    The scalar columns duplicate what is needed for filtering.
    """

    __tablename__ = "custom_matches"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    match_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    match_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    map_name: Mapped[str] = mapped_column(String(120), nullable=False)
    confidence: Mapped[str] = mapped_column(String(10), nullable=False)
    outcome: Mapped[str] = mapped_column(String(10), nullable=False)
    schema_version: Mapped[str] = mapped_column(String(20), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False)
    stored_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("date_key", "match_id", name="uq_custom_matches_date_match"),
        Index("idx_custom_matches_date_key", "date_key"),
        Index("idx_custom_matches_confidence", "confidence"),
    )

    def __repr__(self) -> str:
        return f"<CustomMatch(date_key='{self.date_key}', match_id={self.match_id})>"

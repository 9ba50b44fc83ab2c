"""Create processed_match_ids and custom_matches tables

Revision ID: 5e1a2b3c4d60
Revises:
Create Date: 2026-10-17 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision: str = "5e1a2b3c4d60"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "processed_match_ids",
        sa.Column("id", BigIntPK, autoincrement=True, nullable=False),
        sa.Column("date_key", sa.String(length=10), nullable=False),
        sa.Column("match_id", sa.BigInteger(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("date_key", "match_id", name="uq_processed_match_ids_date_match"),
    )
    op.create_index(
        "idx_processed_match_ids_date_key", "processed_match_ids", ["date_key"], unique=False
    )

    op.create_table(
        "custom_matches",
        sa.Column("id", BigIntPK, autoincrement=True, nullable=False),
        sa.Column("date_key", sa.String(length=10), nullable=False),
        sa.Column("match_id", sa.BigInteger(), nullable=False),
        sa.Column("match_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("map_name", sa.String(length=120), nullable=False),
        sa.Column("confidence", sa.String(length=10), nullable=False),
        sa.Column("outcome", sa.String(length=10), nullable=False),
        sa.Column("schema_version", sa.String(length=20), nullable=False),
        sa.Column("payload", JSONType, nullable=False),
        sa.Column("stored_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("date_key", "match_id", name="uq_custom_matches_date_match"),
    )
    op.create_index("idx_custom_matches_date_key", "custom_matches", ["date_key"], unique=False)
    op.create_index("idx_custom_matches_confidence", "custom_matches", ["confidence"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_custom_matches_confidence", table_name="custom_matches")
    op.drop_index("idx_custom_matches_date_key", table_name="custom_matches")
    op.drop_table("custom_matches")
    op.drop_index("idx_processed_match_ids_date_key", table_name="processed_match_ids")
    op.drop_table("processed_match_ids")

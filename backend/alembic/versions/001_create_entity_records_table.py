"""Create entity_records table

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates the generic `entity_records` table behind the entity store.
How:   One row per record of any entity; fields live in a JSONB document.

Rollback: downgrade() drops the table (destructive, all records lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create entity_records with its lookup index. See healthflux/models/entity_record.py."""
    op.create_table(
        "entity_records",
        sa.Column(
            "id",
            sa.String(36),
            nullable=False,
            comment="Record id (UUID string)",
        ),
        sa.Column(
            "entity_type",
            sa.String(100),
            nullable=False,
            comment="Collection name, e.g. Profile or ShareableLink",
        ),
        sa.Column(
            "data",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
            comment="Entity fields as a JSON document",
        ),
        sa.Column(
            "created_date",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When the record was created (UTC)",
        ),
        sa.Column(
            "updated_date",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When the record was last updated (UTC)",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Every query filters on entity_type; unsorted filters order by created_date
    op.create_index(
        "idx_entity_records_type_created",
        "entity_records",
        ["entity_type", sa.text("created_date DESC")],
    )

    # Profile-scoped reads (documents, vitals, medications, ...) filter on profile_id
    op.create_index(
        "idx_entity_records_profile_id",
        "entity_records",
        ["entity_type", sa.text("(data->>'profile_id')")],
    )


def downgrade() -> None:
    op.drop_index("idx_entity_records_profile_id", table_name="entity_records")
    op.drop_index("idx_entity_records_type_created", table_name="entity_records")
    op.drop_table("entity_records")

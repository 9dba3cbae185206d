"""
HealthFlux Backend — Entity Record SQLAlchemy Model
====================================================

What:  ORM model for the `entity_records` table, the single generic table
       behind the entity store.
How:   Every entity (Profile, MedicalDocument, ShareableLink, ...) is a row
       tagged with `entity_type`; its fields live in the JSON `data` column.
       Per-entity shapes are defined by the typed records in
       healthflux.schemas.entities, never by the storage schema.

Table Design:
    - id: string UUID, returned to clients as the record id
    - entity_type: collection name, indexed (every query filters on it)
    - data: JSON document (JSONB on PostgreSQL)
    - created_date / updated_date: store-managed, UTC
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from healthflux.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntityRecord(Base):
    """
    One record of any entity collection.

    Lifecycle:
        Created through EntityStore.create(), shallow-merged by
        EntityStore.update(). This service never deletes rows.
    """

    __tablename__ = "entity_records"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="Record id (UUID string)",
    )

    entity_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Collection name, e.g. Profile or ShareableLink",
    )

    data: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
        comment="Entity fields as a JSON document",
    )

    created_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        comment="When the record was created (UTC)",
    )

    updated_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        comment="When the record was last updated (UTC)",
    )

    __table_args__ = (
        Index("idx_entity_records_type_created", "entity_type", created_date.desc()),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Flattened view handed to services: JSON fields plus id and timestamps."""
        record = dict(self.data or {})
        record["id"] = self.id
        record["created_date"] = self.created_date.isoformat() if self.created_date else None
        record["updated_date"] = self.updated_date.isoformat() if self.updated_date else None
        return record

    def __repr__(self) -> str:
        return f"<EntityRecord(type='{self.entity_type}', id={self.id})>"

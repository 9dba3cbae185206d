"""
HealthFlux Backend — Entity Store
==================================

What:  The data access contract every handler uses: filter / create / update /
       delete over named entity collections, plus the SQLAlchemy implementation.
How:   EntityStore is the abstract interface (same Strategy seam as
       LLMService). SqlEntityStore maps each collection onto rows of the
       generic `entity_records` table and answers field-equality filters
       against the JSON `data` column.
Who:   Constructed once in the app factory; injected into services.

Concurrency:
    Each operation opens and closes its own session, so a handler can run
    several filters with asyncio.gather without sharing a session.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import asc, delete as sa_delete, desc, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from healthflux.exceptions import DatabaseError, HealthFluxError, NotFoundError
from healthflux.models.entity_record import EntityRecord

logger = logging.getLogger(__name__)

# Fields stored as columns rather than inside the JSON document
_COLUMN_FIELDS = {
    "id": EntityRecord.id,
    "created_date": EntityRecord.created_date,
    "updated_date": EntityRecord.updated_date,
}


class EntityStore(ABC):
    """
    Abstract entity store.

    Contract:
        - Records are plain dicts with a string `id` and store-managed
          `created_date` / `updated_date`.
        - filter() returns an empty list, never None, when nothing matches.
        - Failures are raised as DatabaseError; update() of a missing
          record raises NotFoundError.
    """

    @abstractmethod
    async def filter(
        self,
        entity: str,
        criteria: Optional[Mapping[str, Any]] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return records of `entity` whose fields equal every value in `criteria`.

        Args:
            entity: Collection name, e.g. "MedicalDocument".
            criteria: Field → value equality conditions (str, bool, int, float, None).
            sort: Field name, prefixed with "-" for descending order.
            limit: Maximum number of records.
        """
        ...

    @abstractmethod
    async def create(self, entity: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Persist a new record and return it with its assigned id."""
        ...

    @abstractmethod
    async def update(
        self, entity: str, record_id: str, changes: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """Shallow-merge `changes` into an existing record and return it."""
        ...

    @abstractmethod
    async def delete(self, entity: str, record_id: str) -> bool:
        """Remove a record. Returns False when there was nothing to remove."""
        ...

    async def get(self, entity: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Single record by id, or None."""
        records = await self.filter(entity, {"id": record_id}, limit=1)
        return records[0] if records else None

    async def health_check(self) -> bool:
        return True


class SqlEntityStore(EntityStore):
    """
    Entity store backed by the `entity_records` table.

    Args:
        session_factory: async_sessionmaker bound to the application engine.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _condition(field: str, value: Any):
        if field in _COLUMN_FIELDS:
            return _COLUMN_FIELDS[field] == value

        element = EntityRecord.data[field]
        if value is None:
            return element.as_string().is_(None)
        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return element.as_boolean() == value
        if isinstance(value, int):
            return element.as_integer() == value
        if isinstance(value, float):
            return element.as_float() == value
        if isinstance(value, str):
            return element.as_string() == value
        raise ValueError(
            f"Unsupported filter value for field '{field}': {type(value).__name__}"
        )

    @staticmethod
    def _order_by(sort: str):
        descending = sort.startswith("-")
        field = sort.lstrip("-+")
        column = _COLUMN_FIELDS.get(field)
        if column is None:
            # ISO-8601 dates and plain strings order correctly as text
            column = EntityRecord.data[field].as_string()
        return desc(column) if descending else asc(column)

    async def filter(
        self,
        entity: str,
        criteria: Optional[Mapping[str, Any]] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        try:
            query = select(EntityRecord).where(EntityRecord.entity_type == entity)
            for field, value in (criteria or {}).items():
                query = query.where(self._condition(field, value))
            if sort:
                query = query.order_by(self._order_by(sort))
            else:
                query = query.order_by(asc(EntityRecord.created_date))
            if limit:
                query = query.limit(limit)

            async with self._session_factory() as session:
                result = await session.execute(query)
                records = [row.to_dict() for row in result.scalars().all()]
        except Exception as e:
            logger.error(
                "Entity store filter failed: entity=%s criteria=%s error=%s",
                entity,
                list((criteria or {}).keys()),
                str(e),
                exc_info=True,
            )
            raise DatabaseError(
                message="Could not load records. Please try again.",
                context={"entity": entity, "error_type": type(e).__name__},
            )

        logger.debug("Filter %s %s → %d records", entity, dict(criteria or {}), len(records))
        return records

    async def create(self, entity: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        payload = {k: v for k, v in data.items() if k not in _COLUMN_FIELDS}
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    record = EntityRecord(entity_type=entity, data=payload)
                    session.add(record)
                    await session.flush()
                    created = record.to_dict()
        except Exception as e:
            logger.error("Entity store create failed: entity=%s error=%s", entity, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the record. Please try again.",
                context={"entity": entity, "error_type": type(e).__name__},
            )

        logger.info("Created %s %s", entity, created["id"])
        return created

    async def update(
        self, entity: str, record_id: str, changes: Mapping[str, Any]
    ) -> Dict[str, Any]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(EntityRecord).where(
                            EntityRecord.entity_type == entity,
                            EntityRecord.id == record_id,
                        )
                    )
                    record = result.scalar_one_or_none()
                    if record is None:
                        raise NotFoundError(resource=entity, resource_id=record_id)

                    # New dict so the JSON column is marked dirty
                    merged = dict(record.data or {})
                    merged.update({k: v for k, v in changes.items() if k not in _COLUMN_FIELDS})
                    record.data = merged
                    await session.flush()
                    updated = record.to_dict()
        except HealthFluxError:
            raise
        except Exception as e:
            logger.error(
                "Entity store update failed: entity=%s id=%s error=%s",
                entity,
                record_id,
                str(e),
                exc_info=True,
            )
            raise DatabaseError(
                message="Could not update the record. Please try again.",
                context={"entity": entity, "record_id": record_id, "error_type": type(e).__name__},
            )

        logger.info("Updated %s %s fields=%s", entity, record_id, sorted(changes.keys()))
        return updated

    async def delete(self, entity: str, record_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        sa_delete(EntityRecord).where(
                            EntityRecord.entity_type == entity,
                            EntityRecord.id == record_id,
                        )
                    )
                    removed = result.rowcount > 0
        except Exception as e:
            logger.error(
                "Entity store delete failed: entity=%s id=%s error=%s",
                entity,
                record_id,
                str(e),
                exc_info=True,
            )
            raise DatabaseError(
                message="Could not remove the record. Please try again.",
                context={"entity": entity, "record_id": record_id, "error_type": type(e).__name__},
            )

        logger.info("Deleted %s %s (found=%s)", entity, record_id, removed)
        return removed

    async def health_check(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Entity store health check failed: %s", str(e))
            return False

"""
Asset Store

In-memory storage for discovered assets, their source provenance and the
per-source monitoring watermarks used for TTL decisions.
Safe for concurrent use from multiple asyncio tasks.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from uuid import UUID

import structlog

from surveyor.models.assets import (
    FQDN,
    AssetType,
    Entity,
    MonitoringRecord,
    Source,
    SourceTag,
    utcnow,
)
from surveyor.scope import is_subdomain_of, normalize_domain

logger = structlog.get_logger(__name__)


class AssetStore:
    """
    In-memory asset store.

    Assets are keyed by (type, key) so repeated upserts of the same asset
    return the same entity. Source tags are keyed by (entity, source) and
    monitoring records by (entity, source).
    """

    def __init__(self) -> None:
        self._entities: dict[UUID, Entity] = {}
        self._index: dict[tuple[AssetType, str], UUID] = {}
        self._tags: dict[tuple[UUID, str], SourceTag] = {}
        self._monitoring: dict[tuple[UUID, str], MonitoringRecord] = {}
        self._lock = asyncio.Lock()

    # Entity operations

    async def upsert_fqdn(self, name: str) -> Entity:
        """Create the FQDN entity for a name, or refresh the existing one."""
        name = normalize_domain(name)
        async with self._lock:
            return self._upsert(FQDN(name=name))

    def _upsert(self, asset: FQDN) -> Entity:
        now = utcnow()
        key = (AssetType(asset.type), asset.key)
        entity_id = self._index.get(key)
        if entity_id is not None:
            entity = self._entities[entity_id]
            entity.last_seen = now
            return entity

        entity = Entity(asset=asset, created_at=now, last_seen=now)
        self._entities[entity.id] = entity
        self._index[key] = entity.id
        return entity

    async def add_entity(self, entity: Entity) -> Entity:
        """Persist an entity built elsewhere (non-FQDN assets, seeds)."""
        async with self._lock:
            key = (entity.asset_type, entity.asset.key)
            existing = self._index.get(key)
            if existing is not None:
                return self._entities[existing]
            self._entities[entity.id] = entity
            self._index[key] = entity.id
            return entity

    async def get_entity(self, entity_id: UUID) -> Entity | None:
        async with self._lock:
            return self._entities.get(entity_id)

    async def list_entities(self, asset_type: AssetType | None = None) -> list[Entity]:
        """All entities, optionally of one type, oldest first."""
        async with self._lock:
            entities = [
                e for e in self._entities.values()
                if asset_type is None or e.asset_type == asset_type
            ]
        entities.sort(key=lambda e: e.created_at)
        return entities

    async def find_fqdn(self, name: str) -> Entity | None:
        async with self._lock:
            entity_id = self._index.get((AssetType.FQDN, normalize_domain(name)))
            return self._entities.get(entity_id) if entity_id else None

    # Source provenance

    async def upsert_fqdns_with_source(
        self,
        names: list[str],
        source: Source,
        plugin: str,
        handler: str,
    ) -> list[Entity]:
        """
        Upsert FQDN entities and tag each with the reporting source.

        The same name and source always yields the same entity; tags are
        refreshed rather than duplicated.

        Returns:
            The entities in the order of the input names
        """
        entities: list[Entity] = []
        async with self._lock:
            for name in names:
                name = normalize_domain(name)
                if not name:
                    continue
                entity = self._upsert(FQDN(name=name))
                self._tag(entity, source, plugin, handler)
                entities.append(entity)
        return entities

    def _tag(self, entity: Entity, source: Source, plugin: str, handler: str) -> None:
        now = utcnow()
        key = (entity.id, source.name)
        tag = self._tags.get(key)
        if tag is None:
            self._tags[key] = SourceTag(
                entity_id=entity.id,
                source=source.name,
                confidence=source.confidence,
                plugin=plugin,
                handler=handler,
                created_at=now,
                last_seen=now,
            )
            return
        tag.last_seen = now
        tag.confidence = source.confidence
        tag.handler = handler

    async def get_source_tags(self, entity: Entity) -> list[SourceTag]:
        async with self._lock:
            return [t for (eid, _), t in self._tags.items() if eid == entity.id]

    async def find_by_source(
        self,
        name: str,
        asset_type: AssetType,
        source: Source,
        since: datetime,
    ) -> list[Entity]:
        """
        Find entities reported by a source since a point in time.

        Only FQDN entities equal to or beneath `name` are returned.
        """
        name = normalize_domain(name)
        results: list[Entity] = []
        async with self._lock:
            for (entity_id, source_name), tag in self._tags.items():
                if source_name != source.name or tag.last_seen < since:
                    continue
                entity = self._entities[entity_id]
                if entity.asset_type != asset_type:
                    continue
                if asset_type == AssetType.FQDN and not is_subdomain_of(
                    entity.asset.key, name
                ):
                    continue
                results.append(entity)

        results.sort(key=lambda e: e.created_at)
        return results

    # Monitoring watermarks

    async def is_monitored_since(
        self,
        entity: Entity,
        source: Source,
        since: datetime,
    ) -> bool:
        """True if the source checked the entity at or after `since`."""
        async with self._lock:
            record = self._monitoring.get((entity.id, source.name))
        return record is not None and record.last_checked >= since

    async def mark_monitored(
        self,
        entity: Entity,
        source: Source,
        checked_at: datetime | None = None,
    ) -> MonitoringRecord:
        """Record that the source checked the entity (last writer wins)."""
        record = MonitoringRecord(
            entity_id=entity.id,
            source=source.name,
            last_checked=checked_at or utcnow(),
        )
        async with self._lock:
            self._monitoring[(entity.id, source.name)] = record
        logger.debug(
            "Marked asset monitored",
            entity_id=str(entity.id),
            source=source.name,
        )
        return record

    async def get_monitoring_record(
        self,
        entity: Entity,
        source: Source,
    ) -> MonitoringRecord | None:
        async with self._lock:
            return self._monitoring.get((entity.id, source.name))

    async def clear(self) -> None:
        """Clear all stored state (for testing)."""
        async with self._lock:
            self._entities.clear()
            self._index.clear()
            self._tags.clear()
            self._monitoring.clear()

    def __len__(self) -> int:
        """Get the number of stored entities."""
        return len(self._entities)

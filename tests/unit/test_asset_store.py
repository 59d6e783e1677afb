"""
Tests for the in-memory asset store.
"""

from datetime import timedelta

import pytest

from surveyor.models.assets import AssetType, Entity, IPAddress, Source, utcnow
from surveyor.store import AssetStore

SOURCE = Source(name="DomainsProject", confidence=80)
OTHER = Source(name="Other", confidence=50)


@pytest.fixture
def store() -> AssetStore:
    return AssetStore()


class TestEntities:
    """Tests for entity upserts and lookups."""

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, store: AssetStore) -> None:
        first = await store.upsert_fqdn("www.example.com")
        second = await store.upsert_fqdn("WWW.Example.com.")
        assert first.id == second.id
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_find_fqdn(self, store: AssetStore) -> None:
        entity = await store.upsert_fqdn("example.com")
        assert (await store.find_fqdn("EXAMPLE.com")).id == entity.id
        assert await store.find_fqdn("example.org") is None

    @pytest.mark.asyncio
    async def test_list_entities_by_type(self, store: AssetStore) -> None:
        await store.upsert_fqdn("example.com")
        await store.add_entity(Entity(asset=IPAddress(address="93.184.216.34")))

        assert len(await store.list_entities()) == 2
        fqdns = await store.list_entities(AssetType.FQDN)
        assert [e.asset.key for e in fqdns] == ["example.com"]

    @pytest.mark.asyncio
    async def test_clear(self, store: AssetStore) -> None:
        await store.upsert_fqdn("example.com")
        await store.clear()
        assert len(store) == 0


class TestSourceTags:
    """Tests for source provenance."""

    @pytest.mark.asyncio
    async def test_upsert_with_source_keeps_order(self, store: AssetStore) -> None:
        names = ["b.example.com", "a.example.com", ""]
        entities = await store.upsert_fqdns_with_source(names, SOURCE, "DomainsProject", "h")
        assert [e.asset.key for e in entities] == ["b.example.com", "a.example.com"]

    @pytest.mark.asyncio
    async def test_repeated_upsert_refreshes_tag(self, store: AssetStore) -> None:
        first = await store.upsert_fqdns_with_source(["a.example.com"], SOURCE, "p", "h")
        second = await store.upsert_fqdns_with_source(["a.example.com"], SOURCE, "p", "h")

        assert first[0].id == second[0].id
        tags = await store.get_source_tags(first[0])
        assert len(tags) == 1
        assert tags[0].confidence == 80

    @pytest.mark.asyncio
    async def test_find_by_source(self, store: AssetStore) -> None:
        since = utcnow() - timedelta(minutes=1)
        await store.upsert_fqdns_with_source(
            ["a.example.com", "b.example.org"], SOURCE, "p", "h"
        )
        await store.upsert_fqdns_with_source(["c.example.com"], OTHER, "o", "h")

        found = await store.find_by_source("example.com", AssetType.FQDN, SOURCE, since)

        assert [e.asset.key for e in found] == ["a.example.com"]

    @pytest.mark.asyncio
    async def test_find_by_source_respects_since(self, store: AssetStore) -> None:
        await store.upsert_fqdns_with_source(["a.example.com"], SOURCE, "p", "h")
        future = utcnow() + timedelta(minutes=1)
        assert await store.find_by_source("example.com", AssetType.FQDN, SOURCE, future) == []


class TestMonitoring:
    """Tests for monitoring watermarks."""

    @pytest.mark.asyncio
    async def test_not_monitored(self, store: AssetStore) -> None:
        entity = await store.upsert_fqdn("example.com")
        assert await store.get_monitoring_record(entity, SOURCE) is None
        assert await store.is_monitored_since(entity, SOURCE, utcnow()) is False

    @pytest.mark.asyncio
    async def test_mark_monitored(self, store: AssetStore) -> None:
        entity = await store.upsert_fqdn("example.com")
        before = utcnow() - timedelta(seconds=1)

        await store.mark_monitored(entity, SOURCE)

        assert await store.is_monitored_since(entity, SOURCE, before) is True
        assert await store.is_monitored_since(entity, OTHER, before) is False

    @pytest.mark.asyncio
    async def test_stale_record(self, store: AssetStore) -> None:
        entity = await store.upsert_fqdn("example.com")
        await store.mark_monitored(entity, SOURCE, checked_at=utcnow() - timedelta(hours=2))
        since = utcnow() - timedelta(hours=1)
        assert await store.is_monitored_since(entity, SOURCE, since) is False

    @pytest.mark.asyncio
    async def test_last_writer_wins(self, store: AssetStore) -> None:
        entity = await store.upsert_fqdn("example.com")
        old = utcnow() - timedelta(hours=2)
        await store.mark_monitored(entity, SOURCE, checked_at=old)
        await store.mark_monitored(entity, SOURCE)

        record = await store.get_monitoring_record(entity, SOURCE)
        assert record.last_checked > old

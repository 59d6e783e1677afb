"""
Plugin Support

Helpers shared by data source connectors: scope gating, TTL decisions,
name normalization, and storing and forwarding discovered names.
"""

from datetime import datetime, timedelta

import structlog

from surveyor.config import ConfigError, EngineConfig
from surveyor.engine.events import DiscoveryEvent
from surveyor.engine.session import Session
from surveyor.models.assets import FQDN, AssetType, Entity, Source, utcnow
from surveyor.scope import registered_domain

logger = structlog.get_logger(__name__)


def remove_asterisk_label(name: str) -> str:
    """Drop a wildcard marker and everything before it ("*.a.example.com" -> "a.example.com")."""
    idx = name.rfind("*.")
    if idx == -1:
        return name
    return name[idx + 2 :]


def normalize_name(name: str) -> str:
    """Canonical form of a candidate name: wildcard-free, trimmed, lower-case."""
    return remove_asterisk_label(name).strip().lower()


def has_sld_in_scope(event: DiscoveryEvent) -> bool:
    """True if the registered domain of the event's FQDN is in scope."""
    asset = event.entity.asset
    if not isinstance(asset, FQDN):
        return False

    sld = registered_domain(asset.name)
    if not sld:
        return False
    _, conf = event.session.scope.is_asset_in_scope(FQDN(name=sld), 0)
    return conf > 0


def ttl_start_time(
    config: EngineConfig,
    from_type: str,
    to_type: str,
    plugin: str,
) -> datetime:
    """
    Start of the TTL window for a transformation handled by a plugin.

    Raises:
        ConfigError: If the configured TTL is negative
    """
    ttl = config.ttl_minutes(from_type, to_type, plugin)
    if ttl < 0:
        raise ConfigError(
            f"Negative TTL for transformation {from_type}->{to_type} ({plugin})"
        )
    return utcnow() - timedelta(minutes=ttl)


async def asset_monitored_within_ttl(
    session: Session,
    entity: Entity,
    source: Source,
    since: datetime,
) -> bool:
    """True if the source already checked the entity inside the TTL window."""
    return await session.store.is_monitored_since(entity, source, since)


async def mark_asset_monitored(session: Session, entity: Entity, source: Source) -> None:
    """Record that the source checked the entity just now."""
    await session.store.mark_monitored(entity, source)


async def source_to_assets_within_ttl(
    session: Session,
    name: str,
    asset_type: AssetType,
    source: Source,
    since: datetime,
) -> list[Entity]:
    """Entities the source reported for `name` inside the TTL window."""
    return await session.store.find_by_source(name, asset_type, source, since)


async def store_fqdns_with_source(
    session: Session,
    names: list[str],
    source: Source,
    plugin: str,
    handler: str,
) -> list[Entity]:
    """Persist names as FQDN assets tagged with the source and handler."""
    if not names:
        return []
    return await session.store.upsert_fqdns_with_source(names, source, plugin, handler)


async def process_fqdns_with_source(
    event: DiscoveryEvent,
    entities: list[Entity],
    source: Source,
) -> None:
    """
    Forward FQDN entities to the session's dispatcher.

    Forwarding is best effort: failures are logged, never raised.
    """
    dispatcher = event.session.dispatcher
    if dispatcher is None:
        logger.debug("No dispatcher on session, not forwarding", count=len(entities))
        return

    for entity in entities:
        asset = entity.asset
        if not isinstance(asset, FQDN):
            continue
        try:
            await dispatcher.dispatch(
                DiscoveryEvent(name=asset.name, entity=entity, session=event.session)
            )
        except Exception as e:
            logger.warning(
                "Failed to forward discovered name",
                name=asset.name,
                source=source.name,
                error=str(e),
            )

"""Data models for Surveyor assets."""

from surveyor.models.assets import (
    FQDN,
    Asset,
    AssetType,
    Entity,
    IPAddress,
    MonitoringRecord,
    Organization,
    Source,
    SourceTag,
)

__all__ = [
    "Asset",
    "AssetType",
    "FQDN",
    "IPAddress",
    "Organization",
    "Entity",
    "Source",
    "SourceTag",
    "MonitoringRecord",
]

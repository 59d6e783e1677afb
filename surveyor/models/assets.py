"""
Asset Models

Pydantic v2 models for the assets Surveyor discovers and the records
it keeps about them: persisted entities, source provenance tags and
per-source monitoring watermarks.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class AssetType(str, Enum):
    """Kinds of assets the engine routes events for."""

    FQDN = "fqdn"
    IP_ADDRESS = "ip_address"
    ORGANIZATION = "organization"


class FQDN(BaseModel):
    """A fully qualified domain name."""

    model_config = ConfigDict(frozen=True)

    type: Literal["fqdn"] = "fqdn"
    name: str = Field(..., min_length=1, description="The domain name")

    @field_validator("name")
    @classmethod
    def strip_trailing_dot(cls, v: str) -> str:
        return v.rstrip(".")

    @property
    def key(self) -> str:
        return self.name


class IPAddress(BaseModel):
    """An IPv4 or IPv6 address."""

    model_config = ConfigDict(frozen=True)

    type: Literal["ip_address"] = "ip_address"
    address: str

    @property
    def key(self) -> str:
        return self.address


class Organization(BaseModel):
    """A named organization."""

    model_config = ConfigDict(frozen=True)

    type: Literal["organization"] = "organization"
    name: str

    @property
    def key(self) -> str:
        return self.name


Asset = Annotated[Union[FQDN, IPAddress, Organization], Field(discriminator="type")]


class Source(BaseModel):
    """Identity of a data source and the confidence it attaches to its assets."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    confidence: int = Field(default=50, ge=0, le=100)


class Entity(BaseModel):
    """
    A persisted asset.

    Entities are created by the asset store and handed out as handles;
    the same asset always maps to the same entity id.
    """

    id: UUID = Field(default_factory=uuid4)
    asset: Asset
    created_at: datetime = Field(default_factory=utcnow)
    last_seen: datetime = Field(default_factory=utcnow)

    @property
    def asset_type(self) -> AssetType:
        return AssetType(self.asset.type)


class SourceTag(BaseModel):
    """Provenance record linking an entity to the source and handler that reported it."""

    entity_id: UUID
    source: str
    confidence: int = Field(ge=0, le=100)
    plugin: str
    handler: str
    created_at: datetime = Field(default_factory=utcnow)
    last_seen: datetime = Field(default_factory=utcnow)


class MonitoringRecord(BaseModel):
    """Watermark of the last time a source was queried for an entity."""

    entity_id: UUID
    source: str
    last_checked: datetime = Field(default_factory=utcnow)

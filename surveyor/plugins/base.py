"""
SurveyorPlugin Abstract Base Class

Defines the contract that all Surveyor plugins must implement.
Every data source connector is a plugin that registers one or more
handlers for the asset types it reacts to.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field

from surveyor.models.assets import AssetType, utcnow

if TYPE_CHECKING:
    from surveyor.engine.events import DiscoveryEvent
    from surveyor.plugins.registry import PluginRegistry


class PluginError(Exception):
    """Raised when a plugin cannot process an event."""

    pass


class InvalidAssetKind(PluginError):
    """Raised when an event carries an asset the handler cannot process."""

    def __init__(self, expected: AssetType, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected a {expected.value} asset, got {actual}")


class PluginCategory(str, Enum):
    """Categories of plugins."""

    API = "api"
    DNS = "dns"
    SCRAPE = "scrape"
    CUSTOM = "custom"


@dataclass(frozen=True)
class RateLimit:
    """Request pacing for a plugin: one request per interval, up to `burst` at once."""

    interval_seconds: float = 1.0
    burst: int = 1


class PluginResult(BaseModel):
    """Result returned by a handler for one event."""

    model_config = ConfigDict(extra="allow")

    success: bool = Field(..., description="Whether the handler completed without error")
    plugin_name: str = Field(..., description="Name of the plugin that produced this result")
    input_entity: dict[str, Any] = Field(..., description="The event's subject asset")
    entities_discovered: list[str] = Field(
        default_factory=list, description="Names stored or recalled during this run"
    )
    from_cache: bool = Field(default=False, description="Results came from the TTL cache")
    skipped: str | None = Field(default=None, description="Reason the event was skipped")
    error: str | None = Field(default=None, description="Error message if execution failed")
    execution_time_ms: float = Field(default=0.0, description="Execution time in milliseconds")
    timestamp: datetime = Field(default_factory=utcnow)


HandlerCallback = Callable[["DiscoveryEvent"], Awaitable[PluginResult]]


@dataclass
class Handler:
    """
    A plugin callback bound to an asset type.

    Handlers with a lower priority value run first.
    """

    plugin: SurveyorPlugin
    name: str
    event_type: AssetType
    callback: HandlerCallback
    priority: int = 5
    transforms: list[str] = field(default_factory=list)


class SurveyorPlugin(ABC):
    """
    Abstract base class for all Surveyor plugins.

    Plugins are discovered via Python entry_points for pip-installable
    community plugins. On start a plugin registers its handlers on the
    registry; the engine then calls those handlers once per matching event.

    Example implementation:
        class ExamplePlugin(SurveyorPlugin):
            name = "Example"
            description = "Look up subdomains from an example API"
            category = PluginCategory.API
            input_types = [AssetType.FQDN]
            output_types = [AssetType.FQDN]

            def start(self, registry):
                registry.register_handler(Handler(
                    plugin=self,
                    name=f"{self.name}-Handler",
                    event_type=AssetType.FQDN,
                    callback=self.check,
                ))
    """

    # Class attributes that subclasses must define
    name: str
    description: str
    category: PluginCategory
    input_types: list[AssetType]
    output_types: list[AssetType]
    required_config: list[str] = []
    rate_limit: RateLimit | None = None

    def __init__(self) -> None:
        """Initialize the plugin."""
        self._validate_class_attributes()

    def _validate_class_attributes(self) -> None:
        """Validate that required class attributes are defined."""
        required_attrs = ["name", "description", "category", "input_types", "output_types"]
        for attr in required_attrs:
            if not hasattr(self, attr) or getattr(self, attr) is None:
                raise ValueError(f"Plugin {self.__class__.__name__} must define '{attr}'")

    @abstractmethod
    def start(self, registry: PluginRegistry) -> None:
        """
        Register the plugin's handlers.

        Args:
            registry: The registry the handlers are registered on
        """
        ...

    def stop(self) -> None:
        """Release resources held by the plugin."""
        return None

    async def aclose(self) -> None:
        """Close any network clients held by the plugin."""
        return None

    def accepts_entity(self, asset_type: AssetType) -> bool:
        """Check if this plugin accepts the given asset type as input."""
        return asset_type in self.input_types

    def get_info(self) -> dict[str, Any]:
        """Get plugin information as a dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "input_types": [t.value for t in self.input_types],
            "output_types": [t.value for t in self.output_types],
            "required_config": self.required_config,
            "rate_limit": {
                "interval_seconds": self.rate_limit.interval_seconds,
                "burst": self.rate_limit.burst,
            }
            if self.rate_limit
            else None,
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name!r})>"

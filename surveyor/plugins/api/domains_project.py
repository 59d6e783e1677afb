"""
DomainsProject Connector

Discovers subdomains through the DomainsProject TLD search API.

Queries are paced by a token bucket (one request every two seconds),
skipped while the subject was already checked inside its TTL window, and
filtered against the session scope before anything is stored or forwarded.
"""

from datetime import datetime
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from surveyor.config import Credential, DataSourceConfig, settings
from surveyor.engine.events import DiscoveryEvent
from surveyor.models.assets import FQDN, AssetType, Entity, Source
from surveyor.plugins.base import (
    Handler,
    InvalidAssetKind,
    PluginCategory,
    PluginResult,
    RateLimit,
    SurveyorPlugin,
)
from surveyor.plugins.ratelimit import OperationCancelled, RateLimiter, run_cancellable
from surveyor.plugins.registry import PluginRegistry
from surveyor.plugins.support import (
    asset_monitored_within_ttl,
    has_sld_in_scope,
    mark_asset_monitored,
    normalize_name,
    process_fqdns_with_source,
    source_to_assets_within_ttl,
    store_fqdns_with_source,
    ttl_start_time,
)

logger = structlog.get_logger(__name__)


class DomainsProjectResponse(BaseModel):
    """
    Body of a TLD search response.

    A null field decodes as its zero value, so `{"domains": null}` is a
    valid answer with no names.
    """

    model_config = ConfigDict(extra="ignore")

    domains: list[str] = Field(default_factory=list)
    error: str = ""

    @field_validator("domains", "error", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return [] if info.field_name == "domains" else ""
        return v


class DomainsProjectPlugin(SurveyorPlugin):
    """
    DomainsProject subdomain connector.

    Configured credentials are tried in order; the first one that yields a
    non-empty, well-formed body is authoritative and the rest are not used.
    Transport failures and unusable bodies are logged and absorbed.
    """

    name = "DomainsProject"
    description = "Discover subdomains via the DomainsProject TLD search API"
    category = PluginCategory.API
    input_types = [AssetType.FQDN]
    output_types = [AssetType.FQDN]
    required_config: list[str] = ["creds"]
    rate_limit = RateLimit(interval_seconds=2.0, burst=1)

    API_URL = "https://api.domainsproject.org/api/tld/search"
    CONFIDENCE = 80
    PRIORITY = 9

    def __init__(
        self,
        rate_limit: RateLimit | None = None,
        timeout_seconds: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the DomainsProject connector.

        Args:
            rate_limit: Override the request pacing
            timeout_seconds: HTTP timeout, defaults to the process settings
            transport: Custom httpx transport for the API client
        """
        super().__init__()
        if rate_limit is not None:
            self.rate_limit = rate_limit
        self.source = Source(name=self.name, confidence=self.CONFIDENCE)
        self.handler_name = f"{self.name}-Handler"
        self.log = logger.bind(plugin=self.name)

        self._limiter = RateLimiter(
            interval=self.rate_limit.interval_seconds,
            burst=self.rate_limit.burst,
            name=self.name,
        )
        self._timeout = timeout_seconds or settings.http_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def start(self, registry: PluginRegistry) -> None:
        registry.register_handler(
            Handler(
                plugin=self,
                name=self.handler_name,
                event_type=AssetType.FQDN,
                callback=self.check,
                priority=self.PRIORITY,
                transforms=[AssetType.FQDN.value],
            )
        )
        self.log.info("Plugin started")

    def stop(self) -> None:
        self.log.info("Plugin stopped")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                headers={"User-Agent": settings.user_agent},
            )
        return self._client

    async def check(self, event: DiscoveryEvent) -> PluginResult:
        """
        Handle one FQDN event.

        Raises:
            InvalidAssetKind: If the event's subject is not an FQDN
        """
        asset = event.entity.asset
        if not isinstance(asset, FQDN):
            raise InvalidAssetKind(AssetType.FQDN, asset.type)

        result = PluginResult(
            success=True,
            plugin_name=self.name,
            input_entity=asset.model_dump(mode="json"),
        )

        if not has_sld_in_scope(event):
            result.skipped = "out_of_scope"
            return result

        ds = event.session.config.get_data_source_config(self.name)
        if ds is None or not any(c.usable for c in ds.creds):
            result.skipped = "no_credentials"
            return result

        since = ttl_start_time(
            event.session.config, AssetType.FQDN.value, AssetType.FQDN.value, self.name
        )

        if await asset_monitored_within_ttl(event.session, event.entity, self.source, since):
            entities = await self.lookup(event, asset.name, since)
            result.from_cache = True
        else:
            entities, requested = await self.query(event, asset.name, ds)
            if requested:
                await mark_asset_monitored(event.session, event.entity, self.source)

        if entities:
            await self.process(event, entities)

        result.entities_discovered = [e.asset.key for e in entities]
        self.log.debug(
            "Handled event",
            name=asset.name,
            from_cache=result.from_cache,
            found=len(entities),
        )
        return result

    async def lookup(self, event: DiscoveryEvent, name: str, since: datetime) -> list[Entity]:
        """Recall what this source reported for `name` inside the TTL window."""
        return await source_to_assets_within_ttl(
            event.session, name, AssetType.FQDN, self.source, since
        )

    async def query(
        self,
        event: DiscoveryEvent,
        name: str,
        ds: DataSourceConfig,
    ) -> tuple[list[Entity], bool]:
        """
        Query the API with each credential until one answers, then store what's in scope.

        Returns:
            The stored entities, and whether any request was sent
        """
        names: list[str] = []
        requested = False

        for cred in ds.creds:
            if not cred.usable:
                continue

            if not await self._limiter.wait(event.cancelled) or event.is_cancelled:
                self.log.debug("Query cancelled while rate limited", name=name)
                break

            requested = True
            try:
                body = await run_cancellable(self._request(name, cred), event.cancelled)
            except OperationCancelled:
                self.log.debug("Query cancelled in flight", name=name)
                break

            if not body:
                continue

            try:
                response = DomainsProjectResponse.model_validate_json(body)
            except ValidationError as e:
                self.log.warning(
                    "Failed to parse response",
                    name=name,
                    errors=e.error_count(),
                )
                continue

            names = self.filter_in_scope(event, response.domains)
            break

        return await self.store(event, names), requested

    async def _request(self, name: str, cred: Credential) -> str | None:
        """Issue one authenticated search request. Returns the body or None on failure."""
        client = await self._get_client()
        try:
            response = await client.get(
                self.API_URL,
                params={"domain": name},
                headers={"Accept": "application/json"},
                auth=httpx.BasicAuth(cred.username, cred.password),
            )
        except httpx.TimeoutException:
            self.log.warning("Request timed out", name=name)
            return None
        except httpx.HTTPError as e:
            self.log.warning("Request failed", name=name, error=str(e))
            return None

        if not response.is_success:
            self.log.warning("API returned non-2xx", name=name, status=response.status_code)
            return None
        return response.text

    def filter_in_scope(self, event: DiscoveryEvent, candidates: list[str]) -> list[str]:
        """Normalize candidates and keep those the scope accepts, in input order."""
        names: list[str] = []
        for candidate in candidates:
            subdomain = normalize_name(candidate)
            if not subdomain:
                continue
            # if the subdomain is not in scope, skip it
            _, conf = event.session.scope.is_asset_in_scope(FQDN(name=subdomain), 0)
            if conf > 0:
                names.append(subdomain)
        return names

    async def store(self, event: DiscoveryEvent, names: list[str]) -> list[Entity]:
        return await store_fqdns_with_source(
            event.session, names, self.source, self.name, self.handler_name
        )

    async def process(self, event: DiscoveryEvent, entities: list[Entity]) -> None:
        await process_fqdns_with_source(event, entities, self.source)


"""
Pytest configuration and shared fixtures.
"""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from surveyor.config import Credential, DataSourceConfig, EngineConfig, ScopeConfig
from surveyor.engine import DiscoveryEvent, Session
from surveyor.plugins.api.domains_project import DomainsProjectPlugin
from surveyor.plugins.base import RateLimit
from surveyor.plugins.registry import PluginRegistry, reset_registry

from tests.fakes import FAST_RATE_LIMIT, FakeDomainsAPI


@pytest.fixture
def engine_config() -> EngineConfig:
    """Config with example.com in scope and one DomainsProject credential."""
    return EngineConfig(
        scope=ScopeConfig(domains=["example.com"]),
        datasources=[
            DataSourceConfig(
                name="DomainsProject",
                creds=[Credential(username="user", password="secret")],
            )
        ],
    )


@pytest.fixture
def dispatcher() -> MagicMock:
    """Dispatcher double that records forwarded events."""
    mock = MagicMock()
    mock.dispatch = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def session(engine_config: EngineConfig, dispatcher: MagicMock) -> Session:
    """Fresh session wired to the recording dispatcher."""
    return Session(engine_config, dispatcher=dispatcher)


@pytest.fixture
def make_event(session: Session) -> Callable[..., Any]:
    """Factory for FQDN events persisted in the session store."""

    async def _make(name: str = "example.com", target: Session | None = None) -> DiscoveryEvent:
        target = target or session
        entity = await target.store.upsert_fqdn(name)
        return DiscoveryEvent(name=name, entity=entity, session=target)

    return _make


@pytest.fixture
def make_plugin() -> Callable[..., DomainsProjectPlugin]:
    """Factory for connectors talking to a fake API."""

    def _make(
        api: FakeDomainsAPI,
        rate_limit: RateLimit = FAST_RATE_LIMIT,
    ) -> DomainsProjectPlugin:
        return DomainsProjectPlugin(rate_limit=rate_limit, transport=api.transport)

    return _make


@pytest.fixture
def registry() -> PluginRegistry:
    """Fresh, empty plugin registry for each test."""
    reset_registry()
    return PluginRegistry()

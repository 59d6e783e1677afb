"""
Tests for the event dispatcher.
"""

import asyncio

import pytest

from surveyor.config import EngineConfig
from surveyor.engine import DiscoveryEvent, Dispatcher, Session
from surveyor.models.assets import AssetType
from surveyor.plugins.base import (
    Handler,
    PluginCategory,
    PluginError,
    PluginResult,
    SurveyorPlugin,
)
from surveyor.plugins.registry import PluginRegistry


class CallbackPlugin(SurveyorPlugin):
    name = "Callback"
    description = "Registers arbitrary FQDN handlers"
    category = PluginCategory.CUSTOM
    input_types = [AssetType.FQDN]
    output_types = [AssetType.FQDN]

    def __init__(self, callbacks) -> None:
        super().__init__()
        self.callbacks = callbacks

    def start(self, registry: PluginRegistry) -> None:
        for priority, (name, callback) in enumerate(self.callbacks):
            registry.register_handler(
                Handler(
                    plugin=self,
                    name=name,
                    event_type=AssetType.FQDN,
                    callback=callback,
                    priority=priority,
                )
            )


def ok(name: str) -> PluginResult:
    return PluginResult(success=True, plugin_name=name, input_entity={})


async def build(registry: PluginRegistry, callbacks) -> tuple[Dispatcher, Session]:
    plugin = CallbackPlugin(callbacks)
    registry.register_plugin(plugin)
    registry.start_plugins()
    dispatcher = Dispatcher(registry)
    session = Session(EngineConfig(), dispatcher=dispatcher)
    return dispatcher, session


async def event_for(session: Session, name: str) -> DiscoveryEvent:
    entity = await session.store.upsert_fqdn(name)
    return DiscoveryEvent(name=name, entity=entity, session=session)


class TestDispatch:
    """Tests for scheduling and handler execution."""

    @pytest.mark.asyncio
    async def test_handlers_run_in_priority_order(self, registry: PluginRegistry) -> None:
        calls: list[str] = []

        async def first(event: DiscoveryEvent) -> PluginResult:
            calls.append("first")
            return ok("first")

        async def second(event: DiscoveryEvent) -> PluginResult:
            calls.append("second")
            return ok("second")

        dispatcher, session = await build(registry, [("first", first), ("second", second)])

        assert await dispatcher.dispatch(await event_for(session, "example.com")) is True
        assert await dispatcher.wait_idle(1.0) is True

        assert calls == ["first", "second"]
        assert [r.plugin_name for r in dispatcher.results] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_duplicate_entity_is_dropped(self, registry: PluginRegistry) -> None:
        calls: list[str] = []

        async def handler(event: DiscoveryEvent) -> PluginResult:
            calls.append(event.name)
            return ok("h")

        dispatcher, session = await build(registry, [("h", handler)])

        assert await dispatcher.dispatch(await event_for(session, "example.com")) is True
        assert await dispatcher.dispatch(await event_for(session, "EXAMPLE.com")) is False
        await dispatcher.wait_idle(1.0)

        assert calls == ["example.com"]

    @pytest.mark.asyncio
    async def test_same_entity_in_new_session(self, registry: PluginRegistry) -> None:
        async def handler(event: DiscoveryEvent) -> PluginResult:
            return ok("h")

        dispatcher, session = await build(registry, [("h", handler)])
        other = Session(EngineConfig(), dispatcher=dispatcher)

        assert await dispatcher.dispatch(await event_for(session, "example.com")) is True
        assert await dispatcher.dispatch(await event_for(other, "example.com")) is True
        await dispatcher.wait_idle(1.0)

    @pytest.mark.asyncio
    async def test_killed_session_is_not_dispatched(self, registry: PluginRegistry) -> None:
        async def handler(event: DiscoveryEvent) -> PluginResult:
            return ok("h")

        dispatcher, session = await build(registry, [("h", handler)])
        session.kill()

        assert await dispatcher.dispatch(await event_for(session, "example.com")) is False
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_handler_errors_are_collected(self, registry: PluginRegistry) -> None:
        async def rejects(event: DiscoveryEvent) -> PluginResult:
            raise PluginError("wrong kind")

        async def crashes(event: DiscoveryEvent) -> PluginResult:
            raise RuntimeError("boom")

        async def works(event: DiscoveryEvent) -> PluginResult:
            return ok("works")

        dispatcher, session = await build(
            registry, [("rejects", rejects), ("crashes", crashes), ("works", works)]
        )

        await dispatcher.dispatch(await event_for(session, "example.com"))
        await dispatcher.wait_idle(1.0)

        assert [name for name, _ in dispatcher.errors] == ["rejects", "crashes"]
        assert isinstance(dispatcher.errors[0][1], PluginError)
        assert isinstance(dispatcher.errors[1][1], RuntimeError)
        assert [r.plugin_name for r in dispatcher.results] == ["works"]

    @pytest.mark.asyncio
    async def test_cancelled_event_stops_handler_chain(self, registry: PluginRegistry) -> None:
        calls: list[str] = []

        async def kills(event: DiscoveryEvent) -> PluginResult:
            calls.append("kills")
            event.session.kill()
            return ok("kills")

        async def never(event: DiscoveryEvent) -> PluginResult:
            calls.append("never")
            return ok("never")

        dispatcher, session = await build(registry, [("kills", kills), ("never", never)])

        await dispatcher.dispatch(await event_for(session, "example.com"))
        await dispatcher.wait_idle(1.0)

        assert calls == ["kills"]


class TestWaitIdle:
    """Tests for wait_idle."""

    @pytest.mark.asyncio
    async def test_idle_without_events(self, registry: PluginRegistry) -> None:
        dispatcher = Dispatcher(registry)
        assert await dispatcher.wait_idle(0.1) is True

    @pytest.mark.asyncio
    async def test_waits_for_follow_up_events(self, registry: PluginRegistry) -> None:
        seen: list[str] = []

        async def forwards(event: DiscoveryEvent) -> PluginResult:
            seen.append(event.name)
            if event.name == "example.com":
                await asyncio.sleep(0.01)
                await event.session.dispatcher.dispatch(
                    await event_for(event.session, "www.example.com")
                )
            return ok("forwards")

        dispatcher, session = await build(registry, [("forwards", forwards)])

        await dispatcher.dispatch(await event_for(session, "example.com"))
        assert await dispatcher.wait_idle(1.0) is True

        assert seen == ["example.com", "www.example.com"]

    @pytest.mark.asyncio
    async def test_timeout(self, registry: PluginRegistry) -> None:
        release = asyncio.Event()

        async def blocks(event: DiscoveryEvent) -> PluginResult:
            await release.wait()
            return ok("blocks")

        dispatcher, session = await build(registry, [("blocks", blocks)])
        await dispatcher.dispatch(await event_for(session, "example.com"))

        assert await dispatcher.wait_idle(0.05) is False
        assert dispatcher.pending == 1

        release.set()
        assert await dispatcher.wait_idle(1.0) is True
        assert dispatcher.pending == 0

"""
Event Dispatcher

Routes discovery events to the handlers registered for the subject's
asset type. Each event runs as its own asyncio task; handlers for one
event run in priority order. An entity is dispatched at most once per
session so forwarding loops terminate.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict

import structlog

from surveyor.engine.events import DiscoveryEvent
from surveyor.models.assets import AssetType
from surveyor.plugins.base import PluginError, PluginResult
from surveyor.plugins.registry import PluginRegistry

logger = structlog.get_logger(__name__)


class Dispatcher:
    """
    Async event dispatcher.

    Supports:
    - Per-session deduplication of dispatched entities
    - Priority ordered handler execution
    - Waiting until all in-flight events have been handled
    """

    def __init__(self, registry: PluginRegistry) -> None:
        self._registry = registry
        self._tasks: set[asyncio.Task[None]] = set()
        # session id -> (asset type, asset key) already dispatched
        self._seen: dict[str, set[tuple[AssetType, str]]] = defaultdict(set)
        self._results: list[PluginResult] = []
        self._errors: list[tuple[str, Exception]] = []
        self._lock = asyncio.Lock()

    async def dispatch(self, event: DiscoveryEvent) -> bool:
        """
        Schedule an event for handling.

        Returns:
            True if the event was scheduled, False if it was a duplicate
            or its session is already done
        """
        if event.session.killed:
            return False

        key = (event.entity.asset_type, event.entity.asset.key)
        async with self._lock:
            seen = self._seen[event.session.id]
            if key in seen:
                return False
            seen.add(key)

        logger.debug(
            "Dispatching event",
            name=event.name,
            asset_type=key[0].value,
            session_id=event.session.id,
        )
        task = asyncio.create_task(self._run(event), name=f"event:{event.name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run(self, event: DiscoveryEvent) -> None:
        for handler in self._registry.get_handlers(event.entity.asset_type):
            if event.is_cancelled:
                break

            start = time.perf_counter()
            try:
                result = await handler.callback(event)
            except Exception as e:
                logger.error(
                    "Event handler failed",
                    handler=handler.name,
                    name=event.name,
                    error=str(e),
                    rejected=isinstance(e, PluginError),
                )
                self._errors.append((handler.name, e))
                continue

            result.execution_time_ms = (time.perf_counter() - start) * 1000
            self._results.append(result)

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """
        Wait until every dispatched event, including follow-ups, has been handled.

        Args:
            timeout: Seconds to wait before giving up; in-flight events keep running

        Returns:
            True if the dispatcher went idle, False on timeout
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            await asyncio.wait(list(self._tasks), timeout=remaining)
        return True

    @property
    def pending(self) -> int:
        """Number of events still being handled."""
        return len(self._tasks)

    @property
    def results(self) -> list[PluginResult]:
        return list(self._results)

    @property
    def errors(self) -> list[tuple[str, Exception]]:
        return list(self._errors)

    def forget_session(self, session_id: str) -> None:
        """Drop deduplication state for a finished session."""
        self._seen.pop(session_id, None)

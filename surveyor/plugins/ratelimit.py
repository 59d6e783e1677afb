"""
Rate Limiter

Token bucket used by connectors to pace requests to third-party APIs.
One limiter instance belongs to one plugin and is shared by every
concurrent event that plugin handles.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised when an external cancellation signal fires before an operation completes."""

    pass


async def run_cancellable(aw: Awaitable[T], cancelled: asyncio.Event | None) -> T:
    """
    Await `aw` unless the `cancelled` signal fires first.

    When the signal wins, the pending operation is cancelled and
    OperationCancelled is raised.
    """
    if cancelled is None:
        return await aw
    if cancelled.is_set():
        if asyncio.iscoroutine(aw):
            aw.close()
        raise OperationCancelled()

    task = asyncio.ensure_future(aw)
    stopper = asyncio.ensure_future(cancelled.wait())
    try:
        done, _ = await asyncio.wait(
            {task, stopper}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        stopper.cancel()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    if task in done:
        return task.result()
    raise OperationCancelled()


class RateLimiter:
    """
    Token bucket rate limiter.

    One token is added every `interval` seconds up to `burst` tokens.
    Each caller reserves a token under the lock and then sleeps until
    the token is due, so concurrent callers are spaced by at least
    `interval` seconds once the burst is spent. A cancelled caller only
    gives back the part of its token that no later reservation is
    already counting on.
    """

    def __init__(
        self,
        interval: float,
        burst: int = 1,
        name: str = "limiter",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            interval: Seconds between tokens
            burst: Maximum number of tokens held at once
            name: Name for identification in logs
            clock: Monotonic time source
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")

        self.interval = interval
        self.burst = burst
        self.name = name
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        # Due time of the latest reservation handed out
        self._last_due = self._last
        self._lock = asyncio.Lock()

    def _advance(self, now: float) -> None:
        elapsed = max(0.0, now - self._last)
        self._tokens = min(float(self.burst), self._tokens + elapsed / self.interval)
        self._last = now

    def _release(self, due: float) -> None:
        """
        Give back an unused reservation that was due at `due`.

        Reservations made after it are spaced from it, so only the share
        of the token not yet claimed by them is returned.
        """
        restore = 1.0 - (self._last_due - due) / self.interval
        if restore <= 0:
            return

        self._advance(self._clock())
        self._tokens = min(float(self.burst), self._tokens + min(1.0, restore))
        if due >= self._last_due:
            self._last_due = due - self.interval

    async def _reserve(self) -> float:
        """Take a token, possibly going into debt. Returns the clock time it is due."""
        async with self._lock:
            now = self._clock()
            self._advance(now)
            self._tokens -= 1.0
            due = now if self._tokens >= 0 else now - self._tokens * self.interval
            self._last_due = max(self._last_due, due)
            return due

    async def wait(self, cancelled: asyncio.Event | None = None) -> bool:
        """
        Wait until a request may be issued.

        Args:
            cancelled: External cancellation signal

        Returns:
            True once a token is held, False if `cancelled` fired first
        """
        if cancelled is not None and cancelled.is_set():
            return False

        due = await self._reserve()
        delay = due - self._clock()
        if delay <= 0:
            return True

        logger.debug("Waiting for rate limit token", limiter=self.name, delay=round(delay, 3))
        try:
            await run_cancellable(asyncio.sleep(delay), cancelled)
        except OperationCancelled:
            self._release(due)
            logger.debug("Rate limit wait cancelled", limiter=self.name)
            return False
        except asyncio.CancelledError:
            self._release(due)
            raise
        return True

    @property
    def available_tokens(self) -> float:
        """Tokens currently available (negative while callers are queued)."""
        self._advance(self._clock())
        return self._tokens

    def get_status(self) -> dict[str, Any]:
        """Return the limiter configuration and current state."""
        return {
            "name": self.name,
            "interval_seconds": self.interval,
            "burst": self.burst,
            "tokens_available": round(self.available_tokens, 2),
        }

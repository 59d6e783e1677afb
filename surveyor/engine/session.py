"""
Session

Holds everything one enumeration run shares: configuration, scope,
the asset store and the dispatcher used to forward new findings.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from surveyor.config import EngineConfig
from surveyor.scope import Scope
from surveyor.store.asset_store import AssetStore

if TYPE_CHECKING:
    from surveyor.engine.dispatcher import Dispatcher

logger = structlog.get_logger(__name__)


class Session:
    """An enumeration session."""

    def __init__(
        self,
        config: EngineConfig,
        scope: Scope | None = None,
        store: AssetStore | None = None,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        self.id = str(uuid4())
        self.config = config
        self.scope = scope or Scope.from_config(config.scope)
        self.store = store or AssetStore()
        self.dispatcher = dispatcher
        # Set when the session is killed; doubles as the cancellation signal for its events
        self.done = asyncio.Event()

    def kill(self) -> None:
        """Cancel all work belonging to this session."""
        if not self.done.is_set():
            logger.info("Session killed", session_id=self.id)
        self.done.set()

    @property
    def killed(self) -> bool:
        return self.done.is_set()

    def __repr__(self) -> str:
        return f"<Session(id={self.id!r})>"

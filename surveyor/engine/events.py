"""
Discovery Events

One event is one pipeline run for one subject entity.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from surveyor.models.assets import Entity

if TYPE_CHECKING:
    from surveyor.engine.session import Session


@dataclass
class DiscoveryEvent:
    """
    A discovered entity delivered to the handlers registered for its type.

    `cancelled` is the external cancellation signal for this run; it
    defaults to the session's done signal.
    """

    name: str
    entity: Entity
    session: Session
    cancelled: asyncio.Event | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.cancelled is None:
            self.cancelled = self.session.done

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled is not None and self.cancelled.is_set()

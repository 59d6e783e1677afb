"""
Surveyor Engine

Sessions, discovery events and the dispatcher that routes events to
plugin handlers.
"""

from surveyor.engine.dispatcher import Dispatcher
from surveyor.engine.events import DiscoveryEvent
from surveyor.engine.session import Session

__all__ = [
    "DiscoveryEvent",
    "Dispatcher",
    "Session",
]

"""Gateway: event bus and the whitelist event router."""

from changuard.gateway.bus import Bus
from changuard.gateway.router import EventRouter

__all__ = ["Bus", "EventRouter"]

"""Transport adapters."""

from changuard.adapters.base import AdapterBase
from changuard.adapters.irc import IRCAdapter, IRCClient

__all__ = ["AdapterBase", "IRCAdapter", "IRCClient"]

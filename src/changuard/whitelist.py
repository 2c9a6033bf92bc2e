"""Allow-list store: mutate a channel's protected nicks and persist the whole config."""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from changuard.config.schema import ChannelConfig, Config

Persist = Callable[[Config], None]


class AllowListStore:
    """Add/remove protected nicks.

    The in-memory list is updated first and never rolled back: if ``persist``
    raises PersistenceFailure the exception propagates to the caller with the
    new list already in place.
    """

    def __init__(self, config: Config, persist: Persist) -> None:
        self._config = config
        self._persist = persist

    def add(self, channel: ChannelConfig, nick: str) -> bool:
        """Append nick if absent and persist. Returns False (and skips persist) if already listed."""
        if nick in channel.protected_nicks:
            return False
        channel.protected_nicks.append(nick)
        logger.info("Allow-list {}: added {}", channel.name, nick)
        self._persist(self._config)
        return True

    def remove(self, channel: ChannelConfig, nick: str) -> bool:
        """Remove the first exact match and persist. Returns False if nick was not listed."""
        if nick not in channel.protected_nicks:
            return False
        channel.protected_nicks.remove(nick)
        logger.info("Allow-list {}: removed {}", channel.name, nick)
        self._persist(self._config)
        return True

    def rename(self, channel: ChannelConfig, old: str, new: str) -> bool:
        """Replace old with new in one step; persists once if anything changed."""
        changed = False
        if old in channel.protected_nicks:
            channel.protected_nicks.remove(old)
            changed = True
        if new not in channel.protected_nicks:
            channel.protected_nicks.append(new)
            changed = True
        if not changed:
            return False
        logger.info("Allow-list {}: renamed {} -> {}", channel.name, old, new)
        self._persist(self._config)
        return True

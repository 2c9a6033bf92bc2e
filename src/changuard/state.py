"""Channel state: config index and the occupancy snapshot, both keyed by channel key."""

from __future__ import annotations

from collections.abc import Iterable

from changuard.config.schema import ChannelConfig, Config


def channel_key(name: str) -> str:
    """Stable key for a channel name. IRC channel names compare case-insensitively."""
    return name.lower()


class OccupancySnapshot:
    """Best-effort cache of who is in each managed channel.

    Presence means the bot saw the nick join (or listed in NAMES) and has not
    seen it leave since. Absence proves nothing.
    """

    def __init__(self, keys: Iterable[str] = ()) -> None:
        self._members: dict[str, set[str]] = {k: set() for k in keys}
        # Channels whose NAMES batch is open; the first batch replaces membership
        self._refreshing: set[str] = set()

    def __contains__(self, key: str) -> bool:
        return key in self._members

    def keys(self) -> list[str]:
        return list(self._members)

    def members(self, key: str) -> frozenset[str]:
        return frozenset(self._members.get(key, ()))

    def is_present(self, key: str, nick: str) -> bool:
        return nick in self._members.get(key, ())

    def add(self, key: str, nick: str) -> None:
        if key in self._members:
            self._members[key].add(nick)

    def discard(self, key: str, nick: str) -> bool:
        """Remove nick; True if it was tracked."""
        members = self._members.get(key)
        if members is None or nick not in members:
            return False
        members.remove(nick)
        return True

    def rename(self, key: str, old: str, new: str) -> bool:
        if not self.discard(key, old):
            return False
        self._members[key].add(new)
        return True

    def clear(self, key: str) -> None:
        if key in self._members:
            self._members[key].clear()
        self._refreshing.discard(key)

    def channels_with(self, nick: str) -> list[str]:
        """Keys of every channel where nick is tracked, in config order."""
        return [k for k, members in self._members.items() if nick in members]

    def load_names(self, key: str, nicks: Iterable[str]) -> None:
        """Apply one NAMES batch; the first batch after end_names() starts from empty."""
        if key not in self._members:
            return
        if key not in self._refreshing:
            self._members[key].clear()
            self._refreshing.add(key)
        self._members[key].update(nicks)

    def end_names(self, key: str) -> None:
        self._refreshing.discard(key)


class BotState:
    """Process-wide state owned by the event router: config, channel index, occupancy."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._channels: dict[str, ChannelConfig] = {channel_key(c.name): c for c in config.channels}
        self.occupancy = OccupancySnapshot(self._channels)

    def resolve(self, name: str) -> ChannelConfig | None:
        """Config for a managed channel, or None when the channel is not managed."""
        return self._channels.get(channel_key(name))

    def channels(self) -> list[ChannelConfig]:
        return list(self._channels.values())

    def channels_tracking(self, nick: str) -> list[ChannelConfig]:
        """Configs of every channel where nick is currently tracked."""
        return [self._channels[k] for k in self.occupancy.channels_with(nick)]

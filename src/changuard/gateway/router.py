"""Event router: the membership/allow-list state machine.

Consumes typed inbound events from the bus, updates the occupancy snapshot and
allow-list, and publishes outbound commands (MODE, NOTICE, PRIVMSG, JOIN) for
the IRC transport. Handlers never raise into the bus: persistence failures are
logged and the mode change still goes out.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger

from changuard.commands import Command, is_addressed, parse_command
from changuard.config.schema import ChannelConfig
from changuard.core.constants import (
    CHANSERV,
    DEOP,
    EXEMPT_GRANT,
    EXEMPT_REVOKE,
    EXEMPT_SWAP,
    JOIN_NOTICE,
    NICKSERV,
    exempt_mask,
    names_token_nick,
)
from changuard.core.errors import PersistenceFailure
from changuard.events import (
    INBOUND_EVENTS,
    EndOfNames,
    Join,
    JoinOut,
    Kick,
    Message,
    ModeOut,
    NamesReply,
    NickChange,
    NoticeOut,
    OutboundCommand,
    Part,
    PrivmsgOut,
    Quit,
    Registered,
)
from changuard.gateway.bus import Bus
from changuard.identity import is_admin, is_protected, matches_protected_nick
from changuard.state import BotState, channel_key
from changuard.whitelist import AllowListStore


class EventRouter:
    """Applies the whitelist policy for each inbound IRC event."""

    def __init__(self, bus: Bus, state: BotState, store: AllowListStore) -> None:
        self._bus = bus
        self._state = state
        self._store = store
        self._nick = state.config.nick
        self._handlers: dict[type, Callable[[Any], None]] = {
            Registered: self._on_registered,
            NamesReply: self._on_names,
            EndOfNames: self._on_end_of_names,
            Join: self._on_join,
            Part: self._on_part,
            Kick: self._on_kick,
            Quit: self._on_quit,
            NickChange: self._on_nick_change,
            Message: self._on_message,
        }

    @property
    def nick(self) -> str:
        """The bot's current nick."""
        return self._nick

    def accept_event(self, source: str, evt: object) -> bool:
        return isinstance(evt, INBOUND_EVENTS)

    def push_event(self, source: str, evt: object) -> None:
        handler = self._handlers.get(type(evt))
        if handler:
            handler(evt)

    def _send(self, cmd: OutboundCommand) -> None:
        self._bus.publish("router", cmd)

    def _mode(self, channel: ChannelConfig, modes: str, *nicks: str) -> None:
        self._send(ModeOut(channel.name, modes, tuple(exempt_mask(n) for n in nicks)))

    def _guarded(self, action: Callable[[], object], what: str) -> None:
        """Run an allow-list mutation; a failed write is logged, never raised."""
        try:
            action()
        except PersistenceFailure as exc:
            logger.error("Allow-list {} not persisted: {}", what, exc)

    # --- connection / NAMES ---

    def _on_registered(self, evt: Registered) -> None:
        if evt.nick:
            self._nick = evt.nick
        config = self._state.config
        if config.nick_password:
            self._send(PrivmsgOut(NICKSERV, f"identify {config.nick_password}"))
        for channel in self._state.channels():
            self._send(JoinOut(channel.name))
        logger.info("Registered as {}; joining {} channels", self._nick, len(self._state.channels()))

    def _on_names(self, evt: NamesReply) -> None:
        channel = self._state.resolve(evt.channel)
        if channel is None:
            return
        nicks = [nick for token in evt.names if (nick := names_token_nick(token))]
        self._state.occupancy.load_names(channel_key(channel.name), nicks)
        logger.debug("NAMES {}: {} nicks", channel.name, len(nicks))

    def _on_end_of_names(self, evt: EndOfNames) -> None:
        channel = self._state.resolve(evt.channel)
        if channel is None:
            return
        self._state.occupancy.end_names(channel_key(channel.name))
        if channel.min_operating_mode:
            self._send(ModeOut(channel.name, DEOP, (self._nick,)))
        else:
            self._send(PrivmsgOut(CHANSERV, f"op {channel.name} {self._nick}"))

    # --- membership ---

    def _on_join(self, evt: Join) -> None:
        channel = self._state.resolve(evt.channel)
        if channel is None:
            return
        nick = evt.source.nick
        self._state.occupancy.add(channel_key(channel.name), nick)
        if not channel.manage_whitelist or nick == self._nick:
            return
        if is_protected(channel, nick, evt.source.identity):
            logger.info("{} joined {}: protected, granting exemption", nick, channel.name)
            self._mode(channel, EXEMPT_GRANT, nick)
        else:
            self._send(NoticeOut(nick, JOIN_NOTICE.format(bot=self._nick)))

    def _on_kick(self, evt: Kick) -> None:
        channel = self._state.resolve(evt.channel)
        if channel is None:
            return
        if self._left_channel(channel, evt.target):
            return
        if channel.manage_whitelist:
            self._guarded(lambda: self._store.remove(channel, evt.target), f"remove {evt.target}")
            self._mode(channel, EXEMPT_REVOKE, evt.target)

    def _on_part(self, evt: Part) -> None:
        channel = self._state.resolve(evt.channel)
        if channel is None:
            return
        if self._left_channel(channel, evt.source.nick):
            return
        self._clean(channel, evt.source.nick)

    def _on_quit(self, evt: Quit) -> None:
        nick = evt.source.nick
        for channel in self._state.channels_tracking(nick):
            self._state.occupancy.discard(channel_key(channel.name), nick)
            self._clean(channel, nick)

    def _left_channel(self, channel: ChannelConfig, nick: str) -> bool:
        """Drop nick from the snapshot. True when it was the bot itself (snapshot cleared)."""
        key = channel_key(channel.name)
        if nick == self._nick:
            self._state.occupancy.clear(key)
            logger.warning("Left {}; membership snapshot cleared", channel.name)
            return True
        self._state.occupancy.discard(key, nick)
        return False

    def _clean(self, channel: ChannelConfig, nick: str) -> None:
        # The allow-list entry is kept; only the live exemption goes
        if channel.manage_whitelist and channel.clean_whitelist:
            self._mode(channel, EXEMPT_REVOKE, nick)

    def _on_nick_change(self, evt: NickChange) -> None:
        old, new = evt.source.nick, evt.new_nick
        own = old == self._nick
        if own:
            self._nick = new
            logger.info("Own nick changed: {} -> {}", old, new)
        for channel in self._state.channels_tracking(old):
            self._state.occupancy.rename(channel_key(channel.name), old, new)
            if own or not channel.manage_whitelist:
                continue
            if is_protected(channel, old, evt.source.identity):
                self._guarded(lambda c=channel: self._store.rename(c, old, new), f"rename {old} -> {new}")
                self._mode(channel, EXEMPT_SWAP, old, new)
            elif channel.clean_whitelist:
                self._mode(channel, EXEMPT_REVOKE, old)

    # --- messages ---

    def _on_message(self, evt: Message) -> None:
        if evt.target == self._nick:
            self._on_private_message(evt)
            return
        channel = self._state.resolve(evt.target)
        if channel is None or not is_addressed(evt.content, self._nick):
            return
        cmd = parse_command(evt.content, self._nick)
        if cmd is None:
            logger.debug("Ignoring message to {} in {}: {}", self._nick, channel.name, evt.content)
            return
        self._apply_command(channel, cmd, evt.source.nick)

    def _apply_command(self, channel: ChannelConfig, cmd: Command, by: str) -> None:
        logger.info("{} in {}: {} {}", by, channel.name, cmd.action, cmd.nick)
        if cmd.action == "add":
            self._guarded(lambda: self._store.add(channel, cmd.nick), f"add {cmd.nick}")
            self._mode(channel, EXEMPT_GRANT, cmd.nick)
        else:
            self._guarded(lambda: self._store.remove(channel, cmd.nick), f"remove {cmd.nick}")
            self._mode(channel, EXEMPT_REVOKE, cmd.nick)

    def _on_private_message(self, evt: Message) -> None:
        nick = evt.source.nick
        for channel in self._state.channels():
            if not (channel.manage_whitelist and channel.whitelist_self_join):
                continue
            if matches_protected_nick(channel, nick):
                continue
            # Unknown membership (no NAMES yet) means not eligible
            if not self._state.occupancy.is_present(channel_key(channel.name), nick):
                continue
            logger.info("{} requested participation in {}", nick, channel.name)
            self._guarded(lambda c=channel: self._store.add(c, nick), f"add {nick}")
            self._mode(channel, EXEMPT_GRANT, nick)

        if is_admin(self._state.config.admins, evt.source.mask):
            self._on_admin_query(evt)

    def _on_admin_query(self, evt: Message) -> None:
        # Admin command language is not implemented; queries are only recorded
        logger.info("Admin query from {}: {}", evt.source.mask, evt.content)

"""Event types: typed inbound IRC events, outbound commands, and their factories."""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Source:
    """Parsed message prefix (nick!user@host)."""

    nick: str
    user: str = ""
    host: str = ""

    @classmethod
    def parse(cls, prefix: str) -> Source:
        """Split nick!user@host; missing parts are empty."""
        nick, _, rest = prefix.partition("!")
        user, _, host = rest.partition("@")
        if not rest and "@" in nick:
            nick, _, host = nick.partition("@")
        return cls(nick=nick, user=user, host=host)

    @property
    def identity(self) -> str:
        """Connection identity (user@host) matched by protected connection patterns."""
        return f"{self.user}@{self.host}"

    @property
    def mask(self) -> str:
        """Full nick!user@host, matched by admin patterns."""
        return f"{self.nick}!{self.user}@{self.host}"


# --- inbound (transport -> router) ---


@dataclass
class Registered:
    """Connection registered with the server (RPL_WELCOME)."""

    nick: str


@dataclass
class NamesReply:
    """One RPL_NAMREPLY batch for a channel."""

    channel: str
    names: list[str] = field(default_factory=list)


@dataclass
class EndOfNames:
    """RPL_ENDOFNAMES for a channel."""

    channel: str


@dataclass
class Join:
    """User joined a channel."""

    channel: str
    source: Source


@dataclass
class Part:
    """User left a channel."""

    channel: str
    source: Source
    reason: str | None = None


@dataclass
class Kick:
    """User was kicked from a channel."""

    channel: str
    target: str
    source: Source
    reason: str | None = None


@dataclass
class Quit:
    """User disconnected from the network."""

    source: Source
    reason: str | None = None


@dataclass
class NickChange:
    """User changed nick; source carries the old nick."""

    source: Source
    new_nick: str


@dataclass
class Message:
    """PRIVMSG to a channel or directly to the bot."""

    target: str
    source: Source
    content: str


INBOUND_EVENTS = (Registered, NamesReply, EndOfNames, Join, Part, Kick, Quit, NickChange, Message)


# --- outbound (router -> transport) ---


class OutboundCommand:
    """Marker base for commands the transport sends to the server."""


@dataclass
class JoinOut(OutboundCommand):
    channel: str


@dataclass
class ModeOut(OutboundCommand):
    channel: str
    modes: str
    args: tuple[str, ...] = ()


@dataclass
class NoticeOut(OutboundCommand):
    target: str
    text: str


@dataclass
class PrivmsgOut(OutboundCommand):
    target: str
    text: str


def event(type_name: str):
    """Decorator to mark a factory as producing an event with a given type."""

    def decorator(f: Any) -> Any:
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> tuple[str, object]:
            evt = f(*args, **kwargs)
            return (type_name, evt)

        wrapper.TYPE = type_name
        return wrapper

    return decorator


@event("registered")
def registered(nick: str) -> Registered:
    return Registered(nick=nick)


@event("names")
def names(channel: str, tokens: list[str]) -> NamesReply:
    return NamesReply(channel=channel, names=list(tokens))


@event("end_of_names")
def end_of_names(channel: str) -> EndOfNames:
    return EndOfNames(channel=channel)


@event("join")
def join(channel: str, prefix: str) -> Join:
    return Join(channel=channel, source=Source.parse(prefix))


@event("part")
def part(channel: str, prefix: str, *, reason: str | None = None) -> Part:
    return Part(channel=channel, source=Source.parse(prefix), reason=reason)


@event("kick")
def kick(channel: str, target: str, prefix: str, *, reason: str | None = None) -> Kick:
    return Kick(channel=channel, target=target, source=Source.parse(prefix), reason=reason)


@event("user_quit")
def user_quit(prefix: str, *, reason: str | None = None) -> Quit:
    return Quit(source=Source.parse(prefix), reason=reason)


@event("nick")
def nick_change(prefix: str, new_nick: str) -> NickChange:
    return NickChange(source=Source.parse(prefix), new_nick=new_nick)


@event("message")
def message(target: str, prefix: str, content: str) -> Message:
    return Message(target=target, source=Source.parse(prefix), content=content)

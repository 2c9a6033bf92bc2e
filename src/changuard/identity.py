"""Identity matching: exact protected nicks, glob-protected connections, admin masks."""

from __future__ import annotations

import functools
import re
from collections.abc import Iterable

from changuard.config.schema import ChannelConfig


@functools.lru_cache(maxsize=512)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    # Only * and ? are wildcards; [ ] are ordinary nick characters on IRC
    parts = []
    for ch in pattern:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)


def glob_match(pattern: str, text: str) -> bool:
    """Case-sensitive glob match of the whole string."""
    return _compile_glob(pattern).fullmatch(text) is not None


def match_any(patterns: Iterable[str], text: str) -> bool:
    return any(glob_match(p, text) for p in patterns)


def matches_protected_nick(channel: ChannelConfig, nick: str) -> bool:
    return nick in channel.protected_nicks


def matches_protected_connection(channel: ChannelConfig, identity: str) -> bool:
    """True if user@host matches any protected connection pattern."""
    return match_any(channel.protected_connections, identity)


def is_protected(channel: ChannelConfig, nick: str, identity: str) -> bool:
    return matches_protected_nick(channel, nick) or matches_protected_connection(channel, identity)


def is_admin(patterns: Iterable[str], mask: str) -> bool:
    """True if nick!user@host matches any admin pattern."""
    return match_any(patterns, mask)

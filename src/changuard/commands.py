"""Inline commands addressed to the bot in a channel ("guard: add alice")."""

from __future__ import annotations

import re
import string
from dataclasses import dataclass
from typing import Literal

from changuard.core.constants import NICK_CHARS

_ADD_RE = re.compile(rf"^add\s+([{NICK_CHARS}]+)\s*$")
_REMOVE_RE = re.compile(rf"^remove\s+([{NICK_CHARS}]+)\s*$")
_PUNCT = re.escape(string.punctuation)


@dataclass(frozen=True)
class Command:
    action: Literal["add", "remove"]
    nick: str


def is_addressed(text: str, bot_nick: str) -> bool:
    """Channel message begins with the bot's nick."""
    return bool(bot_nick) and text.startswith(bot_nick)


def strip_addressee(text: str, bot_nick: str) -> str:
    """Drop a leading 'botnick:' / 'botnick,' style prefix; text without one is returned unchanged."""
    prefix = re.compile(rf"^\s*{re.escape(bot_nick)}[{_PUNCT}]*\s+")
    return prefix.sub("", text, count=1)


def parse_command(text: str, bot_nick: str) -> Command | None:
    """Classify an addressed message. None for anything that is not add/remove <nick>."""
    body = strip_addressee(text, bot_nick)
    if m := _ADD_RE.match(body):
        return Command("add", m.group(1))
    if m := _REMOVE_RE.match(body):
        return Command("remove", m.group(1))
    return None

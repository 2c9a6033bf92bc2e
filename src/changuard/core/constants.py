"""Protocol constants."""

from __future__ import annotations

import re

NICKSERV = "NickServ"
CHANSERV = "ChanServ"

EXEMPT_GRANT = "+e"
EXEMPT_REVOKE = "-e"
EXEMPT_SWAP = "-e+e"
DEOP = "-o"

# Nick alphabet accepted in inline commands and NAMES tokens
NICK_CHARS = r"a-zA-Z0-9_\-\\\[\]{}^`|"

# Channel status prefixes that may precede a nick in a NAMES reply
NAMES_PREFIXES = "~&@%+"

NICK_RE = re.compile(rf"[{NICK_CHARS}]+")

JOIN_NOTICE = (
    "Hello, please send a private message to <{bot}> if you would like to "
    "participate in the discussion. /msg {bot} hello"
)


def exempt_mask(nick: str) -> str:
    """Ban-exception mask covering every connection of a nick."""
    return f"{nick}!*@*"


def names_token_nick(token: str) -> str | None:
    """Nick from one NAMES token: '@+alice' or, with userhost-in-names, '@alice!a@host'."""
    nick = token.strip().lstrip(NAMES_PREFIXES).partition("!")[0]
    return nick if NICK_RE.fullmatch(nick) else None

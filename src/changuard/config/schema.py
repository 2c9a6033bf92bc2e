"""Config schema and accessor."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from changuard.core.errors import ConfigurationError

# Env keys that override config (loaded once per reload, never persisted)
_ENV_OVERRIDE_KEYS = (
    "CHANGUARD_NICK_PASSWORD",
    "CHANGUARD_SERVER_PASSWORD",
    "CHANGUARD_SASL_PASSWORD",
    "CHANGUARD_IRC_TLS_VERIFY",
)


def _load_env_overrides() -> dict[str, str]:
    return {k: os.environ.get(k, "") for k in _ENV_OVERRIDE_KEYS}


def _parse_bool_env(val: str) -> bool | None:
    """Parse env string to bool; None if not a recognized bool."""
    v = val.lower()
    if v in ("1", "true", "yes"):
        return True
    if v in ("0", "false", "no"):
        return False
    return None


def _str_list(value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigurationError(
            f"{where} must be a list",
            code="invalid_list",
            details={"field": where, "type": type(value).__name__},
        )
    return [str(v) for v in value]


def _flag(data: dict[str, Any], key: str, index: int) -> bool:
    where = f"channels[{index}].{key}"
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigurationError(
            f"{where} must be true or false",
            code="invalid_flag",
            details={"field": where, "value": value},
        )
    return value


@dataclass
class ChannelConfig:
    """Policy flags and allow-list for one managed channel."""

    name: str
    manage_whitelist: bool = False
    whitelist_self_join: bool = False
    clean_whitelist: bool = False
    min_operating_mode: bool = False
    protected_nicks: list[str] = field(default_factory=list)
    protected_connections: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], index: int = 0) -> ChannelConfig:
        name = data.get("name")
        if not name or not isinstance(name, str):
            raise ConfigurationError(
                f"channels[{index}] missing name",
                code="missing_channel_name",
                details={"index": index},
            )
        nicks: list[str] = []
        # Duplicates dropped at load
        for nick in _str_list(data.get("protected_nicks"), f"channels[{index}].protected_nicks"):
            if nick not in nicks:
                nicks.append(nick)
        return cls(
            name=name,
            manage_whitelist=_flag(data, "manage_whitelist", index),
            whitelist_self_join=_flag(data, "whitelist_self_join", index),
            clean_whitelist=_flag(data, "clean_whitelist", index),
            min_operating_mode=_flag(data, "min_operating_mode", index),
            protected_nicks=nicks,
            protected_connections=_str_list(
                data.get("protected_connections"), f"channels[{index}].protected_connections"
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "manage_whitelist": self.manage_whitelist,
            "whitelist_self_join": self.whitelist_self_join,
            "clean_whitelist": self.clean_whitelist,
            "min_operating_mode": self.min_operating_mode,
            "protected_nicks": list(self.protected_nicks),
            "protected_connections": list(self.protected_connections),
        }


class Config:
    """Config accessor: typed properties over the raw YAML dict plus parsed channels."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._env: dict[str, str] = {}
        self.channels: list[ChannelConfig] = []
        self.reload(data or {}, validate=False)

    def reload(self, data: dict[str, Any], *, validate: bool = True) -> None:
        """Replace config data and re-parse channels."""
        self._data = data or {}
        self._env = _load_env_overrides()
        if validate:
            self._validate()
        raw = self._data.get("channels")
        self.channels = [
            ChannelConfig.from_dict(item, i)
            for i, item in enumerate(raw if isinstance(raw, list) else [])
            if isinstance(item, dict)
        ]
        logger.debug("Config loaded: {} channels", len(self.channels))

    def _validate(self) -> None:
        """Validate config structure; raise ConfigurationError on failure."""
        if not self.nick:
            raise ConfigurationError("nick is required", code="missing_nick")
        channels = self._data.get("channels")
        if channels is not None and not isinstance(channels, list):
            raise ConfigurationError(
                "channels must be a list",
                code="invalid_channels",
                details={"type": type(channels).__name__},
            )
        seen: set[str] = set()
        for i, item in enumerate(channels or []):
            if not isinstance(item, dict):
                raise ConfigurationError(
                    f"channels[{i}] must be a dict",
                    code="invalid_channel_item",
                    details={"index": i},
                )
            key = str(item.get("name", "")).lower()
            if key in seen:
                raise ConfigurationError(
                    f"channels[{i}] duplicates channel {item.get('name')}",
                    code="duplicate_channel",
                    details={"index": i, "name": item.get("name")},
                )
            seen.add(key)
        for flag in ("tls", "tls_verify"):
            if self._data.get(flag) is not None and not isinstance(self._data[flag], bool):
                raise ConfigurationError(f"{flag} must be true or false", code="invalid_flag", details={"field": flag})
        _str_list(self._data.get("admins"), "admins")

    def to_dict(self) -> dict[str, Any]:
        """File representation: raw data with the live channel list written back."""
        data = dict(self._data)
        data["channels"] = [c.to_dict() for c in self.channels]
        return data

    @property
    def nick(self) -> str:
        return str(self._data.get("nick", ""))

    @property
    def user(self) -> str:
        """Username (ident); defaults to the nick."""
        return str(self._data.get("user") or self.nick)

    @property
    def realname(self) -> str:
        return str(self._data.get("realname") or self.nick)

    @property
    def nick_password(self) -> str:
        return self._env.get("CHANGUARD_NICK_PASSWORD") or str(self._data.get("nick_password", ""))

    @property
    def server(self) -> str:
        return str(self._data.get("server", ""))

    @property
    def port(self) -> int:
        default = 6697 if self.tls else 6667
        return int(self._data.get("port", default))

    @property
    def tls(self) -> bool:
        return bool(self._data.get("tls", False))

    @property
    def tls_verify(self) -> bool:
        """Verify server certificate. Set false for self-signed test servers."""
        parsed = _parse_bool_env(self._env.get("CHANGUARD_IRC_TLS_VERIFY", ""))
        if parsed is not None:
            return parsed
        return bool(self._data.get("tls_verify", True))

    @property
    def server_password(self) -> str:
        return self._env.get("CHANGUARD_SERVER_PASSWORD") or str(self._data.get("server_password", ""))

    @property
    def sasl_user(self) -> str:
        return str(self._data.get("sasl_user", ""))

    @property
    def sasl_password(self) -> str:
        return self._env.get("CHANGUARD_SASL_PASSWORD") or str(self._data.get("sasl_password", ""))

    @property
    def admins(self) -> list[str]:
        """Glob patterns matched against nick!user@host."""
        val = self._data.get("admins")
        if isinstance(val, list):
            return [str(p) for p in val]
        return []

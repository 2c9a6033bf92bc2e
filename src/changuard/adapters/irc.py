"""IRC adapter: pydle client that turns raw lines into typed events and sends router commands."""

from __future__ import annotations

import asyncio
import contextlib

import pydle
from loguru import logger

from changuard import events
from changuard.adapters.base import AdapterBase
from changuard.config.schema import Config
from changuard.events import JoinOut, ModeOut, NoticeOut, OutboundCommand, PrivmsgOut
from changuard.gateway.bus import Bus


async def _run_connection(
    client: pydle.Client,
    hostname: str,
    port: int,
    tls: bool,
    tls_verify: bool = True,
    password: str | None = None,
) -> None:
    """Connect once and return when the connection ends. Connect errors propagate."""
    await client.connect(
        hostname=hostname,
        port=port,
        tls=tls,
        tls_verify=tls_verify,
        password=password,
    )
    # pydle.connect() returns immediately after spawning handle_forever.
    while client.connected:
        await asyncio.sleep(0.5)
    logger.info("IRC connection to {} closed", hostname)


class IRCClient(pydle.Client):
    """Pydle client publishing membership events on the bus."""

    # The process exits with the connection; no reconnect
    RECONNECT_ON_ERROR = False

    def __init__(self, bus: Bus, server: str, nick: str, **kwargs):
        super().__init__(nick, **kwargs)
        self._bus = bus
        self._server = server
        self._outbound: asyncio.Queue[OutboundCommand] = asyncio.Queue()
        self._consumer_task: asyncio.Task | None = None

    def _publish(self, item: tuple[str, object]) -> None:
        type_name, evt = item
        logger.debug("IRC {}: {}", type_name, evt)
        self._bus.publish("irc", evt)

    async def on_connect(self):
        """Registration complete: announce it and start sending queued commands."""
        await super().on_connect()
        logger.info("IRC connected to {} as {}", self._server, self.nickname)
        if self._consumer_task is None or self._consumer_task.done():
            self._consumer_task = asyncio.create_task(self._consume_outbound())
        self._publish(events.registered(self.nickname))

    async def on_raw_353(self, message) -> None:
        """RPL_NAMREPLY: <me> <symbol> <channel> :<names>."""
        await super().on_raw_353(message)
        params = message.params
        if len(params) < 2:
            return
        self._publish(events.names(params[-2], params[-1].split()))

    async def on_raw_366(self, message) -> None:
        """RPL_ENDOFNAMES: <me> <channel> :End of /NAMES list."""
        parent = getattr(super(), "on_raw_366", None)
        if parent is not None:
            await parent(message)
        if len(message.params) >= 2:
            self._publish(events.end_of_names(message.params[1]))

    async def on_raw_join(self, message) -> None:
        await super().on_raw_join(message)
        if not message.params:
            return
        for channel in message.params[0].split(","):
            self._publish(events.join(channel, message.source))

    async def on_raw_part(self, message) -> None:
        await super().on_raw_part(message)
        if not message.params:
            return
        reason = message.params[1] if len(message.params) > 1 else None
        for channel in message.params[0].split(","):
            self._publish(events.part(channel, message.source, reason=reason))

    async def on_raw_kick(self, message) -> None:
        await super().on_raw_kick(message)
        if len(message.params) < 2:
            return
        channel = message.params[0]
        reason = message.params[2] if len(message.params) > 2 else None
        for target in message.params[1].split(","):
            self._publish(events.kick(channel, target, message.source, reason=reason))

    async def on_raw_quit(self, message) -> None:
        await super().on_raw_quit(message)
        reason = message.params[0] if message.params else None
        self._publish(events.user_quit(message.source, reason=reason))

    async def on_raw_nick(self, message) -> None:
        await super().on_raw_nick(message)
        if message.params:
            self._publish(events.nick_change(message.source, message.params[0]))

    async def on_raw_privmsg(self, message) -> None:
        await super().on_raw_privmsg(message)
        if len(message.params) < 2:
            return
        target, content = message.params[0], message.params[1]
        if content.startswith("\x01"):
            return  # CTCP
        self._publish(events.message(target, message.source, content))

    async def _consume_outbound(self):
        """Send queued commands in order. A failed send is logged and skipped."""
        while True:
            try:
                cmd = await self._outbound.get()
                await self._send_command(cmd)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.exception("IRC send failed: {}", exc)

    async def _send_command(self, cmd: OutboundCommand) -> None:
        if isinstance(cmd, ModeOut):
            await self.set_mode(cmd.channel, cmd.modes, *cmd.args)
            logger.debug("IRC: MODE {} {} {}", cmd.channel, cmd.modes, " ".join(cmd.args))
        elif isinstance(cmd, NoticeOut):
            await self.notice(cmd.target, cmd.text)
        elif isinstance(cmd, PrivmsgOut):
            await self.message(cmd.target, cmd.text)
        elif isinstance(cmd, JoinOut):
            await self.join(cmd.channel)
        else:
            logger.warning("IRC: unknown outbound command {}", cmd)

    def queue_command(self, cmd: OutboundCommand) -> None:
        """Queue outbound command; sent once registration completes."""
        self._outbound.put_nowait(cmd)

    async def disconnect(self, expected=True):
        """Disconnect and cleanup."""
        if self._consumer_task:
            self._consumer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer_task
        await super().disconnect(expected)


class IRCAdapter(AdapterBase):
    """IRC transport: owns the pydle client and forwards router commands to it."""

    accepts = (OutboundCommand,)

    def __init__(self, bus: Bus, config: Config):
        self._bus = bus
        self._config = config
        self._client: IRCClient | None = None
        self._task: asyncio.Task | None = None

    @property
    def name(self) -> str:
        return "irc"

    def push_event(self, source: str, evt: object) -> None:
        if self._client:
            self._client.queue_command(evt)
        else:
            logger.warning("IRC command dropped: no client ({})", evt)

    async def start(self) -> None:
        """Start IRC connection."""
        cfg = self._config
        irc_kwargs: dict = {}
        if cfg.sasl_user and cfg.sasl_password:
            irc_kwargs["sasl_username"] = cfg.sasl_user
            irc_kwargs["sasl_password"] = cfg.sasl_password

        self._client = IRCClient(
            bus=self._bus,
            server=cfg.server,
            nick=cfg.nick,
            username=cfg.user,
            realname=cfg.realname,
            **irc_kwargs,
        )
        self._bus.register(self)
        self._task = asyncio.create_task(
            _run_connection(
                self._client,
                hostname=cfg.server,
                port=cfg.port,
                tls=cfg.tls,
                tls_verify=cfg.tls_verify,
                password=cfg.server_password or None,
            )
        )
        logger.info("IRC connection started: {}:{} (tls={})", cfg.server, cfg.port, cfg.tls)

    async def wait_closed(self) -> None:
        """Wait for the connection to end; re-raises a failed connect."""
        if self._task:
            await self._task

    async def stop(self) -> None:
        """Stop IRC connection."""
        self._bus.unregister(self)
        if self._client and self._client.connected:
            await self._client.disconnect()
        if self._task and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._client = None
        self._task = None

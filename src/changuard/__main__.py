"""changuard entrypoint. Loads config, wires the event router to the IRC transport, runs until disconnect."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from changuard import __version__
from changuard.adapters.irc import IRCAdapter
from changuard.config import Config, ConfigStore
from changuard.core.errors import ConfigurationError
from changuard.gateway import Bus, EventRouter
from changuard.state import BotState
from changuard.whitelist import AllowListStore

# Third-party libraries to intercept and route through loguru
_INTERCEPTED_LIBRARIES = ["pydle", "pydle.client", "pydle.connection"]


def _intercept_logging(level: str) -> None:
    """Route pydle's stdlib logging records to loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                log_level: str | int = logger.level(record.levelname).name
            except ValueError:
                log_level = record.levelno
            msg = record.getMessage().replace("{", "{{").replace("}", "}}")
            logger.patch(
                lambda r: r.update(
                    name=record.name,
                    function=record.funcName,
                    line=record.lineno,
                ),
            ).opt(exception=record.exc_info).log(log_level, msg)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for lib in _INTERCEPTED_LIBRARIES:
        lib_logger = logging.getLogger(lib)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        lib_logger.setLevel(level)


def _safe_message_filter(record: Any) -> bool:
    """Escape angle brackets so IRC text like <nick> is not read as a color tag."""
    if isinstance(record.get("message"), str):
        record["message"] = record["message"].replace("<", "\\<")
    return True


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru. verbose=True or LOG_LEVEL=DEBUG enables DEBUG; otherwise INFO."""
    level = "INFO"
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"),
        filter=_safe_message_filter,
    )
    _intercept_logging(level)


def build(config: Config, store: ConfigStore) -> tuple[Bus, EventRouter, IRCAdapter]:
    """Wire bus, router and transport around one loaded config."""
    bus = Bus()
    state = BotState(config)
    router = EventRouter(bus, state, AllowListStore(config, store.save))
    bus.register(router)
    return bus, router, IRCAdapter(bus, config)


def main() -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="changuard: IRC ban-exception allow-list keeper")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    if not args.config.exists():
        logger.error("Config file not found: {}", args.config)
        sys.exit(1)

    store = ConfigStore(args.config)
    try:
        config = store.load()
    except ConfigurationError as exc:
        logger.error("Invalid config {}: {} ({})", args.config, exc, exc.code)
        sys.exit(1)
    except yaml.YAMLError:
        sys.exit(1)
    logger.info("Config loaded from {}: {} channels", args.config, len(config.channels))

    _, _, adapter = build(config, store)
    try:
        asyncio.run(_run(adapter))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception as exc:
        logger.error("IRC connection failed: {}", exc)
        sys.exit(1)


async def _run(adapter: IRCAdapter) -> None:
    """Run until the IRC connection ends."""
    await adapter.start()
    try:
        await adapter.wait_closed()
    finally:
        logger.info("Shutting down")
        await adapter.stop()


if __name__ == "__main__":
    main()

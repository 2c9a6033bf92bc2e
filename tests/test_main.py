"""Tests for changuard.__main__ entrypoint functions."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from changuard.adapters.irc import IRCAdapter
from changuard.config import Config
from changuard.events import Registered
from changuard.gateway import EventRouter

# ---------------------------------------------------------------------------
# setup_logging
# ---------------------------------------------------------------------------


class TestSetupLogging:
    def test_default_level_is_info(self, monkeypatch):
        from changuard.__main__ import setup_logging

        monkeypatch.delenv("LOG_LEVEL", raising=False)
        with patch("changuard.__main__.logger") as mock_logger:
            setup_logging(verbose=False)

            mock_logger.remove.assert_called_once()
            mock_logger.add.assert_called_once()
            assert mock_logger.add.call_args[1]["level"] == "INFO"

    def test_verbose_sets_debug_level(self):
        from changuard.__main__ import setup_logging

        with patch("changuard.__main__.logger") as mock_logger:
            setup_logging(verbose=True)

            assert mock_logger.add.call_args[1]["level"] == "DEBUG"

    def test_log_level_env(self, monkeypatch):
        from changuard.__main__ import setup_logging

        monkeypatch.setenv("LOG_LEVEL", "warning")
        with patch("changuard.__main__.logger") as mock_logger:
            setup_logging()

            assert mock_logger.add.call_args[1]["level"] == "WARNING"

    def test_format_includes_time_and_level(self):
        from changuard.__main__ import setup_logging

        with patch("changuard.__main__.logger") as mock_logger:
            setup_logging()

            fmt = mock_logger.add.call_args[1]["format"]
            assert "{time:" in fmt
            assert "{level:" in fmt
            assert "{message}" in fmt

    def test_message_filter_escapes_tags(self):
        from changuard.__main__ import _safe_message_filter

        record = {"message": "<alice> hello"}
        assert _safe_message_filter(record) is True
        assert record["message"] == "\\<alice> hello"


# ---------------------------------------------------------------------------
# build
# ---------------------------------------------------------------------------


class TestBuild:
    def test_router_is_registered_and_persists_through_store(self):
        from changuard.__main__ import build

        config = Config({"nick": "guard", "channels": [{"name": "#test", "manage_whitelist": True}]})
        store = MagicMock()
        bus, router, adapter = build(config, store)

        assert isinstance(router, EventRouter)
        assert isinstance(adapter, IRCAdapter)
        assert router in bus.targets
        assert adapter not in bus.targets  # registers itself on start

        router._store.add(config.channels[0], "bob")
        store.save.assert_called_once_with(config)

    def test_registered_event_reaches_router(self):
        from changuard.__main__ import build

        config = Config({"nick": "guard"})
        bus, router, _ = build(config, MagicMock())
        bus.publish("irc", Registered("guard_"))
        assert router.nick == "guard_"


# ---------------------------------------------------------------------------
# _run
# ---------------------------------------------------------------------------


class TestRun:
    @pytest.mark.asyncio
    async def test_stops_adapter_after_connection_ends(self):
        from changuard.__main__ import _run

        adapter = MagicMock()
        adapter.start = AsyncMock()
        adapter.wait_closed = AsyncMock()
        adapter.stop = AsyncMock()
        await _run(adapter)
        adapter.start.assert_awaited_once()
        adapter.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stops_adapter_when_connect_fails(self):
        from changuard.__main__ import _run

        adapter = MagicMock()
        adapter.start = AsyncMock()
        adapter.wait_closed = AsyncMock(side_effect=OSError("refused"))
        adapter.stop = AsyncMock()
        with pytest.raises(OSError):
            await _run(adapter)
        adapter.stop.assert_awaited_once()


# ---------------------------------------------------------------------------
# main(): argument parsing + early exits
# ---------------------------------------------------------------------------


class TestMain:
    def test_exits_when_config_not_found(self, tmp_path):
        from changuard.__main__ import main

        nonexistent = tmp_path / "no_such_config.yaml"
        with (
            patch("sys.argv", ["changuard", "--config", str(nonexistent)]),
            patch("changuard.__main__.setup_logging"),
            pytest.raises(SystemExit) as exc_info,
        ):
            main()

        assert exc_info.value.code == 1

    def test_exits_on_invalid_config(self, tmp_path):
        from changuard.__main__ import main

        config_file = tmp_path / "config.yaml"
        config_file.write_text("channels: []\n")  # no nick
        with (
            patch("sys.argv", ["changuard", "--config", str(config_file)]),
            patch("changuard.__main__.setup_logging"),
            pytest.raises(SystemExit) as exc_info,
        ):
            main()

        assert exc_info.value.code == 1

    def test_exits_on_malformed_yaml(self, tmp_path):
        from changuard.__main__ import main

        config_file = tmp_path / "config.yaml"
        config_file.write_text("nick: [unclosed\n")
        with (
            patch("sys.argv", ["changuard", "--config", str(config_file)]),
            patch("changuard.__main__.setup_logging"),
            pytest.raises(SystemExit) as exc_info,
        ):
            main()

        assert exc_info.value.code == 1

    def test_valid_config_reaches_run(self, tmp_path):
        from changuard.__main__ import main

        config_file = tmp_path / "config.yaml"
        config_file.write_text("nick: guard\nchannels:\n  - name: '#test'\n")
        with (
            patch("sys.argv", ["changuard", "--config", str(config_file)]),
            patch("changuard.__main__.setup_logging"),
            patch("changuard.__main__._run", new=MagicMock(return_value=None)) as mock_run,
            patch("asyncio.run") as mock_asyncio_run,
        ):
            main()

        mock_asyncio_run.assert_called_once()
        (adapter,) = mock_run.call_args.args
        assert isinstance(adapter, IRCAdapter)

    def test_connection_failure_exits(self, tmp_path):
        from changuard.__main__ import main

        config_file = tmp_path / "config.yaml"
        config_file.write_text("nick: guard\n")
        with (
            patch("sys.argv", ["changuard", "--config", str(config_file)]),
            patch("changuard.__main__.setup_logging"),
            patch("changuard.__main__._run", new=MagicMock(return_value=None)),
            patch("asyncio.run", side_effect=OSError("refused")),
            pytest.raises(SystemExit) as exc_info,
        ):
            main()

        assert exc_info.value.code == 1

    def test_keyboard_interrupt_is_clean(self, tmp_path):
        from changuard.__main__ import main

        config_file = tmp_path / "config.yaml"
        config_file.write_text("nick: guard\n")
        with (
            patch("sys.argv", ["changuard", "--config", str(config_file)]),
            patch("changuard.__main__.setup_logging"),
            patch("changuard.__main__._run", new=MagicMock(return_value=None)),
            patch("asyncio.run", side_effect=KeyboardInterrupt),
        ):
            main()

"""Tests for event types, factories and the bus."""

from __future__ import annotations

from changuard import events
from changuard.events import Join, ModeOut, Quit, Source
from changuard.gateway.bus import Bus


class MockTarget:
    """Mock event target for testing."""

    def __init__(self, accept_filter=None):
        self.received_events = []
        self.accept_filter = accept_filter or (lambda s, e: True)

    def accept_event(self, source: str, evt: object) -> bool:
        return self.accept_filter(source, evt)

    def push_event(self, source: str, evt: object) -> None:
        self.received_events.append((source, evt))


class TestSource:
    def test_full_prefix(self):
        src = Source.parse("alice!ali@host.example.org")
        assert src == Source("alice", "ali", "host.example.org")
        assert src.identity == "ali@host.example.org"
        assert src.mask == "alice!ali@host.example.org"

    def test_nick_only(self):
        src = Source.parse("alice")
        assert src == Source("alice", "", "")

    def test_nick_at_host(self):
        assert Source.parse("alice@host") == Source("alice", "", "host")


class TestFactories:
    def test_factory_returns_type_name_and_event(self):
        type_name, evt = events.join("#test", "alice!a@h")
        assert type_name == "join"
        assert isinstance(evt, Join)
        assert evt.source.nick == "alice"
        assert events.join.TYPE == "join"

    def test_user_quit_factory(self):
        type_name, evt = events.user_quit("alice!a@h", reason="bye")
        assert type_name == "user_quit"
        assert isinstance(evt, Quit)
        assert evt.reason == "bye"
        assert not hasattr(events, "quit")

    def test_kick_carries_target_and_kicker(self):
        _, evt = events.kick("#test", "bob", "op!o@h", reason="spam")
        assert evt.target == "bob"
        assert evt.source.nick == "op"
        assert evt.reason == "spam"

    def test_names_copies_tokens(self):
        tokens = ["@alice"]
        _, evt = events.names("#test", tokens)
        tokens.append("bob")
        assert evt.names == ["@alice"]


class TestBus:
    def test_publish_in_order(self):
        bus = Bus()
        target = MockTarget()
        bus.register(target)
        for channel in ("#a", "#b", "#c"):
            bus.publish("router", ModeOut(channel, "+e"))
        assert [e.channel for _, e in target.received_events] == ["#a", "#b", "#c"]

    def test_unregister(self):
        bus = Bus()
        target = MockTarget()
        bus.register(target)
        bus.unregister(target)
        assert target not in bus.targets
        bus.publish("router", ModeOut("#a", "+e"))
        assert target.received_events == []

    def test_publish_to_accepting_target_only(self):
        bus = Bus()
        wanted = MockTarget()
        rejecting = MockTarget(accept_filter=lambda s, e: False)
        bus.register(wanted)
        bus.register(rejecting)
        _, evt = events.user_quit("alice!a@h")
        bus.publish("irc", evt)
        assert wanted.received_events == [("irc", evt)]
        assert rejecting.received_events == []

    def test_register_twice_delivers_once(self):
        bus = Bus()
        target = MockTarget()
        bus.register(target)
        bus.register(target)
        bus.publish("router", ModeOut("#a", "+e"))
        assert len(target.received_events) == 1

    def test_unregister_nonexistent_target_is_safe(self):
        Bus().unregister(MockTarget())

    def test_failing_target_does_not_block_others(self):
        bus = Bus()

        class Exploding(MockTarget):
            def push_event(self, source, evt):
                raise RuntimeError("boom")

        good = MockTarget()
        bus.register(Exploding())
        bus.register(good)
        bus.publish("irc", ModeOut("#test", "+e"))
        assert len(good.received_events) == 1

    def test_nested_publish_is_delivered_after_current_event(self):
        bus = Bus()
        seen: list[str] = []

        class Responder:
            def accept_event(self, source, evt):
                return isinstance(evt, Join)

            def push_event(self, source, evt):
                seen.append("join:responder")
                bus.publish("router", ModeOut(evt.channel, "+e"))
                seen.append("responder-done")

        class Recorder:
            def accept_event(self, source, evt):
                return True

            def push_event(self, source, evt):
                seen.append(f"{type(evt).__name__}:recorder")

        bus.register(Responder())
        bus.register(Recorder())
        _, evt = events.join("#test", "alice!a@h")
        bus.publish("irc", evt)
        assert seen == ["join:responder", "responder-done", "Join:recorder", "ModeOut:recorder"]

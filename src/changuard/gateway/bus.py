"""Event bus: synchronous delivery between the IRC transport and the event router."""

from __future__ import annotations

from collections import deque
from typing import Protocol

from loguru import logger

__all__ = ["Bus", "EventTarget"]


class EventTarget(Protocol):
    """Bus participant interface: accept_event + push_event."""

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this target wants the event."""
        ...

    def push_event(self, source: str, evt: object) -> None:
        """Handle the event. Must not block; I/O is queued by the target."""
        ...


class Bus:
    """Delivers each published event to every registered target that accepts it.

    Events published from inside a handler (the router answering a JOIN with a
    MODE) are queued and delivered after the current event, so every target
    sees events in publish order. A target that raises is logged and skipped.
    """

    def __init__(self) -> None:
        self._targets: list[EventTarget] = []
        self._pending: deque[tuple[str, object]] = deque()
        self._delivering = False

    def register(self, target: EventTarget) -> None:
        if target not in self._targets:
            self._targets.append(target)

    def unregister(self, target: EventTarget) -> None:
        if target in self._targets:
            self._targets.remove(target)

    @property
    def targets(self) -> tuple[EventTarget, ...]:
        return tuple(self._targets)

    def publish(self, source: str, evt: object) -> None:
        """Deliver evt now, or after the event currently being delivered."""
        self._pending.append((source, evt))
        if self._delivering:
            return
        self._delivering = True
        try:
            while self._pending:
                self._deliver(*self._pending.popleft())
        finally:
            self._delivering = False

    def _deliver(self, source: str, evt: object) -> None:
        for target in list(self._targets):
            try:
                if target.accept_event(source, evt):
                    target.push_event(source, evt)
            except Exception as exc:
                logger.exception("Target {} failed on {} from {}: {}", target, type(evt).__name__, source, exc)

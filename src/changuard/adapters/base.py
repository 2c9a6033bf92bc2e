"""Transport base: a bus target with a connect/disconnect lifecycle."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar


class AdapterBase(ABC):
    """Base for transports.

    Subclasses list the event types they consume in ``accepts``; the default
    ``accept_event`` filters on it, so a transport only overrides
    ``push_event``.
    """

    accepts: ClassVar[tuple[type, ...]] = ()

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport identifier, used as the bus source name."""
        ...

    def accept_event(self, source: str, evt: object) -> bool:
        return bool(self.accepts) and isinstance(evt, self.accepts)

    def push_event(self, source: str, evt: object) -> None:
        """Handle an accepted event. Must not block; queue any I/O."""

    @abstractmethod
    async def start(self) -> None:
        """Connect and register on the bus."""
        ...

    async def wait_closed(self) -> None:
        """Return when the transport's connection has ended."""

    @abstractmethod
    async def stop(self) -> None:
        """Unregister from the bus and disconnect."""
        ...

"""Domain exceptions."""

from __future__ import annotations


class ChanguardError(Exception):
    """Base for changuard domain errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.original_error = original_error


class ConfigurationError(ChanguardError):
    """Config validation or load failure."""


class PersistenceFailure(ChanguardError):
    """Config could not be written back to disk. In-memory state stays authoritative."""

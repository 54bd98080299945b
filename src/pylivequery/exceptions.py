"""Custom exception hierarchy for pylivequery."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class LiveQueryError(Exception):
    """Base exception for all pylivequery errors."""


class ConfigurationError(LiveQueryError):
    """Invalid query options (e.g. a required variable is missing).

    Always raised synchronously from ``watch_query`` / ``set_variables``
    and never delivered to subscribers as part of an envelope.
    """


class TransportError(LiveQueryError):
    """Network-level failure (connection error, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        operation: str = "",
    ) -> None:
        self.status_code = status_code
        self.operation = operation
        super().__init__(message)


class ProtocolError(LiveQueryError):
    """The server answered, but reported errors inside the response."""

    def __init__(
        self,
        message: str,
        *,
        errors: Sequence[dict[str, Any]] = (),
        operation: str = "",
    ) -> None:
        self.errors = [dict(err) for err in errors]
        self.operation = operation
        super().__init__(message)

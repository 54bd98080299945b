"""Result envelopes delivered to subscribers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from pylivequery.exceptions import LiveQueryError, ProtocolError
from pylivequery.models._base import LiveQueryBaseModel


class ErrorKind(StrEnum):
    TRANSPORT = "transport"
    PROTOCOL = "protocol"


class ErrorInfo(LiveQueryBaseModel):
    """Value-comparable description of one failure carried on an envelope."""

    kind: ErrorKind
    message: str
    path: tuple[str | int, ...] | None = None
    extensions: dict[str, Any] | None = None

    @classmethod
    def from_exception(cls, exc: LiveQueryError) -> tuple[ErrorInfo, ...]:
        if isinstance(exc, ProtocolError) and exc.errors:
            infos = []
            for err in exc.errors:
                path = err.get("path")
                extensions = err.get("extensions")
                infos.append(
                    cls(
                        kind=ErrorKind.PROTOCOL,
                        message=str(err.get("message", exc)),
                        path=tuple(path) if isinstance(path, list) else None,
                        extensions=extensions if isinstance(extensions, dict) else None,
                    )
                )
            return tuple(infos)
        kind = ErrorKind.PROTOCOL if isinstance(exc, ProtocolError) else ErrorKind.TRANSPORT
        return (cls(kind=kind, message=str(exc)),)


class ResultEnvelope(LiveQueryBaseModel):
    """``{data, loading, errors?}`` snapshot; equal iff all three are deep-equal."""

    data: dict[str, Any]
    loading: bool
    errors: tuple[ErrorInfo, ...] | None = None


class ExecutionResult(BaseModel):
    """Decoded transport response: ``{"data": ..., "errors": [...]}``."""

    model_config = ConfigDict(extra="ignore")

    data: dict[str, Any] | None = None
    errors: list[dict[str, Any]] | None = None

"""Helpers for safe debug logging.

Query variables routinely carry credentials (login arguments, tokens
passed as inputs). Variables are hidden when their name looks like a
credential or when the document declares them with a secret-like type
(``Password!``, ``AuthToken``), before they reach a DEBUG log line.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pylivequery.models.document import QueryDocument

REDACTED = "<redacted>"

_SENSITIVE_NAMES: frozenset[str] = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "token",
        "accesstoken",
        "refreshtoken",
        "apikey",
        "authorization",
        "cookie",
    }
)
_SECRET_TYPE_MARKERS: tuple[str, ...] = ("password", "secret", "token", "credential")
_MAX_DEPTH = 20


def _normalize(name: Any) -> str:
    return str(name).lower().replace("_", "").replace("-", "")


def is_sensitive_name(name: Any) -> bool:
    return _normalize(name) in _SENSITIVE_NAMES


def is_secret_type(type_name: str) -> bool:
    """True for variable types such as ``Password!`` or ``[AuthToken]``."""
    base = type_name.strip("[]!").lower()
    return any(marker in base for marker in _SECRET_TYPE_MARKERS)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a copy of *value* with credential-like keys hidden and long strings cut."""
    if _depth > _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, Mapping):
        return {
            str(key): REDACTED if is_sensitive_name(key) else redact_for_log(item, max_string=max_string, _depth=_depth + 1)
            for key, item in value.items()
        }
    if isinstance(value, Sequence):
        return [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value]
    return repr(value)


def redact_variables(
    document: QueryDocument,
    variables: Mapping[str, Any],
    *,
    max_string: int = 512,
) -> dict[str, Any]:
    """Redact *variables* for a log line, using *document*'s declared types as well as names."""
    secret = {d.name for d in document.variable_definitions if is_secret_type(d.type)}
    redacted = redact_for_log(variables, max_string=max_string)
    for name in secret & set(redacted):
        redacted[name] = REDACTED
    return redacted

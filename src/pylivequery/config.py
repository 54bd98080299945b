"""Client configuration for pylivequery."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable, Mapping
from typing import Any

from pylivequery.cache.keys import default_data_id
from pylivequery.models.options import FetchPolicy


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class LiveQueryConfig:
    """Client configuration.

    Parameters
    ----------
    endpoint : str
        URL the HTTP transport POSTs query documents to.
    headers : Mapping[str, str]
        Extra HTTP headers sent with every request (e.g. authorization).
    request_timeout : float
        Total timeout for one HTTP request, in seconds. Set to ``0`` to
        rely on the aiohttp session defaults.
    query_deduplication : bool
        Collapse equivalent in-flight requests into one network operation.
    default_fetch_policy : FetchPolicy
        Policy used by ``watch_query`` / ``query`` when none is given.
    default_return_partial_data : bool
        Whether watched queries surface partial store data by default.
    trace_enabled : bool
        Log redacted request variables and response shapes at DEBUG.
    data_id_from_object : callable
        Maps a result object to its store id, or ``None`` to fall back to
        a path-based id.
    """

    endpoint: str = "http://localhost:4000/graphql"
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)
    request_timeout: float = 30.0
    query_deduplication: bool = True
    default_fetch_policy: FetchPolicy = FetchPolicy.CACHE_FIRST
    default_return_partial_data: bool = False
    trace_enabled: bool = False
    data_id_from_object: Callable[[Mapping[str, Any]], str | None] = default_data_id

    @classmethod
    def from_env(cls, **overrides: Any) -> LiveQueryConfig:
        """Create configuration from ``LIVEQUERY_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        endpoint = env.get("LIVEQUERY_ENDPOINT")
        if endpoint is not None:
            config_kwargs["endpoint"] = endpoint

        timeout_env = env.get("LIVEQUERY_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = float(timeout_env)

        policy_env = env.get("LIVEQUERY_DEFAULT_FETCH_POLICY")
        if policy_env is not None and "default_fetch_policy" not in overrides:
            config_kwargs["default_fetch_policy"] = FetchPolicy(policy_env.strip())

        if "query_deduplication" not in overrides:
            config_kwargs["query_deduplication"] = _env_bool(env.get("LIVEQUERY_QUERY_DEDUPLICATION"), True)

        if "default_return_partial_data" not in overrides:
            config_kwargs["default_return_partial_data"] = _env_bool(
                env.get("LIVEQUERY_RETURN_PARTIAL_DATA"),
                False,
            )

        if "trace_enabled" not in overrides:
            config_kwargs["trace_enabled"] = _env_bool(env.get("LIVEQUERY_TRACE_ENABLED"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

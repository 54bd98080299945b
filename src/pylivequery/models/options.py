"""Per-query options and their validation."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import Field, ValidationError, model_validator

from pylivequery.exceptions import ConfigurationError
from pylivequery.models._base import LiveQueryBaseModel
from pylivequery.models.document import QueryDocument


class FetchPolicy(StrEnum):
    CACHE_FIRST = "cache-first"
    FORCE_NETWORK = "network-only"


class WatchQueryOptions(LiveQueryBaseModel):
    """Options owned by one :class:`~pylivequery.observable.ObservableQuery`."""

    query: QueryDocument
    variables: dict[str, Any] = Field(default_factory=dict)
    poll_interval: int = Field(default=0, ge=0, description="Milliseconds between polls; 0 disables.")
    fetch_policy: FetchPolicy = FetchPolicy.CACHE_FIRST
    return_partial_data: bool = False

    @model_validator(mode="before")
    @classmethod
    def _legacy_force_fetch(cls, values: Any) -> Any:
        """Accept the legacy ``force_fetch`` flag as a fetch policy."""
        if not isinstance(values, dict) or "force_fetch" not in values:
            return values
        working = dict(values)
        force_fetch = working.pop("force_fetch")
        working["fetch_policy"] = FetchPolicy.FORCE_NETWORK if force_fetch else FetchPolicy.CACHE_FIRST
        return working

    @model_validator(mode="after")
    def _required_variables_present(self) -> WatchQueryOptions:
        missing = self.query.missing_variables(self.variables)
        if missing:
            raise ValueError(f"missing required variables: {', '.join(missing)}")
        return self

    @property
    def force_network(self) -> bool:
        return self.fetch_policy == FetchPolicy.FORCE_NETWORK

    def merged(self, **partial: Any) -> WatchQueryOptions:
        """Return a copy with *partial* applied, validated the same way."""
        current = {name: getattr(self, name) for name in type(self).model_fields}
        current.update(partial)
        return validate_options(**current)


def validate_options(**fields: Any) -> WatchQueryOptions:
    """Build :class:`WatchQueryOptions`, surfacing problems as :class:`ConfigurationError`."""
    try:
        return WatchQueryOptions.model_validate(fields)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc

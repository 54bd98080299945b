"""Per-subscriber suppression of repeated envelopes."""

from __future__ import annotations

from collections.abc import Hashable

from pylivequery.models.result import ResultEnvelope


class ResultNotifier:
    """Remembers the last envelope delivered to each subscriber."""

    def __init__(self) -> None:
        self._last: dict[Hashable, ResultEnvelope] = {}

    def should_deliver(self, subscriber_id: Hashable, candidate: ResultEnvelope) -> bool:
        """Record and approve *candidate* unless it equals the last delivery."""
        if self._last.get(subscriber_id) == candidate:
            return False
        self._last[subscriber_id] = candidate
        return True

    def forget(self, subscriber_id: Hashable) -> None:
        self._last.pop(subscriber_id, None)

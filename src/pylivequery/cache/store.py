"""Normalized in-memory store.

This is the only component allowed to mutate cached records. It has no
knowledge of observers; the query manager decides who re-reads after a
write.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pylivequery.cache.keys import default_data_id
from pylivequery.cache.reader import DiffResult, diff_query
from pylivequery.cache.writer import stage_result
from pylivequery.models.document import QueryDocument

_logger = logging.getLogger(__name__)


class NormalizedStore:
    """Entity-keyed record table shared by every query of one manager."""

    def __init__(
        self,
        *,
        data_id_from_object: Callable[[Mapping[str, Any]], str | None] = default_data_id,
    ) -> None:
        self._data_id = data_id_from_object
        self._records: dict[str, dict[str, Any]] = {}
        self._version = 0

    @property
    def version(self) -> int:
        """Incremented on every write that changed at least one record."""
        return self._version

    def diff(
        self,
        document: QueryDocument,
        variables: Mapping[str, Any] | None = None,
        return_partial_data: bool = False,
    ) -> DiffResult:
        return diff_query(
            self._records,
            document,
            variables or {},
            return_partial_data=return_partial_data,
        )

    def write(
        self,
        document: QueryDocument,
        variables: Mapping[str, Any] | None,
        data: Mapping[str, Any],
    ) -> set[str]:
        """Merge a query result into the records; return the ids that changed."""
        staged = stage_result(self._records, document, variables or {}, data, data_id=self._data_id)
        changed = {record_id for record_id, record in staged.items() if self._records.get(record_id) != record}
        if not changed:
            return changed
        # Single commit step: readers see either none or all of this write.
        self._records.update({record_id: staged[record_id] for record_id in changed})
        self._version += 1
        _logger.debug("Store write touched %d record(s), version %d", len(changed), self._version)
        return changed

    def extract(self) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self._records)

    def reset(self) -> None:
        self._records.clear()
        self._version += 1

"""Split query results into per-entity record updates."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pylivequery.cache.keys import ROOT_QUERY, make_ref, storage_key
from pylivequery.models.document import QueryDocument, Selection

_logger = logging.getLogger(__name__)

DataIdFn = Callable[[Mapping[str, Any]], "str | None"]


class _StagedWrite:
    """Collects record updates without touching the live record table."""

    def __init__(
        self,
        records: Mapping[str, dict[str, Any]],
        *,
        variables: Mapping[str, Any],
        defaults: Mapping[str, Any],
        data_id: DataIdFn,
    ) -> None:
        self._records = records
        self._variables = variables
        self._defaults = defaults
        self._data_id = data_id
        self.staged: dict[str, dict[str, Any]] = {}

    def _record(self, record_id: str) -> dict[str, Any]:
        record = self.staged.get(record_id)
        if record is None:
            record = copy.deepcopy(dict(self._records.get(record_id, {})))
            self.staged[record_id] = record
        return record

    def write_object(self, record_id: str, result: Mapping[str, Any], selections: tuple[Selection, ...]) -> None:
        record = self._record(record_id)
        for selection in selections:
            key = selection.result_key
            if key not in result:
                _logger.debug("Result for %s has no field %r; leaving stored value", record_id, key)
                continue
            store_key = storage_key(selection, self._variables, self._defaults)
            record[store_key] = self._value(f"{record_id}.{store_key}", result[key], selection)

    def _value(self, path_id: str, value: Any, selection: Selection) -> Any:
        if value is None:
            return None
        if isinstance(value, list):
            return [self._value(f"{path_id}.{index}", item, selection) for index, item in enumerate(value)]
        if isinstance(value, Mapping) and selection.selections:
            child_id = self._data_id(value) or path_id
            self.write_object(child_id, value, selection.selections)
            return make_ref(child_id)
        return copy.deepcopy(value)


def stage_result(
    records: Mapping[str, dict[str, Any]],
    document: QueryDocument,
    variables: Mapping[str, Any],
    data: Mapping[str, Any],
    *,
    data_id: DataIdFn,
) -> dict[str, dict[str, Any]]:
    """Return the full replacement records that writing *data* produces.

    The live table is only read; callers commit the returned mapping in
    one step so readers never observe a partially applied write.
    """
    staged = _StagedWrite(
        records,
        variables=variables,
        defaults=document.variable_defaults(),
        data_id=data_id,
    )
    staged.write_object(ROOT_QUERY, data, document.selections)
    return staged.staged

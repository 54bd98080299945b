"""Resolve a query against normalized records."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pylivequery.cache.keys import ROOT_QUERY, ref_id, storage_key
from pylivequery.models.document import QueryDocument, Selection


class DiffResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    complete: bool
    data: dict[str, Any] = Field(default_factory=dict)


class _Reader:
    def __init__(
        self,
        records: Mapping[str, Mapping[str, Any]],
        variables: Mapping[str, Any],
        defaults: Mapping[str, Any],
    ) -> None:
        self._records = records
        self._variables = variables
        self._defaults = defaults
        self.complete = True

    def read_object(self, record: Mapping[str, Any], selections: tuple[Selection, ...]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for selection in selections:
            store_key = storage_key(selection, self._variables, self._defaults)
            if store_key not in record:
                self.complete = False
                continue
            resolved, found = self._value(record[store_key], selection)
            if found:
                result[selection.result_key] = resolved
        return result

    def _value(self, value: Any, selection: Selection) -> tuple[Any, bool]:
        if value is None:
            return None, True
        if isinstance(value, list):
            items = []
            for item in value:
                resolved, found = self._value(item, selection)
                if not found:
                    return None, False
                items.append(resolved)
            return items, True
        record_id = ref_id(value)
        if record_id is None:
            return copy.deepcopy(value), True
        record = self._records.get(record_id)
        if record is None:
            self.complete = False
            return None, False
        return self.read_object(record, selection.selections), True


def diff_query(
    records: Mapping[str, Mapping[str, Any]],
    document: QueryDocument,
    variables: Mapping[str, Any],
    *,
    return_partial_data: bool = False,
) -> DiffResult:
    """Work out how much of *document* the records can answer.

    Complete diffs carry the full result. Incomplete ones carry the
    resolvable subset only when *return_partial_data* is set, and an
    empty mapping otherwise.
    """
    reader = _Reader(records, variables, document.variable_defaults())
    root = records.get(ROOT_QUERY, {})
    data = reader.read_object(root, document.selections)
    if reader.complete:
        return DiffResult(complete=True, data=data)
    return DiffResult(complete=False, data=data if return_partial_data else {})

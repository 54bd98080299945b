"""Record ids and field storage names for the normalized store."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pylivequery.models.document import Selection

ROOT_QUERY = "ROOT_QUERY"
REF_KEY = "__ref"


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def default_data_id(obj: Mapping[str, Any]) -> str | None:
    """``"<__typename>:<id>"`` when both are present, else ``None`` (path-based id)."""
    typename = obj.get("__typename")
    object_id = obj.get("id")
    if typename is None or object_id is None:
        return None
    return f"{typename}:{object_id}"


def resolve_arguments(
    selection: Selection,
    variables: Mapping[str, Any],
    defaults: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    resolved: dict[str, Any] = {}
    for argument in selection.arguments:
        if argument.variable is None:
            resolved[argument.name] = argument.value
        elif argument.variable in variables:
            resolved[argument.name] = variables[argument.variable]
        else:
            resolved[argument.name] = (defaults or {}).get(argument.variable)
    return resolved


def storage_key(
    selection: Selection,
    variables: Mapping[str, Any],
    defaults: Mapping[str, Any] | None = None,
) -> str:
    """Key a field is stored under: its name plus canonical resolved arguments."""
    if not selection.arguments:
        return selection.name
    return f"{selection.name}({canonical_json(resolve_arguments(selection, variables, defaults))})"


def make_ref(record_id: str) -> dict[str, str]:
    return {REF_KEY: record_id}


def ref_id(value: Any) -> str | None:
    if isinstance(value, dict) and len(value) == 1 and REF_KEY in value:
        ref = value[REF_KEY]
        return ref if isinstance(ref, str) else None
    return None

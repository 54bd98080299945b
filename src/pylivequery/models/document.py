"""Query document representation.

Parsing query text is the job of an upstream parser; this module only
defines the shape the cache and the manager walk, plus small builders
that stand in for the parser in tests and examples.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from pydantic import field_validator

from pylivequery.models._base import LiveQueryBaseModel


class Variable(NamedTuple):
    """Marks an argument value as a reference to a query variable."""

    name: str


class Argument(LiveQueryBaseModel):
    name: str
    value: Any = None
    variable: str | None = None


class VariableDefinition(LiveQueryBaseModel):
    name: str
    type: str
    default: Any = None

    @property
    def required(self) -> bool:
        """Non-null variables without a declared default must be supplied."""
        return self.type.endswith("!") and self.default is None


class Selection(LiveQueryBaseModel):
    """One requested field, optionally with a nested selection set."""

    name: str
    alias: str | None = None
    arguments: tuple[Argument, ...] = ()
    selections: tuple[Selection, ...] = ()

    @property
    def result_key(self) -> str:
        return self.alias or self.name


class QueryDocument(LiveQueryBaseModel):
    """Structurally comparable query: two documents with the same content are equal."""

    selections: tuple[Selection, ...]
    variable_definitions: tuple[VariableDefinition, ...] = ()
    operation_name: str | None = None
    source: str | None = None

    @field_validator("selections")
    @classmethod
    def _selections_non_empty(cls, value: tuple[Selection, ...]) -> tuple[Selection, ...]:
        if not value:
            raise ValueError("a query document needs at least one selection")
        return value

    def document_id(self) -> str:
        """Canonical identity of the selection; ignores the attached source text."""
        dumped = self.model_dump(mode="json", exclude={"source"})
        return json.dumps(dumped, sort_keys=True, separators=(",", ":"), default=str)

    def variable_defaults(self) -> dict[str, Any]:
        return {d.name: d.default for d in self.variable_definitions if d.default is not None}

    def missing_variables(self, variables: Mapping[str, Any]) -> list[str]:
        """Names of required variables absent (or ``None``) in *variables*."""
        return [d.name for d in self.variable_definitions if d.required and variables.get(d.name) is None]


def field(
    name: str,
    *selections: Selection,
    alias: str | None = None,
    args: Mapping[str, Any] | None = None,
) -> Selection:
    """Build a :class:`Selection`; ``Variable("x")`` values become variable references."""
    arguments: list[Argument] = []
    for arg_name, value in (args or {}).items():
        if isinstance(value, Variable):
            arguments.append(Argument(name=arg_name, variable=value.name))
        else:
            arguments.append(Argument(name=arg_name, value=value))
    return Selection(name=name, alias=alias, arguments=tuple(arguments), selections=tuple(selections))


def build_document(
    *selections: Selection,
    variables: Mapping[str, str] | None = None,
    defaults: Mapping[str, Any] | None = None,
    operation_name: str | None = None,
    source: str | None = None,
) -> QueryDocument:
    """Build a :class:`QueryDocument` from selections and ``{name: type}`` variables."""
    defaults = defaults or {}
    definitions = tuple(
        VariableDefinition(name=var_name, type=var_type, default=defaults.get(var_name))
        for var_name, var_type in (variables or {}).items()
    )
    return QueryDocument(
        selections=tuple(selections),
        variable_definitions=definitions,
        operation_name=operation_name,
        source=source,
    )


def _print_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return json.dumps(value)
    if isinstance(value, Mapping):
        inner = ", ".join(f"{k}: {_print_value(v)}" for k, v in value.items())
        return "{" + inner + "}"
    if isinstance(value, Iterable):
        return "[" + ", ".join(_print_value(v) for v in value) + "]"
    return json.dumps(str(value))


def _print_selection(selection: Selection, depth: int) -> str:
    indent = "  " * depth
    head = f"{selection.alias}: {selection.name}" if selection.alias else selection.name
    if selection.arguments:
        args = ", ".join(
            f"{a.name}: ${a.variable}" if a.variable is not None else f"{a.name}: {_print_value(a.value)}"
            for a in selection.arguments
        )
        head = f"{head}({args})"
    if not selection.selections:
        return f"{indent}{head}"
    body = "\n".join(_print_selection(child, depth + 1) for child in selection.selections)
    return f"{indent}{head} {{\n{body}\n{indent}}}"


def print_document(document: QueryDocument) -> str:
    """Render *document* as query text (its attached ``source`` wins when present)."""
    if document.source:
        return document.source
    header = "query"
    if document.operation_name:
        header = f"{header} {document.operation_name}"
    if document.variable_definitions:
        defs = []
        for definition in document.variable_definitions:
            text = f"${definition.name}: {definition.type}"
            if definition.default is not None:
                text = f"{text} = {_print_value(definition.default)}"
            defs.append(text)
        header = f"{header}({', '.join(defs)})"
    body = "\n".join(_print_selection(s, 1) for s in document.selections)
    return f"{header} {{\n{body}\n}}"

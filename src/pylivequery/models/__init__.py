"""Value types: documents, options and result envelopes."""

from pylivequery.models.document import (
    Argument,
    QueryDocument,
    Selection,
    Variable,
    VariableDefinition,
    build_document,
    field,
    print_document,
)
from pylivequery.models.options import FetchPolicy, WatchQueryOptions, validate_options
from pylivequery.models.result import ErrorInfo, ErrorKind, ExecutionResult, ResultEnvelope

__all__ = [
    "Argument",
    "ErrorInfo",
    "ErrorKind",
    "ExecutionResult",
    "FetchPolicy",
    "QueryDocument",
    "ResultEnvelope",
    "Selection",
    "Variable",
    "VariableDefinition",
    "WatchQueryOptions",
    "build_document",
    "field",
    "print_document",
    "validate_options",
]

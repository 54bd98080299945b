"""pylivequery - Live queries over a normalized, deduplicating client cache."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pylivequery")
except PackageNotFoundError:
    __version__ = "0+local"
from pylivequery._scheduler import LoopScheduler, ManualScheduler, PollTimer, Scheduler
from pylivequery._transport import HttpTransport, Transport
from pylivequery.cache import DiffResult, NormalizedStore
from pylivequery.client import LiveQueryClient
from pylivequery.config import LiveQueryConfig
from pylivequery.exceptions import (
    ConfigurationError,
    LiveQueryError,
    ProtocolError,
    TransportError,
)
from pylivequery.manager import QueryManager
from pylivequery.models import (
    ErrorInfo,
    ErrorKind,
    FetchPolicy,
    QueryDocument,
    ResultEnvelope,
    Selection,
    Variable,
    WatchQueryOptions,
    build_document,
    field,
    print_document,
)
from pylivequery.observable import ObservableQuery, Observer, Subscription

__all__ = [
    "__version__",
    "ConfigurationError",
    "DiffResult",
    "ErrorInfo",
    "ErrorKind",
    "FetchPolicy",
    "HttpTransport",
    "LiveQueryClient",
    "LiveQueryConfig",
    "LiveQueryError",
    "LoopScheduler",
    "ManualScheduler",
    "NormalizedStore",
    "ObservableQuery",
    "Observer",
    "PollTimer",
    "ProtocolError",
    "QueryDocument",
    "QueryManager",
    "ResultEnvelope",
    "Scheduler",
    "Selection",
    "Subscription",
    "Transport",
    "TransportError",
    "Variable",
    "WatchQueryOptions",
    "build_document",
    "field",
    "print_document",
]

"""Normalized cache layer.

The store is the single source of truth for query data; query results
are split into per-entity records on write and reassembled by diffing a
document against those records on read.
"""

from pylivequery.cache.keys import ROOT_QUERY, default_data_id
from pylivequery.cache.reader import DiffResult
from pylivequery.cache.store import NormalizedStore

__all__ = ["DiffResult", "NormalizedStore", "ROOT_QUERY", "default_data_id"]

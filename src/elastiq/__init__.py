"""
This __init__.py file makes the elastiq directory a Python package and
exposes the query object, the builder and the transport for easy access.
"""

from .abc import MappingLookup, Transport
from .cursor import CursorState, CursorStatus
from .querydsl.options import QueryOptions
from .querydsl.where import WhereTree
from .query import SearchQuery
from .results import ResultSet
from .schema import BulkResult, QueryMeta, TransportResponse
from .transport import ElasticsearchTransport
from .types import Doc, Docs

__version__ = "0.1.0"

__all__ = [
    "SearchQuery",
    "WhereTree",
    "QueryOptions",
    "CursorState",
    "CursorStatus",
    "Transport",
    "MappingLookup",
    "ElasticsearchTransport",
    "ResultSet",
    "QueryMeta",
    "TransportResponse",
    "BulkResult",
    "Doc",
    "Docs",
]

"""
Query object for Elasticsearch indices.

This module provides `SearchQuery`, a WhereTree with options, a full-text
search chain and executors. It compiles itself through the request
assembler, runs the request through a pluggable Transport and normalizes
the response.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .abc import MappingLookup, Transport
from .bulk import BulkAggregator
from .constants import Operation
from .cursor import CursorState
from .exceptions import ExecutionError, ParameterError, SequencingError, UnsupportedOperationError
from .logger import Logger
from .querydsl.compilers.assembler import CompiledRequest, RequestAssembler, assembler, query_string_clause
from .querydsl.compilers.context import CompilationContext
from .querydsl.options import GeoBoxFilter, GeoDistanceFilter, QueryOptions, RandomScore
from .querydsl.where import WhereTree
from .results import (
    ResultSet,
    normalize_aggregations,
    normalize_distinct,
    normalize_search,
    normalize_write,
)
from .schema import QueryMeta, TransportResponse
from .settings import settings as api_settings
from .types import Columns, Doc, Docs
from .utils import escape_query_string, normalize_columns

_TERM_NAMES = {
    "term": ("term()", "and_term()/or_term()"),
    "fuzzy": ("fuzzy_term()", "and_fuzzy_term()/or_fuzzy_term()"),
    "regex": ("regex_term()", "and_regex_term()/or_regex_term()"),
    "phrase": ("phrase()", "and_phrase()/or_phrase()"),
}


class SearchQuery(WhereTree):
    """Fluent query over one Elasticsearch index.

    SearchQuery combines the predicate builder with query options and the
    executors. Every executor compiles a fresh request with its own
    CompilationContext, so a query can be executed repeatedly.

    Key Features:
        - SQL-shaped predicates (inherited from WhereTree)
        - Sorting (plain, geo-distance, nested), paging, min score, highlighting
        - Geo filters and random scoring applied around the whole query
        - Lucene query_string full-text chain with boosting and field weights
        - Reads, metric and distinct aggregations, bulk inserts, by-query writes
        - search_after cursor pagination

    Attributes:
        transport: Executes compiled requests
        lookup: Field-mapping lookup used for keyword resolution
        options: QueryOptions owned by this query
        refresh: Refresh policy for writes
    """

    def __init__(
        self,
        transport: Transport,
        index: Optional[str] = None,
        lookup: Optional[MappingLookup] = None,
        refresh: Any = None,
        request_assembler: Optional[RequestAssembler] = None,
    ) -> None:
        """Initialize a query.

        Args:
            transport: Transport implementation executing the requests
            index: Index name (ES_INDEX_PREFIX is prepended)
            lookup: Mapping lookup; defaults to the transport when it implements one
            refresh: Refresh policy for writes (default from settings)
            request_assembler: Assembler used to compile requests
        """
        super().__init__()
        self.transport = transport
        self._index_name = index
        if lookup is None and isinstance(transport, MappingLookup):
            lookup = transport
        self.lookup = lookup
        self.refresh = api_settings.ES_REFRESH if refresh is None else refresh
        self.options = QueryOptions()
        self.assembler = request_assembler or assembler
        self._search_query = ""
        self._search_fields: Dict[str, Any] = {}
        self._search_options: Dict[str, Any] = {}
        self._distinct = 0
        self.logger = Logger(self.__class__.__name__)

    def __repr__(self) -> str:
        return f"<SearchQuery index={self.index!r} clauses={len(self.clauses)}>"

    @property
    def index(self) -> Optional[str]:
        if not self._index_name:
            return self._index_name
        return f"{api_settings.ES_INDEX_PREFIX}{self._index_name}"

    def new_query(self) -> "SearchQuery":
        return SearchQuery(self.transport, self._index_name, self.lookup, self.refresh, self.assembler)

    def copy(self) -> "SearchQuery":
        """Return an independent query with the same clauses, options and search chain."""
        query = self.new_query()
        query.clauses = list(self.clauses)
        query.options = self.options.model_copy(deep=True)
        query._search_query = self._search_query
        query._search_fields = dict(self._search_fields)
        query._search_options = dict(self._search_options)
        query._distinct = self._distinct
        return query

    def context(self) -> CompilationContext:
        """Return a fresh compilation context for one request."""
        return CompilationContext(index=self.index, lookup=self.lookup)

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------
    def order_by(self, column: str, direction: str = "asc") -> "SearchQuery":
        self.options.order_by(column, direction)
        return self

    def order_by_desc(self, column: str) -> "SearchQuery":
        return self.order_by(column, "desc")

    def with_sort(self, column: str, key: str, value: Any) -> "SearchQuery":
        """Add a raw sort parameter (e.g. ``missing``, ``unmapped_type``) to a column's sort."""
        self.options.with_sort(column, key, value)
        return self

    def order_by_geo(
        self,
        column: str,
        pin: Any,
        direction: str = "asc",
        unit: str = "km",
        mode: Optional[str] = None,
        type: Optional[str] = None,
    ) -> "SearchQuery":
        self.options.order_by_geo(column, pin, direction, unit, mode, type)
        return self

    def order_by_geo_desc(
        self, column: str, pin: Any, unit: str = "km", mode: Optional[str] = None, type: Optional[str] = None
    ) -> "SearchQuery":
        return self.order_by_geo(column, pin, "desc", unit, mode, type)

    def order_by_nested(self, column: str, direction: str = "asc", mode: Optional[str] = None) -> "SearchQuery":
        self.options.order_by_nested(column, direction, mode)
        return self

    def limit(self, value: int) -> "SearchQuery":
        self.options.limit = value
        return self

    def take(self, value: int) -> "SearchQuery":
        return self.limit(value)

    def offset(self, value: int) -> "SearchQuery":
        self.options.offset = value
        return self

    def skip(self, value: int) -> "SearchQuery":
        return self.offset(value)

    def min_score(self, value: float) -> "SearchQuery":
        self.options.min_score = value
        return self

    def highlight(
        self,
        fields: Union[Sequence[str], Dict[str, Any], None] = None,
        pre_tag: Union[str, List[str]] = "<em>",
        post_tag: Union[str, List[str]] = "</em>",
        global_options: Optional[Dict[str, Any]] = None,
    ) -> "SearchQuery":
        """Highlight matches in `fields` (all fields when omitted)."""
        if not fields:
            highlight_fields: Dict[str, Any] = {"*": {}}
        elif isinstance(fields, dict):
            highlight_fields = dict(fields)
        else:
            highlight_fields = {field: {} for field in fields}
        highlight = dict(global_options or {})
        highlight["pre_tags"] = [pre_tag] if isinstance(pre_tag, str) else list(pre_tag)
        highlight["post_tags"] = [post_tag] if isinstance(post_tag, str) else list(post_tag)
        highlight["fields"] = highlight_fields
        self.options.highlight = highlight
        return self

    def filter_geo_box(self, field: str, top_left: Any, bottom_right: Any) -> "SearchQuery":
        self.options.geo_box = GeoBoxFilter(field=field, top_left=top_left, bottom_right=bottom_right)
        return self

    def filter_geo_point(self, field: str, distance: str, geo_point: Sequence[float]) -> "SearchQuery":
        self.options.geo_distance = GeoDistanceFilter(field=field, distance=distance, geo_point=geo_point)
        return self

    def random_score(self, column: str, seed: Any = None) -> "SearchQuery":
        self.options.random_score = RandomScore(column=column, seed=seed)
        return self

    def select(self, columns: Columns = "*") -> "SearchQuery":
        self.options.columns = normalize_columns(columns)
        return self

    def add_select(self, columns: Columns) -> "SearchQuery":
        current = [c for c in self.options.columns if c != "*"]
        extra = [columns] if isinstance(columns, str) else list(columns or [])
        self.options.columns = normalize_columns(current + extra)
        return self

    def set_options(self, data: Dict[str, Any]) -> "SearchQuery":
        """Replace the query options from a plain dict (see QueryOptions.from_dict)."""
        self.options = QueryOptions.from_dict(data)
        return self

    def distinct(self, include_count: bool = False) -> "SearchQuery":
        """Make `get()` return the distinct combinations of the selected columns."""
        self._distinct = 2 if include_count else 1
        return self

    # ------------------------------------------------------------------
    # Full-text search chain
    # ------------------------------------------------------------------
    def _search_term(self, term: Any, boost: Any = None, clause: Optional[str] = None, type_: str = "term") -> None:
        starter, joiner = _TERM_NAMES[type_]
        if not clause and self._search_query:
            raise SequencingError(f"Incorrect query sequencing, {starter} should only start the chain")
        if clause and not self._search_query:
            raise SequencingError(f"Incorrect query sequencing, {joiner} cannot start the chain")

        if type_ == "fuzzy":
            next_term = f"({escape_query_string(term)}~)"
        elif type_ == "regex":
            next_term = f"(/{term}/)"
        elif type_ == "phrase":
            next_term = f'("{escape_query_string(term)}")'
        else:
            next_term = f"({escape_query_string(term)})"
        if boost:
            next_term += f"^{boost}"

        if clause:
            self._search_query = f"{self._search_query} {clause.upper()} {next_term}"
        else:
            self._search_query = next_term

    def term(self, term: Any, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost)
        return self

    def and_term(self, term: Any, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, "and")
        return self

    def or_term(self, term: Any, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, "or")
        return self

    def fuzzy_term(self, term: Any, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, type_="fuzzy")
        return self

    def and_fuzzy_term(self, term: Any, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, "and", "fuzzy")
        return self

    def or_fuzzy_term(self, term: Any, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, "or", "fuzzy")
        return self

    def regex_term(self, term: str, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, type_="regex")
        return self

    def and_regex_term(self, term: str, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, "and", "regex")
        return self

    def or_regex_term(self, term: str, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, "or", "regex")
        return self

    def phrase(self, term: str, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, type_="phrase")
        return self

    def and_phrase(self, term: str, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, "and", "phrase")
        return self

    def or_phrase(self, term: str, boost: Any = None) -> "SearchQuery":
        self._search_term(term, boost, "or", "phrase")
        return self

    def search_field(self, field: str, boost: Any = None) -> "SearchQuery":
        self._search_fields[field] = boost or 1
        return self

    def search_fields(self, fields: Sequence[str]) -> "SearchQuery":
        for field in fields:
            self._search_fields.setdefault(field, 1)
        return self

    def boost_field(self, field: str, factor: Any) -> "SearchQuery":
        return self.search_field(field, factor)

    def min_should_match(self, value: Any) -> "SearchQuery":
        self._search_options["minimum_should_match"] = value
        return self

    @property
    def search_query(self) -> str:
        return self._search_query

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------
    def _columns(self, columns: Columns = None) -> List[str]:
        current = [c for c in self.options.columns if c != "*"]
        extra = [columns] if isinstance(columns, str) else list(columns or [])
        return normalize_columns(current + extra)

    def compile(self, columns: Columns = None, options: Optional[QueryOptions] = None) -> CompiledRequest:
        """Compile this query into search (or full-text search) params."""
        options = options or self.options
        ctx = self.context()
        if self._search_query:
            search = query_string_clause(self._search_query, self._search_fields, self._search_options)
            return self.assembler.build_fulltext_params(
                self.index, search, self, options, ctx, self._columns(columns)
            )
        return self.assembler.build_search_params(self.index, self, options, ctx, self._columns(columns))

    def to_dsl(self) -> Dict[str, Any]:
        """Return the request params this query would send, without executing it."""
        return self.compile().params

    def _run(self, operation: Operation, params: Dict[str, Any], raw: bool = False) -> TransportResponse:
        response = self.transport.execute(operation, params)
        if not response.is_successful and not raw:
            raise ExecutionError.from_response(response, self.index)
        return response

    # ------------------------------------------------------------------
    # Read executors
    # ------------------------------------------------------------------
    def get(self, columns: Columns = None, raw: bool = False) -> Union[ResultSet, TransportResponse]:
        """Execute the query and return the matching documents.

        Args:
            columns: Extra `_source` columns on top of `select()`
            raw: Return the failed TransportResponse instead of raising

        Raises:
            ExecutionError: If the transport reports a failure and `raw` is False
        """
        if self._distinct:
            return self._get_distinct(columns, raw)
        request = self.compile(columns)
        response = self._run(Operation.SEARCH, request.params, raw)
        if not response.is_successful:
            return response
        return normalize_search(response.data or {}, self._meta(response))

    def _get_distinct(self, columns: Columns, raw: bool) -> Union[ResultSet, TransportResponse]:
        cols = self._columns(columns)
        request = self.assembler.build_distinct_params(self.index, cols, self, self.options, self.context())
        response = self._run(Operation.AGGREGATE, request.params, raw)
        if not response.is_successful:
            return response
        rows = normalize_distinct(response.data or {}, cols, include_count=self._distinct == 2)
        meta = self._meta(response)
        meta.total = len(rows)
        return ResultSet(rows, meta)

    def first(self, columns: Columns = None) -> Optional[Doc]:
        options = self.options.model_copy(deep=True)
        options.limit = 1
        request = self.compile(columns, options)
        response = self._run(Operation.SEARCH, request.params)
        return normalize_search(response.data or {}, self._meta(response)).first()

    def find(self, id: Any, columns: Columns = None) -> Optional[Doc]:
        return self.copy().where("_id", id).first(columns)

    def value(self, column: str) -> Any:
        row = self.first([column])
        return row.get(column) if row else None

    def pluck(self, column: str, key: Optional[str] = None) -> Any:
        columns = [column] if key is None or key == "_id" else [column, key]
        return self.get(columns).pluck(column, key)

    def exists(self) -> bool:
        return self.first() is not None

    def count(self) -> int:
        request = self.assembler.build_count_params(self.index, self, self.context())
        response = self._run(Operation.COUNT, request.params)
        return int((response.data or {}).get("count", 0))

    # ------------------------------------------------------------------
    # Aggregations
    # ------------------------------------------------------------------
    def agg(self, functions: Sequence[str], column: str) -> Dict[str, Any]:
        """Run several metric aggregations over one column, keyed `<function>_<column>`."""
        if not isinstance(column, str):
            raise ParameterError("Column must be a string", column=column)
        request = self.assembler.build_aggregation_params(
            self.index, list(functions), [column], self, self.options, self.context()
        )
        response = self._run(Operation.AGGREGATE, request.params)
        return normalize_aggregations(response.data or {})

    def aggregate(self, function: str, columns: Columns) -> Any:
        cols = [columns] if isinstance(columns, str) else list(columns)
        request = self.assembler.build_aggregation_params(
            self.index, [function], cols, self, self.options, self.context()
        )
        response = self._run(Operation.AGGREGATE, request.params)
        values = normalize_aggregations(response.data or {})
        if function in values:
            return values[function]
        return values

    def sum(self, column: str) -> Any:
        return self.aggregate("sum", column)

    def avg(self, column: str) -> Any:
        return self.aggregate("avg", column)

    def min(self, column: str) -> Any:
        return self.aggregate("min", column)

    def max(self, column: str) -> Any:
        return self.aggregate("max", column)

    def matrix(self, columns: Columns) -> Any:
        return self.aggregate("matrix", columns) or 0

    # ------------------------------------------------------------------
    # Full-text search
    # ------------------------------------------------------------------
    def search(self, columns: Columns = None, raw: bool = False) -> Union[ResultSet, TransportResponse]:
        """Execute the full-text chain together with the where clauses.

        Raises:
            SequencingError: If no search term was added
            ExecutionError: If the transport reports a failure and `raw` is False
        """
        if not self._search_query:
            raise SequencingError("No search parameters. Add terms to search for.")
        request = self.compile(columns)
        response = self._run(Operation.SEARCH, request.params, raw)
        if not response.is_successful:
            return response
        return normalize_search(response.data or {}, self._meta(response))

    # ------------------------------------------------------------------
    # Cursor pagination
    # ------------------------------------------------------------------
    def cursor_paginate(
        self,
        per_page: Optional[int] = None,
        columns: Columns = None,
        cursor: Union[CursorState, str, Dict[str, Any], None] = None,
    ) -> Tuple[ResultSet, CursorState]:
        """Fetch one page with search_after and return it with the advanced cursor.

        Args:
            per_page: Page size (default ES_DEFAULT_PER_PAGE)
            columns: Extra `_source` columns
            cursor: Previous cursor state or its encoded token; None starts fresh

        Raises:
            ParameterError: If the query has no sort (search_after requires one)
        """
        if not self.options.sort:
            raise ParameterError("cursor_paginate() requires at least one order_by() sort")
        per_page = per_page or api_settings.ES_DEFAULT_PER_PAGE
        state = CursorState.init(cursor)

        options = self.options.model_copy(deep=True)
        options.limit = per_page
        options.offset = None
        options.cursor = state
        if state.next_sort is not None:
            options.prev_search_after = list(state.next_sort)

        request = self.compile(columns, options)
        response = self._run(Operation.SEARCH, request.params)
        data = response.data or {}
        hits = data.get("hits", {}).get("hits", [])
        results = normalize_search(data, self._meta(response))

        next_state = state.advance(hits, results.meta.total, per_page)
        results.meta.cursor = next_state.model_dump(mode="json")
        results.meta.search_after = next_state.next_sort
        results.meta.prev_search_after = request.meta.get("prev_search_after")
        self.logger.debug(
            "Cursor page=%d pages=%d status=%s", next_state.page, next_state.pages, next_state.status.value
        )
        return results, next_state

    # ------------------------------------------------------------------
    # Write executors
    # ------------------------------------------------------------------
    def insert(self, values: Union[Doc, Docs], return_data: bool = False) -> ResultSet:
        """Bulk insert documents; see BulkAggregator.insert."""
        return BulkAggregator(self.transport).insert(self.index, values, return_data, self.refresh)

    def insert_without_refresh(self, values: Union[Doc, Docs], return_data: bool = False) -> ResultSet:
        return BulkAggregator(self.transport).insert(self.index, values, return_data, refresh=False)

    def insert_get_id(self, values: Doc) -> Optional[str]:
        """Index one document and return its id (None on failure)."""
        params: Dict[str, Any] = {
            "index": self.index,
            "document": {k: v for k, v in values.items() if k != "_id"},
            "refresh": self.refresh,
        }
        if values.get("_id") is not None:
            params["id"] = values["_id"]
        response = self._run(Operation.INDEX, params, raw=True)
        if not response.is_successful:
            self.logger.warning("insert_get_id failed on index=%s: %s", self.index, response.error_message)
            return None
        return normalize_write(response.data or {}, self._meta(response)).inserted_id

    def update(self, values: Doc) -> int:
        """Update every matching document with `values`; returns the modified count."""
        if not isinstance(values, dict):
            raise ParameterError("Invalid value format. Expected a mapping of field -> value")
        return self._update(values=values)

    def increment(self, column: str, amount: Any = 1, extra: Optional[Doc] = None) -> int:
        return self._update(values=extra, increments={column: amount})

    def decrement(self, column: str, amount: Any = 1, extra: Optional[Doc] = None) -> int:
        return self.increment(column, -1 * amount, extra)

    def _update(self, values: Optional[Doc] = None, increments: Optional[Doc] = None) -> int:
        request = self.assembler.build_update_params(
            self.index, self, self.context(), values=values, increments=increments, refresh=self.refresh
        )
        response = self._run(Operation.UPDATE_BY_QUERY, request.params)
        return normalize_write(response.data or {}, self._meta(response)).modified

    def delete(self, id: Any = None) -> int:
        """Delete matching documents (or the document `id`); returns the deleted count."""
        target = self.copy().where("_id", "=", id) if id is not None else self
        request = self.assembler.build_delete_params(self.index, target, self.context())
        response = self._run(Operation.DELETE_BY_QUERY, request.params)
        return normalize_write(response.data or {}, self._meta(response)).deleted

    def truncate(self) -> int:
        """Delete every document of the index, ignoring the where clauses."""
        request = self.assembler.build_delete_params(self.index, None, self.context())
        response = self._run(Operation.DELETE_BY_QUERY, request.params)
        return normalize_write(response.data or {}, self._meta(response)).deleted

    # ------------------------------------------------------------------
    # Relational constructs with no engine equivalent
    # ------------------------------------------------------------------
    def upsert(self, *args: Any, **kwargs: Any) -> int:
        raise UnsupportedOperationError(
            "The upsert feature for Elasticsearch is currently not supported. Please use update()",
            operation="upsert",
        )

    def group_by_raw(self, *args: Any, **kwargs: Any) -> "SearchQuery":
        raise UnsupportedOperationError("group_by_raw() is currently not supported", operation="group_by_raw")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _meta(self, response: TransportResponse) -> QueryMeta:
        meta = response.meta.model_copy()
        meta.index = meta.index or self.index
        return meta

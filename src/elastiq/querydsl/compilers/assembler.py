"""Request assembler.

Combines the where compiler and the option compiler into complete request
params, then applies the staged post-processing passes in a fixed order:

1. geo filters: ``bool{must: [query], filter: [...]}``
2. random score: ``function_score{query: <1>, random_score: {...}}``

The filter is therefore always inside function_score.
"""

from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ...constants import METRIC_AGGREGATIONS, ClauseKind, Operator
from ...exceptions import ParameterError
from ...logger import Logger
from ...settings import settings as api_settings
from ...utils import match_all
from ..clause import Clause
from ..options import QueryOptions
from .clauses import ElasticsearchWhereCompiler, es_where
from .context import CompilationContext
from .options import OptionCompiler, option_compiler
from .utils import merge_params

__all__ = (
    "CompiledRequest",
    "RequestAssembler",
    "assembler",
    "painless_script",
    "query_string_clause",
)


class CompiledRequest(BaseModel):
    """Wire params plus the private metadata that is never sent."""

    params: Dict[str, Any] = Field(default_factory=dict)
    meta: Dict[str, Any] = Field(default_factory=dict)


def query_string_clause(
    query: str, fields: Optional[Dict[str, Any]] = None, search_options: Optional[Dict[str, Any]] = None
) -> Clause:
    """Build the internal full-text clause appended to every AND bucket.

    Fields boosted above 1 are rendered as ``field^boost``. More than one
    field switches the query to ``cross_fields``.
    """
    payload: Dict[str, Any] = {"query": query}
    if fields:
        payload["fields"] = [f"{field}^{boost}" if boost and boost > 1 else field for field, boost in fields.items()]
        if len(payload["fields"]) > 1:
            payload["type"] = "cross_fields"
    for key, value in (search_options or {}).items():
        if key != "highlight":
            payload[key] = value
    return Clause(kind=ClauseKind.BASIC, operator=Operator.SEARCH, value=payload)


def painless_script(
    assign: Optional[Dict[str, Any]] = None, increment: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Build a painless script that assigns `assign` and adds `increment` to the source."""
    assign = assign or {}
    increment = increment or {}
    source = "".join(f"ctx._source['{key}'] = params['{key}'];" for key in assign)
    source += "".join(f"ctx._source['{key}'] += params['{key}'];" for key in increment)
    return {"source": source, "lang": "painless", "params": {**assign, **increment}}


class RequestAssembler:
    """Assemble search, count, aggregation and by-query requests."""

    def __init__(
        self,
        where: Optional[ElasticsearchWhereCompiler] = None,
        options: Optional[OptionCompiler] = None,
    ) -> None:
        self.where = where or es_where
        self.options = options or option_compiler
        self.logger = Logger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def build_search_params(
        self,
        index: Optional[str],
        wheres: Any,
        options: Optional[QueryOptions],
        ctx: CompilationContext,
        columns: Optional[Sequence[str]] = None,
    ) -> CompiledRequest:
        """Compile wheres and options into search params.

        Args:
            index: Target index (omitted from params when empty)
            wheres: WhereTree to compile
            options: Query options, or None
            ctx: Compilation context of this request
            columns: `_source` columns; None uses the option columns
        """
        query = self.where.compile(wheres, ctx) or match_all()
        request = self._assemble(index, query, options, ctx, columns)
        self.logger.dsl("search", request.params)
        return request

    def build_fulltext_params(
        self,
        index: Optional[str],
        search: Clause,
        wheres: Any,
        options: Optional[QueryOptions],
        ctx: CompilationContext,
        columns: Optional[Sequence[str]] = None,
    ) -> CompiledRequest:
        """Compile a full-text search: the search clause joins every AND bucket."""
        query = self.where.compile(wheres, ctx, append=search)
        request = self._assemble(index, query, options, ctx, columns)
        self.logger.dsl("fulltext", request.params)
        return request

    def _assemble(
        self,
        index: Optional[str],
        query: Dict[str, Any],
        options: Optional[QueryOptions],
        ctx: CompilationContext,
        columns: Optional[Sequence[str]],
    ) -> CompiledRequest:
        params: Dict[str, Any] = {}
        if index:
            params["index"] = index
        params["body"] = {"query": query}

        if columns is None:
            columns = options.columns if options is not None else ["*"]
        if columns and list(columns) != ["*"]:
            params["body"]["_source"] = list(columns)

        fragments = self.options.compile(options, ctx)
        meta = fragments.pop("_meta", {})
        merge_params(params, fragments)
        self.apply_modifiers(params, ctx)
        return CompiledRequest(params=params, meta=meta)

    def apply_modifiers(self, params: Dict[str, Any], ctx: CompilationContext) -> Dict[str, Any]:
        """Wrap ``body.query`` with the staged filter, then the staged function score."""
        body = params.setdefault("body", {})
        filters = ctx.consume_filters()
        if filters:
            body["query"] = {"bool": {"must": [body.get("query") or match_all()], "filter": filters}}
        score = ctx.consume_function_score()
        if score:
            body["query"] = {"function_score": {"query": body.get("query") or match_all(), **score}}
        return params

    # ------------------------------------------------------------------
    # Count / aggregations
    # ------------------------------------------------------------------
    def build_count_params(self, index: Optional[str], wheres: Any, ctx: CompilationContext) -> CompiledRequest:
        query = self.where.compile(wheres, ctx) or match_all()
        params: Dict[str, Any] = {"body": {"query": query}}
        if index:
            params["index"] = index
        self.apply_modifiers(params, ctx)
        self.logger.dsl("count", params)
        return CompiledRequest(params=params)

    def build_aggregation_params(
        self,
        index: Optional[str],
        functions: Sequence[str],
        columns: Sequence[str],
        wheres: Any,
        options: Optional[QueryOptions],
        ctx: CompilationContext,
    ) -> CompiledRequest:
        """Build a size-0 request with one metric aggregation per function and column.

        A single function over a single column is named after the function;
        otherwise aggregations are named ``<function>_<column>``. `matrix`
        covers all columns in one ``matrix_stats`` aggregation.

        Raises:
            ParameterError: On an unknown aggregation function
        """
        aggs: Dict[str, Any] = {}
        single = len(functions) == 1 and len(columns) == 1
        for function in functions:
            agg_type = METRIC_AGGREGATIONS.get(function)
            if agg_type is None:
                raise ParameterError(f"Invalid aggregate type: {function}", function=function)
            if function == "matrix":
                aggs[function] = {agg_type: {"fields": list(columns)}}
                continue
            for column in columns:
                name = function if single else f"{function}_{column}"
                aggs[name] = {agg_type: {"field": column}}

        query = self.where.compile(wheres, ctx) or match_all()
        request = self._assemble(index, query, options, ctx, ["*"])
        request.params["size"] = 0
        request.params["body"]["aggs"] = aggs
        for key in ("sort", "search_after"):
            request.params["body"].pop(key, None)
        request.params.pop("from", None)
        self.logger.dsl("aggregate", request.params)
        return request

    def build_distinct_params(
        self,
        index: Optional[str],
        columns: Sequence[str],
        wheres: Any,
        options: Optional[QueryOptions],
        ctx: CompilationContext,
    ) -> CompiledRequest:
        """Build a size-0 request with nested ``by_<column>`` terms aggregations."""
        if not columns or columns[0] == "*":
            raise ParameterError("Columns are required for term aggregation when using distinct()")
        sort = {}
        if options is not None:
            sort = {column: spec.order.value for column, spec in options.sort.items()}

        query = self.where.compile(wheres, ctx) or match_all()
        sortless = options.model_copy(update={"sort": {}}) if options is not None else None
        request = self._assemble(index, query, sortless, ctx, ["*"])
        request.params["size"] = 0
        request.params.pop("from", None)
        request.params["body"].pop("search_after", None)
        request.params["body"]["aggs"] = self.create_nested_aggs(list(columns), sort)
        self.logger.dsl("distinct", request.params)
        return request

    def create_nested_aggs(self, columns: List[str], sort: Dict[str, str]) -> Dict[str, Any]:
        """Nest one ``terms`` aggregation per column, the first column outermost."""
        column = columns[0]
        terms: Dict[str, Any] = {"field": column, "size": api_settings.ES_DISTINCT_SIZE}
        order = []
        if "_count" in sort:
            order.append({"_count": "asc" if sort["_count"] == "asc" else "desc"})
        if column in sort:
            order.append({"_key": "asc" if sort[column] == "asc" else "desc"})
        if order:
            terms["order"] = order
        agg: Dict[str, Any] = {"terms": terms}
        if len(columns) > 1:
            agg["aggs"] = self.create_nested_aggs(columns[1:], sort)
        return {f"by_{column}": agg}

    # ------------------------------------------------------------------
    # By-query writes
    # ------------------------------------------------------------------
    def build_delete_params(self, index: Optional[str], wheres: Any, ctx: CompilationContext) -> CompiledRequest:
        request = self.build_count_params(index, wheres, ctx)
        request.params["conflicts"] = "proceed"
        return request

    def build_update_params(
        self,
        index: Optional[str],
        wheres: Any,
        ctx: CompilationContext,
        values: Optional[Dict[str, Any]] = None,
        increments: Optional[Dict[str, Any]] = None,
        refresh: Any = None,
    ) -> CompiledRequest:
        """Build an update_by_query request with a painless script over `values` and `increments`."""
        request = self.build_count_params(index, wheres, ctx)
        request.params["body"]["script"] = painless_script(values, increments)
        request.params["conflicts"] = "proceed"
        if refresh is not None:
            request.params["refresh"] = bool(refresh)
        self.logger.dsl("update_by_query", request.params)
        return request


assembler = RequestAssembler()

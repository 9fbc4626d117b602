"""Elasticsearch where compiler.

Transforms a WhereTree into an Elasticsearch bool query.

The clause list is split into AND buckets at every `or` / `or not`
connective. A single bucket becomes ``bool.must``; several buckets become
``bool.should`` with one ``bool.must`` per bucket. A tree holding exactly
one clause is emitted without any bucket wrapping.

Supported clause kinds and their DSL:

- Basic: match, match_phrase, match_phrase_prefix, range, query_string
  (like / not like / full-text search), regexp, exists, term (exact)
- In / NotIn: terms on the keyword sub-field when one exists
- Between / NotBetween: range with gte + lte
- Nested group: bool.must / bool.should / bool.must_not
- NestedObject / NotNestedObject / QueryNested: nested
- Regex: regexp
- Timestamp: basic comparison on a normalized epoch value
"""

from typing import Any, Dict, List, Optional

from ...constants import RANGE_OPERATORS, ClauseKind, Connective, Operator
from ...exceptions import ParameterError, SequencingError
from ...logger import Logger
from ...utils import escape_query_string, format_timestamp, match_all, prefix_field
from ..clause import Clause
from .base import BaseWhere
from .context import CompilationContext
from .options import OptionCompiler, option_compiler
from .utils import bool_must, negate, normalize_where_input

__all__ = (
    "ElasticsearchWhereCompiler",
    "es_where",
    "partition_buckets",
)

_GROUP_OCCURRENCE = {
    Connective.AND: "must",
    Connective.OR: "should",
    Connective.AND_NOT: "must_not",
    Connective.NOT: "must_not",
    Connective.OR_NOT: "must_not",
}


def partition_buckets(clauses: List[Clause]) -> List[List[Clause]]:
    """Split clauses into AND buckets; each OR connective starts a new bucket.

    Raises:
        SequencingError: If the first clause carries an OR connective
    """
    if not clauses:
        return []
    if clauses[0].connective.opens_bucket:
        raise SequencingError("Cannot start a query with an OR statement", clause=repr(clauses[0]))
    buckets: List[List[Clause]] = [[]]
    for clause in clauses:
        if clause.connective.opens_bucket:
            buckets.append([])
        buckets[-1].append(clause)
    return buckets


class ElasticsearchWhereCompiler(BaseWhere):
    """Compile WhereTrees into Elasticsearch query DSL.

    The compiler is stateless; everything request-specific (keyword cache,
    staged filters) lives on the CompilationContext passed to `compile`.
    """

    _KIND_HANDLERS = {
        ClauseKind.BASIC: "_compile_basic",
        ClauseKind.TIMESTAMP: "_compile_timestamp",
        ClauseKind.IN: "_compile_in",
        ClauseKind.NOT_IN: "_compile_in",
        ClauseKind.BETWEEN: "_compile_between",
        ClauseKind.REGEX: "_compile_regex",
        ClauseKind.NESTED_OBJECT: "_compile_nested_object",
        ClauseKind.NOT_NESTED_OBJECT: "_compile_nested_object",
        ClauseKind.QUERY_NESTED: "_compile_query_nested",
    }

    def __init__(self, options: Optional[OptionCompiler] = None) -> None:
        self.options = options or option_compiler
        self.logger = Logger(self.__class__.__name__)

    def compile(
        self,
        tree: Any,
        ctx: CompilationContext,
        parent: Optional[str] = None,
        append: Optional[Clause] = None,
    ) -> Optional[Dict[str, Any]]:
        """Compile `tree` into a query expression.

        Args:
            tree: WhereTree (or anything `normalize_where_input` accepts)
            ctx: Compilation context of the current request
            parent: Nested path prefixed to every field of the tree
            append: Clause added to every AND bucket (full-text search)

        Returns:
            The query expression, or None for an empty tree

        Raises:
            SequencingError: If the tree starts with an OR clause
            ParameterError: On unsupported operators or missing keyword fields
        """
        clauses = list(normalize_where_input(tree).clauses)
        buckets = partition_buckets(clauses)

        if append is None:
            if not buckets:
                return None
            if len(clauses) == 1:
                return self.compile_clause(clauses[0], ctx, parent)
        else:
            buckets = buckets or [[]]
            for bucket in buckets:
                bucket.append(append)

        if len(buckets) == 1:
            return bool_must(self._compile_bucket(buckets[0], ctx, parent))

        should = []
        for bucket in buckets:
            must = self._compile_bucket(bucket, ctx, parent)
            if must:
                should.append(bool_must(must))
        return {"bool": {"should": should}}

    def _compile_bucket(
        self, bucket: List[Clause], ctx: CompilationContext, parent: Optional[str]
    ) -> List[Dict[str, Any]]:
        must = []
        for clause in bucket:
            compiled = self.compile_clause(clause, ctx, parent)
            if compiled:
                must.append(compiled)
        return must

    # ------------------------------------------------------------------
    # Clause dispatch
    # ------------------------------------------------------------------
    def compile_clause(
        self, clause: Clause, ctx: CompilationContext, parent: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Compile one clause. Returns None for a group whose sub-tree is empty."""
        if clause.kind == ClauseKind.NESTED:
            return self._group(clause, ctx, parent)

        handler = self._KIND_HANDLERS.get(clause.kind)
        if handler is None:
            raise ParameterError("Unsupported clause kind", kind=clause.kind)
        field = prefix_field(clause.field, parent) if clause.field else clause.field
        query = getattr(self, handler)(field, clause, ctx)

        if clause.connective.negated:
            return negate(query)
        return query

    def _compile_basic(self, field: str, clause: Clause, ctx: CompilationContext) -> Dict[str, Any]:
        return self._basic(field, clause.operator, clause.value, ctx)

    def _compile_timestamp(self, field: str, clause: Clause, ctx: CompilationContext) -> Dict[str, Any]:
        return self._basic(field, clause.operator, format_timestamp(clause.value), ctx)

    def _compile_in(self, field: str, clause: Clause, ctx: CompilationContext) -> Dict[str, Any]:
        query = {"terms": {self._terms_field(field, ctx): list(clause.values)}}
        if clause.kind == ClauseKind.NOT_IN:
            return negate(query)
        return query

    def _compile_between(self, field: str, clause: Clause, ctx: CompilationContext) -> Dict[str, Any]:
        low, high = clause.values
        query = {"range": {field: {"gte": low, "lte": high}}}
        if clause.negated:
            return negate(query)
        return query

    def _compile_regex(self, field: str, clause: Clause, ctx: CompilationContext) -> Dict[str, Any]:
        return {"regexp": {field: {"value": clause.value}}}

    def _basic(self, field: str, operator: Optional[Operator], value: Any, ctx: CompilationContext) -> Dict[str, Any]:
        if operator is None or operator == Operator.EQ:
            return {"match": {field: value}}
        if operator == Operator.NE:
            return negate({"match": {field: value}})
        if operator in RANGE_OPERATORS:
            return {"range": {field: {RANGE_OPERATORS[operator]: value}}}
        if operator == Operator.LIKE:
            return {"query_string": {"query": f"{field}:*{escape_query_string(value)}*"}}
        if operator == Operator.NOT_LIKE:
            return {"query_string": {"query": f"(NOT {field}:*{escape_query_string(value)}*)"}}
        if operator == Operator.REGEX:
            return {"regexp": {field: {"value": value}}}
        if operator == Operator.EXISTS:
            return {"exists": {"field": field}}
        if operator == Operator.NOT_EXISTS:
            return negate({"exists": {"field": field}})
        if operator == Operator.EXACT:
            return {"term": {self._exact_field(field, ctx): value}}
        if operator == Operator.PHRASE:
            return {"match_phrase": {field: value}}
        if operator == Operator.PHRASE_PREFIX:
            return {"match_phrase_prefix": {field: {"query": value}}}
        if operator == Operator.SEARCH:
            return {"query_string": dict(value)}
        raise ParameterError(f"Invalid operator [{operator}] provided for condition", field=field)

    # ------------------------------------------------------------------
    # Keyword rewriting
    # ------------------------------------------------------------------
    def _terms_field(self, field: str, ctx: CompilationContext) -> str:
        if ctx.bypass_map_validation:
            return field
        return ctx.keyword_field(field) or field

    def _exact_field(self, field: str, ctx: CompilationContext) -> str:
        if ctx.bypass_map_validation:
            return field
        keyword = ctx.keyword_field(field)
        if not keyword:
            raise ParameterError(
                f"Field [{field}] is not a keyword field which is required for the [exact] operator",
                field=field,
                operator="exact",
                index=ctx.index,
            )
        return keyword

    # ------------------------------------------------------------------
    # Groups and nested documents
    # ------------------------------------------------------------------
    def _group(self, clause: Clause, ctx: CompilationContext, parent: Optional[str]) -> Optional[Dict[str, Any]]:
        occurrence = _GROUP_OCCURRENCE.get(clause.connective)
        if occurrence is None:
            raise ParameterError(
                f"{clause.connective.value} is not supported for parameter grouping", connective=clause.connective
            )
        sub = self.compile(clause.group, ctx, parent)
        if sub is None:
            return None
        return {"bool": {occurrence: [sub]}}

    def _compile_nested_object(self, path: str, clause: Clause, ctx: CompilationContext) -> Dict[str, Any]:
        query = self.compile(clause.group, ctx, parent=path) or match_all()
        nested = {"nested": {"path": path, "query": query, "score_mode": clause.score_mode}}
        if clause.kind == ClauseKind.NOT_NESTED_OBJECT:
            return negate(nested)
        return nested

    def _compile_query_nested(self, path: str, clause: Clause, ctx: CompilationContext) -> Dict[str, Any]:
        inner_hits = self.options.compile_inner_hits(clause.options, ctx, path)
        if not inner_hits:
            inner_hits = {"size": ctx.inner_hits_size}
        query = self.compile(clause.group, ctx, parent=path) or match_all()
        return {"nested": {"path": path, "query": query, "inner_hits": inner_hits}}


es_where = ElasticsearchWhereCompiler()

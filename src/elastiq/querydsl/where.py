"""Fluent predicate builder.

`WhereTree` accumulates predicate calls into an ordered list of immutable
`Clause` records. It performs no translation itself: the clause compiler
turns the list into a bool query, splitting it into AND buckets at every
OR connective.

Typical usage:

- ``WhereTree().where("age", ">=", 18).where("age", "<=", 65)``
- ``tree.where("status", "active").or_where("status", "pending")``
- ``tree.where(lambda q: q.where("a", 1).or_where("b", 2))``
"""

from typing import Any, Callable, Iterable, Iterator, List, Sequence, Union

from ..constants import SCORE_MODES, ClauseKind, Connective, Operator
from ..exceptions import ParameterError, UnsupportedOperationError
from .clause import Clause

__all__ = ("WhereTree",)

_MISSING = object()

SubQuery = Union["WhereTree", Callable[["WhereTree"], Any]]


class WhereTree:
    """Ordered, tagged clause list with a fluent SQL-shaped API.

    Every `where*` method appends one clause and returns `self`. Clauses are
    never modified once appended.
    """

    def __init__(self, clauses: Iterable[Clause] = ()) -> None:
        self.clauses: List[Clause] = list(clauses)

    def __len__(self) -> int:
        return len(self.clauses)

    def __iter__(self) -> Iterator[Clause]:
        return iter(self.clauses)

    def __repr__(self) -> str:
        return f"<WhereTree: {self.clauses!r}>"

    @property
    def is_empty(self) -> bool:
        return not self.clauses

    def new_query(self) -> "WhereTree":
        """Return an empty builder used for nested sub-queries."""
        return WhereTree()

    def snapshot(self) -> "WhereTree":
        """Return a plain WhereTree holding the current clauses."""
        return WhereTree(self.clauses)

    def add(self, clause: Clause) -> "WhereTree":
        self.clauses.append(clause)
        return self

    # ------------------------------------------------------------------
    # Basic predicates
    # ------------------------------------------------------------------
    def where(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING, boolean: str = "and") -> "WhereTree":
        """Add a basic predicate.

        Accepts `where(col, value)`, `where(col, op, value)`, a dict of
        `{col: value}` equalities, or a callable / WhereTree for a group.
        """
        if callable(column) or isinstance(column, WhereTree):
            return self.where_group(column, boolean)
        if isinstance(column, dict):
            for col, val in column.items():
                self.where(col, "=", val, boolean)
            return self

        if value is _MISSING:
            if operator is _MISSING:
                raise ParameterError("where() requires a value or an operator", field=column)
            if isinstance(operator, Operator):
                value = None
            else:
                operator, value = "=", operator
        op = Operator.parse(operator)

        if value is None and op == Operator.EQ:
            return self.where_null(column, boolean)
        if value is None and op == Operator.NE:
            return self.where_not_null(column, boolean)
        if op == Operator.EXISTS and value is False:
            op = Operator.NOT_EXISTS

        return self.add(
            Clause(kind=ClauseKind.BASIC, field=column, operator=op, value=value, connective=Connective.parse(boolean))
        )

    def or_where(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> "WhereTree":
        return self.where(column, operator, value, "or")

    def where_not(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> "WhereTree":
        return self.where(column, operator, value, "and not")

    def or_where_not(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> "WhereTree":
        return self.where(column, operator, value, "or not")

    def where_date(
        self, column: str, operator: Any = _MISSING, value: Any = _MISSING, boolean: str = "and"
    ) -> "WhereTree":
        return self.where(column, operator, value, boolean)

    def where_null(self, column: str, boolean: str = "and", not_: bool = False) -> "WhereTree":
        op = Operator.EXISTS if not_ else Operator.NOT_EXISTS
        return self.add(Clause(kind=ClauseKind.BASIC, field=column, operator=op, connective=Connective.parse(boolean)))

    def where_not_null(self, column: str, boolean: str = "and") -> "WhereTree":
        return self.where_null(column, boolean, not_=True)

    def or_where_null(self, column: str) -> "WhereTree":
        return self.where_null(column, "or")

    def or_where_not_null(self, column: str) -> "WhereTree":
        return self.where_null(column, "or", not_=True)

    def where_exact(self, column: str, value: Any, boolean: str = "and") -> "WhereTree":
        return self._basic(column, Operator.EXACT, value, boolean)

    def where_phrase(self, column: str, value: Any, boolean: str = "and") -> "WhereTree":
        return self._basic(column, Operator.PHRASE, value, boolean)

    def where_phrase_prefix(self, column: str, value: Any, boolean: str = "and") -> "WhereTree":
        return self._basic(column, Operator.PHRASE_PREFIX, value, boolean)

    def where_timestamp(
        self, column: str, operator: Any = _MISSING, value: Any = _MISSING, boolean: str = "and"
    ) -> "WhereTree":
        if value is _MISSING:
            operator, value = "=", operator
        return self.add(
            Clause(
                kind=ClauseKind.TIMESTAMP,
                field=column,
                operator=Operator.parse(operator),
                value=value,
                connective=Connective.parse(boolean),
            )
        )

    def _basic(self, column: str, op: Operator, value: Any, boolean: str) -> "WhereTree":
        return self.add(
            Clause(kind=ClauseKind.BASIC, field=column, operator=op, value=value, connective=Connective.parse(boolean))
        )

    # ------------------------------------------------------------------
    # Set / range predicates
    # ------------------------------------------------------------------
    def where_in(self, column: str, values: Iterable[Any], boolean: str = "and", not_: bool = False) -> "WhereTree":
        kind = ClauseKind.NOT_IN if not_ else ClauseKind.IN
        return self.add(Clause(kind=kind, field=column, values=tuple(values), connective=Connective.parse(boolean)))

    def where_not_in(self, column: str, values: Iterable[Any], boolean: str = "and") -> "WhereTree":
        return self.where_in(column, values, boolean, not_=True)

    def or_where_in(self, column: str, values: Iterable[Any]) -> "WhereTree":
        return self.where_in(column, values, "or")

    def or_where_not_in(self, column: str, values: Iterable[Any]) -> "WhereTree":
        return self.where_in(column, values, "or", not_=True)

    def where_between(
        self, column: str, values: Sequence[Any], boolean: str = "and", not_: bool = False
    ) -> "WhereTree":
        values = list(values)
        if len(values) < 2:
            raise ParameterError("Between requires a low and a high value", field=column, values=values)
        low, high = values[:2]
        return self.add(
            Clause(
                kind=ClauseKind.BETWEEN,
                field=column,
                values=(low, high),
                negated=not_,
                connective=Connective.parse(boolean),
            )
        )

    def where_not_between(self, column: str, values: Sequence[Any], boolean: str = "and") -> "WhereTree":
        return self.where_between(column, values, boolean, not_=True)

    def or_where_between(self, column: str, values: Sequence[Any]) -> "WhereTree":
        return self.where_between(column, values, "or")

    def or_where_not_between(self, column: str, values: Sequence[Any]) -> "WhereTree":
        return self.where_between(column, values, "or", not_=True)

    def where_regex(self, column: str, expression: str, boolean: str = "and") -> "WhereTree":
        return self.add(
            Clause(kind=ClauseKind.REGEX, field=column, value=expression, connective=Connective.parse(boolean))
        )

    def or_where_regex(self, column: str, expression: str) -> "WhereTree":
        return self.where_regex(column, expression, "or")

    # ------------------------------------------------------------------
    # Groups and nested documents
    # ------------------------------------------------------------------
    def where_group(self, query: SubQuery, boolean: str = "and") -> "WhereTree":
        """Add a parenthesized group compiled into must / should / must_not."""
        sub = self._build_sub_query(query)
        return self.add(Clause(kind=ClauseKind.NESTED, group=sub.snapshot(), connective=Connective.parse(boolean)))

    def or_where_group(self, query: SubQuery) -> "WhereTree":
        return self.where_group(query, "or")

    def where_nested_object(self, column: str, query: SubQuery, score_mode: str = "avg") -> "WhereTree":
        _check_score_mode(score_mode)
        sub = self._build_sub_query(query)
        return self.add(
            Clause(kind=ClauseKind.NESTED_OBJECT, field=column, group=sub.snapshot(), score_mode=score_mode)
        )

    def where_not_nested_object(self, column: str, query: SubQuery, score_mode: str = "avg") -> "WhereTree":
        _check_score_mode(score_mode)
        sub = self._build_sub_query(query)
        return self.add(
            Clause(kind=ClauseKind.NOT_NESTED_OBJECT, field=column, group=sub.snapshot(), score_mode=score_mode)
        )

    def query_nested(self, column: str, query: SubQuery) -> "WhereTree":
        """Add a nested query returning matching sub-documents as inner hits.

        The sub-query's own options (sort, limit, ...) become the inner_hits options.
        """
        sub = self._build_sub_query(query)
        options = getattr(sub, "options", None)
        return self.add(
            Clause(
                kind=ClauseKind.QUERY_NESTED,
                field=column,
                group=sub.snapshot(),
                options=options.model_copy(deep=True) if options is not None else None,
            )
        )

    def _build_sub_query(self, query: SubQuery) -> "WhereTree":
        if isinstance(query, WhereTree):
            return query
        sub = self.new_query()
        query(sub)
        return sub

    # ------------------------------------------------------------------
    # Relational constructs with no engine equivalent
    # ------------------------------------------------------------------
    def where_exists(self, *args: Any, **kwargs: Any) -> "WhereTree":
        raise UnsupportedOperationError(
            'SQL type "where exists" query is not valid for Elasticsearch. '
            "Use where_not_null() or where_null() to query the existence of a field",
            operation="where_exists",
        )

    def where_not_exists(self, *args: Any, **kwargs: Any) -> "WhereTree":
        raise UnsupportedOperationError(
            'SQL type "where not exists" query is not valid for Elasticsearch. '
            "Use where_not_null() or where_null() to query the existence of a field",
            operation="where_not_exists",
        )

    def where_raw(self, *args: Any, **kwargs: Any) -> "WhereTree":
        raise UnsupportedOperationError("where_raw clause is not available", operation="where_raw")

    def or_where_raw(self, *args: Any, **kwargs: Any) -> "WhereTree":
        raise UnsupportedOperationError("or_where_raw clause is not available", operation="or_where_raw")

    def where_day(self, *args: Any, **kwargs: Any) -> "WhereTree":
        raise UnsupportedOperationError("where_day clause is not available", operation="where_day")

    def where_month(self, *args: Any, **kwargs: Any) -> "WhereTree":
        raise UnsupportedOperationError("where_month clause is not available", operation="where_month")

    def where_year(self, *args: Any, **kwargs: Any) -> "WhereTree":
        raise UnsupportedOperationError("where_year clause is not available", operation="where_year")

    def where_time(self, *args: Any, **kwargs: Any) -> "WhereTree":
        raise UnsupportedOperationError("where_time clause is not available", operation="where_time")


def _check_score_mode(score_mode: str) -> None:
    if score_mode not in SCORE_MODES:
        raise ParameterError("Unsupported score mode", score_mode=score_mode, supported=SCORE_MODES)

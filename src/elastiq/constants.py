"""
Closed enumerations shared by the builder, the compilers and the executors.
"""

from enum import Enum

from .exceptions import ParameterError


class ClauseKind(str, Enum):
    BASIC = "basic"
    IN = "in"
    NOT_IN = "not_in"
    BETWEEN = "between"
    NESTED = "nested"
    NESTED_OBJECT = "nested_object"
    NOT_NESTED_OBJECT = "not_nested_object"
    QUERY_NESTED = "query_nested"
    REGEX = "regex"
    TIMESTAMP = "timestamp"


class Operator(str, Enum):
    EQ = "="
    NE = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    LIKE = "like"
    NOT_LIKE = "not_like"
    REGEX = "regex"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    EXACT = "exact"
    PHRASE = "phrase"
    PHRASE_PREFIX = "phrase_prefix"
    SEARCH = "search"

    @classmethod
    def parse(cls, value: "str | Operator") -> "Operator":
        """Resolve an operator word (including SQL aliases) to an Operator.

        Raises:
            ParameterError: If the word is not a supported operator
        """
        if isinstance(value, Operator):
            return value
        key = str(value).strip().lower()
        op = OPERATOR_ALIASES.get(key)
        if op is None:
            raise ParameterError(f"Invalid operator [{value}] provided for condition", operator=value)
        return op


OPERATOR_ALIASES = {
    "=": Operator.EQ,
    "==": Operator.EQ,
    "eq": Operator.EQ,
    "!=": Operator.NE,
    "<>": Operator.NE,
    "ne": Operator.NE,
    "<": Operator.LT,
    "lt": Operator.LT,
    "<=": Operator.LTE,
    "lte": Operator.LTE,
    ">": Operator.GT,
    "gt": Operator.GT,
    ">=": Operator.GTE,
    "gte": Operator.GTE,
    "like": Operator.LIKE,
    "not like": Operator.NOT_LIKE,
    "not_like": Operator.NOT_LIKE,
    "regex": Operator.REGEX,
    "regexp": Operator.REGEX,
    "exist": Operator.EXISTS,
    "exists": Operator.EXISTS,
    "not_exists": Operator.NOT_EXISTS,
    "exact": Operator.EXACT,
    "phrase": Operator.PHRASE,
    "phrase_prefix": Operator.PHRASE_PREFIX,
}

# Operators compiled to a `range` query, keyed to the range parameter name
RANGE_OPERATORS = {
    Operator.LT: "lt",
    Operator.LTE: "lte",
    Operator.GT: "gt",
    Operator.GTE: "gte",
}


class Connective(str, Enum):
    AND = "and"
    OR = "or"
    AND_NOT = "and not"
    OR_NOT = "or not"
    NOT = "not"

    @classmethod
    def parse(cls, value: "str | Connective") -> "Connective":
        if isinstance(value, Connective):
            return value
        try:
            return cls(" ".join(str(value).lower().split()))
        except ValueError:
            raise ParameterError(f"{value} is not supported for parameter grouping", connective=value) from None

    @property
    def opens_bucket(self) -> bool:
        """Whether this connective closes the current AND bucket and starts a new one."""
        return self in (Connective.OR, Connective.OR_NOT)

    @property
    def negated(self) -> bool:
        return self in (Connective.AND_NOT, Connective.OR_NOT, Connective.NOT)


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Operation(str, Enum):
    """Operations understood by a transport."""

    SEARCH = "search"
    COUNT = "count"
    AGGREGATE = "aggregate"
    BULK = "bulk"
    INDEX = "index"
    DELETE_BY_QUERY = "delete_by_query"
    UPDATE_BY_QUERY = "update_by_query"


METRIC_AGGREGATIONS = {
    "count": "value_count",
    "sum": "sum",
    "avg": "avg",
    "min": "min",
    "max": "max",
    "matrix": "matrix_stats",
}

GEO_UNITS = ("km", "mi", "m", "ft", "yd", "cm", "mm", "in", "nmi")
SCORE_MODES = ("avg", "max", "min", "sum", "none")

"""The immutable predicate record produced by the WhereTree builder."""

from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..constants import ClauseKind, Connective, Operator

__all__ = ("Clause",)


class Clause(BaseModel):
    """One predicate of a WhereTree.

    Which attributes are meaningful depends on `kind`:

    - BASIC / TIMESTAMP: `operator`, `value`
    - IN / NOT_IN: `values`
    - BETWEEN: `values` (low, high) and `negated`
    - REGEX: `value` (the expression)
    - NESTED: `group` (a WhereTree); `connective` selects must/should/must_not
    - NESTED_OBJECT / NOT_NESTED_OBJECT: `group`, `score_mode`
    - QUERY_NESTED: `group`, `options` (QueryOptions for inner_hits)
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: ClauseKind
    field: Optional[str] = None
    connective: Connective = Connective.AND
    operator: Optional[Operator] = None
    value: Any = None
    values: Tuple[Any, ...] = ()
    negated: bool = False
    group: Any = None
    score_mode: str = "avg"
    options: Any = None

    def __repr__(self) -> str:
        parts = [self.kind.value]
        if self.field:
            parts.append(self.field)
        if self.operator is not None:
            parts.append(self.operator.value)
        return f"<Clause {' '.join(parts)} ({self.connective.value})>"

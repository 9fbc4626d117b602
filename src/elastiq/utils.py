"""Utility functions for elastiq.

Shared helpers used by the builder, the compilers and the executors.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Sequence, Union

from .exceptions import ParameterError

# Characters with special meaning in Lucene query_string syntax
_RESERVED_CHARS = set('+-=&|!(){}[]^"~*?:\\/')
# '<' and '>' cannot be escaped at all and are dropped
_UNESCAPABLE_CHARS = {"<", ">"}

# Epoch values above this are treated as milliseconds
_MILLIS_THRESHOLD = 10_000_000_000


# ===========================================================================
# Core utilities
# ===========================================================================


def chunk_iter(seq: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    """Yield successive chunks from a sequence."""
    if size <= 0:
        yield seq
        return
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


def match_all() -> Dict[str, Any]:
    return {"match_all": {}}


def prefix_field(field: str, parent: str | None) -> str:
    """Prefix `field` with the nested `parent` path unless it already is."""
    if not parent:
        return field
    if field.startswith(f"{parent}."):
        return field
    return f"{parent}.{field}"


def normalize_columns(columns: Union[str, Sequence[str], None]) -> List[str]:
    """Return a de-duplicated column list; `*` alone means all columns."""
    if columns is None:
        return ["*"]
    if isinstance(columns, str):
        columns = [columns]
    final: List[str] = []
    for col in columns:
        if col not in final:
            final.append(col)
    if not final:
        return ["*"]
    if len(final) > 1 and "*" in final:
        final.remove("*")
    return final


# ===========================================================================
# Query string helpers
# ===========================================================================


def escape_query_string(value: Any) -> str:
    """Escape a value for safe embedding in a Lucene query_string."""
    out = []
    for ch in str(value):
        if ch in _UNESCAPABLE_CHARS:
            continue
        if ch in _RESERVED_CHARS:
            out.append("\\")
        out.append(ch)
    return "".join(out)


def format_timestamp(value: Any) -> Union[int, str]:
    """Normalize a timestamp for comparison against epoch fields.

    - Numbers above 10^10 are taken to be epoch milliseconds and returned as int
    - Other numbers are epoch seconds, returned as a string
    - Strings are parsed as ISO-8601 dates and returned as epoch seconds strings

    Raises:
        ParameterError: If the value is neither numeric nor a parseable date
    """
    if isinstance(value, datetime):
        return str(int(_aware(value).timestamp()))
    if isinstance(value, bool):
        raise ParameterError("Invalid date or timestamp", value=value)
    numeric = _as_number(value)
    if numeric is not None:
        if numeric > _MILLIS_THRESHOLD:
            return numeric
        return str(numeric)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        raise ParameterError("Invalid date or timestamp", value=value) from None
    return str(int(_aware(parsed).timestamp()))


def _as_number(value: Any) -> int | None:
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except (ValueError, OverflowError):
            return None
    return None


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

"""search_after cursor state machine.

A cursor moves through three states:

- ``fresh``: no page fetched yet (or rewound to the first page)
- ``active``: at least one page fetched, ``next_sort`` holds the token for the next one
- ``exhausted``: the last fetch returned no hits

The caller owns the state and passes it back verbatim, usually as the opaque
token returned by :meth:`CursorState.encode`.
"""

import base64
import json
import math
import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ParameterError


class CursorStatus(str, Enum):
    FRESH = "fresh"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class CursorState(BaseModel):
    page: int = 1
    pages: int = 0
    records: int = 0
    sort_history: List[List[Any]] = Field(default_factory=list)
    next_sort: Optional[List[Any]] = None
    ts: int = 0
    status: CursorStatus = CursorStatus.FRESH

    @classmethod
    def init(cls, cursor: "CursorState | str | Dict[str, Any] | None" = None) -> "CursorState":
        """Return a fresh state when no cursor is supplied, otherwise a copy of it."""
        if cursor is None or cursor == "":
            return cls(ts=int(time.time()))
        if isinstance(cursor, CursorState):
            return cursor.model_copy(deep=True)
        if isinstance(cursor, str):
            return cls.decode(cursor)
        try:
            return cls.model_validate(cursor)
        except ValidationError as e:
            raise ParameterError("Invalid cursor", reason=str(e)) from None

    @property
    def is_exhausted(self) -> bool:
        return self.status == CursorStatus.EXHAUSTED

    @property
    def has_more(self) -> bool:
        return self.status == CursorStatus.ACTIVE and self.page < self.pages

    def advance(self, hits: List[Dict[str, Any]], total: int, per_page: int) -> "CursorState":
        """Return the state after a successful fetch of `hits`.

        Args:
            hits: Raw hits of the fetched page, each carrying its `sort` values
            total: Total number of matching records reported by the engine
            per_page: Page size used for the fetch
        """
        state = self.model_copy(deep=True)
        if not hits:
            state.status = CursorStatus.EXHAUSTED
            return state

        if state.next_sort is None:
            state.page = 1
            state.sort_history = []
        else:
            state.sort_history.append(state.next_sort)
            state.page += 1

        state.next_sort = _last_sort(hits)
        state.records = total
        state.pages = math.ceil(total / per_page) if per_page > 0 else 0
        state.status = CursorStatus.ACTIVE
        return state

    def rewind(self) -> "CursorState":
        """Return the state that fetches the page before the current one.

        Replays the token that was used for the previous page; rewinding past
        the first page yields a fresh cursor.
        """
        state = self.model_copy(deep=True)
        history = state.sort_history
        if len(history) >= 2:
            state.next_sort = history[-2]
            state.sort_history = history[:-2]
            state.page = max(self.page - 2, 0)
            state.status = CursorStatus.ACTIVE
        else:
            state.next_sort = None
            state.sort_history = []
            state.page = 0
            state.status = CursorStatus.FRESH
        return state

    def encode(self) -> str:
        """Serialize the state into an opaque, URL-safe token."""
        raw = self.model_dump_json().encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii")

    @classmethod
    def decode(cls, token: str) -> "CursorState":
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii"))
            return cls.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            raise ParameterError("Invalid cursor token", reason=str(e)) from None


def _last_sort(hits: List[Dict[str, Any]]) -> Optional[List[Any]]:
    sort = hits[-1].get("sort")
    return list(sort) if sort is not None else None

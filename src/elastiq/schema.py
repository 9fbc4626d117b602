"""Pydantic schemas for transport responses and normalized results."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class QueryMeta(BaseModel):
    """Uniform metadata attached to every executed request."""

    query: str = Field("", description="Name of the executed operation.")
    index: Optional[str] = Field(None, description="Target index.")
    took: int = Field(0, description="Server-side execution time in milliseconds.")
    total: int = Field(0, description="Total matching (or processed) documents.")
    max_score: Optional[float] = None
    success: bool = True
    succeeded: int = Field(0, description="Documents written without error (bulk writes).")
    created: int = 0
    modified: int = 0
    failed: int = 0
    deleted: int = 0
    inserted_id: Optional[str] = None
    error: Optional[str] = Field(None, description="Error message when the request failed.")
    error_bag: List[Dict[str, Any]] = Field(default_factory=list)
    sort: Optional[List[Any]] = Field(None, description="Sort values of the last returned hit.")
    cursor: Optional[Dict[str, Any]] = None
    search_after: Optional[List[Any]] = None
    prev_search_after: Optional[List[Any]] = None
    dsl: Dict[str, Any] = Field(default_factory=dict, description="The request that produced this result.")

    def set_error(self, error_bag: List[Dict[str, Any]], message: str) -> None:
        self.success = False
        self.error_bag = list(error_bag)
        self.error = message

    def to_payload(self) -> Dict[str, Any]:
        """Return the metadata as a plain dict without the operation name."""
        data = self.model_dump(exclude={"dsl"})
        data.pop("query", None)
        return data


class TransportResponse(BaseModel):
    """Success/message contract returned by every transport execution."""

    is_successful: bool = True
    data: Any = None
    error_message: str = ""
    meta: QueryMeta = Field(default_factory=QueryMeta)

    @classmethod
    def failure(cls, message: str, meta: QueryMeta | None = None) -> "TransportResponse":
        meta = meta or QueryMeta()
        meta.success = False
        meta.error = message
        return cls(is_successful=False, data=None, error_message=message, meta=meta)


class BulkResult(BaseModel):
    """Aggregate outcome of a chunked bulk insert."""

    has_errors: bool = False
    took: int = 0
    total: int = 0
    success: int = 0
    created: int = 0
    modified: int = 0
    failed: int = 0
    data: List[Dict[str, Any]] = Field(default_factory=list)
    error_bag: List[Dict[str, Any]] = Field(default_factory=list)

    def merge(self, chunk: "BulkResult") -> None:
        """Fold one chunk's counters, echoes and errors into this aggregate."""
        if chunk.has_errors:
            self.has_errors = True
        self.total += chunk.total
        self.took += chunk.took
        self.success += chunk.success
        self.failed += chunk.failed
        self.created += chunk.created
        self.modified += chunk.modified
        self.data.extend(chunk.data)
        self.error_bag.extend(chunk.error_bag)

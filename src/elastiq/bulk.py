"""Chunked bulk insert.

Documents are split into chunks of ``ES_BULK_CHUNK_SIZE`` and sent one
chunk at a time. A failing chunk never stops the following ones; every
chunk's counters, echoes and errors are folded into a single BulkResult.
"""

from typing import Any, Dict, List, Optional

from .abc import Transport
from .constants import Operation
from .logger import Logger
from .results import ResultSet, normalize_bulk
from .schema import BulkResult, QueryMeta
from .settings import settings as api_settings
from .types import Docs
from .utils import chunk_iter

__all__ = ("BulkAggregator", "build_bulk_operations")


def build_bulk_operations(index: Optional[str], docs: Docs) -> List[Dict[str, Any]]:
    """Build the action/source pairs of a bulk request; a document `_id` becomes the action id."""
    operations: List[Dict[str, Any]] = []
    for doc in docs:
        action: Dict[str, Any] = {}
        if index:
            action["_index"] = index
        if doc.get("_id") is not None:
            action["_id"] = doc["_id"]
        operations.append({"index": action})
        operations.append({k: v for k, v in doc.items() if k != "_id"})
    return operations


class BulkAggregator:
    """Insert any number of documents through sequential bulk chunks."""

    def __init__(self, transport: Transport, chunk_size: Optional[int] = None) -> None:
        self.transport = transport
        self.chunk_size = chunk_size or api_settings.ES_BULK_CHUNK_SIZE
        self.logger = Logger(self.__class__.__name__)

    def insert(
        self,
        index: Optional[str],
        docs: Docs,
        return_data: bool = False,
        refresh: Any = None,
    ) -> ResultSet:
        """Insert `docs` and return the aggregate outcome.

        Args:
            index: Target index
            docs: Documents to insert (a single dict is accepted)
            return_data: Return per-document echoes instead of the summary
            refresh: Refresh policy (defaults to ES_REFRESH)

        Returns:
            ResultSet of echoes, or a single summary row when `return_data` is False.
            Its `meta` carries the counters and the error bag either way.
        """
        if isinstance(docs, dict):
            docs = [docs]
        refresh = api_settings.ES_REFRESH if refresh is None else refresh

        aggregate = BulkResult()
        chunks = 0
        for chunk in chunk_iter(list(docs), self.chunk_size):
            chunks += 1
            aggregate.merge(self._insert_chunk(index, chunk, return_data, refresh))
        self.logger.message(
            "Bulk insert index=%s docs=%d chunks=%d failed=%d", index, aggregate.total, chunks, aggregate.failed
        )

        meta = QueryMeta(
            query="insert_bulk",
            index=index,
            took=aggregate.took,
            total=aggregate.total,
            succeeded=aggregate.success,
            created=aggregate.created,
            modified=aggregate.modified,
            failed=aggregate.failed,
        )
        if aggregate.has_errors:
            message = "Bulk insert failed for all values"
            if aggregate.success > 0:
                message = "Bulk insert failed for some values"
            meta.set_error(aggregate.error_bag, message)

        if not return_data:
            return ResultSet([meta.to_payload()], meta)
        return ResultSet(aggregate.data, meta)

    def _insert_chunk(self, index: Optional[str], chunk: Docs, return_data: bool, refresh: Any) -> BulkResult:
        params = {"operations": build_bulk_operations(index, chunk), "refresh": refresh}
        if index:
            params["index"] = index
        response = self.transport.execute(Operation.BULK, params)
        if not response.is_successful:
            self.logger.warning("Bulk chunk of %d documents failed: %s", len(chunk), response.error_message)
            return self._failed_chunk(chunk, response.error_message)

        result = normalize_bulk(response.data or {}, chunk, return_data)
        if result.has_errors:
            self.logger.warning("Bulk chunk had %d failed documents out of %d", result.failed, result.total)
        return result

    def _failed_chunk(self, chunk: Docs, message: str) -> BulkResult:
        return BulkResult(
            has_errors=True,
            total=len(chunk),
            failed=len(chunk),
            error_bag=[
                {"_id": doc.get("_id"), "status": None, "type": "transport_error", "reason": message, "payload": doc}
                for doc in chunk
            ],
        )

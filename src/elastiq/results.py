"""Result normalization.

Turns raw Elasticsearch responses into uniform Python structures:

- search hits -> ``{"_id", **_source, "_meta": {...}}`` rows in a ResultSet
- metric / distinct aggregations -> plain values and rows
- bulk responses -> BulkResult with an ordered error bag
- by-query / index responses -> QueryMeta counters
- field mappings -> flat ``{field: type}`` maps
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from .schema import BulkResult, QueryMeta
from .types import Doc, Docs


class ResultSet(list):
    """A list of normalized rows carrying the QueryMeta of the request."""

    def __init__(self, rows: Iterable[Any] = (), meta: Optional[QueryMeta] = None) -> None:
        super().__init__(rows)
        self.meta = meta or QueryMeta()

    def __repr__(self) -> str:
        return f"<ResultSet rows={len(self)} total={self.meta.total}>"

    def first(self) -> Optional[Any]:
        return self[0] if self else None

    def pluck(self, column: str, key: Optional[str] = None) -> Any:
        """Return the values of `column`, keyed by `key` when given."""
        if key is None:
            return [row.get(column) for row in self]
        return {row.get(key): row.get(column) for row in self}


# ===========================================================================
# Search
# ===========================================================================


def total_hits(response: Dict[str, Any]) -> int:
    """Read hits.total, which is an object on ES 7+ and an int on older versions."""
    total = response.get("hits", {}).get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


def normalize_hit(hit: Dict[str, Any]) -> Doc:
    row: Doc = {"_id": hit.get("_id")}
    row.update(hit.get("_source") or {})
    meta: Dict[str, Any] = {"_index": hit.get("_index"), "_score": hit.get("_score")}
    if hit.get("highlight"):
        meta["highlights"] = hit["highlight"]
    if "sort" in hit:
        meta["sort"] = hit["sort"]
    if hit.get("inner_hits"):
        meta["inner_hits"] = {
            path: [_inner_source(inner) for inner in payload.get("hits", {}).get("hits", [])]
            for path, payload in hit["inner_hits"].items()
        }
    row["_meta"] = meta
    return row


def _inner_source(hit: Dict[str, Any]) -> Doc:
    row = dict(hit.get("_source") or {})
    if hit.get("highlight"):
        row["_highlights"] = hit["highlight"]
    return row


def normalize_search(response: Dict[str, Any], meta: Optional[QueryMeta] = None) -> ResultSet:
    """Normalize a search response into a ResultSet."""
    meta = meta or QueryMeta(query="search")
    hits = response.get("hits", {}).get("hits", [])
    meta.took = int(response.get("took", 0) or 0)
    meta.total = total_hits(response)
    meta.max_score = response.get("hits", {}).get("max_score")
    if hits and "sort" in hits[-1]:
        meta.sort = list(hits[-1]["sort"])
    return ResultSet((normalize_hit(hit) for hit in hits), meta)


# ===========================================================================
# Aggregations
# ===========================================================================


def normalize_aggregations(response: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce every aggregation to its value (or its matrix fields)."""
    values: Dict[str, Any] = {}
    for name, payload in (response.get("aggregations") or {}).items():
        if "value" in payload:
            values[name] = payload["value"]
        elif "fields" in payload:
            values[name] = payload["fields"]
        else:
            values[name] = payload
    return values


def normalize_distinct(
    response: Dict[str, Any], columns: Sequence[str], include_count: bool = False
) -> Docs:
    """Flatten nested ``by_<column>`` terms buckets into one row per key combination."""
    rows: Docs = []
    _collect_buckets(response.get("aggregations") or {}, list(columns), {}, include_count, rows)
    return rows


def _collect_buckets(
    aggs: Dict[str, Any], columns: List[str], prefix: Doc, include_count: bool, rows: Docs
) -> None:
    column = columns[0]
    for bucket in aggs.get(f"by_{column}", {}).get("buckets", []):
        row = {**prefix, column: bucket.get("key")}
        if len(columns) > 1:
            _collect_buckets(bucket, columns[1:], row, include_count, rows)
            continue
        if include_count:
            row[f"{column}_count"] = bucket.get("doc_count", 0)
        rows.append(row)


# ===========================================================================
# Writes
# ===========================================================================


def normalize_bulk(response: Dict[str, Any], docs: Sequence[Doc], return_data: bool = False) -> BulkResult:
    """Normalize one bulk response; items are matched to `docs` by position."""
    result = BulkResult(took=int(response.get("took", 0) or 0), total=len(docs))
    for position, item in enumerate(response.get("items", [])):
        action = next(iter(item.values()), {})
        doc = docs[position] if position < len(docs) else {}
        error = action.get("error")
        if error:
            result.has_errors = True
            result.failed += 1
            result.error_bag.append(
                {
                    "_id": action.get("_id"),
                    "status": action.get("status"),
                    "type": error.get("type") if isinstance(error, dict) else None,
                    "reason": error.get("reason") if isinstance(error, dict) else str(error),
                    "payload": doc,
                }
            )
            continue
        result.success += 1
        if action.get("result") == "created":
            result.created += 1
        elif action.get("result") == "updated":
            result.modified += 1
        if return_data:
            echo = {"_id": action.get("_id"), **{k: v for k, v in doc.items() if k != "_id"}}
            echo["_meta"] = {"_index": action.get("_index"), "result": action.get("result")}
            result.data.append(echo)
    return result


def normalize_write(response: Dict[str, Any], meta: QueryMeta) -> QueryMeta:
    """Copy by-query and index counters into `meta`."""
    meta.took = int(response.get("took", 0) or 0)
    if "total" in response:
        meta.total = int(response.get("total") or 0)
    meta.deleted = int(response.get("deleted", 0) or 0)
    meta.modified = int(response.get("updated", 0) or 0)
    meta.failed = len(response.get("failures", []) or [])
    if response.get("result") == "created":
        meta.created = 1
        meta.inserted_id = response.get("_id")
    elif response.get("result") == "updated":
        meta.modified = 1
        meta.inserted_id = response.get("_id")
    return meta


# ===========================================================================
# Field mappings
# ===========================================================================


def parse_field_map(mapping: Dict[str, Any]) -> Dict[str, str]:
    """Flatten a get_field_mapping response of the first index into ``{field: type}``.

    Multi-fields are listed as ``field.sub``. The result is sorted by key.
    """
    fields: Dict[str, str] = {}
    if not mapping:
        return fields
    index_mapping = next(iter(mapping.values()))
    for key, item in (index_mapping.get("mappings") or {}).items():
        for details in (item.get("mapping") or {}).values():
            if "type" in details:
                fields[key] = details["type"]
            for sub_field, sub_details in (details.get("fields") or {}).items():
                fields[f"{key}.{sub_field}"] = sub_details.get("type")
    return dict(sorted(fields.items()))

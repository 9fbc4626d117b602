"""Tests for result normalization."""

from elastiq.results import (
    ResultSet,
    normalize_aggregations,
    normalize_bulk,
    normalize_distinct,
    normalize_hit,
    normalize_search,
    normalize_write,
    parse_field_map,
    total_hits,
)
from elastiq.schema import QueryMeta
from tests.mock.mock_backend import hit, search_response


class TestSearchNormalization:
    def test_hit_shape(self):
        raw = hit("1", {"name": "Ann"}, sort=[3, "1"])
        raw["highlight"] = {"name": ["<em>Ann</em>"]}
        assert normalize_hit(raw) == {
            "_id": "1",
            "name": "Ann",
            "_meta": {
                "_index": "users",
                "_score": 1.0,
                "highlights": {"name": ["<em>Ann</em>"]},
                "sort": [3, "1"],
            },
        }

    def test_inner_hits_are_flattened(self):
        raw = hit("1", {"name": "Ann"})
        inner = {"_source": {"text": "hi"}, "highlight": {"text": ["x"]}}
        raw["inner_hits"] = {"comments": {"hits": {"hits": [inner]}}}
        expected = {"comments": [{"text": "hi", "_highlights": {"text": ["x"]}}]}
        assert normalize_hit(raw)["_meta"]["inner_hits"] == expected

    def test_search_meta(self):
        response = search_response([hit("1", {}, sort=[1]), hit("2", {}, sort=[2])], total=40, took=7)
        results = normalize_search(response)
        assert len(results) == 2
        assert results.meta.total == 40
        assert results.meta.took == 7
        assert results.meta.max_score == 1.0
        assert results.meta.sort == [2]

    def test_total_hits_legacy_int(self):
        assert total_hits({"hits": {"total": 12}}) == 12
        assert total_hits({}) == 0


class TestResultSet:
    def test_first_and_pluck(self):
        rows = ResultSet([{"_id": "a", "n": 1}, {"_id": "b", "n": 2}])
        assert rows.first() == {"_id": "a", "n": 1}
        assert rows.pluck("n") == [1, 2]
        assert rows.pluck("n", "_id") == {"a": 1, "b": 2}
        assert ResultSet().first() is None

    def test_meta_default(self):
        assert isinstance(ResultSet().meta, QueryMeta)


class TestAggregationNormalization:
    def test_values(self):
        response = {"aggregations": {"sum": {"value": 10.0}, "matrix": {"doc_count": 3, "fields": [{"name": "a"}]}}}
        assert normalize_aggregations(response) == {"sum": 10.0, "matrix": [{"name": "a"}]}

    def test_distinct_rows(self):
        response = {
            "aggregations": {
                "by_status": {
                    "buckets": [
                        {"key": "active", "doc_count": 3, "by_age": {"buckets": [{"key": 30, "doc_count": 2}]}},
                        {"key": "banned", "doc_count": 1, "by_age": {"buckets": [{"key": 41, "doc_count": 1}]}},
                    ]
                }
            }
        }
        assert normalize_distinct(response, ["status", "age"]) == [
            {"status": "active", "age": 30},
            {"status": "banned", "age": 41},
        ]
        assert normalize_distinct(response, ["status", "age"], include_count=True)[0] == {
            "status": "active",
            "age": 30,
            "age_count": 2,
        }


class TestWriteNormalization:
    def test_bulk_counts(self):
        response = {
            "took": 4,
            "items": [
                {"index": {"_id": "1", "status": 201, "result": "created"}},
                {"index": {"_id": "2", "status": 200, "result": "updated"}},
                {"index": {"_id": "3", "status": 400, "error": {"type": "t", "reason": "r"}}},
            ],
        }
        docs = [{"a": 1}, {"a": 2}, {"a": 3}]
        result = normalize_bulk(response, docs)
        assert result.took == 4
        assert result.total == 3
        assert result.success == 2
        assert result.created == 1
        assert result.modified == 1
        assert result.failed == 1
        assert result.has_errors
        assert result.error_bag == [{"_id": "3", "status": 400, "type": "t", "reason": "r", "payload": {"a": 3}}]
        assert result.data == []

    def test_by_query_counters(self):
        meta = normalize_write({"took": 9, "total": 4, "deleted": 3, "failures": [{}]}, QueryMeta())
        assert meta.took == 9
        assert meta.total == 4
        assert meta.deleted == 3
        assert meta.failed == 1

    def test_index_response(self):
        meta = normalize_write({"_id": "abc", "result": "created"}, QueryMeta())
        assert meta.created == 1
        assert meta.inserted_id == "abc"


class TestParseFieldMap:
    def test_flattens_multi_fields(self):
        mapping = {
            "users": {
                "mappings": {
                    "name": {
                        "full_name": "name",
                        "mapping": {"name": {"type": "text", "fields": {"keyword": {"type": "keyword"}}}},
                    },
                    "age": {"full_name": "age", "mapping": {"age": {"type": "long"}}},
                    "_id": {"full_name": "_id", "mapping": {"_id": {}}},
                }
            }
        }
        fields = parse_field_map(mapping)
        assert fields == {"age": "long", "name": "text", "name.keyword": "keyword"}
        assert list(fields) == ["age", "name", "name.keyword"]

    def test_empty(self):
        assert parse_field_map({}) == {}

"""Tests for chunked bulk insert."""

import pytest

from elastiq.bulk import BulkAggregator, build_bulk_operations
from elastiq.constants import Operation
from tests.mock.mock_backend import FakeTransport


@pytest.fixture
def bulk_transport():
    return FakeTransport()


class TestBuildBulkOperations:
    def test_id_becomes_action_id(self):
        ops = build_bulk_operations("users", [{"_id": "1", "name": "a"}, {"name": "b"}])
        assert ops == [
            {"index": {"_index": "users", "_id": "1"}},
            {"name": "a"},
            {"index": {"_index": "users"}},
            {"name": "b"},
        ]

    def test_without_index(self):
        assert build_bulk_operations(None, [{"a": 1}])[0] == {"index": {}}


class TestBulkAggregator:
    def test_chunks_and_partial_failure(self, bulk_transport):
        docs = [{"_id": str(i), "n": i} for i in range(1001)]
        docs[500]["_invalid"] = True

        result = BulkAggregator(bulk_transport, chunk_size=1000).insert("users", docs, return_data=True)

        assert len(bulk_transport.requests(Operation.BULK)) == 2
        assert len(result) == 1000
        assert result.meta.total == 1001
        assert result.meta.succeeded == 1000
        assert result.meta.created == 1000
        assert result.meta.failed == 1
        assert not result.meta.success
        assert result.meta.error == "Bulk insert failed for some values"
        assert len(result.meta.error_bag) == 1
        error = result.meta.error_bag[0]
        assert error["_id"] == "500"
        assert error["status"] == 400
        assert error["type"] == "mapper_parsing_exception"
        assert error["payload"]["n"] == 500

    def test_echoes_carry_meta(self, bulk_transport):
        result = BulkAggregator(bulk_transport).insert("users", [{"_id": "7", "name": "x"}], return_data=True)
        assert result.first() == {"_id": "7", "name": "x", "_meta": {"_index": "users", "result": "created"}}

    def test_all_failed(self, bulk_transport):
        docs = [{"_invalid": True}, {"_invalid": True}]
        result = BulkAggregator(bulk_transport).insert("users", docs)
        assert result.meta.error == "Bulk insert failed for all values"
        assert result.meta.failed == 2

    def test_summary_row_without_data(self, bulk_transport):
        result = BulkAggregator(bulk_transport).insert("users", [{"a": 1}, {"a": 2}])
        assert len(result) == 1
        summary = result.first()
        assert summary["succeeded"] == 2
        assert summary["created"] == 2
        assert summary["total"] == 2
        assert summary["success"] is True
        assert "query" not in summary

    def test_single_dict_accepted(self, bulk_transport):
        result = BulkAggregator(bulk_transport).insert("users", {"a": 1})
        assert result.meta.total == 1

    def test_refresh_forwarded(self, bulk_transport):
        BulkAggregator(bulk_transport).insert("users", [{"a": 1}], refresh="wait_for")
        params = bulk_transport.requests(Operation.BULK)[0]
        assert params["refresh"] == "wait_for"
        assert params["index"] == "users"

    def test_failed_chunk_marks_every_document(self):
        transport = FakeTransport(failures={Operation.BULK: "connection refused"})
        result = BulkAggregator(transport, chunk_size=1).insert("users", [{"x": 1}, {"x": 2}])
        assert len(transport.requests(Operation.BULK)) == 2
        assert result.meta.failed == 2
        assert result.meta.error == "Bulk insert failed for all values"
        assert [e["type"] for e in result.meta.error_bag] == ["transport_error", "transport_error"]
        assert result.meta.error_bag[0]["reason"] == "connection refused"

    def test_summary_counts_successes_apart_from_created(self, bulk_transport):
        bulk_transport.responses[Operation.BULK] = {
            "took": 2,
            "items": [
                {"index": {"_id": "1", "status": 201, "result": "created"}},
                {"index": {"_id": "2", "status": 200, "result": "updated"}},
                {"index": {"_id": "3", "status": 400, "error": {"type": "t", "reason": "r"}}},
            ],
        }
        summary = BulkAggregator(bulk_transport).insert("users", [{"a": 1}, {"a": 2}, {"a": 3}]).first()
        assert summary["succeeded"] == 2
        assert summary["created"] == 1
        assert summary["modified"] == 1
        assert summary["failed"] == 1
        assert summary["success"] is False
        assert summary["error"] == "Bulk insert failed for some values"

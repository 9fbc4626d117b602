"""Tests for SearchQuery compilation and executors."""

import pytest

from elastiq.constants import Operation
from elastiq.cursor import CursorState, CursorStatus
from elastiq.exceptions import ExecutionError, ParameterError, SequencingError, UnsupportedOperationError
from elastiq.query import SearchQuery
from elastiq.results import ResultSet
from elastiq.schema import TransportResponse
from elastiq.settings import settings as api_settings
from tests.mock.mock_backend import FakeTransport, hit, search_response


def _query(users_mapping, **transport_kwargs):
    return SearchQuery(FakeTransport(mapping=users_mapping, **transport_kwargs), "users", refresh=False)


class TestCompilation:
    def test_to_dsl(self, query):
        query.where("status", "active").where("age", ">", 30)
        assert query.to_dsl() == {
            "index": "users",
            "body": {"query": {"bool": {"must": [{"match": {"status": "active"}}, {"range": {"age": {"gt": 30}}}]}}},
        }

    def test_index_prefix(self, transport, monkeypatch):
        monkeypatch.setattr(api_settings, "ES_INDEX_PREFIX", "app_")
        assert SearchQuery(transport, "users").index == "app_users"

    def test_select_and_add_select(self, query):
        query.select(["name"]).add_select("age")
        assert query.to_dsl()["body"]["_source"] == ["name", "age"]

    def test_highlight(self, query):
        query.highlight(["name"], pre_tag="<b>", post_tag="</b>")
        assert query.to_dsl()["body"]["highlight"] == {
            "pre_tags": ["<b>"],
            "post_tags": ["</b>"],
            "fields": {"name": {}},
        }

    def test_geo_filter_and_random_score(self, query):
        query.where("status", "active").filter_geo_point("location", "5km", [40.0, -73.0]).random_score("_seq_no", 3)
        assert query.to_dsl()["body"]["query"] == {
            "function_score": {
                "query": {
                    "bool": {
                        "must": [{"match": {"status": "active"}}],
                        "filter": [{"geo_distance": {"distance": "5km", "location": {"lat": 40.0, "lon": -73.0}}}],
                    }
                },
                "random_score": {"field": "_seq_no", "seed": 3},
            }
        }

    def test_compiling_twice_gives_the_same_request(self, query):
        query.filter_geo_box("location", [0, 1], [1, 0])
        assert query.to_dsl() == query.to_dsl()

    def test_set_options(self, query):
        query.set_options({"limit": 3, "skip": 6, "sort": {"age": "desc"}})
        dsl = query.to_dsl()
        assert dsl["size"] == 3
        assert dsl["from"] == 6
        assert dsl["body"]["sort"] == [{"age": {"order": "desc"}}]

    def test_mapping_fetched_once_per_request(self, query):
        query.where_in("name", ["a"]).where_in("name", ["b"])
        query.get()
        assert query.transport.mapping_calls == 1
        query.get()
        assert query.transport.mapping_calls == 2


class TestSearchChain:
    def test_chain(self, query):
        query.term("foo").and_term("bar", 2).or_fuzzy_term("baz").and_phrase('say "hi"')
        assert query.search_query == '(foo) AND (bar)^2 OR (baz~) AND ("say \\"hi\\"")'

    def test_regex_is_not_escaped(self, query):
        query.regex_term("jo.*n")
        assert query.search_query == "(/jo.*n/)"

    def test_term_twice(self, query):
        with pytest.raises(SequencingError, match="term\\(\\) should only start the chain"):
            query.term("a").term("b")

    def test_joiner_first(self, query):
        with pytest.raises(SequencingError, match="cannot start the chain"):
            query.or_phrase("a")

    def test_search_without_terms(self, query):
        with pytest.raises(SequencingError, match="No search parameters"):
            query.search()

    def test_search_params(self, query):
        query.term("foo").search_field("title", 3).search_field("name").min_should_match("50%")
        query.where("status", "active")
        query.search()
        params = query.transport.requests(Operation.SEARCH)[0]
        assert params["body"]["query"] == {
            "bool": {
                "must": [
                    {"match": {"status": "active"}},
                    {
                        "query_string": {
                            "query": "(foo)",
                            "fields": ["title^3", "name"],
                            "type": "cross_fields",
                            "minimum_should_match": "50%",
                        }
                    },
                ]
            }
        }


class TestReadExecutors:
    def test_get(self, users_mapping):
        query = _query(users_mapping, responses={Operation.SEARCH: search_response([hit("1", {"name": "Ann"})])})
        results = query.where("status", "active").get()
        assert isinstance(results, ResultSet)
        assert results.first()["name"] == "Ann"
        assert results.meta.total == 1
        assert results.meta.index == "users"

    def test_get_failure_raises(self, users_mapping):
        query = _query(users_mapping, failures={Operation.SEARCH: "index_not_found_exception"})
        with pytest.raises(ExecutionError, match="index_not_found_exception") as excinfo:
            query.get()
        assert excinfo.value.details == {"operation": "search", "index": "users"}

    def test_get_failure_raw(self, users_mapping):
        query = _query(users_mapping, failures={Operation.SEARCH: "index_not_found_exception"})
        response = query.get(raw=True)
        assert isinstance(response, TransportResponse)
        assert not response.is_successful
        assert response.meta.error == "index_not_found_exception"

    def test_first_limits_to_one(self, users_mapping):
        query = _query(users_mapping, responses={Operation.SEARCH: search_response([hit("1", {"name": "Ann"})])})
        query.limit(50)
        assert query.first()["_id"] == "1"
        assert query.transport.requests(Operation.SEARCH)[0]["size"] == 1
        assert query.options.limit == 50

    def test_find(self, query):
        assert query.find("42") is None
        params = query.transport.requests(Operation.SEARCH)[0]
        assert params["body"]["query"] == {"match": {"_id": "42"}}

    def test_find_twice_keeps_the_query_unchanged(self, query):
        query.where("status", "active")
        query.find("1")
        query.find("2")
        first, second = query.transport.requests(Operation.SEARCH)
        active = {"match": {"status": "active"}}
        assert first["body"]["query"] == {"bool": {"must": [active, {"match": {"_id": "1"}}]}}
        assert second["body"]["query"] == {"bool": {"must": [active, {"match": {"_id": "2"}}]}}
        assert len(query.clauses) == 1

    def test_copy_is_independent(self, query):
        query.where("status", "active").order_by("age").term("foo")
        clone = query.copy()
        clone.where("age", ">", 3).limit(2)
        assert len(query.clauses) == 1
        assert query.options.limit is None
        assert clone.search_query == "(foo)"
        assert clone.options.sort["age"].order.value == "asc"

    def test_value_and_pluck(self, users_mapping):
        hits = [hit("1", {"name": "Ann"}), hit("2", {"name": "Bob"})]
        query = _query(users_mapping, responses={Operation.SEARCH: search_response(hits)})
        assert query.value("name") == "Ann"
        assert query.pluck("name") == ["Ann", "Bob"]
        assert query.pluck("name", "_id") == {"1": "Ann", "2": "Bob"}

    def test_exists(self, users_mapping):
        assert not _query(users_mapping).exists()
        query = _query(users_mapping, responses={Operation.SEARCH: search_response([hit("1", {})])})
        assert query.exists()

    def test_count(self, users_mapping):
        query = _query(users_mapping, responses={Operation.COUNT: {"count": 7}})
        assert query.where("age", ">=", 18).count() == 7
        params = query.transport.requests(Operation.COUNT)[0]
        assert params["body"] == {"query": {"range": {"age": {"gte": 18}}}}

    def test_sum(self, users_mapping):
        query = _query(users_mapping, responses={Operation.AGGREGATE: {"aggregations": {"sum": {"value": 12.0}}}})
        assert query.sum("age") == 12.0

    def test_agg(self, users_mapping):
        body = {"aggregations": {"min_age": {"value": 1.0}, "max_age": {"value": 9.0}}}
        query = _query(users_mapping, responses={Operation.AGGREGATE: body})
        assert query.agg(["min", "max"], "age") == {"min_age": 1.0, "max_age": 9.0}

    def test_distinct(self, users_mapping):
        body = {
            "aggregations": {
                "by_status": {"buckets": [{"key": "active", "doc_count": 4}, {"key": "banned", "doc_count": 1}]}
            }
        }
        query = _query(users_mapping, responses={Operation.AGGREGATE: body})
        rows = query.select("status").distinct(include_count=True).get()
        assert list(rows) == [
            {"status": "active", "status_count": 4},
            {"status": "banned", "status_count": 1},
        ]
        assert rows.meta.total == 2
        assert query.transport.requests(Operation.AGGREGATE)[0]["size"] == 0


class TestCursorPaginate:
    def test_requires_sort(self, query):
        with pytest.raises(ParameterError):
            query.cursor_paginate()

    def test_two_pages(self, users_mapping):
        pages = [
            search_response([hit(f"doc{i}", {}, sort=[i, f"doc{i}"]) for i in range(1, 11)], total=25),
            search_response([hit(f"doc{i}", {}, sort=[i, f"doc{i}"]) for i in range(11, 21)], total=25),
        ]
        query = _query(users_mapping, responses={Operation.SEARCH: pages})
        query.order_by("age").order_by("name.keyword")

        first, state = query.cursor_paginate(per_page=10)
        assert len(first) == 10
        assert state.page == 1
        assert state.pages == 3
        assert state.next_sort == [10, "doc10"]
        assert "search_after" not in query.transport.requests(Operation.SEARCH)[0]["body"]

        second, state = query.cursor_paginate(per_page=10, cursor=state.encode())
        params = query.transport.requests(Operation.SEARCH)[1]
        assert params["body"]["search_after"] == [10, "doc10"]
        assert params["size"] == 10
        assert state.page == 2
        assert state.sort_history == [[10, "doc10"]]
        assert second.meta.prev_search_after == [10, "doc10"]
        assert second.meta.search_after == [20, "doc20"]
        assert second.meta.cursor["page"] == 2

    def test_exhausted(self, query):
        query.order_by("age")
        results, state = query.cursor_paginate(cursor=CursorState(next_sort=[99]))
        assert len(results) == 0
        assert state.status == CursorStatus.EXHAUSTED


class TestWriteExecutors:
    def test_insert(self, query):
        result = query.insert([{"_id": "1", "name": "a"}, {"name": "b"}])
        assert result.meta.created == 2
        assert query.transport.requests(Operation.BULK)[0]["refresh"] is False

    def test_insert_get_id(self, users_mapping):
        query = _query(users_mapping, responses={Operation.INDEX: {"_id": "abc", "result": "created"}})
        assert query.insert_get_id({"_id": "abc", "name": "a"}) == "abc"
        params = query.transport.requests(Operation.INDEX)[0]
        assert params["id"] == "abc"
        assert params["document"] == {"name": "a"}

    def test_insert_get_id_failure(self, users_mapping):
        query = _query(users_mapping, failures={Operation.INDEX: "version_conflict"})
        assert query.insert_get_id({"name": "a"}) is None

    def test_update(self, users_mapping):
        query = _query(users_mapping, responses={Operation.UPDATE_BY_QUERY: {"updated": 3}})
        assert query.where("status", "pending").update({"status": "done"}) == 3
        params = query.transport.requests(Operation.UPDATE_BY_QUERY)[0]
        assert params["body"]["script"]["params"] == {"status": "done"}

    def test_update_rejects_non_mapping(self, query):
        with pytest.raises(ParameterError):
            query.update(["status", "done"])

    def test_increment_and_decrement(self, query):
        query.increment("views", 2)
        query.decrement("views")
        first, second = query.transport.requests(Operation.UPDATE_BY_QUERY)
        assert first["body"]["script"]["source"] == "ctx._source['views'] += params['views'];"
        assert first["body"]["script"]["params"] == {"views": 2}
        assert second["body"]["script"]["params"] == {"views": -1}

    def test_delete_by_id(self, users_mapping):
        query = _query(users_mapping, responses={Operation.DELETE_BY_QUERY: {"deleted": 1}})
        assert query.delete("42") == 1
        params = query.transport.requests(Operation.DELETE_BY_QUERY)[0]
        assert params["body"]["query"] == {"match": {"_id": "42"}}
        assert params["conflicts"] == "proceed"

    def test_delete_by_id_twice(self, query):
        query.delete("1")
        query.delete("2")
        second = query.transport.requests(Operation.DELETE_BY_QUERY)[1]
        assert second["body"]["query"] == {"match": {"_id": "2"}}
        assert query.clauses == []

    def test_truncate_ignores_wheres(self, users_mapping):
        query = _query(users_mapping, responses={Operation.DELETE_BY_QUERY: {"deleted": 10}})
        assert query.where("status", "x").truncate() == 10
        assert query.transport.requests(Operation.DELETE_BY_QUERY)[0]["body"]["query"] == {"match_all": {}}

    def test_write_failure_raises(self, users_mapping):
        query = _query(users_mapping, failures={Operation.DELETE_BY_QUERY: "timeout"})
        with pytest.raises(ExecutionError):
            query.delete()


class TestUnsupported:
    def test_upsert(self, query):
        with pytest.raises(UnsupportedOperationError):
            query.upsert({"a": 1})

    def test_group_by_raw(self, query):
        with pytest.raises(UnsupportedOperationError):
            query.group_by_raw("x")

"""Tests for utility functions."""

from datetime import datetime, timezone

import pytest

from elastiq.exceptions import ParameterError
from elastiq.utils import (
    chunk_iter,
    escape_query_string,
    format_timestamp,
    match_all,
    normalize_columns,
    prefix_field,
)


class TestChunkIter:
    """Tests for chunk_iter function."""

    def test_chunk_iter_normal(self):
        assert list(chunk_iter([1, 2, 3, 4, 5, 6, 7], 3)) == [[1, 2, 3], [4, 5, 6], [7]]

    def test_chunk_iter_size_zero(self):
        assert list(chunk_iter([1, 2, 3], 0)) == [[1, 2, 3]]

    def test_chunk_iter_empty(self):
        assert list(chunk_iter([], 3)) == []


class TestNormalizeColumns:
    def test_none_means_all(self):
        assert normalize_columns(None) == ["*"]
        assert normalize_columns([]) == ["*"]

    def test_string(self):
        assert normalize_columns("name") == ["name"]

    def test_dedup_and_drop_star(self):
        assert normalize_columns(["*", "name", "age", "name"]) == ["name", "age"]


class TestEscapeQueryString:
    """Tests for Lucene query_string escaping."""

    def test_reserved_characters(self):
        assert escape_query_string("a+b") == "a\\+b"
        assert escape_query_string("(x):y") == "\\(x\\)\\:y"
        assert escape_query_string('say "hi"') == 'say \\"hi\\"'

    def test_angle_brackets_are_dropped(self):
        assert escape_query_string("<b>bold</b>") == "bbold\\/b"

    def test_non_string(self):
        assert escape_query_string(42) == "42"


class TestFormatTimestamp:
    """Tests for epoch normalization."""

    def test_seconds_become_string(self):
        assert format_timestamp(1704067200) == "1704067200"
        assert format_timestamp("1704067200") == "1704067200"

    def test_milliseconds_stay_int(self):
        assert format_timestamp(1704067200000) == 1704067200000

    def test_iso_date(self):
        assert format_timestamp("2024-01-01T00:00:00Z") == "1704067200"
        assert format_timestamp("2024-01-01") == "1704067200"

    def test_datetime(self):
        assert format_timestamp(datetime(2024, 1, 1, tzinfo=timezone.utc)) == "1704067200"

    @pytest.mark.parametrize("value", ["yesterday", True, None])
    def test_invalid(self, value):
        with pytest.raises(ParameterError, match="Invalid date or timestamp"):
            format_timestamp(value)


class TestFieldHelpers:
    def test_prefix_field(self):
        assert prefix_field("author", "comments") == "comments.author"
        assert prefix_field("comments.author", "comments") == "comments.author"
        assert prefix_field("author", None) == "author"

    def test_match_all(self):
        assert match_all() == {"match_all": {}}

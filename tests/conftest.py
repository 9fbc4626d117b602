"""Pytest configuration and fixtures for elastiq tests."""

from typing import Dict

import pytest
from dotenv import load_dotenv

from elastiq.querydsl.compilers.context import CompilationContext
from elastiq.querydsl.where import WhereTree
from elastiq.query import SearchQuery
from tests.mock.mock_backend import FakeTransport

# Load environment variables
load_dotenv()


@pytest.fixture
def users_mapping() -> Dict[str, str]:
    """Flat field mapping of the `users` test index."""
    return {
        "age": "long",
        "created_at": "date",
        "location": "geo_point",
        "name": "text",
        "name.keyword": "keyword",
        "status": "keyword",
        "tags": "text",
        "title": "text",
    }


@pytest.fixture
def transport(users_mapping):
    return FakeTransport(mapping=users_mapping)


@pytest.fixture
def ctx(transport):
    """Compilation context with keyword validation enabled."""
    return CompilationContext(index="users", lookup=transport, bypass_map_validation=False, allow_id_sort=False)


@pytest.fixture
def tree():
    return WhereTree()


@pytest.fixture
def query(transport):
    return SearchQuery(transport, "users", refresh=False)

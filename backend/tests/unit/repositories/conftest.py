"""
Fixtures and helpers for plugin store unit tests.

Provides mock Motor collections so MongoPluginStore can be exercised
without a real MongoDB connection.
"""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from plugin_registry.repositories.mongo_store import MongoPluginStore


class MockCursor:
    """
    Mock Motor cursor returned by collection.find().

    to_list() returns the configured documents, truncated to the requested
    length the way Motor does.
    """

    def __init__(self, results: Optional[List[Dict[str, Any]]] = None) -> None:
        self._results = results if results is not None else []
        self.to_list = AsyncMock(side_effect=self._to_list)

    async def _to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        if length:
            return list(self._results[:length])
        return list(self._results)


def _matches(doc: Dict[str, Any], condition: Dict[str, Any]) -> bool:
    for key, expected in condition.items():
        if key == "$or":
            if not any(_matches(doc, c) for c in expected):
                return False
        elif key == "$and":
            if not all(_matches(doc, c) for c in expected):
                return False
        elif isinstance(expected, dict):
            value = doc.get(key)
            for op, operand in expected.items():
                if op == "$lt" and not value < operand:
                    return False
                if op == "$gt" and not value > operand:
                    return False
        elif doc.get(key) != expected:
            return False
    return True


class FakeCollection:
    """
    List-backed stand-in for a Motor collection.

    Understands the filters MongoQueryBuilder produces ($or, $and, $lt, $gt,
    equality), compound sorts and a unique name index.
    """

    def __init__(self) -> None:
        self.docs: List[Dict[str, Any]] = []

    async def insert_one(self, doc: Dict[str, Any]) -> MagicMock:
        if any(d.get("name") == doc.get("name") for d in self.docs):
            raise DuplicateKeyError(f"duplicate name {doc.get('name')}")
        self.docs.append(dict(doc))
        return MagicMock(inserted_id=doc["_id"])

    async def find_one(self, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for doc in self.docs:
            if _matches(doc, filter):
                return dict(doc)
        return None

    def find(self, filter=None, sort=None, limit: int = 0) -> MockCursor:
        docs = [dict(d) for d in self.docs if _matches(d, filter or {})]
        for key, direction in reversed(sort or []):
            docs.sort(key=lambda d: d[key], reverse=direction == DESCENDING)
        if limit:
            docs = docs[:limit]
        return MockCursor(docs)


def make_collection() -> MagicMock:
    """Mock Motor collection with awaitable CRUD methods."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.find = MagicMock(return_value=MockCursor([]))
    return collection


def make_plugin_doc(stars: int = 0, display_name: str = "", **kwargs) -> Dict[str, Any]:
    """Stored plugin document as returned by MongoDB."""
    object_id = kwargs.pop("_id", None) or ObjectId()
    doc = {
        "_id": object_id,
        "name": kwargs.pop("name", f"github.com/acme/{object_id}"),
        "displayName": display_name,
        "stars": stars,
    }
    doc.update(kwargs)
    return doc


@pytest.fixture
def mock_database() -> MagicMock:
    """Mock Motor database holding the plugin and plugin_hash collections."""
    collections = {"plugin": make_collection(), "plugin_hash": make_collection()}

    database = MagicMock()
    database.__getitem__.side_effect = collections.__getitem__
    database.command = AsyncMock(return_value={"ok": 1.0})
    return database


@pytest.fixture
def mongo_store(mock_database: MagicMock) -> MongoPluginStore:
    """MongoPluginStore over the mock database."""
    return MongoPluginStore(mock_database)


@pytest.fixture
def fake_database() -> MagicMock:
    """Mock Motor database backed by FakeCollection instances."""
    collections = {"plugin": FakeCollection(), "plugin_hash": FakeCollection()}

    database = MagicMock()
    database.__getitem__.side_effect = collections.__getitem__
    database.command = AsyncMock(return_value={"ok": 1.0})
    return database

"""
Pytest configuration and fixtures for plugin registry tests.
"""

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Dict, List, Tuple

import pytest

from plugin_registry.exceptions import PluginConflictError, PluginNotFoundError
from plugin_registry.models.plugin_models import Pagination, Plugin, PluginHash, hash_key
from plugin_registry.repositories.base_store import PluginStore, display_name_matches
from plugin_registry.utils.cursor_codec import CursorPayload, decode_cursor, encode_cursor


class InMemoryPluginStore(PluginStore):
    """
    Dict-backed PluginStore used to exercise services without a database.

    Follows the MongoDB store semantics: keyset pagination, scan-then-filter
    search, first-writer-wins hashes.
    """

    backend_name = "memory"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._plugins: Dict[str, Plugin] = {}
        self._hashes: Dict[str, PluginHash] = {}
        self._ids = itertools.count(1)
        self.create_hash_calls: List[Tuple[str, str, str]] = []

    def _next_id(self) -> str:
        return f"{next(self._ids):024x}"

    def _find(self, plugin_id: str) -> Plugin:
        if plugin_id not in self._plugins:
            raise PluginNotFoundError(plugin_id)
        return self._plugins[plugin_id]

    async def get(self, plugin_id):
        async def call():
            return self._find(plugin_id).model_copy(deep=True)

        return await self._run("get", call())

    async def create(self, plugin):
        async def call():
            if any(p.name == plugin.name for p in self._plugins.values()):
                raise PluginConflictError(plugin.name)
            created = plugin.model_copy(
                update={"id": self._next_id(), "created_at": datetime.now(timezone.utc)}
            )
            self._plugins[created.id] = created
            return created.model_copy(deep=True)

        return await self._run("create", call())

    async def update(self, plugin_id, plugin):
        async def call():
            current = self._find(plugin_id)
            updated = plugin.model_copy(update={"id": current.id, "created_at": current.created_at})
            self._plugins[plugin_id] = updated
            return updated.model_copy(deep=True)

        return await self._run("update", call())

    async def delete(self, plugin_id):
        async def call():
            self._find(plugin_id)
            del self._plugins[plugin_id]

        await self._run("delete", call())

    def _ordered(self, key):
        return sorted(self._plugins.values(), key=key)

    async def list(self, pagination):
        async def call():
            ordered = self._ordered(lambda p: (-p.stars, p.id))
            if pagination.start:
                cursor = decode_cursor(pagination.start, sort_type=int)
                ordered = [
                    p
                    for p in ordered
                    if (-p.stars, p.id) > (-cursor.sort_value, cursor.last_id)
                ]
            page = ordered[: pagination.size]
            if len(ordered) <= pagination.size:
                return page, ""
            last = page[-1]
            return page, encode_cursor(CursorPayload(sort_value=last.stars, last_id=last.id))

        return await self._run("list", call())

    async def list_all(self):
        async def call():
            return self._ordered(lambda p: (-p.stars, p.id))

        return await self._run("list_all", call())

    async def get_by_name(self, name):
        async def call():
            for plugin in self._plugins.values():
                if plugin.name == name:
                    return plugin.model_copy(deep=True)
            raise PluginNotFoundError(name)

        return await self._run("get_by_name", call())

    async def search_by_name(self, query, pagination):
        async def call():
            ordered = self._ordered(lambda p: (p.display_name, p.id))
            if pagination.start:
                cursor = decode_cursor(pagination.start, sort_type=str)
                ordered = [
                    p
                    for p in ordered
                    if (p.display_name, p.id) > (cursor.sort_value, cursor.last_id)
                ]
            scanned = ordered[: pagination.size]
            token = ""
            if len(ordered) > pagination.size:
                last = scanned[-1]
                token = encode_cursor(CursorPayload(sort_value=last.display_name, last_id=last.id))
            return [p for p in scanned if display_name_matches(p.display_name, query)], token

        return await self._run("search_by_name", call())

    async def create_hash(self, module, version, hash):
        async def call():
            self.create_hash_calls.append((module, version, hash))
            # Let concurrent callers interleave before the atomic insert-if-absent
            await asyncio.sleep(0)
            key = hash_key(module, version)
            if key not in self._hashes:
                self._hashes[key] = PluginHash(id=self._next_id(), name=key, hash=hash)
            return self._hashes[key].model_copy()

        return await self._run("create_hash", call())

    async def get_hash_by_name(self, module, version):
        async def call():
            key = hash_key(module, version)
            if key not in self._hashes:
                raise PluginNotFoundError(key)
            return self._hashes[key].model_copy()

        return await self._run("get_hash_by_name", call())

    async def delete_hash(self, hash_id):
        async def call():
            for key, value in list(self._hashes.items()):
                if value.id == hash_id:
                    del self._hashes[key]
                    return
            raise PluginNotFoundError(hash_id)

        await self._run("delete_hash", call())

    async def ping(self):
        async def call():
            return None

        await self._run("ping", call())


@pytest.fixture
def memory_store() -> InMemoryPluginStore:
    """Empty in-memory plugin store"""
    return InMemoryPluginStore()


@pytest.fixture
def sample_plugins() -> List[Plugin]:
    """Plugins with identifiers, as found in a snapshot"""
    return [
        Plugin(
            id="000000000000000000000001",
            name="github.com/acme/add-header",
            display_name="Add Header",
            stars=10,
            versions=["v1.0.0", "v1.1.0"],
            latest_version="v1.1.0",
        ),
        Plugin(
            id="000000000000000000000002",
            name="github.com/acme/block-path",
            display_name="Block Path",
            stars=25,
            versions=["v0.1.0"],
            latest_version="v0.1.0",
        ),
        Plugin(
            id="000000000000000000000003",
            name="github.com/acme/rewrite-headers",
            display_name="Rewrite Headers",
            stars=10,
            snippet={"toml": "[http.middlewares]"},
        ),
    ]


@pytest.fixture
def pagination() -> Pagination:
    return Pagination(size=10)

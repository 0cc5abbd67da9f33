"""
Snapshot Plugin Store
Read-only plugin store served from memory

The whole plugin set is loaded once, from a JSON array of plugins (usually
the object produced by snapshot_export and published to an S3-compatible
bucket). Both orderings are computed at load time and nothing is mutated
afterwards, so concurrent reads need no locking.

Limitations:
- list and search_by_name return one unpaginated page and an empty token;
  there is no persistent cursor to resume across process restarts
- every mutating call raises ReadOnlyStoreError
- snapshots carry no pinned hashes
- a snapshot with records lacking an id is rejected as a whole
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import urllib3
from minio import Minio
from minio.error import MinioException
from pydantic import TypeAdapter, ValidationError

from ..exceptions import (
    InternalStoreError,
    PluginNotFoundError,
    ReadOnlyStoreError,
    StoreUnavailableError,
)
from ..models.plugin_models import Pagination, Plugin, PluginHash, hash_key
from ..services.observability import StoreObserver
from .base_store import PluginStore, display_name_matches

logger = logging.getLogger(__name__)

_PLUGIN_LIST = TypeAdapter(List[Plugin])


def _read_object(client: Minio, bucket: str, key: str) -> bytes:
    response = client.get_object(bucket, key)
    try:
        return response.read()
    finally:
        response.close()
        response.release_conn()


class SnapshotPluginStore(PluginStore):
    """
    In-memory, read-only plugin store.

    Example:
        store = await SnapshotPluginStore.from_object_store(minio_client, "registry", "plugins.json")
        plugins, _ = await store.list(Pagination())
    """

    backend_name = "snapshot"

    def __init__(
        self,
        plugins: Iterable[Plugin],
        observer: Optional[StoreObserver] = None,
        operation_timeout: Optional[float] = None,
    ):
        super().__init__(observer=observer, operation_timeout=operation_timeout)

        plugins = list(plugins)
        missing_ids = [p.name for p in plugins if not p.id]
        if missing_ids:
            logger.error(
                f"Plugin snapshot has {len(missing_ids)} records without id "
                f"(first: {missing_ids[0]})"
            )
            raise InternalStoreError(
                f"Plugin snapshot has {len(missing_ids)} records without id",
                details={"names": missing_ids[:5]},
            )

        by_id: Dict[str, Plugin] = {}
        by_name: Dict[str, Plugin] = {}
        duplicates: List[str] = []
        for plugin in plugins:
            if plugin.id in by_id or plugin.name in by_name:
                duplicates.append(plugin.name)
                continue
            by_id[plugin.id] = plugin
            by_name[plugin.name] = plugin

        if duplicates:
            logger.warning(
                f"Ignored {len(duplicates)} duplicate plugins in snapshot: {duplicates[:5]}"
            )

        self._by_id = by_id
        self._by_name = by_name
        self._by_stars = tuple(sorted(by_id.values(), key=lambda p: (-p.stars, p.id)))
        self._by_display_name = tuple(
            sorted(by_id.values(), key=lambda p: (p.display_name, p.id))
        )

        logger.info(f"Loaded {len(self._by_stars)} plugins into snapshot store")

    @classmethod
    def from_json(cls, raw: bytes, **kwargs) -> "SnapshotPluginStore":
        """
        Build a store from a JSON array of plugins.

        Raises:
            InternalStoreError: If the content is not a valid plugin array
        """
        try:
            plugins = _PLUGIN_LIST.validate_json(raw)
        except ValidationError as e:
            raise InternalStoreError(
                f"Cannot decode plugin snapshot: {e.error_count()} validation errors",
                details={"errors": e.errors(include_url=False)[:5]},
            ) from e

        return cls(plugins, **kwargs)

    @classmethod
    async def from_object_store(
        cls, client: Minio, bucket: str, key: str, **kwargs
    ) -> "SnapshotPluginStore":
        """
        Fetch the snapshot object and build a store from it.

        Raises:
            StoreUnavailableError: If the object cannot be fetched
            InternalStoreError: If the object is not a valid plugin array
        """
        try:
            raw = await asyncio.to_thread(_read_object, client, bucket, key)
        except (MinioException, urllib3.exceptions.HTTPError, OSError) as e:
            raise StoreUnavailableError(
                f"Cannot get {key} on {bucket}: {e}",
                details={"bucket": bucket, "key": key},
            ) from e

        logger.info(f"Fetched plugin snapshot {bucket}/{key} ({len(raw)} bytes)")
        return cls.from_json(raw, **kwargs)

    # Plugins

    async def get(self, plugin_id: str) -> Plugin:
        return await self._run("get", self._lookup(self._by_id, plugin_id), plugin_id=plugin_id)

    async def get_by_name(self, name: str) -> Plugin:
        return await self._run("get_by_name", self._lookup(self._by_name, name), name=name)

    async def _lookup(self, index: Dict[str, Plugin], key: str) -> Plugin:
        plugin = index.get(key)
        if plugin is None:
            raise PluginNotFoundError(key)
        return plugin.model_copy(deep=True)

    async def create(self, plugin: Plugin) -> Plugin:
        return await self._run("create", self._read_only("create"), name=plugin.name)

    async def update(self, plugin_id: str, plugin: Plugin) -> Plugin:
        return await self._run("update", self._read_only("update"), plugin_id=plugin_id)

    async def delete(self, plugin_id: str) -> None:
        await self._run("delete", self._read_only("delete"), plugin_id=plugin_id)

    async def list(self, pagination: Pagination) -> Tuple[List[Plugin], str]:
        return await self._run("list", self._list())

    async def _list(self) -> Tuple[List[Plugin], str]:
        return [p.model_copy(deep=True) for p in self._by_stars], ""

    async def list_all(self) -> List[Plugin]:
        plugins, _ = await self._run("list_all", self._list())
        return plugins

    async def search_by_name(
        self, query: str, pagination: Pagination
    ) -> Tuple[List[Plugin], str]:
        return await self._run("search_by_name", self._search_by_name(query), query=query)

    async def _search_by_name(self, query: str) -> Tuple[List[Plugin], str]:
        matches = [
            p.model_copy(deep=True)
            for p in self._by_display_name
            if display_name_matches(p.display_name, query)
        ]
        return matches, ""

    # Hashes

    async def create_hash(self, module: str, version: str, hash: str) -> PluginHash:
        return await self._run(
            "create_hash", self._read_only("create_hash"), key=hash_key(module, version)
        )

    async def get_hash_by_name(self, module: str, version: str) -> PluginHash:
        key = hash_key(module, version)
        return await self._run("get_hash_by_name", self._no_hash(key), key=key)

    async def _no_hash(self, key: str) -> PluginHash:
        raise PluginNotFoundError(key, f"No pinned hash in snapshot for {key}")

    async def delete_hash(self, hash_id: str) -> None:
        await self._run("delete_hash", self._read_only("delete_hash"), hash_id=hash_id)

    async def _read_only(self, operation: str):
        raise ReadOnlyStoreError(operation, self.backend_name)

    # Health

    async def ping(self) -> None:
        await self._run("ping", self._noop())

    async def _noop(self) -> None:
        return None

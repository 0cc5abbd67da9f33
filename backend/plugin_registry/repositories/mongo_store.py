"""
MongoDB Plugin Store
Primary read/write implementation of the plugin store contract

Runs the contract against two Motor collections:
- plugin: one document per plugin, _id is the plugin identifier
- plugin_hash: pinned archive hashes, unique on name

List and search walk the (stars DESC, _id ASC) and (displayName ASC, _id ASC)
indexes with keyset cursors, fetching one extra document to detect whether
another page exists. Index creation is MongoManager's job, not this store's.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import BSONError
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    PyMongoError,
    WTimeoutError,
)

from ..exceptions import (
    InternalStoreError,
    PluginConflictError,
    PluginNotFoundError,
    RegistryError,
    StoreUnavailableError,
)
from ..models.mongo_models import PLUGIN_COLLECTION, PLUGIN_HASH_COLLECTION
from ..models.plugin_models import Pagination, Plugin, PluginHash, hash_key
from ..services.observability import StoreObserver
from ..utils.cursor_codec import CursorPayload, decode_cursor, encode_cursor
from ..utils.mongo_query_builder import (
    DISPLAY_NAME_ORDER,
    STARS_ORDER,
    MongoQueryBuilder,
    parse_object_id,
)
from .base_store import PluginStore, display_name_matches

logger = logging.getLogger(__name__)


def _now() -> datetime:
    """Current UTC time at MongoDB's millisecond precision"""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def plugin_from_document(doc: Dict[str, Any]) -> Plugin:
    """Convert a stored plugin document to a Plugin"""
    data = dict(doc)
    object_id = data.pop("_id")
    data["id"] = str(object_id)
    return Plugin.model_validate(data)


def hash_from_document(doc: Dict[str, Any]) -> PluginHash:
    """Convert a stored hash document to a PluginHash"""
    return PluginHash(id=str(doc["_id"]), name=doc["name"], hash=doc["hash"])


class MongoPluginStore(PluginStore):
    """
    Plugin store backed by MongoDB.

    Example:
        manager = MongoManager()
        await manager.initialize(settings.mongodb_url, settings.mongodb_database)
        store = MongoPluginStore(manager.database, observer=LoggingObserver())
        plugins, next_token = await store.list(Pagination(size=20))
    """

    backend_name = "mongodb"

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        observer: Optional[StoreObserver] = None,
        operation_timeout: Optional[float] = None,
        plugin_collection: str = PLUGIN_COLLECTION,
        hash_collection: str = PLUGIN_HASH_COLLECTION,
    ):
        super().__init__(observer=observer, operation_timeout=operation_timeout)
        self.database = database
        self.plugins = database[plugin_collection]
        self.hashes = database[hash_collection]

    # Plugins

    async def get(self, plugin_id: str) -> Plugin:
        return await self._run("get", self._get(plugin_id), plugin_id=plugin_id)

    async def _get(self, plugin_id: str) -> Plugin:
        object_id = parse_object_id(plugin_id)
        if object_id is None:
            raise PluginNotFoundError(plugin_id)

        query = MongoQueryBuilder().where_id(object_id).build_filter()
        doc = await self.plugins.find_one(query)
        if doc is None:
            raise PluginNotFoundError(plugin_id)

        return plugin_from_document(doc)

    async def create(self, plugin: Plugin) -> Plugin:
        return await self._run("create", self._create(plugin), name=plugin.name)

    async def _create(self, plugin: Plugin) -> Plugin:
        object_id = ObjectId()
        created_at = _now()

        doc = {"_id": object_id, **plugin.mutable_fields(), "createdAt": created_at}

        try:
            await self.plugins.insert_one(doc)
        except DuplicateKeyError as e:
            raise PluginConflictError(
                plugin.name, f"Plugin name already exists: {plugin.name}"
            ) from e

        return plugin.model_copy(update={"id": str(object_id), "created_at": created_at})

    async def update(self, plugin_id: str, plugin: Plugin) -> Plugin:
        return await self._run("update", self._update(plugin_id, plugin), plugin_id=plugin_id)

    async def _update(self, plugin_id: str, plugin: Plugin) -> Plugin:
        object_id = parse_object_id(plugin_id)
        if object_id is None:
            raise PluginNotFoundError(plugin_id)

        try:
            doc = await self.plugins.find_one_and_update(
                MongoQueryBuilder().where_id(object_id).build_filter(),
                {"$set": plugin.mutable_fields()},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            raise PluginConflictError(
                plugin.name, f"Plugin name already exists: {plugin.name}"
            ) from e

        if doc is None:
            raise PluginNotFoundError(plugin_id)

        return plugin_from_document(doc)

    async def delete(self, plugin_id: str) -> None:
        await self._run("delete", self._delete(plugin_id), plugin_id=plugin_id)

    async def _delete(self, plugin_id: str) -> None:
        object_id = parse_object_id(plugin_id)
        if object_id is None:
            raise PluginNotFoundError(plugin_id)

        query = MongoQueryBuilder().where_id(object_id).build_filter()
        result = await self.plugins.delete_one(query)
        if result.deleted_count == 0:
            raise PluginNotFoundError(plugin_id)

    async def list(self, pagination: Pagination) -> Tuple[List[Plugin], str]:
        return await self._run(
            "list", self._list(pagination), start=pagination.start, size=pagination.size
        )

    async def _list(self, pagination: Pagination) -> Tuple[List[Plugin], str]:
        cursor = decode_cursor(pagination.start, sort_type=int) if pagination.start else None

        filter_doc, sort, limit = (
            MongoQueryBuilder()
            .order_by(STARS_ORDER)
            .after_cursor(cursor)
            .limit(pagination.size + 1)
            .build()
        )

        docs = await self.plugins.find(filter_doc, sort=sort, limit=limit).to_list(length=limit)
        plugins = [plugin_from_document(doc) for doc in docs]

        if len(plugins) <= pagination.size:
            return plugins, ""

        page = plugins[: pagination.size]
        last = page[-1]
        return page, encode_cursor(CursorPayload(sort_value=last.stars, last_id=last.id))

    async def list_all(self) -> List[Plugin]:
        return await self._run("list_all", self._list_all())

    async def _list_all(self) -> List[Plugin]:
        docs = await self.plugins.find({}, sort=STARS_ORDER).to_list(length=None)
        return [plugin_from_document(doc) for doc in docs]

    async def get_by_name(self, name: str) -> Plugin:
        return await self._run("get_by_name", self._get_by_name(name), name=name)

    async def _get_by_name(self, name: str) -> Plugin:
        doc = await self.plugins.find_one({"name": name})
        if doc is None:
            raise PluginNotFoundError(name)

        return plugin_from_document(doc)

    async def search_by_name(
        self, query: str, pagination: Pagination
    ) -> Tuple[List[Plugin], str]:
        return await self._run(
            "search_by_name",
            self._search_by_name(query, pagination),
            query=query,
            start=pagination.start,
            size=pagination.size,
        )

    async def _search_by_name(
        self, query: str, pagination: Pagination
    ) -> Tuple[List[Plugin], str]:
        cursor = decode_cursor(pagination.start, sort_type=str) if pagination.start else None

        # Scan one page of the unfiltered display name ordering, then filter it
        filter_doc, sort, limit = (
            MongoQueryBuilder()
            .order_by(DISPLAY_NAME_ORDER)
            .after_cursor(cursor)
            .limit(pagination.size + 1)
            .build()
        )

        docs = await self.plugins.find(filter_doc, sort=sort, limit=limit).to_list(length=limit)
        scanned = [plugin_from_document(doc) for doc in docs]

        next_token = ""
        if len(scanned) > pagination.size:
            scanned = scanned[: pagination.size]
            last = scanned[-1]
            next_token = encode_cursor(
                CursorPayload(sort_value=last.display_name, last_id=last.id)
            )

        matches = [p for p in scanned if display_name_matches(p.display_name, query)]
        return matches, next_token

    # Hashes

    async def create_hash(self, module: str, version: str, hash: str) -> PluginHash:
        return await self._run(
            "create_hash", self._create_hash(module, version, hash), key=hash_key(module, version)
        )

    async def _create_hash(self, module: str, version: str, hash: str) -> PluginHash:
        key = hash_key(module, version)
        object_id = ObjectId()

        try:
            await self.hashes.insert_one({"_id": object_id, "name": key, "hash": hash})
        except DuplicateKeyError:
            # Another writer pinned first; its value is canonical
            existing = await self.hashes.find_one({"name": key})
            if existing is None:
                raise PluginConflictError(
                    key, f"Hash for {key} was pinned and removed concurrently"
                )

            canonical = hash_from_document(existing)
            logger.info(f"Hash for {key} already pinned, keeping existing value")
            return canonical

        return PluginHash(id=str(object_id), name=key, hash=hash)

    async def get_hash_by_name(self, module: str, version: str) -> PluginHash:
        key = hash_key(module, version)
        return await self._run("get_hash_by_name", self._get_hash_by_name(key), key=key)

    async def _get_hash_by_name(self, key: str) -> PluginHash:
        doc = await self.hashes.find_one({"name": key})
        if doc is None:
            raise PluginNotFoundError(key)

        return hash_from_document(doc)

    async def delete_hash(self, hash_id: str) -> None:
        await self._run("delete_hash", self._delete_hash(hash_id), hash_id=hash_id)

    async def _delete_hash(self, hash_id: str) -> None:
        object_id = parse_object_id(hash_id)
        if object_id is None:
            raise PluginNotFoundError(hash_id)

        query = MongoQueryBuilder().where_id(object_id).build_filter()
        result = await self.hashes.delete_one(query)
        if result.deleted_count == 0:
            raise PluginNotFoundError(hash_id)

    # Health

    async def ping(self) -> None:
        await self._run("ping", self.database.command("ping"))

    def _translate_error(self, operation: str, error: Exception) -> RegistryError:
        details = {"operation": operation, "error_type": type(error).__name__}

        # ConnectionFailure covers AutoReconnect, NetworkTimeout and
        # ServerSelectionTimeoutError
        if isinstance(error, (ConnectionFailure, ExecutionTimeout, WTimeoutError)):
            return StoreUnavailableError(f"MongoDB unavailable during {operation}: {error}", details)

        if isinstance(error, DuplicateKeyError):
            return PluginConflictError(str(error.details or error), f"Duplicate key during {operation}")

        if isinstance(error, (PyMongoError, BSONError, ValidationError, KeyError)):
            return InternalStoreError(f"MongoDB error during {operation}: {error}", details)

        return super()._translate_error(operation, error)

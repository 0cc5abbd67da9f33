"""
Plugin Registry Models Package
Store-neutral records and MongoDB document declarations
"""

from .mongo_models import (
    PLUGIN_COLLECTION,
    PLUGIN_HASH_COLLECTION,
    MongoManager,
    PluginDocument,
    PluginHashDocument,
)
from .plugin_models import DEFAULT_PAGE_SIZE, Pagination, Plugin, PluginHash, hash_key

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MongoManager",
    "PLUGIN_COLLECTION",
    "PLUGIN_HASH_COLLECTION",
    "Pagination",
    "Plugin",
    "PluginDocument",
    "PluginHash",
    "PluginHashDocument",
    "hash_key",
]

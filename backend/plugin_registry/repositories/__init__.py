"""
Plugin Store Implementations
One contract (PluginStore), one adapter per backend
"""

from .base_store import PluginStore
from .mongo_store import MongoPluginStore
from .snapshot_store import SnapshotPluginStore

__all__ = [
    "MongoPluginStore",
    "PluginStore",
    "SnapshotPluginStore",
]

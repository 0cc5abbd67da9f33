"""
MongoDB Models for the Plugin Registry
Collection/index declarations and connection bootstrap

The Beanie documents below declare the persisted shape and, above all, the
indexes the MongoDB plugin store relies on: the unique plugin name, the two
sorted orderings used for keyset pagination, and the unique hash key that
arbitrates concurrent hash pinning. MongoManager.initialize() creates them
idempotently once at startup; stores never recreate them per request.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from beanie import Document, init_beanie
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic import ConfigDict, Field
from pymongo import ASCENDING, DESCENDING, IndexModel

logger = logging.getLogger(__name__)

PLUGIN_COLLECTION = "plugin"
PLUGIN_HASH_COLLECTION = "plugin_hash"


class PluginDocument(Document):
    """Stored plugin; the document _id is the plugin identifier"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field(description="Unique module name")
    display_name: str = Field(default="", alias="displayName")
    stars: int = Field(default=0)
    versions: List[str] = Field(default_factory=list)
    snippet: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    class Settings:
        name = PLUGIN_COLLECTION
        indexes = [
            IndexModel([("name", ASCENDING)], unique=True, name="_uniq_name"),
            # Default listing order
            IndexModel([("stars", DESCENDING), ("_id", ASCENDING)], name="_by_stars"),
            # Search scan order
            IndexModel(
                [("displayName", ASCENDING), ("_id", ASCENDING)], name="_by_display_name"
            ),
        ]


class PluginHashDocument(Document):
    """Pinned archive hash, keyed by "<module>@<version>" """

    name: str = Field(description='Hash key, "<module>@<version>"')
    hash: str = Field(description="Hex-encoded SHA-256 digest")

    class Settings:
        name = PLUGIN_HASH_COLLECTION
        indexes = [
            # First-writer-wins arbiter for concurrent pinning
            IndexModel([("name", ASCENDING)], unique=True, name="_uniq_hash_name"),
        ]


# Database connection management
class MongoManager:
    """MongoDB connection and index bootstrap"""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.initialized = False

    async def initialize(self, mongodb_url: str, database_name: str = "plugin", **kwargs):
        """
        Connect to MongoDB and bootstrap collections and indexes.

        Args:
            mongodb_url: MongoDB connection string
            database_name: Database holding the plugin collections
            **kwargs: min_pool_size, max_pool_size, connect_timeout_ms,
                      server_selection_timeout_ms, socket_timeout_ms
        """
        if self.initialized:
            return

        client_kwargs = {
            "minPoolSize": kwargs.get("min_pool_size", 10),
            "maxPoolSize": kwargs.get("max_pool_size", 30),
            "connectTimeoutMS": kwargs.get("connect_timeout_ms", 10000),
            "serverSelectionTimeoutMS": kwargs.get("server_selection_timeout_ms", 10000),
            "socketTimeoutMS": kwargs.get("socket_timeout_ms", 2000),
            # createdAt is returned as an aware UTC datetime
            "tz_aware": True,
        }

        self.client = AsyncIOMotorClient(mongodb_url, **client_kwargs)
        self.database = self.client[database_name]

        logger.info("Bootstrapping plugin registry collections and indexes...")
        try:
            await init_beanie(
                database=self.database,
                document_models=[PluginDocument, PluginHashDocument],
            )
        except Exception as beanie_error:
            logger.error(
                f"Index bootstrap failed: {type(beanie_error).__name__}: {beanie_error}"
            )
            self.client.close()
            self.client = None
            self.database = None
            raise

        logger.info(f"Connected to MongoDB database [{database_name}]")
        self.initialized = True

    async def close(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
        self.client = None
        self.database = None
        self.initialized = False

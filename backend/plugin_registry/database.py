"""
Storage wiring

Builds the plugin store, its observer and the upstream module source from
Settings. This is the only place that chooses a backend; everything else
works against PluginStore.
"""

import logging
from typing import Optional, Tuple

import httpx
from minio import Minio

from .config import Settings
from .models.mongo_models import MongoManager
from .repositories.base_store import PluginStore
from .repositories.mongo_store import MongoPluginStore
from .repositories.snapshot_store import SnapshotPluginStore
from .services.module_sources import GitHubArchiveSource, GoProxySource, ModuleSource
from .services.observability import CompositeObserver, LoggingObserver, StoreObserver, TracingObserver

logger = logging.getLogger(__name__)


def create_observer(settings: Settings) -> StoreObserver:
    """Logging observer, plus OpenTelemetry spans when tracing is enabled"""
    logging_observer = LoggingObserver(slow_operation_threshold=settings.slow_operation_threshold)
    if not settings.tracing_enabled:
        return logging_observer

    return CompositeObserver([logging_observer, TracingObserver()])


def create_minio_client(settings: Settings) -> Minio:
    """MinIO client for the snapshot bucket"""
    return Minio(
        settings.s3_endpoint,
        access_key=settings.s3_access_key,
        secret_key=settings.s3_secret_key,
        region=settings.s3_region,
        secure=settings.s3_secure,
    )


async def create_plugin_store(
    settings: Settings,
    observer: Optional[StoreObserver] = None,
    mongo_manager: Optional[MongoManager] = None,
    minio_client: Optional[Minio] = None,
) -> Tuple[PluginStore, Optional[MongoManager]]:
    """
    Build the configured plugin store.

    Args:
        settings: Application settings
        observer: Observer override (defaults to create_observer(settings))
        mongo_manager: Connection manager to reuse for the MongoDB backend
        minio_client: Object store client to reuse for the snapshot backend

    Returns:
        Tuple of (store, mongo_manager); the manager is None for the snapshot
        backend and must be closed by the caller otherwise
    """
    observer = observer or create_observer(settings)

    if settings.storage_backend == "snapshot":
        client = minio_client or create_minio_client(settings)
        store = await SnapshotPluginStore.from_object_store(
            client,
            settings.s3_bucket,
            settings.s3_key,
            observer=observer,
            operation_timeout=settings.operation_timeout_seconds,
        )
        logger.info(f"Using read-only snapshot store {settings.s3_bucket}/{settings.s3_key}")
        return store, None

    manager = mongo_manager or MongoManager()
    await manager.initialize(
        settings.mongodb_url,
        settings.mongodb_database,
        min_pool_size=settings.mongodb_min_pool_size,
        max_pool_size=settings.mongodb_max_pool_size,
        connect_timeout_ms=settings.mongodb_connect_timeout_ms,
        server_selection_timeout_ms=settings.mongodb_server_selection_timeout_ms,
        socket_timeout_ms=settings.mongodb_socket_timeout_ms,
    )
    store = MongoPluginStore(
        manager.database,
        observer=observer,
        operation_timeout=settings.operation_timeout_seconds,
    )
    logger.info(f"Using MongoDB store [{settings.mongodb_database}]")
    return store, manager


def create_module_source(
    settings: Settings, client: Optional[httpx.AsyncClient] = None
) -> ModuleSource:
    """GitHub archives when a token is configured, the Go module proxy otherwise"""
    if settings.github_token:
        return GitHubArchiveSource(
            token=settings.github_token,
            api_url=settings.github_api_url,
            client=client,
            timeout=settings.upstream_timeout_seconds,
        )

    return GoProxySource(
        base_url=settings.go_proxy_url,
        username=settings.go_proxy_username,
        password=settings.go_proxy_password,
        client=client,
        timeout=settings.upstream_timeout_seconds,
    )

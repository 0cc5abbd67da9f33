"""
Snapshot export

Dumps every plugin of a store as the JSON array consumed by
SnapshotPluginStore, and publishes it to an S3-compatible bucket.
"""

import asyncio
import io
import logging
from typing import List

import urllib3
from minio import Minio
from minio.error import MinioException
from pydantic import TypeAdapter

from ..exceptions import StoreUnavailableError
from ..models.plugin_models import Plugin
from ..repositories.base_store import PluginStore

logger = logging.getLogger(__name__)

_PLUGIN_LIST = TypeAdapter(List[Plugin])


async def export_snapshot(store: PluginStore) -> bytes:
    """
    Serialize every plugin of the store, in default listing order.

    Returns:
        JSON array of plugins with camelCase field names
    """
    plugins = await store.list_all()
    logger.info(f"Exporting {len(plugins)} plugins from {store.backend_name}")
    return _PLUGIN_LIST.dump_json(plugins, by_alias=True)


async def publish_snapshot(client: Minio, bucket: str, key: str, data: bytes) -> None:
    """
    Upload a snapshot to the object store.

    Raises:
        StoreUnavailableError: If the upload fails
    """
    try:
        await asyncio.to_thread(
            client.put_object,
            bucket,
            key,
            io.BytesIO(data),
            len(data),
            content_type="application/json",
        )
    except (MinioException, urllib3.exceptions.HTTPError, OSError) as e:
        raise StoreUnavailableError(
            f"Cannot upload {key} to {bucket}: {e}",
            details={"bucket": bucket, "key": key},
        ) from e

    logger.info(f"Published plugin snapshot {bucket}/{key} ({len(data)} bytes)")

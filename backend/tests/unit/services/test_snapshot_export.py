"""
Unit tests for snapshot export and publishing.
"""

import json
from unittest.mock import MagicMock

import pytest
from minio.error import MinioException

from plugin_registry.exceptions import StoreUnavailableError
from plugin_registry.repositories.snapshot_store import SnapshotPluginStore
from plugin_registry.services.snapshot_export import export_snapshot, publish_snapshot


@pytest.mark.unit
class TestExportSnapshot:
    @pytest.mark.asyncio
    async def test_exports_camel_case_array(self, sample_plugins) -> None:
        data = await export_snapshot(SnapshotPluginStore(sample_plugins))

        exported = json.loads(data)
        assert [p["name"] for p in exported] == [
            "github.com/acme/block-path",
            "github.com/acme/add-header",
            "github.com/acme/rewrite-headers",
        ]
        assert exported[0]["displayName"] == "Block Path"
        assert exported[0]["latestVersion"] == "v0.1.0"
        assert "import" in exported[0]

    @pytest.mark.asyncio
    async def test_export_loads_back(self, sample_plugins) -> None:
        data = await export_snapshot(SnapshotPluginStore(sample_plugins))

        reloaded = SnapshotPluginStore.from_json(data)

        assert await reloaded.list_all() == await SnapshotPluginStore(sample_plugins).list_all()

    @pytest.mark.asyncio
    async def test_exports_from_writable_store(self, memory_store) -> None:
        data = await export_snapshot(memory_store)

        assert json.loads(data) == []


@pytest.mark.unit
class TestPublishSnapshot:
    @pytest.mark.asyncio
    async def test_uploads_json(self) -> None:
        client = MagicMock()

        await publish_snapshot(client, "registry", "plugins.json", b"[]")

        args, kwargs = client.put_object.call_args
        assert args[0] == "registry"
        assert args[1] == "plugins.json"
        assert args[2].read() == b"[]"
        assert args[3] == 2
        assert kwargs["content_type"] == "application/json"

    @pytest.mark.asyncio
    async def test_upload_failure(self) -> None:
        client = MagicMock()
        client.put_object.side_effect = MinioException("AccessDenied")

        with pytest.raises(StoreUnavailableError, match="Cannot upload plugins.json"):
            await publish_snapshot(client, "registry", "plugins.json", b"[]")

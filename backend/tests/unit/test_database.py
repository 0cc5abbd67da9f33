"""
Unit tests for storage wiring.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from plugin_registry.config import Settings
from plugin_registry.database import (
    create_module_source,
    create_observer,
    create_plugin_store,
)
from plugin_registry.repositories.mongo_store import MongoPluginStore
from plugin_registry.repositories.snapshot_store import SnapshotPluginStore
from plugin_registry.services.module_sources import GitHubArchiveSource, GoProxySource
from plugin_registry.services.observability import (
    CompositeObserver,
    LoggingObserver,
    TracingObserver,
)


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


@pytest.mark.unit
class TestCreateObserver:
    def test_logging_only(self) -> None:
        observer = create_observer(_settings(slow_operation_threshold=2.5))

        assert isinstance(observer, LoggingObserver)
        assert observer.slow_operation_threshold == 2.5

    def test_with_tracing(self) -> None:
        observer = create_observer(_settings(tracing_enabled=True))

        assert isinstance(observer, CompositeObserver)
        assert isinstance(observer.observers[1], TracingObserver)


@pytest.mark.unit
class TestCreatePluginStore:
    @pytest.mark.asyncio
    async def test_mongodb_backend(self) -> None:
        manager = MagicMock()
        manager.initialize = AsyncMock()
        manager.database = MagicMock()

        store, returned_manager = await create_plugin_store(
            _settings(operation_timeout_seconds=2.0, mongodb_database="registry"),
            mongo_manager=manager,
        )

        assert isinstance(store, MongoPluginStore)
        assert returned_manager is manager
        assert store.operation_timeout == 2.0
        args, kwargs = manager.initialize.await_args
        assert args[1] == "registry"
        assert kwargs["socket_timeout_ms"] == 2000

    @pytest.mark.asyncio
    async def test_snapshot_backend(self) -> None:
        response = MagicMock()
        response.read.return_value = b'[{"id": "p1", "name": "github.com/acme/a"}]'
        client = MagicMock()
        client.get_object.return_value = response

        store, manager = await create_plugin_store(
            _settings(storage_backend="snapshot", s3_bucket="registry"),
            minio_client=client,
        )

        assert isinstance(store, SnapshotPluginStore)
        assert manager is None
        client.get_object.assert_called_once_with("registry", "plugins.json")
        assert (await store.get("p1")).name == "github.com/acme/a"


@pytest.mark.unit
class TestCreateModuleSource:
    @pytest.mark.asyncio
    async def test_go_proxy_by_default(self) -> None:
        source = create_module_source(_settings(go_proxy_url="https://goproxy.example.com"))

        assert isinstance(source, GoProxySource)
        assert source.base_url == "https://goproxy.example.com"
        await source.aclose()

    @pytest.mark.asyncio
    async def test_github_with_token(self) -> None:
        source = create_module_source(_settings(github_token="secret-token"))

        assert isinstance(source, GitHubArchiveSource)
        assert source.token == "secret-token"
        await source.aclose()

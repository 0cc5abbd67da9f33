"""
Plugin Store Contract
Polymorphic storage interface implemented by every registry backend

Every backend (MongoDB, read-only snapshot) implements the same operations
with the same semantics and the same error taxonomy. Callers depend on
PluginStore only; the backend type is chosen once, at construction time.

Each public operation runs through _run(), which:
- invokes the injected StoreObserver around the call
- bounds the backend round-trip with the store's operation timeout
- translates backend-native exceptions into plugin_registry.exceptions

Example:
    class MyStore(PluginStore):
        backend_name = "mystore"

        async def get(self, plugin_id: str) -> Plugin:
            return await self._run("get", self._get(plugin_id), plugin_id=plugin_id)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, List, Optional, Tuple, TypeVar

from ..exceptions import InternalStoreError, RegistryError, StoreUnavailableError
from ..models.plugin_models import Pagination, Plugin, PluginHash
from ..services.observability import NullObserver, StoreObserver

T = TypeVar("T")

logger = logging.getLogger(__name__)


def display_name_matches(display_name: str, query: str) -> bool:
    """Case-insensitive substring match used by search_by_name on every backend"""
    return query.casefold() in display_name.casefold()


class PluginStore(ABC):
    """
    Abstract plugin store.

    Attributes:
        backend_name: Short backend identifier used in logs and spans
        observer: Observer invoked around each operation
        operation_timeout: Seconds allowed per backend round-trip (None = unbounded)
    """

    backend_name = "abstract"

    def __init__(
        self,
        observer: Optional[StoreObserver] = None,
        operation_timeout: Optional[float] = None,
    ):
        self.observer = observer or NullObserver()
        self.operation_timeout = operation_timeout

    # Plugins

    @abstractmethod
    async def get(self, plugin_id: str) -> Plugin:
        """Return the plugin with the given id, or raise PluginNotFoundError."""

    @abstractmethod
    async def create(self, plugin: Plugin) -> Plugin:
        """
        Persist a new plugin.

        The store assigns id and created_at; every other field is copied
        verbatim. Raises PluginConflictError if the name is already taken.
        """

    @abstractmethod
    async def update(self, plugin_id: str, plugin: Plugin) -> Plugin:
        """Replace the mutable fields of a plugin; id and created_at are preserved."""

    @abstractmethod
    async def delete(self, plugin_id: str) -> None:
        """Delete a plugin, or raise PluginNotFoundError."""

    @abstractmethod
    async def list(self, pagination: Pagination) -> Tuple[List[Plugin], str]:
        """
        List plugins by stars descending, ties broken by id ascending.

        Returns:
            Tuple of (plugins, next_token); next_token is "" on the last page
        """

    @abstractmethod
    async def list_all(self) -> List[Plugin]:
        """Return every plugin in the default listing order."""

    @abstractmethod
    async def get_by_name(self, name: str) -> Plugin:
        """Return the plugin whose name matches exactly."""

    @abstractmethod
    async def search_by_name(
        self, query: str, pagination: Pagination
    ) -> Tuple[List[Plugin], str]:
        """
        Case-insensitive substring search over display names.

        Results follow display name ascending, ties broken by id. The filter
        is applied to a page of the unfiltered sorted sequence, so next_token
        marks a position in that sequence and a page may hold fewer than
        pagination.size results (even none) while more pages remain.
        """

    # Hashes

    @abstractmethod
    async def create_hash(self, module: str, version: str, hash: str) -> PluginHash:
        """
        Pin a hash for module@version.

        First writer wins: if a hash is already pinned for the key, the
        existing record is returned unchanged instead of raising.
        """

    @abstractmethod
    async def get_hash_by_name(self, module: str, version: str) -> PluginHash:
        """Return the pinned hash for module@version, or raise PluginNotFoundError."""

    @abstractmethod
    async def delete_hash(self, hash_id: str) -> None:
        """Delete a pinned hash by id, or raise PluginNotFoundError."""

    # Health

    @abstractmethod
    async def ping(self) -> None:
        """Check that the backend answers; raise StoreUnavailableError otherwise."""

    async def _run(self, operation: str, call: Awaitable[T], **attributes: Any) -> T:
        """
        Execute one backend round-trip under observation, timeout and error translation.

        Args:
            operation: Contract operation name (e.g. "get", "list")
            call: Awaitable performing the backend work
            **attributes: Context recorded by the observer

        Returns:
            Result of the awaitable

        Raises:
            RegistryError: Always a taxonomy error, never a backend-native one
        """
        with self.observer.observe(self.backend_name, operation, **attributes):
            try:
                return await asyncio.wait_for(call, timeout=self.operation_timeout)
            except RegistryError:
                raise
            except asyncio.TimeoutError as e:
                raise StoreUnavailableError(
                    f"{self.backend_name}.{operation} timed out after {self.operation_timeout}s",
                    details={"operation": operation, "timeout": self.operation_timeout},
                ) from e
            except Exception as e:
                raise self._translate_error(operation, e) from e

    def _translate_error(self, operation: str, error: Exception) -> RegistryError:
        """
        Map a backend-native exception to the registry taxonomy.

        Adapters override this for their driver's exception types; anything
        unrecognized is an internal error.
        """
        return InternalStoreError(
            f"{self.backend_name}.{operation} failed: {type(error).__name__}: {error}",
            details={"operation": operation},
        )

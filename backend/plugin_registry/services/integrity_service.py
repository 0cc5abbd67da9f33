"""
Module Integrity Service
Hash pinning for module archive downloads

Each module@version is either unpinned or pinned. The first successful
download computes the archive's SHA-256 and pins it through the store's hash
API; the pinned value never changes afterwards (first writer wins, the
store's unique hash key settles concurrent first downloads).

Download protocol, for a request carrying an optional client hash H:
1. Look up the pinned hash.
2. Pinned and H == pinned: NOT_MODIFIED, nothing is transferred.
   H present but different: logged as suspicious, the pinned hash stays
   the ground truth.
3. Pinned: fetch and serve the archive, no recomputation.
4. Unpinned: fetch, hash, pin (accepting a concurrently pinned value),
   serve.

Usage:
    service = ModuleIntegrityService(store, GoProxySource())
    result = await service.download("github.com/acme/plugin", "v1.0.0", request_hash)
    if result.status is DownloadStatus.NOT_MODIFIED:
        ...
"""

import hashlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..exceptions import PluginNotFoundError, ReadOnlyStoreError
from ..models.plugin_models import PluginHash, hash_key
from ..repositories.base_store import PluginStore
from .module_sources import ModuleSource

logger = logging.getLogger(__name__)


class DownloadStatus(str, Enum):
    """Outcome of a download request"""

    NOT_MODIFIED = "not_modified"  # Client hash matches the pinned hash
    CONTENT = "content"  # Archive bytes are served


@dataclass(frozen=True)
class ModuleDownload:
    """Result of ModuleIntegrityService.download"""

    status: DownloadStatus
    hash: Optional[str]
    content: Optional[bytes] = None
    pinned: bool = True


def compute_digest(raw: bytes) -> str:
    """Hex-encoded SHA-256 of an archive"""
    return hashlib.sha256(raw).hexdigest()


def clean_module_name(module: str) -> str:
    """Strip leading and trailing slashes left over from URL paths"""
    return module.strip("/")


class ModuleIntegrityService:
    """Serve module archives behind hash pinning"""

    def __init__(self, store: PluginStore, source: ModuleSource):
        self.store = store
        self.source = source

    async def download(
        self, module: str, version: str, client_hash: Optional[str] = None
    ) -> ModuleDownload:
        """
        Run the download protocol for module@version.

        Args:
            module: Module path, must be a registered plugin name
            version: Module version
            client_hash: Value of the client's hash header, if any

        Returns:
            ModuleDownload with status NOT_MODIFIED or CONTENT

        Raises:
            PluginNotFoundError: If the module is not registered or unknown upstream
            UpstreamUnavailableError: If the archive cannot be fetched (retryable)
            RegistryError: On store failures
        """
        module = clean_module_name(module)
        key = hash_key(module, version)

        await self.store.get_by_name(module)

        pinned = await self._find_pinned(module, version)

        if client_hash:
            if pinned is not None and client_hash == pinned.hash:
                return ModuleDownload(status=DownloadStatus.NOT_MODIFIED, hash=pinned.hash)

            logger.warning(
                f"Suspicious hash mismatch for {key}: client sent {client_hash}, "
                f"pinned is {pinned.hash if pinned else 'unset'}"
            )

        raw = await self.source.fetch_archive(module, version)

        if pinned is not None:
            return ModuleDownload(status=DownloadStatus.CONTENT, hash=pinned.hash, content=raw)

        return await self._pin_and_serve(module, version, raw)

    async def validate(self, module: str, version: str, client_hash: str) -> bool:
        """
        Check a client hash against the pinned hash.

        Raises:
            PluginNotFoundError: If no hash is pinned for module@version
        """
        pinned = await self.store.get_hash_by_name(clean_module_name(module), version)
        return pinned.hash == client_hash

    async def _find_pinned(self, module: str, version: str) -> Optional[PluginHash]:
        try:
            return await self.store.get_hash_by_name(module, version)
        except PluginNotFoundError:
            return None

    async def _pin_and_serve(self, module: str, version: str, raw: bytes) -> ModuleDownload:
        key = hash_key(module, version)
        digest = compute_digest(raw)

        try:
            canonical = await self.store.create_hash(module, version, digest)
        except ReadOnlyStoreError:
            logger.warning(f"Store is read-only, serving {key} without pinning its hash")
            return ModuleDownload(
                status=DownloadStatus.CONTENT, hash=digest, content=raw, pinned=False
            )

        if canonical.hash != digest:
            logger.warning(
                f"Upstream archive for {key} hashed to {digest} but {canonical.hash} "
                f"was pinned first; keeping the pinned hash"
            )
        else:
            logger.info(f"Pinned hash for {key}")

        return ModuleDownload(status=DownloadStatus.CONTENT, hash=canonical.hash, content=raw)

"""
Upstream Module Sources
Fetch module archives from where they are published

- GoProxySource: a Go module proxy ({base}/{module}/@v/{version}.zip)
- GitHubArchiveSource: GitHub zipball of a github.com/<owner>/<repo> module

Sources never retry; a failed fetch is surfaced as UpstreamUnavailableError
and retries are left to the caller.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import httpx

from ..exceptions import PluginNotFoundError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

_MISSING_STATUSES = (404, 410)


def escape_module_path(module: str) -> str:
    """
    Escape a module path for a Go module proxy URL.

    Uppercase letters are replaced by "!" followed by the lowercase letter,
    e.g. "github.com/Acme/Plugin" -> "github.com/!acme/!plugin".
    """
    return "".join(f"!{c.lower()}" if c.isupper() else c for c in module)


def split_github_module(module: str) -> Optional[Tuple[str, str]]:
    """
    Extract (owner, repository) from a github.com module path.

    Returns:
        (owner, repo) or None if the module is not hosted on GitHub
    """
    prefix = "github.com/"
    if not module.startswith(prefix):
        return None

    parts = module[len(prefix):].split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None

    return parts[0], parts[1]


class ModuleSource(ABC):
    """Upstream source of module archives"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": "plugin-registry/1.0"},
            follow_redirects=True,
        )

    @abstractmethod
    async def fetch_archive(self, module: str, version: str) -> bytes:
        """
        Download the archive of module@version.

        Raises:
            PluginNotFoundError: If the upstream does not know this version
            UpstreamUnavailableError: On transport errors or upstream failures
        """

    async def aclose(self) -> None:
        """Close the HTTP client if this source created it"""
        if self._owns_client:
            await self.client.aclose()

    async def _get(self, url: str, module: str, version: str, **kwargs) -> bytes:
        try:
            response = await self.client.get(url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Failed to download sources ({module}@{version}): {e}")
            raise UpstreamUnavailableError(
                f"Failed to download {module}@{version}: {type(e).__name__}",
                module=module,
                version=version,
            ) from e

        if response.status_code in _MISSING_STATUSES:
            raise PluginNotFoundError(
                f"{module}@{version}", f"Unknown module version upstream: {module}@{version}"
            )

        if response.status_code >= 400:
            logger.error(
                f"Upstream answered {response.status_code} for {module}@{version}"
            )
            raise UpstreamUnavailableError(
                f"Upstream answered {response.status_code} for {module}@{version}",
                module=module,
                version=version,
                status_code=response.status_code,
            )

        return response.content


class GoProxySource(ModuleSource):
    """Fetch archives from a Go module proxy"""

    def __init__(
        self,
        base_url: str = "https://proxy.golang.org",
        username: Optional[str] = None,
        password: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        super().__init__(client=client, timeout=timeout)
        self.base_url = base_url.rstrip("/")
        self.auth = httpx.BasicAuth(username, password or "") if username else None

    def archive_url(self, module: str, version: str) -> str:
        return f"{self.base_url}/{escape_module_path(module)}/@v/{version}.zip"

    async def fetch_archive(self, module: str, version: str) -> bytes:
        kwargs = {"auth": self.auth} if self.auth else {}
        return await self._get(self.archive_url(module, version), module, version, **kwargs)


class GitHubArchiveSource(ModuleSource):
    """Fetch zipball archives through the GitHub API"""

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = "https://api.github.com",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        super().__init__(client=client, timeout=timeout)
        self.api_url = api_url.rstrip("/")
        self.token = token

    def archive_url(self, module: str, version: str) -> str:
        repository = split_github_module(module)
        if repository is None:
            raise PluginNotFoundError(module, f"Not a GitHub module: {module}")

        owner, repo = repository
        return f"{self.api_url}/repos/{owner}/{repo}/zipball/{version}"

    async def fetch_archive(self, module: str, version: str) -> bytes:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        return await self._get(
            self.archive_url(module, version),
            module,
            version,
            headers=headers,
            follow_redirects=True,
        )

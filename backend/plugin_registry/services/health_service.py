"""
Health checks for the plugin store
"""

import logging
from typing import Any, Dict

from ..exceptions import RegistryError
from ..repositories.base_store import PluginStore

logger = logging.getLogger(__name__)


class HealthService:
    """Liveness and readiness probes backed by PluginStore.ping()"""

    def __init__(self, store: PluginStore):
        self.store = store

    def live(self) -> Dict[str, Any]:
        """Process is up; does not touch the backend"""
        return {"status": "alive"}

    async def ready(self) -> Dict[str, Any]:
        """Ping the backend and report whether it answers"""
        try:
            await self.store.ping()
        except RegistryError as e:
            logger.error(f"Failed to ping {self.store.backend_name}: {e}")
            return {
                "status": "unhealthy",
                "backend": self.store.backend_name,
                "message": e.message,
            }

        return {"status": "healthy", "backend": self.store.backend_name}

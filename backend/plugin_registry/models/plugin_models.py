"""
Plugin Models for the Plugin Registry
Backend-neutral records exchanged through the plugin store contract
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_PAGE_SIZE = 100


def hash_key(module: str, version: str) -> str:
    """Build the pinned hash key for a module version ("<module>@<version>")."""
    return f"{module}@{version}"


class Plugin(BaseModel):
    """Plugin metadata as stored by the registry"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Identity
    id: str = Field(default="", description="Store-assigned identifier, immutable once set")
    name: str = Field(..., min_length=1, description="Unique module name used as lookup key")
    display_name: str = Field(default="", description="Human readable name, searchable")

    # Descriptive fields
    author: str = ""
    type: str = ""
    import_: str = Field(default="", alias="import", description="Import path of the module")
    compatibility: str = ""
    summary: str = ""
    icon_url: str = ""
    banner_url: str = ""
    readme: str = ""

    # Versioning
    latest_version: str = ""
    versions: List[str] = Field(default_factory=list, description="Ordered version strings")

    # Popularity, drives the default listing order
    stars: int = 0

    snippet: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = Field(
        default=None, description="Server-assigned creation time, immutable"
    )

    def mutable_fields(self) -> Dict[str, Any]:
        """Fields replaced by an update, keyed by their stored (camelCase) names."""
        return self.model_dump(by_alias=True, exclude={"id", "created_at"})


class PluginHash(BaseModel):
    """Pinned content hash for one module version"""

    id: str = ""
    name: str = Field(..., description='Hash key, "<module>@<version>"')
    hash: str = Field(..., description="Hex-encoded archive digest")


class Pagination(BaseModel):
    """Page request: opaque start token (empty for the first page) and page size"""

    start: str = ""
    size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)

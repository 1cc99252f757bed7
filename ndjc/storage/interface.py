"""
Artifact store interface.

Every pipeline run leaves an audit trail of JSON and Markdown artifacts keyed
by ``requests/<runId>/<name>``. Backends decide where the bytes live.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from ..core.types import content_hash

T = TypeVar("T", bound=BaseModel)

REQUESTS_PREFIX = "requests"


def run_key(run_id: str, name: str) -> str:
    """Artifact key for ``name`` under a run directory."""
    return f"{REQUESTS_PREFIX}/{run_id}/{name}"


class ArtifactStore(ABC):
    """Abstract artifact store."""

    @abstractmethod
    async def store_text(self, key: str, content: str, metadata: dict[str, Any] | None = None) -> str:
        """Store text content and return the final key."""
        ...

    @abstractmethod
    async def store_json(self, key: str, payload: Any, metadata: dict[str, Any] | None = None) -> str:
        """Store a JSON-serializable payload, pretty printed."""
        ...

    @abstractmethod
    async def store_model(self, key: str, model: BaseModel, metadata: dict[str, Any] | None = None) -> str:
        """Store a pydantic model using its wire (camelCase) field names."""
        ...

    @abstractmethod
    async def load_text(self, key: str) -> str:
        ...

    @abstractmethod
    async def load_model(self, key: str, model_type: type[T]) -> T:
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if something was removed."""
        ...

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> list[str]:
        ...

    @abstractmethod
    async def get_metadata(self, key: str) -> dict[str, Any]:
        ...

    @abstractmethod
    def get_local_path(self, key: str) -> Path | None:
        """Filesystem path for a key, when the backend has one."""
        ...

    @staticmethod
    def compute_hash(content: str | bytes) -> str:
        return content_hash(content)

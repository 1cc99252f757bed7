"""
Filesystem artifact store.

Keys are relative POSIX paths below ``base_path``. Each artifact gets a
``.meta.json`` sidecar with its hash, size and storage time.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, TypeVar

import aiofiles
import aiofiles.os
from pydantic import BaseModel

from ..core.exceptions import ValidationError
from ..core.types import utcnow
from .interface import ArtifactStore

T = TypeVar("T", bound=BaseModel)

META_SUFFIX = ".meta.json"


class LocalArtifactStore(ArtifactStore):
    """Artifact store on the local filesystem."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path).resolve()

    def _path_for(self, key: str) -> Path:
        """Resolve ``key`` under the base path, rejecting anything that escapes it."""
        clean = key.replace("\\", "/").lstrip("/")
        parts = [p for p in clean.split("/") if p not in ("", ".")]
        if not parts or ".." in parts or any(":" in p for p in parts):
            raise ValidationError(
                message=f"Invalid artifact key: {key!r}",
                field_name="key",
                actual_value=key,
            )
        full = self.base_path.joinpath(*parts).resolve()
        if not full.is_relative_to(self.base_path):
            raise ValidationError(message=f"Artifact key escapes store: {key!r}", field_name="key", actual_value=key)
        return full

    async def _write(self, path: Path, content: str) -> None:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(content)

    async def _store_metadata(self, key: str, metadata: dict[str, Any]) -> None:
        metadata["_stored_at"] = utcnow().isoformat()
        metadata["_key"] = key
        await self._write(self._path_for(key + META_SUFFIX), json.dumps(metadata, indent=2, default=str))

    async def store_text(self, key: str, content: str, metadata: dict[str, Any] | None = None) -> str:
        await self._write(self._path_for(key), content)
        meta = dict(metadata or {})
        meta["size_chars"] = len(content)
        meta["hash"] = self.compute_hash(content)
        await self._store_metadata(key, meta)
        return key

    async def store_json(self, key: str, payload: Any, metadata: dict[str, Any] | None = None) -> str:
        return await self.store_text(key, json.dumps(payload, indent=2, ensure_ascii=False, default=str), metadata)

    async def store_model(self, key: str, model: BaseModel, metadata: dict[str, Any] | None = None) -> str:
        meta = dict(metadata or {})
        meta["model_type"] = type(model).__name__
        return await self.store_text(key, model.model_dump_json(indent=2, by_alias=True), meta)

    async def load_text(self, key: str) -> str:
        path = self._path_for(key)
        if not path.exists():
            raise FileNotFoundError(f"Key not found: {key}")
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()

    async def load_model(self, key: str, model_type: type[T]) -> T:
        return model_type.model_validate_json(await self.load_text(key))

    async def exists(self, key: str) -> bool:
        return self._path_for(key).exists()

    async def delete(self, key: str) -> bool:
        path = self._path_for(key)
        meta = self._path_for(key + META_SUFFIX)
        deleted = False
        if path.exists():
            await aiofiles.os.remove(path)
            deleted = True
        if meta.exists():
            await aiofiles.os.remove(meta)
        return deleted

    async def list_keys(self, prefix: str = "") -> list[str]:
        root = self._path_for(prefix) if prefix else self.base_path
        if not root.exists():
            return []
        return sorted(
            p.relative_to(self.base_path).as_posix()
            for p in root.rglob("*")
            if p.is_file() and not p.name.endswith(META_SUFFIX)
        )

    async def get_metadata(self, key: str) -> dict[str, Any]:
        meta = self._path_for(key + META_SUFFIX)
        if not meta.exists():
            return {}
        async with aiofiles.open(meta, "r", encoding="utf-8") as f:
            return json.loads(await f.read())

    def get_local_path(self, key: str) -> Path | None:
        path = self._path_for(key)
        return path if path.exists() else None

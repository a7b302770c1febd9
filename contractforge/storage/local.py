"""
Local filesystem state store.

Keeps build state as JSON files below the build directory, next to (but never
inside) the generated output directories.
"""

from __future__ import annotations

from pathlib import Path
from typing import TypeVar

import aiofiles
import aiofiles.os
from pydantic import BaseModel, ValidationError

from .interface import StateStore

T = TypeVar("T", bound=BaseModel)


class LocalStateStore(StateStore):
    """Local filesystem state store."""

    def __init__(self, base_path: Path) -> None:
        """Initialize local storage.

        Args:
            base_path: Base directory for all state files
        """
        self.base_path = base_path.resolve()

    def _get_full_path(self, key: str) -> Path:
        """Get full filesystem path for a key.

        Normalizes the key and ensures the resulting path stays within the
        base directory.
        """
        clean_key = key.lstrip("/\\").replace("..", "").replace(":", "")
        full_path = (self.base_path / clean_key).resolve()

        try:
            full_path.relative_to(self.base_path)
        except ValueError:
            clean_key = clean_key.replace("/", "_").replace("\\", "_")
            full_path = self.base_path / clean_key

        return full_path

    async def store_model(self, key: str, model: BaseModel) -> str:
        """Store Pydantic model as JSON, replacing any previous value atomically."""
        full_path = self._get_full_path(key)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = full_path.with_name(full_path.name + ".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(model.model_dump_json(indent=2))
        await aiofiles.os.replace(tmp_path, full_path)

        return key

    async def load_model(self, key: str, model_type: type[T]) -> T:
        """Load Pydantic model from JSON.

        Raises:
            FileNotFoundError: If the key does not exist.
            ValueError: If the stored JSON does not validate against model_type.
        """
        full_path = self._get_full_path(key)
        if not full_path.exists():
            raise FileNotFoundError(f"Key not found: {key}")

        async with aiofiles.open(full_path, "r", encoding="utf-8") as f:
            content = await f.read()

        try:
            return model_type.model_validate_json(content)
        except ValidationError as e:
            raise ValueError(f"Stored state for '{key}' is invalid: {e}") from e

    async def exists(self, key: str) -> bool:
        return self._get_full_path(key).is_file()

    async def delete(self, key: str) -> bool:
        full_path = self._get_full_path(key)
        if not full_path.is_file():
            return False
        await aiofiles.os.remove(full_path)
        return True


"""
Build state store interface.

Defines the abstract interface for persisting build state between runs:
up-to-date stamps, publication records and run reports.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class StateStore(ABC):
    """Abstract state store interface."""

    @abstractmethod
    async def store_model(self, key: str, model: BaseModel) -> str:
        """Store a Pydantic model as JSON.

        Args:
            key: Storage key/path.
            model: Pydantic model instance to store.

        Returns:
            The final storage key.
        """
        ...

    @abstractmethod
    async def load_model(self, key: str, model_type: type[T]) -> T:
        """Load a Pydantic model from storage.

        Raises:
            FileNotFoundError: If the key does not exist.
        """
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists in storage."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if something was deleted."""
        ...

    async def load_optional(self, key: str, model_type: type[T]) -> T | None:
        """Load a model, or None if the key is absent or unreadable."""
        if not await self.exists(key):
            return None
        try:
            return await self.load_model(key, model_type)
        except ValueError:
            return None

    @staticmethod
    def compute_file_hash(path: Path) -> str:
        """Compute SHA-256 of a file without loading it whole."""
        digest = hashlib.sha256()
        with open(path, "rb") as f:
            while chunk := f.read(65536):
                digest.update(chunk)
        return digest.hexdigest()

    @staticmethod
    def compute_tree_hash(root: Path) -> tuple[str, int]:
        """Hash every file under root by relative POSIX path and content.

        Returns:
            (hex digest, file count). An absent root hashes as an empty tree.
        """
        digest = hashlib.sha256()
        count = 0
        if root.is_dir():
            for path in sorted(p for p in root.rglob("*") if p.is_file()):
                digest.update(path.relative_to(root).as_posix().encode("utf-8"))
                digest.update(b"\0")
                digest.update(path.read_bytes())
                digest.update(b"\0")
                count += 1
        return digest.hexdigest(), count

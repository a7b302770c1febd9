"""Build state persistence for contractforge."""

from .interface import StateStore
from .local import LocalStateStore

__all__ = ["StateStore", "LocalStateStore"]

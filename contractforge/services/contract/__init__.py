"""Contract loading."""

from .service import SpecLoader

__all__ = ["SpecLoader"]

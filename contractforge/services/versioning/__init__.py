"""Version resolution from repository tag history."""

from .service import GitHistoryReader, HistoryReader, VersionResolver, resolve_version

__all__ = ["GitHistoryReader", "HistoryReader", "VersionResolver", "resolve_version"]

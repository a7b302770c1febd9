"""Services package for contractforge."""

from .binding import SourceBinding
from .contract import SpecLoader
from .generation import GenerationTarget
from .packaging import ArtifactPackager
from .publishing import Publisher
from .versioning import VersionResolver

__all__ = [
    "ArtifactPackager",
    "GenerationTarget",
    "Publisher",
    "SourceBinding",
    "SpecLoader",
    "VersionResolver",
]

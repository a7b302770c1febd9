"""Archive packaging."""

from .service import ArtifactPackager

__all__ = ["ArtifactPackager"]

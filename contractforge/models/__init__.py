"""
contractforge data models.

Pydantic models for every value that flows between pipeline stages: the
contract, the resolved version, generation profiles and the per-branch artifacts.
"""

from .artifacts import (
    CompiledBinding,
    Dependency,
    DependencyScope,
    DependencySet,
    GeneratedSourceSet,
    PackagedArtifact,
    PublicationRecord,
    PublishCoordinate,
)
from .contract import Contract, ContractDocument, Operation
from .profile import (
    ClientProfile,
    GenerationProfile,
    PackageNames,
    ServerProfile,
    client_profile,
    default_profiles,
    server_profile,
)
from .version import RepositoryHistory, TagRef, Version

__all__ = [
    # Contract
    "Contract",
    "ContractDocument",
    "Operation",
    # Versioning
    "RepositoryHistory",
    "TagRef",
    "Version",
    # Profiles
    "ClientProfile",
    "GenerationProfile",
    "PackageNames",
    "ServerProfile",
    "client_profile",
    "default_profiles",
    "server_profile",
    # Artifacts
    "CompiledBinding",
    "Dependency",
    "DependencyScope",
    "DependencySet",
    "GeneratedSourceSet",
    "PackagedArtifact",
    "PublicationRecord",
    "PublishCoordinate",
]

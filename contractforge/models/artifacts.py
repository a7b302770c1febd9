"""
Build artifact models.

These models describe what each stage of a branch produces: generated sources,
a compiled binding with its own dependency scope, a packaged archive and the
coordinate it is published under.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .version import Version


class DependencyScope(str, Enum):
    """Dependency kinds a binding can declare."""

    IMPLEMENTATION = "implementation"
    RUNTIME_ONLY = "runtimeOnly"
    COMPILE_ONLY = "compileOnly"


class Dependency(BaseModel):
    """A Maven dependency declaration."""

    model_config = ConfigDict(frozen=True)

    group: str = Field(description="Group ID")
    artifact: str = Field(description="Artifact ID")
    version: str = Field(default="", description="Version (empty for BOM-managed deps)")
    scope: DependencyScope = Field(default=DependencyScope.IMPLEMENTATION)

    @property
    def notation(self) -> str:
        """Get dependency notation.

        Returns:
            str: "group:artifact:version" or "group:artifact" if no version is set.
        """
        if self.version:
            return f"{self.group}:{self.artifact}:{self.version}"
        return f"{self.group}:{self.artifact}"


class DependencySet(BaseModel):
    """An immutable collection of dependencies across scopes."""

    model_config = ConfigDict(frozen=True)

    dependencies: tuple[Dependency, ...] = Field(default_factory=tuple)

    def extend(self, other: DependencySet) -> DependencySet:
        """Return a new set containing this set's entries followed by the other's.

        Duplicates (same notation and scope) keep their first position.
        """
        merged: list[Dependency] = []
        for dep in (*self.dependencies, *other.dependencies):
            if dep not in merged:
                merged.append(dep)
        return DependencySet(dependencies=tuple(merged))

    def in_scope(self, scope: DependencyScope) -> list[Dependency]:
        return [d for d in self.dependencies if d.scope == scope]

    def notations(self) -> set[str]:
        return {d.notation for d in self.dependencies}

    def __len__(self) -> int:
        return len(self.dependencies)


class GeneratedSourceSet(BaseModel):
    """The exclusively-owned output of one generation target."""

    target: str
    output_dir: Path
    source_root: Path
    contract_hash: str = Field(description="Declared input")
    profile_fingerprint: str
    tree_hash: str = Field(description="Hash over relative paths and bytes of every output file")
    file_count: int = 0
    up_to_date: bool = Field(default=False, description="Skipped because inputs were unchanged")


class CompiledBinding(BaseModel):
    """One source set compiled against its own dependency scope."""

    name: str
    source_root: Path
    output_dir: Path
    scope: DependencySet
    packages: list[str] = Field(default_factory=list, description="Declared source packages")
    file_count: int = 0


class PackagedArtifact(BaseModel):
    """An archive of exactly one compiled binding."""

    binding: str
    base_name: str
    version: Version
    path: Path
    sha256: str
    size_bytes: int
    entries: list[str] = Field(default_factory=list)

    @property
    def file_name(self) -> str:
        return self.path.name


class PublishCoordinate(BaseModel):
    """(groupId, artifactId, version) identifying an archive in the registry."""

    model_config = ConfigDict(frozen=True)

    group_id: str
    artifact_id: str
    version: Version

    @property
    def repository_path(self) -> str:
        """Maven layout directory: group/path/artifact/version."""
        return "/".join([*self.group_id.split("."), self.artifact_id, str(self.version)])

    def file_name(self, extension: str) -> str:
        return f"{self.artifact_id}-{self.version}.{extension}"

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"


class PublicationRecord(BaseModel):
    """Confirmation that every file of a publication reached the registry."""

    coordinate: PublishCoordinate
    registry_name: str
    registry_url: str
    uploaded: list[str] = Field(default_factory=list, description="Uploaded file URLs")
    artifact_sha256: str = ""
    published_at: datetime = Field(default_factory=datetime.utcnow)

"""
Version and repository-history models.

A Version is resolved once per build from tag history and then shared by every
artifact of that build. RepositoryHistory is a plain snapshot of the VCS state so
that version resolution stays a pure function.
"""

from __future__ import annotations

import re
from functools import total_ordering

from pydantic import BaseModel, ConfigDict, Field

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


@total_ordering
class Version(BaseModel):
    """A MAJOR.MINOR.PATCH version."""

    model_config = ConfigDict(frozen=True)

    major: int = Field(ge=0)
    minor: int = Field(ge=0)
    patch: int = Field(ge=0)

    @classmethod
    def parse(cls, text: str, prefix: str = "") -> Version:
        """Parse a version string, stripping an optional tag prefix.

        Raises:
            ValueError: If the text is not MAJOR.MINOR.PATCH.
        """
        value = text.strip()
        if prefix and value.startswith(prefix):
            value = value[len(prefix):]
        match = _VERSION_RE.match(value)
        if not match:
            raise ValueError(f"Not a MAJOR.MINOR.PATCH version: {text!r}")
        major, minor, patch = (int(g) for g in match.groups())
        return cls(major=major, minor=minor, patch=patch)

    def bump_patch(self) -> Version:
        return Version(major=self.major, minor=self.minor, patch=self.patch + 1)

    @property
    def key(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.key < other.key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


class TagRef(BaseModel):
    """A tag reachable from HEAD."""

    model_config = ConfigDict(frozen=True)

    name: str
    commits_since: int = Field(default=0, ge=0, description="Commits on HEAD after the tag")


class RepositoryHistory(BaseModel):
    """Snapshot of the repository state relevant to versioning."""

    model_config = ConfigDict(frozen=True)

    tags: tuple[TagRef, ...] = Field(default_factory=tuple)
    dirty: bool = Field(default=False, description="Uncommitted changes in the work tree")

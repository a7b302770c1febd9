"""
Version Resolver.

Derives the single build version from repository tag history. Resolution is a
pure function of a RepositoryHistory snapshot; reading that snapshot from git is
a separate, swappable step.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from ...core.exceptions import ToolNotFoundError
from ...core.logging import get_logger
from ...models.version import RepositoryHistory, TagRef, Version
from ..process import run_command

logger = get_logger(__name__)

DEFAULT_BASE_VERSION = Version(major=0, minor=0, patch=1)


def resolve_version(
    history: RepositoryHistory,
    prefix: str = "v",
    base: Version = DEFAULT_BASE_VERSION,
) -> Version:
    """Resolve the build version from a history snapshot.

    The highest prefixed tag reachable from HEAD wins. If HEAD is ahead of
    that tag or the work tree is dirty, the patch component is incremented.
    Without any usable tag the base version is returned unchanged.
    """
    candidates: list[tuple[Version, TagRef]] = []
    for tag in history.tags:
        if prefix and not tag.name.startswith(prefix):
            continue
        try:
            candidates.append((Version.parse(tag.name, prefix), tag))
        except ValueError:
            logger.debug("Ignoring non-version tag", tag=tag.name)

    if not candidates:
        return base

    # Among equal versions prefer the tag closest to HEAD.
    version, tag = max(candidates, key=lambda c: (c[0].key, -c[1].commits_since))
    if tag.commits_since > 0 or history.dirty:
        return version.bump_patch()
    return version


class HistoryReader(ABC):
    """Source of RepositoryHistory snapshots."""

    @abstractmethod
    async def read(self, repo_dir: Path, prefix: str) -> RepositoryHistory:
        ...


class GitHistoryReader(HistoryReader):
    """Reads tags and work tree state with the git CLI. Never creates tags."""

    def __init__(self, git: str = "git", timeout: float = 60) -> None:
        self.git = git
        self.timeout = timeout

    async def _git(self, repo_dir: Path, *args: str) -> str | None:
        result = await run_command([self.git, *args], cwd=repo_dir, timeout=self.timeout)
        if not result.ok:
            logger.debug("git command failed", args=list(args), stderr=result.tail(3))
            return None
        return result.stdout

    async def read(self, repo_dir: Path, prefix: str) -> RepositoryHistory:
        try:
            inside = await self._git(repo_dir, "rev-parse", "--is-inside-work-tree")
        except ToolNotFoundError:
            logger.warning("git not available, using base version", git=self.git)
            return RepositoryHistory()

        if not inside or inside.strip() != "true":
            logger.warning("Not a git work tree, using base version", path=str(repo_dir))
            return RepositoryHistory()

        if await self._git(repo_dir, "rev-parse", "--verify", "HEAD") is None:
            # Fresh repository without commits.
            return RepositoryHistory()

        listed = await self._git(repo_dir, "tag", "--merged", "HEAD", "--list", f"{prefix}*")
        tags: list[TagRef] = []
        for name in (listed or "").split():
            count = await self._git(repo_dir, "rev-list", "--count", f"{name}..HEAD")
            if count is None:
                continue
            tags.append(TagRef(name=name, commits_since=int(count.strip() or 0)))

        status = await self._git(repo_dir, "status", "--porcelain")
        dirty = bool(status and status.strip())

        return RepositoryHistory(tags=tuple(tags), dirty=dirty)


class VersionResolver:
    """Resolves the build version once per run."""

    def __init__(
        self,
        reader: HistoryReader,
        prefix: str = "v",
        base: Version = DEFAULT_BASE_VERSION,
    ) -> None:
        self.reader = reader
        self.prefix = prefix
        self.base = base

    async def resolve(self, repo_dir: Path) -> Version:
        history = await self.reader.read(repo_dir, self.prefix)
        version = resolve_version(history, self.prefix, self.base)
        logger.info(
            "Resolved version",
            version=str(version),
            tags=len(history.tags),
            dirty=history.dirty,
        )
        return version

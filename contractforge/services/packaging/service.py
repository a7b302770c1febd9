"""
Artifact Packager.

Packages one compiled binding into a versioned JAR. Archives are reproducible:
entries are sorted and carry a fixed timestamp, so identical compiled output
yields an identical archive.
"""

from __future__ import annotations

import asyncio
import zipfile
from pathlib import Path

from ... import __version__
from ...core.exceptions import PackagingError
from ...core.logging import get_logger
from ...models.artifacts import CompiledBinding, PackagedArtifact
from ...models.version import Version
from ...storage import StateStore

logger = get_logger(__name__)

FIXED_TIMESTAMP = (1980, 2, 1, 0, 0, 0)
MANIFEST_PATH = "META-INF/MANIFEST.MF"


def render_manifest(base_name: str, version: Version) -> str:
    lines = [
        "Manifest-Version: 1.0",
        f"Implementation-Title: {base_name}",
        f"Implementation-Version: {version}",
        f"Created-By: contractforge {__version__}",
    ]
    return "\r\n".join(lines) + "\r\n\r\n"


def _write_archive(archive: Path, root: Path, files: list[Path], manifest: str) -> list[str]:
    entries = [MANIFEST_PATH]
    tmp = archive.with_name(archive.name + ".part")
    try:
        with zipfile.ZipFile(tmp, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            info = zipfile.ZipInfo(MANIFEST_PATH, date_time=FIXED_TIMESTAMP)
            info.compress_type = zipfile.ZIP_DEFLATED
            zf.writestr(info, manifest)
            for path in files:
                name = path.relative_to(root).as_posix()
                if name == MANIFEST_PATH:
                    continue
                info = zipfile.ZipInfo(name, date_time=FIXED_TIMESTAMP)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                zf.writestr(info, path.read_bytes())
                entries.append(name)
        tmp.replace(archive)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return entries


class ArtifactPackager:
    """Packages a single binding's compiled output."""

    def __init__(self, dist_dir: Path) -> None:
        self.dist_dir = dist_dir

    def archive_path(self, base_name: str, version: Version) -> Path:
        return self.dist_dir / f"{base_name}-{version}.jar"

    async def package(
        self,
        binding: CompiledBinding,
        base_name: str,
        version: Version,
    ) -> PackagedArtifact:
        """Write <base_name>-<version>.jar from binding.output_dir only.

        Raises:
            PackagingError: If the binding has no compiled output or the
                archive cannot be written.
        """
        root = binding.output_dir
        if not root.is_dir():
            raise PackagingError(
                message=f"Compiled output missing: {root}",
                branch=binding.name,
            )

        files = sorted(p for p in root.rglob("*") if p.is_file())
        if not files:
            raise PackagingError(
                message=f"Compiled output is empty: {root}",
                branch=binding.name,
            )

        self.dist_dir.mkdir(parents=True, exist_ok=True)
        archive = self.archive_path(base_name, version)
        try:
            entries = await asyncio.to_thread(
                _write_archive, archive, root, files, render_manifest(base_name, version)
            )
        except OSError as e:
            raise PackagingError(
                message=f"Could not write {archive.name}",
                branch=binding.name,
                cause=e,
            ) from e
        sha256 = StateStore.compute_file_hash(archive)

        logger.info(
            "Packaged artifact",
            binding=binding.name,
            archive=archive.name,
            entries=len(entries),
            sha256=sha256[:16],
        )
        return PackagedArtifact(
            binding=binding.name,
            base_name=base_name,
            version=version,
            path=archive,
            sha256=sha256,
            size_bytes=archive.stat().st_size,
            entries=entries,
        )

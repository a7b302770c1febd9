"""
Prefect tasks for the contractforge pipeline.

Each task wraps one service operation. Tasks never retry: a failing stage fails
its branch, and retrying uploads is the registry client's concern.
"""

from __future__ import annotations

from pathlib import Path

from prefect import task
from prefect.cache_policies import NO_CACHE

from ..core.logging import get_logger
from ..models.artifacts import (
    CompiledBinding,
    GeneratedSourceSet,
    PackagedArtifact,
    PublicationRecord,
    PublishCoordinate,
)
from ..models.contract import Contract
from ..models.profile import ClientProfile, ServerProfile
from ..models.version import Version
from ..services.binding import SourceBinding
from ..services.contract import SpecLoader
from ..services.generation import GenerationTarget
from ..services.packaging import ArtifactPackager
from ..services.publishing import Publisher
from ..services.versioning import VersionResolver

logger = get_logger(__name__)


@task(
    name="load_contract",
    description="Resolve and validate the contract file",
    cache_policy=NO_CACHE,
)
async def load_contract(loader: SpecLoader, path: Path) -> Contract:
    """Load the contract every generation target depends on.

    Args:
        loader: Spec loader
        path: Configured contract path

    Returns:
        The fingerprinted Contract
    """
    return loader.load(path)


@task(
    name="resolve_version",
    description="Derive the build version from tag history",
    cache_policy=NO_CACHE,
)
async def resolve_version(resolver: VersionResolver, repo_dir: Path) -> Version:
    return await resolver.resolve(repo_dir)


@task(
    name="generate_sources",
    description="Generate one target's sources from the contract",
    cache_policy=NO_CACHE,
)
async def generate_sources(
    target: GenerationTarget,
    contract: Contract,
    profile: ServerProfile | ClientProfile,
    output_dir: Path,
    force: bool = False,
) -> GeneratedSourceSet:
    """Generate sources for one target.

    Args:
        target: Generation target owning output_dir
        contract: Loaded contract
        profile: The target's generation profile
        output_dir: Exclusively-owned output directory
        force: Ignore the up-to-date stamp

    Returns:
        GeneratedSourceSet describing the produced tree
    """
    sources = await target.generate(contract, profile, output_dir, force=force)
    state = "up to date" if sources.up_to_date else f"{sources.file_count} files"
    logger.info(f"Sources for '{target.name}': {state}")
    return sources


@task(
    name="compile_binding",
    description="Compile one binding against its own dependency scope",
    cache_policy=NO_CACHE,
)
async def compile_binding(binding: SourceBinding, output_dir: Path) -> CompiledBinding:
    return await binding.compile(output_dir)


@task(
    name="package_binding",
    description="Package one compiled binding into a versioned archive",
    cache_policy=NO_CACHE,
)
async def package_binding(
    packager: ArtifactPackager,
    binding: CompiledBinding,
    base_name: str,
    version: Version,
) -> PackagedArtifact:
    return await packager.package(binding, base_name, version)


@task(
    name="publish_artifact",
    description="Upload one archive to the registry",
    cache_policy=NO_CACHE,
)
async def publish_artifact(
    publisher: Publisher,
    artifact: PackagedArtifact,
    coordinate: PublishCoordinate,
) -> PublicationRecord:
    """Publish one archive.

    Args:
        publisher: Registry publisher
        artifact: Packaged archive
        coordinate: (groupId, artifactId, version)

    Returns:
        PublicationRecord written after every file was uploaded
    """
    return await publisher.publish(artifact, coordinate)

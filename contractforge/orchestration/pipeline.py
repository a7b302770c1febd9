"""
Main pipeline orchestration for contractforge.

Builds the task graph (contract and version first, then one
generate → compile → package → publish chain per target) and runs it either
inside a Prefect flow or directly on the asyncio scheduler.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
from prefect import flow, get_run_logger
from pydantic import BaseModel, Field

from .. import __version__
from ..core.config import Config
from ..core.exceptions import PipelineError
from ..core.logging import bind_context, clear_context, get_logger
from ..core.types import BranchState, StageResult, StageStatus
from ..models.artifacts import PackagedArtifact, PublicationRecord, PublishCoordinate
from ..models.profile import ClientProfile, ServerProfile, default_profiles
from ..models.version import Version
from ..services.binding import (
    BASE_DEPENDENCIES,
    BINDING_DEPENDENCIES,
    CommandToolchain,
    SourceBinding,
    SourceStagingToolchain,
    Toolchain,
    check_isolation,
    compose_scope,
)
from ..services.contract import SpecLoader
from ..services.generation import GenerationTarget, GeneratorEngine, OpenAPIGeneratorCLI
from ..services.packaging import ArtifactPackager
from ..services.publishing import CredentialResolver, Publisher
from ..services.versioning import GitHistoryReader, HistoryReader, VersionResolver
from ..storage import LocalStateStore, StateStore
from . import tasks
from .graph import GraphRun, TaskGraph, TaskNode

logger = get_logger(__name__)

LOAD_CONTRACT = "load-contract"
RESOLVE_VERSION = "resolve-version"
BRANCH_STAGES = ("generate", "compile", "package", "publish")

_STATE_AFTER = {
    "generate": BranchState.GENERATED,
    "compile": BranchState.COMPILED,
    "package": BranchState.PACKAGED,
    "publish": BranchState.PUBLISHED,
}

Profile = ServerProfile | ClientProfile


def node_name(stage: str, branch: str) -> str:
    return f"{stage}-{branch}"


def goal_targets(goal: str, branches: list[str]) -> list[str]:
    """Map a CLI goal onto task graph node names."""
    if goal in ("generate-server", "generate-client"):
        return [goal]
    stage = {
        "generate": "generate",
        "build": "compile",
        "package": "package",
        "publish": "publish",
        "run": "publish",
    }.get(goal)
    if stage is None:
        raise PipelineError(message=f"Unknown goal: {goal}", stage=goal)
    return [node_name(stage, b) for b in branches]


def base_version(config: Config) -> Version:
    """Parse the configured base version, the fallback for untagged repositories."""
    try:
        return Version.parse(config.versioning.base_version)
    except ValueError as e:
        raise PipelineError(
            message=f"Invalid base version: {config.versioning.base_version!r}",
            stage="configure",
            cause=e,
        ) from e


@dataclass
class BuildServices:
    """Every collaborator a build needs, wired from configuration."""

    config: Config
    state: StateStore
    loader: SpecLoader
    resolver: VersionResolver
    engine: GeneratorEngine
    toolchains: dict[str, Toolchain]
    packager: ArtifactPackager
    publisher: Publisher
    profiles: dict[str, Profile] = field(default_factory=dict)
    targets: dict[str, GenerationTarget] = field(default_factory=dict)

    @classmethod
    def from_config(
        cls,
        config: Config,
        engine: GeneratorEngine | None = None,
        history_reader: HistoryReader | None = None,
        toolchains: dict[str, Toolchain] | None = None,
        environ: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> BuildServices:
        project = config.project
        state = LocalStateStore(project.state_path)
        engine = engine or OpenAPIGeneratorCLI(
            config.generator.executable, timeout=config.generator.timeout_seconds
        )
        profiles = {p.name: p for p in default_profiles(config)}

        if toolchains is None:
            commands = {"server": config.toolchain.server_command, "client": config.toolchain.client_command}
            toolchains = {
                name: CommandToolchain(cmd, timeout=config.toolchain.timeout_seconds)
                if cmd else SourceStagingToolchain()
                for name, cmd in commands.items()
            }

        registry = config.registry
        resolver = CredentialResolver(
            username_env=registry.username_env,
            password_env=registry.password_env,
            username_property=registry.username_property,
            password_property=registry.password_property,
            property_files=[project.resolve(p) for p in registry.property_files],
            environ=environ,
        )

        return cls(
            config=config,
            state=state,
            loader=SpecLoader(),
            resolver=VersionResolver(
                history_reader or GitHistoryReader(config.versioning.git_executable),
                prefix=config.versioning.tag_prefix,
                base=base_version(config),
            ),
            engine=engine,
            toolchains=toolchains,
            packager=ArtifactPackager(project.dist_path),
            publisher=Publisher(
                registry_name=registry.name,
                registry_url=registry.url,
                resolver=resolver,
                state=state,
                timeout=registry.timeout_seconds,
                max_attempts=registry.max_attempts,
                transport=transport,
            ),
            profiles=profiles,
            targets={name: GenerationTarget(name, engine, state) for name in profiles},
        )

    def generated_dir(self, branch: str) -> Path:
        return self.config.project.generated_path / branch

    def classes_dir(self, branch: str) -> Path:
        return self.config.project.classes_path / branch

    def compiler_args(self, branch: str) -> list[str]:
        jvm = self.config.toolchain.jvm_target
        if branch == "client":
            return ["-jvm-target", jvm, *self.config.toolchain.client_compiler_args]
        return ["--release", jvm]

    def binding_for(self, branch: str, source_root: Path) -> SourceBinding:
        """Compose a binding with its own scope; other profiles' packages are foreign."""
        profile = self.profiles[branch]
        return SourceBinding(
            name=branch,
            source_root=source_root,
            scope=compose_scope(BASE_DEPENDENCIES, BINDING_DEPENDENCIES[branch]),
            toolchain=self.toolchains[branch],
            packages=profile.packages,
            foreign_packages=[p.packages for name, p in self.profiles.items() if name != branch],
            compiler_args=self.compiler_args(branch),
        )

    def coordinate(self, branch: str, version: Version) -> PublishCoordinate:
        return PublishCoordinate(
            group_id=self.config.project.group_id,
            artifact_id=self.profiles[branch].archive_base_name,
            version=version,
        )


class BranchResult(BaseModel):
    """Outcome of one target branch."""

    name: str
    state: BranchState = BranchState.PENDING
    failed_stage: str | None = None
    error: str | None = None
    up_to_date: bool = False
    artifact: PackagedArtifact | None = None
    publication: PublicationRecord | None = None


class PipelineResult(BaseModel):
    """Result of a complete pipeline run."""

    run_id: str
    goal: str
    success: bool
    started_at: datetime
    completed_at: datetime

    version: str | None = None
    contract_sha256: str | None = None
    branches: dict[str, BranchResult] = Field(default_factory=dict)
    stages: list[StageResult] = Field(default_factory=list)

    error: str | None = None
    failed_stage: str | None = None


class BuildPipeline:
    """Builds and runs the task graph for one goal."""

    def __init__(self, services: BuildServices, use_prefect: bool | None = None) -> None:
        self.services = services
        self.use_prefect = services.config.pipeline.use_prefect if use_prefect is None else use_prefect

    async def _call(self, prefect_task: Any, *args: Any, **kwargs: Any) -> Any:
        """Run a task as a Prefect task run, or call its function directly."""
        if self.use_prefect:
            return await prefect_task(*args, **kwargs)
        return await prefect_task.fn(*args, **kwargs)

    def build_graph(self, branches: list[str] | None = None, force: bool = False) -> TaskGraph:
        s = self.services
        project = s.config.project
        branches = branches or list(s.profiles)

        async def load(values: Mapping[str, Any]) -> Any:
            return await self._call(tasks.load_contract, s.loader, project.contract_file)

        async def version(values: Mapping[str, Any]) -> Any:
            return await self._call(tasks.resolve_version, s.resolver, project.project_dir.resolve())

        nodes = [
            TaskNode(
                name=LOAD_CONTRACT,
                action=load,
                inputs=(project.contract_file,),
                group="openapi",
                description="Resolves and validates the contract file",
            ),
            TaskNode(
                name=RESOLVE_VERSION,
                action=version,
                group="versioning",
                description="Derives the build version from repository tags",
            ),
        ]
        archives = [p.archive_base_name for p in s.profiles.values()]
        if len(set(archives)) != len(archives):
            raise PipelineError(message=f"Targets share an archive name: {archives}", stage="configure")
        for branch in branches:
            if branch not in s.profiles:
                raise PipelineError(message=f"Unknown target: {branch}", stage="configure")
            nodes.extend(self._branch_nodes(branch, force))
        return TaskGraph(nodes)

    def _branch_nodes(self, branch: str, force: bool) -> list[TaskNode]:
        s = self.services
        profile = s.profiles[branch]
        generated = s.generated_dir(branch)
        classes = s.classes_dir(branch)

        async def generate(values: Mapping[str, Any]) -> Any:
            bind_context(branch=branch)
            return await self._call(
                tasks.generate_sources,
                s.targets[branch],
                values[LOAD_CONTRACT],
                profile,
                generated,
                force,
            )

        async def compile_(values: Mapping[str, Any]) -> Any:
            bind_context(branch=branch)
            sources = values[node_name("generate", branch)]
            return await self._call(tasks.compile_binding, s.binding_for(branch, sources.source_root), classes)

        async def package(values: Mapping[str, Any]) -> Any:
            bind_context(branch=branch)
            compiled = values[node_name("compile", branch)]
            for other in s.profiles:
                sibling = values.get(node_name("compile", other))
                if other != branch and sibling is not None:
                    check_isolation(compiled, sibling)
            return await self._call(
                tasks.package_binding,
                s.packager,
                compiled,
                profile.archive_base_name,
                values[RESOLVE_VERSION],
            )

        async def publish(values: Mapping[str, Any]) -> Any:
            bind_context(branch=branch)
            artifact: PackagedArtifact = values[node_name("package", branch)]
            return await self._call(
                tasks.publish_artifact,
                s.publisher,
                artifact,
                s.coordinate(branch, artifact.version),
            )

        return [
            TaskNode(
                name=node_name("generate", branch),
                action=generate,
                depends_on=(LOAD_CONTRACT, RESOLVE_VERSION),
                inputs=(s.config.project.contract_file,),
                outputs=(generated,),
                group="openapi",
                description=profile.description,
            ),
            TaskNode(
                name=node_name("compile", branch),
                action=compile_,
                depends_on=(node_name("generate", branch),),
                outputs=(classes,),
                description=f"Compiles the generated {branch} sources",
            ),
            TaskNode(
                name=node_name("package", branch),
                action=package,
                depends_on=(node_name("compile", branch), RESOLVE_VERSION),
                produces=lambda artifact: (artifact.path,),
                description=f"Packages the compiled {branch} code into a JAR",
            ),
            TaskNode(
                name=node_name("publish", branch),
                action=publish,
                depends_on=(node_name("package", branch),),
                group="publishing",
                description=f"Publishes {profile.archive_base_name} to {s.config.registry.name}",
            ),
        ]

    async def execute(
        self,
        goal: str = "publish",
        branches: list[str] | None = None,
        force: bool | None = None,
    ) -> PipelineResult:
        """Run the subgraph needed for a goal and summarise it per branch."""
        run_id = str(uuid.uuid4())[:8]
        started_at = datetime.utcnow()
        force = self.services.config.pipeline.force if force is None else force
        branches = branches or list(self.services.profiles)
        if goal in ("generate-server", "generate-client"):
            branches = [goal.split("-", 1)[1]]

        bind_context(run_id=run_id)
        try:
            graph = self.build_graph(branches, force=force).subgraph(goal_targets(goal, branches))
            logger.info("Starting build", goal=goal, tasks=graph.order())
            run = await graph.run()
        finally:
            clear_context()

        result = self._summarise(run, run_id, goal, branches, started_at)
        await self.services.state.store_model(f"runs/{run_id}.json", result)
        return result

    def _summarise(
        self,
        run: GraphRun,
        run_id: str,
        goal: str,
        branches: list[str],
        started_at: datetime,
    ) -> PipelineResult:
        contract = run.values.get(LOAD_CONTRACT)
        version = run.values.get(RESOLVE_VERSION)

        branch_results: dict[str, BranchResult] = {}
        for branch in branches:
            outcome = BranchResult(name=branch)
            for stage in BRANCH_STAGES:
                stage_result = run.stages.get(node_name(stage, branch))
                if stage_result is None:
                    continue
                if stage_result.status.succeeded:
                    outcome.state = _STATE_AFTER[stage]
                    if stage == "generate":
                        outcome.up_to_date = stage_result.status == StageStatus.UP_TO_DATE
                    continue
                outcome.state = BranchState.FAILED
                if stage_result.status == StageStatus.SKIPPED:
                    blocker = stage_result.blocked_by or ""
                    outcome.failed_stage = blocker
                    outcome.error = run.stages[blocker].error_message if blocker in run.stages else None
                else:
                    outcome.failed_stage = stage_result.stage_name
                    outcome.error = stage_result.error_message
                break
            outcome.artifact = run.values.get(node_name("package", branch))
            outcome.publication = run.values.get(node_name("publish", branch))
            branch_results[branch] = outcome

        failed = [s for s in run.stages.values() if s.status == StageStatus.FAILED]
        return PipelineResult(
            run_id=run_id,
            goal=goal,
            success=run.success,
            started_at=started_at,
            completed_at=datetime.utcnow(),
            version=str(version) if version is not None else None,
            contract_sha256=contract.sha256 if contract is not None else None,
            branches=branch_results,
            stages=list(run.stages.values()),
            error=failed[0].error_message if failed else None,
            failed_stage=failed[0].stage_name if failed else None,
        )


@flow(
    name="contractforge-build",
    description="Contract to server/client archives pipeline",
    version=__version__,
    retries=0,
    validate_parameters=False,
)
async def contract_build_flow(
    pipeline: BuildPipeline,
    goal: str = "publish",
    branches: list[str] | None = None,
    force: bool | None = None,
) -> PipelineResult:
    """Execute the build pipeline for a goal as a Prefect flow.

    Args:
        pipeline: Pipeline wired with its services
        goal: generate-server, generate-client, generate, build, package or publish
        branches: Targets to include (default: all)
        force: Ignore up-to-date stamps

    Returns:
        PipelineResult with per-branch outcomes
    """
    logger = get_run_logger()
    logger.info(f"Starting contractforge '{goal}'")

    result = await pipeline.execute(goal, branches, force)

    duration = (result.completed_at - result.started_at).total_seconds()
    for branch in result.branches.values():
        logger.info(f"{branch.name}: {branch.state.value}" + (f" at {branch.failed_stage}" if branch.failed_stage else ""))
    logger.info(f"Build {'succeeded' if result.success else 'failed'} in {duration:.1f}s")
    return result


async def run_build(
    config: Config,
    goal: str = "publish",
    branches: list[str] | None = None,
    force: bool | None = None,
    **service_overrides: Any,
) -> PipelineResult:
    """Convenience function to run the pipeline from configuration.

    Args:
        config: Build configuration
        goal: Goal to reach
        branches: Targets to include (default: all)
        force: Ignore up-to-date stamps
        **service_overrides: Replacement collaborators for BuildServices.from_config

    Returns:
        PipelineResult with per-branch outcomes
    """
    services = BuildServices.from_config(config, **service_overrides)
    pipeline = BuildPipeline(services)
    if pipeline.use_prefect:
        return await contract_build_flow(pipeline, goal, branches, force)
    return await pipeline.execute(goal, branches, force)

"""Orchestration module for contractforge."""

from .graph import GraphRun, TaskGraph, TaskNode
from .pipeline import (
    BranchResult,
    BuildPipeline,
    BuildServices,
    PipelineResult,
    base_version,
    contract_build_flow,
    goal_targets,
    run_build,
)
from .tasks import (
    compile_binding,
    generate_sources,
    load_contract,
    package_binding,
    publish_artifact,
    resolve_version,
)

__all__ = [
    "BranchResult",
    "BuildPipeline",
    "BuildServices",
    "GraphRun",
    "PipelineResult",
    "TaskGraph",
    "TaskNode",
    "base_version",
    "contract_build_flow",
    "goal_targets",
    "run_build",
    "load_contract",
    "resolve_version",
    "generate_sources",
    "compile_binding",
    "package_binding",
    "publish_artifact",
]

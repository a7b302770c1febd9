"""Core infrastructure components for contractforge."""

from .config import Config, get_config
from .exceptions import (
    CompileError,
    ContractForgeError,
    ContractSyntaxError,
    CredentialsMissingError,
    GenerationError,
    GraphError,
    MissingContractError,
    PackagingError,
    PipelineError,
    PublishTransportError,
    StageError,
    ToolNotFoundError,
)
from .logging import get_logger, setup_logging
from .types import ArtifactPath, BranchState, StageResult, StageStatus

__all__ = [
    "Config",
    "get_config",
    "CompileError",
    "ContractForgeError",
    "ContractSyntaxError",
    "CredentialsMissingError",
    "GenerationError",
    "GraphError",
    "MissingContractError",
    "PackagingError",
    "PipelineError",
    "PublishTransportError",
    "StageError",
    "ToolNotFoundError",
    "get_logger",
    "setup_logging",
    "ArtifactPath",
    "BranchState",
    "StageResult",
    "StageStatus",
]

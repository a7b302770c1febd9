"""
Custom exception hierarchy for contractforge.

All exceptions inherit from ContractForgeError to enable consistent error handling
across the pipeline. Stage errors carry the stage and branch they were raised in so
a failing build can always be traced back to one node of the task graph.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ContractForgeError(Exception):
    """Base exception for all contractforge errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class StageError(ContractForgeError):
    """Raised when a pipeline stage fails."""

    stage: str = ""
    branch: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        where = f"{self.stage}:{self.branch}" if self.branch else self.stage
        return f"[{where}] {base}"


@dataclass
class MissingContractError(StageError):
    """Raised when the contract file is absent or unreadable.

    Aborts the whole pipeline before any generation target runs.
    """

    contract_path: str = ""

    def __post_init__(self) -> None:
        self.stage = self.stage or "load-contract"


@dataclass
class ContractSyntaxError(ContractForgeError):
    """Raised when the contract document cannot be parsed."""

    contract_path: str = ""

    def __str__(self) -> str:
        return f"Malformed contract '{self.contract_path}': {super().__str__()}"


@dataclass
class GenerationError(StageError):
    """Raised when the generation engine rejects the contract or the option set."""

    contract_path: str = ""
    output_dir: str = ""

    def __post_init__(self) -> None:
        self.stage = self.stage or "generate"


@dataclass
class CompileError(StageError):
    """Raised when a binding's sources fail to compile."""

    source_root: str = ""

    def __post_init__(self) -> None:
        self.stage = self.stage or "compile"


@dataclass
class PackagingError(StageError):
    """Raised when a binding has no compiled output to package."""

    def __post_init__(self) -> None:
        self.stage = self.stage or "package"


@dataclass
class CredentialsMissingError(StageError):
    """Raised when no registry credentials can be resolved.

    Always raised before any network call is attempted.
    """

    sources_checked: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.stage = self.stage or "publish"

    def __str__(self) -> str:
        checked = ", ".join(self.sources_checked)
        base = super().__str__()
        return f"{base} (checked: {checked})" if checked else base


@dataclass
class PublishTransportError(StageError):
    """Raised when the registry is unreachable or rejects an upload."""

    url: str = ""
    status_code: int | None = None

    def __post_init__(self) -> None:
        self.stage = self.stage or "publish"


@dataclass
class ToolNotFoundError(ContractForgeError):
    """Raised when a required external tool is not available."""

    tool_name: str = ""
    expected_path: str = ""
    install_hint: str = ""

    def __str__(self) -> str:
        hint = f" Install hint: {self.install_hint}" if self.install_hint else ""
        return f"Tool '{self.tool_name}' not found at '{self.expected_path}'.{hint}"


@dataclass
class GraphError(ContractForgeError):
    """Raised when the task graph is malformed (cycles, unknown or clashing nodes)."""

    node: str = ""


@dataclass
class PipelineError(ContractForgeError):
    """Raised when pipeline orchestration fails."""

    stage: str = ""
    pipeline_run_id: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"Pipeline error at stage '{self.stage}' (run: {self.pipeline_run_id}): {base}"

"""
Contract models.

The Contract is the single authoritative API description that feeds every
generation target. Its content hash is the declared input of each target, so
any edit to the file invalidates all generated, compiled and packaged outputs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import ContractSyntaxError

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


class Operation(BaseModel):
    """One HTTP operation declared by the contract."""

    method: str = Field(description="Upper-case HTTP method")
    path: str = Field(description="URL path template")
    operation_id: str | None = Field(default=None)
    tags: list[str] = Field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{self.method} {self.path}"


class ContractDocument(BaseModel):
    """Parsed summary of an OpenAPI document."""

    openapi_version: str
    title: str = ""
    api_version: str = ""
    operations: list[Operation] = Field(default_factory=list)

    @property
    def tags(self) -> list[str]:
        seen: list[str] = []
        for op in self.operations:
            for tag in op.tags:
                if tag not in seen:
                    seen.append(tag)
        return seen


class Contract(BaseModel):
    """An immutable reference to the contract file at a fixed path."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(description="Absolute path to the contract file")
    sha256: str = Field(description="SHA-256 of the file content")
    format: Literal["yaml", "json"] = Field(default="yaml")
    size_bytes: int = Field(default=0, ge=0)

    def read_document(self) -> ContractDocument:
        """Parse the contract and summarise its operations.

        Raises:
            ContractSyntaxError: If the file is not a well-formed OpenAPI document.
        """
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ContractSyntaxError(
                message=f"Invalid {self.format.upper()} syntax",
                contract_path=str(self.path),
                cause=e,
            )
        return parse_document(raw, self.path)


def parse_document(raw: Any, path: Path) -> ContractDocument:
    """Build a ContractDocument from an already-loaded YAML/JSON mapping."""
    if not isinstance(raw, dict):
        raise ContractSyntaxError(
            message="Top-level element must be a mapping",
            contract_path=str(path),
        )

    spec_version = raw.get("openapi") or raw.get("swagger")
    if not spec_version:
        raise ContractSyntaxError(
            message="Missing 'openapi' version field",
            contract_path=str(path),
        )

    paths = raw.get("paths") or {}
    if not isinstance(paths, dict):
        raise ContractSyntaxError(message="'paths' must be a mapping", contract_path=str(path))

    operations: list[Operation] = []
    for url, item in paths.items():
        if not isinstance(item, dict):
            raise ContractSyntaxError(
                message=f"Path item '{url}' must be a mapping",
                contract_path=str(path),
            )
        for method in HTTP_METHODS:
            op = item.get(method)
            if op is None:
                continue
            op = op if isinstance(op, dict) else {}
            operations.append(Operation(
                method=method.upper(),
                path=str(url),
                operation_id=op.get("operationId"),
                tags=[str(t) for t in op.get("tags", [])],
            ))

    info = raw.get("info") or {}
    return ContractDocument(
        openapi_version=str(spec_version),
        title=str(info.get("title", "")),
        api_version=str(info.get("version", "")),
        operations=operations,
    )

"""
Spec Loader.

Resolves and validates the path to the one authoritative contract file.
"""

from __future__ import annotations

import os
from pathlib import Path

from ...core.exceptions import MissingContractError
from ...core.logging import get_logger
from ...models.contract import Contract, ContractDocument
from ...storage import StateStore

logger = get_logger(__name__)


class SpecLoader:
    """Loads the contract file every generation target depends on."""

    def load(self, path: Path) -> Contract:
        """Validate the contract path and fingerprint its content.

        Raises:
            MissingContractError: If the file is absent, not a file, or unreadable.
        """
        path = Path(path).expanduser().resolve()

        if not path.exists():
            raise MissingContractError(
                message=f"Contract file not found: {path}",
                contract_path=str(path),
            )
        if not path.is_file():
            raise MissingContractError(
                message=f"Contract path is not a file: {path}",
                contract_path=str(path),
            )
        if not os.access(path, os.R_OK):
            raise MissingContractError(
                message=f"Contract file is not readable: {path}",
                contract_path=str(path),
            )

        try:
            sha256 = StateStore.compute_file_hash(path)
        except OSError as e:
            raise MissingContractError(
                message=f"Contract file could not be read: {path}",
                contract_path=str(path),
                cause=e,
            )

        contract = Contract(
            path=path,
            sha256=sha256,
            format="json" if path.suffix.lower() == ".json" else "yaml",
            size_bytes=path.stat().st_size,
        )
        logger.info("Loaded contract", path=str(path), sha256=sha256[:16])
        return contract

    def parse(self, contract: Contract) -> ContractDocument:
        """Parse the contract document (raises ContractSyntaxError when malformed)."""
        return contract.read_document()

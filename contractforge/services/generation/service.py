"""
Generation Target.

Turns the contract into one exclusively-owned source tree using a generation
profile. Generation is always a clean overwrite: the output directory is removed
first and removed again if the engine fails, so a half-generated tree can never
be compiled.
"""

from __future__ import annotations

import asyncio
import shutil
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from ...core.exceptions import GenerationError
from ...core.logging import get_logger
from ...models.artifacts import GeneratedSourceSet
from ...models.contract import Contract
from ...models.profile import ClientProfile, PackageNames, ServerProfile
from ...storage import StateStore
from ..process import run_command

logger = get_logger(__name__)


class GenerationRequest(BaseModel):
    """Everything the engine receives for one invocation."""

    contract_path: Path
    generator: str
    output_dir: Path
    packages: PackageNames
    options: dict[str, str] = Field(default_factory=dict)


class GenerationStamp(BaseModel):
    """Declared inputs and observed outputs of the last successful generation."""

    target: str
    contract_hash: str
    profile_fingerprint: str
    output_dir: Path
    tree_hash: str
    file_count: int
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class GeneratorEngine(ABC):
    """The external code generator, treated as a pure function of its request."""

    name: str = "engine"

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> None:
        """Write sources into request.output_dir.

        Raises:
            GenerationError: If the engine rejects the contract or options.
        """
        ...


class OpenAPIGeneratorCLI(GeneratorEngine):
    """Invokes openapi-generator-cli as a subprocess."""

    name = "openapi-generator-cli"

    def __init__(self, executable: str = "openapi-generator-cli", timeout: float = 300) -> None:
        self.executable = executable
        self.timeout = timeout

    def build_command(self, request: GenerationRequest) -> list[str]:
        cmd = [
            self.executable, "generate",
            "-i", str(request.contract_path),
            "-g", request.generator,
            "-o", str(request.output_dir),
            "--package-name", request.packages.root,
            "--api-package", request.packages.api,
            "--model-package", request.packages.model,
            "--invoker-package", request.packages.invoker,
        ]
        options = dict(request.options)
        library = options.pop("library", None)
        if library:
            cmd += ["--library", library]
        if options:
            props = ",".join(f"{k}={v}" for k, v in sorted(options.items()))
            cmd += ["--additional-properties", props]
        return cmd

    async def generate(self, request: GenerationRequest) -> None:
        result = await run_command(self.build_command(request), timeout=self.timeout)

        if result.timed_out:
            raise GenerationError(
                message=f"Generator timed out after {self.timeout}s",
                contract_path=str(request.contract_path),
                output_dir=str(request.output_dir),
            )
        if not result.ok:
            raise GenerationError(
                message=f"Generator '{request.generator}' exited with code {result.returncode}: {result.tail()}",
                contract_path=str(request.contract_path),
                output_dir=str(request.output_dir),
            )


def _remove_tree(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()


class GenerationTarget:
    """One pipeline branch's generation step.

    The contract is the sole declared input and output_dir the sole declared
    output; a stamp recorded outside output_dir makes repeated runs with an
    unchanged contract and profile skip as up to date.
    """

    def __init__(self, name: str, engine: GeneratorEngine, state: StateStore) -> None:
        self.name = name
        self.engine = engine
        self.state = state

    @property
    def stamp_key(self) -> str:
        return f"stamps/generate-{self.name}.json"

    async def _check_up_to_date(
        self,
        contract: Contract,
        fingerprint: str,
        output_dir: Path,
    ) -> GenerationStamp | None:
        stamp = await self.state.load_optional(self.stamp_key, GenerationStamp)
        if stamp is None:
            return None
        if (
            stamp.contract_hash != contract.sha256
            or stamp.profile_fingerprint != fingerprint
            or stamp.output_dir != output_dir
            or not output_dir.is_dir()
        ):
            return None
        tree_hash, _ = await asyncio.to_thread(StateStore.compute_tree_hash, output_dir)
        return stamp if tree_hash == stamp.tree_hash else None

    async def generate(
        self,
        contract: Contract,
        profile: ServerProfile | ClientProfile,
        output_dir: Path,
        force: bool = False,
    ) -> GeneratedSourceSet:
        """Generate sources for this target.

        Raises:
            GenerationError: On any engine failure; output_dir is absent afterwards.
        """
        output_dir = output_dir.resolve()
        fingerprint = profile.fingerprint()
        source_root = output_dir / profile.source_subdir

        if not force:
            stamp = await self._check_up_to_date(contract, fingerprint, output_dir)
            if stamp is not None:
                logger.info("Generated sources up to date", target=self.name, output_dir=str(output_dir))
                return GeneratedSourceSet(
                    target=self.name,
                    output_dir=output_dir,
                    source_root=source_root,
                    contract_hash=contract.sha256,
                    profile_fingerprint=fingerprint,
                    tree_hash=stamp.tree_hash,
                    file_count=stamp.file_count,
                    up_to_date=True,
                )

        await self.state.delete(self.stamp_key)
        await asyncio.to_thread(_remove_tree, output_dir)

        request = GenerationRequest(
            contract_path=contract.path,
            generator=profile.generator,
            output_dir=output_dir,
            packages=profile.packages,
            options=profile.options,
        )
        logger.info(
            "Generating sources",
            target=self.name,
            generator=profile.generator,
            output_dir=str(output_dir),
        )

        try:
            await self.engine.generate(request)
            if not output_dir.is_dir():
                raise GenerationError(
                    message=f"Engine '{self.engine.name}' produced no output directory",
                    contract_path=str(contract.path),
                    output_dir=str(output_dir),
                )
        except GenerationError as e:
            await asyncio.to_thread(_remove_tree, output_dir)
            e.branch = self.name
            raise
        except Exception as e:
            await asyncio.to_thread(_remove_tree, output_dir)
            raise GenerationError(
                message=f"Generation of '{self.name}' sources failed",
                branch=self.name,
                contract_path=str(contract.path),
                output_dir=str(output_dir),
                cause=e,
            )
        except asyncio.CancelledError:
            await asyncio.to_thread(_remove_tree, output_dir)
            raise

        tree_hash, file_count = await asyncio.to_thread(StateStore.compute_tree_hash, output_dir)
        await self.state.store_model(self.stamp_key, GenerationStamp(
            target=self.name,
            contract_hash=contract.sha256,
            profile_fingerprint=fingerprint,
            output_dir=output_dir,
            tree_hash=tree_hash,
            file_count=file_count,
        ))

        logger.info("Generation complete", target=self.name, files=file_count, tree_hash=tree_hash[:16])
        return GeneratedSourceSet(
            target=self.name,
            output_dir=output_dir,
            source_root=source_root,
            contract_hash=contract.sha256,
            profile_fingerprint=fingerprint,
            tree_hash=tree_hash,
            file_count=file_count,
        )

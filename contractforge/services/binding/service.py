"""
Source Binding.

Exposes one generation target's output as a compilable unit with its own
dependency scope. Scopes are composed, never shared: each binding gets a fresh
set built from the common base plus its own additions, and a namespace guard
rejects sources that declare or import another binding's packages.
"""

from __future__ import annotations

import asyncio
import re
import shlex
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from ...core.exceptions import CompileError, ToolNotFoundError
from ...core.logging import get_logger
from ...models.artifacts import CompiledBinding, DependencyScope, DependencySet
from ...models.profile import PackageNames
from ..process import run_command

logger = get_logger(__name__)

SOURCE_SUFFIXES = (".java", ".kt")

_PACKAGE_RE = re.compile(r"^\s*package\s+([\w.]+)", re.MULTILINE)
_IMPORT_RE = re.compile(r"^\s*import\s+(?:static\s+)?([\w.]+)", re.MULTILINE)


def compose_scope(base: DependencySet, specific: DependencySet) -> DependencySet:
    """scope(binding) = base ∪ specific(binding), as a new set."""
    return base.extend(specific)


def iter_sources(root: Path) -> list[Path]:
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix in SOURCE_SUFFIXES)


class NamespaceGuard:
    """Assigns package names to bindings by longest matching prefix."""

    def __init__(self, own: PackageNames, foreign: list[PackageNames]) -> None:
        self._owners: list[tuple[str, bool]] = [(p, True) for p in own.all()]
        for names in foreign:
            self._owners += [(p, False) for p in names.all()]
        self._owners.sort(key=lambda item: len(item[0]), reverse=True)

    def is_foreign(self, name: str) -> bool:
        for prefix, own in self._owners:
            if name == prefix or name.startswith(prefix + "."):
                return not own
        return False

    def violations(self, sources: list[Path]) -> list[str]:
        found: list[str] = []
        for path in sources:
            text = path.read_text(encoding="utf-8", errors="replace")
            for match in _PACKAGE_RE.finditer(text):
                if self.is_foreign(match.group(1)):
                    found.append(f"{path.name}: declares package {match.group(1)}")
            for match in _IMPORT_RE.finditer(text):
                if self.is_foreign(match.group(1)):
                    found.append(f"{path.name}: imports {match.group(1)}")
        return found


class Toolchain(ABC):
    """The external compiler, consuming a source root and a dependency scope."""

    name: str = "toolchain"

    @abstractmethod
    async def compile(
        self,
        source_root: Path,
        output_dir: Path,
        scope: DependencySet,
        compiler_args: list[str],
    ) -> None:
        """Compile sources into output_dir.

        Raises:
            CompileError: If compilation fails.
        """
        ...


class CommandToolchain(Toolchain):
    """Runs a configured compile command template."""

    name = "command"

    def __init__(self, template: str, timeout: float = 600) -> None:
        self.template = template
        self.timeout = timeout

    def build_command(
        self,
        source_root: Path,
        output_dir: Path,
        scope: DependencySet,
        compiler_args: list[str],
    ) -> list[str]:
        compile_classpath = [
            d.notation
            for d in scope.dependencies
            if d.scope in (DependencyScope.IMPLEMENTATION, DependencyScope.COMPILE_ONLY)
        ]
        values = {
            "source_root": str(source_root),
            "output_dir": str(output_dir),
            "dependencies": ",".join(compile_classpath),
        }
        argv: list[str] = []
        for token in shlex.split(self.template):
            if token == "{compiler_args}":
                argv.extend(compiler_args)
            else:
                argv.append(token.format(**values))
        return argv

    async def compile(
        self,
        source_root: Path,
        output_dir: Path,
        scope: DependencySet,
        compiler_args: list[str],
    ) -> None:
        cmd = self.build_command(source_root, output_dir, scope, compiler_args)
        try:
            result = await run_command(cmd, cwd=source_root, timeout=self.timeout)
        except ToolNotFoundError as e:
            raise CompileError(message="Compiler not available", source_root=str(source_root), cause=e)

        if result.timed_out:
            raise CompileError(
                message=f"Compiler timed out after {self.timeout}s",
                source_root=str(source_root),
            )
        if not result.ok:
            raise CompileError(
                message=f"Compilation failed with code {result.returncode}: {result.tail()}",
                source_root=str(source_root),
            )


class SourceStagingToolchain(Toolchain):
    """Copies sources unchanged into the output directory.

    Used when no compiler command is configured; the archive then carries sources.
    """

    name = "source-staging"

    async def compile(
        self,
        source_root: Path,
        output_dir: Path,
        scope: DependencySet,
        compiler_args: list[str],
    ) -> None:
        await asyncio.to_thread(shutil.copytree, source_root, output_dir, dirs_exist_ok=True)


class SourceBinding:
    """A compilable unit bound to one generation target's output."""

    def __init__(
        self,
        name: str,
        source_root: Path,
        scope: DependencySet,
        toolchain: Toolchain,
        packages: PackageNames,
        foreign_packages: list[PackageNames] | None = None,
        compiler_args: list[str] | None = None,
    ) -> None:
        self.name = name
        self.source_root = source_root
        self.scope = scope
        self.toolchain = toolchain
        self.packages = packages
        self.guard = NamespaceGuard(packages, foreign_packages or [])
        self.compiler_args = list(compiler_args or [])

    def declared_packages(self) -> list[str]:
        """Distinct packages declared by the binding's sources, sorted."""
        found: set[str] = set()
        for path in iter_sources(self.source_root):
            match = _PACKAGE_RE.search(path.read_text(encoding="utf-8", errors="replace"))
            if match:
                found.add(match.group(1))
        return sorted(found)

    async def compile(self, output_dir: Path) -> CompiledBinding:
        """Compile this binding's sources, and only these, into output_dir.

        Raises:
            CompileError: If sources are missing, reference a foreign namespace,
                or the toolchain fails.
        """
        if not self.source_root.is_dir():
            raise CompileError(
                message=f"Source root does not exist: {self.source_root}",
                branch=self.name,
                source_root=str(self.source_root),
            )

        sources = iter_sources(self.source_root)
        if not sources:
            raise CompileError(
                message=f"No source files under {self.source_root}",
                branch=self.name,
                source_root=str(self.source_root),
            )

        violations = self.guard.violations(sources)
        if violations:
            raise CompileError(
                message="Sources reference another binding's namespace",
                branch=self.name,
                source_root=str(self.source_root),
                context={"violations": violations[:10]},
            )

        if output_dir.exists():
            await asyncio.to_thread(shutil.rmtree, output_dir)
        output_dir.mkdir(parents=True)

        logger.info(
            "Compiling binding",
            binding=self.name,
            toolchain=self.toolchain.name,
            sources=len(sources),
            dependencies=len(self.scope),
        )
        try:
            await self.toolchain.compile(self.source_root, output_dir, self.scope, self.compiler_args)
        except CompileError as e:
            e.branch = self.name
            raise

        file_count = sum(1 for p in output_dir.rglob("*") if p.is_file())
        return CompiledBinding(
            name=self.name,
            source_root=self.source_root,
            output_dir=output_dir,
            scope=self.scope,
            packages=self.declared_packages(),
            file_count=file_count,
        )


def check_isolation(a: CompiledBinding, b: CompiledBinding) -> None:
    """Reject two compiled bindings that declare a package in common.

    Raises:
        CompileError: Naming both bindings and the shared packages.
    """
    shared = sorted(set(a.packages) & set(b.packages))
    if shared:
        raise CompileError(
            message=f"Bindings '{a.name}' and '{b.name}' declare the same packages",
            branch=a.name,
            source_root=str(a.source_root),
            context={"packages": shared, "other": b.name},
        )

"""Unit tests for source bindings and dependency scopes."""

import pytest

from contractforge.core.config import Config
from contractforge.core.exceptions import CompileError
from contractforge.models.artifacts import CompiledBinding, Dependency, DependencyScope, DependencySet
from contractforge.models.profile import client_profile, server_profile
from contractforge.services.binding import (
    BASE_DEPENDENCIES,
    BINDING_DEPENDENCIES,
    CommandToolchain,
    NamespaceGuard,
    SourceBinding,
    SourceStagingToolchain,
    Toolchain,
    check_isolation,
    compose_scope,
)


@pytest.fixture
def packages():
    config = Config()
    return server_profile(config).packages, client_profile(config).packages


def write_source(root, relative, text):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class FailingToolchain(Toolchain):
    name = "failing"

    async def compile(self, source_root, output_dir, scope, compiler_args):
        raise CompileError(message="unresolved reference: Health", source_root=str(source_root))


class TestDependencyScopes:
    """Tests for composing per-binding dependency scopes."""

    def test_scopes_are_disjoint_beyond_base(self):
        server = compose_scope(BASE_DEPENDENCIES, BINDING_DEPENDENCIES["server"])
        client = compose_scope(BASE_DEPENDENCIES, BINDING_DEPENDENCIES["client"])

        assert BASE_DEPENDENCIES.notations() <= server.notations()
        assert BASE_DEPENDENCIES.notations() <= client.notations()
        assert not any("retrofit" in n for n in server.notations())
        assert not any("springframework" in n for n in client.notations())

    def test_composition_never_mutates_base(self):
        size = len(BASE_DEPENDENCIES)
        compose_scope(BASE_DEPENDENCIES, BINDING_DEPENDENCIES["server"])
        compose_scope(BASE_DEPENDENCIES, BINDING_DEPENDENCIES["client"])

        assert len(BASE_DEPENDENCIES) == size

    def test_extend_deduplicates(self):
        dep = Dependency(group="org.example", artifact="lib", version="1.0")
        merged = DependencySet(dependencies=(dep,)).extend(DependencySet(dependencies=(dep,)))
        assert len(merged) == 1

    def test_in_scope(self):
        server = BINDING_DEPENDENCIES["server"]
        compile_only = {d.artifact for d in server.in_scope(DependencyScope.COMPILE_ONLY)}
        assert "swagger-annotations" in compile_only


class TestNamespaceGuard:
    """Tests for namespace ownership by longest prefix."""

    def test_server_guard(self, packages):
        server, client = packages
        guard = NamespaceGuard(server, [client])

        assert not guard.is_foreign("com.velaris.api.model.Health")
        assert not guard.is_foreign("com.velaris.api.HealthApi")
        assert guard.is_foreign("com.velaris.api.client.model.Health")
        assert not guard.is_foreign("java.util.List")

    def test_client_guard(self, packages):
        server, client = packages
        guard = NamespaceGuard(client, [server])

        assert not guard.is_foreign("com.velaris.api.client.model.Health")
        assert guard.is_foreign("com.velaris.api.model.Health")
        assert guard.is_foreign("com.velaris.api")

    def test_violations_report_imports_and_packages(self, temp_dir, packages):
        server, client = packages
        path = write_source(
            temp_dir, "HealthApi.kt",
            "package com.velaris.api.client\n\nimport com.velaris.api.model.Health\n",
        )

        violations = NamespaceGuard(client, [server]).violations([path])

        assert violations == ["HealthApi.kt: imports com.velaris.api.model.Health"]


class TestCommandToolchain:
    """Tests for compile command templates."""

    def test_build_command(self, temp_dir):
        scope = DependencySet(dependencies=(
            Dependency(group="a", artifact="impl", version="1"),
            Dependency(group="a", artifact="api", version="1", scope=DependencyScope.COMPILE_ONLY),
            Dependency(group="a", artifact="rt", version="1", scope=DependencyScope.RUNTIME_ONLY),
        ))
        toolchain = CommandToolchain("kotlinc {source_root} -d {output_dir} -cp {dependencies} {compiler_args}")

        cmd = toolchain.build_command(temp_dir / "src", temp_dir / "out", scope, ["-jvm-target", "21"])

        assert cmd == [
            "kotlinc", str(temp_dir / "src"),
            "-d", str(temp_dir / "out"),
            "-cp", "a:impl:1,a:api:1",
            "-jvm-target", "21",
        ]


@pytest.mark.asyncio
class TestSourceBinding:
    """Tests for compiling one binding in isolation."""

    def binding(self, root, packages, toolchain=None):
        server, client = packages
        return SourceBinding(
            name="client",
            source_root=root,
            scope=compose_scope(BASE_DEPENDENCIES, BINDING_DEPENDENCIES["client"]),
            toolchain=toolchain or SourceStagingToolchain(),
            packages=client,
            foreign_packages=[server],
        )

    async def test_compile_stages_own_sources(self, temp_dir, packages):
        root = temp_dir / "src"
        write_source(root, "com/velaris/api/client/HealthApi.kt",
                     "package com.velaris.api.client\n\nimport com.velaris.api.client.model.Health\n")
        write_source(root, "com/velaris/api/client/model/Health.kt",
                     "package com.velaris.api.client.model\n")
        out = temp_dir / "classes"
        (out / "stale").mkdir(parents=True)

        compiled = await self.binding(root, packages).compile(out)

        assert compiled.name == "client"
        assert compiled.file_count == 2
        assert compiled.packages == ["com.velaris.api.client", "com.velaris.api.client.model"]
        assert (out / "com/velaris/api/client/HealthApi.kt").is_file()
        assert not (out / "stale").exists()

    async def test_missing_source_root(self, temp_dir, packages):
        with pytest.raises(CompileError) as exc_info:
            await self.binding(temp_dir / "nowhere", packages).compile(temp_dir / "out")

        assert exc_info.value.branch == "client"
        assert exc_info.value.stage == "compile"

    async def test_empty_source_root(self, temp_dir, packages):
        root = temp_dir / "src"
        root.mkdir()
        with pytest.raises(CompileError, match="No source files"):
            await self.binding(root, packages).compile(temp_dir / "out")

    async def test_foreign_namespace_rejected(self, temp_dir, packages):
        root = temp_dir / "src"
        write_source(root, "com/velaris/api/client/HealthApi.kt",
                     "package com.velaris.api.client\n\nimport com.velaris.api.model.Health\n")

        with pytest.raises(CompileError) as exc_info:
            await self.binding(root, packages).compile(temp_dir / "out")

        assert exc_info.value.context["violations"]
        assert not (temp_dir / "out").exists()

    async def test_toolchain_failure_names_branch(self, temp_dir, packages):
        root = temp_dir / "src"
        write_source(root, "com/velaris/api/client/HealthApi.kt", "package com.velaris.api.client\n")

        with pytest.raises(CompileError) as exc_info:
            await self.binding(root, packages, FailingToolchain()).compile(temp_dir / "out")

        assert exc_info.value.branch == "client"
        assert "unresolved reference" in str(exc_info.value)


class TestIsolation:
    """Tests for the check between two compiled bindings."""

    def compiled(self, temp_dir, name, packages):
        return CompiledBinding(
            name=name,
            source_root=temp_dir / "generated" / name,
            output_dir=temp_dir / "classes" / name,
            scope=DependencySet(),
            packages=packages,
        )

    def test_disjoint_packages_pass(self, temp_dir):
        server = self.compiled(temp_dir, "server", ["com.velaris.api", "com.velaris.api.model"])
        client = self.compiled(temp_dir, "client", ["com.velaris.api.client", "com.velaris.api.client.model"])

        check_isolation(server, client)
        check_isolation(client, server)

    def test_shared_package_rejected(self, temp_dir):
        """Test that a package declared by both bindings is reported.

        Verifies the error names both bindings and only the packages they
        have in common, not nested ones.
        """
        server = self.compiled(temp_dir, "server", ["com.velaris.api", "com.velaris.api.model"])
        client = self.compiled(temp_dir, "client", ["com.velaris.api.client", "com.velaris.api.model"])

        with pytest.raises(CompileError) as exc_info:
            check_isolation(client, server)

        assert exc_info.value.branch == "client"
        assert exc_info.value.context == {"packages": ["com.velaris.api.model"], "other": "server"}
        assert "'client' and 'server'" in str(exc_info.value)

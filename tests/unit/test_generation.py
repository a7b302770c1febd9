"""Unit tests for generation targets."""

import pytest

from contractforge.core.config import Config
from contractforge.core.exceptions import GenerationError
from contractforge.models.profile import client_profile, server_profile
from contractforge.services.contract import SpecLoader
from contractforge.services.generation import GenerationRequest, GenerationTarget, OpenAPIGeneratorCLI
from contractforge.storage import StateStore

from conftest import FakeEngine


@pytest.fixture
def profiles():
    config = Config()
    return server_profile(config), client_profile(config)


class TestOpenAPIGeneratorCLI:
    """Tests for the generator command line."""

    def test_server_command(self, temp_dir, profiles):
        server, _ = profiles
        cmd = OpenAPIGeneratorCLI().build_command(GenerationRequest(
            contract_path=temp_dir / "api.yaml",
            generator=server.generator,
            output_dir=temp_dir / "out",
            packages=server.packages,
            options=server.options,
        ))

        assert cmd[:2] == ["openapi-generator-cli", "generate"]
        assert cmd[cmd.index("-g") + 1] == "spring"
        assert cmd[cmd.index("--api-package") + 1] == "com.velaris.api"
        assert cmd[cmd.index("--model-package") + 1] == "com.velaris.api.model"
        props = cmd[cmd.index("--additional-properties") + 1].split(",")
        assert props == sorted(props)
        assert "interfaceOnly=true" in props
        assert "--library" not in cmd

    def test_client_library_is_a_flag(self, temp_dir, profiles):
        _, client = profiles
        cmd = OpenAPIGeneratorCLI().build_command(GenerationRequest(
            contract_path=temp_dir / "api.yaml",
            generator=client.generator,
            output_dir=temp_dir / "out",
            packages=client.packages,
            options=client.options,
        ))

        assert cmd[cmd.index("--library") + 1] == "jvm-retrofit2"
        assert "library=" not in cmd[cmd.index("--additional-properties") + 1]
        assert cmd[cmd.index("--invoker-package") + 1] == "com.velaris.api.client.invoker"


@pytest.mark.asyncio
class TestGenerationTarget:
    """Tests for clean-overwrite generation with up-to-date checks."""

    async def test_generate_writes_sources(self, temp_dir, contract_file, state, engine, profiles):
        server, _ = profiles
        contract = SpecLoader().load(contract_file)
        out = temp_dir / "build" / "generated" / "server"

        sources = await GenerationTarget("server", engine, state).generate(contract, server, out)

        assert not sources.up_to_date
        assert sources.source_root == out / "src" / "main" / "java"
        assert (sources.source_root / "com/velaris/api/HealthApi.java").is_file()
        assert (sources.source_root / "com/velaris/api/model/Health.java").is_file()
        assert sources.contract_hash == contract.sha256
        assert sources.file_count == 3
        assert await state.exists("stamps/generate-server.json")

    async def test_unchanged_inputs_are_up_to_date(self, temp_dir, contract_file, state, engine, profiles):
        server, _ = profiles
        contract = SpecLoader().load(contract_file)
        out = temp_dir / "gen" / "server"
        target = GenerationTarget("server", engine, state)

        first = await target.generate(contract, server, out)
        second = await target.generate(contract, server, out)

        assert second.up_to_date
        assert second.tree_hash == first.tree_hash
        assert len(engine.calls) == 1

    async def test_force_regeneration_is_idempotent(self, temp_dir, contract_file, state, engine, profiles):
        server, _ = profiles
        contract = SpecLoader().load(contract_file)
        out = temp_dir / "gen" / "server"
        target = GenerationTarget("server", engine, state)

        first = await target.generate(contract, server, out)
        second = await target.generate(contract, server, out, force=True)

        assert not second.up_to_date
        assert second.tree_hash == first.tree_hash
        assert len(engine.calls) == 2

    async def test_stale_files_are_removed(self, temp_dir, contract_file, state, engine, profiles):
        """Test that regeneration is a clean overwrite.

        Verifies that a file left in the output directory (for example from an
        operation that has since been removed) does not survive, and that the
        foreign file also invalidates the up-to-date check.
        """
        server, _ = profiles
        contract = SpecLoader().load(contract_file)
        out = temp_dir / "gen" / "server"
        target = GenerationTarget("server", engine, state)

        first = await target.generate(contract, server, out)
        stale = out / "src/main/java/com/velaris/api/RemovedApi.java"
        stale.write_text("package com.velaris.api;\n")

        second = await target.generate(contract, server, out)

        assert not stale.exists()
        assert not second.up_to_date
        assert second.tree_hash == first.tree_hash

    async def test_contract_edit_invalidates(self, temp_dir, contract_file, state, engine, profiles):
        server, _ = profiles
        loader = SpecLoader()
        out = temp_dir / "gen" / "server"
        target = GenerationTarget("server", engine, state)

        await target.generate(loader.load(contract_file), server, out)
        contract_file.write_text(contract_file.read_text().replace("- health", "- status"))
        regenerated = await target.generate(loader.load(contract_file), server, out)

        assert not regenerated.up_to_date
        assert (regenerated.source_root / "com/velaris/api/StatusApi.java").is_file()
        assert not (regenerated.source_root / "com/velaris/api/HealthApi.java").exists()

    async def test_profile_change_invalidates_only_that_target(
        self, temp_dir, contract_file, state, engine, profiles
    ):
        server, client = profiles
        contract = SpecLoader().load(contract_file)
        server_target = GenerationTarget("server", engine, state)
        client_target = GenerationTarget("client", engine, state)
        server_out = temp_dir / "gen" / "server"
        client_out = temp_dir / "gen" / "client"

        await server_target.generate(contract, server, server_out)
        await client_target.generate(contract, client, client_out)

        changed = client.model_copy(update={"options": {**client.options, "useCoroutines": "false"}})
        server_again = await server_target.generate(contract, server, server_out)
        client_again = await client_target.generate(contract, changed, client_out)

        assert server_again.up_to_date
        assert not client_again.up_to_date

    async def test_engine_failure_leaves_no_output(self, temp_dir, contract_file, state, profiles):
        """Test that a failing engine never leaves a partial tree.

        Verifies the partially written directory is removed, the stamp is
        gone and the error carries the branch name.
        """
        server, _ = profiles
        contract = SpecLoader().load(contract_file)
        out = temp_dir / "gen" / "server"
        target = GenerationTarget("server", FakeEngine(), state)
        await target.generate(contract, server, out)

        failing = GenerationTarget("server", FakeEngine(fail_for=("spring",)), state)
        with pytest.raises(GenerationError) as exc_info:
            await failing.generate(contract, server, out, force=True)

        assert exc_info.value.branch == "server"
        assert exc_info.value.stage == "generate"
        assert not out.exists()
        assert not await state.exists(failing.stamp_key)

    async def test_corrupt_contract_fails_generation(self, temp_dir, state, engine, profiles):
        server, _ = profiles
        path = temp_dir / "api.yaml"
        path.write_text("openapi: 3.0.3\npaths: [not, a, mapping]\n")
        contract = SpecLoader().load(path)
        out = temp_dir / "gen" / "server"

        with pytest.raises(GenerationError):
            await GenerationTarget("server", engine, state).generate(contract, server, out)

        assert not out.exists()

    async def test_missing_generator_is_a_generation_error(self, temp_dir, contract_file, state, profiles):
        server, _ = profiles
        contract = SpecLoader().load(contract_file)
        out = temp_dir / "gen" / "server"
        target = GenerationTarget("server", OpenAPIGeneratorCLI("contractforge-no-such-generator"), state)

        with pytest.raises(GenerationError) as exc_info:
            await target.generate(contract, server, out)

        assert exc_info.value.branch == "server"
        assert not out.exists()

    async def test_tree_hash_covers_paths_and_content(self, temp_dir):
        root = temp_dir / "tree"
        (root / "a").mkdir(parents=True)
        (root / "a" / "x.txt").write_text("one")
        before, count = StateStore.compute_tree_hash(root)

        (root / "a" / "x.txt").rename(root / "a" / "y.txt")
        renamed, _ = StateStore.compute_tree_hash(root)

        assert count == 1
        assert renamed != before
        assert StateStore.compute_tree_hash(temp_dir / "absent")[1] == 0

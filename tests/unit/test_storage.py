"""Unit tests for the build state store."""

import pytest

from contractforge.models.version import Version
from contractforge.services.generation import GenerationStamp
from contractforge.storage import LocalStateStore


def make_stamp(temp_dir, contract_hash="abc"):
    return GenerationStamp(
        target="server",
        contract_hash=contract_hash,
        profile_fingerprint="fp",
        output_dir=temp_dir / "gen",
        tree_hash="tree",
        file_count=3,
    )


@pytest.mark.asyncio
class TestLocalStateStore:
    """Tests for local filesystem state."""

    async def test_store_and_load_model(self, temp_dir):
        """Test storing and loading Pydantic models."""
        store = LocalStateStore(temp_dir)
        stamp = make_stamp(temp_dir)

        key = await store.store_model("stamps/generate-server.json", stamp)
        loaded = await store.load_model(key, GenerationStamp)

        assert loaded.contract_hash == stamp.contract_hash
        assert loaded.output_dir == stamp.output_dir
        assert not (temp_dir / "stamps" / "generate-server.json.tmp").exists()

    async def test_store_replaces_previous_value(self, temp_dir):
        store = LocalStateStore(temp_dir)
        await store.store_model("stamps/s.json", make_stamp(temp_dir, "old"))
        await store.store_model("stamps/s.json", make_stamp(temp_dir, "new"))

        loaded = await store.load_model("stamps/s.json", GenerationStamp)
        assert loaded.contract_hash == "new"

    async def test_load_missing_raises(self, temp_dir):
        store = LocalStateStore(temp_dir)
        with pytest.raises(FileNotFoundError):
            await store.load_model("missing.json", GenerationStamp)

    async def test_load_optional(self, temp_dir):
        """Test that absent or unreadable state reads as no state.

        Verifies a stamp written by an older layout does not break the
        up-to-date check but simply forces regeneration.
        """
        store = LocalStateStore(temp_dir)
        assert await store.load_optional("stamps/s.json", GenerationStamp) is None

        await store.store_model("stamps/s.json", Version.parse("1.0.0"))
        assert await store.load_optional("stamps/s.json", GenerationStamp) is None

    async def test_exists_and_delete(self, temp_dir):
        store = LocalStateStore(temp_dir)
        key = "stamps/generate-client.json"
        assert not await store.exists(key)

        await store.store_model(key, make_stamp(temp_dir))
        assert await store.exists(key)

        assert await store.delete(key)
        assert not await store.exists(key)
        assert not await store.delete(key)

    async def test_path_traversal_prevention(self, temp_dir):
        """Test that keys cannot escape the base directory."""
        store = LocalStateStore(temp_dir / "state")

        await store.store_model("../../escape.json", make_stamp(temp_dir))

        assert await store.exists("../../escape.json")
        assert not (temp_dir.parent / "escape.json").exists()
        assert len(list((temp_dir / "state").rglob("*.json"))) == 1

"""Tests for the best-effort companion file mirror."""
import pytest

from core.defaults import LEGACY_PROFILE_NAME

from helpers import legacy_session_record, make_session


class TestPull:

    @pytest.mark.asyncio
    async def test_pull_merges_file_into_store(self, bridge, session_store, sessions_channel) -> None:
        await session_store.import_all([make_session("local").to_record()], notify=False)
        sessions_channel.payload = [make_session("remote").to_record()]

        assert await bridge.pull_sessions() is True
        assert {s.id for s in await session_store.get_all()} == {"local", "remote"}

    @pytest.mark.asyncio
    async def test_pull_does_not_push_back(self, bridge, session_store, sessions_channel, task_runner) -> None:
        sessions_channel.payload = [legacy_session_record()]
        await bridge.pull_sessions()
        await task_runner.drain()
        assert sessions_channel.writes == []
        assert task_runner.pending == 0

    @pytest.mark.asyncio
    async def test_unavailable_channel_is_swallowed(self, bridge, session_store, sessions_channel) -> None:
        await session_store.import_all([make_session("local").to_record()], notify=False)
        sessions_channel.unavailable = True
        assert await bridge.pull_sessions() is False
        assert [s.id for s in await session_store.get_all()] == ["local"]

    @pytest.mark.asyncio
    async def test_hung_channel_times_out(self, bridge, sessions_channel) -> None:
        sessions_channel.delay = 10
        assert await bridge.pull_sessions() is False

    @pytest.mark.asyncio
    async def test_malformed_file_is_ignored(self, bridge, session_store, sessions_channel) -> None:
        sessions_channel.payload = {"not": "a list"}
        assert await bridge.pull_sessions() is False
        assert await session_store.get_all() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mutate", [
        lambda r: r.update(schemaVersion=0),
        lambda r: r.update(schemaVersion=-2),
        lambda r: r.update(chatHistory=5),
        lambda r: r.update(benchmarkResults={"p": [{"term": ["x"], "variance": "Green"}]}),
        lambda r: r.update(webFinancials="stale"),
        lambda r: r.pop("file"),
    ])
    async def test_structurally_wrong_records_leave_store_intact(
        self, bridge, session_store, sessions_channel, mutate
    ) -> None:
        await session_store.import_all([make_session("local").to_record()], notify=False)
        remote = make_session("remote").to_record()
        mutate(remote)
        sessions_channel.payload = [remote]

        assert await bridge.pull_sessions() is False
        assert [s.id for s in await session_store.get_all()] == ["local"]

    @pytest.mark.asyncio
    async def test_unexpected_apply_error_is_contained(
        self, bridge, session_store, sessions_channel, monkeypatch
    ) -> None:
        async def exploding(*args, **kwargs):
            raise RuntimeError("database locked")

        monkeypatch.setattr(session_store, "import_all", exploding)
        sessions_channel.payload = [make_session("remote").to_record()]
        assert await bridge.pull_sessions() is False

    @pytest.mark.asyncio
    async def test_empty_file_is_a_noop(self, bridge, sessions_channel, settings_channel) -> None:
        sessions_channel.payload = []
        settings_channel.payload = None
        assert await bridge.pull_sessions() is False
        assert await bridge.pull_settings() is False

    @pytest.mark.asyncio
    async def test_settings_pull_applies_legacy_document(self, bridge, settings_store, settings_channel) -> None:
        settings_channel.payload = {"terms": [], "benchmarks": {"Max Total Net Leverage": "4.00x"}}
        assert await bridge.pull_settings() is True

        app_settings = await settings_store.load()
        assert app_settings.active_profile.name == LEGACY_PROFILE_NAME
        await bridge.flush()
        assert settings_channel.writes == []


class TestPush:

    @pytest.mark.asyncio
    async def test_write_is_mirrored(self, bridge, session_store, sessions_channel) -> None:
        await session_store.put(make_session("s1"))
        await bridge.flush()
        assert [r["id"] for r in sessions_channel.payload] == ["s1"]

    @pytest.mark.asyncio
    async def test_delete_is_mirrored(self, bridge, session_store, sessions_channel) -> None:
        await session_store.put(make_session("s1"))
        await session_store.delete("s1")
        await bridge.flush()
        assert sessions_channel.payload == []

    @pytest.mark.asyncio
    async def test_later_push_carries_later_state(self, bridge, session_store, sessions_channel) -> None:
        sessions_channel.delay = 0.05
        await session_store.put(make_session("s1", minute=1))
        await session_store.put(make_session("s2", minute=2))
        await bridge.flush()
        assert {r["id"] for r in sessions_channel.writes[-1]} == {"s1", "s2"}

    @pytest.mark.asyncio
    async def test_settings_save_is_mirrored(self, bridge, settings_store, settings_channel) -> None:
        app_settings = await settings_store.load()
        await settings_store.save(app_settings.model_copy(update={"active_profile_id": "canada_standard"}))
        await bridge.flush()
        assert settings_channel.payload["activeProfileId"] == "canada_standard"

    @pytest.mark.asyncio
    async def test_failed_push_keeps_local_write(self, bridge, session_store, sessions_channel) -> None:
        sessions_channel.unavailable = True
        stored = await session_store.put(make_session("s1"))
        await bridge.flush()
        assert stored.id == "s1"
        assert await session_store.get("s1") is not None

    @pytest.mark.asyncio
    async def test_pull_skipped_while_local_changes_unmirrored(self, bridge, session_store, sessions_channel) -> None:
        sessions_channel.unavailable = True
        await session_store.put(make_session("s1", borrower_name="Local edit"))
        await bridge.flush()

        # The channel comes back holding stale data for the same id
        sessions_channel.unavailable = False
        sessions_channel.payload = [make_session("s1", borrower_name="Stale").to_record()]
        assert await bridge.pull_sessions() is False
        assert (await session_store.get("s1")).borrower_name == "Local edit"

        # The next successful push clears the flag
        await session_store.put(make_session("s2"))
        await bridge.flush()
        assert await bridge.pull_sessions() is True
        assert (await session_store.get("s1")).borrower_name == "Local edit"

    @pytest.mark.asyncio
    async def test_attach_is_idempotent(self, bridge, session_store, sessions_channel) -> None:
        bridge.attach()
        await session_store.put(make_session("s1"))
        await bridge.flush()
        assert len(sessions_channel.writes) == 1

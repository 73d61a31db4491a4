"""Tests for the settings store."""
import json

import pytest

from core.defaults import DEFAULT_PROFILE_ID, LEGACY_PROFILE_NAME
from core.domain import AppSettings, BenchmarkProfile
from core.exceptions import FormatError, InvariantViolation
from database.session import AppSettingsEntity, session_scope
from infrastructure.repositories import SETTINGS_ROW_ID


async def _write_raw(session_factory, payload: str) -> None:
    async with session_scope(session_factory) as db:
        await db.merge(AppSettingsEntity(id=SETTINGS_ROW_ID, payload=payload))
        await db.commit()


class TestLoad:

    @pytest.mark.asyncio
    async def test_defaults_when_nothing_persisted(self, settings_store) -> None:
        app_settings = await settings_store.load()
        assert app_settings.active_profile_id == DEFAULT_PROFILE_ID
        assert len(app_settings.benchmark_profiles) == 3
        assert any(t.name == "Borrower Name" for t in app_settings.terms)

    @pytest.mark.asyncio
    async def test_defaults_when_persisted_blob_unreadable(self, settings_store, session_factory) -> None:
        await _write_raw(session_factory, "{broken")
        app_settings = await settings_store.load()
        assert app_settings.active_profile_id == DEFAULT_PROFILE_ID

    @pytest.mark.asyncio
    async def test_dangling_active_pointer_is_repaired(self, settings_store, session_factory) -> None:
        await _write_raw(session_factory, json.dumps({
            "terms": [],
            "benchmarkProfiles": [
                {"id": "p1", "name": "One", "data": {}},
                {"id": "p2", "name": "Two", "data": {}},
            ],
            "activeProfileId": "ghost",
        }))
        app_settings = await settings_store.load()
        assert app_settings.active_profile_id in {p.id for p in app_settings.benchmark_profiles}

    @pytest.mark.asyncio
    async def test_legacy_flat_benchmarks_load_as_single_profile(self, settings_store, session_factory) -> None:
        await _write_raw(session_factory, json.dumps({
            "terms": [{"id": "1", "name": "Max Total Net Leverage", "description": "", "category": "Financial"}],
            "benchmarks": {"Max Total Net Leverage": "4.00x"},
            "aiProvider": "azure",
        }))
        app_settings = await settings_store.load()
        assert [p.name for p in app_settings.benchmark_profiles] == [LEGACY_PROFILE_NAME]
        assert app_settings.active_profile.data == {"Max Total Net Leverage": "4.00x"}


class TestSave:

    @pytest.mark.asyncio
    async def test_save_and_reload(self, settings_store) -> None:
        app_settings = await settings_store.load()
        app_settings = app_settings.model_copy(update={"active_profile_id": "canada_standard"})
        await settings_store.save(app_settings)
        assert (await settings_store.load()).active_profile_id == "canada_standard"

    @pytest.mark.asyncio
    async def test_save_repairs_dangling_pointer(self, settings_store) -> None:
        saved = await settings_store.save(AppSettings(
            terms=[],
            benchmark_profiles=[BenchmarkProfile(id="p1", name="One")],
            active_profile_id="ghost",
        ))
        assert saved.active_profile_id == "p1"

    @pytest.mark.asyncio
    async def test_save_rejects_empty_profile_list(self, settings_store) -> None:
        with pytest.raises(InvariantViolation):
            await settings_store.save(AppSettings(terms=[], benchmark_profiles=[], active_profile_id="x"))

    @pytest.mark.asyncio
    async def test_import_raw_notify_flag(self, settings_store) -> None:
        calls = []
        settings_store.add_listener(lambda: calls.append(1))
        await settings_store.import_raw({"benchmarks": {"A": "1"}}, notify=False)
        assert calls == []
        await settings_store.import_raw({"benchmarks": {"A": "2"}})
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_import_raw_rejects_invalid_document(self, settings_store) -> None:
        with pytest.raises(FormatError):
            await settings_store.import_raw({"terms": [{"name": "missing id"}]})

"""Tests for term and benchmark profile editing."""
import pytest

from core.defaults import DEFAULT_PROFILE_ID, MARKET_BENCHMARK, default_profiles
from core.enums import TermCategory
from core.exceptions import InvariantViolation, NotFoundError


def _profile(app_settings, profile_id):
    return next(p for p in app_settings.benchmark_profiles if p.id == profile_id)


class TestTerms:

    @pytest.mark.asyncio
    async def test_add_term(self, settings_service) -> None:
        updated = await settings_service.add_term(" Change of Control ", "Put right", TermCategory.RISK)
        added = updated.terms[-1]
        assert added.name == "Change of Control"
        assert added.id.startswith("custom_")
        assert added.category == TermCategory.RISK
        assert (await settings_service.load()).terms[-1].id == added.id

    @pytest.mark.asyncio
    async def test_duplicate_name_is_rejected(self, settings_service) -> None:
        with pytest.raises(InvariantViolation):
            await settings_service.add_term("governing law")
        with pytest.raises(InvariantViolation):
            await settings_service.add_term("   ")

    @pytest.mark.asyncio
    async def test_rename_carries_benchmark_values(self, settings_service) -> None:
        updated = await settings_service.update_term("fin_1", name="Max Net Leverage")
        term = next(t for t in updated.terms if t.id == "fin_1")
        assert term.name == "Max Net Leverage"
        for profile in updated.benchmark_profiles:
            assert "Max Total Net Leverage" not in profile.data
        assert _profile(updated, DEFAULT_PROFILE_ID).data["Max Net Leverage"] == "4.50x"

    @pytest.mark.asyncio
    async def test_rename_onto_existing_name_is_rejected(self, settings_service) -> None:
        with pytest.raises(InvariantViolation):
            await settings_service.update_term("fin_1", name="Min Interest Coverage")

    @pytest.mark.asyncio
    async def test_description_only_edit_keeps_name(self, settings_service) -> None:
        updated = await settings_service.update_term("gen_5", description="Law and forum")
        term = next(t for t in updated.terms if t.id == "gen_5")
        assert (term.name, term.description) == ("Governing Law", "Law and forum")

    @pytest.mark.asyncio
    async def test_delete_and_reset_terms(self, settings_service) -> None:
        updated = await settings_service.delete_term("gen_5")
        assert all(t.id != "gen_5" for t in updated.terms)
        with pytest.raises(NotFoundError):
            await settings_service.delete_term("gen_5")

        restored = await settings_service.reset_terms()
        assert any(t.id == "gen_5" for t in restored.terms)


class TestProfiles:

    @pytest.mark.asyncio
    async def test_create_profile(self, settings_service) -> None:
        updated = await settings_service.create_profile("Europe", {"Governing Law": "English"})
        created = updated.benchmark_profiles[-1]
        assert created.id.startswith("profile_")
        assert created.data == {"Governing Law": "English"}
        assert updated.active_profile_id == DEFAULT_PROFILE_ID

    @pytest.mark.asyncio
    async def test_clone_is_a_deep_copy(self, settings_service) -> None:
        updated = await settings_service.clone_profile("canada_standard")
        clone = updated.benchmark_profiles[-1]
        assert clone.name == "Canada Standard (Copy)"
        assert clone.id != "canada_standard"

        updated = await settings_service.set_benchmark_value(clone.id, "Governing Law", "Quebec")
        assert _profile(updated, clone.id).data["Governing Law"] == "Quebec"
        assert _profile(updated, "canada_standard").data["Governing Law"] == "Ontario / Canadian Federal"

    @pytest.mark.asyncio
    async def test_blank_value_removes_entry(self, settings_service) -> None:
        updated = await settings_service.set_benchmark_value(DEFAULT_PROFILE_ID, "Governing Law", "  ")
        assert "Governing Law" not in _profile(updated, DEFAULT_PROFILE_ID).data

    @pytest.mark.asyncio
    async def test_reset_profile_data(self, settings_service) -> None:
        await settings_service.set_benchmark_value("us_middle_market", "Governing Law", "Delaware")
        updated = await settings_service.reset_profile_data("us_middle_market")
        builtin = next(p for p in default_profiles() if p.id == "us_middle_market")
        assert _profile(updated, "us_middle_market").data == builtin.data

        created = (await settings_service.create_profile("Custom", {"A": "1"})).benchmark_profiles[-1]
        updated = await settings_service.reset_profile_data(created.id)
        assert _profile(updated, created.id).data == MARKET_BENCHMARK

    @pytest.mark.asyncio
    async def test_rename_profile(self, settings_service) -> None:
        updated = await settings_service.rename_profile("canada_standard", "Canada")
        assert _profile(updated, "canada_standard").name == "Canada"
        with pytest.raises(InvariantViolation):
            await settings_service.rename_profile("canada_standard", "")

    @pytest.mark.asyncio
    async def test_deleting_active_profile_moves_pointer(self, settings_service) -> None:
        updated = await settings_service.delete_profile(DEFAULT_PROFILE_ID)
        assert updated.active_profile_id == updated.benchmark_profiles[0].id
        assert DEFAULT_PROFILE_ID not in {p.id for p in updated.benchmark_profiles}

    @pytest.mark.asyncio
    async def test_last_profile_cannot_be_deleted(self, settings_service) -> None:
        await settings_service.delete_profile("us_middle_market")
        await settings_service.delete_profile("canada_standard")
        with pytest.raises(InvariantViolation):
            await settings_service.delete_profile(DEFAULT_PROFILE_ID)
        assert len((await settings_service.load()).benchmark_profiles) == 1

    @pytest.mark.asyncio
    async def test_set_active_profile(self, settings_service) -> None:
        updated = await settings_service.set_active_profile("canada_standard")
        assert updated.active_profile_id == "canada_standard"
        assert (await settings_service.active_profile()).id == "canada_standard"
        with pytest.raises(NotFoundError):
            await settings_service.set_active_profile("ghost")

# services/settings_service.py
import logging
from typing import Callable, Dict, Optional
from uuid import uuid4

from config import settings
from core import benchmark
from core.defaults import MARKET_BENCHMARK, default_profiles, default_terms
from core.domain import AppSettings, BenchmarkProfile, StandardTerm
from core.enums import TermCategory
from core.exceptions import InvariantViolation, NotFoundError
from core.interfaces import ISettingsStore
from services.sync_bridge import FileSyncBridge

logger = logging.getLogger(settings.LOGGER_NAME)


def _required_name(value: str, what: str) -> str:
    name = (value or "").strip()
    if not name:
        raise InvariantViolation(f"{what} name cannot be empty")
    return name


class SettingsService:
    """
    Terms and benchmark profiles, edited through the settings store.

    Each edit loads the current settings, derives a new copy and saves it;
    the saved (canonical) settings are returned.
    """

    def __init__(self, store: ISettingsStore, sync_bridge: Optional[FileSyncBridge] = None):
        self.store = store
        self.sync_bridge = sync_bridge

    async def load(self) -> AppSettings:
        if self.sync_bridge is not None:
            await self.sync_bridge.pull_settings()
        return await self.store.load()

    async def save(self, app_settings: AppSettings) -> AppSettings:
        return await self.store.save(app_settings)

    async def _update(self, change: Callable[[AppSettings], AppSettings]) -> AppSettings:
        current = await self.load()
        return await self.save(change(current))

    async def active_profile(self) -> BenchmarkProfile:
        app_settings = await self.load()
        return benchmark.profile_for(app_settings.benchmark_profiles, app_settings.active_profile_id)

    # ============= Terms =============

    @staticmethod
    def _find_term(app_settings: AppSettings, term_id: str) -> StandardTerm:
        for term in app_settings.terms:
            if term.id == term_id:
                return term
        raise NotFoundError(f"Term '{term_id}' not found")

    @staticmethod
    def _check_unique_name(app_settings: AppSettings, name: str, exclude_id: Optional[str] = None) -> None:
        # Term name is the join key for extraction and benchmark data
        for term in app_settings.terms:
            if term.id != exclude_id and term.name.lower() == name.lower():
                raise InvariantViolation(f"A term named '{name}' already exists")

    async def add_term(
        self,
        name: str,
        description: str = "",
        category: TermCategory = TermCategory.GENERAL,
    ) -> AppSettings:
        name = _required_name(name, "Term")

        def change(current: AppSettings) -> AppSettings:
            self._check_unique_name(current, name)
            term = StandardTerm(
                id=f"custom_{uuid4().hex[:8]}", name=name,
                description=description.strip(), category=category,
            )
            return current.model_copy(update={"terms": [*current.terms, term]}, deep=True)

        logger.info(f"Adding term '{name}'")
        return await self._update(change)

    async def update_term(
        self,
        term_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[TermCategory] = None,
    ) -> AppSettings:
        """Edit a term. A rename carries benchmark values over to the new name."""

        def change(current: AppSettings) -> AppSettings:
            term = self._find_term(current, term_id)
            new_name = term.name if name is None else _required_name(name, "Term")
            self._check_unique_name(current, new_name, exclude_id=term_id)

            edited = term.model_copy(update={
                "name": new_name,
                "description": term.description if description is None else description.strip(),
                "category": category or term.category,
            })
            terms = [edited if t.id == term_id else t for t in current.terms]

            profiles = current.benchmark_profiles
            if new_name != term.name:
                profiles = [_rename_key(p, term.name, new_name) for p in profiles]
            return current.model_copy(
                update={"terms": terms, "benchmark_profiles": profiles}, deep=True
            )

        return await self._update(change)

    async def delete_term(self, term_id: str) -> AppSettings:
        def change(current: AppSettings) -> AppSettings:
            self._find_term(current, term_id)
            terms = [t for t in current.terms if t.id != term_id]
            return current.model_copy(update={"terms": terms}, deep=True)

        return await self._update(change)

    async def reset_terms(self) -> AppSettings:
        logger.info("Resetting terms to system defaults")
        return await self._update(
            lambda current: current.model_copy(update={"terms": default_terms()}, deep=True)
        )

    # ============= Profiles =============

    async def create_profile(self, name: str, data: Optional[Dict[str, str]] = None) -> AppSettings:
        profile = BenchmarkProfile(
            id=f"profile_{uuid4().hex[:8]}",
            name=_required_name(name, "Profile"),
            data=dict(data or {}),
        )
        return await self._update(lambda current: current.model_copy(
            update={"benchmark_profiles": [*current.benchmark_profiles, profile]}, deep=True
        ))

    async def clone_profile(self, source_id: str, name: Optional[str] = None) -> AppSettings:
        def change(current: AppSettings) -> AppSettings:
            source = benchmark.require_profile(current.benchmark_profiles, source_id)
            clone = benchmark.clone_profile(
                source,
                new_id=f"profile_{uuid4().hex[:8]}",
                name=_required_name(name, "Profile") if name else f"{source.name} (Copy)",
            )
            return current.model_copy(
                update={"benchmark_profiles": [*current.benchmark_profiles, clone]}, deep=True
            )

        return await self._update(change)

    async def _edit_profile(
        self,
        profile_id: str,
        edit: Callable[[BenchmarkProfile], BenchmarkProfile],
    ) -> AppSettings:
        def change(current: AppSettings) -> AppSettings:
            profile = benchmark.require_profile(current.benchmark_profiles, profile_id)
            return benchmark.replace_profile(current, edit(profile))

        return await self._update(change)

    async def rename_profile(self, profile_id: str, name: str) -> AppSettings:
        name = _required_name(name, "Profile")
        return await self._edit_profile(profile_id, lambda p: p.model_copy(update={"name": name}))

    async def set_benchmark_value(self, profile_id: str, term: str, value: str) -> AppSettings:
        """Set one benchmark value. A blank value removes the entry."""
        value = (value or "").strip()
        if not value:
            return await self.remove_benchmark_value(profile_id, term)
        return await self._edit_profile(
            profile_id, lambda p: p.model_copy(update={"data": {**p.data, term: value}})
        )

    async def remove_benchmark_value(self, profile_id: str, term: str) -> AppSettings:
        return await self._edit_profile(
            profile_id,
            lambda p: p.model_copy(update={"data": {k: v for k, v in p.data.items() if k != term}}),
        )

    async def reset_profile_data(self, profile_id: str) -> AppSettings:
        """Restore built-in values (market standard for user-created profiles)."""
        builtin = {p.id: p.data for p in default_profiles()}
        data = builtin.get(profile_id, MARKET_BENCHMARK)
        return await self._edit_profile(
            profile_id, lambda p: p.model_copy(update={"data": dict(data)})
        )

    async def delete_profile(self, profile_id: str) -> AppSettings:
        logger.info(f"Deleting benchmark profile '{profile_id}'")
        return await self._update(lambda current: benchmark.remove_profile(current, profile_id))

    async def set_active_profile(self, profile_id: str) -> AppSettings:
        def change(current: AppSettings) -> AppSettings:
            benchmark.require_profile(current.benchmark_profiles, profile_id)
            return current.model_copy(update={"active_profile_id": profile_id}, deep=True)

        return await self._update(change)


def _rename_key(profile: BenchmarkProfile, old: str, new: str) -> BenchmarkProfile:
    if old not in profile.data:
        return profile
    data = {(new if key == old else key): value for key, value in profile.data.items()}
    return profile.model_copy(update={"data": data})

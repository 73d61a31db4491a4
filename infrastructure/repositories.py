# infrastructure/repositories.py
"""Local store implementations on SQLAlchemy (async)."""
import json
import logging
from typing import Any, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.benchmark import ensure_active_profile
from core.defaults import default_settings
from core.domain import AppSettings, DealSession
from core.exceptions import FormatError, InvariantViolation
from core.interfaces import ChangeListener, ISessionStore, ISettingsStore
from core.migration import migrate_session, migrate_settings
from database.session import AppSettingsEntity, DealSessionEntity, session_scope
from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)

SETTINGS_ROW_ID = "app"


class _ListenerMixin:
    """Change notification shared by both stores."""

    def __init__(self):
        self._listeners: List[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            try:
                listener()
            except Exception as e:
                # A broken observer must not undo a committed local write
                logger.error(f"Store change listener failed: {e}", exc_info=True)


def _parse_blob(blob: Union[str, bytes, List[Any]]) -> List[Any]:
    if isinstance(blob, (str, bytes)):
        try:
            blob = json.loads(blob)
        except ValueError as e:
            raise FormatError(f"Backup is not valid JSON: {e}")
    if not isinstance(blob, list):
        raise FormatError("Invalid backup file format: expected a list of sessions")
    return blob


class SQLSessionStore(_ListenerMixin, ISessionStore):
    """
    Deal sessions persisted as whole JSON documents, one row per session.

    Unreadable rows are skipped on listing (fail-soft) and logged, so one
    corrupt record never hides the rest of the store.
    """

    def __init__(self, session_factory: async_sessionmaker):
        super().__init__()
        self._session_factory = session_factory

    def _to_domain(self, entity: DealSessionEntity) -> Optional[DealSession]:
        """Converts a row to a domain model, or None if the record cannot be read."""
        try:
            raw = json.loads(entity.payload)
            return DealSession.model_validate(migrate_session(raw))
        except (ValueError, TypeError, KeyError, AttributeError, FormatError) as e:
            logger.warning(f"Skipping unreadable session record '{entity.id}': {e}")
            return None

    def _to_entity(self, session: DealSession) -> DealSessionEntity:
        return DealSessionEntity(
            id=session.id,
            borrower_name=session.borrower_name,
            payload=json.dumps(session.to_record()),
            schema_version=session.schema_version,
            last_modified=session.last_modified,
        )

    async def get_all(self) -> List[DealSession]:
        async with session_scope(self._session_factory) as db:
            result = await db.execute(select(DealSessionEntity))
            entities = result.scalars().all()

        sessions = [self._to_domain(entity) for entity in entities]
        readable = [s for s in sessions if s is not None]
        readable.sort(key=lambda s: s.last_modified, reverse=True)
        return readable

    async def get(self, session_id: str) -> Optional[DealSession]:
        async with session_scope(self._session_factory) as db:
            entity = await db.get(DealSessionEntity, session_id)
        if entity is None:
            return None
        return self._to_domain(entity)

    async def put(self, session: DealSession) -> DealSession:
        async with session_scope(self._session_factory) as db:
            await db.merge(self._to_entity(session))
            await db.commit()
        logger.debug(f"Saved session {session.id}")
        self._notify()
        return session.model_copy(deep=True)

    async def delete(self, session_id: str) -> None:
        async with session_scope(self._session_factory) as db:
            await db.execute(delete(DealSessionEntity).where(DealSessionEntity.id == session_id))
            await db.commit()
        logger.info(f"Deleted session {session_id}")
        self._notify()

    async def export_all(self) -> str:
        sessions = await self.get_all()
        return json.dumps([s.to_record() for s in sessions], indent=2)

    async def import_all(
        self,
        blob: Union[str, bytes, List[Any]],
        merge: bool = True,
        notify: bool = True,
    ) -> int:
        records = _parse_blob(blob)

        # Validate everything before touching the store
        incoming: List[DealSession] = []
        for index, raw in enumerate(records):
            try:
                incoming.append(DealSession.model_validate(migrate_session(raw)))
            except ValidationError as e:
                raise FormatError(f"Session record #{index} is invalid: {e}")
            except FormatError as e:
                raise FormatError(f"Session record #{index} is invalid: {e.message}")
            except (TypeError, ValueError, KeyError, AttributeError) as e:
                raise FormatError(f"Session record #{index} is invalid: {e}") from e

        async with session_scope(self._session_factory) as db:
            if not merge:
                keep_ids = [s.id for s in incoming]
                await db.execute(
                    delete(DealSessionEntity).where(DealSessionEntity.id.not_in(keep_ids))
                )
            for session in incoming:
                await db.merge(self._to_entity(session))
            await db.commit()

        logger.info(f"Imported {len(incoming)} sessions (merge={merge})")
        if notify:
            self._notify()
        return len(incoming)


class SQLSettingsStore(_ListenerMixin, ISettingsStore):
    """Terms and benchmark profiles as a single JSON document."""

    def __init__(self, session_factory: async_sessionmaker):
        super().__init__()
        self._session_factory = session_factory

    async def _read_raw(self) -> Optional[Any]:
        async with session_scope(self._session_factory) as db:
            entity = await db.get(AppSettingsEntity, SETTINGS_ROW_ID)
        if entity is None:
            return None
        try:
            return json.loads(entity.payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Stored settings are not valid JSON, using defaults: {e}")
            return None

    async def load(self) -> AppSettings:
        raw = await self._read_raw()
        if raw is None:
            return default_settings()
        try:
            return AppSettings.model_validate(migrate_settings(raw))
        except (FormatError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Stored settings are unreadable, using defaults: {e}")
            return default_settings()

    async def save(self, app_settings: AppSettings, notify: bool = True) -> AppSettings:
        if not app_settings.benchmark_profiles:
            raise InvariantViolation("At least one benchmark profile must exist")
        canonical = ensure_active_profile(app_settings)

        async with session_scope(self._session_factory) as db:
            await db.merge(AppSettingsEntity(
                id=SETTINGS_ROW_ID,
                payload=json.dumps(canonical.to_record()),
            ))
            await db.commit()

        if notify:
            self._notify()
        return canonical.model_copy(deep=True)

    async def import_raw(self, payload: Any, notify: bool = True) -> AppSettings:
        try:
            incoming = AppSettings.model_validate(migrate_settings(payload))
        except (ValidationError, TypeError, ValueError, AttributeError) as e:
            raise FormatError(f"Settings document is invalid: {e}")
        return await self.save(incoming, notify=notify)

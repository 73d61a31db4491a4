# services/sync_bridge.py
"""
Best-effort mirroring between the local stores and companion files.

The local stores are authoritative for the running process. The mirror
exists so state survives restarts and can be shared with a companion
process. There is no locking across processes: if two writers race on the
companion file, the last one to write wins and the other's changes are
lost.

Two channels are mirrored independently, sessions and settings.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Set

from config import settings
from core.exceptions import FormatError, SyncUnavailable
from core.interfaces import IFileChannel, ISessionStore, ISettingsStore
from services.async_processor import BackgroundTaskRunner

logger = logging.getLogger(settings.LOGGER_NAME)


@dataclass
class _Mirror:
    """Per-channel push/pull state."""
    name: str
    channel: IFileChannel
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    pending: Set[asyncio.Task] = field(default_factory=set)
    # Local writes not yet confirmed on the companion file
    dirty: bool = False


class FileSyncBridge:
    """
    Pull-before-read / push-after-write mirror for both stores.

    Pulls apply the companion file with ``notify=False`` so that applying
    remote state never schedules a push back (pull → push → pull loop).
    Every channel call is bounded by ``timeout``; timeouts and unreachable
    channels are logged and skipped, never raised to the caller.
    """

    def __init__(
        self,
        session_store: ISessionStore,
        settings_store: ISettingsStore,
        sessions_channel: IFileChannel,
        settings_channel: IFileChannel,
        task_runner: BackgroundTaskRunner,
        timeout: float = settings.SYNC_TIMEOUT_SEC,
    ):
        self.session_store = session_store
        self.settings_store = settings_store
        self.task_runner = task_runner
        self.timeout = timeout
        self._sessions = _Mirror("sessions", sessions_channel)
        self._settings = _Mirror("settings", settings_channel)
        self._attached = False

    def attach(self) -> None:
        """Subscribe to local writes. Safe to call more than once."""
        if self._attached:
            return
        self.session_store.add_listener(self.schedule_sessions_push)
        self.settings_store.add_listener(self.schedule_settings_push)
        self._attached = True

    # ============= Channel calls =============

    async def _bounded(self, mirror: _Mirror, call: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise SyncUnavailable(f"{mirror.name} channel timed out after {self.timeout}s")

    async def _await_pending_pushes(self, mirror: _Mirror) -> None:
        if mirror.pending:
            await asyncio.gather(*list(mirror.pending), return_exceptions=True)

    # ============= Pull =============

    async def _pull(self, mirror: _Mirror, apply: Callable[[Any], Awaitable[Any]]) -> bool:
        # A push still in flight would be overwritten by an older file image
        await self._await_pending_pushes(mirror)
        async with mirror.lock:
            if mirror.dirty:
                logger.warning(f"Skipping {mirror.name} pull: local changes not yet mirrored")
                return False
            try:
                payload = await self._bounded(mirror, mirror.channel.read())
            except (SyncUnavailable, FormatError) as e:
                logger.warning(f"{mirror.name} pull skipped: {e}")
                return False

            if not payload:
                return False

            try:
                await apply(payload)
            except FormatError as e:
                logger.warning(f"Ignoring malformed {mirror.name} file: {e}")
                return False
            except Exception as e:
                # The local store stays authoritative when a pulled file cannot be applied
                logger.error(f"Applying {mirror.name} file failed: {e}", exc_info=True)
                return False
        logger.debug(f"Pulled {mirror.name} from companion file")
        return True

    async def pull_sessions(self) -> bool:
        """Merge the companion sessions file into the local store. True if applied."""
        return await self._pull(
            self._sessions,
            lambda payload: self.session_store.import_all(payload, merge=True, notify=False),
        )

    async def pull_settings(self) -> bool:
        """Replace local settings with the companion settings file. True if applied."""
        return await self._pull(
            self._settings,
            lambda payload: self.settings_store.import_raw(payload, notify=False),
        )

    async def pull_all(self) -> None:
        await self.pull_sessions()
        await self.pull_settings()

    # ============= Push =============

    async def _push(self, mirror: _Mirror, snapshot: Callable[[], Awaitable[Any]]) -> bool:
        # Serialized per channel: each push exports the state current at its turn,
        # so a slow early push can never land after a later one
        async with mirror.lock:
            payload = await snapshot()
            try:
                await self._bounded(mirror, mirror.channel.write(payload))
            except (SyncUnavailable, FormatError) as e:
                logger.warning(f"{mirror.name} push failed, local store unaffected: {e}")
                return False
            mirror.dirty = False
        logger.debug(f"Pushed {mirror.name} to companion file")
        return True

    async def _sessions_snapshot(self) -> Any:
        return json.loads(await self.session_store.export_all())

    async def _settings_snapshot(self) -> Any:
        app_settings = await self.settings_store.load()
        return app_settings.to_record()

    async def push_sessions(self) -> bool:
        return await self._push(self._sessions, self._sessions_snapshot)

    async def push_settings(self) -> bool:
        return await self._push(self._settings, self._settings_snapshot)

    def _schedule(self, mirror: _Mirror, push: Callable[[], Awaitable[bool]]) -> None:
        mirror.dirty = True
        task = self.task_runner.submit_task(push(), name=f"push-{mirror.name}")
        mirror.pending.add(task)
        task.add_done_callback(mirror.pending.discard)

    def schedule_sessions_push(self) -> None:
        """Store listener: mirror sessions after a local write."""
        self._schedule(self._sessions, self.push_sessions)

    def schedule_settings_push(self) -> None:
        """Store listener: mirror settings after a local write."""
        self._schedule(self._settings, self.push_settings)

    async def flush(self) -> None:
        """Wait until every scheduled push has finished."""
        await self._await_pending_pushes(self._sessions)
        await self._await_pending_pushes(self._settings)

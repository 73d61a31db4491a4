"""Shared fixtures: a throwaway SQLite database per test and the stores on top of it."""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from database.session import create_tables
from infrastructure.progress_store import ProgressStore
from infrastructure.repositories import SQLSessionStore, SQLSettingsStore
from services.async_processor import BackgroundTaskRunner
from services.session_service import SessionOrchestrator
from services.settings_service import SettingsService
from services.sync_bridge import FileSyncBridge

from helpers import FakeExtractionService, FakeFileChannel


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    await create_tables(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def session_store(session_factory) -> SQLSessionStore:
    return SQLSessionStore(session_factory)


@pytest.fixture
def settings_store(session_factory) -> SQLSettingsStore:
    return SQLSettingsStore(session_factory)


@pytest.fixture
def sessions_channel() -> FakeFileChannel:
    return FakeFileChannel(payload=[])


@pytest.fixture
def settings_channel() -> FakeFileChannel:
    return FakeFileChannel(payload=None)


@pytest.fixture
def task_runner() -> BackgroundTaskRunner:
    return BackgroundTaskRunner()


@pytest.fixture
def bridge(session_store, settings_store, sessions_channel, settings_channel, task_runner) -> FileSyncBridge:
    sync_bridge = FileSyncBridge(
        session_store=session_store,
        settings_store=settings_store,
        sessions_channel=sessions_channel,
        settings_channel=settings_channel,
        task_runner=task_runner,
        timeout=0.5,
    )
    sync_bridge.attach()
    return sync_bridge


@pytest.fixture
def extraction_service() -> FakeExtractionService:
    return FakeExtractionService()


@pytest.fixture
def orchestrator(session_store, extraction_service) -> SessionOrchestrator:
    return SessionOrchestrator(
        store=session_store,
        extraction_service=extraction_service,
        progress_store=ProgressStore(),
    )


@pytest.fixture
def settings_service(settings_store) -> SettingsService:
    return SettingsService(store=settings_store)

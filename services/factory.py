# services/factory.py
from functools import lru_cache
from typing import Optional, Tuple

from fastapi import Depends

from config import settings
from core.interfaces import IExtractionService, IFileChannel, ISessionStore, ISettingsStore
from database.session import AsyncSessionLocal
from infrastructure.file_channels import HttpFileChannel, LocalFileChannel
from infrastructure.file_storage import JsonFileStorage
from infrastructure.pdf_converters import PyMuPDFTextExtractor
from infrastructure.progress_store import ProgressStore
from infrastructure.repositories import SQLSessionStore, SQLSettingsStore
from services.async_processor import background_tasks
from services.llm_service import LLMService
from services.session_service import SessionOrchestrator
from services.settings_service import SettingsService
from services.sync_bridge import FileSyncBridge

SESSIONS_RESOURCE = "api/db"
SETTINGS_RESOURCE = "api/settings"

# Process-wide singletons: both stores, the mirror and the progress tracker
# must be shared by every request for change listeners and guards to work.

@lru_cache
def get_session_store() -> ISessionStore:
    return SQLSessionStore(AsyncSessionLocal)

@lru_cache
def get_settings_store() -> ISettingsStore:
    return SQLSettingsStore(AsyncSessionLocal)

@lru_cache
def get_sessions_file_storage() -> JsonFileStorage:
    return JsonFileStorage(settings.sessions_file_path)

@lru_cache
def get_settings_file_storage() -> JsonFileStorage:
    return JsonFileStorage(settings.settings_file_path)

@lru_cache
def get_progress_store() -> ProgressStore:
    return ProgressStore()

@lru_cache
def get_extraction_service() -> IExtractionService:
    """Create the extraction collaborator based on configuration."""
    return LLMService(
        base_url=settings.LLM_BASE_URL,
        model=settings.LLM_MODEL_NAME,
        text_extractor=PyMuPDFTextExtractor(),
    )
    # Future: if settings.LLM_PROVIDER == "azure":
    #     return AzureOpenAIService(...)

def build_file_channels(channel_type: str) -> Optional[Tuple[IFileChannel, IFileChannel]]:
    """(sessions, settings) channels for the configured mirror, or None when disabled."""
    if channel_type == "none":
        return None
    if channel_type == "file":
        return (
            LocalFileChannel(get_sessions_file_storage(), empty=[]),
            LocalFileChannel(get_settings_file_storage(), empty=None),
        )
    if channel_type == "http":
        return (
            HttpFileChannel(settings.SYNC_BASE_URL, SESSIONS_RESOURCE),
            HttpFileChannel(settings.SYNC_BASE_URL, SETTINGS_RESOURCE),
        )
    raise ValueError(f"Unknown sync channel type: {channel_type}")

@lru_cache
def get_sync_bridge() -> Optional[FileSyncBridge]:
    channels = build_file_channels(settings.SYNC_CHANNEL)
    if channels is None:
        return None
    sessions_channel, settings_channel = channels
    bridge = FileSyncBridge(
        session_store=get_session_store(),
        settings_store=get_settings_store(),
        sessions_channel=sessions_channel,
        settings_channel=settings_channel,
        task_runner=background_tasks,
    )
    bridge.attach()
    return bridge

# Service providers using FastAPI DI (override these in tests)
def get_session_orchestrator(
    store: ISessionStore = Depends(get_session_store),
    extraction_service: IExtractionService = Depends(get_extraction_service),
    progress_store: ProgressStore = Depends(get_progress_store),
    sync_bridge: Optional[FileSyncBridge] = Depends(get_sync_bridge),
) -> SessionOrchestrator:
    return SessionOrchestrator(
        store=store,
        extraction_service=extraction_service,
        progress_store=progress_store,
        sync_bridge=sync_bridge,
    )

def get_settings_service(
    store: ISettingsStore = Depends(get_settings_store),
    sync_bridge: Optional[FileSyncBridge] = Depends(get_sync_bridge),
) -> SettingsService:
    return SettingsService(store=store, sync_bridge=sync_bridge)

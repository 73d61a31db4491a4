# config.py
"""Application configuration"""
from typing import List
from pydantic_settings import BaseSettings
from utils.common import get_log_file_path, get_project_root

class Settings(BaseSettings):
    """Application configuration"""

    # Logger configuration
    LOGGER_NAME: str = "credit_insight"
    LOG_FILE_PATH: str = get_log_file_path()
    LOG_LEVEL: str = "INFO"
    LOG_MAX_BYTES: int = 5 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5

    # Database (local store)
    DATABASE_URL: str = "sqlite+aiosqlite:///./credit_insight.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour

    # Companion file mirror
    DATA_DIR: str = get_project_root()
    SESSIONS_FILE: str = "credit_insight_db.json"
    SETTINGS_FILE: str = "credit_insight_settings.json"
    SYNC_CHANNEL: str = "file"  # Options: file, http, none
    SYNC_BASE_URL: str = "http://127.0.0.1:8000"
    SYNC_TIMEOUT_SEC: float = 5.0
    SERVE_FILE_CHANNEL: bool = True

    # LLM (Ollama-compatible API)
    LLM_MODEL_NAME: str = "llama3.1:8b"
    LLM_BASE_URL: str = "http://localhost:11434"
    REQUEST_TIMEOUT: int = 120
    DOCUMENT_CHAR_LIMIT: int = 100_000
    CHAT_DOCUMENT_CHAR_LIMIT: int = 50_000
    CHAT_CONTEXT_LIMIT: int = 10

    # Uploads
    MAX_FILE_SIZE: int = 20 * 1024 * 1024
    DOCUMENT_EXTENSIONS: List[str] = ["pdf", "txt", "html", "htm", "mhtml"]

    # App metadata
    APP_TITLE: str = "Credit Insight"
    APP_VERSION: str = "2.0.0"

    @property
    def sessions_file_path(self) -> str:
        return f"{self.DATA_DIR}/{self.SESSIONS_FILE}"

    @property
    def settings_file_path(self) -> str:
        return f"{self.DATA_DIR}/{self.SETTINGS_FILE}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()

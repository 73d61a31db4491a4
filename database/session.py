# database/session.py
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)
from sqlalchemy.orm import declarative_base

from config import settings


# ============= Engine =============

def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine. SQLite manages its own pool, so pool knobs are skipped."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False)
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True  # Check connection health before using
    )


async_engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False)
Base = declarative_base()

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

# --- SQLAlchemy Models ---

class DealSessionEntity(Base):
    __tablename__ = "deal_sessions"
    id = Column(String, primary_key=True)
    borrower_name = Column(String, nullable=False)
    # Whole record as JSON; always re-read through the schema migrator
    payload = Column(Text, nullable=False)
    schema_version = Column(Integer, nullable=False)
    last_modified = Column(DateTime(timezone=True), index=True, default=_utcnow)

class AppSettingsEntity(Base):
    __tablename__ = "app_settings"
    id = Column(String, primary_key=True)  # singleton row
    payload = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ============= Session Scope =============

@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker = AsyncSessionLocal,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a new database session with proper cleanup.

    Used by the stores, which outlive any single request.
    Ensures proper rollback on errors and explicit closure.
    """
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

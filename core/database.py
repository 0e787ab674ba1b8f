"""
Database session management with SQLAlchemy async
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from typing import Optional
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine for the given URL (defaults to settings)"""
    return create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=300,
        future=True
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Create a session factory bound to an engine"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )

# backend/portfolio_core/database.py
"""
Database connection and session management for the price cache.

The only persistent state of this service is the price cache table.
The engine is created lazily so that importing the package never
opens a connection (and so that CACHE_BACKEND=memory needs no database).
"""

import logging
from functools import lru_cache

from sqlalchemy import create_engine, text, Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from portfolio_core.config import settings
from portfolio_core.models import Base

logger = logging.getLogger(__name__)


def _create_engine() -> Engine:
    """
    Create SQLAlchemy engine with environment-appropriate configuration.

    - SQLite: StaticPool so an in-memory database is shared across sessions
    - Anything else: default QueuePool with pre-ping
    """
    if settings.is_sqlite:
        logger.info("Configuring SQLite price cache")
        return create_engine(
            settings.database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )

    logger.info("Configuring price cache database pool")
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=settings.debug,
    )


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Get the singleton engine, creating the cache table on first use."""
    engine = _create_engine()
    Base.metadata.create_all(engine)
    return engine


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def check_database_health() -> dict:
    """
    Check price cache connectivity.

    Returns:
        dict: Health status for the health endpoint
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "database": "sqlite" if settings.is_sqlite else "server",
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
        }

# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Database engine: single source of truth for DB connectivity.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool

from taskapi.core.config import settings
from taskapi.core.logging import get_logger
from taskapi.models.tables import metadata

logger = get_logger(__name__)


def build_engine(url: str = "") -> Engine:
    """Create an engine for ``url``; an empty url yields a shared in-memory SQLite DB.

    The in-memory database lives inside its single connection, so the pool holds
    exactly that one and request threads queue for it one transaction at a time.
    """
    if not url:
        return create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=QueuePool,
            pool_size=1,
            max_overflow=0,
            pool_timeout=settings.POOL_TIMEOUT,
        )
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.POOL_SIZE,
        max_overflow=settings.MAX_OVERFLOW,
        pool_recycle=settings.POOL_RECYCLE,
    )


def init_db(bind: Engine) -> None:
    """Create the users/tasks tables if they do not exist yet."""
    metadata.create_all(bind)
    logger.info("Database schema ready dialect=%s", bind.dialect.name)


engine = build_engine(settings.DATABASE_URL)

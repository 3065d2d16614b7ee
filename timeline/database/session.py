"""Database session management"""

from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from timeline.config import get_settings
import logging

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine with connection pooling suited to the backend

    Args:
        database_url: SQLAlchemy database URL
        echo: Log emitted SQL

    Returns:
        Configured engine
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool
        )
    else:
        engine = create_engine(
            database_url,
            pool_size=30,
            max_overflow=10,
            pool_recycle=3600,
            pool_pre_ping=True,
            echo=echo,
            poolclass=QueuePool
        )

    @event.listens_for(engine, "connect")
    def receive_connect(dbapi_conn, connection_record):
        """Handle new database connections"""
        logger.debug("New database connection established")

    return engine


@lru_cache
def get_engine() -> Engine:
    """Engine for the configured DATABASE_URL (built on first use)"""
    settings = get_settings()
    return create_db_engine(settings.DATABASE_URL, echo=settings.DEBUG)


@lru_cache
def get_session_factory() -> sessionmaker:
    """Session factory bound to the application engine"""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> Iterator[Session]:
    """Database session dependency"""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()

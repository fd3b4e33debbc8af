"""Database engine and session factory"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from moneylens_guard.infrastructure.database.models import Base


def create_db_engine(database_url: str) -> Engine:
    """Engine with stale-connection checks; SQLite may be used from the server's threadpool"""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=5,
        pool_recycle=3600,
    )


def create_session_factory(database_url: str) -> sessionmaker:
    """Build a session factory, creating tables on first use"""
    engine = create_db_engine(database_url)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

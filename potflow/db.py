"""
Database setup for the pot automation service.
Uses SQLAlchemy ORM; the engine URL comes from Settings.database_url.
"""

import os
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()
SessionLocal = sessionmaker(autocommit=False, autoflush=False)
engine = None


def _make_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
            db_path = database_url[len("sqlite:///"):]
            directory = os.path.dirname(db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
        # In-memory databases must share one connection across sessions
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if ":memory:" in database_url else None,
        )
    return create_engine(database_url, pool_pre_ping=True, pool_size=10, max_overflow=20)


def init_engine(database_url: str, create_tables: bool = True) -> Engine:
    """Bind the session factory to a new engine and optionally create tables."""
    global engine
    # Import models so they are registered on Base.metadata
    from potflow import models  # noqa: F401
    from potflow.automation import rules  # noqa: F401

    engine = _make_engine(database_url)
    SessionLocal.configure(bind=engine)
    if create_tables:
        Base.metadata.create_all(bind=engine)
    return engine


def get_db_session() -> Generator[Session, None, None]:
    """
    Yields a new SQLAlchemy session. Use with context manager for safety.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

"""
Engine and session lifecycle for the API process and the import worker.

The engine is created lazily from DATABASE_URL on first use.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from contextlib import contextmanager
from typing import Generator
import logging

from fintrack.database.models import Base

logger = logging.getLogger(__name__)

engine = None
SessionLocal = None
_is_initialized = False


def init_db(database_url: str):
    """Create the engine and session factory, then any missing tables."""
    global engine, SessionLocal, _is_initialized

    logger.info("Initializing database connection")

    # SQLite (local development) needs cross-thread access for FastAPI workers
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}

    engine = create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
    )

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized successfully")
    _is_initialized = True


def ensure_db_initialized():
    """Lazily initialize the database connection if it hasn't been set up yet."""
    if _is_initialized and SessionLocal is not None:
        return
    from fintrack.config import settings
    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL must be set to use database storage")
    init_db(settings.DATABASE_URL)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; routers commit their own writes."""
    ensure_db_initialized()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context():
    """
    Session for RQ jobs: commits on a clean exit, rolls back and re-raises otherwise.

    Usage:
        with get_db_context() as session:
            db = get_db_service(session)
    """
    ensure_db_initialized()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def close_db():
    """Dispose of the engine so the next call to get_db re-initializes it."""
    global engine, SessionLocal, _is_initialized
    if engine:
        engine.dispose()
        logger.info("Database connection closed")
    engine = None
    SessionLocal = None
    _is_initialized = False

"""
Engine and session lifecycle for the expense tracker

One engine per process, created from ``DATABASE_URL`` on startup (or lazily by
the command line scripts). PostgreSQL in production; SQLite for local runs.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from contextlib import contextmanager
from typing import Any, Dict, Generator
import logging

from app.database.models import Base

logger = logging.getLogger(__name__)

engine = None
SessionLocal = None


def _engine_options(database_url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # Imports run in the threadpool, not on the thread that opened the connection
        options["connect_args"] = {"check_same_thread": False}
    return options


def init_db(database_url: str):
    """
    Bind the engine and create any missing tables.

    Tables are created with ``create_all``; there are no migrations yet.
    """
    global engine, SessionLocal

    backend = database_url.split(":", 1)[0]
    logger.info(f"Connecting to {backend} database")

    engine = create_engine(database_url, **_engine_options(database_url))
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    logger.info("Ledger tables ready")


def ensure_db_initialized():
    if SessionLocal is not None:
        return
    from app.config import settings
    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL must be set")
    init_db(settings.DATABASE_URL)


def get_db() -> Generator[Session, None, None]:
    """
    Request-scoped session.

    Routes and services commit explicitly (the importer once per row), so
    nothing is committed here; the session is only closed.
    """
    ensure_db_initialized()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def get_db_context():
    """
    Session for the command line scripts: commits on success, rolls back
    on any error.

        with get_db_context() as session:
            rebuild_history(get_db_service(session), user_id)
    """
    ensure_db_initialized()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_db():
    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
        logger.info("Database engine disposed")
    engine = None
    SessionLocal = None

"""
Database Session Management

Handles engines, session lifecycle and schema setup for the two stores:

- "metrics": raw answers, metric rows, run completion markers
- "opportunities": opportunity insights

Each store has its own URL, engine and session factory. PostgreSQL and
SQLite are both supported; SQLite files are the local default.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator, Optional

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from visibility.errors import StoreError
from visibility.utils.config import get_settings
from .models import MetricsBase, OpportunityBase

logger = logging.getLogger(__name__)

METRICS = "metrics"
OPPORTUNITIES = "opportunities"

_BASES = {
    METRICS: MetricsBase,
    OPPORTUNITIES: OpportunityBase,
}

# Columns added to metrics after the first schema, with their DDL types
METRIC_EXTRA_COLUMNS = (
    ("sentiment", "INTEGER DEFAULT 0"),
    ("msv", "INTEGER"),
)


# =============================================================================
# DATABASE URL CONFIGURATION
# =============================================================================

def get_database_url(store: str) -> str:
    """
    Get the database URL for a store from settings.

    METRICS_DATABASE_URL / OPPORTUNITIES_DATABASE_URL when set, otherwise a
    SQLite file under OUTPUT_DIR.
    """
    _check_store(store)
    settings = get_settings()
    url = settings.metrics_database_url if store == METRICS else settings.opportunities_database_url

    # Hosted PostgreSQL URLs often use postgres:// but SQLAlchemy needs postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def create_db_engine(url: str) -> Engine:
    """
    Create database engine with appropriate settings.

    PostgreSQL: Connection pooling
    SQLite: Cross-thread access; one shared connection for in-memory databases
    """
    echo = get_settings().SQL_DEBUG

    if url.startswith("postgresql"):
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
            echo=echo,
        )
        logger.info("Created PostgreSQL engine with connection pooling")
        return engine

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": echo}
        if _is_memory_sqlite(url):
            kwargs["poolclass"] = StaticPool
        else:
            _ensure_sqlite_directory(url)
        engine = create_engine(url, **kwargs)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        logger.info(f"Created SQLite engine: {url}")
        return engine

    engine = create_engine(url, echo=echo)
    logger.info(f"Created {engine.dialect.name} engine")
    return engine


def _ensure_sqlite_directory(url: str) -> None:
    path = url.split("sqlite:///", 1)[-1]
    if path and path != url:
        Path(path).parent.mkdir(parents=True, exist_ok=True)


# Engines and session factories per store (lazy initialization)
_engines: Dict[str, Engine] = {}
_session_factories: Dict[str, sessionmaker] = {}


def configure_store(store: str, url: Optional[str] = None, engine: Optional[Engine] = None) -> Engine:
    """
    Point a store at a specific database.

    Usage:
        configure_store("metrics", "sqlite://")   # in-memory, e.g. for tests
    """
    _check_store(store)
    old = _engines.pop(store, None)
    _session_factories.pop(store, None)
    if old is not None and old is not engine:
        old.dispose()

    _engines[store] = engine if engine is not None else create_db_engine(url or get_database_url(store))
    return _engines[store]


def get_engine(store: str) -> Engine:
    """Get or create the engine for a store."""
    _check_store(store)
    if store not in _engines:
        _engines[store] = create_db_engine(get_database_url(store))
    return _engines[store]


def reset_engines() -> None:
    """Dispose every engine; the next access recreates them from settings."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
    _session_factories.clear()


# =============================================================================
# SESSION MANAGEMENT
# =============================================================================

def get_session_factory(store: str) -> sessionmaker:
    """Get or create session factory."""
    if store not in _session_factories:
        _session_factories[store] = sessionmaker(
            bind=get_engine(store),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,  # Don't expire objects after commit
        )
    return _session_factories[store]


@contextmanager
def get_db_context(store: str) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_db_context("metrics") as db:
            db.query(Metric).all()
    """
    SessionLocal = get_session_factory(store)
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

def ensure_metric_columns() -> None:
    """
    Add the sentiment and msv columns to metrics tables created before them.

    Safe to run repeatedly. A column that turns out to exist already
    (e.g. another process added it first) is logged and ignored; any other
    failure raises StoreError.
    """
    engine = get_engine(METRICS)
    try:
        existing = {col["name"].lower() for col in inspect(engine).get_columns("metrics")}
    except SQLAlchemyError as e:
        raise StoreError(f"Could not inspect metrics table: {e}") from e

    for col_name, col_type in METRIC_EXTRA_COLUMNS:
        if col_name in existing:
            logger.debug(f"Column {col_name} already exists")
            continue
        try:
            with engine.begin() as conn:
                conn.execute(text(f"ALTER TABLE metrics ADD COLUMN {col_name} {col_type}"))
            logger.info(f"Added column {col_name} to metrics")
        except SQLAlchemyError as e:
            message = str(e).lower()
            if "duplicate column" in message or "already exists" in message:
                logger.info(f"Column {col_name} already present on metrics: {e.__class__.__name__}")
                continue
            raise StoreError(f"Failed to add column {col_name} to metrics: {e}") from e


def init_db(drop_all: bool = False) -> None:
    """
    Create the tables of both stores and bring old metrics tables up to date.

    Args:
        drop_all: If True, drop all tables first (USE WITH CAUTION!)
    """
    for store, base in _BASES.items():
        engine = get_engine(store)
        try:
            if drop_all:
                logger.warning(f"Dropping all {store} tables!")
                base.metadata.drop_all(bind=engine)
            base.metadata.create_all(bind=engine)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create {store} tables: {e}") from e
        logger.info(f"{store} tables created/verified")

    ensure_metric_columns()


def _check_store(store: str) -> None:
    if store not in _BASES:
        raise ValueError(f"Unknown store: {store}")

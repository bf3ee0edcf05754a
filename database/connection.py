"""
Database connection management for the TourOps data core.
Handles SQLAlchemy engine creation, session management, and connection verification.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool, StaticPool

from config import normalize_database_url

logger = logging.getLogger(__name__)

# SQLAlchemy Base for model declarations
Base = declarative_base()

# Engine and SessionLocal are created by configure() / on first use
DATABASE_URL = None
engine = None
SessionLocal = None


def configure(database_url):
    """Point the module at a database URL, discarding any existing engine."""
    global DATABASE_URL
    dispose_engine()
    DATABASE_URL = normalize_database_url(database_url)


def get_engine():
    """Get or create the SQLAlchemy engine."""
    global engine

    if engine is not None:
        return engine

    if not DATABASE_URL:
        logger.error("DATABASE_URL is not configured!")
        raise RuntimeError(
            "DATABASE_URL not configured. Call database.configure() with a "
            "SQLAlchemy URL before using the database backing store."
        )

    try:
        if DATABASE_URL.startswith('sqlite'):
            # Store calls arrive from worker threads
            options = {'connect_args': {'check_same_thread': False}}
            if DATABASE_URL in ('sqlite://', 'sqlite:///:memory:'):
                options['poolclass'] = StaticPool
        else:
            options = {
                'poolclass': QueuePool,
                'pool_size': 5,
                'max_overflow': 10,
                'pool_pre_ping': True,  # Verify connections before using
                'pool_recycle': 300,    # Recycle connections after 5 minutes
            }
        engine = create_engine(DATABASE_URL, echo=False, **options)
        logger.info("Database engine created successfully")
        return engine
    except Exception as e:
        logger.error(f"Failed to create database engine: {e}")
        raise RuntimeError(f"Failed to connect to database: {e}")


def get_session_factory():
    """Get or create the session factory."""
    global SessionLocal

    if SessionLocal is not None:
        return SessionLocal

    eng = get_engine()
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=eng)
    return SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for getting a database session.

    Example:
        with get_db_session() as db:
            entry = db.get(StoreEntry, '@tourops_clients')
    """
    session_factory = get_session_factory()
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_db_connection():
    """
    Verify that the database connection is working.
    Returns True if connection is successful, raises exception otherwise.
    """
    try:
        eng = get_engine()
        with eng.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            result.fetchone()
        logger.info("Database connection verified successfully")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise RuntimeError(f"Cannot connect to database: {e}")


def init_db():
    """Create the key-value table if it does not exist yet."""
    # Import models to ensure they're registered with Base
    from database import models  # noqa: F401

    eng = get_engine()
    Base.metadata.create_all(bind=eng)
    logger.info("Database tables created/verified")


def dispose_engine():
    """Close pooled connections and forget the engine."""
    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
    engine = None
    SessionLocal = None


def is_db_configured():
    """Check if a database URL is configured (without failing)."""
    return bool(DATABASE_URL)

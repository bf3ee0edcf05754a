"""
Database package for the TourOps data core.
Provides the SQLAlchemy key-value model, connection management, and session handling.
"""

from database.connection import (
    Base,
    configure,
    get_db_session,
    init_db,
    check_db_connection,
    dispose_engine,
    is_db_configured,
)

from database.models import StoreEntry

__all__ = [
    # Connection
    'Base',
    'configure',
    'get_db_session',
    'init_db',
    'check_db_connection',
    'dispose_engine',
    'is_db_configured',
    # Models
    'StoreEntry',
]

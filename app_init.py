"""
Application Initialization Module
Builds a ready-to-load DataStore from configuration
"""
import os
import logging

from config import get_config
from logging_config import setup_logging
from services.backing_store import DatabaseBackingStore, JsonFileBackingStore, MemoryBackingStore
from services.data_store import DataStore
from services.event_logger import EventLogger
from services.repositories import build_repositories

logger = logging.getLogger(__name__)


def create_data_store(config=None, configure_logging=True):
    """
    Factory that wires configuration, logging, storage and repositories into a DataStore

    The returned store is empty until ``await store.reload()`` is called.

    Args:
        config: Configuration class (defaults to get_config())
        configure_logging: Install the rotating file/console handlers

    Returns:
        DataStore instance
    """
    config = config or get_config()

    if configure_logging:
        setup_logging(config)

    logger.info("=" * 60)
    logger.info("Initializing TourOps data store")
    logger.info("=" * 60)
    logger.info(f"Environment: {os.environ.get('TOUROPS_ENV', 'development')}")
    logger.info(f"Storage backend: {config.STORAGE_BACKEND}")

    create_required_directories(config)

    store = create_backing_store(config)
    repositories = build_repositories(store, config.STORAGE_KEY_PREFIX)

    data_store = DataStore(
        repositories,
        event_logger=EventLogger(),
        serialize_mutations=config.SERIALIZE_MUTATIONS,
        enforce_task_adjacency=config.ENFORCE_TASK_ADJACENCY,
        invoice_due_days=config.INVOICE_DUE_DAYS,
        upcoming_trip_days=config.UPCOMING_TRIP_DAYS,
        dashboard_limit=config.DASHBOARD_LIMIT,
    )

    logger.info("Data store initialization complete")
    return data_store


def create_backing_store(config):
    """
    Select the backing store named by ``config.STORAGE_BACKEND``

    Raises:
        ValueError: for an unknown backend name
    """
    backend = config.STORAGE_BACKEND.lower()
    if backend == 'memory':
        return MemoryBackingStore()
    if backend == 'json':
        return JsonFileBackingStore(config.DATA_FOLDER)
    if backend == 'database':
        return DatabaseBackingStore(config.DATABASE_URL)
    raise ValueError(f"Unknown STORAGE_BACKEND: {config.STORAGE_BACKEND}")


def create_required_directories(config):
    """
    Create the directories the configured backend writes to

    Args:
        config: Configuration class
    """
    directories = []
    if config.STORAGE_BACKEND.lower() == 'json':
        directories.append(config.DATA_FOLDER)

    for directory in directories:
        try:
            os.makedirs(directory, exist_ok=True)
            logger.debug(f"Directory ensured: {directory}")
        except OSError as e:
            logger.error(f"Failed to create directory {directory}: {e}")
            raise

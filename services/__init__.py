"""
Services package for the TourOps data core.
Contains the backing stores, entity repositories, change notification and the data store.
"""

from services.backing_store import (
    BackingStore,
    DatabaseBackingStore,
    JsonFileBackingStore,
    MemoryBackingStore,
)
from services.data_store import DataStore
from services.event_logger import ChangeEvent, EventLogger
from services.repositories import Repository, build_repositories

__all__ = [
    'BackingStore',
    'MemoryBackingStore',
    'JsonFileBackingStore',
    'DatabaseBackingStore',
    'Repository',
    'build_repositories',
    'ChangeEvent',
    'EventLogger',
    'DataStore',
]

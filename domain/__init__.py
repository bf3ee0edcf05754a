"""
Domain model for the TourOps data core: entity records, pure document edits,
derived business views and the error hierarchy.
"""

from domain.entities import ENTITY_TYPES, Snapshot
from domain.errors import (
    DataStoreError,
    NotFoundError,
    StorageError,
    StorageReadError,
    StorageWriteError,
    StoreNotLoadedError,
)

__all__ = [
    'ENTITY_TYPES',
    'Snapshot',
    'DataStoreError',
    'StorageError',
    'StorageReadError',
    'StorageWriteError',
    'NotFoundError',
    'StoreNotLoadedError',
]

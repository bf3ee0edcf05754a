"""
Exceptions raised by the data core.
"""


class DataStoreError(Exception):
    """Base class for data store failures."""


class StorageError(DataStoreError):
    """The backing store could not be read or written."""

    def __init__(self, message: str, key: str = None):
        self.key = key
        super().__init__(message)


class StorageReadError(StorageError):
    """Backing store unreachable, or the payload under a key is corrupt."""


class StorageWriteError(StorageError):
    """Backing store rejected a write; the previous value is still in place."""


class NotFoundError(DataStoreError):
    """No record with the given id exists in the target collection."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} record not found: {entity_id}")


class StoreNotLoadedError(DataStoreError):
    """A mutation was attempted before the store finished its first reload."""

"""
Backing Store adapters - durable get/set-by-key byte storage.

The data core treats persistence as an opaque async key-value store. Three
implementations are provided:

- MemoryBackingStore: process-local dict, for tests and throwaway sessions
- JsonFileBackingStore: one file per key in a data folder, atomic replace on write
- DatabaseBackingStore: one row per key in a SQLAlchemy-managed table

Blocking I/O runs in a worker thread so callers on the event loop never stall.
"""

import asyncio
import logging
import os
import re
import threading
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from domain.errors import StorageReadError, StorageWriteError

logger = logging.getLogger(__name__)

# File lock for thread-safe operations
_file_locks = {}
_file_locks_guard = threading.Lock()


def get_file_lock(filepath: str) -> threading.Lock:
    """Get or create a lock for a specific file"""
    with _file_locks_guard:
        if filepath not in _file_locks:
            _file_locks[filepath] = threading.Lock()
        return _file_locks[filepath]


class BackingStore:
    """Async key-value contract: ``get(key) -> bytes | None`` and ``set(key, bytes)``."""

    async def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    async def set(self, key: str, value: bytes) -> None:
        raise NotImplementedError


class MemoryBackingStore(BackingStore):
    """Keeps values in a dict. Nothing survives the process."""

    def __init__(self, initial: Dict[str, bytes] = None):
        self._data = dict(initial or {})

    async def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def keys(self):
        return sorted(self._data)


class JsonFileBackingStore(BackingStore):
    """
    Stores each key as a file in ``data_folder``.

    Writes go to a temp file that is then renamed over the target, so a reader
    sees either the old payload or the new one, never a partial write.
    """

    def __init__(self, data_folder: str):
        self.data_folder = data_folder
        # Ensure data folder exists
        os.makedirs(data_folder, exist_ok=True)

    def path_for(self, key: str) -> str:
        filename = re.sub(r'[^A-Za-z0-9_.-]', '', key).lstrip('.') or 'store'
        return os.path.join(self.data_folder, f"{filename}.json")

    def _read(self, key: str) -> Optional[bytes]:
        filepath = self.path_for(key)
        lock = get_file_lock(filepath)
        with lock:
            try:
                if not os.path.exists(filepath):
                    return None
                with open(filepath, 'rb') as f:
                    return f.read()
            except OSError as e:
                logger.error(f"Error loading {filepath}: {e}")
                raise StorageReadError(f"Cannot read {filepath}: {e}", key=key) from e

    def _write(self, key: str, value: bytes) -> None:
        filepath = self.path_for(key)
        temp_path = f"{filepath}.tmp"
        lock = get_file_lock(filepath)
        with lock:
            try:
                # Write to temp file first, then rename (atomic operation)
                with open(temp_path, 'wb') as f:
                    f.write(value)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, filepath)
            except OSError as e:
                logger.error(f"Error saving {filepath}: {e}")
                # Clean up temp file if it exists
                if os.path.isfile(temp_path):
                    os.remove(temp_path)
                raise StorageWriteError(f"Cannot write {filepath}: {e}", key=key) from e

    async def get(self, key: str) -> Optional[bytes]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: bytes) -> None:
        await asyncio.to_thread(self._write, key, value)


class DatabaseBackingStore(BackingStore):
    """Stores each key as a row of the ``store_entries`` table."""

    def __init__(self, database_url: str = None):
        from database import connection

        if database_url:
            connection.configure(database_url)
        connection.init_db()

    def _read(self, key: str) -> Optional[bytes]:
        from database.connection import get_db_session
        from database.models import StoreEntry

        try:
            with get_db_session() as db:
                entry = db.get(StoreEntry, key)
                return bytes(entry.value) if entry is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Database read failed for {key}: {e}")
            raise StorageReadError(f"Cannot read {key}: {e}", key=key) from e

    def _write(self, key: str, value: bytes) -> None:
        from database.connection import get_db_session
        from database.models import StoreEntry

        try:
            # Single transaction; rolled back whole on failure
            with get_db_session() as db:
                db.merge(StoreEntry(key=key, value=bytes(value)))
        except SQLAlchemyError as e:
            logger.error(f"Database write failed for {key}: {e}")
            raise StorageWriteError(f"Cannot write {key}: {e}", key=key) from e

    async def get(self, key: str) -> Optional[bytes]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: bytes) -> None:
        await asyncio.to_thread(self._write, key, value)

"""
Entity Repositories - whole-collection persistence per entity kind.

Each repository owns one namespaced key in the backing store and (de)serializes
the complete collection as a JSON array. There are no partial or delta writes:
``save`` always replaces the previous collection in full.
"""

import json
import logging
from typing import Dict, Generic, List, Sequence, Type, TypeVar

from domain.entities import ENTITY_TYPES
from domain.errors import StorageError, StorageReadError, StorageWriteError
from services.backing_store import BackingStore

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = '@tourops_'

E = TypeVar('E')


class Repository(Generic[E]):
    """Repository for one entity collection."""

    def __init__(self, store: BackingStore, entity_type: Type[E],
                 key_prefix: str = DEFAULT_KEY_PREFIX):
        self.store = store
        self.entity_type = entity_type
        self.kind = entity_type.KIND
        self.key = f"{key_prefix}{self.kind}"

    async def get_all(self) -> List[E]:
        """
        Load the whole collection.

        Returns an empty list if the key has never been written. Raises
        StorageReadError if the store is unreachable or the payload is not a
        well-formed collection; a corrupt payload is never read as empty.
        """
        try:
            raw = await self.store.get(self.key)
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"Backing store read failed for {self.key}: {e}")
            raise StorageReadError(f"Cannot read {self.key}: {e}", key=self.key) from e

        if raw is None or not raw.strip():
            return []

        try:
            data = json.loads(raw.decode('utf-8'))
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
            return [self.entity_type.from_dict(item) for item in data]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error(f"Corrupt payload under {self.key}: {e}")
            raise StorageReadError(f"Corrupt payload under {self.key}: {e}", key=self.key) from e

    async def save(self, items: Sequence[E]) -> None:
        """Serialize and write the complete collection."""
        try:
            payload = json.dumps(
                [item.to_dict() for item in items],
                ensure_ascii=False,
            ).encode('utf-8')
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot serialize {self.kind}: {e}")
            raise StorageWriteError(f"Cannot serialize {self.kind}: {e}", key=self.key) from e

        try:
            await self.store.set(self.key, payload)
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"Backing store write failed for {self.key}: {e}")
            raise StorageWriteError(f"Cannot write {self.key}: {e}", key=self.key) from e

        logger.debug(f"Saved {len(items)} {self.kind} to {self.key}")


def build_repositories(store: BackingStore,
                       key_prefix: str = DEFAULT_KEY_PREFIX) -> Dict[str, Repository]:
    """One repository per entity kind, keyed by kind name."""
    return {
        kind: Repository(store, entity_type, key_prefix)
        for kind, entity_type in ENTITY_TYPES.items()
    }

"""
Record Stores

Keyed in-memory collections of immutable entities. A store never hands out
anything mutable: reads return the stored values themselves (frozen), and
writes swap a whole value under its key.
"""

from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

import structlog

from campus_records.domain.entities import RecordEntity

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=RecordEntity)


class RecordStore(Generic[E]):
    """In-memory store of one entity type keyed by natural identifier."""

    def __init__(self, entity_type: str):
        """
        Initialize store.

        Args:
            entity_type: Entity name used in log events
        """
        self.entity_type = entity_type
        self._records: dict[str, E] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[E]:
        return iter(list(self._records.values()))

    def find(self, key: str) -> E | None:
        return self._records.get(key)

    def insert(self, record: E) -> E:
        """
        Add a record under a new key.

        Raises:
            KeyError: If the key is already present
        """
        key = record.record_id
        if key in self._records:
            raise KeyError(key)
        self._records[key] = record
        logger.debug("Record inserted", entity_type=self.entity_type, record_id=key)
        return record

    def swap(self, record: E) -> E | None:
        """
        Store ``record`` under its key, replacing any previous value.

        Returns:
            The replaced value, or None when the key was new
        """
        key = record.record_id
        previous = self._records.get(key)
        self._records[key] = record
        logger.debug(
            "Record swapped",
            entity_type=self.entity_type,
            record_id=key,
            replaced=previous is not None,
        )
        return previous

    def values(self, predicate: Callable[[E], bool] | None = None) -> list[E]:
        """Snapshot of stored values in insertion order, optionally filtered."""
        if predicate is None:
            return list(self._records.values())
        return [record for record in self._records.values() if predicate(record)]

    def clear(self) -> None:
        self._records.clear()

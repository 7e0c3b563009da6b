"""
store.py
In-memory owner of every membership record, keyed by card ID in insertion order.
"""

from __future__ import annotations

import logging
from typing import Iterator

from errors import CapacityError, MemberNotFoundError, MemberStillActiveError
from models import MembershipRecord

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100
FIRST_CARD_ID = 1001


class MembershipStore:
    def __init__(self, capacity: int = DEFAULT_CAPACITY, first_id: int = FIRST_CARD_ID):
        if capacity <= 0:
            raise ValueError("capacity must be greater than 0")
        if first_id <= 0:
            raise ValueError("first_id must be greater than 0")
        self.capacity = capacity
        self.first_id = first_id
        self._records: dict[int, MembershipRecord] = {}
        self._next_id = first_id

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[MembershipRecord]:
        return iter(list(self._records.values()))

    def __contains__(self, card_id) -> bool:
        return card_id in self._records

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def is_full(self) -> bool:
        return len(self._records) >= self.capacity

    def _check_capacity(self) -> None:
        if self.is_full:
            log.warning("Store at capacity (%d); record refused", self.capacity)
            raise CapacityError(self.capacity)

    def insert(self, record: MembershipRecord) -> MembershipRecord:
        """Assign the next unused card ID to a new record and append it."""
        self._check_capacity()
        while self._next_id in self._records:
            self._next_id += 1
        record.card_id = self._next_id
        self._next_id += 1
        self._records[record.card_id] = record
        return record

    def restore(self, record: MembershipRecord) -> MembershipRecord:
        """Append a record that already carries its card ID (bulk load)."""
        if record.card_id in self._records:
            raise ValueError(f"duplicate card ID {record.card_id}")
        self._check_capacity()
        self._records[record.card_id] = record
        return record

    def find(self, card_id: int) -> MembershipRecord | None:
        return self._records.get(card_id)

    def get(self, card_id: int) -> MembershipRecord:
        record = self._records.get(card_id)
        if record is None:
            raise MemberNotFoundError(card_id)
        return record

    def remove(self, card_id: int) -> MembershipRecord:
        record = self.get(card_id)
        if record.is_active:
            raise MemberStillActiveError(card_id)
        return self._records.pop(card_id)

    def all(self) -> list[MembershipRecord]:
        return list(self._records.values())

    def clear(self) -> None:
        self._records.clear()
        self._next_id = self.first_id

    def next_id_after_load(self, max_seen: int) -> None:
        # Never hand out an ID at or below one already present in the file.
        self._next_id = max(max_seen, self.first_id - 1) + 1

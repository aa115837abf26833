"""Availability state store - in-flight downtime per Deployment.

The store is the only mutable state shared by the watch and poll feeders.
A key is present exactly while its Deployment is considered down; the
record carries the moment downtime began.

Every operation takes the store lock for its own duration only, so the
read-modify-write helpers `mark_down()` and `clear()` are atomic with
respect to each other: two feeders racing on the same key can create at
most one record and can claim a recovery at most once. Both helpers read
the clock while holding the lock, so a recovery is always timed after the
record it claims was created.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from deployment_exporter.models import DowntimeRecord, EntityKey, Recovery

# Returns Unix epoch nanoseconds (time.time_ns in production)
Clock = Callable[[], int]


class AvailabilityStateStore:
    """Thread-safe mapping from EntityKey to DowntimeRecord."""

    def __init__(self) -> None:
        self._records: dict[EntityKey, DowntimeRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: EntityKey) -> Optional[DowntimeRecord]:
        with self._lock:
            return self._records.get(key)

    def put(self, key: EntityKey, record: DowntimeRecord) -> None:
        with self._lock:
            self._records[key] = record

    def remove(self, key: EntityKey) -> Optional[DowntimeRecord]:
        """Remove and return the record for `key`; None if absent."""
        with self._lock:
            return self._records.pop(key, None)

    def mark_down(self, key: EntityKey, clock: Clock) -> Optional[DowntimeRecord]:
        """Create a record for `key` stamped with `clock()` unless one exists.

        Returns:
            The new record, or None when the entity was already down.
        """
        with self._lock:
            if key in self._records:
                return None
            record = DowntimeRecord(down_since_ns=clock())
            self._records[key] = record
            return record

    def clear(self, key: EntityKey, clock: Clock) -> Optional[Recovery]:
        """Claim the recovery of `key`, timed with `clock()`.

        Only one caller can receive a given record; every other concurrent
        caller gets None.
        """
        with self._lock:
            record = self._records.pop(key, None)
            if record is None:
                return None
            return Recovery(down_since_ns=record.down_since_ns, recovered_at_ns=clock())

    def keys(self) -> list[EntityKey]:
        """Point-in-time copy of the keys currently down."""
        with self._lock:
            return list(self._records)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

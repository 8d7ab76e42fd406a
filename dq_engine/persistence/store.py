"""
Result Store

Append-only failure log keyed by (rule_id, record_id). The only durable
state the engine owns.

Contract:
- record() inserts failures whose key is absent and returns how many were
  new; duplicates are a silent no-op
- detected_at is the first insertion's timestamp and never changes
- one record() call is atomic
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Tuple

from ..models.validation_failure import ValidationFailure


class ResultStore(ABC):
    """Idempotent persistence of validation failures."""

    @abstractmethod
    def record(self, failures: Iterable[ValidationFailure]) -> int:
        """
        Insert failures whose (rule_id, record_id) is not stored yet.

        Returns:
            Number of newly inserted rows
        """

    @abstractmethod
    def failures_for_record(self, record_id: str) -> List[ValidationFailure]:
        """All failures stored for one record."""

    @abstractmethod
    def all_failures(self) -> List[ValidationFailure]:
        """Full scan, used by aggregation."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored failures."""

    @abstractmethod
    def reset(self) -> None:
        """Out-of-band wipe of the failure log. Never called during a run."""


class InMemoryResultStore(ResultStore):
    """
    Thread-safe in-memory failure log.

    Insertion order is preserved; a single lock makes every record() call
    an atomic check-and-insert.
    """

    def __init__(self):
        self._failures: Dict[Tuple[str, str], ValidationFailure] = {}
        self._lock = threading.Lock()

    def record(self, failures: Iterable[ValidationFailure]) -> int:
        batch = list(failures)
        inserted = 0
        with self._lock:
            for failure in batch:
                if failure.key in self._failures:
                    continue
                self._failures[failure.key] = failure
                inserted += 1
        return inserted

    def contains(self, rule_id: str, record_id: str) -> bool:
        with self._lock:
            return (rule_id, record_id) in self._failures

    def failures_for_record(self, record_id: str) -> List[ValidationFailure]:
        with self._lock:
            return [f for f in self._failures.values() if f.record_id == record_id]

    def all_failures(self) -> List[ValidationFailure]:
        with self._lock:
            return list(self._failures.values())

    def count(self) -> int:
        with self._lock:
            return len(self._failures)

    def reset(self) -> None:
        with self._lock:
            self._failures.clear()

    def __len__(self) -> int:
        return self.count()

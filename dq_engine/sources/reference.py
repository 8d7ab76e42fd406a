"""
Reference Lookups

Referential rules consult an injected lookup rather than a hardcoded join,
so tests can pass a fake and production can read a reference table.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import psycopg2
import psycopg2.extras

from ..errors import ConfigurationError, PersistenceError
from ..rules.fields import get_field

logger = logging.getLogger(__name__)


class ReferenceLookup(ABC):
    """Read-only keyed access to reference entities (e.g., providers)."""

    @abstractmethod
    def get(self, key: Any) -> Optional[Mapping[str, Any]]:
        """Return the entity for key, or None if it does not exist."""


class InMemoryReferenceLookup(ReferenceLookup):
    """
    Reference entities held in a dictionary.

    Usage:
        providers = InMemoryReferenceLookup.from_records(
            [{"provider_id": "P100", "provider_name": "Orlando Family Clinic"}],
            key_field="provider_id",
        )
        providers.get("P100")  # {...}
        providers.get("P999")  # None
    """

    def __init__(self, entities: Optional[Mapping[Any, Mapping[str, Any]]] = None):
        self._entities: Dict[Any, Mapping[str, Any]] = dict(entities or {})

    @classmethod
    def from_records(
        cls, records: Iterable[Mapping[str, Any]], key_field: str
    ) -> "InMemoryReferenceLookup":
        if not key_field:
            raise ConfigurationError("A reference key field is required to index reference records")
        entities = {}
        for record in records:
            key = get_field(record, key_field)
            if key is None:
                raise ConfigurationError(
                    f"Reference record without a value for key field {key_field!r}"
                )
            entities[key] = record
        return cls(entities)

    @classmethod
    def from_json_file(cls, path: Union[str, Path], key_field: str) -> "InMemoryReferenceLookup":
        """Load reference records from a JSON array (or {"records": [...]})."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Reference file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        records = data.get("records") if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise ConfigurationError(
                f"{path} must hold a JSON array or an object with a 'records' array"
            )
        return cls.from_records(records, key_field)

    def get(self, key: Any) -> Optional[Mapping[str, Any]]:
        return self._entities.get(key)

    def __len__(self) -> int:
        return len(self._entities)


class PostgresReferenceLookup(ReferenceLookup):
    """
    Reference table snapshot (e.g., dq.provider_reference).

    The table is read once, on first lookup, and held for the rest of the
    run so every rule sees the same reference data.
    """

    def __init__(self, connection_params: Dict[str, Any], table: str, key_column: str):
        self.connection_params = connection_params
        self.table = table
        self.key_column = key_column
        self._snapshot: Optional[Dict[Any, Mapping[str, Any]]] = None
        self._lock = threading.Lock()

    def load(self) -> None:
        """Read the reference table into memory."""
        query = f"SELECT * FROM {self.table}"
        try:
            conn = psycopg2.connect(**self.connection_params)
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query)
                    rows = cursor.fetchall()
            finally:
                conn.close()
        except psycopg2.Error as e:
            logger.error(f"Failed to load reference table {self.table}: {e}")
            raise PersistenceError(f"Failed to load reference table {self.table}: {e}") from e

        self._snapshot = {row[self.key_column]: dict(row) for row in rows}
        logger.info(f"Loaded {len(self._snapshot)} reference rows from {self.table}")

    def get(self, key: Any) -> Optional[Mapping[str, Any]]:
        if self._snapshot is None:
            with self._lock:
                if self._snapshot is None:
                    self.load()
        return self._snapshot.get(key)

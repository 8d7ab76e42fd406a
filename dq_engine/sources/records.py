"""
Record Sources

The engine does not own raw record storage. It consumes a RecordSource
that returns a read-only snapshot of the record set for one run.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import psycopg2
import psycopg2.extras

from ..errors import ConfigurationError, PersistenceError

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]


class RecordSource(ABC):
    """Provides the record set for a run."""

    @abstractmethod
    def fetch_all(self) -> Sequence[Record]:
        """Return a snapshot of all records to validate."""


class InMemoryRecordSource(RecordSource):
    """Records held in a Python list."""

    def __init__(self, records: Sequence[Record]):
        self._records = list(records)

    def fetch_all(self) -> Sequence[Record]:
        # Shallow copy: the run sees a snapshot even if the caller appends
        return list(self._records)


class JsonFileRecordSource(RecordSource):
    """
    Records read from a JSON file.

    Accepts either a top-level array of objects or an object with a
    ``records`` array.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def fetch_all(self) -> Sequence[Record]:
        if not self.path.exists():
            raise FileNotFoundError(f"Records file not found: {self.path}")

        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        records = data.get("records") if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise ConfigurationError(
                f"{self.path} must hold a JSON array or an object with a 'records' array"
            )

        logger.info(f"Loaded {len(records)} records from {self.path}")
        return records


class PostgresRecordSource(RecordSource):
    """
    Records read from a PostgreSQL table (e.g., dq.claims_transactions).

    Rows are returned as dictionaries keyed by column name.
    """

    def __init__(
        self,
        connection_params: Dict[str, Any],
        table: str,
        columns: Optional[List[str]] = None,
        order_by: Optional[str] = None,
    ):
        self.connection_params = connection_params
        self.table = table
        self.columns = columns
        self.order_by = order_by

    def _query(self) -> str:
        column_sql = ", ".join(self.columns) if self.columns else "*"
        query = f"SELECT {column_sql} FROM {self.table}"
        if self.order_by:
            query += f" ORDER BY {self.order_by}"
        return query

    def fetch_all(self) -> Sequence[Record]:
        try:
            conn = psycopg2.connect(**self.connection_params)
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(self._query())
                    records = [dict(row) for row in cursor.fetchall()]
            finally:
                conn.close()
        except psycopg2.Error as e:
            logger.error(f"Failed to fetch records from {self.table}: {e}")
            raise PersistenceError(f"Failed to fetch records from {self.table}: {e}") from e

        logger.info(f"Fetched {len(records)} records from {self.table}")
        return records

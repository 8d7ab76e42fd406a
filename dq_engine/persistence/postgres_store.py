"""
PostgreSQL Result Store

Handles:
- Creating the failure log with its (rule_id, record_id) uniqueness constraint
- Idempotent batch insertion (ON CONFLICT DO NOTHING)
- Syncing the severity weight table
- Creating the BI reporting views
- Connection management
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

import psycopg2
from psycopg2.extras import execute_values

from ..errors import PersistenceError
from ..models.validation_failure import Category, ValidationFailure
from ..weights import SeverityWeightTable
from .store import ResultStore

logger = logging.getLogger(__name__)

FAILURE_COLUMNS = (
    "rule_id, rule_name, rule_category, severity, record_id, failure_reason, detected_at"
)


class PostgresResultStore(ResultStore):
    """
    Failure log backed by PostgreSQL.

    Table Schema:
        validation_results (
            rule_id TEXT NOT NULL,
            rule_name TEXT NOT NULL,
            rule_category TEXT NOT NULL,
            severity TEXT NOT NULL,
            record_id TEXT NOT NULL,
            failure_reason TEXT NOT NULL,
            detected_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_rule_record UNIQUE (rule_id, record_id)
        )

    Each record() call runs in its own transaction, so a rule's batch is
    either fully committed or rolled back.
    """

    def __init__(
        self,
        connection_params: Dict[str, Any],
        schema: str = "dq",
        results_table: str = "validation_results",
        weights_table: str = "severity_weights",
        batch_size: int = 500,
    ):
        """
        Args:
            connection_params: Dict with keys: host, port, database, user, password
            schema: Schema holding the engine's tables and views
            results_table: Failure log table name
            weights_table: Severity weight table name
            batch_size: Rows per INSERT statement page
        """
        self.connection_params = connection_params
        self.schema = schema
        self.results_table = f"{schema}.{results_table}"
        self.weights_table = f"{schema}.{weights_table}"
        self.batch_size = batch_size
        self.connection = None
        # One connection is shared by the runner's worker threads
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Establish database connection."""
        try:
            self.connection = psycopg2.connect(**self.connection_params)
            self.connection.autocommit = False
        except psycopg2.Error as e:
            raise PersistenceError(f"Failed to connect to PostgreSQL: {e}") from e

    def disconnect(self) -> None:
        """Close database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def _execute(self, sql: str, params: Optional[tuple] = None, action: str = "execute") -> None:
        with self._lock:
            if not self.connection:
                self.connect()
            try:
                with self.connection.cursor() as cursor:
                    cursor.execute(sql, params)
                self.connection.commit()
            except psycopg2.Error as e:
                self.connection.rollback()
                raise PersistenceError(f"Failed to {action}: {e}") from e

    def _fetch(self, sql: str, params: Optional[tuple] = None, action: str = "query") -> List[tuple]:
        with self._lock:
            if not self.connection:
                self.connect()
            try:
                with self.connection.cursor() as cursor:
                    cursor.execute(sql, params)
                    rows = cursor.fetchall()
                self.connection.commit()
                return rows
            except psycopg2.Error as e:
                self.connection.rollback()
                raise PersistenceError(f"Failed to {action}: {e}") from e

    def ensure_schema(self) -> None:
        """Create the schema, failure log and weight table if they don't exist."""
        create_sql = f"""
        CREATE SCHEMA IF NOT EXISTS {self.schema};

        CREATE TABLE IF NOT EXISTS {self.results_table} (
            rule_id TEXT NOT NULL,
            rule_name TEXT NOT NULL,
            rule_category TEXT NOT NULL,
            severity TEXT NOT NULL,
            record_id TEXT NOT NULL,
            failure_reason TEXT NOT NULL,
            detected_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_rule_record UNIQUE (rule_id, record_id)
        );

        CREATE INDEX IF NOT EXISTS idx_validation_results_record_id
            ON {self.results_table}(record_id);
        CREATE INDEX IF NOT EXISTS idx_validation_results_severity
            ON {self.results_table}(severity);

        CREATE TABLE IF NOT EXISTS {self.weights_table} (
            severity TEXT PRIMARY KEY,
            weight INT NOT NULL CHECK (weight > 0)
        );
        """
        self._execute(create_sql, action="create result store schema")
        logger.info(f"Ensured result store schema {self.schema}")

    def sync_severity_weights(self, weights: SeverityWeightTable) -> None:
        """Upsert the configured weights so the SQL views agree with the engine."""
        upsert_sql = f"""
        INSERT INTO {self.weights_table} (severity, weight)
        VALUES %s
        ON CONFLICT (severity) DO UPDATE SET weight = EXCLUDED.weight
        """
        with self._lock:
            if not self.connection:
                self.connect()
            try:
                with self.connection.cursor() as cursor:
                    execute_values(cursor, upsert_sql, list(weights.items()))
                self.connection.commit()
            except psycopg2.Error as e:
                self.connection.rollback()
                raise PersistenceError(f"Failed to sync severity weights: {e}") from e

    def ensure_reporting_views(self, records_table: str) -> None:
        """
        Create the BI views: rule summary, category risk, severity
        distribution and the executive scorecard.

        Args:
            records_table: Fully qualified table holding the record set
                (e.g., dq.claims_transactions); the scorecard counts it
        """
        predicate_error = Category.PREDICATE_ERROR.value
        views_sql = f"""
        CREATE OR REPLACE VIEW {self.schema}.dq_rule_summary AS
        SELECT
            v.rule_id,
            COALESCE(MAX(v.rule_name) FILTER (WHERE v.rule_category <> '{predicate_error}'),
                     MAX(v.rule_name)) AS rule_name,
            COALESCE(MAX(v.rule_category) FILTER (WHERE v.rule_category <> '{predicate_error}'),
                     MAX(v.rule_category)) AS rule_category,
            MAX(v.severity) AS severity,
            COUNT(*) AS failure_count,
            SUM(w.weight) AS weighted_impact,
            COUNT(*) FILTER (WHERE v.rule_category = '{predicate_error}') AS predicate_errors
        FROM {self.results_table} v
        JOIN {self.weights_table} w ON v.severity = w.severity
        GROUP BY v.rule_id;

        CREATE OR REPLACE VIEW {self.schema}.dq_category_risk AS
        SELECT
            v.rule_category,
            SUM(w.weight) AS risk_score
        FROM {self.results_table} v
        JOIN {self.weights_table} w ON v.severity = w.severity
        GROUP BY v.rule_category;

        CREATE OR REPLACE VIEW {self.schema}.dq_severity_distribution AS
        SELECT
            severity,
            COUNT(*) AS failure_count
        FROM {self.results_table}
        GROUP BY severity;

        -- NULLIF: an empty record set yields NULL, never 100
        CREATE OR REPLACE VIEW {self.schema}.dq_executive_scorecard AS
        SELECT
            (SELECT COUNT(*) FROM {records_table}) AS total_records,
            (SELECT COUNT(DISTINCT record_id) FROM {self.results_table}) AS records_with_issues,
            (SELECT COUNT(*) FROM {self.results_table} WHERE severity = 'HIGH') AS high_severity_issues,
            ROUND(
                100 - (
                    COALESCE((
                        SELECT SUM(w.weight)
                        FROM {self.results_table} v
                        JOIN {self.weights_table} w ON v.severity = w.severity
                    ), 0)::NUMERIC /
                    NULLIF(
                        (SELECT COUNT(*) FROM {records_table}) *
                        (SELECT MAX(weight) FROM {self.weights_table}),
                        0
                    )
                ) * 100,
                2
            ) AS quality_score;
        """
        self._execute(views_sql, action="create reporting views")
        logger.info(f"Ensured reporting views in schema {self.schema}")

    def record(self, failures: Iterable[ValidationFailure]) -> int:
        # Dedupe inside the batch; the constraint handles everything already stored
        unique: Dict[tuple, ValidationFailure] = {}
        for failure in failures:
            unique.setdefault(failure.key, failure)
        if not unique:
            return 0

        insert_sql = f"""
        INSERT INTO {self.results_table} ({FAILURE_COLUMNS})
        VALUES %s
        ON CONFLICT (rule_id, record_id) DO NOTHING
        RETURNING rule_id
        """

        values_list = [
            (
                f.rule_id,
                f.rule_name,
                f.category,
                f.severity,
                f.record_id,
                f.failure_reason,
                f.detected_at,
            )
            for f in unique.values()
        ]

        with self._lock:
            if not self.connection:
                self.connect()
            try:
                with self.connection.cursor() as cursor:
                    inserted = execute_values(
                        cursor, insert_sql, values_list, page_size=self.batch_size, fetch=True
                    )
                self.connection.commit()
            except psycopg2.Error as e:
                self.connection.rollback()
                raise PersistenceError(f"Failed to write validation failures: {e}") from e

        return len(inserted)

    @staticmethod
    def _row_to_failure(row: tuple) -> ValidationFailure:
        return ValidationFailure(
            rule_id=row[0],
            rule_name=row[1],
            category=row[2],
            severity=row[3],
            record_id=row[4],
            failure_reason=row[5],
            detected_at=row[6],
        )

    def failures_for_record(self, record_id: str) -> List[ValidationFailure]:
        query = f"""
        SELECT {FAILURE_COLUMNS}
        FROM {self.results_table}
        WHERE record_id = %s
        ORDER BY detected_at, rule_id
        """
        rows = self._fetch(query, (record_id,), action="query failures for record")
        return [self._row_to_failure(row) for row in rows]

    def all_failures(self) -> List[ValidationFailure]:
        query = f"""
        SELECT {FAILURE_COLUMNS}
        FROM {self.results_table}
        ORDER BY detected_at, rule_id, record_id
        """
        rows = self._fetch(query, action="scan failures")
        return [self._row_to_failure(row) for row in rows]

    def count(self) -> int:
        rows = self._fetch(f"SELECT COUNT(*) FROM {self.results_table}", action="count failures")
        return rows[0][0]

    def reset(self) -> None:
        self._execute(f"TRUNCATE {self.results_table}", action="reset failure log")
        logger.warning(f"Reset failure log {self.results_table}")

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()


def create_postgres_store(
    connection_params: Dict[str, Any],
    weights: Optional[SeverityWeightTable] = None,
    records_table: Optional[str] = None,
    **kwargs: Any,
) -> PostgresResultStore:
    """
    Factory function to create a ready-to-use PostgresResultStore.

    Creates the schema, syncs weights when given, and creates the
    reporting views when the record table is known.
    """
    store = PostgresResultStore(connection_params, **kwargs)
    store.ensure_schema()
    if weights is not None:
        store.sync_severity_weights(weights)
        if records_table:
            store.ensure_reporting_views(records_table)
    return store

"""
Persistence Package

Result stores for validation failures.
"""

from .store import ResultStore, InMemoryResultStore
from .postgres_store import PostgresResultStore, create_postgres_store

__all__ = [
    "ResultStore",
    "InMemoryResultStore",
    "PostgresResultStore",
    "create_postgres_store",
]

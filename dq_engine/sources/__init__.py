"""
Sources Package

Consumed capabilities: record sources and reference lookups.
"""

from .records import (
    Record,
    RecordSource,
    InMemoryRecordSource,
    JsonFileRecordSource,
    PostgresRecordSource,
)
from .reference import (
    ReferenceLookup,
    InMemoryReferenceLookup,
    PostgresReferenceLookup,
)

__all__ = [
    'Record',
    'RecordSource',
    'InMemoryRecordSource',
    'JsonFileRecordSource',
    'PostgresRecordSource',
    'ReferenceLookup',
    'InMemoryReferenceLookup',
    'PostgresReferenceLookup',
]

"""
Data Quality Rule Execution & Weighted Risk Aggregation Engine

Validates a batch of records against declarative quality rules, records
every failing (rule, record) pair exactly once, and rolls failures up into
severity-weighted risk metrics.

Main Components:
- rules: Rule definitions, check types, registry and YAML loader
- engine: Rule evaluation and run orchestration
- persistence: Idempotent result stores (in-memory, PostgreSQL)
- aggregation: Rule summary, category risk, severity distribution, scorecard
- sources: Record sources and reference lookups
- metrics: Prometheus-compatible metrics
- reports: Text, JSON and Markdown run reports

Quick Start:
    from dq_engine import QualityEngine
    from dq_engine.sources import InMemoryRecordSource, InMemoryReferenceLookup

    engine = QualityEngine.from_config()
    report = engine.run(InMemoryRecordSource(claims), providers)

    if report.scorecard.quality_score < 0:
        # Critical batch
        pass
"""

from .errors import (
    DataQualityError,
    ConfigurationError,
    DuplicateRuleIdError,
    UnknownSeverityError,
    RuleDefinitionError,
    RulePredicateError,
    EmptyRecordSetError,
    InvalidRecordError,
    PersistenceError,
)
from .models import ValidationFailure, Severity, Category, RunReport, ExecutiveScorecard
from .weights import SeverityWeightTable
from .rules import RuleRegistry, RuleDefinition, Rule, load_rules
from .engine import RuleEvaluator, ValidationRunner
from .persistence import InMemoryResultStore, PostgresResultStore
from .aggregation import Aggregator
from .metrics import get_metrics
from .quality_engine import QualityEngine

__version__ = "1.0.0"

__all__ = [
    "DataQualityError",
    "ConfigurationError",
    "DuplicateRuleIdError",
    "UnknownSeverityError",
    "RuleDefinitionError",
    "RulePredicateError",
    "EmptyRecordSetError",
    "InvalidRecordError",
    "PersistenceError",
    "ValidationFailure",
    "Severity",
    "Category",
    "RunReport",
    "ExecutiveScorecard",
    "SeverityWeightTable",
    "RuleRegistry",
    "RuleDefinition",
    "Rule",
    "load_rules",
    "RuleEvaluator",
    "ValidationRunner",
    "InMemoryResultStore",
    "PostgresResultStore",
    "Aggregator",
    "get_metrics",
    "QualityEngine",
]

"""
Data Quality Engine

High-level API wiring configuration, rules, weights, the result store,
the runner, the aggregator and metrics.

Usage:
    from dq_engine import QualityEngine
    from dq_engine.sources import JsonFileRecordSource

    engine = QualityEngine.from_config()
    report = engine.run(JsonFileRecordSource("claims.json"), providers)
    print(report.scorecard.quality_score)
"""

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .aggregation import Aggregator
from .config import load_config
from .engine import RuleEvaluator, ValidationRunner
from .errors import ConfigurationError
from .metrics import RunMetrics, get_metrics
from .models import (
    CategoryRiskRow,
    ExecutiveScorecard,
    RuleSummaryRow,
    RunReport,
    Severity,
    SeverityCountRow,
    ValidationFailure,
)
from .persistence import InMemoryResultStore, ResultStore
from .rules import RuleRegistry, load_rules
from .sources import RecordSource
from .weights import SeverityWeightTable

logger = logging.getLogger(__name__)


class QualityEngine:
    """
    Facade over one rule set, one weight table and one result store.

    Integrates runner, aggregation and metrics.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        weights: SeverityWeightTable,
        store: Optional[ResultStore] = None,
        id_field: str = "record_id",
        max_workers: int = 1,
        metrics: Optional[RunMetrics] = None,
        high_severity: str = Severity.HIGH.value,
    ):
        """
        Args:
            registry: Rules to run
            weights: Severity weight table
            store: Result store (in-memory if omitted)
            id_field: Record field holding the record id
            max_workers: Rule evaluation threads
            metrics: Metrics collector (none if omitted)
            high_severity: Severity counted as high_severity_issues
        """
        # Configuration errors surface before any run
        registry.validate_severities(weights)

        self.registry = registry
        self.weights = weights
        self.store = store if store is not None else InMemoryResultStore()
        self.metrics = metrics
        self.runner = ValidationRunner(
            registry,
            self.store,
            weights,
            evaluator=RuleEvaluator(id_field=id_field),
            max_workers=max_workers,
            metrics=metrics,
            high_severity=high_severity,
        )
        self.last_report: Optional[RunReport] = None

    @classmethod
    def from_config(
        cls,
        config: Optional[Dict[str, Any]] = None,
        store: Optional[ResultStore] = None,
        rules_path: Optional[str] = None,
        max_workers: Optional[int] = None,
        enable_metrics: bool = True,
    ) -> "QualityEngine":
        """
        Build an engine from a configuration dictionary.

        Args:
            config: Output of load_config() (default config if omitted)
            store: Result store (in-memory if omitted)
            rules_path: Overrides rules.path
            max_workers: Overrides execution.max_workers
            enable_metrics: Record into the global metrics instance
        """
        if config is None:
            config = load_config()

        path = rules_path or config["rules"].get("path")
        if not path:
            raise ConfigurationError("No rules file configured (rules.path)")

        return cls(
            registry=load_rules(path),
            weights=SeverityWeightTable(config["severity_weights"]),
            store=store,
            id_field=config["records"]["id_field"],
            max_workers=max_workers if max_workers is not None else config["execution"]["max_workers"],
            metrics=get_metrics() if enable_metrics else None,
            high_severity=config.get("high_severity", Severity.HIGH.value),
        )

    @property
    def aggregator(self) -> Aggregator:
        return self.runner.aggregator

    def with_store(self, store: ResultStore) -> "QualityEngine":
        """Engine sharing this one's rules, weights and metrics over another store."""
        return QualityEngine(
            registry=self.registry,
            weights=self.weights,
            store=store,
            id_field=self.runner.evaluator.id_field,
            max_workers=self.runner.max_workers,
            metrics=self.metrics,
            high_severity=self.aggregator.high_severity,
        )

    def adopt(self, other: "QualityEngine") -> None:
        """Serve views from another engine's store and last run from now on."""
        self.store = other.store
        self.runner = other.runner
        self.last_report = other.last_report

    def run(
        self,
        source: RecordSource,
        reference_lookup: Optional[Any] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunReport:
        """Fetch a snapshot from the source and run every rule against it."""
        records = source.fetch_all()
        return self.run_records(records, reference_lookup, cancel_event)

    def run_records(
        self,
        records: Sequence[Mapping[str, Any]],
        reference_lookup: Optional[Any] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunReport:
        """Run every rule against an in-memory record set."""
        report = self.runner.run(records, reference_lookup, cancel_event=cancel_event)
        self.last_report = report
        return report

    def rule_summary(self) -> List[RuleSummaryRow]:
        return self.aggregator.rule_summary()

    def category_risk(self) -> List[CategoryRiskRow]:
        return self.aggregator.category_risk()

    def severity_distribution(self) -> List[SeverityCountRow]:
        return self.aggregator.severity_distribution()

    def executive_scorecard(self, total_records: int) -> ExecutiveScorecard:
        return self.aggregator.executive_scorecard(total_records)

    def failures_for_record(self, record_id: str) -> List[ValidationFailure]:
        return self.store.failures_for_record(record_id)

    def reset(self) -> None:
        """Out-of-band reset of the failure log."""
        logger.warning("Resetting result store")
        self.store.reset()
        self.last_report = None

    def __repr__(self) -> str:
        return (
            f"QualityEngine(rules={self.registry.rule_ids}, "
            f"weights={self.weights.to_dict()}, store={type(self.store).__name__})"
        )

"""
Validation Runner

Orchestrates one validation run:
1. Check configuration (severity weights, reference lookup, record ids)
2. Evaluate each rule against the record snapshot, in parallel when
   configured
3. Persist each rule's failures in one atomic store call
4. Honour cancellation between rule evaluations
5. Build the final views once every rule has committed
"""

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..aggregation.aggregator import Aggregator
from ..errors import ConfigurationError
from ..metrics.prometheus import RunMetrics
from ..models.validation_failure import Severity, utc_now
from ..models.views import RunReport
from ..persistence.store import ResultStore
from ..rules.base import Rule
from ..rules.registry import RuleRegistry
from ..weights import SeverityWeightTable
from .evaluator import RuleEvaluator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleOutcome:
    """What evaluating one rule produced."""
    rule_id: str
    candidates: int
    new_failures: int
    predicate_errors: int


class ValidationRunner:
    """
    Runs a rule registry against a record set.

    Rules are independent and read-only against the snapshot, so they may
    run on worker threads; the result store is the only shared mutable
    resource and its record() call is atomic.

    Usage:
        runner = ValidationRunner(registry, store, weights, max_workers=4)
        report = runner.run(records, reference_lookup=providers)
        if report.is_final:
            print(report.scorecard.quality_score)
    """

    def __init__(
        self,
        registry: RuleRegistry,
        store: ResultStore,
        weights: SeverityWeightTable,
        evaluator: Optional[RuleEvaluator] = None,
        max_workers: int = 1,
        metrics: Optional[RunMetrics] = None,
        high_severity: str = Severity.HIGH.value,
    ):
        if max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {max_workers}")

        self.registry = registry
        self.store = store
        self.weights = weights
        self.evaluator = evaluator or RuleEvaluator()
        self.max_workers = max_workers
        self.metrics = metrics
        self.aggregator = Aggregator(store, weights, high_severity=high_severity)

    def validate_configuration(self, reference_lookup: Optional[Any] = None) -> None:
        """
        Surface configuration errors before anything is evaluated.

        Raises:
            UnknownSeverityError: a rule's severity has no weight
            ConfigurationError: a referential rule has no lookup
        """
        self.registry.validate_severities(self.weights)

        if reference_lookup is None:
            for rule in self.registry:
                if rule.requires_reference:
                    raise ConfigurationError(
                        f"Rule {rule.rule_id!r} needs a reference lookup but none was provided"
                    )

    def run(
        self,
        records: Sequence[Mapping[str, Any]],
        reference_lookup: Optional[Any] = None,
        cancel_event: Optional[threading.Event] = None,
        run_id: Optional[str] = None,
    ) -> RunReport:
        """
        Execute every registered rule against the records.

        Args:
            records: Record set snapshot for the run
            reference_lookup: Lookup for referential rules
            cancel_event: When set, no further rules start; rules already
                committed stay committed
            run_id: Identifier for logs and reports (generated if omitted)

        Returns:
            RunReport; its scorecard is only set for a completed run

        Raises:
            ConfigurationError: before evaluation, for a malformed rule set
            InvalidRecordError: before evaluation, for a record without id
            EmptyRecordSetError: when the final scorecard has no records
        """
        records = list(records)
        self.validate_configuration(reference_lookup)
        self.evaluator.check_records(records)

        report = RunReport(
            run_id=run_id or uuid.uuid4().hex[:12],
            started_at=utc_now(),
            total_records=len(records),
            total_rules=len(self.registry),
        )
        logger.info(
            f"Run {report.run_id}: evaluating {report.total_rules} rules "
            f"against {report.total_records} records"
        )

        rules = list(self.registry)
        if self.max_workers == 1:
            outcomes = self._run_sequential(rules, records, reference_lookup, cancel_event)
        else:
            outcomes = self._run_parallel(rules, records, reference_lookup, cancel_event)

        for rule in rules:
            outcome = outcomes.get(rule.rule_id)
            if outcome is None:
                continue
            report.rules_evaluated.append(rule.rule_id)
            report.candidate_failures += outcome.candidates
            report.new_failures += outcome.new_failures
            report.predicate_errors += outcome.predicate_errors
            report.new_failures_by_rule[rule.rule_id] = outcome.new_failures

        report.cancelled = len(outcomes) < len(rules)

        if report.cancelled:
            logger.warning(
                f"Run {report.run_id} cancelled after {len(outcomes)} of "
                f"{len(rules)} rules; no final scorecard"
            )
        else:
            # Barrier: every rule has committed, the views are final
            report.rule_summary = self.aggregator.rule_summary()
            report.category_risk = self.aggregator.category_risk()
            report.severity_distribution = self.aggregator.severity_distribution()
            report.scorecard = self.aggregator.executive_scorecard(report.total_records)
            logger.info(
                f"Run {report.run_id} complete: {report.new_failures} new failures, "
                f"quality_score={report.scorecard.quality_score:.2f}"
            )

        report.finished_at = utc_now()
        if self.metrics:
            self.metrics.record_run(report)
        return report

    def _run_sequential(
        self,
        rules: List[Rule],
        records: Sequence[Mapping[str, Any]],
        reference_lookup: Optional[Any],
        cancel_event: Optional[threading.Event],
    ) -> Dict[str, RuleOutcome]:
        outcomes: Dict[str, RuleOutcome] = {}
        for rule in rules:
            outcome = self._evaluate_rule(rule, records, reference_lookup, cancel_event)
            if outcome is None:
                break
            outcomes[rule.rule_id] = outcome
        return outcomes

    def _run_parallel(
        self,
        rules: List[Rule],
        records: Sequence[Mapping[str, Any]],
        reference_lookup: Optional[Any],
        cancel_event: Optional[threading.Event],
    ) -> Dict[str, RuleOutcome]:
        outcomes: Dict[str, RuleOutcome] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="dq-rule") as executor:
            futures = [
                executor.submit(self._evaluate_rule, rule, records, reference_lookup, cancel_event)
                for rule in rules
            ]
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                outcome = future.result()
                if outcome is not None:
                    outcomes[outcome.rule_id] = outcome
                if cancel_event is not None and cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()
        return outcomes

    def _evaluate_rule(
        self,
        rule: Rule,
        records: Sequence[Mapping[str, Any]],
        reference_lookup: Optional[Any],
        cancel_event: Optional[threading.Event],
    ) -> Optional[RuleOutcome]:
        """Evaluate and persist one rule; None if cancelled before starting."""
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Skipping rule {rule.rule_id}: run cancelled")
            return None

        # Buffer the whole rule so its insert is a single atomic call
        failures = list(self.evaluator.evaluate(rule, records, reference_lookup))
        predicate_errors = sum(1 for f in failures if f.is_predicate_error)
        new_failures = self.store.record(failures)

        logger.info(
            f"Rule {rule.rule_id} ({rule.name}): {len(failures)} failures, "
            f"{new_failures} new, {predicate_errors} predicate errors"
        )

        if self.metrics:
            self.metrics.record_rule(
                rule.rule_id,
                rule.severity,
                rule.category,
                records=len(records),
                new_failures=new_failures,
                predicate_errors=predicate_errors,
            )

        return RuleOutcome(
            rule_id=rule.rule_id,
            candidates=len(failures),
            new_failures=new_failures,
            predicate_errors=predicate_errors,
        )

"""
Weighted Risk Aggregation

Four read-side views, all pure functions of the stored failures and the
severity weight table:

- rule summary:          failure_count and failure_count x weight per rule
- category risk:         sum of per-failure weights per category
- severity distribution: failure count per severity that occurred
- executive scorecard:   totals and the weighted quality score

quality_score = 100 - sum(weights) / (total_records x max_weight) x 100,
rounded half away from zero to 2 places and not clamped.
"""

import logging
from collections import Counter, OrderedDict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Sequence

from ..errors import EmptyRecordSetError
from ..models.validation_failure import Severity, ValidationFailure, normalize_severity
from ..models.views import (
    CategoryRiskRow,
    ExecutiveScorecard,
    RuleSummaryRow,
    SeverityCountRow,
)
from ..persistence.store import ResultStore
from ..weights import SeverityWeightTable

logger = logging.getLogger(__name__)

_TWO_PLACES = Decimal("0.01")


def summarize_rules(
    failures: Iterable[ValidationFailure], weights: SeverityWeightTable
) -> List[RuleSummaryRow]:
    """
    Rule-level summary, heaviest weighted_impact first.

    One row per rule_id. Predicate errors count toward the rule's totals
    and are also reported in predicate_errors; name, category and severity
    come from the rule's regular failures when it has any.
    """
    counts: Counter = Counter()
    predicate_errors: Counter = Counter()
    labels: Dict[str, ValidationFailure] = {}
    for failure in failures:
        counts[failure.rule_id] += 1
        if failure.is_predicate_error:
            predicate_errors[failure.rule_id] += 1
        current = labels.get(failure.rule_id)
        if current is None or (current.is_predicate_error and not failure.is_predicate_error):
            labels[failure.rule_id] = failure

    rows = []
    for rule_id, count in counts.items():
        label = labels[rule_id]
        rows.append(
            RuleSummaryRow(
                rule_id=rule_id,
                rule_name=label.rule_name,
                category=label.category,
                severity=label.severity,
                failure_count=count,
                weighted_impact=count * weights.get(label.severity, rule_id=rule_id),
                predicate_errors=predicate_errors[rule_id],
            )
        )
    rows.sort(key=lambda row: (-row.weighted_impact, row.rule_id))
    return rows


def category_risk(
    failures: Iterable[ValidationFailure], weights: SeverityWeightTable
) -> List[CategoryRiskRow]:
    """Per-category sum of failure weights, riskiest first."""
    scores: "OrderedDict[str, int]" = OrderedDict()
    for failure in failures:
        weight = weights.get(failure.severity, rule_id=failure.rule_id)
        scores[failure.category] = scores.get(failure.category, 0) + weight

    rows = [CategoryRiskRow(category=c, risk_score=s) for c, s in scores.items()]
    rows.sort(key=lambda row: (-row.risk_score, row.category))
    return rows


def severity_distribution(
    failures: Iterable[ValidationFailure], weights: SeverityWeightTable
) -> List[SeverityCountRow]:
    """Histogram over the severities that occurred, heaviest severity first."""
    counts: Counter = Counter()
    for failure in failures:
        # Unknown severities are a configuration error, even here
        weights.get(failure.severity, rule_id=failure.rule_id)
        counts[failure.severity] += 1

    order = {severity: i for i, severity in enumerate(weights.ordered_severities())}
    return [
        SeverityCountRow(severity=severity, failure_count=counts[severity])
        for severity in sorted(counts, key=lambda s: order[normalize_severity(s)])
    ]


def quality_score(total_weight: int, total_records: int, max_weight: int) -> float:
    """
    Weighted quality score on a 0-100 scale, 100 meaning defect-free.

    Not clamped: dense multi-rule HIGH failures push it below zero.

    Raises:
        EmptyRecordSetError: if total_records is zero
    """
    if total_records <= 0:
        raise EmptyRecordSetError()

    penalty = Decimal(total_weight) * 100 / (Decimal(total_records) * Decimal(max_weight))
    score = (Decimal(100) - penalty).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    return float(score)


def executive_scorecard(
    failures: Sequence[ValidationFailure],
    weights: SeverityWeightTable,
    total_records: int,
    high_severity: str = Severity.HIGH.value,
) -> ExecutiveScorecard:
    """
    Build the single-row executive scorecard.

    Raises:
        EmptyRecordSetError: if total_records is zero
        UnknownSeverityError: if a failure's severity has no weight
    """
    if total_records <= 0:
        raise EmptyRecordSetError()

    high = normalize_severity(high_severity)
    total_weight = sum(weights.get(f.severity, rule_id=f.rule_id) for f in failures)

    return ExecutiveScorecard(
        total_records=total_records,
        records_with_issues=len({f.record_id for f in failures}),
        high_severity_issues=sum(1 for f in failures if f.severity == high),
        quality_score=quality_score(total_weight, total_records, weights.max_weight),
    )


class Aggregator:
    """
    Read-only views over a ResultStore.

    Every call rescans the store; there is no cached state. Views read
    while a run is in flight are partial and only suitable for monitoring.

    Usage:
        aggregator = Aggregator(store, SeverityWeightTable.default())
        aggregator.rule_summary()
        aggregator.executive_scorecard(total_records=10000)
    """

    def __init__(
        self,
        store: ResultStore,
        weights: SeverityWeightTable,
        high_severity: str = Severity.HIGH.value,
    ):
        self.store = store
        self.weights = weights
        self.high_severity = normalize_severity(high_severity)

    def rule_summary(self) -> List[RuleSummaryRow]:
        return summarize_rules(self.store.all_failures(), self.weights)

    def category_risk(self) -> List[CategoryRiskRow]:
        return category_risk(self.store.all_failures(), self.weights)

    def severity_distribution(self) -> List[SeverityCountRow]:
        return severity_distribution(self.store.all_failures(), self.weights)

    def executive_scorecard(self, total_records: int) -> ExecutiveScorecard:
        scorecard = executive_scorecard(
            self.store.all_failures(),
            self.weights,
            total_records,
            high_severity=self.high_severity,
        )
        logger.debug(f"Scorecard: {scorecard}")
        return scorecard

"""
Aggregate view models and run summaries.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RuleSummaryRow:
    """Rule-level failure count and weighted impact."""

    rule_id: str
    rule_name: str
    category: str
    severity: str
    failure_count: int
    weighted_impact: int
    predicate_errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CategoryRiskRow:
    """Summed severity weight of all failures in a category."""

    category: str
    risk_score: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SeverityCountRow:
    """Histogram bucket of the severity distribution."""

    severity: str
    failure_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ExecutiveScorecard:
    """
    Single-row executive view.

    quality_score is not clamped: heavy HIGH-severity failure density can
    push it below zero, which consumers should display as critical.
    """

    total_records: int
    records_with_issues: int
    high_severity_issues: int
    quality_score: float

    @property
    def is_critical(self) -> bool:
        return self.quality_score < 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RunReport:
    """
    Outcome of one validation run.

    The scorecard is only populated once every rule of the run has been
    evaluated and committed; a cancelled run carries no scorecard.
    """

    run_id: str
    started_at: datetime
    total_records: int
    total_rules: int
    finished_at: Optional[datetime] = None
    rules_evaluated: List[str] = field(default_factory=list)
    new_failures: int = 0
    candidate_failures: int = 0
    predicate_errors: int = 0
    new_failures_by_rule: Dict[str, int] = field(default_factory=dict)
    cancelled: bool = False
    scorecard: Optional[ExecutiveScorecard] = None
    rule_summary: List[RuleSummaryRow] = field(default_factory=list)
    category_risk: List[CategoryRiskRow] = field(default_factory=list)
    severity_distribution: List[SeverityCountRow] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        """True when the run completed and its views may be reported as final."""
        return not self.cancelled and self.scorecard is not None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON reports."""
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "total_records": self.total_records,
            "total_rules": self.total_rules,
            "rules_evaluated": list(self.rules_evaluated),
            "new_failures": self.new_failures,
            "candidate_failures": self.candidate_failures,
            "predicate_errors": self.predicate_errors,
            "new_failures_by_rule": dict(self.new_failures_by_rule),
            "cancelled": self.cancelled,
            "is_final": self.is_final,
            "scorecard": self.scorecard.to_dict() if self.scorecard else None,
            "rule_summary": [row.to_dict() for row in self.rule_summary],
            "category_risk": [row.to_dict() for row in self.category_risk],
            "severity_distribution": [row.to_dict() for row in self.severity_distribution],
        }

"""
Prometheus Metrics for Rule Execution

Exposes engine metrics in Prometheus text format for monitoring and alerting.

Metrics Exposed:
- dq_engine_runs_total: Validation runs by outcome (completed, cancelled)
- dq_engine_rules_evaluated_total: Rule evaluations performed
- dq_engine_records_scanned_total: Record visits across all rule scans
- dq_engine_new_failures_total: Newly stored failures by rule, severity, category
- dq_engine_predicate_errors_total: Predicate errors by rule
- dq_engine_quality_score: Quality score of the last completed run
- dq_engine_run_duration_seconds: Run duration distribution
"""

import threading
import time
from collections import defaultdict
from typing import Any, Dict, Optional

from ..models.views import RunReport


class RunMetrics:
    """
    Collects and formats rule execution metrics for Prometheus.

    Metrics follow Prometheus naming conventions:
    - Counter: dq_engine_new_failures_total (monotonically increasing)
    - Gauge: dq_engine_quality_score (current value)
    - Histogram: dq_engine_run_duration_seconds (distribution)

    Usage:
        metrics = RunMetrics()

        # Record one rule's outcome and the run
        metrics.record_rule("R001", "HIGH", "Completeness", records=10000,
                            new_failures=222, predicate_errors=0)
        metrics.record_run(report)

        # Export metrics
        print(metrics.export_text())
    """

    def __init__(self):
        """Initialize metrics collectors."""
        # Rules run on worker threads
        self._lock = threading.Lock()

        self.runs_by_outcome: Dict[str, int] = defaultdict(int)
        self.rules_evaluated = 0
        self.records_scanned = 0

        # New failures (for alerting)
        self.failures_by_rule: Dict[str, int] = defaultdict(int)
        self.failures_by_severity: Dict[str, int] = defaultdict(int)
        self.failures_by_category: Dict[str, int] = defaultdict(int)
        self.predicate_errors_by_rule: Dict[str, int] = defaultdict(int)

        self.last_quality_score: Optional[float] = None

        # Run duration histogram (buckets in seconds)
        self.duration_buckets = [0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0]
        self.duration_counts = defaultdict(int)
        self.duration_sum = 0.0
        self.duration_count = 0

        self.start_time = time.time()

    def record_rule(
        self,
        rule_id: str,
        severity: str,
        category: str,
        records: int,
        new_failures: int,
        predicate_errors: int = 0,
    ) -> None:
        """Record the outcome of evaluating one rule."""
        with self._lock:
            self.rules_evaluated += 1
            self.records_scanned += records
            if new_failures:
                self.failures_by_rule[rule_id] += new_failures
                self.failures_by_severity[severity] += new_failures
                self.failures_by_category[category] += new_failures
            if predicate_errors:
                self.predicate_errors_by_rule[rule_id] += predicate_errors

    def record_run(self, report: RunReport) -> None:
        """Record a finished (or cancelled) run."""
        with self._lock:
            self.runs_by_outcome["cancelled" if report.cancelled else "completed"] += 1

            if report.scorecard is not None:
                self.last_quality_score = report.scorecard.quality_score

            duration = report.duration_seconds
            if duration is not None:
                self.duration_sum += duration
                self.duration_count += 1
                for bucket in self.duration_buckets:
                    # Export accumulates, so count only the smallest fitting bucket
                    if duration <= bucket:
                        self.duration_counts[bucket] += 1
                        break

    def export_text(self) -> str:
        """
        Export metrics in Prometheus text format.

        Returns:
            Metrics formatted as Prometheus text exposition format
        """
        with self._lock:
            lines = []

            lines.append("# Data Quality Engine Metrics")
            lines.append("")

            lines.append("# HELP dq_engine_runs_total Validation runs by outcome")
            lines.append("# TYPE dq_engine_runs_total counter")
            for outcome, count in sorted(self.runs_by_outcome.items()):
                lines.append(f'dq_engine_runs_total{{outcome="{outcome}"}} {count}')
            lines.append("")

            lines.append("# HELP dq_engine_rules_evaluated_total Rule evaluations performed")
            lines.append("# TYPE dq_engine_rules_evaluated_total counter")
            lines.append(f"dq_engine_rules_evaluated_total {self.rules_evaluated}")
            lines.append("")

            lines.append("# HELP dq_engine_records_scanned_total Record visits across rule scans")
            lines.append("# TYPE dq_engine_records_scanned_total counter")
            lines.append(f"dq_engine_records_scanned_total {self.records_scanned}")
            lines.append("")

            lines.append("# HELP dq_engine_new_failures_total Newly stored failures")
            lines.append("# TYPE dq_engine_new_failures_total counter")
            for rule_id, count in sorted(self.failures_by_rule.items()):
                lines.append(f'dq_engine_new_failures_total{{rule_id="{rule_id}"}} {count}')
            for severity, count in sorted(self.failures_by_severity.items()):
                lines.append(f'dq_engine_new_failures_total{{severity="{severity}"}} {count}')
            for category, count in sorted(self.failures_by_category.items()):
                lines.append(f'dq_engine_new_failures_total{{category="{category}"}} {count}')
            lines.append("")

            lines.append("# HELP dq_engine_predicate_errors_total Predicate errors by rule")
            lines.append("# TYPE dq_engine_predicate_errors_total counter")
            for rule_id, count in sorted(self.predicate_errors_by_rule.items()):
                lines.append(f'dq_engine_predicate_errors_total{{rule_id="{rule_id}"}} {count}')
            lines.append("")

            if self.last_quality_score is not None:
                lines.append("# HELP dq_engine_quality_score Quality score of the last completed run")
                lines.append("# TYPE dq_engine_quality_score gauge")
                lines.append(f"dq_engine_quality_score {self.last_quality_score:.2f}")
                lines.append("")

            lines.append("# HELP dq_engine_run_duration_seconds Run duration distribution")
            lines.append("# TYPE dq_engine_run_duration_seconds histogram")
            cumulative = 0
            for bucket in sorted(self.duration_buckets):
                cumulative += self.duration_counts[bucket]
                lines.append(f'dq_engine_run_duration_seconds_bucket{{le="{bucket}"}} {cumulative}')
            lines.append(f'dq_engine_run_duration_seconds_bucket{{le="+Inf"}} {self.duration_count}')
            lines.append(f"dq_engine_run_duration_seconds_sum {self.duration_sum:.6f}")
            lines.append(f"dq_engine_run_duration_seconds_count {self.duration_count}")
            lines.append("")

            uptime = time.time() - self.start_time
            lines.append("# HELP dq_engine_uptime_seconds Time since metrics started")
            lines.append("# TYPE dq_engine_uptime_seconds counter")
            lines.append(f"dq_engine_uptime_seconds {uptime:.2f}")
            lines.append("")

            return "\n".join(lines)

    def export_json(self) -> Dict[str, Any]:
        """
        Export metrics as JSON (for logging/debugging).

        Returns:
            Metrics as dictionary
        """
        with self._lock:
            avg_duration = (self.duration_sum / self.duration_count) if self.duration_count > 0 else 0

            return {
                'runs_by_outcome': dict(self.runs_by_outcome),
                'rules_evaluated': self.rules_evaluated,
                'records_scanned': self.records_scanned,
                'failures_by_rule': dict(self.failures_by_rule),
                'failures_by_severity': dict(self.failures_by_severity),
                'failures_by_category': dict(self.failures_by_category),
                'predicate_errors_by_rule': dict(self.predicate_errors_by_rule),
                'last_quality_score': self.last_quality_score,
                'avg_run_duration_seconds': avg_duration,
                'uptime_seconds': time.time() - self.start_time
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self.runs_by_outcome.clear()
            self.rules_evaluated = 0
            self.records_scanned = 0
            self.failures_by_rule.clear()
            self.failures_by_severity.clear()
            self.failures_by_category.clear()
            self.predicate_errors_by_rule.clear()
            self.last_quality_score = None
            self.duration_counts.clear()
            self.duration_sum = 0.0
            self.duration_count = 0
            self.start_time = time.time()


# Global metrics instance (singleton pattern)
_global_metrics: Optional[RunMetrics] = None


def get_metrics() -> RunMetrics:
    """
    Get global metrics instance (singleton).

    Returns:
        Global RunMetrics instance
    """
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = RunMetrics()
    return _global_metrics


def reset_metrics() -> None:
    """Reset global metrics instance."""
    global _global_metrics
    if _global_metrics:
        _global_metrics.reset()


def metrics_endpoint() -> str:
    """
    HTTP endpoint handler for Prometheus scraping.

    Returns:
        Metrics in Prometheus text format
    """
    return get_metrics().export_text()

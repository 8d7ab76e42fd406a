"""
Aggregation Package

Severity-weighted views over the failure log.
"""

from .aggregator import (
    Aggregator,
    summarize_rules,
    category_risk,
    severity_distribution,
    executive_scorecard,
    quality_score,
)

__all__ = [
    "Aggregator",
    "summarize_rules",
    "category_risk",
    "severity_distribution",
    "executive_scorecard",
    "quality_score",
]

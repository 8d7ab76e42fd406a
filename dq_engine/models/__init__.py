"""
Data Quality Models Module

Defines data structures for failures, aggregate views and run reports.
"""

from .validation_failure import (
    Severity,
    Category,
    ValidationFailure,
    normalize_severity,
    normalize_category,
    utc_now,
)
from .views import (
    RuleSummaryRow,
    CategoryRiskRow,
    SeverityCountRow,
    ExecutiveScorecard,
    RunReport,
)

__all__ = [
    "Severity",
    "Category",
    "ValidationFailure",
    "normalize_severity",
    "normalize_category",
    "utc_now",
    "RuleSummaryRow",
    "CategoryRiskRow",
    "SeverityCountRow",
    "ExecutiveScorecard",
    "RunReport",
]

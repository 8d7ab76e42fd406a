"""
Validation Failure Data Models

Defines the core record of the engine: one failing (rule, record) pair.

Design Philosophy:
- Immutable (frozen dataclasses); a failure is never updated after insert
- Severities and categories are plain strings so rule sets can extend them;
  the enums below name the standard values
- Serializable (to_dict) for storage, reports and the HTTP API
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Tuple, Union


class Severity(str, Enum):
    """
    Standard severity levels.

    Members compare equal to their string values, so
    ``Severity.HIGH == "HIGH"`` holds and rule sets may add their own levels
    as long as the weight table knows them.
    """
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Category(str, Enum):
    """Standard rule categories."""
    COMPLETENESS = "Completeness"
    VALIDITY = "Validity"
    CONSISTENCY = "Consistency"
    REFERENTIAL_INTEGRITY = "Referential Integrity"
    # Reserved for failures synthesized from predicate errors
    PREDICATE_ERROR = "Predicate Error"


def normalize_severity(severity: Union[str, Severity]) -> str:
    """Return the canonical upper-case string for a severity."""
    if isinstance(severity, Enum):
        return str(severity.value)
    return str(severity).strip().upper()


def normalize_category(category: Union[str, Category]) -> str:
    """Return the string value for a category."""
    if isinstance(category, Enum):
        return str(category.value)
    return str(category).strip()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ValidationFailure:
    """
    A single rule violation by a single record.

    Attributes:
        rule_id: Stable identifier of the violated rule (e.g., "R003")
        rule_name: Human-readable rule name (denormalized)
        category: Rule category (denormalized)
        severity: Rule severity (denormalized)
        record_id: Identifier of the offending record
        failure_reason: Short, fixed reason string for the rule
        detected_at: When the failure was first observed
    """
    rule_id: str
    rule_name: str
    category: str
    severity: str
    record_id: str
    failure_reason: str
    detected_at: datetime = field(default_factory=utc_now)

    @property
    def key(self) -> Tuple[str, str]:
        """Uniqueness key of the failure log."""
        return (self.rule_id, self.record_id)

    @property
    def is_predicate_error(self) -> bool:
        return self.category == Category.PREDICATE_ERROR.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'rule_id': self.rule_id,
            'rule_name': self.rule_name,
            'category': self.category,
            'severity': self.severity,
            'record_id': self.record_id,
            'failure_reason': self.failure_reason,
            'detected_at': self.detected_at.isoformat(),
        }

    def __str__(self) -> str:
        return f"[{self.severity}] {self.rule_id} {self.record_id}: {self.failure_reason}"

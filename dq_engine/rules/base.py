"""
Rule Abstractions

A rule is a named, categorized, severity-tagged predicate. Each concrete
rule implements ``evaluate(record, reference_lookup)`` and returns a
Violation when the record breaks it, or None when it does not. The
evaluator never branches on rule type; new rules are added by subclassing
Rule.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from ..errors import ConfigurationError
from ..models.validation_failure import (
    Category,
    normalize_category,
    normalize_severity,
)


@dataclass(frozen=True)
class RuleDefinition:
    """
    Immutable rule metadata.

    Attributes:
        rule_id: Unique, stable identifier (e.g., "R001")
        name: Human-readable name (e.g., "Missing Diagnosis")
        category: Completeness, Validity, Consistency, Referential Integrity, ...
        severity: HIGH, MEDIUM, LOW, ...
    """
    rule_id: str
    name: str
    category: str
    severity: str

    def __post_init__(self):
        if not self.rule_id or not str(self.rule_id).strip():
            raise ConfigurationError("rule_id must be a non-empty string")
        if normalize_category(self.category) == Category.PREDICATE_ERROR.value:
            raise ConfigurationError(
                f"Rule {self.rule_id!r}: category {self.category!r} is reserved "
                f"for predicate error diagnostics"
            )
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "rule_id", str(self.rule_id).strip())
        object.__setattr__(self, "category", normalize_category(self.category))
        object.__setattr__(self, "severity", normalize_severity(self.severity))


@dataclass(frozen=True)
class Violation:
    """Outcome of a predicate that fired: a short, fixed reason string."""
    reason: str


class Rule(ABC):
    """
    Base class for all rules.

    Subclasses must be pure: the same record and reference data always
    produce the same verdict, which is what makes re-runs idempotent.
    """

    # Rules that consult the reference lookup set this to True so the
    # runner can refuse to start without one.
    requires_reference: bool = False

    def __init__(self, definition: RuleDefinition, failure_reason: str):
        if not failure_reason:
            raise ConfigurationError(
                f"Rule {definition.rule_id!r} must declare a failure_reason"
            )
        self.definition = definition
        self.failure_reason = failure_reason

    @property
    def rule_id(self) -> str:
        return self.definition.rule_id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def category(self) -> str:
        return self.definition.category

    @property
    def severity(self) -> str:
        return self.definition.severity

    def violation(self) -> Violation:
        return Violation(self.failure_reason)

    @abstractmethod
    def evaluate(
        self,
        record: Mapping[str, Any],
        reference_lookup: Optional[Any] = None,
    ) -> Optional[Violation]:
        """
        Test one record.

        Args:
            record: The record under validation
            reference_lookup: Optional ReferenceLookup for referential rules

        Returns:
            Violation if the record breaks the rule, None otherwise
        """

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(rule_id={self.rule_id!r}, "
            f"category={self.category!r}, severity={self.severity!r})"
        )


class PredicateRule(Rule):
    """
    Rule backed by a plain callable.

    Usage:
        rule = PredicateRule(
            RuleDefinition("R100", "Negative Amount", "Validity", "HIGH"),
            predicate=lambda record, lookup: record["amount"] < 0,
            failure_reason="amount < 0",
        )

    The callable returns True when the record violates the rule.
    """

    def __init__(
        self,
        definition: RuleDefinition,
        predicate: Callable[[Mapping[str, Any], Optional[Any]], bool],
        failure_reason: str,
        requires_reference: bool = False,
    ):
        super().__init__(definition, failure_reason)
        self.predicate = predicate
        self.requires_reference = requires_reference

    def evaluate(self, record, reference_lookup=None):
        if self.predicate(record, reference_lookup):
            return self.violation()
        return None

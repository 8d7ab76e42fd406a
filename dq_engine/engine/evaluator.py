"""
Rule Evaluator

Scans the record set once per rule and yields a ValidationFailure
candidate for every record that violates it. Predicate exceptions are
recovered per record and reported as diagnostic failures.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence

from ..errors import ConfigurationError, InvalidRecordError, RulePredicateError
from ..models.validation_failure import Category, ValidationFailure, utc_now
from ..rules.base import Rule
from ..rules.fields import get_field

logger = logging.getLogger(__name__)


class RuleEvaluator:
    """
    Applies one rule to a record set.

    Usage:
        evaluator = RuleEvaluator(id_field="claim_id")
        for failure in evaluator.evaluate(rule, records, providers):
            ...
    """

    def __init__(
        self,
        id_field: str = "record_id",
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            id_field: Record field (dot path) holding the record id
            clock: Source of detected_at timestamps
        """
        self.id_field = id_field
        self.clock = clock

    def record_id(self, record: Mapping[str, Any], position: int = 0) -> str:
        """
        Extract the id of a record.

        Raises:
            InvalidRecordError: if the id field is absent or NULL
        """
        value = get_field(record, self.id_field)
        if value is None:
            raise InvalidRecordError(position, self.id_field)
        return str(value)

    def check_records(self, records: Sequence[Mapping[str, Any]]) -> None:
        """Fail fast on records that cannot be keyed."""
        for position, record in enumerate(records):
            self.record_id(record, position)

    def evaluate(
        self,
        rule: Rule,
        records: Sequence[Mapping[str, Any]],
        reference_lookup: Optional[Any] = None,
    ) -> Iterator[ValidationFailure]:
        """
        Lazily yield failure candidates for one rule.

        Args:
            rule: The rule to apply
            records: Record set snapshot for the run
            reference_lookup: Required by referential rules

        Yields:
            ValidationFailure per violating record, plus one diagnostic
            failure (category "Predicate Error") per record whose
            predicate raised

        Raises:
            ConfigurationError: if a referential rule gets no lookup
        """
        if rule.requires_reference and reference_lookup is None:
            raise ConfigurationError(
                f"Rule {rule.rule_id!r} needs a reference lookup but none was provided"
            )

        for position, record in enumerate(records):
            record_id = self.record_id(record, position)

            try:
                violation = rule.evaluate(record, reference_lookup)
            except Exception as e:
                error = RulePredicateError(rule.rule_id, record_id, e)
                logger.warning(str(error))
                yield self._predicate_error_failure(rule, error)
                continue

            if violation is None:
                continue

            yield ValidationFailure(
                rule_id=rule.rule_id,
                rule_name=rule.name,
                category=rule.category,
                severity=rule.severity,
                record_id=record_id,
                failure_reason=violation.reason,
                detected_at=self.clock(),
            )

    def _predicate_error_failure(self, rule: Rule, error: RulePredicateError) -> ValidationFailure:
        return ValidationFailure(
            rule_id=rule.rule_id,
            rule_name=rule.name,
            category=Category.PREDICATE_ERROR.value,
            severity=rule.severity,
            record_id=error.record_id,
            failure_reason=error.failure_reason,
            detected_at=self.clock(),
        )

"""
Data Quality Engine Errors

Exception taxonomy:
- Configuration errors: fatal, raised before any rule is evaluated
- Predicate errors: recovered per record and stored as diagnostic failures
- Aggregation errors: raised when a view cannot be computed honestly
- Persistence errors: database failures wrapped in a domain error
"""

from typing import Optional


class DataQualityError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(DataQualityError, ValueError):
    """The rule set, weight table or engine configuration is malformed."""


class DuplicateRuleIdError(ConfigurationError):
    """Two rule definitions share the same rule_id."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Duplicate rule_id in registry: {rule_id!r}")


class UnknownSeverityError(ConfigurationError):
    """A severity has no entry in the severity weight table."""

    def __init__(self, severity: str, rule_id: Optional[str] = None):
        self.severity = severity
        self.rule_id = rule_id
        if rule_id:
            message = f"Rule {rule_id!r} uses severity {severity!r} which has no configured weight"
        else:
            message = f"No weight configured for severity {severity!r}"
        super().__init__(message)


class RuleDefinitionError(ConfigurationError):
    """A declarative rule entry could not be turned into a rule."""


class RulePredicateError(DataQualityError):
    """
    A rule predicate raised while inspecting a record.

    Never propagated out of the evaluator: it is converted into a
    diagnostic ValidationFailure so one bad record cannot abort a batch.
    """

    def __init__(self, rule_id: str, record_id: str, cause: BaseException):
        self.rule_id = rule_id
        self.record_id = record_id
        self.cause = cause
        super().__init__(
            f"Rule {rule_id!r} failed on record {record_id!r}: "
            f"{type(cause).__name__}: {cause}"
        )

    @property
    def failure_reason(self) -> str:
        """Stable, groupable reason string for the diagnostic failure."""
        return f"predicate error: {type(self.cause).__name__}"


class EmptyRecordSetError(DataQualityError):
    """The scorecard was requested for a record set with no records."""

    def __init__(self):
        super().__init__(
            "Cannot compute quality_score for an empty record set: "
            "no records is not the same claim as no defects"
        )


class PersistenceError(DataQualityError):
    """The result store backend failed."""


class InvalidRecordError(DataQualityError):
    """A record cannot be keyed because its id field is empty."""

    def __init__(self, position: int, id_field: str):
        self.position = position
        self.id_field = id_field
        super().__init__(
            f"Record at position {position} has no value for id field {id_field!r}"
        )

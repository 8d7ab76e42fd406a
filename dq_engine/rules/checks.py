"""
Concrete Rule Implementations

Supported check types:
- not_null: the targeted field is absent or NULL
- comparison: every condition of the rule holds (a conjunction, like a
  SQL WHERE clause describing the defect)
- reference: a foreign key has no match in the reference dataset

NULL semantics follow SQL: a comparison with a NULL operand is never
true, and a NULL foreign key is a completeness concern, not a referential
one.
"""

import operator
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from ..errors import RuleDefinitionError
from .base import Rule, RuleDefinition, Violation
from .fields import get_field, is_missing


def _in(left: Any, right: Any) -> bool:
    return left in right


def _not_in(left: Any, right: Any) -> bool:
    return left not in right


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "gt": operator.gt,
    "ge": operator.ge,
    "lt": operator.lt,
    "le": operator.le,
    "eq": operator.eq,
    "ne": operator.ne,
    "in": _in,
    "not_in": _not_in,
}

OPERATOR_SYMBOLS = {
    ">": "gt",
    ">=": "ge",
    "<": "lt",
    "<=": "le",
    "==": "eq",
    "=": "eq",
    "!=": "ne",
}


def _to_number(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise TypeError(f"boolean {value!r} is not a number")
    if isinstance(value, Decimal):
        return value
    # str() first so floats keep their printed value (0.1 stays 0.1)
    return Decimal(str(value).strip())


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"cannot interpret {type(value).__name__} as a date")


COERCIONS: Dict[str, Callable[[Any], Any]] = {
    "number": _to_number,
    "date": _to_date,
    "string": str,
}


@dataclass(frozen=True)
class Condition:
    """
    One comparison between a record field and a literal or another field.

    Examples:
        Condition("paid_amount", "gt", other_field="claim_amount", value_type="number")
        Condition("claim_status", "eq", value="DENIED")
    """
    field: str
    op: str
    value: Any = None
    other_field: Optional[str] = None
    value_type: Optional[str] = None

    def __post_init__(self):
        op = OPERATOR_SYMBOLS.get(self.op, self.op)
        if op not in OPERATORS:
            raise RuleDefinitionError(
                f"Unknown comparison operator {self.op!r} for field {self.field!r}"
            )
        object.__setattr__(self, "op", op)
        if self.value_type is not None and self.value_type not in COERCIONS:
            raise RuleDefinitionError(
                f"Unknown value_type {self.value_type!r} for field {self.field!r}"
            )
        if op in ("in", "not_in") and self.other_field is None:
            if not isinstance(self.value, (list, tuple, set, frozenset)):
                raise RuleDefinitionError(
                    f"Operator {op!r} on field {self.field!r} needs a list value"
                )

    def _coerce(self, value: Any) -> Any:
        if self.value_type is None:
            return value
        return COERCIONS[self.value_type](value)

    def holds(self, record: Mapping[str, Any]) -> bool:
        """
        Evaluate the condition against a record.

        Raises whatever the operands raise (e.g., TypeError comparing a
        string with a number); the evaluator turns that into a predicate
        error for this record only.
        """
        left = get_field(record, self.field)
        if left is None:
            return False

        if self.other_field is not None:
            right = get_field(record, self.other_field)
            if right is None:
                return False
            right = self._coerce(right)
        elif self.op in ("in", "not_in"):
            right = [self._coerce(v) for v in self.value]
        else:
            if self.value is None:
                return False
            right = self._coerce(self.value)

        return OPERATORS[self.op](self._coerce(left), right)


class NotNullRule(Rule):
    """
    Flags records whose targeted field is absent or NULL.

    Blank strings only count as missing when ``blank_is_null`` is set;
    SQL's ``IS NULL`` does not treat '' as NULL.
    """

    def __init__(
        self,
        definition: RuleDefinition,
        field: str,
        failure_reason: str,
        blank_is_null: bool = False,
    ):
        super().__init__(definition, failure_reason)
        self.field = field
        self.blank_is_null = blank_is_null

    def evaluate(self, record, reference_lookup=None) -> Optional[Violation]:
        value = get_field(record, self.field)
        if value is None:
            return self.violation()
        if self.blank_is_null and is_missing(value):
            return self.violation()
        return None


class ComparisonRule(Rule):
    """
    Flags records for which every condition holds.

    Comparisons are exactly as written: ``gt`` and ``lt`` are strict, so
    equal operands never violate unless the rule says ``ge``/``le``/``eq``.
    """

    def __init__(
        self,
        definition: RuleDefinition,
        conditions: Sequence[Condition],
        failure_reason: str,
    ):
        super().__init__(definition, failure_reason)
        if not conditions:
            raise RuleDefinitionError(
                f"Rule {definition.rule_id!r} needs at least one condition"
            )
        self.conditions = tuple(conditions)

    def evaluate(self, record, reference_lookup=None) -> Optional[Violation]:
        for condition in self.conditions:
            if not condition.holds(record):
                return None
        return self.violation()


class ReferenceRule(Rule):
    """
    Referential integrity: a left lookup of a foreign key.

    A key with no match in the reference dataset is a violation. A NULL or
    absent key is not: that belongs to a completeness rule.
    """

    requires_reference = True

    def __init__(self, definition: RuleDefinition, field: str, failure_reason: str):
        super().__init__(definition, failure_reason)
        self.field = field

    def evaluate(self, record, reference_lookup=None) -> Optional[Violation]:
        key = get_field(record, self.field)
        if key is None:
            return None
        if reference_lookup.get(key) is None:
            return self.violation()
        return None

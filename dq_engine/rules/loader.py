"""
Declarative Rule Loading

Turns a YAML rules file into a RuleRegistry. Each entry names a
check_type that maps to a Rule factory; new check types can be plugged in
with register_check_type().

Example entry:
    - rule_id: R003
      name: Paid > Claim
      category: Validity
      severity: HIGH
      check_type: comparison
      failure_reason: paid_amount > claim_amount
      conditions:
        - field: paid_amount
          op: gt
          other_field: claim_amount
          value_type: number
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Union

import yaml

from ..errors import ConfigurationError, RuleDefinitionError
from .base import Rule, RuleDefinition
from .checks import ComparisonRule, Condition, NotNullRule, ReferenceRule
from .registry import RuleRegistry

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("rule_id", "name", "category", "severity", "check_type", "failure_reason")

RuleFactory = Callable[[RuleDefinition, Dict[str, Any]], Rule]


def _require(entry: Dict[str, Any], key: str) -> Any:
    if key not in entry or entry[key] in (None, ""):
        raise RuleDefinitionError(
            f"Rule {entry.get('rule_id', '<unknown>')!r} is missing {key!r}"
        )
    return entry[key]


def _build_not_null(definition: RuleDefinition, entry: Dict[str, Any]) -> Rule:
    return NotNullRule(
        definition,
        field=_require(entry, "field"),
        failure_reason=entry["failure_reason"],
        blank_is_null=bool(entry.get("blank_is_null", False)),
    )


def _build_condition(rule_id: str, raw: Any) -> Condition:
    if not isinstance(raw, dict):
        raise RuleDefinitionError(f"Rule {rule_id!r}: each condition must be a mapping")
    if "field" not in raw or "op" not in raw:
        raise RuleDefinitionError(f"Rule {rule_id!r}: conditions need 'field' and 'op'")
    if "value" in raw and "other_field" in raw:
        raise RuleDefinitionError(
            f"Rule {rule_id!r}: a condition takes either 'value' or 'other_field', not both"
        )
    return Condition(
        field=raw["field"],
        op=raw["op"],
        value=raw.get("value"),
        other_field=raw.get("other_field"),
        value_type=raw.get("value_type"),
    )


def _build_comparison(definition: RuleDefinition, entry: Dict[str, Any]) -> Rule:
    raw_conditions = _require(entry, "conditions")
    if not isinstance(raw_conditions, list):
        raise RuleDefinitionError(
            f"Rule {definition.rule_id!r}: 'conditions' must be a list"
        )
    conditions = [_build_condition(definition.rule_id, raw) for raw in raw_conditions]
    return ComparisonRule(definition, conditions, failure_reason=entry["failure_reason"])


def _build_reference(definition: RuleDefinition, entry: Dict[str, Any]) -> Rule:
    return ReferenceRule(
        definition,
        field=_require(entry, "field"),
        failure_reason=entry["failure_reason"],
    )


CHECK_TYPES: Dict[str, RuleFactory] = {
    "not_null": _build_not_null,
    "comparison": _build_comparison,
    "reference": _build_reference,
}


def register_check_type(check_type: str, factory: RuleFactory) -> None:
    """Make a custom Rule factory available to YAML rule files."""
    if check_type in CHECK_TYPES:
        raise ConfigurationError(f"check_type {check_type!r} is already registered")
    CHECK_TYPES[check_type] = factory


def build_rule(entry: Dict[str, Any]) -> Rule:
    """
    Build one rule from a declarative entry.

    Raises:
        RuleDefinitionError: for missing keys or an unknown check_type
    """
    if not isinstance(entry, dict):
        raise RuleDefinitionError(f"Rule entries must be mappings, got {type(entry).__name__}")

    for key in REQUIRED_KEYS:
        _require(entry, key)

    check_type = entry["check_type"]
    factory = CHECK_TYPES.get(check_type)
    if factory is None:
        raise RuleDefinitionError(
            f"Rule {entry['rule_id']!r} has unknown check_type {check_type!r}; "
            f"expected one of {sorted(CHECK_TYPES)}"
        )

    definition = RuleDefinition(
        rule_id=str(entry["rule_id"]),
        name=str(entry["name"]),
        category=str(entry["category"]),
        severity=str(entry["severity"]),
    )
    return factory(definition, entry)


def build_registry(rules_dict: Dict[str, Any]) -> RuleRegistry:
    """
    Build a registry from a parsed rules document.

    Raises:
        RuleDefinitionError: malformed document or entry
        DuplicateRuleIdError: repeated rule_id
    """
    if not isinstance(rules_dict, dict) or not isinstance(rules_dict.get("rules"), list):
        raise RuleDefinitionError("Rules document must contain a 'rules' list")

    registry = RuleRegistry()
    for entry in rules_dict["rules"]:
        registry.register(build_rule(entry))

    logger.info(
        f"Loaded {len(registry)} rules (version {rules_dict.get('version', 'unknown')})"
    )
    return registry


def load_rules(rules_path: Union[str, Path]) -> RuleRegistry:
    """Load validation rules from a YAML file."""
    path = Path(rules_path)

    if not path.exists():
        raise FileNotFoundError(f"Rules file not found: {rules_path}")

    with open(path, "r", encoding="utf-8") as f:
        rules_dict = yaml.safe_load(f)

    logger.info(f"Loading rules from {path}")
    return build_registry(rules_dict)

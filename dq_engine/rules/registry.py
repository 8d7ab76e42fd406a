"""
Rule Registry

Ordered collection of rules. Holds no execution logic.
"""

import logging
from typing import Iterable, Iterator, List, Optional

from ..errors import DuplicateRuleIdError
from ..weights import SeverityWeightTable
from .base import Rule

logger = logging.getLogger(__name__)


class RuleRegistry:
    """
    Registration-ordered sequence of rules with unique rule ids.

    Usage:
        registry = RuleRegistry()
        registry.register(rule)
        registry.validate_severities(weights)
        for rule in registry:
            ...
    """

    def __init__(self, rules: Optional[Iterable[Rule]] = None):
        self._rules: List[Rule] = []
        self._ids = set()
        for rule in rules or ():
            self.register(rule)

    def register(self, rule: Rule) -> Rule:
        """
        Add a rule at the end of the registry.

        Raises:
            DuplicateRuleIdError: if a rule with the same rule_id exists
        """
        if rule.rule_id in self._ids:
            raise DuplicateRuleIdError(rule.rule_id)
        self._ids.add(rule.rule_id)
        self._rules.append(rule)
        logger.debug(f"Registered rule {rule.rule_id} ({rule.name})")
        return rule

    def get(self, rule_id: str) -> Optional[Rule]:
        for rule in self._rules:
            if rule.rule_id == rule_id:
                return rule
        return None

    def validate_severities(self, weights: SeverityWeightTable) -> None:
        """
        Check that every rule's severity has a weight.

        Raises:
            UnknownSeverityError: naming the first offending rule
        """
        for rule in self._rules:
            weights.get(rule.severity, rule_id=rule.rule_id)

    @property
    def rule_ids(self) -> List[str]:
        return [rule.rule_id for rule in self._rules]

    @property
    def requires_reference(self) -> bool:
        return any(rule.requires_reference for rule in self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(list(self._rules))

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._ids

    def __repr__(self) -> str:
        return f"RuleRegistry(rules={self.rule_ids})"

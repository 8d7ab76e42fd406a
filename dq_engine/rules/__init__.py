"""
Rules Package

Rule abstractions, built-in check types, the registry and the YAML loader:
- base: RuleDefinition, Violation, Rule, PredicateRule
- checks: NotNullRule, ComparisonRule, ReferenceRule
- registry: RuleRegistry
- loader: load_rules, build_registry, register_check_type
"""

from .base import Rule, RuleDefinition, Violation, PredicateRule
from .checks import Condition, NotNullRule, ComparisonRule, ReferenceRule
from .fields import get_field, is_missing
from .registry import RuleRegistry
from .loader import load_rules, build_registry, build_rule, register_check_type

__all__ = [
    'Rule',
    'RuleDefinition',
    'Violation',
    'PredicateRule',
    'Condition',
    'NotNullRule',
    'ComparisonRule',
    'ReferenceRule',
    'get_field',
    'is_missing',
    'RuleRegistry',
    'load_rules',
    'build_registry',
    'build_rule',
    'register_check_type',
]

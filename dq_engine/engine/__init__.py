"""
Engine Package

Rule evaluation and run orchestration.
"""

from .evaluator import RuleEvaluator
from .runner import ValidationRunner, RuleOutcome

__all__ = ["RuleEvaluator", "ValidationRunner", "RuleOutcome"]

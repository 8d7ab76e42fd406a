"""
Severity Weight Table

Static mapping from severity level to a positive integer weight. Injected
into the aggregator and the runner; never read from global state.
"""

from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import ConfigurationError, UnknownSeverityError
from .models.validation_failure import Severity, normalize_severity

DEFAULT_SEVERITY_WEIGHTS: Dict[str, int] = {
    Severity.HIGH.value: 5,
    Severity.MEDIUM.value: 2,
    Severity.LOW.value: 1,
}


class SeverityWeightTable:
    """
    Immutable severity -> weight mapping.

    Usage:
        weights = SeverityWeightTable({"HIGH": 5, "MEDIUM": 2, "LOW": 1})
        weights.get("HIGH")      # 5
        weights.max_weight       # 5
        weights.get("CRITICAL")  # raises UnknownSeverityError
    """

    def __init__(self, weights: Mapping[Union[str, Severity], int]):
        """
        Args:
            weights: Mapping of severity to positive integer weight

        Raises:
            ConfigurationError: if the mapping is empty or a weight is not a
                positive integer
        """
        if not weights:
            raise ConfigurationError("Severity weight table must not be empty")

        normalized: Dict[str, int] = {}
        for severity, weight in weights.items():
            key = normalize_severity(severity)
            # bool is an int subclass; reject it explicitly
            if isinstance(weight, bool) or not isinstance(weight, int) or weight <= 0:
                raise ConfigurationError(
                    f"Weight for severity {key!r} must be a positive integer, got {weight!r}"
                )
            if key in normalized:
                raise ConfigurationError(f"Severity {key!r} configured more than once")
            normalized[key] = weight

        self._weights = normalized

    @classmethod
    def default(cls) -> "SeverityWeightTable":
        """HIGH=5, MEDIUM=2, LOW=1."""
        return cls(DEFAULT_SEVERITY_WEIGHTS)

    def get(self, severity: Union[str, Severity], rule_id: Optional[str] = None) -> int:
        """
        Look up the weight of a severity.

        Raises:
            UnknownSeverityError: if no weight is configured
        """
        key = normalize_severity(severity)
        try:
            return self._weights[key]
        except KeyError:
            raise UnknownSeverityError(key, rule_id=rule_id) from None

    def __contains__(self, severity: object) -> bool:
        if not isinstance(severity, str):
            return False
        return normalize_severity(severity) in self._weights

    def __len__(self) -> int:
        return len(self._weights)

    def __iter__(self) -> Iterator[str]:
        return iter(self._weights)

    def items(self) -> Iterator[Tuple[str, int]]:
        return iter(self._weights.items())

    @property
    def max_weight(self) -> int:
        """Weight of the highest severity level."""
        return max(self._weights.values())

    def ordered_severities(self) -> List[str]:
        """Severities sorted from heaviest to lightest (ties by name)."""
        return sorted(self._weights, key=lambda s: (-self._weights[s], s))

    def to_dict(self) -> Dict[str, int]:
        return dict(self._weights)

    def __repr__(self) -> str:
        return f"SeverityWeightTable({self._weights!r})"

"""
Metrics Package

Handles observability and monitoring.
"""

from .prometheus import (
    RunMetrics,
    get_metrics,
    reset_metrics,
    metrics_endpoint
)

__all__ = [
    'RunMetrics',
    'get_metrics',
    'reset_metrics',
    'metrics_endpoint'
]

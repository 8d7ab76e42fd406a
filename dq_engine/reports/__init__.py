"""
Report generation for validation runs.
"""

from .report_generator import ReportGenerator

__all__ = ["ReportGenerator"]

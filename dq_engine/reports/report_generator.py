"""
Validation run report generator.
"""

import json
from typing import List

from ..models.views import RunReport


class ReportGenerator:
    """
    Generates human-readable reports from validation runs.
    """

    @staticmethod
    def generate_text_report(report: RunReport) -> str:
        """
        Generate a text-based summary report.

        Args:
            report: RunReport object

        Returns:
            Formatted text report
        """
        lines = []
        lines.append("=" * 80)
        lines.append("DATA QUALITY VALIDATION REPORT")
        lines.append("=" * 80)
        lines.append("")
        lines.append(f"Run ID: {report.run_id}")
        lines.append(f"Started: {report.started_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")
        if report.duration_seconds is not None:
            lines.append(f"Duration: {report.duration_seconds:.2f}s")
        lines.append("")
        lines.append("-" * 80)
        lines.append("RUN SUMMARY")
        lines.append("-" * 80)
        lines.append(f"Records:           {report.total_records}")
        lines.append(f"Rules evaluated:   {len(report.rules_evaluated)} of {report.total_rules}")
        lines.append(f"Failures detected: {report.candidate_failures}")
        lines.append(f"New failures:      {report.new_failures}")
        lines.append(f"Predicate errors:  {report.predicate_errors}")
        lines.append("")

        if report.cancelled:
            lines.append("RUN CANCELLED: no final scorecard was produced.")
            lines.append("=" * 80)
            return "\n".join(lines)

        if report.scorecard:
            card = report.scorecard
            lines.append("-" * 80)
            lines.append("EXECUTIVE SCORECARD")
            lines.append("-" * 80)
            lines.append(f"Total records:        {card.total_records}")
            lines.append(f"Records with issues:  {card.records_with_issues}")
            lines.append(f"High severity issues: {card.high_severity_issues}")
            status = "  (CRITICAL)" if card.is_critical else ""
            lines.append(f"Quality score:        {card.quality_score:.2f}{status}")
            lines.append("")

        if report.rule_summary:
            lines.append("-" * 80)
            lines.append("RULE SUMMARY")
            lines.append("-" * 80)
            lines.append(
                f"{'Rule':<8} {'Name':<28} {'Category':<22} {'Severity':<8} "
                f"{'Count':>7} {'Impact':>8}"
            )
            for row in report.rule_summary:
                lines.append(
                    f"{row.rule_id:<8} {row.rule_name[:28]:<28} {row.category[:22]:<22} "
                    f"{row.severity:<8} {row.failure_count:>7} {row.weighted_impact:>8}"
                )
            lines.append("")

        if report.category_risk:
            lines.append("-" * 80)
            lines.append("CATEGORY RISK")
            lines.append("-" * 80)
            for row in report.category_risk:
                lines.append(f"  {row.category}: {row.risk_score}")
            lines.append("")

        if report.severity_distribution:
            lines.append("-" * 80)
            lines.append("SEVERITY DISTRIBUTION")
            lines.append("-" * 80)
            for row in report.severity_distribution:
                lines.append(f"  {row.severity}: {row.failure_count}")
            lines.append("")

        if not report.rule_summary:
            lines.append("No failures recorded. Data is clean.")

        lines.append("=" * 80)
        lines.append("END OF REPORT")
        lines.append("=" * 80)

        return "\n".join(lines)

    @staticmethod
    def generate_json_report(report: RunReport) -> str:
        """
        Generate a JSON report.

        Args:
            report: RunReport object

        Returns:
            JSON string
        """
        return json.dumps(report.to_dict(), indent=2, default=str)

    @staticmethod
    def generate_markdown_report(report: RunReport) -> str:
        """
        Generate a Markdown report.

        Args:
            report: RunReport object

        Returns:
            Markdown formatted report
        """
        lines = []
        lines.append("# Data Quality Validation Report")
        lines.append("")
        lines.append(f"**Run ID:** {report.run_id}")
        lines.append("")
        lines.append(
            f"**Started:** {report.started_at.strftime('%Y-%m-%d %H:%M:%S UTC')}"
        )
        lines.append("")

        lines.append("## Run Summary")
        lines.append("")
        lines.append(f"- **Records:** {report.total_records}")
        lines.append(f"- **Rules evaluated:** {len(report.rules_evaluated)} of {report.total_rules}")
        lines.append(f"- **New failures:** {report.new_failures}")
        lines.append(f"- **Predicate errors:** {report.predicate_errors}")
        lines.append("")

        if report.cancelled:
            lines.append("**Run cancelled.** No final scorecard was produced.")
            return "\n".join(lines)

        if report.scorecard:
            card = report.scorecard
            lines.append("## Executive Scorecard")
            lines.append("")
            lines.append("| Total records | Records with issues | High severity issues | Quality score |")
            lines.append("|---:|---:|---:|---:|")
            lines.append(
                f"| {card.total_records} | {card.records_with_issues} | "
                f"{card.high_severity_issues} | {card.quality_score:.2f} |"
            )
            lines.append("")

        if report.rule_summary:
            lines.extend(ReportGenerator._markdown_rule_summary(report))

        if report.category_risk:
            lines.append("## Category Risk")
            lines.append("")
            for row in report.category_risk:
                lines.append(f"- **{row.category}:** {row.risk_score}")
            lines.append("")

        if report.severity_distribution:
            lines.append("## Severity Distribution")
            lines.append("")
            for row in report.severity_distribution:
                lines.append(f"- **{row.severity}:** {row.failure_count}")
            lines.append("")

        return "\n".join(lines)

    @staticmethod
    def _markdown_rule_summary(report: RunReport) -> List[str]:
        lines = ["## Rule Summary", ""]
        lines.append("| Rule | Name | Category | Severity | Failures | Weighted impact |")
        lines.append("|---|---|---|---|---:|---:|")
        for row in report.rule_summary:
            lines.append(
                f"| {row.rule_id} | {row.rule_name} | {row.category} | {row.severity} | "
                f"{row.failure_count} | {row.weighted_impact} |"
            )
        lines.append("")
        return lines

    @staticmethod
    def render(report: RunReport, format: str = "text") -> str:
        """Render a report as 'text', 'json' or 'markdown'."""
        if format == "json":
            return ReportGenerator.generate_json_report(report)
        if format == "markdown":
            return ReportGenerator.generate_markdown_report(report)
        return ReportGenerator.generate_text_report(report)

    @staticmethod
    def save_report(report: RunReport, output_path: str, format: str = "text"):
        """
        Save report to file.

        Args:
            report: RunReport object
            output_path: Path to save report
            format: 'text', 'json', or 'markdown'
        """
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(ReportGenerator.render(report, format))

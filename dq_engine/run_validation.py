#!/usr/bin/env python3
"""
Data Quality Engine CLI

Command-line interface for running the rule set against a record batch.

Exit codes:
    0   run completed, no high severity issues
    1   run completed with high severity issues
    2   configuration or runtime error
    130 run cancelled (SIGINT)
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from pythonjsonlogger import jsonlogger

from dq_engine.config import get_connection_params, load_config
from dq_engine.errors import ConfigurationError
from dq_engine.persistence import InMemoryResultStore, create_postgres_store
from dq_engine.quality_engine import QualityEngine
from dq_engine.reports import ReportGenerator
from dq_engine.sources import (
    InMemoryReferenceLookup,
    JsonFileRecordSource,
    PostgresRecordSource,
    PostgresReferenceLookup,
)
from dq_engine.weights import SeverityWeightTable

EXIT_OK = 0
EXIT_HIGH_SEVERITY = 1
EXIT_ERROR = 2
EXIT_CANCELLED = 130


def setup_logging(level: str = "INFO", log_format: str = "text"):
    """Configure logging."""
    if log_format == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(
            jsonlogger.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s")
        )
        logging.basicConfig(level=getattr(logging, level.upper()), handlers=[handler])
    else:
        logging.basicConfig(
            level=getattr(logging, level.upper()),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dq-engine",
        description="Data Quality Rule Execution & Weighted Risk Aggregation Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate a JSON batch against the bundled claims rules
  dq-engine --records claims.json --references providers.json

  # Validate the claims table and persist failures to PostgreSQL
  dq-engine --postgres --format markdown --output report.md

  # Custom rule file, sequential evaluation, JSON logs
  dq-engine --records claims.json --rules my_rules.yaml --workers 1 --log-format json
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to engine_config.yaml (default: dq_engine/config/engine_config.yaml)",
    )
    parser.add_argument("--rules", type=str, default=None, help="Path to a YAML rules file")
    parser.add_argument("--records", type=str, default=None, help="JSON file holding the records")
    parser.add_argument(
        "--references", type=str, default=None, help="JSON file holding the reference entities"
    )
    parser.add_argument(
        "--postgres",
        action="store_true",
        help="Read records/references from and persist failures to PostgreSQL",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Wipe the failure log before running (out-of-band reset)",
    )
    parser.add_argument("--workers", type=int, default=None, help="Rule evaluation threads")
    parser.add_argument(
        "--format",
        type=str,
        choices=["text", "json", "markdown"],
        default="text",
        help="Report output format (default: text)",
    )
    parser.add_argument("--output", type=str, default=None, help="Path to save report")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Log line format (default: text)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.records and not args.postgres:
        parser.error("one of --records or --postgres is required")

    setup_logging(args.log_level, args.log_format)
    logger = logging.getLogger(__name__)

    cancel_event = threading.Event()

    try:
        config = load_config(args.config)
        weights = SeverityWeightTable(config["severity_weights"])
        db = config["database"]
        key_field = config["reference"].get("key_field")

        if args.postgres:
            connection_params = get_connection_params()
            store = create_postgres_store(
                connection_params,
                weights=weights,
                records_table=db.get("records_table"),
                schema=db["schema"],
                results_table=db["results_table"],
                weights_table=db["weights_table"],
                batch_size=db["batch_size"],
            )
        else:
            store = InMemoryResultStore()

        logger.info("Initializing Data Quality Engine...")
        engine = QualityEngine.from_config(
            config, store=store, rules_path=args.rules, max_workers=args.workers
        )

        if args.reset:
            engine.reset()

        if args.records:
            source = JsonFileRecordSource(args.records)
        else:
            source = PostgresRecordSource(connection_params, db["records_table"])

        if (args.references or (args.postgres and db.get("reference_table"))) and not key_field:
            raise ConfigurationError(
                "reference.key_field is not configured; it is required to load reference entities"
            )

        lookup = None
        if args.references:
            lookup = InMemoryReferenceLookup.from_json_file(args.references, key_field)
        elif args.postgres and db.get("reference_table"):
            lookup = PostgresReferenceLookup(connection_params, db["reference_table"], key_field)

        # SIGINT stops the run between rules instead of killing a rule mid-insert
        previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel_event.set())
        try:
            logger.info("Running validation...")
            report = engine.run(source, reference_lookup=lookup, cancel_event=cancel_event)
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        output = ReportGenerator.render(report, args.format)

        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(output)
            logger.info(f"Report saved to {args.output}")

        print("\n" + output)

        if report.cancelled:
            logger.warning("Validation run cancelled")
            return EXIT_CANCELLED
        if report.scorecard.high_severity_issues > 0:
            logger.warning(f"Detected {report.scorecard.high_severity_issues} high severity issues")
            return EXIT_HIGH_SEVERITY
        logger.info("No high severity issues detected")
        return EXIT_OK

    except Exception as e:
        logger.error(f"Validation run failed: {e}", exc_info=True)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())

import json
import tempfile
import unittest
from datetime import date, timedelta
from pathlib import Path

from dq_engine import QualityEngine
from dq_engine.config import load_config
from dq_engine.errors import ConfigurationError, DuplicateRuleIdError, UnknownSeverityError
from dq_engine.persistence import InMemoryResultStore
from dq_engine.rules import NotNullRule, RuleDefinition, RuleRegistry
from dq_engine.sources import (
    InMemoryRecordSource,
    InMemoryReferenceLookup,
    JsonFileRecordSource,
)
from dq_engine.weights import SeverityWeightTable

BASE_DATE = date(2026, 3, 31)

PROVIDERS = [
    {"provider_id": "P100", "provider_name": "Orlando Family Clinic", "provider_state": "FL"},
    {"provider_id": "P200", "provider_name": "Pittsburgh General", "provider_state": "PA"},
    {"provider_id": "P300", "provider_name": "New Brunswick Health", "provider_state": "NJ"},
]


def make_claims(n):
    """Claims batch with periodic defects."""
    claims = []
    for g in range(1, n + 1):
        claims.append({
            "claim_id": f"C{g}",
            "member_id": f"M{g}",
            "provider_id": "P999" if g % 50 == 0 else "P100",
            "service_date": (BASE_DATE - timedelta(days=g % 30)).isoformat(),
            "submission_date": (BASE_DATE - timedelta(days=g % 25)).isoformat(),
            "claim_amount": 100 + (g % 200),
            "paid_amount": 300 if g % 33 == 0 else 80,
            "diagnosis_code": None if g % 45 == 0 else "I10",
            "procedure_code": "99213",
            "claim_status": "DENIED" if g % 40 == 0 else "PAID",
            "source_system": "FACETS",
        })
    return claims


class TestClaimsRuleSet(unittest.TestCase):
    def setUp(self):
        self.config = load_config()
        self.engine = QualityEngine.from_config(self.config, enable_metrics=False)
        self.providers = InMemoryReferenceLookup.from_records(PROVIDERS, key_field="provider_id")

    def test_bundled_configuration(self):
        self.assertEqual(self.engine.registry.rule_ids, ["R001", "R003", "R005", "R007", "R008"])
        self.assertEqual(self.engine.runner.max_workers, 4)
        self.assertEqual(self.engine.runner.evaluator.id_field, "claim_id")

    def test_claims_batch(self):
        n = 300
        claims = make_claims(n)
        report = self.engine.run(InMemoryRecordSource(claims), self.providers)

        expected = {
            "R001": sum(1 for g in range(1, n + 1) if g % 45 == 0),
            "R003": sum(1 for g in range(1, n + 1) if g % 33 == 0),
            "R005": sum(1 for g in range(1, n + 1) if g % 30 < g % 25),
            "R007": sum(1 for g in range(1, n + 1) if g % 40 == 0),
            "R008": sum(1 for g in range(1, n + 1) if g % 50 == 0),
        }
        self.assertEqual(report.new_failures_by_rule, expected)
        self.assertEqual(report.predicate_errors, 0)

        counts = {row.rule_id: row.failure_count for row in report.rule_summary}
        self.assertEqual(counts, {k: v for k, v in expected.items() if v})

        total_weight = 5 * (expected["R001"] + expected["R003"] + expected["R007"] + expected["R008"]) \
            + 2 * expected["R005"]
        self.assertEqual(report.scorecard.quality_score, round(100 - total_weight / (n * 5) * 100, 2))
        self.assertEqual(
            report.scorecard.high_severity_issues,
            expected["R001"] + expected["R003"] + expected["R007"] + expected["R008"],
        )

        risk = {row.category: row.risk_score for row in report.category_risk}
        self.assertEqual(risk["Referential Integrity"], 5 * expected["R008"])
        self.assertEqual(risk["Consistency"], 2 * expected["R005"] + 5 * expected["R007"])

    def test_rerun_changes_nothing(self):
        claims = make_claims(120)
        first = self.engine.run(InMemoryRecordSource(claims), self.providers)
        count = self.engine.store.count()
        second = self.engine.run(InMemoryRecordSource(claims), self.providers)

        self.assertEqual(second.new_failures, 0)
        self.assertEqual(self.engine.store.count(), count)
        self.assertEqual(second.rule_summary, first.rule_summary)
        self.assertEqual(second.scorecard, first.scorecard)

    def test_orphan_provider_is_one_referential_failure(self):
        claim = make_claims(1)[0]
        claim["provider_id"] = "P404"
        self.engine.run(InMemoryRecordSource([claim]), self.providers)

        failures = self.engine.failures_for_record("C1")
        self.assertEqual(len(failures), 1)
        self.assertEqual(failures[0].rule_id, "R008")
        self.assertEqual(failures[0].category, "Referential Integrity")
        self.assertEqual(failures[0].failure_reason, "provider not found")

    def test_missing_provider_is_not_referential(self):
        claim = make_claims(1)[0]
        claim["provider_id"] = None
        self.engine.run(InMemoryRecordSource([claim]), self.providers)
        self.assertEqual(self.engine.failures_for_record("C1"), [])

    def test_growing_record_set(self):
        self.engine.run(InMemoryRecordSource(make_claims(50)), self.providers)
        before = self.engine.store.count()
        report = self.engine.run(InMemoryRecordSource(make_claims(100)), self.providers)
        self.assertEqual(self.engine.store.count(), before + report.new_failures)
        self.assertEqual(report.scorecard.total_records, 100)

    def test_reset(self):
        self.engine.run(InMemoryRecordSource(make_claims(50)), self.providers)
        self.engine.reset()
        self.assertEqual(self.engine.store.count(), 0)
        self.assertIsNone(self.engine.last_report)

    def test_json_file_source(self):
        claims = make_claims(10)
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "claims.json"
            path.write_text(json.dumps({"records": claims}), encoding="utf-8")
            report = self.engine.run(JsonFileRecordSource(path), self.providers)
        self.assertEqual(report.total_records, 10)


class TestQualityEngineConfiguration(unittest.TestCase):
    def test_unknown_severity_rejected_at_construction(self):
        registry = RuleRegistry([
            NotNullRule(RuleDefinition("R1", "Missing", "Completeness", "SEVERE"), "x", "x IS NULL")
        ])
        with self.assertRaises(UnknownSeverityError):
            QualityEngine(registry, SeverityWeightTable.default())

    def test_duplicate_rule_ids_in_rules_file(self):
        entry = (
            "  - rule_id: R1\n"
            "    name: Missing\n"
            "    category: Completeness\n"
            "    severity: HIGH\n"
            "    check_type: not_null\n"
            "    field: x\n"
            "    failure_reason: x IS NULL\n"
        )
        with tempfile.TemporaryDirectory() as tmp:
            rules = Path(tmp) / "rules.yaml"
            rules.write_text("rules:\n" + entry + entry, encoding="utf-8")
            with self.assertRaises(DuplicateRuleIdError):
                QualityEngine.from_config(load_config(), rules_path=str(rules), enable_metrics=False)

    def test_no_rules_path(self):
        config = load_config()
        config["rules"]["path"] = None
        with self.assertRaises(ConfigurationError):
            QualityEngine.from_config(config, enable_metrics=False)

    def test_zero_workers_rejected(self):
        with self.assertRaises(ConfigurationError):
            QualityEngine.from_config(load_config(), max_workers=0, enable_metrics=False)

    def test_worker_override(self):
        engine = QualityEngine.from_config(load_config(), max_workers=1, enable_metrics=False)
        self.assertEqual(engine.runner.max_workers, 1)


class TestSeparateStores(unittest.TestCase):
    def setUp(self):
        self.engine = QualityEngine.from_config(load_config(), max_workers=2, enable_metrics=False)
        self.providers = InMemoryReferenceLookup.from_records(PROVIDERS, key_field="provider_id")

    def test_with_store_shares_rules_not_results(self):
        self.engine.run(InMemoryRecordSource(make_claims(100)), self.providers)

        batch = self.engine.with_store(InMemoryResultStore())
        self.assertIs(batch.registry, self.engine.registry)
        self.assertEqual(batch.runner.max_workers, 2)
        self.assertEqual(batch.runner.evaluator.id_field, "claim_id")
        self.assertEqual(batch.store.count(), 0)

        report = batch.run(InMemoryRecordSource(make_claims(10)), self.providers)
        self.assertEqual(report.scorecard.records_with_issues, 0)
        self.assertEqual(report.scorecard.quality_score, 100.00)
        self.assertGreater(self.engine.store.count(), 0)

    def test_adopt(self):
        self.engine.run(InMemoryRecordSource(make_claims(100)), self.providers)
        batch = self.engine.with_store(InMemoryResultStore())
        batch.run(InMemoryRecordSource(make_claims(10)), self.providers)

        self.engine.adopt(batch)

        self.assertIs(self.engine.store, batch.store)
        self.assertIs(self.engine.last_report, batch.last_report)
        self.assertEqual(self.engine.rule_summary(), [])
        self.assertEqual(self.engine.executive_scorecard(10).quality_score, 100.00)


if __name__ == '__main__':
    unittest.main()

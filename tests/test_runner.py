import threading
import unittest

from dq_engine.engine import RuleEvaluator, ValidationRunner
from dq_engine.errors import (
    ConfigurationError,
    EmptyRecordSetError,
    InvalidRecordError,
    UnknownSeverityError,
)
from dq_engine.metrics import RunMetrics
from dq_engine.persistence import InMemoryResultStore
from dq_engine.rules import PredicateRule, ReferenceRule, RuleDefinition, RuleRegistry
from dq_engine.weights import SeverityWeightTable


def flag_records(rule_id, severity, record_ids, category="Validity"):
    """Rule violated exactly by the given record ids."""
    return PredicateRule(
        RuleDefinition(rule_id, f"Rule {rule_id}", category, severity),
        lambda record, lookup: record["record_id"] in record_ids,
        f"{rule_id} violated",
    )


class TestValidationRunner(unittest.TestCase):
    def setUp(self):
        self.records = [{"record_id": rid} for rid in ("A", "B", "C")]
        self.weights = SeverityWeightTable({"HIGH": 5, "MEDIUM": 2, "LOW": 1})
        self.store = InMemoryResultStore()
        self.registry = RuleRegistry([
            flag_records("R1", "HIGH", {"A"}),
            flag_records("R2", "MEDIUM", {"B", "C"}),
        ])

    def make_runner(self, **kwargs):
        return ValidationRunner(self.registry, self.store, self.weights, **kwargs)

    def test_three_record_scenario(self):
        report = self.make_runner().run(self.records)

        self.assertTrue(report.is_final)
        self.assertEqual(report.rules_evaluated, ["R1", "R2"])
        self.assertEqual(report.new_failures, 3)
        self.assertEqual(
            [(r.rule_id, r.failure_count, r.weighted_impact) for r in report.rule_summary],
            [("R1", 1, 5), ("R2", 2, 4)],
        )
        self.assertEqual(
            [(r.severity, r.failure_count) for r in report.severity_distribution],
            [("HIGH", 1), ("MEDIUM", 2)],
        )
        self.assertEqual(report.scorecard.records_with_issues, 3)
        self.assertEqual(report.scorecard.quality_score, 40.00)

    def test_rerun_is_idempotent(self):
        runner = self.make_runner()
        first = runner.run(self.records)
        before = {f.key: f.detected_at for f in self.store.all_failures()}

        second = runner.run(self.records)
        after = {f.key: f.detected_at for f in self.store.all_failures()}

        self.assertEqual(second.new_failures, 0)
        self.assertEqual(second.candidate_failures, first.candidate_failures)
        self.assertEqual(before, after)
        self.assertEqual(second.rule_summary, first.rule_summary)
        self.assertEqual(second.scorecard, first.scorecard)

    def test_parallel_matches_sequential(self):
        registry = RuleRegistry([
            flag_records(f"R{i}", ("HIGH", "MEDIUM", "LOW")[i % 3], {f"X{j}" for j in range(i, 60, 7)})
            for i in range(12)
        ])
        records = [{"record_id": f"X{j}"} for j in range(60)]

        sequential_store = InMemoryResultStore()
        sequential = ValidationRunner(registry, sequential_store, self.weights).run(records)

        parallel_store = InMemoryResultStore()
        parallel = ValidationRunner(registry, parallel_store, self.weights, max_workers=4).run(records)

        self.assertEqual(
            {f.key for f in sequential_store.all_failures()},
            {f.key for f in parallel_store.all_failures()},
        )
        self.assertEqual(parallel.rules_evaluated, registry.rule_ids)
        self.assertEqual(parallel.scorecard, sequential.scorecard)

    def test_predicate_errors_do_not_abort_the_batch(self):
        def explode_on_b(record, lookup):
            if record["record_id"] == "B":
                raise ValueError("malformed")
            return record["record_id"] == "C"

        self.registry.register(
            PredicateRule(RuleDefinition("R3", "Fragile", "Validity", "LOW"), explode_on_b, "R3 violated")
        )
        report = self.make_runner().run(self.records)

        self.assertTrue(report.is_final)
        self.assertEqual(report.predicate_errors, 1)
        categories = {(f.rule_id, f.record_id): f.category for f in self.store.all_failures()}
        self.assertEqual(categories[("R3", "B")], "Predicate Error")
        self.assertEqual(categories[("R3", "C")], "Validity")
        self.assertIn("Predicate Error", [r.category for r in report.category_risk])
        summary = {r.rule_id: r for r in report.rule_summary}
        self.assertEqual(len(report.rule_summary), 3)
        self.assertEqual(
            (summary["R3"].category, summary["R3"].failure_count, summary["R3"].predicate_errors),
            ("Validity", 2, 1),
        )

    def test_unknown_severity_fails_before_evaluation(self):
        self.registry.register(flag_records("R9", "CRITICAL", {"A"}))
        with self.assertRaises(UnknownSeverityError) as ctx:
            self.make_runner().run(self.records)
        self.assertEqual(ctx.exception.rule_id, "R9")
        self.assertEqual(self.store.count(), 0)

    def test_referential_rule_without_lookup_fails_before_evaluation(self):
        self.registry.register(ReferenceRule(
            RuleDefinition("R8", "Orphan", "Referential Integrity", "HIGH"), "provider_id", "provider not found"
        ))
        with self.assertRaises(ConfigurationError):
            self.make_runner().run(self.records)
        self.assertEqual(self.store.count(), 0)

    def test_record_without_id_fails_before_evaluation(self):
        with self.assertRaises(InvalidRecordError):
            self.make_runner().run(self.records + [{"id": "D"}])
        self.assertEqual(self.store.count(), 0)

    def test_cancel_before_start(self):
        cancel = threading.Event()
        cancel.set()
        report = self.make_runner().run(self.records, cancel_event=cancel)

        self.assertTrue(report.cancelled)
        self.assertFalse(report.is_final)
        self.assertIsNone(report.scorecard)
        self.assertEqual(report.rules_evaluated, [])
        self.assertEqual(self.store.count(), 0)

    def test_cancel_between_rules_keeps_committed_rules_whole(self):
        cancel = threading.Event()

        def cancel_after(record, lookup):
            cancel.set()
            return True

        registry = RuleRegistry([
            PredicateRule(RuleDefinition("R1", "Everything", "Validity", "HIGH"), cancel_after, "all"),
            flag_records("R2", "MEDIUM", {"B"}),
        ])
        report = ValidationRunner(registry, self.store, self.weights).run(self.records, cancel_event=cancel)

        self.assertTrue(report.cancelled)
        self.assertEqual(report.rules_evaluated, ["R1"])
        self.assertEqual({f.record_id for f in self.store.all_failures()}, {"A", "B", "C"})
        self.assertEqual({f.rule_id for f in self.store.all_failures()}, {"R1"})

    def test_parallel_cancel_keeps_committed_rules_whole(self):
        cancel = threading.Event()

        def cancel_now(record, lookup):
            cancel.set()
            return True

        def wait_for_cancel(record, lookup):
            cancel.wait(timeout=5)
            return True

        registry = RuleRegistry([
            PredicateRule(RuleDefinition("R1", "Cancels", "Validity", "HIGH"), cancel_now, "all"),
            PredicateRule(RuleDefinition("R2", "Slow", "Validity", "MEDIUM"), wait_for_cancel, "all"),
            flag_records("R3", "LOW", {"A", "B", "C"}),
            flag_records("R4", "LOW", {"A"}),
        ])
        runner = ValidationRunner(registry, self.store, self.weights, max_workers=2)
        report = runner.run(self.records, cancel_event=cancel)

        self.assertTrue(report.cancelled)
        self.assertFalse(report.is_final)
        self.assertIsNone(report.scorecard)
        self.assertEqual(report.rule_summary, [])
        self.assertIn("R1", report.rules_evaluated)
        # Both workers are busy until the event is set, so later rules never start
        self.assertNotIn("R3", report.rules_evaluated)
        self.assertNotIn("R4", report.rules_evaluated)

        expected = {(rule_id, rid) for rule_id in report.rules_evaluated for rid in ("A", "B", "C")}
        self.assertEqual({f.key for f in self.store.all_failures()}, expected)
        self.assertEqual(self.store.count(), len(expected))
        self.assertEqual(report.new_failures, len(expected))

    def test_empty_record_set_has_no_scorecard(self):
        with self.assertRaises(EmptyRecordSetError):
            self.make_runner().run([])

    def test_custom_id_field(self):
        registry = RuleRegistry([
            PredicateRule(
                RuleDefinition("R1", "Negative", "Validity", "HIGH"),
                lambda record, lookup: record["amount"] < 0,
                "amount < 0",
            )
        ])
        runner = ValidationRunner(
            registry, self.store, self.weights, evaluator=RuleEvaluator(id_field="claim_id")
        )
        runner.run([{"claim_id": "C1", "amount": -1}, {"claim_id": "C2", "amount": 5}])
        self.assertEqual([f.record_id for f in self.store.all_failures()], ["C1"])

    def test_records_metrics(self):
        metrics = RunMetrics()
        self.make_runner(metrics=metrics).run(self.records)
        data = metrics.export_json()
        self.assertEqual(data["rules_evaluated"], 2)
        self.assertEqual(data["records_scanned"], 6)
        self.assertEqual(data["failures_by_rule"], {"R1": 1, "R2": 2})
        self.assertEqual(data["failures_by_severity"], {"HIGH": 1, "MEDIUM": 2})
        self.assertEqual(data["runs_by_outcome"], {"completed": 1})
        self.assertEqual(data["last_quality_score"], 40.00)

    def test_rejects_invalid_worker_count(self):
        with self.assertRaises(ConfigurationError):
            self.make_runner(max_workers=0)


if __name__ == '__main__':
    unittest.main()

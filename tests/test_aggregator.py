import unittest

from dq_engine.aggregation import Aggregator, quality_score
from dq_engine.errors import EmptyRecordSetError, UnknownSeverityError
from dq_engine.models import ValidationFailure
from dq_engine.persistence import InMemoryResultStore
from dq_engine.weights import SeverityWeightTable


def failure(rule_id, record_id, severity, category="Validity", name=None):
    return ValidationFailure(
        rule_id=rule_id,
        rule_name=name or f"Rule {rule_id}",
        category=category,
        severity=severity,
        record_id=record_id,
        failure_reason=f"{rule_id} violated",
    )


class TestAggregator(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryResultStore()
        self.weights = SeverityWeightTable({"HIGH": 5, "MEDIUM": 2, "LOW": 1})
        self.aggregator = Aggregator(self.store, self.weights)

    def load_three_record_scenario(self):
        # R1 (HIGH) fails on A; R2 (MEDIUM) fails on B and C
        self.store.record([failure("R1", "A", "HIGH", "Completeness")])
        self.store.record([
            failure("R2", "B", "MEDIUM", "Consistency"),
            failure("R2", "C", "MEDIUM", "Consistency"),
        ])

    def test_rule_summary_scenario(self):
        self.load_three_record_scenario()
        rows = self.aggregator.rule_summary()
        self.assertEqual(
            [(r.rule_id, r.failure_count, r.weighted_impact) for r in rows],
            [("R1", 1, 5), ("R2", 2, 4)],
        )

    def test_severity_distribution_scenario(self):
        self.load_three_record_scenario()
        rows = self.aggregator.severity_distribution()
        self.assertEqual([(r.severity, r.failure_count) for r in rows], [("HIGH", 1), ("MEDIUM", 2)])

    def test_scorecard_scenario(self):
        self.load_three_record_scenario()
        card = self.aggregator.executive_scorecard(total_records=3)
        self.assertEqual(card.total_records, 3)
        self.assertEqual(card.records_with_issues, 3)
        self.assertEqual(card.high_severity_issues, 1)
        self.assertEqual(card.quality_score, 40.00)

    def test_weighted_impact_is_count_times_weight(self):
        for i in range(7):
            self.store.record([failure("R9", f"X{i}", "LOW")])
        for i in range(3):
            self.store.record([failure("R8", f"X{i}", "HIGH")])
        for row in self.aggregator.rule_summary():
            self.assertEqual(row.weighted_impact, row.failure_count * self.weights.get(row.severity))
        # Heaviest impact first
        self.assertEqual([r.rule_id for r in self.aggregator.rule_summary()], ["R8", "R9"])

    def test_predicate_errors_stay_in_the_rule_row(self):
        self.store.record([
            failure("R1", "A", "HIGH", "Validity", name="Paid Exceeds Claim"),
            failure("R1", "B", "HIGH", "Predicate Error", name="Paid Exceeds Claim"),
        ])
        rows = self.aggregator.rule_summary()
        self.assertEqual(len(rows), 1)
        row = rows[0]
        self.assertEqual(
            (row.rule_id, row.category, row.failure_count, row.weighted_impact, row.predicate_errors),
            ("R1", "Validity", 2, 10, 1),
        )

    def test_rule_with_only_predicate_errors(self):
        self.store.record([failure("R1", "A", "LOW", "Predicate Error")])
        rows = self.aggregator.rule_summary()
        self.assertEqual(
            [(r.rule_id, r.category, r.failure_count, r.weighted_impact, r.predicate_errors) for r in rows],
            [("R1", "Predicate Error", 1, 1, 1)],
        )

    def test_category_risk_sums_per_failure_weight(self):
        self.store.record([
            failure("R1", "A", "HIGH", "Consistency"),
            failure("R2", "A", "MEDIUM", "Consistency"),
            failure("R2", "B", "MEDIUM", "Consistency"),
            failure("R3", "A", "LOW", "Validity"),
        ])
        rows = self.aggregator.category_risk()
        self.assertEqual([(r.category, r.risk_score) for r in rows], [("Consistency", 9), ("Validity", 1)])

    def test_distinct_records_with_issues(self):
        self.store.record([failure("R1", "A", "HIGH"), failure("R2", "A", "LOW")])
        card = self.aggregator.executive_scorecard(total_records=10)
        self.assertEqual(card.records_with_issues, 1)
        self.assertEqual(card.quality_score, 88.00)

    def test_no_failures_scores_100(self):
        card = self.aggregator.executive_scorecard(total_records=5)
        self.assertEqual(card.quality_score, 100.00)
        self.assertEqual(card.records_with_issues, 0)
        self.assertEqual(self.aggregator.rule_summary(), [])
        self.assertEqual(self.aggregator.severity_distribution(), [])

    def test_empty_record_set_is_an_error(self):
        with self.assertRaises(EmptyRecordSetError):
            self.aggregator.executive_scorecard(total_records=0)

    def test_score_is_not_clamped(self):
        # One record failing three HIGH rules: 100 - 15/5*100 = -200
        self.store.record([failure(f"R{i}", "A", "HIGH") for i in range(3)])
        card = self.aggregator.executive_scorecard(total_records=1)
        self.assertEqual(card.quality_score, -200.00)
        self.assertTrue(card.is_critical)

    def test_unknown_severity_in_store_is_an_error(self):
        self.store.record([failure("R1", "A", "CRITICAL")])
        with self.assertRaises(UnknownSeverityError):
            self.aggregator.category_risk()
        with self.assertRaises(UnknownSeverityError):
            self.aggregator.executive_scorecard(total_records=1)

    def test_custom_high_severity_label(self):
        weights = SeverityWeightTable({"CRITICAL": 10, "HIGH": 5})
        aggregator = Aggregator(self.store, weights, high_severity="CRITICAL")
        self.store.record([failure("R1", "A", "CRITICAL"), failure("R2", "A", "HIGH")])
        card = aggregator.executive_scorecard(total_records=2)
        self.assertEqual(card.high_severity_issues, 1)
        self.assertEqual(card.quality_score, 25.00)


class TestQualityScore(unittest.TestCase):
    def test_rounds_half_away_from_zero(self):
        # 100 - 1/(8*1)*100 = 87.5 exactly; 100 - 1/(3*1)*100 = 66.666...
        self.assertEqual(quality_score(1, 8, 1), 87.5)
        self.assertEqual(quality_score(1, 3, 1), 66.67)
        # 100 - 1/(16*5)*100 = 98.75; 100 - 1/(1600*5)*100 = 99.9875 -> 99.99
        self.assertEqual(quality_score(1, 1600, 5), 99.99)

    def test_empty(self):
        with self.assertRaises(EmptyRecordSetError):
            quality_score(0, 0, 5)


if __name__ == '__main__':
    unittest.main()

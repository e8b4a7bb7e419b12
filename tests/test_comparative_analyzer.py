import unittest

from txtrace.adapters.rpc.static_trace_adapter import StaticTraceAdapter
from txtrace.analysis.comparative_analyzer import (
    compare_analyses,
    compare_lists,
    percentage_change,
)
from txtrace.core.enums import PatternLabel, Severity
from txtrace.core.models import AnalysisOptions
from txtrace.services.trace_analysis_service import TraceAnalysisService

from trace_fixtures import (
    POOL,
    ROUTER1,
    OTHER,
    TX_A,
    TX_B,
    TX_X,
    TX_Y,
    scenario_a,
    scenario_b,
    scenario_y,
)


def _analyze(tx_hash, records, options=None):
    return TraceAnalysisService(StaticTraceAdapter()).analyze_records(tx_hash, records, options)


class PercentageChangeTests(unittest.TestCase):
    def test_zero_baselines(self) -> None:
        self.assertEqual(percentage_change(0, 0), 0.0)
        self.assertEqual(percentage_change(0, 42), 100.0)

    def test_relative_change(self) -> None:
        self.assertEqual(percentage_change(200, 150), -25.0)
        self.assertEqual(percentage_change(100_000, 160_000), 60.0)

    def test_list_changes(self) -> None:
        changes = compare_lists(["a", "b"], ["b", "c"])
        self.assertEqual((changes.added, changes.removed, changes.common), (("c",), ("a",), ("b",)))


class CompareTransactionsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.x = _analyze(TX_X, scenario_a(gas=100_000))
        self.y = _analyze(TX_Y, scenario_y())
        self.result = compare_analyses(self.x, self.y)

    def test_gas_difference(self) -> None:
        gas = self.result.gas_comparison
        self.assertEqual(gas.total_gas_change, 60_000)
        self.assertAlmostEqual(gas.total_gas_percentage_change, 60.0)
        self.assertFalse(gas.category_changed)

        (diff,) = self.result.differences_in("gas")
        self.assertEqual(diff.impact, Severity.HIGH)
        self.assertEqual(diff.description, "Gas usage increased by 60,000 (60.0%)")

    def test_pattern_difference(self) -> None:
        (diff,) = self.result.differences_in("pattern")
        self.assertEqual(diff.transaction1_value, PatternLabel.SIMPLE_TRANSFER.value)
        self.assertEqual(diff.transaction2_value, PatternLabel.SWAP_OPERATION.value)
        self.assertTrue(self.result.pattern_comparison.type_changed)

    def test_new_contracts(self) -> None:
        diffs = self.result.differences_in("contracts")
        self.assertEqual([d.type for d in diffs], ["new_contracts"])
        self.assertEqual(diffs[0].transaction2_value, "3")
        for address in (ROUTER1, POOL, OTHER):
            self.assertIn(address, diffs[0].description)

    def test_metrics_and_summaries(self) -> None:
        metrics = self.result.metrics
        self.assertEqual(
            set(metrics), {"action_count", "gas_usage", "contract_count", "max_depth", "error_count"}
        )
        self.assertEqual(metrics["gas_usage"].difference, 60_000)
        self.assertEqual(metrics["error_count"].percentage_change, 0.0)
        self.assertEqual(self.result.transaction1.tx_hash, TX_X)
        self.assertEqual(self.result.transaction2.pattern, PatternLabel.SWAP_OPERATION)

    def test_recommendations(self) -> None:
        recs = self.result.recommendations
        self.assertEqual(recs[0], "Transaction 2 uses 60,000 more gas. Consider optimizing contract interactions.")
        self.assertIn("Transaction patterns differ. Ensure the change aligns with your intended operation.", recs)

    def test_reverse_direction(self) -> None:
        reverse = compare_analyses(self.y, self.x)
        self.assertEqual(reverse.gas_comparison.total_gas_change, -60_000)
        self.assertEqual([d.type for d in reverse.differences_in("contracts")], ["removed_contracts"])
        self.assertIn("saving 60,000 gas", reverse.recommendations[0])


class SecurityChangeTests(unittest.TestCase):
    def test_new_concern_is_high_impact(self) -> None:
        result = compare_analyses(_analyze(TX_A, scenario_a()), _analyze(TX_B, scenario_b()))

        (diff,) = result.differences_in("security")
        self.assertEqual(diff.impact, Severity.HIGH)
        self.assertEqual(diff.description, "Security concerns increased from 0 to 1")

        sec = result.security_comparison
        self.assertEqual(sec.risk_score_change, 3)
        self.assertEqual(len(sec.new_concerns), 1)
        self.assertEqual(sec.resolved_concerns, ())
        self.assertEqual(result.transaction2.security_risk_score, 3)

    def test_identical_transactions(self) -> None:
        a = _analyze(TX_A, scenario_a())
        result = compare_analyses(a, a)
        self.assertEqual(result.differences, ())
        self.assertEqual(result.gas_comparison.summary, "Gas usage remained the same")
        self.assertEqual(result.security_comparison.summary, "Security profile remained the same")
        self.assertEqual(result.recommendations, ())

    def test_missing_optional_stages(self) -> None:
        options = AnalysisOptions(include_pattern_detection=False, include_security_analysis=False)
        a = _analyze(TX_A, scenario_a(), options)
        b = _analyze(TX_B, scenario_b(), options)
        result = compare_analyses(a, b)

        self.assertEqual(result.differences_in("pattern"), [])
        self.assertEqual(result.differences_in("security"), [])
        self.assertEqual(result.pattern_comparison.confidence_change, 0.0)


if __name__ == "__main__":
    unittest.main()

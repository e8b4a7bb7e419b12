import unittest

from txtrace.analysis.gas_analyzer import (
    analyze_gas,
    benchmark_comparisons,
    efficiency_metrics,
    gas_breakdown,
    gas_category,
    gas_distribution,
    gas_efficiency,
    optimization_suggestions,
)
from txtrace.core.enums import Efficiency, GasCategory, Severity

from trace_fixtures import (
    ALICE,
    BOB,
    EOA,
    OTHER,
    PYUSD,
    ROUTER1,
    TOKEN,
    approve_input,
    call,
    nodes_from,
    scenario_a,
    scenario_y,
    transfer_from_input,
    transfer_input,
)


def _ids(nodes):
    return [s.id for s in optimization_suggestions(nodes)]


class CategoryTests(unittest.TestCase):
    def test_boundaries(self) -> None:
        self.assertEqual(gas_category(0), GasCategory.LOW)
        self.assertEqual(gas_category(99_999), GasCategory.LOW)
        self.assertEqual(gas_category(100_000), GasCategory.MEDIUM)
        self.assertEqual(gas_category(499_999), GasCategory.MEDIUM)
        self.assertEqual(gas_category(500_000), GasCategory.HIGH)
        self.assertEqual(gas_category(1_000_000), GasCategory.VERY_HIGH)


class EfficiencyTests(unittest.TestCase):
    def test_rating_against_benchmark(self) -> None:
        self.assertEqual(gas_efficiency(52_000, "transfer(address,uint256)").efficiency, Efficiency.EXCELLENT)
        self.assertEqual(gas_efficiency(65_000, "transfer(address,uint256)").efficiency, Efficiency.GOOD)
        self.assertEqual(gas_efficiency(78_000, "transfer(address,uint256)").efficiency, Efficiency.AVERAGE)
        self.assertEqual(gas_efficiency(78_001, "transfer(address,uint256)").efficiency, Efficiency.POOR)

    def test_relative_to_median(self) -> None:
        e = gas_efficiency(92_000, "approve(address,uint256)")
        self.assertEqual(e.compared_to_median, 46_000)
        self.assertAlmostEqual(e.pct_diff, 100.0)

    def test_unknown_function(self) -> None:
        e = gas_efficiency(10_000, "swap()")
        self.assertEqual((e.efficiency, e.pct_diff, e.compared_to_median), (Efficiency.UNKNOWN, 0.0, 0))

    def test_metrics_for_single_transfer(self) -> None:
        metrics = {m.name: m for m in efficiency_metrics(nodes_from(scenario_a()))}
        self.assertEqual(metrics["Average Gas per Call"].score, 70)
        self.assertEqual(metrics["Tracked Operations Efficiency"].value, 50_000)
        self.assertEqual(metrics["Success Rate"].value, 100)
        self.assertEqual(metrics["Call Depth Complexity"].score, 90)

    def test_metrics_skip_tracked_when_none(self) -> None:
        names = [m.name for m in efficiency_metrics(nodes_from([call(EOA, OTHER)]))]
        self.assertNotIn("Tracked Operations Efficiency", names)


class BenchmarkTests(unittest.TestCase):
    def test_sorted_by_absolute_deviation(self) -> None:
        nodes = nodes_from([
            call(EOA, TOKEN, transfer_input(BOB, PYUSD), gas=65_000),
            call(EOA, TOKEN, approve_input(ROUTER1, PYUSD), gas=92_000, path=[0]),
            call(EOA, TOKEN, transfer_from_input(ALICE, BOB, PYUSD), gas=60_000, path=[1]),
        ])
        comparisons = benchmark_comparisons(nodes)

        self.assertEqual(
            [c.function_name for c in comparisons],
            ["approve(address,uint256)", "transferFrom(address,address,uint256)", "transfer(address,uint256)"],
        )
        self.assertEqual(comparisons[0].percentage_diff, 100.0)
        self.assertEqual(comparisons[1].percentage_diff, -20.0)
        self.assertEqual(comparisons[1].efficiency, Efficiency.EXCELLENT)

    def test_samples_are_averaged(self) -> None:
        nodes = nodes_from([
            call(EOA, TOKEN, transfer_input(BOB, PYUSD), gas=60_000),
            call(EOA, TOKEN, transfer_input(BOB, PYUSD), gas=70_000, path=[0]),
        ])
        (comparison,) = benchmark_comparisons(nodes)
        self.assertEqual(comparison.actual_gas, 65_000)
        self.assertEqual(comparison.difference, 0)


class DistributionTests(unittest.TestCase):
    def test_external_and_token_buckets(self) -> None:
        dist = gas_distribution(nodes_from(scenario_y()))

        self.assertEqual([d.category for d in dist], ["External Contract", "PYUSD Token"])
        self.assertEqual(dist[0].gas_used, 100_000)
        self.assertEqual(dist[0].call_count, 3)
        self.assertAlmostEqual(dist[1].percentage, 37.5)

    def test_breakdown_by_category(self) -> None:
        labels = [b.category for b in gas_breakdown(nodes_from(scenario_y()))]
        self.assertEqual(labels, ["Other", "Token Movement"])


class SuggestionTests(unittest.TestCase):
    def test_batch_transfers(self) -> None:
        nodes = nodes_from([
            call(EOA, TOKEN, transfer_input(BOB, PYUSD), gas=150_000, path=[i]) for i in range(4)
        ])
        suggestions = optimization_suggestions(nodes)
        self.assertEqual([s.id for s in suggestions], ["batch_transfers", "high_total_gas"])
        self.assertEqual(suggestions[0].potential_savings_gas, 180_000)
        self.assertEqual(suggestions[1].severity, Severity.MEDIUM)

    def test_unused_approval(self) -> None:
        self.assertEqual(_ids(nodes_from([call(EOA, TOKEN, approve_input(ROUTER1, PYUSD))])), ["unused_approvals"])

    def test_approval_followed_by_spender_pull(self) -> None:
        nodes = nodes_from([
            call(EOA, TOKEN, approve_input(ROUTER1, PYUSD)),
            call(ROUTER1, TOKEN, transfer_from_input(EOA, BOB, PYUSD), path=[0]),
        ])
        self.assertNotIn("unused_approvals", _ids(nodes))

    def test_failed_operations_report_wasted_gas(self) -> None:
        nodes = nodes_from([
            call(EOA, OTHER, gas=30_000),
            call(OTHER, ALICE, gas=10_000, path=[0], error="Reverted"),
        ])
        (suggestion,) = optimization_suggestions(nodes)
        self.assertEqual(suggestion.id, "failed_operations")
        self.assertEqual(suggestion.potential_savings_gas, 10_000)
        self.assertAlmostEqual(suggestion.potential_savings_percentage, 25.0)

    def test_heavy_deep_and_very_high(self) -> None:
        records = [call(EOA, OTHER, gas=1_100_000)]
        records += [call(OTHER, OTHER, gas=1_000, path=[0] * depth) for depth in range(1, 7)]
        suggestions = {s.id: s for s in optimization_suggestions(nodes_from(records))}

        self.assertIn("high_gas_operations", suggestions)
        self.assertIn("deep_call_stack", suggestions)
        self.assertEqual(suggestions["high_total_gas"].severity, Severity.HIGH)

    def test_cheap_transfer_has_no_suggestions(self) -> None:
        self.assertEqual(_ids(nodes_from(scenario_a())), [])


class AnalyzeGasTests(unittest.TestCase):
    def test_single_transfer(self) -> None:
        gas = analyze_gas(nodes_from(scenario_a()))

        self.assertEqual(gas.total_gas, 50_000)
        self.assertEqual(gas.gas_category, GasCategory.LOW)
        self.assertEqual(gas.gas_by_contract, {"PYUSD Token": 50_000})
        self.assertEqual(gas.function_efficiency["transfer(address,uint256)"].efficiency, Efficiency.EXCELLENT)
        self.assertEqual(gas.benchmark_comparison[0].benchmark_gas, 65_000)

    def test_empty_trace(self) -> None:
        gas = analyze_gas(())
        self.assertEqual(gas.total_gas, 0)
        self.assertEqual(gas.gas_category, GasCategory.LOW)
        self.assertEqual(gas.distribution, ())
        self.assertEqual(gas.optimization_suggestions, ())


if __name__ == "__main__":
    unittest.main()

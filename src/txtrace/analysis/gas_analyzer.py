from __future__ import annotations

from typing import Dict, List, Sequence

from txtrace.analysis.extractors import gas_metrics, max_depth, total_gas
from txtrace.core.enums import Efficiency, GasCategory, Severity
from txtrace.core.models import (
    BenchmarkComparison,
    EfficiencyMetric,
    GasAnalysis,
    GasBreakdown,
    GasDistribution,
    GasEfficiency,
    OptimizationSuggestion,
    ProcessedCallNode,
)
from txtrace.core.rules import (
    FN_APPROVE,
    FN_TRANSFER,
    GAS_BENCHMARKS,
    GAS_ELEVATED,
    GAS_EXTREME,
    GAS_HEAVY,
    HIGH_GAS_OPERATION,
    NO_FUNCTION,
)


def gas_category(total: int) -> GasCategory:
    if total < GAS_ELEVATED:
        return GasCategory.LOW
    if total < GAS_HEAVY:
        return GasCategory.MEDIUM
    if total < GAS_EXTREME:
        return GasCategory.HIGH
    return GasCategory.VERY_HIGH


def _pct(part: float, whole: float) -> float:
    return (part / whole * 100) if whole > 0 else 0.0


def _rate(gas_used: float, function_name: str) -> Efficiency:
    benchmark = GAS_BENCHMARKS[function_name]
    if gas_used <= benchmark.p25:
        return Efficiency.EXCELLENT
    if gas_used <= benchmark.median:
        return Efficiency.GOOD
    if gas_used <= benchmark.p75:
        return Efficiency.AVERAGE
    return Efficiency.POOR


def gas_efficiency(gas_used: int, function_name: str) -> GasEfficiency:
    benchmark = GAS_BENCHMARKS.get(function_name)
    if benchmark is None:
        return GasEfficiency(Efficiency.UNKNOWN, 0.0, 0)

    median = benchmark.median
    return GasEfficiency(
        efficiency=_rate(gas_used, function_name),
        pct_diff=_pct(gas_used - median, median),
        compared_to_median=gas_used - median,
    )


def _distribution_class(node: ProcessedCallNode) -> str:
    if not node.is_tracked:
        return "External Contract"
    if "Token" in node.contract_name:
        return "PYUSD Token"
    if "Supply" in node.contract_name:
        return "Supply Control"
    return "Other PYUSD"


def gas_distribution(nodes: Sequence[ProcessedCallNode]) -> List[GasDistribution]:
    total = total_gas(nodes)
    buckets: Dict[str, List[int]] = {}
    for n in nodes:
        acc = buckets.setdefault(_distribution_class(n), [0, 0])
        acc[0] += n.gas_used
        acc[1] += 1

    out = [
        GasDistribution(category=c, gas_used=g, call_count=k, percentage=_pct(g, total))
        for c, (g, k) in buckets.items()
    ]
    return sorted(out, key=lambda d: d.gas_used, reverse=True)


def _score(value: float, cutoffs: Sequence[float], scores: Sequence[int]) -> int:
    for cutoff, score in zip(cutoffs, scores):
        if value < cutoff:
            return score
    return scores[-1]


def efficiency_metrics(nodes: Sequence[ProcessedCallNode]) -> List[EfficiencyMetric]:
    metrics: List[EfficiencyMetric] = []
    total = total_gas(nodes)
    calls = len(nodes)

    avg = total / calls if calls else 0.0
    metrics.append(EfficiencyMetric(
        name="Average Gas per Call",
        value=round(avg),
        unit="gas",
        score=_score(avg, (50_000, 100_000, 200_000), (90, 70, 50, 30)),
        description="Average gas consumption per function call",
    ))

    tracked = [n for n in nodes if n.is_tracked]
    if tracked:
        tracked_avg = sum(n.gas_used for n in tracked) / len(tracked)
        metrics.append(EfficiencyMetric(
            name="Tracked Operations Efficiency",
            value=round(tracked_avg),
            unit="gas",
            score=_score(tracked_avg, (70_000, 100_000, 150_000), (90, 70, 50, 30)),
            description="Average gas for tracked-contract operations",
        ))

    error_rate = _pct(sum(1 for n in nodes if n.has_error), calls)
    metrics.append(EfficiencyMetric(
        name="Success Rate",
        value=round(100 - error_rate),
        unit="%",
        score=_score(error_rate, (5, 10, 20), (95, 80, 60, 30)),
        description="Percentage of successful operations",
    ))

    depth = max_depth(nodes)
    metrics.append(EfficiencyMetric(
        name="Call Depth Complexity",
        value=depth,
        unit="levels",
        score=_score(depth, (3, 5, 8), (90, 70, 50, 30)),
        description="Maximum call stack depth reached",
    ))
    return metrics


def _tracked_function_groups(nodes: Sequence[ProcessedCallNode]) -> Dict[str, List[int]]:
    groups: Dict[str, List[int]] = {}
    for n in nodes:
        if n.is_tracked and n.function_name and n.function_name != NO_FUNCTION:
            groups.setdefault(n.function_name, []).append(n.gas_used)
    return groups


def benchmark_comparisons(nodes: Sequence[ProcessedCallNode]) -> List[BenchmarkComparison]:
    out: List[BenchmarkComparison] = []
    for name, samples in _tracked_function_groups(nodes).items():
        benchmark = GAS_BENCHMARKS.get(name)
        if benchmark is None:
            continue
        actual = sum(samples) / len(samples)
        difference = actual - benchmark.median
        out.append(BenchmarkComparison(
            function_name=name,
            actual_gas=round(actual),
            benchmark_gas=benchmark.median,
            efficiency=_rate(actual, name),
            difference=round(difference),
            percentage_diff=round(_pct(difference, benchmark.median), 2),
        ))
    return sorted(out, key=lambda c: abs(c.percentage_diff), reverse=True)


def function_efficiency(nodes: Sequence[ProcessedCallNode]) -> Dict[str, GasEfficiency]:
    return {
        name: gas_efficiency(round(sum(samples) / len(samples)), name)
        for name, samples in _tracked_function_groups(nodes).items()
        if name in GAS_BENCHMARKS
    }


def gas_breakdown(nodes: Sequence[ProcessedCallNode]) -> List[GasBreakdown]:
    total = total_gas(nodes)
    per_category: Dict[str, int] = {}
    for n in nodes:
        label = (n.category or "other").replace("_", " ").title()
        per_category[label] = per_category.get(label, 0) + n.gas_used

    out = [GasBreakdown(c, g, _pct(g, total)) for c, g in per_category.items()]
    return sorted(out, key=lambda b: b.gas_used, reverse=True)


def optimization_suggestions(nodes: Sequence[ProcessedCallNode]) -> List[OptimizationSuggestion]:
    suggestions: List[OptimizationSuggestion] = []
    total = total_gas(nodes)

    transfers = [n for n in nodes if n.function_name == FN_TRANSFER]
    if len(transfers) > 3:
        transfer_gas = sum(n.gas_used for n in transfers)
        suggestions.append(OptimizationSuggestion(
            id="batch_transfers",
            type="gas",
            severity=Severity.MEDIUM,
            title="Batch Multiple Transfers",
            description=f"{len(transfers)} individual transfers detected",
            recommendation="Consider using a multicall or batch transfer function to reduce gas costs",
            potential_savings_gas=round(transfer_gas * 0.3),
            potential_savings_percentage=30.0,
        ))

    approvals = [n for n in nodes if n.function_name == FN_APPROVE]
    spenders = {a.parameters.get("spender") for a in approvals}
    followed = [n for n in nodes if "transferFrom" in n.function_name and n.from_address in spenders]
    if approvals and not followed:
        suggestions.append(OptimizationSuggestion(
            id="unused_approvals",
            type="gas",
            severity=Severity.LOW,
            title="Unused Approvals Detected",
            description="Approvals granted but no subsequent transfers found",
            recommendation="Only approve tokens when immediately needed to save gas",
        ))

    failed = [n for n in nodes if n.has_error]
    if failed:
        wasted = sum(n.gas_used for n in failed)
        suggestions.append(OptimizationSuggestion(
            id="failed_operations",
            type="performance",
            severity=Severity.HIGH,
            title="Failed Operations Detected",
            description=f"{len(failed)} operations failed, wasting gas",
            recommendation="Add proper validation and error handling to prevent failed transactions",
            potential_savings_gas=wasted,
            potential_savings_percentage=_pct(wasted, total),
        ))

    heavy = [n for n in nodes if n.gas_used > HIGH_GAS_OPERATION]
    if heavy:
        suggestions.append(OptimizationSuggestion(
            id="high_gas_operations",
            type="gas",
            severity=Severity.MEDIUM,
            title="High Gas Operations",
            description=f"{len(heavy)} operations used >200k gas each",
            recommendation="Review high-gas operations for optimization opportunities",
        ))

    depth = max_depth(nodes)
    if depth > 5:
        suggestions.append(OptimizationSuggestion(
            id="deep_call_stack",
            type="performance",
            severity=Severity.MEDIUM,
            title="Deep Call Stack",
            description=f"Maximum call depth of {depth} levels detected",
            recommendation="Consider flattening call hierarchy to reduce gas overhead",
        ))

    category = gas_category(total)
    if category in (GasCategory.HIGH, GasCategory.VERY_HIGH):
        suggestions.append(OptimizationSuggestion(
            id="high_total_gas",
            type="gas",
            severity=Severity.HIGH if category == GasCategory.VERY_HIGH else Severity.MEDIUM,
            title="High Total Gas",
            description=f"Transaction consumed {total:,} gas ({category.value})",
            recommendation="Split the operation or remove redundant external calls",
        ))

    return suggestions


def analyze_gas(nodes: Sequence[ProcessedCallNode]) -> GasAnalysis:
    metrics = gas_metrics(nodes)
    return GasAnalysis(
        total_gas=metrics.total_gas,
        gas_category=gas_category(metrics.total_gas),
        gas_by_contract=metrics.gas_per_contract,
        gas_by_function=metrics.gas_per_function,
        distribution=tuple(gas_distribution(nodes)),
        efficiency_metrics=tuple(efficiency_metrics(nodes)),
        function_efficiency=function_efficiency(nodes),
        benchmark_comparison=tuple(benchmark_comparisons(nodes)),
        breakdown=tuple(gas_breakdown(nodes)),
        optimization_suggestions=tuple(optimization_suggestions(nodes)),
    )

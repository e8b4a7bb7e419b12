"""
Diff two completed analyses. Never triggers analysis itself.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from txtrace.core.enums import Severity
from txtrace.core.models import (
    ComparisonDifference,
    ComparisonResult,
    GasComparison,
    ListChanges,
    MetricDelta,
    PatternComparison,
    SecurityComparison,
    SecurityConcern,
    TraceAnalysisResult,
    TransactionSummary,
)

RISK_WEIGHTS: Dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 3,
    Severity.HIGH: 5,
    Severity.CRITICAL: 10,
}

GAS_CHANGE_NOTABLE_PCT = 10.0
GAS_CHANGE_HIGH_PCT = 25.0


def percentage_change(old: float, new: float) -> float:
    """
    Relative change in percent. 0 when both are zero, 100 when only the
    baseline is zero.
    """
    if old == 0:
        return 0.0 if new == 0 else 100.0
    return (new - old) / old * 100


def compare_lists(first: Sequence[str], second: Sequence[str]) -> ListChanges:
    return ListChanges(
        added=tuple(x for x in second if x not in first),
        removed=tuple(x for x in first if x not in second),
        common=tuple(x for x in first if x in second),
    )


def weighted_risk(concerns: Sequence[SecurityConcern]) -> int:
    return sum(RISK_WEIGHTS[c.level] for c in concerns)


def _concerns(result: TraceAnalysisResult) -> Tuple[SecurityConcern, ...]:
    return result.security.concerns if result.security is not None else ()


def _delta(a: float, b: float) -> MetricDelta:
    return MetricDelta(
        transaction1=a,
        transaction2=b,
        difference=b - a,
        percentage_change=percentage_change(a, b),
    )


def comparison_metrics(a: TraceAnalysisResult, b: TraceAnalysisResult) -> Dict[str, MetricDelta]:
    return {
        "action_count": _delta(len(a.nodes), len(b.nodes)),
        "gas_usage": _delta(a.gas.total_gas, b.gas.total_gas),
        "contract_count": _delta(len(a.interactions), len(b.interactions)),
        "max_depth": _delta(a.summary.max_depth, b.summary.max_depth),
        "error_count": _delta(a.summary.error_count, b.summary.error_count),
    }


def _gas_change_text(change: int, pct: float) -> str:
    direction = "increased" if change > 0 else "decreased"
    return f"Gas usage {direction} by {abs(change):,} ({abs(pct):.1f}%)"


def _preview(items: Sequence[str]) -> str:
    return ", ".join(items[:3]) + ("..." if len(items) > 3 else "")


def identify_differences(a: TraceAnalysisResult, b: TraceAnalysisResult) -> List[ComparisonDifference]:
    differences: List[ComparisonDifference] = []

    label_a, label_b = a.pattern_label.value, b.pattern_label.value
    if label_a != label_b:
        differences.append(ComparisonDifference(
            category="pattern",
            type="pattern_type_change",
            description=f"Transaction pattern changed from {label_a} to {label_b}",
            impact=Severity.MEDIUM,
            transaction1_value=label_a,
            transaction2_value=label_b,
        ))

    gas_change = b.gas.total_gas - a.gas.total_gas
    gas_pct = percentage_change(a.gas.total_gas, b.gas.total_gas)
    if abs(gas_pct) > GAS_CHANGE_NOTABLE_PCT:
        differences.append(ComparisonDifference(
            category="gas",
            type="gas_usage_change",
            description=_gas_change_text(gas_change, gas_pct),
            impact=Severity.HIGH if abs(gas_pct) > GAS_CHANGE_HIGH_PCT else Severity.MEDIUM,
            transaction1_value=str(a.gas.total_gas),
            transaction2_value=str(b.gas.total_gas),
        ))

    count_a, count_b = len(_concerns(a)), len(_concerns(b))
    if count_a != count_b:
        increased = count_b > count_a
        differences.append(ComparisonDifference(
            category="security",
            type="security_concern_change",
            description=(
                f"Security concerns {'increased' if increased else 'decreased'} "
                f"from {count_a} to {count_b}"
            ),
            impact=Severity.HIGH if increased else Severity.LOW,
            transaction1_value=str(count_a),
            transaction2_value=str(count_b),
        ))

    targets_a = list(dict.fromkeys(e.to_address for e in a.interactions))
    targets_b = list(dict.fromkeys(e.to_address for e in b.interactions))
    added = [t for t in targets_b if t not in targets_a]
    removed = [t for t in targets_a if t not in targets_b]

    if added:
        differences.append(ComparisonDifference(
            category="contracts",
            type="new_contracts",
            description=f"New contract interactions: {_preview(added)}",
            impact=Severity.MEDIUM,
            transaction1_value="N/A",
            transaction2_value=str(len(added)),
        ))
    if removed:
        differences.append(ComparisonDifference(
            category="contracts",
            type="removed_contracts",
            description=f"Removed contract interactions: {_preview(removed)}",
            impact=Severity.MEDIUM,
            transaction1_value=str(len(removed)),
            transaction2_value="N/A",
        ))

    return differences


def compare_patterns(a: TraceAnalysisResult, b: TraceAnalysisResult) -> PatternComparison:
    label_a, label_b = a.pattern_label, b.pattern_label
    conf_a = a.pattern_analysis.pattern.confidence if a.pattern_analysis else 0.0
    conf_b = b.pattern_analysis.pattern.confidence if b.pattern_analysis else 0.0
    matches_a = [m.label.value for m in a.pattern_analysis.pattern.matches] if a.pattern_analysis else []
    matches_b = [m.label.value for m in b.pattern_analysis.pattern.matches] if b.pattern_analysis else []

    if label_a == label_b:
        summary = f"Both transactions follow the same {label_a.value} pattern"
    else:
        summary = f"Pattern changed from {label_a.value} to {label_b.value}"

    return PatternComparison(
        type_changed=label_a != label_b,
        confidence_change=conf_b - conf_a,
        complexity_change=b.complexity.score - a.complexity.score,
        match_changes=compare_lists(matches_a, matches_b),
        summary=summary,
    )


def compare_gas(a: TraceAnalysisResult, b: TraceAnalysisResult) -> GasComparison:
    change = b.gas.total_gas - a.gas.total_gas
    pct = percentage_change(a.gas.total_gas, b.gas.total_gas)
    return GasComparison(
        total_gas_change=change,
        total_gas_percentage_change=pct,
        category_changed=a.gas.gas_category != b.gas.gas_category,
        optimization_changes=compare_lists(
            [s.title for s in a.gas.optimization_suggestions],
            [s.title for s in b.gas.optimization_suggestions],
        ),
        summary="Gas usage remained the same" if change == 0 else _gas_change_text(change, pct),
    )


def compare_security(a: TraceAnalysisResult, b: TraceAnalysisResult) -> SecurityComparison:
    first, second = _concerns(a), _concerns(b)
    risk_a, risk_b = weighted_risk(first), weighted_risk(second)

    def same(x: SecurityConcern, y: SecurityConcern) -> bool:
        return x.description == y.description and x.level == y.level

    if len(first) == len(second) and risk_a == risk_b:
        summary = "Security profile remained the same"
    else:
        direction = "risk increased" if risk_b > risk_a else "risk decreased"
        summary = f"Security {direction} with {len(second)} total concerns"

    return SecurityComparison(
        risk_score_change=risk_b - risk_a,
        concern_count_change=len(second) - len(first),
        new_concerns=tuple(c for c in second if not any(same(c, o) for o in first)),
        resolved_concerns=tuple(c for c in first if not any(same(c, o) for o in second)),
        summary=summary,
    )


def comparison_recommendations(
    a: TraceAnalysisResult,
    b: TraceAnalysisResult,
    differences: Sequence[ComparisonDifference],
) -> List[str]:
    out: List[str] = []

    gas_change = b.gas.total_gas - a.gas.total_gas
    if gas_change > 0:
        out.append(
            f"Transaction 2 uses {gas_change:,} more gas. Consider optimizing contract interactions."
        )
    elif gas_change < 0:
        out.append(
            f"Transaction 2 is more gas efficient, saving {abs(gas_change):,} gas. Good optimization!"
        )

    categories = {d.category: d for d in reversed(differences)}
    security = categories.get("security")
    if security is not None and security.impact == Severity.HIGH:
        out.append(
            "Security concerns have changed significantly. "
            "Review the security analysis for both transactions."
        )
    if "pattern" in categories:
        out.append("Transaction patterns differ. Ensure the change aligns with your intended operation.")
    if "contracts" in categories:
        out.append(
            "Contract interactions have changed. Verify that all necessary contracts are being called."
        )
    return out


def summarize(result: TraceAnalysisResult) -> TransactionSummary:
    return TransactionSummary(
        tx_hash=result.tx_hash,
        pattern=result.pattern_label,
        gas_used=result.gas.total_gas,
        action_count=len(result.nodes),
        contract_count=len(result.interactions),
        security_risk_score=weighted_risk(_concerns(result)),
        has_errors=any(n.has_error for n in result.nodes),
    )


def compare_analyses(a: TraceAnalysisResult, b: TraceAnalysisResult) -> ComparisonResult:
    differences = identify_differences(a, b)
    return ComparisonResult(
        transaction1=summarize(a),
        transaction2=summarize(b),
        metrics=comparison_metrics(a, b),
        differences=tuple(differences),
        pattern_comparison=compare_patterns(a, b),
        gas_comparison=compare_gas(a, b),
        security_comparison=compare_security(a, b),
        recommendations=tuple(comparison_recommendations(a, b, differences)),
    )

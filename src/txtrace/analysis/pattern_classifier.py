from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

from txtrace.analysis.extractors import error_count, max_depth, total_gas, unique_targets
from txtrace.config import settings
from txtrace.core.enums import ComplexityLevel, PatternLabel, Severity
from txtrace.core.models import (
    ComplexityAnalysis,
    ComplexityFactor,
    PatternAnalysis,
    PatternMatch,
    ProcessedCallNode,
    TokenTransferEvent,
    TransactionPattern,
)
from txtrace.core.rules import CALL_KINDS, FN_APPROVE, FN_BURN, FN_MINT, FN_TRANSFER, GAS_HEAVY, NO_FUNCTION


@dataclass(frozen=True)
class PatternFeatures:
    tracked_calls: int
    tracked_targets: int
    function_counts: Dict[str, int]
    tracked_function_names: Tuple[str, ...]
    transfer_count: int
    external_calls: int
    total_gas: int

    def calls_to(self, function_name: str) -> int:
        return self.function_counts.get(function_name, 0)


def extract_features(
    nodes: Sequence[ProcessedCallNode],
    transfers: Sequence[TokenTransferEvent],
) -> PatternFeatures:
    tracked = [n for n in nodes if n.is_tracked]
    counts: Dict[str, int] = {}
    for n in tracked:
        if n.function_name and n.function_name != NO_FUNCTION:
            counts[n.function_name] = counts.get(n.function_name, 0) + 1

    return PatternFeatures(
        tracked_calls=len(tracked),
        tracked_targets=len({n.to_address for n in tracked}),
        function_counts=counts,
        tracked_function_names=tuple(n.function_name for n in tracked),
        transfer_count=len(transfers),
        external_calls=sum(1 for n in nodes if not n.is_tracked and n.call_type in CALL_KINDS),
        total_gas=total_gas(nodes),
    )


@dataclass(frozen=True)
class PatternRule:
    label: PatternLabel
    confidence: float
    description: str
    matches: Callable[[PatternFeatures], bool]


_SYMBOL = settings.TRACKED_TOKEN_SYMBOL

# Declaration order is the tie-break order.
PATTERN_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        PatternLabel.SIMPLE_TRANSFER, 0.90,
        f"Simple {_SYMBOL} transfer between addresses",
        lambda f: f.transfer_count == 1 and f.tracked_targets <= 1 and f.calls_to(FN_TRANSFER) == 1,
    ),
    PatternRule(
        PatternLabel.MULTI_TRANSFER, 0.80,
        f"Multiple {_SYMBOL} transfers in one transaction",
        lambda f: f.transfer_count > 1 and f.calls_to(FN_TRANSFER) > 1,
    ),
    PatternRule(
        PatternLabel.APPROVAL_FLOW, 0.85,
        f"{_SYMBOL} approval for future spending",
        lambda f: f.calls_to(FN_APPROVE) >= 1,
    ),
    PatternRule(
        PatternLabel.SUPPLY_CHANGE, 0.95,
        f"Minting or burning of {_SYMBOL} supply",
        lambda f: f.calls_to(FN_MINT) >= 1 or f.calls_to(FN_BURN) >= 1,
    ),
    PatternRule(
        PatternLabel.SWAP_OPERATION, 0.70,
        f"{_SYMBOL} swap through DEX",
        lambda f: f.transfer_count >= 1 and f.external_calls >= 3,
    ),
    PatternRule(
        PatternLabel.LIQUIDITY_PROVISION, 0.60,
        f"Adding/removing liquidity with {_SYMBOL}",
        lambda f: f.transfer_count >= 1 and any("mint" in name for name in f.tracked_function_names),
    ),
    PatternRule(
        PatternLabel.BRIDGE_OPERATION, 0.60,
        f"{_SYMBOL} bridge operation (cross-chain)",
        lambda f: f.transfer_count >= 1 and f.total_gas > GAS_HEAVY,
    ),
)


def evaluate_rules(
    features: PatternFeatures,
    rules: Sequence[PatternRule] = PATTERN_RULES,
) -> List[PatternMatch]:
    matches = [
        PatternMatch(label=r.label, confidence=r.confidence, description=r.description)
        for r in rules
        if r.matches(features)
    ]
    # sorted() is stable, so equal confidences keep declaration order
    return sorted(matches, key=lambda m: m.confidence, reverse=True)


def identify_pattern(
    nodes: Sequence[ProcessedCallNode],
    transfers: Sequence[TokenTransferEvent],
) -> TransactionPattern:
    if not nodes:
        return TransactionPattern(PatternLabel.UNKNOWN, 0.0, "Unknown transaction pattern")

    matches = evaluate_rules(extract_features(nodes, transfers))
    if not matches:
        return TransactionPattern(PatternLabel.UNKNOWN, 0.0, "Unknown transaction pattern")

    best = matches[0]
    return TransactionPattern(
        label=best.label,
        confidence=best.confidence,
        description=best.description,
        matches=tuple(matches),
    )


# -------------------------
# Complexity
# -------------------------

def analyze_complexity(nodes: Sequence[ProcessedCallNode]) -> ComplexityAnalysis:
    depth = max_depth(nodes)
    contracts = unique_targets(nodes)
    calls = len(nodes)
    gas = total_gas(nodes)
    error_rate = (error_count(nodes) / calls * 100) if calls else 0.0

    factors = (
        ComplexityFactor("Call Depth", depth, 0.30, min(depth * 10, 50)),
        ComplexityFactor("Unique Contracts", contracts, 0.25, min(contracts * 5, 30)),
        ComplexityFactor("Total Calls", calls, 0.20, min(calls * 2, 40)),
        ComplexityFactor("Gas Usage", gas, 0.15, min(gas / 100_000, 20)),
        ComplexityFactor("Error Rate", error_rate, 0.10, error_rate * 2),
    )

    score = sum(f.contribution * f.weight for f in factors)
    score = max(0.0, min(100.0, float(score)))

    return ComplexityAnalysis(score=score, level=complexity_level(score), factors=factors)


def complexity_level(score: float) -> ComplexityLevel:
    if score < 20:
        return ComplexityLevel.LOW
    if score < 40:
        return ComplexityLevel.MEDIUM
    if score < 70:
        return ComplexityLevel.HIGH
    return ComplexityLevel.VERY_HIGH


# -------------------------
# Insights
# -------------------------

_INSIGHTS: Dict[PatternLabel, Tuple[Tuple[str, ...], Tuple[str, ...], Severity]] = {
    PatternLabel.SIMPLE_TRANSFER: (
        (
            f"This is a straightforward {_SYMBOL} transfer between two addresses",
            "Low complexity transaction with minimal gas usage",
        ),
        ("Consider batching multiple transfers to save gas",),
        Severity.LOW,
    ),
    PatternLabel.SWAP_OPERATION: (
        (
            f"This transaction involves swapping {_SYMBOL} through a DEX",
            "Multiple contract interactions detected",
        ),
        (
            "Monitor slippage and MEV protection",
            "Consider using MEV-protected transaction pools",
        ),
        Severity.MEDIUM,
    ),
    PatternLabel.SUPPLY_CHANGE: (
        (
            f"This transaction modifies {_SYMBOL} token supply",
            "Administrative operation with high privilege requirements",
        ),
        (
            "Verify authorization and audit trail",
            "Monitor for unusual supply changes",
        ),
        Severity.HIGH,
    ),
    PatternLabel.MULTI_TRANSFER: (
        (
            f"Multiple {_SYMBOL} transfers in a single transaction",
            "Efficient gas usage through batching",
        ),
        ("Good practice for reducing transaction costs",),
        Severity.LOW,
    ),
}

_DEFAULT_INSIGHT = (
    ("Transaction pattern not clearly identified",),
    ("Manual review recommended for complex transactions",),
    Severity.MEDIUM,
)


def pattern_insights(pattern: TransactionPattern) -> Tuple[Tuple[str, ...], Tuple[str, ...], Severity]:
    return _INSIGHTS.get(pattern.label, _DEFAULT_INSIGHT)


def analyze_patterns(
    nodes: Sequence[ProcessedCallNode],
    transfers: Sequence[TokenTransferEvent],
    complexity: ComplexityAnalysis,
) -> PatternAnalysis:
    pattern = identify_pattern(nodes, transfers)
    insights, recommendations, _ = pattern_insights(pattern)

    if complexity.level == ComplexityLevel.LOW:
        risk = Severity.LOW
    elif complexity.level == ComplexityLevel.MEDIUM:
        risk = Severity.MEDIUM
    else:
        risk = Severity.HIGH

    return PatternAnalysis(
        pattern=pattern,
        complexity=complexity,
        risk_level=risk,
        insights=insights,
        recommendations=recommendations,
    )

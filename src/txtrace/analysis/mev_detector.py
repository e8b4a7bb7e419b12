"""
MEV heuristics.

The basic tier is a single cheap pass producing at most one reported
finding. The advanced tier runs four independent detectors; each returns
its own indicators and, when enough of them corroborate, a composite
pattern.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Tuple

from txtrace.analysis.extractors import max_depth, total_gas
from txtrace.core.enums import MevPatternType, Severity
from txtrace.core.models import (
    AdvancedMevAnalysis,
    BasicMevAnalysis,
    GasAnalysis,
    MevDetection,
    MevIndicator,
    MevPattern,
    ProcessedCallNode,
)
from txtrace.core.rules import (
    DEX_MARKERS,
    FLASH_LOAN_MARKERS,
    GAS_ELEVATED,
    GAS_EXTREME,
    HIGH_VALUE_SWAP_NATIVE,
    LIQUIDATION_MARKERS,
    NEAR_ZERO_GAS,
)

logger = logging.getLogger(__name__)

ZERO = Decimal(0)


def _name_has(node: ProcessedCallNode, markers: Sequence[str]) -> bool:
    name = node.function_name.lower()
    return any(m in name for m in markers)


def is_dex_call(node: ProcessedCallNode) -> bool:
    name = node.function_name.lower()
    contract = node.contract_name.lower()
    return any(m in name or m in contract for m in DEX_MARKERS)


def _sum_values(nodes: Sequence[ProcessedCallNode]) -> Decimal:
    return sum((n.value_native for n in nodes), ZERO)


# -------------------------
# Basic tier
# -------------------------

def analyze_basic(nodes: Sequence[ProcessedCallNode]) -> BasicMevAnalysis:
    indicators: List[MevIndicator] = []

    untracked = [n for n in nodes if not n.is_tracked]
    if any("swap" in n.function_name.lower() for n in nodes) and len(untracked) > 3:
        indicators.append(MevIndicator(
            type="potential_sandwich_target",
            confidence=0.6,
            description="Swap executed alongside multiple external calls",
            severity=Severity.MEDIUM,
            evidence={"external_calls": len(untracked)},
        ))

    shaped = [n for n in nodes if _name_has(n, ("transfer", "swap"))]
    contracts = {n.to_address for n in nodes}
    if len(shaped) >= 3 and len(contracts) >= 3:
        indicators.append(MevIndicator(
            type="potential_arbitrage",
            confidence=0.7,
            description="Multiple token movements across different contracts",
            severity=Severity.MEDIUM,
            evidence={"calls": len(shaped), "contracts": len(contracts)},
        ))

    targets = {n.to_address for n in nodes}
    if len(nodes) > 20 and len(targets) > 5:
        indicators.append(MevIndicator(
            type="complex_operation",
            confidence=0.5,
            description="Complex multi-contract operation",
            severity=Severity.LOW,
            evidence={"calls": len(nodes), "contracts": len(targets)},
        ))

    gas = total_gas(nodes)
    if gas > GAS_EXTREME:
        indicators.append(MevIndicator(
            type="high_gas_usage",
            confidence=0.4,
            description="Unusually high gas consumption",
            severity=Severity.LOW,
            evidence={"total_gas": gas},
        ))

    if not indicators:
        return BasicMevAnalysis(mev_detected=False, type=None, confidence=0.0, description=None)

    ranked = tuple(sorted(indicators, key=lambda i: i.confidence, reverse=True))
    top = ranked[0]
    return BasicMevAnalysis(
        mev_detected=True,
        type=top.type,
        confidence=top.confidence,
        description=top.description,
        indicators=ranked,
    )


# -------------------------
# Advanced tier
# -------------------------

def _mean(values: Sequence[float]) -> float:
    return sum(values) / max(len(values), 1)


def _pattern(
    detector: MevPatternType,
    indicators: List[MevIndicator],
    min_indicators: int,
    description: str,
    severity: Severity,
    extracted_value: Decimal,
) -> MevDetection:
    pattern: Optional[MevPattern] = None
    if len(indicators) >= min_indicators:
        pattern = MevPattern(
            type=detector,
            confidence=_mean([i.confidence for i in indicators]),
            description=description,
            severity=severity,
            extracted_value=extracted_value,
        )
    return MevDetection(detector=detector, indicators=tuple(indicators), pattern=pattern)


def detect_sandwich(nodes: Sequence[ProcessedCallNode], gas: Optional[GasAnalysis] = None) -> MevDetection:
    dex_calls = [n for n in nodes if is_dex_call(n)]
    indicators: List[MevIndicator] = []

    if max_depth(nodes) <= 3 or len(dex_calls) <= 1:
        return MevDetection(MevPatternType.SANDWICH_ATTACK, (), None)

    high_value = [n for n in dex_calls if n.value_native > HIGH_VALUE_SWAP_NATIVE]
    if high_value:
        indicators.append(MevIndicator(
            type="high_price_impact",
            confidence=0.8,
            description="High-value swaps that can move pool prices",
            severity=Severity.HIGH,
            evidence={"swaps": len(high_value), "value": _sum_values(high_value)},
        ))

    if len(dex_calls) > 2:
        indicators.append(MevIndicator(
            type="unusual_slippage",
            confidence=0.6,
            description="Multiple DEX interactions in one transaction",
            severity=Severity.MEDIUM,
            evidence={"dex_calls": len(dex_calls)},
        ))

    deep_calls = sum(1 for n in nodes if n.depth > 3)
    if deep_calls > 5 and any(n.gas_used < NEAR_ZERO_GAS for n in nodes):
        indicators.append(MevIndicator(
            type="mev_bot_signature",
            confidence=0.9,
            description="Deep call stack with near-zero-gas calls typical of MEV bots",
            severity=Severity.HIGH,
            evidence={"deep_calls": deep_calls},
        ))

    return _pattern(
        MevPatternType.SANDWICH_ATTACK, indicators, 2,
        "Potential sandwich attack around DEX swaps",
        Severity.HIGH, _sum_values(dex_calls),
    )


def detect_arbitrage(nodes: Sequence[ProcessedCallNode], gas: Optional[GasAnalysis] = None) -> MevDetection:
    dex_calls = [n for n in nodes if is_dex_call(n)]
    venues = {n.to_address for n in dex_calls}
    indicators: List[MevIndicator] = []

    if len(venues) < 2:
        return MevDetection(MevPatternType.ARBITRAGE, (), None)

    indicators.append(MevIndicator(
        type="price_discrepancy",
        confidence=0.7,
        description="Swaps across multiple DEX venues",
        severity=Severity.MEDIUM,
        evidence={"venues": len(venues)},
    ))

    flash_loans = [n for n in nodes if _name_has(n, FLASH_LOAN_MARKERS)]
    if flash_loans:
        indicators.append(MevIndicator(
            type="flash_loan_usage",
            confidence=0.8,
            description="Flash loan used to fund the operation",
            severity=Severity.MEDIUM,
            evidence={"calls": len(flash_loans)},
        ))

    if not any(n.has_error for n in nodes) and len(nodes) > 10:
        indicators.append(MevIndicator(
            type="atomic_execution",
            confidence=0.6,
            description="Large call set executed atomically without reverts",
            severity=Severity.LOW,
            evidence={"calls": len(nodes)},
        ))

    return _pattern(
        MevPatternType.ARBITRAGE, indicators, 2,
        "Potential arbitrage across DEX venues",
        Severity.MEDIUM, _sum_values(dex_calls) * Decimal("0.1"),
    )


def detect_front_running(nodes: Sequence[ProcessedCallNode], gas: Optional[GasAnalysis] = None) -> MevDetection:
    indicators: List[MevIndicator] = []
    used = total_gas(nodes)

    if gas is not None and gas.benchmark_comparison:
        benchmark = gas.benchmark_comparison[0].benchmark_gas
        if used > benchmark * 1.5:
            indicators.append(MevIndicator(
                type="high_gas_price",
                confidence=0.7,
                description="Gas usage well above the function benchmark",
                severity=Severity.HIGH,
                evidence={"total_gas": used, "benchmark_gas": benchmark},
            ))

    if nodes and len(nodes) < 5 and all(n.gas_used > 0 for n in nodes):
        indicators.append(MevIndicator(
            type="frontrun_bot_pattern",
            confidence=0.7,
            description="Quick, gas-efficient execution shape",
            severity=Severity.MEDIUM,
            evidence={"calls": len(nodes)},
        ))

    if used > GAS_ELEVATED:
        indicators.append(MevIndicator(
            type="timing_pattern",
            confidence=0.5,
            description="Elevated absolute gas usage",
            severity=Severity.LOW,
            evidence={"total_gas": used},
        ))

    return _pattern(
        MevPatternType.FRONT_RUNNING, indicators, 1,
        "Potential front-running transaction",
        Severity.HIGH, _sum_values(nodes) * Decimal("0.05"),
    )


def detect_liquidation(nodes: Sequence[ProcessedCallNode], gas: Optional[GasAnalysis] = None) -> MevDetection:
    liquidations = [n for n in nodes if _name_has(n, LIQUIDATION_MARKERS)]
    indicators: List[MevIndicator] = []

    if not liquidations:
        return MevDetection(MevPatternType.LIQUIDATION_MEV, (), None)

    indicators.append(MevIndicator(
        type="liquidation_bonus",
        confidence=0.8,
        description="Liquidation call capturing a liquidation bonus",
        severity=Severity.MEDIUM,
        evidence={"calls": len(liquidations)},
    ))

    if any(_name_has(n, ("flashloan",)) for n in nodes) and any(
        _name_has(n, ("liquidat",)) for n in nodes
    ):
        indicators.append(MevIndicator(
            type="flash_loan_liquidation",
            confidence=0.9,
            description="Flash loan combined with liquidation",
            severity=Severity.HIGH,
        ))

    return _pattern(
        MevPatternType.LIQUIDATION_MEV, indicators, 1,
        "Liquidation MEV extraction",
        Severity.MEDIUM, _sum_values(liquidations) * Decimal("0.15"),
    )


Detector = Callable[[Sequence[ProcessedCallNode], Optional[GasAnalysis]], MevDetection]

DETECTORS: Tuple[Detector, ...] = (
    detect_sandwich,
    detect_arbitrage,
    detect_front_running,
    detect_liquidation,
)


def mev_risk_level(score: float, patterns: Sequence[MevPattern]) -> Severity:
    if score > 0.8 or any(p.severity == Severity.HIGH for p in patterns):
        return Severity.CRITICAL
    if score > 0.6:
        return Severity.HIGH
    if score > 0.3:
        return Severity.MEDIUM
    return Severity.LOW


def mev_recommendations(
    patterns: Sequence[MevPattern],
    indicators: Sequence[MevIndicator],
) -> Tuple[str, ...]:
    kinds = {p.type for p in patterns}
    out: List[str] = []
    if MevPatternType.SANDWICH_ATTACK in kinds:
        out.append("Consider using private mempools to avoid sandwich attacks")
        out.append("Implement slippage protection in your transactions")
    if MevPatternType.FRONT_RUNNING in kinds:
        out.append("Use commit-reveal schemes for sensitive transactions")
        out.append("Consider using flashbots or similar MEV protection services")
    if MevPatternType.ARBITRAGE in kinds:
        out.append("Monitor for arbitrage opportunities in your protocol")
        out.append("Consider implementing dynamic fees to capture MEV")
    if any(i.type == "high_gas_price" for i in indicators):
        out.append("Optimize gas usage to reduce MEV extraction costs")
    return tuple(out)


def analyze_advanced(
    nodes: Sequence[ProcessedCallNode],
    gas: Optional[GasAnalysis] = None,
) -> AdvancedMevAnalysis:
    detections = tuple(detector(nodes, gas) for detector in DETECTORS)

    patterns = tuple(d.pattern for d in detections if d.pattern is not None)
    indicators = tuple(i for d in detections if d.detected for i in d.indicators)

    score = (
        _mean([i.confidence for i in indicators]) + _mean([p.confidence for p in patterns])
    ) / 2

    if patterns:
        logger.debug("MEV patterns detected: %s", ", ".join(p.type.value for p in patterns))

    return AdvancedMevAnalysis(
        mev_detected=bool(patterns),
        mev_score=score,
        risk_level=mev_risk_level(score, patterns),
        patterns=patterns,
        indicators=indicators,
        detections=detections,
        recommendations=mev_recommendations(patterns, indicators),
    )

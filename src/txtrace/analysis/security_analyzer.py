from __future__ import annotations

from typing import Any, List, Mapping, Sequence

from txtrace.core.enums import Severity
from txtrace.core.models import (
    AntiPatternReport,
    ApprovalRisk,
    HighRiskOperation,
    ProcessedCallNode,
    RiskAssessment,
    SecurityAssessment,
    SecurityConcern,
    SecurityRecommendation,
)
from txtrace.core.rules import (
    CALL_KINDS,
    FN_APPROVE,
    FN_PAUSE,
    FN_TRANSFER_OWNERSHIP,
    FN_UNPAUSE,
    GAS_HEAVY,
    INFINITE_APPROVAL_THRESHOLD,
    LARGE_AMOUNT_UNITS,
    MODERATE_APPROVAL_UNITS,
    RISK_LEVEL_SCORES,
    SECURITY_RISK_LEVELS,
    token_units_to_raw,
)

LARGE_AMOUNT_RAW = token_units_to_raw(LARGE_AMOUNT_UNITS)
MODERATE_APPROVAL_RAW = token_units_to_raw(MODERATE_APPROVAL_UNITS)

_TABLE_FACTORS = {
    Severity.CRITICAL: ("Critical system function", "Immediate review required"),
    Severity.HIGH: ("High-privilege operation", "Verify authorization"),
    Severity.MEDIUM: ("Administrative function", "Monitor for unusual activity"),
    Severity.LOW: ("Standard operation", None),
}


def _amount(parameters: Mapping[str, Any]) -> int:
    value = parameters.get("amount")
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def score_to_level(score: int) -> Severity:
    if score >= 90:
        return Severity.CRITICAL
    if score >= 70:
        return Severity.HIGH
    if score >= 40:
        return Severity.MEDIUM
    return Severity.LOW


def assess_call_risk(function_name: str, parameters: Mapping[str, Any]) -> RiskAssessment:
    """
    Score a single call by name and decoded parameters.
    """
    score = 0
    factors: List[str] = []
    recommendations: List[str] = []

    table_level = SECURITY_RISK_LEVELS.get(function_name)
    if table_level is not None:
        score = RISK_LEVEL_SCORES[table_level]
        factor, rec = _TABLE_FACTORS[table_level]
        factors.append(factor)
        if rec:
            recommendations.append(rec)

    amount = _amount(parameters)

    if "transfer" in function_name and amount > LARGE_AMOUNT_RAW:
        score += 20
        factors.append("Large transfer amount")
        recommendations.append("Verify transfer legitimacy")

    if "approve" in function_name:
        score += 10
        factors.append("Approval operation")
        recommendations.append("Review approval amount and spender")
        if amount >= INFINITE_APPROVAL_THRESHOLD:
            score += 60
            factors.append("Unlimited approval amount")
            recommendations.append("Use exact approval amounts")

    return RiskAssessment(
        level=score_to_level(score),
        score=score,
        factors=tuple(factors),
        recommendations=tuple(recommendations),
    )


def detect_concerns(nodes: Sequence[ProcessedCallNode]) -> List[SecurityConcern]:
    concerns: List[SecurityConcern] = []

    def add(level: Severity, description: str, node: ProcessedCallNode) -> None:
        concerns.append(SecurityConcern(level, description, node.contract_name, node.from_address))

    for n in nodes:
        name = n.function_name

        table_level = SECURITY_RISK_LEVELS.get(name)
        if table_level is not None:
            add(table_level, f"High-risk function '{name}' called", n)

        if name == FN_APPROVE:
            amount = _amount(n.parameters)
            if amount >= INFINITE_APPROVAL_THRESHOLD:
                add(Severity.MEDIUM, "Potentially infinite approval granted", n)
            elif amount >= LARGE_AMOUNT_RAW:
                formatted = n.parameters.get("amount_formatted", "Unknown amount")
                add(Severity.LOW, f"Large approval granted: {formatted}", n)

        if "selfdestruct" in name.lower():
            add(Severity.CRITICAL, "Contract self-destruct called", n)

        if name == FN_TRANSFER_OWNERSHIP:
            add(Severity.HIGH, "Contract ownership transfer detected", n)

        if name in (FN_PAUSE, FN_UNPAUSE):
            add(Severity.MEDIUM, f"Contract {'paused' if name == FN_PAUSE else 'unpaused'}", n)

        if n.has_error:
            add(Severity.MEDIUM, f"Transaction failed: {n.error}", n)

    return concerns


def validate_approvals(nodes: Sequence[ProcessedCallNode]) -> List[ApprovalRisk]:
    risks: List[ApprovalRisk] = []
    for n in nodes:
        if n.function_name != FN_APPROVE:
            continue
        amount = _amount(n.parameters)
        if amount <= 0:
            continue

        spender = n.parameters.get("spender") or "Unknown"
        formatted = n.parameters.get("amount_formatted") or "Unknown"
        is_infinite = amount >= INFINITE_APPROVAL_THRESHOLD

        if is_infinite:
            level = Severity.HIGH
            description = "Infinite approval granted - allows unlimited spending"
            recommendation = "Consider using exact approval amounts instead of infinite approvals"
        elif amount >= LARGE_AMOUNT_RAW:
            level = Severity.MEDIUM
            description = f"Large approval amount: {formatted}"
            recommendation = "Verify the approval amount is appropriate for intended use"
        elif amount >= MODERATE_APPROVAL_RAW:
            level = Severity.LOW
            description = f"Moderate approval amount: {formatted}"
            recommendation = "Monitor spender activity for unusual patterns"
        else:
            level = Severity.LOW
            description = f"Approval amount: {formatted}"
            recommendation = "No action needed"

        risks.append(ApprovalRisk(
            spender=spender,
            amount_raw=amount,
            formatted_amount=formatted,
            is_infinite=is_infinite,
            level=level,
            description=description,
            recommendation=recommendation,
        ))
    return risks


def high_risk_operations(nodes: Sequence[ProcessedCallNode]) -> List[HighRiskOperation]:
    ops: List[HighRiskOperation] = []
    for n in nodes:
        assessment = assess_call_risk(n.function_name, n.parameters)
        if assessment.level in (Severity.HIGH, Severity.CRITICAL):
            ops.append(HighRiskOperation(
                function_name=n.function_name,
                level=assessment.level,
                description=", ".join(assessment.factors),
                contract=n.contract_name,
            ))
    return ops


def detect_anti_patterns(nodes: Sequence[ProcessedCallNode]) -> AntiPatternReport:
    patterns: List[str] = []
    recommendations: List[str] = []
    severity = Severity.LOW

    for current, following in zip(nodes, nodes[1:]):
        if (
            not current.is_tracked
            and current.call_type in CALL_KINDS
            and following.is_tracked
            and "transfer" in following.function_name
        ):
            patterns.append("Potential reentrancy pattern detected")
            recommendations.append("Review call order and implement reentrancy guards")
            severity = Severity.MEDIUM
            break

    approvals = sum(1 for n in nodes if n.function_name == FN_APPROVE)
    transfers = sum(1 for n in nodes if "transfer" in n.function_name)
    if approvals > transfers and approvals > 2:
        patterns.append("Unusual approval-to-transfer ratio")
        recommendations.append("Review approval strategy and consider batching")
        if severity.rank < Severity.MEDIUM.rank:
            severity = Severity.MEDIUM

    if any(n.gas_used > GAS_HEAVY for n in nodes):
        patterns.append("High gas usage operations detected")
        recommendations.append("Optimize gas usage to prevent out-of-gas failures")

    return AntiPatternReport(
        patterns=tuple(patterns),
        severity=severity,
        recommendations=tuple(recommendations),
    )


def overall_risk(concerns: Sequence[SecurityConcern], operations: Sequence[HighRiskOperation]) -> Severity:
    levels = [c.level for c in concerns]
    if Severity.CRITICAL in levels:
        return Severity.CRITICAL
    if Severity.HIGH in levels:
        return Severity.HIGH
    if levels.count(Severity.MEDIUM) > 2 or operations:
        return Severity.MEDIUM
    return Severity.LOW


def security_recommendations(
    nodes: Sequence[ProcessedCallNode],
    concerns: Sequence[SecurityConcern],
    operations: Sequence[HighRiskOperation],
    approvals: Sequence[ApprovalRisk],
) -> List[SecurityRecommendation]:
    out: List[SecurityRecommendation] = []

    if any(c.level == Severity.CRITICAL for c in concerns):
        out.append(SecurityRecommendation(
            "immediate_action",
            "Critical security issues detected - immediate review required",
            Severity.HIGH,
        ))
    if any(a.level == Severity.HIGH for a in approvals):
        out.append(SecurityRecommendation(
            "approval_review",
            "Review infinite approvals and consider using exact amounts",
            Severity.MEDIUM,
        ))
    if operations:
        out.append(SecurityRecommendation(
            "privilege_review",
            "High-privilege operations detected - verify authorization",
            Severity.MEDIUM,
        ))
    errors = sum(1 for n in nodes if n.has_error)
    if errors:
        out.append(SecurityRecommendation(
            "error_investigation",
            f"{errors} failed operations detected - investigate causes",
            Severity.LOW,
        ))
    if not concerns and not operations:
        out.append(SecurityRecommendation(
            "monitoring",
            "No immediate security concerns - continue monitoring",
            Severity.LOW,
        ))
    return out


def analyze_security(nodes: Sequence[ProcessedCallNode]) -> SecurityAssessment:
    """
    Build the full security assessment.

    Concerns and high-risk operations are computed independently and are
    not reconciled, so a call can appear in one list and not the other.
    The anti-pattern report does not feed the overall risk.
    """
    concerns = detect_concerns(nodes)
    operations = high_risk_operations(nodes)
    approvals = validate_approvals(nodes)

    return SecurityAssessment(
        overall_risk=overall_risk(concerns, operations),
        concerns=tuple(concerns),
        high_risk_operations=tuple(operations),
        approval_risks=tuple(approvals),
        anti_patterns=detect_anti_patterns(nodes),
        recommendations=tuple(security_recommendations(nodes, concerns, operations, approvals)),
    )

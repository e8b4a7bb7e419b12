from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class ComplexityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class GasCategory(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class Efficiency(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    POOR = "poor"
    UNKNOWN = "unknown"


class PatternLabel(str, Enum):
    SIMPLE_TRANSFER = "simple_transfer"
    MULTI_TRANSFER = "multi_transfer"
    APPROVAL_FLOW = "approval_flow"
    SUPPLY_CHANGE = "supply_change"
    SWAP_OPERATION = "swap_operation"
    LIQUIDITY_PROVISION = "liquidity_provision"
    BRIDGE_OPERATION = "bridge_operation"
    UNKNOWN = "unknown"


class MevPatternType(str, Enum):
    SANDWICH_ATTACK = "sandwich_attack"
    ARBITRAGE = "arbitrage"
    FRONT_RUNNING = "front_running"
    LIQUIDATION_MEV = "liquidation_mev"


class TransferType(str, Enum):
    TRANSFER = "transfer"
    TRANSFER_FROM = "transfer_from"
    MINT = "mint"
    BURN = "burn"

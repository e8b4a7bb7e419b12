from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from txtrace.core.enums import (
    ComplexityLevel,
    Efficiency,
    GasCategory,
    MevPatternType,
    PatternLabel,
    Severity,
    TransferType,
)


# Run options

@dataclass(frozen=True)
class AnalysisOptions:
    """
    Which optional stages to run. Part of the cache key.
    """

    include_pattern_detection: bool = True
    include_mev_analysis: bool = True
    include_security_analysis: bool = True
    include_visualization: bool = True

    def cache_key(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)



# Trace models

@dataclass(frozen=True)
class ProcessedCallNode:

    index: int
    trace_address: Tuple[int, ...]
    depth: int
    call_type: str

    from_address: str
    to_address: str

    value_wei: int
    value_native: Decimal
    gas_used: int

    is_tracked: bool
    contract_name: str
    function_name: str
    category: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    error: Optional[str] = None
    input_data: str = "0x"
    input_preview: str = "0x"
    output_preview: str = "0x"
    selector: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return bool(self.error)


@dataclass(frozen=True)
class NormalizedTrace:
    nodes: Tuple[ProcessedCallNode, ...]
    skipped: Tuple[int, ...] = ()       # input indices that were not usable records


@dataclass(frozen=True)
class ContractInteractionEdge:
    from_address: str
    to_address: str
    call_count: int
    total_gas: int


@dataclass(frozen=True)
class TokenTransferEvent:
    from_address: str
    to_address: str
    amount_raw: int
    amount: Decimal                     # decimal-adjusted
    trace_address: Tuple[int, ...]
    transfer_type: TransferType


@dataclass(frozen=True)
class CallHierarchy:
    max_depth: int
    total_calls: int
    gas_per_depth: Dict[int, int]
    calls_per_depth: Dict[int, int]


@dataclass(frozen=True)
class GasMetrics:
    total_gas: int
    tracked_gas: int
    tracked_gas_percentage: float
    gas_per_contract: Dict[str, int]
    gas_per_function: Dict[str, int]
    average_gas_per_call: float


@dataclass(frozen=True)
class AnalysisSummary:
    total_calls: int
    total_gas: int
    error_count: int
    tracked_calls: int
    transfer_count: int
    complexity_score: float
    unique_contracts: int
    max_depth: int
    tracked_gas: int
    tracked_gas_percentage: float
    skipped_records: int = 0



# Pattern models

@dataclass(frozen=True)
class PatternMatch:
    label: PatternLabel
    confidence: float
    description: str


@dataclass(frozen=True)
class TransactionPattern:
    label: PatternLabel
    confidence: float
    description: str
    matches: Tuple[PatternMatch, ...] = ()


@dataclass(frozen=True)
class ComplexityFactor:
    name: str
    value: float
    weight: float
    contribution: float


@dataclass(frozen=True)
class ComplexityAnalysis:
    score: float
    level: ComplexityLevel
    factors: Tuple[ComplexityFactor, ...]


@dataclass(frozen=True)
class PatternAnalysis:
    pattern: TransactionPattern
    complexity: ComplexityAnalysis
    risk_level: Severity
    insights: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()



# MEV models

@dataclass(frozen=True)
class MevIndicator:
    type: str
    confidence: float
    description: str
    severity: Severity = Severity.LOW
    evidence: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BasicMevAnalysis:
    mev_detected: bool
    type: Optional[str]
    confidence: float
    description: Optional[str]
    indicators: Tuple[MevIndicator, ...] = ()


@dataclass(frozen=True)
class MevPattern:
    type: MevPatternType
    confidence: float
    description: str
    severity: Severity
    extracted_value: Decimal


@dataclass(frozen=True)
class MevDetection:
    detector: MevPatternType
    indicators: Tuple[MevIndicator, ...]
    pattern: Optional[MevPattern]

    @property
    def detected(self) -> bool:
        return self.pattern is not None


@dataclass(frozen=True)
class AdvancedMevAnalysis:
    mev_detected: bool
    mev_score: float
    risk_level: Severity
    patterns: Tuple[MevPattern, ...]
    indicators: Tuple[MevIndicator, ...]
    detections: Tuple[MevDetection, ...]
    recommendations: Tuple[str, ...] = ()



# Security models

@dataclass(frozen=True)
class SecurityConcern:
    level: Severity
    description: str
    contract: str
    caller: str


@dataclass(frozen=True)
class HighRiskOperation:
    function_name: str
    level: Severity
    description: str
    contract: str


@dataclass(frozen=True)
class RiskAssessment:
    level: Severity
    score: int
    factors: Tuple[str, ...]
    recommendations: Tuple[str, ...]


@dataclass(frozen=True)
class ApprovalRisk:
    spender: str
    amount_raw: int
    formatted_amount: str
    is_infinite: bool
    level: Severity
    description: str
    recommendation: str


@dataclass(frozen=True)
class SecurityRecommendation:
    type: str
    description: str
    severity: Severity


@dataclass(frozen=True)
class AntiPatternReport:
    patterns: Tuple[str, ...]
    severity: Severity
    recommendations: Tuple[str, ...]


@dataclass(frozen=True)
class SecurityAssessment:
    overall_risk: Severity
    concerns: Tuple[SecurityConcern, ...]
    high_risk_operations: Tuple[HighRiskOperation, ...]
    approval_risks: Tuple[ApprovalRisk, ...]
    anti_patterns: AntiPatternReport
    recommendations: Tuple[SecurityRecommendation, ...]



# Gas models

@dataclass(frozen=True)
class GasEfficiency:
    efficiency: Efficiency
    pct_diff: float
    compared_to_median: int


@dataclass(frozen=True)
class GasDistribution:
    category: str
    gas_used: int
    call_count: int
    percentage: float


@dataclass(frozen=True)
class EfficiencyMetric:
    name: str
    value: int
    unit: str
    score: int
    description: str


@dataclass(frozen=True)
class OptimizationSuggestion:
    id: str
    type: str
    severity: Severity
    title: str
    description: str
    recommendation: str
    potential_savings_gas: Optional[int] = None
    potential_savings_percentage: Optional[float] = None


@dataclass(frozen=True)
class BenchmarkComparison:
    function_name: str
    actual_gas: int
    benchmark_gas: int
    efficiency: Efficiency
    difference: int
    percentage_diff: float


@dataclass(frozen=True)
class GasBreakdown:
    category: str
    gas_used: int
    percentage: float


@dataclass(frozen=True)
class GasAnalysis:
    total_gas: int
    gas_category: GasCategory
    gas_by_contract: Dict[str, int]
    gas_by_function: Dict[str, int]
    distribution: Tuple[GasDistribution, ...]
    efficiency_metrics: Tuple[EfficiencyMetric, ...]
    function_efficiency: Dict[str, GasEfficiency]
    benchmark_comparison: Tuple[BenchmarkComparison, ...]
    breakdown: Tuple[GasBreakdown, ...]
    optimization_suggestions: Tuple[OptimizationSuggestion, ...]



# Visualization models

@dataclass(frozen=True)
class GraphNode:
    id: str
    label: str
    size: float
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    weight: float
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GraphProjection:
    nodes: Tuple[GraphNode, ...]
    edges: Tuple[GraphEdge, ...]
    metrics: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VisualizationData:
    call_graph: Optional[GraphProjection]
    contract_graph: Optional[GraphProjection]
    flow_graph: Optional[GraphProjection]



# Aggregates

@dataclass(frozen=True)
class TraceAnalysisResult:
    tx_hash: str
    summary: AnalysisSummary
    nodes: Tuple[ProcessedCallNode, ...]
    interactions: Tuple[ContractInteractionEdge, ...]
    transfers: Tuple[TokenTransferEvent, ...]
    complexity: ComplexityAnalysis
    gas: GasAnalysis
    pattern_analysis: Optional[PatternAnalysis] = None
    basic_mev: Optional[BasicMevAnalysis] = None
    advanced_mev: Optional[AdvancedMevAnalysis] = None
    security: Optional[SecurityAssessment] = None
    visualization: Optional[VisualizationData] = None
    created_at: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    @property
    def pattern_label(self) -> PatternLabel:
        if self.pattern_analysis is None:
            return PatternLabel.UNKNOWN
        return self.pattern_analysis.pattern.label


@dataclass(frozen=True)
class TransactionSummary:
    tx_hash: str
    pattern: PatternLabel
    gas_used: int
    action_count: int
    contract_count: int
    security_risk_score: int
    has_errors: bool


@dataclass(frozen=True)
class MetricDelta:
    transaction1: float
    transaction2: float
    difference: float
    percentage_change: float


@dataclass(frozen=True)
class ComparisonDifference:
    category: str
    type: str
    description: str
    impact: Severity
    transaction1_value: str
    transaction2_value: str


@dataclass(frozen=True)
class ListChanges:
    added: Tuple[str, ...]
    removed: Tuple[str, ...]
    common: Tuple[str, ...]


@dataclass(frozen=True)
class PatternComparison:
    type_changed: bool
    confidence_change: float
    complexity_change: float
    match_changes: ListChanges
    summary: str


@dataclass(frozen=True)
class GasComparison:
    total_gas_change: int
    total_gas_percentage_change: float
    category_changed: bool
    optimization_changes: ListChanges
    summary: str


@dataclass(frozen=True)
class SecurityComparison:
    risk_score_change: int
    concern_count_change: int
    new_concerns: Tuple[SecurityConcern, ...]
    resolved_concerns: Tuple[SecurityConcern, ...]
    summary: str


@dataclass(frozen=True)
class ComparisonResult:
    transaction1: TransactionSummary
    transaction2: TransactionSummary
    metrics: Dict[str, MetricDelta]
    differences: Tuple[ComparisonDifference, ...]
    pattern_comparison: PatternComparison
    gas_comparison: GasComparison
    security_comparison: SecurityComparison
    recommendations: Tuple[str, ...]

    def differences_in(self, category: str) -> List[ComparisonDifference]:
        return [d for d in self.differences if d.category == category]

from __future__ import annotations

import json
from pathlib import Path
from typing import List

from txtrace.analysis.function_decoder import shorten_address
from txtrace.core.models import ComparisonResult, TraceAnalysisResult
from txtrace.io.schemas import analysis_to_dict, comparison_to_dict


def _write_json(data, out_dir: str, filename: str) -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

    return str(out_path)


def _write_lines(lines: List[str], out_dir: str, filename: str) -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        f.writelines(lines)

    return str(out_path)


def write_analysis_json(result: TraceAnalysisResult, out_dir: str, filename: str = "analysis.json") -> str:
    return _write_json(analysis_to_dict(result), out_dir, filename)


def write_comparison_json(result: ComparisonResult, out_dir: str, filename: str = "comparison.json") -> str:
    return _write_json(comparison_to_dict(result), out_dir, filename)


def write_summary_md(result: TraceAnalysisResult, out_dir: str, filename: str = "summary.md") -> str:
    """
    Human-readable digest of one analysis.
    """
    s = result.summary

    lines = []
    lines.append("# Transaction Trace Summary\n\n")
    lines.append(f"- Transaction: **{result.tx_hash}**\n")
    lines.append(f"- Calls: **{s.total_calls}** (tracked {s.tracked_calls}, errors {s.error_count})\n")
    lines.append(f"- Gas: **{s.total_gas:,}** ({result.gas.gas_category.value})\n")
    lines.append(f"- Contracts: **{s.unique_contracts}** • Max depth: **{s.max_depth}**\n")
    lines.append(f"- Complexity: **{result.complexity.score:.1f}** ({result.complexity.level.value})\n")
    if s.skipped_records:
        lines.append(f"- Skipped records: **{s.skipped_records}**\n")
    lines.append("\n")

    if result.is_empty:
        lines.append("_The trace contained no usable call records._\n")
        return _write_lines(lines, out_dir, filename)

    if result.pattern_analysis is not None:
        pa = result.pattern_analysis
        lines.append("## Pattern\n\n")
        lines.append(f"- **{pa.pattern.label.value}** ({pa.pattern.confidence:.2f}): {pa.pattern.description}\n")
        for insight in pa.insights:
            lines.append(f"- {insight}\n")
        lines.append("\n")

    lines.append("## Token Transfers\n\n")
    if not result.transfers:
        lines.append("_No tracked token transfers._\n\n")
    else:
        for t in result.transfers:
            lines.append(
                f"- {t.transfer_type.value}: **{t.amount}** "
                f"| {shorten_address(t.from_address)} -> {shorten_address(t.to_address)}\n"
            )
        lines.append("\n")

    if result.basic_mev is not None and result.advanced_mev is not None:
        adv = result.advanced_mev
        lines.append("## MEV\n\n")
        if result.basic_mev.mev_detected:
            lines.append(f"- Basic: **{result.basic_mev.type}** ({result.basic_mev.confidence:.2f})\n")
        else:
            lines.append("- Basic: no indicators\n")
        lines.append(f"- Advanced score: **{adv.mev_score:.2f}** (risk {adv.risk_level.value})\n")
        for p in adv.patterns:
            lines.append(f"- {p.type.value}: {p.confidence:.2f}, est. value {p.extracted_value}\n")
        lines.append("\n")

    if result.security is not None:
        sec = result.security
        lines.append("## Security\n\n")
        lines.append(f"- Overall risk: **{sec.overall_risk.value}**\n")
        for c in sec.concerns:
            lines.append(f"- [{c.level.value}] {c.description} ({c.contract})\n")
        for op in sec.high_risk_operations:
            lines.append(f"- High-risk operation: {op.function_name} [{op.level.value}]\n")
        for pattern in sec.anti_patterns.patterns:
            lines.append(f"- Anti-pattern: {pattern}\n")
        lines.append("\n")

    lines.append("## Gas Optimization\n\n")
    if not result.gas.optimization_suggestions:
        lines.append("_No suggestions._\n")
    else:
        for sug in result.gas.optimization_suggestions:
            lines.append(f"- **{sug.title}** [{sug.severity.value}]: {sug.recommendation}\n")

    return _write_lines(lines, out_dir, filename)


def write_comparison_md(result: ComparisonResult, out_dir: str, filename: str = "comparison.md") -> str:
    t1, t2 = result.transaction1, result.transaction2

    lines = []
    lines.append("# Transaction Comparison\n\n")
    lines.append(f"- Transaction 1: **{t1.tx_hash}** ({t1.pattern.value}, {t1.gas_used:,} gas)\n")
    lines.append(f"- Transaction 2: **{t2.tx_hash}** ({t2.pattern.value}, {t2.gas_used:,} gas)\n\n")

    lines.append("## Metrics\n\n")
    lines.append("| metric | tx1 | tx2 | diff | change % |\n|---|---|---|---|---|\n")
    for name, m in result.metrics.items():
        lines.append(
            f"| {name} | {m.transaction1:g} | {m.transaction2:g} | {m.difference:g} | {m.percentage_change:.1f} |\n"
        )
    lines.append("\n")

    lines.append("## Differences\n\n")
    if not result.differences:
        lines.append("_No notable differences._\n\n")
    else:
        for d in result.differences:
            lines.append(f"- [{d.impact.value}] {d.description}\n")
        lines.append("\n")

    lines.append("## Recommendations\n\n")
    for rec in result.recommendations:
        lines.append(f"- {rec}\n")

    return _write_lines(lines, out_dir, filename)

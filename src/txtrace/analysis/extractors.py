from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from txtrace.analysis.function_decoder import to_token_units
from txtrace.config import settings
from txtrace.core.enums import TransferType
from txtrace.core.models import (
    AnalysisSummary,
    CallHierarchy,
    ContractInteractionEdge,
    GasMetrics,
    ProcessedCallNode,
    TokenTransferEvent,
)
from txtrace.core.rules import (
    NO_FUNCTION,
    SELECTOR_BURN,
    SELECTOR_MINT,
    SELECTOR_TRANSFER,
    SELECTOR_TRANSFER_FROM,
)


# -------------------------
# Interactions
# -------------------------

def extract_interactions(nodes: Sequence[ProcessedCallNode]) -> List[ContractInteractionEdge]:
    """
    Aggregate calls into (from, to) edges, first-seen order. Self-calls and
    calls missing an endpoint are ignored.
    """
    counts: Dict[Tuple[str, str], List[int]] = {}
    for n in nodes:
        if not n.from_address or not n.to_address or n.from_address == n.to_address:
            continue
        key = (n.from_address, n.to_address)
        acc = counts.setdefault(key, [0, 0])
        acc[0] += 1
        acc[1] += n.gas_used

    return [
        ContractInteractionEdge(from_address=f, to_address=t, call_count=c, total_gas=g)
        for (f, t), (c, g) in counts.items()
    ]


# -------------------------
# Transfers
# -------------------------

# selector -> (transfer type, source param or None for the caller, destination param or None)
_TRANSFER_ROLES: Dict[str, Tuple[TransferType, Optional[str], Optional[str]]] = {
    SELECTOR_TRANSFER: (TransferType.TRANSFER, None, "to"),
    SELECTOR_TRANSFER_FROM: (TransferType.TRANSFER_FROM, "from", "to"),
    SELECTOR_MINT: (TransferType.MINT, "@zero", "to"),
    SELECTOR_BURN: (TransferType.BURN, None, "@zero"),
}


def _resolve(node: ProcessedCallNode, role: Optional[str]) -> Optional[str]:
    if role is None:
        return node.from_address
    if role == "@zero":
        return settings.ZERO_ADDRESS
    value = node.parameters.get(role)
    return value if isinstance(value, str) and value else None


def extract_transfers(nodes: Sequence[ProcessedCallNode]) -> List[TokenTransferEvent]:
    transfers: List[TokenTransferEvent] = []
    for n in nodes:
        if not n.is_tracked or not n.parameters:
            continue
        roles = _TRANSFER_ROLES.get(n.selector or "")
        if roles is None:
            continue
        transfer_type, src_role, dst_role = roles

        amount = n.parameters.get("amount")
        src = _resolve(n, src_role)
        dst = _resolve(n, dst_role)
        if not isinstance(amount, int) or src is None or dst is None:
            continue

        transfers.append(
            TokenTransferEvent(
                from_address=src,
                to_address=dst,
                amount_raw=amount,
                amount=to_token_units(amount),
                trace_address=n.trace_address,
                transfer_type=transfer_type,
            )
        )
    return transfers


# -------------------------
# Rollups
# -------------------------

def max_depth(nodes: Sequence[ProcessedCallNode]) -> int:
    return max((n.depth for n in nodes), default=0)


def total_gas(nodes: Sequence[ProcessedCallNode]) -> int:
    return sum(n.gas_used for n in nodes)


def unique_targets(nodes: Sequence[ProcessedCallNode]) -> int:
    return len({n.to_address for n in nodes})


def error_count(nodes: Sequence[ProcessedCallNode]) -> int:
    return sum(1 for n in nodes if n.has_error)


def call_hierarchy(nodes: Sequence[ProcessedCallNode]) -> CallHierarchy:
    gas_per_depth: Dict[int, int] = {}
    calls_per_depth: Dict[int, int] = {}
    for n in nodes:
        gas_per_depth[n.depth] = gas_per_depth.get(n.depth, 0) + n.gas_used
        calls_per_depth[n.depth] = calls_per_depth.get(n.depth, 0) + 1
    return CallHierarchy(
        max_depth=max_depth(nodes),
        total_calls=len(nodes),
        gas_per_depth=gas_per_depth,
        calls_per_depth=calls_per_depth,
    )


def gas_metrics(nodes: Sequence[ProcessedCallNode]) -> GasMetrics:
    total = total_gas(nodes)
    tracked = sum(n.gas_used for n in nodes if n.is_tracked)

    per_contract: Dict[str, int] = {}
    per_function: Dict[str, int] = {}
    for n in nodes:
        per_contract[n.contract_name] = per_contract.get(n.contract_name, 0) + n.gas_used
        if n.function_name != NO_FUNCTION:
            per_function[n.function_name] = per_function.get(n.function_name, 0) + n.gas_used

    return GasMetrics(
        total_gas=total,
        tracked_gas=tracked,
        tracked_gas_percentage=(tracked / total * 100) if total > 0 else 0.0,
        gas_per_contract=per_contract,
        gas_per_function=per_function,
        average_gas_per_call=(total / len(nodes)) if nodes else 0.0,
    )


def build_summary(
    nodes: Sequence[ProcessedCallNode],
    transfers: Sequence[TokenTransferEvent],
    complexity_score: float,
    skipped_records: int = 0,
) -> AnalysisSummary:
    metrics = gas_metrics(nodes)
    return AnalysisSummary(
        total_calls=len(nodes),
        total_gas=metrics.total_gas,
        error_count=error_count(nodes),
        tracked_calls=sum(1 for n in nodes if n.is_tracked),
        transfer_count=len(transfers),
        complexity_score=complexity_score,
        unique_contracts=unique_targets(nodes),
        max_depth=max_depth(nodes),
        tracked_gas=metrics.tracked_gas,
        tracked_gas_percentage=metrics.tracked_gas_percentage,
        skipped_records=skipped_records,
    )

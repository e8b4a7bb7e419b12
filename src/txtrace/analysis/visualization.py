from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Sequence, Tuple

from txtrace.analysis.call_tree import CallTree
from txtrace.analysis.extractors import call_hierarchy
from txtrace.analysis.function_decoder import shorten_address
from txtrace.core.models import (
    ContractInteractionEdge,
    GraphEdge,
    GraphNode,
    GraphProjection,
    ProcessedCallNode,
    TokenTransferEvent,
    VisualizationData,
)


def node_id(path: Tuple[int, ...]) -> str:
    if not path:
        return "node_root"
    return "node_" + "_".join(str(i) for i in path)


def build_call_graph(nodes: Sequence[ProcessedCallNode]) -> GraphProjection:
    tree = CallTree(nodes)
    graph_nodes: List[GraphNode] = []
    graph_edges: List[GraphEdge] = []
    hierarchy = call_hierarchy(nodes)

    for n in nodes:
        graph_nodes.append(GraphNode(
            id=node_id(n.trace_address),
            label=f"{n.contract_name}: {n.function_name}",
            size=float(max(n.gas_used, 1)),
            attributes={
                "call_type": n.call_type,
                "depth": n.depth,
                "gas_used": n.gas_used,
                "is_tracked": n.is_tracked,
                "has_error": n.has_error,
            },
        ))
        parent = tree.parent(n)
        if parent is not None:
            graph_edges.append(GraphEdge(
                source=node_id(parent.trace_address),
                target=node_id(n.trace_address),
                weight=float(n.gas_used),
                attributes={"call_type": n.call_type},
            ))

    return GraphProjection(
        nodes=tuple(graph_nodes),
        edges=tuple(graph_edges),
        metrics={
            "total_nodes": len(graph_nodes),
            "max_depth": hierarchy.max_depth,
            "nodes_per_depth": hierarchy.calls_per_depth,
            "gas_per_depth": hierarchy.gas_per_depth,
        },
    )


def build_contract_graph(
    nodes: Sequence[ProcessedCallNode],
    interactions: Sequence[ContractInteractionEdge],
) -> GraphProjection:
    names = {n.to_address: n.contract_name for n in nodes if n.to_address}
    gas_by_address: Dict[str, int] = {}
    for e in interactions:
        gas_by_address.setdefault(e.from_address, 0)
        gas_by_address[e.to_address] = gas_by_address.get(e.to_address, 0) + e.total_gas

    total = sum(gas_by_address.values())
    graph_nodes = tuple(
        GraphNode(
            id=address,
            label=names.get(address) or shorten_address(address),
            # relative gas share, floored so callers still render
            size=max(gas / total * 100, 1.0) if total else 1.0,
            attributes={"gas_received": gas},
        )
        for address, gas in gas_by_address.items()
    )
    graph_edges = tuple(
        GraphEdge(
            source=e.from_address,
            target=e.to_address,
            weight=float(e.call_count),
            attributes={"total_gas": e.total_gas},
        )
        for e in interactions
    )
    return GraphProjection(
        nodes=graph_nodes,
        edges=graph_edges,
        metrics={"contracts": len(graph_nodes), "interactions": len(graph_edges)},
    )


def build_flow_graph(transfers: Sequence[TokenTransferEvent]) -> GraphProjection:
    flows: Dict[Tuple[str, str], List] = {}
    volume_by_address: Dict[str, Decimal] = {}
    for t in transfers:
        acc = flows.setdefault((t.from_address, t.to_address), [Decimal(0), 0])
        acc[0] += t.amount
        acc[1] += 1
        for address in (t.from_address, t.to_address):
            volume_by_address[address] = volume_by_address.get(address, Decimal(0)) + t.amount

    graph_nodes = tuple(
        GraphNode(id=a, label=shorten_address(a), size=float(v), attributes={"volume": v})
        for a, v in volume_by_address.items()
    )
    graph_edges = tuple(
        GraphEdge(
            source=src,
            target=dst,
            weight=float(amount),
            attributes={"amount": amount, "transfers": count},
        )
        for (src, dst), (amount, count) in flows.items()
    )
    return GraphProjection(
        nodes=graph_nodes,
        edges=graph_edges,
        metrics={
            "total_volume": sum((t.amount for t in transfers), Decimal(0)),
            "transfer_count": len(transfers),
            "unique_participants": len(graph_nodes),
        },
    )


def build_visualization(
    nodes: Sequence[ProcessedCallNode],
    interactions: Sequence[ContractInteractionEdge],
    transfers: Sequence[TokenTransferEvent],
) -> VisualizationData:
    return VisualizationData(
        call_graph=build_call_graph(nodes),
        contract_graph=build_contract_graph(nodes, interactions),
        flow_graph=build_flow_graph(transfers),
    )

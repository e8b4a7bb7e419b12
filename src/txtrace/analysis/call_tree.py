from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from txtrace.core.models import ProcessedCallNode


class CallTree:
    """
    Read-only view over the flat node arena.

    Parent/child relationships are derived from trace-address prefixes on
    demand; nodes never hold references to each other.
    """

    def __init__(self, nodes: Sequence[ProcessedCallNode]) -> None:
        self._nodes = tuple(nodes)
        self._by_path: Dict[Tuple[int, ...], ProcessedCallNode] = {}
        for n in self._nodes:
            # first occurrence wins if a malformed trace repeats a path
            self._by_path.setdefault(n.trace_address, n)

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def root(self) -> Optional[ProcessedCallNode]:
        return self._by_path.get(())

    def node_at(self, path: Tuple[int, ...]) -> Optional[ProcessedCallNode]:
        return self._by_path.get(tuple(path))

    def parent(self, node: ProcessedCallNode) -> Optional[ProcessedCallNode]:
        if not node.trace_address:
            return None
        return self._by_path.get(node.trace_address[:-1])

    def children(self, node: ProcessedCallNode) -> List[ProcessedCallNode]:
        depth = len(node.trace_address)
        return [
            n for n in self._nodes
            if len(n.trace_address) == depth + 1 and n.trace_address[:depth] == node.trace_address
        ]

    def descendants(self, node: ProcessedCallNode) -> List[ProcessedCallNode]:
        depth = len(node.trace_address)
        return [
            n for n in self._nodes
            if len(n.trace_address) > depth and n.trace_address[:depth] == node.trace_address
        ]

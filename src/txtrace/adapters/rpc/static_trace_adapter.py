import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from txtrace.core.errors import DataSourceError, TraceNotFoundError
from txtrace.ports.trace_source_port import TraceSourcePort


class StaticTraceAdapter(TraceSourcePort):
    def __init__(self, traces: Optional[Dict[str, List[Any]]] = None):
        self._traces = {k.lower(): v for k, v in (traces or {}).items()}
        self.calls: List[str] = []

    @classmethod
    def from_json_file(cls, path: str, tx_hash: Optional[str] = None) -> "StaticTraceAdapter":
        """
        Load traces from a JSON file.

        Accepted shapes: a bare record array (requires ``tx_hash``), a
        JSON-RPC response with a ``result`` array (requires ``tx_hash``),
        or an object mapping transaction hashes to record arrays.
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise DataSourceError(f"Cannot read trace file {path}: {e}") from e

        if isinstance(data, dict) and isinstance(data.get("result"), list):
            data = data["result"]

        if isinstance(data, list):
            if not tx_hash:
                raise DataSourceError(f"Trace file {path} holds a single trace; a transaction hash is required")
            return cls({tx_hash: data})

        if isinstance(data, dict) and all(isinstance(v, list) for v in data.values()):
            return cls(data)

        raise DataSourceError(f"Unrecognized trace file layout: {path}")

    def fetch_trace(self, tx_hash: str) -> List[Any]:
        self.calls.append(tx_hash)
        records = self._traces.get(tx_hash.lower())
        if records is None:
            raise TraceNotFoundError(f"No trace found for transaction {tx_hash}")
        return list(records)

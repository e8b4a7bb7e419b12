import json
import tempfile
import unittest
from pathlib import Path

from txtrace.adapters.rpc.static_trace_adapter import StaticTraceAdapter
from txtrace.core.errors import DataSourceError, TraceNotFoundError

from trace_fixtures import TX_A, TX_B, scenario_a, scenario_b


class StaticTraceAdapterTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "traces.json"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _load(self, data, tx_hash=None) -> StaticTraceAdapter:
        self.path.write_text(json.dumps(data), encoding="utf-8")
        return StaticTraceAdapter.from_json_file(str(self.path), tx_hash=tx_hash)

    def test_bare_array_needs_hash(self) -> None:
        self.assertEqual(self._load(scenario_a(), TX_A).fetch_trace(TX_A), scenario_a())
        with self.assertRaises(DataSourceError):
            self._load(scenario_a())

    def test_rpc_envelope(self) -> None:
        adapter = self._load({"jsonrpc": "2.0", "id": 7, "result": scenario_b()}, TX_B)
        self.assertEqual(len(adapter.fetch_trace(TX_B)), 1)

    def test_mapping_by_hash(self) -> None:
        adapter = self._load({TX_A.upper().replace("0X", "0x"): scenario_a(), TX_B: scenario_b()})
        self.assertEqual(adapter.fetch_trace(TX_A), scenario_a())
        self.assertEqual(adapter.calls, [TX_A])

    def test_unrecognized_layout(self) -> None:
        with self.assertRaises(DataSourceError):
            self._load({"result": {"not": "a list"}})

    def test_unknown_hash(self) -> None:
        with self.assertRaises(TraceNotFoundError):
            StaticTraceAdapter({TX_A: []}).fetch_trace(TX_B)

    def test_returns_a_copy(self) -> None:
        adapter = StaticTraceAdapter({TX_A: scenario_a()})
        adapter.fetch_trace(TX_A).clear()
        self.assertEqual(len(adapter.fetch_trace(TX_A)), 1)


if __name__ == "__main__":
    unittest.main()

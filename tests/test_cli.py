import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path

from txtrace.cli.main import build_arg_parser, main

from trace_fixtures import TX_A, TX_B, TX_C, scenario_a, scenario_b


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.out = str(self.root / "out")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _trace_file(self, data) -> str:
        path = self.root / "trace.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    def _run(self, argv):
        stdout, stderr = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            code = main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    def test_parser_flags(self) -> None:
        args = build_arg_parser().parse_args(["--tx", TX_A, "--no-mev", "--no-visualization"])
        self.assertTrue(args.no_mev)
        self.assertTrue(args.no_visualization)
        self.assertFalse(args.no_security)
        self.assertEqual(args.out, "out")

    def test_single_trace_from_file(self) -> None:
        trace_file = self._trace_file({"jsonrpc": "2.0", "id": 1, "result": scenario_a()})
        code, stdout, _ = self._run(["--tx", TX_A, "--trace-file", trace_file, "--out", self.out])

        self.assertEqual(code, 0)
        self.assertIn("StaticTraceAdapter", stdout)
        data = json.loads((Path(self.out) / "analysis.json").read_text(encoding="utf-8"))
        self.assertEqual(data["pattern_label"], "simple_transfer")
        self.assertTrue((Path(self.out) / "summary.md").exists())

    def test_compare_writes_comparison(self) -> None:
        trace_file = self._trace_file({TX_A: scenario_a(), TX_B: scenario_b()})
        code, _, _ = self._run([
            "--tx", TX_A, "--compare-with", TX_B, "--trace-file", trace_file, "--out", self.out,
        ])

        self.assertEqual(code, 0)
        self.assertTrue((Path(self.out) / "comparison.json").exists())
        self.assertTrue((Path(self.out) / "comparison.md").exists())

    def test_disabled_stages_are_null(self) -> None:
        trace_file = self._trace_file(scenario_a())
        code, _, _ = self._run([
            "--tx", TX_A, "--trace-file", trace_file, "--out", self.out, "--no-security", "--no-patterns",
        ])

        self.assertEqual(code, 0)
        data = json.loads((Path(self.out) / "analysis.json").read_text(encoding="utf-8"))
        self.assertIsNone(data["security"])
        self.assertIsNone(data["pattern_analysis"])
        self.assertEqual(data["pattern_label"], "unknown")

    def test_invalid_hash_exits_2(self) -> None:
        code, _, stderr = self._run(["--tx", "0x1234", "--out", self.out])
        self.assertEqual(code, 2)
        self.assertIn("Invalid transaction hash", stderr)
        self.assertFalse(Path(self.out).exists())

    def test_unreadable_trace_file_exits_2(self) -> None:
        code, _, stderr = self._run(["--tx", TX_A, "--trace-file", str(self.root / "missing.json")])
        self.assertEqual(code, 2)
        self.assertIn("Cannot read trace file", stderr)

    def test_unknown_transaction_exits_1(self) -> None:
        trace_file = self._trace_file({TX_A: scenario_a()})
        code, _, stderr = self._run(["--tx", TX_C, "--trace-file", trace_file, "--out", self.out])
        self.assertEqual(code, 1)
        self.assertIn("TraceNotFoundError", stderr)


if __name__ == "__main__":
    unittest.main()

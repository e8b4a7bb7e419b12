import threading
import unittest
from typing import Any, List

from txtrace.adapters.rpc.static_trace_adapter import StaticTraceAdapter
from txtrace.core.enums import ComplexityLevel, MevPatternType, PatternLabel, Severity
from txtrace.core.errors import DataSourceError, InvalidTransactionHashError, TraceNotFoundError
from txtrace.core.models import AnalysisOptions
from txtrace.ports.trace_source_port import TraceSourcePort
from txtrace.services.analysis_cache import AnalysisCache
from txtrace.services.trace_analysis_service import TraceAnalysisService

from trace_fixtures import (
    BOB,
    EOA,
    PYUSD,
    TX_A,
    TX_B,
    TX_C,
    scenario_a,
    scenario_b,
    scenario_c,
)


class FailingSource(TraceSourcePort):
    def __init__(self) -> None:
        self.calls = 0

    def fetch_trace(self, tx_hash: str) -> List[Any]:
        self.calls += 1
        raise DataSourceError("node unreachable")


class SlowSource(StaticTraceAdapter):
    def __init__(self, traces) -> None:
        super().__init__(traces)
        self.started = threading.Event()
        self.release = threading.Event()

    def fetch_trace(self, tx_hash: str) -> List[Any]:
        self.started.set()
        self.release.wait(timeout=5)
        return super().fetch_trace(tx_hash)


class TraceAnalysisServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.source = StaticTraceAdapter({
            TX_A: scenario_a(),
            TX_B: scenario_b(),
            TX_C: scenario_c(),
        })
        self.svc = TraceAnalysisService(self.source, cache=AnalysisCache(), clock=lambda: 123.0)

    def test_simple_transfer(self) -> None:
        r = self.svc.analyze(TX_A)

        self.assertEqual(r.summary.total_calls, 1)
        self.assertEqual(r.summary.tracked_calls, 1)
        self.assertEqual(len(r.transfers), 1)
        t = r.transfers[0]
        self.assertEqual((t.from_address, t.to_address, t.amount_raw), (EOA, BOB, 100 * PYUSD))
        self.assertEqual(r.pattern_label, PatternLabel.SIMPLE_TRANSFER)
        self.assertEqual(r.pattern_analysis.pattern.confidence, 0.90)
        self.assertFalse(r.basic_mev.mev_detected)
        self.assertEqual(r.security.concerns, ())
        self.assertEqual(r.security.overall_risk, Severity.LOW)
        self.assertEqual(r.created_at, 123.0)

    def test_infinite_approval(self) -> None:
        r = self.svc.analyze(TX_B)

        self.assertEqual(r.pattern_label, PatternLabel.APPROVAL_FLOW)
        self.assertEqual(r.security.overall_risk, Severity.MEDIUM)
        self.assertTrue(r.security.approval_risks[0].is_infinite)
        self.assertEqual(r.transfers, ())

    def test_flash_loan_arbitrage(self) -> None:
        r = self.svc.analyze(TX_C)

        self.assertEqual(r.summary.total_calls, 25)
        self.assertEqual(r.summary.error_count, 9)
        self.assertEqual(r.summary.max_depth, 5)
        self.assertEqual(r.complexity.level, ComplexityLevel.HIGH)
        self.assertTrue(r.basic_mev.mev_detected)
        self.assertIn(MevPatternType.ARBITRAGE, [p.type for p in r.advanced_mev.patterns])
        self.assertIn("failed_operations", [s.id for s in r.gas.optimization_suggestions])
        self.assertIsNotNone(r.visualization.call_graph)

    def test_empty_trace(self) -> None:
        svc = TraceAnalysisService(StaticTraceAdapter({TX_A: []}))
        r = svc.analyze(TX_A)

        self.assertTrue(r.is_empty)
        self.assertEqual(r.summary.total_calls, 0)
        self.assertEqual(r.gas.total_gas, 0)
        self.assertEqual(r.pattern_label, PatternLabel.UNKNOWN)
        self.assertFalse(r.advanced_mev.mev_detected)
        self.assertEqual(r.security.concerns, ())

    def test_unusable_records_are_counted(self) -> None:
        svc = TraceAnalysisService(StaticTraceAdapter({TX_A: scenario_a() + ["junk"]}))
        with self.assertLogs("txtrace.analysis.trace_normalizer", level="WARNING"):
            r = svc.analyze(TX_A)
        self.assertEqual(r.summary.skipped_records, 1)
        self.assertEqual(r.summary.total_calls, 1)

    def test_invalid_hash_never_reaches_source(self) -> None:
        for bad in ("0x123", "a" * 66, "0x" + "g" * 64, None):
            with self.assertRaises(InvalidTransactionHashError):
                self.svc.analyze(bad)
        self.assertEqual(self.source.calls, [])

    def test_invalid_hash_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            TraceAnalysisService.validate_tx_hash("0xnope")

    def test_source_errors_propagate(self) -> None:
        source = FailingSource()
        svc = TraceAnalysisService(source, cache=AnalysisCache())
        with self.assertLogs("txtrace.services.trace_analysis_service", level="ERROR"):
            with self.assertRaises(DataSourceError):
                svc.analyze(TX_A)
        self.assertEqual(source.calls, 1)
        self.assertEqual(len(svc.cache), 0)

    def test_unknown_transaction(self) -> None:
        with self.assertRaises(TraceNotFoundError):
            TraceAnalysisService(StaticTraceAdapter()).analyze(TX_A)

    def test_cache_hit_skips_fetch(self) -> None:
        first = self.svc.analyze(TX_A)
        second = self.svc.analyze(TX_A.upper().replace("0X", "0x"))

        self.assertIs(first, second)
        self.assertEqual(self.source.calls, [TX_A])
        self.assertIs(self.svc.get_cached(TX_A), first)

    def test_options_partition_cache(self) -> None:
        self.svc.analyze(TX_A)
        self.svc.analyze(TX_A, AnalysisOptions(include_visualization=False))
        self.assertEqual(len(self.source.calls), 2)

    def test_without_cache_every_call_fetches(self) -> None:
        svc = TraceAnalysisService(self.source)
        svc.analyze(TX_A)
        svc.analyze(TX_A)
        self.assertEqual(len(self.source.calls), 2)
        self.assertIsNone(svc.get_cached(TX_A))
        self.assertEqual(svc._key_locks, {})

    def test_disabled_stages_are_absent(self) -> None:
        options = AnalysisOptions(
            include_pattern_detection=False,
            include_mev_analysis=False,
            include_security_analysis=False,
            include_visualization=False,
        )
        r = self.svc.analyze(TX_C, options)

        self.assertIsNone(r.pattern_analysis)
        self.assertIsNone(r.basic_mev)
        self.assertIsNone(r.advanced_mev)
        self.assertIsNone(r.security)
        self.assertIsNone(r.visualization)
        self.assertGreater(r.gas.total_gas, 0)
        self.assertGreater(r.complexity.score, 0)

    def test_concurrent_requests_fetch_once(self) -> None:
        source = SlowSource({TX_A: scenario_a()})
        svc = TraceAnalysisService(source, cache=AnalysisCache())
        results = []

        threads = [threading.Thread(target=lambda: results.append(svc.analyze(TX_A))) for _ in range(3)]
        for t in threads:
            t.start()
        source.started.wait(timeout=5)
        source.release.set()
        for t in threads:
            t.join(timeout=5)

        self.assertEqual(len(results), 3)
        self.assertEqual(source.calls, [TX_A])
        self.assertTrue(all(r is results[0] for r in results))

    def test_compare_uses_finished_results(self) -> None:
        a = self.svc.analyze(TX_A)
        b = self.svc.analyze(TX_B)
        comparison = self.svc.compare(a, b)
        self.assertEqual(comparison.transaction1.tx_hash, TX_A)
        self.assertEqual(len(self.source.calls), 2)


if __name__ == "__main__":
    unittest.main()

import unittest

from txtrace.adapters.rpc.static_trace_adapter import StaticTraceAdapter
from txtrace.core.models import AnalysisOptions
from txtrace.services.analysis_cache import AnalysisCache
from txtrace.services.trace_analysis_service import TraceAnalysisService

from trace_fixtures import TX_A, scenario_a


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class AnalysisCacheTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.cache = AnalysisCache(ttl_sec=300, clock=self.clock)
        self.options = AnalysisOptions()
        self.result = TraceAnalysisService(StaticTraceAdapter()).analyze_records(TX_A, scenario_a())

    def test_miss_then_hit(self) -> None:
        self.assertIsNone(self.cache.get(TX_A, self.options))
        self.cache.set(TX_A, self.options, self.result)
        self.assertIs(self.cache.get(TX_A, self.options), self.result)
        self.assertEqual(self.cache.stats(), {"entries": 1, "hits": 1, "misses": 1})

    def test_entry_expires_at_ttl(self) -> None:
        self.cache.set(TX_A, self.options, self.result)
        self.clock.now += 299.9
        self.assertIsNotNone(self.cache.get(TX_A, self.options))
        self.clock.now += 0.1
        self.assertIsNone(self.cache.get(TX_A, self.options))
        # stale entries are replaced on set, never evicted on get
        self.assertEqual(len(self.cache), 1)

    def test_set_refreshes_window(self) -> None:
        self.cache.set(TX_A, self.options, self.result)
        self.clock.now += 400
        self.cache.set(TX_A, self.options, self.result)
        self.assertIs(self.cache.get(TX_A, self.options), self.result)

    def test_key_includes_options_and_ignores_hash_case(self) -> None:
        self.cache.set(TX_A, self.options, self.result)
        self.assertIs(self.cache.get(TX_A.upper().replace("0X", "0x"), self.options), self.result)
        self.assertIsNone(self.cache.get(TX_A, AnalysisOptions(include_mev_analysis=False)))

    def test_clear(self) -> None:
        self.cache.set(TX_A, self.options, self.result)
        self.cache.clear()
        self.assertEqual(len(self.cache), 0)
        self.assertIsNone(self.cache.get(TX_A, self.options))


if __name__ == "__main__":
    unittest.main()

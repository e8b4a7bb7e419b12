from __future__ import annotations

import logging
import re
import threading
import time
from typing import Any, Callable, Dict, Optional, Sequence

from txtrace.analysis.comparative_analyzer import compare_analyses
from txtrace.analysis.extractors import build_summary, extract_interactions, extract_transfers
from txtrace.analysis.gas_analyzer import analyze_gas
from txtrace.analysis.mev_detector import analyze_advanced, analyze_basic
from txtrace.analysis.pattern_classifier import analyze_complexity, analyze_patterns
from txtrace.analysis.security_analyzer import analyze_security
from txtrace.analysis.trace_normalizer import normalize_trace
from txtrace.analysis.visualization import build_visualization
from txtrace.core.errors import DataSourceError, InvalidTransactionHashError
from txtrace.core.models import AnalysisOptions, ComparisonResult, TraceAnalysisResult
from txtrace.ports.trace_source_port import TraceSourcePort
from txtrace.services.analysis_cache import AnalysisCache

logger = logging.getLogger(__name__)

TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def validate_tx_hash(tx_hash: Any) -> str:
    if not isinstance(tx_hash, str) or not TX_HASH_RE.match(tx_hash):
        raise InvalidTransactionHashError(
            f"Invalid transaction hash {tx_hash!r}: expected 0x followed by 64 hex characters"
        )
    return tx_hash


class TraceAnalysisService:
    """
    Runs the analysis pipeline for one transaction.

    - Fetch: exactly one call to the trace source, before any stage runs
    - Stages: normalize, extract, classify, MEV, security, gas, visualization
    - Cache: optional, injected; only this class reads or writes it

    Concurrent ``analyze`` calls for the same key are serialized so a cache
    miss is computed and stored once.
    """

    def __init__(
        self,
        source: TraceSourcePort,
        cache: Optional[AnalysisCache] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.source = source
        self.cache = cache
        self.clock = clock
        self._key_locks: Dict[tuple, threading.Lock] = {}
        self._key_locks_guard = threading.Lock()

    validate_tx_hash = staticmethod(validate_tx_hash)

    def _lock_for(self, tx_hash: str, options: AnalysisOptions) -> threading.Lock:
        key = AnalysisCache.key(tx_hash, options)
        with self._key_locks_guard:
            return self._key_locks.setdefault(key, threading.Lock())

    def get_cached(self, tx_hash: str, options: Optional[AnalysisOptions] = None) -> Optional[TraceAnalysisResult]:
        if self.cache is None:
            return None
        return self.cache.get(tx_hash, options or AnalysisOptions())

    def analyze(self, tx_hash: str, options: Optional[AnalysisOptions] = None) -> TraceAnalysisResult:
        validate_tx_hash(tx_hash)
        options = options or AnalysisOptions()

        if self.cache is None:
            return self._fetch_and_analyze(tx_hash, options)

        with self._lock_for(tx_hash, options):
            cached = self.get_cached(tx_hash, options)
            if cached is not None:
                logger.info("Cache hit for %s", tx_hash)
                return cached

            result = self._fetch_and_analyze(tx_hash, options)
            self.cache.set(tx_hash, options, result)
            return result

    def _fetch_and_analyze(self, tx_hash: str, options: AnalysisOptions) -> TraceAnalysisResult:
        try:
            records = self.source.fetch_trace(tx_hash)
        except DataSourceError as e:
            logger.error("Trace fetch failed for %s: %s", tx_hash, e)
            raise
        return self.analyze_records(tx_hash, records, options)

    def analyze_records(
        self,
        tx_hash: str,
        records: Sequence[Any],
        options: Optional[AnalysisOptions] = None,
    ) -> TraceAnalysisResult:
        validate_tx_hash(tx_hash)
        options = options or AnalysisOptions()

        normalized = normalize_trace(records)
        nodes = normalized.nodes
        if not nodes:
            logger.info("No usable trace records for %s; returning empty analysis", tx_hash)

        interactions = extract_interactions(nodes)
        transfers = extract_transfers(nodes)
        complexity = analyze_complexity(nodes)
        gas = analyze_gas(nodes)

        pattern_analysis = None
        if options.include_pattern_detection:
            pattern_analysis = analyze_patterns(nodes, transfers, complexity)

        basic_mev = advanced_mev = None
        if options.include_mev_analysis:
            basic_mev = analyze_basic(nodes)
            advanced_mev = analyze_advanced(nodes, gas)

        security = analyze_security(nodes) if options.include_security_analysis else None

        visualization = None
        if options.include_visualization:
            visualization = build_visualization(nodes, interactions, transfers)

        logger.debug(
            "Analyzed %s: %d calls, %d transfers, complexity %.1f",
            tx_hash, len(nodes), len(transfers), complexity.score,
        )

        return TraceAnalysisResult(
            tx_hash=tx_hash,
            summary=build_summary(nodes, transfers, complexity.score, len(normalized.skipped)),
            nodes=nodes,
            interactions=tuple(interactions),
            transfers=tuple(transfers),
            complexity=complexity,
            gas=gas,
            pattern_analysis=pattern_analysis,
            basic_mev=basic_mev,
            advanced_mev=advanced_mev,
            security=security,
            visualization=visualization,
            created_at=self.clock(),
        )

    def compare(self, first: TraceAnalysisResult, second: TraceAnalysisResult) -> ComparisonResult:
        return compare_analyses(first, second)

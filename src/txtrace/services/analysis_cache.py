from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from txtrace.config.settings import ANALYSIS_CACHE_TTL_SEC
from txtrace.core.models import AnalysisOptions, TraceAnalysisResult


@dataclass(frozen=True)
class _Entry:
    result: TraceAnalysisResult
    stored_at: float


class AnalysisCache:
    """
    Fixed-window TTL cache of completed analyses.

    Keyed by (tx hash, serialized options). ``get`` never evicts; a stale
    entry stays until the next ``set`` for the same key replaces it.
    """

    def __init__(self, ttl_sec: float = ANALYSIS_CACHE_TTL_SEC, clock: Callable[[], float] = time.time) -> None:
        self._ttl = float(ttl_sec)
        self._clock = clock
        self._entries: Dict[Tuple[str, str], _Entry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def ttl_sec(self) -> float:
        return self._ttl

    @staticmethod
    def key(tx_hash: str, options: AnalysisOptions) -> Tuple[str, str]:
        return (tx_hash.lower(), options.cache_key())

    def get(self, tx_hash: str, options: AnalysisOptions) -> Optional[TraceAnalysisResult]:
        with self._lock:
            entry = self._entries.get(self.key(tx_hash, options))
            if entry is None or self._clock() - entry.stored_at >= self._ttl:
                self._misses += 1
                return None
            self._hits += 1
            return entry.result

    def set(self, tx_hash: str, options: AnalysisOptions, result: TraceAnalysisResult) -> None:
        with self._lock:
            self._entries[self.key(tx_hash, options)] = _Entry(result, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self._hits, "misses": self._misses}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

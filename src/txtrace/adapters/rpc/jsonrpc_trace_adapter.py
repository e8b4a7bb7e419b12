import logging
from itertools import count
from typing import Any, Callable, Dict, List, Optional

import requests

from txtrace.config.settings import (
    TRACE_RPC_MAX_RETRIES,
    TRACE_RPC_METHOD,
    TRACE_RPC_REQUESTS_PER_SEC,
    TRACE_RPC_TIMEOUT_SEC,
    TRACE_RPC_URL,
)

from txtrace.adapters.rpc.rate_limiter import SimpleRateLimiter, backoff_sleep
from txtrace.core.errors import DataSourceError, RateLimitError, TraceNotFoundError
from txtrace.ports.trace_source_port import TraceSourcePort

logger = logging.getLogger(__name__)

# JSON-RPC error codes nodes use for throttling
RATE_LIMIT_CODES = (-32005, -32029, 429)


class JsonRpcTraceAdapter(TraceSourcePort):

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        requests_per_sec: Optional[float] = None,
        backoff: Callable[[int], None] = backoff_sleep,
    ) -> None:
        self._url = rpc_url or TRACE_RPC_URL
        self._timeout = timeout if timeout is not None else TRACE_RPC_TIMEOUT_SEC
        self._max_retries = max(1, max_retries if max_retries is not None else TRACE_RPC_MAX_RETRIES)

        self._rl = SimpleRateLimiter(requests_per_sec or TRACE_RPC_REQUESTS_PER_SEC)
        self._session = session or requests.Session()
        self._backoff = backoff
        self._ids = count(1)

    # ---------- internal ----------

    @staticmethod
    def _is_rate_limited(error: Dict[str, Any]) -> bool:
        message = str(error.get("message", ""))
        return error.get("code") in RATE_LIMIT_CODES or "rate" in message.lower()

    def _call(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

        last_err: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                self._rl.wait()
                resp = self._session.post(self._url, json=payload, timeout=self._timeout)
                if resp.status_code == 429:
                    raise RateLimitError("HTTP 429 Too Many Requests")
                resp.raise_for_status()
                data = resp.json()
            except (requests.RequestException, ValueError, RateLimitError) as e:
                last_err = e
                logger.warning("%s attempt %d/%d failed: %s", method, attempt + 1, self._max_retries, e)
                if attempt + 1 < self._max_retries:
                    self._backoff(attempt)
                continue

            if not isinstance(data, dict):
                raise DataSourceError(f"Invalid JSON-RPC response: {data!r}")

            error = data.get("error")
            if isinstance(error, dict):
                if self._is_rate_limited(error):
                    last_err = RateLimitError(str(error.get("message", "rate limited")))
                    logger.warning("%s rate limited (attempt %d/%d)", method, attempt + 1, self._max_retries)
                    if attempt + 1 < self._max_retries:
                        self._backoff(attempt)
                    continue
                raise DataSourceError(f"{method} failed: {error.get('message', error)}")

            return data.get("result")

        if isinstance(last_err, RateLimitError):
            raise RateLimitError(f"{method} still rate limited after {self._max_retries} attempts: {last_err}")
        raise DataSourceError(f"{method} failed after retries: {last_err}")

    # ---------- port methods ----------

    def fetch_trace(self, tx_hash: str) -> List[Any]:
        logger.info("Fetching trace for %s from %s", tx_hash, self._url)
        result = self._call(TRACE_RPC_METHOD, [tx_hash])

        if result is None:
            raise TraceNotFoundError(f"No trace found for transaction {tx_hash}")
        if not isinstance(result, list):
            raise DataSourceError(f"Invalid trace result for {tx_hash}: expected array, got {type(result).__name__}")

        logger.debug("Fetched %d trace records for %s", len(result), tx_hash)
        return result

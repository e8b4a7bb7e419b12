from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
import time
from typing import List, Optional

from txtrace.config import settings
from txtrace.core.errors import DataSourceError, InvalidTransactionHashError, TracerError
from txtrace.core.models import AnalysisOptions
from txtrace.services.analysis_cache import AnalysisCache
from txtrace.services.trace_analysis_service import TraceAnalysisService
from txtrace.io.output_writer import (
    write_analysis_json,
    write_comparison_json,
    write_comparison_md,
    write_summary_md,
)

from txtrace.adapters.rpc.jsonrpc_trace_adapter import JsonRpcTraceAdapter
from txtrace.adapters.rpc.static_trace_adapter import StaticTraceAdapter


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="txtrace", description="Transaction call-trace analyzer")
    p.add_argument("--tx", required=True, help="Transaction hash to analyze")
    p.add_argument("--compare-with", help="Second transaction hash to diff against --tx")
    p.add_argument("--trace-file", help="Read traces from a JSON file instead of the RPC node")
    p.add_argument("--rpc-url", default=None, help=f"JSON-RPC endpoint (default {settings.TRACE_RPC_URL})")
    p.add_argument("--out", default="out", help="Output folder")
    p.add_argument("--no-patterns", action="store_true", help="Skip pattern classification")
    p.add_argument("--no-mev", action="store_true", help="Skip MEV detection")
    p.add_argument("--no-security", action="store_true", help="Skip security analysis")
    p.add_argument("--no-visualization", action="store_true", help="Skip graph projections")
    p.add_argument("--verbose", action="store_true", help="Log progress at INFO level")
    return p


def _ts() -> str:
    return dt.datetime.now().strftime("%H:%M:%S")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    hashes = [args.tx] + ([args.compare_with] if args.compare_with else [])
    try:
        for h in hashes:
            TraceAnalysisService.validate_tx_hash(h)
    except InvalidTransactionHashError as exc:
        print(f"[{_ts()}] Error: {exc}", file=sys.stderr)
        return 2

    options = AnalysisOptions(
        include_pattern_detection=not args.no_patterns,
        include_mev_analysis=not args.no_mev,
        include_security_analysis=not args.no_security,
        include_visualization=not args.no_visualization,
    )

    # Ports
    if args.trace_file:
        try:
            source = StaticTraceAdapter.from_json_file(
                args.trace_file, tx_hash=None if args.compare_with else args.tx
            )
        except DataSourceError as exc:
            print(f"[{_ts()}] Error: {exc}", file=sys.stderr)
            return 2
        adapter_label = f"StaticTraceAdapter ({args.trace_file})"
    else:
        source = JsonRpcTraceAdapter(rpc_url=args.rpc_url)
        adapter_label = "JsonRpcTraceAdapter"

    svc = TraceAnalysisService(source=source, cache=AnalysisCache())
    print(f"Adapter: {adapter_label}")

    start = time.time()
    try:
        print(f"[{_ts()}] Analyzing {args.tx}")
        result = svc.analyze(args.tx, options)
        other = None
        if args.compare_with:
            print(f"[{_ts()}] Analyzing {args.compare_with}")
            other = svc.analyze(args.compare_with, options)
    except TracerError as exc:
        print(f"[{_ts()}] Error: {exc.__class__.__name__}: {exc}", file=sys.stderr)
        return 1

    print(f"[{_ts()}] Done in {time.time() - start:.1f}s • {result.summary.total_calls} calls")

    # Outputs
    print("Writing outputs...")
    written = [
        write_analysis_json(result, args.out),
        write_summary_md(result, args.out),
    ]
    if other is not None:
        comparison = svc.compare(result, other)
        written.append(write_comparison_json(comparison, args.out))
        written.append(write_comparison_md(comparison, args.out))

    for path in written:
        print(f"Wrote: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""
Run a cold/warm latency benchmark and store the results.

Settings come from environment variables (or a .env file); command-line
options override them.

Usage:
    coldstart-benchmark
    coldstart-benchmark --base-url http://localhost:5080 --paths /ping,/items
    coldstart-benchmark --cold 5 --warm 10 --delay 0 --no-store
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

import requests
from dotenv import load_dotenv
from pydantic import ValidationError

from benchmarking.phase import BenchmarkCancelled
from benchmarking.runner import BenchmarkRunner
from models import BenchmarkResult, BenchmarkSettings
from storage.results_store import BenchmarkResultStore
from storage.table_adapter import create_table_adapter

logger = logging.getLogger(__name__)

EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Benchmark cold vs warm endpoint latency")
    parser.add_argument("--base-url", help="Base URL of the endpoint (default: http://api)")
    parser.add_argument("--paths", help="Comma-separated paths to benchmark")
    parser.add_argument("--cold", type=int, help="Requests in the cold phase")
    parser.add_argument("--warm", type=int, help="Requests in the warm phase")
    parser.add_argument("--delay", type=float, help="Seconds between cold and warm phases")
    parser.add_argument("--concurrency", type=int, help="Maximum requests in flight")
    parser.add_argument("--run-id", help="Run identifier (default: generated)")
    parser.add_argument("--region", help="Region label attached to every row")
    parser.add_argument("--table", help="DynamoDB table name override")
    parser.add_argument("--no-store", action="store_true", help="Skip writing results to DynamoDB")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser


def load_settings(args: argparse.Namespace) -> BenchmarkSettings:
    """Environment settings with command-line overrides applied."""
    overrides = {
        "api_base_url": args.base_url,
        "api_paths": args.paths,
        "cold_calls": args.cold,
        "warm_calls": args.warm,
        "delay_between_calls_sec": args.delay,
        "concurrency": args.concurrency,
        "run_id": args.run_id,
        "region": args.region,
    }
    return BenchmarkSettings(**{k: v for k, v in overrides.items() if v is not None})


def print_summary(results: List[BenchmarkResult]) -> None:
    print("\n" + "=" * 60)
    print("BENCHMARK SUMMARY")
    print("=" * 60)
    for r in results:
        print(
            f"{r.path:<20} {r.phase.value:<6} sent={r.sent:<4} ok={r.ok:<4} errors={r.errors:<4} "
            f"p50={r.p50_ms:8.1f}ms p99={r.p99_ms:8.1f}ms rps={r.rps:6.1f}"
        )


def make_cancel_handler(cancel_event: threading.Event):
    """Signal handler that cancels the run.

    Signal handlers run on the main thread, which may be holding the event's
    internal lock inside ``cancel_event.wait()``. The event is therefore set
    from a helper thread, never from the handler itself.
    """

    def _cancel(signum, frame):
        logger.warning(f"Received signal {signum}, cancelling benchmark")
        threading.Thread(target=cancel_event.set, name="bench-cancel", daemon=True).start()

    return _cancel


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    try:
        settings = load_settings(args)
    except ValidationError as e:
        logger.error(f"Invalid benchmark settings: {e}")
        return 2

    cancel_event = threading.Event()
    handler = make_cancel_handler(cancel_event)
    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}

    try:
        with requests.Session() as session:
            runner = BenchmarkRunner(settings, session=session, cancel_event=cancel_event)
            results = runner.run()
    except BenchmarkCancelled as e:
        logger.error(f"Benchmark cancelled: {e}")
        return EXIT_CANCELLED
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    print_summary(results)

    if args.no_store:
        logger.info("Skipping result storage (--no-store)")
        return 0

    store = BenchmarkResultStore(create_table_adapter(args.table))
    stored = store.save_benchmark_results(results)
    logger.info(f"Run {settings.run_id} complete: {stored} rows stored")
    return 0


if __name__ == "__main__":
    sys.exit(main())

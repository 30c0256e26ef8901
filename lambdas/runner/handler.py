"""
Benchmark runner Lambda function.

Triggered by an external schedule (EventBridge rule per region), this Lambda:
1. Loads benchmark settings from environment variables
2. Applies optional overrides from the event ("paths", "cold_calls",
   "warm_calls", "delay_between_calls_sec", "concurrency", "run_id")
3. Runs the cold/warm benchmark
4. Stores the result rows in DynamoDB

The run is cancelled shortly before the Lambda timeout so a cut-off run fails
loudly instead of being killed mid-write.
"""

import json
import logging
import threading
from typing import Any, Dict

import requests

from benchmarking.phase import BenchmarkCancelled
from benchmarking.runner import BenchmarkRunner
from models import BenchmarkSettings, Phase
from storage.results_store import BenchmarkResultStore
from storage.table_adapter import create_table_adapter

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Time reserved after cancellation for in-flight requests and storage writes
SAFETY_MARGIN_MS = 10_000

_OVERRIDE_KEYS = {
    "paths": "api_paths",
    "cold_calls": "cold_calls",
    "warm_calls": "warm_calls",
    "delay_between_calls_sec": "delay_between_calls_sec",
    "concurrency": "concurrency",
    "run_id": "run_id",
}


def settings_from_event(event: Dict[str, Any]) -> BenchmarkSettings:
    """
    Build settings from the environment plus event overrides.

    Args:
        event: Invocation event; unknown keys are ignored

    Returns:
        BenchmarkSettings for this invocation
    """
    overrides = {}
    for event_key, field_name in _OVERRIDE_KEYS.items():
        if event.get(event_key) is not None:
            value = event[event_key]
            if event_key == "paths" and isinstance(value, list):
                value = ",".join(value)
            overrides[field_name] = value
    return BenchmarkSettings(**overrides)


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for a benchmark run.

    Args:
        event: EventBridge scheduled event, optionally with overrides
        context: Lambda context

    Returns:
        Dict with status code and run summary
    """
    logger.info(f"Event: {json.dumps(event, default=str)}")

    settings = settings_from_event(event or {})
    cancel_event = threading.Event()

    timer = None
    if context is not None and hasattr(context, "get_remaining_time_in_millis"):
        budget_ms = context.get_remaining_time_in_millis() - SAFETY_MARGIN_MS
        if budget_ms > 0:
            timer = threading.Timer(budget_ms / 1000, cancel_event.set)
            timer.daemon = True
            timer.start()

    try:
        with requests.Session() as session:
            results = BenchmarkRunner(settings, session=session, cancel_event=cancel_event).run()
    except BenchmarkCancelled as e:
        logger.error(f"Benchmark run {settings.run_id} cancelled: {e}")
        raise
    finally:
        if timer is not None:
            timer.cancel()

    store = BenchmarkResultStore(create_table_adapter())
    stored = store.save_benchmark_results(results)

    summary = {
        "run_id": settings.run_id,
        "region": settings.region,
        "rows": len(results),
        "stored": stored,
        "errors": sum(r.errors for r in results if r.phase != Phase.TOTAL),
    }
    logger.info(f"Benchmark summary: {json.dumps(summary)}")

    return {
        "statusCode": 200,
        "body": json.dumps(summary),
    }

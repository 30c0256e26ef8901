"""Latency statistics and result row construction.

An empty latency sample is summarized as zeros everywhere: ``percentile``
returns 0.0 and ``build_result`` reports zero min/avg/max/percentiles and zero
RPS. There is no NaN path.
"""

import math
from datetime import datetime
from typing import Sequence

from models import BenchmarkResult, Phase


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank interpolated percentile.

    Args:
        values: Latency sample (any order)
        p: Percentile in [0, 100]

    Returns:
        Interpolated value, or 0.0 for an empty sample

    Raises:
        ValueError: If p is outside [0, 100]
    """
    if not 0 <= p <= 100:
        raise ValueError(f"Percentile must be within [0, 100], got {p}")

    arr = sorted(values)
    if not arr:
        return 0.0

    position = (p / 100.0) * (len(arr) + 1)
    index = math.floor(position) - 1
    fraction = position - math.floor(position)

    if index < 0:
        return arr[0]
    if index >= len(arr) - 1:
        return arr[-1]
    return arr[index] + (arr[index + 1] - arr[index]) * fraction


def requests_per_second(ok: int, elapsed_seconds: float) -> float:
    if ok <= 0 or elapsed_seconds <= 0:
        return 0.0
    return ok / elapsed_seconds


def build_result(
    *,
    run_id: str,
    timestamp: datetime,
    base_uri: str,
    path: str,
    phase: Phase,
    sent: int,
    latencies_ms: Sequence[float],
    errors: int,
    elapsed_seconds: float,
    concurrency: int,
    cold_calls: int,
    warm_calls: int,
    region: str,
) -> BenchmarkResult:
    """Summarize one phase's latency sample into an immutable result row."""
    ok = len(latencies_ms)
    min_ms = p50_ms = avg_ms = p90_ms = p99_ms = max_ms = 0.0

    if ok > 0:
        min_ms = min(latencies_ms)
        max_ms = max(latencies_ms)
        avg_ms = sum(latencies_ms) / ok
        p50_ms = percentile(latencies_ms, 50)
        p90_ms = percentile(latencies_ms, 90)
        p99_ms = percentile(latencies_ms, 99)

    return BenchmarkResult(
        run_id=run_id,
        timestamp=timestamp,
        path=path,
        phase=phase,
        sent=sent,
        ok=ok,
        errors=errors,
        elapsed_seconds=elapsed_seconds,
        rps=requests_per_second(ok, elapsed_seconds),
        min_ms=min_ms,
        p50_ms=p50_ms,
        avg_ms=avg_ms,
        p90_ms=p90_ms,
        p99_ms=p99_ms,
        max_ms=max_ms,
        base_uri=base_uri,
        concurrency=concurrency,
        cold_calls=cold_calls,
        warm_calls=warm_calls,
        region=region,
    )

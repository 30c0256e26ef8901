"""Concurrency-bounded request bursts against a single target URL."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_SEC = 30


class BenchmarkCancelled(Exception):
    """Raised when a run is cancelled during a phase or the inter-phase delay."""
    pass


@dataclass
class PhaseOutcome:
    """Raw measurements of one phase."""
    latencies_ms: List[float] = field(default_factory=list)
    errors: int = 0
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> int:
        return len(self.latencies_ms)


class _LatencyBuffer:
    """Append-only latency sample shared by the workers of one phase."""

    def __init__(self):
        self._lock = threading.Lock()
        self._samples: List[float] = []
        self._errors = 0

    def add(self, latency_ms: float) -> None:
        with self._lock:
            self._samples.append(latency_ms)

    def add_error(self) -> None:
        with self._lock:
            self._errors += 1

    def drain(self) -> Tuple[List[float], int]:
        with self._lock:
            samples, self._samples = sorted(self._samples), []
            return samples, self._errors


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def run_phase(
    session: requests.Session,
    url: str,
    count: int,
    concurrency: int,
    cancel_event: Optional[threading.Event] = None,
    timeout: float = DEFAULT_REQUEST_TIMEOUT_SEC,
) -> PhaseOutcome:
    """
    Issue ``count`` GET requests against ``url`` with at most ``concurrency``
    in flight.

    Every request is awaited before returning. A 2xx response records its
    round-trip latency; any other status or any exception counts as an error.

    Args:
        session: Shared HTTP session (connection pool)
        url: Absolute target URL
        count: Number of requests to issue
        concurrency: Maximum requests in flight
        cancel_event: Set to stop dispatching further requests
        timeout: Per-request timeout in seconds

    Returns:
        PhaseOutcome with the sorted latency sample, error count and phase
        wall-clock time

    Raises:
        ValueError: If concurrency < 1 or count < 0
        BenchmarkCancelled: If cancel_event was set before all requests were
            dispatched
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")

    buffer = _LatencyBuffer()
    gate = threading.BoundedSemaphore(concurrency)
    cancelled = False

    def issue_request() -> None:
        try:
            started = time.perf_counter()
            response = session.get(url, timeout=timeout)
            latency_ms = (time.perf_counter() - started) * 1000
            status_code = response.status_code
            response.close()
            if _is_success(status_code):
                buffer.add(latency_ms)
            else:
                logger.debug(f"GET {url} returned {status_code}")
                buffer.add_error()
        except Exception as e:
            logger.debug(f"GET {url} failed: {e}")
            buffer.add_error()
        finally:
            gate.release()

    phase_start = time.perf_counter()

    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="bench") as executor:
        futures = []
        for _ in range(count):
            gate.acquire()
            if cancel_event is not None and cancel_event.is_set():
                gate.release()
                cancelled = True
                break
            try:
                futures.append(executor.submit(issue_request))
            except Exception:
                gate.release()
                raise

        # Wait for every dispatched request, cancelled or not
        for future in futures:
            future.result()

    elapsed = time.perf_counter() - phase_start

    if cancelled:
        logger.warning(f"Phase against {url} cancelled after {len(futures)}/{count} requests")
        raise BenchmarkCancelled(f"Phase against {url} was cancelled")

    latencies, errors = buffer.drain()
    return PhaseOutcome(latencies_ms=latencies, errors=errors, elapsed_seconds=elapsed)

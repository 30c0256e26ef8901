"""
Cold/warm benchmark orchestration.

For every configured path the runner measures a Cold burst, waits the
configured delay, measures a Warm burst and derives a Total row from both
samples. Paths run one after another; concurrency exists only inside a phase.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urljoin

import requests

from benchmarking.phase import BenchmarkCancelled, PhaseOutcome, run_phase
from benchmarking.stats import build_result
from models import BenchmarkResult, BenchmarkSettings, Phase

logger = logging.getLogger(__name__)

# Logical service name used when no base URL is configured
DEFAULT_SERVICE_URI = "http://api"


def resolve_base_uri(base_url: Optional[str]) -> str:
    """Return the configured base URL, or the default service name."""
    if base_url is None or not base_url.strip():
        return DEFAULT_SERVICE_URI
    return base_url.strip()


class BenchmarkRunner:
    """Run cold and warm request bursts for each configured path."""

    def __init__(
        self,
        settings: BenchmarkSettings,
        session: Optional[requests.Session] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the runner.

        Args:
            settings: Run configuration
            session: HTTP session shared by every request of the run
            cancel_event: Set to abort the run; checked while dispatching and
                during the inter-phase delay
        """
        self.settings = settings
        self.session = session or requests.Session()
        self.cancel_event = cancel_event or threading.Event()
        self.base_uri = resolve_base_uri(settings.api_base_url)

    def run(self) -> List[BenchmarkResult]:
        """
        Benchmark every configured path.

        Returns:
            Three rows (Cold, Warm, Total) per path, in path order

        Raises:
            BenchmarkCancelled: If the cancel event fires mid-run
        """
        s = self.settings
        paths = s.paths

        logger.info(
            f"Base: {self.base_uri}, Paths: {', '.join(paths)}, Cold={s.cold_calls}, "
            f"Warm={s.warm_calls}, Delay={s.delay_between_calls_sec}s, "
            f"Concurrency={s.concurrency}, Region={s.region}, RunId={s.run_id}"
        )

        timestamp = datetime.now(timezone.utc)
        results: List[BenchmarkResult] = []

        for path in paths:
            results.extend(self._run_path(path, timestamp))

        return results

    def _run_path(self, path: str, timestamp: datetime) -> List[BenchmarkResult]:
        s = self.settings
        url = urljoin(self.base_uri, path)
        logger.info(f"Running benchmark for {url}")

        total_start = time.perf_counter()

        cold = self._run_phase(url, s.cold_calls)
        cold_row = self._build(path, Phase.COLD, s.cold_calls, cold, timestamp)
        self._log_row(cold_row)

        if s.delay_between_calls_sec > 0:
            logger.info(f"Waiting {s.delay_between_calls_sec}s before warm phase")
            if self.cancel_event.wait(s.delay_between_calls_sec):
                raise BenchmarkCancelled(f"Run cancelled between phases for {path}")

        warm = self._run_phase(url, s.warm_calls)
        warm_row = self._build(path, Phase.WARM, s.warm_calls, warm, timestamp)
        self._log_row(warm_row)

        # Total spans cold start to warm end, delay included
        total = PhaseOutcome(
            latencies_ms=cold.latencies_ms + warm.latencies_ms,
            errors=cold.errors + warm.errors,
            elapsed_seconds=time.perf_counter() - total_start,
        )
        total_row = self._build(path, Phase.TOTAL, s.cold_calls + s.warm_calls, total, timestamp)
        self._log_row(total_row)

        return [cold_row, warm_row, total_row]

    def _run_phase(self, url: str, count: int) -> PhaseOutcome:
        return run_phase(
            self.session,
            url,
            count,
            self.settings.concurrency,
            cancel_event=self.cancel_event,
            timeout=self.settings.request_timeout_sec,
        )

    def _build(
        self,
        path: str,
        phase: Phase,
        sent: int,
        outcome: PhaseOutcome,
        timestamp: datetime,
    ) -> BenchmarkResult:
        s = self.settings
        return build_result(
            run_id=s.run_id,
            timestamp=timestamp,
            base_uri=self.base_uri,
            path=path,
            phase=phase,
            sent=sent,
            latencies_ms=outcome.latencies_ms,
            errors=outcome.errors,
            elapsed_seconds=outcome.elapsed_seconds,
            concurrency=s.concurrency,
            cold_calls=s.cold_calls,
            warm_calls=s.warm_calls,
            region=s.region,
        )

    @staticmethod
    def _log_row(row: BenchmarkResult) -> None:
        logger.info(
            f"{row.path} [{row.phase.value}] sent={row.sent} ok={row.ok} errors={row.errors} "
            f"elapsed={row.elapsed_seconds:.2f}s rps={row.rps:.1f} "
            f"min={row.min_ms:.1f} p50={row.p50_ms:.1f} avg={row.avg_ms:.1f} "
            f"p90={row.p90_ms:.1f} p99={row.p99_ms:.1f} max={row.max_ms:.1f}"
        )

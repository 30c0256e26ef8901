"""
Shared pytest fixtures.

Provides reusable fixtures for:
- Fake AWS credentials for moto
- A thread-safe fake HTTP session
- Benchmark settings and result row factories
"""

import os
import threading
import time
from datetime import datetime, timezone
from typing import Any, List, Sequence

import pytest

from models import BenchmarkResult, BenchmarkSettings, Phase


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        self.closed = False

    def close(self):
        self.closed = True


class FakeSession:
    """Thread-safe stand-in for requests.Session.

    Each outcome is a status code or an exception instance. Outcomes are
    consumed in call order; the last one repeats once the list runs out.
    """

    def __init__(self, outcomes: Sequence[Any] = (200,), delay: float = 0.0, on_get=None):
        self._outcomes = list(outcomes)
        self._lock = threading.Lock()
        self.delay = delay
        self.on_get = on_get
        self.urls: List[str] = []
        self.responses: List[FakeResponse] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def get(self, url, timeout=None):
        with self._lock:
            self.urls.append(url)
            outcome = self._outcomes[min(len(self.urls), len(self._outcomes)) - 1]
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)

        try:
            if self.on_get is not None:
                self.on_get()
            if self.delay:
                time.sleep(self.delay)
            if isinstance(outcome, Exception):
                raise outcome
            response = FakeResponse(outcome)
            with self._lock:
                self.responses.append(response)
            return response
        finally:
            with self._lock:
                self.in_flight -= 1

    @property
    def call_count(self) -> int:
        return len(self.urls)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


@pytest.fixture
def make_session():
    """Factory for FakeSession instances."""
    return FakeSession


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never reaches real AWS under moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def make_settings(monkeypatch):
    """Factory for BenchmarkSettings that ignores any local .env file."""
    for key in ("BENCHMARK_REGION", "AWS_REGION"):
        monkeypatch.delenv(key, raising=False)

    def _make(**overrides) -> BenchmarkSettings:
        values = {
            "run_id": "testrun",
            "api_base_url": "http://localhost",
            "api_paths": "/ping",
            "cold_calls": 2,
            "warm_calls": 3,
            "delay_between_calls_sec": 0,
            "concurrency": 2,
            "region": "test-region",
        }
        values.update(overrides)
        return BenchmarkSettings(_env_file=None, **values)

    return _make


@pytest.fixture
def run_timestamp() -> datetime:
    return datetime(2024, 1, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)


@pytest.fixture
def make_result(run_timestamp):
    """Factory for valid BenchmarkResult rows."""

    def _make(**overrides) -> BenchmarkResult:
        values = dict(
            run_id="r1",
            timestamp=run_timestamp,
            path="/p",
            phase=Phase.COLD,
            sent=1,
            ok=1,
            errors=0,
            elapsed_seconds=0.1,
            rps=10.0,
            min_ms=1.0,
            p50_ms=1.0,
            avg_ms=1.0,
            p90_ms=1.0,
            p99_ms=1.0,
            max_ms=1.0,
            base_uri="http://localhost",
            concurrency=1,
            cold_calls=1,
            warm_calls=0,
            region="test-region",
        )
        values.update(overrides)
        return BenchmarkResult(**values)

    return _make


@pytest.fixture
def generate_results(make_result):
    """Generate ``count`` rows for one run id, cycling through the phases."""
    phases = [Phase.COLD, Phase.WARM, Phase.TOTAL]

    def _generate(run_id: str, count: int) -> List[BenchmarkResult]:
        return [make_result(run_id=run_id, phase=phases[i % 3]) for i in range(count)]

    return _generate

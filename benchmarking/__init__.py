"""Cold/warm latency benchmark engine."""

from benchmarking.phase import BenchmarkCancelled, PhaseOutcome, run_phase
from benchmarking.runner import BenchmarkRunner, resolve_base_uri
from benchmarking.stats import build_result, percentile

__all__ = [
    "BenchmarkCancelled",
    "BenchmarkRunner",
    "PhaseOutcome",
    "build_result",
    "percentile",
    "resolve_base_uri",
    "run_phase",
]

"""Durable storage of benchmark rows.

Rows are partitioned by run id. Each partition is written in chunks of at most
100 rows, the DynamoDB limit for a single transaction, and every chunk is one
all-or-nothing upsert.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence

from models import BenchmarkResult, Phase
from storage.table_adapter import (
    PARTITION_KEY,
    SORT_KEY,
    DynamoDBTableAdapter,
    TransactionOutcome,
)

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 100

_INT_FIELDS = ("sent", "ok", "errors", "concurrency", "cold_calls", "warm_calls")
_FLOAT_FIELDS = (
    "elapsed_seconds", "rps",
    "min_ms", "p50_ms", "avg_ms", "p90_ms", "p99_ms", "max_ms",
)


def _utc(ts: datetime) -> datetime:
    # Stored timestamps are UTC so their ISO strings sort chronologically.
    # Naive values are taken to be UTC already.
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def make_row_key(result: BenchmarkResult) -> str:
    """Build a row key that is unique within the run's partition."""
    ts = _utc(result.timestamp).strftime("%Y%m%d%H%M%S%f")[:-3]
    return f"{result.path}:{result.phase.value}:{ts}:{uuid.uuid4().hex}"


def to_item(result: BenchmarkResult) -> Dict[str, Any]:
    """Map a result to a DynamoDB item, field by field."""
    item: Dict[str, Any] = {
        PARTITION_KEY: result.run_id,
        SORT_KEY: make_row_key(result),
        "timestamp": _utc(result.timestamp).isoformat(),
        "path": result.path,
        "phase": result.phase.value,
        "base_uri": result.base_uri,
        "region": result.region,
    }
    for name in _INT_FIELDS:
        item[name] = getattr(result, name)
    # DynamoDB numbers must be Decimal, not float
    for name in _FLOAT_FIELDS:
        item[name] = Decimal(str(getattr(result, name)))
    return item


def from_item(item: Dict[str, Any]) -> BenchmarkResult:
    """Map a stored DynamoDB item back to a result."""
    values: Dict[str, Any] = {
        "run_id": item[PARTITION_KEY],
        "timestamp": _utc(datetime.fromisoformat(item["timestamp"])),
        "path": item["path"],
        "phase": Phase(item["phase"]),
        "base_uri": item.get("base_uri", ""),
        "region": item.get("region", "unknown"),
    }
    for name in _INT_FIELDS:
        values[name] = int(item.get(name, 0))
    for name in _FLOAT_FIELDS:
        values[name] = float(item.get(name, 0))
    return BenchmarkResult(**values)


def chunk(items: Sequence[Any], size: int) -> Iterator[List[Any]]:
    """Split items into consecutive lists of at most ``size``."""
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


class BenchmarkResultStore:
    """Benchmark result sink and reader backed by a DynamoDB table.

    Attributes:
        adapter: Table adapter performing the DynamoDB calls
    """

    def __init__(self, adapter: DynamoDBTableAdapter):
        self.adapter = adapter

    @property
    def table_name(self) -> str:
        return self.adapter.table_name

    def save_benchmark_results(self, results: Sequence[BenchmarkResult]) -> int:
        """
        Persist a run's rows.

        Args:
            results: Rows to store, any number of run ids

        Returns:
            Number of rows stored

        Raises:
            ClientError: If a chunk fails for any reason other than a missing
                table, or fails again after the table was re-created
        """
        if not results:
            return 0

        self.adapter.create_if_not_exists()

        partitions: Dict[str, List[BenchmarkResult]] = {}
        for result in results:
            partitions.setdefault(result.run_id, []).append(result)

        stored = 0
        for run_id, rows in partitions.items():
            items = [to_item(r) for r in rows]
            for batch in chunk(items, MAX_BATCH_SIZE):
                stored += self._submit(run_id, batch)

        logger.info(f"Stored {stored} benchmark rows into table {self.table_name}")
        return stored

    def _submit(self, run_id: str, batch: List[Dict[str, Any]]) -> int:
        result = self.adapter.submit_transaction(batch)

        if result.outcome == TransactionOutcome.NOT_FOUND:
            # Table may not be visible yet after creation; ensure and try once more
            logger.warning(f"Table {self.table_name} missing for run {run_id}, retrying batch once")
            self.adapter.create_if_not_exists()
            result = self.adapter.submit_transaction(batch)

        if not result.succeeded:
            logger.error(
                f"Failed to store {len(batch)} rows for run {run_id} "
                f"in {self.table_name}: {result.error}"
            )
            raise result.error

        return result.count

    def list_results(self, limit: Optional[int] = None) -> List[BenchmarkResult]:
        """
        Read stored rows, newest first.

        Args:
            limit: Maximum number of rows to return

        Returns:
            Rows ordered by timestamp descending
        """
        results = [from_item(item) for item in self.adapter.scan_items()]
        results.sort(key=lambda r: r.timestamp, reverse=True)
        if limit is not None:
            results = results[:limit]
        return results

    def latest_results(self) -> List[BenchmarkResult]:
        """Rows of each region's most recent run."""
        latest_run: Dict[str, tuple] = {}
        results = self.list_results()

        for r in results:
            current = latest_run.get(r.region)
            if current is None or r.timestamp > current[0]:
                latest_run[r.region] = (r.timestamp, r.run_id)

        return [r for r in results if latest_run[r.region][1] == r.run_id]

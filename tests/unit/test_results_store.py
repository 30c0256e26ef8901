"""
Unit tests for the benchmark result store.

Most tests mock the table adapter to cover batching, partitioning and the
retry/error contract. Timestamp ordering is checked against a moto table.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import Mock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from models import Phase
from storage.results_store import (
    MAX_BATCH_SIZE,
    BenchmarkResultStore,
    chunk,
    from_item,
    make_row_key,
    to_item,
)
from storage.table_adapter import DynamoDBTableAdapter, TransactionOutcome, TransactionResult


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "TransactWriteItems")


def _success(items):
    return TransactionResult(TransactionOutcome.SUCCESS, count=len(items))


@pytest.fixture
def adapter():
    adapter = Mock(spec=DynamoDBTableAdapter)
    adapter.table_name = "BenchmarkResults"
    adapter.submit_transaction.side_effect = _success
    return adapter


@pytest.fixture
def store(adapter):
    return BenchmarkResultStore(adapter)


class TestSaveBenchmarkResults:
    """Tests for BenchmarkResultStore.save_benchmark_results."""

    def test_empty_input_makes_no_calls(self, store, adapter):
        assert store.save_benchmark_results([]) == 0
        assert adapter.method_calls == []

    def test_single_batch(self, store, adapter, generate_results):
        stored = store.save_benchmark_results(generate_results("run-1", 3))

        assert stored == 3
        adapter.create_if_not_exists.assert_called_once()
        adapter.submit_transaction.assert_called_once()

    def test_chunks_at_transaction_limit(self, store, adapter, generate_results):
        stored = store.save_benchmark_results(generate_results("run-1", 205))

        assert stored == 205
        sizes = [len(c.args[0]) for c in adapter.submit_transaction.call_args_list]
        assert sizes == [MAX_BATCH_SIZE, MAX_BATCH_SIZE, 5]
        adapter.create_if_not_exists.assert_called_once()

    def test_batches_never_mix_run_ids(self, store, adapter, generate_results):
        results = generate_results("run-a", 3) + generate_results("run-b", 2) + generate_results("run-a", 1)

        assert store.save_benchmark_results(results) == 6

        batches = [c.args[0] for c in adapter.submit_transaction.call_args_list]
        assert len(batches) == 2
        assert {item["run_id"] for item in batches[0]} == {"run-a"}
        assert len(batches[0]) == 4
        assert {item["run_id"] for item in batches[1]} == {"run-b"}
        assert len(batches[1]) == 2

    def test_missing_table_is_recreated_and_retried_once(self, store, adapter, generate_results):
        missing = TransactionResult(TransactionOutcome.NOT_FOUND, error=_client_error("ResourceNotFoundException"))
        adapter.submit_transaction.side_effect = [missing, TransactionResult(TransactionOutcome.SUCCESS, count=3)]

        stored = store.save_benchmark_results(generate_results("run-1", 3))

        assert stored == 3
        assert adapter.create_if_not_exists.call_count == 2
        assert adapter.submit_transaction.call_count == 2
        first, second = adapter.submit_transaction.call_args_list
        assert first == second

    def test_missing_table_twice_raises(self, store, adapter, generate_results):
        error = _client_error("ResourceNotFoundException")
        adapter.submit_transaction.side_effect = [
            TransactionResult(TransactionOutcome.NOT_FOUND, error=error),
            TransactionResult(TransactionOutcome.NOT_FOUND, error=error),
        ]

        with pytest.raises(ClientError) as exc_info:
            store.save_benchmark_results(generate_results("run-1", 2))

        assert exc_info.value is error
        assert adapter.submit_transaction.call_count == 2

    def test_other_failure_raises_without_retry(self, store, adapter, generate_results):
        error = _client_error("TransactionCanceledException")
        adapter.submit_transaction.side_effect = [TransactionResult(TransactionOutcome.FAILED, error=error)]

        with pytest.raises(ClientError) as exc_info:
            store.save_benchmark_results(generate_results("run-1", 2))

        assert exc_info.value is error
        adapter.submit_transaction.assert_called_once()
        adapter.create_if_not_exists.assert_called_once()

    def test_failure_stops_later_batches(self, store, adapter, generate_results):
        error = _client_error("ValidationException")
        adapter.submit_transaction.side_effect = [
            TransactionResult(TransactionOutcome.SUCCESS, count=100),
            TransactionResult(TransactionOutcome.FAILED, error=error),
        ]

        with pytest.raises(ClientError):
            store.save_benchmark_results(generate_results("run-1", 250))

        assert adapter.submit_transaction.call_count == 2

    def test_row_keys_unique_within_run(self, store, adapter, make_result):
        # Identical path, phase and timestamp still get distinct keys
        results = [make_result() for _ in range(10)]

        store.save_benchmark_results(results)

        items = adapter.submit_transaction.call_args.args[0]
        assert len({item["row_key"] for item in items}) == 10


class TestItemMapping:
    """Tests for the result <-> item mapping."""

    def test_row_key_format(self, make_result):
        key = make_row_key(make_result(path="/p", phase=Phase.COLD))

        assert key.startswith("/p:Cold:20240101123045123:")
        assert len(key.rsplit(":", 1)[1]) == 32

    def test_to_item_fields(self, make_result):
        item = to_item(make_result(rps=12.5, p99_ms=3.25, sent=4, ok=3, errors=1))

        assert item["run_id"] == "r1"
        assert item["phase"] == "Cold"
        assert item["timestamp"] == "2024-01-01T12:30:45.123456+00:00"
        assert item["region"] == "test-region"
        assert item["rps"] == Decimal("12.5")
        assert item["p99_ms"] == Decimal("3.25")
        assert item["sent"] == 4
        assert not any(isinstance(v, float) for v in item.values())

    def test_from_item_restores_result(self, make_result):
        original = make_result(phase=Phase.TOTAL, rps=7.75, sent=5, ok=4, errors=1)

        assert from_item(to_item(original)) == original

    def test_offset_timestamps_stored_as_utc(self, make_result):
        eastern = timezone(timedelta(hours=-5))
        result = make_result(timestamp=datetime(2024, 1, 1, 7, 30, 45, 123456, tzinfo=eastern))

        item = to_item(result)

        assert item["timestamp"] == "2024-01-01T12:30:45.123456+00:00"
        assert item["row_key"].startswith("/p:Cold:20240101123045123:")
        assert from_item(item).timestamp.utcoffset() == timedelta(0)

    def test_naive_stored_timestamp_read_as_utc(self, make_result, run_timestamp):
        item = to_item(make_result())
        item["timestamp"] = "2024-01-01T12:30:45.123456"

        assert from_item(item).timestamp == run_timestamp

    def test_chunk(self):
        assert list(chunk(list(range(5)), 2)) == [[0, 1], [2, 3], [4]]
        assert list(chunk([], 100)) == []


class TestReadResults:
    """Tests for list_results and latest_results."""

    def test_list_results_newest_first(self, store, adapter, make_result, run_timestamp):
        older = make_result(run_id="old", timestamp=run_timestamp - timedelta(hours=1))
        newer = make_result(run_id="new", timestamp=run_timestamp)
        adapter.scan_items.return_value = iter([to_item(older), to_item(newer)])

        results = store.list_results()

        assert [r.run_id for r in results] == ["new", "old"]

    def test_list_results_limit(self, store, adapter, make_result, run_timestamp):
        adapter.scan_items.return_value = iter([
            to_item(make_result(run_id=f"run-{i}", timestamp=run_timestamp + timedelta(minutes=i)))
            for i in range(5)
        ])

        results = store.list_results(limit=2)

        assert [r.run_id for r in results] == ["run-4", "run-3"]

    def test_latest_results_one_run_per_region(self, store, adapter, make_result, run_timestamp):
        rows = [
            make_result(run_id="eu-old", region="westeurope", timestamp=run_timestamp - timedelta(days=1)),
            make_result(run_id="eu-new", region="westeurope", timestamp=run_timestamp, phase=Phase.COLD),
            make_result(run_id="eu-new", region="westeurope", timestamp=run_timestamp, phase=Phase.WARM),
            make_result(run_id="us-only", region="eastus", timestamp=run_timestamp - timedelta(days=2)),
        ]
        adapter.scan_items.return_value = iter([to_item(r) for r in rows])

        latest = store.latest_results()

        assert sorted((r.region, r.run_id, r.phase.value) for r in latest) == [
            ("eastus", "us-only", "Cold"),
            ("westeurope", "eu-new", "Cold"),
            ("westeurope", "eu-new", "Warm"),
        ]

    def test_latest_results_empty_table(self, store, adapter):
        adapter.scan_items.return_value = iter([])
        assert store.latest_results() == []


def test_table_name_comes_from_adapter(store):
    assert store.table_name == "BenchmarkResults"


class TestStoredTimestampOrdering:
    """Round trip through a moto table with rows written in different offsets."""

    @pytest.fixture
    def table_store(self, aws_credentials):
        with mock_aws():
            client = boto3.client("dynamodb", region_name="us-east-1")
            yield BenchmarkResultStore(DynamoDBTableAdapter("test-benchmarks", client=client))

    def test_mixed_offsets_read_back_in_time_order(self, table_store, make_result):
        tokyo = timezone(timedelta(hours=9))
        pacific = timezone(timedelta(hours=-8))
        rows = [
            # 03:00 UTC
            make_result(run_id="tokyo", timestamp=datetime(2024, 1, 1, 12, 0, tzinfo=tokyo)),
            # 05:00 UTC
            make_result(run_id="utc", timestamp=datetime(2024, 1, 1, 5, 0, tzinfo=timezone.utc)),
            # 08:00 UTC, earliest wall-clock digits of the three
            make_result(run_id="pacific", timestamp=datetime(2024, 1, 1, 0, 0, tzinfo=pacific)),
        ]

        table_store.save_benchmark_results(rows)
        results = table_store.list_results()

        assert [r.run_id for r in results] == ["pacific", "utc", "tokyo"]
        assert all(r.timestamp.utcoffset() == timedelta(0) for r in results)

        stored = sorted(item["timestamp"] for item in table_store.adapter.scan_items())
        assert stored == [
            "2024-01-01T03:00:00+00:00",
            "2024-01-01T05:00:00+00:00",
            "2024-01-01T08:00:00+00:00",
        ]

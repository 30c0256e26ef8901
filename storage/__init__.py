"""DynamoDB persistence for benchmark results."""

from storage.results_store import BenchmarkResultStore, MAX_BATCH_SIZE
from storage.table_adapter import (
    DynamoDBTableAdapter,
    TransactionOutcome,
    TransactionResult,
    create_table_adapter,
)

__all__ = [
    "BenchmarkResultStore",
    "DynamoDBTableAdapter",
    "MAX_BATCH_SIZE",
    "TransactionOutcome",
    "TransactionResult",
    "create_table_adapter",
]

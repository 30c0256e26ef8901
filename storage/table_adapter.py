"""DynamoDB table access for benchmark rows.

DynamoDB Schema:
- Table: BenchmarkResults (configurable via BENCHMARK_TABLE)
- Partition key: run_id (STRING)
- Sort key: row_key (STRING) - Format: {path}:{phase}:{timestamp}:{suffix}
- Billing: PAY_PER_REQUEST

Transactions are TransactWriteItems calls of Update actions, so every row is
an upsert that merges attributes into any existing item with the same key.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError

from app.config import get_config

logger = logging.getLogger(__name__)

PARTITION_KEY = "run_id"
SORT_KEY = "row_key"

# DynamoDB error codes meaning the table is absent or not yet visible
_TABLE_MISSING_CODES = {"ResourceNotFoundException"}


class TransactionOutcome(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class TransactionResult:
    """Result of one batch submission."""
    outcome: TransactionOutcome
    count: int = 0
    error: Optional[ClientError] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == TransactionOutcome.SUCCESS


class DynamoDBTableAdapter:
    """Thin wrapper over the DynamoDB client for one benchmark table.

    Attributes:
        table_name: Name of the DynamoDB table
        client: Low-level boto3 DynamoDB client
    """

    def __init__(
        self,
        table_name: str,
        client: Optional[Any] = None,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        """Initialize the adapter.

        Args:
            table_name: Name of the DynamoDB table for benchmark rows
            client: Pre-built DynamoDB client (one is created if None)
            region_name: AWS region name (uses default if None)
            endpoint_url: Override endpoint, e.g. DynamoDB Local
        """
        self.table_name = table_name
        if client is None:
            kwargs = {}
            if region_name:
                kwargs["region_name"] = region_name
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("dynamodb", **kwargs)
        self.client = client
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def create_if_not_exists(self) -> None:
        """Create the table if it does not exist and wait until it is active."""
        try:
            self.client.create_table(
                TableName=self.table_name,
                KeySchema=[
                    {"AttributeName": PARTITION_KEY, "KeyType": "HASH"},
                    {"AttributeName": SORT_KEY, "KeyType": "RANGE"},
                ],
                AttributeDefinitions=[
                    {"AttributeName": PARTITION_KEY, "AttributeType": "S"},
                    {"AttributeName": SORT_KEY, "AttributeType": "S"},
                ],
                BillingMode="PAY_PER_REQUEST",
            )
            logger.info(f"Created DynamoDB table {self.table_name}")
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceInUseException":
                raise
            logger.debug(f"DynamoDB table {self.table_name} already exists")

        waiter = self.client.get_waiter("table_exists")
        waiter.wait(TableName=self.table_name, WaiterConfig={"Delay": 1, "MaxAttempts": 30})

    def submit_transaction(self, items: List[Dict[str, Any]]) -> TransactionResult:
        """Upsert-merge a batch of items as a single all-or-nothing transaction.

        Args:
            items: Items keyed by run_id and row_key; values are plain Python
                types (numbers as int or Decimal)

        Returns:
            TransactionResult. NOT_FOUND means the table is missing; FAILED
            carries the underlying ClientError.
        """
        actions = [{"Update": self._update_action(item)} for item in items]

        try:
            self.client.transact_write_items(TransactItems=actions)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _TABLE_MISSING_CODES:
                logger.warning(f"DynamoDB table {self.table_name} not found during transaction")
                return TransactionResult(TransactionOutcome.NOT_FOUND, error=e)
            return TransactionResult(TransactionOutcome.FAILED, error=e)

        return TransactionResult(TransactionOutcome.SUCCESS, count=len(actions))

    def scan_items(self) -> Iterator[Dict[str, Any]]:
        """Yield every item in the table as plain Python values."""
        paginator = self.client.get_paginator("scan")
        for page in paginator.paginate(TableName=self.table_name):
            for raw in page.get("Items", []):
                yield {k: self._deserializer.deserialize(v) for k, v in raw.items()}

    def _update_action(self, item: Dict[str, Any]) -> Dict[str, Any]:
        key = {
            PARTITION_KEY: self._serializer.serialize(item[PARTITION_KEY]),
            SORT_KEY: self._serializer.serialize(item[SORT_KEY]),
        }

        names = {}
        values = {}
        assignments = []
        attributes = [k for k in item if k not in (PARTITION_KEY, SORT_KEY)]
        for i, attr in enumerate(attributes):
            names[f"#a{i}"] = attr
            values[f":v{i}"] = self._serializer.serialize(item[attr])
            assignments.append(f"#a{i} = :v{i}")

        return {
            "TableName": self.table_name,
            "Key": key,
            "UpdateExpression": "SET " + ", ".join(assignments),
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
        }


def create_table_adapter(table_name: Optional[str] = None) -> DynamoDBTableAdapter:
    """Build an adapter from the storage configuration."""
    storage = get_config().storage()
    return DynamoDBTableAdapter(
        table_name=table_name or storage.table_name,
        region_name=storage.region_name,
        endpoint_url=storage.endpoint_url,
    )

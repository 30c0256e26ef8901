"""
Storage configuration shared by the benchmark runner and the results API.

Inside Lambda, every parameter under the ``/coldstart`` prefix of AWS Systems
Manager Parameter Store is loaded once, on first use. Outside Lambda (local
runs, CI, tests) only environment variables are consulted. Environment
variables also fill any key missing from Parameter Store.
"""

import os
import logging
import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "BenchmarkResults"
DEFAULT_REGION = "us-east-1"


class ConfigError(Exception):
    """Raised when configuration cannot be loaded."""
    pass


@dataclass(frozen=True)
class StorageConfig:
    """Where benchmark rows live."""
    table_name: str
    region_name: str
    endpoint_url: Optional[str] = None


class Config:
    """
    Key lookup over Parameter Store with environment variable fallback.

    Usage:
        config = Config()
        storage = config.storage()
        table = config.get("BENCHMARK_TABLE", DEFAULT_TABLE_NAME)
    """

    def __init__(self, parameter_prefix: str = "/coldstart", use_local: Optional[bool] = None):
        """
        Args:
            parameter_prefix: Parameter Store path holding the keys
            use_local: Skip Parameter Store entirely. Auto-detected from
                AWS_LAMBDA_FUNCTION_NAME when None.
        """
        self.parameter_prefix = parameter_prefix.rstrip("/")
        if use_local is None:
            use_local = os.getenv("AWS_LAMBDA_FUNCTION_NAME") is None
        self.use_local = use_local

        self._lock = threading.Lock()
        self._parameters: Optional[Dict[str, str]] = None
        self._ssm_client = None

    def get(self, key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
        """
        Resolve a key: Parameter Store, then environment, then default.

        Raises:
            ConfigError: If required and nothing resolves the key
        """
        value = self._parameter_values().get(key)
        if value is None:
            value = os.getenv(key, default)

        if value is None and required:
            raise ConfigError(f"Required configuration key '{key}' not found")
        return value

    def storage(self) -> StorageConfig:
        """DynamoDB table settings for benchmark rows."""
        return StorageConfig(
            table_name=self.get("BENCHMARK_TABLE", DEFAULT_TABLE_NAME),
            region_name=self.get("AWS_REGION", DEFAULT_REGION),
            endpoint_url=self.get("DYNAMODB_ENDPOINT_URL") or None,
        )

    def reload(self) -> None:
        """Drop loaded parameters so the next lookup fetches them again."""
        with self._lock:
            self._parameters = None
        logger.info("Configuration parameters will be reloaded")

    def _parameter_values(self) -> Dict[str, str]:
        if self.use_local:
            return {}

        with self._lock:
            if self._parameters is None:
                self._parameters = self._load_parameters()
            return self._parameters

    def _load_parameters(self) -> Dict[str, str]:
        prefix = f"{self.parameter_prefix}/"
        try:
            if self._ssm_client is None:
                self._ssm_client = boto3.client("ssm")
            paginator = self._ssm_client.get_paginator("get_parameters_by_path")
            values = {}
            for page in paginator.paginate(Path=prefix, WithDecryption=True):
                for parameter in page.get("Parameters", []):
                    values[parameter["Name"][len(prefix):]] = parameter["Value"]
        except (BotoCoreError, ClientError) as e:
            # Not fatal: the environment still supplies every key
            logger.warning(f"Could not load parameters under {prefix}, using environment only: {e}")
            return {}

        logger.info(f"Loaded {len(values)} parameters from {prefix}")
        return values


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Process-wide Config instance."""
    return Config()

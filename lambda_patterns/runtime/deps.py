# =============================================================================
# Dependency Container
# =============================================================================
# Provides lazy-loaded AWS clients to processors. One container lives on each
# execution environment, so clients created during a cold start are reused by
# every warm invocation that follows.
# =============================================================================

import logging
import os
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.environ.get(key, default))
    except ValueError:
        logger.warning(f"Ignoring non-integer {key}={os.environ.get(key)!r}")
        return default


@dataclass
class Deps:
    """
    Lazy AWS client container.

    All clients are created on first access and cached by service name.

    Usage:
        def process(handler):
            handler.deps.s3.put_object(Bucket="...", Key="...", Body=b"...")
            table = handler.deps.dynamodb.Table("orders")
    """
    region: str = field(default_factory=lambda: os.environ.get("AWS_REGION", DEFAULT_REGION))
    _clients: Dict[str, Any] = field(default_factory=dict, repr=False)

    @cached_property
    def client_config(self) -> Config:
        """Shared botocore config for every client in this container."""
        return Config(
            region_name=self.region,
            retries={
                "max_attempts": _env_int("LAMBDA_PATTERNS_AWS_MAX_ATTEMPTS", 3),
                "mode": "standard",
            },
            connect_timeout=_env_int("LAMBDA_PATTERNS_AWS_CONNECT_TIMEOUT", 5),
            read_timeout=_env_int("LAMBDA_PATTERNS_AWS_READ_TIMEOUT", 30),
        )

    def client(self, service: str) -> Any:
        """Get (or create) a boto3 client for a service."""
        if service not in self._clients:
            logger.debug(f"Creating boto3 client for {service}")
            self._clients[service] = boto3.client(service, config=self.client_config)
        return self._clients[service]

    def resource(self, service: str) -> Any:
        """Get (or create) a boto3 resource for a service."""
        key = f"resource_{service}"
        if key not in self._clients:
            logger.debug(f"Creating boto3 resource for {service}")
            self._clients[key] = boto3.resource(service, config=self.client_config)
        return self._clients[key]

    @property
    def s3(self):
        return self.client("s3")

    @property
    def sqs(self):
        return self.client("sqs")

    @property
    def sns(self):
        return self.client("sns")

    @property
    def secretsmanager(self):
        return self.client("secretsmanager")

    @property
    def dynamodb(self):
        """DynamoDB resource."""
        return self.resource("dynamodb")

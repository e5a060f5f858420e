"""
Client construction for the buffer and the store.

Called once by each process's startup routine; the resulting handles are
passed explicitly into the normalizer and the worker.
"""

from typing import Any, Optional

import boto3
import structlog

from ..config import BufferSettings, ProcessingSettings, StoreSettings
from .buffer import InMemoryBuffer, MessageBuffer, SQSBuffer
from .exceptions import ConfigurationMissingError
from .scheduler import ProcessingScheduler
from .store import DynamoDBStore, InMemoryStore, RecordStore

logger = structlog.get_logger(__name__)

# Matches the SQS queue default
MEMORY_VISIBILITY_TIMEOUT_SECONDS = 30


def _aws_client(service: str, region: Optional[str], endpoint_url: Optional[str]) -> Any:
    kwargs = {}
    if region:
        kwargs["region_name"] = region
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    return boto3.client(service, **kwargs)


def build_buffer(settings: BufferSettings) -> Optional[MessageBuffer]:
    """
    Build the configured buffer, or None when no target is configured.

    A missing target is not fatal here: the normalizer reports it as a
    server error on every request.
    """
    if settings.backend == "memory":
        visibility = settings.visibility_timeout_seconds
        if visibility is None:
            visibility = MEMORY_VISIBILITY_TIMEOUT_SECONDS
        logger.info("Using in-memory buffer", visibility_timeout_seconds=visibility)
        return InMemoryBuffer(visibility_timeout_seconds=visibility)

    if not settings.is_configured:
        logger.error("Buffer target not configured", backend=settings.backend)
        return None

    client = _aws_client("sqs", settings.region, settings.endpoint_url)
    return SQSBuffer(
        client=client,
        queue_url=settings.queue_url,
        wait_time_seconds=settings.wait_time_seconds,
        visibility_timeout_seconds=settings.visibility_timeout_seconds,
    )


def build_store(settings: StoreSettings) -> RecordStore:
    """Build the configured store. Raises ConfigurationMissingError without a target."""
    if settings.backend == "memory":
        logger.info("Using in-memory store")
        return InMemoryStore()

    if not settings.is_configured:
        raise ConfigurationMissingError("store.table_name")

    client = _aws_client("dynamodb", settings.region, settings.endpoint_url)
    return DynamoDBStore(client=client, table_name=settings.table_name)


def build_scheduler(settings: ProcessingSettings) -> ProcessingScheduler:
    return ProcessingScheduler(
        ms_per_char=settings.ms_per_char,
        max_delay_ms=settings.max_delay_ms,
    )

"""
Processed record stores.

Writes are upserts keyed by (tenant_id, log_id): processing the same
envelope twice overwrites the earlier record instead of duplicating it.
- DynamoDBStore: DynamoDB table through boto3
- InMemoryStore: dict-backed store for development and tests
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..models.envelope import ProcessedRecord
from .exceptions import StoreWriteError

logger = structlog.get_logger(__name__)


class RecordStore(ABC):
    """Key-value table of processed records."""

    backend = "abstract"

    @abstractmethod
    async def put(self, record: ProcessedRecord) -> None:
        """Upsert ``record`` under its (tenant_id, log_id) key."""

    @abstractmethod
    async def get(self, tenant_id: str, log_id: str) -> Optional[ProcessedRecord]:
        """Fetch a record, or None when absent."""

    async def check(self) -> Dict[str, Any]:
        """Readiness probe. Raises when the store is unreachable."""
        return {"backend": self.backend}


class DynamoDBStore(RecordStore):
    """
    DynamoDB-backed store. The table's key schema is
    ``tenant_id`` (partition) + ``log_id`` (sort).
    """

    backend = "dynamodb"

    def __init__(self, client: Any, table_name: str) -> None:
        self.client = client
        self.table_name = table_name

        logger.info("DynamoDB store initialized", table_name=table_name)

    async def put(self, record: ProcessedRecord) -> None:
        try:
            await asyncio.to_thread(
                self.client.put_item,
                TableName=self.table_name,
                Item=record.to_item(),
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "DynamoDB put_item failed",
                table_name=self.table_name,
                log_id=record.log_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StoreWriteError(
                "Failed to persist processed record",
                details={"log_id": record.log_id, "error_type": type(e).__name__},
            ) from e

    async def get(self, tenant_id: str, log_id: str) -> Optional[ProcessedRecord]:
        response = await asyncio.to_thread(
            self.client.get_item,
            TableName=self.table_name,
            Key={"tenant_id": {"S": tenant_id}, "log_id": {"S": log_id}},
        )
        item = response.get("Item")
        if not item:
            return None
        return ProcessedRecord.from_item(item)

    async def check(self) -> Dict[str, Any]:
        response = await asyncio.to_thread(
            self.client.describe_table,
            TableName=self.table_name,
        )
        return {
            "backend": self.backend,
            "table_name": self.table_name,
            "table_status": response.get("Table", {}).get("TableStatus", "UNKNOWN"),
        }


class InMemoryStore(RecordStore):
    """Dict-backed store; put replaces any record under the same key."""

    backend = "memory"

    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], ProcessedRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def put(self, record: ProcessedRecord) -> None:
        self._records[record.key] = record

    async def get(self, tenant_id: str, log_id: str) -> Optional[ProcessedRecord]:
        return self._records.get((tenant_id, log_id))

    async def check(self) -> Dict[str, Any]:
        return {"backend": self.backend, "records": len(self._records)}

"""
Buffer clients.

The buffer is a durable, at-least-once queue of opaque text payloads
(JSON-serialized envelopes). Two backends:
- SQSBuffer: Amazon SQS through boto3
- InMemoryBuffer: process-local queue for development and tests
"""

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Tuple

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import BufferWriteError

logger = structlog.get_logger(__name__)

SQS_MAX_MESSAGES = 10


@dataclass(frozen=True)
class BufferMessage:
    """One delivered copy of a buffered payload."""
    message_id: str
    body: str
    receipt_handle: Optional[str] = None
    receive_count: int = 1


class MessageBuffer(ABC):
    """Contract consumed by the normalizer (send) and the worker (receive/acknowledge)."""

    backend = "abstract"

    @abstractmethod
    async def send(self, body: str) -> str:
        """Append one payload and return its message id."""

    @abstractmethod
    async def receive(self, max_messages: int = SQS_MAX_MESSAGES) -> List[BufferMessage]:
        """Lease up to ``max_messages`` payloads."""

    @abstractmethod
    async def acknowledge(self, message: BufferMessage) -> None:
        """Mark a delivered message as done so it is not redelivered."""

    async def check(self) -> Dict[str, Any]:
        """Readiness probe. Raises when the buffer is unreachable."""
        return {"backend": self.backend}


class SQSBuffer(MessageBuffer):
    """
    Amazon SQS buffer.

    boto3 is synchronous, so every call runs in a worker thread.
    Redelivery of unacknowledged messages is left to the queue's
    visibility timeout and redrive policy.
    """

    backend = "sqs"

    def __init__(
        self,
        client: Any,
        queue_url: str,
        wait_time_seconds: int = 20,
        visibility_timeout_seconds: Optional[int] = None,
    ) -> None:
        self.client = client
        self.queue_url = queue_url
        self.wait_time_seconds = wait_time_seconds
        self.visibility_timeout_seconds = visibility_timeout_seconds

        logger.info("SQS buffer initialized", queue_url=queue_url)

    async def send(self, body: str) -> str:
        try:
            response = await asyncio.to_thread(
                self.client.send_message,
                QueueUrl=self.queue_url,
                MessageBody=body,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "SQS send_message failed",
                queue_url=self.queue_url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise BufferWriteError(
                "Failed to write message to buffer",
                details={"error_type": type(e).__name__},
            ) from e

        message_id: str = response["MessageId"]
        logger.debug("Message sent to SQS", message_id=message_id)
        return message_id

    async def receive(self, max_messages: int = SQS_MAX_MESSAGES) -> List[BufferMessage]:
        params: Dict[str, Any] = {
            "QueueUrl": self.queue_url,
            "MaxNumberOfMessages": max(1, min(max_messages, SQS_MAX_MESSAGES)),
            "WaitTimeSeconds": self.wait_time_seconds,
            "AttributeNames": ["ApproximateReceiveCount"],
        }
        if self.visibility_timeout_seconds is not None:
            params["VisibilityTimeout"] = self.visibility_timeout_seconds

        response = await asyncio.to_thread(self.client.receive_message, **params)

        messages = []
        for raw in response.get("Messages", []):
            attributes = raw.get("Attributes", {})
            messages.append(BufferMessage(
                message_id=raw["MessageId"],
                body=raw["Body"],
                receipt_handle=raw["ReceiptHandle"],
                receive_count=int(attributes.get("ApproximateReceiveCount", 1)),
            ))
        return messages

    async def acknowledge(self, message: BufferMessage) -> None:
        await asyncio.to_thread(
            self.client.delete_message,
            QueueUrl=self.queue_url,
            ReceiptHandle=message.receipt_handle,
        )

    async def check(self) -> Dict[str, Any]:
        response = await asyncio.to_thread(
            self.client.get_queue_attributes,
            QueueUrl=self.queue_url,
            AttributeNames=["ApproximateNumberOfMessages"],
        )
        attributes = response.get("Attributes", {})
        return {
            "backend": self.backend,
            "queue_url": self.queue_url,
            "approximate_messages": int(attributes.get("ApproximateNumberOfMessages", 0)),
        }


class InMemoryBuffer(MessageBuffer):
    """
    Process-local buffer with at-least-once semantics.

    Received messages stay in flight until acknowledged. They return to
    the head of the queue when ``visibility_timeout_seconds`` elapses
    (checked on each receive) or on ``release_unacknowledged``.
    Operations never await, so each one is atomic on the event loop.
    """

    backend = "memory"

    def __init__(self, visibility_timeout_seconds: Optional[float] = None) -> None:
        self.visibility_timeout_seconds = visibility_timeout_seconds
        self._pending: Deque[Tuple[str, str, int]] = deque()
        self._in_flight: Dict[str, Tuple[str, str, int]] = {}
        self._leased_at: Dict[str, float] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def send(self, body: str) -> str:
        message_id = str(uuid.uuid4())
        self._pending.append((message_id, body, 0))
        return message_id

    async def receive(self, max_messages: int = SQS_MAX_MESSAGES) -> List[BufferMessage]:
        self._release_expired()

        messages = []
        while self._pending and len(messages) < max_messages:
            message_id, body, count = self._pending.popleft()
            receipt_handle = str(uuid.uuid4())
            self._in_flight[receipt_handle] = (message_id, body, count + 1)
            self._leased_at[receipt_handle] = time.monotonic()
            messages.append(BufferMessage(
                message_id=message_id,
                body=body,
                receipt_handle=receipt_handle,
                receive_count=count + 1,
            ))
        return messages

    async def acknowledge(self, message: BufferMessage) -> None:
        if message.receipt_handle is not None:
            self._in_flight.pop(message.receipt_handle, None)
            self._leased_at.pop(message.receipt_handle, None)

    def release_unacknowledged(self) -> int:
        """Return every in-flight message to the queue; returns how many."""
        return self._release(list(self._in_flight))

    def _release_expired(self) -> int:
        if self.visibility_timeout_seconds is None:
            return 0
        deadline = time.monotonic() - self.visibility_timeout_seconds
        expired = [handle for handle, leased in self._leased_at.items() if leased <= deadline]
        return self._release(expired)

    def _release(self, receipt_handles: List[str]) -> int:
        released = [self._in_flight.pop(handle) for handle in receipt_handles]
        for handle in receipt_handles:
            self._leased_at.pop(handle, None)
        self._pending.extendleft(reversed(released))
        if released:
            logger.debug("Released unacknowledged messages", count=len(released))
        return len(released)

    async def check(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "pending": self.pending_count,
            "in_flight": self.in_flight_count,
        }

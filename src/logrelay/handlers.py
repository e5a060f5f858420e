"""
AWS Lambda adapters.

- api_handler: API Gateway proxy event -> Normalizer -> 202/400/500
- worker_handler: SQS event -> Worker -> partial batch response

Clients are built once per execution environment by ``get_runtime`` and
reused across invocations.
"""

import asyncio
import base64
import json
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

import structlog

from .config import get_settings
from .core.buffer import BufferMessage, MessageBuffer
from .core.clients import build_buffer, build_scheduler, build_store
from .core.exceptions import LogRelayException
from .core.normalizer import Normalizer
from .core.worker import Worker
from .logging_setup import configure_logging
from .models.envelope import InboundRequest

logger = structlog.get_logger(__name__)


class Runtime:
    """Process-lifetime handles for one Lambda execution environment."""

    def __init__(self, buffer: Optional[MessageBuffer], normalizer: Normalizer, worker_factory: Callable[[], Worker]) -> None:
        self.buffer = buffer
        self.normalizer = normalizer
        self._worker_factory = worker_factory
        self._worker: Optional[Worker] = None

    @property
    def worker(self) -> Worker:
        # The store is only needed by the worker function
        if self._worker is None:
            self._worker = self._worker_factory()
        return self._worker


@lru_cache()
def get_runtime() -> Runtime:
    """Build clients from settings on first use."""
    settings = get_settings()
    configure_logging(settings.log_level, json_output=True)

    buffer = build_buffer(settings.buffer)

    def worker_factory() -> Worker:
        # Lambda deletes successful records itself, so no buffer is attached
        return Worker(
            store=build_store(settings.store),
            scheduler=build_scheduler(settings.processing),
            redaction_marker=settings.processing.redaction_marker,
        )

    return Runtime(
        buffer=buffer,
        normalizer=Normalizer(buffer=buffer),
        worker_factory=worker_factory,
    )


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    if isinstance(body, str):
        return {"statusCode": status_code, "body": body}
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def api_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """API Gateway proxy handler for log submissions."""
    headers = event.get("headers") or {}
    body = event.get("body")
    if body is not None and event.get("isBase64Encoded"):
        body = base64.b64decode(body)

    request = InboundRequest(content_type="", headers=headers, body=body)
    request.content_type = request.header("content-type")

    try:
        envelope = asyncio.run(get_runtime().normalizer.submit(request))
    except LogRelayException as e:
        if e.is_client_error:
            return _response(e.status_code, str(e))
        return _response(500, "Internal Server Error")
    except Exception as e:
        logger.error(
            "API Error",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return _response(500, "Internal Server Error")

    return _response(202, {"message": "Accepted", "log_id": envelope.log_id})


def worker_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, List[Dict[str, str]]]:
    """
    SQS event handler.

    Returns the partial batch response so only failed records are
    redelivered (requires ReportBatchItemFailures on the event source
    mapping).
    """
    messages = [
        BufferMessage(
            message_id=record["messageId"],
            body=record["body"],
            receipt_handle=record.get("receiptHandle"),
            receive_count=int(record.get("attributes", {}).get("ApproximateReceiveCount", 1)),
        )
        for record in event.get("Records", [])
    ]

    result = asyncio.run(get_runtime().worker.process_batch(messages))
    return result.to_batch_item_failures()

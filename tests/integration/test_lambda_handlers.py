"""
Integration tests for the AWS Lambda adapters.
"""

import asyncio
import base64
import json
from datetime import datetime, timezone
from typing import Any, Dict, Generator
from unittest.mock import patch

import pytest

from logrelay.core.buffer import InMemoryBuffer
from logrelay.core.normalizer import Normalizer
from logrelay.core.scheduler import ProcessingScheduler
from logrelay.core.store import InMemoryStore
from logrelay.core.worker import Worker
from logrelay.handlers import Runtime, api_handler, worker_handler
from logrelay.models.envelope import Envelope, Source

INGESTED_AT = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def runtime(buffer: InMemoryBuffer, store: InMemoryStore, scheduler: ProcessingScheduler) -> Generator[Runtime, None, None]:
    runtime = Runtime(
        buffer=buffer,
        normalizer=Normalizer(buffer=buffer),
        worker_factory=lambda: Worker(store=store, scheduler=scheduler),
    )
    with patch("logrelay.handlers.get_runtime", return_value=runtime):
        yield runtime


def sqs_record(message_id: str, body: str, receive_count: int = 1) -> Dict[str, Any]:
    return {
        "messageId": message_id,
        "receiptHandle": f"rh-{message_id}",
        "body": body,
        "attributes": {"ApproximateReceiveCount": str(receive_count)},
    }


class TestApiHandler:
    """Test the API Gateway proxy handler."""

    def test_json_accepted(self, runtime: Runtime, buffer: InMemoryBuffer) -> None:
        event = {
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"tenant_id": "t1", "text": "call 555-1234"}),
        }

        response = api_handler(event, None)

        assert response["statusCode"] == 202
        body = json.loads(response["body"])
        assert body["message"] == "Accepted"
        [message] = asyncio.run(buffer.receive())
        assert Envelope.from_payload(message.body).log_id == body["log_id"]

    def test_text_accepted_with_lowercase_headers(self, runtime: Runtime, buffer: InMemoryBuffer) -> None:
        event = {
            "headers": {"content-type": "text/plain", "x-tenant-id": "t2"},
            "body": "hello",
        }

        response = api_handler(event, None)

        assert response["statusCode"] == 202
        [message] = asyncio.run(buffer.receive())
        envelope = Envelope.from_payload(message.body)
        assert envelope.tenant_id == "t2"
        assert envelope.source is Source.TEXT_UPLOAD

    def test_base64_body(self, runtime: Runtime, buffer: InMemoryBuffer) -> None:
        event = {
            "headers": {"Content-Type": "text/plain", "X-Tenant-ID": "t2"},
            "body": base64.b64encode(b"hello").decode("ascii"),
            "isBase64Encoded": True,
        }

        response = api_handler(event, None)

        assert response["statusCode"] == 202
        [message] = asyncio.run(buffer.receive())
        assert Envelope.from_payload(message.body).text == "hello"

    def test_unsupported_content_type(self, runtime: Runtime) -> None:
        response = api_handler({"headers": {"Content-Type": "application/xml"}, "body": "<x/>"}, None)

        assert response == {"statusCode": 400, "body": "Unsupported Content-Type"}

    def test_missing_headers(self, runtime: Runtime) -> None:
        response = api_handler({"body": "hello"}, None)

        assert response == {"statusCode": 400, "body": "Unsupported Content-Type"}

    def test_missing_fields(self, runtime: Runtime) -> None:
        event = {"headers": {"Content-Type": "application/json"}, "body": json.dumps({"tenant_id": "t1"})}

        response = api_handler(event, None)

        assert response == {"statusCode": 400, "body": "Missing tenant_id or text content"}

    @pytest.mark.parametrize("event", [
        {"headers": {"Content-Type": "text/plain", "X-Tenant-ID": "t2"}, "body": "hello"},
        {"headers": {"Content-Type": "application/xml"}, "body": "<x/>"},
    ])
    def test_unconfigured_buffer(self, event: Dict[str, Any]) -> None:
        runtime = Runtime(buffer=None, normalizer=Normalizer(buffer=None), worker_factory=lambda: None)

        with patch("logrelay.handlers.get_runtime", return_value=runtime):
            response = api_handler(event, None)

        assert response == {"statusCode": 500, "body": "Internal Server Error"}


class TestWorkerHandler:
    """Test the SQS event handler."""

    def test_batch_is_persisted(self, runtime: Runtime, store: InMemoryStore) -> None:
        envelope = Envelope(
            tenant_id="t2", log_id="log-1", text="hello", source=Source.TEXT_UPLOAD, ingested_at=INGESTED_AT
        )

        response = worker_handler({"Records": [sqs_record("m-1", envelope.to_payload())]}, None)

        assert response == {"batchItemFailures": []}
        record = asyncio.run(store.get("t2", "log-1"))
        assert record.processing_time_ms == 250
        assert record.modified_text == "hello"

    def test_partial_failure_reported(self, runtime: Runtime, store: InMemoryStore) -> None:
        good = Envelope(
            tenant_id="t1",
            log_id="log-1",
            text="call 555-1234",
            source=Source.JSON_UPLOAD,
            ingested_at=INGESTED_AT,
        )
        event = {
            "Records": [
                sqs_record("m-1", "not json"),
                sqs_record("m-2", good.to_payload(), receive_count=2),
            ]
        }

        response = worker_handler(event, None)

        assert response == {"batchItemFailures": [{"itemIdentifier": "m-1"}]}
        assert asyncio.run(store.get("t1", "log-1")).modified_text == "call [REDACTED]"

    def test_empty_event(self, runtime: Runtime) -> None:
        assert worker_handler({}, None) == {"batchItemFailures": []}

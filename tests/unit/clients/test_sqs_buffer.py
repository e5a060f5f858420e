"""
Tests for the SQS buffer client and buffer construction.
"""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from logrelay.config import BufferSettings
from logrelay.core.buffer import BufferMessage, InMemoryBuffer, SQSBuffer
from logrelay.core.clients import MEMORY_VISIBILITY_TIMEOUT_SECONDS, build_buffer
from logrelay.core.exceptions import BufferWriteError

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/logs"


@pytest.fixture
def sqs_client() -> MagicMock:
    client = MagicMock()
    client.send_message.return_value = {"MessageId": "msg-1"}
    return client


class TestSQSBuffer:
    """Test SQS API calls made by the buffer."""

    @pytest.mark.asyncio
    async def test_send(self, sqs_client: MagicMock) -> None:
        buffer = SQSBuffer(client=sqs_client, queue_url=QUEUE_URL)

        message_id = await buffer.send('{"a": 1}')

        assert message_id == "msg-1"
        sqs_client.send_message.assert_called_once_with(QueueUrl=QUEUE_URL, MessageBody='{"a": 1}')

    @pytest.mark.asyncio
    async def test_send_client_error(self, sqs_client: MagicMock) -> None:
        sqs_client.send_message.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "SendMessage"
        )
        buffer = SQSBuffer(client=sqs_client, queue_url=QUEUE_URL)

        with pytest.raises(BufferWriteError) as exc_info:
            await buffer.send("x")

        assert exc_info.value.status_code == 500
        assert exc_info.value.details["error_type"] == "ClientError"

    @pytest.mark.asyncio
    async def test_send_connection_error(self, sqs_client: MagicMock) -> None:
        sqs_client.send_message.side_effect = EndpointConnectionError(endpoint_url=QUEUE_URL)
        buffer = SQSBuffer(client=sqs_client, queue_url=QUEUE_URL)

        with pytest.raises(BufferWriteError):
            await buffer.send("x")

    @pytest.mark.asyncio
    async def test_receive(self, sqs_client: MagicMock) -> None:
        sqs_client.receive_message.return_value = {
            "Messages": [
                {
                    "MessageId": "m-1",
                    "Body": "first",
                    "ReceiptHandle": "rh-1",
                    "Attributes": {"ApproximateReceiveCount": "3"},
                },
                {"MessageId": "m-2", "Body": "second", "ReceiptHandle": "rh-2"},
            ]
        }
        buffer = SQSBuffer(client=sqs_client, queue_url=QUEUE_URL, wait_time_seconds=5, visibility_timeout_seconds=60)

        messages = await buffer.receive(max_messages=25)

        assert messages == [
            BufferMessage(message_id="m-1", body="first", receipt_handle="rh-1", receive_count=3),
            BufferMessage(message_id="m-2", body="second", receipt_handle="rh-2", receive_count=1),
        ]
        sqs_client.receive_message.assert_called_once_with(
            QueueUrl=QUEUE_URL,
            MaxNumberOfMessages=10,
            WaitTimeSeconds=5,
            AttributeNames=["ApproximateReceiveCount"],
            VisibilityTimeout=60,
        )

    @pytest.mark.asyncio
    async def test_receive_empty(self, sqs_client: MagicMock) -> None:
        sqs_client.receive_message.return_value = {}
        buffer = SQSBuffer(client=sqs_client, queue_url=QUEUE_URL)

        assert await buffer.receive() == []

    @pytest.mark.asyncio
    async def test_acknowledge_deletes_message(self, sqs_client: MagicMock) -> None:
        buffer = SQSBuffer(client=sqs_client, queue_url=QUEUE_URL)

        await buffer.acknowledge(BufferMessage(message_id="m-1", body="x", receipt_handle="rh-1"))

        sqs_client.delete_message.assert_called_once_with(QueueUrl=QUEUE_URL, ReceiptHandle="rh-1")

    @pytest.mark.asyncio
    async def test_check(self, sqs_client: MagicMock) -> None:
        sqs_client.get_queue_attributes.return_value = {"Attributes": {"ApproximateNumberOfMessages": "7"}}
        buffer = SQSBuffer(client=sqs_client, queue_url=QUEUE_URL)

        status = await buffer.check()

        assert status == {"backend": "sqs", "queue_url": QUEUE_URL, "approximate_messages": 7}


class TestBuildBuffer:
    """Test buffer construction from settings."""

    def test_memory_backend(self) -> None:
        buffer = build_buffer(BufferSettings(backend="memory"))

        assert isinstance(buffer, InMemoryBuffer)
        assert buffer.visibility_timeout_seconds == MEMORY_VISIBILITY_TIMEOUT_SECONDS

    def test_unconfigured_sqs_returns_none(self) -> None:
        assert build_buffer(BufferSettings(backend="sqs", queue_url="")) is None

    def test_sqs_backend(self) -> None:
        settings = BufferSettings(
            backend="sqs",
            queue_url=QUEUE_URL,
            region="eu-west-1",
            endpoint_url="http://localhost:4566",
        )

        with patch("logrelay.core.clients.boto3") as mock_boto3:
            buffer = build_buffer(settings)

        mock_boto3.client.assert_called_once_with(
            "sqs", region_name="eu-west-1", endpoint_url="http://localhost:4566"
        )
        assert isinstance(buffer, SQSBuffer)
        assert buffer.client is mock_boto3.client.return_value
        assert buffer.queue_url == QUEUE_URL

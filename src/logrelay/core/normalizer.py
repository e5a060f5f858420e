"""
Submission normalizer.

Acceptance boundary of the service. Turns one inbound request into
exactly one Envelope and writes it to the buffer:
1. Dispatch on declared content type (JSON first, then plain text)
2. Extract tenant_id / log_id / text for that path
3. Validate required fields
4. Append the serialized envelope to the buffer
The caller gets the log_id back before any processing happens.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..models.envelope import Envelope, InboundRequest, JsonSubmission, Source
from .buffer import MessageBuffer
from .exceptions import (
    BufferWriteError,
    ConfigurationMissingError,
    LogRelayException,
    MalformedBodyError,
    MissingRequiredFieldError,
    UnsupportedContentTypeError,
)
from .metrics import MetricsCollector

logger = structlog.get_logger(__name__)

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain"
TENANT_HEADER = "x-tenant-id"


def generate_log_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Normalizer:
    """
    Converts inbound requests into envelopes.

    Stateless apart from the injected buffer; one instance can serve
    concurrent requests.
    """

    def __init__(
        self,
        buffer: Optional[MessageBuffer],
        metrics: Optional[MetricsCollector] = None,
        id_factory: Callable[[], str] = generate_log_id,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.buffer = buffer
        self.metrics = metrics
        self._id_factory = id_factory
        self._clock = clock

    def normalize(self, request: InboundRequest) -> Envelope:
        """
        Build an envelope from ``request`` without touching the buffer.

        Content type matching is substring containment, so parameters such
        as ``; charset=utf-8`` are accepted.
        """
        content_type = (request.content_type or "").lower()

        if JSON_CONTENT_TYPE in content_type:
            tenant_id, log_id, text = self._from_json(request.body)
            source = Source.JSON_UPLOAD
        elif TEXT_CONTENT_TYPE in content_type:
            tenant_id, log_id, text = self._from_text(request)
            source = Source.TEXT_UPLOAD
        else:
            raise UnsupportedContentTypeError(request.content_type or "")

        missing = [
            name for name, value in (("tenant_id", tenant_id), ("text", text))
            if not value.strip()
        ]
        if missing:
            raise MissingRequiredFieldError(missing)

        return Envelope(
            tenant_id=tenant_id,
            log_id=log_id,
            text=text,
            source=source,
            ingested_at=self._clock(),
        )

    async def submit(self, request: InboundRequest) -> Envelope:
        """
        Normalize ``request`` and append the envelope to the buffer.

        Raises a LogRelayException subclass on every failure; nothing is
        written to the buffer unless normalization succeeded. Without a
        buffer every request fails, whatever its content.
        """
        try:
            if self.buffer is None:
                raise ConfigurationMissingError("buffer.queue_url")

            envelope = self.normalize(request)

            try:
                message_id = await self.buffer.send(envelope.to_payload())
            except LogRelayException:
                raise
            except Exception as e:
                raise BufferWriteError(
                    "Failed to write message to buffer",
                    details={"error_type": type(e).__name__},
                ) from e

        except LogRelayException as e:
            if self.metrics:
                self.metrics.record_rejected(e.error_code)
            log = logger.info if e.is_client_error else logger.error
            log(
                "Submission rejected",
                error=str(e),
                error_code=e.error_code,
                content_type=request.content_type,
            )
            raise

        logger.info(
            "Submission accepted",
            tenant_id=envelope.tenant_id,
            log_id=envelope.log_id,
            source=envelope.source.value,
            message_id=message_id,
            text_length=len(envelope.text),
        )
        if self.metrics:
            self.metrics.record_accepted(envelope.source.value, len(envelope.text.encode("utf-8")))

        return envelope

    def _from_json(self, body: Union[str, bytes, Dict[str, Any], None]) -> Tuple[str, str, str]:
        """Extract fields from a structured body. Caller-supplied log_id is kept."""
        data = body
        if isinstance(data, bytes):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedBodyError(details={"reason": "body is not valid UTF-8"}) from e
        if data is None or data == "":
            data = "{}"
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise MalformedBodyError(details={"reason": e.msg}) from e
        if not isinstance(data, dict):
            raise MalformedBodyError(details={"reason": "body must be a JSON object"})

        try:
            submission = JsonSubmission.model_validate(data)
        except PydanticValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise MalformedBodyError(details={"reason": "invalid field types", "fields": fields}) from e

        log_id = submission.log_id or self._id_factory()
        return submission.tenant_id, log_id, submission.text

    def _from_text(self, request: InboundRequest) -> Tuple[str, str, str]:
        """Raw text body; tenant from header, log_id always generated."""
        body = request.body
        if isinstance(body, bytes):
            try:
                body = body.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedBodyError("Malformed text body", details={"reason": "body is not valid UTF-8"}) from e
        elif isinstance(body, dict):
            body = json.dumps(body)
        text = body or ""

        tenant_id = request.header(TENANT_HEADER)
        return tenant_id, self._id_factory(), text

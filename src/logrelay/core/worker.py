"""
Record worker.

Processes delivered buffer messages one at a time:

    received -> parsing -> delaying -> persisting -> acknowledged
        (any state) -> failed

Failures are never marked successful and never retried here; they are
returned as failed outcomes so the delivery loop can leave the message
for the buffer's redelivery.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..models.envelope import Envelope, ProcessedRecord
from .buffer import BufferMessage, MessageBuffer
from .exceptions import LogRelayException, WorkerProcessingError
from .metrics import MetricsCollector
from .redaction import REDACTION_MARKER, redact_with_count
from .scheduler import ProcessingScheduler
from .store import RecordStore

logger = structlog.get_logger(__name__)


class ProcessingState(str, Enum):
    """Per-message processing states."""

    RECEIVED = "received"
    PARSING = "parsing"
    DELAYING = "delaying"
    PERSISTING = "persisting"
    ACKNOWLEDGED = "acknowledged"
    FAILED = "failed"


@dataclass
class RecordOutcome:
    """Result of handling one delivered message."""
    message_id: str
    state: ProcessingState
    record: Optional[ProcessedRecord] = None
    error: Optional[Exception] = None
    failed_state: Optional[ProcessingState] = None
    tenant_id: Optional[str] = None
    log_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is ProcessingState.ACKNOWLEDGED and self.error is None


@dataclass
class BatchResult:
    """Outcomes of one delivery batch, in delivery order."""
    outcomes: List[RecordOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[RecordOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> List[RecordOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def failed_message_ids(self) -> List[str]:
        return [o.message_id for o in self.failed]

    def to_batch_item_failures(self) -> Dict[str, List[Dict[str, str]]]:
        """SQS partial batch response for Lambda event source mappings."""
        return {
            "batchItemFailures": [
                {"itemIdentifier": message_id} for message_id in self.failed_message_ids
            ]
        }


class Worker:
    """
    Turns delivered envelopes into persisted processed records.

    Holds no per-record state between calls; several workers may share a
    store because writes are upserts by (tenant_id, log_id).
    """

    def __init__(
        self,
        store: RecordStore,
        scheduler: ProcessingScheduler,
        buffer: Optional[MessageBuffer] = None,
        metrics: Optional[MetricsCollector] = None,
        redaction_marker: str = REDACTION_MARKER,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.buffer = buffer
        self.metrics = metrics
        self.redaction_marker = redaction_marker

    async def process(self, message: BufferMessage) -> ProcessedRecord:
        """
        Parse, delay, redact and persist one message.

        Raises WorkerProcessingError naming the failed state.
        """
        state = ProcessingState.PARSING
        try:
            envelope = self._parse(message)

            state = ProcessingState.DELAYING
            delay_ms = await self.scheduler.wait(envelope.text)

            state = ProcessingState.PERSISTING
            modified_text, redactions = redact_with_count(envelope.text, self.redaction_marker)
            record = ProcessedRecord.from_envelope(
                envelope,
                modified_text=modified_text,
                processing_time_ms=delay_ms,
            )
            await self.store.put(record)

        except WorkerProcessingError:
            raise
        except Exception as e:
            raise WorkerProcessingError(
                f"Processing failed while {state.value}: {e}",
                state=state.value,
                details={"message_id": message.message_id, "error_type": type(e).__name__},
            ) from e

        logger.info(
            "Record persisted",
            message_id=message.message_id,
            tenant_id=record.tenant_id,
            log_id=record.log_id,
            processing_time_ms=delay_ms,
            redactions=redactions,
            receive_count=message.receive_count,
        )
        if self.metrics:
            self.metrics.record_processed(delay_ms, redactions, message.receive_count)

        return record

    async def handle_record(self, message: BufferMessage) -> RecordOutcome:
        """
        Run one message through the state machine and report the outcome.

        On success the message is acknowledged to the attached buffer (if
        any). Failures are logged and returned; nothing is retried.
        """
        outcome = RecordOutcome(message_id=message.message_id, state=ProcessingState.RECEIVED)
        logger.debug(
            "Record received",
            message_id=message.message_id,
            receive_count=message.receive_count,
        )

        try:
            record = await self.process(message)
            outcome.record = record
            outcome.tenant_id = record.tenant_id
            outcome.log_id = record.log_id

            if self.buffer is not None:
                try:
                    await self.buffer.acknowledge(message)
                except Exception as e:
                    raise WorkerProcessingError(
                        f"Acknowledgement failed: {e}",
                        state=ProcessingState.ACKNOWLEDGED.value,
                        details={"message_id": message.message_id, "error_type": type(e).__name__},
                    ) from e
            outcome.state = ProcessingState.ACKNOWLEDGED

        except LogRelayException as e:
            failed_state = ProcessingState(e.details.get("state", ProcessingState.RECEIVED.value))
            self._fail(outcome, e, failed_state)

        return outcome

    async def process_batch(self, messages: Iterable[BufferMessage]) -> BatchResult:
        """
        Handle messages sequentially, in delivery order.

        A failed record does not stop the rest of the batch.
        """
        result = BatchResult()
        for message in messages:
            result.outcomes.append(await self.handle_record(message))

        if result.outcomes:
            logger.info(
                "Batch processed",
                records=len(result.outcomes),
                succeeded=len(result.succeeded),
                failed=len(result.failed),
            )
        return result

    def _parse(self, message: BufferMessage) -> Envelope:
        try:
            return Envelope.from_payload(message.body)
        except PydanticValidationError as e:
            raise WorkerProcessingError(
                "Malformed buffer payload",
                state=ProcessingState.PARSING.value,
                details={"message_id": message.message_id, "errors": e.error_count()},
            ) from e

    def _fail(self, outcome: RecordOutcome, error: Exception, failed_state: ProcessingState) -> None:
        outcome.state = ProcessingState.FAILED
        outcome.failed_state = failed_state
        outcome.error = error

        context: Dict[str, Any] = {
            "message_id": outcome.message_id,
            "failed_state": failed_state.value,
            "error": str(error),
            "error_type": type(error.__cause__ or error).__name__,
        }
        if outcome.log_id:
            context["log_id"] = outcome.log_id
        logger.error("Record processing failed", exc_info=error, **context)

        if self.metrics:
            self.metrics.record_failed(failed_state.value)

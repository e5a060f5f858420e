"""
Envelope and processed record models.

- Envelope: canonical unit written to the buffer by the normalizer
- ProcessedRecord: envelope plus redaction output, upserted by (tenant_id, log_id)
- Request/response models for the ingestion endpoint
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class Source(str, Enum):
    """Acceptance path that produced an envelope."""

    JSON_UPLOAD = "json_upload"
    TEXT_UPLOAD = "text_upload"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Envelope(BaseModel):
    """
    Canonical message moving through the buffer.

    Created once by the normalizer and never modified afterwards.
    """

    tenant_id: str = Field(min_length=1, description="Owning tenant")
    log_id: str = Field(min_length=1, description="Unique submission identifier")
    text: str = Field(min_length=1, description="Raw content to process")
    source: Source = Field(description="Acceptance path (json_upload, text_upload)")
    ingested_at: datetime = Field(description="UTC time of normalization")

    @field_validator("ingested_at")
    def ensure_utc(cls, v: datetime) -> datetime:
        """Store timestamps as aware UTC values."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    model_config = ConfigDict(frozen=True)

    def to_payload(self) -> str:
        """Serialize to the JSON text written to the buffer."""
        return self.model_dump_json()

    @classmethod
    def from_payload(cls, payload: Union[str, bytes]) -> "Envelope":
        """Parse a buffer payload. Raises pydantic.ValidationError when malformed."""
        return cls.model_validate_json(payload)


class ProcessedRecord(BaseModel):
    """
    Persisted result of processing one envelope.
    """

    tenant_id: str
    log_id: str
    text: str
    source: Source
    ingested_at: datetime
    modified_text: str = Field(description="Text with sensitive substrings redacted")
    processed_at: datetime = Field(description="UTC time persistence was attempted")
    processing_time_ms: int = Field(ge=0, description="Artificial delay actually applied")

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.tenant_id, self.log_id)

    @classmethod
    def from_envelope(
        cls,
        envelope: Envelope,
        modified_text: str,
        processing_time_ms: int,
        processed_at: Optional[datetime] = None,
    ) -> "ProcessedRecord":
        return cls(
            tenant_id=envelope.tenant_id,
            log_id=envelope.log_id,
            text=envelope.text,
            source=envelope.source,
            ingested_at=envelope.ingested_at,
            modified_text=modified_text,
            processed_at=processed_at or utc_now(),
            processing_time_ms=processing_time_ms,
        )

    def to_item(self) -> Dict[str, Dict[str, str]]:
        """Convert to a DynamoDB item with typed attribute values."""
        data = self.model_dump(mode="json")
        return {
            "tenant_id": {"S": data["tenant_id"]},
            "log_id": {"S": data["log_id"]},
            "source": {"S": data["source"]},
            "text": {"S": data["text"]},
            "modified_text": {"S": data["modified_text"]},
            "ingested_at": {"S": data["ingested_at"]},
            "processed_at": {"S": data["processed_at"]},
            "processing_time_ms": {"N": str(data["processing_time_ms"])},
        }

    @classmethod
    def from_item(cls, item: Mapping[str, Mapping[str, str]]) -> "ProcessedRecord":
        """Build a record from a DynamoDB item."""
        values: Dict[str, Any] = {}
        for name, attribute in item.items():
            if "N" in attribute:
                values[name] = int(attribute["N"])
            elif "S" in attribute:
                values[name] = attribute["S"]
        return cls.model_validate(values)


class JsonSubmission(BaseModel):
    """
    Structured body accepted on the JSON path.

    Missing or null fields become empty so the normalizer reports them as
    missing rather than malformed; other non-string values are malformed.
    """

    tenant_id: StrictStr = ""
    text: StrictStr = ""
    log_id: Optional[StrictStr] = None

    @field_validator("tenant_id", "text", mode="before")
    def null_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v


@dataclass
class InboundRequest:
    """Transport-neutral view of one ingestion request."""

    content_type: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Union[str, bytes, Dict[str, Any], None] = None

    def header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default


class IngestResponse(BaseModel):
    """
    202 Accepted acknowledgement. Returned before processing happens.
    """

    message: str = Field(default="Accepted", description="Response message")
    log_id: str = Field(description="Identifier assigned to the submission")


class ErrorResponse(BaseModel):
    """
    Standard error response model.
    """

    error: str = Field(description="Error code")
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )

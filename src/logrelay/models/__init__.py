"""
Pydantic data models package.

Contains the message and record models shared by the API and the worker:
- Envelope (buffer payload)
- Processed record (store item)
- Ingestion request and response schemas
"""

from .envelope import (
    Envelope,
    ErrorResponse,
    InboundRequest,
    IngestResponse,
    JsonSubmission,
    ProcessedRecord,
    Source,
)

__all__ = [
    # Buffer / store models
    "Envelope",
    "ProcessedRecord",
    "Source",

    # API models
    "InboundRequest",
    "IngestResponse",
    "JsonSubmission",
    "ErrorResponse",
]

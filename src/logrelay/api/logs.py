"""
Log submission API endpoints.

Main endpoint: POST /v1/logs
"""

import structlog
from fastapi import APIRouter, Depends, Request

from ..core.normalizer import Normalizer
from ..models.envelope import ErrorResponse, InboundRequest, IngestResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


async def get_normalizer(request: Request) -> Normalizer:
    """Dependency to get the normalizer built at startup."""
    normalizer: Normalizer = request.app.state.normalizer
    return normalizer


@router.post(
    "/logs",
    response_model=IngestResponse,
    status_code=202,
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported content type or missing fields"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
    summary="Submit a log",
    description="""
    Accept one log submission for asynchronous processing.

    **Accepted formats:**
    - `application/json`: `{"tenant_id": ..., "text": ..., "log_id": optional}`
    - `text/plain`: raw body, tenant taken from the `X-Tenant-ID` header

    The response is returned as soon as the submission is buffered;
    redaction and persistence happen later in the worker.
    """,
)
async def submit_log(
    request: Request,
    normalizer: Normalizer = Depends(get_normalizer),
) -> IngestResponse:
    """
    Submit a log.

    """
    body = await request.body()
    inbound = InboundRequest(
        content_type=request.headers.get("content-type", ""),
        headers=request.headers,
        body=body,
    )

    envelope = await normalizer.submit(inbound)

    return IngestResponse(message="Accepted", log_id=envelope.log_id)

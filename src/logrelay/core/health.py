"""
Health checker implementation for monitoring system dependencies.

Performs health checks for:
- Buffer reachability (configured target, queue attributes)
- Store reachability (table status)
- Embedded worker loop status (when enabled)
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Optional

import structlog

from .buffer import MessageBuffer
from .store import RecordStore
from .worker_service import WorkerService

logger = structlog.get_logger(__name__)


@dataclass
class HealthCheck:
    """Individual health check result."""
    name: str
    status: str  # "healthy", "unhealthy"
    message: str
    details: Dict[str, Any]
    last_check: float


@dataclass
class HealthStatus:
    """Overall health status."""
    is_healthy: bool
    checks: Dict[str, HealthCheck]
    failed_checks: List[str]
    timestamp: float


class HealthChecker:
    """
    Readiness checks for LogRelay dependencies.

    The store is optional for the API process; it is only checked when
    one was built (embedded worker).
    """

    def __init__(
        self,
        buffer: Optional[MessageBuffer],
        store: Optional[RecordStore] = None,
        worker_service: Optional[WorkerService] = None,
    ) -> None:
        self.buffer = buffer
        self.store = store
        self.worker_service = worker_service

        logger.info("Health Checker initialized")

    async def check_all(self) -> HealthStatus:
        """Perform all health checks and return overall status."""
        checks: Dict[str, HealthCheck] = {}
        failed_checks: List[str] = []

        pending: Dict[str, Awaitable[HealthCheck]] = {"buffer": self._check_buffer()}
        if self.store is not None:
            pending["store"] = self._check_store()
        if self.worker_service is not None:
            pending["worker"] = asyncio.to_thread(self._check_worker_service)

        check_results = await asyncio.gather(*pending.values(), return_exceptions=True)

        for name, result in zip(pending.keys(), check_results):
            if isinstance(result, BaseException):
                result = self._unhealthy(name, f"Check failed: {result}", {
                    "error": str(result),
                    "error_type": type(result).__name__,
                })
            checks[name] = result
            if result.status != "healthy":
                failed_checks.append(name)

        return HealthStatus(
            is_healthy=not failed_checks,
            checks=checks,
            failed_checks=failed_checks,
            timestamp=time.time(),
        )

    async def _check_buffer(self) -> HealthCheck:
        if self.buffer is None:
            return self._unhealthy("buffer", "Buffer target not configured", {})

        try:
            details = await self.buffer.check()
        except Exception as e:
            logger.warning("Buffer check failed", error=str(e))
            return self._unhealthy("buffer", f"Cannot reach buffer: {e}", {"error": str(e)})

        return HealthCheck(
            name="buffer",
            status="healthy",
            message="Buffer is reachable",
            details=details,
            last_check=time.time(),
        )

    async def _check_store(self) -> HealthCheck:
        assert self.store is not None
        try:
            details = await self.store.check()
        except Exception as e:
            logger.warning("Store check failed", error=str(e))
            return self._unhealthy("store", f"Cannot reach store: {e}", {"error": str(e)})

        return HealthCheck(
            name="store",
            status="healthy",
            message="Store is reachable",
            details=details,
            last_check=time.time(),
        )

    def _check_worker_service(self) -> HealthCheck:
        assert self.worker_service is not None
        details = self.worker_service.status()
        if self.worker_service.is_healthy():
            return HealthCheck(
                name="worker",
                status="healthy",
                message="Worker loop is running",
                details=details,
                last_check=time.time(),
            )
        return self._unhealthy("worker", "Worker loop is not running", details)

    @staticmethod
    def _unhealthy(name: str, message: str, details: Dict[str, Any]) -> HealthCheck:
        return HealthCheck(
            name=name,
            status="unhealthy",
            message=message,
            details=details,
            last_check=time.time(),
        )

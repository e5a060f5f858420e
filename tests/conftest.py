"""
Pytest configuration and shared fixtures.

Contains common test fixtures and setup for all test modules.
"""

from typing import Any, Dict, Generator, List
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from logrelay.config import get_settings, reload_settings
from logrelay.core.buffer import InMemoryBuffer
from logrelay.core.metrics import MetricsCollector
from logrelay.core.normalizer import Normalizer
from logrelay.core.scheduler import ProcessingScheduler
from logrelay.core.store import InMemoryStore
from logrelay.core.worker import Worker
from logrelay.main import app


class RecordingSleep:
    """Async sleep stand-in that records requested durations instead of waiting."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def buffer() -> InMemoryBuffer:
    return InMemoryBuffer()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def scheduler(recording_sleep: RecordingSleep) -> ProcessingScheduler:
    return ProcessingScheduler(ms_per_char=50, max_delay_ms=10000, sleep=recording_sleep)


@pytest.fixture
def normalizer(buffer: InMemoryBuffer, metrics: MetricsCollector) -> Normalizer:
    return Normalizer(buffer=buffer, metrics=metrics)


@pytest.fixture
def worker(
    store: InMemoryStore,
    scheduler: ProcessingScheduler,
    buffer: InMemoryBuffer,
    metrics: MetricsCollector,
) -> Worker:
    return Worker(store=store, scheduler=scheduler, buffer=buffer, metrics=metrics)


@pytest.fixture
def memory_env(monkeypatch: pytest.MonkeyPatch) -> Dict[str, str]:
    """Environment selecting the in-memory buffer and store."""
    env = {
        "LOGRELAY_BUFFER_BACKEND": "memory",
        "LOGRELAY_STORE_BACKEND": "memory",
        "LOGRELAY_WORKER_EMBEDDED": "false",
        "LOGRELAY_LOG_LEVEL": "DEBUG",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


def _client_with_settings() -> Generator[TestClient, None, None]:
    with patch("logrelay.config.load_config_file") as mock_load:
        mock_load.return_value = {}
        reload_settings()

        with TestClient(app) as client:
            yield client

    get_settings.cache_clear()


@pytest.fixture
def test_client(memory_env: Dict[str, str]) -> Generator[TestClient, None, None]:
    """FastAPI test client backed by in-memory buffer and store."""
    yield from _client_with_settings()


@pytest.fixture
def embedded_client(memory_env: Dict[str, str], monkeypatch: pytest.MonkeyPatch) -> Generator[TestClient, None, None]:
    """FastAPI test client running the worker loop in-process without delays."""
    monkeypatch.setenv("LOGRELAY_WORKER_EMBEDDED", "true")
    monkeypatch.setenv("LOGRELAY_WORKER_IDLE_SLEEP_SECONDS", "0.01")
    monkeypatch.setenv("LOGRELAY_PROCESSING_MS_PER_CHAR", "0")
    yield from _client_with_settings()


@pytest.fixture
def unconfigured_client(monkeypatch: pytest.MonkeyPatch) -> Generator[TestClient, None, None]:
    """FastAPI test client with the SQS backend selected but no queue URL."""
    monkeypatch.setenv("LOGRELAY_BUFFER_BACKEND", "sqs")
    monkeypatch.setenv("LOGRELAY_BUFFER_QUEUE_URL", "")
    monkeypatch.setenv("LOGRELAY_WORKER_EMBEDDED", "false")
    yield from _client_with_settings()


@pytest.fixture
def json_submission() -> Dict[str, Any]:
    """Structured submission containing a sensitive fragment."""
    return {
        "tenant_id": "t1",
        "text": "call 555-1234",
    }

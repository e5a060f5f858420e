"""
Processing scheduler.

Computes the artificial, content-proportional delay applied to each record
before it counts as processed, and suspends for it.
"""

import asyncio
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_MS_PER_CHAR = 50
DEFAULT_MAX_DELAY_MS = 10_000

SleepFunc = Callable[[float], Awaitable[None]]


def text_length(text: str) -> int:
    """Length in UTF-16 code units; characters outside the BMP count twice."""
    return len(text.encode("utf-16-le", errors="surrogatepass")) // 2


def compute_delay_ms(
    text: str,
    ms_per_char: int = DEFAULT_MS_PER_CHAR,
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
) -> int:
    """Delay for ``text``: ``min(text_length(text) * ms_per_char, max_delay_ms)``."""
    return min(text_length(text) * ms_per_char, max_delay_ms)


class ProcessingScheduler:
    """
    Applies the per-record processing delay.

    The computed delay is both the sleep duration and the value recorded
    as ``processing_time_ms``.
    """

    def __init__(
        self,
        ms_per_char: int = DEFAULT_MS_PER_CHAR,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        if ms_per_char < 0 or max_delay_ms < 0:
            raise ValueError("Delay settings must be non-negative")
        self.ms_per_char = ms_per_char
        self.max_delay_ms = max_delay_ms
        self._sleep = sleep

    def delay_ms(self, text: str) -> int:
        return compute_delay_ms(text, self.ms_per_char, self.max_delay_ms)

    async def wait(self, text: str) -> int:
        """Suspend for the delay computed from ``text`` and return it in ms."""
        delay = self.delay_ms(text)
        logger.debug("Applying processing delay", delay_ms=delay, text_length=len(text))
        await self._sleep(delay / 1000)
        return delay

"""
TextGenerationQueue — one coordinator-owned gate in front of the LLM.

Replaces module-level queues/counters with an explicit object:

  - FIFO: callers are admitted one at a time (asyncio.Lock)
  - Pacing: at least ``min_interval`` seconds between request starts
  - Budget: at most ``max_requests_per_hour`` starts in any rolling hour
  - Cooldown: after a provider error, refuse requests for ``cooldown`` seconds

Refusals return None immediately so the caller takes its template fallback;
nothing here ever raises into the pipeline. Time comes from an injected
``clock`` (seconds, monotonic) and waits go through an injected ``sleep``,
so tests drive time deterministically.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

from ..config import get_settings
from .llm_service import GenerationOptions, TextGenerator

logger = logging.getLogger(__name__)

HOUR_SECONDS = 3600.0


class TextGenerationQueue:
    """Rate-limited, failure-aware access to a TextGenerator."""

    def __init__(
        self,
        generator: Optional[TextGenerator],
        max_requests_per_hour: Optional[int] = None,
        min_interval: Optional[float] = None,
        cooldown: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        settings = get_settings()
        self.generator = generator
        self.max_requests_per_hour = (
            max_requests_per_hour if max_requests_per_hour is not None
            else settings.llm_max_requests_per_hour
        )
        self.min_interval = min_interval if min_interval is not None else settings.llm_min_interval_seconds
        self.cooldown = cooldown if cooldown is not None else settings.llm_cooldown_seconds
        self.clock = clock
        self.sleep = sleep

        self._sent: Deque[float] = deque()
        self._last_start: Optional[float] = None
        self._cooldown_until = 0.0
        self._lock: Optional[asyncio.Lock] = None

        self.requests_sent = 0
        self.requests_failed = 0
        self.requests_refused = 0

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def enabled(self) -> bool:
        return self.generator is not None

    def remaining_budget(self) -> int:
        """Request starts still allowed in the current rolling hour."""
        self._prune(self.clock())
        return max(0, self.max_requests_per_hour - len(self._sent))

    def _prune(self, now: float) -> None:
        while self._sent and now - self._sent[0] >= HOUR_SECONDS:
            self._sent.popleft()

    async def _admit(self) -> bool:
        """Wait for this caller's turn. False means refuse (fallback)."""
        async with self._get_lock():
            now = self.clock()
            if now < self._cooldown_until:
                self.requests_refused += 1
                logger.debug(f"LLM cooling down for {self._cooldown_until - now:.0f}s, using fallback")
                return False

            self._prune(now)
            if len(self._sent) >= self.max_requests_per_hour:
                self.requests_refused += 1
                logger.info(f"LLM hourly budget ({self.max_requests_per_hour}) exhausted, using fallback")
                return False

            if self._last_start is not None:
                wait = self._last_start + self.min_interval - now
                if wait > 0:
                    await self.sleep(wait)
                    now = self.clock()

            self._last_start = now
            self._sent.append(now)
            self.requests_sent += 1
            return True

    async def submit(self, prompt: str, options: Optional[GenerationOptions] = None) -> Optional[str]:
        """Queue one generation. Returns text, or None when refused or failed."""
        if self.generator is None:
            return None
        if not await self._admit():
            return None

        try:
            text = await self.generator.generate(prompt, options or GenerationOptions())
        except Exception as e:
            self.requests_failed += 1
            self._cooldown_until = self.clock() + self.cooldown
            logger.warning(f"LLM request failed, cooling down {self.cooldown:.0f}s: {e}")
            return None

        if not text or not text.strip():
            return None
        return text.strip()

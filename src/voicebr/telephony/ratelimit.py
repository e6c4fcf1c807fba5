"""
Token-bucket rate limiter for outbound voice API requests.

The voice platform caps call creation at a few requests per second and
simple GETs at a higher ceiling. One limiter instance gates each request
class; instances are injected into SignedClient rather than shared globals.
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Awaitable, Callable

from voicebr.shared.exceptions import RateLimitTimeoutError
from voicebr.shared.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class TokenBucketLimiter:
    """Token bucket refilled at `rate` tokens per second, holding up to `burst`.

    Callers reserve a token first and sleep for the reservation delay
    afterwards, so waiters are served in arrival order. A waiter that is
    cancelled while sleeping hands back as much of its token as the waiters
    queued behind it allow.
    """

    def __init__(
        self,
        rate: float,
        burst: int | None = None,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if burst is None:
            burst = max(1, int(rate))
        if burst < 1:
            raise ValueError(f"burst must be at least 1, got {burst}")

        self._rate = float(rate)
        self._burst = burst
        self._clock = clock
        self._sleep = sleep

        # Guards the bucket state only; never held across an await.
        self._lock = threading.Lock()
        self._tokens = float(burst)
        self._last = clock()
        self._last_due = self._last

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def burst(self) -> int:
        return self._burst

    @property
    def tokens(self) -> float:
        """Current token level. Negative while reservations are outstanding."""
        with self._lock:
            self._advance(self._clock())
            return self._tokens

    def _advance(self, now: float) -> None:
        elapsed = max(0.0, now - self._last)
        self._tokens = min(float(self._burst), self._tokens + elapsed * self._rate)
        self._last = now

    def _reserve(self, timeout: float | None) -> tuple[float, float]:
        """Take one token; return the delay and the time the token is due."""
        with self._lock:
            now = self._clock()
            self._advance(now)
            tokens = self._tokens - 1
            delay = 0.0 if tokens >= 0 else -tokens / self._rate
            if timeout is not None and delay > timeout:
                raise RateLimitTimeoutError(
                    f"rate limiter: would wait {delay:.3f}s, deadline is {timeout:.3f}s"
                )
            self._tokens = tokens
            due = now + delay
            self._last_due = due
            return delay, due

    def _release(self, due: float) -> None:
        """Give back what a cancelled reservation due at `due` still holds.

        Reservations made after it keep their slots, so the token returned is
        reduced by the time they were pushed back.
        """
        with self._lock:
            now = self._clock()
            if due < now:
                return
            restore = 1 - (self._last_due - due) * self._rate
            if restore <= 0:
                return
            self._advance(now)
            self._tokens = min(float(self._burst), self._tokens + restore)
            if due == self._last_due:
                previous = due - 1 / self._rate
                if previous >= now:
                    self._last_due = previous

    async def wait(self, timeout: float | None = None) -> None:
        """Block until a token is available.

        Args:
            timeout: Seconds the caller is willing to wait. None waits as long
                as needed.

        Raises:
            RateLimitTimeoutError: The deadline has already passed, or the
                token could not be granted before it. No token is consumed.
            asyncio.CancelledError: The waiting task was cancelled. The
                reserved token is returned, less the share already promised to
                later waiters.
        """
        if timeout is not None and timeout <= 0:
            raise RateLimitTimeoutError("rate limiter: deadline already expired")

        delay, due = self._reserve(timeout)
        if delay <= 0:
            return

        logger.debug("Rate limiter backpressure", extra={"delay_seconds": round(delay, 3)})
        try:
            await self._sleep(delay)
        except asyncio.CancelledError:
            self._release(due)
            raise

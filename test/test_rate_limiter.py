"""
Tests for the token-bucket rate limiter.
"""

import asyncio

import pytest

from voicebr.shared.exceptions import RateLimitTimeoutError, TransportError
from voicebr.telephony.ratelimit import TokenBucketLimiter


async def _blocked_sleep(_: float) -> None:
    await asyncio.Event().wait()


class TestTokenBucketLimiter:
    def test_rejects_non_positive_rate(self) -> None:
        with pytest.raises(ValueError):
            TokenBucketLimiter(0)
        with pytest.raises(ValueError):
            TokenBucketLimiter(-3)

    def test_burst_defaults_to_rate(self) -> None:
        assert TokenBucketLimiter(3).burst == 3
        assert TokenBucketLimiter(15).burst == 15
        assert TokenBucketLimiter(0.5).burst == 1

    @pytest.mark.asyncio
    async def test_burst_is_granted_without_sleeping(self, fake_clock) -> None:
        limiter = TokenBucketLimiter(3, clock=fake_clock, sleep=fake_clock.sleep)

        for _ in range(3):
            await limiter.wait()

        assert fake_clock.sleeps == []
        assert limiter.tokens == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_waits_one_interval_per_token_after_burst(self, fake_clock) -> None:
        limiter = TokenBucketLimiter(3, clock=fake_clock, sleep=fake_clock.sleep)

        for _ in range(6):
            await limiter.wait()

        assert fake_clock.sleeps == [pytest.approx(1 / 3)] * 3

    @pytest.mark.asyncio
    async def test_refills_up_to_burst(self, fake_clock) -> None:
        limiter = TokenBucketLimiter(3, clock=fake_clock, sleep=fake_clock.sleep)
        for _ in range(3):
            await limiter.wait()

        fake_clock.now += 10

        assert limiter.tokens == pytest.approx(3.0)

    @pytest.mark.asyncio
    async def test_expired_deadline_never_grants(self, fake_clock) -> None:
        limiter = TokenBucketLimiter(3, clock=fake_clock, sleep=fake_clock.sleep)

        with pytest.raises(RateLimitTimeoutError):
            await limiter.wait(timeout=0)
        with pytest.raises(RateLimitTimeoutError):
            await limiter.wait(timeout=-1)

        assert limiter.tokens == pytest.approx(3.0)

    @pytest.mark.asyncio
    async def test_deadline_shorter_than_delay_fails_fast(self, fake_clock) -> None:
        limiter = TokenBucketLimiter(3, clock=fake_clock, sleep=fake_clock.sleep)
        for _ in range(3):
            await limiter.wait()

        with pytest.raises(RateLimitTimeoutError):
            await limiter.wait(timeout=0.1)

        assert fake_clock.sleeps == []
        assert limiter.tokens == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_expired_deadline_under_contention(self, fake_clock) -> None:
        limiter = TokenBucketLimiter(3, clock=fake_clock, sleep=fake_clock.sleep)

        results = await asyncio.gather(
            *(limiter.wait(timeout=0) for _ in range(50)),
            return_exceptions=True,
        )

        assert all(isinstance(r, RateLimitTimeoutError) for r in results)
        assert limiter.tokens == pytest.approx(3.0)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_returns_its_token(self, fake_clock) -> None:
        limiter = TokenBucketLimiter(1, clock=fake_clock, sleep=_blocked_sleep)
        await limiter.wait()

        waiter = asyncio.create_task(limiter.wait())
        await asyncio.sleep(0)
        assert limiter.tokens == pytest.approx(-1.0)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert limiter.tokens == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_mid_queue_keeps_slots_distinct(self, fake_clock) -> None:
        start_times: list[float] = []

        async def scheduled_sleep(seconds: float) -> None:
            start_times.append(fake_clock.now + seconds)
            await asyncio.Event().wait()

        limiter = TokenBucketLimiter(1, clock=fake_clock, sleep=scheduled_sleep)
        await limiter.wait()

        waiters = []
        for _ in range(3):
            waiters.append(asyncio.create_task(limiter.wait()))
            await asyncio.sleep(0)

        waiters[1].cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiters[1]

        waiters.append(asyncio.create_task(limiter.wait()))
        await asyncio.sleep(0)

        live = [t for i, t in enumerate(start_times) if i != 1]
        assert len(live) == 3
        assert len(set(live)) == len(live)
        assert max(live) == pytest.approx(fake_clock.now + 4)

        for waiter in waiters:
            waiter.cancel()
        await asyncio.gather(*waiters, return_exceptions=True)

    @pytest.mark.asyncio
    async def test_cancelled_last_waiter_frees_its_slot(self, fake_clock) -> None:
        start_times: list[float] = []

        async def scheduled_sleep(seconds: float) -> None:
            start_times.append(fake_clock.now + seconds)
            await asyncio.Event().wait()

        limiter = TokenBucketLimiter(1, clock=fake_clock, sleep=scheduled_sleep)
        await limiter.wait()

        first = asyncio.create_task(limiter.wait())
        second = asyncio.create_task(limiter.wait())
        await asyncio.sleep(0)

        second.cancel()
        with pytest.raises(asyncio.CancelledError):
            await second

        third = asyncio.create_task(limiter.wait())
        await asyncio.sleep(0)

        assert start_times == [
            pytest.approx(fake_clock.now + 1),
            pytest.approx(fake_clock.now + 2),
            pytest.approx(fake_clock.now + 2),
        ]

        for waiter in (first, third):
            waiter.cancel()
        await asyncio.gather(first, third, return_exceptions=True)

    @pytest.mark.asyncio
    async def test_wait_for_deadline_cancels_wait(self) -> None:
        limiter = TokenBucketLimiter(1)
        await limiter.wait()

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(limiter.wait(), timeout=0.05)

        assert 0.0 <= limiter.tokens < 1.0

    def test_timeout_error_is_a_transport_error(self) -> None:
        assert issubclass(RateLimitTimeoutError, TransportError)
